#!/usr/bin/env python3
# flowforward/sim.py
"""
Headless FlowForward engine: ticks the plants, publishes per-plant telemetry
over MQTT, appends every message to a JSONL log and accepts demo commands on
the control topic.
"""

import argparse
import asyncio
import contextlib
import json
import os
import signal
from typing import Any, Callable, Dict, Optional, Tuple

from aiomqtt import Client, MqttError

from .plant.config import EngineConfig
from .plant.engine import PlantEngine
from .plant.hub import Snapshot
from .plant.state import VIOLATION_TYPES
from .plant.telemetry import build_plant_payload, control_topic, telemetry_topic
from .utils import ensure_dir_for_file, log


QUEUE_MAXSIZE = 64


# ============================================================
# Control handling
# ============================================================
def apply_control(engine: PlantEngine, data: Dict[str, Any]) -> bool:
    """Dispatch one decoded control message. Malformed commands are logged and skipped."""
    cmd = data.get("command")

    if cmd == "TRIGGER_VIOLATION":
        plant_id = data.get("plant_id")
        vtype = data.get("type")
        if not isinstance(plant_id, str) or vtype not in VIOLATION_TYPES:
            log(f"[CTL] bad TRIGGER_VIOLATION: {data!r}")
            return False
        ok = engine.trigger_violation(plant_id, vtype)
        if not ok:
            log(f"[CTL] unknown plant {plant_id}")
        return ok

    if cmd == "RESOLVE_VIOLATION":
        vid = data.get("violation_id")
        by = data.get("resolved_by", "operator")
        if not isinstance(vid, str) or not isinstance(by, str):
            log(f"[CTL] bad RESOLVE_VIOLATION: {data!r}")
            return False
        ok = engine.resolve_violation(vid, by)
        if not ok:
            log(f"[CTL] unknown violation {vid}")
        return ok

    log(f"[CTL] unknown command {cmd!r}")
    return False


# ============================================================
# Tasks
# ============================================================
async def control_listener(host: str, port: int, base_topic: str, engine: PlantEngine, stop_event: asyncio.Event) -> None:
    topic = control_topic(base_topic)

    while not stop_event.is_set():
        try:
            async with Client(hostname=host, port=port) as client:
                await client.subscribe(topic)
                log(f"[CTL] subscribed {topic}")

                async for msg in client.messages:
                    if stop_event.is_set():
                        break
                    try:
                        data = json.loads(msg.payload.decode("utf-8"))
                    except (UnicodeDecodeError, json.JSONDecodeError):
                        continue
                    if not isinstance(data, dict):
                        continue

                    apply_control(engine, data)

        except MqttError as e:
            log(f"[CTL] MQTT error: {repr(e)} retry 1s")
            await asyncio.sleep(1.0)
        except Exception as e:
            log(f"[CTL] Unexpected error: {repr(e)} retry 1s")
            await asyncio.sleep(1.0)


def snapshot_queue(engine: PlantEngine, loop: asyncio.AbstractEventLoop) -> Tuple[asyncio.Queue, Callable[[], None]]:
    """Bridge hub notifications (scheduler thread) into an asyncio queue."""
    queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_MAXSIZE)

    def _put(snapshot: Snapshot) -> None:
        try:
            queue.put_nowait(snapshot)
        except asyncio.QueueFull:
            log("[PUB] queue full, snapshot dropped")

    def _observer(snapshot: Snapshot) -> None:
        loop.call_soon_threadsafe(_put, snapshot)

    unsubscribe = engine.subscribe(_observer)
    return queue, unsubscribe


async def publisher(
    host: str,
    port: int,
    base_topic: str,
    queue: asyncio.Queue,
    stop_event: asyncio.Event,
    out_jsonl: str,
    use_mqtt: bool = True,
) -> None:
    ensure_dir_for_file(out_jsonl)

    seq: Dict[str, int] = {}

    while not stop_event.is_set():
        try:
            conn = Client(hostname=host, port=port) if use_mqtt else contextlib.nullcontext()
            async with conn as client:
                if use_mqtt:
                    log(f"[PUB] connected mqtt://{host}:{port}")
                with open(out_jsonl, "a", encoding="utf-8") as f:
                    while not stop_event.is_set():
                        snapshot = await queue.get()

                        for plant in snapshot:
                            seq[plant.id] = seq.get(plant.id, 0) + 1
                            topic = telemetry_topic(base_topic, plant.id)
                            payload = build_plant_payload(plant, seq[plant.id])

                            line = {"topic": topic, "payload": payload}
                            f.write(json.dumps(line, ensure_ascii=False) + "\n")
                            if client is not None:
                                await client.publish(topic, json.dumps(payload).encode("utf-8"), qos=0)

                        f.flush()

        except MqttError as e:
            log(f"[PUB] MQTT error: {repr(e)} retry 1s")
            await asyncio.sleep(1.0)
        except Exception as e:
            log(f"[PUB] Unexpected error: {repr(e)} retry 1s")
            await asyncio.sleep(1.0)


# ============================================================
# Main
# ============================================================
def install_signal_handlers(stop_event: asyncio.Event) -> None:
    def _h(*_):
        stop_event.set()

    try:
        signal.signal(signal.SIGINT, _h)
        signal.signal(signal.SIGTERM, _h)
    except ValueError:
        # not on the main thread
        pass


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="FlowForward plant engine + MQTT telemetry + JSONL")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=1883)
    p.add_argument("--base-topic", default="flowforward")
    p.add_argument("--tick", type=float, default=1.0)
    p.add_argument("--capacity", type=int, default=50)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--out", default="out/plant_telemetry.jsonl")
    p.add_argument("--no-mqtt", action="store_true", help="only write the JSONL log")
    return p.parse_args(argv)


async def run(args: argparse.Namespace) -> None:
    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)

    cfg = EngineConfig(tick_s=args.tick, buffer_capacity=args.capacity, seed=args.seed)
    engine = PlantEngine(cfg)

    use_mqtt = not args.no_mqtt
    queue, unsubscribe = snapshot_queue(engine, asyncio.get_running_loop())

    log(f"[MAIN] base_topic={args.base_topic} out={os.path.abspath(args.out)} mqtt={'on' if use_mqtt else 'off'}")
    log(f"[MAIN] control topic: {control_topic(args.base_topic)}")
    log(f"[MAIN] telemetry topics: {args.base_topic}/<plant_id>/telemetry")

    tasks = [
        asyncio.create_task(publisher(args.host, args.port, args.base_topic, queue, stop_event, args.out, use_mqtt)),
    ]
    if use_mqtt:
        tasks.append(asyncio.create_task(control_listener(args.host, args.port, args.base_topic, engine, stop_event)))

    engine.start()
    try:
        while not stop_event.is_set():
            await asyncio.sleep(0.2)
    finally:
        engine.stop()
        unsubscribe()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
