import asyncio
import json

from flowforward.sim import apply_control, parse_args, publisher, snapshot_queue


def test_trigger_command(engine):
    assert apply_control(engine, {"command": "TRIGGER_VIOLATION", "plant_id": "plant-d", "type": "flow"})
    plant = engine.get_by_id("plant-d")
    assert plant.status == "Fault"
    assert plant.compliance.violations[-1].type == "flow"


def test_trigger_command_rejects_bad_input(engine):
    before = engine.get_all()
    assert not apply_control(engine, {"command": "TRIGGER_VIOLATION", "plant_id": "plant-d", "type": "odor"})
    assert not apply_control(engine, {"command": "TRIGGER_VIOLATION", "plant_id": 5, "type": "pH"})
    assert not apply_control(engine, {"command": "TRIGGER_VIOLATION", "plant_id": "ghost", "type": "pH"})
    assert engine.get_all() == before


def test_resolve_command(engine):
    engine.trigger_violation("plant-e", "maintenance")
    vid = engine.get_by_id("plant-e").compliance.violations[-1].id

    assert apply_control(engine, {"command": "RESOLVE_VIOLATION", "violation_id": vid, "resolved_by": "hmi"})
    v = engine.get_by_id("plant-e").compliance.violations[-1]
    assert v.resolved and v.resolved_by == "hmi"


def test_resolve_command_defaults_and_errors(engine):
    engine.trigger_violation("plant-e", "pH")
    vid = engine.get_by_id("plant-e").compliance.violations[-1].id

    assert not apply_control(engine, {"command": "RESOLVE_VIOLATION", "violation_id": "missing"})
    assert not apply_control(engine, {"command": "RESOLVE_VIOLATION"})
    assert apply_control(engine, {"command": "RESOLVE_VIOLATION", "violation_id": vid})
    assert engine.get_by_id("plant-e").compliance.violations[-1].resolved_by == "operator"


def test_unknown_command(engine):
    assert not apply_control(engine, {"command": "PUMP_ON"})
    assert not apply_control(engine, {})


def test_parse_args_defaults():
    args = parse_args([])
    assert args.base_topic == "flowforward"
    assert args.tick == 1.0
    assert args.capacity == 50
    assert args.seed is None
    assert not args.no_mqtt

    args = parse_args(["--no-mqtt", "--seed", "3", "--tick", "0.5"])
    assert args.no_mqtt and args.seed == 3 and args.tick == 0.5


def test_snapshot_queue_bridges_ticks(engine):
    async def scenario():
        queue, unsubscribe = snapshot_queue(engine, asyncio.get_running_loop())
        engine.tick()
        snapshot = await asyncio.wait_for(queue.get(), 2.0)
        unsubscribe()
        engine.tick()
        await asyncio.sleep(0)
        return snapshot, queue.qsize()

    snapshot, left = asyncio.run(scenario())
    assert [p.id for p in snapshot] == ["plant-a", "plant-b", "plant-c", "plant-d", "plant-e"]
    assert left == 0


def test_publisher_writes_jsonl_without_mqtt(engine, clock, tmp_path):
    out = tmp_path / "logs" / "telemetry.jsonl"

    async def scenario():
        stop = asyncio.Event()
        queue = asyncio.Queue()
        task = asyncio.create_task(publisher("127.0.0.1", 1883, "ff", queue, stop, str(out), use_mqtt=False))

        for _ in range(2):
            clock.advance()
            engine.tick()
            await queue.put(tuple(engine.get_all()))

        for _ in range(200):
            if queue.empty() and out.exists() and len(out.read_text().splitlines()) == 10:
                break
            await asyncio.sleep(0.01)

        stop.set()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(scenario())

    lines = [json.loads(line) for line in out.read_text().splitlines()]
    assert len(lines) == 10
    plant_a = [line for line in lines if line["payload"]["device_id"] == "plant-a"]
    assert [line["payload"]["seq"] for line in plant_a] == [1, 2]
    assert plant_a[0]["topic"] == "ff/plant-a/telemetry"
