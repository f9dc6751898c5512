# flowforward/plant/engine.py
from __future__ import annotations

import random
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from ..utils import log, utc_now
from .buffers import SeriesBufferManager
from .compliance import derive_compliance_status, status_after_resolution
from .config import DEFAULT_PLANTS, DEFAULT_USERS, METRIC_RANGES, EngineConfig, PlantConfig
from .hub import NotificationHub, Observer
from .registry import PlantRegistry
from .scheduler import UpdateScheduler
from .state import (
    PLANT_STATUSES,
    VIOLATION_TYPES,
    Plant,
    PlantSeries,
    User,
    Violation,
    ViolationType,
)
from .synthesizer import PlantSynthesizer


class PlantEngine:
    """
    Simulated telemetry backend for a set of treatment plants.

    Owns the registry, the chart buffers, the notification hub and the
    scheduler. Ticks and commands run under one lock; observers are notified
    after the lock is released, with a deep-copied snapshot.
    """

    def __init__(
        self,
        cfg: EngineConfig | None = None,
        plants: Iterable[PlantConfig] = DEFAULT_PLANTS,
        users: Iterable[User] = DEFAULT_USERS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.cfg = cfg or EngineConfig()
        self.cfg.validate()

        self._rng = random.Random(self.cfg.seed)
        self._clock = clock or utc_now
        self._lock = threading.RLock()

        self.hub = NotificationHub()
        self.registry = PlantRegistry(
            PlantSynthesizer(self._rng, self._clock, self.cfg.public_base_url),
            users,
        )
        self.buffers = SeriesBufferManager(self._rng, self.cfg.buffer_capacity)
        self.scheduler = UpdateScheduler(self.tick, self.cfg.tick_s)

        self.tick_n: int = 0
        self._demo_seq: int = 0

        with self._lock:
            self.registry.initialize(plants)
            now = self._clock()
            for plant in self.registry.live_plants():
                self.buffers.initialize_for(plant, now)

        log(f"[ENGINE] {len(self.registry)} plants ready (capacity={self.cfg.buffer_capacity}, tick={self.cfg.tick_s}s)")

    # ======================================================
    # LIFECYCLE
    # ======================================================
    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self) -> bool:
        return self.scheduler.stop()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    # ======================================================
    # READERS
    # ======================================================
    def get_all(self) -> List[Plant]:
        with self._lock:
            return self.registry.get_all()

    def get_by_id(self, plant_id: str) -> Optional[Plant]:
        with self._lock:
            return self.registry.get_by_id(plant_id)

    def get_by_manager(self, manager: str) -> List[Plant]:
        with self._lock:
            return self.registry.get_by_manager(manager)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.registry.get_user_by_username(username)

    def get_users(self) -> Tuple[User, ...]:
        return self.registry.get_users()

    def get_series(self, plant_id: str) -> Optional[PlantSeries]:
        with self._lock:
            return self.buffers.get_series(plant_id)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        return self.hub.subscribe(observer)

    # ======================================================
    # TICK
    # ======================================================
    def tick(self) -> None:
        with self._lock:
            now = self._clock()
            self.tick_n += 1
            for plant in self.registry.live_plants():
                self._step_plant(plant, now)
            snapshot = self._snapshot()

        self.hub.notify(snapshot)

    def _step_plant(self, plant: Plant, now: datetime) -> None:
        cfg = self.cfg
        rng = self._rng
        m = plant.metrics

        m.flow_rate = METRIC_RANGES["flow_rate"].clamp(m.flow_rate + rng.uniform(-cfg.flow_rate_step, cfg.flow_rate_step))
        m.turbidity = METRIC_RANGES["turbidity"].clamp(m.turbidity + rng.uniform(-cfg.turbidity_step, cfg.turbidity_step))
        m.ph = METRIC_RANGES["ph"].clamp(m.ph + rng.uniform(-cfg.ph_step, cfg.ph_step))
        m.tds_ec = METRIC_RANGES["tds_ec"].clamp(m.tds_ec + rng.uniform(-cfg.tds_ec_step, cfg.tds_ec_step))

        # L/min -> liters per one-second tick
        m.treated_volume += m.flow_rate / 60.0

        if plant.status == "Running":
            m.uptime += 1.0 / 3600.0

        m.last_updated = now

        self.buffers.append(
            plant.id,
            now,
            {"flow_rate": m.flow_rate, "turbidity": m.turbidity, "ph": m.ph, "tds_ec": m.tds_ec},
        )

        # rare fault injection; compliance is left as is until the next command
        if rng.random() < cfg.status_flip_probability:
            new_status = rng.choice(PLANT_STATUSES)
            if new_status != plant.status:
                log(f"[ENGINE] {plant.id} status {plant.status} -> {new_status}")
            plant.status = new_status

    def _snapshot(self) -> Tuple[Plant, ...]:
        return tuple(self.registry.get_all())

    # ======================================================
    # COMMANDS
    # ======================================================
    def trigger_violation(self, plant_id: str, violation_type: ViolationType) -> bool:
        if violation_type not in VIOLATION_TYPES:
            raise ValueError(f"unknown violation type: {violation_type!r}")

        with self._lock:
            plant = self.registry.live_plant(plant_id)
            if plant is None:
                return False

            self._demo_seq += 1
            violation = Violation(
                id=f"demo-violation-{plant_id}-{self._demo_seq}",
                plant_id=plant_id,
                type=violation_type,
                severity="high",
                description=f"Demo {violation_type} violation triggered manually",
                timestamp=self._clock(),
            )
            plant.compliance.violations.append(violation)
            plant.status = "Fault"
            plant.compliance.status = derive_compliance_status(plant.status, plant.compliance.violations)
            snapshot = self._snapshot()

        log(f"[ENGINE] {plant_id}: {violation.id} ({violation_type}) triggered")
        self.hub.notify(snapshot)
        return True

    def resolve_violation(self, violation_id: str, resolved_by: str) -> bool:
        with self._lock:
            found = self.registry.find_violation(violation_id)
            if found is None:
                return False

            plant, violation = found
            violation.resolved = True
            violation.resolved_by = resolved_by
            plant.status, plant.compliance.status = status_after_resolution(
                plant.status,
                plant.compliance.status,
                plant.compliance.violations,
            )
            snapshot = self._snapshot()

        log(f"[ENGINE] {plant.id}: {violation_id} resolved by {resolved_by}")
        self.hub.notify(snapshot)
        return True
