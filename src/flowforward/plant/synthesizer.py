# flowforward/plant/synthesizer.py
from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Callable, List

from .compliance import derive_compliance_status, describe_violation
from .config import (
    BASE_COORDINATES,
    COORDINATE_SPREAD,
    METRIC_RANGES,
    TREATED_VOLUME_SEED,
    UPTIME_SEED,
    PlantConfig,
)
from .state import (
    VIOLATION_TYPES,
    Compliance,
    Fine,
    FineStatus,
    Location,
    Plant,
    PlantMetrics,
    PlantStatus,
    Severity,
    Violation,
)


class PlantSynthesizer:
    """
    Builds the initial state of one plant from its config.
    - status by weighted draw (70% Running / 20% Idle / 10% Fault)
    - metrics uniform inside their valid ranges
    - violations and fines depend on the drawn status
    """

    def __init__(
        self,
        rng: random.Random,
        clock: Callable[[], datetime],
        public_base_url: str = "https://flowforward.app/public",
    ):
        self._rng = rng
        self._clock = clock
        self.public_base_url = public_base_url.rstrip("/")

    # ======================================================
    # MAIN ENTRY
    # ======================================================
    def create_plant(self, cfg: PlantConfig) -> Plant:
        now = self._clock()
        rng = self._rng

        metrics = PlantMetrics(
            flow_rate=METRIC_RANGES["flow_rate"].draw(rng),
            turbidity=METRIC_RANGES["turbidity"].draw(rng),
            tds_ec=METRIC_RANGES["tds_ec"].draw(rng),
            ph=METRIC_RANGES["ph"].draw(rng),
            uptime=UPTIME_SEED.draw(rng),
            treated_volume=TREATED_VOLUME_SEED.draw(rng),
            last_updated=now,
        )

        status = self._draw_status()
        violations = self._generate_violations(cfg.id, status, now)

        lat, lon = BASE_COORDINATES
        return Plant(
            id=cfg.id,
            name=cfg.name,
            location=Location(
                address=cfg.address,
                coordinates=(
                    lat + rng.uniform(-COORDINATE_SPREAD, COORDINATE_SPREAD),
                    lon + rng.uniform(-COORDINATE_SPREAD, COORDINATE_SPREAD),
                ),
            ),
            status=status,
            metrics=metrics,
            compliance=Compliance(
                status=derive_compliance_status(status, violations),
                violations=violations,
                fines=self._generate_fines(cfg.id, violations),
            ),
            qr_code=self.qr_code_for(cfg.id),
            assigned_manager=cfg.manager,
        )

    def qr_code_for(self, plant_id: str) -> str:
        return f"{self.public_base_url}/{plant_id}"

    # ======================================================
    # Helpers
    # ======================================================
    def _draw_status(self) -> PlantStatus:
        r = self._rng.random()
        if r < 0.7:
            return "Running"
        if r < 0.9:
            return "Idle"
        return "Fault"

    def _violation_count(self, status: PlantStatus) -> int:
        if status == "Fault":
            return self._rng.randint(2, 4)
        if status == "Idle":
            return self._rng.randint(0, 2)
        return self._rng.randint(0, 1)

    def _violation_severity(self, status: PlantStatus) -> Severity:
        if status == "Fault":
            return "high"
        if status == "Idle":
            return "medium" if self._rng.random() > 0.5 else "low"
        return "low"

    def _generate_violations(self, plant_id: str, status: PlantStatus, now: datetime) -> List[Violation]:
        rng = self._rng
        violations: List[Violation] = []

        for n in range(1, self._violation_count(status) + 1):
            vtype = rng.choice(VIOLATION_TYPES)
            severity = self._violation_severity(status)
            resolved = rng.random() > 0.7
            violations.append(
                Violation(
                    id=f"violation-{plant_id}-{n}",
                    plant_id=plant_id,
                    type=vtype,
                    severity=severity,
                    description=describe_violation(vtype, severity),
                    timestamp=now - timedelta(hours=rng.randint(1, 72)),
                    resolved=resolved,
                    resolved_by="system" if resolved and rng.random() > 0.5 else None,
                )
            )

        return violations

    def _generate_fines(self, plant_id: str, violations: List[Violation]) -> List[Fine]:
        rng = self._rng
        fines: List[Fine] = []

        for n, v in enumerate(violations, start=1):
            if v.severity == "high":
                amount = rng.randint(50_000, 200_000)
            elif v.severity == "medium" and rng.random() > 0.5:
                amount = rng.randint(10_000, 50_000)
            else:
                # low is never fined on this path
                continue

            fines.append(
                Fine(
                    id=f"fine-{plant_id}-{n}",
                    plant_id=plant_id,
                    amount=amount,
                    reason=v.description,
                    date_issued=v.timestamp + timedelta(days=1),
                    status=self._draw_fine_status(),
                )
            )

        return fines

    def _draw_fine_status(self) -> FineStatus:
        if self._rng.random() > 0.7:
            return "paid"
        return "pending" if self._rng.random() > 0.5 else "disputed"
