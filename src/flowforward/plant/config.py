# flowforward/plant/config.py
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .state import GovernmentUser, Permission, PlantManagerUser, User, clamp


@dataclass(frozen=True)
class MetricRange:
    lo: float
    hi: float

    def draw(self, rng: random.Random) -> float:
        return rng.uniform(self.lo, self.hi)

    def clamp(self, x: float) -> float:
        return clamp(x, self.lo, self.hi)


# =========================
# Valid metric ranges
# =========================
METRIC_RANGES: Dict[str, MetricRange] = {
    "flow_rate": MetricRange(50.0, 200.0),   # L/min
    "turbidity": MetricRange(0.0, 10.0),     # NTU
    "tds_ec": MetricRange(200.0, 800.0),     # ppm
    "ph": MetricRange(6.5, 8.5),
}

# initial draws only; both grow without an upper bound afterwards
UPTIME_SEED = MetricRange(18.0, 24.0)            # hours
TREATED_VOLUME_SEED = MetricRange(1000.0, 50000.0)  # liters

# Delhi NCR
BASE_COORDINATES: Tuple[float, float] = (28.4595, 77.0266)
COORDINATE_SPREAD: float = 0.5


@dataclass(frozen=True)
class PlantConfig:
    id: str
    name: str
    address: str
    manager: Optional[str] = None


@dataclass
class EngineConfig:
    # =========================
    # Scheduling
    # =========================
    tick_s: float = 1.0                 # one tick = one simulated second
    buffer_capacity: int = 50           # points per chart series

    # =========================
    # Per-tick random walk (± band)
    # =========================
    flow_rate_step: float = 2.0
    turbidity_step: float = 0.5
    ph_step: float = 0.1
    tds_ec_step: float = 10.0

    # rare unprompted status redraw
    status_flip_probability: float = 0.001

    # =========================
    # Misc
    # =========================
    public_base_url: str = "https://flowforward.app/public"
    seed: Optional[int] = None

    def validate(self) -> None:
        if self.tick_s <= 0:
            raise ValueError(f"tick_s must be positive, got {self.tick_s}")
        if self.buffer_capacity < 1:
            raise ValueError(f"buffer_capacity must be >= 1, got {self.buffer_capacity}")
        if not 0.0 <= self.status_flip_probability <= 1.0:
            raise ValueError(f"status_flip_probability out of [0, 1]: {self.status_flip_probability}")


DEFAULT_PLANTS: Tuple[PlantConfig, ...] = (
    PlantConfig("plant-a", "Colony A STP", "Sector 15, Gurgaon", "manager.a"),
    PlantConfig("plant-b", "Colony B STP", "Sector 22, Noida", "manager.b"),
    PlantConfig("plant-c", "Colony C STP", "Sector 8, Faridabad", "manager.c"),
    PlantConfig("plant-d", "Colony D STP", "Sector 12, Ghaziabad", "manager.d"),
    PlantConfig("plant-e", "Colony E STP", "Sector 5, Greater Noida", "manager.e"),
)


_MANAGER_PERMISSIONS: Tuple[Permission, ...] = (
    Permission("plants", ("read", "write")),
    Permission("reports", ("read",)),
    Permission("violations", ("read", "write")),
)


def _manager(letter: str, name: str) -> PlantManagerUser:
    return PlantManagerUser(
        id=f"manager-{letter}",
        username=f"manager.{letter}",
        name=name,
        permissions=_MANAGER_PERMISSIONS,
        assigned_plants=(f"plant-{letter}",),
    )


DEFAULT_USERS: Tuple[User, ...] = (
    GovernmentUser(
        id="gov-officer-1",
        username="gov.officer",
        name="Dr. Rajesh Kumar",
        permissions=(
            Permission("plants", ("read", "write", "delete")),
            Permission("users", ("read", "write")),
            Permission("reports", ("read", "write")),
            Permission("violations", ("read", "write")),
        ),
    ),
    _manager("a", "Aaryansh Singh"),
    _manager("b", "Amit Singh"),
    _manager("c", "Sunita Patel"),
    _manager("d", "Vikram Gupta"),
    _manager("e", "Meera Joshi"),
)
