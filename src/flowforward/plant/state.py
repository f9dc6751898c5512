# flowforward/plant/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional, Tuple, Union


PlantStatus = Literal["Running", "Idle", "Fault"]
ComplianceStatus = Literal["Compliant", "Warning", "Violation"]
ViolationType = Literal["pH", "turbidity", "flow", "maintenance"]
Severity = Literal["low", "medium", "high"]
FineStatus = Literal["pending", "paid", "disputed"]
Role = Literal["government", "plant_manager"]

PLANT_STATUSES: Tuple[PlantStatus, ...] = ("Running", "Idle", "Fault")
COMPLIANCE_STATUSES: Tuple[ComplianceStatus, ...] = ("Compliant", "Warning", "Violation")
VIOLATION_TYPES: Tuple[ViolationType, ...] = ("pH", "turbidity", "flow", "maintenance")

# charted metrics, one bounded series each
METRIC_NAMES: Tuple[str, ...] = ("flow_rate", "turbidity", "ph", "tds_ec")


# default clamp function
def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


@dataclass
class Location:
    address: str
    coordinates: Tuple[float, float]  # (lat, lon)


@dataclass
class PlantMetrics:
    flow_rate: float        # L/min
    turbidity: float        # NTU
    tds_ec: float           # ppm
    ph: float
    uptime: float           # hours, grows only while Running
    treated_volume: float   # liters, cumulative
    last_updated: datetime


@dataclass
class Violation:
    id: str
    plant_id: str
    type: ViolationType
    severity: Severity
    description: str
    timestamp: datetime
    resolved: bool = False
    resolved_by: Optional[str] = None


@dataclass
class Fine:
    id: str
    plant_id: str
    amount: int
    reason: str
    date_issued: datetime
    status: FineStatus = "pending"


@dataclass
class Compliance:
    status: ComplianceStatus = "Compliant"
    violations: List[Violation] = field(default_factory=list)
    fines: List[Fine] = field(default_factory=list)


@dataclass
class Plant:
    id: str
    name: str
    location: Location
    status: PlantStatus
    metrics: PlantMetrics
    compliance: Compliance
    qr_code: str
    assigned_manager: Optional[str] = None  # manager username


# ======================================================
# USERS
# ======================================================
@dataclass(frozen=True)
class Permission:
    resource: str
    actions: Tuple[str, ...]


@dataclass(frozen=True)
class GovernmentUser:
    """Oversight role: implicit access to every plant."""

    id: str
    username: str
    name: str
    permissions: Tuple[Permission, ...]
    role: Role = field(default="government", init=False)


@dataclass(frozen=True)
class PlantManagerUser:
    id: str
    username: str
    name: str
    permissions: Tuple[Permission, ...]
    assigned_plants: Tuple[str, ...]
    role: Role = field(default="plant_manager", init=False)

    def __post_init__(self) -> None:
        if not self.assigned_plants:
            raise ValueError(f"plant manager {self.username!r} has no assigned plants")


User = Union[GovernmentUser, PlantManagerUser]


# ======================================================
# CHART SERIES
# ======================================================
@dataclass(frozen=True)
class SeriesPoint:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class PlantSeries:
    flow_rate: Tuple[SeriesPoint, ...]
    turbidity: Tuple[SeriesPoint, ...]
    ph: Tuple[SeriesPoint, ...]
    tds_ec: Tuple[SeriesPoint, ...]
