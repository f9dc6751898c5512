# flowforward/plant/views.py
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Literal, Optional, Tuple

import pandas as pd

from .state import METRIC_NAMES, ComplianceStatus, Plant, PlantSeries, PlantStatus


PublicStatus = Literal["Running", "Idle", "Maintenance"]
ComplianceBadge = Literal["Good", "Fair", "Needs Attention"]


# ======================================================
# FILTERING
# ======================================================
@dataclass
class PlantFilter:
    location: Optional[str] = None              # case-insensitive substring of the address
    status: Optional[PlantStatus] = None
    compliance_status: Optional[ComplianceStatus] = None
    min_violations: Optional[int] = None
    max_violations: Optional[int] = None


def filter_plants(plants: Iterable[Plant], flt: PlantFilter) -> List[Plant]:
    out: List[Plant] = []
    for p in plants:
        if flt.location and flt.location.lower() not in p.location.address.lower():
            continue
        if flt.status and p.status != flt.status:
            continue
        if flt.compliance_status and p.compliance.status != flt.compliance_status:
            continue
        n = len(p.compliance.violations)
        if flt.min_violations is not None and n < flt.min_violations:
            continue
        if flt.max_violations is not None and n > flt.max_violations:
            continue
        out.append(p)
    return out


def max_violation_count(plants: Iterable[Plant]) -> int:
    return max((len(p.compliance.violations) for p in plants), default=0)


def violation_bounds(lo: int, hi: int, ceiling: int) -> Tuple[Optional[int], Optional[int]]:
    """Range slider -> filter bounds; an end left at the slider's limit does not filter."""
    return (lo if lo > 0 else None, hi if hi < ceiling else None)


# ======================================================
# PUBLIC (RESIDENT) VIEW
# ======================================================
@dataclass(frozen=True)
class PublicPlantData:
    id: str
    name: str
    address: str
    status: PublicStatus
    uptime: float
    treated_volume: float
    last_updated: datetime
    compliance_badge: ComplianceBadge
    week_average_uptime: float
    week_treated_volume: float
    compliance_rate: float


def sanitize_for_public(plant: Plant, rng: random.Random | None = None) -> PublicPlantData:
    """Strip violations, fines and raw water-quality metrics for the public page."""
    rng = rng or random.Random()

    if plant.compliance.status == "Violation" or plant.status == "Fault":
        badge: ComplianceBadge = "Needs Attention"
    elif plant.compliance.status == "Warning" or plant.status == "Idle":
        badge = "Fair"
    else:
        badge = "Good"

    public_status: PublicStatus = "Maintenance" if plant.status == "Fault" else plant.status  # type: ignore[assignment]

    rate = {"Compliant": 100.0, "Warning": 85.0}.get(plant.compliance.status, 65.0)

    # no history is kept, the week summary is an estimate
    return PublicPlantData(
        id=plant.id,
        name=plant.name,
        address=plant.location.address,
        status=public_status,
        uptime=plant.metrics.uptime,
        treated_volume=plant.metrics.treated_volume,
        last_updated=plant.metrics.last_updated,
        compliance_badge=badge,
        week_average_uptime=max(0.0, plant.metrics.uptime - rng.uniform(0.0, 2.0)),
        week_treated_volume=plant.metrics.treated_volume * 7,
        compliance_rate=rate,
    )


# ======================================================
# FLEET STATS
# ======================================================
@dataclass(frozen=True)
class FleetStats:
    total: int
    running: int
    idle: int
    fault: int
    compliant: int
    warning: int
    violation: int
    total_violations: int
    unresolved_violations: int
    total_fines: int
    average_uptime: float
    total_treated_volume: float


def fleet_stats(plants: Iterable[Plant]) -> FleetStats:
    plants = list(plants)

    def count_status(s: str) -> int:
        return sum(1 for p in plants if p.status == s)

    def count_compliance(s: str) -> int:
        return sum(1 for p in plants if p.compliance.status == s)

    return FleetStats(
        total=len(plants),
        running=count_status("Running"),
        idle=count_status("Idle"),
        fault=count_status("Fault"),
        compliant=count_compliance("Compliant"),
        warning=count_compliance("Warning"),
        violation=count_compliance("Violation"),
        total_violations=sum(len(p.compliance.violations) for p in plants),
        unresolved_violations=sum(1 for p in plants for v in p.compliance.violations if not v.resolved),
        total_fines=sum(f.amount for p in plants for f in p.compliance.fines),
        average_uptime=(sum(p.metrics.uptime for p in plants) / len(plants)) if plants else 0.0,
        total_treated_volume=sum(p.metrics.treated_volume for p in plants),
    )


# ======================================================
# FRAMES (charts / tables)
# ======================================================
def series_frame(series: PlantSeries) -> pd.DataFrame:
    """Wide frame indexed by timestamp, one column per metric."""
    cols = {m: pd.Series({pt.timestamp: pt.value for pt in getattr(series, m)}) for m in METRIC_NAMES}
    df = pd.DataFrame(cols)
    df.index.name = "ts"
    return df.sort_index()


def plants_frame(plants: Iterable[Plant]) -> pd.DataFrame:
    rows = []
    for p in plants:
        rows.append({
            "id": p.id,
            "name": p.name,
            "address": p.location.address,
            "status": p.status,
            "compliance": p.compliance.status,
            "flow_rate": round(p.metrics.flow_rate, 2),
            "turbidity": round(p.metrics.turbidity, 2),
            "ph": round(p.metrics.ph, 2),
            "tds_ec": round(p.metrics.tds_ec, 1),
            "uptime_h": round(p.metrics.uptime, 2),
            "treated_l": round(p.metrics.treated_volume, 1),
            "open_violations": sum(1 for v in p.compliance.violations if not v.resolved),
            "manager": p.assigned_manager or "-",
        })
    if not rows:
        return pd.DataFrame(columns=["id", "name", "address", "status", "compliance"])
    return pd.DataFrame(rows).set_index("id")


def format_relative_time(ts: datetime, now: datetime) -> str:
    secs = int((now - ts).total_seconds())
    if secs < 60:
        return f"{secs} seconds ago"
    if secs < 3600:
        n = secs // 60
        return f"{n} minute{'s' if n > 1 else ''} ago"
    if secs < 86400:
        n = secs // 3600
        return f"{n} hour{'s' if n > 1 else ''} ago"
    n = secs // 86400
    return f"{n} day{'s' if n > 1 else ''} ago"
