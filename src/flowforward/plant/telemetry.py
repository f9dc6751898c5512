# flowforward/plant/telemetry.py
from __future__ import annotations

from typing import Any, Dict

from .state import Plant


# ============================================================
# Telemetry builders
# ============================================================
def build_plant_payload(plant: Plant, seq: int) -> Dict[str, Any]:
    m = plant.metrics
    c = plant.compliance
    return {
        "ts": m.last_updated.isoformat(),
        "device_id": plant.id,
        "seq": seq,
        "plant": {
            "name": plant.name,
            "status": plant.status,
            "manager": plant.assigned_manager,
        },
        "metrics": {
            "flow_rate": round(m.flow_rate, 2),
            "turbidity": round(m.turbidity, 3),
            "ph": round(m.ph, 3),
            "tds_ec": round(m.tds_ec, 1),
            "uptime_h": round(m.uptime, 4),
            "treated_volume_l": round(m.treated_volume, 2),
        },
        "compliance": {
            "status": c.status,
            "violations": len(c.violations),
            "open_violations": sum(1 for v in c.violations if not v.resolved),
            "open_high": sum(1 for v in c.violations if not v.resolved and v.severity == "high"),
            "fines_total": sum(f.amount for f in c.fines),
        },
    }


def telemetry_topic(base_topic: str, plant_id: str) -> str:
    return f"{base_topic}/{plant_id}/telemetry"


def control_topic(base_topic: str) -> str:
    return f"{base_topic}/control/commands"
