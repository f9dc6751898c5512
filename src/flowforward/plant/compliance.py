# flowforward/plant/compliance.py
from __future__ import annotations

from typing import Dict, Iterable, Set, Tuple

from .state import ComplianceStatus, PlantStatus, Severity, Violation


_DESCRIPTIONS: Dict[str, Dict[str, str]] = {
    "pH": {
        "low": "pH levels slightly outside optimal range (6.5-8.5)",
        "medium": "pH levels significantly deviated from standards",
        "high": "Critical pH violation - immediate attention required",
    },
    "turbidity": {
        "low": "Turbidity readings above normal levels",
        "medium": "High turbidity affecting treatment efficiency",
        "high": "Critical turbidity levels - treatment failure risk",
    },
    "flow": {
        "low": "Flow rate below optimal capacity",
        "medium": "Significant flow rate deviation detected",
        "high": "Critical flow rate failure - system overload",
    },
    "maintenance": {
        "low": "Routine maintenance overdue",
        "medium": "Equipment maintenance required",
        "high": "Critical equipment failure - immediate maintenance needed",
    },
}


def describe_violation(violation_type: str, severity: str) -> str:
    return _DESCRIPTIONS.get(violation_type, {}).get(severity, "Unknown violation detected")


def open_severities(violations: Iterable[Violation]) -> Set[Severity]:
    return {v.severity for v in violations if not v.resolved}


def derive_compliance_status(status: PlantStatus, violations: Iterable[Violation]) -> ComplianceStatus:
    """
    Single source of truth for compliance.status.
    Violation: Fault, or any unresolved high.
    Warning:   Idle, or any unresolved medium.
    """
    severities = open_severities(violations)
    if status == "Fault" or "high" in severities:
        return "Violation"
    if status == "Idle" or "medium" in severities:
        return "Warning"
    return "Compliant"


def status_after_resolution(
    status: PlantStatus,
    compliance_status: ComplianceStatus,
    violations: Iterable[Violation],
) -> Tuple[PlantStatus, ComplianceStatus]:
    # Clearing the last open high violation resets both fields, even with
    # medium/low violations still open.
    if "high" in open_severities(violations):
        return status, compliance_status
    return "Running", "Compliant"
