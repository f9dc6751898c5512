from datetime import datetime, timezone

from flowforward.plant.compliance import (
    derive_compliance_status,
    describe_violation,
    status_after_resolution,
)
from flowforward.plant.state import Violation


T0 = datetime(2026, 1, 4, 12, 0, 0, tzinfo=timezone.utc)


def v(severity, resolved=False, n=1):
    return Violation(
        id=f"v-{n}",
        plant_id="plant-a",
        type="pH",
        severity=severity,
        description="",
        timestamp=T0,
        resolved=resolved,
    )


def test_fault_is_always_violation():
    assert derive_compliance_status("Fault", []) == "Violation"


def test_open_high_is_violation():
    assert derive_compliance_status("Running", [v("low"), v("high")]) == "Violation"


def test_idle_or_open_medium_is_warning():
    assert derive_compliance_status("Idle", []) == "Warning"
    assert derive_compliance_status("Running", [v("medium")]) == "Warning"


def test_resolved_violations_do_not_count():
    assert derive_compliance_status("Running", [v("high", resolved=True), v("medium", resolved=True)]) == "Compliant"
    assert derive_compliance_status("Running", [v("low")]) == "Compliant"


def test_resolution_resets_when_no_open_high():
    # open medium is ignored on purpose
    assert status_after_resolution("Fault", "Violation", [v("high", resolved=True), v("medium")]) == ("Running", "Compliant")


def test_resolution_keeps_state_while_high_open():
    assert status_after_resolution("Fault", "Violation", [v("high", resolved=True), v("high", n=2)]) == ("Fault", "Violation")


def test_descriptions():
    assert describe_violation("pH", "high") == "Critical pH violation - immediate attention required"
    assert describe_violation("flow", "low") == "Flow rate below optimal capacity"
    assert describe_violation("odor", "low") == "Unknown violation detected"
