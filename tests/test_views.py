import random
from datetime import datetime, timedelta, timezone

import pytest

from flowforward.plant.state import (
    Compliance,
    Fine,
    Location,
    Plant,
    PlantMetrics,
    Violation,
)
from flowforward.plant.views import (
    PlantFilter,
    filter_plants,
    fleet_stats,
    format_relative_time,
    max_violation_count,
    plants_frame,
    sanitize_for_public,
    series_frame,
    violation_bounds,
)


NOW = datetime(2026, 1, 4, 12, 0, 0, tzinfo=timezone.utc)


def make_plant(pid, address="Sector 1, Gurgaon", status="Running", compliance="Compliant",
               violations=0, resolved=0, fines=(), uptime=20.0, volume=10_000.0):
    vs = [
        Violation(f"{pid}-v{i}", pid, "pH", "low", "", NOW, resolved=i < resolved)
        for i in range(violations)
    ]
    fs = [Fine(f"{pid}-f{i}", pid, amount, "", NOW) for i, amount in enumerate(fines)]
    return Plant(
        id=pid,
        name=f"Plant {pid}",
        location=Location(address, (28.4, 77.0)),
        status=status,
        metrics=PlantMetrics(100.0, 2.0, 400.0, 7.2, uptime, volume, NOW),
        compliance=Compliance(compliance, vs, fs),
        qr_code=f"https://flowforward.app/public/{pid}",
    )


@pytest.fixture
def fleet():
    return [
        make_plant("a", "Sector 15, Gurgaon", "Running", "Compliant", violations=0),
        make_plant("b", "Sector 22, Noida", "Idle", "Warning", violations=2, resolved=1, fines=(20_000,)),
        make_plant("c", "Sector 8, Faridabad", "Fault", "Violation", violations=4, fines=(60_000, 90_000)),
    ]


# ======================================================
# Filtering
# ======================================================
def test_empty_filter_keeps_everything(fleet):
    assert filter_plants(fleet, PlantFilter()) == fleet


def test_location_is_case_insensitive(fleet):
    assert [p.id for p in filter_plants(fleet, PlantFilter(location="noida"))] == ["b"]


def test_status_and_compliance(fleet):
    assert [p.id for p in filter_plants(fleet, PlantFilter(status="Fault"))] == ["c"]
    assert [p.id for p in filter_plants(fleet, PlantFilter(compliance_status="Warning"))] == ["b"]


def test_violation_bounds(fleet):
    assert [p.id for p in filter_plants(fleet, PlantFilter(min_violations=1))] == ["b", "c"]
    assert [p.id for p in filter_plants(fleet, PlantFilter(max_violations=2))] == ["a", "b"]
    assert [p.id for p in filter_plants(fleet, PlantFilter(min_violations=0, max_violations=0))] == ["a"]


def test_full_slider_range_keeps_busy_plants(fleet):
    fleet.append(make_plant("d", "Sector 3, Gurgaon", "Fault", "Violation", violations=11))
    ceiling = max(10, max_violation_count(fleet))
    assert ceiling == 11

    assert violation_bounds(0, ceiling, ceiling) == (None, None)
    lo, hi = violation_bounds(0, ceiling, ceiling)
    shown = filter_plants(fleet, PlantFilter(min_violations=lo, max_violations=hi))
    assert [p.id for p in shown] == ["a", "b", "c", "d"]

    lo, hi = violation_bounds(1, 10, ceiling)
    assert (lo, hi) == (1, 10)
    assert [p.id for p in filter_plants(fleet, PlantFilter(min_violations=lo, max_violations=hi))] == ["b", "c"]


def test_max_violation_count_empty():
    assert max_violation_count([]) == 0


# ======================================================
# Public view
# ======================================================
def test_public_badges(fleet):
    a, b, c = (sanitize_for_public(p, random.Random(0)) for p in fleet)
    assert (a.compliance_badge, a.status, a.compliance_rate) == ("Good", "Running", 100.0)
    assert (b.compliance_badge, b.status, b.compliance_rate) == ("Fair", "Idle", 85.0)
    assert (c.compliance_badge, c.status, c.compliance_rate) == ("Needs Attention", "Maintenance", 65.0)


def test_public_hides_compliance_detail(fleet):
    pub = sanitize_for_public(fleet[2], random.Random(0))
    assert not hasattr(pub, "violations")
    assert not hasattr(pub, "fines")
    assert not hasattr(pub, "ph")


def test_public_week_estimates():
    p = make_plant("x", uptime=1.0, volume=1000.0)
    for seed in range(20):
        pub = sanitize_for_public(p, random.Random(seed))
        assert 0.0 <= pub.week_average_uptime <= 1.0
        assert pub.week_treated_volume == 7000.0


# ======================================================
# Stats + frames
# ======================================================
def test_fleet_stats(fleet):
    s = fleet_stats(fleet)
    assert (s.total, s.running, s.idle, s.fault) == (3, 1, 1, 1)
    assert (s.compliant, s.warning, s.violation) == (1, 1, 1)
    assert s.total_violations == 6
    assert s.unresolved_violations == 5
    assert s.total_fines == 170_000
    assert s.average_uptime == pytest.approx(20.0)
    assert s.total_treated_volume == pytest.approx(30_000.0)


def test_fleet_stats_empty():
    s = fleet_stats([])
    assert s.total == 0
    assert s.average_uptime == 0.0


def test_plants_frame(fleet):
    df = plants_frame(fleet)
    assert list(df.index) == ["a", "b", "c"]
    assert df.loc["b", "open_violations"] == 1
    assert df.loc["a", "manager"] == "-"
    assert plants_frame([]).empty


def test_series_frame(engine):
    df = series_frame(engine.get_series("plant-a"))
    assert df.shape == (50, 4)
    assert list(df.columns) == ["flow_rate", "turbidity", "ph", "tds_ec"]
    assert df.index.is_monotonic_increasing


@pytest.mark.parametrize("delta, text", [
    (timedelta(seconds=5), "5 seconds ago"),
    (timedelta(minutes=1), "1 minute ago"),
    (timedelta(minutes=12), "12 minutes ago"),
    (timedelta(hours=3), "3 hours ago"),
    (timedelta(days=2), "2 days ago"),
])
def test_format_relative_time(delta, text):
    assert format_relative_time(NOW - delta, NOW) == text
