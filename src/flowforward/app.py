# app.py
import threading
import time
from typing import Optional

import pandas as pd
import streamlit as st

from flowforward.plant.auth import DEMO_CREDENTIALS, AuthService
from flowforward.plant.config import EngineConfig
from flowforward.plant.engine import PlantEngine
from flowforward.plant.hub import Snapshot
from flowforward.plant.state import (
    COMPLIANCE_STATUSES,
    PLANT_STATUSES,
    VIOLATION_TYPES,
    GovernmentUser,
    Plant,
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
from flowforward.utils import utc_now


REFRESH_S = 1.0


class LatestSnapshot:
    """Hub observer that keeps the most recent snapshot for the next rerun."""

    def __init__(self):
        self._lock = threading.Lock()
        self.snapshot: Snapshot = ()
        self.updates = 0

    def __call__(self, snapshot: Snapshot) -> None:
        with self._lock:
            self.snapshot = snapshot
            self.updates += 1

    def plants(self):
        with self._lock:
            return list(self.snapshot)


# ======================================================
# INIT
# ======================================================
st.set_page_config(page_title="FlowForward: STP Monitoring", layout="wide")

if "engine" not in st.session_state:
    engine = PlantEngine(EngineConfig())
    latest = LatestSnapshot()
    latest(tuple(engine.get_all()))
    st.session_state.engine = engine
    st.session_state.latest = latest
    st.session_state.unsubscribe = engine.subscribe(latest)
    st.session_state.run = True
    engine.start()

engine: PlantEngine = st.session_state.engine
latest: LatestSnapshot = st.session_state.latest
auth = AuthService(engine, st.session_state)


# ======================================================
# SHARED WIDGETS
# ======================================================
def plant_header(plant: Plant) -> None:
    st.subheader(f"{plant.name} ({plant.id})")
    m = plant.metrics
    c1, c2, c3, c4, c5, c6 = st.columns(6)
    c1.metric("Status", plant.status)
    c2.metric("Compliance", plant.compliance.status)
    c3.metric("Flow (L/min)", f"{m.flow_rate:.1f}")
    c4.metric("Turbidity (NTU)", f"{m.turbidity:.2f}")
    c5.metric("pH", f"{m.ph:.2f}")
    c6.metric("TDS/EC (ppm)", f"{m.tds_ec:.0f}")

    u1, u2, u3 = st.columns(3)
    u1.metric("Uptime (h)", f"{m.uptime:.2f}")
    u2.metric("Treated (L)", f"{m.treated_volume:,.0f}")
    u3.metric("Updated", format_relative_time(m.last_updated, utc_now()))


def plant_charts(plant_id: str) -> None:
    series = engine.get_series(plant_id)
    if series is None:
        st.info("No series for this plant.")
        return
    df = series_frame(series)
    a, b = st.columns(2)
    with a:
        st.caption("Flow rate (L/min)")
        st.line_chart(df[["flow_rate"]])
        st.caption("pH")
        st.line_chart(df[["ph"]])
    with b:
        st.caption("Turbidity (NTU)")
        st.line_chart(df[["turbidity"]])
        st.caption("TDS/EC (ppm)")
        st.line_chart(df[["tds_ec"]])


def violations_table(plant: Plant, resolver: str, allow_resolve: bool) -> None:
    vs = sorted(plant.compliance.violations, key=lambda v: v.timestamp, reverse=True)
    if not vs:
        st.caption("No violations recorded.")
        return

    for v in vs:
        cols = st.columns([3, 1, 1, 2, 1])
        cols[0].write(f"**{v.type}** / {v.severity}: {v.description}")
        cols[1].write(format_relative_time(v.timestamp, utc_now()))
        cols[2].write("resolved" if v.resolved else "open")
        cols[3].write(v.resolved_by or "-")
        if allow_resolve and not v.resolved:
            if cols[4].button("Resolve", key=f"resolve-{v.id}"):
                engine.resolve_violation(v.id, resolver)
                st.rerun()


def fines_table(plant: Plant) -> None:
    if not plant.compliance.fines:
        st.caption("No fines.")
        return
    df = pd.DataFrame([
        {
            "id": f.id,
            "amount (INR)": f.amount,
            "reason": f.reason,
            "issued": f.date_issued.strftime("%Y-%m-%d %H:%M"),
            "status": f.status,
        }
        for f in plant.compliance.fines
    ])
    st.dataframe(df, use_container_width=True, hide_index=True)


# ======================================================
# PAGES
# ======================================================
def page_login() -> None:
    st.title("FlowForward: sign in")
    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in")

    if submitted:
        result = auth.login(username.strip(), password)
        if result.success:
            st.rerun()
        else:
            st.error(result.error)

    with st.expander("Demo credentials"):
        st.table(pd.DataFrame(
            [{"username": u, "password": p} for u, p in DEMO_CREDENTIALS.items()]
        ))


def page_government(user: GovernmentUser) -> None:
    st.title("Government oversight")
    plants = latest.plants()

    stats = fleet_stats(plants)
    s1, s2, s3, s4, s5, s6 = st.columns(6)
    s1.metric("Plants", stats.total)
    s2.metric("Running", stats.running)
    s3.metric("Fault", stats.fault)
    s4.metric("In violation", stats.violation)
    s5.metric("Open violations", stats.unresolved_violations)
    s6.metric("Fines (INR)", f"{stats.total_fines:,}")

    with st.expander("Filters", expanded=False):
        f1, f2, f3 = st.columns(3)
        location = f1.text_input("Location contains")
        status = f2.selectbox("Status", ["Any", *PLANT_STATUSES])
        compliance = f3.selectbox("Compliance", ["Any", *COMPLIANCE_STATUSES])
        ceiling = max(10, max_violation_count(plants))
        lo, hi = st.slider("Violations", 0, ceiling, (0, ceiling))
        min_v, max_v = violation_bounds(lo, hi, ceiling)

    flt = PlantFilter(
        location=location or None,
        status=None if status == "Any" else status,
        compliance_status=None if compliance == "Any" else compliance,
        min_violations=min_v,
        max_violations=max_v,
    )
    shown = filter_plants(plants, flt)

    st.dataframe(plants_frame(shown), use_container_width=True)

    for plant in shown:
        with st.expander(f"{plant.name}: {plant.status} / {plant.compliance.status}"):
            plant_header(plant)
            st.markdown("**Violations**")
            violations_table(plant, user.name, allow_resolve=auth.has_permission("violations", "write"))
            st.markdown("**Fines**")
            fines_table(plant)
            st.caption(f"Public page: {plant.qr_code}")


def page_manager() -> None:
    user = auth.current_user()
    st.title(f"Plant manager: {user.name}")

    ids = auth.accessible_plants()
    plants = [p for p in latest.plants() if p.id in ids]
    if not plants:
        st.warning("No plants assigned.")
        return

    for plant in plants:
        plant_header(plant)
        plant_charts(plant.id)
        st.markdown("**Violations**")
        violations_table(plant, user.name, allow_resolve=True)
        st.markdown("**Fines**")
        fines_table(plant)
        st.caption(f"Public page: {plant.qr_code}")
        st.divider()


def page_public(plant_id: Optional[str]) -> None:
    st.title("Public plant information")
    plants = latest.plants()
    if not plants:
        return

    ids = [p.id for p in plants]
    index = ids.index(plant_id) if plant_id in ids else 0
    chosen = st.selectbox("Plant", ids, index=index, format_func=lambda i: next(p.name for p in plants if p.id == i))
    plant = next(p for p in plants if p.id == chosen)
    pub = sanitize_for_public(plant)

    st.subheader(pub.name)
    st.caption(pub.address)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Status", pub.status)
    c2.metric("Compliance", pub.compliance_badge)
    c3.metric("Uptime today (h)", f"{pub.uptime:.1f}")
    c4.metric("Treated today (L)", f"{pub.treated_volume:,.0f}")

    w1, w2, w3 = st.columns(3)
    w1.metric("Avg uptime this week (h)", f"{pub.week_average_uptime:.1f}")
    w2.metric("Treated this week (L)", f"{pub.week_treated_volume:,.0f}")
    w3.metric("Compliance rate (%)", f"{pub.compliance_rate:.0f}")
    st.caption(f"Last updated {format_relative_time(pub.last_updated, utc_now())}")


def page_demo() -> None:
    st.title("Demo controls")
    plants = latest.plants()
    if not plants:
        return

    ids = [p.id for p in plants]
    plant_id = st.selectbox("Plant", ids)
    cols = st.columns(len(VIOLATION_TYPES))
    for col, vtype in zip(cols, VIOLATION_TYPES):
        if col.button(f"Trigger {vtype}", key=f"trigger-{vtype}"):
            engine.trigger_violation(plant_id, vtype)
            st.rerun()

    plant = engine.get_by_id(plant_id)
    if plant is not None:
        plant_header(plant)


# ======================================================
# SIDEBAR
# ======================================================
public_plant = st.query_params.get("plant")

with st.sidebar:
    st.header("FlowForward")
    st.session_state.run = st.toggle("Live updates", value=st.session_state.run)
    if st.session_state.run and not engine.running:
        engine.start()
    elif not st.session_state.run and engine.running:
        engine.stop()
    st.caption(f"Ticks: {engine.tick_n} | observer updates: {latest.updates}")

    st.divider()
    user = auth.current_user()
    if user is not None:
        st.write(f"Signed in as **{user.name}** ({user.role})")
        if auth.is_expiring_soon():
            st.warning("Session expires soon.")
            if st.button("Stay signed in"):
                auth.refresh_session()
        if st.button("Sign out"):
            auth.logout()
            st.rerun()

    page = st.radio("Page", ["Dashboard", "Public", "Demo"], index=1 if public_plant else 0)


# ======================================================
# ROUTING
# ======================================================
if page == "Public":
    page_public(public_plant)
elif page == "Demo":
    page_demo()
elif user is None:
    page_login()
elif isinstance(user, GovernmentUser):
    page_government(user)
else:
    page_manager()


# ======================================================
# LOOP
# ======================================================
# the login form would lose typed input on rerun
if st.session_state.run and not (page == "Dashboard" and user is None):
    time.sleep(REFRESH_S)
    st.rerun()
