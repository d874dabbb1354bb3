from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

import streamlit as st

from frontend.routing import View
from frontend.session import Session

NAV_ITEMS = [
    # label, path, views highlighted
    ("🏠 Dashboard", "/dashboard", {View.DASHBOARD}),
    ("🧑 Patients", "/patients", {View.PATIENTS, View.PATIENT_DETAIL}),
    ("📅 Appointments", "/appointments", {View.APPOINTMENTS}),
    ("🦷 Treatments", "/treatments", {View.TREATMENTS}),
    ("💳 Billing", "/billing", {View.BILLING}),
    ("👥 Staff", "/staff", {View.STAFF}),
    ("📊 Reports", "/reports", {View.REPORTS}),
    ("👤 Profile", "/profile", {View.PROFILE}),
]

TITLES = {
    View.DASHBOARD: "Dashboard",
    View.PATIENTS: "Patients",
    View.PATIENT_DETAIL: "Patient record",
    View.APPOINTMENTS: "Appointments",
    View.TREATMENTS: "Treatments",
    View.BILLING: "Billing",
    View.STAFF: "Staff",
    View.REPORTS: "Reports",
    View.PROFILE: "My profile",
}


@contextmanager
def layout_shell(
    session: Session,
    view: View,
    navigate: Callable[[str], None],
    logout: Callable[[], None],
) -> Iterator[None]:
    """Sidebar navigation + header; the page renders inside the block."""
    user = session.user or {}

    with st.sidebar:
        st.header("🦷 DentalCare Pro")
        for label, path, views in NAV_ITEMS:
            if st.button(label, key=f"nav_{path}", use_container_width=True, disabled=view in views):
                navigate(path)

        st.divider()
        st.write(f"**{user.get('full_name', '')}**")
        st.caption(f"{user.get('role', '').title()} · {user.get('email', '')}")
        if st.button("Logout", key="logout_btn"):
            logout()

    st.title(TITLES.get(view, "DentalCare Pro"))
    yield
