from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable

import pandas as pd
import requests
import streamlit as st

from frontend.api_client import ApiClient, error_detail
from frontend.routing import View
from frontend.session import AuthProvider, Session

APPOINTMENT_STATUSES = ["SCHEDULED", "CONFIRMED", "COMPLETED", "CANCELLED", "NO_SHOW"]
INVOICE_STATUSES = ["PENDING", "PAID", "OVERDUE", "CANCELLED"]
PAYMENT_METHODS = ["CASH", "CARD", "BANK_TRANSFER", "INSURANCE"]
STAFF_ROLES = ["ADMIN", "DENTIST", "HYGIENIST", "RECEPTIONIST"]


@dataclass
class PageContext:
    provider: AuthProvider
    session: Session
    navigate: Callable[[str], None]
    params: dict[str, str] = field(default_factory=dict)

    @property
    def api(self) -> ApiClient:
        return self.provider.client()

    @property
    def is_admin(self) -> bool:
        return bool(self.session.user) and self.session.user.get("role") == "ADMIN"


def _call(fn: Callable, *args, success: str | None = None):
    """
    Run an API call and show the error text on failure.
    PermissionError (401) is not caught: the app turns it into a logout.
    """
    try:
        result = fn(*args)
    except requests.HTTPError as e:
        st.error(error_detail(e))
        return None
    except requests.RequestException as e:
        st.error(f"API not reachable: {e}")
        return None
    if success:
        st.success(success)
    return result


def _patient_label(p: dict) -> str:
    return f"{p['last_name']} {p['first_name']} ({p.get('phone') or '-'})"


def _staff_label(u: dict) -> str:
    return f"{u['full_name']} ({u['role'].title()})"


def _appointments_table(rows: list[dict]) -> None:
    if not rows:
        st.info("No appointments.")
        return
    st.dataframe(
        pd.DataFrame(rows)[["start", "end", "patient", "dentist", "treatment", "status", "notes"]],
        hide_index=True,
        use_container_width=True,
    )


def _invoices_table(rows: list[dict]) -> None:
    if not rows:
        st.info("No invoices.")
        return
    st.dataframe(
        pd.DataFrame(rows)[["number", "patient", "issued_on", "due_on", "total", "status", "paid_on"]],
        hide_index=True,
        use_container_width=True,
    )



# LOGIN

def login_page(ctx: PageContext) -> None:
    st.title("🦷 DentalCare Pro")
    st.subheader("Sign in")

    if ctx.provider.error:
        st.warning(ctx.provider.error)

    with st.form("login_form"):
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Password", type="password", key="login_pass")
        submitted = st.form_submit_button("Login")

    if submitted:
        try:
            ctx.provider.login(email, password)
        except requests.HTTPError:
            st.error("Invalid credentials.")
            return
        except requests.RequestException as e:
            st.error(f"API not reachable: {e}")
            return
        st.rerun()



# DASHBOARD

def dashboard_page(ctx: PageContext) -> None:
    stats = _call(ctx.api.get, "/api/dashboard")
    if not stats:
        return

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Patients", stats["total_patients"])
    c2.metric("Appointments today", stats["appointments_today"])
    c3.metric("Pending invoices", stats["pending_invoices"], f"{stats['overdue_invoices']} overdue", delta_color="inverse")
    c4.metric("Revenue this month", f"{stats['revenue_this_month']:.2f}")

    st.caption(f"Outstanding amount: {stats['outstanding_amount']:.2f}")
    st.subheader("Today's schedule")
    _appointments_table(stats["todays_appointments"])



# PATIENTS

def patients_page(ctx: PageContext) -> None:
    with st.expander("New patient"):
        with st.form("patient_form", clear_on_submit=True):
            c1, c2 = st.columns(2)
            first = c1.text_input("First name")
            last = c2.text_input("Last name")
            dob = c1.date_input("Date of birth", value=None, min_value=date(1900, 1, 1))
            gender = c2.selectbox("Gender", ["", "Female", "Male", "Other"])
            phone = c1.text_input("Phone")
            email = c2.text_input("Email")
            address = st.text_input("Address")
            allergies = st.text_input("Allergies")
            history = st.text_area("Medical history")
            submitted = st.form_submit_button("Create patient")

        if submitted:
            if not first.strip() or not last.strip():
                st.error("First and last name are required.")
            else:
                payload = {
                    "first_name": first.strip(),
                    "last_name": last.strip(),
                    "date_of_birth": dob.isoformat() if dob else None,
                    "gender": gender or None,
                    "phone": phone.strip() or None,
                    "email": email.strip() or None,
                    "address": address.strip() or None,
                    "allergies": allergies.strip() or None,
                    "medical_history": history.strip() or None,
                }
                _call(ctx.api.post, "/api/patients", payload, success="Patient created.")

    search = st.text_input("Search", placeholder="name, email or phone", key="patients_search")
    patients = _call(ctx.api.get, "/api/patients", {"search": search} if search else None) or []

    if not patients:
        st.info("No patients found.")
        return

    st.dataframe(
        pd.DataFrame(patients)[["last_name", "first_name", "date_of_birth", "phone", "email", "allergies"]],
        hide_index=True,
        use_container_width=True,
    )

    c1, c2 = st.columns([3, 1])
    chosen = c1.selectbox("Open record", options=patients, format_func=_patient_label, key="patients_open")
    if c2.button("Open", key="patients_open_btn") and chosen:
        ctx.navigate(f"/patients/{chosen['id']}")


def patient_detail_page(ctx: PageContext) -> None:
    patient_id = ctx.params.get("id", "")

    if st.button("← Back to patients", key="detail_back"):
        ctx.navigate("/patients")

    try:
        p = ctx.api.get(f"/api/patients/{patient_id}")
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code == 404:
            st.warning("Patient not found.")
        else:
            st.error(error_detail(e))
        return
    except requests.RequestException as e:
        st.error(f"API not reachable: {e}")
        return

    st.subheader(p["full_name"])
    c1, c2, c3 = st.columns(3)
    c1.write(f"**Date of birth:** {p['date_of_birth'] or '-'}")
    c1.write(f"**Gender:** {p['gender'] or '-'}")
    c2.write(f"**Phone:** {p['phone'] or '-'}")
    c2.write(f"**Email:** {p['email'] or '-'}")
    c3.write(f"**Address:** {p['address'] or '-'}")
    if p["allergies"]:
        st.error(f"Allergies: {p['allergies']}")
    if p["medical_history"]:
        st.info(p["medical_history"])

    with st.expander("Edit"):
        with st.form("patient_edit"):
            c1, c2 = st.columns(2)
            first = c1.text_input("First name", value=p["first_name"])
            last = c2.text_input("Last name", value=p["last_name"])
            phone = c1.text_input("Phone", value=p["phone"] or "")
            email = c2.text_input("Email", value=p["email"] or "")
            address = st.text_input("Address", value=p["address"] or "")
            allergies = st.text_input("Allergies", value=p["allergies"] or "")
            history = st.text_area("Medical history", value=p["medical_history"] or "")
            saved = st.form_submit_button("Save")

        if saved:
            payload = {
                "first_name": first.strip(),
                "last_name": last.strip(),
                "phone": phone.strip() or None,
                "email": email.strip() or None,
                "address": address.strip() or None,
                "allergies": allergies.strip() or None,
                "medical_history": history.strip() or None,
            }
            if _call(ctx.api.put, f"/api/patients/{patient_id}", payload, success="Patient updated."):
                st.rerun()

    st.subheader("Appointments")
    _appointments_table(p["appointments"])

    st.subheader("Invoices")
    _invoices_table(p["invoices"])

    with st.expander("Delete patient"):
        st.warning("Deletes the patient together with appointments and invoices.")
        if st.button("Delete permanently", key="patient_delete"):
            if _call(ctx.api.delete, f"/api/patients/{patient_id}"):
                ctx.navigate("/patients")



# APPOINTMENTS

def appointments_page(ctx: PageContext) -> None:
    dentists = _call(ctx.api.get, "/api/staff", {"active_only": True}) or []
    dentists = [u for u in dentists if u["role"] in ("DENTIST", "HYGIENIST")]

    c1, c2 = st.columns(2)
    day = c1.date_input("Day", value=date.today(), key="appt_day")
    dentist_filter = c2.selectbox(
        "Clinician", options=[None] + dentists, format_func=lambda u: "All" if u is None else _staff_label(u), key="appt_filter"
    )

    params = {"day": day.isoformat()}
    if dentist_filter:
        params["dentist_id"] = dentist_filter["id"]
    rows = _call(ctx.api.get, "/api/appointments", params) or []
    _appointments_table(rows)

    if rows:
        with st.expander("Update status"):
            appt = st.selectbox(
                "Appointment",
                options=rows,
                format_func=lambda a: f"{a['start'][11:]} {a['patient']} ({a['status']})",
                key="appt_status_pick",
            )
            new_status = st.selectbox("Status", APPOINTMENT_STATUSES, key="appt_status_new")
            if st.button("Apply", key="appt_status_btn") and appt:
                if new_status == "CANCELLED":
                    done = _call(ctx.api.post, f"/api/appointments/{appt['id']}/cancel", {}, success="Appointment cancelled.")
                else:
                    done = _call(
                        ctx.api.patch, f"/api/appointments/{appt['id']}/status", {"status": new_status}, success="Status updated."
                    )
                if done:
                    st.rerun()

    st.subheader("Book appointment")
    patients = _call(ctx.api.get, "/api/patients") or []
    treatments = _call(ctx.api.get, "/api/treatments", {"active_only": True}) or []

    if not patients or not dentists:
        st.info("Patients and clinicians are needed before booking.")
        return

    with st.form("booking_form"):
        c1, c2 = st.columns(2)
        patient = c1.selectbox("Patient", options=patients, format_func=_patient_label)
        dentist = c2.selectbox("Clinician", options=dentists, format_func=_staff_label)
        treatment = c1.selectbox(
            "Treatment",
            options=[None] + treatments,
            format_func=lambda t: "-" if t is None else f"{t['name']} ({t['duration_minutes']} min)",
        )
        when_day = c2.date_input("Date", value=day)
        when_time = c1.time_input("Time", value=datetime.now().time().replace(second=0, microsecond=0))
        notes = c2.text_input("Notes")
        booked = st.form_submit_button("Book")

    if booked:
        payload = {
            "patient_id": patient["id"],
            "dentist_id": dentist["id"],
            "treatment_id": treatment["id"] if treatment else None,
            "start": datetime.combine(when_day, when_time).isoformat(),
            "notes": notes.strip() or None,
        }
        res = _call(ctx.api.post, "/api/appointments", payload)
        if res:
            st.success(res.get("message") or "Appointment booked.")



# TREATMENTS

def treatments_page(ctx: PageContext) -> None:
    rows = _call(ctx.api.get, "/api/treatments") or []
    if rows:
        st.dataframe(
            pd.DataFrame(rows)[["name", "category", "duration_minutes", "price", "active"]],
            hide_index=True,
            use_container_width=True,
        )
    else:
        st.info("The treatment list is empty.")

    with st.expander("New treatment"):
        with st.form("treatment_form", clear_on_submit=True):
            c1, c2 = st.columns(2)
            name = c1.text_input("Name")
            category = c2.text_input("Category", value="General")
            price = c1.number_input("Price", min_value=0.0, step=5.0)
            minutes = c2.number_input("Duration (minutes)", min_value=5, value=30, step=5)
            description = st.text_area("Description")
            created = st.form_submit_button("Create")

        if created:
            payload = {
                "name": name.strip(),
                "category": category.strip() or "General",
                "price": float(price),
                "duration_minutes": int(minutes),
                "description": description.strip() or None,
            }
            if _call(ctx.api.post, "/api/treatments", payload, success="Treatment created."):
                st.rerun()

    if rows:
        with st.expander("Enable / disable"):
            t = st.selectbox(
                "Treatment",
                options=rows,
                format_func=lambda t: f"{t['name']} ({'active' if t['active'] else 'inactive'})",
                key="treatment_toggle",
            )
            if st.button("Toggle", key="treatment_toggle_btn") and t:
                if _call(ctx.api.put, f"/api/treatments/{t['id']}", {"active": not t["active"]}):
                    st.rerun()



# BILLING

def billing_page(ctx: PageContext) -> None:
    status_filter = st.selectbox("Status", [None] + INVOICE_STATUSES, format_func=lambda s: s or "All", key="inv_status")
    invoices = _call(ctx.api.get, "/api/invoices", {"status": status_filter} if status_filter else None) or []
    _invoices_table(invoices)

    open_invoices = [i for i in invoices if i["status"] in ("PENDING", "OVERDUE")]
    if open_invoices:
        with st.expander("Register payment"):
            inv = st.selectbox(
                "Invoice",
                options=open_invoices,
                format_func=lambda i: f"{i['number']} {i['patient']} {i['total']:.2f}",
                key="inv_pay_pick",
            )
            method = st.selectbox("Method", PAYMENT_METHODS, key="inv_pay_method")
            c1, c2 = st.columns(2)
            if c1.button("Mark paid", key="inv_pay_btn") and inv:
                if _call(ctx.api.post, f"/api/invoices/{inv['id']}/pay", {"method": method}, success="Payment registered."):
                    st.rerun()
            if c2.button("Cancel invoice", key="inv_cancel_btn") and inv:
                if _call(ctx.api.post, f"/api/invoices/{inv['id']}/cancel", {}, success="Invoice cancelled."):
                    st.rerun()

    st.subheader("New invoice")
    patients = _call(ctx.api.get, "/api/patients") or []
    treatments = _call(ctx.api.get, "/api/treatments", {"active_only": True}) or []
    if not patients:
        st.info("No patients yet.")
        return

    with st.form("invoice_form"):
        patient = st.selectbox("Patient", options=patients, format_func=_patient_label)
        chosen = st.multiselect("Treatments", options=treatments, format_func=lambda t: f"{t['name']} ({t['price']:.2f})")
        extra_desc = st.text_input("Other item (description)")
        extra_price = st.number_input("Other item (price)", min_value=0.0, step=5.0)
        due_days = st.number_input("Payment terms (days)", min_value=0, value=30)
        issued = st.form_submit_button("Issue invoice")

    if issued:
        items = [{"treatment_id": t["id"]} for t in chosen]
        if extra_desc.strip():
            items.append({"description": extra_desc.strip(), "unit_price": float(extra_price)})
        if not items:
            st.error("Add at least one item.")
            return
        payload = {"patient_id": patient["id"], "items": items, "due_days": int(due_days)}
        if _call(ctx.api.post, "/api/invoices", payload, success="Invoice issued."):
            st.rerun()



# STAFF

def staff_page(ctx: PageContext) -> None:
    staff = _call(ctx.api.get, "/api/staff") or []
    if staff:
        st.dataframe(
            pd.DataFrame(staff)[["full_name", "role", "email", "phone", "specialization", "is_active"]],
            hide_index=True,
            use_container_width=True,
        )

    if not ctx.is_admin:
        st.caption("Only administrators can add or deactivate staff.")
        return

    with st.expander("New staff member"):
        with st.form("staff_form", clear_on_submit=True):
            c1, c2 = st.columns(2)
            first = c1.text_input("First name")
            last = c2.text_input("Last name")
            email = c1.text_input("Email")
            role = c2.selectbox("Role", STAFF_ROLES, index=STAFF_ROLES.index("RECEPTIONIST"))
            phone = c1.text_input("Phone")
            spec = c2.text_input("Specialization")
            password = st.text_input("Initial password", type="password")
            created = st.form_submit_button("Create")

        if created:
            payload = {
                "first_name": first.strip(),
                "last_name": last.strip(),
                "email": email.strip(),
                "role": role,
                "phone": phone.strip() or None,
                "specialization": spec.strip() or None,
                "password": password,
            }
            if _call(ctx.api.post, "/api/staff", payload, success="Staff member created."):
                st.rerun()

    others = [u for u in staff if u["id"] != ctx.session.user["id"]]
    if others:
        with st.expander("Activate / deactivate"):
            u = st.selectbox(
                "Staff member",
                options=others,
                format_func=lambda u: f"{_staff_label(u)} {'' if u['is_active'] else '(inactive)'}",
                key="staff_toggle",
            )
            if st.button("Toggle", key="staff_toggle_btn") and u:
                if _call(ctx.api.patch, f"/api/staff/{u['id']}/active", {"is_active": not u["is_active"]}):
                    st.rerun()



# REPORTS

def reports_page(ctx: PageContext) -> None:
    today = date.today()
    c1, c2 = st.columns(2)
    start = c1.date_input("From", value=today.replace(day=1) - timedelta(days=90), key="rep_start")
    end = c2.date_input("To", value=today, key="rep_end")
    if end < start:
        st.error("'To' precedes 'From'.")
        return

    params = {"start": start.isoformat(), "end": end.isoformat()}
    revenue = _call(ctx.api.get, "/api/reports/revenue", params)
    appointments = _call(ctx.api.get, "/api/reports/appointments", params)

    if revenue:
        st.subheader("Revenue")
        st.metric("Collected", f"{revenue['total']:.2f}", f"{revenue['invoices']} invoices", delta_color="off")
        if revenue["by_month"]:
            st.bar_chart(pd.Series(revenue["by_month"], name="Revenue"))
        if revenue["by_treatment"]:
            st.dataframe(
                pd.Series(revenue["by_treatment"], name="Revenue").rename_axis("Item").reset_index(),
                hide_index=True,
            )

    if appointments:
        st.subheader("Appointments")
        st.metric("Total", appointments["total"])
        c1, c2 = st.columns(2)
        c1.bar_chart(pd.Series(appointments["by_status"], name="Appointments"))
        if appointments["by_dentist"]:
            c2.bar_chart(pd.Series(appointments["by_dentist"], name="Appointments"))



# PROFILE

def profile_page(ctx: PageContext) -> None:
    me = ctx.session.user or {}

    with st.form("profile_form"):
        c1, c2 = st.columns(2)
        first = c1.text_input("First name", value=me.get("first_name", ""))
        last = c2.text_input("Last name", value=me.get("last_name", ""))
        phone = c1.text_input("Phone", value=me.get("phone") or "")
        spec = c2.text_input("Specialization", value=me.get("specialization") or "")
        st.text_input("Email", value=me.get("email", ""), disabled=True)
        saved = st.form_submit_button("Save profile")

    if saved:
        payload = {
            "first_name": first.strip(),
            "last_name": last.strip(),
            "phone": phone.strip() or None,
            "specialization": spec.strip() or None,
        }
        if _call(ctx.api.put, "/api/me", payload, success="Profile updated."):
            # reload the identity shown in the layout
            ctx.provider.invalidate()
            st.rerun()

    st.subheader("Change password")
    with st.form("password_form", clear_on_submit=True):
        current = st.text_input("Current password", type="password")
        new = st.text_input("New password", type="password")
        confirm = st.text_input("Confirm new password", type="password")
        changed = st.form_submit_button("Change password")

    if changed:
        if new != confirm:
            st.error("The passwords do not match.")
        elif len(new) < 6:
            st.error("The new password must be at least 6 characters long.")
        else:
            _call(
                ctx.api.post,
                "/api/me/password",
                {"current_password": current, "new_password": new},
                success="Password changed.",
            )


VIEWS: dict[View, Callable[[PageContext], None]] = {
    View.LOGIN: login_page,
    View.DASHBOARD: dashboard_page,
    View.PATIENTS: patients_page,
    View.PATIENT_DETAIL: patient_detail_page,
    View.APPOINTMENTS: appointments_page,
    View.TREATMENTS: treatments_page,
    View.BILLING: billing_page,
    View.STAFF: staff_page,
    View.REPORTS: reports_page,
    View.PROFILE: profile_page,
}
