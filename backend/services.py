from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from sqlalchemy import and_, func, or_, select

from .auth_models import Role, User
from .config import DB_PATH
from .db import Base, db_session, engine
from .models import (
    Appointment,
    AppointmentStatus,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Patient,
    PaymentMethod,
    Treatment,
)

logger = logging.getLogger(__name__)

DEFAULT_APPOINTMENT_MINUTES = 30
DEFAULT_PAYMENT_TERMS_DAYS = 30

PATIENT_FIELDS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "phone",
    "email",
    "address",
    "medical_history",
    "allergies",
)
TREATMENT_FIELDS = ("name", "category", "description", "duration_minutes", "price", "active")


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Create the tables if missing."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class BookingOutcome:
    ok: bool
    appointment_id: str | None
    message: str


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def _effective_status(inv: Invoice, today: date) -> InvoiceStatus:
    # OVERDUE is derived, never stored: a pending invoice past its due date
    if inv.status == InvoiceStatus.PENDING and inv.due_on < today:
        return InvoiceStatus.OVERDUE
    return inv.status


def _patient_flat(p: Patient) -> dict:
    return {
        "id": p.id,
        "first_name": p.first_name,
        "last_name": p.last_name,
        "full_name": f"{p.first_name} {p.last_name}",
        "date_of_birth": p.date_of_birth.isoformat() if p.date_of_birth else None,
        "gender": p.gender,
        "phone": p.phone,
        "email": p.email,
        "address": p.address,
        "medical_history": p.medical_history,
        "allergies": p.allergies,
    }


def _appointment_flat(a: Appointment) -> dict:
    return {
        "id": a.id,
        "patient_id": a.patient_id,
        "patient": f"{a.patient.first_name} {a.patient.last_name}",
        "dentist_id": a.dentist_id,
        "dentist": a.dentist.full_name,
        "treatment_id": a.treatment_id,
        "treatment": a.treatment.name if a.treatment else None,
        "start": a.start.isoformat(timespec="minutes"),
        "end": a.end.isoformat(timespec="minutes"),
        "status": a.status.value,
        "notes": a.notes,
    }


def _invoice_flat(inv: Invoice, today: date) -> dict:
    return {
        "id": inv.id,
        "number": inv.number,
        "patient_id": inv.patient_id,
        "patient": f"{inv.patient.first_name} {inv.patient.last_name}",
        "appointment_id": inv.appointment_id,
        "issued_on": inv.issued_on.isoformat(),
        "due_on": inv.due_on.isoformat(),
        "status": _effective_status(inv, today).value,
        "paid_on": inv.paid_on.isoformat() if inv.paid_on else None,
        "payment_method": inv.payment_method.value if inv.payment_method else None,
        "notes": inv.notes,
        "total": inv.total,
        "items": [
            {
                "description": i.description,
                "quantity": i.quantity,
                "unit_price": i.unit_price,
                "treatment_id": i.treatment_id,
            }
            for i in inv.items
        ],
    }


# =========================
# Patients
# =========================
def create_patient(first_name: str, last_name: str, **details: Any) -> str:
    if not first_name.strip() or not last_name.strip():
        raise ValueError("First and last name are required.")
    unknown = set(details) - set(PATIENT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown patient fields: {', '.join(sorted(unknown))}")

    with db_session() as s:
        p = Patient(first_name=first_name.strip(), last_name=last_name.strip(), **details)
        s.add(p)
        s.flush()
        return p.id


def update_patient(patient_id: str, **fields: Any) -> bool:
    unknown = set(fields) - set(PATIENT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown patient fields: {', '.join(sorted(unknown))}")

    with db_session() as s:
        p = s.get(Patient, patient_id)
        if not p:
            return False
        for name, value in fields.items():
            if name in ("first_name", "last_name") and (not value or not value.strip()):
                raise ValueError("First and last name are required.")
            setattr(p, name, value)
        return True


def delete_patient(patient_id: str) -> bool:
    with db_session() as s:
        p = s.get(Patient, patient_id)
        if not p:
            return False
        s.delete(p)
        logger.info("Deleted patient %s", patient_id)
        return True


def list_patients_flat(search: str | None = None) -> list[dict]:
    with db_session() as s:
        q = select(Patient).order_by(Patient.last_name, Patient.first_name)
        if search and search.strip():
            like = f"%{search.strip()}%"
            q = q.where(
                or_(
                    Patient.first_name.ilike(like),
                    Patient.last_name.ilike(like),
                    Patient.email.ilike(like),
                    Patient.phone.ilike(like),
                )
            )
        return [_patient_flat(p) for p in s.scalars(q)]


def get_patient_detail(patient_id: str, today: date | None = None) -> dict | None:
    """Patient record with appointment history and invoices."""
    today = today or date.today()
    with db_session() as s:
        p = s.get(Patient, patient_id)
        if not p:
            return None
        detail = _patient_flat(p)
        detail["appointments"] = [
            _appointment_flat(a) for a in sorted(p.appointments, key=lambda a: a.start, reverse=True)
        ]
        detail["invoices"] = [_invoice_flat(i, today) for i in sorted(p.invoices, key=lambda i: i.id)]
        return detail


# =========================
# Treatments (price list)
# =========================
def create_treatment(
    name: str,
    price: float,
    duration_minutes: int = DEFAULT_APPOINTMENT_MINUTES,
    category: str = "General",
    description: str | None = None,
) -> int:
    name = name.strip()
    if not name:
        raise ValueError("Treatment name is required.")
    if price < 0:
        raise ValueError("Price cannot be negative.")
    if duration_minutes <= 0:
        raise ValueError("Duration must be positive.")

    with db_session() as s:
        if s.execute(select(Treatment).where(Treatment.name == name)).scalar_one_or_none():
            raise ValueError("A treatment with this name already exists.")
        t = Treatment(
            name=name,
            price=price,
            duration_minutes=duration_minutes,
            category=category,
            description=description,
            active=True,
        )
        s.add(t)
        s.flush()
        return t.id


def update_treatment(treatment_id: int, **fields: Any) -> bool:
    unknown = set(fields) - set(TREATMENT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown treatment fields: {', '.join(sorted(unknown))}")
    if fields.get("price") is not None and fields["price"] < 0:
        raise ValueError("Price cannot be negative.")

    with db_session() as s:
        t = s.get(Treatment, treatment_id)
        if not t:
            return False
        if fields.get("name") is not None:
            fields["name"] = fields["name"].strip()
            if not fields["name"]:
                raise ValueError("Treatment name is required.")
            clash = s.execute(
                select(Treatment).where(Treatment.name == fields["name"], Treatment.id != treatment_id)
            ).scalar_one_or_none()
            if clash:
                raise ValueError("A treatment with this name already exists.")
        for name, value in fields.items():
            if value is None and name != "description":
                raise ValueError(f"Field {name} cannot be empty.")
            setattr(t, name, value)
        return True


def list_treatments_flat(active_only: bool = False) -> list[dict]:
    with db_session() as s:
        q = select(Treatment).order_by(Treatment.category, Treatment.name)
        if active_only:
            q = q.where(Treatment.active.is_(True))
        return [
            {
                "id": t.id,
                "name": t.name,
                "category": t.category,
                "description": t.description,
                "duration_minutes": t.duration_minutes,
                "price": t.price,
                "active": t.active,
            }
            for t in s.scalars(q)
        ]


# =========================
# Appointments
# =========================
def _dentist_free(s, dentist_id: str, start: datetime, end: datetime, exclude_id: str | None = None) -> bool:
    """No overlap on [start, end) with the dentist's non-cancelled appointments."""
    conditions = [
        Appointment.dentist_id == dentist_id,
        Appointment.status != AppointmentStatus.CANCELLED,
        # overlap on [start, end)
        Appointment.start < end,
        Appointment.end > start,
    ]
    if exclude_id:
        conditions.append(Appointment.id != exclude_id)
    q = select(Appointment.id).where(and_(*conditions)).limit(1)
    return s.execute(q).first() is None


def book_appointment(
    patient_id: str,
    dentist_id: str,
    start: datetime,
    treatment_id: int | None = None,
    duration_minutes: int | None = None,
    notes: str | None = None,
) -> BookingOutcome:
    """
    Book an appointment.
    - duration from the explicit value, else the treatment, else 30 minutes
    - the dentist must be free on the whole slot
    """
    with db_session() as s:
        if not s.get(Patient, patient_id):
            return BookingOutcome(False, None, "Unknown patient.")

        dentist = s.get(User, dentist_id)
        if not dentist or not dentist.is_active or dentist.role not in (Role.DENTIST, Role.HYGIENIST):
            return BookingOutcome(False, None, "Unknown or inactive clinician.")

        treatment = None
        if treatment_id is not None:
            treatment = s.get(Treatment, treatment_id)
            if not treatment or not treatment.active:
                return BookingOutcome(False, None, "Invalid treatment.")

        minutes = duration_minutes or (treatment.duration_minutes if treatment else DEFAULT_APPOINTMENT_MINUTES)
        end = start + timedelta(minutes=minutes)

        if not _dentist_free(s, dentist_id, start, end):
            return BookingOutcome(False, None, "Slot not available: the clinician is already booked.")

        a = Appointment(
            patient_id=patient_id,
            dentist_id=dentist_id,
            treatment_id=treatment_id,
            start=start,
            end=end,
            status=AppointmentStatus.SCHEDULED,
            notes=notes,
        )
        s.add(a)
        s.flush()
        logger.info("Booked appointment %s for %s", a.id, start.isoformat())
        return BookingOutcome(True, a.id, "Appointment booked.")


def set_appointment_status(appointment_id: str, status: AppointmentStatus) -> bool:
    """Cancelled appointments are final."""
    with db_session() as s:
        a = s.get(Appointment, appointment_id)
        if not a or a.status == AppointmentStatus.CANCELLED:
            return False
        if status != AppointmentStatus.CANCELLED and not _dentist_free(s, a.dentist_id, a.start, a.end, a.id):
            raise ValueError("The clinician is already booked in this slot.")
        a.status = status
        return True


def cancel_appointment(appointment_id: str, reason: str | None = None) -> bool:
    with db_session() as s:
        a = s.get(Appointment, appointment_id)
        if not a or a.status == AppointmentStatus.CANCELLED:
            return False
        a.status = AppointmentStatus.CANCELLED
        if reason:
            a.notes = f"{a.notes}\n" if a.notes else ""
            a.notes += f"Cancelled: {reason}"
        return True


def list_appointments_flat(
    day: date | None = None,
    dentist_id: str | None = None,
    patient_id: str | None = None,
    include_cancelled: bool = True,
) -> list[dict]:
    with db_session() as s:
        q = select(Appointment).order_by(Appointment.start.asc())
        if day is not None:
            start, end = _day_bounds(day)
            q = q.where(Appointment.start >= start, Appointment.start < end)
        if dentist_id:
            q = q.where(Appointment.dentist_id == dentist_id)
        if patient_id:
            q = q.where(Appointment.patient_id == patient_id)
        if not include_cancelled:
            q = q.where(Appointment.status != AppointmentStatus.CANCELLED)
        return [_appointment_flat(a) for a in s.scalars(q)]


# =========================
# Billing
# =========================
def _next_invoice_number(s, year: int) -> str:
    prefix = f"INV-{year}-"
    # zero-padded, so the string max is the numeric max
    last = s.execute(select(func.max(Invoice.number)).where(Invoice.number.like(f"{prefix}%"))).scalar_one()
    seq = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


def create_invoice(
    patient_id: str,
    items: Iterable[dict],
    appointment_id: str | None = None,
    issued_on: date | None = None,
    due_days: int = DEFAULT_PAYMENT_TERMS_DAYS,
    notes: str | None = None,
) -> int:
    """
    Create a pending invoice.
    Each item: description, quantity, unit_price, treatment_id (all optional
    when treatment_id is given: description and price come from the catalog).
    """
    issued_on = issued_on or date.today()
    items = list(items)
    if not items:
        raise ValueError("An invoice needs at least one item.")

    with db_session() as s:
        if not s.get(Patient, patient_id):
            raise ValueError("Unknown patient.")
        if appointment_id and not s.get(Appointment, appointment_id):
            raise ValueError("Unknown appointment.")

        inv = Invoice(
            number=_next_invoice_number(s, issued_on.year),
            patient_id=patient_id,
            appointment_id=appointment_id,
            issued_on=issued_on,
            due_on=issued_on + timedelta(days=due_days),
            status=InvoiceStatus.PENDING,
            notes=notes,
        )

        for raw in items:
            treatment = None
            if raw.get("treatment_id") is not None:
                treatment = s.get(Treatment, raw["treatment_id"])
                if not treatment:
                    raise ValueError(f"Unknown treatment {raw['treatment_id']}.")

            description = raw.get("description") or (treatment.name if treatment else None)
            unit_price = raw.get("unit_price")
            if unit_price is None and treatment:
                unit_price = treatment.price
            quantity = int(raw.get("quantity") or 1)

            if not description or unit_price is None:
                raise ValueError("Each item needs a description and a price.")
            if quantity <= 0 or unit_price < 0:
                raise ValueError("Quantity must be positive and price non-negative.")

            inv.items.append(
                InvoiceItem(
                    description=description,
                    quantity=quantity,
                    unit_price=float(unit_price),
                    treatment_id=treatment.id if treatment else None,
                )
            )

        s.add(inv)
        s.flush()
        logger.info("Issued invoice %s (%.2f)", inv.number, inv.total)
        return inv.id


def mark_invoice_paid(invoice_id: int, method: PaymentMethod, paid_on: date | None = None) -> bool:
    """Only pending (or overdue) invoices can be paid."""
    with db_session() as s:
        inv = s.get(Invoice, invoice_id)
        if not inv or inv.status != InvoiceStatus.PENDING:
            return False
        inv.status = InvoiceStatus.PAID
        inv.paid_on = paid_on or date.today()
        inv.payment_method = method
        return True


def cancel_invoice(invoice_id: int) -> bool:
    with db_session() as s:
        inv = s.get(Invoice, invoice_id)
        if not inv or inv.status != InvoiceStatus.PENDING:
            return False
        inv.status = InvoiceStatus.CANCELLED
        return True


def list_invoices_flat(
    status: InvoiceStatus | None = None,
    patient_id: str | None = None,
    today: date | None = None,
) -> list[dict]:
    today = today or date.today()
    with db_session() as s:
        q = select(Invoice).order_by(Invoice.issued_on.desc(), Invoice.id.desc())
        if patient_id:
            q = q.where(Invoice.patient_id == patient_id)
        rows = [_invoice_flat(inv, today) for inv in s.scalars(q)]
    if status is not None:
        rows = [r for r in rows if r["status"] == status.value]
    return rows


# =========================
# Dashboard / reports
# =========================
def dashboard_stats(today: date | None = None) -> dict:
    today = today or date.today()
    todays = list_appointments_flat(day=today, include_cancelled=False)

    with db_session() as s:
        patients = s.execute(select(func.count(Patient.id))).scalar_one()
        pending = list(s.scalars(select(Invoice).where(Invoice.status == InvoiceStatus.PENDING)))
        paid = list(
            s.scalars(
                select(Invoice).where(
                    Invoice.status == InvoiceStatus.PAID,
                    Invoice.paid_on >= _month_start(today),
                    Invoice.paid_on <= today,
                )
            )
        )
        overdue = sum(1 for inv in pending if _effective_status(inv, today) == InvoiceStatus.OVERDUE)

        return {
            "date": today.isoformat(),
            "total_patients": patients,
            "appointments_today": len(todays),
            "pending_invoices": len(pending),
            "overdue_invoices": overdue,
            "outstanding_amount": round(sum(inv.total for inv in pending), 2),
            "revenue_this_month": round(sum(inv.total for inv in paid), 2),
            "todays_appointments": todays,
        }


def revenue_report(start: date, end: date) -> dict:
    """Paid revenue in [start, end] (by payment date), by treatment and by month."""
    if end < start:
        raise ValueError("End date precedes start date.")

    by_treatment: dict[str, float] = defaultdict(float)
    by_month: dict[str, float] = defaultdict(float)

    with db_session() as s:
        q = select(Invoice).where(
            Invoice.status == InvoiceStatus.PAID,
            Invoice.paid_on >= start,
            Invoice.paid_on <= end,
        )
        invoices = list(s.scalars(q))
        for inv in invoices:
            by_month[inv.paid_on.strftime("%Y-%m")] += inv.total
            for item in inv.items:
                by_treatment[item.description] += item.quantity * item.unit_price

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "invoices": len(invoices),
        "total": round(sum(by_month.values()), 2),
        "by_treatment": {k: round(v, 2) for k, v in sorted(by_treatment.items(), key=lambda kv: -kv[1])},
        "by_month": {k: round(v, 2) for k, v in sorted(by_month.items())},
    }


def appointments_report(start: date, end: date) -> dict:
    """Appointment counts in [start, end] by status and by clinician."""
    if end < start:
        raise ValueError("End date precedes start date.")

    range_start = datetime.combine(start, datetime.min.time())
    range_end = datetime.combine(end + timedelta(days=1), datetime.min.time())

    by_status: dict[str, int] = {st.value: 0 for st in AppointmentStatus}
    by_dentist: dict[str, int] = defaultdict(int)

    with db_session() as s:
        q = select(Appointment).where(Appointment.start >= range_start, Appointment.start < range_end)
        appointments = list(s.scalars(q))
        for a in appointments:
            by_status[a.status.value] += 1
            by_dentist[a.dentist.full_name] += 1

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "total": len(appointments),
        "by_status": by_status,
        "by_dentist": dict(sorted(by_dentist.items())),
    }
