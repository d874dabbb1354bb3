from datetime import date, datetime, timedelta

import pytest

from backend.auth_models import Role
from backend.auth_service import create_user
from backend.models import AppointmentStatus, InvoiceStatus, PaymentMethod
from backend.services import (
    appointments_report,
    book_appointment,
    cancel_appointment,
    cancel_invoice,
    create_invoice,
    create_patient,
    create_treatment,
    dashboard_stats,
    delete_patient,
    get_patient_detail,
    list_appointments_flat,
    list_invoices_flat,
    list_patients_flat,
    list_treatments_flat,
    mark_invoice_paid,
    revenue_report,
    set_appointment_status,
    update_patient,
    update_treatment,
)

NINE = datetime(2026, 3, 2, 9, 0)


# ============================================================================
# Patients
# ============================================================================

def test_create_and_search_patients() -> None:
    create_patient("John", "Smith", email="john@example.com")
    create_patient("Maria", "Garcia", phone="555-0102")

    assert [p["last_name"] for p in list_patients_flat()] == ["Garcia", "Smith"]
    assert [p["first_name"] for p in list_patients_flat("smi")] == ["John"]
    assert [p["first_name"] for p in list_patients_flat("0102")] == ["Maria"]


def test_patient_name_required() -> None:
    with pytest.raises(ValueError):
        create_patient("  ", "Smith")
    with pytest.raises(ValueError):
        create_patient("John", "Smith", shoe_size=42)


def test_update_and_delete_patient(patient_id: str) -> None:
    assert update_patient(patient_id, allergies="Latex", date_of_birth=date(1985, 3, 12))
    detail = get_patient_detail(patient_id)
    assert detail["allergies"] == "Latex"
    assert detail["date_of_birth"] == "1985-03-12"

    with pytest.raises(ValueError):
        update_patient(patient_id, last_name="")

    assert delete_patient(patient_id)
    assert get_patient_detail(patient_id) is None
    assert not delete_patient(patient_id)
    assert not update_patient(patient_id, phone="1")


# ============================================================================
# Treatments
# ============================================================================

def test_treatment_catalog(cleaning_id: int) -> None:
    with pytest.raises(ValueError):
        create_treatment("Professional Cleaning", 10.0)
    with pytest.raises(ValueError):
        create_treatment("Free lunch", -1.0)

    assert update_treatment(cleaning_id, active=False, price=130.0)
    assert list_treatments_flat(active_only=True) == []
    (row,) = list_treatments_flat()
    assert row["price"] == 130.0 and row["active"] is False

    with pytest.raises(ValueError):
        update_treatment(cleaning_id, name=None)
    assert not update_treatment(999, price=1.0)


# ============================================================================
# Appointments
# ============================================================================

def test_booking_uses_treatment_duration(patient_id, dentist_id, cleaning_id) -> None:
    outcome = book_appointment(patient_id, dentist_id, NINE, treatment_id=cleaning_id)
    assert outcome.ok and outcome.appointment_id

    (row,) = list_appointments_flat(day=NINE.date())
    assert row["start"] == "2026-03-02T09:00"
    assert row["end"] == "2026-03-02T09:45"
    assert row["dentist"] == "Sarah Johnson"
    assert row["treatment"] == "Professional Cleaning"
    assert row["status"] == "SCHEDULED"


def test_dentist_cannot_be_double_booked(patient_id, dentist_id) -> None:
    assert book_appointment(patient_id, dentist_id, NINE).ok

    clash = book_appointment(patient_id, dentist_id, NINE + timedelta(minutes=15))
    assert not clash.ok
    assert "already booked" in clash.message

    # back-to-back is fine
    assert book_appointment(patient_id, dentist_id, NINE + timedelta(minutes=30)).ok


def test_cancelled_slot_can_be_rebooked(patient_id, dentist_id) -> None:
    first = book_appointment(patient_id, dentist_id, NINE)
    assert cancel_appointment(first.appointment_id, reason="patient ill")
    assert not cancel_appointment(first.appointment_id)

    assert book_appointment(patient_id, dentist_id, NINE).ok
    assert len(list_appointments_flat(day=NINE.date(), include_cancelled=False)) == 1

    cancelled = [a for a in list_appointments_flat(day=NINE.date()) if a["status"] == "CANCELLED"]
    assert cancelled[0]["notes"] == "Cancelled: patient ill"


def test_booking_rejects_unknown_parties(patient_id, dentist_id, receptionist_id) -> None:
    assert book_appointment("missing", dentist_id, NINE).message == "Unknown patient."
    assert not book_appointment(patient_id, receptionist_id, NINE).ok
    assert book_appointment(patient_id, dentist_id, NINE, treatment_id=999).message == "Invalid treatment."


def test_status_changes(patient_id, dentist_id) -> None:
    appt = book_appointment(patient_id, dentist_id, NINE).appointment_id
    assert set_appointment_status(appt, AppointmentStatus.CONFIRMED)
    assert set_appointment_status(appt, AppointmentStatus.COMPLETED)
    assert cancel_appointment(appt)
    # cancelled is final
    assert not set_appointment_status(appt, AppointmentStatus.CONFIRMED)
    assert not set_appointment_status("missing", AppointmentStatus.CONFIRMED)


# ============================================================================
# Billing
# ============================================================================

def test_invoice_items_default_from_catalog(patient_id, cleaning_id) -> None:
    invoice_id = create_invoice(
        patient_id,
        [{"treatment_id": cleaning_id}, {"description": "Fluoride", "unit_price": 20.0, "quantity": 2}],
        issued_on=date(2026, 3, 2),
    )
    (row,) = list_invoices_flat(today=date(2026, 3, 2))
    assert row["id"] == invoice_id
    assert row["number"] == "INV-2026-0001"
    assert row["total"] == 160.0
    assert row["due_on"] == "2026-04-01"
    assert row["items"][0]["description"] == "Professional Cleaning"

    create_invoice(patient_id, [{"description": "X-Ray", "unit_price": 60.0}], issued_on=date(2026, 3, 3))
    assert {r["number"] for r in list_invoices_flat()} == {"INV-2026-0001", "INV-2026-0002"}


def test_invoice_validation(patient_id) -> None:
    with pytest.raises(ValueError):
        create_invoice(patient_id, [])
    with pytest.raises(ValueError):
        create_invoice("missing", [{"description": "X", "unit_price": 1.0}])
    with pytest.raises(ValueError):
        create_invoice(patient_id, [{"description": "No price"}])
    with pytest.raises(ValueError):
        create_invoice(patient_id, [{"treatment_id": 999}])


def test_overdue_is_derived_and_payable(patient_id) -> None:
    invoice_id = create_invoice(
        patient_id, [{"description": "Crown", "unit_price": 1100.0}], issued_on=date(2026, 1, 1), due_days=30
    )
    assert list_invoices_flat(today=date(2026, 1, 31))[0]["status"] == "PENDING"
    assert list_invoices_flat(status=InvoiceStatus.OVERDUE, today=date(2026, 2, 1))[0]["id"] == invoice_id

    assert mark_invoice_paid(invoice_id, PaymentMethod.CARD, paid_on=date(2026, 2, 5))
    assert not mark_invoice_paid(invoice_id, PaymentMethod.CASH)
    assert not cancel_invoice(invoice_id)

    row = list_invoices_flat(today=date(2026, 3, 1))[0]
    assert row["status"] == "PAID"
    assert row["payment_method"] == "CARD"


# ============================================================================
# Dashboard / reports
# ============================================================================

def test_dashboard(patient_id, dentist_id, cleaning_id) -> None:
    today = NINE.date()
    book_appointment(patient_id, dentist_id, NINE, treatment_id=cleaning_id)
    paid = create_invoice(patient_id, [{"treatment_id": cleaning_id}], issued_on=today)
    mark_invoice_paid(paid, PaymentMethod.CASH, paid_on=today)
    create_invoice(patient_id, [{"description": "Old", "unit_price": 50.0}], issued_on=date(2026, 1, 1), due_days=10)

    stats = dashboard_stats(today=today)
    assert stats["total_patients"] == 1
    assert stats["appointments_today"] == 1
    assert stats["pending_invoices"] == 1
    assert stats["overdue_invoices"] == 1
    assert stats["outstanding_amount"] == 50.0
    assert stats["revenue_this_month"] == 120.0
    assert stats["todays_appointments"][0]["patient"] == "John Smith"


def test_revenue_report(patient_id, cleaning_id) -> None:
    for day in (date(2026, 1, 10), date(2026, 2, 10), date(2026, 2, 20)):
        inv = create_invoice(patient_id, [{"treatment_id": cleaning_id}], issued_on=day)
        mark_invoice_paid(inv, PaymentMethod.CARD, paid_on=day)
    create_invoice(patient_id, [{"treatment_id": cleaning_id}], issued_on=date(2026, 2, 1))

    report = revenue_report(date(2026, 2, 1), date(2026, 2, 28))
    assert report["invoices"] == 2
    assert report["total"] == 240.0
    assert report["by_month"] == {"2026-02": 240.0}
    assert report["by_treatment"] == {"Professional Cleaning": 240.0}

    with pytest.raises(ValueError):
        revenue_report(date(2026, 2, 28), date(2026, 2, 1))


def test_appointments_report(patient_id, dentist_id) -> None:
    other = create_user("michael.chen@dentalcare.com", "dentist123", "Michael", "Chen", role=Role.DENTIST)
    a = book_appointment(patient_id, dentist_id, NINE).appointment_id
    book_appointment(patient_id, other, NINE)
    book_appointment(patient_id, dentist_id, NINE + timedelta(days=1))
    book_appointment(patient_id, dentist_id, NINE + timedelta(days=30))
    cancel_appointment(a)

    report = appointments_report(NINE.date(), NINE.date() + timedelta(days=1))
    assert report["total"] == 3
    assert report["by_status"]["CANCELLED"] == 1
    assert report["by_status"]["SCHEDULED"] == 2
    assert report["by_dentist"] == {"Michael Chen": 1, "Sarah Johnson": 2}
