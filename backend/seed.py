from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select

from .auth_models import Role, User
from .auth_security import hash_password
from .config import DB_PATH, LOG_LEVEL
from .db import db_session
from .models import Appointment, AppointmentStatus, Patient, PaymentMethod, Treatment
from .services import create_invoice, init_db, mark_invoice_paid

logger = logging.getLogger(__name__)

DEMO_USERS = [
    # email, password, first name, last name, role, specialization
    ("admin@dentalcare.com", "admin123", "Clinic", "Administrator", Role.ADMIN, None),
    ("sarah.johnson@dentalcare.com", "dentist123", "Sarah", "Johnson", Role.DENTIST, "General Dentistry"),
    ("michael.chen@dentalcare.com", "dentist123", "Michael", "Chen", Role.DENTIST, "Orthodontics"),
    ("lisa.brown@dentalcare.com", "hygienist123", "Lisa", "Brown", Role.HYGIENIST, "Dental Hygiene"),
    ("emily.davis@dentalcare.com", "receptionist123", "Emily", "Davis", Role.RECEPTIONIST, None),
]

TREATMENTS = [
    # name, category, minutes, price
    ("Routine Checkup", "Preventive", 30, 75.0),
    ("Professional Cleaning", "Preventive", 45, 120.0),
    ("Dental X-Ray", "Diagnostic", 15, 60.0),
    ("Composite Filling", "Restorative", 60, 180.0),
    ("Root Canal", "Endodontics", 90, 850.0),
    ("Tooth Extraction", "Oral Surgery", 45, 220.0),
    ("Teeth Whitening", "Cosmetic", 60, 350.0),
    ("Crown", "Restorative", 90, 1100.0),
]

PATIENTS = [
    # first name, last name, date of birth, phone, email, allergies
    ("John", "Smith", date(1985, 3, 12), "555-0101", "john.smith@example.com", None),
    ("Maria", "Garcia", date(1992, 7, 24), "555-0102", "maria.garcia@example.com", "Penicillin"),
    ("David", "Wilson", date(1978, 11, 2), "555-0103", "david.wilson@example.com", None),
    ("Anna", "Martinez", date(2001, 1, 30), "555-0104", "anna.martinez@example.com", "Latex"),
    ("Robert", "Taylor", date(1965, 5, 17), "555-0105", None, None),
    ("Sophie", "Anderson", date(2010, 9, 8), "555-0106", "parents.anderson@example.com", None),
]


def seed_demo(today: date | None = None) -> None:
    """
    Load demo data (idempotent):
    - staff accounts (the launcher banner credentials)
    - treatment price list
    - patients
    - a week of appointments and a few invoices, only on an empty schedule
    """
    today = today or date.today()

    with db_session() as s:
        for email, password, first, last, role, spec in DEMO_USERS:
            if s.execute(select(User).where(User.email == email)).scalar_one_or_none() is None:
                s.add(
                    User(
                        email=email,
                        password_hash=hash_password(password),
                        first_name=first,
                        last_name=last,
                        role=role,
                        specialization=spec,
                    )
                )

        for name, category, minutes, price in TREATMENTS:
            if s.execute(select(Treatment).where(Treatment.name == name)).scalar_one_or_none() is None:
                s.add(Treatment(name=name, category=category, duration_minutes=minutes, price=price))

        for first, last, dob, phone, email, allergies in PATIENTS:
            exists = s.execute(
                select(Patient).where(Patient.first_name == first, Patient.last_name == last)
            ).scalar_one_or_none()
            if exists is None:
                s.add(
                    Patient(
                        first_name=first,
                        last_name=last,
                        date_of_birth=dob,
                        phone=phone,
                        email=email,
                        allergies=allergies,
                    )
                )

        s.flush()

        if s.execute(select(func.count(Appointment.id))).scalar_one():
            return

        dentists = list(
            s.scalars(select(User).where(User.role.in_([Role.DENTIST, Role.HYGIENIST])).order_by(User.email))
        )
        patients = list(s.scalars(select(Patient).order_by(Patient.last_name)))
        treatments = list(s.scalars(select(Treatment).order_by(Treatment.id)))

        # one appointment per patient, spread over the days around today
        for n, patient in enumerate(patients):
            day = today + timedelta(days=n - 2)
            start = datetime.combine(day, time(9 + n % 4, 0))
            treatment = treatments[n % len(treatments)]
            status = AppointmentStatus.COMPLETED if day < today else AppointmentStatus.SCHEDULED
            s.add(
                Appointment(
                    patient_id=patient.id,
                    dentist_id=dentists[n % len(dentists)].id,
                    treatment_id=treatment.id,
                    start=start,
                    end=start + timedelta(minutes=treatment.duration_minutes),
                    status=status,
                )
            )

        s.flush()
        completed = list(
            s.scalars(select(Appointment).where(Appointment.status == AppointmentStatus.COMPLETED))
        )
        billable = [(a.id, a.patient_id, a.treatment_id, a.start.date()) for a in completed]

    for n, (appointment_id, patient_id, treatment_id, day) in enumerate(billable):
        invoice_id = create_invoice(
            patient_id,
            [{"treatment_id": treatment_id}],
            appointment_id=appointment_id,
            issued_on=day,
        )
        if n % 2 == 0:
            mark_invoice_paid(invoice_id, PaymentMethod.CARD, paid_on=day)


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL)
    init_db()
    seed_demo()
    print(f"Database seeded: {DB_PATH}")


if __name__ == "__main__":
    main()
