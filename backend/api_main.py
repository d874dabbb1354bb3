from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, Field

from backend.auth_models import Role, User
from backend.auth_security import create_access_token, get_subject
from backend.auth_service import (
    authenticate,
    change_password,
    create_user,
    get_user_by_id,
    list_staff_flat,
    set_user_active,
    update_profile,
    user_flat,
)
from backend.config import LOG_LEVEL
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
    init_db,
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

logger = logging.getLogger(__name__)

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

app = FastAPI(title="DentalCare Pro API", version="1.0.0")



# Startup

@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(level=LOG_LEVEL)
    # Tables only: demo data comes from `python -m backend.seed`
    init_db()



# Auth schemas

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    phone: str | None = None
    specialization: str | None = None
    is_active: bool


class ProfileIn(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    specialization: str | None = None


class PasswordChangeIn(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class StaffCreateIn(BaseModel):
    email: str
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    role: Role = Role.RECEPTIONIST
    phone: str | None = None
    specialization: str | None = None


class ActiveIn(BaseModel):
    is_active: bool



# Domain schemas

class PatientIn(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: date | None = None
    gender: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    medical_history: str | None = None
    allergies: str | None = None


class PatientUpdateIn(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    medical_history: str | None = None
    allergies: str | None = None


class AppointmentIn(BaseModel):
    patient_id: str
    dentist_id: str
    start: datetime
    treatment_id: int | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    notes: str | None = None


class AppointmentStatusIn(BaseModel):
    status: AppointmentStatus


class CancelIn(BaseModel):
    reason: str | None = None


class TreatmentIn(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    duration_minutes: int = Field(default=30, gt=0)
    category: str = "General"
    description: str | None = None


class TreatmentUpdateIn(BaseModel):
    name: str | None = None
    price: float | None = Field(default=None, ge=0)
    duration_minutes: int | None = Field(default=None, gt=0)
    category: str | None = None
    description: str | None = None
    active: bool | None = None


class InvoiceItemIn(BaseModel):
    description: str | None = None
    quantity: int = Field(default=1, gt=0)
    unit_price: float | None = Field(default=None, ge=0)
    treatment_id: int | None = None


class InvoiceIn(BaseModel):
    patient_id: str
    items: list[InvoiceItemIn] = Field(..., min_length=1)
    appointment_id: str | None = None
    issued_on: date | None = None
    due_days: int = Field(default=30, ge=0)
    notes: str | None = None


class PaymentIn(BaseModel):
    method: PaymentMethod
    paid_on: date | None = None



# Auth dependencies

def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    # stray spaces / quotes from copy-pasted tokens
    token = token.strip().strip('"').strip("'")

    user_id = get_subject(token)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    u = get_user_by_id(user_id)
    if not u or not u.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user")
    return u


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator role required")
    return user


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def _bad_request(e: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))



# PUBLIC endpoints

@app.get("/api/health")
def health() -> dict[str, Any]:
    return {"ok": True, "status": "ok"}


@app.post("/api/auth/login", response_model=TokenOut)
def login(form: OAuth2PasswordRequestForm = Depends()) -> TokenOut:
    u = authenticate(form.username, form.password)
    if not u:
        logger.info("Failed login for %s", form.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_access_token(subject=u.id, extra={"email": u.email, "role": u.role.value})
    return TokenOut(access_token=token)



# Profile

@app.get("/api/me", response_model=MeOut)
def me(user: User = Depends(get_current_user)) -> MeOut:
    return MeOut(**user_flat(user))


@app.put("/api/me", response_model=MeOut)
def update_me(payload: ProfileIn, user: User = Depends(get_current_user)) -> MeOut:
    try:
        u = update_profile(user.id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise _bad_request(e)
    if not u:
        raise _not_found("User")
    return MeOut(**user_flat(u))


@app.post("/api/me/password")
def update_my_password(payload: PasswordChangeIn, user: User = Depends(get_current_user)) -> dict[str, Any]:
    try:
        ok = change_password(user.id, payload.current_password, payload.new_password)
    except ValueError as e:
        raise _bad_request(e)
    if not ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is wrong")
    return {"ok": True}



# Dashboard

@app.get("/api/dashboard")
def api_dashboard(user: User = Depends(get_current_user)) -> dict[str, Any]:
    return dashboard_stats()



# Patients

@app.get("/api/patients")
def api_patients(search: str | None = None, user: User = Depends(get_current_user)) -> list[dict]:
    return list_patients_flat(search)


@app.post("/api/patients", status_code=status.HTTP_201_CREATED)
def api_create_patient(payload: PatientIn, user: User = Depends(get_current_user)) -> dict[str, Any]:
    data = payload.model_dump()
    try:
        pid = create_patient(data.pop("first_name"), data.pop("last_name"), **data)
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "patient_id": pid}


@app.get("/api/patients/{patient_id}")
def api_patient_detail(patient_id: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    detail = get_patient_detail(patient_id)
    if detail is None:
        raise _not_found("Patient")
    return detail


@app.put("/api/patients/{patient_id}")
def api_update_patient(
    patient_id: str, payload: PatientUpdateIn, user: User = Depends(get_current_user)
) -> dict[str, Any]:
    try:
        ok = update_patient(patient_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise _bad_request(e)
    if not ok:
        raise _not_found("Patient")
    return {"ok": True}


@app.delete("/api/patients/{patient_id}")
def api_delete_patient(patient_id: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    if not delete_patient(patient_id):
        raise _not_found("Patient")
    return {"ok": True}



# Appointments

@app.get("/api/appointments")
def api_appointments(
    day: date | None = Query(default=None),
    dentist_id: str | None = Query(default=None),
    patient_id: str | None = Query(default=None),
    user: User = Depends(get_current_user),
) -> list[dict]:
    return list_appointments_flat(day=day, dentist_id=dentist_id, patient_id=patient_id)


@app.post("/api/appointments")
def api_book_appointment(payload: AppointmentIn, user: User = Depends(get_current_user)) -> dict[str, Any]:
    outcome = book_appointment(
        patient_id=payload.patient_id,
        dentist_id=payload.dentist_id,
        start=payload.start,
        treatment_id=payload.treatment_id,
        duration_minutes=payload.duration_minutes,
        notes=payload.notes,
    )
    if not outcome.ok:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=outcome.message)
    return {"ok": True, "appointment_id": outcome.appointment_id, "message": outcome.message}


@app.patch("/api/appointments/{appointment_id}/status")
def api_appointment_status(
    appointment_id: str, payload: AppointmentStatusIn, user: User = Depends(get_current_user)
) -> dict[str, Any]:
    try:
        ok = set_appointment_status(appointment_id, payload.status)
    except ValueError as e:
        raise _bad_request(e)
    if not ok:
        raise _not_found("Active appointment")
    return {"ok": True}


@app.post("/api/appointments/{appointment_id}/cancel")
def api_cancel_appointment(
    appointment_id: str, payload: CancelIn, user: User = Depends(get_current_user)
) -> dict[str, Any]:
    if not cancel_appointment(appointment_id, reason=payload.reason):
        raise _not_found("Active appointment")
    return {"ok": True}



# Treatments

@app.get("/api/treatments")
def api_treatments(active_only: bool = False, user: User = Depends(get_current_user)) -> list[dict]:
    return list_treatments_flat(active_only=active_only)


@app.post("/api/treatments", status_code=status.HTTP_201_CREATED)
def api_create_treatment(payload: TreatmentIn, user: User = Depends(get_current_user)) -> dict[str, Any]:
    try:
        tid = create_treatment(**payload.model_dump())
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "treatment_id": tid}


@app.put("/api/treatments/{treatment_id}")
def api_update_treatment(
    treatment_id: int, payload: TreatmentUpdateIn, user: User = Depends(get_current_user)
) -> dict[str, Any]:
    try:
        ok = update_treatment(treatment_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise _bad_request(e)
    if not ok:
        raise _not_found("Treatment")
    return {"ok": True}



# Billing

@app.get("/api/invoices")
def api_invoices(
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    patient_id: str | None = None,
    user: User = Depends(get_current_user),
) -> list[dict]:
    return list_invoices_flat(status=status_filter, patient_id=patient_id)


@app.post("/api/invoices", status_code=status.HTTP_201_CREATED)
def api_create_invoice(payload: InvoiceIn, user: User = Depends(get_current_user)) -> dict[str, Any]:
    try:
        invoice_id = create_invoice(
            payload.patient_id,
            [i.model_dump() for i in payload.items],
            appointment_id=payload.appointment_id,
            issued_on=payload.issued_on,
            due_days=payload.due_days,
            notes=payload.notes,
        )
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "invoice_id": invoice_id}


@app.post("/api/invoices/{invoice_id}/pay")
def api_pay_invoice(invoice_id: int, payload: PaymentIn, user: User = Depends(get_current_user)) -> dict[str, Any]:
    if not mark_invoice_paid(invoice_id, payload.method, paid_on=payload.paid_on):
        raise _not_found("Open invoice")
    return {"ok": True}


@app.post("/api/invoices/{invoice_id}/cancel")
def api_cancel_invoice(invoice_id: int, user: User = Depends(get_current_user)) -> dict[str, Any]:
    if not cancel_invoice(invoice_id):
        raise _not_found("Open invoice")
    return {"ok": True}



# Staff

@app.get("/api/staff")
def api_staff(
    role: Role | None = None,
    active_only: bool = False,
    user: User = Depends(get_current_user),
) -> list[dict]:
    return list_staff_flat(role=role, active_only=active_only)


@app.post("/api/staff", status_code=status.HTTP_201_CREATED)
def api_create_staff(payload: StaffCreateIn, admin: User = Depends(require_admin)) -> dict[str, Any]:
    try:
        user_id = create_user(**payload.model_dump())
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "user_id": user_id}


@app.patch("/api/staff/{user_id}/active")
def api_staff_active(user_id: str, payload: ActiveIn, admin: User = Depends(require_admin)) -> dict[str, Any]:
    if user_id == admin.id and not payload.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate yourself")
    if not set_user_active(user_id, payload.is_active):
        raise _not_found("User")
    return {"ok": True}



# Reports

@app.get("/api/reports/revenue")
def api_revenue_report(
    start: date = Query(...),
    end: date = Query(...),
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        return revenue_report(start, end)
    except ValueError as e:
        raise _bad_request(e)


@app.get("/api/reports/appointments")
def api_appointments_report(
    start: date = Query(...),
    end: date = Query(...),
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        return appointments_report(start, end)
    except ValueError as e:
        raise _bad_request(e)
