from __future__ import annotations

import logging

from sqlalchemy import select

from backend.auth_models import Role, User
from backend.auth_security import hash_password, verify_password
from backend.db import db_session

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "phone", "specialization")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def create_user(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: Role = Role.RECEPTIONIST,
    phone: str | None = None,
    specialization: str | None = None,
) -> str:
    email = _normalize_email(email)
    if not email or not password:
        raise ValueError("Email and password are required.")
    if not first_name.strip() or not last_name.strip():
        raise ValueError("First and last name are required.")

    with db_session() as s:
        exists = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if exists:
            raise ValueError("Email already registered.")

        u = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            role=role,
            phone=phone,
            specialization=specialization,
            is_active=True,
        )
        s.add(u)
        s.flush()
        logger.info("Created %s account %s", role.value, email)
        return u.id


def authenticate(email: str, password: str) -> User | None:
    email = _normalize_email(email)
    with db_session() as s:
        u = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not u or not u.is_active:
            return None
        if not verify_password(password, u.password_hash):
            return None
        return u


def get_user_by_id(user_id: str) -> User | None:
    with db_session() as s:
        return s.get(User, user_id)


def update_profile(user_id: str, **fields: str | None) -> User | None:
    """Update the editable profile fields; unknown keys are rejected."""
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")

    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            return None
        for name, value in fields.items():
            if name in ("first_name", "last_name"):
                if not value or not value.strip():
                    raise ValueError("First and last name are required.")
                value = value.strip()
            setattr(u, name, value)
        return u


def change_password(user_id: str, current_password: str, new_password: str) -> bool:
    if len(new_password) < 6:
        raise ValueError("The new password must be at least 6 characters long.")

    with db_session() as s:
        u = s.get(User, user_id)
        if not u or not verify_password(current_password, u.password_hash):
            return False
        u.password_hash = hash_password(new_password)
        return True


def reset_password(email: str, new_password: str) -> bool:
    """Admin reset: no check on the current password."""
    with db_session() as s:
        u = s.execute(select(User).where(User.email == _normalize_email(email))).scalar_one_or_none()
        if not u:
            return False
        u.password_hash = hash_password(new_password)
        return True


def set_user_active(user_id: str, active: bool) -> bool:
    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            return False
        u.is_active = active
        return True


def user_flat(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "full_name": u.full_name,
        "role": u.role.value,
        "phone": u.phone,
        "specialization": u.specialization,
        "is_active": u.is_active,
    }


def list_staff_flat(role: Role | None = None, active_only: bool = False) -> list[dict]:
    with db_session() as s:
        q = select(User).order_by(User.last_name, User.first_name)
        if role is not None:
            q = q.where(User.role == role)
        if active_only:
            q = q.where(User.is_active.is_(True))
        return [user_flat(u) for u in s.scalars(q)]
