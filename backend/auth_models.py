from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class Role(enum.Enum):
    ADMIN = "ADMIN"
    DENTIST = "DENTIST"
    HYGIENIST = "HYGIENIST"
    RECEPTIONIST = "RECEPTIONIST"


class User(Base):
    """
    Staff account used for authentication.
    - email is unique and stored lower-cased
    - password_hash with bcrypt (passlib)
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role), default=Role.RECEPTIONIST, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    specialization: Mapped[str | None] = mapped_column(String(120), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"User({self.email}, {self.role.value})"
