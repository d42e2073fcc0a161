"""
Civil Registry Backend - Resident SQLAlchemy Model
===================================================

What:  ORM model representing the `residents` table.
Who:   Used by ResidentStore for CRUD operations and by Alembic for schema management.

Table Design:
    - id: UUID primary key assigned by the store layer; the key used in URLs
    - resident_id: business-facing identifier (BR<digits>), unique index,
      never changed after insert
    - address: JSON object {street, houseNumber, barangay, city, province, zipCode};
      replaced as a whole on update
    - enum-like columns (gender, civil_status, status) are plain strings;
      membership is enforced by the Pydantic schemas before any write
    - timestamps are UTC and set client-side so they are populated right
      after flush without a refresh round-trip

    Generic SQLAlchemy types (Uuid, JSON, DateTime(timezone=True)) keep the
    model usable on PostgreSQL and SQLite alike.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from civil_registry.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Resident(Base):
    """
    Represents one registered individual.

    Lifecycle:
        1. Created with a generated resident_id and qr_code
        2. Updated by partial overwrite (resident_id excluded)
        3. qr_code regenerated on demand
        4. Hard-deleted by primary key; `status` is only a marker
    """

    __tablename__ = "residents"

    # ── Keys ──────────────────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Store-assigned primary key",
    )
    resident_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="Business-facing resident identifier (immutable)",
    )

    # ── Identity ──────────────────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(20), nullable=False)
    civil_status: Mapped[str] = mapped_column(String(20), nullable=False)

    # ── Contact ───────────────────────────────────────────────────────────
    contact_number: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # ── Socio-economic ────────────────────────────────────────────────────
    occupation: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    monthly_income: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    voter_status: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    # ── Registry State ────────────────────────────────────────────────────
    registration_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    # data:image/png;base64,... (several KB)
    qr_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Active", server_default=text("'Active'")
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<Resident(id={self.id}, resident_id='{self.resident_id}', "
            f"status='{self.status}')>"
        )
