"""SQLAlchemy ORM models for engineers, clients, jobs and certificates."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certnow.db.base import Base
from certnow.db.enums import DEFAULT_JOB_STATUS


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Auth
# =============================================================================

class User(Base):
    """
    Engineer account.

    Authentication is handled by the hosted identity provider; this row
    only carries identity and the session revocation version.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


# =============================================================================
# Customer Registry
# =============================================================================

class Client(Base):
    """
    Customer contact record.

    Logical identity is normalized name + email, not the primary key: several
    rows may describe the same customer and are merged on read.
    """
    __tablename__ = "clients"
    __table_args__ = (
        Index("idx_clients_user", "user_id", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    landlord_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    landlord_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=True
    )


# =============================================================================
# Jobs
# =============================================================================

class Job(Base):
    """
    One certificate workflow instance.

    client_name and address are legacy denormalized columns kept for jobs
    created before the client link existed.
    """
    __tablename__ = "jobs"
    __table_args__ = (
        Index("idx_jobs_user", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), default=DEFAULT_JOB_STATUS.value, nullable=False
    )
    certificate_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    scheduled_for: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    client: Mapped["Client | None"] = relationship()
    certificate: Mapped["Certificate | None"] = relationship(
        back_populates="job", uselist=False, cascade="all, delete-orphan"
    )


class JobField(Base):
    """
    Schema-less field value attached to a job.

    No unique constraint on (job_id, field_key): writes are delete-then-insert,
    so readers take the newest row per key.
    """
    __tablename__ = "job_fields"
    __table_args__ = (
        Index("idx_job_fields_job_key", "job_id", "field_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    field_key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class Cp12Appliance(Base):
    """Appliance row on a CP12 landlord gas safety record."""
    __tablename__ = "cp12_appliances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    appliance_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    make_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operating_pressure: Mapped[str | None] = mapped_column(String(50), nullable=True)
    heat_input: Mapped[str | None] = mapped_column(String(50), nullable=True)
    flue_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ventilation_provision: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ventilation_satisfactory: Mapped[str | None] = mapped_column(String(20), nullable=True)
    flue_condition: Mapped[str | None] = mapped_column(String(100), nullable=True)
    stability_test: Mapped[str | None] = mapped_column(String(50), nullable=True)
    gas_tightness_test: Mapped[str | None] = mapped_column(String(50), nullable=True)
    co_reading_ppm: Mapped[str | None] = mapped_column(String(50), nullable=True)
    safety_rating: Mapped[str | None] = mapped_column(String(50), nullable=True)
    classification_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class JobPhoto(Base):
    """Evidence photo captured during a wizard step."""
    __tablename__ = "job_photos"
    __table_args__ = (
        Index("idx_job_photos_job", "job_id", "category"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


# =============================================================================
# Certificates
# =============================================================================

class Certificate(Base):
    """
    Issued certificate. At most one per job; regeneration overwrites it.

    pdf_url is the legacy column name for the storage path. Deployments that
    never received the pdf_path migration still write there.
    """
    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint("job_id", name="uq_certificates_job"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    cert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    pdf_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    pdf_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    job: Mapped["Job"] = relationship(back_populates="certificate")
