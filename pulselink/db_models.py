"""
SQL tables backing the three logical collections: ``senior_profiles``,
``caregiver_relations`` and ``health_records``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base, Mapped, mapped_column


Base = declarative_base()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class SeniorProfileRow(Base):
    __tablename__ = "senior_profiles"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    gender: Mapped[str] = mapped_column(String(32), default="")
    avatar_type: Mapped[str] = mapped_column(String(64), default="")
    creator_id: Mapped[str] = mapped_column(String(128), default="", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    registration_type: Mapped[str] = mapped_column(String(32), nullable=False)


class CaregiverRelationRow(Base):
    __tablename__ = "caregiver_relations"
    __table_args__ = (Index("ix_relations_senior_status", "senior_id", "status"),)

    id: Mapped[str] = mapped_column(String(300), primary_key=True)
    caregiver_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    senior_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    relationship: Mapped[str] = mapped_column(String(64), default="")
    nickname: Mapped[str] = mapped_column(String(64), default="")
    message: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    can_view_health_data: Mapped[bool] = mapped_column(Boolean, default=True)
    can_edit_health_data: Mapped[bool] = mapped_column(Boolean, default=False)
    can_view_reminders: Mapped[bool] = mapped_column(Boolean, default=True)
    can_edit_reminders: Mapped[bool] = mapped_column(Boolean, default=False)
    can_approve_requests: Mapped[bool] = mapped_column(Boolean, default=False)
    # Fernet token when a secret key is configured
    virtual_account_password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)


class HealthRecordRow(Base):
    __tablename__ = "health_records"
    __table_args__ = (Index("ix_health_records_senior_type", "senior_id", "type"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    senior_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recorded_by: Mapped[str] = mapped_column(String(128), default="")
    systolic: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    diastolic: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    heart_rate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    blood_sugar: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
