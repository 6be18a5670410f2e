"""
Database Models
SQLAlchemy ORM models for CareSync
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Date, Enum, Index, JSON, text
from datetime import datetime
from enum import Enum as PyEnum

from database import Base
from config import TableNames


# ==================== ENUMS ====================

class UserRole(str, PyEnum):
    """Account roles; immutable once the user exists"""
    PATIENT = "patient"
    CAREGIVER = "caregiver"
    ADMIN = "admin"
    HEALTHCARE_PROVIDER = "healthcareprovider"


class AdherenceStatus(str, PyEnum):
    """Outcome of a scheduled dose"""
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"


# ==================== MODELS ====================
# Entities reference each other by id only; no ORM back-references.

class User(Base):
    """Account known to the engine (authentication happens upstream)"""
    __tablename__ = TableNames.USERS

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    phone = Column(String(20))
    role = Column(Enum(UserRole), nullable=False, default=UserRole.PATIENT)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Medication(Base):
    """A prescribed medication and its remaining stock"""
    __tablename__ = TableNames.MEDICATIONS

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)

    name = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=False)  # e.g. "500"
    dosage_unit = Column(String(20), nullable=False, default="mg")

    # Frequency
    frequency = Column(String(100), nullable=False, default="1x daily")
    times_per_day = Column(Integer, nullable=False, default=1)

    # Stock
    total_quantity = Column(Integer, nullable=False, default=0)
    remaining_quantity = Column(Integer, nullable=False, default=0)

    instructions = Column(Text)

    # Soft delete only; history must stay for past adherence records
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(Date)
    end_date = Column(Date)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_medications_user_active", "user_id", "is_active"),
    )


class CaregiverPatient(Base):
    """Read-access grant from a patient to a caregiver"""
    __tablename__ = TableNames.CAREGIVER_PATIENTS

    id = Column(Integer, primary_key=True, index=True)
    caregiver_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)

    relationship_type = Column(String(50), nullable=False, default="other")
    permissions = Column(JSON, default=dict)

    # pending: verified=False, active=True; accepted: verified=True; closed: active=False
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index(
            "uq_caregiver_patient_active",
            "caregiver_id", "patient_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("ix_caregiver_patients_patient", "patient_id"),
    )


class AdherenceRecord(Base):
    """A reported intake event for one dose"""
    __tablename__ = TableNames.ADHERENCE_RECORDS

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)
    medication_id = Column(Integer, ForeignKey(f"{TableNames.MEDICATIONS}.id"), nullable=False)

    status = Column(Enum(AdherenceStatus), nullable=False, default=AdherenceStatus.TAKEN)
    scheduled_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    taken_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    notes = Column(Text)

    # True when this record actually removed one unit from stock
    stock_decremented = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_adherence_user_taken", "user_id", "taken_at"),
        Index("ix_adherence_medication", "medication_id"),
    )


class AdherenceCorrection(Base):
    """Append-only audit entry written before an adherence record is changed"""
    __tablename__ = TableNames.ADHERENCE_CORRECTIONS

    id = Column(Integer, primary_key=True, index=True)
    record_id = Column(Integer, ForeignKey(f"{TableNames.ADHERENCE_RECORDS}.id"), nullable=False, index=True)
    corrected_by = Column(Integer, ForeignKey(f"{TableNames.USERS}.id"), nullable=False)

    previous = Column(JSON, nullable=False)
    changes = Column(JSON, nullable=False)

    corrected_at = Column(DateTime, default=datetime.utcnow)
