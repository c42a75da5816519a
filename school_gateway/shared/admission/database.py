"""Database models for admission applications."""

import uuid
from datetime import datetime

from sqlalchemy import Column, String, Text, Date, DateTime, Index

from school_gateway.shared.auth.database import Base


class AdmissionApplication(Base):
    """An admission application submitted by a parent or guardian."""
    __tablename__ = "admission_applications"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    student_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String, nullable=False)  # male, female, other
    parent_name = Column(String(100), nullable=False)
    parent_email = Column(String(255), nullable=False)
    parent_phone = Column(String(20), nullable=False)
    address = Column(String(500), nullable=False)
    grade_applying_for = Column(String(50), nullable=False)
    previous_school = Column(String(200), nullable=True)
    additional_info = Column(Text, nullable=True)
    status = Column(String, default="pending", nullable=True)  # pending, reviewed, accepted, rejected
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_admission_applications_parent_email', 'parent_email'),
        Index('idx_admission_applications_status', 'status'),
    )
