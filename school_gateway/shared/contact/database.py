"""Database models for contact form submissions."""

import uuid
from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, Index

# Import Base from auth database to use the same declarative base
from school_gateway.shared.auth.database import Base


class ContactSubmission(Base):
    """A validated message sent through the public contact form."""
    __tablename__ = "contact_submissions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String, default="new", nullable=True)  # new, read, replied
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_contact_submissions_email', 'email'),
    )
