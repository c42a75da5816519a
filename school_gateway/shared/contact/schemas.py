"""Pydantic schemas for contact API."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, StrictStr

from school_gateway.shared.validation.input_validation import (
    is_length_between,
    is_valid_email,
    is_valid_name,
)


class ContactRequest(BaseModel):
    """Schema for contact form submission."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[StrictStr] = None
    email: Optional[StrictStr] = None
    subject: Optional[StrictStr] = None
    message: Optional[StrictStr] = None
    honeypot: Any = None  # Hidden field, only bots fill it in

    def field_errors(self) -> List[str]:
        """Run every field check and return all violations in form order."""
        errors = []
        if not is_valid_name(self.name):
            errors.append("Name must be between 2 and 100 characters")
        if not is_valid_email(self.email):
            errors.append("Please provide a valid email address")
        if not is_length_between(self.subject, 3, 200):
            errors.append("Subject must be between 3 and 200 characters")
        if not is_length_between(self.message, 10, 2000):
            errors.append("Message must be between 10 and 2000 characters")
        return errors

    def to_record(self) -> dict:
        """Normalized column values for the contact_submissions table."""
        return {
            "name": self.name.strip(),
            "email": self.email.strip().lower(),
            "subject": self.subject.strip(),
            "message": self.message.strip(),
        }


class ContactResponse(BaseModel):
    """Schema for contact form response."""
    success: bool
    message: str
