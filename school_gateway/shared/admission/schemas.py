"""Pydantic schemas for admission API."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic.alias_generators import to_camel

from school_gateway.shared.validation.input_validation import (
    clean_optional,
    is_allowed_value,
    is_length_between,
    is_valid_email,
    is_valid_name,
    is_valid_phone,
    is_within_max_length,
    parse_date,
    validate_date_of_birth,
)

GENDERS = ("male", "female", "other")
MAX_GRADE_LENGTH = 50
MAX_PREVIOUS_SCHOOL_LENGTH = 200
MAX_ADDITIONAL_INFO_LENGTH = 1000


class AdmissionRequest(BaseModel):
    """Schema for admission form submission. Wire keys are camelCase."""
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    student_name: Optional[StrictStr] = None
    date_of_birth: Optional[StrictStr] = None
    gender: Optional[StrictStr] = None
    parent_name: Optional[StrictStr] = None
    parent_email: Optional[StrictStr] = None
    parent_phone: Optional[StrictStr] = None
    address: Optional[StrictStr] = None
    grade_applying_for: Optional[StrictStr] = None
    previous_school: Optional[StrictStr] = None
    additional_info: Optional[StrictStr] = None
    honeypot: Any = None

    def field_errors(self) -> List[str]:
        """Run every field check and return all violations in form order."""
        errors = []

        if not is_valid_name(self.student_name):
            errors.append("Student name must be between 2 and 100 characters")

        dob_valid, dob_error = validate_date_of_birth(self.date_of_birth)
        if not dob_valid:
            errors.append(dob_error or "Invalid date of birth")

        if not is_allowed_value(self.gender, GENDERS):
            errors.append("Please select a valid gender")

        if not is_valid_name(self.parent_name):
            errors.append("Parent name must be between 2 and 100 characters")

        if not is_valid_email(self.parent_email):
            errors.append("Please provide a valid email address")

        if not is_valid_phone(self.parent_phone):
            errors.append("Please provide a valid phone number")

        if not is_length_between(self.address, 5, 500):
            errors.append("Address must be between 5 and 500 characters")

        if not is_length_between(self.grade_applying_for, 1, MAX_GRADE_LENGTH):
            errors.append("Please select a valid grade")

        if not is_within_max_length(self.previous_school, MAX_PREVIOUS_SCHOOL_LENGTH):
            errors.append(f"Previous school name must be no more than {MAX_PREVIOUS_SCHOOL_LENGTH} characters")

        if not is_within_max_length(self.additional_info, MAX_ADDITIONAL_INFO_LENGTH):
            errors.append(f"Additional info must be no more than {MAX_ADDITIONAL_INFO_LENGTH} characters")

        return errors

    def to_record(self) -> dict:
        """Normalized column values for the admission_applications table."""
        return {
            "student_name": self.student_name.strip(),
            "date_of_birth": parse_date(self.date_of_birth),
            "gender": self.gender.strip().lower(),
            "parent_name": self.parent_name.strip(),
            "parent_email": self.parent_email.strip().lower(),
            "parent_phone": self.parent_phone.strip(),
            "address": self.address.strip(),
            "grade_applying_for": self.grade_applying_for.strip(),
            "previous_school": clean_optional(self.previous_school),
            "additional_info": clean_optional(self.additional_info),
        }


class AdmissionResponse(BaseModel):
    """Schema for admission form response."""
    success: bool
    message: str
