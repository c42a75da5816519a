"""Admission routes for the public application form."""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_gateway.shared.admission.database import AdmissionApplication
from school_gateway.shared.admission.schemas import AdmissionRequest, AdmissionResponse
from school_gateway.shared.auth.database import get_db
from school_gateway.shared.cors import preflight_response
from school_gateway.shared.dependencies import get_admission_rate_limiter
from school_gateway.shared.errors import PersistenceError, RateLimitError, ValidationError
from school_gateway.shared.rate_limit.rate_limiter import RateLimiter, get_client_ip
from school_gateway.shared.validation.input_validation import is_honeypot_filled
from school_gateway.shared.validation.payloads import parse_json_payload

router = APIRouter(prefix="/api/admissions", tags=["admissions"])

SUCCESS_MESSAGE = "Application submitted successfully!"


@router.options("/submit", include_in_schema=False)
async def admission_preflight(request: Request):
    return preflight_response(request)


@router.post("/submit", response_model=AdmissionResponse, status_code=status.HTTP_200_OK)
async def submit_admission_form(
    request: Request,
    response: Response,
    rate_limiter: RateLimiter = Depends(get_admission_rate_limiter),
    db: Session = Depends(get_db),
):
    """Submit an admission application (max 3 per hour per client IP)."""
    client_ip = get_client_ip(request)
    decision = rate_limiter.check(client_ip)
    if not decision.allowed:
        logging.warning(f"Admission form rate limit exceeded for {client_ip}")
        raise RateLimitError(retry_after=rate_limiter.retry_after_seconds)

    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

    application = await parse_json_payload(request, AdmissionRequest)

    if is_honeypot_filled(application.honeypot):
        logging.info(f"Admission form honeypot triggered from {client_ip}")
        return AdmissionResponse(success=True, message=SUCCESS_MESSAGE)

    errors = application.field_errors()
    if errors:
        raise ValidationError(details=errors)

    try:
        db.add(AdmissionApplication(**application.to_record()))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to save admission application: {str(e)}", exc_info=True)
        raise PersistenceError("Failed to submit application. Please try again.")

    logging.info(f"Admission application saved from {client_ip}")
    return AdmissionResponse(success=True, message=SUCCESS_MESSAGE)
