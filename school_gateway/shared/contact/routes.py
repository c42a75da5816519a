"""Contact routes for messages sent through the public contact form."""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_gateway.shared.auth.database import get_db
from school_gateway.shared.contact.database import ContactSubmission
from school_gateway.shared.contact.schemas import ContactRequest, ContactResponse
from school_gateway.shared.cors import preflight_response
from school_gateway.shared.dependencies import get_contact_rate_limiter
from school_gateway.shared.errors import PersistenceError, RateLimitError, ValidationError
from school_gateway.shared.rate_limit.rate_limiter import RateLimiter, get_client_ip
from school_gateway.shared.validation.input_validation import is_honeypot_filled
from school_gateway.shared.validation.payloads import parse_json_payload

router = APIRouter(prefix="/api/contact", tags=["contact"])

SUCCESS_MESSAGE = "Thank you! We'll get back to you soon."


@router.options("/submit", include_in_schema=False)
async def contact_preflight(request: Request):
    return preflight_response(request)


@router.post("/submit", response_model=ContactResponse, status_code=status.HTTP_200_OK)
async def submit_contact_form(
    request: Request,
    response: Response,
    rate_limiter: RateLimiter = Depends(get_contact_rate_limiter),
    db: Session = Depends(get_db),
):
    """
    Submit a contact form message.

    - Rate limited per client IP before the body is read, so malformed
      requests still consume a slot
    - Honeypot submissions get the normal success response and are dropped
    - Every field is validated and all problems are returned together
    """
    client_ip = get_client_ip(request)
    decision = rate_limiter.check(client_ip)
    if not decision.allowed:
        logging.warning(f"Contact form rate limit exceeded for {client_ip}")
        raise RateLimitError(retry_after=rate_limiter.retry_after_seconds)

    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

    contact_data = await parse_json_payload(request, ContactRequest)

    # Honeypot check - if filled, it's likely a bot
    if is_honeypot_filled(contact_data.honeypot):
        logging.info(f"Contact form honeypot triggered from {client_ip}")
        return ContactResponse(success=True, message=SUCCESS_MESSAGE)

    errors = contact_data.field_errors()
    if errors:
        raise ValidationError(details=errors)

    try:
        db.add(ContactSubmission(**contact_data.to_record()))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to save contact submission: {str(e)}", exc_info=True)
        raise PersistenceError("Failed to submit. Please try again.")

    logging.info(f"Contact submission saved from {client_ip}")
    return ContactResponse(success=True, message=SUCCESS_MESSAGE)
