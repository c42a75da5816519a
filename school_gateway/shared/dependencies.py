"""FastAPI dependencies exposing components owned by the application."""

from fastapi import Request

from school_gateway.shared.rate_limit.rate_limiter import RateLimiter
from school_gateway.shared.upload.storage import ObjectStore
from school_gateway.shared.auth.auth import TokenAuthService


def get_contact_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.contact_rate_limiter


def get_admission_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.admission_rate_limiter


def get_auth_service(request: Request) -> TokenAuthService:
    return request.app.state.auth_service


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_buckets(request: Request) -> dict:
    return request.app.state.buckets
