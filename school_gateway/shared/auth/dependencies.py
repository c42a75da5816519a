"""Authentication dependencies for protected routes."""

import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_gateway.shared.auth.auth import Identity, TokenAuthService
from school_gateway.shared.auth.database import UserRole
from school_gateway.shared.dependencies import get_auth_service
from school_gateway.shared.errors import AuthenticationError, AuthorizationError, PersistenceError

# Use auto_error=False so a missing header reaches get_current_identity
# and is reported in the gateway's own error envelope
security = HTTPBearer(auto_error=False)


def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    auth_service: TokenAuthService = Depends(get_auth_service),
) -> Identity:
    """Get the current authenticated identity from the bearer token."""
    if credentials is None:
        raise AuthenticationError("Unauthorized")

    identity = auth_service.resolve_identity(credentials.credentials)
    if identity is None:
        raise AuthenticationError("Authentication required")

    return identity


def has_role(db: Session, user_id: str, role: str) -> bool:
    """Check the user_roles table for a (user_id, role) membership."""
    membership = db.query(UserRole).filter(
        UserRole.user_id == user_id,
        UserRole.role == role,
    ).first()
    return membership is not None


def require_role(db: Session, identity: Identity, role: str) -> None:
    """
    Raise AuthorizationError unless the identity holds ``role``.
    A store failure is reported as PersistenceError, never as permission granted.
    """
    try:
        allowed = has_role(db, identity.id, role)
    except SQLAlchemyError as e:
        logging.error(f"Failed to look up role '{role}' for user {identity.id}: {str(e)}")
        raise PersistenceError("Failed to verify permissions. Please try again.")

    if not allowed:
        logging.info(f"User {identity.id} denied: missing role '{role}'")
        raise AuthorizationError(f"{role.capitalize()} privileges required for this bucket")
