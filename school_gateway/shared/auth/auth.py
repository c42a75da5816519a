"""Bearer token verification for identities issued by the hosted auth service."""

import logging
from dataclasses import dataclass
from typing import Optional

from jose import JWTError, jwt


@dataclass(frozen=True)
class Identity:
    """Authenticated caller resolved from a bearer token."""
    id: str
    email: Optional[str] = None


class TokenAuthService:
    """Resolves access tokens signed with the auth service's JWT secret."""

    def __init__(self, secret: Optional[str], algorithm: str = "HS256", audience: Optional[str] = "authenticated"):
        if not secret:
            logging.warning(
                "AUTH_JWT_SECRET environment variable is not set. "
                "Every authenticated upload will be rejected."
            )
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def verify_token(self, token: str) -> Optional[dict]:
        """
        Verify and decode a JWT token.

        Args:
            token: JWT token string

        Returns:
            Decoded token payload or None if invalid
        """
        if not self.secret:
            logging.error("AUTH_JWT_SECRET is not set. Cannot verify token.")
            return None
        options = {"verify_aud": self.audience is not None}
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except JWTError:
            return None

    def resolve_identity(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None
        payload = self.verify_token(token)
        if payload is None:
            return None
        user_id = payload.get("sub")
        if not user_id:
            return None
        return Identity(id=str(user_id), email=payload.get("email"))
