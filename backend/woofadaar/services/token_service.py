from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from woofadaar.core.config import settings

TOKEN_TYPE = "access"


class TokenService:
    """Issues and verifies the bearer tokens that identify API users."""

    @staticmethod
    def generate_token(user_id: UUID, expires_in: timedelta | None = None) -> str:
        """Generate an access JWT, valid for ``JWT_EXPIRATION_HOURS`` by default."""
        lifetime = expires_in if expires_in is not None else timedelta(
            hours=settings.JWT_EXPIRATION_HOURS
        )
        payload = {
            "sub": str(user_id),
            "type": TOKEN_TYPE,
            "iat": datetime.now(UTC),
            "exp": datetime.now(UTC) + lifetime,
        }
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> UUID:
        """Decode and validate an access token and return the user id.

        Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError on failure.
        """
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
        if payload.get("type") != TOKEN_TYPE:
            raise jwt.InvalidTokenError("Invalid token type")
        return UUID(payload["sub"])
