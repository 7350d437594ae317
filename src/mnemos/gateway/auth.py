"""Credential verification for incoming connections."""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, runtime_checkable

import jwt

from mnemos.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass
class Identity:
    """A verified caller."""

    user_id: str
    claims: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class CredentialVerifier(Protocol):
    """Resolves a credential to an identity or raises :class:`AuthError`."""

    async def verify(self, credential: str | None) -> Identity:
        ...


class JWTCredentialVerifier:
    """Verifies signed, expiring JWTs. The ``sub`` claim is the user id."""

    def __init__(self, secret: str, algorithm: str = "HS256", leeway: int = 0):
        """Initialize the verifier.

        Args:
            secret: HMAC signing secret
            algorithm: Accepted signing algorithm
            leeway: Clock skew tolerance in seconds
        """
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.leeway = leeway

    async def verify(self, credential: str | None) -> Identity:
        """Decode and validate a token.

        Raises:
            AuthError: If the token is missing, malformed, badly signed or expired
        """
        if not credential:
            raise AuthError("missing credential")

        try:
            claims = jwt.decode(
                credential,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
                leeway=self.leeway,
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthError("token expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected credential: %s", e)
            raise AuthError("invalid token") from e

        user_id = claims.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise AuthError("invalid token")
        return Identity(user_id=user_id, claims=claims)


def issue_token(
    user_id: str,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(hours=1),
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Create a signed token for ``user_id`` (development and tests).

    Args:
        user_id: Token subject
        secret: HMAC signing secret
        algorithm: Signing algorithm
        expires_delta: Token lifetime
        additional_claims: Extra claims merged into the payload

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "jti": secrets.token_urlsafe(16),
    }
    if additional_claims:
        payload.update(additional_claims)
    return jwt.encode(payload, secret, algorithm=algorithm)
