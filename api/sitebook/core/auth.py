"""Bearer token handling.

Tokens are minted by the external identity service; this service shares the
signing secret and only needs to read the principal id and role out of them.
``create_access_token`` mirrors the issuer's format for scripts and tests.
"""

from datetime import UTC, datetime, timedelta

from jose import jwt

from sitebook.core.config import settings


def create_access_token(subject: str, extra: dict | None = None) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": subject, "exp": expire, "type": "access"}
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Raises JWTError on failure, including expiry."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
