"""Authentication module for JWT bearer tokens.

Two principal types share one token format:
- ``user``: a family admin or member, loaded from ``users``
- ``caregiver``: a PIN-authenticated helper, loaded from ``caregivers``

Token issuance proper (login, PIN verification) lives outside this
service; ``create_access_token`` exists for development and tests.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError
from sqlalchemy import select

from carelog.core.config import Settings, get_settings
from carelog.core.errors import ForbiddenError, UnauthorizedError
from carelog.core.models import Caregiver, User

logger = logging.getLogger(__name__)

# Bearer token scheme (auto_error=False so we can give clear messages)
bearer_scheme = HTTPBearer(auto_error=False)

PRINCIPAL_USER = "user"
PRINCIPAL_CAREGIVER = "caregiver"


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_access_token(
    subject: UUID | str,
    principal_type: str = PRINCIPAL_USER,
    settings: Settings | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT for a user or caregiver.

    Args:
        subject: The principal id, stored in the ``sub`` claim.
        principal_type: ``"user"`` or ``"caregiver"``.
        settings: Application settings. Defaults to get_settings().
        expires_delta: Custom expiry. Defaults to the per-type config value.

    Returns:
        Encoded JWT string.
    """
    if settings is None:
        settings = get_settings()

    if expires_delta is None:
        minutes = (
            settings.jwt_caregiver_token_expire_minutes
            if principal_type == PRINCIPAL_CAREGIVER
            else settings.jwt_access_token_expire_minutes
        )
        expires_delta = timedelta(minutes=minutes)

    claims = {
        "sub": str(subject),
        "type": principal_type,
        "exp": datetime.now(UTC) + expires_delta,
    }
    # First verification key is always the signing key
    return jwt.encode(claims, settings.jwt_verification_keys[0], algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Decode and validate a JWT, trying each verification key in turn.

    Raises:
        UnauthorizedError: If no key validates the token or it has expired.
    """
    if settings is None:
        settings = get_settings()

    last_exc: PyJWTError | None = None
    for key in settings.jwt_verification_keys:
        try:
            return jwt.decode(token, key, algorithms=[settings.jwt_algorithm])
        except PyJWTError as exc:
            last_exc = exc
            continue

    raise UnauthorizedError("Invalid or expired token") from last_exc


def _principal_id(
    credentials: HTTPAuthorizationCredentials | None,
    settings: Settings,
    expected_type: str,
) -> UUID:
    if credentials is None:
        raise UnauthorizedError("Not authenticated")

    payload = decode_token(credentials.credentials, settings)

    subject = payload.get("sub")
    if not subject:
        raise UnauthorizedError("Token missing subject claim")

    token_type = payload.get("type")
    if token_type != expected_type:
        logger.warning("Rejected %s token on %s endpoint", token_type, expected_type)
        raise ForbiddenError(f"This endpoint requires a {expected_type} token")

    try:
        return UUID(subject)
    except ValueError as exc:
        raise UnauthorizedError("Invalid principal ID in token") from exc


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve the family user behind the bearer token.

    Raises:
        UnauthorizedError: Missing/invalid token, unknown or inactive user.
        ForbiddenError: A caregiver token was presented.
    """
    user_id = _principal_id(credentials, settings, PRINCIPAL_USER)

    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

    if user is None:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise UnauthorizedError("User account is disabled")
    return user


async def get_current_caregiver(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Caregiver:
    """Resolve the caregiver behind the bearer token.

    Raises:
        UnauthorizedError: Missing/invalid token, unknown or deactivated caregiver.
        ForbiddenError: A family user token was presented.
    """
    caregiver_id = _principal_id(credentials, settings, PRINCIPAL_CAREGIVER)

    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        result = await session.execute(select(Caregiver).where(Caregiver.id == caregiver_id))
        caregiver = result.scalar_one_or_none()

    if caregiver is None:
        raise UnauthorizedError("Caregiver not found")
    if not caregiver.active:
        raise UnauthorizedError("Caregiver account is deactivated")
    return caregiver
