"""
JWT authentication utilities for the web API.

Sessions are issued by the identity service; this API only verifies them.
A token arrives either in the HttpOnly "session" cookie (browser) or as an
"Authorization: Bearer" header (API clients), signed HS256 with JWT_SECRET.
Claims: sub (user id), name, email.
"""

import os
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, Request

from core.models import Caller, normalize_email

JWT_SECRET = os.environ.get("JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24


def create_jwt(user_id: str, name: str, email: str) -> str:
    """
    Create a signed JWT token for a user.

    Used by tooling and tests; production sessions come from the identity
    service with the same claims.
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "name": name,
        "email": email,
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_jwt(token: str) -> dict | None:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token string

    Returns:
        Decoded payload dict if valid, None if invalid
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def _get_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        return authorization.removeprefix("Bearer ").strip()
    return request.cookies.get("session")


async def get_current_user(request: Request) -> Caller:
    """
    FastAPI dependency to get the current authenticated user.

    Raises:
        HTTPException: 401 if not authenticated or invalid token
    """
    token = _get_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = verify_jwt(token)
    if not payload or not payload.get("sub") or not payload.get("email"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    email = normalize_email(payload["email"])
    return Caller(
        id=str(payload["sub"]),
        name=payload.get("name") or email.split("@")[0],
        email=email,
    )
