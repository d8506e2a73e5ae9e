"""
Relay Token Service - signed bearer credentials for chat connections

JWT HS256 tokens carrying {id, username, role}. Issuance belongs to the
storefront's login flow; the chat layer only verifies. create_access_token
is kept here so the login flow, scripts and tests mint identical tokens.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

import jwt

from config import runtime_config
from errors import AuthError

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_HOURS = 24
REMEMBER_ME_EXPIRY_DAYS = 7

VALID_ROLES = ("customer", "staff")


def create_access_token(
    user_id: int | str,
    username: str,
    role: str,
    expires_in: Optional[float] = None,
    remember_me: bool = False,
    secret: Optional[str] = None,
) -> dict:
    """Create a JWT token. Returns {token, expires_at}.

    Args:
        user_id: Storefront user id
        username: Display name
        role: 'customer' or 'staff'
        expires_in: Lifetime in seconds (overrides the defaults)
        remember_me: Use the 7 day lifetime instead of 24 hours
        secret: Signing secret (defaults to the configured one)
    """
    if role not in VALID_ROLES:
        raise ValueError(f"Unknown role: {role}")

    if expires_in is None:
        expires_in = REMEMBER_ME_EXPIRY_DAYS * 86400 if remember_me else TOKEN_EXPIRY_HOURS * 3600

    now = time.time()
    expires_at = now + expires_in
    payload = {
        "id": user_id,
        "username": username,
        "role": role,
        "iat": int(now),
        "exp": int(expires_at),
    }
    token = jwt.encode(payload, secret or runtime_config.jwt_secret, algorithm=runtime_config.jwt_algorithm)
    return {
        "token": token,
        "expires_at": datetime.fromtimestamp(expires_at, tz=timezone.utc).isoformat(),
    }


def verify_access_token(token: str, secret: Optional[str] = None) -> dict:
    """
    Verify a JWT token. Returns the decoded claims.

    Claims contain: id, username, role.

    Raises:
        AuthError: "missing" for an empty token, "invalid" for a bad
            signature, expiry or claim set
    """
    if not token:
        raise AuthError("missing", details="Authentication required")

    try:
        claims = jwt.decode(
            token,
            secret or runtime_config.jwt_secret,
            algorithms=[runtime_config.jwt_algorithm],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthError("invalid", details="Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthError("invalid", details="Invalid token") from e

    user_id = claims.get("id", claims.get("sub"))
    if user_id is None or str(user_id).strip() == "":
        raise AuthError("invalid", details="Token has no user id")
    if claims.get("role") not in VALID_ROLES:
        raise AuthError("invalid", details=f"Unknown role: {claims.get('role')!r}")

    claims["id"] = user_id
    return claims
