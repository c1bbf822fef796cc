"""
Security Primitives

Password hashing (bcrypt), access tokens (PyJWT, HS256) and one-time
password digests (HMAC-SHA256). Nothing here touches the database; session
bookkeeping lives in ``dinehub.services.auth``.
"""

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt

from dinehub.core.config import get_settings

JWT_ALGORITHM = "HS256"


# =============================================================================
# PASSWORDS
# =============================================================================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# =============================================================================
# ACCESS TOKENS
# =============================================================================

def new_token_id() -> str:
    return uuid.uuid4().hex


def create_access_token(
    user_id: int,
    role: str,
    restaurant_id: Optional[int],
    token_id: str,
    expires_at: datetime,
) -> str:
    """
    Sign an access token.

    Args:
        user_id: Subject of the token
        role: Role name at issue time
        restaurant_id: Tenant of staff users, None otherwise
        token_id: ``jti`` matching the backing session row
        expires_at: Naive UTC expiry, same value stored on the session

    Returns:
        Encoded JWT
    """
    payload = {
        "sub": str(user_id),
        "role": role,
        "restaurant_id": restaurant_id,
        "jti": token_id,
        "exp": expires_at.replace(tzinfo=timezone.utc),
    }
    return jwt.encode(payload, get_settings().jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """Return the token claims, or None if the token is invalid or expired."""
    try:
        return jwt.decode(token, get_settings().jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


def token_expiry() -> datetime:
    settings = get_settings()
    return datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(
        minutes=settings.access_token_expire_minutes
    )


# =============================================================================
# ONE-TIME PASSWORDS
# =============================================================================

def generate_otp(length: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def otp_digest(code: str) -> str:
    """Keyed digest stored instead of the clear OTP."""
    key = get_settings().jwt_secret.encode("utf-8")
    return hmac.new(key, code.encode("utf-8"), hashlib.sha256).hexdigest()


def otp_matches(code: str, digest: Optional[str]) -> bool:
    if not digest:
        return False
    return hmac.compare_digest(otp_digest(code), digest)


def generate_pickup_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"
