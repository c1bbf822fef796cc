"""
Authentication, Sessions & One-Time Passwords

Every access token is backed by a ``sessions`` row keyed by the token's
``jti``; deleting the row revokes the token. Each login attempt writes a
``login_logs`` row with IP, user agent, device class and best-effort
geolocation.
"""

import json
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core import security
from dinehub.core.config import get_settings
from dinehub.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from dinehub.database import utcnow
from dinehub.models import LoginLog, LoginStatus, Role, RoleName, User, UserSession
from dinehub.services import settings as settings_service
from dinehub.services.geo import get_geo_service
from dinehub.services.notifications import get_notification_service

logger = logging.getLogger(__name__)

ROLE_DISPLAY_NAMES = {
    RoleName.ADMIN: "Administrator",
    RoleName.RESTAURANT: "Restaurant Owner",
    RoleName.MANAGER: "Restaurant Manager",
    RoleName.SUPERVISOR: "Restaurant Supervisor",
    RoleName.KITCHEN: "Kitchen Staff",
    RoleName.CUSTOMER: "Customer",
}


# =============================================================================
# ROLES & USERS
# =============================================================================

async def ensure_roles(db: AsyncSession) -> None:
    """Insert any missing built-in role."""
    result = await db.execute(select(Role.name))
    existing = set(result.scalars().all())
    for role_name, display in ROLE_DISPLAY_NAMES.items():
        if role_name.value not in existing:
            db.add(Role(name=role_name.value, display_name=display))
    await db.commit()


async def get_role(db: AsyncSession, role_name: RoleName) -> Role:
    result = await db.execute(select(Role).where(Role.name == role_name.value))
    role = result.scalar_one_or_none()
    if role is None:
        await ensure_roles(db)
        result = await db.execute(select(Role).where(Role.name == role_name.value))
        role = result.scalar_one()
    return role


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str = "",
    phone_number: Optional[str] = None,
    role_name: RoleName = RoleName.CUSTOMER,
    restaurant_id: Optional[int] = None,
) -> User:
    """Create and commit a user; duplicate email is a Conflict."""
    if await get_user_by_email(db, email) is not None:
        raise ConflictError(f"Email {email} is already registered")

    role = await get_role(db, role_name)
    user = User(
        email=email.lower(),
        password_hash=security.hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone_number=phone_number,
        restaurant_id=restaurant_id,
    )
    user.role = role
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Email {email} is already registered")
    await db.refresh(user)
    logger.info(f"👤 User {user.id} created ({role_name.value})")
    return user


async def signup(db: AsyncSession, email: str, password: str, first_name: str,
                 last_name: str = "", phone_number: Optional[str] = None) -> User:
    return await create_user(db, email, password, first_name, last_name, phone_number, RoleName.CUSTOMER)


# =============================================================================
# LOGIN & SESSIONS
# =============================================================================

def device_class(user_agent: Optional[str]) -> str:
    ua = (user_agent or "").lower()
    if "ipad" in ua or "tablet" in ua:
        return "Tablet"
    if "mobi" in ua or "iphone" in ua or "android" in ua:
        return "Mobile"
    return "Desktop"


async def _record_login(
    db: AsyncSession, user: User, ip_address: str, user_agent: Optional[str], status: LoginStatus
) -> LoginLog:
    location = await get_geo_service().locate_ip(ip_address)
    log = LoginLog(
        user_id=user.id,
        ip_address=ip_address,
        user_agent=user_agent,
        device=device_class(user_agent),
        location=json.dumps(location.to_dict()) if location.success else None,
        status=status,
    )
    db.add(log)
    await db.flush()
    return log


async def login(
    db: AsyncSession,
    email: str,
    password: str,
    ip_address: str = "unknown",
    user_agent: Optional[str] = None,
) -> tuple[str, UserSession, User]:
    """
    Verify credentials and open a session.

    Returns:
        (access token, session row, user)
    """
    user = await get_user_by_email(db, email)
    if user is None:
        logger.warning(f"🔒 Login failed for unknown email {email}")
        raise UnauthorizedError("Invalid email or password")

    if not security.verify_password(password, user.password_hash):
        await _record_login(db, user, ip_address, user_agent, LoginStatus.FAILED)
        await db.commit()
        logger.warning(f"🔒 Login failed for user {user.id}: bad password")
        raise UnauthorizedError("Invalid email or password")

    if not user.is_active:
        await _record_login(db, user, ip_address, user_agent, LoginStatus.FAILED)
        await db.commit()
        raise ForbiddenError("Account is deactivated")

    log = await _record_login(db, user, ip_address, user_agent, LoginStatus.SUCCESS)
    session = UserSession(
        user_id=user.id,
        token_id=security.new_token_id(),
        expires=security.token_expiry(),
        login_log_id=log.id,
    )
    db.add(session)
    await db.commit()

    token = security.create_access_token(
        user_id=user.id,
        role=user.role_name,
        restaurant_id=user.restaurant_id,
        token_id=session.token_id,
        expires_at=session.expires,
    )
    logger.info(f"🔓 User {user.id} logged in from {ip_address}")
    return token, session, user


async def resolve_token(db: AsyncSession, token: str) -> tuple[User, UserSession]:
    """Map a bearer token to its live session and active user."""
    claims = security.decode_access_token(token)
    if claims is None or "jti" not in claims:
        raise UnauthorizedError("Invalid or expired token")

    result = await db.execute(select(UserSession).where(UserSession.token_id == claims["jti"]))
    session = result.scalar_one_or_none()
    if session is None or session.expires <= utcnow():
        raise UnauthorizedError("Session expired or revoked")

    user = await db.get(User, session.user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("User is not active")

    session.last_active_at = utcnow()
    await db.commit()
    return user, session


async def logout(db: AsyncSession, session: UserSession) -> None:
    await db.execute(delete(UserSession).where(UserSession.id == session.id))
    await db.commit()
    logger.info(f"👋 Session {session.id} closed")


async def logout_all(db: AsyncSession, user_id: int) -> int:
    """Revoke every session of a user; returns how many were removed."""
    result = await db.execute(delete(UserSession).where(UserSession.user_id == user_id))
    await db.commit()
    logger.info(f"👋 User {user_id} logged out of {result.rowcount} sessions")
    return result.rowcount


async def list_sessions(db: AsyncSession, user_id: Optional[int] = None, active_only: bool = True) -> list[UserSession]:
    query = select(UserSession).order_by(UserSession.last_active_at.desc())
    if user_id is not None:
        query = query.where(UserSession.user_id == user_id)
    if active_only:
        query = query.where(UserSession.expires > utcnow())
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_login_logs(
    db: AsyncSession,
    user_id: Optional[int] = None,
    status: Optional[LoginStatus] = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[int, list[LoginLog]]:
    """Login history, newest first."""
    filters = []
    if user_id is not None:
        filters.append(LoginLog.user_id == user_id)
    if status is not None:
        filters.append(LoginLog.status == status)

    total = (await db.execute(select(func.count(LoginLog.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(LoginLog)
        .where(*filters)
        .order_by(LoginLog.created_at.desc(), LoginLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return total, list(result.scalars().all())


async def purge_expired_sessions(db: AsyncSession) -> int:
    """Delete sessions whose expiry lies further back than the retention window."""
    cutoff = utcnow() - timedelta(days=get_settings().session_retention_days)
    result = await db.execute(delete(UserSession).where(UserSession.expires < cutoff))
    await db.commit()
    return result.rowcount


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not security.verify_password(current_password, user.password_hash):
        raise BadRequestError("Current password is incorrect")
    user.password_hash = security.hash_password(new_password)
    await db.commit()
    logger.info(f"🔑 User {user.id} changed password")


# =============================================================================
# ONE-TIME PASSWORDS
# =============================================================================

async def _otp_channels(db: AsyncSession) -> tuple[bool, bool]:
    email_on = await settings_service.get_bool(db, settings_service.OTP_EMAIL_ENABLED)
    phone_on = await settings_service.get_bool(db, settings_service.OTP_PHONE_ENABLED)
    if not (email_on or phone_on):
        raise BadRequestError("OTP verification is disabled")
    return email_on, phone_on


async def request_otp(db: AsyncSession, email: str) -> tuple[list[str], int, str]:
    """
    Issue a new OTP and send it over every enabled channel.

    Returns:
        (channels that accepted the message, validity in minutes, clear code)
    """
    email_on, phone_on = await _otp_channels(db)
    config = get_settings()

    user = await get_user_by_email(db, email)
    if user is None:
        raise NotFoundError("User", email)

    length = await settings_service.get_int(db, settings_service.OTP_LENGTH, config.otp_length)
    expiry = await settings_service.get_int(db, settings_service.OTP_EXPIRY_MINUTES, config.otp_expiry_minutes)

    code = security.generate_otp(length)
    user.otp_digest = security.otp_digest(code)
    user.otp_expires = utcnow() + timedelta(minutes=expiry)
    user.otp_tries = 0
    await db.commit()

    delivery = await get_notification_service().send_otp(
        code,
        expiry,
        email=user.email if email_on else None,
        phone=user.phone_number if phone_on else None,
    )
    if not delivery.success:
        logger.error(f"❌ OTP delivery failed for user {user.id}: {delivery.errors}")
        raise ServiceUnavailableError("Failed to send OTP")

    logger.info(f"🔐 OTP sent to user {user.id} via {delivery.channels_sent}")
    return delivery.channels_sent, expiry, code


async def verify_otp(db: AsyncSession, email: str, code: str) -> User:
    """
    Check an OTP; success clears it and marks the email verified.

    Every failed check counts against ``OTP_MAX_ATTEMPTS``.
    """
    await _otp_channels(db)
    user = await get_user_by_email(db, email)
    if user is None:
        raise NotFoundError("User", email)

    max_attempts = await settings_service.get_int(
        db, settings_service.OTP_MAX_ATTEMPTS, get_settings().otp_max_attempts
    )
    if user.otp_tries >= max_attempts:
        raise BadRequestError("Maximum OTP attempts exceeded")

    expired = user.otp_expires is None or user.otp_expires < utcnow()
    if expired or not security.otp_matches(code, user.otp_digest):
        await db.execute(
            update(User).where(User.id == user.id).values(otp_tries=User.otp_tries + 1)
        )
        await db.commit()
        await db.refresh(user)
        logger.warning(f"🔐 OTP check failed for user {user.id} (try {user.otp_tries}/{max_attempts})")
        if user.otp_tries >= max_attempts:
            raise BadRequestError("Maximum OTP attempts exceeded")
        raise BadRequestError("Invalid or expired OTP")

    user.otp_digest = None
    user.otp_expires = None
    user.otp_tries = 0
    user.email_verified = True
    await db.commit()
    logger.info(f"🔐 OTP verified for user {user.id}")
    return user


async def reset_password_with_otp(db: AsyncSession, email: str, code: str, new_password: str) -> int:
    """Verify the OTP, set the new password and revoke all sessions."""
    user = await verify_otp(db, email, code)
    user.password_hash = security.hash_password(new_password)
    await db.commit()
    return await logout_all(db, user.id)
