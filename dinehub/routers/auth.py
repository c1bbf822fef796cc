"""
Authentication Endpoints

Signup, login/logout, session management and OTP flows.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.config import get_settings
from dinehub.database import get_db
from dinehub.dependencies import AuthContext, client_ip, get_current_user, require_roles
from dinehub.models import LoginStatus, RoleName
from dinehub.schemas import (
    ErrorResponse,
    LoginLogListResponse,
    LoginLogResponse,
    LoginRequest,
    LogoutAllResponse,
    MessageResponse,
    OTPRequest,
    OTPSentResponse,
    OTPVerifyRequest,
    PasswordChangeRequest,
    PasswordResetRequest,
    SessionResponse,
    SignupRequest,
    TokenResponse,
    UserResponse,
)
from dinehub.services import auth as auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/signup",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Register a customer account",
)
async def signup(data: SignupRequest, db: AsyncSession = Depends(get_db)) -> UserResponse:
    user = await auth_service.signup(
        db, data.email, data.password, data.first_name, data.last_name, data.phone_number
    )
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Log in and open a session",
)
async def login(
    data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_agent: Optional[str] = Header(None),
    x_forwarded_for: Optional[str] = Header(None),
) -> TokenResponse:
    """
    Exchange credentials for a bearer token.

    Every attempt against a known account is written to the login history
    with IP, device class and (best-effort) location.
    """
    ip_address = client_ip(x_forwarded_for, request.client.host if request.client else None)
    token, session, user = await auth_service.login(db, data.email, data.password, ip_address, user_agent)
    return TokenResponse(
        access_token=token,
        expires_at=session.expires,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse, summary="Current user")
async def me(ctx: AuthContext = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(ctx.user)


@router.post("/logout", response_model=MessageResponse, summary="Close the current session")
async def logout(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await auth_service.logout(db, ctx.session)
    return MessageResponse(message="Logged out")


@router.post("/logout-all", response_model=LogoutAllResponse, summary="Log out of every device")
async def logout_all(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> LogoutAllResponse:
    revoked = await auth_service.logout_all(db, ctx.user.id)
    return LogoutAllResponse(sessions_revoked=revoked)


@router.post("/change-password", response_model=MessageResponse, responses={400: {"model": ErrorResponse}})
async def change_password(
    data: PasswordChangeRequest,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await auth_service.change_password(db, ctx.user, data.current_password, data.new_password)
    return MessageResponse(message="Password changed")


# =============================================================================
# ONE-TIME PASSWORDS
# =============================================================================

@router.post(
    "/otp/request",
    response_model=OTPSentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Send a one-time password",
)
async def request_otp(data: OTPRequest, db: AsyncSession = Depends(get_db)) -> OTPSentResponse:
    """
    Send a fresh OTP over the enabled channels (email and/or SMS).

    In development mode the code is echoed back for local testing.
    """
    channels, expiry, code = await auth_service.request_otp(db, data.email)
    return OTPSentResponse(
        message=f"OTP sent via {', '.join(channels)}",
        channels=channels,
        expires_in_minutes=expiry,
        otp=code if get_settings().is_development else None,
    )


@router.post(
    "/otp/verify",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def verify_otp(data: OTPVerifyRequest, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    await auth_service.verify_otp(db, data.email, data.otp)
    return MessageResponse(message="OTP verified")


@router.post("/password/reset", response_model=LogoutAllResponse, responses={400: {"model": ErrorResponse}})
async def reset_password(data: PasswordResetRequest, db: AsyncSession = Depends(get_db)) -> LogoutAllResponse:
    revoked = await auth_service.reset_password_with_otp(db, data.email, data.otp, data.new_password)
    return LogoutAllResponse(sessions_revoked=revoked)


# =============================================================================
# ADMIN: SESSIONS
# =============================================================================

@router.get("/sessions", response_model=list[SessionResponse], summary="List live sessions")
async def list_sessions(
    user_id: Optional[int] = Query(None),
    _: AuthContext = Depends(require_roles(RoleName.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> list[SessionResponse]:
    sessions = await auth_service.list_sessions(db, user_id)
    return [SessionResponse.model_validate(s) for s in sessions]


@router.post("/sessions/{user_id}/revoke", response_model=LogoutAllResponse, summary="Log a user out everywhere")
async def revoke_user_sessions(
    user_id: int,
    _: AuthContext = Depends(require_roles(RoleName.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> LogoutAllResponse:
    revoked = await auth_service.logout_all(db, user_id)
    return LogoutAllResponse(sessions_revoked=revoked)


# =============================================================================
# LOGIN HISTORY
# =============================================================================

@router.get("/login-logs/me", response_model=LoginLogListResponse, summary="My login history")
async def my_login_logs(
    status: Optional[LoginStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> LoginLogListResponse:
    total, logs = await auth_service.list_login_logs(db, ctx.user.id, status, page, limit)
    return LoginLogListResponse(
        total=total, page=page, limit=limit, logs=[LoginLogResponse.model_validate(entry) for entry in logs]
    )


@router.get("/login-logs", response_model=LoginLogListResponse, summary="Login history of all users")
async def list_login_logs(
    user_id: Optional[int] = Query(None),
    status: Optional[LoginStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    _: AuthContext = Depends(require_roles(RoleName.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> LoginLogListResponse:
    total, logs = await auth_service.list_login_logs(db, user_id, status, page, limit)
    return LoginLogListResponse(
        total=total, page=page, limit=limit, logs=[LoginLogResponse.model_validate(entry) for entry in logs]
    )
