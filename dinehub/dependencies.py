"""
Request Dependencies

Bearer-token authentication, role checks and tenant scoping shared by
every router.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import BadRequestError, ForbiddenError, UnauthorizedError
from dinehub.database import get_db
from dinehub.models import RoleName, User, UserSession
from dinehub.services import auth as auth_service

bearer_scheme = HTTPBearer(auto_error=False)

MANAGEMENT_ROLES = (
    RoleName.ADMIN,
    RoleName.RESTAURANT,
    RoleName.MANAGER,
    RoleName.SUPERVISOR,
)
STAFF_ROLES = MANAGEMENT_ROLES + (RoleName.KITCHEN,)


@dataclass
class AuthContext:
    user: User
    session: UserSession

    @property
    def role(self) -> str:
        return self.user.role_name

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    @property
    def is_customer(self) -> bool:
        return self.role == RoleName.CUSTOMER.value


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    if credentials is None:
        raise UnauthorizedError()
    user, session = await auth_service.resolve_token(db, credentials.credentials)
    return AuthContext(user=user, session=session)


def require_roles(*roles: RoleName):
    """Dependency factory: the caller must hold one of ``roles``."""
    allowed = {r.value for r in roles}

    async def checker(ctx: AuthContext = Depends(get_current_user)) -> AuthContext:
        if ctx.role not in allowed:
            raise ForbiddenError()
        return ctx

    return checker


def resolve_restaurant_id(ctx: AuthContext, requested: Optional[int] = None) -> int:
    """
    Restaurant a staff request operates on.

    Staff are pinned to their own restaurant; an admin must name one.
    """
    if ctx.is_admin:
        if requested is None:
            raise BadRequestError("restaurant_id is required")
        return requested
    if ctx.user.restaurant_id is None:
        raise ForbiddenError("User is not attached to a restaurant")
    if requested is not None and requested != ctx.user.restaurant_id:
        raise ForbiddenError("Not allowed to access another restaurant")
    return ctx.user.restaurant_id


def client_ip(forwarded_for: Optional[str], fallback: Optional[str]) -> str:
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return fallback or "unknown"


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[AuthContext]:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    if credentials is None:
        return None
    user, session = await auth_service.resolve_token(db, credentials.credentials)
    return AuthContext(user=user, session=session)
