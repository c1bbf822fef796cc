"""Business settings and email templates."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import AuthContext, require_roles
from dinehub.models import RoleName
from dinehub.schemas import (
    EmailTemplateResponse,
    EmailTemplateUpsert,
    ErrorResponse,
    LoyaltySettings,
    MessageResponse,
    SettingResponse,
    SettingUpsert,
)
from dinehub.services import settings as settings_service

router = APIRouter(prefix="/api/settings", tags=["Settings"])

admin_only = require_roles(RoleName.ADMIN)


@router.get("/public", response_model=list[SettingResponse], summary="Settings visible to clients")
async def public_settings(db: AsyncSession = Depends(get_db)) -> list[SettingResponse]:
    settings = await settings_service.list_settings(db, public_only=True)
    return [SettingResponse.model_validate(s) for s in settings]


@router.get("/loyalty", response_model=LoyaltySettings, summary="Loyalty program configuration")
async def loyalty_settings(db: AsyncSession = Depends(get_db)) -> LoyaltySettings:
    return await settings_service.get_loyalty_settings(db)


@router.get("", response_model=list[SettingResponse])
async def list_settings(
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> list[SettingResponse]:
    settings = await settings_service.list_settings(db)
    return [SettingResponse.model_validate(s) for s in settings]


@router.put("", response_model=SettingResponse, responses={400: {"model": ErrorResponse}})
async def upsert_setting(
    data: SettingUpsert,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> SettingResponse:
    return SettingResponse.model_validate(await settings_service.upsert_setting(db, data))


# =============================================================================
# EMAIL TEMPLATES
# =============================================================================

@router.get("/templates", response_model=list[EmailTemplateResponse], tags=["Email Templates"])
async def list_templates(
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> list[EmailTemplateResponse]:
    templates = await settings_service.list_templates(db)
    return [EmailTemplateResponse.model_validate(t) for t in templates]


@router.get("/templates/{name}", response_model=EmailTemplateResponse, tags=["Email Templates"])
async def get_template(
    name: str,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> EmailTemplateResponse:
    return EmailTemplateResponse.model_validate(await settings_service.get_template(db, name))


@router.put("/templates/{name}", response_model=EmailTemplateResponse, tags=["Email Templates"])
async def upsert_template(
    name: str,
    data: EmailTemplateUpsert,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> EmailTemplateResponse:
    """Create or replace a template. Bodies use ``{{placeholder}}`` fields."""
    template = await settings_service.upsert_template(db, name, data)
    return EmailTemplateResponse.model_validate(template)


# =============================================================================
# SINGLE SETTING (after fixed paths)
# =============================================================================

@router.get("/{key}", response_model=SettingResponse, responses={404: {"model": ErrorResponse}})
async def get_setting(
    key: str,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> SettingResponse:
    return SettingResponse.model_validate(await settings_service.get_setting(db, key))


@router.delete("/{key}", response_model=MessageResponse, responses={404: {"model": ErrorResponse}})
async def delete_setting(
    key: str,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await settings_service.delete_setting(db, key)
    return MessageResponse(message=f"Setting {key} deleted")
