"""
Runtime Business Settings & Email Templates

Admin-editable key/value settings stored in the ``settings`` table. Values
are strings; structured settings (``loyalty``, ``tax_rates``) hold JSON.
Static defaults come from ``dinehub.core.config`` when a key is absent.

Well-known keys:
    OTP_EMAIL_ENABLED, OTP_PHONE_ENABLED   "true" / "false"
    OTP_LENGTH, OTP_EXPIRY_MINUTES, OTP_MAX_ATTEMPTS
    EMAIL_NOTIFICATIONS_ENABLED            "true" / "false"
    loyalty                                JSON, see LoyaltySettings
    tax_rates                              JSON {enabled, rate, type: percentage|fixed}
"""

import json
import logging
from typing import Any, Optional

from jinja2 import DebugUndefined, Environment, TemplateSyntaxError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.config import get_settings
from dinehub.core.exceptions import BadRequestError, NotFoundError
from dinehub.models import EmailTemplate, Setting
from dinehub.schemas import EmailTemplateUpsert, LoyaltySettings, SettingUpsert

logger = logging.getLogger(__name__)

OTP_EMAIL_ENABLED = "OTP_EMAIL_ENABLED"
OTP_PHONE_ENABLED = "OTP_PHONE_ENABLED"
OTP_LENGTH = "OTP_LENGTH"
OTP_EXPIRY_MINUTES = "OTP_EXPIRY_MINUTES"
OTP_MAX_ATTEMPTS = "OTP_MAX_ATTEMPTS"
EMAIL_NOTIFICATIONS_ENABLED = "EMAIL_NOTIFICATIONS_ENABLED"
LOYALTY = "loyalty"
TAX_RATES = "tax_rates"

_TRUE = {"true", "1", "yes", "on"}
# Unknown placeholders render back as written.
_templates = Environment(undefined=DebugUndefined)


# =============================================================================
# TYPED READS
# =============================================================================

async def get_value(db: AsyncSession, key: str) -> Optional[str]:
    result = await db.execute(select(Setting.value).where(Setting.key == key))
    return result.scalar_one_or_none()


async def get_bool(db: AsyncSession, key: str, default: bool = False) -> bool:
    value = await get_value(db, key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE


async def get_int(db: AsyncSession, key: str, default: int) -> int:
    value = await get_value(db, key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"⚠️ Setting {key}={value!r} is not an integer, using {default}")
        return default


async def get_json(db: AsyncSession, key: str, default: Any = None) -> Any:
    value = await get_value(db, key)
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning(f"⚠️ Setting {key} holds invalid JSON, using default")
        return default


async def get_loyalty_settings(db: AsyncSession) -> LoyaltySettings:
    """Stored loyalty JSON merged over the defaults."""
    stored = await get_json(db, LOYALTY, default={})
    if not isinstance(stored, dict):
        stored = {}
    return LoyaltySettings(**{**LoyaltySettings().model_dump(), **stored})


async def compute_tax(db: AsyncSession, subtotal: float) -> float:
    """
    Tax for a subtotal.

    ``tax_rates`` (when present) wins over the static ``TAX_RATE``; its
    ``rate`` is a percentage, or a flat amount when ``type`` is ``fixed``.
    """
    config = await get_json(db, TAX_RATES)
    if isinstance(config, dict):
        if not config.get("enabled", True):
            return 0.0
        rate = float(config.get("rate", 0))
        if config.get("type") == "fixed":
            return round(rate, 2)
        return round(subtotal * rate / 100, 2)
    return round(subtotal * get_settings().tax_rate, 2)


# =============================================================================
# ADMIN CRUD
# =============================================================================

async def list_settings(db: AsyncSession, public_only: bool = False) -> list[Setting]:
    query = select(Setting).order_by(Setting.category, Setting.key)
    if public_only:
        query = query.where(Setting.is_public.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_setting(db: AsyncSession, key: str) -> Setting:
    result = await db.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    if setting is None:
        raise NotFoundError("Setting", key)
    return setting


async def upsert_setting(db: AsyncSession, data: SettingUpsert) -> Setting:
    if data.key == LOYALTY:
        # Loyalty config must parse before it is stored
        try:
            LoyaltySettings(**json.loads(data.value))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise BadRequestError(f"Invalid loyalty settings: {e}")

    result = await db.execute(select(Setting).where(Setting.key == data.key))
    setting = result.scalar_one_or_none()
    if setting is None:
        setting = Setting(key=data.key)
        db.add(setting)

    setting.value = data.value
    setting.description = data.description
    setting.category = data.category
    setting.is_public = data.is_public

    await db.commit()
    await db.refresh(setting)
    logger.info(f"⚙️ Setting {data.key} updated")
    return setting


async def delete_setting(db: AsyncSession, key: str) -> None:
    setting = await get_setting(db, key)
    await db.delete(setting)
    await db.commit()
    logger.info(f"⚙️ Setting {key} deleted")


# =============================================================================
# EMAIL TEMPLATES
# =============================================================================

def render_template(text: str, context: dict[str, Any]) -> str:
    """Render ``{{ name }}`` placeholders; unknown placeholders are left as-is."""
    return _templates.from_string(text).render(**context)


async def list_templates(db: AsyncSession) -> list[EmailTemplate]:
    result = await db.execute(select(EmailTemplate).order_by(EmailTemplate.name))
    return list(result.scalars().all())


async def find_template(db: AsyncSession, name: str) -> Optional[EmailTemplate]:
    result = await db.execute(select(EmailTemplate).where(EmailTemplate.name == name))
    return result.scalar_one_or_none()


async def get_template(db: AsyncSession, name: str) -> EmailTemplate:
    template = await find_template(db, name)
    if template is None:
        raise NotFoundError("Email template", name)
    return template


async def upsert_template(db: AsyncSession, name: str, data: EmailTemplateUpsert) -> EmailTemplate:
    for text in (data.subject, data.body):
        try:
            _templates.parse(text)
        except TemplateSyntaxError as e:
            raise BadRequestError(f"Invalid template syntax: {e.message}")

    template = await find_template(db, name)
    if template is None:
        template = EmailTemplate(name=name)
        db.add(template)
    template.subject = data.subject
    template.body = data.body
    await db.commit()
    await db.refresh(template)
    logger.info(f"📝 Email template {name} saved")
    return template


async def render_named_template(
    db: AsyncSession, name: str, context: dict[str, Any]
) -> Optional[tuple[str, str]]:
    """(subject, body) for a stored template, or None when it does not exist."""
    template = await find_template(db, name)
    if template is None:
        return None
    return render_template(template.subject, context), render_template(template.body, context)
