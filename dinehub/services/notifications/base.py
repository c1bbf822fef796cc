"""
Notification Service Abstract Base Class

Defines interface for sending SMS and Email notifications.
Supports both Mock (development) and Real (production) implementations.

Higher-level messages (OTP codes, complaint replies, feedback requests)
are built here on top of the two transport primitives so every
implementation sends the same content.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from dinehub.core.config import get_settings


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


@dataclass
class OTPDeliveryResult:
    """Outcome of sending one OTP over every enabled channel."""
    channels_sent: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return bool(self.channels_sent)


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_sms(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Send an SMS message."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass

    # =========================================================================
    # COMPOSED MESSAGES
    # =========================================================================

    async def send_otp(
        self,
        code: str,
        expiry_minutes: int,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> OTPDeliveryResult:
        """
        Send a one-time password over each channel that has an address.

        Args:
            code: Clear OTP code
            expiry_minutes: Validity shown to the user
            email: Send by email when set
            phone: Send by SMS when set
        """
        company = get_settings().company_name
        text = f"Your {company} verification code is {code}. It expires in {expiry_minutes} minutes."
        result = OTPDeliveryResult()

        if email:
            sent = await self.send_email(
                to_email=email,
                subject=f"{company} verification code",
                body_html=f"<p>Your verification code is <strong>{code}</strong>.</p>"
                          f"<p>It expires in {expiry_minutes} minutes.</p>",
                body_text=text,
            )
            if sent.success:
                result.channels_sent.append("email")
            else:
                result.errors["email"] = sent.error_message or "unknown error"

        if phone:
            sent = await self.send_sms(phone, text)
            if sent.success:
                result.channels_sent.append("phone")
            else:
                result.errors["phone"] = sent.error_message or "unknown error"

        return result

    async def send_templated_email(
        self,
        to_email: str,
        subject: str,
        body: str,
    ) -> NotificationResult:
        """Send an already rendered email template; the body is HTML."""
        return await self.send_email(to_email=to_email, subject=subject, body_html=body)
