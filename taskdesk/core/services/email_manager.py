"""
Email Manager Service for outbound account emails.

Renders Jinja2 templates through ``Renderer`` and delivers them through
``BrevoService``. Unlike a fire-and-forget notifier, a delivery failure is
raised to the caller as ``EmailDeliveryException`` so the surrounding
transaction can be rolled back.

Example usage:
    await EmailManagerService.send_otp_email(
        email="user@example.com",
        otp_code="123456",
        purpose=OTPPurpose.SIGNUP,
        user_name="Ada",
    )
"""

from datetime import datetime, timezone
from typing import Any

from taskdesk.core.config import email_manager_logger, settings
from taskdesk.core.enums import OTPPurpose
from taskdesk.core.exceptions.types import EmailDeliveryException
from taskdesk.core.services.brevo import BrevoService, Contact, ListContact
from taskdesk.core.services.template import Renderer


class EmailManagerService:
    """
    Centralized email sending.

    Example:
        >>> await EmailManagerService.send_email(
        ...     email="user@example.com",
        ...     subject="Hello",
        ...     html_template="otp_email.html",
        ...     context={...},
        ... )
    """

    @classmethod
    def _get_purpose_display_text(cls, purpose: OTPPurpose) -> str:
        purpose_map = {
            OTPPurpose.SIGNUP: "account verification",
            OTPPurpose.RESEND: "account verification",
        }
        return purpose_map.get(purpose, "verification")

    @classmethod
    def _get_subject_for_purpose(cls, purpose: OTPPurpose) -> str:
        subject_map = {
            OTPPurpose.SIGNUP: f"Verify Your Email - {settings.APP_NAME}",
            OTPPurpose.RESEND: f"Your New Verification Code - {settings.APP_NAME}",
        }
        return subject_map.get(purpose, f"Verification Code - {settings.APP_NAME}")

    @classmethod
    async def send_email(
        cls,
        email: str,
        subject: str,
        html_template: str,
        context: dict[str, Any],
        text_template: str | None = None,
        recipient_name: str | None = None,
    ) -> None:
        """
        Render the templates and send the email.

        Args:
            email: Recipient email address.
            subject: Email subject line.
            html_template: Name of the HTML template file.
            context: Template variables.
            text_template: Optional name of the plain text template file.
            recipient_name: Optional recipient display name.

        Raises:
            EmailDeliveryException: If rendering or delivery fails.
        """
        try:
            html_content = await Renderer.render_template(html_template, context=context)

            text_content = None
            if text_template:
                text_content = await Renderer.render_template(
                    text_template, context=context
                )

            await BrevoService.send_transactional_email(
                to=ListContact(to=[Contact(email=email, name=recipient_name)]),
                subject=subject,
                htmlContent=html_content,
                textContent=text_content,
            )
        except EmailDeliveryException:
            email_manager_logger.error(
                f"Failed to send email: subject='{subject}', to='{email}'"
            )
            raise
        except Exception as e:
            email_manager_logger.error(
                f"Failed to send email: subject='{subject}', to='{email}', error={e}"
            )
            raise EmailDeliveryException() from e

        email_manager_logger.info(
            f"Email sent successfully: subject='{subject}', to='{email}'"
        )

    @classmethod
    async def send_otp_email(
        cls,
        email: str,
        otp_code: str,
        purpose: OTPPurpose,
        user_name: str | None = None,
    ) -> None:
        """
        Send a one-time code.

        Args:
            email: Recipient email address.
            otp_code: The plaintext code.
            purpose: Why the code was issued.
            user_name: Optional recipient name for personalization.

        Raises:
            EmailDeliveryException: If the email could not be delivered.
        """
        display_name = user_name or "User"

        context = {
            "app_name": settings.APP_NAME,
            "user_name": display_name,
            "otp_code": otp_code,
            "expiry_minutes": settings.OTP_EXPIRY_MINUTES,
            "purpose": cls._get_purpose_display_text(purpose),
            "year": datetime.now(timezone.utc).year,
        }

        await cls.send_email(
            email=email,
            subject=cls._get_subject_for_purpose(purpose),
            html_template="otp_email.html",
            text_template="otp_email.txt",
            context=context,
            recipient_name=display_name,
        )


__all__ = ["EmailManagerService"]
