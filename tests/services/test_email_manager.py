"""
Test suite for EmailManagerService.

Run all tests:
    pytest tests/services/test_email_manager.py -v
"""

from unittest.mock import AsyncMock, patch

import pytest

from taskdesk.core.config import settings
from taskdesk.core.enums import OTPPurpose
from taskdesk.core.exceptions.types import EmailDeliveryException
from taskdesk.core.services.email_manager import EmailManagerService


@pytest.fixture(autouse=True)
def mock_otp_email():
    """Use the real send_otp_email in this module."""
    yield None


@pytest.fixture
def mock_brevo():
    with patch(
        "taskdesk.core.services.email_manager.BrevoService.send_transactional_email",
        new_callable=AsyncMock,
        return_value={"messageId": "m-1"},
    ) as mock_send:
        yield mock_send


class TestSubjects:

    def test_signup_subject(self):
        subject = EmailManagerService._get_subject_for_purpose(OTPPurpose.SIGNUP)
        assert subject == f"Verify Your Email - {settings.APP_NAME}"

    def test_resend_subject(self):
        subject = EmailManagerService._get_subject_for_purpose(OTPPurpose.RESEND)
        assert subject.startswith("Your New Verification Code")


class TestSendOTPEmail:

    @pytest.mark.asyncio
    async def test_renders_code_into_both_bodies(self, mock_brevo):
        await EmailManagerService.send_otp_email(
            email="user@example.com",
            otp_code="482913",
            purpose=OTPPurpose.SIGNUP,
            user_name="Ada",
        )

        mock_brevo.assert_awaited_once()
        kwargs = mock_brevo.call_args.kwargs
        assert "482913" in kwargs["htmlContent"]
        assert "482913" in kwargs["textContent"]
        assert "Ada" in kwargs["htmlContent"]
        assert kwargs["to"].to[0].email == "user@example.com"

    @pytest.mark.asyncio
    async def test_delivery_failure_propagates(self, mock_brevo):
        mock_brevo.side_effect = EmailDeliveryException("Brevo rejected the request: 401")

        with pytest.raises(EmailDeliveryException):
            await EmailManagerService.send_otp_email(
                email="user@example.com",
                otp_code="482913",
                purpose=OTPPurpose.SIGNUP,
            )

    @pytest.mark.asyncio
    async def test_missing_template_becomes_delivery_error(self, mock_brevo):
        with pytest.raises(EmailDeliveryException):
            await EmailManagerService.send_email(
                email="user@example.com",
                subject="Hi",
                html_template="does_not_exist.html",
                context={},
            )

        mock_brevo.assert_not_awaited()
