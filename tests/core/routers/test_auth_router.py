"""
Integration tests for auth router endpoints.

Tests all auth endpoints against a real per-test database, with OTP emails
mocked by the ``mock_otp_email`` fixture.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from taskdesk.core.config import settings
from taskdesk.core.enums import SSOProvider
from taskdesk.core.services.sso import VerifiedIdentity

from conftest import TEST_PASSWORD


SIGNUP_PAYLOAD = {
    "email": "newuser@example.com",
    "password": "secret1",
    "first_name": "New",
    "last_name": "User",
}


async def _signup(client: AsyncClient, mock_otp_email, payload=None) -> str:
    response = await client.post("/auth/signup", json=payload or SIGNUP_PAYLOAD)
    assert response.status_code == 201
    return mock_otp_email.call_args.kwargs["otp_code"]


class TestSignupEndpoint:

    @pytest.mark.asyncio
    async def test_signup_success(self, client: AsyncClient, mock_otp_email):
        response = await client.post("/auth/signup", json=SIGNUP_PAYLOAD)

        assert response.status_code == 201
        assert response.json() == {
            "message": "User created. Please verify with OTP.",
            "success": True,
        }
        mock_otp_email.assert_awaited_once()
        assert mock_otp_email.call_args.kwargs["email"] == "newuser@example.com"

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(self, client: AsyncClient, test_user):
        payload = {**SIGNUP_PAYLOAD, "email": test_user.email}
        response = await client.post("/auth/signup", json=payload)

        assert response.status_code == 409
        assert response.json() == {"detail": "User already exists."}

    @pytest.mark.asyncio
    async def test_signup_invalid_fields(self, client: AsyncClient):
        payload = {
            "email": "notanemail",
            "password": "short",
            "first_name": "A",
            "last_name": "User",
        }
        response = await client.post("/auth/signup", json=payload)

        assert response.status_code == 422
        fields = {error["field"] for error in response.json()["detail"]}
        assert fields == {"email", "password", "first_name"}

    @pytest.mark.asyncio
    async def test_signup_email_failure_is_opaque_500(
        self, client: AsyncClient, mock_otp_email
    ):
        from taskdesk.core.exceptions.types import EmailDeliveryException

        mock_otp_email.side_effect = EmailDeliveryException("Brevo said no: 401")

        response = await client.post("/auth/signup", json=SIGNUP_PAYLOAD)
        assert response.status_code == 500
        assert response.json() == {"detail": "An internal error occurred."}

        # Nothing was saved, so the same email can sign up again
        mock_otp_email.side_effect = None
        response = await client.post("/auth/signup", json=SIGNUP_PAYLOAD)
        assert response.status_code == 201


class TestVerifyOTPEndpoint:

    @pytest.mark.asyncio
    async def test_full_signup_flow(self, client: AsyncClient, mock_otp_email):
        code = await _signup(client, mock_otp_email)

        # Unverified accounts cannot log in yet
        response = await client.post(
            "/auth/login",
            json={"email": SIGNUP_PAYLOAD["email"], "password": "secret1"},
        )
        assert response.status_code == 403

        response = await client.post(
            "/auth/signup/verify_otp",
            json={"email": SIGNUP_PAYLOAD["email"], "code": code},
        )
        assert response.status_code == 200
        assert response.json()["message"] == "User successfully verified. Please login."

        response = await client.post(
            "/auth/login",
            json={"email": SIGNUP_PAYLOAD["email"], "password": "secret1"},
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = await client.get(
            "/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        assert response.json()["email"] == SIGNUP_PAYLOAD["email"]
        assert response.json()["verified"] is True

    @pytest.mark.asyncio
    async def test_wrong_code(self, client: AsyncClient, mock_otp_email):
        code = await _signup(client, mock_otp_email)
        wrong = "000000" if code != "000000" else "111111"

        response = await client.post(
            "/auth/signup/verify_otp",
            json={"email": SIGNUP_PAYLOAD["email"], "code": wrong},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid OTP code."}

    @pytest.mark.asyncio
    async def test_already_verified(self, client: AsyncClient, test_user):
        response = await client.post(
            "/auth/signup/verify_otp",
            json={"email": test_user.email, "code": "123456"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "User already verified."}

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient):
        response = await client.post(
            "/auth/signup/verify_otp",
            json={"email": "ghost@example.com", "code": "123456"},
        )

        assert response.status_code == 404
        assert response.json() == {"detail": "User not found."}

    @pytest.mark.asyncio
    async def test_code_must_be_six_digits(self, client: AsyncClient):
        response = await client.post(
            "/auth/signup/verify_otp",
            json={"email": "ghost@example.com", "code": "12ab"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_rate_limited(self, client: AsyncClient, test_user_unverified):
        payload = {"email": test_user_unverified.email, "code": "123456"}

        with patch.object(settings, "OTP_RATE_LIMIT_REQUESTS", 2), patch.object(
            settings, "OTP_RATE_LIMIT_WINDOW_SECONDS", 60.0
        ):
            for _ in range(2):
                response = await client.post("/auth/signup/verify_otp", json=payload)
                assert response.status_code == 400

            response = await client.post("/auth/signup/verify_otp", json=payload)

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1


class TestResendOTPEndpoint:

    @pytest.mark.asyncio
    async def test_resend_while_code_is_live(self, client: AsyncClient, mock_otp_email):
        await _signup(client, mock_otp_email)

        response = await client.post(
            "/auth/signup/verify_otp/resend",
            json={"email": SIGNUP_PAYLOAD["email"]},
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("OTP not expired yet. Try again in")
        assert int(response.headers["Retry-After"]) > 0
        assert mock_otp_email.await_count == 1

    @pytest.mark.asyncio
    async def test_resend_without_record_sends_code(
        self, client: AsyncClient, test_user_unverified, mock_otp_email
    ):
        response = await client.post(
            "/auth/signup/verify_otp/resend",
            json={"email": test_user_unverified.email},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "OTP sent successfully."
        mock_otp_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resend_for_verified_user(self, client: AsyncClient, test_user):
        response = await client.post(
            "/auth/signup/verify_otp/resend", json={"email": test_user.email}
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "User already verified."}

    @pytest.mark.asyncio
    async def test_resend_unknown_user(self, client: AsyncClient):
        response = await client.post(
            "/auth/signup/verify_otp/resend", json={"email": "ghost@example.com"}
        )

        assert response.status_code == 404


class TestLoginEndpoint:

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, test_user):
        response = await client.post(
            "/auth/login",
            json={"email": test_user.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["id"] == str(test_user.id)
        assert "password_hash" not in data["user"]

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email(self, client: AsyncClient, test_user):
        wrong = await client.post(
            "/auth/login",
            json={"email": test_user.email, "password": "wrong-pass"},
        )
        unknown = await client.post(
            "/auth/login",
            json={"email": "ghost@example.com", "password": "wrong-pass"},
        )

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"detail": "Invalid email or password."}

    @pytest.mark.asyncio
    async def test_new_login_revokes_old_token(self, client: AsyncClient, test_user):
        credentials = {"email": test_user.email, "password": TEST_PASSWORD}
        first = (await client.post("/auth/login", json=credentials)).json()
        second = (await client.post("/auth/login", json=credentials)).json()

        response = await client.get(
            "/auth/me",
            headers={"Authorization": f"Bearer {first['access_token']}"},
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

        response = await client.get(
            "/auth/me",
            headers={"Authorization": f"Bearer {second['access_token']}"},
        )
        assert response.status_code == 200


class TestSSOLoginEndpoint:

    @pytest.mark.asyncio
    async def test_invalid_assertion(self, client: AsyncClient):
        response = await client.post(
            "/auth/login/sso",
            json={"provider": "google", "sso_token": "not-a-jwt"},
        )

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid SSO token."}

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, client: AsyncClient):
        response = await client.post(
            "/auth/login/sso",
            json={"provider": "myspace", "sso_token": "x"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_valid_assertion_provisions_user(self, client: AsyncClient):
        identity = VerifiedIdentity(
            provider=SSOProvider.FACEBOOK,
            subject="f-42",
            email="fb.user@example.com",
            given_name="Fb",
            family_name="User",
        )

        with patch(
            "taskdesk.core.services.auth.SSOVerifier.verify",
            new_callable=AsyncMock,
            return_value=identity,
        ):
            response = await client.post(
                "/auth/login/sso",
                json={"provider": "facebook", "sso_token": "assertion"},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "fb.user@example.com"
        assert data["user"]["verified"] is True

        response = await client.get(
            "/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert response.status_code == 200


class TestMeEndpoint:

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, auth_headers, test_user):
        response = await client.get("/auth/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(test_user.id)
        assert data["email"] == test_user.email
        assert data["first_name"] == "Test"

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/auth/me")

        assert response.status_code == 401
        assert response.json() == {"detail": "Could not validate credentials."}

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get(
            "/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
