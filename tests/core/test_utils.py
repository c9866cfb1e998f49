"""
Test suite for shared utilities.

Run tests:
    pytest tests/core/test_utils.py -v
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from taskdesk.core.config import settings
from taskdesk.core.utils import (
    create_jwt_token,
    ensure_utc,
    format_duration,
    generate_otp_code,
    generate_random_password,
    hash_password,
    hmac_hash_otp,
    hmac_verify_otp,
    mask_otp,
    verify_password,
)


class TestPasswordHashing:
    """Test suite for bcrypt password helpers."""

    def test_hash_and_verify(self):
        hashed = hash_password("secret1")

        assert hashed != "secret1"
        assert hashed.startswith("$2")
        assert verify_password("secret1", hashed) is True
        assert verify_password("secret2", hashed) is False

    def test_hash_uses_random_salt(self):
        assert hash_password("secret1") != hash_password("secret1")

    def test_hash_none_raises(self):
        with pytest.raises(ValueError):
            hash_password(None)

    def test_verify_none_inputs(self):
        hashed = hash_password("secret1")

        assert verify_password(None, hashed) is False
        assert verify_password("secret1", None) is False

    def test_verify_bad_hash_returns_false(self):
        assert verify_password("secret1", "not-a-bcrypt-hash") is False

    def test_long_passwords_truncated_consistently(self):
        base = "a" * 72
        hashed = hash_password(base + "tail-one")

        # bcrypt only sees the first 72 bytes
        assert verify_password(base + "tail-two", hashed) is True
        assert verify_password("a" * 71, hashed) is False


class TestCreateJwtToken:
    """Test suite for create_jwt_token."""

    def test_claims_and_lifetime(self):
        token = create_jwt_token({"sub": "abc"}, timedelta(minutes=10))
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )

        assert payload["sub"] == "abc"
        assert payload["exp"] - payload["iat"] == 600
        assert payload["jti"]

    def test_jti_is_unique(self):
        first = create_jwt_token({"sub": "abc"}, timedelta(minutes=1))
        second = create_jwt_token({"sub": "abc"}, timedelta(minutes=1))

        assert first != second

    def test_none_data_raises(self):
        with pytest.raises(ValueError):
            create_jwt_token(None, timedelta(minutes=1))


class TestOTPHelpers:
    """Test suite for OTP generation, hashing and masking."""

    def test_generate_otp_code_is_six_digits(self):
        for _ in range(200):
            code = generate_otp_code()
            assert len(code) == 6
            assert code.isdigit()

    def test_generate_otp_code_keeps_leading_zeros(self, monkeypatch):
        monkeypatch.setattr("taskdesk.core.utils.secrets.randbelow", lambda n: 42)

        assert generate_otp_code() == "000042"

    def test_hmac_round_trip(self):
        hashed = hmac_hash_otp("123456", "secret")

        assert len(hashed) == 64
        assert hmac_verify_otp("123456", hashed, "secret") is True
        assert hmac_verify_otp("123457", hashed, "secret") is False
        assert hmac_verify_otp("123456", hashed, "other-secret") is False

    def test_hmac_hash_rejects_empty(self):
        with pytest.raises(ValueError):
            hmac_hash_otp("", "secret")
        with pytest.raises(ValueError):
            hmac_hash_otp("123456", "")

    def test_hmac_verify_empty_inputs(self):
        assert hmac_verify_otp(None, "x" * 64, "secret") is False
        assert hmac_verify_otp("123456", None, "secret") is False

    def test_mask_otp(self):
        assert mask_otp("123456") == "1****6"
        assert mask_otp("12") == "12"


class TestFormatDuration:
    """Test suite for format_duration."""

    @pytest.mark.parametrize(
        "ms, expected",
        [
            (0, "0s"),
            (999, "0s"),
            (45_400, "45s"),
            (60_000, "1m 0s"),
            (599_000, "9m 59s"),
            (-5_000, "0s"),
        ],
    )
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected


class TestMisc:
    def test_ensure_utc_naive(self):
        naive = datetime(2024, 1, 1, 12, 0)

        assert ensure_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_ensure_utc_converts_offset(self):
        aware = datetime(2024, 1, 1, 13, 0, tzinfo=timezone(timedelta(hours=1)))

        assert ensure_utc(aware).hour == 12
        assert ensure_utc(aware).tzinfo == timezone.utc

    def test_generate_random_password(self):
        password = generate_random_password()

        assert len(password) == 12
        assert generate_random_password(20) != generate_random_password(20)
