"""Tests for code generation, hashing, and email normalization."""

import hashlib
import hmac
from unittest.mock import patch

import pytest

from app.core.config import settings
from app.services.otp_codes import (
    codes_match,
    email_fingerprint,
    generate_code,
    hash_code,
    is_well_formed,
    normalize_email,
    validate_email_address,
)
from app.services.otp_errors import InvalidEmailFormatError, OTPErrorKind


class TestNormalizeEmail:
    def test_trims_and_lowercases(self):
        assert normalize_email("  Alice@Example.ORG \n") == "alice@example.org"


class TestValidateEmailAddress:
    def test_returns_normalized_address(self):
        assert validate_email_address(" Bob@Example.com ") == "bob@example.com"

    @pytest.mark.parametrize(
        "email", ["", "not-an-email", "a@", "@example.com", "a b@example.com"]
    )
    def test_rejects_malformed_address(self, email):
        with pytest.raises(InvalidEmailFormatError) as exc_info:
            validate_email_address(email)
        assert exc_info.value.kind == OTPErrorKind.INVALID_EMAIL_FORMAT
        assert exc_info.value.status_code == 400


class TestGenerateCode:
    def test_default_length_is_six_digits(self):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()

    def test_zero_pads_small_values(self):
        """Leading zeros are part of the code space."""
        with patch("app.services.otp_codes.secrets.randbelow", return_value=42):
            assert generate_code(6) == "000042"

    def test_draws_from_full_code_space(self):
        with patch(
            "app.services.otp_codes.secrets.randbelow", return_value=7
        ) as randbelow:
            generate_code(8)
        randbelow.assert_called_once_with(10**8)


class TestHashCode:
    def test_is_keyed_hmac_sha256(self):
        expected = hmac.new(
            settings.code_hash_key, b"123456", hashlib.sha256
        ).hexdigest()
        assert hash_code("123456") == expected

    def test_is_not_plain_sha256(self):
        """A table dump cannot be reversed with an unkeyed dictionary."""
        assert hash_code("123456") != hashlib.sha256(b"123456").hexdigest()

    def test_hash_never_contains_plaintext(self):
        assert "123456" not in hash_code("123456")


class TestCodesMatch:
    def test_matches_same_code(self):
        assert codes_match("654321", hash_code("654321")) is True

    def test_rejects_different_code(self):
        assert codes_match("654320", hash_code("654321")) is False

    def test_uses_constant_time_comparison(self):
        with patch(
            "app.services.otp_codes.hmac.compare_digest", return_value=True
        ) as compare:
            codes_match("111111", "stored")
        compare.assert_called_once()


class TestIsWellFormed:
    @pytest.mark.parametrize("code", ["000000", "123456", "999999"])
    def test_accepts_exact_digit_strings(self, code):
        assert is_well_formed(code) is True

    @pytest.mark.parametrize(
        "code", ["", "12345", "1234567", "12a456", " 23456", "١٢٣٤٥٦"]
    )
    def test_rejects_anything_else(self, code):
        """Wrong length, letters, whitespace, and non-ASCII digits."""
        assert is_well_formed(code) is False


class TestEmailFingerprint:
    def test_is_stable_and_normalized(self):
        assert email_fingerprint("A@Example.com") == email_fingerprint("a@example.com")

    def test_does_not_contain_address(self):
        fp = email_fingerprint("alice@example.com")
        assert "alice" not in fp
        assert len(fp) == 12
