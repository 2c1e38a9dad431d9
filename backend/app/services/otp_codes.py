"""Code generation, hashing, and email normalization helpers.

Pure functions shared by the issuer and verifier. Nothing here touches the
database.
"""

import hashlib
import hmac
import re
import secrets

from email_validator import EmailNotValidError, validate_email

from app.core.config import settings
from app.services.otp_errors import InvalidEmailFormatError

_FINGERPRINT_LENGTH = 12


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return email.strip().lower()


def validate_email_address(email: str) -> str:
    """Normalize an email address and check its syntax.

    Deliverability (DNS) is not checked; delivery failures surface from the
    mail provider instead.

    Args:
        email: Raw email address from the request.

    Returns:
        Normalized email address.

    Raises:
        InvalidEmailFormatError: If the address is syntactically invalid.
    """
    normalized = normalize_email(email)
    try:
        validate_email(normalized, check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidEmailFormatError() from exc
    return normalized


def email_fingerprint(email: str) -> str:
    """Short stable digest of an email for log correlation."""
    digest = hashlib.sha256(normalize_email(email).encode()).hexdigest()
    return digest[:_FINGERPRINT_LENGTH]


def generate_code(length: int | None = None) -> str:
    """Generate a uniformly random numeric code.

    Uses the OS CSPRNG via ``secrets``; every value in [0, 10**length) is
    equally likely, leading zeros included.

    Args:
        length: Number of digits. Defaults to the configured code length.

    Returns:
        Zero-padded decimal string of exactly ``length`` digits.
    """
    n = length if length is not None else settings.otp_code_length
    return f"{secrets.randbelow(10**n):0{n}d}"


def hash_code(code: str) -> str:
    """Keyed HMAC-SHA-256 of a code, hex encoded.

    The key is server-side, so a dump of the codes table alone cannot be
    brute-forced over the small code space.
    """
    return hmac.new(settings.code_hash_key, code.encode(), hashlib.sha256).hexdigest()


def codes_match(submitted: str, stored_hash: str) -> bool:
    """Constant-time comparison of a submitted code against a stored hash."""
    return hmac.compare_digest(hash_code(submitted), stored_hash)


def is_well_formed(code: str, length: int | None = None) -> bool:
    """Whether a submission is exactly ``length`` ASCII digits."""
    n = length if length is not None else settings.otp_code_length
    return re.fullmatch(rf"[0-9]{{{n}}}", code) is not None
