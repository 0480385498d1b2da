"""Custom validators and types."""

import re
from typing import Annotated

from pydantic import AfterValidator, Field

# Nigerian phone numbers: +234 followed by 10 digits (leading 0 dropped)
# Local form 0XXXXXXXXXX is accepted and normalized
PHONE_PATTERN = re.compile(r"^\+234[0-9]{10}$")

# Feature keys are snake_case slugs
FEATURE_KEY_PATTERN = re.compile(r"^[a-z0-9_]+$")

# School short names appear in URLs (subdomain or path)
SHORT_NAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_phone_number(value: str) -> str:
    """
    Validate and normalize a Nigerian phone number.

    Accepts formats:
    - +2348012345678
    - +234 801 234 5678
    - 08012345678
    - 0801-234-5678

    Returns normalized format: +2348012345678
    """
    # Remove spaces, dashes, parentheses
    normalized = re.sub(r"[\s\-\(\)]", "", value)

    if re.match(r"^0[0-9]{10}$", normalized):
        normalized = "+234" + normalized[1:]

    if not PHONE_PATTERN.match(normalized):
        raise ValueError(
            "Invalid phone number. Use format: +234 XXX XXX XXXX (e.g., +234 801 234 5678)"
        )

    return normalized


def validate_feature_key(value: str) -> str:
    """Feature keys are lowercase letters, digits and underscores."""
    if not FEATURE_KEY_PATTERN.match(value):
        raise ValueError("Feature key may only contain lowercase letters, digits and underscores")
    return value


def validate_short_name(value: str) -> str:
    """Lowercase and check that the short name is URL-safe."""
    normalized = value.strip().lower()
    if not SHORT_NAME_PATTERN.match(normalized):
        raise ValueError(
            "Short name may only contain lowercase letters, digits and hyphens"
        )
    return normalized


def validate_email(value: str) -> str:
    """Loose email check, lowercases the address."""
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email address")
    return normalized


# Annotated types
PhoneNumber = Annotated[
    str,
    Field(min_length=11, max_length=20),
    AfterValidator(validate_phone_number),
]

FeatureKey = Annotated[
    str,
    Field(min_length=1, max_length=100),
    AfterValidator(validate_feature_key),
]

ShortName = Annotated[
    str,
    Field(min_length=2, max_length=100),
    AfterValidator(validate_short_name),
]

Email = Annotated[
    str,
    Field(min_length=3, max_length=255),
    AfterValidator(validate_email),
]
