"""
Validation utilities shared by schemas and services.
Field-level helpers raise ValueError so they can be used inside Pydantic validators.
"""

import re
from typing import Any, Optional
from email_validator import validate_email, EmailNotValidError
import pytz


class ValidationUtils:
    """
    Utility class for common validation operations.
    Provides reusable validation methods for contact details, time zones and free text.
    """

    PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{6,14}$')

    # Characters rejected in free-text fields that end up in emails and SMS bodies
    DANGEROUS_PATTERNS = ['<script', 'javascript:', 'data:text/html', 'vbscript:']

    @staticmethod
    def normalize_email(email: Any, field_name: str = "email") -> str:
        """
        Validate and normalize an email address.

        Args:
            email: Email to validate
            field_name: Name of the field for error messages

        Returns:
            Lower-cased normalized email

        Raises:
            ValueError: If email is invalid
        """
        if not email or not str(email).strip():
            raise ValueError(f"{field_name} is required")

        try:
            valid_email = validate_email(str(email).strip(), check_deliverability=False)
            return valid_email.normalized.lower()
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email format for {field_name}: {str(e)}")

    @staticmethod
    def normalize_phone_number(phone: Any, field_name: str = "phone") -> str:
        """
        Validate a phone number and strip formatting characters.

        Args:
            phone: Phone number to validate
            field_name: Name of the field for error messages

        Returns:
            Phone number with spaces, dashes and brackets removed

        Raises:
            ValueError: If phone number is invalid
        """
        if not phone:
            raise ValueError(f"{field_name} is required")

        phone_str = re.sub(r'[\s\-()]', '', str(phone).strip())

        if not ValidationUtils.PHONE_PATTERN.match(phone_str):
            raise ValueError(f"Invalid phone number format for {field_name}")

        return phone_str

    @staticmethod
    def validate_timezone_name(value: Any) -> str:
        """Ensure the value names an IANA time zone known to pytz."""
        if not value:
            raise ValueError("Timezone is required")
        try:
            return pytz.timezone(str(value)).zone
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {value}")

    @staticmethod
    def clean_text(value: Optional[str], field_name: str) -> Optional[str]:
        """
        Strip a free-text value and reject embedded markup.

        Raises:
            ValueError: If the text is blank or contains script-like content
        """
        if value is None:
            return value
        cleaned = value.strip()
        if not cleaned:
            raise ValueError(f"{field_name} cannot be empty")
        lower_value = cleaned.lower()
        for pattern in ValidationUtils.DANGEROUS_PATTERNS:
            if pattern in lower_value:
                raise ValueError(f"{field_name} contains potentially dangerous content")
        return cleaned
