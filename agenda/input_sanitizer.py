"""Sanitization and validation of client-entered booking data."""
import re
from typing import Optional


class InputSanitizer:
    """
    Cleans up text typed by clients before it is stored or echoed back.

    Protections:
    - XSS: Remove HTML/JavaScript from names shown in the admin panel
    - SQL Injection: Already handled by SQLAlchemy parameterized queries
    - Format checks: name length, phone characters, e-mail shape
    """

    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
    SCRIPT_PATTERN = re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL)
    JAVASCRIPT_PATTERN = re.compile(r'javascript:', re.IGNORECASE)

    PHONE_PATTERN = re.compile(r'^[\d\s\(\)\-\+]+$')
    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

    NAME_MIN_LENGTH = 3
    NAME_MAX_LENGTH = 100
    PHONE_MIN_LENGTH = 10
    PHONE_MAX_LENGTH = 20

    @staticmethod
    def sanitize_text(text: str) -> str:
        """
        Strip markup and normalize whitespace.

        Args:
            text: Raw user input

        Returns:
            Text safe for display
        """
        if not text:
            return text

        text = InputSanitizer.SCRIPT_PATTERN.sub('', text)
        text = InputSanitizer.JAVASCRIPT_PATTERN.sub('', text)
        text = InputSanitizer.HTML_TAG_PATTERN.sub('', text)

        return ' '.join(text.split()).strip()

    @staticmethod
    def clean_client_name(name: str) -> str:
        """
        Sanitize and check a client's full name.

        Raises:
            ValueError: If the cleaned name is shorter than 3 or longer than 100 characters
        """
        cleaned = InputSanitizer.sanitize_text(name or "")
        if len(cleaned) < InputSanitizer.NAME_MIN_LENGTH:
            raise ValueError("Name must have at least 3 characters")
        if len(cleaned) > InputSanitizer.NAME_MAX_LENGTH:
            raise ValueError("Name must have at most 100 characters")
        return cleaned

    @staticmethod
    def clean_phone(phone: str) -> str:
        """
        Check a phone/WhatsApp number.

        Only digits, spaces, parentheses, hyphens and plus signs are allowed.

        Raises:
            ValueError: If the number is malformed or has the wrong length
        """
        cleaned = (phone or "").strip()
        if len(cleaned) < InputSanitizer.PHONE_MIN_LENGTH:
            raise ValueError("Phone must have at least 10 digits")
        if len(cleaned) > InputSanitizer.PHONE_MAX_LENGTH:
            raise ValueError("Phone must have at most 20 characters")
        if not InputSanitizer.PHONE_PATTERN.match(cleaned):
            raise ValueError("Invalid phone format")
        return cleaned

    @staticmethod
    def clean_email(email: Optional[str]) -> Optional[str]:
        """
        Check an optional e-mail address. Blank values become None.

        Raises:
            ValueError: If a non-blank address is malformed
        """
        if email is None or not email.strip():
            return None
        cleaned = email.strip()
        if not InputSanitizer.EMAIL_PATTERN.match(cleaned):
            raise ValueError("Invalid e-mail address")
        return cleaned
