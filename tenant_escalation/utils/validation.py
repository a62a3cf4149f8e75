"""Input validation utilities."""

import html
import re
from typing import Optional

from email_validator import validate_email as email_validate, EmailNotValidError


def validate_email(email: str) -> bool:
    """Validate email address format."""
    try:
        email_validate(email, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Return a trimmed address, or None when it is blank or malformed."""
    if not email:
        return None
    cleaned = email.strip()
    if not cleaned or not validate_email(cleaned):
        return None
    return cleaned


def sanitize_input(text: Optional[str], max_length: int = 1000) -> str:
    """Sanitize free text before it is interpolated into an HTML message."""
    if not text:
        return ""

    # Remove control characters except newlines and tabs
    text = re.sub(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]', '', text)

    # Limit length
    if len(text) > max_length:
        text = text[:max_length] + "..."

    return html.escape(text.strip())
