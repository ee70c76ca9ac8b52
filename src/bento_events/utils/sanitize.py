"""
Module: sanitize.py
Description: Scrubbing of personal data and secrets before logging.

Delivery failures carry free-text messages from the transport layer,
and events carry subscriber e-mail addresses. Neither is logged raw.
"""

import re
from typing import Any

from bento_events.models.envelope import is_valid_email

MAX_ERROR_LENGTH = 500

_ERROR_PATTERNS = [
    (re.compile(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', re.I), '[UUID]'),
    (re.compile(r'\b(?:sk|pk|api[_-]?key|token|secret)[_-]?[a-zA-Z0-9]{16,}\b', re.I), '[API_KEY]'),
    (re.compile(r'\b[a-zA-Z0-9+/]{40,}={0,2}'), '[API_KEY]'),
    (re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}'), '[EMAIL]'),
    # URLs before paths, otherwise the path pattern eats the URL body
    (re.compile(r'https?://\S+'), '[URL]'),
    (re.compile(r'(?<![\w.])/[a-zA-Z0-9._/-]+'), '[PATH]'),
    (re.compile(r'\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b'), '[IP]'),
]


def sanitize_error_message(message: Any) -> str:
    """
    Mask identifiers, credentials and addresses in an error message.

    Args:
        message: Error text (or exception) to sanitize

    Returns:
        Sanitized text, truncated to MAX_ERROR_LENGTH characters
    """
    sanitized = str(message)
    for pattern, replacement in _ERROR_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)

    if len(sanitized) > MAX_ERROR_LENGTH:
        sanitized = sanitized[:MAX_ERROR_LENGTH - 3] + '...'

    return sanitized


def sanitize_email(email: Any) -> str:
    """
    Reduce an e-mail address to its first character and domain.

    The local part is always masked with three asterisks.

    >>> sanitize_email("alice@example.com")
    'a***@example.com'
    """
    if not isinstance(email, str) or not is_valid_email(email):
        return '[EMAIL]'

    local, domain = email.rsplit('@', 1)
    return local[0] + '***@' + domain
