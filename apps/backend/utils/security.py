"""
Redaction helpers for error text that may echo upstream URLs or headers.
"""

import re
from typing import Optional


_REDACTIONS = [
    (r"(api_key=)[^&\s]+", r"\1[REDACTED]"),
    (r"(key=)[^&\s]+", r"\1[REDACTED]"),
    (r"(token=)[^&\s]+", r"\1[REDACTED]"),
    (r"(X-Api-Key:)\s*[^\s]+", r"\1 [REDACTED]"),
    (r"(Authorization: Bearer)\s+[^\s]+", r"\1 [REDACTED]"),
]


def redact_secrets_from_text(text: str) -> str:
    """
    Redact secrets from plain text using regex patterns.

    Used on exception messages before they are logged or returned to a
    caller, since httpx errors embed the full request URL.

    Args:
        text: String potentially containing secrets in URLs or headers

    Returns:
        String with secrets replaced with '[REDACTED]'
    """
    if not text:
        return text

    out = text
    for pattern, repl in _REDACTIONS:
        out = re.sub(pattern, repl, out, flags=re.IGNORECASE)
    return out


def redact_value(text: str, secret: Optional[str]) -> str:
    """Replace every occurrence of a known secret value in ``text``."""
    if not text or not secret:
        return text
    return text.replace(secret, "[REDACTED]")
