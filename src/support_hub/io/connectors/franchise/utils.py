"""
Utility functions for the merchant platform connector.
"""

import re

# requests embeds the full URL in exception text, so the value ends at
# whitespace, quotes or a closing paren as well as at the next parameter
_TOKEN_PARAM = re.compile(r"(api_token=)[^&\s'\")]*")


def sanitize_url_for_logging(url: str) -> str:
    """
    Sanitize URL for logging by masking the api_token query parameter.

    Also accepts exception text that embeds a URL.

    Example:
        >>> sanitize_url_for_logging("https://x/api/a?api_token=abc&b=1")
        'https://x/api/a?api_token=[TOKEN_SANITIZED]&b=1'
        >>> sanitize_url_for_logging("Max retries exceeded with url: /a?api_token=abc (Caused by ...)")
        'Max retries exceeded with url: /a?api_token=[TOKEN_SANITIZED] (Caused by ...)'
    """
    return _TOKEN_PARAM.sub(r"\1[TOKEN_SANITIZED]", url)


def sanitize_error_message(message: str, token: str) -> str:
    """Mask the api_token parameter and any bare occurrence of ``token`` in an error message."""
    sanitized = sanitize_url_for_logging(message)
    if token:
        sanitized = sanitized.replace(token, "[TOKEN_SANITIZED]")
    return sanitized
