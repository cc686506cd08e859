import re

# (pattern, replacement), applied in order. Anthropic keys go first
# since they share the "sk-" prefix.
_REDACTIONS: "tuple[tuple[re.Pattern[str], str], ...]" = (
    (re.compile(r"sk-ant-[a-zA-Z0-9-]{20,}"), "sk-ant-***"),
    (re.compile(r"sk-[a-zA-Z0-9_-]{20,}"), "sk-***"),
    (re.compile(r"AIza[a-zA-Z0-9_-]{35}"), "AIza***"),
    (re.compile(r"xai-[a-zA-Z0-9]{20,}"), "xai-***"),
    (re.compile(r"Bearer\s+[a-zA-Z0-9._-]+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"api[_-]?key[:=]\s*[^\s&\"']+", re.IGNORECASE), "api_key=***"),
    (re.compile(r"authorization[:=]\s*[^\s&\"']+", re.IGNORECASE), "authorization=***"),
)


def sanitize_error_message(error: "BaseException | object") -> "str":
    """
    returns the error message with credential-looking tokens redacted.
    Used for every message attached to a span status.
    """
    if not isinstance(error, BaseException):
        return "Unknown error"

    message = str(error) or type(error).__name__
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    return message
