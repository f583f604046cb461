"""Secret scrubbing for logs and model-facing error text.

ERP passwords and document-search API keys travel inside JSON-RPC argument
lists and HTTP headers; none of them may reach a log line or the language
model. Structured payloads are scrubbed by key (or, for RPC argument lists,
by position); free text is scrubbed with regexes.
"""

import re
from typing import Any

REDACTED = "***REDACTED***"

# Matched as case-insensitive substrings of mapping keys
SENSITIVE_KEY_FRAGMENTS = frozenset({
    "secret", "password", "passwd", "token", "api_key", "apikey",
    "authorization", "credential", "encrypted",
})

# Whole value dropped whatever it holds
_OPAQUE_KEYS = frozenset({"credentials", "headers"})

# Odoo puts the password third in both ``common.authenticate`` and
# ``object.execute_kw`` argument lists
RPC_SECRET_POSITION = 2


def _key_is_sensitive(key: Any, fragments: frozenset[str]) -> bool:
    lowered = str(key).lower()
    return lowered in _OPAQUE_KEYS or any(fragment in lowered for fragment in fragments)


def redact_for_logging(value: Any, fragments: frozenset[str] = SENSITIVE_KEY_FRAGMENTS) -> Any:
    """Copy of ``value`` with sensitive mapping entries replaced.

    Walks dicts, lists and tuples. The input is never mutated.

    Args:
        value: Payload about to be logged.
        fragments: Key substrings that mark a value as sensitive.

    Returns:
        The scrubbed copy (scalars are returned as-is).
    """
    if isinstance(value, dict):
        return {
            key: REDACTED if _key_is_sensitive(key, fragments) else redact_for_logging(item, fragments)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_logging(item, fragments) for item in value]
    return value


def redact_rpc_args(args: list[Any]) -> list[Any]:
    """Mask the positional password of an Odoo JSON-RPC argument list."""
    scrubbed = redact_for_logging(list(args))
    if len(scrubbed) > RPC_SECRET_POSITION:
        scrubbed[RPC_SECRET_POSITION] = REDACTED
    return scrubbed


_SECRET_WORDS = r"secret|password|passwd|token|api_key|apikey|authorization|credential"

_FREE_TEXT_SECRETS = re.compile(
    r"(?i)(?:"
    r"(?:authorization\s*:\s*)?bearer\s+[\w\-.~+/=]+"  # Authorization: Bearer <token>
    rf'|"(?:{_SECRET_WORDS})"\s*:\s*"[^"]*"'  # "api_key": "..."
    rf'|(?:{_SECRET_WORDS})\s*[=:]\s*"[^"]*"'  # password="..."
    rf"|(?:{_SECRET_WORDS})\s*[=:]\s*[^\s,;&]+"  # password=...
    r")",
)

_URL_USERINFO = re.compile(r"(?i)\b(https?://)[^/\s:@]+:[^/\s@]+@")


def sanitize_error_message(message: str | None, max_length: int = 2000) -> str | None:
    """Scrub secrets from free text, then cap its length.

    Args:
        message: Exception text or upstream error detail. ``None`` passes
            through.
        max_length: Longest string returned, ellipsis included.

    Returns:
        The scrubbed text, or ``None``.
    """
    if message is None:
        return None
    cleaned = _FREE_TEXT_SECRETS.sub(REDACTED, message)
    cleaned = _URL_USERINFO.sub(rf"\g<1>{REDACTED}@", cleaned)
    if len(cleaned) > max_length:
        return cleaned[: max_length - 3] + "..."
    return cleaned
