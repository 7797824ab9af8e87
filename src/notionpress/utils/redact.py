"""Credential redaction for safe logging.

Request and response payloads of both remote APIs pass through
:func:`redact` before they are written to logs or debug dumps:

* **Authorization headers** (``Bearer`` for Notion, ``Basic`` for
  WordPress application passwords) are replaced with a masked placeholder.
* Values under **sensitive keys** (``token``, ``password``, ``secret``...)
  are masked.
* Every explicitly supplied **secret** is scrubbed wherever it appears.
* Very long **binary-looking strings** are replaced with ``<binary:N_bytes>``.
"""

from __future__ import annotations

import copy
import re
from typing import Any

# Substrings: if any of these appear in a key name (case-insensitive), the
# value is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "api_key",
    "api-key",
})

_AUTH_SCHEME_RE = re.compile(r"((?:Bearer|Basic)\s+)\S+", re.IGNORECASE)

_BINARY_LENGTH_THRESHOLD = 256


def _mask_secrets(value: str, secrets: tuple[str, ...]) -> str:
    for secret in secrets:
        if secret and secret in value:
            suffix = secret[-4:] if len(secret) >= 8 else "****"
            value = value.replace(secret, f"<redacted:...{suffix}>")
    return _AUTH_SCHEME_RE.sub(lambda m: f"{m.group(1)}<redacted>", value)


def _looks_binary(value: str) -> bool:
    if len(value) < _BINARY_LENGTH_THRESHOLD:
        return False
    sample = value[:512]
    non_printable = sum(
        1 for ch in sample if not ch.isprintable() and ch not in ("\n", "\r", "\t")
    )
    return non_printable > len(sample) * 0.1


def _redact_value(value: Any, secrets: tuple[str, ...]) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value, secrets)
    if isinstance(value, list):
        return [_redact_value(item, secrets) for item in value]
    if isinstance(value, str):
        if _looks_binary(value):
            return f"<binary:{len(value.encode('utf-8'))}_bytes>"
        return _mask_secrets(value, secrets)
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    return value


def _redact_dict(d: dict, secrets: tuple[str, ...]) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            if isinstance(value, str):
                masked = _mask_secrets(value, secrets)
                result[key] = masked if masked != value else "<redacted>"
            else:
                result[key] = "<redacted>"
        else:
            result[key] = _redact_value(value, secrets)
    return result


def redact(payload: dict, *secrets: str | None) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    Parameters
    ----------
    payload:
        The dictionary to sanitize (typically a request body or a set of
        headers).
    *secrets:
        Known secrets (integration token, application password).  Any
        occurrence of these exact strings is replaced.

    Returns
    -------
    dict
        A new dictionary with all sensitive data removed.  The original
        *payload* is never mutated.

    Examples
    --------
    >>> redact({"Authorization": "Bearer ntn_abc123"})
    {'Authorization': 'Bearer <redacted>'}
    """
    safe = copy.deepcopy(payload)
    return _redact_dict(safe, tuple(s for s in secrets if s))
