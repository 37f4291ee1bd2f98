"""
Payment Gateway Signatures

PayFast-style callback signing:

1. Drop the ``signature`` field
2. Sort the remaining keys alphabetically
3. URL-encode each value the way JavaScript's ``encodeURIComponent`` does
4. Join as ``key=value`` pairs with ``&``
5. Append ``&passphrase=<encoded>`` when a passphrase is configured
6. MD5 hex digest

Non-string values (a JSON ``metadata`` object, numbers, booleans) are
canonicalised as compact, key-sorted JSON before encoding. ``None`` signs as
an empty string.
"""

import hashlib
import hmac
import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

SIGNATURE_FIELD = "signature"

# Characters encodeURIComponent leaves alone besides A-Z a-z 0-9 - _ .
_URI_COMPONENT_SAFE = "!~*'()"


def _canonical_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_signing_string(params: Mapping[str, Any], passphrase: str | None = None) -> str:
    pairs = [
        f"{key}={encode_uri_component(_canonical_value(params[key]))}"
        for key in sorted(params)
        if key != SIGNATURE_FIELD
    ]
    signing_string = "&".join(pairs)

    if passphrase:
        signing_string = f"{signing_string}&passphrase={encode_uri_component(passphrase)}"

    return signing_string


def generate_signature(params: Mapping[str, Any], passphrase: str | None = None) -> str:
    """MD5 hex digest of the canonical signing string."""
    signing_string = build_signing_string(params, passphrase)
    return hashlib.md5(signing_string.encode("utf-8"), usedforsecurity=False).hexdigest()


def verify_signature(params: Mapping[str, Any], passphrase: str | None = None) -> bool:
    """
    Check the ``signature`` field against the recomputed one.

    Returns False when the field is missing or not a string.
    """
    received = params.get(SIGNATURE_FIELD)
    if not received or not isinstance(received, str):
        return False

    expected = generate_signature(params, passphrase)
    return hmac.compare_digest(received.lower().encode("utf-8"), expected.encode("utf-8"))
