"""
Payload classification and transport repair.

Turns the raw text recovered from a QR code into a VerificationInput.
The rules form a priority list, checked in order:

1. Public link: contains the verification path marker and carries no
   `data` query parameter. The order identifier is the path segment
   after the marker, up to the next `/`, `?` or `#`.
2. Encrypted link: carries a `data` query parameter. The value is
   URL-decoded twice (query parsing, then the value itself, so links
   that were percent-encoded twice still resolve) and every space is
   turned back into `+`.
3. Mangled ciphertext: no URL structure but contains spaces. Spaces are
   turned back into `+`.
4. Anything else is ciphertext, unmodified.

URL decoding turns `+` into a space. Base64 ciphertext is full of `+`,
so every path that went through a URL decoder needs the repair.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import parse_qsl, unquote, urlsplit

from inspector.app.errors import MalformedPublicLink
from inspector.app.schemas.payload import (
    EncryptedLink,
    PublicLink,
    RawCipherText,
    VerificationInput,
)

logger = logging.getLogger(__name__)

VERIFY_PATH_MARKER = "/verify/"
DATA_QUERY_PARAM = "data"

_SEGMENT_TERMINATORS = ("/", "?", "#")


def classify_payload(raw: str) -> VerificationInput:
    """
    Classify a raw scanned string.

    Raises:
        MalformedPublicLink: the public link marker is present but no
            order identifier follows it.
    """
    data_value = _data_param(raw)

    if VERIFY_PATH_MARKER in raw and data_value is None:
        return PublicLink(order_id=_extract_order_id(raw), source=raw)

    if data_value is not None:
        return EncryptedLink(cipher_text=_restore_plus(data_value))

    if " " in raw and not _has_url_structure(raw):
        logger.debug("payload_space_repair_applied")
        return RawCipherText(cipher_text=_restore_plus(raw))

    return RawCipherText(cipher_text=raw)


def normalize_payload(raw: str) -> str:
    """
    Canonical string form of a payload.

    For ciphertext variants this is the repaired ciphertext; for public
    links it is the link itself. The result is a fixed point: normalizing
    it again returns it unchanged.
    """
    canonical = classify_payload(raw).canonical
    # A decoded `data` value may itself be a link; unwrap until stable.
    # Every pass shortens the string or removes its spaces, so this ends.
    while True:
        again = classify_payload(canonical).canonical
        if again == canonical:
            return canonical
        canonical = again


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _restore_plus(value: str) -> str:
    return value.replace(" ", "+")


def _has_url_structure(raw: str) -> bool:
    try:
        parts = urlsplit(raw)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc) or "?" in raw


def _data_param(raw: str) -> Optional[str]:
    """Fully decoded value of the first `data` query parameter, if any."""
    if "?" not in raw:
        return None

    try:
        query = urlsplit(raw).query
    except ValueError:
        # e.g. an unbalanced "[" read as an IPv6 host
        return None
    if not query:
        return None

    for key, value in parse_qsl(query, keep_blank_values=True):
        if key == DATA_QUERY_PARAM:
            return unquote(value)
    return None


def _extract_order_id(raw: str) -> str:
    tail = raw.split(VERIFY_PATH_MARKER, 1)[1]

    end = len(tail)
    for terminator in _SEGMENT_TERMINATORS:
        idx = tail.find(terminator)
        if idx != -1:
            end = min(end, idx)

    order_id = tail[:end]
    if not order_id:
        raise MalformedPublicLink()
    return order_id
