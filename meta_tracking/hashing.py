"""Normalization and one-way hashing of personally identifying fields."""

from dataclasses import replace
import hashlib
import logging
import re
import zlib
from typing import Any

from .schema import UserData


logger = logging.getLogger(__name__)

SHA256_AVAILABLE = "sha256" in hashlib.algorithms_available

# Fields Meta matches on; everything else on UserData is an opaque token.
HASHED_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "city",
    "state",
    "zip_code",
    "country",
    "external_id",
    "f5first",
    "f5last",
    "fi",
    "dobd",
    "dobm",
    "doby",
)

_fallback_warned = False


def _normalized(value: Any) -> str:
    """Return a stripped, lower-cased string for hashing."""

    if not isinstance(value, str):
        return ""

    return value.strip().lower()


def _checksum(normalized: str) -> str:
    global _fallback_warned
    if not _fallback_warned:
        logger.warning(
            "SHA-256 is unavailable in this interpreter; falling back to CRC32. "
            "Hashed fields will not match on the Meta side."
        )
        _fallback_warned = True
    return format(zlib.crc32(normalized.encode("utf-8")), "x")


def hash_value(value: Any) -> str:
    """Return the SHA-256 hex digest of a normalized string, or ``""`` for empty input."""

    normalized = _normalized(value)
    if not normalized:
        return ""

    if not SHA256_AVAILABLE:
        return _checksum(normalized)

    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def clean_phone(phone: Any) -> str:
    """Meta expects phone numbers with digits only before hashing."""

    if not isinstance(phone, str):
        return ""

    return re.sub(r"\D", "", phone)


def normalize_user_data(user_data: UserData) -> UserData:
    """Return a copy of ``user_data`` with every matching field hashed.

    Empty values stay ``None`` so the builder can skip them.
    """

    changes = {}
    for name in HASHED_FIELDS:
        raw = getattr(user_data, name)
        if raw not in (None, ""):
            changes[name] = hash_value(str(raw)) or None

    if user_data.phone not in (None, ""):
        changes["phone"] = hash_value(clean_phone(str(user_data.phone))) or None

    return replace(user_data, **changes)
