"""Content hashes and capture signatures."""

import hashlib
import hmac
import re
from typing import Iterable

SIGNATURE_VERSION = "v2"
SIGNATURE_PATTERN = re.compile(r"^sig_v2_[a-f0-9]{32}$")
HASH_PREFIX = "sha256:"


def hash_bytes(data: bytes) -> str:
    """Content hash in the sha256:<hex> format stored in metadata."""
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def normalize_hash(value: str) -> str:
    """Accept bare hex digests as well as prefixed ones."""
    value = (value or "").strip().lower()
    return value if value.startswith(HASH_PREFIX) else HASH_PREFIX + value


def compute_signature(
    source_id: str,
    url: str,
    captured_at: str,
    file_hashes: Iterable[str],
    secret: str,
) -> str:
    """Sign the fields a capture tool controls.

    Title, type and other free-form metadata are never part of the message.
    """
    message = ":".join([
        SIGNATURE_VERSION,
        source_id,
        url,
        captured_at,
        "|".join(sorted(normalize_hash(h) for h in file_hashes)),
    ])
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"sig_{SIGNATURE_VERSION}_{digest[:32]}"


def signature_is_well_formed(signature: str) -> bool:
    return bool(SIGNATURE_PATTERN.match(signature or ""))
