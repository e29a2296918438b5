"""Content hashes recorded with every version snapshot."""

import hashlib
import hmac

HASH_ALGORITHM = "sha256"


def compute_text_hash(text: str) -> str:
    """Hex digest of UTF-8 text, as stored in ``content_hash``."""
    return hashlib.new(HASH_ALGORITHM, text.encode("utf-8")).hexdigest()


def verify_text_hash(text: str, expected: str) -> bool:
    """True if the text still matches a recorded hash."""
    return hmac.compare_digest(compute_text_hash(text), expected)
