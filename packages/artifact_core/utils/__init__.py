"""Utility functions."""

from artifact_core.utils.hashing import compute_text_hash, verify_text_hash

__all__ = ["compute_text_hash", "verify_text_hash"]
