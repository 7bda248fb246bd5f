"""Content fingerprints for screenshots and their lookup in run logs."""

from __future__ import annotations

import hashlib


def fingerprint(payload: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of ``payload``."""

    return hashlib.sha256(payload).hexdigest()


def appears_in(digest: str, corpus: str) -> bool:
    """
    Return True when ``digest`` occurs anywhere in ``corpus``.

    This is a plain substring test: the digest is not tied to the log line
    that printed it, so any occurrence in the run output is accepted.
    """

    return bool(digest) and digest in corpus
