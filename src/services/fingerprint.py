"""Content fingerprinting used for deduplication.

A fingerprint is the hex SHA-256 digest of the *normalized* document text.
Normalization applies Unicode NFC and collapses every whitespace run to a
single space, so two scrapes of the same page that differ only in layout
whitespace map to the same job.  The digest does not depend on chunking
parameters and is stable across processes.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")

FINGERPRINT_LENGTH = 64


class ContentFingerprinter:
    """Pure, deterministic content hashing."""

    @staticmethod
    def normalize(text: str) -> str:
        """Return the canonical form of *text* that gets hashed and chunked."""
        return _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFC", text)).strip()

    def fingerprint(self, text: str) -> str:
        return hashlib.sha256(self.normalize(text).encode("utf-8")).hexdigest()
