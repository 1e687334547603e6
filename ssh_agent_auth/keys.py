"""SSH public keys as reported by the agent, and their fingerprints.

Two fingerprint algorithms are in common use:

- MD5: lowercase hex digest, traditionally shown colon-grouped
  (``MD5:9f:3a:...``).
- SHA-256: unpadded standard base64 digest (``SHA256:uH4t...``).
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

from .wire import WireError, WireReader

MD5_PREFIX = "MD5:"
SHA256_PREFIX = "SHA256:"


@dataclass(frozen=True)
class PublicKey:
    """A public key in SSH wire encoding, plus the agent's comment."""

    blob: bytes
    comment: str = ""

    @property
    def key_type(self) -> str:
        """The key algorithm name embedded in the blob (e.g. ``ssh-rsa``)."""
        try:
            return WireReader(self.blob).read_string().decode("ascii")
        except (WireError, UnicodeDecodeError):
            return ""

    @classmethod
    def from_cryptography(cls, key: PublicKeyTypes, comment: str = "") -> "PublicKey":
        """Build a PublicKey from a ``cryptography`` public key object."""
        openssh = key.public_bytes(
            serialization.Encoding.OpenSSH,
            serialization.PublicFormat.OpenSSH,
        )
        encoded = openssh.split(b" ")[1]
        return cls(blob=base64.b64decode(encoded), comment=comment)


def md5_fingerprint(key: PublicKey) -> str:
    """Lowercase hex MD5 digest of the key's wire encoding."""
    return hashlib.md5(key.blob).hexdigest()


def sha256_fingerprint(key: PublicKey) -> str:
    """Unpadded standard base64 SHA-256 digest of the key's wire encoding."""
    digest = hashlib.sha256(key.blob).digest()
    return base64.b64encode(digest).decode("ascii").rstrip("=")


def strip_fingerprint(fingerprint: str) -> str:
    """Reduce a user-supplied fingerprint to its bare digest string.

    A leading ``MD5:`` is removed, then a leading ``SHA256:``, then every
    colon separator.
    """
    if fingerprint.startswith(MD5_PREFIX):
        fingerprint = fingerprint[len(MD5_PREFIX):]
    if fingerprint.startswith(SHA256_PREFIX):
        fingerprint = fingerprint[len(SHA256_PREFIX):]
    return fingerprint.replace(":", "")


def format_fingerprint(key: PublicKey) -> str:
    """Canonical display form: ``SHA256:`` plus the digest in colon-separated pairs."""
    digest = sha256_fingerprint(key)
    pairs = [digest[i:i + 2] for i in range(0, len(digest), 2)]
    return SHA256_PREFIX + ":".join(pairs)
