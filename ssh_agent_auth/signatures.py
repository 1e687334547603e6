"""Normalize agent signatures into HTTP signature-auth form.

The agent returns structurally different blobs depending on the key
algorithm:

- RSA: the raw PKCS#1 v1.5 signature bytes.
- ECDSA: ``mpint r || mpint s`` in SSH wire encoding.

Both are rendered as ``(base64 text, algorithm label)``. ECDSA signatures
are re-encoded as DER ``SEQUENCE { r, s }`` before base64, which is what
HTTP signature verifiers expect.
"""

from __future__ import annotations

import base64

from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from .errors import SignatureDecodeError, UnsupportedAlgorithmError
from .wire import WireError, WireReader

RSA_FORMATS = frozenset({"ssh-rsa", "rsa-sha2-256", "rsa-sha2-512"})
ECDSA_CURVE_BITS = {
    "ecdsa-sha2-nistp256": 256,
    "ecdsa-sha2-nistp384": 384,
    "ecdsa-sha2-nistp521": 521,
}
DSA_FORMATS = frozenset({"ssh-dss"})


def key_format_to_family(format: str) -> str:
    """Map an agent signature format tag to its key family.

    Returns:
        One of ``"rsa"``, ``"ecdsa"`` or ``"dsa"``.

    Raises:
        UnsupportedAlgorithmError: For any other format tag.
    """
    if format in RSA_FORMATS:
        return "rsa"
    if format in ECDSA_CURVE_BITS:
        return "ecdsa"
    if format in DSA_FORMATS:
        return "dsa"
    raise UnsupportedAlgorithmError(format)


class RSASignature:
    """An RSA signature. Always labelled ``rsa-sha256``."""

    hash_algorithm = "sha256"

    def __init__(self, signature: bytes) -> None:
        self._signature = signature

    @classmethod
    def from_blob(cls, blob: bytes) -> "RSASignature":
        if not blob:
            raise SignatureDecodeError("empty RSA signature blob")
        return cls(blob)

    @property
    def signature_type(self) -> str:
        return f"rsa-{self.hash_algorithm}"

    def __str__(self) -> str:
        return base64.b64encode(self._signature).decode("ascii")


class ECDSASignature:
    """An ECDSA signature with its (r, s) components and curve hash."""

    def __init__(self, r: int, s: int, hash_algorithm: str) -> None:
        self.r = r
        self.s = s
        self.hash_algorithm = hash_algorithm

    @classmethod
    def from_blob(cls, blob: bytes, curve_bits: int) -> "ECDSASignature":
        try:
            reader = WireReader(blob)
            r = reader.read_mpint()
            s = reader.read_mpint()
            reader.expect_end()
        except WireError as exc:
            raise SignatureDecodeError(f"malformed ECDSA signature blob: {exc}") from exc
        if r <= 0 or s <= 0:
            raise SignatureDecodeError("ECDSA signature components must be positive")
        return cls(r, s, _curve_hash(curve_bits))

    @property
    def signature_type(self) -> str:
        return f"ecdsa-{self.hash_algorithm}"

    def __str__(self) -> str:
        return base64.b64encode(encode_dss_signature(self.r, self.s)).decode("ascii")


def _curve_hash(curve_bits: int) -> str:
    # RFC 5656 section 6.2.1
    if curve_bits <= 256:
        return "sha256"
    if curve_bits <= 384:
        return "sha384"
    return "sha512"


def decode_signature(format: str, blob: bytes) -> RSASignature | ECDSASignature:
    """Decode an agent signature into its family's signature object.

    Raises:
        UnsupportedAlgorithmError: If the format is not RSA or ECDSA.
        SignatureDecodeError: If the blob is malformed.
    """
    family = key_format_to_family(format)
    if family == "rsa":
        return RSASignature.from_blob(blob)
    if family == "ecdsa":
        return ECDSASignature.from_blob(blob, ECDSA_CURVE_BITS[format])
    raise UnsupportedAlgorithmError(format)


def normalize(format: str, blob: bytes) -> tuple[str, str]:
    """Render an agent signature as ``(signature text, algorithm label)``.

    Args:
        format: The agent-reported format tag (e.g. ``rsa-sha2-256``).
        blob: The agent-reported signature blob.

    Returns:
        Tuple of (base64 signature text, algorithm label).

    Raises:
        UnsupportedAlgorithmError: If the format is not RSA or ECDSA.
        SignatureDecodeError: If the blob is malformed.
    """
    signature = decode_signature(format, blob)
    return str(signature), signature.signature_type
