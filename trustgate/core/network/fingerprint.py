"""
Certificate fingerprints.

A fingerprint is the SHA-256 digest of a certificate's raw DER bytes. It is
the unit of pinning: comparison is always exact, byte for byte.

Rule #2: Fixed input bounds.
Rule #9: Complete type hints.
"""

from __future__ import annotations

import binascii
import hashlib
from dataclasses import dataclass
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from trustgate.core.exceptions import InvalidFingerprintFormatError

FINGERPRINT_SIZE = 32

# Rule #2: 32 bytes as colon separated hex is 95 chars; allow whitespace slack
MAX_FINGERPRINT_TEXT_LENGTH = 256


@dataclass(frozen=True)
class Fingerprint:
    """Immutable SHA-256 certificate fingerprint."""

    digest: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.digest, bytes) or len(self.digest) != FINGERPRINT_SIZE:
            raise InvalidFingerprintFormatError(
                f"fingerprint must be {FINGERPRINT_SIZE} bytes"
            )

    @classmethod
    def of_der(cls, der: bytes) -> "Fingerprint":
        """Fingerprint of raw DER certificate bytes, as presented on the wire."""
        return cls(hashlib.sha256(der).digest())

    @classmethod
    def of_certificate(cls, cert: x509.Certificate) -> "Fingerprint":
        """Fingerprint of a parsed certificate."""
        return cls.of_der(cert.public_bytes(serialization.Encoding.DER))

    @property
    def hex(self) -> str:
        """Lowercase hex, no separators."""
        return self.digest.hex()

    def colon_hex(self) -> str:
        """Uppercase colon separated hex, as printed by openssl."""
        return ":".join(f"{b:02X}" for b in self.digest)

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"Fingerprint({self.hex[:16]}...)"


def parse_fingerprint(text: Union[str, bytes]) -> Fingerprint:
    """
    Parse a human supplied SHA-256 fingerprint.

    Accepts hex in either case, with or without ':' separators and surrounding
    whitespace. Exactly 32 decoded bytes are required.

    Args:
        text: Fingerprint text, e.g. "AB:CD:..." or "abcd...".

    Returns:
        The parsed Fingerprint.

    Raises:
        InvalidFingerprintFormatError: On invalid hex or wrong length.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError as e:
            raise InvalidFingerprintFormatError("fingerprint is not ASCII text") from e

    if not isinstance(text, str):
        raise InvalidFingerprintFormatError("fingerprint must be a string")

    if len(text) > MAX_FINGERPRINT_TEXT_LENGTH:
        raise InvalidFingerprintFormatError("fingerprint text is too long")

    cleaned = text.replace(":", "").strip()
    if not cleaned:
        raise InvalidFingerprintFormatError("fingerprint is empty")

    try:
        digest = binascii.unhexlify(cleaned)
    except (binascii.Error, ValueError) as e:
        raise InvalidFingerprintFormatError(
            f"fingerprint is not valid hex: {e}"
        ) from e

    if len(digest) != FINGERPRINT_SIZE:
        raise InvalidFingerprintFormatError(
            f"fingerprint must be {FINGERPRINT_SIZE} bytes (SHA-256), "
            f"got {len(digest)}"
        )

    return Fingerprint(digest)
