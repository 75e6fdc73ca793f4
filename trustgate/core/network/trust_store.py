"""
Trust Pool for chain validation.

Composes the set of trusted root certificates from the system store, the
embedded fallback bundle and operator supplied certificates.
Rule #2: Fixed bounds on custom certificate count.
Rule #4: Functions under 60 lines.
Rule #9: Complete type hints.

Concurrency
-----------
Pools are copy-on-write. Every mutation takes the pool lock, builds a new
immutable RootPool and swaps the reference. Readers never lock: they see
either the full pre-mutation or the full post-mutation pool.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.verification import Store

from trustgate.core.exceptions import EmptyInputError, MalformedCertificateError
from trustgate.core.logging import get_logger
from trustgate.core.network.fingerprint import Fingerprint
from trustgate.core.network.roots import (
    load_embedded_roots,
    load_pem_certificate,
    load_system_roots,
    split_pem_blocks,
)
from trustgate.core.security.path import PathSanitizer

logger = get_logger(__name__)

# Rule #2: Fixed upper bounds
MAX_CUSTOM_CERTIFICATES = 1000

RootLoader = Callable[[], List[x509.Certificate]]


class RootPool:
    """
    Immutable snapshot of trust anchors.

    Certificates are deduplicated by fingerprint, keeping first-seen order.
    An empty pool has no verification store; nothing validates against it.
    """

    def __init__(self, certificates: Iterable[x509.Certificate] = ()) -> None:
        unique: Dict[Fingerprint, x509.Certificate] = {}
        for cert in certificates:
            unique.setdefault(Fingerprint.of_certificate(cert), cert)

        self._certificates: Tuple[x509.Certificate, ...] = tuple(unique.values())
        self._fingerprints = frozenset(unique)
        self._store: Optional[Store] = (
            Store(list(self._certificates)) if self._certificates else None
        )

    @property
    def certificates(self) -> Tuple[x509.Certificate, ...]:
        return self._certificates

    @property
    def store(self) -> Optional[Store]:
        """Verification store, or None when the pool is empty."""
        return self._store

    def is_empty(self) -> bool:
        return not self._certificates

    def with_certificates(self, certificates: Iterable[x509.Certificate]) -> "RootPool":
        """Return a new pool holding this pool's anchors plus certificates."""
        return RootPool((*self._certificates, *certificates))

    def __len__(self) -> int:
        return len(self._certificates)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, x509.Certificate):
            item = Fingerprint.of_certificate(item)
        return item in self._fingerprints

    def __repr__(self) -> str:
        return f"RootPool({len(self)} anchors)"


class TrustPool:
    """
    Manages the process-wide trust pool used for chain validation.

    Assembly order:
        1. System roots (skipped if disabled; empty if unavailable)
        2. Embedded roots (skipped if disabled)
        3. Custom certificates (always)
    """

    def __init__(
        self,
        disable_system_ca: bool = False,
        disable_embed_ca: bool = False,
        base_path: Optional[Path] = None,
        system_loader: RootLoader = load_system_roots,
        embedded_loader: RootLoader = load_embedded_roots,
    ) -> None:
        self.disable_system_ca = disable_system_ca
        self.disable_embed_ca = disable_embed_ca
        self._sanitizer = PathSanitizer(base_path)
        self._system_loader = system_loader
        self._embedded_loader = embedded_loader

        self._lock = threading.Lock()
        self._custom: Tuple[x509.Certificate, ...] = ()
        self._pool: Optional[RootPool] = None

    @property
    def base_path(self) -> Path:
        return self._sanitizer.base_dir

    @property
    def custom_certificates(self) -> Tuple[x509.Certificate, ...]:
        """Certificates added since construction or the last reset."""
        return self._custom

    def derived_pool(self) -> RootPool:
        """
        Get the composed trust pool.

        Built on first access after construction or reset, then cached.
        """
        pool = self._pool
        if pool is not None:
            return pool

        with self._lock:
            if self._pool is None:
                self._pool = self._build_pool(self._custom)
            return self._pool

    def add_certificate(self, certificate: Union[str, bytes]) -> x509.Certificate:
        """
        Add one PEM certificate to the pool.

        Visible to every verification that starts after this returns.

        Raises:
            EmptyInputError: If certificate is empty.
            MalformedCertificateError: If PEM decoding or X.509 parsing fails.
        """
        if not certificate or not certificate.strip():
            raise EmptyInputError("certificate is empty")

        cert = load_pem_certificate(certificate)
        self._append((cert,))
        logger.info(
            "Added custom trust anchor",
            subject=cert.subject.rfc4514_string(),
            fingerprint=Fingerprint.of_certificate(cert).hex,
        )
        return cert

    def add_certificates(self, certificates: Iterable[x509.Certificate]) -> int:
        """Add already parsed anchors, e.g. a custom CA bundle from config."""
        certs = tuple(certificates)
        if certs:
            self._append(certs)
            logger.info("Added custom trust anchors", count=len(certs))
        return len(certs)

    def add_certificate_key_pair(
        self, certificate: str, private_key: Optional[str] = None
    ) -> int:
        """
        Add every certificate of a chain bundled with its private key.

        Each value is inline PEM or a path resolved against base_path.
        Unreadable input, bad certificate blocks and a key that does not load
        or does not match the leaf are logged as warnings; the remaining
        certificates are still added.

        Returns:
            Number of certificates added.

        Raises:
            EmptyInputError: If certificate is empty.
            PathTraversalError: If a path escapes base_path.
        """
        if not certificate or not certificate.strip():
            raise EmptyInputError("certificate is empty")

        cert_data = self._read_material(certificate, "certificate")
        certs = self._parse_bundle(cert_data) if cert_data else []

        if private_key:
            self._check_private_key(private_key, certs)

        if not certs:
            logger.warning("No usable certificate in certificate/key pair")
            return 0

        self._append(tuple(certs))
        logger.info("Added certificate chain from key pair", count=len(certs))
        return len(certs)

    def reset(self) -> None:
        """Discard custom certificates; the pool is rebuilt on next access."""
        with self._lock:
            dropped = len(self._custom)
            self._custom = ()
            self._pool = None
        logger.info("Trust pool reset", dropped_custom=dropped)

    def _append(self, certs: Tuple[x509.Certificate, ...]) -> None:
        with self._lock:
            # Rule #2: Bound the number of custom anchors
            if len(self._custom) + len(certs) > MAX_CUSTOM_CERTIFICATES:
                raise MalformedCertificateError(
                    f"custom certificate limit ({MAX_CUSTOM_CERTIFICATES}) reached",
                    why_it_happened="Too many custom certificates were added",
                    how_to_fix=["Reset the trust pool or use a single CA bundle"],
                )
            self._custom = self._custom + certs
            if self._pool is not None:
                self._pool = self._pool.with_certificates(certs)

    def _build_pool(self, custom: Iterable[x509.Certificate]) -> RootPool:
        """
        Build a pool from scratch.

        Rule #7: System root failure degrades to an empty base; a broken
        embedded bundle propagates.
        """
        system: List[x509.Certificate] = []
        if not self.disable_system_ca:
            try:
                system = self._system_loader()
            except (OSError, ValueError) as e:
                logger.warning("System roots unavailable, using empty base", error=str(e))

        embedded: List[x509.Certificate] = []
        if not self.disable_embed_ca:
            embedded = self._embedded_loader()

        pool = RootPool((*system, *embedded, *custom))
        logger.info(
            "Trust pool built",
            system=len(system),
            embedded=len(embedded),
            anchors=len(pool),
        )
        return pool

    def _read_material(self, value: str, label: str) -> Optional[bytes]:
        """Return inline PEM as bytes, or the content of the file it names."""
        if "-----BEGIN" in value:
            return value.encode("utf-8")

        path = self._sanitizer.sanitize_path(value)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning(f"Failed to read {label}", path=path.name, error=str(e))
            return None

    def _parse_bundle(self, data: bytes) -> List[x509.Certificate]:
        certs: List[x509.Certificate] = []
        blocks = split_pem_blocks(data)
        if not blocks:
            logger.warning("Certificate text contains no PEM block")
        for index, block in enumerate(blocks):
            try:
                certs.append(x509.load_pem_x509_certificate(block))
            except ValueError as e:
                logger.warning(
                    "Failed to parse x509 certificate", index=index, error=str(e)
                )
        return certs

    def _check_private_key(
        self, private_key: str, certs: List[x509.Certificate]
    ) -> None:
        """Warn if the key cannot be loaded or does not belong to the leaf."""
        key_data = self._read_material(private_key, "private key")
        if not key_data:
            return

        try:
            key = serialization.load_pem_private_key(key_data, password=None)
        except (ValueError, TypeError) as e:
            logger.warning("Failed to parse private key", error=str(e))
            return

        if certs and _spki(certs[0].public_key()) != _spki(key.public_key()):
            logger.warning(
                "Private key does not match leaf certificate",
                subject=certs[0].subject.rfc4514_string(),
            )


def _spki(public_key: object) -> bytes:
    return public_key.public_bytes(  # type: ignore[attr-defined]
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
