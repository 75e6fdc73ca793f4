"""
Root certificate sources.

Loads the two built-in trust sources that seed the derived pool:

- **System roots**: the OpenSSL default verify locations of this host
  (CA bundle file and hashed CA directory).
- **Embedded roots**: the Mozilla CA bundle shipped with certifi, used as an
  additive fallback on hosts with a missing or stale system store.

Also provides PEM helpers shared by the trust pool and the policy layer.
"""

from __future__ import annotations

import re
import ssl
from pathlib import Path
from typing import Iterable, List, Optional, Union

import certifi
from cryptography import x509

from trustgate.core.exceptions import (
    CAFileUnreadableError,
    CAStringInvalidError,
    EmbeddedBundleError,
    MalformedCertificateError,
)
from trustgate.core.logging import get_logger

logger = get_logger(__name__)

# Rule #2: Fixed upper bounds
MAX_BUNDLE_CERTIFICATES = 4096
MAX_CA_DIRECTORY_ENTRIES = 4096

PEM_CERTIFICATE_PATTERN = re.compile(
    rb"-----BEGIN CERTIFICATE-----\r?\n.*?-----END CERTIFICATE-----",
    re.DOTALL,
)


def _as_bytes(data: Union[str, bytes]) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def split_pem_blocks(data: Union[str, bytes]) -> List[bytes]:
    """Return every CERTIFICATE PEM block in data, in order."""
    return PEM_CERTIFICATE_PATTERN.findall(_as_bytes(data))[:MAX_BUNDLE_CERTIFICATES]


def load_pem_certificate(block: Union[str, bytes]) -> x509.Certificate:
    """
    Parse exactly the first PEM certificate block in the input.

    Raises:
        MalformedCertificateError: If there is no PEM block or the block is
            not valid X.509.
    """
    blocks = split_pem_blocks(block)
    if not blocks:
        raise MalformedCertificateError(
            "failed to parse PEM block containing the certificate"
        )
    try:
        return x509.load_pem_x509_certificate(blocks[0])
    except ValueError as e:
        raise MalformedCertificateError(f"invalid X.509 certificate: {e}") from e


def load_pem_certificates(
    data: Union[str, bytes], *, strict: bool = False, source: str = "bundle"
) -> List[x509.Certificate]:
    """
    Parse every certificate in a PEM bundle.

    Args:
        data: PEM text, possibly holding many blocks and comments.
        strict: Raise on the first bad block instead of skipping it.
        source: Label used in log messages.

    Returns:
        The parsed certificates; unparseable blocks are skipped unless strict.
    """
    certs: List[x509.Certificate] = []
    for index, block in enumerate(split_pem_blocks(data)):
        try:
            certs.append(x509.load_pem_x509_certificate(block))
        except ValueError as e:
            if strict:
                raise MalformedCertificateError(
                    f"{source}: certificate #{index} is invalid: {e}"
                ) from e
            logger.debug("Skipping unparseable certificate", source=source, index=index)
    return certs


def _read_ca_file(path: Path) -> List[x509.Certificate]:
    """Read a PEM bundle, returning an empty list if unreadable."""
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.debug("Cannot read CA file", path=str(path), error=str(e))
        return []
    return load_pem_certificates(data, source=str(path))


def _read_ca_directory(path: Path) -> List[x509.Certificate]:
    """Read every PEM file of an OpenSSL hashed CA directory."""
    certs: List[x509.Certificate] = []
    try:
        entries = sorted(path.iterdir())[:MAX_CA_DIRECTORY_ENTRIES]
    except OSError as e:
        logger.debug("Cannot list CA directory", path=str(path), error=str(e))
        return certs

    for entry in entries:
        if entry.is_file():
            certs.extend(_read_ca_file(entry))
    return certs


def _default_verify_locations() -> Iterable[Optional[str]]:
    paths = ssl.get_default_verify_paths()
    return (paths.cafile, paths.openssl_cafile, paths.capath, paths.openssl_capath)


def load_system_roots() -> List[x509.Certificate]:
    """
    Load the operating system's root certificates.

    Never raises: if the system store cannot be located or read, an empty
    list is returned and chain validation will rely on the other sources.
    """
    certs: List[x509.Certificate] = []
    seen: set = set()

    try:
        locations = list(_default_verify_locations())
    except (OSError, ValueError) as e:
        logger.warning("System root lookup failed, using empty base", error=str(e))
        return certs

    for location in locations:
        if not location or location in seen:
            continue
        seen.add(location)
        path = Path(location)
        if path.is_dir():
            certs.extend(_read_ca_directory(path))
        elif path.is_file():
            certs.extend(_read_ca_file(path))

    if not certs:
        logger.warning("No system root certificates found")
    return certs


def load_embedded_roots() -> List[x509.Certificate]:
    """
    Load the embedded fallback root bundle.

    Raises:
        EmbeddedBundleError: If the bundle is missing or contains no
            certificate; this means the installation is broken.
    """
    bundle_path = Path(certifi.where())
    try:
        data = bundle_path.read_bytes()
    except OSError as e:
        raise EmbeddedBundleError(f"cannot read embedded root bundle: {e}") from e

    certs = load_pem_certificates(data, source="embedded")
    if not certs:
        raise EmbeddedBundleError("embedded root bundle contains no certificates")
    return certs


def parse_ca_text(
    data: Union[str, bytes], source: str = "custom CA"
) -> List[x509.Certificate]:
    """
    Parse operator supplied CA material.

    Raises:
        CAStringInvalidError: If the text holds no parseable certificate.
    """
    certs = load_pem_certificates(data, source=source)
    if not certs:
        raise CAStringInvalidError(f"failed to parse certificate from {source}")
    return certs


def read_ca_file(path: Path) -> List[x509.Certificate]:
    """
    Read a custom CA bundle from disk.

    Raises:
        CAFileUnreadableError: If the file cannot be read.
        CAStringInvalidError: If it holds no parseable certificate.
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CAFileUnreadableError(f"load ca error: {path.name}: {e.strerror or e}") from e
    return parse_ca_text(data, source=path.name)
