"""
Shared pytest fixtures and configuration for trustgate tests.

This file is automatically discovered by pytest and provides fixtures
that can be used across all test files.

Fixture Organization
--------------------
- **pki**: A throwaway PKI generated once per session
  (root -> intermediate -> leaf, plus expired, client-only and foreign certs)
- **temp_dir**: Temporary directory for file operations
- **clean_env**: Removes trust related environment variables
- **empty_pool**: TrustPool with no system or embedded roots
- **make_context**: Builds a TrustContext anchored on the test root

Certificates are real X.509 built with cryptography; nothing is mocked.
"""

import datetime
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generator, List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from trustgate.core.network.context import TrustContext, reset_trust_context
from trustgate.core.network.pins import PinRegistry
from trustgate.core.network.trust_store import TrustPool

NOW = datetime.datetime.now(datetime.timezone.utc)
ONE_DAY = datetime.timedelta(days=1)


# ============================================================================
# Certificate Builders
# ============================================================================


@dataclass
class Issued:
    """A generated certificate and its key."""

    cert: x509.Certificate
    key: ec.EllipticCurvePrivateKey

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> str:
        return self.cert.public_bytes(serialization.Encoding.PEM).decode("ascii")

    @property
    def key_pem(self) -> str:
        return self.key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii")


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "trustgate tests"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def _issue(
    common_name: str,
    issuer: Optional[Issued],
    ca: bool,
    not_before: datetime.datetime = NOW - ONE_DAY,
    not_after: datetime.datetime = NOW + 30 * ONE_DAY,
    usages: Optional[List[x509.ObjectIdentifier]] = None,
) -> Issued:
    key = ec.generate_private_key(ec.SECP256R1())
    subject = _name(common_name)
    issuer_name = issuer.cert.subject if issuer else subject
    signing_key = issuer.key if issuer else key
    issuer_public = issuer.key.public_key() if issuer else key.public_key()

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.BasicConstraints(ca=ca, path_length=None), critical=True
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public),
            critical=False,
        )
    )

    if ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = (
            builder.add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(f"{common_name}.test")]),
                critical=False,
            )
            .add_extension(
                x509.ExtendedKeyUsage(
                    usages
                    or [ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]
                ),
                critical=False,
            )
        )

    cert = builder.sign(signing_key, hashes.SHA256())
    return Issued(cert, key)


@dataclass
class TestPKI:
    """Certificates shared by the whole session."""

    __test__ = False

    root: Issued
    intermediate: Issued
    leaf: Issued
    expired_leaf: Issued
    client_only_leaf: Issued
    foreign_root: Issued
    foreign_leaf: Issued

    @property
    def chain(self) -> List[bytes]:
        """Leaf first, as a peer presents it."""
        return [self.leaf.der, self.intermediate.der]

    @property
    def chain_pem(self) -> str:
        return self.leaf.pem + self.intermediate.pem


@pytest.fixture(scope="session")
def pki() -> TestPKI:
    """Generate the session PKI once; EC keys keep this fast."""
    root = _issue("root", None, ca=True, not_after=NOW + 365 * ONE_DAY)
    intermediate = _issue("intermediate", root, ca=True, not_after=NOW + 180 * ONE_DAY)
    foreign_root = _issue("foreign-root", None, ca=True, not_after=NOW + 365 * ONE_DAY)

    return TestPKI(
        root=root,
        intermediate=intermediate,
        leaf=_issue("peer", intermediate, ca=False),
        expired_leaf=_issue(
            "expired", intermediate, ca=False,
            not_before=NOW - 30 * ONE_DAY, not_after=NOW - ONE_DAY,
        ),
        client_only_leaf=_issue(
            "client", intermediate, ca=False,
            usages=[ExtendedKeyUsageOID.CLIENT_AUTH],
        ),
        foreign_root=foreign_root,
        foreign_leaf=_issue("stranger", foreign_root, ca=False),
    )


# ============================================================================
# Path and Environment Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every environment variable trustgate reads."""
    for name in (
        "DISABLE_EMBED_CA",
        "DISABLE_SYSTEM_CA",
        "TRUSTGATE_BASE_PATH",
        "TRUSTGATE_PEER_USAGE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def _reset_default_context() -> Generator[None, None, None]:
    """Keep the process-wide context from leaking between tests."""
    reset_trust_context()
    yield
    reset_trust_context()


# ============================================================================
# Trust Fixtures
# ============================================================================


@pytest.fixture
def empty_pool(temp_dir: Path) -> TrustPool:
    """Pool without system or embedded roots."""
    return TrustPool(disable_system_ca=True, disable_embed_ca=True, base_path=temp_dir)


@pytest.fixture
def make_context(
    pki: TestPKI, temp_dir: Path
) -> Callable[..., TrustContext]:
    """Factory for contexts trusting the test root only."""

    def _make(
        trust_root: bool = True,
        pins: Optional[List[str]] = None,
        peer_usage: str = "server_auth",
    ) -> TrustContext:
        pool = TrustPool(
            disable_system_ca=True, disable_embed_ca=True, base_path=temp_dir
        )
        if trust_root:
            pool.add_certificate(pki.root.pem)
        registry = PinRegistry()
        for text in pins or []:
            registry.add_global_fingerprint_text(text)
        return TrustContext(pool, registry, peer_usage)  # type: ignore[arg-type]

    return _make
