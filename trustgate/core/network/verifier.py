"""
Peer certificate verification.

The callback installed on a TLS connection. It is invoked once per handshake
with the raw DER certificates the peer presented and decides, by mode:

- PIN_ONLY: accept only if a presented certificate is pinned.
- CHAIN_WITH_PIN_FALLBACK: accept a valid chain, else a pinned certificate.
- STANDARD_CHAIN: accept only a valid chain.

Rule #4: Functions under 60 lines.
Rule #7: Every rejection carries its reason.
Rule #9: Complete type hints.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID
from cryptography.x509.verification import (
    Criticality,
    ExtensionPolicy,
    PolicyBuilder,
    VerificationError as X509VerificationError,
)

from trustgate.core.exceptions import (
    ChainValidationFailedError,
    FingerprintMismatchError,
    TrustError,
)
from trustgate.core.logging import get_logger
from trustgate.core.network.fingerprint import Fingerprint
from trustgate.core.network.pins import PinSet, matches_chain
from trustgate.core.network.trust_store import RootPool

logger = get_logger(__name__)

PoolSource = Callable[[], RootPool]
PinSource = Callable[[], PinSet]
Clock = Callable[[], datetime]

_USAGE_OIDS = {
    "server_auth": ExtendedKeyUsageOID.SERVER_AUTH,
    "client_auth": ExtendedKeyUsageOID.CLIENT_AUTH,
}


class TrustMode(str, enum.Enum):
    """How a connection decides to trust its peer."""

    PIN_ONLY = "pin_only"
    CHAIN_WITH_PIN_FALLBACK = "chain_with_pin_fallback"
    STANDARD_CHAIN = "standard_chain"
    BYPASS = "bypass"

    @property
    def validates_chain(self) -> bool:
        return self in (TrustMode.CHAIN_WITH_PIN_FALLBACK, TrustMode.STANDARD_CHAIN)

    @property
    def consults_pins(self) -> bool:
        return self in (TrustMode.PIN_ONLY, TrustMode.CHAIN_WITH_PIN_FALLBACK)


class OutcomeKind(str, enum.Enum):
    ACCEPTED_BY_CHAIN = "accepted_by_chain"
    ACCEPTED_BY_PIN = "accepted_by_pin"
    REJECTED = "rejected"


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of one peer verification."""

    kind: OutcomeKind
    fingerprint: Optional[Fingerprint] = None
    error: Optional[TrustError] = None

    @property
    def accepted(self) -> bool:
        return self.kind is not OutcomeKind.REJECTED

    @classmethod
    def rejected(cls, error: TrustError) -> "VerificationOutcome":
        return cls(OutcomeKind.REJECTED, error=error)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _usage_validator(required_usage: str) -> Callable[..., None]:
    """Build an EKU check for leaf certificates."""
    required = _USAGE_OIDS[required_usage]

    def validate(policy: Any, cert: x509.Certificate, ext: Any) -> None:
        # No EKU extension means the key is not restricted
        if ext is None:
            return
        usages = list(ext)
        if required in usages or ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE in usages:
            return
        raise ValueError(f"certificate is not valid for {required_usage}")

    return validate


def _is_ca(cert: x509.Certificate) -> bool:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        return False
    except ValueError:
        # verify_chain reports malformed extensions
        return False


def _not_a_ca(policy: Any, cert: x509.Certificate, ext: Any) -> None:
    if ext is not None and ext.ca:
        raise ValueError("CA certificate presented as leaf")


def _leaf_policy(required_usage: str) -> ExtensionPolicy:
    policy = ExtensionPolicy.permit_all().may_be_present(
        x509.BasicConstraints, Criticality.AGNOSTIC, _not_a_ca
    )
    if required_usage == "any":
        return policy
    return policy.may_be_present(
        x509.ExtendedKeyUsage, Criticality.AGNOSTIC, _usage_validator(required_usage)
    )


def verify_chain(
    leaf: x509.Certificate,
    intermediates: Sequence[x509.Certificate],
    pool: RootPool,
    at: datetime,
    required_usage: str = "server_auth",
) -> None:
    """
    Validate leaf up to an anchor in pool.

    No hostname is checked; the transport owns name verification.

    Raises:
        ChainValidationFailedError: If no path to a trust anchor validates.
    """
    store = pool.store
    if store is None:
        raise ChainValidationFailedError("no trust anchors available")

    verifier = (
        PolicyBuilder()
        .store(store)
        .time(at)
        .extension_policies(
            ca_policy=ExtensionPolicy.webpki_defaults_ca(),
            ee_policy=_leaf_policy(required_usage),
        )
        .build_client_verifier()
    )
    try:
        verifier.verify(leaf, list(intermediates))
    except (X509VerificationError, ValueError) as e:
        raise ChainValidationFailedError(str(e)) from e


def _parse_presented(raw_certs: Sequence[bytes]) -> List[Tuple[bytes, x509.Certificate]]:
    parsed: List[Tuple[bytes, x509.Certificate]] = []
    for index, raw in enumerate(raw_certs):
        try:
            parsed.append((raw, x509.load_der_x509_certificate(raw)))
        except ValueError:
            logger.debug("Skipping unparseable peer certificate", index=index)
    return parsed


class PeerVerifier:
    """
    Per-connection verification callback.

    Pool and pins are read through their sources at each handshake, so a
    long lived connection factory sees certificates and pins added later.
    """

    def __init__(
        self,
        mode: TrustMode,
        pool_source: PoolSource,
        pin_source: PinSource,
        clock: Clock = utc_now,
        required_usage: str = "server_auth",
    ) -> None:
        if mode is TrustMode.BYPASS:
            raise ValueError("bypass mode installs no verifier")
        if required_usage != "any" and required_usage not in _USAGE_OIDS:
            raise ValueError(f"unknown peer usage: {required_usage}")

        self.mode = mode
        self._pool_source = pool_source
        self._pin_source = pin_source
        self._clock = clock
        self.required_usage = required_usage

    def evaluate(self, raw_certs: Sequence[bytes]) -> VerificationOutcome:
        """Decide whether the presented chain is trusted."""
        presented = _parse_presented(raw_certs)
        last_error: Optional[ChainValidationFailedError] = None

        if self.mode.validates_chain:
            if not raw_certs:
                last_error = ChainValidationFailedError("peer presented no certificates")
            else:
                fingerprint, last_error = self._validate_leaf(presented)
                if fingerprint is not None:
                    return VerificationOutcome(OutcomeKind.ACCEPTED_BY_CHAIN, fingerprint)

        if self.mode.consults_pins:
            pinned = matches_chain([raw for raw, _ in presented], self._pin_source())
            if pinned is not None:
                return VerificationOutcome(OutcomeKind.ACCEPTED_BY_PIN, pinned)

        error: TrustError = last_error or FingerprintMismatchError()
        logger.debug(
            "Peer certificate rejected",
            mode=self.mode.value,
            presented=len(raw_certs),
            reason=str(error),
        )
        return VerificationOutcome.rejected(error)

    def _validate_leaf(
        self, presented: List[Tuple[bytes, x509.Certificate]]
    ) -> Tuple[Optional[Fingerprint], Optional[ChainValidationFailedError]]:
        """
        Try each presented end-entity certificate as the leaf, in order.

        The other presented certificates are offered as intermediates, so
        peers sending their chain out of order or several candidate chains
        still validate. A CA certificate is never accepted as the leaf; it is
        only tried when nothing else was presented, to report why.
        """
        if not presented:
            return None, ChainValidationFailedError("no parseable peer certificate")

        candidates = [i for i, (_, cert) in enumerate(presented) if not _is_ca(cert)]
        last_error: Optional[ChainValidationFailedError] = None
        pool = self._pool_source()
        at = self._clock()

        for index in candidates or range(len(presented)):
            raw, leaf = presented[index]
            others = [cert for i, (_, cert) in enumerate(presented) if i != index]
            try:
                verify_chain(leaf, others, pool, at, self.required_usage)
            except ChainValidationFailedError as e:
                last_error = e
                continue
            return Fingerprint.of_der(raw), None
        return None, last_error

    def __call__(
        self, raw_certs: Sequence[bytes], verified_chains: Any = None
    ) -> None:
        """
        TLS callback contract: return on accept, raise on reject.

        verified_chains is accepted for transport compatibility and ignored;
        the transport's own validation is skipped when a verifier is installed.
        """
        outcome = self.evaluate(raw_certs)
        if outcome.error is not None:
            raise outcome.error

    def __repr__(self) -> str:
        return f"PeerVerifier(mode={self.mode.value}, usage={self.required_usage})"
