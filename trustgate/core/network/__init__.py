"""
Trust decision engine.

Public API
----------
    from trustgate.core.network import VerificationPolicy, TLSSettings

    policy = VerificationPolicy(TrustContext.from_config(config))
    settings = policy.apply(fingerprint="AB:CD:...")
    settings.verify_peer_certificate(raw_der_chain)
"""

from trustgate.core.network.context import (
    TrustContext,
    get_trust_context,
    reset_trust_context,
    set_trust_context,
)
from trustgate.core.network.fingerprint import Fingerprint, parse_fingerprint
from trustgate.core.network.mtls_policy import TLSSettings, VerificationPolicy
from trustgate.core.network.pins import PinRegistry, matches_chain
from trustgate.core.network.trust_store import RootPool, TrustPool
from trustgate.core.network.verifier import (
    OutcomeKind,
    PeerVerifier,
    TrustMode,
    VerificationOutcome,
)

__all__ = [
    "Fingerprint",
    "parse_fingerprint",
    "RootPool",
    "TrustPool",
    "PinRegistry",
    "matches_chain",
    "TrustMode",
    "OutcomeKind",
    "VerificationOutcome",
    "PeerVerifier",
    "TLSSettings",
    "VerificationPolicy",
    "TrustContext",
    "get_trust_context",
    "set_trust_context",
    "reset_trust_context",
]
