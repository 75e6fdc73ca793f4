"""
Verification Policy.

Turns per-connection trust options into transport settings: which root pool
a connection uses, and which verification callback (if any) decides its
handshakes.

Mode selection, in order:
    1. Explicit fingerprint   -> PIN_ONLY
    2. Global pins configured -> CHAIN_WITH_PIN_FALLBACK
    3. Caller skips checks    -> BYPASS (no callback, warning logged)
    4. Otherwise              -> STANDARD_CHAIN

Rule #4: Functions under 60 lines.
Rule #7: Configuration errors abort; never fall back to accept-everything.
Rule #9: Complete type hints.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import List, Optional

from cryptography import x509

from trustgate.core.logging import get_logger
from trustgate.core.network.context import TrustContext, get_trust_context
from trustgate.core.network.fingerprint import parse_fingerprint
from trustgate.core.network.roots import parse_ca_text, read_ca_file
from trustgate.core.network.trust_store import RootPool
from trustgate.core.network.verifier import (
    Clock,
    PeerVerifier,
    PinSource,
    PoolSource,
    TrustMode,
    utc_now,
)
from trustgate.core.security.path import PathSanitizer

logger = get_logger(__name__)


@dataclass
class TLSSettings:
    """
    Transport-facing TLS configuration for one connection.

    insecure_skip_verify disables the transport's own chain and hostname
    checks; it is only forced on when verify_peer_certificate is installed.

    root_pool is a fixed pool supplied by the caller. pool_source, set by
    VerificationPolicy, yields the live pool and takes precedence.
    """

    insecure_skip_verify: bool = False
    root_pool: Optional[RootPool] = None
    pool_source: Optional[PoolSource] = None
    verify_peer_certificate: Optional[PeerVerifier] = None
    server_name: Optional[str] = None
    mode: Optional[TrustMode] = None

    def current_pool(self) -> Optional[RootPool]:
        """The pool trusted right now."""
        if self.pool_source is not None:
            return self.pool_source()
        return self.root_pool


class VerificationPolicy:
    """Compose TLSSettings from a TrustContext and per-connection options."""

    def __init__(
        self, context: Optional[TrustContext] = None, clock: Clock = utc_now
    ) -> None:
        self._context = context
        self._clock = clock

    @property
    def context(self) -> TrustContext:
        if self._context is None:
            self._context = get_trust_context()
        return self._context

    def apply(
        self,
        settings: Optional[TLSSettings] = None,
        fingerprint: str = "",
        custom_ca: str = "",
        custom_ca_string: str = "",
    ) -> TLSSettings:
        """
        Build the settings for one connection.

        The caller's settings are copied, never modified.

        Args:
            settings: Caller settings; server_name and insecure_skip_verify
                are honoured.
            fingerprint: Pin for this connection only.
            custom_ca: CA file path, resolved against the base directory.
                Takes precedence over custom_ca_string.
            custom_ca_string: Inline PEM CA material.

        Raises:
            InvalidFingerprintFormatError: If fingerprint is malformed.
            CAFileUnreadableError: If custom_ca cannot be read.
            CAStringInvalidError: If the CA material holds no certificate.
            PathTraversalError: If custom_ca escapes the base directory.
        """
        result = dataclasses.replace(settings) if settings else TLSSettings()
        pinned = parse_fingerprint(fingerprint) if fingerprint else None

        custom = self._load_custom_ca(custom_ca, custom_ca_string)
        if custom:
            pool = RootPool(custom)
            pool_source: PoolSource = lambda: pool
        else:
            pool_source = self.context.pool.derived_pool
        result.pool_source = pool_source
        result.root_pool = None
        # Build now; a broken embedded bundle raises from apply()
        pool_source()

        if pinned is not None:
            pins = frozenset({pinned})
            self._install(result, TrustMode.PIN_ONLY, pool_source, lambda: pins)
        elif self.context.pins:
            self._install(
                result,
                TrustMode.CHAIN_WITH_PIN_FALLBACK,
                pool_source,
                self.context.pins.snapshot,
            )
        elif result.insecure_skip_verify:
            result.mode = TrustMode.BYPASS
            result.verify_peer_certificate = None
            logger.warning(
                "Certificate verification disabled for connection",
                server_name=result.server_name or "",
            )
        else:
            self._install(result, TrustMode.STANDARD_CHAIN, pool_source, frozenset)
        return result

    def global_settings(self, settings: Optional[TLSSettings] = None) -> TLSSettings:
        """Settings using the shared pool and the global pins."""
        return self.apply(settings)

    def specified_fingerprint_settings(
        self, settings: Optional[TLSSettings], fingerprint: str
    ) -> TLSSettings:
        """Settings pinned to one fingerprint."""
        return self.apply(settings, fingerprint=fingerprint)

    def default_settings(self) -> TLSSettings:
        return self.global_settings()

    def _install(
        self,
        settings: TLSSettings,
        mode: TrustMode,
        pool_source: PoolSource,
        pin_source: PinSource,
    ) -> None:
        settings.mode = mode
        settings.verify_peer_certificate = PeerVerifier(
            mode,
            pool_source,
            pin_source,
            clock=self._clock,
            required_usage=self.context.peer_usage,
        )
        # Standard chain mode keeps the transport's own checks as well
        if mode is not TrustMode.STANDARD_CHAIN:
            settings.insecure_skip_verify = True

    def _load_custom_ca(
        self, custom_ca: str, custom_ca_string: str
    ) -> List[x509.Certificate]:
        if custom_ca:
            path = PathSanitizer(self.context.base_path).sanitize_path(custom_ca)
            return read_ca_file(path)
        if custom_ca_string:
            return parse_ca_text(custom_ca_string)
        return []
