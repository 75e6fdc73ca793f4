"""
Trust Context.

Owns the trust pool and the global pin registry of a process. The default
context is created lazily from the environment; tests and embedders build
their own from a TrustConfig and pass it to VerificationPolicy.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from trustgate.core.config.trust import PeerUsage, TrustConfig
from trustgate.core.config_loaders import load_config_from_env
from trustgate.core.logging import get_logger
from trustgate.core.network.pins import PinRegistry
from trustgate.core.network.roots import parse_ca_text, read_ca_file
from trustgate.core.network.trust_store import TrustPool
from trustgate.core.security.path import PathSanitizer

logger = get_logger(__name__)


class TrustContext:
    """Trust pool, global pins and peer usage shared by every connection."""

    def __init__(
        self,
        pool: Optional[TrustPool] = None,
        pins: Optional[PinRegistry] = None,
        peer_usage: PeerUsage = "server_auth",
    ) -> None:
        self.pool = pool if pool is not None else TrustPool()
        self.pins = pins if pins is not None else PinRegistry()
        self.peer_usage = peer_usage

    @property
    def base_path(self) -> Path:
        return self.pool.base_path

    @classmethod
    def from_config(cls, config: TrustConfig) -> "TrustContext":
        """
        Build a context from validated configuration.

        Raises:
            InvalidFingerprintFormatError: For a malformed pin.
            CAFileUnreadableError: For an unreadable custom CA file.
            CAStringInvalidError: For CA material without a certificate.
            PathTraversalError: For a CA path escaping base_path.
        """
        pool = TrustPool(
            disable_system_ca=config.disable_system_ca,
            disable_embed_ca=config.disable_embed_ca,
            base_path=config.base_path,
        )
        pins = PinRegistry()
        for text in config.fingerprints:
            pins.add_global_fingerprint_text(text)

        sanitizer = PathSanitizer(config.base_path)
        for ca_file in config.custom_ca_files:
            pool.add_certificates(read_ca_file(sanitizer.sanitize_path(ca_file)))
        for index, ca_text in enumerate(config.custom_ca_strings):
            source = f"custom_ca_strings[{index}]"
            pool.add_certificates(parse_ca_text(ca_text, source=source))

        logger.info(
            "Trust context configured",
            pins=len(pins),
            custom_anchors=len(pool.custom_certificates),
            disable_system_ca=config.disable_system_ca,
            disable_embed_ca=config.disable_embed_ca,
        )
        return cls(pool, pins, config.peer_usage)

    @classmethod
    def from_env(cls, base_path: Optional[Path] = None) -> "TrustContext":
        """Build a context from environment flags only."""
        return cls.from_config(load_config_from_env(base_path))

    def __repr__(self) -> str:
        return (
            f"TrustContext(pins={len(self.pins)}, "
            f"custom_anchors={len(self.pool.custom_certificates)}, "
            f"usage={self.peer_usage})"
        )


_context_lock = threading.Lock()
_default_context: Optional[TrustContext] = None


def get_trust_context() -> TrustContext:
    """Get or initialize the process-wide TrustContext."""
    global _default_context
    context = _default_context
    if context is not None:
        return context

    with _context_lock:
        if _default_context is None:
            _default_context = TrustContext.from_env()
        return _default_context


def set_trust_context(context: TrustContext) -> None:
    """Install context as the process-wide default."""
    global _default_context
    with _context_lock:
        _default_context = context


def reset_trust_context() -> None:
    """Drop the process-wide context; the next access re-reads the environment."""
    global _default_context
    with _context_lock:
        _default_context = None
