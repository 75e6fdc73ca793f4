"""
Fingerprint pinning.

Holds the process-wide set of accepted certificate fingerprints and matches
presented chains against a pin set.

Rule #2: Fixed bounds on pin count.
Rule #9: Complete type hints.
"""

from __future__ import annotations

import threading
from typing import FrozenSet, Iterable, Iterator, Optional, Sequence

from cryptography import x509

from trustgate.core.exceptions import InvalidFingerprintFormatError
from trustgate.core.logging import get_logger
from trustgate.core.network.fingerprint import Fingerprint, parse_fingerprint

logger = get_logger(__name__)

# Rule #2: Fixed upper bounds
MAX_GLOBAL_PINS = 1000

PinSet = FrozenSet[Fingerprint]


class PinRegistry:
    """
    Thread-safe global pin set.

    Additions take the registry lock and publish a new frozenset; readers
    use whichever frozenset is current without locking.
    """

    def __init__(self, fingerprints: Iterable[Fingerprint] = ()) -> None:
        self._lock = threading.Lock()
        self._pins: PinSet = frozenset(fingerprints)

    def add_global_fingerprint(self, fingerprint: Fingerprint) -> None:
        """Add a pin. Duplicates are harmless."""
        if not isinstance(fingerprint, Fingerprint):
            raise InvalidFingerprintFormatError("expected a parsed Fingerprint")

        with self._lock:
            if fingerprint in self._pins:
                return
            if len(self._pins) >= MAX_GLOBAL_PINS:
                raise InvalidFingerprintFormatError(
                    f"global pin limit ({MAX_GLOBAL_PINS}) reached",
                    why_it_happened="Too many global fingerprints were added",
                    how_to_fix=["Pin a shared intermediate instead of every leaf"],
                )
            self._pins = self._pins | {fingerprint}

        logger.info("Added global fingerprint", fingerprint=fingerprint.hex)

    def add_global_fingerprint_text(self, text: str) -> Fingerprint:
        """Parse and add a pin; malformed text raises before any mutation."""
        fingerprint = parse_fingerprint(text)
        self.add_global_fingerprint(fingerprint)
        return fingerprint

    def snapshot(self) -> PinSet:
        """Current pins as an immutable set."""
        return self._pins

    def clear(self) -> None:
        with self._lock:
            self._pins = frozenset()

    def __len__(self) -> int:
        return len(self._pins)

    def __bool__(self) -> bool:
        return bool(self._pins)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._pins

    def __iter__(self) -> Iterator[Fingerprint]:
        return iter(self._pins)


def matches_chain(
    raw_chain: Sequence[bytes], pin_set: Iterable[Fingerprint]
) -> Optional[Fingerprint]:
    """
    Find the first presented certificate whose fingerprint is pinned.

    Every certificate of the chain is checked in presented order, so an
    intermediate can be pinned as well as a leaf. Certificates that do not
    parse as X.509 never match.

    Returns:
        The matching fingerprint, or None.
    """
    pins = pin_set if isinstance(pin_set, frozenset) else frozenset(pin_set)
    if not pins:
        return None

    for index, raw in enumerate(raw_chain):
        try:
            x509.load_der_x509_certificate(raw)
        except ValueError:
            logger.debug("Skipping unparseable peer certificate", index=index)
            continue

        fingerprint = Fingerprint.of_der(raw)
        if fingerprint in pins:
            return fingerprint

    return None
