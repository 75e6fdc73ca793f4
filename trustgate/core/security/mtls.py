"""
mTLS Context Manager.

Bridges TLSSettings to the standard library ssl module: builds client and
server contexts loaded with the connection's root pool, and runs the
installed verification callback on the peer chain after the handshake.

NASA JPL Power of Ten: Rule #4 (Small functions), Rule #9 (Type hints).
"""

from __future__ import annotations

import socket
import ssl
from pathlib import Path
from typing import List, Optional, Tuple

from cryptography.hazmat.primitives import serialization

from trustgate.core.logging import get_logger
from trustgate.core.network.mtls_policy import TLSSettings
from trustgate.core.network.trust_store import RootPool

logger = get_logger(__name__)


class MTLSContextManager:
    """
    Manages SSL/TLS contexts for one set of TLSSettings.
    """

    def __init__(
        self,
        settings: TLSSettings,
        cert_file: Optional[Path] = None,
        key_file: Optional[Path] = None,
    ) -> None:
        self.settings = settings
        self.cert_file = cert_file
        self.key_file = key_file
        # Each context is cached with the pool it was built from
        self._server: Optional[Tuple[ssl.SSLContext, Optional[RootPool]]] = None
        self._client: Optional[Tuple[ssl.SSLContext, Optional[RootPool]]] = None

    def get_server_context(self) -> ssl.SSLContext:
        """
        Create or return SSL context for incoming connections.

        Rebuilt when the trust pool changed since the last call.
        """
        pool = self.settings.current_pool()
        if self._server is None or self._server[1] is not pool:
            self._server = (self._create_context(server_side=True, pool=pool), pool)
        return self._server[0]

    def get_client_context(self) -> ssl.SSLContext:
        """
        Create or return SSL context for outbound connections.

        Rebuilt when the trust pool changed since the last call.
        """
        pool = self.settings.current_pool()
        if self._client is None or self._client[1] is not pool:
            self._client = (self._create_context(server_side=False, pool=pool), pool)
        return self._client[0]

    def wrap_client_socket(self, sock: socket.socket) -> ssl.SSLSocket:
        """
        Perform a client handshake and verify the peer.

        The socket is closed if the peer is rejected.
        """
        context = self.get_client_context()
        tls_sock = context.wrap_socket(sock, server_hostname=self.settings.server_name)
        try:
            self.verify_socket(tls_sock)
        except Exception:
            tls_sock.close()
            raise
        return tls_sock

    def verify_socket(self, sock: ssl.SSLSocket) -> None:
        """
        Run the installed verification callback on a connected socket.

        Only runs when the transport's own checks were skipped; otherwise the
        handshake already validated the chain and the hostname.

        Raises:
            VerificationError: If the callback rejects the peer.
        """
        verifier = self.settings.verify_peer_certificate
        if verifier is None or not self.settings.insecure_skip_verify:
            return
        verifier(peer_chain(sock))

    def _create_context(
        self, server_side: bool, pool: Optional[RootPool]
    ) -> ssl.SSLContext:
        """
        Setup a TLS 1.2+ context from the settings.
        Rule #4: Atomic logic < 60 lines.
        """
        protocol = ssl.PROTOCOL_TLS_SERVER if server_side else ssl.PROTOCOL_TLS_CLIENT
        context = ssl.SSLContext(protocol)
        context.minimum_version = ssl.TLSVersion.TLSv1_2

        self._load_local_identity(context)
        self._load_trust_store(context, pool)

        if self.settings.insecure_skip_verify:
            # The installed callback verifies after the handshake
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        elif server_side:
            context.verify_mode = ssl.CERT_REQUIRED

        logger.debug(
            "TLS context created",
            server_side=server_side,
            mode=self.settings.mode.value if self.settings.mode else "",
            skip_verify=self.settings.insecure_skip_verify,
            anchors=len(pool) if pool is not None else 0,
        )
        return context

    def _load_local_identity(self, context: ssl.SSLContext) -> None:
        """Load cert and key, if configured."""
        if self.cert_file is None:
            return
        if not self.cert_file.exists() or (
            self.key_file is not None and not self.key_file.exists()
        ):
            raise FileNotFoundError("mTLS identity files missing")
        context.load_cert_chain(
            certfile=str(self.cert_file),
            keyfile=str(self.key_file) if self.key_file else None,
        )

    def _load_trust_store(
        self, context: ssl.SSLContext, pool: Optional[RootPool]
    ) -> None:
        """Load the pool as CA data."""
        if pool is None or pool.is_empty():
            return
        cadata = "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for cert in pool.certificates
        )
        context.load_verify_locations(cadata=cadata)


def peer_chain(sock: ssl.SSLSocket) -> List[bytes]:
    """
    Raw DER certificates presented by the peer, leaf first.

    Uses the full unverified chain where the interpreter exposes it,
    otherwise only the leaf.
    """
    get_chain = getattr(sock, "get_unverified_chain", None)
    if get_chain is not None:
        chain = get_chain()
        if chain:
            return [bytes(cert) for cert in chain]

    leaf = sock.getpeercert(binary_form=True)
    return [leaf] if leaf else []
