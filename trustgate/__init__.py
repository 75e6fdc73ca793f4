"""trustgate - Certificate trust decisions for TLS connections.

Decides whether a peer's certificate chain is trusted, by chain validation
against a composed root pool, by SHA-256 fingerprint pinning, or both.
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
