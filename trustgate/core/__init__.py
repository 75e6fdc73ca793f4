"""
Core Infrastructure for trustgate.

Architecture Position
---------------------
    CLI (outermost)
      └── Transport adapter (security/mtls.py)
            └── **Core** (innermost - you are here)

Components
----------
**Network (network/)**
    The trust decision engine: fingerprints, the trust pool and its root
    sources, the global pin registry, the verification policy and the
    per-handshake verifier.

**Configuration (config/, config_loaders.py)**
    TrustConfig pydantic model loaded from YAML, with ${VAR} expansion and
    the DISABLE_EMBED_CA / DISABLE_SYSTEM_CA environment flags.

**Logging (logging.py)**
    Structured logging with key=value context, rendered through rich.

**Security (security/)**
    - PathSanitizer: confines CA and key paths to the base directory
    - Environment flag parsing
    - MTLSContextManager: ssl.SSLContext bridge

**Exceptions (exceptions.py)**
    TrustError hierarchy carrying error codes and fix suggestions.
"""
