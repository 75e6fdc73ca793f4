"""
Configuration Management for trustgate.

Public API
----------
    from trustgate.core.config import TrustConfig
    from trustgate.core.config_loaders import load_config

    config = load_config(Path("trust.yaml"))
    context = TrustContext.from_config(config)

Architecture
------------
    config/
    └── trust.py         # TrustConfig (pydantic model)

Loading, environment expansion and the DISABLE_* flags live in
trustgate.core.config_loaders.
"""

from trustgate.core.config.trust import (
    MAX_CUSTOM_CA_ENTRIES,
    MAX_GLOBAL_FINGERPRINTS,
    PeerUsage,
    TrustConfig,
)

__all__ = [
    "TrustConfig",
    "PeerUsage",
    "MAX_GLOBAL_FINGERPRINTS",
    "MAX_CUSTOM_CA_ENTRIES",
]
