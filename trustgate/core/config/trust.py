"""
Trust Configuration Models.

Trust pool composition and pinning configuration.
Rule #9: Complete type hints.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Rule #2: Fixed upper bounds
MAX_GLOBAL_FINGERPRINTS = 1000
MAX_CUSTOM_CA_ENTRIES = 256

PeerUsage = Literal["server_auth", "client_auth", "any"]


class TrustConfig(BaseModel):
    """
    Configuration for the process-wide trust context.
    """

    model_config = ConfigDict(extra="forbid")

    base_path: Path = Field(
        default_factory=Path.cwd,
        description="Directory relative CA and key paths are resolved against",
    )
    disable_embed_ca: bool = Field(
        default=False, description="Skip the embedded fallback root bundle"
    )
    disable_system_ca: bool = Field(
        default=False, description="Skip the operating system root pool"
    )

    # Global pins, accepted by any connection without an explicit fingerprint
    fingerprints: List[str] = Field(
        default_factory=list, max_length=MAX_GLOBAL_FINGERPRINTS
    )

    # Additional trust anchors appended to the derived pool
    custom_ca_files: List[Path] = Field(
        default_factory=list, max_length=MAX_CUSTOM_CA_ENTRIES
    )
    custom_ca_strings: List[str] = Field(
        default_factory=list, max_length=MAX_CUSTOM_CA_ENTRIES
    )

    peer_usage: PeerUsage = Field(
        default="server_auth",
        description="Extended key usage a chain-validated peer must carry",
    )

    @field_validator("fingerprints")
    @classmethod
    def _strip_fingerprints(cls, value: List[str]) -> List[str]:
        """Drop blank entries left by YAML lists with empty items."""
        return [fp.strip() for fp in value if fp and fp.strip()]
