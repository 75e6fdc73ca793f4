"""
Centralized Exception Hierarchy for trustgate.

This module defines all custom exceptions used throughout trustgate.
All exceptions inherit from TrustError for easy catching.

Helpful Error Messages
----------------------
Each exception includes:
- user_message: Human-readable description of what went wrong
- why_it_happened: Explanation of the root cause
- how_to_fix: Actionable steps to resolve the issue
- error_code: Unique identifier for documentation lookup (e.g., "TG-PIN-001")

Usage
-----
    from trustgate.core.exceptions import (
        TrustError,
        ChainValidationFailedError,
    )

    try:
        verifier(raw_certs)
    except ChainValidationFailedError as e:
        logger.error(f"Peer rejected: {e.reason}")
    except TrustError as e:
        logger.error(f"Trust decision failed: {e}")

Exception Hierarchy
-------------------
    TrustError (base)
    ├── SecurityError
    │   └── PathTraversalError
    ├── ConfigurationError
    │   ├── InvalidFingerprintFormatError
    │   ├── CAFileUnreadableError
    │   ├── CAStringInvalidError
    │   ├── EmbeddedBundleError
    │   └── ConfigValidationError
    ├── CertificateError
    │   ├── MalformedCertificateError
    │   └── EmptyInputError
    └── VerificationError
        ├── ChainValidationFailedError
        └── FingerprintMismatchError

Design Principles
-----------------
1. All exceptions inherit from TrustError
2. Configuration errors abort setup; they never degrade to "accept everything"
3. Verification errors describe a single rejected handshake
4. Every exception provides "why" and "how to fix" guidance
"""

from typing import List, Optional
import re


def sanitize_path(path: str) -> str:
    """Sanitize a file path to avoid leaking sensitive info.

    Replaces user directories with placeholders.

    Args:
        path: Original file path

    Returns:
        Sanitized path with sensitive components replaced
    """
    if not path:
        return path

    patterns = [
        # Windows user paths: C:\Users\username -> <user-home>
        (r"[A-Za-z]:\\Users\\[^\\]+", r"<user-home>"),
        # Unix/Mac home paths: /home/username or /Users/username -> <user-home>
        (r"/(?:home|Users)/[^/]+", r"<user-home>"),
    ]

    result = path
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)

    return result


def sanitize_message(message: str) -> str:
    """Sanitize an error message to avoid leaking sensitive info.

    Masks private key material and home directories. Fingerprints and
    certificate subjects are kept: they are public and needed for auditing.

    Args:
        message: Original error message

    Returns:
        Sanitized message with sensitive info replaced
    """
    if not message:
        return message

    result = re.sub(
        r"-----BEGIN ([A-Z ]*)PRIVATE KEY-----.*?(-----END \1PRIVATE KEY-----|$)",
        "<private-key>",
        message,
        flags=re.DOTALL,
    )
    result = re.sub(
        r"/(?:home|Users)/[^\s\"']+", lambda m: sanitize_path(m.group(0)), result
    )
    return result


def get_root_cause(exc: BaseException) -> BaseException:
    """Extract the root cause from a chain of exceptions.

    Follows nested __cause__ and __context__ attributes to find
    the original error that started the chain.

    Args:
        exc: Exception to analyze

    Returns:
        Root cause exception (may be the same as input)
    """
    seen = set()
    current = exc

    while current is not None:
        # Avoid infinite loops
        if id(current) in seen:
            break
        seen.add(id(current))

        # Prefer explicit cause over implicit context
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__context__ is not None:
            current = current.__context__
        else:
            break

    return current


class TrustError(Exception):
    """
    Base exception for all trustgate errors.

    All custom exceptions in trustgate inherit from this class,
    making it easy to catch any trust-specific error.

    Includes helpful error information:
    - error_code: Unique code for documentation lookup (e.g., "TG-ERR-001")
    - why_it_happened: Explanation of the root cause
    - how_to_fix: List of actionable suggestions

    Example
    -------
        try:
            policy.apply(fingerprint=user_input)
        except TrustError as e:
            logger.error(f"Trust setup failed: {e}")
            print(f"Fix: {e.how_to_fix}")
    """

    # Default error info - subclasses should override
    error_code: str = "TG-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        """Initialize TrustError with helpful information.

        Args:
            message: Human-readable error message
            error_code: Unique identifier (e.g., "TG-PIN-001")
            why_it_happened: Explanation of root cause
            how_to_fix: List of actionable fix suggestions
        """
        sanitized_message = sanitize_message(message)
        super().__init__(sanitized_message)

        # Override class defaults if provided
        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix

    @property
    def user_message(self) -> str:
        """Get the user-friendly error message."""
        return str(self)

    def get_root_cause(self) -> BaseException:
        """Get the root cause of this exception chain."""
        return get_root_cause(self)


# ============================================================================
# Security Exceptions
# ============================================================================


class SecurityError(TrustError):
    """
    Base exception for security-related errors.

    Raised when a security violation is detected in operator input,
    such as a CA path escaping the configured base directory.
    """

    error_code = "TG-SEC-000"
    why_it_happened = "A security check failed"
    how_to_fix = ["Review the input for potentially malicious content"]


class PathTraversalError(SecurityError):
    """
    Raised when a path traversal attack is detected.

    This occurs when a CA or key path contains sequences like '../' that
    would allow access to files outside the configured base directory.
    """

    error_code = "TG-SEC-001"
    why_it_happened = (
        "The path contains sequences like '../' that could access files "
        "outside the configured base directory"
    )
    how_to_fix = [
        "Remove '..' sequences from the path",
        "Place CA files inside the configured base directory",
    ]


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(TrustError):
    """
    Base exception for trust configuration errors.

    Configuration errors are raised synchronously while a connection's
    trust policy is being built and must abort that setup.
    """

    error_code = "TG-CFG-000"
    why_it_happened = "The trust configuration is invalid"
    how_to_fix = ["Check the CA and fingerprint settings for this connection"]


class InvalidFingerprintFormatError(ConfigurationError):
    """
    Raised when a fingerprint string is not a SHA-256 hex digest.

    Example
    -------
        parse_fingerprint("abc")
        # Raises: InvalidFingerprintFormatError("fingerprint must be 32 bytes ...")
    """

    error_code = "TG-PIN-001"
    why_it_happened = (
        "Fingerprints must be SHA-256 digests: 64 hex characters, optionally "
        "separated by colons"
    )
    how_to_fix = [
        "Compute the fingerprint with: trustgate fingerprint cert.pem",
        "Or: openssl x509 -in cert.pem -noout -fingerprint -sha256",
        "Check that the value was not truncated when copied",
    ]


class CAFileUnreadableError(ConfigurationError):
    """Raised when a custom CA file cannot be read."""

    error_code = "TG-CFG-001"
    why_it_happened = "The custom CA file does not exist or cannot be read"
    how_to_fix = [
        "Check the path is relative to the configured base directory",
        "Verify file permissions",
    ]


class CAStringInvalidError(ConfigurationError):
    """Raised when custom CA material contains no usable certificate."""

    error_code = "TG-CFG-002"
    why_it_happened = "The custom CA material contains no parseable PEM certificate"
    how_to_fix = [
        "Ensure the value contains a '-----BEGIN CERTIFICATE-----' block",
        "Check for truncated or re-wrapped base64 lines",
    ]


class EmbeddedBundleError(ConfigurationError):
    """
    Raised when the embedded fallback root bundle cannot be loaded.

    This indicates a broken installation rather than bad operator input.
    """

    error_code = "TG-CFG-003"
    why_it_happened = "The embedded root certificate bundle is missing or corrupted"
    how_to_fix = [
        "Reinstall the certifi package: pip install --force-reinstall certifi",
        "Or set DISABLE_EMBED_CA=true to rely on system roots only",
    ]


class ConfigValidationError(ConfigurationError):
    """
    Raised when a trust configuration file fails validation.

    Attributes:
        field: The configuration field that failed validation (if known)
    """

    error_code = "TG-CFG-004"
    why_it_happened = "The trust configuration file contains invalid values"
    how_to_fix = [
        "Validate YAML syntax",
        "Check field names against the documented TrustConfig fields",
    ]

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


# ============================================================================
# Certificate Exceptions
# ============================================================================


class CertificateError(TrustError):
    """Base exception for certificate input errors."""

    error_code = "TG-CERT-000"
    why_it_happened = "A certificate could not be used"
    how_to_fix = ["Check that the certificate is a valid PEM encoded X.509 cert"]


class MalformedCertificateError(CertificateError):
    """
    Raised when PEM decoding or X.509 parsing fails.

    This can occur when:
    - The text contains no PEM block
    - The PEM block is not a certificate
    - The DER payload is not valid X.509
    """

    error_code = "TG-CERT-001"
    why_it_happened = "The certificate is not valid PEM encoded X.509 data"
    how_to_fix = [
        "Inspect the file with: openssl x509 -in cert.pem -noout -text",
        "Convert DER files with: openssl x509 -inform der -in cert.der -out cert.pem",
    ]


class EmptyInputError(CertificateError):
    """Raised when certificate input is empty."""

    error_code = "TG-CERT-002"
    why_it_happened = "No certificate text was supplied"
    how_to_fix = ["Pass the PEM text of the certificate to add"]


# ============================================================================
# Verification Exceptions
# ============================================================================


class VerificationError(TrustError):
    """
    Base exception for a rejected handshake.

    Raised by the verification callback; the TLS layer aborts the
    handshake that produced it.
    """

    error_code = "TG-VER-000"
    why_it_happened = "The peer certificate chain was not trusted"
    how_to_fix = [
        "Add the issuing CA to the trust pool",
        "Or pin the peer certificate fingerprint",
    ]


class ChainValidationFailedError(VerificationError):
    """
    Raised when no presented certificate chains to a trusted root
    and no pin matched.

    Attributes:
        reason: The underlying chain validation failure
    """

    error_code = "TG-VER-001"
    why_it_happened = (
        "None of the presented certificates could be chained to a trusted root "
        "at the current time"
    )

    def __init__(self, reason: str) -> None:
        super().__init__(f"certificate chain validation failed: {reason}")
        self.reason = reason


class FingerprintMismatchError(VerificationError):
    """
    Raised in pin-only mode when no presented certificate matches a pin.
    """

    error_code = "TG-VER-002"
    why_it_happened = (
        "Pinning is enabled and no presented certificate has a pinned fingerprint"
    )
    how_to_fix = [
        "Check that the pinned fingerprint belongs to the peer's current certificate",
        "Re-pin after a certificate rotation",
    ]

    def __init__(self, message: str = "certificate fingerprints do not match") -> None:
        super().__init__(message)
