# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for DVID.

Provides specific exception types for the failure categories of the
credential trust protocol:

- MalformedInputError: bad credential ids, bad DID tags, bad arguments
- ResolutionFailure: DNS or DID lookup errors ("not found" is kept apart
  from "network error" because only the former triggers protocol fallback)
- CryptoFailure: signing, AEAD and key-agreement errors
- PublishFailure: a document change that is not yet authoritative
"""

from __future__ import annotations

from typing import Any


class DVIDException(Exception):  # noqa: N818
    """Base exception for all DVID errors.

    All DVID-specific exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigException(DVIDException):
    """Exception for configuration errors.

    Raised when:
    - Required environment variables are missing
    - Configuration values are invalid
    """

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


# =============================================================================
# MALFORMED INPUT
# =============================================================================


class MalformedInputError(DVIDException):
    """Exception for input that cannot be interpreted.

    Raised when:
    - A credential id carries no URL-shaped host
    - A DID string or DVID tag is not a syntactically valid DID
    - An argument is out of range (e.g. a negative bitmap index)
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class MalformedCredentialId(MalformedInputError):
    """The credential ``id`` has no URL-shaped host to derive a domain from."""

    def __init__(self, credential_id: Any):
        super().__init__(
            f"Credential id has no URL host: {credential_id!r}",
            field="id",
            value=credential_id,
        )


class MalformedDIDError(MalformedInputError):
    """A string that should be a DID is not one."""

    def __init__(self, message: str, did: Any = None):
        super().__init__(message, field="did", value=did)
        self.did = did


# =============================================================================
# RESOLUTION
# =============================================================================


class ResolutionFailure(DVIDException):
    """Base class for DNS and DID lookup errors."""


class DnsResolutionFailure(ResolutionFailure):
    """The TXT lookup for a domain errored (network, timeout, server failure)."""

    def __init__(self, domain: str, reason: str):
        super().__init__(
            f"DNS TXT lookup failed for {domain}: {reason}",
            {"domain": domain, "reason": reason},
        )
        self.domain = domain
        self.reason = reason


class DvidRecordNotFound(ResolutionFailure):
    """The domain publishes no ``DVID.did=`` TXT record."""

    def __init__(self, domain: str):
        super().__init__(f"DVID record not found for {domain}", {"domain": domain})
        self.domain = domain


class DIDNotFoundError(ResolutionFailure):
    """The DID does not resolve to a document."""

    def __init__(self, did: str):
        super().__init__(f"DID not found: {did}", {"did": did})
        self.did = did


class DIDResolutionNetworkError(ResolutionFailure):
    """DID resolution failed for a reason other than absence."""

    def __init__(self, did: str, reason: str):
        super().__init__(
            f"DID resolution failed for {did}: {reason}",
            {"did": did, "reason": reason},
        )
        self.did = did
        self.reason = reason


# =============================================================================
# CRYPTO
# =============================================================================


class CryptoFailure(DVIDException):
    """Base class for signing, AEAD and key-agreement errors.

    Messages and details never include plaintext or key material.
    """


class SigningFailure(CryptoFailure):
    """The signing capability could not produce a signature."""

    def __init__(self, message: str, fragment: str | None = None):
        details = {}
        if fragment:
            details["fragment"] = fragment
        super().__init__(message, details)
        self.fragment = fragment


class EncryptionKeyNotFound(CryptoFailure):
    """No key-agreement key exists at the expected fragment."""

    def __init__(self, did: str, fragment: str):
        super().__init__(
            f"No encryption key at #{fragment} for {did}",
            {"did": did, "fragment": fragment},
        )
        self.did = did
        self.fragment = fragment


class EncryptionFailure(CryptoFailure):
    """The key agreement or AEAD encryption errored."""


class DecryptionFailure(CryptoFailure):
    """Authentication failed, the envelope is malformed, or the key agreement failed."""


# =============================================================================
# PUBLICATION / VALIDATION
# =============================================================================


class PublishFailure(DVIDException):
    """Publishing a document failed; local changes are not yet authoritative."""

    def __init__(self, did: str, reason: str, version: int | None = None):
        details: dict[str, Any] = {"did": did, "reason": reason}
        if version is not None:
            details["version"] = version
        super().__init__(f"Publishing {did} failed: {reason}", details)
        self.did = did
        self.reason = reason
        self.version = version


class CredentialValidationError(DVIDException):
    """A credential failed one or more validation checks.

    Carries every failed check, not only the first one.
    """

    def __init__(self, errors: list[str], credential_id: str | None = None):
        message = "Credential validation failed: " + "; ".join(errors)
        details: dict[str, Any] = {"errors": list(errors)}
        if credential_id:
            details["credential_id"] = credential_id
        super().__init__(message, details)
        self.errors = list(errors)
        self.credential_id = credential_id
