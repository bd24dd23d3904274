# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core ambient services for DVID: configuration, logging and exceptions."""

from .config import CoreSettings, clear_config_cache, get_config
from .exceptions import (
    ConfigException,
    CredentialValidationError,
    CryptoFailure,
    DecryptionFailure,
    DIDNotFoundError,
    DIDResolutionNetworkError,
    DnsResolutionFailure,
    DvidRecordNotFound,
    DVIDException,
    EncryptionFailure,
    EncryptionKeyNotFound,
    MalformedCredentialId,
    MalformedDIDError,
    MalformedInputError,
    PublishFailure,
    ResolutionFailure,
    SigningFailure,
)
from .logging import configure_logging, correlation_context, get_logger

__all__ = [
    # Config
    "CoreSettings",
    "get_config",
    "clear_config_cache",
    # Logging
    "configure_logging",
    "correlation_context",
    "get_logger",
    # Exceptions
    "DVIDException",
    "ConfigException",
    "MalformedInputError",
    "MalformedCredentialId",
    "MalformedDIDError",
    "ResolutionFailure",
    "DnsResolutionFailure",
    "DvidRecordNotFound",
    "DIDNotFoundError",
    "DIDResolutionNetworkError",
    "CryptoFailure",
    "SigningFailure",
    "EncryptionKeyNotFound",
    "EncryptionFailure",
    "DecryptionFailure",
    "PublishFailure",
    "CredentialValidationError",
]
