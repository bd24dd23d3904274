"""Verifiable credentials: model, issuance, validation and revocation."""

from .issuer import CredentialIssuer, signing_payload
from .models import (
    BASE_CREDENTIAL_TYPE,
    CREDENTIALS_CONTEXT,
    PROOF_TYPE,
    Credential,
    CredentialStatus,
    Proof,
    format_timestamp,
    parse_timestamp,
)
from .revocation import RevocationLedgerAdapter
from .validator import CredentialValidator

__all__ = [
    "BASE_CREDENTIAL_TYPE",
    "CREDENTIALS_CONTEXT",
    "PROOF_TYPE",
    "Credential",
    "CredentialStatus",
    "Proof",
    "format_timestamp",
    "parse_timestamp",
    "CredentialIssuer",
    "signing_payload",
    "CredentialValidator",
    "RevocationLedgerAdapter",
]
