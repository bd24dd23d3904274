"""Credential validation against a resolved issuer document.

Validation collects every failed check (it does not stop at the first) and
treats any failure as fatal: there is no partial-trust result.

- :meth:`CredentialValidator.validate` raises :class:`CredentialValidationError`
  listing all failures.
- :meth:`CredentialValidator.is_valid` never raises; it answers yes or no.

Validation is pure: the document must already be resolved.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from ..core.exceptions import CredentialValidationError, DVIDException
from ..identity.bitmap import REVOCATION_BITMAP_TYPE
from ..identity.document import ED25519_KEY_TYPE, DIDDocument, is_did, multibase_decode, split_did_url
from .issuer import signing_payload
from .models import BASE_CREDENTIAL_TYPE, PROOF_TYPE, Credential, parse_timestamp

logger = logging.getLogger(__name__)


class CredentialValidator:
    """Check signature, structure, dates and revocation status of credentials.

    Args:
        clock: Returns the current time; injectable for tests.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))

    def validate(self, credential: Credential | Mapping[str, Any], issuer_document: DIDDocument) -> None:
        """Validate a credential, raising with every failed check.

        Raises:
            CredentialValidationError: If any check fails.
            MalformedInputError: If a dict credential cannot be parsed.
        """
        if not isinstance(credential, Credential):
            credential = Credential.from_dict(credential)
        errors = self.check(credential, issuer_document)
        if errors:
            raise CredentialValidationError(errors, credential_id=credential.id)

    def is_valid(self, credential: Credential | Mapping[str, Any], issuer_document: DIDDocument) -> bool:
        """Whether the credential passes every check. Never raises."""
        try:
            self.validate(credential, issuer_document)
        except CredentialValidationError as e:
            logger.debug(f"Credential {e.credential_id} invalid: {e.errors}")
            return False
        except DVIDException as e:
            logger.debug(f"Credential unreadable: {e.message}")
            return False
        except Exception:  # Intentionally broad: a validator must answer yes or no
            logger.exception("Unexpected error during credential validation")
            return False
        return True

    def check(self, credential: Credential, document: DIDDocument) -> list[str]:
        """Run all checks and return the failures (empty when valid)."""
        errors: list[str] = []
        errors.extend(self._check_structure(credential))
        errors.extend(self._check_issuer(credential, document))
        errors.extend(self._check_signature(credential, document))
        errors.extend(self._check_dates(credential))
        errors.extend(self._check_status(credential, document))
        return errors

    # -- Individual checks --------------------------------------------------

    def _check_structure(self, credential: Credential) -> list[str]:
        errors = []
        if not isinstance(credential.id, str) or not credential.id:
            errors.append("credential id is missing")
        if BASE_CREDENTIAL_TYPE not in credential.type:
            errors.append(f"type does not include {BASE_CREDENTIAL_TYPE}")
        if not is_did(credential.issuer):
            errors.append("issuer is not a DID")
        if not isinstance(credential.subject_id, str) or not credential.subject_id:
            errors.append("credentialSubject has no id")
        if credential.proof is None:
            errors.append("credential is not signed")
        return errors

    def _check_issuer(self, credential: Credential, document: DIDDocument) -> list[str]:
        if credential.issuer != document.id:
            return [f"issuer {credential.issuer} does not match document {document.id}"]
        return []

    def _check_signature(self, credential: Credential, document: DIDDocument) -> list[str]:
        proof = credential.proof
        if proof is None:
            return []
        if proof.type != PROOF_TYPE:
            return [f"unsupported proof type {proof.type}"]

        method_did, _ = split_did_url(proof.verification_method)
        if method_did != document.id:
            return [f"proof method {proof.verification_method} is not controlled by {document.id}"]

        method = document.resolve_method(proof.verification_method)
        if method is None:
            return [f"proof method {proof.verification_method} not found in document"]
        if method.type != ED25519_KEY_TYPE:
            return [f"proof method {method.id} is not an Ed25519 key"]
        if document.assertion_method and method.id not in document.assertion_method:
            return [f"proof method {method.id} is not an assertion method"]

        try:
            public_key = Ed25519PublicKey.from_public_bytes(method.public_key_bytes)
            signature = multibase_decode(proof.signature_value)
            public_key.verify(signature, signing_payload(credential, proof))
        except InvalidSignature:
            return ["signature does not verify"]
        except ValueError as e:
            return [f"signature could not be checked: {e}"]
        return []

    def _check_dates(self, credential: Credential) -> list[str]:
        errors = []
        now = self._clock()
        try:
            if parse_timestamp(credential.issuance_date) > now:
                errors.append("issuanceDate is in the future")
        except ValueError:
            errors.append("issuanceDate is malformed")

        if credential.expiration_date:
            try:
                if parse_timestamp(credential.expiration_date) < now:
                    errors.append("credential has expired")
            except ValueError:
                errors.append("expirationDate is malformed")
        return errors

    def _check_status(self, credential: Credential, document: DIDDocument) -> list[str]:
        status = credential.credential_status
        if status is None:
            return []
        if status.type != REVOCATION_BITMAP_TYPE:
            return [f"unsupported credentialStatus type {status.type}"]

        # The bitmap must belong to the identity that signed the credential
        if status.did != document.id or status.did != credential.issuer:
            return [f"credentialStatus {status.id} does not belong to the issuer"]

        try:
            index = status.index
        except ValueError:
            return [f"revocationBitmapIndex {status.revocation_bitmap_index!r} is not a valid index"]

        try:
            bitmap = document.revocation_bitmap(status.id)
        except ValueError as e:
            return [f"revocation bitmap is corrupt: {e}"]
        if bitmap is None:
            return [f"revocation bitmap {status.id} not found in document"]

        try:
            revoked = bitmap.is_revoked(index)
        except ValueError as e:
            return [f"revocationBitmapIndex out of range: {e}"]
        if revoked:
            return [f"credential is revoked (index {index})"]
        return []
