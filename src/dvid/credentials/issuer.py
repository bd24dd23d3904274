"""Credential issuance.

The issuer builds the unsigned credential, points its status at the issuing
identity's own revocation bitmap, and asks the signing capability for a
signature. It never publishes anything.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from ..core.config import get_config
from ..core.exceptions import MalformedInputError, SigningFailure
from ..identity.account import SigningCapability
from ..identity.bitmap import REVOCATION_BITMAP_TYPE
from ..identity.document import canonical_json, multibase_encode, parse_did
from .models import (
    BASE_CREDENTIAL_TYPE,
    Credential,
    CredentialStatus,
    Proof,
    format_timestamp,
)

logger = logging.getLogger(__name__)


def signing_payload(credential: Credential, proof: Proof) -> bytes:
    """Bytes covered by a credential signature: the unsigned credential plus proof options."""
    return canonical_json({**credential.unsigned_dict(), "proof": proof.signing_input()})


def _normalize_types(credential_type: str | Sequence[str]) -> tuple[str, ...]:
    types = [credential_type] if isinstance(credential_type, str) else list(credential_type)
    types = [t for t in types if t and t != BASE_CREDENTIAL_TYPE]
    return (BASE_CREDENTIAL_TYPE, *types)


class CredentialIssuer:
    """Issue credentials signed by one identity.

    Example:
        >>> issuer = CredentialIssuer(account)
        >>> vc = issuer.issue(
        ...     id="https://example.com/vc/1",
        ...     recipient_did="did:example:bob",
        ...     signing_fragment="key-0",
        ...     claims={"degree": "BSc"},
        ...     credential_type="UniversityDegreeCredential",
        ...     key_index=0,
        ... )
    """

    def __init__(self, signer: SigningCapability, revocation_fragment: str | None = None) -> None:
        self.signer = signer
        self.revocation_fragment = (revocation_fragment or get_config().revocation_fragment).lstrip("#")

    def issue(
        self,
        id: str,
        recipient_did: str,
        signing_fragment: str,
        claims: Mapping[str, Any] | None,
        credential_type: str | Sequence[str],
        key_index: int,
        expiration_date: datetime | None = None,
    ) -> Credential:
        """Create and sign a credential.

        Args:
            id: Credential identifier, a URL on the issuer's domain for DVID.
            recipient_did: Subject DID.
            signing_fragment: Fragment of the issuer key to sign with.
            claims: Claims merged under ``credentialSubject`` after ``id``; an ``id`` claim overrides ``recipient_did``.
            credential_type: Type tag(s); ``VerifiableCredential`` is always first.
            key_index: Revocation bitmap index this credential is bound to.
            expiration_date: Optional expiry.

        Returns:
            The signed credential.

        Raises:
            MalformedInputError: On an empty id, a bad DID or a bad index.
            SigningFailure: If the signer cannot produce a signature.
        """
        if not isinstance(id, str) or not id:
            raise MalformedInputError("Credential id must be a non-empty string", field="id", value=id)
        parse_did(recipient_did)
        if isinstance(key_index, bool) or not isinstance(key_index, int) or key_index < 0:
            raise MalformedInputError("key_index must be a non-negative integer", field="key_index", value=key_index)

        issuer_did = self.signer.did
        credential_subject = {"id": recipient_did, **(claims or {})}
        now = datetime.now(UTC)

        unsigned = Credential(
            id=id,
            issuer=issuer_did,
            type=_normalize_types(credential_type),
            credential_subject=credential_subject,
            issuance_date=format_timestamp(now),
            credential_status=CredentialStatus(
                id=f"{issuer_did}#{self.revocation_fragment}",
                type=REVOCATION_BITMAP_TYPE,
                revocation_bitmap_index=str(key_index),
            ),
            expiration_date=format_timestamp(expiration_date) if expiration_date else None,
        )

        fragment = signing_fragment.lstrip("#")
        proof = Proof(
            verification_method=f"{issuer_did}#{fragment}",
            created=format_timestamp(now),
        )

        try:
            signature = self.signer.sign(fragment, signing_payload(unsigned, proof))
        except SigningFailure:
            raise
        except Exception as e:  # Intentionally broad: signing backends fail in many ways
            raise SigningFailure(f"Signing with #{fragment} failed: {type(e).__name__}", fragment=fragment) from e

        signed = unsigned.with_proof(
            Proof(
                verification_method=proof.verification_method,
                created=proof.created,
                signature_value=multibase_encode(signature),
            )
        )
        logger.info(f"Issued credential {id} to {recipient_did} with #{fragment} at index {key_index}")
        return signed
