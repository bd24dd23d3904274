"""Verifiable credential data model.

Credentials are immutable once built: :meth:`Credential.with_proof` returns a
new object, and every serialization hands out copies. The JSON form uses the
W3C camelCase keys::

    {
      "@context": ["https://www.w3.org/2018/credentials/v1"],
      "id": "https://example.com/vc/1",
      "type": ["VerifiableCredential", "UniversityDegreeCredential"],
      "issuer": "did:dvid:...",
      "issuanceDate": "2026-01-01T00:00:00Z",
      "credentialSubject": {"id": "did:example:bob", "degree": "BSc"},
      "credentialStatus": {
        "id": "did:dvid:...#signature-bitmap",
        "type": "RevocationBitmap2022",
        "revocationBitmapIndex": "0"
      },
      "proof": {...}
    }
"""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from ..core.exceptions import MalformedInputError
from ..identity.bitmap import REVOCATION_BITMAP_TYPE
from ..identity.document import split_did_url

CREDENTIALS_CONTEXT = "https://www.w3.org/2018/credentials/v1"
BASE_CREDENTIAL_TYPE = "VerifiableCredential"
PROOF_TYPE = "Ed25519Signature2020"
PROOF_PURPOSE = "assertionMethod"


# =============================================================================
# TIMESTAMPS
# =============================================================================


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an XML-schema UTC timestamp (``...Z``)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC.

    Raises ValueError on malformed input.
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class CredentialStatus:
    """Pointer to the issuer's revocation bitmap entry for a credential."""

    id: str
    type: str = REVOCATION_BITMAP_TYPE
    revocation_bitmap_index: str = "0"

    @property
    def did(self) -> str:
        """DID that owns the referenced bitmap."""
        return split_did_url(self.id)[0]

    @property
    def index(self) -> int:
        """Bitmap index as an integer. Raises ValueError if not a non-negative int."""
        index = int(self.revocation_bitmap_index)
        if index < 0:
            raise ValueError(f"Negative revocation index: {index}")
        return index

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "revocationBitmapIndex": self.revocation_bitmap_index,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CredentialStatus:
        return cls(
            id=data["id"],
            type=data.get("type", REVOCATION_BITMAP_TYPE),
            revocation_bitmap_index=str(data.get("revocationBitmapIndex", "0")),
        )


@dataclass(frozen=True)
class Proof:
    """Ed25519 signature over the canonical credential."""

    verification_method: str
    created: str
    signature_value: str = ""
    type: str = PROOF_TYPE
    proof_purpose: str = PROOF_PURPOSE

    def signing_input(self) -> dict[str, Any]:
        """The proof options that are covered by the signature."""
        return {
            "type": self.type,
            "verificationMethod": self.verification_method,
            "created": self.created,
            "proofPurpose": self.proof_purpose,
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.signing_input(), "signatureValue": self.signature_value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Proof:
        return cls(
            verification_method=data["verificationMethod"],
            created=data.get("created", ""),
            signature_value=data.get("signatureValue", ""),
            type=data.get("type", PROOF_TYPE),
            proof_purpose=data.get("proofPurpose", PROOF_PURPOSE),
        )


@dataclass(frozen=True)
class Credential:
    """A verifiable credential, signed once :attr:`proof` is set."""

    id: str
    issuer: str
    type: tuple[str, ...]
    credential_subject: Mapping[str, Any]
    issuance_date: str
    credential_status: CredentialStatus | None = None
    expiration_date: str | None = None
    context: tuple[str, ...] = (CREDENTIALS_CONTEXT,)
    proof: Proof | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Freeze the subject so the credential cannot be changed through it
        subject = copy.deepcopy(dict(self.credential_subject))
        object.__setattr__(self, "credential_subject", MappingProxyType(subject))
        object.__setattr__(self, "type", tuple(self.type))
        object.__setattr__(self, "context", tuple(self.context))

    @property
    def subject_id(self) -> str | None:
        return self.credential_subject.get("id")

    @property
    def is_signed(self) -> bool:
        return self.proof is not None

    def with_proof(self, proof: Proof) -> Credential:
        return replace(self, proof=proof)

    def unsigned_dict(self) -> dict[str, Any]:
        """JSON form without the proof."""
        data: dict[str, Any] = {
            "@context": list(self.context),
            "id": self.id,
            "type": list(self.type),
            "issuer": self.issuer,
            "issuanceDate": self.issuance_date,
            "credentialSubject": copy.deepcopy(dict(self.credential_subject)),
        }
        if self.expiration_date:
            data["expirationDate"] = self.expiration_date
        if self.credential_status is not None:
            data["credentialStatus"] = self.credential_status.to_dict()
        return data

    def to_dict(self) -> dict[str, Any]:
        data = self.unsigned_dict()
        if self.proof is not None:
            data["proof"] = self.proof.to_dict()
        return data

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Credential:
        """Create from the JSON form.

        Raises:
            MalformedInputError: If a required field is missing or mistyped.
        """
        if not isinstance(data, Mapping):
            raise MalformedInputError("Credential must be a JSON object", field="credential")

        for required in ("id", "issuer", "credentialSubject"):
            if required not in data:
                raise MalformedInputError(f"Credential is missing '{required}'", field=required)

        issuer = data["issuer"]
        if isinstance(issuer, Mapping):
            issuer = issuer.get("id")
        if not isinstance(issuer, str):
            raise MalformedInputError("Credential issuer must be a DID string", field="issuer", value=issuer)

        subject = data["credentialSubject"]
        if not isinstance(subject, Mapping):
            raise MalformedInputError("credentialSubject must be an object", field="credentialSubject")

        types = data.get("type", [BASE_CREDENTIAL_TYPE])
        if isinstance(types, str):
            types = [types]
        contexts = data.get("@context", [CREDENTIALS_CONTEXT])
        if isinstance(contexts, str):
            contexts = [contexts]

        try:
            status = data.get("credentialStatus")
            proof = data.get("proof")
            return cls(
                id=data["id"],
                issuer=issuer,
                type=tuple(types),
                credential_subject=subject,
                issuance_date=data.get("issuanceDate", ""),
                credential_status=CredentialStatus.from_dict(status) if status else None,
                expiration_date=data.get("expirationDate"),
                context=tuple(contexts),
                proof=Proof.from_dict(proof) if proof else None,
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedInputError(f"Malformed credential: {e}", field="credential") from e

    @classmethod
    def from_json(cls, text: str) -> Credential:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedInputError(f"Credential is not valid JSON: {e}", field="credential") from e
        return cls.from_dict(data)
