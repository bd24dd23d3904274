"""DID documents for DVID identities.

DID Formats:
- Generic: did:<method>:<method-specific-id>
- Local accounts: did:dvid:<fingerprint>

A DID URL adds a fragment that addresses one verification method or
service inside the document, e.g. ``did:dvid:3f2a...#key-0``.

Examples:
- did:dvid:9b1deb4d3b7d4bad9bdd2b0d7b3dcb6d
- did:example:bob
- did:iota:0xe4edef97da1257e83cbeb49159cfdd2da6ac971ac447f233f8439cf29376ebfe
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import base58

from ..core.exceptions import MalformedDIDError
from .bitmap import REVOCATION_BITMAP_TYPE, RevocationBitmap

# =============================================================================
# CONSTANTS
# =============================================================================

DID_PATTERN = re.compile(r"^did:([a-z0-9]+):([A-Za-z0-9._%-]+(?::[A-Za-z0-9._%-]+)*)$")

# Multibase prefix for base58btc encoding
MULTIBASE_BASE58BTC = "z"

# Multicodec prefixes for raw public keys
MULTICODEC_ED25519_PUB = bytes([0xED, 0x01])
MULTICODEC_X25519_PUB = bytes([0xEC, 0x01])

ED25519_KEY_TYPE = "Ed25519VerificationKey2020"
X25519_KEY_TYPE = "X25519KeyAgreementKey2020"

DID_CONTEXT = "https://www.w3.org/ns/did/v1"

# (attribute, JSON-LD key) of the verification relationships
_RELATIONSHIPS = (
    ("authentication", "authentication"),
    ("assertion_method", "assertionMethod"),
    ("key_agreement", "keyAgreement"),
)


# =============================================================================
# MULTIBASE / MULTICODEC
# =============================================================================


def multibase_encode(data: bytes) -> str:
    """Encode bytes as base58btc multibase (``z...``)."""
    return MULTIBASE_BASE58BTC + base58.b58encode(data).decode("ascii")


def multibase_decode(value: str) -> bytes:
    """Decode a base58btc multibase string.

    Raises ValueError on another base or characters outside the alphabet.
    """
    if not isinstance(value, str) or not value.startswith(MULTIBASE_BASE58BTC):
        raise ValueError(f"Unsupported multibase encoding: {str(value)[:1]!r}")
    return base58.b58decode(value[1:])


def encode_public_key(raw: bytes, key_type: str) -> str:
    """Multibase-encode a raw public key behind its multicodec prefix."""
    prefix = MULTICODEC_X25519_PUB if key_type == X25519_KEY_TYPE else MULTICODEC_ED25519_PUB
    return multibase_encode(prefix + raw)


def decode_public_key(value: str) -> bytes:
    """Raw public key bytes of a multibase key, multicodec prefix removed."""
    decoded = multibase_decode(value)
    for prefix in (MULTICODEC_ED25519_PUB, MULTICODEC_X25519_PUB):
        if decoded.startswith(prefix):
            return decoded[len(prefix):]
    return decoded


# =============================================================================
# DID
# =============================================================================


@dataclass(frozen=True)
class DID:
    """Parsed Decentralized Identifier."""

    method: str
    identifier: str

    @property
    def full(self) -> str:
        return f"did:{self.method}:{self.identifier}"

    def __str__(self) -> str:
        return self.full


def parse_did(did_string: Any) -> DID:
    """Parse a DID string into a DID object.

    Raises MalformedDIDError if the DID is invalid.
    """
    if not isinstance(did_string, str):
        raise MalformedDIDError("DID must be a string", did_string)
    match = DID_PATTERN.match(did_string)
    if not match:
        raise MalformedDIDError(f"Invalid DID: {did_string!r}", did_string)
    return DID(method=match.group(1), identifier=match.group(2))


def is_did(value: Any) -> bool:
    """Whether ``value`` is a syntactically valid DID."""
    return isinstance(value, str) and DID_PATTERN.match(value) is not None


def split_did_url(did_url: str) -> tuple[str, str | None]:
    """Split ``did#fragment`` into ``(did, fragment)``."""
    did, sep, fragment = did_url.partition("#")
    return did, (fragment if sep else None)


# =============================================================================
# DID DOCUMENT
# =============================================================================


@dataclass
class VerificationMethod:
    """Verification method in a DID document."""

    id: str
    type: str = ED25519_KEY_TYPE
    controller: str = ""
    public_key_multibase: str = ""

    @property
    def fragment(self) -> str | None:
        return split_did_url(self.id)[1]

    @property
    def public_key_bytes(self) -> bytes:
        """Raw public key bytes. Raises ValueError on a bad encoding."""
        return decode_public_key(self.public_key_multibase)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "controller": self.controller,
            "publicKeyMultibase": self.public_key_multibase,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerificationMethod:
        return cls(
            id=data["id"],
            type=data.get("type", ED25519_KEY_TYPE),
            controller=data.get("controller", ""),
            public_key_multibase=data.get("publicKeyMultibase", ""),
        )


@dataclass
class ServiceEndpoint:
    """Service endpoint in a DID document."""

    id: str
    type: str
    service_endpoint: str

    @property
    def fragment(self) -> str | None:
        return split_did_url(self.id)[1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "serviceEndpoint": self.service_endpoint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceEndpoint:
        return cls(
            id=data["id"],
            type=data["type"],
            service_endpoint=data["serviceEndpoint"],
        )


@dataclass
class DIDDocument:
    """A DID's public document as resolved at one point in time.

    ``version`` increases with every published change and is what the
    registry compares on publication.
    """

    id: str  # The DID
    controller: str | None = None

    # Verification
    verification_methods: list[VerificationMethod] = field(default_factory=list)
    authentication: list[str] = field(default_factory=list)
    assertion_method: list[str] = field(default_factory=list)
    key_agreement: list[str] = field(default_factory=list)

    # Services
    services: list[ServiceEndpoint] = field(default_factory=list)

    # Metadata
    version: int = 0
    created: datetime | None = None
    updated: datetime | None = None

    @property
    def did(self) -> DID:
        return parse_did(self.id)

    def _full_id(self, query: str) -> str:
        """Expand ``frag``, ``#frag`` or ``did#frag`` into a full DID URL."""
        if query.startswith("did:"):
            return query
        return f"{self.id}#{query.lstrip('#')}"

    def resolve_method(self, query: str) -> VerificationMethod | None:
        """Find a verification method by fragment or full DID URL."""
        target = self._full_id(query)
        for vm in self.verification_methods:
            if vm.id == target:
                return vm
        return None

    def resolve_service(self, query: str) -> ServiceEndpoint | None:
        """Find a service by fragment or full DID URL."""
        target = self._full_id(query)
        for service in self.services:
            if service.id == target:
                return service
        return None

    def revocation_bitmap(self, query: str) -> RevocationBitmap | None:
        """Decode the revocation bitmap published at a service.

        Returns None when the service is absent or not a revocation bitmap.
        Raises ValueError when the service payload cannot be decoded.
        """
        service = self.resolve_service(query)
        if service is None or service.type != REVOCATION_BITMAP_TYPE:
            return None
        return RevocationBitmap.from_endpoint(service.service_endpoint)

    def set_service(self, service: ServiceEndpoint) -> None:
        """Insert or replace a service by id."""
        self.services = [s for s in self.services if s.id != service.id]
        self.services.append(service)

    def copy(self) -> DIDDocument:
        """Deep copy, so callers can never mutate an owner's document."""
        return copy.deepcopy(self)

    # -- Serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """JSON-LD form. Empty relationships and services are left out."""
        doc: dict[str, Any] = {"@context": [DID_CONTEXT], "id": self.id}
        if self.controller:
            doc["controller"] = self.controller
        if self.verification_methods:
            doc["verificationMethod"] = [vm.to_dict() for vm in self.verification_methods]
        for attr, key in _RELATIONSHIPS:
            refs = getattr(self, attr)
            if refs:
                doc[key] = list(refs)
        if self.services:
            doc["service"] = [s.to_dict() for s in self.services]
        doc["version"] = self.version
        for attr in ("created", "updated"):
            stamp = getattr(self, attr)
            if stamp is not None:
                doc[attr] = stamp.isoformat()
        return doc

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DIDDocument:
        """Parse the JSON-LD form.

        Raises MalformedDIDError if the document id is not a DID, and
        KeyError / ValueError on malformed members.
        """
        doc_id = data.get("id")
        parse_did(doc_id)

        stamps = {attr: datetime.fromisoformat(data[attr]) if data.get(attr) else None for attr in ("created", "updated")}
        relationships = {attr: list(data.get(key, [])) for attr, key in _RELATIONSHIPS}
        return cls(
            id=doc_id,
            controller=data.get("controller"),
            verification_methods=[VerificationMethod.from_dict(vm) for vm in data.get("verificationMethod", [])],
            services=[ServiceEndpoint.from_dict(s) for s in data.get("service", [])],
            version=int(data.get("version", 0)),
            **relationships,
            **stamps,
        )


# =============================================================================
# CANONICAL JSON
# =============================================================================


def canonical_json(obj: Any) -> bytes:
    """Deterministic JSON bytes for signing: sorted keys, no whitespace, UTF-8."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
