"""Identity layer for DVID - DIDs, documents, accounts and resolution.

Key concepts:
- **DIDDocument**: a DID's public document, resolved at one point in time.
- **IdentityAccount**: an identity owned by this process (private keys,
  revocation bitmap, publication state).
- **RevocationBitmap**: revoked indices, carried in a document service.
- **ResolutionResult**: found / not found / transient error, kept distinct.
"""

from .account import IdentityAccount, SigningCapability, did_from_public_key
from .bitmap import REVOCATION_BITMAP_TYPE, RevocationBitmap
from .document import (
    DID,
    DIDDocument,
    ServiceEndpoint,
    VerificationMethod,
    canonical_json,
    is_did,
    parse_did,
    split_did_url,
)
from .resolver import (
    DIDResolver,
    DocumentPublisher,
    HttpDIDResolver,
    InMemoryDIDRegistry,
    ResolutionResult,
    ResolutionStatus,
)

__all__ = [
    "DID",
    "DIDDocument",
    "ServiceEndpoint",
    "VerificationMethod",
    "canonical_json",
    "is_did",
    "parse_did",
    "split_did_url",
    "REVOCATION_BITMAP_TYPE",
    "RevocationBitmap",
    "IdentityAccount",
    "SigningCapability",
    "did_from_public_key",
    "DIDResolver",
    "DocumentPublisher",
    "HttpDIDResolver",
    "InMemoryDIDRegistry",
    "ResolutionResult",
    "ResolutionStatus",
]
