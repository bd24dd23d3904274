"""Domain-anchored trust for credentials (DVID).

- DNS TXT lookup of the ``DVID.did=`` trust anchor
- Verification against the anchor, with fallback to the issuer
"""

from .dns import DVID_MARKER, DnsPythonTxtResolver, DnsTxtResolver, extract_domain, find_dvid_anchor
from .dvid import DVIDResolver, TrustDecision

__all__ = [
    "DVID_MARKER",
    "DnsPythonTxtResolver",
    "DnsTxtResolver",
    "extract_domain",
    "find_dvid_anchor",
    "DVIDResolver",
    "TrustDecision",
]
