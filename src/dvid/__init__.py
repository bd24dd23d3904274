# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""DVID - Verifiable credentials with domain-anchored trust.

Issues, validates, revokes and encrypts under decentralized identifiers, and
layers the DVID protocol on top of standard credential validation: a domain
names its trust-anchor DID in a ``DVID.did=`` TXT record, and credentials
whose id lives on that domain are validated against the anchor.

Architecture:
  Credential id (https://<domain>/...)
    → DNS TXT ``DVID.did=<did>`` (trust anchor)
    → DID resolution (found / not found / transient error)
    → Validation (signature, dates, revocation bitmap)

Key design principles:
  - Only "anchor DID not found" falls back to the issuer; every other
    failure propagates. ``dvid=False`` is weaker evidence than ``dvid=True``.
  - Revocation is not authoritative until the document is published.
  - Validators answer yes or no; they never raise.
"""

__version__ = "0.2.0"

from . import (
    core as core,
)
from .manager import CredentialsManager
from .trust.dvid import DVIDResolver, TrustDecision

__all__ = [
    "__version__",
    "core",
    "CredentialsManager",
    "DVIDResolver",
    "TrustDecision",
]
