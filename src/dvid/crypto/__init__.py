"""Cryptographic envelopes for DVID.

- ECDH-ES (X25519) key agreement + AES-256-GCM content encryption
"""

from dvid.crypto.envelope import (
    CEK_ALGORITHM,
    ENCRYPTION_ALGORITHM,
    EncryptedEnvelope,
    KeyAgreementCodec,
    derive_content_key,
)

__all__ = [
    "CEK_ALGORITHM",
    "ENCRYPTION_ALGORITHM",
    "EncryptedEnvelope",
    "KeyAgreementCodec",
    "derive_content_key",
]
