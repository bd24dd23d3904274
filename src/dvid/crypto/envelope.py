"""Key-agreement encryption envelope for DVID identities.

Implements ECDH-ES content encryption:
- an ephemeral X25519 key agrees a shared secret with the recipient's
  key-agreement method (fixed ``#encryption`` fragment)
- HKDF-SHA256 with fixed parameters turns it into a 256-bit content key
- AES-256-GCM encrypts the payload with fixed associated data

Every message gets a fresh ephemeral key and a fresh nonce. The associated
data and KDF parameters are fixed for all messages.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..core.config import CoreSettings, get_config
from ..core.exceptions import DecryptionFailure, EncryptionFailure, EncryptionKeyNotFound
from ..identity.account import IdentityAccount
from ..identity.document import X25519_KEY_TYPE, DIDDocument

logger = logging.getLogger(__name__)

ENCRYPTION_ALGORITHM = "A256GCM"
CEK_ALGORITHM = "ECDH-ES"
KEY_SIZE = 32
NONCE_SIZE = 12
KDF_INFO = b"dvid-ecdh-es-a256gcm"


def derive_content_key(shared_secret: bytes) -> bytes:
    """Derive the AES-256 content key from an X25519 shared secret."""
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=KDF_INFO,
    ).derive(shared_secret)


@dataclass(frozen=True)
class EncryptedEnvelope:
    """Ciphertext bound to one recipient key, plus what is needed to open it."""

    ciphertext: bytes  # AES-GCM output, tag included
    associated_data: bytes
    nonce: bytes
    ephemeral_public_key: bytes
    encryption_algorithm: str = ENCRYPTION_ALGORITHM
    cek_algorithm: str = CEK_ALGORITHM
    recipient_key_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "ciphertext": base64.b64encode(self.ciphertext).decode(),
            "associatedData": base64.b64encode(self.associated_data).decode(),
            "nonce": base64.b64encode(self.nonce).decode(),
            "ephemeralPublicKey": base64.b64encode(self.ephemeral_public_key).decode(),
            "encryptionAlgorithm": self.encryption_algorithm,
            "cekAlgorithm": self.cek_algorithm,
            "recipientKeyId": self.recipient_key_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EncryptedEnvelope:
        """Deserialize from dictionary.

        Raises:
            DecryptionFailure: If a field is missing or not valid base64.
        """
        try:
            return cls(
                ciphertext=base64.b64decode(data["ciphertext"], validate=True),
                associated_data=base64.b64decode(data.get("associatedData", ""), validate=True),
                nonce=base64.b64decode(data["nonce"], validate=True),
                ephemeral_public_key=base64.b64decode(data["ephemeralPublicKey"], validate=True),
                encryption_algorithm=data.get("encryptionAlgorithm", ENCRYPTION_ALGORITHM),
                cek_algorithm=data.get("cekAlgorithm", CEK_ALGORITHM),
                recipient_key_id=data.get("recipientKeyId"),
            )
        except (KeyError, TypeError, binascii.Error, AttributeError) as e:
            raise DecryptionFailure(f"Malformed encrypted envelope: {type(e).__name__}") from e


class KeyAgreementCodec:
    """Encrypt payloads for a DID's key-agreement key and decrypt our own.

    Args:
        account: The local identity; decryption uses its agreement key, and it
            is the default recipient of :meth:`encrypt`.
        settings: Provides the fixed fragment and associated data.
    """

    def __init__(self, account: IdentityAccount | None = None, settings: CoreSettings | None = None) -> None:
        self.account = account
        self.settings = settings or (account.settings if account is not None else get_config())
        self.fragment = self.settings.encryption_fragment
        self.associated_data = self.settings.associated_data_bytes

    # -- Encryption ---------------------------------------------------------

    def encrypt(self, plaintext: str | bytes, recipient: DIDDocument | IdentityAccount | None = None) -> EncryptedEnvelope:
        """Encrypt ``plaintext`` for ``recipient`` (defaults to the local account).

        Raises:
            EncryptionKeyNotFound: If the recipient has no X25519 key at the fragment.
            EncryptionFailure: If key agreement or AEAD encryption fails.
        """
        document = self._recipient_document(recipient)
        method = document.resolve_method(self.fragment)
        if method is None or method.type != X25519_KEY_TYPE:
            raise EncryptionKeyNotFound(document.id, self.fragment)

        message = plaintext.encode("utf-8") if isinstance(plaintext, str) else bytes(plaintext)

        try:
            recipient_key = X25519PublicKey.from_public_bytes(method.public_key_bytes)
            ephemeral = X25519PrivateKey.generate()
            content_key = derive_content_key(ephemeral.exchange(recipient_key))
            nonce = os.urandom(NONCE_SIZE)
            ciphertext = AESGCM(content_key).encrypt(nonce, message, self.associated_data)
        except (ValueError, OverflowError, UnsupportedAlgorithm) as e:
            # No payload or key bytes in the message
            raise EncryptionFailure(
                f"Failed to encrypt data for {method.id}: {type(e).__name__}",
                {"recipient_key_id": method.id},
            ) from e

        logger.debug(f"Encrypted {len(message)} bytes for {method.id}")
        return EncryptedEnvelope(
            ciphertext=ciphertext,
            associated_data=self.associated_data,
            nonce=nonce,
            ephemeral_public_key=ephemeral.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            ),
            recipient_key_id=method.id,
        )

    def _recipient_document(self, recipient: DIDDocument | IdentityAccount | None) -> DIDDocument:
        if recipient is None:
            if self.account is None:
                raise EncryptionFailure("No recipient given and no local account configured")
            return self.account.document
        if isinstance(recipient, DIDDocument):
            return recipient
        document = getattr(recipient, "document", None)
        if isinstance(document, DIDDocument):
            return document
        raise EncryptionFailure(f"Unsupported recipient type: {type(recipient).__name__}")

    # -- Decryption ---------------------------------------------------------

    def decrypt(self, envelope: EncryptedEnvelope | Mapping[str, Any]) -> str:
        """Decrypt an envelope addressed to the local account.

        Accepts the envelope object or its dictionary form.

        Raises:
            EncryptionKeyNotFound: If the local account has no agreement key.
            DecryptionFailure: If the envelope is malformed, tampered with, or not ours.
        """
        if self.account is None:
            raise DecryptionFailure("No local account configured for decryption")
        if not isinstance(envelope, EncryptedEnvelope):
            if not isinstance(envelope, Mapping):
                raise DecryptionFailure(f"Unsupported envelope type: {type(envelope).__name__}")
            envelope = EncryptedEnvelope.from_dict(envelope)

        if envelope.encryption_algorithm != ENCRYPTION_ALGORITHM or envelope.cek_algorithm != CEK_ALGORITHM:
            raise DecryptionFailure(
                f"Unsupported algorithms {envelope.cek_algorithm}/{envelope.encryption_algorithm}"
            )
        expected_key_id = self.account.method_id(self.fragment)
        if envelope.recipient_key_id and envelope.recipient_key_id != expected_key_id:
            raise DecryptionFailure(
                f"Envelope is addressed to {envelope.recipient_key_id}, not {expected_key_id}"
            )
        if len(envelope.nonce) != NONCE_SIZE:
            raise DecryptionFailure("Envelope nonce has the wrong length")

        try:
            shared_secret = self.account.key_agreement(self.fragment, envelope.ephemeral_public_key)
        except ValueError as e:
            raise DecryptionFailure(f"Key agreement failed: {type(e).__name__}") from e

        try:
            content_key = derive_content_key(shared_secret)
            message = AESGCM(content_key).decrypt(envelope.nonce, envelope.ciphertext, self.associated_data)
        except InvalidTag as e:
            raise DecryptionFailure("Authentication failed: data was tampered with or not encrypted for this key") from e
        except ValueError as e:
            raise DecryptionFailure(f"Decryption failed: {type(e).__name__}") from e

        try:
            return message.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailure("Decrypted data is not valid UTF-8 text") from e
