"""Identity account - the owned bundle of a DID and its private key material.

An account holds:
- Ed25519 signing keys, one per fragment (``#key-0``, ``#key-1``, ...)
- an X25519 key-agreement key at the encryption fragment
- a revocation bitmap service at the revocation fragment
- the local DID document and its publication state

Private keys never leave the account: callers get signatures and shared
secrets, never key bytes. The document handed out is always a copy.

Typical workflow::

    account = IdentityAccount.create()
    registry = InMemoryDIDRegistry()
    await account.publish(registry)

    signature = account.sign("key-0", b"payload")
    account.revoke_credentials("signature-bitmap", 3)
    await account.publish(registry)
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from ..core.config import CoreSettings, get_config
from ..core.exceptions import (
    EncryptionKeyNotFound,
    MalformedInputError,
    SigningFailure,
)
from .bitmap import REVOCATION_BITMAP_TYPE, RevocationBitmap
from .document import (
    ED25519_KEY_TYPE,
    X25519_KEY_TYPE,
    DIDDocument,
    ServiceEndpoint,
    VerificationMethod,
    encode_public_key,
)
from .resolver import DocumentPublisher

logger = logging.getLogger(__name__)

DID_METHOD = "dvid"
DEFAULT_SIGNING_FRAGMENT = "key-0"


# ---------------------------------------------------------------------------
# Capability protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class SigningCapability(Protocol):
    """Sign payloads with the key addressed by a fragment."""

    @property
    def did(self) -> str: ...

    def sign(self, fragment: str, payload: bytes) -> bytes: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _raw_public(key: Ed25519PublicKey | X25519PublicKey) -> bytes:
    return key.public_bytes(Encoding.Raw, PublicFormat.Raw)


def did_from_public_key(pub: Ed25519PublicKey, method: str = DID_METHOD) -> str:
    """Derive a ``did:<method>:<fingerprint>`` from an Ed25519 public key."""
    fingerprint = hashlib.sha256(_raw_public(pub)).hexdigest()[:32]
    return f"did:{method}:{fingerprint}"


def _check_fragment(fragment: str) -> str:
    fragment = fragment.lstrip("#") if isinstance(fragment, str) else ""
    if not fragment:
        raise MalformedInputError("Fragment must be a non-empty string", field="fragment", value=fragment)
    return fragment


# ---------------------------------------------------------------------------
# IdentityAccount
# ---------------------------------------------------------------------------


class IdentityAccount:
    """An identity owned by this process.

    Use :meth:`create` to generate a new identity. Mutations (new signing
    methods, revocations) only change the local document; they become
    authoritative once :meth:`publish` succeeds.
    """

    def __init__(
        self,
        did: str,
        document: DIDDocument,
        signing_keys: dict[str, Ed25519PrivateKey],
        agreement_key: X25519PrivateKey | None = None,
        settings: CoreSettings | None = None,
    ) -> None:
        self._did = did
        self._document = document
        self._signing_keys = dict(signing_keys)
        self._agreement_key = agreement_key
        self._settings = settings or get_config()
        self._dirty = True
        # Serializes mutate-then-publish sequences on this identity
        self.lock = asyncio.Lock()

    # -- Construction -------------------------------------------------------

    @classmethod
    def create(
        cls,
        signing_fragments: Iterable[str] = (DEFAULT_SIGNING_FRAGMENT,),
        with_encryption: bool = True,
        signing_keys: dict[str, Ed25519PrivateKey] | None = None,
        method: str = DID_METHOD,
        settings: CoreSettings | None = None,
    ) -> IdentityAccount:
        """Generate a new identity with fresh keys and an empty revocation bitmap.

        Args:
            signing_fragments: Fragments to create Ed25519 signing methods at.
            with_encryption: Whether to add an X25519 key-agreement method.
            signing_keys: Optionally supply existing keys by fragment (tests / import).
            method: DID method name for the derived DID.
            settings: Settings providing the fixed fragments.

        Returns:
            The new, not yet published, account.
        """
        settings = settings or get_config()
        keys = dict(signing_keys or {})
        for fragment in signing_fragments:
            keys.setdefault(_check_fragment(fragment), Ed25519PrivateKey.generate())
        if not keys:
            raise MalformedInputError("At least one signing fragment is required", field="signing_fragments")

        first_key = next(iter(keys.values()))
        did = did_from_public_key(first_key.public_key(), method=method)
        now = datetime.now(UTC)
        document = DIDDocument(id=did, controller=did, created=now, updated=now)

        for fragment, key in keys.items():
            _add_signing_method(document, fragment, key)

        agreement_key = None
        if with_encryption:
            agreement_key = X25519PrivateKey.generate()
            vm_id = f"{did}#{settings.encryption_fragment}"
            document.verification_methods.append(
                VerificationMethod(
                    id=vm_id,
                    type=X25519_KEY_TYPE,
                    controller=did,
                    public_key_multibase=encode_public_key(_raw_public(agreement_key.public_key()), X25519_KEY_TYPE),
                )
            )
            document.key_agreement.append(vm_id)

        document.services.append(
            ServiceEndpoint(
                id=f"{did}#{settings.revocation_fragment}",
                type=REVOCATION_BITMAP_TYPE,
                service_endpoint=RevocationBitmap().to_endpoint(),
            )
        )

        logger.info(f"Created identity {did} with signing fragments {sorted(keys)}")
        return cls(did, document, keys, agreement_key, settings)

    # -- Accessors ----------------------------------------------------------

    @property
    def did(self) -> str:
        return self._did

    @property
    def document(self) -> DIDDocument:
        """A copy of the local document, including unpublished changes."""
        return self._document.copy()

    @property
    def settings(self) -> CoreSettings:
        return self._settings

    @property
    def signing_fragments(self) -> list[str]:
        return list(self._signing_keys)

    @property
    def encryption_fragment(self) -> str:
        return self._settings.encryption_fragment

    @property
    def revocation_fragment(self) -> str:
        return self._settings.revocation_fragment

    @property
    def published_version(self) -> int | None:
        """Version of the last successfully published document, or None."""
        return self._document.version or None

    @property
    def has_unpublished_changes(self) -> bool:
        return self._dirty

    def method_id(self, fragment: str) -> str:
        return f"{self._did}#{fragment.lstrip('#')}"

    # -- Signing ------------------------------------------------------------

    def sign(self, fragment: str, payload: bytes) -> bytes:
        """Sign ``payload`` with the Ed25519 key at ``fragment``.

        Raises:
            SigningFailure: If no signing key exists at the fragment.
        """
        fragment = fragment.lstrip("#")
        key = self._signing_keys.get(fragment)
        if key is None:
            raise SigningFailure(f"No signing key at #{fragment} for {self._did}", fragment=fragment)
        return key.sign(payload)

    def add_signing_method(self, fragment: str, private_key: Ed25519PrivateKey | None = None) -> VerificationMethod:
        """Add a new Ed25519 signing method to the local document.

        Raises:
            MalformedInputError: If the fragment is empty or already in use.
        """
        fragment = _check_fragment(fragment)
        if self._document.resolve_method(fragment) is not None or self._document.resolve_service(fragment) is not None:
            raise MalformedInputError(f"Fragment already in use: #{fragment}", field="fragment", value=fragment)
        key = private_key or Ed25519PrivateKey.generate()
        self._signing_keys[fragment] = key
        vm = _add_signing_method(self._document, fragment, key)
        self._touch()
        return vm

    # -- Revocation bitmap --------------------------------------------------

    def _bitmap(self, fragment: str) -> RevocationBitmap:
        try:
            bitmap = self._document.revocation_bitmap(fragment)
        except ValueError as e:
            raise MalformedInputError(f"Corrupt revocation bitmap at #{fragment}: {e}", field="fragment") from e
        if bitmap is None:
            raise MalformedInputError(
                f"No revocation bitmap service at #{fragment.lstrip('#')}",
                field="fragment",
                value=fragment,
            )
        return bitmap

    def revoke_credentials(self, fragment: str, index: int) -> bool:
        """Set bit ``index`` in the bitmap at ``fragment`` (local only).

        Returns:
            True if the bit was newly set.

        Raises:
            MalformedInputError: If the service is missing or the index is invalid.
        """
        bitmap = self._bitmap(fragment)
        try:
            changed = bitmap.revoke(index)
        except ValueError as e:
            raise MalformedInputError(str(e), field="index", value=index) from e

        if changed:
            service = self._document.resolve_service(fragment)
            self._document.set_service(
                ServiceEndpoint(id=service.id, type=service.type, service_endpoint=bitmap.to_endpoint())
            )
            self._touch()
        return changed

    def is_revoked(self, fragment: str, index: int) -> bool:
        """Whether ``index`` is set in the local bitmap (published or not)."""
        try:
            return self._bitmap(fragment).is_revoked(index)
        except ValueError as e:
            raise MalformedInputError(str(e), field="index", value=index) from e

    # -- Key agreement ------------------------------------------------------

    def key_agreement(self, fragment: str, peer_public_key: bytes) -> bytes:
        """Derive the X25519 shared secret with a peer public key.

        Raises:
            EncryptionKeyNotFound: If this account has no agreement key at the fragment.
            ValueError: If the peer key is not a valid X25519 public key.
        """
        fragment = fragment.lstrip("#")
        if self._agreement_key is None or fragment != self.encryption_fragment:
            raise EncryptionKeyNotFound(self._did, fragment)
        try:
            peer = X25519PublicKey.from_public_bytes(peer_public_key)
        except UnsupportedAlgorithm as e:
            raise ValueError(f"X25519 is not supported by this backend: {e}") from e
        return self._agreement_key.exchange(peer)

    # -- Publication --------------------------------------------------------

    async def publish(self, publisher: DocumentPublisher) -> DIDDocument:
        """Publish the local document at the next version.

        The local state only advances when the publisher accepts the document,
        so a failed publication can simply be retried.

        Raises:
            PublishFailure: If the publisher rejected the document.
        """
        candidate = self._document.copy()
        candidate.version = self._document.version + 1
        candidate.updated = datetime.now(UTC)

        await publisher.publish(candidate)

        self._document = candidate
        self._dirty = False
        logger.info(f"Published {self._did} at version {candidate.version}")
        return candidate.copy()

    def _touch(self) -> None:
        self._dirty = True
        self._document.updated = datetime.now(UTC)


def _add_signing_method(document: DIDDocument, fragment: str, key: Ed25519PrivateKey) -> VerificationMethod:
    vm = VerificationMethod(
        id=f"{document.id}#{fragment}",
        type=ED25519_KEY_TYPE,
        controller=document.id,
        public_key_multibase=encode_public_key(_raw_public(key.public_key()), ED25519_KEY_TYPE),
    )
    document.verification_methods.append(vm)
    document.authentication.append(vm.id)
    document.assertion_method.append(vm.id)
    return vm
