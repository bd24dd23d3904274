# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Credentials manager - one entry point for issuing, verifying and revoking.

Wires the issuer, validator, DVID trust resolver, revocation adapter and
key-agreement codec around one identity. Collaborators are built once and
passed in; nothing here reads global state after construction.

Example::

    account = IdentityAccount.create()
    registry = InMemoryDIDRegistry()
    await account.publish(registry)

    manager = CredentialsManager.build(account, did_resolver=registry, dns_resolver=dns)
    vc = manager.create(
        id="https://example.com/vc/1",
        recipient_did="did:example:bob",
        signing_fragment="key-0",
        claims={"degree": "BSc"},
        credential_type="UniversityDegreeCredential",
        key_index=0,
    )
    decision = await manager.verify_credential(vc)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from .core.config import CoreSettings
from .core.exceptions import ConfigException
from .credentials.issuer import CredentialIssuer
from .credentials.models import Credential
from .credentials.revocation import RevocationLedgerAdapter
from .credentials.validator import CredentialValidator
from .crypto.envelope import EncryptedEnvelope, KeyAgreementCodec
from .identity.account import IdentityAccount
from .identity.document import DIDDocument
from .identity.resolver import DIDResolver, DocumentPublisher, HttpDIDResolver
from .trust.dns import DnsPythonTxtResolver, DnsTxtResolver
from .trust.dvid import DVIDResolver, TrustDecision

logger = logging.getLogger(__name__)


class CredentialsManager:
    """Issue, validate, verify and revoke credentials of one identity."""

    def __init__(
        self,
        account: IdentityAccount,
        issuer: CredentialIssuer,
        validator: CredentialValidator,
        trust: DVIDResolver,
        codec: KeyAgreementCodec,
        revocation: RevocationLedgerAdapter | None = None,
    ) -> None:
        self.account = account
        self.issuer = issuer
        self.validator = validator
        self.trust = trust
        self.codec = codec
        self.revocation = revocation

    @classmethod
    def build(
        cls,
        account: IdentityAccount,
        did_resolver: DIDResolver | None = None,
        dns_resolver: DnsTxtResolver | None = None,
        publisher: DocumentPublisher | None = None,
        settings: CoreSettings | None = None,
    ) -> CredentialsManager:
        """Build a manager with default collaborators where none are given.

        The DID resolver defaults to :class:`HttpDIDResolver` at
        ``settings.resolver_url`` and DNS to :class:`DnsPythonTxtResolver`.
        Without a publisher, the resolver is used if it can publish;
        otherwise :meth:`revoke_credential` is unavailable.
        """
        settings = settings or account.settings
        did_resolver = did_resolver or HttpDIDResolver(settings.resolver_url)
        dns_resolver = dns_resolver or DnsPythonTxtResolver(lifetime=settings.dns_lifetime)
        if publisher is None and isinstance(did_resolver, DocumentPublisher):
            publisher = did_resolver

        validator = CredentialValidator()
        revocation = None
        if publisher is not None:
            revocation = RevocationLedgerAdapter(account, publisher, fragment=settings.revocation_fragment)
        else:
            logger.debug(f"No publisher for {account.did}; revocation disabled")

        return cls(
            account=account,
            issuer=CredentialIssuer(account, revocation_fragment=settings.revocation_fragment),
            validator=validator,
            trust=DVIDResolver(did_resolver, dns_resolver, validator),
            codec=KeyAgreementCodec(account, settings=settings),
            revocation=revocation,
        )

    def create(
        self,
        id: str,
        recipient_did: str,
        signing_fragment: str,
        claims: Mapping[str, Any] | None,
        credential_type: str | Sequence[str],
        key_index: int,
        expiration_date: datetime | None = None,
    ) -> Credential:
        """Issue a signed credential to ``recipient_did``."""
        return self.issuer.issue(
            id=id,
            recipient_did=recipient_did,
            signing_fragment=signing_fragment,
            claims=claims,
            credential_type=credential_type,
            key_index=key_index,
            expiration_date=expiration_date,
        )

    def is_credential_valid(self, credential: Credential | Mapping[str, Any], issuer_document: DIDDocument) -> bool:
        return self.validator.is_valid(credential, issuer_document)

    async def verify_credential(self, credential: Credential | Mapping[str, Any]) -> TrustDecision:
        """Verify a credential through its domain's DVID trust anchor."""
        return await self.trust.verify(credential)

    async def revoke_credential(self, key_index: int) -> None:
        """Revoke ``key_index`` and publish.

        WARNING: every credential bound to the index becomes invalid.

        Raises:
            ConfigException: If the manager was built without a publisher.
            PublishFailure: If publication failed; retry with ``revocation.publish_pending()``.
        """
        if self.revocation is None:
            raise ConfigException("No document publisher configured; cannot revoke credentials")
        await self.revocation.revoke(key_index)

    def encrypt_data(self, plaintext: str, recipient: DIDDocument | IdentityAccount | None = None) -> EncryptedEnvelope:
        """Encrypt for ``recipient``, or for this identity when omitted."""
        return self.codec.encrypt(plaintext, recipient)

    def decrypt_data(self, envelope: EncryptedEnvelope | Mapping[str, Any]) -> str:
        return self.codec.decrypt(envelope)
