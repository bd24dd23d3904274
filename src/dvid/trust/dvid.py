"""DVID trust resolution: domain-anchored credential verification.

Verification of a credential runs a linear procedure:

1. Take the host of the credential ``id`` (an http(s) URL).
2. Look up the TXT records of that host.
3. Find the ``DVID.did=<did>`` record naming the domain's trust anchor.
4. Resolve the anchor DID and validate the credential against it.

When the anchor DID does not exist, the credential is validated against its
own issuer instead and the decision carries ``dvid=False``. That is the only
fallback: a missing TXT record, a DNS error or a transient resolver error
ends verification with an exception.

Callers must treat ``TrustDecision(vc=True, dvid=False)`` as weaker evidence
than ``TrustDecision(vc=True, dvid=True)``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..core.exceptions import DIDResolutionNetworkError, DvidRecordNotFound
from ..core.logging import correlation_context
from ..credentials.models import Credential
from ..credentials.validator import CredentialValidator
from ..identity.document import DIDDocument, parse_did
from ..identity.resolver import DIDResolver, ResolutionStatus
from .dns import DnsTxtResolver, extract_domain, find_dvid_anchor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustDecision:
    """Outcome of verifying one credential."""

    vc: bool  # credential passed validation
    dvid: bool  # validated against the domain-attested anchor
    domain: str | None = None
    anchor_did: str | None = None
    validated_against: str | None = None

    @property
    def strength(self) -> str:
        if not self.vc:
            return "invalid"
        return "anchored" if self.dvid else "self-asserted"

    def to_dict(self) -> dict[str, Any]:
        return {
            "vc": self.vc,
            "dvid": self.dvid,
            "domain": self.domain,
            "anchor_did": self.anchor_did,
            "validated_against": self.validated_against,
            "strength": self.strength,
        }


class DVIDResolver:
    """Decide whether to trust a credential, anchored on its domain's DNS.

    Args:
        did_resolver: Resolves DIDs to documents.
        dns_resolver: Looks up TXT records.
        validator: Validates credentials against a resolved document.
    """

    def __init__(
        self,
        did_resolver: DIDResolver,
        dns_resolver: DnsTxtResolver,
        validator: CredentialValidator | None = None,
    ) -> None:
        self.did_resolver = did_resolver
        self.dns_resolver = dns_resolver
        self.validator = validator or CredentialValidator()

    async def resolve_anchor(self, domain: str) -> str:
        """DID named by the domain's ``DVID.did=`` TXT record.

        Raises:
            DnsResolutionFailure: If the TXT lookup errors.
            DvidRecordNotFound: If no record carries the marker.
            MalformedDIDError: If the record's DID tag is not a DID.
        """
        records = await self.dns_resolver.resolve_txt(domain)
        anchor = find_dvid_anchor(records)
        if anchor is None:
            raise DvidRecordNotFound(domain)
        parse_did(anchor)
        return anchor

    async def verify(self, credential: Credential | Mapping[str, Any]) -> TrustDecision:
        """Verify a credential and report whether it was anchored.

        Raises:
            MalformedInputError: If the credential or its id is malformed.
            DnsResolutionFailure: If the TXT lookup errors.
            DvidRecordNotFound: If the domain publishes no trust anchor.
            DIDResolutionNetworkError: If anchor or issuer resolution fails transiently.
            DIDNotFoundError: If falling back and the issuer DID does not exist.
        """
        if not isinstance(credential, Credential):
            credential = Credential.from_dict(credential)

        with correlation_context():
            domain = extract_domain(credential.id)
            anchor_did = await self.resolve_anchor(domain)
            logger.debug(f"Trust anchor for {domain} is {anchor_did}")

            result = await self.did_resolver.resolve(anchor_did)

            if result.status == ResolutionStatus.FOUND:
                return self._decide(credential, result.document, domain, anchor_did, dvid=True)

            if result.status == ResolutionStatus.TRANSIENT_ERROR:
                logger.warning(f"Anchor {anchor_did} for {domain} unavailable: {result.error}")
                raise DIDResolutionNetworkError(anchor_did, result.error or "unknown error")

            logger.info(f"Anchor {anchor_did} for {domain} not found, falling back to issuer {credential.issuer}")
            issuer_document = (await self.did_resolver.resolve(credential.issuer)).unwrap()
            return self._decide(credential, issuer_document, domain, anchor_did, dvid=False)

    async def verify_many(self, credentials: Iterable[Credential | Mapping[str, Any]]) -> list[TrustDecision]:
        """Verify several credentials concurrently, in input order.

        The first error propagates and the remaining verifications are
        cancelled.
        """
        with correlation_context():
            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(self.verify(c)) for c in credentials]
            except ExceptionGroup as failures:
                raise failures.exceptions[0] from None
            return [task.result() for task in tasks]

    def _decide(
        self,
        credential: Credential,
        document: DIDDocument,
        domain: str,
        anchor_did: str,
        dvid: bool,
    ) -> TrustDecision:
        vc = self.validator.is_valid(credential, document)
        decision = TrustDecision(
            vc=vc,
            dvid=dvid,
            domain=domain,
            anchor_did=anchor_did,
            validated_against=document.id,
        )
        logger.info(f"Credential {credential.id}: vc={vc} dvid={dvid} ({decision.strength})")
        return decision
