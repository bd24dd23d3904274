"""DID resolution and publication collaborators.

Resolution returns an explicit :class:`ResolutionResult` instead of raising or
returning ``None``, so callers can tell "this DID does not exist" apart from
"the resolver could not answer right now". Only the former may change a trust
decision; the latter must propagate.

Two collaborators ship here:

- :class:`InMemoryDIDRegistry` - an in-process ledger stand-in that both
  resolves and accepts publications (version compare-and-swap).
- :class:`HttpDIDResolver` - a universal-resolver client over ``aiohttp``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import aiohttp

from ..core.exceptions import (
    DIDNotFoundError,
    DIDResolutionNetworkError,
    MalformedDIDError,
    PublishFailure,
)
from .document import DIDDocument, parse_did

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPE
# =============================================================================


class ResolutionStatus(str, Enum):
    """Outcome of a DID resolution."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"


@dataclass(frozen=True)
class ResolutionResult:
    """Result of resolving one DID."""

    did: str
    status: ResolutionStatus
    document: DIDDocument | None = None
    error: str | None = None

    @classmethod
    def found(cls, did: str, document: DIDDocument) -> ResolutionResult:
        return cls(did=did, status=ResolutionStatus.FOUND, document=document)

    @classmethod
    def not_found(cls, did: str) -> ResolutionResult:
        return cls(did=did, status=ResolutionStatus.NOT_FOUND)

    @classmethod
    def transient(cls, did: str, error: str) -> ResolutionResult:
        return cls(did=did, status=ResolutionStatus.TRANSIENT_ERROR, error=error)

    @property
    def is_found(self) -> bool:
        return self.status == ResolutionStatus.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.status == ResolutionStatus.NOT_FOUND

    def unwrap(self) -> DIDDocument:
        """Return the document or raise the matching resolution error.

        Raises:
            DIDNotFoundError: If the DID does not exist.
            DIDResolutionNetworkError: If resolution failed for any other reason.
        """
        if self.status == ResolutionStatus.FOUND and self.document is not None:
            return self.document
        if self.status == ResolutionStatus.NOT_FOUND:
            raise DIDNotFoundError(self.did)
        raise DIDResolutionNetworkError(self.did, self.error or "unknown error")


# =============================================================================
# CAPABILITY PROTOCOLS
# =============================================================================


@runtime_checkable
class DIDResolver(Protocol):
    """Given a DID, return its current document."""

    async def resolve(self, did: str) -> ResolutionResult: ...


@runtime_checkable
class DocumentPublisher(Protocol):
    """Make a DID document externally resolvable.

    Implementations raise :class:`PublishFailure` when the document was not
    accepted (network error, stale version).
    """

    async def publish(self, document: DIDDocument) -> None: ...


# =============================================================================
# IN-MEMORY REGISTRY
# =============================================================================


class InMemoryDIDRegistry:
    """In-process ledger stand-in implementing both resolver and publisher.

    Publication is a compare-and-swap on ``DIDDocument.version``: a document
    is accepted only if its version is exactly one above the stored version
    (or the DID is new). Stored and returned documents are copies.
    """

    def __init__(self) -> None:
        self._documents: dict[str, DIDDocument] = {}
        self._lock = asyncio.Lock()
        self.publish_count = 0

    async def resolve(self, did: str) -> ResolutionResult:
        parse_did(did)
        document = self._documents.get(did)
        if document is None:
            logger.debug(f"DID not in registry: {did}")
            return ResolutionResult.not_found(did)
        return ResolutionResult.found(did, document.copy())

    async def publish(self, document: DIDDocument) -> None:
        async with self._lock:
            current = self._documents.get(document.id)
            if current is not None and document.version != current.version + 1:
                raise PublishFailure(
                    document.id,
                    f"stale document version {document.version}, registry has {current.version}",
                    version=document.version,
                )
            self._documents[document.id] = document.copy()
            self.publish_count += 1
        logger.debug(f"Published {document.id} at version {document.version}")

    def remove(self, did: str) -> bool:
        """Drop a DID from the registry (tests / deactivation)."""
        return self._documents.pop(did, None) is not None

    def __contains__(self, did: object) -> bool:
        return did in self._documents


# =============================================================================
# HTTP RESOLVER
# =============================================================================


class HttpDIDResolver:
    """Resolve DIDs through a universal resolver over HTTP.

    ``GET <base_url>/1.0/identifiers/<did>``:

    - 200 → found (bare document, or a resolution envelope with ``didDocument``)
    - 404 / 410 → not found
    - anything else, including network errors → transient error

    No timeout is applied unless one is given; callers own their timeout policy.
    """

    NOT_FOUND_STATUSES = (404, 410)

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def url_for(self, did: str) -> str:
        return f"{self.base_url}/1.0/identifiers/{quote(did, safe=':')}"

    async def resolve(self, did: str) -> ResolutionResult:
        parse_did(did)
        url = self.url_for(did)

        try:
            if self._session is not None:
                return await self._fetch(self._session, did, url)
            async with aiohttp.ClientSession() as session:
                return await self._fetch(session, did, url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"DID resolution error for {did}: {e}")
            return ResolutionResult.transient(did, f"{type(e).__name__}: {e}")

    async def _fetch(self, session: aiohttp.ClientSession, did: str, url: str) -> ResolutionResult:
        async with session.get(url, timeout=self._timeout) as response:
            if response.status in self.NOT_FOUND_STATUSES:
                return ResolutionResult.not_found(did)
            if response.status != 200:
                return ResolutionResult.transient(did, f"resolver returned HTTP {response.status}")
            try:
                data: Any = await response.json(content_type=None)
            except ValueError as e:
                return ResolutionResult.transient(did, f"unreadable resolver response: {e}")

        try:
            return ResolutionResult.found(did, _document_from_response(data))
        except (KeyError, TypeError, ValueError, MalformedDIDError) as e:
            return ResolutionResult.transient(did, f"unreadable DID document: {e}")


def _document_from_response(data: Any) -> DIDDocument:
    if not isinstance(data, dict):
        raise ValueError("resolver response is not an object")
    if isinstance(data.get("didDocument"), dict):
        data = data["didDocument"]
    return DIDDocument.from_dict(data)
