"""Tests for DID resolution collaborators."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from dvid.core.exceptions import DIDNotFoundError, DIDResolutionNetworkError, MalformedDIDError, PublishFailure
from dvid.identity.document import DIDDocument
from dvid.identity.resolver import (
    DIDResolver,
    DocumentPublisher,
    HttpDIDResolver,
    InMemoryDIDRegistry,
    ResolutionResult,
    ResolutionStatus,
)

DID = "did:example:alice"


# =============================================================================
# FIXTURES
# =============================================================================


def _session(status: int = 200, payload=None, json_error: Exception | None = None) -> MagicMock:
    """aiohttp session mock whose GET answers with ``status`` and ``payload``."""
    response = MagicMock()
    response.status = status
    if json_error is not None:
        response.json = AsyncMock(side_effect=json_error)
    else:
        response.json = AsyncMock(return_value=payload)
    session = MagicMock()
    session.get.return_value.__aenter__.return_value = response
    return session


# =============================================================================
# RESULT TYPE
# =============================================================================


class TestResolutionResult:
    """Tests for the explicit resolution result type."""

    def test_found_unwraps(self):
        doc = DIDDocument(id=DID)
        result = ResolutionResult.found(DID, doc)
        assert result.is_found
        assert result.unwrap() is doc

    def test_not_found_raises_not_found(self):
        result = ResolutionResult.not_found(DID)
        assert result.is_not_found
        with pytest.raises(DIDNotFoundError):
            result.unwrap()

    def test_transient_raises_network_error(self):
        result = ResolutionResult.transient(DID, "HTTP 503")
        assert result.status == ResolutionStatus.TRANSIENT_ERROR
        assert not result.is_found and not result.is_not_found
        with pytest.raises(DIDResolutionNetworkError) as exc_info:
            result.unwrap()
        assert exc_info.value.reason == "HTTP 503"


# =============================================================================
# IN-MEMORY REGISTRY
# =============================================================================


class TestInMemoryDIDRegistry:
    """Tests for the in-process registry."""

    def test_implements_protocols(self, registry):
        assert isinstance(registry, DIDResolver)
        assert isinstance(registry, DocumentPublisher)

    async def test_unknown_did_not_found(self, registry):
        result = await registry.resolve(DID)
        assert result.status == ResolutionStatus.NOT_FOUND

    async def test_rejects_malformed_did(self, registry):
        with pytest.raises(MalformedDIDError):
            await registry.resolve("alice")

    async def test_publish_then_resolve_copy(self, registry):
        await registry.publish(DIDDocument(id=DID, version=1))
        first = (await registry.resolve(DID)).unwrap()
        first.assertion_method.append("tampered")
        second = (await registry.resolve(DID)).unwrap()
        assert second.assertion_method == []

    async def test_version_compare_and_swap(self, registry):
        await registry.publish(DIDDocument(id=DID, version=1))
        await registry.publish(DIDDocument(id=DID, version=2))

        with pytest.raises(PublishFailure) as exc_info:
            await registry.publish(DIDDocument(id=DID, version=2))
        assert exc_info.value.version == 2
        assert (await registry.resolve(DID)).unwrap().version == 2

    async def test_remove(self, registry):
        await registry.publish(DIDDocument(id=DID, version=1))
        assert DID in registry
        assert registry.remove(DID)
        assert (await registry.resolve(DID)).is_not_found


# =============================================================================
# HTTP RESOLVER
# =============================================================================


class TestHttpDIDResolver:
    """Tests for the universal resolver client."""

    def test_url(self):
        resolver = HttpDIDResolver("https://resolver.example/")
        assert resolver.url_for("did:web:example.com") == "https://resolver.example/1.0/identifiers/did:web:example.com"

    def test_is_not_a_publisher(self):
        assert not isinstance(HttpDIDResolver("https://resolver.example"), DocumentPublisher)

    async def test_found_bare_document(self):
        session = _session(payload={"id": DID, "version": 4})
        result = await HttpDIDResolver("https://r.example", session=session).resolve(DID)
        assert result.is_found
        assert result.document.version == 4
        session.get.assert_called_once()
        assert session.get.call_args[0][0] == f"https://r.example/1.0/identifiers/{DID}"

    async def test_found_resolution_envelope(self):
        session = _session(payload={"didDocument": {"id": DID}, "didResolutionMetadata": {}})
        result = await HttpDIDResolver("https://r.example", session=session).resolve(DID)
        assert result.document.id == DID

    @pytest.mark.parametrize("status", [404, 410])
    async def test_not_found(self, status):
        result = await HttpDIDResolver("https://r.example", session=_session(status=status)).resolve(DID)
        assert result.is_not_found

    @pytest.mark.parametrize("status", [500, 503, 429])
    async def test_server_errors_are_transient(self, status):
        result = await HttpDIDResolver("https://r.example", session=_session(status=status)).resolve(DID)
        assert result.status == ResolutionStatus.TRANSIENT_ERROR
        assert str(status) in result.error

    async def test_unreadable_json_is_transient(self):
        session = _session(json_error=ValueError("Expecting value"))
        result = await HttpDIDResolver("https://r.example", session=session).resolve(DID)
        assert result.status == ResolutionStatus.TRANSIENT_ERROR

    async def test_unreadable_document_is_transient(self):
        session = _session(payload={"id": "not-a-did"})
        result = await HttpDIDResolver("https://r.example", session=session).resolve(DID)
        assert result.status == ResolutionStatus.TRANSIENT_ERROR

    async def test_connection_error_is_transient(self):
        session = MagicMock()
        session.get.side_effect = aiohttp.ClientConnectionError("connection refused")
        result = await HttpDIDResolver("https://r.example", session=session).resolve(DID)
        assert result.status == ResolutionStatus.TRANSIENT_ERROR
        assert "ClientConnectionError" in result.error

    async def test_timeout_is_transient(self):
        session = _session()
        session.get.return_value.__aenter__.side_effect = asyncio.TimeoutError()
        result = await HttpDIDResolver("https://r.example", session=session).resolve(DID)
        assert result.status == ResolutionStatus.TRANSIENT_ERROR

    async def test_creates_own_session(self):
        session = _session(payload={"id": DID})
        client_session = MagicMock()
        client_session.return_value.__aenter__.return_value = session
        with patch("dvid.identity.resolver.aiohttp.ClientSession", client_session):
            result = await HttpDIDResolver("https://r.example").resolve(DID)
        assert result.is_found
        client_session.assert_called_once()
