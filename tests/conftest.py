"""Global test fixtures for the DVID test suite."""

from __future__ import annotations

import os
from collections.abc import Callable

import pytest

from dvid.core.config import CoreSettings, clear_config_cache
from dvid.core.exceptions import DnsResolutionFailure
from dvid.credentials.issuer import CredentialIssuer
from dvid.identity.account import IdentityAccount
from dvid.identity.resolver import InMemoryDIDRegistry

# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def reset_config():
    """Drop the cached settings around every test."""
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all DVID_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("DVID_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings(clean_env) -> CoreSettings:
    """Default settings, independent of the environment."""
    return CoreSettings(_env_file=None)


# ============================================================================
# Identities
# ============================================================================


@pytest.fixture
def registry() -> InMemoryDIDRegistry:
    return InMemoryDIDRegistry()


@pytest.fixture
def account(settings: CoreSettings) -> IdentityAccount:
    """A fresh, unpublished issuer identity."""
    return IdentityAccount.create(signing_fragments=("key-0", "key-1"), settings=settings)


@pytest.fixture
async def published_account(account: IdentityAccount, registry: InMemoryDIDRegistry) -> IdentityAccount:
    """The issuer identity, published once to the registry."""
    await account.publish(registry)
    return account


@pytest.fixture
def issuer(account: IdentityAccount) -> CredentialIssuer:
    return CredentialIssuer(account)


@pytest.fixture
def issue_degree(issuer: CredentialIssuer) -> Callable:
    """Issue the example degree credential, with overridable arguments."""

    def _issue(**overrides):
        kwargs = {
            "id": "https://example.com/vc/1",
            "recipient_did": "did:example:bob",
            "signing_fragment": "key-0",
            "claims": {"degree": "BSc"},
            "credential_type": "UniversityDegreeCredential",
            "key_index": 0,
        }
        kwargs.update(overrides)
        return issuer.issue(**kwargs)

    return _issue


# ============================================================================
# DNS
# ============================================================================


class StaticTxtResolver:
    """TXT resolver answering from a fixed table."""

    def __init__(self, records: dict[str, list[str]] | None = None, failing: set[str] | None = None):
        self.records = records or {}
        self.failing = failing or set()
        self.queries: list[str] = []

    async def resolve_txt(self, domain: str) -> list[str]:
        self.queries.append(domain)
        if domain in self.failing:
            raise DnsResolutionFailure(domain, "SERVFAIL")
        return list(self.records.get(domain, []))


@pytest.fixture
def txt_resolver() -> StaticTxtResolver:
    return StaticTxtResolver()
