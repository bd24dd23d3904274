"""DNS TXT lookups for DVID trust anchors.

A domain attests its trust-anchor identity with a TXT record::

    example.com.  IN TXT  "DVID.did=did:dvid:3f2a..."

Only lookup errors are failures here. A domain that does not exist or has no
TXT records simply yields no records; deciding whether that is acceptable is
up to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable
from urllib.parse import urlparse

import dns.asyncresolver
import dns.exception
import dns.resolver

from ..core.exceptions import DnsResolutionFailure, MalformedCredentialId

logger = logging.getLogger(__name__)

DVID_MARKER = "DVID.did="


@runtime_checkable
class DnsTxtResolver(Protocol):
    """Look up the TXT records of a domain."""

    async def resolve_txt(self, domain: str) -> list[str]: ...


class DnsPythonTxtResolver:
    """TXT lookups through dnspython's asyncio resolver.

    Args:
        lifetime: Total seconds allowed per query; None uses dnspython's default.
        nameservers: Optional nameserver addresses overriding the system config.
    """

    def __init__(self, lifetime: float | None = None, nameservers: Sequence[str] | None = None) -> None:
        self.lifetime = lifetime
        self.nameservers = list(nameservers) if nameservers else None

    def _make_resolver(self) -> dns.asyncresolver.Resolver:
        if self.nameservers:
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = self.nameservers
        else:
            resolver = dns.asyncresolver.Resolver()
        if self.lifetime is not None:
            resolver.lifetime = self.lifetime
        return resolver

    async def resolve_txt(self, domain: str) -> list[str]:
        """Return the TXT record strings for ``domain``.

        Multi-string records are joined into one string.

        Raises:
            DnsResolutionFailure: On timeouts, SERVFAIL or a broken resolver config.
        """
        domain = domain.lower().rstrip(".")
        try:
            resolver = self._make_resolver()
            answers = await resolver.resolve(domain, "TXT")
        except dns.resolver.NXDOMAIN:
            logger.debug(f"No DNS record found for {domain}")
            return []
        except dns.resolver.NoAnswer:
            logger.debug(f"No TXT records for {domain}")
            return []
        except dns.exception.Timeout as e:
            logger.warning(f"DNS timeout for {domain}")
            raise DnsResolutionFailure(domain, f"timeout: {e}") from e
        except dns.exception.DNSException as e:
            logger.warning(f"DNS error for {domain}: {type(e).__name__}")
            raise DnsResolutionFailure(domain, f"{type(e).__name__}: {e}") from e

        records = []
        for rdata in answers:
            records.append(b"".join(rdata.strings).decode("utf-8", errors="replace"))
        logger.debug(f"Found {len(records)} TXT records for {domain}")
        return records


def extract_domain(credential_id: str) -> str:
    """Host component of a URL-shaped credential id.

    Raises:
        MalformedCredentialId: If the id is not an http(s) URL with a host.
    """
    if not isinstance(credential_id, str) or not credential_id:
        raise MalformedCredentialId(credential_id)
    try:
        parsed = urlparse(credential_id)
        host = parsed.hostname
    except ValueError as e:
        raise MalformedCredentialId(credential_id) from e
    if parsed.scheme not in ("http", "https") or not host:
        raise MalformedCredentialId(credential_id)
    return host.rstrip(".")


def find_dvid_anchor(records: Iterable[str]) -> str | None:
    """DID tag of the first record carrying the DVID marker, or None."""
    for record in records:
        record = record.strip().strip('"')
        if DVID_MARKER in record:
            return record.split(DVID_MARKER, 1)[1].strip()
    return None
