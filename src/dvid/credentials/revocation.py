"""Revocation of issued credentials through the identity's revocation bitmap.

Revoking sets the bit for a key index and publishes the updated document.
A revocation is only authoritative for remote verifiers once the publication
succeeded; after a :class:`PublishFailure` the bit stays set locally and
:meth:`RevocationLedgerAdapter.publish_pending` retries just the publish step.

WARNING: revoking an index invalidates every credential bound to it, not just
one credential. There is no un-revoke; use a fresh index for future
credentials instead.
"""

from __future__ import annotations

import logging

from ..core.exceptions import MalformedInputError, PublishFailure
from ..identity.account import IdentityAccount
from ..identity.resolver import DocumentPublisher

logger = logging.getLogger(__name__)


class RevocationLedgerAdapter:
    """Revoke key indices of one identity and publish the change.

    Mutate-and-publish runs under the account's lock, so concurrent
    revocations on the same identity are serialized and none is lost.
    """

    def __init__(
        self,
        account: IdentityAccount,
        publisher: DocumentPublisher,
        fragment: str | None = None,
    ) -> None:
        self.account = account
        self.publisher = publisher
        self.fragment = (fragment or account.revocation_fragment).lstrip("#")

    async def revoke(self, key_index: int) -> None:
        """Revoke ``key_index`` and publish the updated document.

        Raises:
            MalformedInputError: If the index is not a non-negative integer.
            PublishFailure: If publication failed; the revocation is not yet effective.
        """
        if isinstance(key_index, bool) or not isinstance(key_index, int) or key_index < 0:
            raise MalformedInputError("key_index must be a non-negative integer", field="key_index", value=key_index)

        async with self.account.lock:
            changed = self.account.revoke_credentials(self.fragment, key_index)
            if changed:
                logger.warning(
                    f"Revoking index {key_index} on {self.account.did}: every credential bound to it becomes invalid"
                )
            else:
                logger.info(f"Index {key_index} on {self.account.did} was already revoked")

            if changed or self.account.has_unpublished_changes:
                await self._publish()

    async def publish_pending(self) -> bool:
        """Retry publication of local changes that are not yet published.

        Returns:
            True if a publication happened, False if there was nothing to publish.

        Raises:
            PublishFailure: If publication failed again.
        """
        async with self.account.lock:
            if not self.account.has_unpublished_changes:
                return False
            await self._publish()
            return True

    def is_revoked_locally(self, key_index: int) -> bool:
        return self.account.is_revoked(self.fragment, key_index)

    async def _publish(self) -> None:
        try:
            await self.account.publish(self.publisher)
        except PublishFailure as e:
            logger.error(f"Revocation on {self.account.did} not yet effective: {e.reason}")
            raise
        except Exception as e:  # Intentionally broad: publishers surface transport errors of many types
            logger.error(f"Revocation on {self.account.did} not yet effective: {type(e).__name__}: {e}")
            raise PublishFailure(self.account.did, f"{type(e).__name__}: {e}") from e
