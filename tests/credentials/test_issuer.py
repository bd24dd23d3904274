"""Tests for credential issuance."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from dvid.core.exceptions import MalformedDIDError, MalformedInputError, SigningFailure
from dvid.credentials.issuer import CredentialIssuer, signing_payload
from dvid.credentials.models import BASE_CREDENTIAL_TYPE, parse_timestamp
from dvid.credentials.validator import CredentialValidator
from dvid.identity.bitmap import REVOCATION_BITMAP_TYPE
from dvid.identity.document import multibase_decode


class TestIssue:
    """Tests for CredentialIssuer.issue."""

    def test_subject_merges_claims(self, issue_degree):
        vc = issue_degree()
        assert dict(vc.credential_subject) == {"id": "did:example:bob", "degree": "BSc"}

    def test_claim_id_overrides_recipient_did(self, issue_degree, account):
        vc = issue_degree(claims={"id": "did:example:carol", "degree": "BSc"})
        assert dict(vc.credential_subject) == {"id": "did:example:carol", "degree": "BSc"}
        assert CredentialValidator().is_valid(vc, account.document)

    def test_types(self, issue_degree):
        assert issue_degree().type == (BASE_CREDENTIAL_TYPE, "UniversityDegreeCredential")
        assert issue_degree(credential_type=[BASE_CREDENTIAL_TYPE, "A", "B"]).type == (BASE_CREDENTIAL_TYPE, "A", "B")

    def test_status_points_at_own_bitmap(self, issue_degree, account):
        status = issue_degree(key_index=7).credential_status
        assert status.id == f"{account.did}#signature-bitmap"
        assert status.type == REVOCATION_BITMAP_TYPE
        assert status.revocation_bitmap_index == "7"

    def test_issuer_and_dates(self, issue_degree, account):
        vc = issue_degree(expiration_date=datetime(2030, 1, 1, tzinfo=UTC))
        assert vc.issuer == account.did
        assert parse_timestamp(vc.issuance_date) <= datetime.now(UTC)
        assert vc.expiration_date == "2030-01-01T00:00:00Z"

    def test_signature_verifies(self, issue_degree, account):
        vc = issue_degree(signing_fragment="#key-1")
        assert vc.proof.verification_method == f"{account.did}#key-1"

        raw = account.document.resolve_method("key-1").public_key_bytes
        Ed25519PublicKey.from_public_bytes(raw).verify(
            multibase_decode(vc.proof.signature_value),
            signing_payload(vc, vc.proof),
        )

    def test_custom_revocation_fragment(self, account):
        vc = CredentialIssuer(account, revocation_fragment="#other").issue(
            id="https://example.com/vc/2",
            recipient_did="did:example:bob",
            signing_fragment="key-0",
            claims=None,
            credential_type="Badge",
            key_index=0,
        )
        assert vc.credential_status.id.endswith("#other")

    def test_does_not_publish(self, issue_degree, account):
        issue_degree()
        assert account.published_version is None


class TestIssueErrors:
    """Issuance input and signing failures."""

    def test_unknown_fragment(self, issue_degree):
        with pytest.raises(SigningFailure) as exc_info:
            issue_degree(signing_fragment="key-9")
        assert exc_info.value.fragment == "key-9"

    def test_signer_error_is_wrapped(self):
        signer = MagicMock()
        signer.did = "did:example:issuer"
        signer.sign.side_effect = RuntimeError("HSM unavailable")
        with pytest.raises(SigningFailure) as exc_info:
            CredentialIssuer(signer).issue(
                id="https://example.com/vc/1",
                recipient_did="did:example:bob",
                signing_fragment="key-0",
                claims={},
                credential_type="Badge",
                key_index=0,
            )
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_bad_recipient(self, issue_degree):
        with pytest.raises(MalformedDIDError):
            issue_degree(recipient_did="bob")

    @pytest.mark.parametrize("key_index", [-1, True, "0"])
    def test_bad_key_index(self, issue_degree, key_index):
        with pytest.raises(MalformedInputError):
            issue_degree(key_index=key_index)

    def test_empty_id(self, issue_degree):
        with pytest.raises(MalformedInputError):
            issue_degree(id="")

    def test_expired_on_issue_is_still_signed(self, issue_degree):
        vc = issue_degree(expiration_date=datetime.now(UTC) - timedelta(days=1))
        assert vc.is_signed
