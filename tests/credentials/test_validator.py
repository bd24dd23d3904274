"""Tests for credential validation."""

from __future__ import annotations

import base64
import zlib
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from pyroaring import BitMap

from dvid.core.exceptions import CredentialValidationError, MalformedInputError
from dvid.credentials.models import Credential, CredentialStatus, Proof
from dvid.credentials.validator import CredentialValidator
from dvid.identity.account import IdentityAccount
from dvid.identity.bitmap import DATA_URL_PREFIX
from dvid.identity.document import ServiceEndpoint


@pytest.fixture
def validator() -> CredentialValidator:
    return CredentialValidator()


class TestValidCredential:
    """A freshly issued credential validates against its issuer."""

    def test_fresh_credential_is_valid(self, issue_degree, account, validator):
        vc = issue_degree()
        assert validator.is_valid(vc, account.document)
        validator.validate(vc, account.document)

    def test_dict_form_is_accepted(self, issue_degree, account, validator):
        assert validator.is_valid(issue_degree().to_dict(), account.document)

    def test_credential_without_status(self, issue_degree, account, validator):
        vc = issue_degree()
        unsigned = replace(vc, credential_status=None, proof=None)
        signer_proof = Proof(verification_method=vc.proof.verification_method, created=vc.proof.created)
        from dvid.credentials.issuer import signing_payload
        from dvid.identity.document import multibase_encode

        signature = account.sign("key-0", signing_payload(unsigned, signer_proof))
        signed = unsigned.with_proof(replace(signer_proof, signature_value=multibase_encode(signature)))
        assert validator.is_valid(signed, account.document)


class TestInvalidCredential:
    """Any single failure makes the credential invalid."""

    def test_tampered_claim(self, issue_degree, account, validator):
        data = issue_degree().to_dict()
        data["credentialSubject"]["degree"] = "PhD"
        assert not validator.is_valid(data, account.document)
        with pytest.raises(CredentialValidationError) as exc_info:
            validator.validate(data, account.document)
        assert "signature does not verify" in exc_info.value.errors

    def test_tampered_status_index(self, issue_degree, account, validator):
        data = issue_degree(key_index=0).to_dict()
        data["credentialStatus"]["revocationBitmapIndex"] = "1"
        assert not validator.is_valid(data, account.document)

    def test_unsigned(self, issue_degree, account, validator):
        vc = replace(issue_degree(), proof=None)
        with pytest.raises(CredentialValidationError) as exc_info:
            validator.validate(vc, account.document)
        assert "credential is not signed" in exc_info.value.errors

    def test_other_identity_document(self, issue_degree, settings, validator):
        other = IdentityAccount.create(settings=settings)
        with pytest.raises(CredentialValidationError) as exc_info:
            validator.validate(issue_degree(), other.document)
        assert any("does not match document" in e for e in exc_info.value.errors)

    def test_revoked_index(self, issue_degree, account, validator):
        vc = issue_degree(key_index=0)
        account.revoke_credentials("signature-bitmap", 0)
        assert not validator.is_valid(vc, account.document)

    def test_other_index_revoked(self, issue_degree, account, validator):
        vc = issue_degree(key_index=1)
        account.revoke_credentials("signature-bitmap", 0)
        assert validator.is_valid(vc, account.document)

    def test_revocation_covers_every_credential_on_index(self, issue_degree, account, validator):
        first = issue_degree(id="https://example.com/vc/1", key_index=4)
        second = issue_degree(id="https://example.com/vc/2", key_index=4, signing_fragment="key-1")
        account.revoke_credentials("signature-bitmap", 4)
        assert not validator.is_valid(first, account.document)
        assert not validator.is_valid(second, account.document)

    def test_expired(self, issue_degree, account, validator):
        vc = issue_degree(expiration_date=datetime.now(UTC) - timedelta(seconds=1))
        with pytest.raises(CredentialValidationError) as exc_info:
            validator.validate(vc, account.document)
        assert "credential has expired" in exc_info.value.errors

    def test_issued_in_the_future(self, issue_degree, account):
        clock = lambda: datetime.now(UTC) - timedelta(days=1)  # noqa: E731
        assert not CredentialValidator(clock=clock).is_valid(issue_degree(), account.document)

    def test_missing_bitmap_service(self, issue_degree, account, validator):
        document = account.document
        document.services = []
        with pytest.raises(CredentialValidationError) as exc_info:
            validator.validate(issue_degree(), document)
        assert any("not found in document" in e for e in exc_info.value.errors)

    def test_corrupt_bitmap(self, issue_degree, account, validator):
        document = account.document
        service = document.resolve_service("signature-bitmap")
        document.set_service(ServiceEndpoint(id=service.id, type=service.type, service_endpoint="garbage"))
        assert not validator.is_valid(issue_degree(), document)

    def test_revoked_in_roaring_bitmap_published_elsewhere(self, issue_degree, account, validator):
        """A bitmap written by other RevocationBitmap2022 tooling is honoured."""
        raw = zlib.compress(BitMap([0, 5]).serialize())
        document = account.document
        service = document.resolve_service("signature-bitmap")
        endpoint = DATA_URL_PREFIX + base64.b64encode(raw).decode()
        document.set_service(ServiceEndpoint(id=service.id, type=service.type, service_endpoint=endpoint))

        assert not validator.is_valid(issue_degree(key_index=5), document)
        assert validator.is_valid(issue_degree(key_index=4), document)

    def test_status_pointing_at_foreign_bitmap(self, issue_degree, account, validator):
        vc = issue_degree()
        foreign = replace(
            vc,
            credential_status=CredentialStatus(id="did:example:other#signature-bitmap", revocation_bitmap_index="0"),
        )
        assert not validator.is_valid(foreign, account.document)

    def test_proof_method_not_in_document(self, issue_degree, account, validator):
        vc = issue_degree()
        forged = vc.with_proof(replace(vc.proof, verification_method=f"{account.did}#key-9"))
        with pytest.raises(CredentialValidationError) as exc_info:
            validator.validate(forged, account.document)
        assert any("not found in document" in e for e in exc_info.value.errors)

    def test_proof_method_must_be_assertion_method(self, issue_degree, account, validator):
        document = account.document
        document.assertion_method = [f"{account.did}#key-1"]
        assert not validator.is_valid(issue_degree(signing_fragment="key-0"), document)

    def test_collects_all_errors(self, issue_degree, account, validator):
        vc = issue_degree(key_index=0, expiration_date=datetime.now(UTC) - timedelta(seconds=1))
        account.revoke_credentials("signature-bitmap", 0)
        with pytest.raises(CredentialValidationError) as exc_info:
            validator.validate(vc, account.document)
        assert len(exc_info.value.errors) == 2


class TestIsValidNeverRaises:
    """is_valid degrades to False."""

    def test_malformed_dict(self, account, validator):
        assert validator.is_valid({"id": "x"}, account.document) is False

    def test_not_a_mapping(self, account, validator):
        assert validator.is_valid("credential", account.document) is False

    def test_validate_raises_for_malformed_dict(self, account, validator):
        with pytest.raises(MalformedInputError):
            validator.validate({"id": "x"}, account.document)

    def test_unexpected_error(self, account, validator, issue_degree, monkeypatch):
        def boom(*args):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(validator, "check", boom)
        assert validator.is_valid(issue_degree(), account.document) is False


def test_credential_from_dict_is_equal(issue_degree):
    vc = issue_degree()
    assert Credential.from_dict(vc.to_dict()) == vc
