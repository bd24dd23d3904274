"""Tests for DID parsing, encodings and DID documents."""

from __future__ import annotations

import pytest

from dvid.core.exceptions import MalformedDIDError
from dvid.identity.bitmap import REVOCATION_BITMAP_TYPE, RevocationBitmap
from dvid.identity.document import (
    ED25519_KEY_TYPE,
    X25519_KEY_TYPE,
    DIDDocument,
    ServiceEndpoint,
    VerificationMethod,
    canonical_json,
    decode_public_key,
    encode_public_key,
    is_did,
    multibase_decode,
    multibase_encode,
    parse_did,
    split_did_url,
)

DID = "did:dvid:9b1deb4d3b7d4bad9bdd2b0d7b3dcb6d"


@pytest.fixture
def document() -> DIDDocument:
    return DIDDocument(
        id=DID,
        controller=DID,
        verification_methods=[
            VerificationMethod(
                id=f"{DID}#key-0",
                type=ED25519_KEY_TYPE,
                controller=DID,
                public_key_multibase=encode_public_key(b"\x01" * 32, ED25519_KEY_TYPE),
            ),
        ],
        assertion_method=[f"{DID}#key-0"],
        services=[
            ServiceEndpoint(
                id=f"{DID}#signature-bitmap",
                type=REVOCATION_BITMAP_TYPE,
                service_endpoint=RevocationBitmap([2]).to_endpoint(),
            ),
            ServiceEndpoint(id=f"{DID}#home", type="LinkedDomains", service_endpoint="https://example.com"),
        ],
        version=3,
    )


class TestParseDid:
    """Tests for DID syntax validation."""

    @pytest.mark.parametrize(
        "value, method, identifier",
        [
            ("did:example:bob", "example", "bob"),
            (DID, "dvid", "9b1deb4d3b7d4bad9bdd2b0d7b3dcb6d"),
            ("did:iota:0xe4ed:sub", "iota", "0xe4ed:sub"),
            ("did:web:example.com%3A8443", "web", "example.com%3A8443"),
        ],
    )
    def test_valid(self, value, method, identifier):
        did = parse_did(value)
        assert did.method == method
        assert did.identifier == identifier
        assert str(did) == value

    @pytest.mark.parametrize(
        "value",
        ["", "bob", "did:", "did:example", "did:Example:bob", "did:example:", "did:example:bob#key-0", None, 42],
    )
    def test_invalid(self, value):
        with pytest.raises(MalformedDIDError):
            parse_did(value)
        assert not is_did(value)

    def test_split_did_url(self):
        assert split_did_url(f"{DID}#key-0") == (DID, "key-0")
        assert split_did_url(DID) == (DID, None)


class TestEncodings:
    """Tests for base58 / multibase helpers."""

    def test_multibase_leading_zeros(self):
        data = b"\x00\x00\x01\x02"
        encoded = multibase_encode(data)
        assert encoded.startswith("z11")
        assert multibase_decode(encoded) == data

    def test_multibase_rejects_bad_characters(self):
        with pytest.raises(ValueError):
            multibase_decode("z0OIl")

    def test_multibase_prefix(self):
        assert multibase_encode(b"abc").startswith("z")
        assert multibase_decode(multibase_encode(b"abc")) == b"abc"

    def test_multibase_rejects_other_bases(self):
        with pytest.raises(ValueError):
            multibase_decode("mYWJj")

    def test_public_key_multicodec_is_stripped(self):
        for key_type in (ED25519_KEY_TYPE, X25519_KEY_TYPE):
            assert decode_public_key(encode_public_key(b"\x07" * 32, key_type)) == b"\x07" * 32

    def test_canonical_json_is_sorted_and_compact(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'


class TestDIDDocument:
    """Tests for DIDDocument lookups and serialization."""

    @pytest.mark.parametrize("query", ["key-0", "#key-0", f"{DID}#key-0"])
    def test_resolve_method(self, document, query):
        assert document.resolve_method(query).id == f"{DID}#key-0"

    def test_resolve_method_missing(self, document):
        assert document.resolve_method("key-9") is None

    def test_resolve_method_other_did(self, document):
        assert document.resolve_method("did:example:bob#key-0") is None

    def test_revocation_bitmap(self, document):
        assert document.revocation_bitmap("signature-bitmap") == RevocationBitmap([2])

    def test_revocation_bitmap_wrong_service_type(self, document):
        assert document.revocation_bitmap("home") is None

    def test_revocation_bitmap_corrupt(self, document):
        document.set_service(
            ServiceEndpoint(id=f"{DID}#signature-bitmap", type=REVOCATION_BITMAP_TYPE, service_endpoint="nope")
        )
        with pytest.raises(ValueError):
            document.revocation_bitmap("signature-bitmap")

    def test_set_service_replaces(self, document):
        document.set_service(ServiceEndpoint(id=f"{DID}#home", type="LinkedDomains", service_endpoint="https://b.io"))
        homes = [s for s in document.services if s.id == f"{DID}#home"]
        assert len(homes) == 1
        assert homes[0].service_endpoint == "https://b.io"

    def test_copy_is_deep(self, document):
        clone = document.copy()
        clone.assertion_method.append("x")
        clone.verification_methods[0].public_key_multibase = "z1"
        assert "x" not in document.assertion_method
        assert document.verification_methods[0].public_key_multibase != "z1"

    def test_dict_roundtrip(self, document):
        data = document.to_dict()
        assert data["id"] == DID
        assert data["version"] == 3
        assert data["assertionMethod"] == [f"{DID}#key-0"]

        restored = DIDDocument.from_dict(data)
        assert restored.to_dict() == data

    def test_from_dict_rejects_bad_id(self):
        with pytest.raises(MalformedDIDError):
            DIDDocument.from_dict({"id": "not-a-did"})
