"""
Unit tests for CorimMeta — JSON decoding, validation and CBOR encoding.
"""

from __future__ import annotations

from datetime import UTC, datetime

import cbor2
from cbor2 import CBORTag
from railway import ErrorCode, ResultAssertions

from corim_signer.domain.meta import CorimMeta
from corim_signer.domain.ports import ValidatedDocument
from tests.conftest import make_meta_json


class TestFromJson:
    def test_decodes_signer_and_validity(self) -> None:
        """
        GIVEN a complete CorimMeta JSON document
        WHEN decoded
        THEN signer and validity fields are populated with UTC datetimes.
        """
        meta = ResultAssertions.assert_success(CorimMeta.from_json(make_meta_json()))
        assert meta.signer.name == "ACME Ltd signing key"
        assert meta.signer.uri == "https://acme.example"
        assert meta.validity is not None
        assert meta.validity.not_before == datetime(2021, 12, 31, tzinfo=UTC)
        assert meta.validity.not_after == datetime(2025, 12, 31, tzinfo=UTC)

    def test_validity_is_optional(self) -> None:
        data = b'{"signer": {"name": "ACME"}}'
        meta = ResultAssertions.assert_success(CorimMeta.from_json(data))
        assert meta.validity is None
        assert meta.signer.uri is None

    def test_unknown_members_are_ignored(self) -> None:
        meta = CorimMeta.from_json(make_meta_json(comment="for testing")).value()
        assert meta.signer.name == "ACME Ltd signing key"

    def test_missing_signer_is_decode_error(self) -> None:
        result = CorimMeta.from_json(b'{"validity": {"not-after": "2025-12-31T00:00:00Z"}}')
        ResultAssertions.assert_failure(result, ErrorCode.DECODE_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "malformed CoRIM Meta")

    def test_invalid_json_is_decode_error(self) -> None:
        ResultAssertions.assert_failure(CorimMeta.from_json(b"{not json"), ErrorCode.DECODE_ERROR)

    def test_validity_without_not_after_is_decode_error(self) -> None:
        data = make_meta_json(validity={"not-before": "2021-12-31T00:00:00Z"})
        ResultAssertions.assert_failure(CorimMeta.from_json(data), ErrorCode.DECODE_ERROR)

    def test_unparseable_timestamp_is_decode_error(self) -> None:
        data = make_meta_json(validity={"not-after": "next tuesday"})
        ResultAssertions.assert_failure(CorimMeta.from_json(data), ErrorCode.DECODE_ERROR)


class TestValidate:
    def test_complete_meta_is_valid(self, meta: CorimMeta) -> None:
        assert meta.validate().value() is meta

    def test_empty_signer_name(self) -> None:
        """
        GIVEN a meta whose signer name is blank
        WHEN validated
        THEN VALIDATION_ERROR names the empty signer.
        """
        meta = CorimMeta.from_json(make_meta_json(signer={"name": "  "})).value()
        result = meta.validate()
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "empty signer name")

    def test_relative_signer_uri(self) -> None:
        meta = CorimMeta.from_json(make_meta_json(signer={"name": "ACME", "uri": "acme.example"})).value()
        result = meta.validate()
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "is not an absolute URI")

    def test_inverted_validity(self) -> None:
        validity = {"not-before": "2026-01-01T00:00:00Z", "not-after": "2025-01-01T00:00:00Z"}
        meta = CorimMeta.from_json(make_meta_json(validity=validity)).value()
        result = meta.validate()
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "is after not-after")

    def test_equal_bounds_are_valid(self) -> None:
        validity = {"not-before": "2025-01-01T00:00:00Z", "not-after": "2025-01-01T00:00:00Z"}
        meta = CorimMeta.from_json(make_meta_json(validity=validity)).value()
        ResultAssertions.assert_success(meta.validate())


class TestToCbor:
    def test_encodes_corim_meta_map(self, meta: CorimMeta) -> None:
        """
        GIVEN a meta with signer URI and both validity bounds
        WHEN encoded
        THEN the bytes equal the canonical corim-meta-map with tagged URI and epoch times.
        """
        expected = {
            0: {0: "ACME Ltd signing key", 1: CBORTag(32, "https://acme.example")},
            1: {0: CBORTag(1, 1640908800), 1: CBORTag(1, 1767139200)},
        }
        assert meta.to_cbor() == cbor2.dumps(expected, canonical=True)

    def test_omits_absent_members(self) -> None:
        meta = CorimMeta.from_json(b'{"signer": {"name": "ACME"}}').value()
        assert cbor2.loads(meta.to_cbor()) == {0: {0: "ACME"}}

    def test_encoding_is_deterministic(self, meta: CorimMeta) -> None:
        again = CorimMeta.from_json(make_meta_json()).value()
        assert meta.to_cbor() == again.to_cbor()


def test_meta_is_a_validated_document(meta: CorimMeta) -> None:
    assert isinstance(meta, ValidatedDocument)
