"""
CorimMeta — signer identity and signature validity window.

Read from JSON and carried in the COSE protected header (label 8) as the
CBOR corim-meta-map:

    corim-meta-map = {
        0 => { 0 => signer-name, ? 1 => #6.32(signer-uri) }
      ? 1 => { ? 0 => #6.1(not-before), 1 => #6.1(not-after) }
    }

Decoding (JSON shape) and validation (semantic rules) are separate steps:
a record that decodes may still fail validate().
"""

from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import urlsplit

import cbor2
from cbor2 import CBORTag
from pydantic import BaseModel, ConfigDict, Field
from railway import ErrorCode, ResultFailures
from railway.result import Result

from corim_signer.domain.corim import EPOCH_TIME_TAG, URI_TAG


class CorimSigner(BaseModel):
    """The entity that signs the CoRIM."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    uri: str | None = None


class Validity(BaseModel):
    """Signature validity window; not-before is optional, not-after is not."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    not_before: datetime | None = Field(default=None, alias="not-before")
    not_after: datetime = Field(alias="not-after")


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _epoch(value: datetime) -> CBORTag:
    return CBORTag(EPOCH_TIME_TAG, int(_as_utc(value).timestamp()))


class CorimMeta(BaseModel):
    """
    Metadata record embedded alongside the signed CoRIM.

    Immutable once decoded. Use from_json() to decode and validate() before
    handing it to the assembler.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    signer: CorimSigner
    validity: Validity | None = None

    @staticmethod
    def from_json(data: bytes) -> Result[CorimMeta]:
        """Decode a CorimMeta JSON document. Shape errors → DECODE_ERROR."""
        return Result.from_computation(
            lambda: CorimMeta.model_validate_json(data),
            ErrorCode.DECODE_ERROR,
            "malformed CoRIM Meta",
        )

    def validate(self) -> Result[CorimMeta]:
        """
        Check the semantic rules the JSON shape cannot express.

          - signer name is non-empty
          - signer URI, when present, is absolute (has a scheme and a location)
          - validity not-before, when present, is not after not-after
        """
        if not self.signer.name.strip():
            return ResultFailures.validation_error("invalid meta: empty signer name")
        if self.signer.uri is not None:
            parts = urlsplit(self.signer.uri)
            if not parts.scheme or not (parts.netloc or parts.path):
                return ResultFailures.validation_error(
                    f"invalid meta: signer URI {self.signer.uri!r} is not an absolute URI"
                )
        if self.validity is not None and self.validity.not_before is not None:
            not_before = _as_utc(self.validity.not_before)
            not_after = _as_utc(self.validity.not_after)
            if not_before > not_after:
                return ResultFailures.validation_error(
                    f"invalid meta: validity not-before ({not_before.isoformat()}) "
                    f"is after not-after ({not_after.isoformat()})"
                )
        return Result.success(self)

    def to_cbor(self) -> bytes:
        """Deterministic CBOR encoding of the corim-meta-map."""
        signer: dict[int, object] = {0: self.signer.name}
        if self.signer.uri is not None:
            signer[1] = CBORTag(URI_TAG, self.signer.uri)
        meta: dict[int, object] = {0: signer}
        if self.validity is not None:
            validity: dict[int, object] = {1: _epoch(self.validity.not_after)}
            if self.validity.not_before is not None:
                validity[0] = _epoch(self.validity.not_before)
            meta[1] = validity
        return cbor2.dumps(meta, canonical=True)
