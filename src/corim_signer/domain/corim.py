"""
Unsigned CoRIM — the CBOR document carried as the COSE_Sign1 payload.

An unsigned CoRIM is the tagged corim-map of draft-ietf-rats-corim:

    tagged-unsigned-corim-map = #6.501({
        0 => corim-id                   ; tstr / uuid
        1 => [ + concise-tag ]          ; #6.505 CoSWID / #6.506 CoMID / #6.508 CoTL
      ? 2 => [ + corim-locator-map ]    ; dependent RIMs
      ? 3 => profile                    ; #6.32 URI / #6.111 OID
      ? 4 => validity-map               ; rim-validity
      ? 5 => [ + corim-entity-map ]
    })

The input bytes are kept verbatim: the signed payload is exactly what the
caller supplied, never a re-encoding.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import cbor2
from cbor2 import CBORTag
from railway import ErrorCode, ResultFailures
from railway.result import Result

UNSIGNED_CORIM_TAG = 501
UNSIGNED_CORIM_PREFIX = b"\xd9\x01\xf5"

COSWID_TAG = 505
COMID_TAG = 506
COTL_TAG = 508
CONCISE_TAG_TYPES = {COSWID_TAG: "CoSWID", COMID_TAG: "CoMID", COTL_TAG: "CoTL"}

URI_TAG = 32
UUID_TAG = 37
OID_TAG = 111
EPOCH_TIME_TAG = 1

# corim-map keys
_ID = 0
_TAGS = 1
_DEPENDENT_RIMS = 2
_PROFILE = 3
_RIM_VALIDITY = 4
_ENTITIES = 5


# ─────────────────────── Field checks ───────────────────────
# Each check returns an error message, or None when the field is acceptable.


def _check_id(value: Any) -> str | None:
    if isinstance(value, CBORTag) and value.tag == UUID_TAG:
        value = value.value
    match value:
        case str() if value:
            return None
        case str():
            return "empty corim-id"
        case uuid.UUID():
            return None
        case bytes() if len(value) == 16:
            return None
        case _:
            return f"corim-id must be a text string or a 16-byte UUID, got {type(value).__name__}"


def _check_tags(value: Any) -> str | None:
    if not isinstance(value, list) or not value:
        return "no tags"
    for index, tag in enumerate(value):
        if not isinstance(tag, CBORTag) or tag.tag not in CONCISE_TAG_TYPES:
            return f"tag at index {index} is not a CoSWID, CoMID or CoTL"
        if not isinstance(tag.value, bytes) or not tag.value:
            return f"{CONCISE_TAG_TYPES[tag.tag]} at index {index} has an empty payload"
    return None


def _is_uri(value: Any) -> bool:
    if isinstance(value, CBORTag) and value.tag == URI_TAG:
        value = value.value
    return isinstance(value, str) and bool(value)


def _check_dependent_rims(value: Any) -> str | None:
    if not isinstance(value, list) or not value:
        return "dependent-rims must be a non-empty array"
    for index, locator in enumerate(value):
        if not isinstance(locator, Mapping) or 0 not in locator:
            return f"dependent-rim at index {index} has no href"
        href = locator[0]
        hrefs = href if isinstance(href, list) else [href]
        if not hrefs or not all(_is_uri(h) for h in hrefs):
            return f"dependent-rim at index {index} has an invalid href"
    return None


def _check_profile(value: Any) -> str | None:
    if _is_uri(value):
        return None
    if isinstance(value, CBORTag) and value.tag == OID_TAG and isinstance(value.value, bytes) and value.value:
        return None
    return "profile must be a URI or an OID"


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, CBORTag) and value.tag == EPOCH_TIME_TAG:
        value = value.value
    match value:
        case datetime():
            return value if value.tzinfo else value.replace(tzinfo=UTC)
        case int() | float() if not isinstance(value, bool):
            try:
                return datetime.fromtimestamp(value, tz=UTC)
            except (OverflowError, OSError, ValueError):
                # out of the platform's time_t range, or NaN
                return None
        case _:
            return None


def check_validity_map(value: Any) -> str | None:
    """Check a validity-map: not-after (1) required, not-before (0) optional and not later."""
    if not isinstance(value, Mapping):
        return "validity must be a map"
    if 1 not in value:
        return "validity has no not-after"
    not_after = _to_datetime(value[1])
    if not_after is None:
        return "validity not-after is not a time"
    if 0 in value:
        not_before = _to_datetime(value[0])
        if not_before is None:
            return "validity not-before is not a time"
        if not_before > not_after:
            return f"validity not-before ({not_before.isoformat()}) is after not-after ({not_after.isoformat()})"
    return None


def _check_entities(value: Any) -> str | None:
    if not isinstance(value, list) or not value:
        return "entities must be a non-empty array"
    for index, entity in enumerate(value):
        if not isinstance(entity, Mapping):
            return f"entity at index {index} is not a map"
        name = entity.get(0)
        if not isinstance(name, str) or not name:
            return f"entity at index {index} has an empty name"
        roles = entity.get(2)
        if not isinstance(roles, list) or not roles:
            return f"entity at index {index} has no roles"
        if not all(isinstance(r, int) and not isinstance(r, bool) for r in roles):
            return f"entity at index {index} has a non-integer role"
    return None


_OPTIONAL_CHECKS = (
    (_DEPENDENT_RIMS, "dependent-rims", _check_dependent_rims),
    (_PROFILE, "profile", _check_profile),
    (_RIM_VALIDITY, "rim-validity", check_validity_map),
    (_ENTITIES, "entities", _check_entities),
)


# ─────────────────────── Public Model ───────────────────────


@dataclass(frozen=True, slots=True)
class UnsignedCorim:
    """
    A decoded, not-yet-validated unsigned CoRIM.

    `raw` holds the exact input bytes (including the #6.501 tag);
    `corim_map` is the decoded map used only for validation.
    """

    raw: bytes = field(repr=False)
    corim_map: Mapping[int, Any] = field(repr=False, compare=False)

    @staticmethod
    def from_cbor(data: bytes) -> Result[UnsignedCorim]:
        """
        Decode tagged unsigned-corim CBOR.

        Returns Result.failure(DECODE_ERROR, ...) if the bytes do not start
        with the unsigned-corim tag or are not well-formed CBOR.
        """
        if not data.startswith(UNSIGNED_CORIM_PREFIX):
            return ResultFailures.decode_error("input doesn't start with unsigned-corim tag")
        return Result.from_computation(
            lambda: cbor2.loads(data),
            ErrorCode.DECODE_ERROR,
            "malformed unsigned CoRIM CBOR",
        ).flat_map(lambda decoded: _unwrap(data, decoded))

    @property
    def corim_id(self) -> str:
        value = self.corim_map.get(_ID)
        if isinstance(value, CBORTag):
            value = value.value
        if isinstance(value, bytes) and len(value) == 16:
            value = uuid.UUID(bytes=value)
        return str(value)

    @property
    def tag_count(self) -> int:
        tags = self.corim_map.get(_TAGS)
        return len(tags) if isinstance(tags, list) else 0

    def validate(self) -> Result[UnsignedCorim]:
        """
        Check the corim-map against the CoRIM structural rules.

        Returns Result[UnsignedCorim] (self) on success, or
        Result.failure(VALIDATION_ERROR, ...) naming the first broken rule.
        """
        if _ID not in self.corim_map:
            return ResultFailures.validation_error("corim-id validation failed: no id")
        if (problem := _check_id(self.corim_map[_ID])) is not None:
            return ResultFailures.validation_error(f"corim-id validation failed: {problem}")
        if (problem := _check_tags(self.corim_map.get(_TAGS))) is not None:
            return ResultFailures.validation_error(f"tags validation failed: {problem}")
        for key, label, check in _OPTIONAL_CHECKS:
            if key in self.corim_map and (problem := check(self.corim_map[key])) is not None:
                return ResultFailures.validation_error(f"{label} validation failed: {problem}")
        return Result.success(self)

    def to_cbor(self) -> bytes:
        return self.raw


def _unwrap(data: bytes, decoded: Any) -> Result[UnsignedCorim]:
    if not isinstance(decoded, CBORTag) or decoded.tag != UNSIGNED_CORIM_TAG:
        return ResultFailures.decode_error("input doesn't start with unsigned-corim tag")
    if not isinstance(decoded.value, Mapping):
        return ResultFailures.decode_error("unsigned-corim tag does not wrap a map")
    return Result.success(UnsignedCorim(raw=bytes(data), corim_map=decoded.value))
