"""
Failure description — structured error information for the failure track.

Every stage of the signing toolchain reports failure through an ErrorCode
plus a human-readable message. The codes follow the stages of the
signing run: reading inputs, decoding them, validating them, assembling
the certificate chain, signing, and persisting the envelope.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Input errors (the caller supplied something unusable):
      READ, DECODE, VALIDATION, CERTIFICATE_FORMAT, MISSING_LEAF_CERTIFICATE, CONFIGURATION
    Processing errors (a primitive or the filesystem refused the work):
      SIGNING, PERSIST, UNKNOWN
    """

    READ_ERROR = "READ_ERROR"
    """Input file missing or unreadable."""

    DECODE_ERROR = "DECODE_ERROR"
    """Malformed CBOR, JSON or JWK input."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Decodable but semantically invalid manifest or metadata."""

    CERTIFICATE_FORMAT_ERROR = "CERTIFICATE_FORMAT_ERROR"
    """Certificate bytes do not parse as DER X.509 certificates."""

    MISSING_LEAF_CERTIFICATE_ERROR = "MISSING_LEAF_CERTIFICATE_ERROR"
    """Intermediate certificates supplied without a signing certificate."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Required option missing or settings invalid."""

    SIGNING_ERROR = "SIGNING_ERROR"
    """Key/algorithm mismatch or signature primitive failure."""

    PERSIST_ERROR = "PERSIST_ERROR"
    """Destination could not be written."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "empty signer name")
    >>> desc.code
    <ErrorCode.VALIDATION_ERROR: 'VALIDATION_ERROR'>
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def create(
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> FailureDescription:
        return FailureDescription(code=code, message=message, exception=exception)

    def with_context(self, context: str) -> FailureDescription:
        """
        Prefix the message with the stage/path that produced the failure.

        The code, exception and timestamp are preserved.

            >>> FailureDescription(ErrorCode.DECODE_ERROR, "bad tag").with_context("corim.cbor").message
            'corim.cbor: bad tag'
        """
        return replace(self, message=f"{context}: {self.message}")

    def full_stack_trace(self) -> str:
        """Full stack trace string including the message and exception chain."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__)
        )
        return f"{self.message}\n{tb}"
