"""
Convenience factory methods for common Result failures.

Usage:
    from railway.result_failures import ResultFailures

    # Instead of:
    Result.failure(ErrorCode.CERTIFICATE_FORMAT_ERROR, "no certificates found")

    # Write:
    ResultFailures.certificate_format_error("no certificates found")
"""

from __future__ import annotations

from railway.failure import ErrorCode
from railway.result import Result


class ResultFailures:
    """Factory methods for the signing toolchain's failure types."""

    @staticmethod
    def read_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.READ_ERROR, message, exception)

    @staticmethod
    def decode_error(message: str, exception: BaseException | None = None) -> Result:
        """Malformed CBOR/JSON/JWK input."""
        return Result.failure(ErrorCode.DECODE_ERROR, message, exception)

    @staticmethod
    def validation_error(message: str) -> Result:
        """Decodable input that breaks a semantic rule."""
        return Result.failure(ErrorCode.VALIDATION_ERROR, message)

    @staticmethod
    def certificate_format_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.CERTIFICATE_FORMAT_ERROR, message, exception)

    @staticmethod
    def missing_leaf_certificate(message: str) -> Result:
        return Result.failure(ErrorCode.MISSING_LEAF_CERTIFICATE_ERROR, message)

    @staticmethod
    def configuration_error(message: str) -> Result:
        return Result.failure(ErrorCode.CONFIGURATION_ERROR, message)

    @staticmethod
    def signing_error(message: str, exception: BaseException | None = None) -> Result:
        """Key/algorithm mismatch or signature primitive failure."""
        return Result.failure(ErrorCode.SIGNING_ERROR, message, exception)

    @staticmethod
    def persist_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.PERSIST_ERROR, message, exception)

    @staticmethod
    def from_exception(message: str, exception: BaseException) -> Result:
        """
        Auto-map a Python exception to the appropriate ErrorCode.

        Mapping:
          - FileNotFoundError, PermissionError, IsADirectoryError → READ_ERROR
          - UnicodeDecodeError, ValueError, TypeError, KeyError → DECODE_ERROR
          - Everything else → UNKNOWN_ERROR
        """
        code = _map_exception_to_code(exception)
        return Result.failure(code, message, exception)


def _map_exception_to_code(exception: BaseException) -> ErrorCode:
    """Map a Python exception type to the most appropriate ErrorCode."""
    match exception:
        case FileNotFoundError() | PermissionError() | IsADirectoryError():
            return ErrorCode.READ_ERROR
        case ValueError() | TypeError() | KeyError():
            return ErrorCode.DECODE_ERROR
        case _:
            return ErrorCode.UNKNOWN_ERROR
