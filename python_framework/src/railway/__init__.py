"""
Railway-Oriented Programming (ROP) Framework for Python.

Explicit, composable, functional error handling — no exceptions in business logic.

    from railway import Result, ErrorCode

    def require_leaf(chain: CertificateChain) -> Result[CertificateChain]:
        if chain.leaf is None:
            return Result.failure(ErrorCode.MISSING_LEAF_CERTIFICATE_ERROR, "signing certificate not set")
        return Result.success(chain)
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.result_failures import ResultFailures
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ResultFailures",
    "ResultAssertions",
]

__version__ = "1.1.0"
