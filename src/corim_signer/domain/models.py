"""
Domain models — immutable values assembled into a signed CoRIM.

All models are frozen dataclasses: every "change" produces a new value,
so a failed operation can never leave a half-updated object behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from railway import ResultFailures
from railway.result import Result


@dataclass(frozen=True, slots=True)
class CertificateChain:
    """
    Certificates carried in the x5chain header of the signed CoRIM.

    `leaf` is the DER certificate of the signing key; `intermediates` are
    DER certificates linking it towards a trust anchor, in caller order.
    Intermediates without a leaf are rejected. The chain is not checked
    for issuer/subject linkage.
    """

    leaf: bytes | None = field(default=None, repr=False)
    intermediates: tuple[bytes, ...] = field(default=(), repr=False)

    def __post_init__(self) -> None:
        if self.intermediates and self.leaf is None:
            raise ValueError("intermediate certificates require a signing certificate")

    @property
    def is_empty(self) -> bool:
        return self.leaf is None

    @property
    def total_certificates(self) -> int:
        return len(self.header_entries())

    def with_leaf(self, leaf: bytes) -> CertificateChain:
        return replace(self, leaf=leaf)

    def with_intermediates(self, intermediates: tuple[bytes, ...]) -> Result[CertificateChain]:
        if self.leaf is None:
            return ResultFailures.missing_leaf_certificate(
                "cannot add intermediate certificates without a signing certificate"
            )
        return Result.success(replace(self, intermediates=intermediates))

    def header_entries(self) -> list[bytes]:
        """x5chain entries: the leaf first, then each intermediate in order."""
        if self.leaf is None:
            return []
        return [self.leaf, *self.intermediates]
