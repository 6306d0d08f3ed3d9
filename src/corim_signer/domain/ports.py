"""
Ports — Protocol-based interfaces for the collaborators of the assembler.

These define WHAT the signing run needs (contracts) without specifying
HOW it's done (implementation). Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters satisfy
the contract simply by implementing the methods — no inheritance.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Self, runtime_checkable

from railway.result import Result


@runtime_checkable
class ValidatedDocument(Protocol):
    """
    Port: a decoded document that must pass validation before it is signed.

    UnsignedCorim and CorimMeta both conform. validate() returns the same
    document on success so it can be chained with flat_map.
    """

    def validate(self) -> Result[Self]: ...

    def to_cbor(self) -> bytes: ...


@runtime_checkable
class Signer(Protocol):
    """
    Port: produce a signature over the COSE Sig_structure bytes.

    `algorithm` is the COSE algorithm identifier placed in the protected
    header (e.g. -7 for ES256). `key_id` is optional and, when set, is
    carried as the kid header.

    A key that does not match the declared algorithm is reported by
    sign() as SIGNING_ERROR, never when the signer is constructed.
    Randomized schemes (ECDSA, PSS) must draw a fresh nonce on every call.
    """

    @property
    def algorithm(self) -> int: ...

    @property
    def key_id(self) -> bytes | None: ...

    def sign(self, to_be_signed: bytes) -> Result[bytes]: ...


@runtime_checkable
class SignerLoader(Protocol):
    """Port: build a Signer from raw key material (e.g. a JWK document)."""

    def __call__(self, key_material: bytes) -> Result[Signer]: ...


@runtime_checkable
class ByteStore(Protocol):
    """
    Port: read inputs and persist the signed envelope.

    write_bytes must be atomic: the destination either holds the complete
    envelope or is left untouched.
    """

    def read_bytes(self, path: Path) -> Result[bytes]: ...

    def write_bytes(self, path: Path, data: bytes) -> Result[Path]: ...
