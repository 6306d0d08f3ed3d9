"""
COSE_Sign1 envelope — encoding of the signed CoRIM.

    signed-corim = #6.18([
        protected:   bstr .cbor {
                         1  => alg,
                         3  => "application/rim+cbor",
                       ? 4  => kid,
                         8  => bstr .cbor corim-meta-map,
                       ? 33 => [ + bstr ]           ; x5chain: leaf, intermediates...
                     },
        unprotected: {},
        payload:     bstr .cbor tagged-unsigned-corim-map,
        signature:   bstr,
    ])

The signature covers Sig_structure = ["Signature1", protected, h'', payload]
(RFC 9052 §4.4), so the metadata and certificate chain are integrity
protected while staying readable without verifying the signature.

SignedCorim.from_cbor() is a decode-only view; it does not verify signatures.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import cbor2
from cbor2 import CBORTag
from railway import ErrorCode, ResultFailures
from railway.result import Result

COSE_SIGN1_TAG = 18
CONTENT_TYPE = "application/rim+cbor"

HEADER_ALG = 1
HEADER_CONTENT_TYPE = 3
HEADER_KID = 4
HEADER_CORIM_META = 8
HEADER_X5CHAIN = 33

_SIGNATURE1_CONTEXT = "Signature1"
_EXTERNAL_AAD = b""


def encode_protected_header(
    algorithm: int,
    meta_cbor: bytes,
    certificates: list[bytes],
    key_id: bytes | None = None,
) -> bytes:
    """
    Encode the protected header map.

    The kid and x5chain entries are omitted entirely when there is no key id
    or no certificate chain.
    """
    header: dict[int, Any] = {
        HEADER_ALG: algorithm,
        HEADER_CONTENT_TYPE: CONTENT_TYPE,
        HEADER_CORIM_META: meta_cbor,
    }
    if key_id:
        header[HEADER_KID] = key_id
    if certificates:
        header[HEADER_X5CHAIN] = list(certificates)
    return cbor2.dumps(header, canonical=True)


def sig_structure(protected: bytes, payload: bytes) -> bytes:
    """The bytes handed to the signer."""
    return cbor2.dumps([_SIGNATURE1_CONTEXT, protected, _EXTERNAL_AAD, payload], canonical=True)


def encode_sign1(protected: bytes, payload: bytes, signature: bytes) -> bytes:
    return cbor2.dumps(CBORTag(COSE_SIGN1_TAG, [protected, {}, payload, signature]), canonical=True)


@dataclass(frozen=True, slots=True)
class SignedCorim:
    """Decoded view of a COSE_Sign1 signed CoRIM."""

    protected: bytes = field(repr=False)
    payload: bytes = field(repr=False)
    signature: bytes = field(repr=False)
    algorithm: int
    content_type: str
    meta_cbor: bytes = field(repr=False)
    certificates: tuple[bytes, ...] = field(default=(), repr=False)
    key_id: bytes | None = None

    @staticmethod
    def from_cbor(data: bytes) -> Result[SignedCorim]:
        """
        Decode a signed CoRIM without verifying its signature.

        Returns Result.failure(DECODE_ERROR, ...) if the bytes are not a
        tagged COSE_Sign1 carrying the CoRIM protected header.
        """
        return Result.from_computation(
            lambda: cbor2.loads(data),
            ErrorCode.DECODE_ERROR,
            "malformed signed CoRIM CBOR",
        ).flat_map(_from_sign1)

    def to_be_signed(self) -> bytes:
        return sig_structure(self.protected, self.payload)

    def meta(self) -> Mapping[int, Any]:
        return cbor2.loads(self.meta_cbor)


def _from_sign1(decoded: Any) -> Result[SignedCorim]:
    if not isinstance(decoded, CBORTag) or decoded.tag != COSE_SIGN1_TAG:
        return ResultFailures.decode_error("input is not a tagged COSE_Sign1")
    message = decoded.value
    if not isinstance(message, list) or len(message) != 4:
        return ResultFailures.decode_error("COSE_Sign1 must be an array of four elements")
    protected, _unprotected, payload, signature = message
    if not all(isinstance(part, bytes) for part in (protected, payload, signature)):
        return ResultFailures.decode_error("COSE_Sign1 protected, payload and signature must be byte strings")
    return Result.from_computation(
        lambda: cbor2.loads(protected),
        ErrorCode.DECODE_ERROR,
        "malformed protected header",
    ).flat_map(lambda header: _build(header, protected, payload, signature))


def _build(header: Any, protected: bytes, payload: bytes, signature: bytes) -> Result[SignedCorim]:
    if not isinstance(header, Mapping):
        return ResultFailures.decode_error("protected header is not a map")
    for label in (HEADER_ALG, HEADER_CONTENT_TYPE, HEADER_CORIM_META):
        if label not in header:
            return ResultFailures.decode_error(f"protected header has no label {label}")
    x5chain = header.get(HEADER_X5CHAIN, [])
    # RFC 9360 allows a lone certificate as a bare bstr
    certificates = (x5chain,) if isinstance(x5chain, bytes) else tuple(x5chain)
    return Result.success(
        SignedCorim(
            protected=protected,
            payload=payload,
            signature=signature,
            algorithm=header[HEADER_ALG],
            content_type=header[HEADER_CONTENT_TYPE],
            meta_cbor=header[HEADER_CORIM_META],
            certificates=certificates,
            key_id=header.get(HEADER_KID),
        )
    )
