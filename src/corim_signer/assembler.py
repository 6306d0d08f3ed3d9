"""
Signed CoRIM assembler — the core of the signing run.

Domain layer — no I/O. Combines a validated UnsignedCorim, a validated
CorimMeta and an optional certificate chain into COSE_Sign1 bytes:

  SignedCorimAssembler.create(corim, meta)      ← both validate() gates
    → attach_leaf(cert_der)                     (optional)
      → attach_intermediates(chain_der)         (optional, needs leaf)
        → sign(signer)                          → Result[bytes]

The assembler is immutable: each attach returns a new assembler, and a
failed attach leaves the previous one untouched. Build a fresh assembler
per envelope.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import structlog
from railway import ErrorCode, ResultFailures
from railway.result import Result

from corim_signer.domain.certificates import split_der_certificates
from corim_signer.domain.corim import UnsignedCorim
from corim_signer.domain.meta import CorimMeta
from corim_signer.domain.models import CertificateChain
from corim_signer.domain.ports import Signer
from corim_signer.envelope import encode_protected_header, encode_sign1, sig_structure

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class SignedCorimAssembler:
    """
    Holds the pieces of one signed CoRIM until it is signed.

    Construct through create(), which refuses documents that fail
    validation; the constructor itself is not meant for direct use.
    """

    corim: UnsignedCorim
    meta: CorimMeta
    chain: CertificateChain = field(default_factory=CertificateChain)

    @staticmethod
    def create(corim: UnsignedCorim, meta: CorimMeta) -> Result[SignedCorimAssembler]:
        """
        Validate both documents and build an assembler with no certificates.

        Returns the first validation failure (CoRIM before Meta).
        """
        return Result.combine(
            corim.validate().map_failure(lambda err: err.with_context("error validating CoRIM")),
            meta.validate().map_failure(lambda err: err.with_context("error validating CoRIM Meta")),
            lambda valid_corim, valid_meta: SignedCorimAssembler(corim=valid_corim, meta=valid_meta),
        )

    # ─────────────────────── Certificate attachment ───────────────────────

    def attach_leaf(self, cert_der: bytes) -> Result[SignedCorimAssembler]:
        """
        Record the signing certificate.

        `cert_der` may hold several concatenated DER certificates; only the
        first is kept. Malformed input → CERTIFICATE_FORMAT_ERROR.
        """
        return (
            split_der_certificates(cert_der)
            .map(lambda certs: replace(self, chain=self.chain.with_leaf(certs[0])))
            .peek(lambda _: log.info("assembler.leaf_attached"))
            .map_failure(lambda err: err.with_context("error adding signing certificate"))
        )

    def attach_intermediates(self, chain_der: bytes) -> Result[SignedCorimAssembler]:
        """
        Record intermediate certificates, in the order supplied.

        Fails with MISSING_LEAF_CERTIFICATE_ERROR when no leaf is attached
        (checked before the bytes are parsed), and with
        CERTIFICATE_FORMAT_ERROR on malformed input.
        """
        if self.chain.is_empty:
            return ResultFailures.missing_leaf_certificate(
                "cannot add intermediate certificates without a signing certificate"
            )
        return (
            split_der_certificates(chain_der)
            .flat_map(self.chain.with_intermediates)
            .map(lambda chain: replace(self, chain=chain))
            .peek(lambda assembler: log.info(
                "assembler.intermediates_attached",
                count=len(assembler.chain.intermediates),
            ))
            .map_failure(lambda err: err.with_context("error adding intermediate certificates"))
        )

    # ─────────────────────── Envelope construction ───────────────────────

    def sign(self, signer: Signer) -> Result[bytes]:
        """
        Build and sign the COSE_Sign1 envelope.

        The CoRIM is re-validated first so an invalid document never reaches
        the signer. Signer failures, including exceptions raised by it, are
        reported as SIGNING_ERROR.
        """
        return (
            self.corim.validate()
            .map_failure(lambda err: err.with_context("error validating CoRIM"))
            .flat_map(lambda corim: self._sign_payload(corim.to_cbor(), signer))
        )

    def _sign_payload(self, payload: bytes, signer: Signer) -> Result[bytes]:
        certificates = self.chain.header_entries()
        protected_result = Result.from_computation(
            lambda: encode_protected_header(
                algorithm=signer.algorithm,
                meta_cbor=self.meta.to_cbor(),
                certificates=certificates,
                key_id=signer.key_id,
            ),
            ErrorCode.SIGNING_ERROR,
            "error building protected header",
        )
        return protected_result.flat_map(
            lambda protected: _invoke_signer(signer, sig_structure(protected, payload))
            .map(lambda signature: encode_sign1(protected, payload, signature))
            .peek(lambda envelope: log.info(
                "envelope.signed",
                algorithm=signer.algorithm,
                certificates=self.chain.total_certificates,
                size=len(envelope),
            ))
        ).map_failure(lambda err: err.with_context("error signing CoRIM"))


def _invoke_signer(signer: Signer, to_be_signed: bytes) -> Result[bytes]:
    return (
        Result.from_computation(
            lambda: signer.sign(to_be_signed),
            ErrorCode.SIGNING_ERROR,
            "signer raised",
        )
        .flat_map(lambda signed: signed)
        .ensure(
            lambda signature: isinstance(signature, bytes) and len(signature) > 0,
            ErrorCode.SIGNING_ERROR,
            "signer returned an empty signature",
        )
    )
