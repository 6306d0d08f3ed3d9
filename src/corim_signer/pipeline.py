"""
Pipeline — the ROP pipeline orchestrating one signing run.

All I/O is injected via ports (ByteStore, SignerLoader). The stages are
connected with flat_map, forming a railway:

  options.check()
    → read + decode + validate unsigned CoRIM
      → read + decode + validate CorimMeta
        → read key → signer
          → SignedCorimAssembler.create()
            → attach_leaf()            (when --cert is set)
              → attach_intermediates() (when --intermediates is set)
                → sign()
                  → write envelope

Each failure carries the stage and file path that produced it. Nothing is
written unless every earlier stage succeeded.
"""

from __future__ import annotations

from pathlib import Path
from typing import TypeVar

import structlog
from railway.result import Result

from corim_signer.assembler import SignedCorimAssembler
from corim_signer.config import SignOptions
from corim_signer.domain.corim import UnsignedCorim
from corim_signer.domain.meta import CorimMeta
from corim_signer.domain.ports import ByteStore, Signer, SignerLoader, ValidatedDocument

log = structlog.get_logger()

D = TypeVar("D", bound=ValidatedDocument)


def _load(store: ByteStore, path: Path, what: str) -> Result[bytes]:
    return store.read_bytes(path).map_failure(
        lambda err: err.with_context(f"error loading {what} from {path}")
    )


def _validated(document: D, what: str) -> Result[D]:
    return document.validate().map_failure(lambda err: err.with_context(f"error validating {what}"))


def _load_corim(store: ByteStore, path: Path) -> Result[UnsignedCorim]:
    return (
        _load(store, path, "unsigned CoRIM")
        .flat_map(
            lambda raw: UnsignedCorim.from_cbor(raw).map_failure(
                lambda err: err.with_context(f"error decoding unsigned CoRIM from {path}")
            )
        )
        .flat_map(lambda corim: _validated(corim, "CoRIM"))
        .peek(lambda corim: log.info(
            "sign.corim_loaded", path=str(path), corim_id=corim.corim_id, tags=corim.tag_count,
        ))
    )


def _load_meta(store: ByteStore, path: Path) -> Result[CorimMeta]:
    return (
        _load(store, path, "CoRIM Meta")
        .flat_map(
            lambda raw: CorimMeta.from_json(raw).map_failure(
                lambda err: err.with_context(f"error decoding CoRIM Meta from {path}")
            )
        )
        .flat_map(lambda meta: _validated(meta, "CoRIM Meta"))
        .peek(lambda meta: log.info("sign.meta_loaded", path=str(path), signer=meta.signer.name))
    )


def _load_signer(store: ByteStore, path: Path, signer_loader: SignerLoader) -> Result[Signer]:
    return (
        _load(store, path, "signing key")
        .flat_map(signer_loader)
        .map_failure(lambda err: err.with_context(f"error loading signing key from {path}"))
    )


def _attach_certificates(
    assembler: SignedCorimAssembler,
    store: ByteStore,
    options: SignOptions,
) -> Result[SignedCorimAssembler]:
    result = Result.success(assembler)
    if options.cert_file is not None:
        cert_file = options.cert_file
        result = result.flat_map(
            lambda current: _load(store, cert_file, "signing certificate").flat_map(current.attach_leaf)
        )
    if options.intermediates_file is not None:
        intermediates_file = options.intermediates_file
        result = result.flat_map(
            lambda current: _load(store, intermediates_file, "intermediate certificates").flat_map(
                current.attach_intermediates
            )
        )
    return result


def _sign(options: SignOptions, store: ByteStore, signer_loader: SignerLoader) -> Result[bytes]:
    corim_file, key_file, meta_file = options.corim_file, options.key_file, options.meta_file
    assert corim_file is not None and key_file is not None and meta_file is not None  # checked

    return _load_corim(store, corim_file).flat_map(
        lambda corim: _load_meta(store, meta_file).flat_map(
            lambda meta: _load_signer(store, key_file, signer_loader).flat_map(
                lambda signer: SignedCorimAssembler.create(corim, meta)
                .flat_map(lambda assembler: _attach_certificates(assembler, store, options))
                .flat_map(lambda assembler: assembler.sign(signer))
            )
        )
    )


def run_sign_pipeline(
    options: SignOptions,
    store: ByteStore,
    signer_loader: SignerLoader,
    output_prefix: str = "signed-",
) -> Result[Path]:
    """
    Execute one signing run.

    Returns Result[Path] with the written destination on success, or the
    failure from the first failing stage. Nothing is written on failure.
    """
    return (
        options.check()
        .flat_map(lambda checked: _sign(checked, store, signer_loader))
        .flat_map(lambda envelope: _persist(store, options.resolve_output(output_prefix), envelope))
        .peek(lambda path: log.info("sign.complete", corim=str(options.corim_file), output=str(path)))
        .peek_failure(lambda err: log.warning("sign.failed", code=err.code.value, error=err.message))
    )


def _persist(store: ByteStore, path: Path, envelope: bytes) -> Result[Path]:
    return store.write_bytes(path, envelope).map_failure(
        lambda err: err.with_context(f"error saving signed CoRIM to file {path}")
    )
