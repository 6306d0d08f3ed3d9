"""
Local filesystem adapter — reads inputs and writes the signed CoRIM.

Implements the ByteStore port. Writes go to a sibling ".tmp" file that is
renamed over the destination with os.replace, so readers see either the
old file or the complete new one. Missing parent directories are not
created.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()


class LocalFileStore:
    """Read and atomically write whole files on the local filesystem."""

    def __init__(self, file_mode: int = 0o644) -> None:
        self._file_mode = file_mode

    def read_bytes(self, path: Path) -> Result[bytes]:
        return Result.from_computation(
            lambda: path.read_bytes(),
            ErrorCode.READ_ERROR,
            f"cannot read {path}",
        ).peek(lambda data: log.debug("store.read", path=str(path), size=len(data)))

    def write_bytes(self, path: Path, data: bytes) -> Result[Path]:
        """
        Atomically write `data` to `path`.

        Returns Result[Path] with the destination on success, or
        Result.failure(PERSIST_ERROR, ...) with the destination untouched.
        """
        return Result.from_computation(
            lambda: self._do_write(path, data),
            ErrorCode.PERSIST_ERROR,
            f"cannot write {path}",
        ).peek(lambda written: log.info("store.written", path=str(written), size=len(data)))

    def _do_write(self, path: Path, data: bytes) -> Path:
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_bytes(data)
            os.chmod(tmp_path, self._file_mode)
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        return path
