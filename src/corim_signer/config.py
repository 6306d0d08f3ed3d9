"""
Configuration — typed settings from the environment plus per-run options.

Two layers:
  - AppSettings (pydantic-settings): process-wide knobs read from
    CORIM_SIGN_* environment variables or a .env file.
  - SignOptions (pydantic): the file paths of one signing run, built from
    the command line and passed explicitly to the pipeline. Nothing is
    kept in module-level state.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from railway import ResultFailures
from railway.result import Result

_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class AppSettings(BaseSettings):
    """
    Process-wide settings.

    Load order (highest priority first):
      1. Environment variables (CORIM_SIGN_LOG_LEVEL, CORIM_SIGN_OUTPUT_PREFIX, ...)
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="CORIM_SIGN_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="WARNING")
    output_prefix: str = Field(default="signed-", min_length=1)
    output_file_mode: int = Field(default=0o644, ge=0, le=0o777)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelNamesMapping().get(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level


class SignOptions(BaseModel):
    """
    Inputs of one signing run.

    The three required paths are optional at the type level so that a
    missing one is reported by check() with a descriptive message rather
    than a generic parsing error.
    """

    model_config = ConfigDict(frozen=True)

    corim_file: Path | None = None
    key_file: Path | None = None
    meta_file: Path | None = None
    output_file: Path | None = None
    cert_file: Path | None = None
    intermediates_file: Path | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_as_missing(cls, value: object) -> object:
        """Treat an empty flag value (--key "") the same as an absent one."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def check(self) -> Result[SignOptions]:
        """
        Enforce the option rules before any file is touched.

          - corim, key and meta paths are mandatory (CONFIGURATION_ERROR)
          - intermediates require a signing certificate (MISSING_LEAF_CERTIFICATE_ERROR)
        """
        if self.corim_file is None:
            return ResultFailures.configuration_error("no CoRIM supplied")
        if self.key_file is None:
            return ResultFailures.configuration_error("no key supplied")
        if self.meta_file is None:
            return ResultFailures.configuration_error("no CoRIM Meta supplied")
        if self.intermediates_file is not None and self.cert_file is None:
            return ResultFailures.missing_leaf_certificate(
                "cannot add intermediate certificates without a signing certificate"
            )
        return Result.success(self)

    def resolve_output(self, prefix: str = "signed-") -> Path:
        """
        Destination of the signed CoRIM.

        Defaults to the CoRIM file name with `prefix` prepended, in the same
        directory as the CoRIM file.
        """
        if self.output_file is not None:
            return self.output_file
        assert self.corim_file is not None  # guaranteed by check()
        return self.corim_file.with_name(prefix + self.corim_file.name)
