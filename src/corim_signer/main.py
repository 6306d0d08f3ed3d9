"""
Application entry point — parses the command line and runs one signing.

Composition root: loads settings, configures structlog, creates the
concrete adapters, and hands them to the pipeline.

This is the ONLY place where concrete adapters are instantiated.
Everything else depends on Protocol interfaces.

    corim-sign --file=unsigned-corim.cbor \\
               --key=key.jwk \\
               --meta=meta.json \\
               --cert=signing-cert.der \\
               --intermediates=intermediate-certs.der \\
               --output=signed-corim.cbor
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog
from railway import FailureDescription

from corim_signer import __version__
from corim_signer.adapters.file_store import LocalFileStore
from corim_signer.adapters.jwk_signer import JwkSigner
from corim_signer.config import AppSettings, SignOptions
from corim_signer.pipeline import run_sign_pipeline


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for human-readable console logging on stderr.

    stdout is reserved for the confirmation line.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="corim-sign",
        description=(
            "create a signed CoRIM from an unsigned, CBOR-encoded CoRIM using the supplied key; "
            "optionally include the signing certificate and certificate chain in the COSE header"
        ),
    )
    parser.add_argument("-f", "--file", dest="corim_file", help="an unsigned CoRIM file (in CBOR format)")
    parser.add_argument("-m", "--meta", dest="meta_file", help="CoRIM Meta file (in JSON format)")
    parser.add_argument("-k", "--key", dest="key_file", help="signing key in JWK format")
    parser.add_argument("-o", "--output", dest="output_file", help="name of the generated COSE Sign1 file")
    parser.add_argument("-c", "--cert", dest="cert_file", help="signing certificate in DER format")
    parser.add_argument(
        "--intermediates",
        dest="intermediates_file",
        help="intermediate certificates in DER format",
    )
    parser.add_argument("--log-level", help="override CORIM_SIGN_LOG_LEVEL")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, sign, and report. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = AppSettings()
    except Exception as e:
        print(f"Error: configuration error: {e}", file=sys.stderr)  # noqa: T201
        return 1

    configure_structlog(args.log_level or settings.log_level)
    log = structlog.get_logger()
    log.debug("app.starting", version=__version__, log_level=settings.log_level)

    options = SignOptions(
        corim_file=args.corim_file,
        key_file=args.key_file,
        meta_file=args.meta_file,
        output_file=args.output_file,
        cert_file=args.cert_file,
        intermediates_file=args.intermediates_file,
    )
    result = run_sign_pipeline(
        options,
        store=LocalFileStore(file_mode=settings.output_file_mode),
        signer_loader=JwkSigner.from_jwk,
        output_prefix=settings.output_prefix,
    )

    return result.either(
        on_success=lambda path: _report_success(options, path),
        on_failure=_report_failure,
    )


def _report_success(options: SignOptions, path: Path) -> int:
    print(f'>> "{options.corim_file}" signed and saved to "{path}"')  # noqa: T201
    return 0


def _report_failure(error: FailureDescription) -> int:
    print(f"Error: {error.message}", file=sys.stderr)  # noqa: T201
    return 1


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
