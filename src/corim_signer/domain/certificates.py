"""
DER certificate splitting — turn concatenated DER bytes into certificates.

  - asn1crypto: walks the DER TLV headers to find where each element ends
  - cryptography (PyCA): confirms each element loads as an X.509 certificate

Certificates are kept as their original DER bytes; nothing is re-encoded.
"""

from __future__ import annotations

import structlog
from asn1crypto import parser
from cryptography import x509
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()


def _element_length(data: bytes, offset: int) -> int:
    """Length of the DER element starting at `offset`, header included."""
    _, _, _, header, contents, trailer = parser.parse(data[offset:])
    return len(header) + len(contents) + len(trailer)


def _split(data: bytes) -> tuple[bytes, ...]:
    if not data:
        raise ValueError("no certificates found")

    certs: list[bytes] = []
    offset = 0
    while offset < len(data):
        end = offset + _element_length(data, offset)
        der = data[offset:end]
        cert = x509.load_der_x509_certificate(der)
        log.debug(
            "certificate.parsed",
            index=len(certs),
            subject=cert.subject.rfc4514_string(),
            issuer=cert.issuer.rfc4514_string(),
        )
        certs.append(der)
        offset = end
    return tuple(certs)


def split_der_certificates(data: bytes) -> Result[tuple[bytes, ...]]:
    """
    Split one or more concatenated DER certificates, preserving order.

    Returns Result.failure(CERTIFICATE_FORMAT_ERROR, ...) when the input is
    empty, truncated, or any element is not an X.509 certificate.
    """
    return Result.from_computation(
        lambda: _split(data),
        ErrorCode.CERTIFICATE_FORMAT_ERROR,
        "invalid DER certificate data",
    )
