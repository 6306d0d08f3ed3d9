"""
Shared test fixtures and helpers for the corim-signer test suite.

Provides builders for unsigned CoRIM CBOR, CorimMeta JSON, JWK signing
keys, and DER certificate chains. Keys and certificates are generated
per test session with cryptography, so no binary fixtures are checked in.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import cbor2
import pytest
import structlog
from cbor2 import CBORTag
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.x509.oid import NameOID

from corim_signer.domain.corim import UnsignedCorim
from corim_signer.domain.meta import CorimMeta

META_DOCUMENT: dict[str, Any] = {
    "signer": {"name": "ACME Ltd signing key", "uri": "https://acme.example"},
    "validity": {"not-before": "2021-12-31T00:00:00Z", "not-after": "2025-12-31T00:00:00Z"},
}


@pytest.fixture(autouse=True)
def _reset_structlog():
    """main() binds structlog to the captured stderr; restore defaults after each test."""
    yield
    structlog.reset_defaults()


# ─────────────────────── CoRIM / Meta builders ───────────────────────


def make_corim_cbor(
    corim_id: Any = "urn:example:corim:1",
    tags: list[Any] | None = None,
    **extra: Any,
) -> bytes:
    """Build tagged unsigned-corim CBOR; `extra` maps corim-map keys (as k<N>) to values."""
    corim_map: dict[int, Any] = {0: corim_id}
    corim_map[1] = [CBORTag(506, b"\xa1\x00\x01")] if tags is None else tags
    for key, value in extra.items():
        corim_map[int(key.removeprefix("k"))] = value
    return cbor2.dumps(CBORTag(501, corim_map))


def make_meta_json(**overrides: Any) -> bytes:
    document = json.loads(json.dumps(META_DOCUMENT))
    document.update(overrides)
    return json.dumps(document).encode("utf-8")


@pytest.fixture()
def corim_cbor() -> bytes:
    return make_corim_cbor()


@pytest.fixture()
def corim(corim_cbor: bytes) -> UnsignedCorim:
    return UnsignedCorim.from_cbor(corim_cbor).value()


@pytest.fixture()
def meta() -> CorimMeta:
    return CorimMeta.from_json(make_meta_json()).value()


# ─────────────────────── JWK builders ───────────────────────


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _int_b64url(value: int, size: int | None = None) -> str:
    length = size if size is not None else max(1, (value.bit_length() + 7) // 8)
    return b64url(value.to_bytes(length, "big"))


def ec_jwk(key: ec.EllipticCurvePrivateKey, **extra: Any) -> dict[str, Any]:
    size = (key.curve.key_size + 7) // 8
    numbers = key.private_numbers()
    crv = {"secp256r1": "P-256", "secp384r1": "P-384", "secp521r1": "P-521"}[key.curve.name]
    return {
        "kty": "EC",
        "crv": crv,
        "x": _int_b64url(numbers.public_numbers.x, size),
        "y": _int_b64url(numbers.public_numbers.y, size),
        "d": _int_b64url(numbers.private_value, size),
        **extra,
    }


def ed25519_jwk(key: ed25519.Ed25519PrivateKey, **extra: Any) -> dict[str, Any]:
    return {
        "kty": "OKP",
        "crv": "Ed25519",
        "x": b64url(key.public_key().public_bytes_raw()),
        "d": b64url(key.private_bytes_raw()),
        **extra,
    }


def rsa_jwk(key: rsa.RSAPrivateKey, with_primes: bool = True, **extra: Any) -> dict[str, Any]:
    numbers = key.private_numbers()
    jwk: dict[str, Any] = {
        "kty": "RSA",
        "n": _int_b64url(numbers.public_numbers.n),
        "e": _int_b64url(numbers.public_numbers.e),
        "d": _int_b64url(numbers.d),
    }
    if with_primes:
        jwk.update(
            p=_int_b64url(numbers.p),
            q=_int_b64url(numbers.q),
            dp=_int_b64url(numbers.dmp1),
            dq=_int_b64url(numbers.dmq1),
            qi=_int_b64url(numbers.iqmp),
        )
    jwk.update(extra)
    return jwk


def jwk_bytes(jwk: dict[str, Any]) -> bytes:
    return json.dumps(jwk).encode("utf-8")


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ed25519_key() -> ed25519.Ed25519PrivateKey:
    return ed25519.Ed25519PrivateKey.generate()


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


# ─────────────────────── Certificate builders ───────────────────────


def make_certificate(
    common_name: str,
    subject_key: ec.EllipticCurvePrivateKey | ed25519.Ed25519PrivateKey,
    issuer_name: str,
    issuer_key: ec.EllipticCurvePrivateKey,
    is_ca: bool = False,
) -> bytes:
    """Issue a DER certificate for `subject_key`, signed by `issuer_key`."""
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name)]))
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)


@dataclass(frozen=True)
class CertChain:
    """A leaf issued under three intermediates (I1 signs the leaf, I3 is closest to the root)."""

    leaf: bytes
    intermediates: tuple[bytes, bytes, bytes]

    @property
    def intermediates_der(self) -> bytes:
        return b"".join(self.intermediates)


@pytest.fixture(scope="session")
def cert_chain(ec_key: ec.EllipticCurvePrivateKey) -> CertChain:
    root_key = ec.generate_private_key(ec.SECP256R1())
    i3_key = ec.generate_private_key(ec.SECP256R1())
    i2_key = ec.generate_private_key(ec.SECP256R1())
    i1_key = ec.generate_private_key(ec.SECP256R1())
    i3 = make_certificate("Intermediate 3", i3_key, "Test Root", root_key, is_ca=True)
    i2 = make_certificate("Intermediate 2", i2_key, "Intermediate 3", i3_key, is_ca=True)
    i1 = make_certificate("Intermediate 1", i1_key, "Intermediate 2", i2_key, is_ca=True)
    leaf = make_certificate("CoRIM Signer", ec_key, "Intermediate 1", i1_key)
    return CertChain(leaf=leaf, intermediates=(i1, i2, i3))
