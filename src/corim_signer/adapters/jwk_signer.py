"""
JWK signer adapter — COSE signatures from a JSON Web Key (RFC 7517).

Adapter layer — implements the Signer port using:
  - pydantic: parses and shape-checks the JWK JSON document
  - cryptography (PyCA): rebuilds the private key and computes signatures

Supported keys and their COSE algorithms:

  kty  crv / size   default alg   also accepted
  ───  ───────────  ───────────   ─────────────
  EC   P-256        ES256 (-7)
  EC   P-384        ES384 (-35)
  EC   P-521        ES512 (-36)
  OKP  Ed25519      EdDSA (-8)
  RSA  any          PS256 (-37)   PS384 (-38), PS512 (-39)

A JWK "alg" member overrides the default. Whether the key actually fits
the algorithm is checked when signing, so a mismatch surfaces as
SIGNING_ERROR from sign(), not from from_jwk().

ECDSA and PSS draw fresh randomness from the OS on every signature;
Ed25519 signatures are deterministic.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Literal, TypeAlias

import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from pydantic import BaseModel, ConfigDict
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()

PrivateKey: TypeAlias = ec.EllipticCurvePrivateKey | ed25519.Ed25519PrivateKey | rsa.RSAPrivateKey


@dataclass(frozen=True, slots=True)
class CoseAlgorithm:
    name: str
    cose_id: int
    family: Literal["EC", "OKP", "RSA"]
    hash_factory: type[hashes.HashAlgorithm] | None = None
    curve: type[ec.EllipticCurve] | None = None


ALGORITHMS: dict[str, CoseAlgorithm] = {
    "ES256": CoseAlgorithm("ES256", -7, "EC", hashes.SHA256, ec.SECP256R1),
    "ES384": CoseAlgorithm("ES384", -35, "EC", hashes.SHA384, ec.SECP384R1),
    "ES512": CoseAlgorithm("ES512", -36, "EC", hashes.SHA512, ec.SECP521R1),
    "EdDSA": CoseAlgorithm("EdDSA", -8, "OKP"),
    "PS256": CoseAlgorithm("PS256", -37, "RSA", hashes.SHA256),
    "PS384": CoseAlgorithm("PS384", -38, "RSA", hashes.SHA384),
    "PS512": CoseAlgorithm("PS512", -39, "RSA", hashes.SHA512),
}

_EC_CURVES: dict[str, ec.EllipticCurve] = {
    "P-256": ec.SECP256R1(),
    "P-384": ec.SECP384R1(),
    "P-521": ec.SECP521R1(),
}
_DEFAULT_EC_ALGORITHM = {"P-256": "ES256", "P-384": "ES384", "P-521": "ES512"}


class Jwk(BaseModel):
    """The private-key members of a JSON Web Key this adapter understands."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    kty: Literal["EC", "OKP", "RSA"]
    crv: str | None = None
    alg: str | None = None
    kid: str | None = None
    d: str | None = None
    x: str | None = None
    y: str | None = None
    n: str | None = None
    e: str | None = None
    p: str | None = None
    q: str | None = None
    dp: str | None = None
    dq: str | None = None
    qi: str | None = None

    def require(self, member: str) -> str:
        value = getattr(self, member)
        if not value:
            raise ValueError(f"{self.kty} JWK has no {member!r} member")
        return value


# ─────────────────────── JWK → private key ───────────────────────


def _b64url_bytes(value: str) -> bytes:
    # validate=True: a character outside the base64url alphabet is an error, not skipped
    return base64.b64decode(value + "=" * (-len(value) % 4), altchars=b"-_", validate=True)


def _b64url_int(value: str) -> int:
    return int.from_bytes(_b64url_bytes(value), "big")


def _ec_private_key(jwk: Jwk) -> ec.EllipticCurvePrivateKey:
    curve = _EC_CURVES.get(jwk.require("crv"))
    if curve is None:
        raise ValueError(f"unsupported EC curve {jwk.crv!r}")
    public_numbers = ec.EllipticCurvePublicNumbers(
        _b64url_int(jwk.require("x")), _b64url_int(jwk.require("y")), curve
    )
    return ec.EllipticCurvePrivateNumbers(_b64url_int(jwk.require("d")), public_numbers).private_key()


def _okp_private_key(jwk: Jwk) -> ed25519.Ed25519PrivateKey:
    if jwk.require("crv") != "Ed25519":
        raise ValueError(f"unsupported OKP curve {jwk.crv!r}")
    key = ed25519.Ed25519PrivateKey.from_private_bytes(_b64url_bytes(jwk.require("d")))
    if jwk.x is not None and key.public_key().public_bytes_raw() != _b64url_bytes(jwk.x):
        raise ValueError("OKP JWK public key 'x' does not match private key 'd'")
    return key


def _rsa_private_key(jwk: Jwk) -> rsa.RSAPrivateKey:
    n = _b64url_int(jwk.require("n"))
    e = _b64url_int(jwk.require("e"))
    d = _b64url_int(jwk.require("d"))
    if jwk.p and jwk.q:
        p, q = _b64url_int(jwk.p), _b64url_int(jwk.q)
    else:
        p, q = rsa.rsa_recover_prime_factors(n, e, d)
    dmp1 = _b64url_int(jwk.dp) if jwk.dp else rsa.rsa_crt_dmp1(d, p)
    dmq1 = _b64url_int(jwk.dq) if jwk.dq else rsa.rsa_crt_dmq1(d, q)
    iqmp = _b64url_int(jwk.qi) if jwk.qi else rsa.rsa_crt_iqmp(p, q)
    return rsa.RSAPrivateNumbers(p, q, d, dmp1, dmq1, iqmp, rsa.RSAPublicNumbers(e, n)).private_key()


def _default_algorithm(jwk: Jwk) -> str:
    match jwk.kty:
        case "EC":
            return _DEFAULT_EC_ALGORITHM.get(jwk.crv or "", "ES256")
        case "OKP":
            return "EdDSA"
        case "RSA":
            return "PS256"
    raise ValueError(f"unsupported key type {jwk.kty!r}")  # pragma: no cover


def _load(key_material: bytes) -> JwkSigner:
    jwk = Jwk.model_validate_json(key_material)
    algorithm_name = jwk.alg or _default_algorithm(jwk)
    algorithm = ALGORITHMS.get(algorithm_name)
    if algorithm is None:
        raise ValueError(f"unsupported algorithm {algorithm_name!r}")

    match jwk.kty:
        case "EC":
            private_key: PrivateKey = _ec_private_key(jwk)
        case "OKP":
            private_key = _okp_private_key(jwk)
        case "RSA":
            private_key = _rsa_private_key(jwk)

    signer = JwkSigner(private_key, algorithm, jwk.kid.encode("utf-8") if jwk.kid else None)
    log.info("signer.loaded", kty=jwk.kty, alg=signer.algorithm_name, kid=jwk.kid)
    return signer


# ─────────────────────── Public Signer Class ───────────────────────


class JwkSigner:
    """
    Sign COSE Sig_structure bytes with a private key taken from a JWK.

    Implements the Signer port. Instances hold no per-signature state;
    randomized algorithms get a fresh nonce on each sign() call.
    """

    def __init__(self, private_key: PrivateKey, algorithm: CoseAlgorithm, key_id: bytes | None = None) -> None:
        self._private_key = private_key
        self._algorithm = algorithm
        self._key_id = key_id

    @staticmethod
    def from_jwk(key_material: bytes) -> Result[JwkSigner]:
        """
        Build a signer from JWK JSON bytes.

        Returns Result.failure(DECODE_ERROR, ...) for malformed JSON, missing
        members, undecodable base64url, unsupported curves or algorithms,
        and inconsistent key material (e.g. an EC point not on its curve).
        """
        return Result.from_computation(
            lambda: _load(key_material),
            ErrorCode.DECODE_ERROR,
            "invalid JWK signing key",
        )

    @property
    def algorithm(self) -> int:
        return self._algorithm.cose_id

    @property
    def algorithm_name(self) -> str:
        return self._algorithm.name

    @property
    def key_id(self) -> bytes | None:
        return self._key_id

    def sign(self, to_be_signed: bytes) -> Result[bytes]:
        return Result.from_computation(
            lambda: self._do_sign(to_be_signed),
            ErrorCode.SIGNING_ERROR,
            f"{self._algorithm.name} signature failed",
        )

    def _do_sign(self, data: bytes) -> bytes:
        algorithm = self._algorithm
        key = self._private_key
        match algorithm.family:
            case "EC":
                if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, algorithm.curve):
                    raise ValueError(f"{algorithm.name} requires an EC key on {algorithm.curve.name}")
                der = key.sign(data, ec.ECDSA(algorithm.hash_factory()))
                r, s = decode_dss_signature(der)
                size = (key.curve.key_size + 7) // 8
                return r.to_bytes(size, "big") + s.to_bytes(size, "big")
            case "OKP":
                if not isinstance(key, ed25519.Ed25519PrivateKey):
                    raise ValueError(f"{algorithm.name} requires an Ed25519 key")
                return key.sign(data)
            case "RSA":
                if not isinstance(key, rsa.RSAPrivateKey):
                    raise ValueError(f"{algorithm.name} requires an RSA key")
                digest = algorithm.hash_factory()
                return key.sign(
                    data,
                    padding.PSS(mgf=padding.MGF1(digest), salt_length=digest.digest_size),
                    digest,
                )
        raise ValueError(f"unsupported algorithm family {algorithm.family!r}")  # pragma: no cover
