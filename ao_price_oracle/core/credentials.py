"""Signing credential loading behind a small provider interface.

The oracle signs its update messages with an Arweave RSA wallet supplied as a
JSON Web Key. Parsing and validation live here so an alternate signing
backend only has to satisfy ``Signer`` and ``CredentialProvider``.
"""

import base64
import hashlib
import json
from typing import Any, Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ao_price_oracle.core.config import Settings
from ao_price_oracle.core.errors import ConfigurationError

ARWEAVE_SIGNATURE_TYPE = 1
ARWEAVE_KEY_LENGTH = 512
_PSS_SALT_LENGTH = 32
_REQUIRED_JWK_FIELDS = ("kty", "n", "e", "d")


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _b64url_int(value: str) -> int:
    return int.from_bytes(b64url_decode(value), "big")


class Signer(Protocol):
    """Anything able to sign ANS-104 data items."""

    signature_type: int
    owner: bytes

    @property
    def address(self) -> str: ...

    def sign(self, message: bytes) -> bytes: ...


class CredentialProvider(Protocol):
    """Source of the signer used by the submission client."""

    def load_signer(self) -> Signer: ...


class ArweaveSigner:
    """RSA-PSS/SHA-256 signer for an Arweave wallet key."""

    signature_type = ARWEAVE_SIGNATURE_TYPE

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        if private_key.key_size != ARWEAVE_KEY_LENGTH * 8:
            raise ConfigurationError("Arweave wallet keys must be 4096-bit RSA keys")

        modulus = private_key.public_key().public_numbers().n
        self._private_key = private_key
        self.owner = modulus.to_bytes(ARWEAVE_KEY_LENGTH, "big")

    @property
    def address(self) -> str:
        """Wallet address derived from the public modulus; safe to log."""

        return b64url_encode(hashlib.sha256(self.owner).digest())

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(
            message,
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=_PSS_SALT_LENGTH),
            hashes.SHA256(),
        )

    def __repr__(self) -> str:
        return f"ArweaveSigner(address={self.address!r})"


def parse_jwk(raw: str) -> dict[str, Any]:
    """Parse and validate a JWK document, raising ConfigurationError on any defect."""

    if not raw or not raw.strip():
        raise ConfigurationError("ORACLE_PK environment variable is required")

    try:
        jwk = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError("ORACLE_PK must be a valid JSON Web Key (JWK)") from exc

    if not isinstance(jwk, dict):
        raise ConfigurationError("ORACLE_PK must be a valid JSON Web Key (JWK)")

    missing = [name for name in _REQUIRED_JWK_FIELDS if not jwk.get(name)]
    if missing:
        raise ConfigurationError(f"Invalid JWK format in ORACLE_PK: missing {', '.join(missing)}")
    if jwk["kty"] != "RSA":
        raise ConfigurationError(f"Unsupported JWK key type {jwk['kty']!r}, expected 'RSA'")

    return jwk


def private_key_from_jwk(jwk: dict[str, Any]) -> rsa.RSAPrivateKey:
    """Build an RSA private key, recovering CRT parameters when the JWK omits them."""

    try:
        n = _b64url_int(jwk["n"])
        e = _b64url_int(jwk["e"])
        d = _b64url_int(jwk["d"])
        if all(jwk.get(name) for name in ("p", "q")):
            p = _b64url_int(jwk["p"])
            q = _b64url_int(jwk["q"])
        else:
            p, q = rsa.rsa_recover_prime_factors(n, e, d)

        numbers = rsa.RSAPrivateNumbers(
            p=p,
            q=q,
            d=d,
            dmp1=_b64url_int(jwk["dp"]) if jwk.get("dp") else rsa.rsa_crt_dmp1(d, p),
            dmq1=_b64url_int(jwk["dq"]) if jwk.get("dq") else rsa.rsa_crt_dmq1(d, q),
            iqmp=_b64url_int(jwk["qi"]) if jwk.get("qi") else rsa.rsa_crt_iqmp(p, q),
            public_numbers=rsa.RSAPublicNumbers(e=e, n=n),
        )
        return numbers.private_key()
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"ORACLE_PK is not a usable RSA key: {exc}") from exc


def load_signer_from_jwk(raw: str) -> ArweaveSigner:
    return ArweaveSigner(private_key_from_jwk(parse_jwk(raw)))


class EnvJwkCredentialProvider:
    """Load the oracle wallet from the ORACLE_PK setting."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def load_signer(self) -> ArweaveSigner:
        return load_signer_from_jwk(self._settings.ORACLE_PK)
