"""Shared fixtures: a throwaway Arweave-sized wallet and deterministic settings."""

import json

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from ao_price_oracle.core.config import Settings
from ao_price_oracle.core.credentials import ArweaveSigner, b64url_encode

PROCESS_ID = b64url_encode(bytes(range(32)))


def _b64url_uint(value: int) -> str:
    return b64url_encode(value.to_bytes((value.bit_length() + 7) // 8, "big"))


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=4096)


@pytest.fixture(scope="session")
def jwk(rsa_key: rsa.RSAPrivateKey) -> dict[str, str]:
    numbers = rsa_key.private_numbers()
    return {
        "kty": "RSA",
        "n": _b64url_uint(numbers.public_numbers.n),
        "e": _b64url_uint(numbers.public_numbers.e),
        "d": _b64url_uint(numbers.d),
        "p": _b64url_uint(numbers.p),
        "q": _b64url_uint(numbers.q),
        "dp": _b64url_uint(numbers.dmp1),
        "dq": _b64url_uint(numbers.dmq1),
        "qi": _b64url_uint(numbers.iqmp),
    }


@pytest.fixture(scope="session")
def signer(rsa_key: rsa.RSAPrivateKey) -> ArweaveSigner:
    return ArweaveSigner(rsa_key)


@pytest.fixture
def settings(jwk: dict[str, str]) -> Settings:
    return Settings(
        ORACLE_PK=json.dumps(jwk),
        PROCESS_ID=PROCESS_ID,
        UPDATE_INTERVAL_MS=60_000,
        ARWEAVE_GRAPHQL_URL="https://arweave.test/graphql",
        ARWEAVE_DATA_URL="https://arweave.test",
        AO_MU_URL="https://mu.test",
        AO_CU_URL="https://cu.test",
    )
