"""Shared test fixtures for keyless verification."""

from collections.abc import Callable
from typing import Any, NamedTuple

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from py_ecc.optimized_bn128 import G1, G2, curve_order, multiply

from keyless.chain.resources import RSA_JWK_TYPE_NAME
from keyless.crypto.bn254 import compress_g1, compress_g2
from keyless.crypto.ephemeral import EphemeralKeyPair, EphemeralSignature
from keyless.crypto.groth16 import (
    Groth16ProofAndStatement,
    Groth16VerificationKey,
    Groth16Zkp,
    ZkProof,
)
from keyless.crypto.jwt_claims import jwt_header_json
from keyless.crypto.keys import KeylessAnyPublicKey, KeylessPublicKey
from keyless.crypto.signature import KeylessSignature, ZeroKnowledgeSig
from keyless.jwks.models import MoveJWK
from keyless.verify.configuration import EPK_HORIZON_SECS, KeylessConfiguration
from keyless.verify.public_inputs import get_public_inputs_hash

ISSUER = "test.oidc.provider"
AUDIENCE = "test-keyless-dapp"
SUBJECT = "test-user-0123456789"
KID = "test-rsa"
PEPPER = bytes(30) + b"\x01"
EPHEMERAL_SEED = bytes([0x11]) * 32
TRAINING_WHEELS_SEED = bytes([0x22]) * 32
BLINDER = bytes([0x42]) * 31
EXPIRY_DATE_SECS = 2_700_000_000
NOW = 1_724_000_000
MESSAGE = b"keyless test message"

# Toxic waste of the test circuit setup
ALPHA, BETA, GAMMA, DELTA = 7919, 104729, 1299709, 15485863
IC0, IC1 = 32452843, 49979687


class TrapdoorCircuit:
    """Groth16 setup with known toxic waste, able to prove any public input."""

    def __init__(self) -> None:
        self.verification_key = Groth16VerificationKey(
            alpha_g1=compress_g1(multiply(G1, ALPHA)),
            beta_g2=compress_g2(multiply(G2, BETA)),
            gamma_g2=compress_g2(multiply(G2, GAMMA)),
            delta_g2=compress_g2(multiply(G2, DELTA)),
            gamma_abc_g1=(
                compress_g1(multiply(G1, IC0)),
                compress_g1(multiply(G1, IC1)),
            ),
        )

    def prove(self, public_inputs_hash: int, a: int = 1111, b: int = 2222) -> Groth16Zkp:
        """Pick C so that e(A, B) = e(alpha, beta) e(IC, gamma) e(C, delta)."""
        ic = (IC0 + IC1 * public_inputs_hash) % curve_order
        c = (a * b - ALPHA * BETA - ic * GAMMA) * pow(DELTA, -1, curve_order)
        return Groth16Zkp(
            a=compress_g1(multiply(G1, a)),
            b=compress_g2(multiply(G2, b)),
            c=compress_g1(multiply(G1, c % curve_order)),
        )


class KeylessFixture(NamedTuple):
    """A valid signature together with everything needed to verify it."""

    public_key: KeylessAnyPublicKey
    signature: KeylessSignature
    jwk: MoveJWK
    config: KeylessConfiguration
    message: bytes


SignKeyless = Callable[..., KeylessFixture]


class FakeResourceReader:
    """In-memory ``ResourceReader`` that records every read."""

    def __init__(self, resources: dict[tuple[str, str], dict[str, Any]]) -> None:
        self.resources = resources
        self.calls: list[tuple[str, str]] = []

    async def get_account_resource(
        self, address: str, resource_type: str
    ) -> dict[str, Any]:
        self.calls.append((address, resource_type))
        if (address, resource_type) not in self.resources:
            url = f"http://fullnode/v1/accounts/{address}/resource/{resource_type}"
            request = httpx.Request("GET", url)
            raise httpx.HTTPStatusError(
                "Resource not found",
                request=request,
                response=httpx.Response(404, request=request),
            )
        return self.resources[(address, resource_type)]


def configuration_resource(config: KeylessConfiguration) -> dict[str, Any]:
    """Render ``config`` the way the REST API returns the Configuration resource."""
    training_wheels = config.training_wheels_pubkey
    return {
        "override_aud_vals": [],
        "max_signatures_per_txn": 3,
        "max_exp_horizon_secs": str(config.max_exp_horizon_secs),
        "training_wheels_pubkey": {
            "vec": ["0x" + training_wheels.key.hex()] if training_wheels else []
        },
        "max_commited_epk_bytes": config.max_commited_epk_bytes,
        "max_iss_val_bytes": config.max_iss_val_bytes,
        "max_extra_field_bytes": config.max_extra_field_bytes,
        "max_jwt_header_b64_bytes": config.max_jwt_header_b64_bytes,
    }


def verification_key_resource(config: KeylessConfiguration) -> dict[str, Any]:
    vk = config.verification_key
    return {
        "alpha_g1": "0x" + vk.alpha_g1.hex(),
        "beta_g2": "0x" + vk.beta_g2.hex(),
        "gamma_g2": "0x" + vk.gamma_g2.hex(),
        "delta_g2": "0x" + vk.delta_g2.hex(),
        "gamma_abc_g1": ["0x" + point.hex() for point in vk.gamma_abc_g1],
    }


def jwks_resource(jwks_by_issuer: dict[str, list[MoveJWK]]) -> dict[str, Any]:
    """Render JWKs the way the REST API returns PatchedJWKs or FederatedJWKs."""
    return {
        "jwks": {
            "entries": [
                {
                    "issuer": "0x" + issuer.encode().hex(),
                    "version": "1",
                    "jwks": [
                        {
                            "variant": {
                                "type_name": RSA_JWK_TYPE_NAME,
                                "data": "0x" + jwk.bcs_to_bytes().hex(),
                            }
                        }
                        for jwk in jwks
                    ],
                }
                for issuer, jwks in jwks_by_issuer.items()
            ]
        }
    }


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("KEYLESS_NETWORK", "local")


@pytest.fixture(scope="session")
def circuit() -> TrapdoorCircuit:
    return TrapdoorCircuit()


@pytest.fixture(scope="session")
def issuer_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def issuer_jwk(issuer_private_key: rsa.RSAPrivateKey) -> MoveJWK:
    return MoveJWK.from_rsa_public_key(issuer_private_key.public_key(), KID)


@pytest.fixture(scope="session")
def ephemeral_key_pair() -> EphemeralKeyPair:
    return EphemeralKeyPair.from_seed(
        EPHEMERAL_SEED, expiry_date_secs=EXPIRY_DATE_SECS, blinder=BLINDER
    )


@pytest.fixture(scope="session")
def training_wheels_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.from_private_bytes(TRAINING_WHEELS_SEED)


@pytest.fixture(scope="session")
def id_token(
    issuer_private_key: rsa.RSAPrivateKey, ephemeral_key_pair: EphemeralKeyPair
) -> str:
    """An RS256 id_token whose nonce commits to the ephemeral key pair."""
    claims = {
        "iss": ISSUER,
        "aud": AUDIENCE,
        "sub": SUBJECT,
        "email": "alice@example.com",
        "nonce": ephemeral_key_pair.nonce,
        "iat": NOW,
        "exp": NOW + 3600,
    }
    return jwt.encode(
        claims, issuer_private_key, algorithm="RS256", headers={"kid": KID}
    )


@pytest.fixture(scope="session")
def keyless_public_key(id_token: str) -> KeylessPublicKey:
    return KeylessPublicKey.from_jwt_and_pepper(id_token, PEPPER)


@pytest.fixture(scope="session")
def keyless_config(circuit: TrapdoorCircuit) -> KeylessConfiguration:
    return KeylessConfiguration(verification_key=circuit.verification_key)


@pytest.fixture(scope="session")
def sign_keyless(
    circuit: TrapdoorCircuit,
    ephemeral_key_pair: EphemeralKeyPair,
    id_token: str,
    keyless_public_key: KeylessPublicKey,
    issuer_jwk: MoveJWK,
    keyless_config: KeylessConfiguration,
) -> SignKeyless:
    """Build a keyless signature with a valid proof, overriding any input."""

    def _sign(
        *,
        public_key: KeylessAnyPublicKey | None = None,
        jwk: MoveJWK | None = None,
        config: KeylessConfiguration | None = None,
        message: bytes = MESSAGE,
        exp_horizon_secs: int = EPK_HORIZON_SECS,
        extra_field: str | None = None,
        override_aud_val: str | None = None,
        training_wheels_key: Ed25519PrivateKey | None = None,
    ) -> KeylessFixture:
        if public_key is None:
            public_key = keyless_public_key
        if jwk is None:
            jwk = issuer_jwk
        if config is None:
            config = keyless_config
        fields: dict[str, Any] = {
            "jwt_header": jwt_header_json(id_token),
            "expiry_date_secs": ephemeral_key_pair.expiry_date_secs,
            "ephemeral_public_key": ephemeral_key_pair.public_key,
            "ephemeral_signature": ephemeral_key_pair.sign(message, now=NOW),
        }

        def _certificate(proof: Groth16Zkp, tw_sig: EphemeralSignature | None):
            return ZeroKnowledgeSig(
                proof=ZkProof(proof=proof),
                exp_horizon_secs=exp_horizon_secs,
                extra_field=extra_field,
                override_aud_val=override_aud_val,
                training_wheels_signature=tw_sig,
            )

        placeholder = KeylessSignature(
            ephemeral_certificate=_certificate(
                Groth16Zkp(a=bytes(32), b=bytes(64), c=bytes(32)), None
            ),
            **fields,
        )
        public_inputs_hash = get_public_inputs_hash(
            public_key=public_key, signature=placeholder, jwk=jwk, config=config
        )
        proof = circuit.prove(public_inputs_hash)
        tw_sig = None
        if training_wheels_key is not None:
            statement = Groth16ProofAndStatement.create(proof, public_inputs_hash)
            tw_sig = EphemeralSignature(signature=training_wheels_key.sign(statement.hash()))
        signature = KeylessSignature(
            ephemeral_certificate=_certificate(proof, tw_sig), **fields
        )
        return KeylessFixture(public_key, signature, jwk, config, message)

    return _sign


@pytest.fixture(scope="session")
def keyless_fixture(sign_keyless: SignKeyless) -> KeylessFixture:
    return sign_keyless()
