"""Pydantic models of the on-chain keyless resources as served by the REST API."""

from pydantic import BaseModel, ConfigDict

from keyless.jwks.models import MoveJWK

ROOT_ADDRESS = "0x1"
CONFIGURATION_RESOURCE = "0x1::keyless_account::Configuration"
VERIFICATION_KEY_RESOURCE = "0x1::keyless_account::Groth16VerificationKey"
PATCHED_JWKS_RESOURCE = "0x1::jwks::PatchedJWKs"
FEDERATED_JWKS_RESOURCE = "0x1::jwks::FederatedJWKs"
RSA_JWK_TYPE_NAME = "0x1::jwks::RSA_JWK"


class MoveOption(BaseModel):
    """A Move ``Option<T>``, rendered by the API as a 0-or-1 element vector."""

    vec: list[str] = []

    def value(self) -> str | None:
        return self.vec[0] if self.vec else None


class KeylessConfigurationResource(BaseModel):
    """``0x1::keyless_account::Configuration``."""

    model_config = ConfigDict(extra="ignore")

    override_aud_vals: list[str] = []
    max_signatures_per_txn: int = 3
    max_exp_horizon_secs: int
    training_wheels_pubkey: MoveOption = MoveOption()
    max_commited_epk_bytes: int
    max_iss_val_bytes: int
    max_extra_field_bytes: int
    max_jwt_header_b64_bytes: int


class Groth16VerificationKeyResource(BaseModel):
    """``0x1::keyless_account::Groth16VerificationKey`` with hex-encoded points."""

    model_config = ConfigDict(extra="ignore")

    alpha_g1: str
    beta_g2: str
    gamma_g2: str
    delta_g2: str
    gamma_abc_g1: list[str]


class MoveAnyVariant(BaseModel):
    """A ``copyable_any::Any``: type name plus BCS payload."""

    type_name: str = RSA_JWK_TYPE_NAME
    data: str


class MoveJwkStruct(BaseModel):
    variant: MoveAnyVariant


class ProviderJwks(BaseModel):
    """JWKs of one issuer; ``issuer`` is the hex of its ASCII bytes."""

    issuer: str
    version: int = 0
    jwks: list[MoveJwkStruct]

    def issuer_name(self) -> str:
        return bytes.fromhex(self.issuer.removeprefix("0x")).decode("utf-8")

    def rsa_jwks(self) -> list[MoveJWK]:
        """Decode the RSA entries; other key types are skipped."""
        return [
            MoveJWK.from_bytes(bytes.fromhex(entry.variant.data.removeprefix("0x")))
            for entry in self.jwks
            if entry.variant.type_name == RSA_JWK_TYPE_NAME
        ]


class AllProvidersJwks(BaseModel):
    entries: list[ProviderJwks]


class JwksResource(BaseModel):
    """``0x1::jwks::PatchedJWKs`` or ``0x1::jwks::FederatedJWKs``."""

    model_config = ConfigDict(extra="ignore")

    jwks: AllProvidersJwks

    def by_issuer(self) -> dict[str, list[MoveJWK]]:
        return {entry.issuer_name(): entry.rsa_jwks() for entry in self.jwks.entries}

