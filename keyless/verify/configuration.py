"""Governance parameters a keyless signature is checked against."""

from typing import Self

from pydantic import BaseModel, ConfigDict

from keyless.chain.resources import (
    Groth16VerificationKeyResource,
    KeylessConfigurationResource,
)
from keyless.crypto.ephemeral import MAX_COMMITED_EPK_BYTES, EphemeralPublicKey
from keyless.crypto.groth16 import Groth16VerificationKey

EPK_HORIZON_SECS = 10_000_000
MAX_EXTRA_FIELD_BYTES = 350
MAX_JWT_HEADER_B64_BYTES = 300
MAX_ISS_VAL_BYTES = 120


class KeylessConfiguration(BaseModel):
    """Verification key plus the circuit and horizon limits."""

    model_config = ConfigDict(frozen=True)

    verification_key: Groth16VerificationKey
    max_exp_horizon_secs: int = EPK_HORIZON_SECS
    training_wheels_pubkey: EphemeralPublicKey | None = None
    max_extra_field_bytes: int = MAX_EXTRA_FIELD_BYTES
    max_jwt_header_b64_bytes: int = MAX_JWT_HEADER_B64_BYTES
    max_iss_val_bytes: int = MAX_ISS_VAL_BYTES
    max_commited_epk_bytes: int = MAX_COMMITED_EPK_BYTES

    @classmethod
    def from_resources(
        cls,
        verification_key: Groth16VerificationKeyResource,
        config: KeylessConfigurationResource,
    ) -> Self:
        """Build from the on-chain Configuration and Groth16VerificationKey."""
        if len(verification_key.gamma_abc_g1) != 2:
            msg = (
                "Expected 2 gamma_abc_g1 points, got "
                f"{len(verification_key.gamma_abc_g1)}"
            )
            raise ValueError(msg)
        training_wheels_hex = config.training_wheels_pubkey.value()
        return cls(
            verification_key=Groth16VerificationKey(
                alpha_g1=verification_key.alpha_g1,
                beta_g2=verification_key.beta_g2,
                gamma_g2=verification_key.gamma_g2,
                delta_g2=verification_key.delta_g2,
                gamma_abc_g1=tuple(verification_key.gamma_abc_g1),
            ),
            max_exp_horizon_secs=config.max_exp_horizon_secs,
            training_wheels_pubkey=(
                EphemeralPublicKey(key=training_wheels_hex)
                if training_wheels_hex is not None
                else None
            ),
            max_extra_field_bytes=config.max_extra_field_bytes,
            max_jwt_header_b64_bytes=config.max_jwt_header_b64_bytes,
            max_iss_val_bytes=config.max_iss_val_bytes,
            max_commited_epk_bytes=config.max_commited_epk_bytes,
        )
