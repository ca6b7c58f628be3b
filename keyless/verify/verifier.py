"""Keyless signature verification.

Checks run in a fixed order and stop at the first failure: certificate and
proof type, signature expiry, expiry horizon, ephemeral signature, Groth16
proof over the public-inputs hash, then the training wheels signature when
the configuration requires one.
"""

import logging
import time
from collections.abc import Callable

from keyless.chain.resolver import KeylessStateResolver
from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.crypto.bn254 import PointDecodingError
from keyless.crypto.groth16 import Groth16ProofAndStatement, verify_proof
from keyless.crypto.keys import KeylessAnyPublicKey
from keyless.crypto.signature import KeylessSignature
from keyless.crypto.types import EphemeralCertificateVariant, ZkpVariant
from keyless.jwks.models import MoveJWK
from keyless.verify.configuration import KeylessConfiguration
from keyless.verify.public_inputs import get_public_inputs_hash

_logger = logging.getLogger(__name__)


def verify_keyless_signature_with_jwk_and_config(
    *,
    public_key: KeylessAnyPublicKey,
    message: bytes,
    signature: KeylessSignature,
    jwk: MoveJWK,
    config: KeylessConfiguration,
    now: float | None = None,
) -> None:
    """Verify a keyless signature, raising ``KeylessError`` on the first failure."""
    if not isinstance(signature, KeylessSignature):
        raise KeylessError(
            KeylessErrorType.SIGNATURE_TYPE_INVALID,
            details="Not a keyless signature",
        )
    certificate = signature.ephemeral_certificate
    if certificate.variant != EphemeralCertificateVariant.ZERO_KNOWLEDGE:
        raise KeylessError(
            KeylessErrorType.SIGNATURE_TYPE_INVALID,
            details="Unsupported ephemeral certificate variant",
        )
    if certificate.proof.variant != ZkpVariant.GROTH16:
        raise KeylessError(
            KeylessErrorType.SIGNATURE_TYPE_INVALID,
            details="Unsupported proof variant for ZeroKnowledgeSig",
        )
    groth16_proof = certificate.proof.proof

    current = int(time.time() if now is None else now)
    if signature.expiry_date_secs < current:
        raise KeylessError(
            KeylessErrorType.SIGNATURE_EXPIRED,
            details=f"expiry_date_secs {signature.expiry_date_secs} is before {current}",
        )
    if certificate.exp_horizon_secs > config.max_exp_horizon_secs:
        raise KeylessError(
            KeylessErrorType.MAX_EXPIRY_HORIZON_EXCEEDED,
            details=(
                f"exp_horizon_secs {certificate.exp_horizon_secs} exceeds "
                f"{config.max_exp_horizon_secs}"
            ),
        )
    if not signature.ephemeral_public_key.verify_signature(
        message, signature.ephemeral_signature
    ):
        raise KeylessError(KeylessErrorType.EPHEMERAL_SIGNATURE_VERIFICATION_FAILED)
    _logger.debug("Ephemeral signature verified")

    public_inputs_hash = get_public_inputs_hash(
        public_key=public_key, signature=signature, jwk=jwk, config=config
    )
    try:
        proof_valid = verify_proof(
            config.verification_key, public_inputs_hash, groth16_proof
        )
    except PointDecodingError as e:
        raise KeylessError(
            KeylessErrorType.PROOF_VERIFICATION_FAILED,
            details="Malformed proof or verification key encoding",
            inner_error=e,
        ) from e
    if not proof_valid:
        raise KeylessError(KeylessErrorType.PROOF_VERIFICATION_FAILED)
    _logger.debug("Groth16 proof verified")

    if config.training_wheels_pubkey is not None:
        training_wheels_signature = certificate.training_wheels_signature
        if training_wheels_signature is None:
            raise KeylessError(KeylessErrorType.TRAINING_WHEELS_SIGNATURE_MISSING)
        statement = Groth16ProofAndStatement.create(groth16_proof, public_inputs_hash)
        if not config.training_wheels_pubkey.verify_signature(
            statement.hash(), training_wheels_signature
        ):
            raise KeylessError(
                KeylessErrorType.TRAINING_WHEELS_SIGNATURE_VERIFICATION_FAILED
            )
        _logger.debug("Training wheels signature verified")


def verify_keyless_signature(
    *,
    public_key: KeylessAnyPublicKey,
    message: bytes,
    signature: KeylessSignature,
    jwk: MoveJWK,
    config: KeylessConfiguration,
    now: float | None = None,
) -> bool:
    """Fail-closed boolean form of ``verify_keyless_signature_with_jwk_and_config``."""
    try:
        verify_keyless_signature_with_jwk_and_config(
            public_key=public_key,
            message=message,
            signature=signature,
            jwk=jwk,
            config=config,
            now=now,
        )
    except KeylessError as e:
        _logger.debug("Keyless signature rejected: %s", e.error_type)
        return False
    return True


class KeylessVerifier:
    """Verifies keyless signatures against state resolved from one network."""

    def __init__(
        self,
        resolver: KeylessStateResolver,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._resolver = resolver
        self._clock = clock

    async def resolve_and_verify(
        self,
        *,
        public_key: KeylessAnyPublicKey,
        message: bytes,
        signature: KeylessSignature,
        jwk: MoveJWK | None = None,
        config: KeylessConfiguration | None = None,
        throw_error_with_reason: bool = False,
    ) -> bool:
        """Fetch whatever configuration or JWK was not supplied, then verify.

        Returns ``False`` on any classified failure unless
        ``throw_error_with_reason`` is set, in which case the
        ``KeylessError`` propagates.
        """
        try:
            if not isinstance(signature, KeylessSignature):
                raise KeylessError(
                    KeylessErrorType.SIGNATURE_TYPE_INVALID,
                    details="Not a keyless signature",
                )
            if config is None:
                config = await self._resolver.get_keyless_config()
            if jwk is None:
                jwk = await self._resolver.fetch_jwk(
                    public_key, signature.get_jwk_kid()
                )
            verify_keyless_signature_with_jwk_and_config(
                public_key=public_key,
                message=message,
                signature=signature,
                jwk=jwk,
                config=config,
                now=self._clock(),
            )
        except KeylessError as e:
            if throw_error_with_reason:
                raise
            _logger.info("Keyless signature rejected: %s", e.error_type)
            return False
        return True
