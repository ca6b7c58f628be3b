"""The single field element binding a keyless signature to its proof.

The circuit exposes one public input: a Poseidon hash over the ephemeral
public key, identity commitment, expiry data, issuer, optional extra field,
JWT header, issuer JWK and the override audience. Any change to these
inputs changes the hash and invalidates the proof.
"""

import logging

from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.crypto.keys import MAX_AUD_VAL_BYTES, KeylessAnyPublicKey
from keyless.crypto.poseidon import (
    MAX_NUM_INPUT_SCALARS,
    bytes_to_int_le,
    hash_str_to_field,
    pad_and_pack_bytes_with_len,
    poseidon_hash,
)
from keyless.crypto.signature import KeylessSignature
from keyless.crypto.types import EphemeralCertificateVariant
from keyless.jwks.models import MoveJWK, base64url_encode
from keyless.verify.configuration import KeylessConfiguration

_logger = logging.getLogger(__name__)

# Stands in for an absent extra field so the hashed layout stays fixed
EXTRA_FIELD_PLACEHOLDER = " "


def _check_length(name: str, value: bytes, maximum: int) -> None:
    if len(value) > maximum:
        raise KeylessError(
            KeylessErrorType.PUBLIC_INPUT_TOO_LONG,
            details=f"{name} is {len(value)} bytes, maximum is {maximum}",
        )


def get_public_inputs_hash(
    *,
    public_key: KeylessAnyPublicKey,
    signature: KeylessSignature,
    jwk: MoveJWK,
    config: KeylessConfiguration,
) -> int:
    """Compute the public-inputs hash for a zero-knowledge keyless signature."""
    certificate = signature.ephemeral_certificate
    if certificate.variant != EphemeralCertificateVariant.ZERO_KNOWLEDGE:
        raise KeylessError(
            KeylessErrorType.SIGNATURE_TYPE_INVALID,
            details="Public inputs are only defined for zero-knowledge certificates",
        )
    keyless_key = public_key.keyless_public_key

    epk_bytes = signature.ephemeral_public_key.bcs_to_bytes()
    header_b64 = base64url_encode(signature.jwt_header.encode("utf-8")) + "."
    extra_field = (
        certificate.extra_field
        if certificate.extra_field is not None
        else EXTRA_FIELD_PLACEHOLDER
    )
    override_aud = certificate.override_aud_val or ""

    _check_length("Ephemeral public key", epk_bytes, config.max_commited_epk_bytes)
    _check_length("iss", keyless_key.iss.encode("utf-8"), config.max_iss_val_bytes)
    _check_length("Extra field", extra_field.encode("utf-8"), config.max_extra_field_bytes)
    _check_length("JWT header", header_b64.encode("utf-8"), config.max_jwt_header_b64_bytes)
    _check_length("Override aud", override_aud.encode("utf-8"), MAX_AUD_VAL_BYTES)

    fields = pad_and_pack_bytes_with_len(epk_bytes, config.max_commited_epk_bytes)
    fields.append(bytes_to_int_le(keyless_key.id_commitment))
    fields.append(signature.expiry_date_secs)
    fields.append(certificate.exp_horizon_secs)
    fields.append(hash_str_to_field(keyless_key.iss, config.max_iss_val_bytes))
    fields.append(1 if certificate.extra_field is not None else 0)
    fields.append(hash_str_to_field(extra_field, config.max_extra_field_bytes))
    fields.append(hash_str_to_field(header_b64, config.max_jwt_header_b64_bytes))
    fields.append(jwk.to_scalar())
    fields.append(hash_str_to_field(override_aud, MAX_AUD_VAL_BYTES))
    fields.append(1 if certificate.override_aud_val is not None else 0)

    if len(fields) > MAX_NUM_INPUT_SCALARS:
        raise KeylessError(
            KeylessErrorType.PUBLIC_INPUT_TOO_LONG,
            details=f"{len(fields)} public input fields exceed {MAX_NUM_INPUT_SCALARS}",
        )
    public_inputs_hash = poseidon_hash(fields)
    _logger.debug("Computed public inputs hash over %d fields", len(fields))
    return public_inputs_hash
