"""Keyless signatures and their ephemeral certificates."""

from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field

from keyless.core.bcs import BcsError, BcsSerializable, Deserializer, Serializer
from keyless.crypto.ephemeral import EphemeralPublicKey, EphemeralSignature
from keyless.crypto.groth16 import Groth16Zkp, ZkProof
from keyless.crypto.jwt_claims import parse_jwt_header
from keyless.crypto.keys import PEPPER_LENGTH
from keyless.crypto.types import (
    AnySignatureVariant,
    Bytes31,
    EphemeralCertificateVariant,
    HexBytes,
)


def _serialize_ephemeral_signature(
    serializer: Serializer, value: EphemeralSignature
) -> None:
    value.serialize(serializer)


class ZeroKnowledgeSig(BcsSerializable, BaseModel):
    """Certificate carrying a zero-knowledge proof of the OIDC login."""

    model_config = ConfigDict(frozen=True)

    variant: Literal[EphemeralCertificateVariant.ZERO_KNOWLEDGE] = (
        EphemeralCertificateVariant.ZERO_KNOWLEDGE
    )
    proof: ZkProof
    exp_horizon_secs: int
    extra_field: str | None = None
    override_aud_val: str | None = None
    training_wheels_signature: EphemeralSignature | None = None

    def serialize(self, serializer: Serializer) -> None:
        self.proof.serialize(serializer)
        serializer.serialize_u64(self.exp_horizon_secs)
        serializer.serialize_option(self.extra_field, Serializer.serialize_str)
        serializer.serialize_option(self.override_aud_val, Serializer.serialize_str)
        serializer.serialize_option(
            self.training_wheels_signature, _serialize_ephemeral_signature
        )

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        proof = ZkProof.deserialize(deserializer)
        exp_horizon_secs = deserializer.deserialize_u64()
        extra_field = deserializer.deserialize_option(Deserializer.deserialize_str)
        override_aud_val = deserializer.deserialize_option(Deserializer.deserialize_str)
        training_wheels_signature = deserializer.deserialize_option(
            EphemeralSignature.deserialize
        )
        return cls(
            proof=proof,
            exp_horizon_secs=exp_horizon_secs,
            extra_field=extra_field,
            override_aud_val=override_aud_val,
            training_wheels_signature=training_wheels_signature,
        )


class OpenIdSig(BcsSerializable, BaseModel):
    """Certificate revealing the signed JWT itself instead of a proof."""

    model_config = ConfigDict(frozen=True)

    variant: Literal[EphemeralCertificateVariant.OPEN_ID] = (
        EphemeralCertificateVariant.OPEN_ID
    )
    jwt_sig: HexBytes
    jwt_payload_json: str
    uid_key: str
    epk_blinder: HexBytes
    pepper: Bytes31
    idc_aud_val: str | None = None

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_bytes(self.jwt_sig)
        serializer.serialize_str(self.jwt_payload_json)
        serializer.serialize_str(self.uid_key)
        serializer.serialize_bytes(self.epk_blinder)
        serializer.serialize_fixed_bytes(self.pepper)
        serializer.serialize_option(self.idc_aud_val, Serializer.serialize_str)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        return cls(
            jwt_sig=deserializer.deserialize_bytes(),
            jwt_payload_json=deserializer.deserialize_str(),
            uid_key=deserializer.deserialize_str(),
            epk_blinder=deserializer.deserialize_bytes(),
            pepper=deserializer.deserialize_fixed_bytes(PEPPER_LENGTH),
            idc_aud_val=deserializer.deserialize_option(Deserializer.deserialize_str),
        )


EphemeralCertificate = Annotated[
    ZeroKnowledgeSig | OpenIdSig, Field(discriminator="variant")
]

_CERTIFICATE_TYPES: dict[EphemeralCertificateVariant, type[ZeroKnowledgeSig | OpenIdSig]] = {
    EphemeralCertificateVariant.ZERO_KNOWLEDGE: ZeroKnowledgeSig,
    EphemeralCertificateVariant.OPEN_ID: OpenIdSig,
}


def serialize_ephemeral_certificate(
    serializer: Serializer, certificate: ZeroKnowledgeSig | OpenIdSig
) -> None:
    serializer.serialize_uleb128(certificate.variant)
    certificate.serialize(serializer)


def deserialize_ephemeral_certificate(
    deserializer: Deserializer,
) -> ZeroKnowledgeSig | OpenIdSig:
    tag = deserializer.deserialize_uleb128()
    try:
        certificate_type = _CERTIFICATE_TYPES[EphemeralCertificateVariant(tag)]
    except ValueError:
        msg = f"Unknown ephemeral certificate variant: {tag}"
        raise BcsError(msg) from None
    return certificate_type.deserialize(deserializer)


class KeylessSignature(BcsSerializable, BaseModel):
    """A signature authorised by an ephemeral key bound to an OIDC login."""

    model_config = ConfigDict(frozen=True)

    ephemeral_certificate: EphemeralCertificate
    jwt_header: str
    expiry_date_secs: int
    ephemeral_public_key: EphemeralPublicKey
    ephemeral_signature: EphemeralSignature

    def get_jwk_kid(self) -> str:
        """Key id of the issuer JWK that signed the JWT."""
        return parse_jwt_header(self.jwt_header).kid

    @classmethod
    def simulation_signature(cls) -> Self:
        """All-zero placeholder of the right shape, for transaction simulation."""
        return cls(
            ephemeral_certificate=ZeroKnowledgeSig(
                proof=ZkProof(proof=Groth16Zkp(a=bytes(32), b=bytes(64), c=bytes(32))),
                exp_horizon_secs=0,
            ),
            jwt_header="{}",
            expiry_date_secs=0,
            ephemeral_public_key=EphemeralPublicKey(key=bytes(32)),
            ephemeral_signature=EphemeralSignature(signature=bytes(64)),
        )

    def to_any_signature_bytes(self) -> bytes:
        """BCS encoding wrapped in the ``AnySignature`` keyless variant."""
        serializer = Serializer()
        serializer.serialize_uleb128(AnySignatureVariant.KEYLESS)
        self.serialize(serializer)
        return serializer.to_bytes()

    def serialize(self, serializer: Serializer) -> None:
        serialize_ephemeral_certificate(serializer, self.ephemeral_certificate)
        serializer.serialize_str(self.jwt_header)
        serializer.serialize_u64(self.expiry_date_secs)
        self.ephemeral_public_key.serialize(serializer)
        self.ephemeral_signature.serialize(serializer)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        return cls(
            ephemeral_certificate=deserialize_ephemeral_certificate(deserializer),
            jwt_header=deserializer.deserialize_str(),
            expiry_date_secs=deserializer.deserialize_u64(),
            ephemeral_public_key=EphemeralPublicKey.deserialize(deserializer),
            ephemeral_signature=EphemeralSignature.deserialize(deserializer),
        )
