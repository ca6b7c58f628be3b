"""JWK models: the issuer-facing JSON form and the on-chain Move form."""

import base64
from typing import Self

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from pydantic import BaseModel, ConfigDict

from keyless.core.bcs import BcsSerializable, Deserializer, Serializer
from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.crypto.poseidon import bytes_to_int_le, poseidon_hash

SUPPORTED_JWK_ALG = "RS256"
MODULUS_CHUNK_BYTES = 24
RSA_MODULUS_BYTES = 256


def base64url_encode(raw: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def base64url_decode(value: str) -> bytes:
    """Decode base64url, tolerating missing padding."""
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _int_to_base64url(value: int) -> str:
    """Encode an integer as big-endian base64url without padding."""
    byte_length = (value.bit_length() + 7) // 8
    return base64url_encode(value.to_bytes(byte_length, byteorder="big"))


class JWKEntry(BaseModel):
    """Single JWK entry in an issuer's JWKS response."""

    model_config = ConfigDict(extra="allow")

    kty: str = "RSA"
    use: str = "sig"
    alg: str = SUPPORTED_JWK_ALG
    kid: str
    n: str = ""
    e: str = ""


class JWKSResponse(BaseModel):
    """JSON Web Key Set response."""

    keys: list[JWKEntry]


class MoveJWK(BcsSerializable, BaseModel):
    """An RSA JWK as stored on chain in ``0x1::jwks::RSA_JWK``."""

    model_config = ConfigDict(frozen=True)

    kid: str
    kty: str = "RSA"
    alg: str = SUPPORTED_JWK_ALG
    e: str
    n: str

    @classmethod
    def from_jwk_entry(cls, entry: JWKEntry) -> Self:
        return cls(kid=entry.kid, kty=entry.kty, alg=entry.alg, e=entry.e, n=entry.n)

    @classmethod
    def from_rsa_public_key(cls, public_key: RSAPublicKey, kid: str) -> Self:
        """Build the JWK for an RSA public key."""
        numbers = public_key.public_numbers()
        return cls(
            kid=kid,
            n=_int_to_base64url(numbers.n),
            e=_int_to_base64url(numbers.e),
        )

    def to_jwk_dict(self) -> dict[str, str]:
        """Render as a JSON Web Key dictionary."""
        return {"kid": self.kid, "kty": self.kty, "alg": self.alg, "e": self.e, "n": self.n}

    def to_scalar(self) -> int:
        """Fold the RSA modulus into one field element for the public inputs.

        The modulus bytes are reversed, cut into 24-byte little-endian
        chunks (the last one zero-padded), and hashed together with the
        modulus size.
        """
        if self.alg != SUPPORTED_JWK_ALG:
            raise KeylessError(
                KeylessErrorType.JWK_ALGORITHM_UNSUPPORTED,
                details=f"JWK {self.kid!r} uses {self.alg!r}, only RS256 is supported",
            )
        modulus = base64url_decode(self.n)[::-1]
        scalars = []
        for start in range(0, len(modulus), MODULUS_CHUNK_BYTES):
            chunk = modulus[start : start + MODULUS_CHUNK_BYTES]
            scalars.append(bytes_to_int_le(chunk.ljust(MODULUS_CHUNK_BYTES, b"\x00")))
        scalars.append(RSA_MODULUS_BYTES)
        return poseidon_hash(scalars)

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_str(self.kid)
        serializer.serialize_str(self.kty)
        serializer.serialize_str(self.alg)
        serializer.serialize_str(self.e)
        serializer.serialize_str(self.n)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        return cls(
            kid=deserializer.deserialize_str(),
            kty=deserializer.deserialize_str(),
            alg=deserializer.deserialize_str(),
            e=deserializer.deserialize_str(),
            n=deserializer.deserialize_str(),
        )
