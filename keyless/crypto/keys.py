"""Keyless public keys, identity commitments and account addresses."""

import hashlib
from typing import TYPE_CHECKING, ClassVar, Self

from pydantic import BaseModel, ConfigDict

from keyless.core.bcs import BcsSerializable, Deserializer, Serializer
from keyless.crypto.jwt_claims import get_iss_aud_and_uid_val
from keyless.crypto.poseidon import (
    bytes_to_int_le,
    hash_str_to_field,
    int_to_bytes_le,
    poseidon_hash,
)
from keyless.crypto.types import AnyPublicKeyVariant, Bytes32, SigningScheme

if TYPE_CHECKING:
    from keyless.crypto.signature import KeylessSignature
    from keyless.jwks.models import MoveJWK
    from keyless.verify.configuration import KeylessConfiguration

ID_COMMITMENT_LENGTH = 32
PEPPER_LENGTH = 31
ADDRESS_LENGTH = 32
MAX_AUD_VAL_BYTES = 120
MAX_UID_KEY_BYTES = 30
MAX_UID_VAL_BYTES = 330


class AccountAddress(BcsSerializable, BaseModel):
    """A 32-byte account address."""

    model_config = ConfigDict(frozen=True)

    data: Bytes32

    @classmethod
    def from_str(cls, value: str) -> Self:
        """Parse ``0x``-prefixed hex, accepting the short form (e.g. ``0x1``)."""
        text = value.removeprefix("0x")
        if not text or len(text) > ADDRESS_LENGTH * 2:
            msg = f"Invalid account address: {value!r}"
            raise ValueError(msg)
        return cls(data=bytes.fromhex(text.rjust(ADDRESS_LENGTH * 2, "0")))

    def is_special(self) -> bool:
        """Addresses 0x0 through 0xf are printed in short form."""
        return self.data[:-1] == bytes(ADDRESS_LENGTH - 1) and self.data[-1] < 0x10

    def __str__(self) -> str:
        if self.is_special():
            return f"0x{self.data[-1]:x}"
        return f"0x{self.data.hex()}"

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_fixed_bytes(self.data)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        return cls(data=deserializer.deserialize_fixed_bytes(ADDRESS_LENGTH))


def compute_id_commitment(uid_key: str, uid_val: str, aud: str, pepper: bytes) -> bytes:
    """Commit to (pepper, aud, uid_val, uid_key) as 32 little-endian bytes."""
    if len(pepper) != PEPPER_LENGTH:
        msg = f"Pepper must be {PEPPER_LENGTH} bytes, got {len(pepper)}"
        raise ValueError(msg)
    fields = [
        bytes_to_int_le(pepper),
        hash_str_to_field(aud, MAX_AUD_VAL_BYTES),
        hash_str_to_field(uid_val, MAX_UID_VAL_BYTES),
        hash_str_to_field(uid_key, MAX_UID_KEY_BYTES),
    ]
    return int_to_bytes_le(poseidon_hash(fields), ID_COMMITMENT_LENGTH)


def _single_key_auth_key(variant: AnyPublicKeyVariant, public_key_bcs: bytes) -> bytes:
    serializer = Serializer()
    serializer.serialize_uleb128(variant)
    serializer.serialize_fixed_bytes(public_key_bcs)
    serializer.serialize_u8(SigningScheme.SINGLE_KEY)
    return hashlib.sha3_256(serializer.to_bytes()).digest()


class KeylessPublicKey(BcsSerializable, BaseModel):
    """Issuer plus a hiding commitment to the user's identity."""

    model_config = ConfigDict(frozen=True)

    variant: ClassVar[AnyPublicKeyVariant] = AnyPublicKeyVariant.KEYLESS
    iss: str
    id_commitment: Bytes32

    @classmethod
    def create(
        cls, iss: str, uid_key: str, uid_val: str, aud: str, pepper: bytes
    ) -> Self:
        return cls(
            iss=iss,
            id_commitment=compute_id_commitment(uid_key, uid_val, aud, pepper),
        )

    @classmethod
    def from_jwt_and_pepper(cls, jwt: str, pepper: bytes, uid_key: str = "sub") -> Self:
        """Derive the key for the identity named by a JWT's claims."""
        claims = get_iss_aud_and_uid_val(jwt, uid_key=uid_key)
        return cls.create(
            iss=claims.iss,
            uid_key=uid_key,
            uid_val=claims.uid_val,
            aud=claims.aud,
            pepper=pepper,
        )

    @property
    def keyless_public_key(self) -> "KeylessPublicKey":
        return self

    @property
    def jwk_address(self) -> AccountAddress | None:
        return None

    def auth_key(self) -> bytes:
        return _single_key_auth_key(self.variant, self.bcs_to_bytes())

    def account_address(self) -> AccountAddress:
        return AccountAddress(data=self.auth_key())

    def verify_signature(
        self,
        message: bytes,
        signature: "KeylessSignature",
        jwk: "MoveJWK",
        config: "KeylessConfiguration",
        now: float | None = None,
    ) -> bool:
        from keyless.verify.verifier import verify_keyless_signature

        return verify_keyless_signature(
            public_key=self,
            message=message,
            signature=signature,
            jwk=jwk,
            config=config,
            now=now,
        )

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_str(self.iss)
        serializer.serialize_bytes(self.id_commitment)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        iss = deserializer.deserialize_str()
        return cls(iss=iss, id_commitment=deserializer.deserialize_bytes())


class FederatedKeylessPublicKey(BcsSerializable, BaseModel):
    """A keyless key whose JWKs live at ``jwk_address`` instead of 0x1."""

    model_config = ConfigDict(frozen=True)

    variant: ClassVar[AnyPublicKeyVariant] = AnyPublicKeyVariant.FEDERATED_KEYLESS
    jwk_address: AccountAddress
    keyless_public_key: KeylessPublicKey

    @classmethod
    def create(
        cls,
        iss: str,
        uid_key: str,
        uid_val: str,
        aud: str,
        pepper: bytes,
        jwk_address: AccountAddress,
    ) -> Self:
        return cls(
            jwk_address=jwk_address,
            keyless_public_key=KeylessPublicKey.create(iss, uid_key, uid_val, aud, pepper),
        )

    @classmethod
    def from_jwt_and_pepper(
        cls, jwt: str, pepper: bytes, jwk_address: AccountAddress, uid_key: str = "sub"
    ) -> Self:
        return cls(
            jwk_address=jwk_address,
            keyless_public_key=KeylessPublicKey.from_jwt_and_pepper(
                jwt, pepper, uid_key=uid_key
            ),
        )

    @property
    def iss(self) -> str:
        return self.keyless_public_key.iss

    def auth_key(self) -> bytes:
        return _single_key_auth_key(self.variant, self.bcs_to_bytes())

    def account_address(self) -> AccountAddress:
        return AccountAddress(data=self.auth_key())

    def verify_signature(
        self,
        message: bytes,
        signature: "KeylessSignature",
        jwk: "MoveJWK",
        config: "KeylessConfiguration",
        now: float | None = None,
    ) -> bool:
        from keyless.verify.verifier import verify_keyless_signature

        return verify_keyless_signature(
            public_key=self,
            message=message,
            signature=signature,
            jwk=jwk,
            config=config,
            now=now,
        )

    def serialize(self, serializer: Serializer) -> None:
        self.jwk_address.serialize(serializer)
        self.keyless_public_key.serialize(serializer)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        jwk_address = AccountAddress.deserialize(deserializer)
        return cls(
            jwk_address=jwk_address,
            keyless_public_key=KeylessPublicKey.deserialize(deserializer),
        )


KeylessAnyPublicKey = KeylessPublicKey | FederatedKeylessPublicKey
