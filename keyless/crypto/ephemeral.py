"""Short-lived Ed25519 key pairs committed into the OIDC nonce."""

import os
import time
from typing import Self

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from pydantic import BaseModel, ConfigDict

from keyless.core.bcs import BcsError, BcsSerializable, Deserializer, Serializer
from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.crypto.poseidon import (
    bytes_to_int_le,
    pad_and_pack_bytes_with_len,
    poseidon_hash,
)
from keyless.crypto.types import (
    Bytes32,
    Bytes64,
    EphemeralPublicKeyVariant,
    EphemeralSignatureVariant,
)

BLINDER_LENGTH = 31
ED25519_KEY_LENGTH = 32
TWO_WEEKS_IN_SECONDS = 1_209_600
SECONDS_PER_HOUR = 3600
MAX_COMMITED_EPK_BYTES = 93


class EphemeralPublicKey(BcsSerializable, BaseModel):
    """Public half of an ephemeral key pair."""

    model_config = ConfigDict(frozen=True)

    variant: EphemeralPublicKeyVariant = EphemeralPublicKeyVariant.ED25519
    key: Bytes32

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_uleb128(self.variant)
        serializer.serialize_bytes(self.key)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        variant = EphemeralPublicKeyVariant(deserializer.deserialize_uleb128())
        return cls(variant=variant, key=deserializer.deserialize_bytes())

    def verify_signature(self, message: bytes, signature: "EphemeralSignature") -> bool:
        """Check an Ed25519 signature over the raw message bytes."""
        try:
            Ed25519PublicKey.from_public_bytes(self.key).verify(
                signature.signature, message
            )
        except (InvalidSignature, ValueError):
            return False
        return True


class EphemeralSignature(BcsSerializable, BaseModel):
    """Signature produced by an ephemeral private key."""

    model_config = ConfigDict(frozen=True)

    variant: EphemeralSignatureVariant = EphemeralSignatureVariant.ED25519
    signature: Bytes64

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_uleb128(self.variant)
        serializer.serialize_bytes(self.signature)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        variant = EphemeralSignatureVariant(deserializer.deserialize_uleb128())
        return cls(variant=variant, signature=deserializer.deserialize_bytes())


def _default_expiry(now: float) -> int:
    """Two weeks from now, floored to the whole hour."""
    expiry = int(now) + TWO_WEEKS_IN_SECONDS
    return expiry - expiry % SECONDS_PER_HOUR


class EphemeralKeyPair(BcsSerializable):
    """An Ed25519 key pair with an expiry and a nonce blinder."""

    def __init__(
        self,
        private_key: Ed25519PrivateKey,
        expiry_date_secs: int | None = None,
        blinder: bytes | None = None,
    ) -> None:
        if blinder is None:
            blinder = os.urandom(BLINDER_LENGTH)
        if len(blinder) != BLINDER_LENGTH:
            msg = f"Blinder must be {BLINDER_LENGTH} bytes, got {len(blinder)}"
            raise ValueError(msg)
        self._private_key = private_key
        self._public_key = EphemeralPublicKey(
            key=private_key.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        )
        self.expiry_date_secs = (
            expiry_date_secs
            if expiry_date_secs is not None
            else _default_expiry(time.time())
        )
        self.blinder = blinder
        self.nonce = self._compute_nonce()

    @classmethod
    def generate(cls, expiry_date_secs: int | None = None) -> Self:
        """Create a key pair with a fresh private key and blinder."""
        return cls(Ed25519PrivateKey.generate(), expiry_date_secs=expiry_date_secs)

    @classmethod
    def from_seed(
        cls,
        seed: bytes,
        expiry_date_secs: int | None = None,
        blinder: bytes | None = None,
    ) -> Self:
        """Create a key pair from a 32-byte Ed25519 seed."""
        return cls(
            Ed25519PrivateKey.from_private_bytes(seed),
            expiry_date_secs=expiry_date_secs,
            blinder=blinder,
        )

    @property
    def public_key(self) -> EphemeralPublicKey:
        return self._public_key

    def _compute_nonce(self) -> str:
        fields = pad_and_pack_bytes_with_len(
            self._public_key.bcs_to_bytes(), MAX_COMMITED_EPK_BYTES
        )
        fields.append(self.expiry_date_secs)
        fields.append(bytes_to_int_le(self.blinder))
        return str(poseidon_hash(fields))

    def is_expired(self, now: float | None = None) -> bool:
        current = int(time.time() if now is None else now)
        return current > self.expiry_date_secs

    def sign(self, message: bytes, now: float | None = None) -> EphemeralSignature:
        """Sign ``message``; refuses once the key pair has expired."""
        if self.is_expired(now):
            raise KeylessError(
                KeylessErrorType.EPHEMERAL_KEY_PAIR_EXPIRED,
                details=f"Expired at {self.expiry_date_secs}",
            )
        return EphemeralSignature(signature=self._private_key.sign(message))

    def _private_bytes(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_uleb128(self._public_key.variant)
        serializer.serialize_bytes(self._private_bytes())
        serializer.serialize_u64(self.expiry_date_secs)
        serializer.serialize_fixed_bytes(self.blinder)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        variant = deserializer.deserialize_uleb128()
        if variant != EphemeralPublicKeyVariant.ED25519:
            msg = f"Unknown ephemeral key variant: {variant}"
            raise BcsError(msg)
        seed = deserializer.deserialize_bytes()
        if len(seed) != ED25519_KEY_LENGTH:
            msg = f"Ed25519 private key must be {ED25519_KEY_LENGTH} bytes"
            raise BcsError(msg)
        expiry_date_secs = deserializer.deserialize_u64()
        blinder = deserializer.deserialize_fixed_bytes(BLINDER_LENGTH)
        return cls.from_seed(seed, expiry_date_secs=expiry_date_secs, blinder=blinder)
