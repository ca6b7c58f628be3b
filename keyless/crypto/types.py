"""Variant tags and shared field types for keyless keys and signatures."""

from enum import IntEnum
from typing import Annotated, Any

from pydantic import AfterValidator, BeforeValidator


class AnyPublicKeyVariant(IntEnum):
    """BCS tag of a public key inside an ``AnyPublicKey`` wrapper."""

    ED25519 = 0
    SECP256K1 = 1
    SECP256R1 = 2
    KEYLESS = 3
    FEDERATED_KEYLESS = 4


class AnySignatureVariant(IntEnum):
    """BCS tag of a signature inside an ``AnySignature`` wrapper."""

    ED25519 = 0
    SECP256K1 = 1
    WEBAUTHN = 2
    KEYLESS = 3


class SigningScheme(IntEnum):
    """Authentication key scheme byte appended before hashing."""

    ED25519 = 0
    MULTI_ED25519 = 1
    SINGLE_KEY = 2
    MULTI_KEY = 3


class EphemeralPublicKeyVariant(IntEnum):
    ED25519 = 0


class EphemeralSignatureVariant(IntEnum):
    ED25519 = 0


class EphemeralCertificateVariant(IntEnum):
    ZERO_KNOWLEDGE = 0
    OPEN_ID = 1


class ZkpVariant(IntEnum):
    GROTH16 = 0


def _coerce_hex(value: Any) -> Any:
    if isinstance(value, str):
        text = value.removeprefix("0x")
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            msg = f"Invalid hex string: {value!r}"
            raise ValueError(msg) from e
    return value


HexBytes = Annotated[bytes, BeforeValidator(_coerce_hex)]
"""Bytes field that also accepts a ``0x``-prefixed hex string."""


def _exact_length(length: int):
    def _check(value: bytes) -> bytes:
        if len(value) != length:
            msg = f"Expected {length} bytes, got {len(value)}"
            raise ValueError(msg)
        return value

    return _check


Bytes31 = Annotated[HexBytes, AfterValidator(_exact_length(31))]
Bytes32 = Annotated[HexBytes, AfterValidator(_exact_length(32))]
Bytes64 = Annotated[HexBytes, AfterValidator(_exact_length(64))]
