"""Groth16 proofs, verification keys and the pairing check over BN254."""

import hashlib
import logging
from typing import Any, Self

from py_ecc.optimized_bn128 import (
    FQ12,
    add,
    curve_order,
    final_exponentiate,
    multiply,
    neg,
    normalize,
    pairing,
)
from pydantic import BaseModel, ConfigDict

from keyless.core.bcs import BcsSerializable, Deserializer, Serializer
from keyless.crypto.bn254 import (
    G1_COMPRESSED_SIZE,
    G2_COMPRESSED_SIZE,
    G1Point,
    G2Point,
    decompress_g1,
    decompress_g2,
)
from keyless.crypto.poseidon import int_to_bytes_le
from keyless.crypto.types import Bytes32, Bytes64, HexBytes, ZkpVariant

_logger = logging.getLogger(__name__)

PROOF_AND_STATEMENT_DOMAIN = b"APTOS::Groth16ProofAndStatement"
PUBLIC_INPUTS_HASH_LENGTH = 32


class Groth16Zkp(BcsSerializable, BaseModel):
    """A compressed Groth16 proof: A and C in G1, B in G2."""

    model_config = ConfigDict(frozen=True)

    a: Bytes32
    b: Bytes64
    c: Bytes32

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_fixed_bytes(self.a)
        serializer.serialize_fixed_bytes(self.b)
        serializer.serialize_fixed_bytes(self.c)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        return cls(
            a=deserializer.deserialize_fixed_bytes(G1_COMPRESSED_SIZE),
            b=deserializer.deserialize_fixed_bytes(G2_COMPRESSED_SIZE),
            c=deserializer.deserialize_fixed_bytes(G1_COMPRESSED_SIZE),
        )

    def to_snarkjs_json(self) -> dict[str, Any]:
        """Render the proof in the snarkjs ``proof.json`` layout."""
        return {
            "pi_a": _g1_to_json(decompress_g1(self.a)),
            "pi_b": _g2_to_json(decompress_g2(self.b)),
            "pi_c": _g1_to_json(decompress_g1(self.c)),
            "protocol": "groth16",
            "curve": "bn128",
        }


class ZkProof(BcsSerializable, BaseModel):
    """A proof tagged with its proving system."""

    model_config = ConfigDict(frozen=True)

    variant: ZkpVariant = ZkpVariant.GROTH16
    proof: Groth16Zkp

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_uleb128(self.variant)
        self.proof.serialize(serializer)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        variant = ZkpVariant(deserializer.deserialize_uleb128())
        return cls(variant=variant, proof=Groth16Zkp.deserialize(deserializer))


class Groth16VerificationKey(BcsSerializable, BaseModel):
    """Verification key for a circuit with a single public input."""

    model_config = ConfigDict(frozen=True)

    alpha_g1: HexBytes
    beta_g2: HexBytes
    gamma_g2: HexBytes
    delta_g2: HexBytes
    gamma_abc_g1: tuple[HexBytes, HexBytes]

    def serialize(self, serializer: Serializer) -> None:
        serializer.serialize_fixed_bytes(self.alpha_g1)
        serializer.serialize_fixed_bytes(self.beta_g2)
        serializer.serialize_fixed_bytes(self.delta_g2)
        serializer.serialize_fixed_bytes(self.gamma_abc_g1[0])
        serializer.serialize_fixed_bytes(self.gamma_abc_g1[1])
        serializer.serialize_fixed_bytes(self.gamma_g2)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        alpha_g1 = deserializer.deserialize_fixed_bytes(G1_COMPRESSED_SIZE)
        beta_g2 = deserializer.deserialize_fixed_bytes(G2_COMPRESSED_SIZE)
        delta_g2 = deserializer.deserialize_fixed_bytes(G2_COMPRESSED_SIZE)
        ic0 = deserializer.deserialize_fixed_bytes(G1_COMPRESSED_SIZE)
        ic1 = deserializer.deserialize_fixed_bytes(G1_COMPRESSED_SIZE)
        gamma_g2 = deserializer.deserialize_fixed_bytes(G2_COMPRESSED_SIZE)
        return cls(
            alpha_g1=alpha_g1,
            beta_g2=beta_g2,
            gamma_g2=gamma_g2,
            delta_g2=delta_g2,
            gamma_abc_g1=(ic0, ic1),
        )

    def hash(self) -> bytes:
        """SHA3-256 of the BCS encoding, used to pin a key version."""
        return hashlib.sha3_256(self.bcs_to_bytes()).digest()

    def verify_proof(self, public_inputs_hash: int, proof: Groth16Zkp) -> bool:
        return verify_proof(self, public_inputs_hash, proof)

    def to_snarkjs_json(self) -> dict[str, Any]:
        """Render the key in the snarkjs ``verification_key.json`` layout."""
        return {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": 1,
            "vk_alpha_1": _g1_to_json(decompress_g1(self.alpha_g1)),
            "vk_beta_2": _g2_to_json(decompress_g2(self.beta_g2)),
            "vk_gamma_2": _g2_to_json(decompress_g2(self.gamma_g2)),
            "vk_delta_2": _g2_to_json(decompress_g2(self.delta_g2)),
            "IC": [_g1_to_json(decompress_g1(p)) for p in self.gamma_abc_g1],
        }


class Groth16ProofAndStatement(BcsSerializable, BaseModel):
    """A proof bound to the public-inputs hash it proves."""

    model_config = ConfigDict(frozen=True)

    proof: Groth16Zkp
    public_inputs_hash: Bytes32

    @classmethod
    def create(cls, proof: Groth16Zkp, public_inputs_hash: int) -> Self:
        return cls(
            proof=proof,
            public_inputs_hash=int_to_bytes_le(
                public_inputs_hash, PUBLIC_INPUTS_HASH_LENGTH
            ),
        )

    def serialize(self, serializer: Serializer) -> None:
        self.proof.serialize(serializer)
        serializer.serialize_fixed_bytes(self.public_inputs_hash)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        return cls(
            proof=Groth16Zkp.deserialize(deserializer),
            public_inputs_hash=deserializer.deserialize_fixed_bytes(
                PUBLIC_INPUTS_HASH_LENGTH
            ),
        )

    def hash(self) -> bytes:
        """Domain-separated signing message for the training wheels signature."""
        prefix = hashlib.sha3_256(PROOF_AND_STATEMENT_DOMAIN).digest()
        return prefix + self.bcs_to_bytes()


def verify_proof(
    verification_key: Groth16VerificationKey,
    public_inputs_hash: int,
    proof: Groth16Zkp,
) -> bool:
    """Check e(A, B) = e(alpha, beta) * e(IC, gamma) * e(C, delta).

    The equation is evaluated as a single product of Miller loops against
    the negated right-hand side, followed by one final exponentiation.
    Raises ``PointDecodingError`` if any encoding is malformed.
    """
    a = decompress_g1(proof.a)
    b = decompress_g2(proof.b)
    c = decompress_g1(proof.c)
    alpha = decompress_g1(verification_key.alpha_g1)
    beta = decompress_g2(verification_key.beta_g2)
    gamma = decompress_g2(verification_key.gamma_g2)
    delta = decompress_g2(verification_key.delta_g2)
    ic0 = decompress_g1(verification_key.gamma_abc_g1[0])
    ic1 = decompress_g1(verification_key.gamma_abc_g1[1])

    ic = add(ic0, multiply(ic1, public_inputs_hash % curve_order))
    pairs: list[tuple[G1Point, G2Point]] = [
        (a, b),
        (neg(alpha), beta),
        (neg(ic), gamma),
        (neg(c), delta),
    ]
    product = FQ12.one()
    for g1_point, g2_point in pairs:
        product = product * pairing(g2_point, g1_point, final_exponentiate=False)
    valid = final_exponentiate(product) == FQ12.one()
    _logger.debug("Groth16 pairing check result: %s", valid)
    return valid


def _g1_to_json(point: G1Point) -> list[str]:
    x, y = normalize(point)
    return [str(x.n), str(y.n), "1"]


def _g2_to_json(point: G2Point) -> list[list[str]]:
    x, y = normalize(point)
    return [
        [str(int(x.coeffs[0])), str(int(x.coeffs[1]))],
        [str(int(y.coeffs[0])), str(int(y.coeffs[1]))],
        ["1", "0"],
    ]
