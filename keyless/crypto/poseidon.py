"""Poseidon hashing over the BN254 scalar field.

Parameters match circomlib: x^5 S-box, 8 full rounds, per-width partial
rounds, round constants and Cauchy MDS matrices drawn from the Grain LFSR.
Constants are derived on first use of a width and cached.
"""

from collections.abc import Sequence
from functools import lru_cache

from py_ecc.optimized_bn128 import curve_order

FIELD_MODULUS = curve_order
FIELD_SIZE_BITS = 254
SBOX_EXPONENT = 5
FULL_ROUNDS = 8
# Indexed by width - 2, for widths 2..17
PARTIAL_ROUNDS = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)

MAX_NUM_INPUT_SCALARS = 16
BYTES_PACKED_PER_SCALAR = 31
MAX_NUM_INPUT_BYTES = (MAX_NUM_INPUT_SCALARS - 1) * BYTES_PACKED_PER_SCALAR

_GRAIN_STATE_BITS = 80
_GRAIN_WARMUP_CLOCKS = 160


class _GrainLFSR:
    """Self-shrinking Grain LFSR seeded with the Poseidon instance parameters."""

    def __init__(self, width: int, partial_rounds: int) -> None:
        header = (
            (1, 2),  # prime field
            (0, 4),  # x^alpha S-box
            (FIELD_SIZE_BITS, 12),
            (width, 12),
            (FULL_ROUNDS, 10),
            (partial_rounds, 10),
            ((1 << 30) - 1, 30),
        )
        bits = "".join(format(value, f"0{length}b") for value, length in header)
        # Bit i of the register holds s[i]
        self._state = sum(int(bit) << i for i, bit in enumerate(bits))
        for _ in range(_GRAIN_WARMUP_CLOCKS):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = ((s >> 62) ^ (s >> 51) ^ (s >> 38) ^ (s >> 23) ^ (s >> 13) ^ s) & 1
        self._state = (s >> 1) | (bit << (_GRAIN_STATE_BITS - 1))
        return bit

    def _next_bit(self) -> int:
        while True:
            if self._clock():
                return self._clock()
            self._clock()

    def random_bits(self, count: int) -> int:
        value = 0
        for _ in range(count):
            value = (value << 1) | self._next_bit()
        return value

    def field_element(self) -> int:
        """Rejection-sample a value below the field modulus."""
        while True:
            value = self.random_bits(FIELD_SIZE_BITS)
            if value < FIELD_MODULUS:
                return value


def _cauchy_matrix(grain: _GrainLFSR, width: int) -> tuple[tuple[int, ...], ...]:
    while True:
        samples = [
            grain.random_bits(FIELD_SIZE_BITS) % FIELD_MODULUS for _ in range(2 * width)
        ]
        if len(set(samples)) != 2 * width:
            continue
        xs, ys = samples[:width], samples[width:]
        if any((x + y) % FIELD_MODULUS == 0 for x in xs for y in ys):
            continue
        return tuple(
            tuple(pow(x + y, -1, FIELD_MODULUS) for y in ys) for x in xs
        )


@lru_cache(maxsize=None)
def poseidon_parameters(
    width: int,
) -> tuple[tuple[int, ...], tuple[tuple[int, ...], ...]]:
    """Return (round constants, MDS matrix) for a state of ``width`` elements."""
    if not 2 <= width <= MAX_NUM_INPUT_SCALARS + 1:
        msg = f"Unsupported Poseidon width: {width}"
        raise ValueError(msg)
    partial_rounds = PARTIAL_ROUNDS[width - 2]
    grain = _GrainLFSR(width, partial_rounds)
    constants = tuple(
        grain.field_element() for _ in range((FULL_ROUNDS + partial_rounds) * width)
    )
    return constants, _cauchy_matrix(grain, width)


def poseidon_hash(inputs: Sequence[int]) -> int:
    """Hash 1 to 16 field elements to a single field element."""
    if not 1 <= len(inputs) <= MAX_NUM_INPUT_SCALARS:
        msg = f"Poseidon takes 1 to {MAX_NUM_INPUT_SCALARS} inputs, got {len(inputs)}"
        raise ValueError(msg)
    width = len(inputs) + 1
    constants, mds = poseidon_parameters(width)
    partial_rounds = PARTIAL_ROUNDS[width - 2]
    half_full = FULL_ROUNDS // 2
    p = FIELD_MODULUS

    state = [0] + [int(value) % p for value in inputs]
    for round_index in range(FULL_ROUNDS + partial_rounds):
        offset = round_index * width
        state = [(s + constants[offset + i]) % p for i, s in enumerate(state)]
        if half_full <= round_index < half_full + partial_rounds:
            state[0] = pow(state[0], SBOX_EXPONENT, p)
        else:
            state = [pow(s, SBOX_EXPONENT, p) for s in state]
        state = [sum(m * s for m, s in zip(row, state)) % p for row in mds]
    return state[0]


def bytes_to_int_le(data: bytes) -> int:
    return int.from_bytes(data, "little")


def int_to_bytes_le(value: int, length: int) -> bytes:
    return value.to_bytes(length, "little")


def pack_bytes_to_scalars(data: bytes) -> list[int]:
    """Split bytes into 31-byte little-endian scalars."""
    if len(data) > MAX_NUM_INPUT_BYTES:
        msg = f"Input of {len(data)} bytes exceeds {MAX_NUM_INPUT_BYTES}"
        raise ValueError(msg)
    return [
        bytes_to_int_le(data[i : i + BYTES_PACKED_PER_SCALAR])
        for i in range(0, len(data), BYTES_PACKED_PER_SCALAR)
    ]


def pad_and_pack_bytes_with_len(data: bytes, max_size_bytes: int) -> list[int]:
    """Zero-pad to ``max_size_bytes``, pack, and append the unpadded length.

    The trailing length keeps inputs that differ only in trailing zero
    bytes from colliding.
    """
    if len(data) > max_size_bytes:
        msg = f"Input of {len(data)} bytes exceeds the maximum of {max_size_bytes}"
        raise ValueError(msg)
    padded = data + bytes(max_size_bytes - len(data))
    return [*pack_bytes_to_scalars(padded), len(data)]


def hash_bytes_with_len(data: bytes, max_size_bytes: int) -> int:
    return poseidon_hash(pad_and_pack_bytes_with_len(data, max_size_bytes))


def hash_str_to_field(value: str, max_size_bytes: int) -> int:
    """Hash a UTF-8 string, padded to ``max_size_bytes``, to a field element."""
    return hash_bytes_with_len(value.encode("utf-8"), max_size_bytes)
