"""Compressed BN254 point encodings (arkworks layout) for G1 and G2.

G1 points are 32 bytes: x as little-endian Fq. G2 points are 64 bytes:
x.c0 then x.c1, each little-endian. The top two bits of the last byte are
flags: bit 7 marks that y is the lexicographically larger root, bit 6 marks
the point at infinity. Decoding rejects G2 points outside the prime-order
subgroup.
"""

from typing import TypeAlias

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    Z1,
    Z2,
    b,
    b2,
    curve_order,
    field_modulus,
    is_inf,
    is_on_curve,
    multiply,
    normalize,
)

G1Point: TypeAlias = tuple[FQ, FQ, FQ]
G2Point: TypeAlias = tuple[FQ2, FQ2, FQ2]

G1_COMPRESSED_SIZE = 32
G2_COMPRESSED_SIZE = 64
FQ_SIZE = 32

_FLAG_LARGER_Y = 0x80
_FLAG_INFINITY = 0x40
_FLAG_MASK = _FLAG_LARGER_Y | _FLAG_INFINITY


class PointDecodingError(ValueError):
    """Raised when bytes do not encode a point on the curve."""


def _split_flags(data: bytes, expected_size: int) -> tuple[bytearray, bool, bool]:
    if len(data) != expected_size:
        msg = f"Expected {expected_size} bytes, got {len(data)}"
        raise PointDecodingError(msg)
    raw = bytearray(data)
    flags = raw[-1] & _FLAG_MASK
    raw[-1] &= ~_FLAG_MASK & 0xFF
    return raw, bool(flags & _FLAG_LARGER_Y), bool(flags & _FLAG_INFINITY)


def _read_fq(raw: bytes) -> int:
    value = int.from_bytes(raw, "little")
    if value >= field_modulus:
        msg = "Coordinate is not a canonical field element"
        raise PointDecodingError(msg)
    return value


def _fq_sqrt(a: int) -> int:
    # field_modulus = 3 mod 4
    root = pow(a, (field_modulus + 1) // 4, field_modulus)
    if root * root % field_modulus != a:
        msg = "x does not correspond to a point on G1"
        raise PointDecodingError(msg)
    return root


def _fq_is_larger(y: int) -> bool:
    return y > field_modulus - y


def _fq2_conjugate(a: FQ2) -> FQ2:
    c0, c1 = (int(c) for c in a.coeffs)
    return FQ2([c0, -c1])


def _fq2_sqrt(a: FQ2) -> FQ2:
    """Square root in Fq2 for q = 3 mod 4 (Adj and Rodriguez-Henriquez, alg. 9)."""
    if a == FQ2.zero():
        return a
    minus_one = FQ2([-1, 0])
    a1 = a ** ((field_modulus - 3) // 4)
    alpha = a1 * a1 * a
    # alpha^q is the Frobenius image, i.e. the conjugate
    if _fq2_conjugate(alpha) * alpha == minus_one:
        msg = "x does not correspond to a point on G2"
        raise PointDecodingError(msg)
    x0 = a1 * a
    if alpha == minus_one:
        root = FQ2([0, 1]) * x0
    else:
        root = ((FQ2.one() + alpha) ** ((field_modulus - 1) // 2)) * x0
    if root * root != a:
        msg = "x does not correspond to a point on G2"
        raise PointDecodingError(msg)
    return root


def _fq2_is_larger(y: FQ2) -> bool:
    c0, c1 = (int(c) for c in y.coeffs)
    if c1 != 0:
        return _fq_is_larger(c1)
    return _fq_is_larger(c0)


def decompress_g1(data: bytes) -> G1Point:
    """Decode a 32-byte compressed G1 point."""
    raw, larger, infinity = _split_flags(data, G1_COMPRESSED_SIZE)
    if infinity:
        return Z1
    x = _read_fq(bytes(raw))
    y = _fq_sqrt((pow(x, 3, field_modulus) + int(b.n)) % field_modulus)
    if _fq_is_larger(y) != larger:
        y = (field_modulus - y) % field_modulus
    point = (FQ(x), FQ(y), FQ(1))
    if not is_on_curve(point, b):
        msg = "Decoded point is not on G1"
        raise PointDecodingError(msg)
    return point


def decompress_g2(data: bytes) -> G2Point:
    """Decode a 64-byte compressed G2 point."""
    raw, larger, infinity = _split_flags(data, G2_COMPRESSED_SIZE)
    if infinity:
        return Z2
    x = FQ2([_read_fq(bytes(raw[:FQ_SIZE])), _read_fq(bytes(raw[FQ_SIZE:]))])
    y = _fq2_sqrt(x * x * x + b2)
    if _fq2_is_larger(y) != larger:
        y = -y
    point = (x, y, FQ2.one())
    if not is_on_curve(point, b2):
        msg = "Decoded point is not on G2"
        raise PointDecodingError(msg)
    # G2 has a non-trivial cofactor
    if not is_inf(multiply(point, curve_order)):
        msg = "Decoded point is not in the prime-order subgroup of G2"
        raise PointDecodingError(msg)
    return point


def compress_g1(point: G1Point) -> bytes:
    """Encode a G1 point in the 32-byte compressed form."""
    if is_inf(point):
        return bytes(G1_COMPRESSED_SIZE - 1) + bytes([_FLAG_INFINITY])
    x, y = normalize(point)
    raw = bytearray(int(x.n).to_bytes(FQ_SIZE, "little"))
    if _fq_is_larger(int(y.n)):
        raw[-1] |= _FLAG_LARGER_Y
    return bytes(raw)


def compress_g2(point: G2Point) -> bytes:
    """Encode a G2 point in the 64-byte compressed form."""
    if is_inf(point):
        return bytes(G2_COMPRESSED_SIZE - 1) + bytes([_FLAG_INFINITY])
    x, y = normalize(point)
    c0, c1 = (int(c) for c in x.coeffs)
    raw = bytearray(c0.to_bytes(FQ_SIZE, "little") + c1.to_bytes(FQ_SIZE, "little"))
    if _fq2_is_larger(y):
        raw[-1] |= _FLAG_LARGER_Y
    return bytes(raw)
