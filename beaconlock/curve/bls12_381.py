"""
beaconlock.curve.bls12_381
==========================

Thin BLS12-381 group and pairing wrapper over ``py_ecc.optimized_bls12_381``.

Public API
----------
- Group (G1 / G2), generator(group), identity(group), curve_order(), field_modulus()
- add / mul / neg / eq / is_identity / is_on_curve / in_subgroup
- pair(P, Q) -> GTElement          (normalized, see below)
- pairing_equal(P1, Q1, P2, Q2)    e(P1, Q1) == e(P2, Q2) with one final exponentiation
- gt_coefficients(x)               tower coefficients for serialization

Notes
-----
- Point ordering follows e(P, Q) with P in G1, Q in G2. The underlying
  ``py_ecc`` call expects (Q, P); this wrapper handles it.
- Points are opaque projective tuples understood by py_ecc.
- ``py_ecc`` runs the Miller loop over |x| and raises to (p^12 - 1)/r. Other
  BLS12-381 stacks (kyber/kilic, blst, arkworks) invert for the negative loop
  parameter and use the 3(p^4 - p^2 + 1)/r hard part, so ``pair`` reports
  conj(f^3). Equality checks go through ``pairing_equal`` and do not care.
"""

from __future__ import annotations

import enum
from typing import Any, List, Tuple

from py_ecc.optimized_bls12_381 import (
    FQ12,
    G1 as _G1,
    G2 as _G2,
    Z1 as _Z1,
    Z2 as _Z2,
    add as _add,
    b as _B,
    b2 as _B2,
    curve_order as _R,
    eq as _eq,
    field_modulus as _P,
    final_exponentiate as _final_exponentiate,
    is_inf as _is_inf,
    is_on_curve as _is_on_curve,
    multiply as _multiply,
    neg as _neg,
    pairing as _pairing,
)

G1Point = Any
G2Point = Any
Point = Any
GTElement = FQ12


class Group(str, enum.Enum):
    """Source group of a point."""

    G1 = "G1"
    G2 = "G2"

    @property
    def other(self) -> "Group":
        return Group.G2 if self is Group.G1 else Group.G1


def curve_order() -> int:
    """Return the prime subgroup order r."""
    return int(_R)


def field_modulus() -> int:
    """Return the base field modulus p."""
    return int(_P)


def generator(group: Group) -> Point:
    return _G1 if group is Group.G1 else _G2


def identity(group: Group) -> Point:
    return _Z1 if group is Group.G1 else _Z2


def add(p: Point, q: Point) -> Point:
    return _add(p, q)


def mul(p: Point, k: int) -> Point:
    """Scalar multiplication; k is reduced mod r."""
    return _multiply(p, k % _R)


def neg(p: Point) -> Point:
    return _neg(p)


def eq(p: Point, q: Point) -> bool:
    return bool(_eq(p, q))


def is_identity(p: Point) -> bool:
    return bool(_is_inf(p))


def is_on_curve(group: Group, p: Point) -> bool:
    """True if p satisfies the curve equation of its group (identity included)."""
    if _is_inf(p):
        return True
    return bool(_is_on_curve(p, _B if group is Group.G1 else _B2))


def in_subgroup(p: Point) -> bool:
    """True if p lies in the prime-order subgroup (r·p is the identity)."""
    return bool(_is_inf(_multiply(p, _R)))


# -------------------------
# Pairing
# -------------------------

def _miller(p: G1Point, q: G2Point) -> FQ12:
    return _pairing(q, p, final_exponentiate=False)


def pair(p: G1Point, q: G2Point) -> GTElement:
    """
    Compute e(p, q) on BLS12-381, normalized to the value other stacks report.

    Raises ValueError (from py_ecc) for points off their curves.
    """
    f = _final_exponentiate(_miller(p, q))
    return conjugate(f * f * f)


def pairing_equal(p1: G1Point, q1: G2Point, p2: G1Point, q2: G2Point) -> bool:
    """Return e(p1, q1) == e(p2, q2), sharing a single final exponentiation."""
    f = _miller(p1, q1) * _miller(_neg(p2), q2)
    return _final_exponentiate(f) == FQ12.one()


def gt_pow(x: GTElement, k: int) -> GTElement:
    return x ** (k % _R)


def _int(c: Any) -> int:
    return int(c.n) if hasattr(c, "n") else int(c)


def conjugate(x: GTElement) -> GTElement:
    """x^(p^6); the inverse for elements of the cyclotomic subgroup."""
    coeffs = [_int(c) for c in x.coeffs]
    return FQ12([c if i % 2 == 0 else (-c) % _P for i, c in enumerate(coeffs)])


def gt_coefficients(x: GTElement) -> List[List[Tuple[int, int]]]:
    """
    Return x in the Fp2 -> Fp6 -> Fp12 tower as [c0, c1], each c_i = [a0, a1, a2]
    and each a_j = (real, imaginary).

    py_ecc stores Fp12 as a degree-12 polynomial in w with w^12 = 2w^6 - 2.
    With u = w^6 - 1 (u^2 = -1), v = w^2 and w^2 = v, the coefficient of w^e
    (e < 6) in the tower is (c[e] + c[e+6]) + c[e+6]·u. Even e land in c0, odd
    e in c1, with a_j at e = 2j (+1).
    """
    c = [_int(v) % _P for v in x.coeffs]
    fp2 = [((c[e] + c[e + 6]) % _P, c[e + 6]) for e in range(6)]
    return [
        [fp2[0], fp2[2], fp2[4]],
        [fp2[1], fp2[3], fp2[5]],
    ]


__all__ = [
    "Group",
    "G1Point",
    "G2Point",
    "Point",
    "GTElement",
    "curve_order",
    "field_modulus",
    "generator",
    "identity",
    "add",
    "mul",
    "neg",
    "eq",
    "is_identity",
    "is_on_curve",
    "in_subgroup",
    "pair",
    "pairing_equal",
    "gt_pow",
    "conjugate",
    "gt_coefficients",
]
