"""fex._poly
===========
Вычисление многочлена по схеме Горнера: в обычной арифметике и в
арифметике разложений. Используется для сравнения точности на плохо
обусловленных многочленах.

Коэффициенты передаются от младшей степени к старшей.
"""

from __future__ import annotations

from typing import Sequence

import torch

from ._expansion import Expansion, as_expansions

__all__ = ["ILL_CONDITIONED_COEFFICIENTS", "horner", "horner_expansion"]

# (x - 0.75)^5 (x - 1)^11; все коэффициенты точно представимы во float64.
ILL_CONDITIONED_COEFFICIENTS = (
    2.373046875000000e-01, -4.192382812500000e+00,
    3.467285156250000e+01, -1.781982421875000e+02,
    6.370019531250000e+02, -1.679423828125000e+03,
    3.378095703125000e+03, -5.288271484375000e+03,
    6.511538085937500e+03, -6.327524414062500e+03,
    4.836465820312500e+03, -2.877295898437500e+03,
    1.306113281250000e+03, -4.373437500000000e+02,
    1.018750000000000e+02, -1.475000000000000e+01,
    1.000000000000000e+00,
)


def horner(coefficients: Sequence[float], x: float) -> float:
    """Схема Горнера в обычной арифметике float."""
    if not coefficients:
        raise ValueError("horner needs at least one coefficient")
    acc = float(coefficients[-1])
    for c in reversed(coefficients[:-1]):
        acc = acc * x + c
    return acc


def horner_expansion(coefficients: Sequence, x) -> Expansion:
    """
    Схема Горнера на разложениях.

    Для float-коэффициентов и float-аргумента все сложения и умножения
    точны, поэтому результат — точное значение многочлена (пока нет
    переполнения или потери значимости); старший компонент даёт его
    лучшее приближение одним float.
    """
    if not coefficients:
        raise ValueError("horner_expansion needs at least one coefficient")
    coefs = as_expansions(coefficients)
    if not isinstance(x, Expansion):
        x = Expansion.from_float(x, dtype=coefs[0].dtype)
    acc = coefs[-1]
    for c in reversed(coefs[:-1]):
        acc = torch.add(torch.mul(acc, x), c)
    return acc
