from __future__ import annotations

"""fex._ops
===========
Операции над разложениями, перехватываемые через __torch_function__.

Каждая функция принимает одно или два разложения (числа и 0-d тензоры
поднимаются до разложений длины 1) и возвращает новое сжатое
разложение.
"""

import warnings
from typing import Tuple, Union

import torch

from ._algos import expansion_product, fast_expansion_sum
from ._expansion import Expansion, HANDLED_FUNCTIONS, implements
from ._renorm import compress

__all__ = [
    "fex_add",
    "fex_sub",
    "fex_mul",
    "fex_neg",
    "fex_pow",
]

Operand = Union[Expansion, torch.Tensor, float, int]


# -----------------------------------------------------------------------------
# Вспомогательные утилиты
# -----------------------------------------------------------------------------

def _unify_args(x: Operand, y: Operand) -> Tuple[Expansion, Expansion]:
    """Приводит оба аргумента к Expansion одного dtype."""
    is_x_fex = isinstance(x, Expansion)
    is_y_fex = isinstance(y, Expansion)

    if is_x_fex and is_y_fex:
        if x.dtype != y.dtype:
            raise ValueError(f"Mixed precision expansion ops not supported: {x.dtype} and {y.dtype}.")
        return x, y
    if is_x_fex:
        return x, Expansion.from_float(y, dtype=x.dtype, device=x.device)
    if is_y_fex:
        return Expansion.from_float(x, dtype=y.dtype, device=y.device), y
    raise TypeError("At least one argument must be an Expansion.")


# -----------------------------------------------------------------------------
# Реализации операций
# -----------------------------------------------------------------------------

@implements(torch.neg)
def fex_neg(x: Expansion) -> Expansion:
    """Унарный минус: смена знака всех компонентов точна и сохраняет сжатость."""
    return Expansion(-x.components)


@implements(torch.add)
def fex_add(x: Operand, y: Operand) -> Expansion:
    """Сложение: Fast-Expansion-Sum и сжатие."""
    x_fex, y_fex = _unify_args(x, y)
    dirty = fast_expansion_sum(x_fex.components, y_fex.components)
    return Expansion(compress(dirty))


@implements(torch.sub)
def fex_sub(x: Operand, y: Operand) -> Expansion:
    x_fex, y_fex = _unify_args(x, y)
    return fex_add(x_fex, fex_neg(y_fex))


@implements(torch.mul)
def fex_mul(x: Operand, y: Operand) -> Expansion:
    """
    Умножение разложений.

    Алгоритм:
    1. Scale: x умножается на каждый компонент y (scale_expansion),
       получается |y| разложений длины 2|x|.
    2. Distillation: все компоненты точно суммируются distillation_sum.
    3. Compress: результат сжимается до канонической формы.
    """
    x_fex, y_fex = _unify_args(x, y)
    dirty = expansion_product(x_fex.components, y_fex.components)
    return Expansion(compress(dirty))


@implements(torch.pow)
def fex_pow(base: Expansion, exponent: int) -> Expansion:
    """Целая неотрицательная степень через возведение в квадрат."""
    if isinstance(exponent, bool) or not isinstance(exponent, int) or exponent < 0:
        raise NotImplementedError("Expansion pow supports only non-negative integer exponents.")

    result = Expansion.from_float(1.0, dtype=base.dtype, device=base.device)
    if exponent == 0:
        return result

    current_power = base
    exp = exponent
    while exp > 0:
        if exp % 2 == 1:
            result = fex_mul(result, current_power)
        exp //= 2
        if exp > 0:
            current_power = fex_mul(current_power, current_power)

    return result


SUPPORTED_OPS = [
    torch.add,
    torch.sub,
    torch.mul,
    torch.neg,
    torch.pow,
]
for op in SUPPORTED_OPS:
    if op not in HANDLED_FUNCTIONS:
        warnings.warn(f"fex: op {op.__name__} is not registered in HANDLED_FUNCTIONS", RuntimeWarning)
