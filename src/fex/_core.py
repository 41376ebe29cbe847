from __future__ import annotations

"""fex._core
============
Числовые примитивы «error-free transformation» (EFT), на которых
построена вся арифметика разложений (expansions).

* fast_two_sum — точная сумма при условии |a| >= |b|
* two_sum — точная сумма без предусловий
* two_prod — точное произведение (Dekker, расщепление Veltkamp)

Все операции работают покомпонентно на вещественных тензорах
(`torch.float64` или `torch.float32`) и возвращают пару
(value, error) broadcast-формы аргументов.
"""

import functools
import math

import torch

__all__ = ["fast_two_sum", "two_sum", "two_prod", "SUPPORTED_DTYPES"]

SUPPORTED_DTYPES = (torch.float64, torch.float32)


def _check_operands(a, b, name: str) -> None:
    if not isinstance(a, torch.Tensor) or not isinstance(b, torch.Tensor):
        raise TypeError(f"{name} expects torch.Tensor operands")
    if a.dtype not in SUPPORTED_DTYPES:
        raise TypeError(f"{name} expects float64 or float32 tensors, got {a.dtype}")
    if a.dtype != b.dtype:
        raise TypeError(f"{name} expects operands of the same dtype, got {a.dtype} and {b.dtype}")


@functools.lru_cache(maxsize=None)
def _splitter(dtype: torch.dtype) -> float:
    """Константа Veltkamp 2^ceil(p/2) + 1 для мантиссы из p бит.

    float64 (p = 53) -> 134217729.0, float32 (p = 24) -> 4097.0.
    """
    p = 1 - int(math.log2(torch.finfo(dtype).eps))
    return 2.0 ** math.ceil(p / 2) + 1.0


def _split(a: torch.Tensor):
    """Расщепление Veltkamp: a = ah + al, ah занимает не больше половины мантиссы."""
    c = _splitter(a.dtype) * a
    ah = c - (c - a)
    al = a - ah
    return ah, al


def fast_two_sum(a: torch.Tensor, b: torch.Tensor):
    """Быстрая двойная сумма (Dekker, 3 операции).

    Возвращает `(s, t)`, где `s` — округлённая сумма `a + b`, а
    `s + t == a + b` точно. Требует `|a| >= |b|`; это обязанность
    вызывающего кода, при нарушении результат просто неверен.
    """
    _check_operands(a, b, "fast_two_sum")
    s = a + b
    t = b - (s - a)
    return s, t


def two_sum(a: torch.Tensor, b: torch.Tensor):
    """Двойная сумма (Knuth + Møller, 6 операций).

    Возвращает `(s, t)` такие, что `a + b == s + t` *точно* в
    вещественной арифметике, где `s` — округлённая сумма. Порядок
    величин аргументов не важен. NaN и Inf не обрабатываются особо:
    они распространяются по обычным правилам IEEE-754.
    """
    _check_operands(a, b, "two_sum")
    s = a + b
    u = s - a
    t = (a - (s - u)) + (b - u)
    return s, t


def two_prod(a: torch.Tensor, b: torch.Tensor):
    """Двойное произведение (Dekker).

    Возвращает `(s, t)` такие, что `a * b == s + t` *точно*, пока не
    случилось переполнения или потери значимости. Ошибка собирается из
    четырёх частичных произведений половинок Veltkamp; порядок операций
    менять нельзя.
    """
    _check_operands(a, b, "two_prod")
    s = a * b
    ah, al = _split(a)
    bh, bl = _split(b)
    t = (al * bl) - (((s - ah * bh) - al * bh) - ah * bl)
    return s, t
