import math
from functools import reduce
from typing import List, Sequence

import torch
from mpmath import mp

from fex import Expansion

# 5000 бит покрывают весь диапазон порядков float64 (2098 бит) с запасом,
# поэтому суммы и произведения ниже вычисляются mpmath точно.
mp.prec = 5000


def mp_exact(x: float) -> mp.mpf:
    """float -> mpf без округления."""
    return mp.mpf(float(x))


def mp_sum(values) -> mp.mpf:
    """Точная сумма элементов тензора или последовательности чисел."""
    if isinstance(values, torch.Tensor):
        values = values.flatten().tolist()
    return mp.fsum(mp_exact(v) for v in values)


def fex_to_mp(x: Expansion) -> mp.mpf:
    """Точное значение разложения."""
    return mp_sum(x.components)


def random_expansion(gen: torch.Generator, n_terms: int, spread: int = 60) -> Expansion:
    """
    Сжатое разложение как точная сумма n_terms случайных чисел с
    порядками в пределах 2^±spread.
    """
    values = torch.randn(n_terms, dtype=torch.float64, generator=gen)
    exponents = torch.randint(-spread, spread + 1, (n_terms,), generator=gen)
    values = values * torch.pow(2.0, exponents.to(torch.float64))
    return reduce(lambda a, b: a + b, Expansion.from_floats(values))


def _highest_bit(v: float) -> int:
    return math.frexp(v)[1] - 1


def _lowest_bit(v: float) -> int:
    num, den = abs(v).as_integer_ratio()
    trailing = (num & -num).bit_length() - 1
    return trailing - (den.bit_length() - 1)


def is_non_overlapping(components: Sequence[float]) -> bool:
    """Проверяет, что значащие биты ненулевых компонентов (по возрастанию) не пересекаются."""
    nonzero: List[float] = [c for c in components if c != 0.0]
    for low, high in zip(nonzero, nonzero[1:]):
        if _highest_bit(low) >= _lowest_bit(high):
            return False
    return True
