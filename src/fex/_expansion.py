"""fex._expansion
================
Класс Expansion и его интеграция с PyTorch через протокол
__torch_function__.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

import numpy as np
import torch

from ._algos import (
    EmptyExpansionError,
    _check_components,
    distillation_sum,
    expansion_product,
    expansion_sum,
    fast_expansion_sum,
    grow_expansion,
    scale_expansion,
)
from ._core import SUPPORTED_DTYPES
from ._renorm import compress

# Глобальный диспатчер для операций над разложениями.
# Заполняется декоратором @implements в _ops.py
HANDLED_FUNCTIONS = {}

# Точность mpmath (в битах), при которой сумма любых float64 точна.
_EXACT_PREC = 5000


def _to_float_tensor(values, dtype, device) -> torch.Tensor:
    if isinstance(values, np.ndarray):
        values = torch.from_numpy(np.ascontiguousarray(values))
    tensor = torch.as_tensor(values, device=device)
    if dtype is None:
        # float32 сохраняется, всё остальное (int, float16, ...) -> dtype по умолчанию
        dtype = tensor.dtype if tensor.dtype in SUPPORTED_DTYPES else torch.get_default_dtype()
    return tensor.to(dtype)


def implements(torch_function):
    """Декоратор для регистрации реализаций функций torch для Expansion."""
    def decorator(func):
        HANDLED_FUNCTIONS[torch_function] = func
        return func
    return decorator


class Expansion:
    """
    Разложение: неизменяемое значение, представляющее вещественное число
    точной суммой чисел с плавающей точкой.

    Это класс-обертка вокруг одномерного torch.Tensor компонентов,
    упорядоченных от младшего к старшему. Операции `+`, `-`, `*`, `**`
    проходят через __torch_function__ и возвращают новое сжатое
    разложение; исходные объекты никогда не изменяются.
    """

    def __init__(self, components: torch.Tensor):
        if not isinstance(components, torch.Tensor):
            raise TypeError("components must be a torch.Tensor")
        if components.dtype not in SUPPORTED_DTYPES:
            raise TypeError(f"components tensor must be float64 or float32, got {components.dtype}")
        _check_components(components, name="components")
        self._components = components.detach().clone()

    @property
    def components(self) -> torch.Tensor:
        """Копия тензора компонентов (младший первый)."""
        return self._components.clone()

    @property
    def dtype(self):
        return self._components.dtype

    @property
    def device(self):
        return self._components.device

    def __len__(self) -> int:
        return self._components.numel()

    def tolist(self) -> List[float]:
        return self._components.tolist()

    # --- Конструкторы ---
    @classmethod
    def from_float(cls, value, dtype: Optional[torch.dtype] = None, device=None) -> Expansion:
        """Создает разложение из одного числа: [value]."""
        tensor = _to_float_tensor(value, dtype, device)
        if tensor.numel() != 1:
            raise ValueError(f"from_float expects a single value, got a tensor of shape {tuple(tensor.shape)}")
        return cls(tensor.reshape(1))

    @classmethod
    def from_floats(cls, values, dtype: Optional[torch.dtype] = None, device=None) -> List[Expansion]:
        """Поэлементно поднимает последовательность чисел (list, np.ndarray, torch.Tensor) в список разложений."""
        tensor = _to_float_tensor(values, dtype, device).flatten()
        return [cls(v.reshape(1)) for v in tensor.unbind()]

    @classmethod
    def from_mpmath(cls, mp_ctx, value, max_components: Optional[int] = None,
                    dtype: Optional[torch.dtype] = None, device=None) -> Expansion:
        """
        Создает разложение из mpmath-числа, жадно извлекая старшую часть,
        представимую во float, пока остаток не станет нулем (или пока не
        наберется max_components компонентов; тогда хвост отбрасывается).
        """
        dtype = dtype or torch.get_default_dtype()
        with mp_ctx.workprec(_EXACT_PREC):
            residue = mp_ctx.mpf(value)
            comps = []
            while residue != 0 and (max_components is None or len(comps) < max_components):
                head = torch.tensor(float(residue), dtype=dtype).item()
                if math.isinf(head):
                    raise OverflowError(f"{value} is out of range for {dtype}")
                if head == 0.0:
                    # остаток меньше наименьшего представимого числа
                    break
                comps.append(head)
                residue -= mp_ctx.mpf(head)
        if not comps:
            comps = [0.0]
        comps.reverse()
        return cls(torch.tensor(comps, dtype=dtype, device=device))

    @classmethod
    def distill(cls, expansions: Iterable[Expansion]) -> Expansion:
        """Точная сумма набора разложений через distillation_sum (без сжатия)."""
        expansions = list(expansions)
        if not expansions:
            raise EmptyExpansionError("distill needs at least one expansion")
        return cls(distillation_sum(torch.cat([x._components for x in expansions])))

    # --- Алгоритмы над компонентами ---
    def grow(self, b) -> Expansion:
        return Expansion(grow_expansion(self._components, b))

    def sum(self, other: Expansion) -> Expansion:
        """Медленная сумма (Expansion-Sum), без сжатия."""
        return Expansion(expansion_sum(self._components, other._components))

    def fast_sum(self, other: Expansion) -> Expansion:
        """Быстрая сумма (Fast-Expansion-Sum), без сжатия."""
        return Expansion(fast_expansion_sum(self._components, other._components))

    def scale(self, b) -> Expansion:
        return Expansion(scale_expansion(self._components, b))

    def product(self, other: Expansion) -> Expansion:
        """Произведение без сжатия: 2·|self|·|other| компонентов."""
        return Expansion(expansion_product(self._components, other._components))

    def compress(self) -> Expansion:
        return Expansion(compress(self._components))

    def add(self, other) -> Expansion:
        return torch.add(self, other)

    def multiply(self, other) -> Expansion:
        return torch.mul(self, other)

    # --- Извлечение значения ---
    def head(self) -> torch.Tensor:
        """Старший компонент: лучшее приближение одним float для сжатого разложения."""
        return self._components[-1].clone()

    def to_float(self, exact_sum: bool = False, mp_ctx=None) -> torch.Tensor:
        """
        Конвертирует разложение в 0-d тензор.

        Args:
            exact_sum: Если True, возвращает правильно округленную точную
                      сумму через mpmath (медленно, но без потери точности)
            mp_ctx: Контекст mpmath для точных вычислений
        """
        if not exact_sum:
            return self.head()
        if mp_ctx is None:
            raise ValueError("mp_ctx must be provided when exact_sum=True")
        with mp_ctx.workprec(_EXACT_PREC):
            total = self.to_mpmath(mp_ctx)
            return torch.tensor(float(total), dtype=self.dtype, device=self.device)

    def to_mpmath(self, mp_ctx):
        """
        Точная сумма компонентов как mpmath.mpf.

        Преобразование float -> mpf точное; суммирование идёт с повышенной
        рабочей точностью контекста, поэтому результат не зависит от
        текущей mp_ctx.prec.
        """
        with mp_ctx.workprec(_EXACT_PREC):
            return mp_ctx.fsum(mp_ctx.mpf(c) for c in self._components.tolist())

    def __float__(self) -> float:
        return self._components[-1].item()

    # --- Представление ---
    def to_string(self) -> str:
        """Компоненты от старшего к младшему в формате %e, через ' & '."""
        return " & ".join("%e" % c for c in reversed(self._components.tolist()))

    def head_to_string(self) -> str:
        return "%e" % self._components[-1].item()

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Expansion([{self.to_string()}], dtype={self.dtype})"

    # --- Значение-объект ---
    def __eq__(self, other) -> bool:
        if not isinstance(other, Expansion):
            return NotImplemented
        return self.dtype == other.dtype and torch.equal(self._components, other._components)

    def __hash__(self) -> int:
        return hash((str(self.dtype), tuple(self._components.tolist())))

    # --- Диспатчинг в PyTorch ---
    @classmethod
    def __torch_function__(cls, func, types, args=(), kwargs=None):
        if kwargs is None:
            kwargs = {}

        if func in HANDLED_FUNCTIONS:
            return HANDLED_FUNCTIONS[func](*args, **kwargs)

        raise NotImplementedError(f"Expansion: PyTorch function {func.__name__} is not implemented.")

    # --- Магические методы для операторов ---
    def __add__(self, other):
        return torch.add(self, other)

    def __radd__(self, other):
        return torch.add(self._lift(other), self)

    def __sub__(self, other):
        return torch.sub(self, other)

    def __rsub__(self, other):
        return torch.sub(self._lift(other), self)

    def __mul__(self, other):
        return torch.mul(self, other)

    def __rmul__(self, other):
        return torch.mul(self._lift(other), self)

    def __neg__(self):
        return torch.neg(self)

    def __pow__(self, exponent):
        return torch.pow(self, exponent)

    def _lift(self, other) -> Expansion:
        if isinstance(other, Expansion):
            return other
        return Expansion.from_float(other, dtype=self.dtype, device=self.device)


def as_expansions(values: Sequence) -> List[Expansion]:
    """Поднимает числа и разложения вперемешку в список разложений."""
    return [v if isinstance(v, Expansion) else Expansion.from_float(v) for v in values]
