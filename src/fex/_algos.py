"""fex._algos
============
Алгоритмы Shewchuk над разложениями на базе EFT.

Разложение здесь — одномерный тензор компонентов, упорядоченных по
возрастанию значимости (младший компонент первый). Точное значение —
сумма всех компонентов в вещественной арифметике.

* grow_expansion — добавление одного числа к разложению
* expansion_sum — «медленная» сумма двух разложений через grow
* fast_expansion_sum — сумма через слияние по модулю
* scale_expansion — умножение разложения на число
* distillation_sum — точная сумма произвольного набора чисел
* expansion_product — произведение двух разложений

Результаты не сжаты: вызывающий код обычно применяет `compress`.
"""

from __future__ import annotations

from typing import List

import torch

from ._core import fast_two_sum, two_prod, two_sum

__all__ = [
    "EmptyExpansionError",
    "grow_expansion",
    "expansion_sum",
    "fast_expansion_sum",
    "scale_expansion",
    "distillation_sum",
    "expansion_product",
]


class EmptyExpansionError(ValueError):
    """Разложение без единого компонента."""


def _check_components(e: torch.Tensor, name: str = "expansion") -> None:
    if not isinstance(e, torch.Tensor):
        raise TypeError(f"{name} must be a torch.Tensor")
    if e.ndim != 1:
        raise ValueError(f"{name} must be a 1-D tensor of components, got shape {tuple(e.shape)}")
    if e.numel() == 0:
        raise EmptyExpansionError(f"{name} has no components")


def _as_scalar(b, like: torch.Tensor) -> torch.Tensor:
    b = torch.as_tensor(b, dtype=like.dtype, device=like.device)
    if b.numel() != 1:
        raise ValueError(f"expected a single scalar, got a tensor of shape {tuple(b.shape)}")
    return b.reshape(())


def grow_expansion(e: torch.Tensor, b) -> torch.Tensor:
    """Grow-Expansion: точно добавляет число `b` к разложению `e`.

    Перенос начинается с `b` и проходит через все компоненты `e` с
    помощью two_sum: младшая часть каждого шага становится компонентом
    результата, старшая переносится дальше. Длина результата m + 1.
    """
    _check_components(e)
    q = _as_scalar(b, e)
    out: List[torch.Tensor] = []
    for component in e.unbind():
        q, h = two_sum(q, component)
        out.append(h)
    out.append(q)
    return torch.stack(out)


def expansion_sum(e: torch.Tensor, f: torch.Tensor) -> torch.Tensor:
    """Expansion-Sum: по одному «выращивает» компоненты `f` в разложение `e`.

    Стоимость O(|e|·|f|) вызовов two_sum.
    """
    _check_components(e)
    _check_components(f)
    if e.dtype != f.dtype:
        raise TypeError(f"expansion_sum expects expansions of the same dtype, got {e.dtype} and {f.dtype}")
    done: List[torch.Tensor] = []
    running = e
    for component in f.unbind():
        grown = grow_expansion(running, component)
        # младший компонент больше не изменится
        done.append(grown[0])
        running = grown[1:]
    return torch.cat([torch.stack(done), running])


def fast_expansion_sum(e: torch.Tensor, f: torch.Tensor) -> torch.Tensor:
    """Fast-Expansion-Sum: слияние компонентов по модулю и один проход two_sum.

    Компоненты обоих разложений сортируются по возрастанию модуля
    (устойчиво; при равных модулях компонент `e` идёт раньше компонента
    `f`). Два младших объединяются через fast_two_sum, затем старшая часть
    протягивается через остальные компоненты с помощью two_sum.
    """
    _check_components(e)
    _check_components(f)
    if e.dtype != f.dtype:
        raise TypeError(f"fast_expansion_sum expects expansions of the same dtype, got {e.dtype} and {f.dtype}")

    merged = torch.cat([e, f])
    order = torch.sort(torch.abs(merged), stable=True).indices
    g = merged[order].unbind()

    q, h = fast_two_sum(g[1], g[0])
    out: List[torch.Tensor] = [h]
    for component in g[2:]:
        q, h = two_sum(q, component)
        out.append(h)
    out.append(q)
    return torch.stack(out)


def scale_expansion(e: torch.Tensor, b) -> torch.Tensor:
    """Scale-Expansion: точное произведение разложения на число `b`.

    Результат содержит 2n компонентов, где n = |e|.
    """
    _check_components(e)
    b = _as_scalar(b, e)
    components = e.unbind()

    q, h = two_prod(components[0], b)
    out: List[torch.Tensor] = [h]
    for component in components[1:]:
        ph, pl = two_prod(component, b)
        sh, sl = two_sum(q, pl)
        q, fl = fast_two_sum(ph, sh)
        out.append(sl)
        out.append(fl)
    out.append(q)
    return torch.stack(out)


def distillation_sum(values: torch.Tensor) -> torch.Tensor:
    """Точная сумма произвольного набора чисел.

    Соседние числа попарно объединяются через two_sum в разложения
    длины 2 (нечётное последнее число остаётся одиночным), после чего
    все они сворачиваются через fast_expansion_sum.
    """
    _check_components(values, name="values")
    parts = values.unbind()

    seeds: List[torch.Tensor] = []
    for i in range(0, len(parts) - 1, 2):
        s, t = two_sum(parts[i], parts[i + 1])
        seeds.append(torch.stack([t, s]))
    if len(parts) % 2 == 1:
        seeds.append(parts[-1].reshape(1))

    acc = seeds[0]
    for seed in seeds[1:]:
        acc = fast_expansion_sum(seed, acc)
    return acc


def expansion_product(e: torch.Tensor, f: torch.Tensor) -> torch.Tensor:
    """Произведение разложений: scale_expansion(e, f_i) для каждого f_i и distillation_sum.

    Длина результата до сжатия 2·|e|·|f|.
    """
    _check_components(e)
    _check_components(f)
    if e.dtype != f.dtype:
        raise TypeError(f"expansion_product expects expansions of the same dtype, got {e.dtype} and {f.dtype}")
    partials = [scale_expansion(e, component) for component in f.unbind()]
    return distillation_sum(torch.cat(partials))
