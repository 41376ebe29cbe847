"""fex._renorm
=============
Сжатие (compress) разложения до канонической минимальной формы.

Алгоритм Compress (Shewchuk) делает два линейных прохода с
fast_two_sum: сверху вниз, поглощая нулевые ошибки, и снизу вверх по
буферу, собранному первым проходом. Результат — неперекрывающееся
разложение без нулевых компонентов; если всё сократилось, это ровно
один компонент 0.0.
"""

from __future__ import annotations

from typing import List

import torch

from ._algos import _check_components
from ._core import fast_two_sum

__all__ = ["compress"]


def _compress_pass(e: torch.Tensor) -> torch.Tensor:
    descending = e.flip(0).unbind()

    # Первый проход: от старшего компонента к младшему.
    q = descending[0]
    buffered: List[torch.Tensor] = []
    for component in descending[1:]:
        big, small = fast_two_sum(q, component)
        if small != 0:
            buffered.append(big)
            q = small
        else:
            q = big

    # Второй проход: буфер в порядке возрастания значимости.
    out: List[torch.Tensor] = []
    for component in reversed(buffered):
        q, small = fast_two_sum(component, q)
        if small != 0:
            out.append(small)
    out.append(q)
    return torch.stack(out)


def compress(e: torch.Tensor) -> torch.Tensor:
    """
    Возвращает сжатое разложение с той же точной суммой, что и `e`.

    Одна пара проходов может оставить соседние компоненты, которые
    следующая пара ещё сольёт или переокруглит, поэтому проходы
    повторяются до неподвижной точки. Каждый проход сохраняет точную
    сумму и не увеличивает длину; результат неподвижен, так что
    compress(compress(e)) совпадает с compress(e) покомпонентно.
    """
    _check_components(e)
    current = _compress_pass(e)
    while True:
        following = _compress_pass(current)
        if torch.equal(following, current):
            return current
        current = following
