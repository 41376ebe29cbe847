"""fex — арифметика разложений (floating-point expansions).

Число представляется неперекрывающимися компонентами с плавающей
точкой, точная сумма которых равна значению. Сложение и умножение
выполняются точно, только обычными операциями float.
"""

import torch
import warnings

# Устанавливаем float64 как дефолтный dtype: разложения из Python-чисел
# создаются именно в нём.
if torch.get_default_dtype() != torch.float64:
    warnings.warn(
        f"fex: Принудительно устанавливаю torch.set_default_dtype(torch.float64) "
        f"(было {torch.get_default_dtype()}). Разложения из Python-чисел будут float64.",
        stacklevel=2
    )
    torch.set_default_dtype(torch.float64)

from ._core import fast_two_sum, two_prod, two_sum  # noqa: F401
from ._algos import (  # noqa: F401
    EmptyExpansionError,
    distillation_sum,
    expansion_product,
    expansion_sum,
    fast_expansion_sum,
    grow_expansion,
    scale_expansion,
)
from ._renorm import compress  # noqa: F401
from ._expansion import Expansion  # noqa: F401

# Импортируем _ops ради побочных эффектов (рег. HANDLED_FUNCTIONS)
from ._ops import fex_add as add, fex_mul as multiply, fex_neg as neg, fex_pow as power, fex_sub as sub  # noqa: F401
from ._poly import ILL_CONDITIONED_COEFFICIENTS, horner, horner_expansion  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "fast_two_sum",
    "two_sum",
    "two_prod",
    "EmptyExpansionError",
    "grow_expansion",
    "expansion_sum",
    "fast_expansion_sum",
    "scale_expansion",
    "distillation_sum",
    "expansion_product",
    "compress",
    "Expansion",
    # операции над разложениями (публичный API)
    "add",
    "sub",
    "multiply",
    "neg",
    "power",
    "horner",
    "horner_expansion",
    "ILL_CONDITIONED_COEFFICIENTS",
]
