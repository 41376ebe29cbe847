import torch
import pytest
from mpmath import mp
import hypothesis.strategies as st
from hypothesis import assume, given, settings

from fex import fast_two_sum, two_prod, two_sum
from tests.helpers import mp_exact


# Числа без риска переполнения и потери значимости в two_prod
moderate_floats = st.one_of(
    st.just(0.0),
    st.floats(min_value=1e-100, max_value=1e100, allow_nan=False, allow_infinity=False),
    st.floats(min_value=-1e100, max_value=-1e-100, allow_nan=False, allow_infinity=False),
)

finite_floats = st.floats(allow_nan=False, allow_infinity=False, width=64)


def _t(x):
    return torch.tensor(x, dtype=torch.float64)


@pytest.mark.parametrize(
    "a, b",
    [
        (1.0, 1e-16),
        (1e20, -1e20 + 1),
        (0.0, 0.0),
        (1e16, 1.0),
        (3.0, -2.999999999999999),
        (torch.pi, torch.e),
    ],
    ids=["tiny_addend", "cancellation_large", "zeros", "tie_to_even", "near_cancellation", "pi_e"],
)
def test_two_sum_exact(a, b):
    """two_sum: s — округлённая сумма, s + t == a + b точно."""
    s, t = two_sum(_t(a), _t(b))
    assert s.item() == a + b
    assert mp_exact(s.item()) + mp_exact(t.item()) == mp_exact(a) + mp_exact(b)


@pytest.mark.parametrize(
    "a, b",
    [
        (1.0, 1e-16),
        (1e16, 1.0),
        (-5.5, 2.25),
        (1e300, -1e-300),
    ],
)
def test_fast_two_sum_exact(a, b):
    """fast_two_sum при |a| >= |b| даёт ту же пару, что и two_sum."""
    s, t = fast_two_sum(_t(a), _t(b))
    s2, t2 = two_sum(_t(a), _t(b))
    assert s.item() == s2.item()
    assert t.item() == t2.item()
    assert mp_exact(s.item()) + mp_exact(t.item()) == mp_exact(a) + mp_exact(b)


@pytest.mark.parametrize(
    "a, b",
    [
        (1.0 + 2.0 ** -52, 1.0 - 2.0 ** -53),
        (1e154, 1e154),
        (1e-100, 1e-120),
        (0.1, 0.3),
        (-123456789.123, 987654321.987),
        (0.0, 123.456),
    ],
)
def test_two_prod_exact(a, b):
    """two_prod: s — округлённое произведение, s + t == a * b точно."""
    s, t = two_prod(_t(a), _t(b))
    assert s.item() == a * b
    assert mp_exact(s.item()) + mp_exact(t.item()) == mp_exact(a) * mp_exact(b)


def test_eft_elementwise_broadcast():
    a = torch.randn(5, 1, dtype=torch.float64)
    b = torch.randn(1, 4, dtype=torch.float64)
    for op, exact in ((two_sum, lambda x, y: x + y), (two_prod, lambda x, y: x * y)):
        s, t = op(a, b)
        assert s.shape == (5, 4)
        a_bc, b_bc = torch.broadcast_tensors(a, b)
        for ga, gb, gs, gt in zip(a_bc.flatten().tolist(), b_bc.flatten().tolist(),
                                  s.flatten().tolist(), t.flatten().tolist()):
            assert mp_exact(gs) + mp_exact(gt) == exact(mp_exact(ga), mp_exact(gb))


@given(a=finite_floats, b=finite_floats)
@settings(max_examples=200)
def test_two_sum_property(a, b):
    assume(abs(a) < 1e307 and abs(b) < 1e307)
    s, t = two_sum(_t(a), _t(b))
    assert s.item() == a + b
    assert mp_exact(s.item()) + mp_exact(t.item()) == mp_exact(a) + mp_exact(b)


@given(a=finite_floats, b=finite_floats)
@settings(max_examples=200)
def test_fast_two_sum_property(a, b):
    assume(abs(a) < 1e307 and abs(b) < 1e307)
    if abs(a) < abs(b):
        a, b = b, a
    s, t = fast_two_sum(_t(a), _t(b))
    assert mp_exact(s.item()) + mp_exact(t.item()) == mp_exact(a) + mp_exact(b)


@given(a=moderate_floats, b=moderate_floats)
@settings(max_examples=200)
def test_two_prod_property(a, b):
    s, t = two_prod(_t(a), _t(b))
    assert s.item() == a * b
    assert mp_exact(s.item()) + mp_exact(t.item()) == mp_exact(a) * mp_exact(b)


@given(
    a=st.floats(min_value=-(2.0 ** 50), max_value=2.0 ** 50, width=32),
    b=st.floats(min_value=-(2.0 ** 50), max_value=2.0 ** 50, width=32),
)
@settings(max_examples=100)
def test_two_prod_float32_property(a, b):
    """Для float32 используется свой разделитель Veltkamp (4097)."""
    assume(a == 0.0 or abs(a) > 2.0 ** -33)
    assume(b == 0.0 or abs(b) > 2.0 ** -33)
    ta = torch.tensor(a, dtype=torch.float32)
    tb = torch.tensor(b, dtype=torch.float32)
    s, t = two_prod(ta, tb)
    assert s.dtype == torch.float32
    assert mp_exact(s.item()) + mp_exact(t.item()) == mp_exact(ta.item()) * mp_exact(tb.item())
