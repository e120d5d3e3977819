import pytest

from mocklite.core import CmpErr
from mocklite.dice import mk_dice, mk_pkr


def test_dice_deterministic_units():
    seq = iter([0, 1, 2, 3])
    d = mk_dice("g", {"A": 3, "B": 1}, rb=lambda n: next(seq))
    assert d.total == 4
    assert [d.dice() for _ in range(4)] == ["A", "A", "A", "B"]


def test_dice_skips_zero_weight():
    d = mk_dice("g", {"A": 0, "B": 2})
    assert {d.dice() for _ in range(50)} == {"B"}


def test_dice_distribution_converges():
    d = mk_dice("g", {"A": 3, "B": 1})
    n = 20000
    a = sum(1 for _ in range(n) if d.dice() == "A")
    # 0.75 +- ~6 sigma
    assert abs(a / n - 0.75) < 0.02


@pytest.mark.parametrize("fct", [{}, {"A": 0}, {"A": -1}, {"A": "x"}])
def test_dice_bad_group(fct):
    with pytest.raises(CmpErr):
        mk_dice("g", fct)


def test_pkr_dice_all_every_group():
    p = mk_pkr({"color": {"red": 1}, "size": {"s": 1, "l": 1}})
    r = p.dice_all()
    assert set(r) == {"color", "size"}
    assert r["color"] == "red"
    assert r["size"] in ("s", "l")


def test_pkr_empty():
    assert mk_pkr(None).dice_all() == {}
