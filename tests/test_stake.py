import pytest

from quizstake.services.stake import decay_percent, decayed_stake


def test_decay_sequence_for_base_ten():
    assert [decayed_stake(10, n) for n in range(1, 6)] == [10, 6, 4, 3, 2]


def test_stake_never_below_one():
    assert decayed_stake(1, 1) == 1
    assert decayed_stake(1, 10) == 1
    assert decayed_stake(3, 50) == 1


def test_exact_products_stay_exact():
    assert decayed_stake(25, 3) == 9
    assert decayed_stake(125, 4) == 27
    assert decayed_stake(625, 5) == 81


def test_first_attempt_charges_full_stake():
    assert decayed_stake(37, 1) == 37


@pytest.mark.parametrize(
    "base, n, r",
    [(10, 0, 0.6), (0, 1, 0.6), (10, 1, 0.0), (10, 1, 1.0)],
)
def test_invalid_arguments(base, n, r):
    with pytest.raises(ValueError):
        decayed_stake(base, n, r)


def test_decay_percent():
    assert decay_percent(1) == 100
    assert decay_percent(2) == 60
    assert decay_percent(3) == 36
