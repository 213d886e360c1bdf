"""Tests for learning rate schedules."""

import pytest

from chaincrf.exceptions import InvalidInputError
from chaincrf.learning import annealing


class TestSchedules:
    """Built-in schedule tests."""

    def test_constant(self) -> None:
        schedule = annealing.constant(0.1)

        assert [schedule.learning_rate(e) for e in (0, 1, 100)] == [0.1, 0.1, 0.1]

    def test_inverse(self) -> None:
        """Rates fall as initial / (1 + epoch / annealing_rate)."""
        schedule = annealing.inverse(0.5, 10.0)

        assert schedule.learning_rate(0) == pytest.approx(0.5)
        assert schedule.learning_rate(10) == pytest.approx(0.25)
        assert schedule.learning_rate(30) == pytest.approx(0.125)

    def test_exponential(self) -> None:
        schedule = annealing.exponential(1.0, 0.5)

        assert schedule.learning_rate(0) == 1.0
        assert schedule.learning_rate(3) == pytest.approx(0.125)

    def test_exponential_base_one_is_constant(self) -> None:
        assert annealing.exponential(0.2, 1.0).learning_rate(50) == pytest.approx(0.2)

    def test_built_in_schedules_never_reject(self) -> None:
        for schedule in (annealing.constant(0.1), annealing.inverse(0.1, 5.0), annealing.exponential(0.1, 0.9)):
            assert not schedule.allows_rejection()
            assert schedule.received_error(0, 0.1, 12.0)

    def test_repr(self) -> None:
        assert repr(annealing.constant(0.1)) == "Constant(learning_rate=0.1)"
        assert repr(annealing.inverse(0.1, 5.0)) == "Inverse(initial_learning_rate=0.1, annealing_rate=5.0)"
        assert repr(annealing.exponential(0.1, 0.9)) == "Exponential(initial_learning_rate=0.1, base=0.9)"


class TestValidation:
    """Schedule argument validation."""

    @pytest.mark.parametrize("rate", [0.0, -0.1, float("nan"), float("inf")])
    def test_learning_rate_must_be_finite_positive(self, rate: float) -> None:
        with pytest.raises(InvalidInputError):
            annealing.constant(rate)

    def test_annealing_rate_must_be_positive(self) -> None:
        with pytest.raises(InvalidInputError, match="annealing_rate"):
            annealing.inverse(0.1, 0.0)

    @pytest.mark.parametrize("base", [0.0, 1.5, -0.5])
    def test_exponential_base_range(self, base: float) -> None:
        with pytest.raises(InvalidInputError, match="Base"):
            annealing.exponential(0.1, base)
