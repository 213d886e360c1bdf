"""Learning rate schedules for stochastic gradient descent.

Schedules map an epoch number (starting at 0) to a learning rate:
- constant: rate
- inverse: initial / (1 + epoch / annealing_rate)
- exponential: initial * base ** epoch, with 0 < base <= 1

A schedule may also be told the error after each epoch and reject that
epoch's update by returning False from received_error().
"""

import math
from abc import ABC, abstractmethod

from chaincrf.exceptions import InvalidInputError


def _verify_finite_positive(name: str, value: float) -> None:
    if math.isnan(value) or math.isinf(value) or value <= 0.0:
        raise InvalidInputError(message=f"{name} must be finite and positive. Found {name}={value}")


class AnnealingSchedule(ABC):
    """Learning rate as a function of epoch, with optional update rejection."""

    @abstractmethod
    def learning_rate(self, epoch: int) -> float:
        """Learning rate for ``epoch``."""

    def received_error(self, epoch: int, rate: float, error: float) -> bool:
        """Report the error after an epoch trained at ``rate``.

        Returns:
            True to accept the epoch's update, False to roll it back.
        """
        return True

    def allows_rejection(self) -> bool:
        """Whether the built-in received_error() may return False. Informational only."""
        return True


class _FixedSchedule(AnnealingSchedule):
    """Schedule that depends only on the epoch and never rejects."""

    def __init__(self, initial_learning_rate: float) -> None:
        _verify_finite_positive("initial_learning_rate", initial_learning_rate)
        self.initial_learning_rate = initial_learning_rate

    def allows_rejection(self) -> bool:
        return False


class ConstantSchedule(_FixedSchedule):
    def learning_rate(self, epoch: int) -> float:
        return self.initial_learning_rate

    def __repr__(self) -> str:
        return f"Constant(learning_rate={self.initial_learning_rate})"


class InverseSchedule(_FixedSchedule):
    def __init__(self, initial_learning_rate: float, annealing_rate: float) -> None:
        super().__init__(initial_learning_rate)
        _verify_finite_positive("annealing_rate", annealing_rate)
        self.annealing_rate = annealing_rate

    def learning_rate(self, epoch: int) -> float:
        return self.initial_learning_rate / (1.0 + epoch / self.annealing_rate)

    def __repr__(self) -> str:
        return f"Inverse(initial_learning_rate={self.initial_learning_rate}, annealing_rate={self.annealing_rate})"


class ExponentialSchedule(_FixedSchedule):
    def __init__(self, initial_learning_rate: float, base: float) -> None:
        super().__init__(initial_learning_rate)
        if math.isnan(base) or math.isinf(base) or base <= 0.0 or base > 1.0:
            raise InvalidInputError(
                message=f"Base must be between 0.0 (exclusive) and 1.0 (inclusive). Found base={base}"
            )
        self.base = base

    def learning_rate(self, epoch: int) -> float:
        return self.initial_learning_rate * self.base**epoch

    def __repr__(self) -> str:
        return f"Exponential(initial_learning_rate={self.initial_learning_rate}, base={self.base})"


def constant(learning_rate: float) -> AnnealingSchedule:
    return ConstantSchedule(learning_rate)


def inverse(initial_learning_rate: float, annealing_rate: float) -> AnnealingSchedule:
    """Rate decaying as initial / (1 + epoch / annealing_rate)."""
    return InverseSchedule(initial_learning_rate, annealing_rate)


def exponential(initial_learning_rate: float, base: float) -> AnnealingSchedule:
    """Rate decaying as initial * base ** epoch."""
    return ExponentialSchedule(initial_learning_rate, base)
