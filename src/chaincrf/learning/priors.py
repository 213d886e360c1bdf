"""Regularization priors over regression coefficients.

A prior contributes two things to training:
- a gradient that pulls each coefficient toward the prior's mode
- a log2 density added to the data log likelihood to form the objective

Available priors (variance and scale may be per-dimension arrays):
- noninformative: uniform, no effect on training
- gaussian: gradient beta / variance (L2)
- laplace: gradient sign(beta) * sqrt(2 / variance) (L1)
- cauchy: gradient 2 beta / (beta^2 + squared_scale)
- log_interpolated: weighted mixture of two priors' gradients and log densities
- elastic_net: log interpolation of a Laplace and a Gaussian prior
- shift_means: any prior recentred on per-dimension means

With ``noninformative_intercept``, dimension 0 (the intercept feature) is
exempt from the prior.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence

import numpy as np

from chaincrf.exceptions import InvalidInputError
from chaincrf.primitives.vectors import Vector

SQRT_2 = math.sqrt(2.0)
LOG2_SQRT_2PI = math.log2(math.sqrt(2.0 * math.pi))
LOG2_SQRT_2_OVER_2 = math.log2(SQRT_2 / 2.0)
LOG2_1_OVER_PI = math.log2(1.0 / math.pi)
LOG2_E = math.log2(math.e)


def _coefficient_rows(coefficients: np.ndarray | Vector | Sequence[Vector]) -> list[np.ndarray]:
    if isinstance(coefficients, Vector):
        coefficients = [coefficients]
    if isinstance(coefficients, np.ndarray):
        array = np.asarray(coefficients, dtype=np.float64)
        return [array] if array.ndim == 1 else list(array)
    return [np.array([vector.value(d) for d in range(vector.num_dimensions)]) for vector in coefficients]


class RegressionPrior(ABC):
    """Prior density over coefficient values, dimension by dimension."""

    def is_uniform(self) -> bool:
        """True if the prior has no effect on training."""
        return False

    def mode(self, dimension: int) -> float:
        """Most likely coefficient value for ``dimension``."""
        return 0.0

    def modes(self, num_dimensions: int) -> np.ndarray:
        return np.array([self.mode(d) for d in range(num_dimensions)], dtype=np.float64)

    @abstractmethod
    def gradient(self, beta: float, dimension: int) -> float:
        """Gradient of the negative log prior at ``beta`` for ``dimension``."""

    @abstractmethod
    def log2_prior_value(self, beta: float, dimension: int) -> float:
        """Log2 prior density of ``beta`` for ``dimension``."""

    def gradients(self, betas: np.ndarray) -> np.ndarray:
        """Gradients for a coefficient vector indexed by dimension."""
        return np.array([self.gradient(float(b), d) for d, b in enumerate(betas)], dtype=np.float64)

    def log2_prior_values(self, betas: np.ndarray) -> np.ndarray:
        """Log2 densities for a coefficient vector indexed by dimension."""
        return np.array([self.log2_prior_value(float(b), d) for d, b in enumerate(betas)], dtype=np.float64)

    def verify_num_dimensions(self, num_dimensions: int) -> None:
        """Raise InvalidInputError if the prior cannot cover ``num_dimensions``."""

    def log2_prior(self, coefficients: np.ndarray | Vector | Sequence[Vector]) -> float:
        """Total log2 prior density of one or more coefficient vectors.

        Args:
            coefficients: A vector, a sequence of vectors, or a 1-D or 2-D
                array whose rows are coefficient vectors.
        """
        total = 0.0
        for row in _coefficient_rows(coefficients):
            self.verify_num_dimensions(len(row))
            total += float(np.sum(self.log2_prior_values(row)))
        return total


class NoninformativePrior(RegressionPrior):
    """Uniform prior; training is unregularized maximum likelihood."""

    def is_uniform(self) -> bool:
        return True

    def gradient(self, beta: float, dimension: int) -> float:
        return 0.0

    def log2_prior_value(self, beta: float, dimension: int) -> float:
        return 0.0

    def gradients(self, betas: np.ndarray) -> np.ndarray:
        return np.zeros(len(betas), dtype=np.float64)

    def log2_prior_values(self, betas: np.ndarray) -> np.ndarray:
        return np.zeros(len(betas), dtype=np.float64)

    def __repr__(self) -> str:
        return "NoninformativePrior()"


class _ScaledPrior(RegressionPrior):
    """Prior parameterized by a variance or squared scale per dimension.

    A scalar parameter applies to every dimension, optionally sparing the
    intercept; an array parameter gives one value per dimension.
    """

    _param_name = "variance"

    def __init__(self, params: float | Sequence[float] | np.ndarray, noninformative_intercept: bool = False) -> None:
        if np.ndim(params) == 0:
            value = float(params)  # type: ignore[arg-type]
            _verify_variance(self._param_name, value)
            self._params: float | np.ndarray = value
        else:
            array = np.array(params, dtype=np.float64)
            for i, value in enumerate(array):
                _verify_variance(f"{self._param_name}[{i}]", float(value))
            array.setflags(write=False)
            self._params = array
        self.noninformative_intercept = noninformative_intercept

    @abstractmethod
    def _gradient_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        ...

    @abstractmethod
    def _log2_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        ...

    def _exempt(self, dimension: int) -> bool:
        return dimension == 0 and self.noninformative_intercept

    def _param(self, dimension: int) -> float:
        if isinstance(self._params, np.ndarray):
            return float(self._params[dimension])
        return self._params

    def _param_array(self, num_dimensions: int) -> np.ndarray | float:
        if isinstance(self._params, np.ndarray):
            self.verify_num_dimensions(num_dimensions)
        return self._params

    def verify_num_dimensions(self, num_dimensions: int) -> None:
        if isinstance(self._params, np.ndarray) and len(self._params) != num_dimensions:
            raise InvalidInputError(
                message=(
                    "Prior and coefficients must match in number of dimensions."
                    f" Found prior num_dimensions={len(self._params)} coefficient num_dimensions={num_dimensions}"
                )
            )

    def gradient(self, beta: float, dimension: int) -> float:
        if self._exempt(dimension):
            return 0.0
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(self._gradient_values(np.float64(beta), self._param(dimension)))

    def log2_prior_value(self, beta: float, dimension: int) -> float:
        if self._exempt(dimension):
            return 0.0
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(self._log2_values(np.float64(beta), self._param(dimension)))

    def gradients(self, betas: np.ndarray) -> np.ndarray:
        betas = np.asarray(betas, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            values = np.array(self._gradient_values(betas, self._param_array(len(betas))), dtype=np.float64)
        if self.noninformative_intercept and len(values):
            values[0] = 0.0
        return values

    def log2_prior_values(self, betas: np.ndarray) -> np.ndarray:
        betas = np.asarray(betas, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            values = np.array(self._log2_values(betas, self._param_array(len(betas))), dtype=np.float64)
        if self.noninformative_intercept and len(values):
            values[0] = 0.0
        return values

    def __repr__(self) -> str:
        params = self._params.tolist() if isinstance(self._params, np.ndarray) else self._params
        return (
            f"{type(self).__name__}({self._param_name}={params},"
            f" noninformative_intercept={self.noninformative_intercept})"
        )


class GaussianPrior(_ScaledPrior):
    def _gradient_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        return betas / params

    def _log2_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        return -LOG2_SQRT_2PI - 0.5 * np.log2(params) - LOG2_E * betas * betas / (2.0 * params)


class LaplacePrior(_ScaledPrior):
    def _gradient_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        # sign() is 0 at 0, leaving zero coefficients in place
        return np.sign(betas) * np.sqrt(2.0 / params)

    def _log2_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        return LOG2_SQRT_2_OVER_2 - 0.5 * np.log2(params) - LOG2_E * SQRT_2 * np.abs(betas) / np.sqrt(params)


class CauchyPrior(_ScaledPrior):
    _param_name = "squared_scale"

    def _gradient_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        return 2.0 * betas / (betas * betas + params)

    def _log2_values(self, betas: np.ndarray, params: np.ndarray | float) -> np.ndarray:
        return LOG2_1_OVER_PI + 0.5 * np.log2(params) - np.log2(betas * betas + params)


class LogInterpolatedPrior(RegressionPrior):
    """alpha * prior1 + (1 - alpha) * prior2, in gradient and log density."""

    def __init__(self, alpha: float, prior1: RegressionPrior, prior2: RegressionPrior) -> None:
        self.alpha = alpha
        self.prior1 = prior1
        self.prior2 = prior2

    def gradient(self, beta: float, dimension: int) -> float:
        return self.alpha * self.prior1.gradient(beta, dimension) + (1.0 - self.alpha) * self.prior2.gradient(
            beta, dimension
        )

    def log2_prior_value(self, beta: float, dimension: int) -> float:
        return self.alpha * self.prior1.log2_prior_value(beta, dimension) + (
            1.0 - self.alpha
        ) * self.prior2.log2_prior_value(beta, dimension)

    def gradients(self, betas: np.ndarray) -> np.ndarray:
        return self.alpha * self.prior1.gradients(betas) + (1.0 - self.alpha) * self.prior2.gradients(betas)

    def log2_prior_values(self, betas: np.ndarray) -> np.ndarray:
        return self.alpha * self.prior1.log2_prior_values(betas) + (1.0 - self.alpha) * self.prior2.log2_prior_values(
            betas
        )

    def verify_num_dimensions(self, num_dimensions: int) -> None:
        self.prior1.verify_num_dimensions(num_dimensions)
        self.prior2.verify_num_dimensions(num_dimensions)

    def __repr__(self) -> str:
        return f"LogInterpolatedPrior(alpha={self.alpha}, prior1={self.prior1!r}, prior2={self.prior2!r})"


class ShiftedMeansPrior(RegressionPrior):
    """A prior evaluated at beta - mean, so its mode moves to the means."""

    def __init__(self, means: Sequence[float] | np.ndarray, prior: RegressionPrior) -> None:
        means_array = np.array(means, dtype=np.float64)
        means_array.setflags(write=False)
        self.means = means_array
        self.prior = prior

    def is_uniform(self) -> bool:
        return self.prior.is_uniform()

    def mode(self, dimension: int) -> float:
        return float(self.means[dimension]) + self.prior.mode(dimension)

    def gradient(self, beta: float, dimension: int) -> float:
        return self.prior.gradient(beta - float(self.means[dimension]), dimension)

    def log2_prior_value(self, beta: float, dimension: int) -> float:
        return self.prior.log2_prior_value(beta - float(self.means[dimension]), dimension)

    def gradients(self, betas: np.ndarray) -> np.ndarray:
        self.verify_num_dimensions(len(betas))
        return self.prior.gradients(np.asarray(betas, dtype=np.float64) - self.means)

    def log2_prior_values(self, betas: np.ndarray) -> np.ndarray:
        self.verify_num_dimensions(len(betas))
        return self.prior.log2_prior_values(np.asarray(betas, dtype=np.float64) - self.means)

    def verify_num_dimensions(self, num_dimensions: int) -> None:
        if len(self.means) != num_dimensions:
            raise InvalidInputError(
                message=(
                    "Means and coefficients must match in number of dimensions."
                    f" Found num_means={len(self.means)} num_dimensions={num_dimensions}"
                )
            )
        self.prior.verify_num_dimensions(num_dimensions)

    def __repr__(self) -> str:
        return f"ShiftedMeansPrior(means=..., prior={self.prior!r})"


def _verify_variance(name: str, value: float) -> None:
    if math.isnan(value) or value < 0.0:
        raise InvalidInputError(message=f"Prior {name} must be a non-negative number. Found {name}={value}")


_NONINFORMATIVE = NoninformativePrior()


def noninformative() -> RegressionPrior:
    return _NONINFORMATIVE


def gaussian(
    variance: float | Sequence[float] | np.ndarray, noninformative_intercept: bool = False
) -> RegressionPrior:
    """Gaussian (L2) prior with mean zero.

    Args:
        variance: Prior variance, shared or per dimension.
        noninformative_intercept: Exempt dimension 0 (scalar variance only).
    """
    return GaussianPrior(variance, noninformative_intercept)


def laplace(
    variance: float | Sequence[float] | np.ndarray, noninformative_intercept: bool = False
) -> RegressionPrior:
    """Laplace (L1) prior with mean zero."""
    return LaplacePrior(variance, noninformative_intercept)


def cauchy(
    squared_scale: float | Sequence[float] | np.ndarray, noninformative_intercept: bool = False
) -> RegressionPrior:
    """Cauchy prior with location zero."""
    return CauchyPrior(squared_scale, noninformative_intercept)


def log_interpolated(alpha: float, prior1: RegressionPrior, prior2: RegressionPrior) -> RegressionPrior:
    """Weighted geometric mixture of two priors.

    Raises:
        InvalidInputError: If ``alpha`` is not in [0, 1].
    """
    if math.isnan(alpha) or alpha < 0.0 or alpha > 1.0:
        raise InvalidInputError(message=f"Weight of first prior must be between 0 and 1 inclusive. Found alpha={alpha}")
    return LogInterpolatedPrior(alpha, prior1, prior2)


def elastic_net(laplace_weight: float, scale: float, noninformative_intercept: bool = False) -> RegressionPrior:
    """Elastic net: ``laplace_weight`` of L1 and the rest L2.

    Args:
        laplace_weight: Weight of the Laplace component in [0, 1].
        scale: Finite positive overall strength.
        noninformative_intercept: Exempt dimension 0.
    """
    if math.isinf(scale) or not scale > 0.0:
        raise InvalidInputError(message=f"Scale parameter must be finite and positive. Found scale={scale}")
    return log_interpolated(
        laplace_weight,
        laplace(1.0 / math.sqrt(scale), noninformative_intercept),
        gaussian(SQRT_2 / scale, noninformative_intercept),
    )


def shift_means(means: Sequence[float] | np.ndarray, prior: RegressionPrior) -> RegressionPrior:
    """Recentre ``prior`` so dimension i has mode ``means[i]``."""
    return ShiftedMeansPrior(means, prior)
