"""Numerically stable log-space arithmetic."""

import numpy as np

# Log probabilities below this are treated as exactly zero in expectations
LOG_PROB_CUTOFF = -400.0


def log_sum_exp(xs: np.ndarray, axis: int | None = None) -> np.ndarray | float:
    """Compute log(sum(exp(xs))) without overflow or underflow.

    The running maximum is subtracted before exponentiating. A slice whose
    entries are all negative infinity sums to negative infinity.

    Args:
        xs: Values in log space.
        axis: Axis to reduce over; None reduces over all entries.

    Returns:
        A float when ``axis`` is None, otherwise an array with ``axis`` removed.
    """
    xs = np.asarray(xs, dtype=np.float64)
    if xs.size == 0:
        if axis is None:
            return float("-inf")
        return np.full(np.delete(xs.shape, axis), -np.inf)
    maxes = np.max(xs, axis=axis, keepdims=True)
    shift = np.where(np.isfinite(maxes), maxes, 0.0)
    with np.errstate(divide="ignore"):
        summed = np.log(np.sum(np.exp(xs - shift), axis=axis, keepdims=True)) + shift
    # all -inf slices stay -inf; +inf entries propagate
    summed = np.where(maxes == np.inf, np.inf, summed)
    if axis is None:
        return float(summed.reshape(()))
    return np.squeeze(summed, axis=axis)


def relative_absolute_difference(x: float, y: float) -> float:
    """Return |x - y| / (|x| + |y|), or 0.0 when both are zero."""
    denominator = abs(x) + abs(y)
    if denominator == 0.0:
        return 0.0
    return abs(x - y) / denominator
