"""Dense and sparse numeric vectors.

Two variants share the Vector interface:
- DenseVector: a mutable float64 buffer, used for per-tag coefficients
- SparseVector: immutable sorted (index, value) arrays, used for features

Mixed-variant arithmetic dispatches through per-variant hooks so that each
pairing keeps its fast path (sparse-sparse dot products are sorted merges,
dense-sparse products gather only the non-zero dimensions).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

import numpy as np

from chaincrf.exceptions import InvalidInputError


def _check_same_dimensions(left: Vector, right: Vector) -> None:
    if left.num_dimensions != right.num_dimensions:
        raise InvalidInputError(
            message=(
                "Vectors must have the same number of dimensions."
                f" Found {left.num_dimensions} and {right.num_dimensions}"
            )
        )


class Vector(ABC):
    """A fixed-dimensional vector of float values."""

    @property
    @abstractmethod
    def num_dimensions(self) -> int:
        """Number of dimensions, zero or not."""

    @abstractmethod
    def value(self, dimension: int) -> float:
        """Return the value at the specified dimension.

        Raises:
            IndexError: If the dimension is out of range.
        """

    @abstractmethod
    def non_zero_dimensions(self) -> np.ndarray:
        """Return the sorted dimensions with non-zero values."""

    @abstractmethod
    def dot_rows(self, matrix: np.ndarray) -> np.ndarray:
        """Return the dot product of this vector with every row of ``matrix``."""

    @abstractmethod
    def _dot_dense(self, values: np.ndarray) -> float:
        """Dot product against a dense buffer of the same dimensionality."""

    @abstractmethod
    def _dot_sparse(self, indices: np.ndarray, values: np.ndarray) -> float:
        """Dot product against sorted sparse (indices, values)."""

    @abstractmethod
    def _add_to(self, target: np.ndarray, scale: float) -> None:
        """Add ``scale`` times this vector into ``target`` in place."""

    @abstractmethod
    def dot_product(self, other: Vector) -> float:
        """Return the dot product of this vector and ``other``."""

    def increment(self, scale: float, other: Vector) -> None:
        """Add ``scale`` times ``other`` to this vector in place.

        Raises:
            TypeError: If this vector is immutable.
        """
        raise TypeError(f"{type(self).__name__} does not support increment")

    def length(self) -> float:
        """Euclidean length of the vector."""
        return float(np.sqrt(self.dot_product(self)))

    def _check_dimension(self, dimension: int) -> None:
        if not 0 <= dimension < self.num_dimensions:
            raise IndexError(
                f"Dimension out of range. Found dimension={dimension}"
                f" num_dimensions={self.num_dimensions}"
            )


class DenseVector(Vector):
    """Vector backed by a contiguous float64 array.

    The backing array may be a view of a row in a larger coefficient matrix;
    increments then write through to the matrix.
    """

    __slots__ = ("_values",)

    def __init__(self, values: np.ndarray | list[float] | int, *, read_only: bool = False) -> None:
        """Initialize the vector.

        Args:
            values: Initial values, or a dimensionality for an all-zero vector.
                Float64 arrays are used without copying.
            read_only: Reject increments and value updates.
        """
        if isinstance(values, int):
            array = np.zeros(values, dtype=np.float64)
        else:
            array = np.asarray(values, dtype=np.float64)
        if array.ndim != 1:
            raise InvalidInputError(message=f"Dense vectors must be one-dimensional. Found shape={array.shape}")
        if read_only:
            array = array.view()
            array.setflags(write=False)
        self._values = array

    @property
    def num_dimensions(self) -> int:
        return int(self._values.shape[0])

    @property
    def values(self) -> np.ndarray:
        """The backing array (read-only views stay read-only)."""
        return self._values

    @property
    def is_read_only(self) -> bool:
        return not self._values.flags.writeable

    def value(self, dimension: int) -> float:
        self._check_dimension(dimension)
        return float(self._values[dimension])

    def set_value(self, dimension: int, value: float) -> None:
        """Set the value at a dimension."""
        self._check_dimension(dimension)
        if self.is_read_only:
            raise TypeError("Cannot modify a read-only vector")
        self._values[dimension] = value

    def non_zero_dimensions(self) -> np.ndarray:
        return np.flatnonzero(self._values)

    def dot_rows(self, matrix: np.ndarray) -> np.ndarray:
        return matrix @ self._values

    def _dot_dense(self, values: np.ndarray) -> float:
        return float(np.dot(self._values, values))

    def _dot_sparse(self, indices: np.ndarray, values: np.ndarray) -> float:
        return float(np.dot(self._values[indices], values))

    def _add_to(self, target: np.ndarray, scale: float) -> None:
        target += scale * self._values

    def dot_product(self, other: Vector) -> float:
        _check_same_dimensions(self, other)
        return other._dot_dense(self._values)

    def increment(self, scale: float, other: Vector) -> None:
        _check_same_dimensions(self, other)
        if self.is_read_only:
            raise TypeError("Cannot increment a read-only vector")
        other._add_to(self._values, scale)

    def read_only_view(self) -> DenseVector:
        """Return a read-only vector sharing this vector's values."""
        return DenseVector(self._values, read_only=True)

    def copy(self) -> DenseVector:
        return DenseVector(self._values.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vector):
            return NotImplemented
        if self.num_dimensions != other.num_dimensions:
            return False
        return bool(
            np.array_equal(self.non_zero_dimensions(), other.non_zero_dimensions())
            and all(self.value(d) == other.value(d) for d in self.non_zero_dimensions())
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"DenseVector({self._values.tolist()!r})"


class SparseVector(Vector):
    """Immutable vector storing only non-zero dimensions.

    Indices are kept sorted and unique; explicit zeros are dropped.
    """

    __slots__ = ("_indices", "_values", "_num_dimensions")

    def __init__(self, entries: Mapping[int, float], num_dimensions: int) -> None:
        """Initialize the vector.

        Args:
            entries: Mapping from dimension to value.
            num_dimensions: Dimensionality of the vector.

        Raises:
            InvalidInputError: If a dimension is outside [0, num_dimensions).
        """
        if num_dimensions < 0:
            raise InvalidInputError(message=f"Number of dimensions must be non-negative. Found {num_dimensions}")
        items = sorted((int(dim), float(val)) for dim, val in entries.items() if val != 0.0)
        indices = np.fromiter((dim for dim, _ in items), dtype=np.int64, count=len(items))
        values = np.fromiter((val for _, val in items), dtype=np.float64, count=len(items))
        if len(indices) and (indices[0] < 0 or indices[-1] >= num_dimensions):
            raise InvalidInputError(
                message=(
                    "Sparse vector dimensions must be in range."
                    f" Found dimensions {indices[0]}..{indices[-1]} num_dimensions={num_dimensions}"
                )
            )
        indices.setflags(write=False)
        values.setflags(write=False)
        self._indices = indices
        self._values = values
        self._num_dimensions = num_dimensions

    @property
    def num_dimensions(self) -> int:
        return self._num_dimensions

    @property
    def indices(self) -> np.ndarray:
        return self._indices

    @property
    def values(self) -> np.ndarray:
        return self._values

    def value(self, dimension: int) -> float:
        self._check_dimension(dimension)
        pos = int(np.searchsorted(self._indices, dimension))
        if pos < len(self._indices) and self._indices[pos] == dimension:
            return float(self._values[pos])
        return 0.0

    def non_zero_dimensions(self) -> np.ndarray:
        return self._indices

    def dot_rows(self, matrix: np.ndarray) -> np.ndarray:
        return matrix[:, self._indices] @ self._values

    def _dot_dense(self, values: np.ndarray) -> float:
        return float(np.dot(values[self._indices], self._values))

    def _dot_sparse(self, indices: np.ndarray, values: np.ndarray) -> float:
        _, mine, theirs = np.intersect1d(self._indices, indices, assume_unique=True, return_indices=True)
        return float(np.dot(self._values[mine], values[theirs]))

    def _add_to(self, target: np.ndarray, scale: float) -> None:
        target[self._indices] += scale * self._values

    def dot_product(self, other: Vector) -> float:
        _check_same_dimensions(self, other)
        return other._dot_sparse(self._indices, self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vector):
            return NotImplemented
        if self.num_dimensions != other.num_dimensions:
            return False
        return bool(
            np.array_equal(self._indices, other.non_zero_dimensions())
            and all(other.value(int(d)) == v for d, v in zip(self._indices, self._values))
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        entries = dict(zip(self._indices.tolist(), self._values.tolist()))
        return f"SparseVector({entries!r}, num_dimensions={self._num_dimensions})"
