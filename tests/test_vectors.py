"""Tests for dense and sparse vectors."""

import numpy as np
import pytest

from chaincrf.exceptions import InvalidInputError
from chaincrf.primitives.vectors import DenseVector, SparseVector


class TestDenseVector:
    """Dense vector tests."""

    def test_zero_vector_from_dimensions(self) -> None:
        """An int builds an all-zero vector of that size."""
        vector = DenseVector(4)

        assert vector.num_dimensions == 4
        assert vector.non_zero_dimensions().tolist() == []

    def test_value_out_of_range(self) -> None:
        """Reading outside the dimensions raises IndexError."""
        vector = DenseVector([1.0, 2.0])

        with pytest.raises(IndexError):
            vector.value(2)
        with pytest.raises(IndexError):
            vector.value(-1)

    def test_rejects_matrix(self) -> None:
        """Only one-dimensional values are accepted."""
        with pytest.raises(InvalidInputError):
            DenseVector(np.zeros((2, 2)))

    def test_increment_with_sparse(self) -> None:
        """Increment adds a scaled sparse vector in place."""
        vector = DenseVector([1.0, 1.0, 1.0])
        vector.increment(2.0, SparseVector({0: 1.0, 2: -0.5}, 3))

        assert vector.values.tolist() == [3.0, 1.0, 0.0]

    def test_increment_writes_through_to_matrix(self) -> None:
        """A vector over a matrix row updates the matrix."""
        matrix = np.zeros((2, 3))
        row = DenseVector(matrix[1])
        row.increment(1.0, SparseVector({1: 4.0}, 3))

        assert matrix[1, 1] == 4.0
        assert matrix[0].tolist() == [0.0, 0.0, 0.0]

    def test_read_only_rejects_updates(self) -> None:
        """Read-only views reject increments and value updates."""
        vector = DenseVector([1.0, 2.0]).read_only_view()

        assert vector.is_read_only
        with pytest.raises(TypeError):
            vector.increment(1.0, DenseVector([1.0, 1.0]))
        with pytest.raises(TypeError):
            vector.set_value(0, 5.0)

    def test_copy_is_independent(self) -> None:
        """Copies do not share storage."""
        vector = DenseVector([1.0, 2.0])
        copied = vector.copy()
        copied.set_value(0, 9.0)

        assert vector.value(0) == 1.0

    def test_dimension_mismatch(self) -> None:
        """Arithmetic between different sizes raises."""
        with pytest.raises(InvalidInputError, match="same number of dimensions"):
            DenseVector([1.0, 2.0]).dot_product(DenseVector([1.0, 2.0, 3.0]))

    def test_length(self) -> None:
        """Length is the Euclidean norm."""
        assert DenseVector([3.0, 4.0]).length() == pytest.approx(5.0)

    def test_equality_with_sparse(self) -> None:
        """Dense and sparse vectors with the same values are equal."""
        assert DenseVector([0.0, 2.0, 0.0]) == SparseVector({1: 2.0}, 3)
        assert DenseVector([0.0, 2.0, 0.0]) != SparseVector({1: 2.0}, 4)


class TestSparseVector:
    """Sparse vector tests."""

    def test_drops_zeros_and_sorts(self) -> None:
        """Entries are stored sorted without explicit zeros."""
        vector = SparseVector({5: 1.0, 1: 2.0, 3: 0.0}, 6)

        assert vector.indices.tolist() == [1, 5]
        assert vector.values.tolist() == [2.0, 1.0]
        assert vector.value(3) == 0.0
        assert vector.value(5) == 1.0

    def test_out_of_range_dimension(self) -> None:
        """Dimensions must lie within num_dimensions."""
        with pytest.raises(InvalidInputError):
            SparseVector({3: 1.0}, 3)
        with pytest.raises(InvalidInputError):
            SparseVector({-1: 1.0}, 3)

    def test_immutable(self) -> None:
        """Sparse vectors cannot be incremented."""
        vector = SparseVector({0: 1.0}, 2)

        with pytest.raises(TypeError):
            vector.increment(1.0, SparseVector({1: 1.0}, 2))
        with pytest.raises(ValueError):
            vector.values[0] = 5.0

    def test_sparse_sparse_dot_product(self) -> None:
        """Only shared dimensions contribute."""
        left = SparseVector({0: 2.0, 3: 1.0, 7: 4.0}, 10)
        right = SparseVector({3: 5.0, 7: 0.5, 9: 100.0}, 10)

        assert left.dot_product(right) == pytest.approx(7.0)
        assert right.dot_product(left) == pytest.approx(7.0)

    def test_sparse_dense_dot_product(self) -> None:
        """Mixed products agree in both directions."""
        sparse = SparseVector({1: 2.0, 2: -1.0}, 3)
        dense = DenseVector([10.0, 3.0, 4.0])

        assert sparse.dot_product(dense) == pytest.approx(2.0)
        assert dense.dot_product(sparse) == pytest.approx(2.0)

    def test_dot_rows(self) -> None:
        """dot_rows multiplies every matrix row."""
        matrix = np.array([[1.0, 2.0, 3.0], [0.0, -1.0, 1.0]])
        vector = SparseVector({0: 1.0, 2: 2.0}, 3)

        assert vector.dot_rows(matrix).tolist() == [7.0, 2.0]
        assert DenseVector([1.0, 0.0, 2.0]).dot_rows(matrix).tolist() == [7.0, 2.0]

    def test_empty_vector(self) -> None:
        """A vector with no entries has zero length."""
        vector = SparseVector({}, 4)

        assert vector.length() == 0.0
        assert vector.non_zero_dimensions().tolist() == []
