"""Tests for Viterbi decoding."""

import numpy as np
import pytest

from chaincrf.exceptions import NoLegalPathError
from chaincrf.inference.potentials import Potentials
from chaincrf.inference.viterbi import best_path, trace_back, viterbi_decode, viterbi_table


def _potentials(initial: list[float], transitions: list[list[list[float]]]) -> Potentials:
    return Potentials(initial=np.array(initial), transitions=np.array(transitions).reshape(-1, len(initial), len(initial)))


class TestViterbi:
    """Viterbi recurrence and backtracking tests."""

    def test_single_token(self) -> None:
        """With one token the best tag is the best initial potential."""
        tag_ids, score = viterbi_decode(_potentials([0.0, 2.0, 1.0], []))

        assert tag_ids == [1]
        assert score == 2.0

    def test_transitions_override_initial(self) -> None:
        """A strong transition can beat the locally best start."""
        potentials = _potentials([1.0, 0.0], [[[0.0, 0.0], [5.0, 0.0]]])

        tag_ids, score = viterbi_decode(potentials)

        assert tag_ids == [1, 0]
        assert score == pytest.approx(5.0)

    def test_ties_go_to_lowest_index(self) -> None:
        """Equal scores pick the first tag, both at the end and in backpointers."""
        potentials = _potentials([1.0, 1.0], [[[0.0, 0.0], [0.0, 0.0]]])

        tag_ids, _ = viterbi_decode(potentials)

        assert tag_ids == [0, 0]

    def test_unreachable_cells(self) -> None:
        """Cells no legal path reaches score -inf with backpointer -1."""
        ninf = -np.inf
        potentials = _potentials([0.0, ninf], [[[0.0, ninf], [0.0, 0.0]]])

        table = viterbi_table(potentials)

        assert table.scores[1, 1] == ninf
        assert table.backpointers[0, 1] == -1
        assert table.backpointers[0, 0] == 0

    def test_trace_back_from_interior_cell(self) -> None:
        potentials = _potentials([0.0, 1.0], [[[2.0, 0.0], [0.0, 0.0]], [[0.0, 0.0], [0.0, 0.0]]])
        table = viterbi_table(potentials)

        assert trace_back(table, 1, 0) == [0, 0]
        assert trace_back(table, 1, 1) == [1, 1]
        assert trace_back(table, 0, 1) == [1]

    def test_no_legal_path(self) -> None:
        """When every path is -inf decoding raises NoLegalPathError."""
        ninf = -np.inf
        potentials = _potentials([0.0, ninf], [[[ninf, ninf], [0.0, 0.0]]])

        with pytest.raises(NoLegalPathError) as exc_info:
            best_path(viterbi_table(potentials))
        assert exc_info.value.num_tokens == 2
