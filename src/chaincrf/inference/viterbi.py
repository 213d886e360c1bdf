"""First-best decoding by the Viterbi algorithm.

best[0, k] = initial[k]
best[n, k] = max_j best[n-1, j] + transitions[n-1, j, k]

Ties go to the lowest previous tag index. Cells that no legal path reaches
hold negative infinity and a backpointer of -1.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from chaincrf.exceptions import NoLegalPathError
from chaincrf.inference.potentials import Potentials


@dataclass(frozen=True, slots=True)
class ViterbiTable:
    """Best prefix scores and backpointers for every (position, tag).

    Attributes:
        scores: Shape (N, K); best score of any path ending in tag k at position n.
        backpointers: Shape (N-1, K); ``backpointers[n - 1, k]`` is the previous
            tag on the best path ending in tag k at position n, or -1.
    """

    scores: np.ndarray
    backpointers: np.ndarray

    @property
    def num_tokens(self) -> int:
        return int(self.scores.shape[0])


def viterbi_table(potentials: Potentials) -> ViterbiTable:
    """Run the Viterbi recurrence, keeping every cell.

    Complexity is O(N * K^2).
    """
    num_tokens = potentials.num_tokens
    num_tags = potentials.num_tags
    scores = np.empty((num_tokens, num_tags), dtype=np.float64)
    backpointers = np.empty((num_tokens - 1, num_tags), dtype=np.int64)
    scores[0] = potentials.initial
    for n in range(1, num_tokens):
        # candidates[j, k] = best[n-1, j] + transition(j -> k)
        candidates = scores[n - 1][:, np.newaxis] + potentials.transitions[n - 1]
        best_previous = np.argmax(candidates, axis=0)
        best = candidates[best_previous, np.arange(num_tags)]
        scores[n] = best
        backpointers[n - 1] = np.where(best == -np.inf, -1, best_previous)
    return ViterbiTable(scores=scores, backpointers=backpointers)


def trace_back(table: ViterbiTable, position: int, tag: int) -> list[int]:
    """Follow backpointers from (position, tag) to position 0.

    Returns:
        Tag ids for positions 0..position in input order.
    """
    tag_ids = [tag]
    for n in range(position, 0, -1):
        tag = int(table.backpointers[n - 1, tag])
        tag_ids.append(tag)
    tag_ids.reverse()
    return tag_ids


def best_path(table: ViterbiTable) -> tuple[list[int], float]:
    """Return the highest scoring tag id sequence and its score.

    Raises:
        NoLegalPathError: If every path violates a structural zero.
    """
    last = table.num_tokens - 1
    final_tag = int(np.argmax(table.scores[last]))
    score = float(table.scores[last, final_tag])
    if score == -np.inf:
        raise NoLegalPathError(message="No tagging satisfies the tag constraints", num_tokens=table.num_tokens)
    return trace_back(table, last, final_tag), score


def viterbi_decode(potentials: Potentials) -> tuple[list[int], float]:
    """Decode the single best tag id sequence for non-empty input."""
    return best_path(viterbi_table(potentials))
