"""Lazy N-best decoding by best-first search over Viterbi prefixes.

A search state splits a tagging at a (position, tag) boundary:
- the prefix up to the boundary is the best one, scored by the Viterbi table
- the suffix after it is a chain of forward pointers with a cumulative score

A state's priority is prefix score plus suffix score, which is exactly the
score of the best complete tagging consistent with the state. Popping a state
emits that tagging and pushes, for every position of its prefix, the
alternatives that leave the best path at that position.

Forward pointers live in an arena addressed by integer index so that
candidates share common suffixes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from chaincrf.exceptions import InvalidInputError
from chaincrf.inference.lattice import log_partition
from chaincrf.inference.potentials import Potentials
from chaincrf.inference.viterbi import ViterbiTable, trace_back, viterbi_table
from chaincrf.primitives.bounded_queue import BoundedPriorityQueue
from chaincrf.tagging import ScoredTagging

logger = logging.getLogger(__name__)

# Arena index meaning "no suffix"
NO_POINTER = -1


class ForwardPointerArena:
    """Append-only storage for forward pointer suffix chains.

    Each pointer records a tag, the index of the pointer for the next
    position, and the cumulative score of the suffix it starts.
    """

    __slots__ = ("_tags", "_parents", "_scores")

    def __init__(self) -> None:
        self._tags: list[int] = []
        self._parents: list[int] = []
        self._scores: list[float] = []

    def __len__(self) -> int:
        return len(self._tags)

    def add(self, tag: int, parent: int, score: float) -> int:
        """Store a pointer and return its index."""
        self._tags.append(tag)
        self._parents.append(parent)
        self._scores.append(score)
        return len(self._tags) - 1

    def score(self, pointer: int) -> float:
        """Cumulative suffix score; 0.0 for the empty suffix."""
        if pointer == NO_POINTER:
            return 0.0
        return self._scores[pointer]

    def tags(self, pointer: int) -> list[int]:
        """Tags of the suffix chain starting at ``pointer``, in input order."""
        tags = []
        while pointer != NO_POINTER:
            tags.append(self._tags[pointer])
            pointer = self._parents[pointer]
        return tags


@dataclass(frozen=True, slots=True)
class NBestState:
    """A (position, tag) prefix boundary with its forward pointer suffix."""

    position: int
    tag: int
    pointer: int


class NBestIterator(Iterator[ScoredTagging[Any]]):
    """Iterates taggings of one input in non-increasing score order.

    The first tagging equals the Viterbi tagging. At most ``max_results``
    taggings are produced; taggings violating a structural zero never are.
    """

    def __init__(
        self,
        tokens: Sequence[Any],
        tags: Sequence[str],
        potentials: Potentials,
        max_results: int,
        normalize: bool = False,
    ) -> None:
        """Initialize the search.

        Args:
            tokens: Non-empty input tokens.
            tags: Tag labels indexed by id.
            potentials: Log potentials for ``tokens``.
            max_results: Upper bound on the number of taggings returned.
            normalize: Subtract log Z so scores are conditional log probabilities.

        Raises:
            InvalidInputError: If ``max_results`` is less than 1.
        """
        if max_results < 1:
            raise InvalidInputError(message=f"Maximum results must be positive. Found max_results={max_results}")
        self._tokens = tuple(tokens)
        self._tags = tuple(tags)
        self._transitions = potentials.transitions
        self._table: ViterbiTable = viterbi_table(potentials)
        self._log_z = log_partition(potentials) if normalize else 0.0
        self._remaining = max_results
        self._arena = ForwardPointerArena()
        self._queue: BoundedPriorityQueue[NBestState] = BoundedPriorityQueue(max_results)

        last = len(self._tokens) - 1
        for k in range(len(self._tags)):
            self._offer(float(self._table.scores[last, k]), last, k, NO_POINTER)

    def __iter__(self) -> NBestIterator:
        return self

    def __next__(self) -> ScoredTagging[Any]:
        if self._remaining <= 0:
            raise StopIteration
        polled = self._queue.poll()
        if polled is None:
            raise StopIteration
        score, state = polled
        self._remaining -= 1
        self._expand(state)
        tag_ids = trace_back(self._table, state.position, state.tag) + self._arena.tags(state.pointer)
        return ScoredTagging(
            tokens=self._tokens,
            tags=tuple(self._tags[k] for k in tag_ids),
            score=score - self._log_z,
        )

    def _offer(self, prefix_score: float, position: int, tag: int, pointer: int) -> None:
        suffix_score = self._arena.score(pointer)
        if prefix_score == -np.inf or suffix_score == -np.inf:
            return
        self._queue.offer(prefix_score + suffix_score, NBestState(position=position, tag=tag, pointer=pointer))

    def _expand(self, state: NBestState) -> None:
        """Offer every deviation from the best prefix of ``state``."""
        scores = self._table.scores
        backpointers = self._table.backpointers
        transitions = self._transitions
        tag = state.tag
        pointer = state.pointer
        for position in range(state.position, 0, -1):
            suffix_score = self._arena.score(pointer)
            best_previous = int(backpointers[position - 1, tag])
            for previous in range(len(self._tags)):
                if previous == best_previous:
                    continue
                prefix_score = float(scores[position - 1, previous])
                step_score = float(transitions[position - 1, previous, tag]) + suffix_score
                if prefix_score == -np.inf or step_score == -np.inf:
                    continue
                alternative = self._arena.add(tag, pointer, step_score)
                self._offer(prefix_score, position - 1, previous, alternative)
            pointer = self._arena.add(
                tag, pointer, float(transitions[position - 1, best_previous, tag]) + suffix_score
            )
            tag = best_previous


def nbest_taggings(
    tokens: Sequence[Any],
    tags: Sequence[str],
    potentials: Potentials | None,
    max_results: int,
    normalize: bool = False,
) -> Iterator[ScoredTagging[Any]]:
    """N-best taggings, handling empty input.

    Empty input (``potentials`` is None) yields a single empty tagging
    scored 0.
    """
    if max_results < 1:
        raise InvalidInputError(message=f"Maximum results must be positive. Found max_results={max_results}")
    if potentials is None:
        return iter([ScoredTagging(tokens=(), tags=(), score=0.0)])
    logger.debug("N-best search: num_tokens=%d max_results=%d normalize=%s", len(tokens), max_results, normalize)
    return NBestIterator(tokens, tags, potentials, max_results, normalize)
