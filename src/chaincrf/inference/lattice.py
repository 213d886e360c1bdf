"""Forward-backward tag lattices.

The lattice stores, in log space and up to the normalizer log Z:
- log_forwards[n, k]: total score of prefixes ending in tag k at n
- log_backwards[n, k]: total score of suffixes after tag k at n
- log_transitions[n, j, k]: potential of tag k at n+1 following tag j

Marginal queries combine these with log Z:
- log P(tag k at n) = fwd[n, k] + bwd[n, k] - log Z
- log P(j at n-1, k at n) = fwd[n-1, j] + trans[n-1, j, k] + bwd[n, k] - log Z
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from chaincrf.exceptions import InvalidInputError
from chaincrf.inference.potentials import Potentials
from chaincrf.primitives.logmath import log_sum_exp
from chaincrf.primitives.symbols import SymbolTable

# Floor for log probabilities that are NaN or infinite in classifications
_CLASSIFICATION_FLOOR = -500.0


def _check_index(name: str, value: int, limit: int) -> None:
    if not 0 <= value < limit:
        raise IndexError(f"{name} out of range. Found {name}={value} limit={limit}")


class ForwardBackwardTagLattice:
    """Marginal tag probabilities for one input, computed by forward-backward."""

    def __init__(
        self,
        tokens: Sequence[Any],
        tags: Sequence[str],
        log_forwards: np.ndarray,
        log_backwards: np.ndarray,
        log_transitions: np.ndarray,
        log_z: float,
    ) -> None:
        """Initialize the lattice, validating array shapes.

        Args:
            tokens: Input tokens (length N).
            tags: Tag labels (length K).
            log_forwards: Shape (N, K).
            log_backwards: Shape (N, K).
            log_transitions: Shape (N-1, K, K), or (0, K, K) for empty input.
            log_z: Log of the partition function.

        Raises:
            InvalidInputError: If any array has the wrong shape.
        """
        num_tokens = len(tokens)
        num_tags = len(tags)
        log_forwards = np.asarray(log_forwards, dtype=np.float64)
        log_backwards = np.asarray(log_backwards, dtype=np.float64)
        log_transitions = np.asarray(log_transitions, dtype=np.float64)
        if log_forwards.shape != (num_tokens, num_tags):
            raise InvalidInputError(
                message=(
                    "Log forwards must be num_tokens x num_tags."
                    f" Found num_tokens={num_tokens} num_tags={num_tags} log_forwards.shape={log_forwards.shape}"
                )
            )
        if log_backwards.shape != (num_tokens, num_tags):
            raise InvalidInputError(
                message=(
                    "Log backwards must be num_tokens x num_tags."
                    f" Found num_tokens={num_tokens} num_tags={num_tags} log_backwards.shape={log_backwards.shape}"
                )
            )
        expected_transitions = (max(num_tokens - 1, 0), num_tags, num_tags)
        if log_transitions.shape != expected_transitions:
            raise InvalidInputError(
                message=(
                    "Log transitions must be (num_tokens - 1) x num_tags x num_tags."
                    f" Found num_tokens={num_tokens} num_tags={num_tags}"
                    f" log_transitions.shape={log_transitions.shape}"
                )
            )
        for array in (log_forwards, log_backwards, log_transitions):
            array.setflags(write=False)
        self._tokens = tuple(tokens)
        self._tags = tuple(tags)
        self._log_forwards = log_forwards
        self._log_backwards = log_backwards
        self._log_transitions = log_transitions
        self._log_z = float(log_z)

    @property
    def token_list(self) -> tuple[Any, ...]:
        return self._tokens

    @property
    def tag_list(self) -> tuple[str, ...]:
        return self._tags

    @property
    def num_tokens(self) -> int:
        return len(self._tokens)

    @property
    def num_tags(self) -> int:
        return len(self._tags)

    @property
    def log_z(self) -> float:
        """Log of the sum of exponentiated scores of all legal taggings."""
        return self._log_z

    def token(self, n: int) -> Any:
        _check_index("token", n, self.num_tokens)
        return self._tokens[n]

    def tag(self, k: int) -> str:
        _check_index("tag", k, self.num_tags)
        return self._tags[k]

    def tag_symbol_table(self) -> SymbolTable:
        """Frozen symbol table over the lattice's tags."""
        return SymbolTable(self._tags, frozen=True)

    def log_forward(self, n: int, k: int) -> float:
        _check_index("token", n, self.num_tokens)
        _check_index("tag", k, self.num_tags)
        return float(self._log_forwards[n, k])

    def log_backward(self, n: int, k: int) -> float:
        _check_index("token", n, self.num_tokens)
        _check_index("tag", k, self.num_tags)
        return float(self._log_backwards[n, k])

    def log_transition(self, n_from: int, k_from: int, k_to: int) -> float:
        """Log potential of ``k_to`` at ``n_from + 1`` following ``k_from``."""
        _check_index("token_from", n_from, self.num_tokens - 1)
        _check_index("tag_from", k_from, self.num_tags)
        _check_index("tag_to", k_to, self.num_tags)
        return float(self._log_transitions[n_from, k_from, k_to])

    def log_probability(self, n: int, k: int) -> float:
        """Log marginal probability that the token at ``n`` has tag ``k``."""
        _check_index("token", n, self.num_tokens)
        _check_index("tag", k, self.num_tags)
        return float(self._log_forwards[n, k] + self._log_backwards[n, k] - self._log_z)

    def log_probability_pair(self, n_to: int, k_from: int, k_to: int) -> float:
        """Log marginal probability of ``k_from`` at ``n_to - 1`` and ``k_to`` at ``n_to``."""
        _check_index("token_to", n_to - 1, self.num_tokens - 1)
        _check_index("tag_from", k_from, self.num_tags)
        _check_index("tag_to", k_to, self.num_tags)
        return float(
            self._log_forwards[n_to - 1, k_from]
            + self._log_backwards[n_to, k_to]
            + self._log_transitions[n_to - 1, k_from, k_to]
            - self._log_z
        )

    def log_probability_sequence(self, n_from: int, tag_ids: Sequence[int]) -> float:
        """Log marginal probability of a tag subsequence starting at ``n_from``.

        Args:
            n_from: Position of the first tag.
            tag_ids: One or more consecutive tag ids.
        """
        if not len(tag_ids):
            raise InvalidInputError(message="Require at least one tag in a tag subsequence")
        n_to = n_from + len(tag_ids) - 1
        _check_index("token_from", n_from, self.num_tokens)
        _check_index("token_to", n_to, self.num_tokens)
        for k in tag_ids:
            _check_index("tag", k, self.num_tags)
        log_prob = self._log_forwards[n_from, tag_ids[0]] + self._log_backwards[n_to, tag_ids[-1]] - self._log_z
        for offset in range(1, len(tag_ids)):
            log_prob += self._log_transitions[n_from + offset - 1, tag_ids[offset - 1], tag_ids[offset]]
        return float(log_prob)

    def log_probabilities(self, n: int) -> np.ndarray:
        """Log marginal probabilities of every tag at position ``n``."""
        _check_index("token", n, self.num_tokens)
        return self._log_forwards[n] + self._log_backwards[n] - self._log_z

    def log_probability_pairs(self, n_to: int) -> np.ndarray:
        """Log marginal probabilities of every (tag at n_to - 1, tag at n_to) pair.

        Returns:
            Shape (K, K) array indexed [k_from, k_to].
        """
        _check_index("token_to", n_to - 1, self.num_tokens - 1)
        return (
            self._log_forwards[n_to - 1][:, np.newaxis]
            + self._log_transitions[n_to - 1]
            + self._log_backwards[n_to][np.newaxis, :]
            - self._log_z
        )

    def token_classification(self, n: int) -> dict[str, float]:
        """Marginal probability of each tag at ``n``, most probable first.

        Non-finite log probabilities count as effectively zero and positive
        ones (rounding error) as one.
        """
        log_probs = self.log_probabilities(n)
        clamped = np.where(np.isfinite(log_probs), np.minimum(log_probs, 0.0), _CLASSIFICATION_FLOOR)
        order = sorted(range(self.num_tags), key=lambda k: (-clamped[k], k))
        return {self._tags[k]: float(np.exp(clamped[k])) for k in order}

    def __str__(self) -> str:
        lines = [f"token[{n}]={token}" for n, token in enumerate(self._tokens)]
        lines.append("")
        lines.extend(f"tag[{k}]={tag}" for k, tag in enumerate(self._tags))
        lines.append("")
        lines.append(f"logZ={self._log_z}")
        lines.append("")
        lines.append("logFwd[token][tag]")
        for n in range(self.num_tokens):
            lines.extend(f"logFwd[{n}][{k}]={self._log_forwards[n, k]}" for k in range(self.num_tags))
        lines.append("")
        lines.append("logBk[token][tag]")
        for n in range(self.num_tokens):
            lines.extend(f"logBk[{n}][{k}]={self._log_backwards[n, k]}" for k in range(self.num_tags))
        lines.append("")
        lines.append("logTrans[tokenFrom][tagFrom][tagTo]")
        for n in range(self.num_tokens - 1):
            for j in range(self.num_tags):
                lines.extend(
                    f"logTrans[{n}][{j}][{k}]={self._log_transitions[n, j, k]}" for k in range(self.num_tags)
                )
        return "\n".join(lines)


def empty_lattice(tags: Sequence[str]) -> ForwardBackwardTagLattice:
    """Degenerate lattice for empty input with log Z = 0."""
    num_tags = len(tags)
    return ForwardBackwardTagLattice(
        tokens=(),
        tags=tags,
        log_forwards=np.empty((0, num_tags)),
        log_backwards=np.empty((0, num_tags)),
        log_transitions=np.empty((0, num_tags, num_tags)),
        log_z=0.0,
    )


def forward_backward(tokens: Sequence[Any], tags: Sequence[str], potentials: Potentials) -> ForwardBackwardTagLattice:
    """Run the product-sum algorithm in log space over non-empty input."""
    num_tokens = potentials.num_tokens
    num_tags = potentials.num_tags
    transitions = potentials.transitions

    log_forwards = np.empty((num_tokens, num_tags), dtype=np.float64)
    log_forwards[0] = potentials.initial
    for n in range(1, num_tokens):
        log_forwards[n] = log_sum_exp(log_forwards[n - 1][:, np.newaxis] + transitions[n - 1], axis=0)

    log_backwards = np.zeros((num_tokens, num_tags), dtype=np.float64)
    for n in range(num_tokens - 2, -1, -1):
        log_backwards[n] = log_sum_exp(transitions[n] + log_backwards[n + 1][np.newaxis, :], axis=1)

    log_z = log_sum_exp(log_forwards[num_tokens - 1])
    return ForwardBackwardTagLattice(
        tokens=tokens,
        tags=tags,
        log_forwards=log_forwards,
        log_backwards=log_backwards,
        log_transitions=transitions,
        log_z=float(log_z),
    )


def log_partition(potentials: Potentials) -> float:
    """Forward pass only: log Z for non-empty input."""
    forwards = potentials.initial
    for transition in potentials.transitions:
        forwards = log_sum_exp(forwards[:, np.newaxis] + transition, axis=0)
    return float(log_sum_exp(forwards))
