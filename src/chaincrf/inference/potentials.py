"""Potential assembly shared by every decoder and the estimator.

Per-input feature vectors are combined with the per-tag coefficient matrix
into log potentials:
- initial[k] = node(0) . beta[k]
- transitions[n-1, j, k] = node(n) . beta[k] + edge(n, j) . beta[k]

Structural zeros become negative infinity: illegal start tags at position 0,
illegal end tags at the last position (position 0 for single-token inputs)
and illegal transitions everywhere.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from chaincrf.features import ChainCrfFeatureExtractor
from chaincrf.primitives.symbols import SymbolTable
from chaincrf.primitives.vectors import SparseVector
from chaincrf.tagset import TagSet

INTERCEPT_FEATURE_NAME = "*&^INTERCEPT%$^&**"


@dataclass(frozen=True, slots=True)
class FeatureVectors:
    """Feature vectors materialized for one input.

    Attributes:
        node_vectors: One vector per position.
        edge_vectors: ``edge_vectors[n - 1][j]`` is the edge vector for
            position n (n >= 1) with previous tag j.
    """

    node_vectors: tuple[SparseVector, ...]
    edge_vectors: tuple[tuple[SparseVector, ...], ...]

    @property
    def num_tokens(self) -> int:
        return len(self.node_vectors)


@dataclass(frozen=True, slots=True)
class Potentials:
    """Log potentials for one input under fixed coefficients.

    Attributes:
        initial: Shape (K,); log potential of each tag at position 0.
        transitions: Shape (N-1, K, K); ``transitions[n - 1, j, k]`` is the
            log potential of tag k at position n after tag j.
    """

    initial: np.ndarray
    transitions: np.ndarray

    @property
    def num_tokens(self) -> int:
        return int(self.transitions.shape[0]) + 1

    @property
    def num_tags(self) -> int:
        return int(self.initial.shape[0])

    def path_score(self, tag_ids: Sequence[int]) -> float:
        """Unnormalized log score of a complete tag id sequence."""
        score = float(self.initial[tag_ids[0]])
        for n in range(1, len(tag_ids)):
            score += float(self.transitions[n - 1, tag_ids[n - 1], tag_ids[n]])
        return score


def to_vector(
    feature_map: Mapping[str, float],
    symbol_table: SymbolTable,
    num_dimensions: int,
    add_intercept: bool,
) -> SparseVector:
    """Convert named features to a sparse vector.

    Features missing from the symbol table are ignored. With
    ``add_intercept``, dimension 0 is set to 1.0.
    """
    entries: dict[int, float] = {}
    for feature, value in feature_map.items():
        feature_id = symbol_table.symbol_to_id(feature)
        if feature_id is None:
            continue
        entries[feature_id] = float(value)
    if add_intercept:
        entries[0] = 1.0
    return SparseVector(entries, num_dimensions)


def extract_feature_vectors(
    tokens: Sequence[Any],
    tags: Sequence[str],
    feature_extractor: ChainCrfFeatureExtractor[Any],
    symbol_table: SymbolTable,
    num_dimensions: int,
    add_intercept: bool,
) -> FeatureVectors:
    """Materialize node and edge vectors for every position and previous tag."""
    features = feature_extractor.extract(tokens, tags)
    node_vectors = tuple(
        to_vector(features.node_features(n), symbol_table, num_dimensions, add_intercept)
        for n in range(len(tokens))
    )
    edge_vectors = tuple(
        tuple(
            to_vector(features.edge_features(n, k), symbol_table, num_dimensions, add_intercept)
            for k in range(len(tags))
        )
        for n in range(1, len(tokens))
    )
    return FeatureVectors(node_vectors=node_vectors, edge_vectors=edge_vectors)


def assemble_potentials(
    features: FeatureVectors,
    coefficients: np.ndarray,
    tag_set: TagSet,
) -> Potentials:
    """Combine feature vectors with a (K, D) coefficient matrix.

    Args:
        features: Feature vectors for a non-empty input.
        coefficients: Row k holds the coefficients for tag k.
        tag_set: Tags and structural zeros.

    Returns:
        Potentials with structural zeros set to negative infinity.
    """
    num_tokens = features.num_tokens
    num_tags = tag_set.num_tags
    last = num_tokens - 1

    node_potentials = np.empty((num_tokens, num_tags), dtype=np.float64)
    for n, node_vector in enumerate(features.node_vectors):
        node_potentials[n] = node_vector.dot_rows(coefficients)

    initial = np.where(tag_set.legal_starts, node_potentials[0], -np.inf)
    if last == 0:
        initial = np.where(tag_set.legal_ends, initial, -np.inf)

    transitions = np.empty((num_tokens - 1, num_tags, num_tags), dtype=np.float64)
    for n in range(1, num_tokens):
        for j, edge_vector in enumerate(features.edge_vectors[n - 1]):
            transitions[n - 1, j] = node_potentials[n] + edge_vector.dot_rows(coefficients)
    transitions[:, ~tag_set.legal_transitions] = -np.inf
    if last > 0:
        transitions[last - 1][:, ~tag_set.legal_ends] = -np.inf

    return Potentials(initial=initial, transitions=transitions)
