"""Shared models and brute-force scoring for chain CRF tests.

The hand-built model has tags X, Y, Z over tokens a, b, c, d. Each node has
the single feature ``token``, each edge the single feature ``previous tag``,
so a tagging scores

    sum_n TOKEN_WEIGHTS[tag_n][token_n] + sum_{n>=1} TRANSITION_WEIGHTS[tag_n][tag_{n-1}]

which brute_force() enumerates directly.
"""

import itertools
import math
from collections.abc import Mapping, Sequence

import numpy as np

from chaincrf.crf import ChainCrf
from chaincrf.features import ChainCrfFeatures
from chaincrf.primitives.symbols import SymbolTable
from chaincrf.tagset import TagSet

TAGS = ("X", "Y", "Z")
TOKENS = ("a", "b", "c", "d")
FEATURES = ("X", "Y", "Z", "a", "b", "c", "d")

# TRANSITION_WEIGHTS[current][previous]
TRANSITION_WEIGHTS = np.array(
    [
        [1.0, 2.0, 3.0],
        [1.0, -1.0, 1.0],
        [2.0, 4.0, 6.0],
    ]
)

# TOKEN_WEIGHTS[tag][token]
TOKEN_WEIGHTS = np.array(
    [
        [4.0, 5.0, 6.0, 7.0],
        [-1.0, 10.0, -1.0, 1.0],
        [-2.0, -4.0, -6.0, 15.0],
    ]
)

# Row k: coefficients of tag k over FEATURES
COEFFICIENTS = np.hstack([TRANSITION_WEIGHTS, TOKEN_WEIGHTS])


class LetterFeatures(ChainCrfFeatures[str]):
    """The token as the node feature, the previous tag as the edge feature."""

    def node_features(self, n: int) -> Mapping[str, float]:
        return {self.token(n): 1.0}

    def edge_features(self, n: int, previous_tag_index: int) -> Mapping[str, float]:
        return {self.tag(previous_tag_index): 1.0}


class LetterFeatureExtractor:
    def extract(self, tokens: Sequence[str], tags: Sequence[str]) -> LetterFeatures:
        return LetterFeatures(tokens, tags)


def make_crf(tag_set: TagSet | None = None) -> ChainCrf:
    """The hand-built model, unconstrained unless ``tag_set`` is given."""
    return ChainCrf(
        tag_set=tag_set if tag_set is not None else TagSet.unconstrained(TAGS),
        coefficients=COEFFICIENTS,
        feature_symbol_table=SymbolTable(FEATURES),
        feature_extractor=LetterFeatureExtractor(),
        add_intercept_feature=False,
    )


def all_arrays(size: int, max_value: int) -> list[tuple[int, ...]]:
    """Every sequence of ``size`` values drawn from range(max_value)."""
    return list(itertools.product(range(max_value), repeat=size))


def score(token_ids: Sequence[int], tag_ids: Sequence[int]) -> float:
    total = sum(TOKEN_WEIGHTS[k, t] for k, t in zip(tag_ids, token_ids))
    total += sum(TRANSITION_WEIGHTS[tag_ids[n], tag_ids[n - 1]] for n in range(1, len(tag_ids)))
    return float(total)


def brute_force(token_ids: Sequence[int], tag_set: TagSet | None = None) -> dict[tuple[int, ...], float]:
    """Score of every legal tagging of ``token_ids``."""
    scores = {}
    for tag_ids in all_arrays(len(token_ids), len(TAGS)):
        if tag_set is not None and not tag_set.is_legal(tag_ids):
            continue
        scores[tag_ids] = score(token_ids, tag_ids)
    return scores


def log_sum(values: Sequence[float]) -> float:
    if not values:
        return -math.inf
    top = max(values)
    return top + math.log(sum(math.exp(v - top) for v in values))


def log_z(scores: Mapping[tuple[int, ...], float]) -> float:
    return log_sum(list(scores.values()))


def log_marginal(scores: Mapping[tuple[int, ...], float], position: int, tag_id: int) -> float:
    return log_sum([s for tag_ids, s in scores.items() if tag_ids[position] == tag_id]) - log_z(scores)


def tokens_for(token_ids: Sequence[int]) -> list[str]:
    return [TOKENS[t] for t in token_ids]


def tags_for(tag_ids: Sequence[int]) -> tuple[str, ...]:
    return tuple(TAGS[k] for k in tag_ids)
