"""Linear-chain conditional random field tagger.

A ChainCrf scores a tagging of N tokens as the sum over positions of
beta[tag(n)] . phi(n, tag(n-1)), where phi combines node and edge features.
It decodes in three ways:
- tag: the single best tagging (Viterbi)
- tag_nbest / tag_nbest_conditional: taggings in score order (best-first search)
- tag_marginal: per-position tag probabilities (forward-backward)

Decoding never mutates the model, so one model may serve many threads as long
as its feature extractor is reentrant.
"""

import logging
import pickle
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from chaincrf.exceptions import InvalidInputError, ModelLoadError
from chaincrf.features import ChainCrfFeatureExtractor
from chaincrf.inference.lattice import ForwardBackwardTagLattice, empty_lattice, forward_backward
from chaincrf.inference.nbest import nbest_taggings
from chaincrf.inference.potentials import Potentials, assemble_potentials, extract_feature_vectors
from chaincrf.inference.viterbi import viterbi_decode
from chaincrf.primitives.symbols import SymbolTable
from chaincrf.primitives.vectors import DenseVector, Vector
from chaincrf.tagging import ScoredTagging, Tagging
from chaincrf.tagset import TagSet

logger = logging.getLogger(__name__)

MODEL_FORMAT = "chaincrf-model"
MODEL_VERSION = 1


def _coefficient_matrix(coefficients: Sequence[Vector] | np.ndarray, num_tags: int) -> np.ndarray:
    if isinstance(coefficients, np.ndarray):
        matrix = np.array(coefficients, dtype=np.float64)
        if matrix.ndim != 2:
            raise InvalidInputError(
                message=f"Coefficient matrix must be two-dimensional. Found shape={matrix.shape}"
            )
        rows = list(matrix)
    else:
        rows = [np.array([vector.value(d) for d in range(vector.num_dimensions)]) for vector in coefficients]
    if len(rows) != num_tags:
        raise InvalidInputError(
            message=(
                "Require one coefficient vector per tag."
                f" Found num_tags={num_tags} num_coefficients={len(rows)}"
            )
        )
    dimensions = {len(row) for row in rows}
    if len(dimensions) > 1:
        raise InvalidInputError(
            message=f"All coefficient vectors must have the same dimensionality. Found {sorted(dimensions)}"
        )
    matrix = np.vstack(rows).astype(np.float64)
    matrix.setflags(write=False)
    return matrix


class ChainCrf:
    """Trained chain CRF: tags, constraints, coefficients and features.

    Example:
        >>> crf = ChainCrf.load("model.crf")
        >>> crf.tag(["John", "ran", "."]).tags
        ('PN', 'V', '.')
    """

    def __init__(
        self,
        tag_set: TagSet,
        coefficients: Sequence[Vector] | np.ndarray,
        feature_symbol_table: SymbolTable,
        feature_extractor: ChainCrfFeatureExtractor[Any],
        add_intercept_feature: bool,
    ) -> None:
        """Initialize the model.

        Args:
            tag_set: Tags and structural zeros.
            coefficients: One weight vector per tag, or a (num_tags, num_dimensions)
                matrix. Copied.
            feature_symbol_table: Feature names indexed by dimension.
            feature_extractor: Builds node and edge features for inputs.
            add_intercept_feature: Dimension 0 is a constant 1.0 feature.

        Raises:
            InvalidInputError: If coefficient counts or dimensions disagree.
        """
        matrix = _coefficient_matrix(coefficients, tag_set.num_tags)
        num_dimensions = matrix.shape[1]
        if num_dimensions != feature_symbol_table.num_symbols:
            raise InvalidInputError(
                message=(
                    "Coefficient dimensionality must match the number of features."
                    f" Found num_dimensions={num_dimensions} num_features={feature_symbol_table.num_symbols}"
                )
            )
        self._tag_set = tag_set
        self._coefficients = matrix
        self._feature_symbol_table = feature_symbol_table.frozen_copy()
        self._feature_extractor = feature_extractor
        self._add_intercept_feature = add_intercept_feature

    @property
    def tag_set(self) -> TagSet:
        return self._tag_set

    @property
    def tags(self) -> tuple[str, ...]:
        return self._tag_set.tags

    @property
    def coefficients(self) -> tuple[DenseVector, ...]:
        """Read-only weight vector for each tag."""
        return tuple(DenseVector(row, read_only=True) for row in self._coefficients)

    @property
    def coefficient_matrix(self) -> np.ndarray:
        """Read-only (num_tags, num_dimensions) weights."""
        return self._coefficients

    @property
    def feature_symbol_table(self) -> SymbolTable:
        return self._feature_symbol_table

    @property
    def feature_extractor(self) -> ChainCrfFeatureExtractor[Any]:
        return self._feature_extractor

    @property
    def add_intercept_feature(self) -> bool:
        return self._add_intercept_feature

    @property
    def num_dimensions(self) -> int:
        return int(self._coefficients.shape[1])

    def potentials(self, tokens: Sequence[Any]) -> Potentials | None:
        """Log potentials for ``tokens``, or None for empty input."""
        if not len(tokens):
            return None
        features = extract_feature_vectors(
            tokens,
            self._tag_set.tags,
            self._feature_extractor,
            self._feature_symbol_table,
            self.num_dimensions,
            self._add_intercept_feature,
        )
        return assemble_potentials(features, self._coefficients, self._tag_set)

    def tag(self, tokens: Sequence[Any]) -> Tagging[Any]:
        """Return the highest scoring tagging.

        Raises:
            NoLegalPathError: If no tagging satisfies the structural zeros.
        """
        potentials = self.potentials(tokens)
        if potentials is None:
            return Tagging(tokens=(), tags=())
        tag_ids, _ = viterbi_decode(potentials)
        return Tagging(tokens=tuple(tokens), tags=tuple(self._tag_set.tags[k] for k in tag_ids))

    def tag_nbest(self, tokens: Sequence[Any], max_results: int) -> Iterator[ScoredTagging[Any]]:
        """Iterate taggings by non-increasing unnormalized log score."""
        return nbest_taggings(tokens, self._tag_set.tags, self.potentials(tokens), max_results)

    def tag_nbest_conditional(self, tokens: Sequence[Any], max_results: int) -> Iterator[ScoredTagging[Any]]:
        """Iterate taggings by non-increasing conditional log probability."""
        return nbest_taggings(tokens, self._tag_set.tags, self.potentials(tokens), max_results, normalize=True)

    def tag_marginal(self, tokens: Sequence[Any]) -> ForwardBackwardTagLattice:
        """Compute the forward-backward lattice of marginal tag probabilities."""
        potentials = self.potentials(tokens)
        if potentials is None:
            return empty_lattice(self._tag_set.tags)
        return forward_backward(tokens, self._tag_set.tags, potentials)

    def log_probability(self, tagging: Tagging[Any]) -> float:
        """Conditional log probability of a complete tagging.

        Raises:
            InvalidInputError: If the tagging uses an unknown tag.
        """
        lattice = self.tag_marginal(tagging.tokens)
        if not len(tagging):
            return 0.0
        if lattice.log_z == -np.inf:
            return -np.inf
        tag_ids = [self._tag_set.index(tag) for tag in tagging.tags]
        return lattice.log_probability_sequence(0, tag_ids)

    def save(self, path: Path | str) -> None:
        """Write the model to ``path``.

        The feature extractor is pickled as-is and must be picklable.
        """
        payload = {
            "format": MODEL_FORMAT,
            "version": MODEL_VERSION,
            "tags": list(self._tag_set.tags),
            "legal_starts": self._tag_set.legal_starts.tolist(),
            "legal_ends": self._tag_set.legal_ends.tolist(),
            "legal_transitions": self._tag_set.legal_transitions.tolist(),
            "coefficients": np.array(self._coefficients),
            "features": list(self._feature_symbol_table.symbols()),
            "feature_extractor": self._feature_extractor,
            "add_intercept_feature": self._add_intercept_feature,
        }
        path = Path(path)
        with path.open("wb") as f:
            pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
        logger.info("Saved chain CRF with %d tags and %d features to %s", self._tag_set.num_tags, self.num_dimensions, path)

    @classmethod
    def load(cls, path: Path | str) -> "ChainCrf":
        """Read a model written by save().

        Raises:
            FileNotFoundError: If the file does not exist.
            ModelLoadError: If the file is not a readable model.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")
        try:
            with path.open("rb") as f:
                payload = pickle.load(f)
        except Exception as exc:
            raise ModelLoadError(message=f"Failed to load chain CRF model from {path}: {exc}") from exc

        if not isinstance(payload, dict) or payload.get("format") != MODEL_FORMAT:
            raise ModelLoadError(message=f"Not a chain CRF model: {path}")
        if payload.get("version") != MODEL_VERSION:
            raise ModelLoadError(
                message=f"Unsupported model version. Found version={payload.get('version')} expected={MODEL_VERSION}"
            )
        try:
            tag_set = TagSet(
                tags=tuple(payload["tags"]),
                legal_starts=np.array(payload["legal_starts"], dtype=bool),
                legal_ends=np.array(payload["legal_ends"], dtype=bool),
                legal_transitions=np.array(payload["legal_transitions"], dtype=bool),
            )
            crf = cls(
                tag_set=tag_set,
                coefficients=np.asarray(payload["coefficients"], dtype=np.float64),
                feature_symbol_table=SymbolTable(payload["features"], frozen=True),
                feature_extractor=payload["feature_extractor"],
                add_intercept_feature=bool(payload["add_intercept_feature"]),
            )
        except Exception as exc:
            raise ModelLoadError(message=f"Corrupt chain CRF model {path}: {exc}") from exc

        logger.info("Loaded chain CRF model from %s", path)
        return crf

    def __str__(self) -> str:
        lines = [f"Tags: {list(self._tag_set.tags)}", f"Add intercept: {self._add_intercept_feature}", "Coefficients:"]
        for k, tag in enumerate(self._tag_set.tags):
            lines.append(f"  {tag}")
            row = self._coefficients[k]
            for d in np.flatnonzero(row):
                lines.append(f"    {self._feature_symbol_table.id_to_symbol(int(d))}={row[d]}")
        return "\n".join(lines)
