"""Chain CRF estimation by regularized stochastic gradient descent.

Training proceeds in three stages:
1. Collect the corpus, build tag and feature symbol tables and derive the
   legal starts, ends and transitions from the observed taggings
2. For each epoch, visit every instance, adding the empirical feature
   counts and subtracting the forward-backward expected counts, scaled by
   the epoch's learning rate; apply the prior gradient in blocks
3. After each epoch, compute the penalized log2 likelihood and stop once
   its rolling relative change falls below the improvement threshold

The coefficients with the best penalized likelihood seen are returned.
"""

import logging
import math
import sys
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from chaincrf.crf import ChainCrf
from chaincrf.exceptions import InvalidInputError
from chaincrf.features import ChainCrfFeatureExtractor
from chaincrf.inference.lattice import ForwardBackwardTagLattice, forward_backward, log_partition
from chaincrf.inference.potentials import (
    INTERCEPT_FEATURE_NAME,
    FeatureVectors,
    assemble_potentials,
    extract_feature_vectors,
)
from chaincrf.learning import annealing, priors
from chaincrf.learning.annealing import AnnealingSchedule
from chaincrf.learning.corpus import TaggingCorpus
from chaincrf.learning.priors import RegressionPrior
from chaincrf.primitives.logmath import LOG_PROB_CUTOFF, relative_absolute_difference
from chaincrf.primitives.symbols import SymbolTable
from chaincrf.primitives.vectors import DenseVector
from chaincrf.tagging import Tagging
from chaincrf.tagset import TagSet

logger = logging.getLogger(__name__)

DEFAULT_ADD_INTERCEPT_FEATURE = True
DEFAULT_MIN_FEATURE_COUNT = 1
DEFAULT_CACHE_FEATURE_VECTORS = True
DEFAULT_ALLOW_UNSEEN_TRANSITIONS = False
DEFAULT_PRIOR_VARIANCE = 10.0
DEFAULT_PRIOR_BLOCK_SIZE = 100
DEFAULT_INITIAL_LEARNING_RATE = 0.05
DEFAULT_ANNEALING_RATE = 100.0
DEFAULT_MIN_IMPROVEMENT = 1e-5
DEFAULT_MIN_EPOCHS = 2
DEFAULT_MAX_EPOCHS = 100
DEFAULT_ROLLING_AVERAGE_SIZE = 10

_LN_2 = math.log(2.0)


@dataclass
class TrainingInstance:
    """One non-empty training tagging in id form."""

    tokens: tuple[Any, ...]
    tag_ids: tuple[int, ...]
    features: FeatureVectors | None = None


@dataclass
class TrainingSession:
    """Mutable state carried across the epochs of one estimation run.

    Attributes:
        epoch: Current epoch, starting at 0.
        instances_since_prior_update: Instances visited since the last
            prior gradient step within the current epoch.
        last_llp: Penalized log2 likelihood after the last accepted epoch.
        best_llp: Best penalized log2 likelihood seen.
        best_coefficients: Snapshot of the coefficients achieving ``best_llp``.
        relative_differences: Rolling window of relative changes in the
            penalized log2 likelihood, initially all infinite.
        epochs_run: Epochs completed, accepted or not.
        num_rejected: Epochs whose update the schedule rejected.
        converged: Whether training stopped on the improvement threshold.
        timings: Cumulative seconds per training phase.
    """

    rolling_average_size: int
    epoch: int = 0
    instances_since_prior_update: int = 0
    last_llp: float = -(sys.float_info.max / 2.0)
    best_llp: float = -math.inf
    best_coefficients: np.ndarray | None = None
    relative_differences: deque[float] = field(default_factory=deque)
    epochs_run: int = 0
    num_rejected: int = 0
    converged: bool = False
    timings: dict[str, float] = field(
        default_factory=lambda: {"features": 0.0, "forward_backward": 0.0, "update": 0.0, "prior": 0.0, "loss": 0.0}
    )

    def __post_init__(self) -> None:
        self.relative_differences = deque([math.inf] * self.rolling_average_size, maxlen=self.rolling_average_size)

    @property
    def rolling_average(self) -> float:
        """Mean relative change over the window."""
        return sum(self.relative_differences) / len(self.relative_differences)

    def record(self, llp: float, coefficients: np.ndarray) -> float:
        """Record an accepted epoch's objective, returning its relative change."""
        difference = relative_absolute_difference(self.last_llp, llp)
        self.relative_differences.append(difference)
        self.last_llp = llp
        if llp > self.best_llp:
            self.best_llp = llp
            self.best_coefficients = coefficients.copy()
        return difference


class ChainCrfEstimator:
    """Trains ChainCrf models from tagged corpora.

    Example:
        >>> estimator = ChainCrfEstimator(TokenFeatureExtractor(), max_epochs=50)
        >>> crf = estimator.estimate(ListCorpus(taggings))
    """

    def __init__(
        self,
        feature_extractor: ChainCrfFeatureExtractor[Any],
        *,
        add_intercept_feature: bool = DEFAULT_ADD_INTERCEPT_FEATURE,
        min_feature_count: int = DEFAULT_MIN_FEATURE_COUNT,
        cache_feature_vectors: bool = DEFAULT_CACHE_FEATURE_VECTORS,
        allow_unseen_transitions: bool = DEFAULT_ALLOW_UNSEEN_TRANSITIONS,
        prior: RegressionPrior | None = None,
        prior_block_size: int = DEFAULT_PRIOR_BLOCK_SIZE,
        annealing_schedule: AnnealingSchedule | None = None,
        min_improvement: float = DEFAULT_MIN_IMPROVEMENT,
        min_epochs: int = DEFAULT_MIN_EPOCHS,
        max_epochs: int = DEFAULT_MAX_EPOCHS,
        rolling_average_size: int = DEFAULT_ROLLING_AVERAGE_SIZE,
    ) -> None:
        """Initialize the estimator.

        Args:
            feature_extractor: Extractor stored in, and used by, the trained model.
            add_intercept_feature: Add a constant feature at dimension 0.
            min_feature_count: Prune features seen fewer times in the corpus.
            cache_feature_vectors: Keep every instance's feature vectors in memory.
            allow_unseen_transitions: Allow every start, end and transition
                instead of only those observed in the corpus.
            prior: Regularization prior. Defaults to a Gaussian with
                DEFAULT_PRIOR_VARIANCE and a noninformative intercept.
            prior_block_size: Instances between prior gradient steps.
            annealing_schedule: Learning rates by epoch. Defaults to an inverse
                schedule from DEFAULT_INITIAL_LEARNING_RATE.
            min_improvement: Rolling relative change at which training converges.
            min_epochs: Epochs to run before convergence is checked.
            max_epochs: Upper bound on epochs.
            rolling_average_size: Epochs averaged for the convergence check.

        Raises:
            InvalidInputError: If any setting is out of range.
        """
        if min_feature_count < 1:
            raise InvalidInputError(message=f"Minimum feature count must be positive. Found {min_feature_count}")
        if prior_block_size < 1:
            raise InvalidInputError(message=f"Prior block size must be positive. Found {prior_block_size}")
        if math.isnan(min_improvement) or min_improvement < 0.0:
            raise InvalidInputError(message=f"Minimum improvement must be non-negative. Found {min_improvement}")
        if min_epochs < 0:
            raise InvalidInputError(message=f"Minimum epochs must be non-negative. Found {min_epochs}")
        if max_epochs < 1:
            raise InvalidInputError(message=f"Maximum epochs must be positive. Found {max_epochs}")
        if min_epochs > max_epochs:
            raise InvalidInputError(
                message=f"Minimum epochs must not exceed maximum epochs. Found min_epochs={min_epochs} max_epochs={max_epochs}"
            )
        if rolling_average_size < 1:
            raise InvalidInputError(message=f"Rolling average size must be positive. Found {rolling_average_size}")

        self.feature_extractor = feature_extractor
        self.add_intercept_feature = add_intercept_feature
        self.min_feature_count = min_feature_count
        self.cache_feature_vectors = cache_feature_vectors
        self.allow_unseen_transitions = allow_unseen_transitions
        self.prior = prior if prior is not None else priors.gaussian(DEFAULT_PRIOR_VARIANCE, True)
        self.prior_block_size = prior_block_size
        self.annealing_schedule = (
            annealing_schedule
            if annealing_schedule is not None
            else annealing.inverse(DEFAULT_INITIAL_LEARNING_RATE, DEFAULT_ANNEALING_RATE)
        )
        self.min_improvement = min_improvement
        self.min_epochs = min_epochs
        self.max_epochs = max_epochs
        self.rolling_average_size = rolling_average_size
        self.last_session: TrainingSession | None = None

    def get_params(self) -> dict[str, Any]:
        """Active training configuration."""
        return {
            "feature_extractor": self.feature_extractor,
            "add_intercept_feature": self.add_intercept_feature,
            "min_feature_count": self.min_feature_count,
            "cache_feature_vectors": self.cache_feature_vectors,
            "allow_unseen_transitions": self.allow_unseen_transitions,
            "prior": self.prior,
            "prior_block_size": self.prior_block_size,
            "annealing_schedule": self.annealing_schedule,
            "min_improvement": self.min_improvement,
            "min_epochs": self.min_epochs,
            "max_epochs": self.max_epochs,
            "rolling_average_size": self.rolling_average_size,
        }

    def estimate(self, corpus: TaggingCorpus) -> ChainCrf:
        """Train a model on every tagging in ``corpus``.

        Raises:
            InvalidInputError: If the corpus has no non-empty taggings.
        """
        taggings: list[Tagging[Any]] = []
        corpus.visit_train(taggings.append)
        non_empty = [tagging for tagging in taggings if len(tagging)]
        if not non_empty:
            raise InvalidInputError(message=f"Require at least one non-empty tagging. Found num_taggings={len(taggings)}")
        if len(non_empty) < len(taggings):
            logger.info("Skipping %d empty taggings", len(taggings) - len(non_empty))

        for name, value in self.get_params().items():
            logger.info("%s=%s", name, value)

        tag_table = SymbolTable()
        for tagging in non_empty:
            for tag in tagging.tags:
                tag_table.get_or_add(tag)
        instances = [
            TrainingInstance(tokens=tagging.tokens, tag_ids=tuple(tag_table.get_or_add(tag) for tag in tagging.tags))
            for tagging in non_empty
        ]
        feature_table = self._feature_symbol_table(non_empty)
        tags = tag_table.symbols()
        if self.allow_unseen_transitions:
            tag_set = TagSet.unconstrained(tags)
        else:
            tag_set = TagSet.from_tag_ids(tags, (instance.tag_ids for instance in instances))

        num_dimensions = feature_table.num_symbols
        logger.info("Corpus statistics")
        logger.info("num_training_instances=%d", len(instances))
        logger.info("num_training_tokens=%d", sum(len(instance.tokens) for instance in instances))
        logger.info("num_dimensions_after_pruning=%d", num_dimensions)
        logger.info("tags=%s", list(tags))

        if self.cache_feature_vectors:
            logger.info("Caching feature vectors")
            for instance in instances:
                instance.features = self._features(instance, tag_set, feature_table)

        self.prior.verify_num_dimensions(num_dimensions)
        coefficients = np.zeros((tag_set.num_tags, num_dimensions), dtype=np.float64)
        session = TrainingSession(rolling_average_size=self.rolling_average_size)
        self.last_session = session
        self._train(instances, tag_set, feature_table, coefficients, session)

        for phase, seconds in session.timings.items():
            logger.info("%s time=%.3fs", phase, seconds)
        final = session.best_coefficients if session.best_coefficients is not None else coefficients
        return ChainCrf(
            tag_set=tag_set,
            coefficients=final,
            feature_symbol_table=feature_table,
            feature_extractor=self.feature_extractor,
            add_intercept_feature=self.add_intercept_feature,
        )

    def _feature_symbol_table(self, taggings: list[Tagging[Any]]) -> SymbolTable:
        """Count features over the corpus and keep the frequent ones.

        Edge features are counted only for each position's observed previous
        tag, with the tagging's own tags as the extractor's tag list.
        """
        counts: Counter[str] = Counter()
        for tagging in taggings:
            features = self.feature_extractor.extract(tagging.tokens, tagging.tags)
            for n in range(len(tagging)):
                counts.update(features.node_features(n).keys())
            for n in range(1, len(tagging)):
                counts.update(features.edge_features(n, n - 1).keys())

        table = SymbolTable()
        if self.add_intercept_feature:
            table.get_or_add(INTERCEPT_FEATURE_NAME)
        for feature, count in counts.items():
            if count >= self.min_feature_count:
                table.get_or_add(feature)
        logger.debug("Kept %d of %d features", table.num_symbols, len(counts))
        return table.frozen_copy()

    def _instance_features(
        self, instance: TrainingInstance, tag_set: TagSet, feature_table: SymbolTable
    ) -> FeatureVectors:
        if instance.features is not None:
            return instance.features
        return self._features(instance, tag_set, feature_table)

    def _features(self, instance: TrainingInstance, tag_set: TagSet, feature_table: SymbolTable) -> FeatureVectors:
        return extract_feature_vectors(
            instance.tokens,
            tag_set.tags,
            self.feature_extractor,
            feature_table,
            feature_table.num_symbols,
            self.add_intercept_feature,
        )

    def _train(
        self,
        instances: list[TrainingInstance],
        tag_set: TagSet,
        feature_table: SymbolTable,
        coefficients: np.ndarray,
        session: TrainingSession,
    ) -> None:
        num_instances = len(instances)
        weight_vectors = [DenseVector(row) for row in coefficients]
        modes = self.prior.modes(coefficients.shape[1])
        schedule = self.annealing_schedule
        timings = session.timings

        for epoch in range(self.max_epochs):
            session.epoch = epoch
            session.instances_since_prior_update = 0
            before_epoch = coefficients.copy()
            learning_rate = schedule.learning_rate(epoch)
            learning_rate_per_instance = learning_rate / num_instances

            for instance in instances:
                start = time.perf_counter()
                features = self._instance_features(instance, tag_set, feature_table)
                features_done = time.perf_counter()
                lattice = forward_backward(
                    instance.tokens, tag_set.tags, assemble_potentials(features, coefficients, tag_set)
                )
                lattice_done = time.perf_counter()
                self._update(weight_vectors, features, lattice, instance.tag_ids, learning_rate)
                update_done = time.perf_counter()
                session.instances_since_prior_update += 1
                if session.instances_since_prior_update == self.prior_block_size:
                    self._apply_prior(
                        coefficients, modes, session.instances_since_prior_update * learning_rate_per_instance
                    )
                    session.instances_since_prior_update = 0
                prior_done = time.perf_counter()
                timings["features"] += features_done - start
                timings["forward_backward"] += lattice_done - features_done
                timings["update"] += update_done - lattice_done
                timings["prior"] += prior_done - update_done

            start = time.perf_counter()
            self._apply_prior(coefficients, modes, session.instances_since_prior_update * learning_rate_per_instance)
            timings["prior"] += time.perf_counter() - start

            start = time.perf_counter()
            log2_likelihood = self._log2_likelihood(instances, tag_set, feature_table, coefficients)
            log2_prior = self.prior.log2_prior(coefficients)
            llp = log2_likelihood + log2_prior
            timings["loss"] += time.perf_counter() - start
            session.epochs_run = epoch + 1

            if not schedule.received_error(epoch, learning_rate, -llp):
                coefficients[...] = before_epoch
                session.num_rejected += 1
                logger.info("Rejected update in epoch=%d lr=%.9f llp=%.4f", epoch, learning_rate, llp)
                continue

            session.record(llp, coefficients)
            logger.debug(
                "epoch=%5d lr=%11.9f ll=%11.4f lp=%11.4f llp=%11.4f llp*=%11.4f",
                epoch,
                learning_rate,
                log2_likelihood,
                log2_prior,
                llp,
                session.best_llp,
            )
            if epoch + 1 >= self.min_epochs and session.rolling_average < self.min_improvement:
                session.converged = True
                logger.info("Converged with rolling_average_relative_diff=%s", session.rolling_average)
                break
        else:
            logger.info("Stopped after max_epochs=%d without converging", self.max_epochs)

    @staticmethod
    def _update(
        weight_vectors: list[DenseVector],
        features: FeatureVectors,
        lattice: ForwardBackwardTagLattice,
        tag_ids: tuple[int, ...],
        learning_rate: float,
    ) -> None:
        """Add empirical minus expected feature counts, scaled by the rate."""
        num_tokens = len(tag_ids)
        for n in range(num_tokens):
            weight_vectors[tag_ids[n]].increment(learning_rate, features.node_vectors[n])
        for n in range(1, num_tokens):
            weight_vectors[tag_ids[n]].increment(learning_rate, features.edge_vectors[n - 1][tag_ids[n - 1]])

        for n in range(num_tokens):
            log_probs = lattice.log_probabilities(n)
            for k in np.flatnonzero(log_probs >= LOG_PROB_CUTOFF):
                weight_vectors[k].increment(-math.exp(log_probs[k]) * learning_rate, features.node_vectors[n])
        for n in range(1, num_tokens):
            log_probs = lattice.log_probability_pairs(n)
            for j, k in zip(*np.nonzero(log_probs >= LOG_PROB_CUTOFF)):
                weight_vectors[k].increment(-math.exp(log_probs[j, k]) * learning_rate, features.edge_vectors[n - 1][j])

    def _apply_prior(self, coefficients: np.ndarray, modes: np.ndarray, scale: float) -> None:
        """Step every coefficient toward the prior mode without crossing it."""
        if self.prior.is_uniform() or scale == 0.0:
            return
        for row in coefficients:
            stepped = row - scale * self.prior.gradients(row)
            row[...] = np.where(
                row > modes,
                np.maximum(modes, stepped),
                np.where(row < modes, np.minimum(modes, stepped), row),
            )

    def _log2_likelihood(
        self,
        instances: list[TrainingInstance],
        tag_set: TagSet,
        feature_table: SymbolTable,
        coefficients: np.ndarray,
    ) -> float:
        total = 0.0
        for instance in instances:
            features = self._instance_features(instance, tag_set, feature_table)
            potentials = assemble_potentials(features, coefficients, tag_set)
            total += potentials.path_score(instance.tag_ids) - log_partition(potentials)
        return total / _LN_2
