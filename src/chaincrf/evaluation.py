"""Evaluation of chain CRF taggers against reference taggings.

For each reference tagging the evaluator decodes the tokens three ways and
accumulates:
- first-best: token accuracy, whole-tagging accuracy, per-tag precision,
  recall and F1, and a reference-by-response confusion count
- marginal: the conditional log probability of the reference tagging
- n-best: the rank of the reference tagging among the first max_nbest
  results, or a miss when it is not among them
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from chaincrf.crf import ChainCrf
from chaincrf.exceptions import InvalidInputError, NoLegalPathError
from chaincrf.learning.corpus import TaggingCorpus
from chaincrf.tagging import Tagging

logger = logging.getLogger(__name__)

DEFAULT_MAX_NBEST = 10


@dataclass
class TagMetrics:
    """Per-tag counts of first-best tagging outcomes."""

    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0

    @property
    def precision(self) -> float:
        if self.true_positives + self.false_positives == 0:
            return 0.0
        return self.true_positives / (self.true_positives + self.false_positives)

    @property
    def recall(self) -> float:
        if self.true_positives + self.false_negatives == 0:
            return 0.0
        return self.true_positives / (self.true_positives + self.false_negatives)

    @property
    def f1(self) -> float:
        if self.precision + self.recall == 0:
            return 0.0
        return 2 * self.precision * self.recall / (self.precision + self.recall)


@dataclass
class EvaluationReport:
    """Aggregated evaluation results.

    Attributes:
        num_cases: Reference taggings evaluated.
        num_tokens: Tokens across all cases.
        correct_tokens: Tokens whose first-best tag matches the reference.
        correct_taggings: Cases whose whole first-best tagging matches.
        tag_metrics: Precision, recall and F1 counts by tag.
        confusion: Counts keyed by (reference tag, response tag).
        reference_log_probabilities: Conditional log probability of each reference.
        nbest_ranks: Counts keyed by 0-based rank of the reference among n-best
            results; -1 counts references outside the first max_nbest.
        no_legal_path: Cases the model could not tag at all.
    """

    num_cases: int = 0
    num_tokens: int = 0
    correct_tokens: int = 0
    correct_taggings: int = 0
    tag_metrics: dict[str, TagMetrics] = field(default_factory=dict)
    confusion: Counter[tuple[str, str]] = field(default_factory=Counter)
    reference_log_probabilities: list[float] = field(default_factory=list)
    nbest_ranks: Counter[int] = field(default_factory=Counter)
    no_legal_path: int = 0

    @property
    def token_accuracy(self) -> float:
        return self.correct_tokens / self.num_tokens if self.num_tokens > 0 else 0.0

    @property
    def tagging_accuracy(self) -> float:
        return self.correct_taggings / self.num_cases if self.num_cases > 0 else 0.0

    @property
    def mean_reference_log_probability(self) -> float:
        finite = [p for p in self.reference_log_probabilities if math.isfinite(p)]
        return sum(finite) / len(finite) if finite else 0.0

    def nbest_recall(self, rank: int) -> float:
        """Fraction of cases whose reference is among the first ``rank`` n-best results."""
        if self.num_cases == 0:
            return 0.0
        found = sum(count for r, count in self.nbest_ranks.items() if 0 <= r < rank)
        return found / self.num_cases

    def format(self) -> str:
        """Human-readable multi-line summary."""
        lines = [
            f"Cases: {self.num_cases}",
            f"Tokens: {self.num_tokens}",
            f"Token accuracy: {self.token_accuracy:.4f}",
            f"Tagging accuracy: {self.tagging_accuracy:.4f}",
            f"Mean reference log probability: {self.mean_reference_log_probability:.4f}",
            f"No legal path: {self.no_legal_path}",
            "",
            f"{'Tag':<16} {'Prec':>7} {'Rec':>7} {'F1':>7}",
        ]
        for tag in sorted(self.tag_metrics):
            metrics = self.tag_metrics[tag]
            lines.append(f"{tag:<16} {metrics.precision:>7.4f} {metrics.recall:>7.4f} {metrics.f1:>7.4f}")
        lines.append("")
        lines.append("N-best rank histogram (-1 = not found)")
        for rank in sorted(self.nbest_ranks):
            lines.append(f"  {rank:>4}: {self.nbest_ranks[rank]}")
        return "\n".join(lines)


class TaggerEvaluator:
    """Accumulates first-best, marginal and n-best results for a model."""

    def __init__(self, crf: ChainCrf, max_nbest: int = DEFAULT_MAX_NBEST) -> None:
        """Initialize the evaluator.

        Args:
            crf: Model to evaluate.
            max_nbest: Depth of the n-best search for reference ranks; 0 disables it.

        Raises:
            InvalidInputError: If ``max_nbest`` is negative.
        """
        if max_nbest < 0:
            raise InvalidInputError(message=f"Maximum n-best must be non-negative. Found max_nbest={max_nbest}")
        self.crf = crf
        self.max_nbest = max_nbest
        self._report = EvaluationReport(tag_metrics={tag: TagMetrics() for tag in crf.tags})

    def evaluate(self, corpus: TaggingCorpus) -> EvaluationReport:
        """Add every tagging in ``corpus`` as a case and return the summary."""
        corpus.visit_train(self.add_case)
        return self.summary()

    def add_case(self, reference: Tagging[Any]) -> None:
        """Decode the reference's tokens and compare against its tags."""
        report = self._report
        report.num_cases += 1
        report.num_tokens += len(reference)

        try:
            response = self.crf.tag(reference.tokens)
        except NoLegalPathError as exc:
            logger.warning("Could not tag case %d: %s", report.num_cases, exc)
            report.no_legal_path += 1
            response = None

        if response is not None:
            if response.tags == reference.tags:
                report.correct_taggings += 1
            for reference_tag, response_tag in zip(reference.tags, response.tags):
                report.confusion[(reference_tag, response_tag)] += 1
                if reference_tag == response_tag:
                    report.correct_tokens += 1
                    self._metrics(reference_tag).true_positives += 1
                else:
                    self._metrics(reference_tag).false_negatives += 1
                    self._metrics(response_tag).false_positives += 1
        else:
            for reference_tag in reference.tags:
                self._metrics(reference_tag).false_negatives += 1

        if all(tag in self.crf.tags for tag in reference.tags):
            report.reference_log_probabilities.append(self.crf.log_probability(reference))
        else:
            report.reference_log_probabilities.append(-math.inf)

        if self.max_nbest > 0:
            report.nbest_ranks[self._nbest_rank(reference)] += 1

    def summary(self) -> EvaluationReport:
        """The report accumulated so far."""
        return self._report

    def _metrics(self, tag: str) -> TagMetrics:
        return self._report.tag_metrics.setdefault(tag, TagMetrics())

    def _nbest_rank(self, reference: Tagging[Any]) -> int:
        for rank, candidate in enumerate(self.crf.tag_nbest(reference.tokens, self.max_nbest)):
            if candidate.tags == reference.tags:
                return rank
        return -1
