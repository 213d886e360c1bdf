"""Tests for tagger evaluation."""

import math

import numpy as np
import pytest

from chaincrf import InvalidInputError, ListCorpus, Tagging, TaggerEvaluator, TagSet
from chaincrf.evaluation import EvaluationReport, TagMetrics
from crf_fixtures import TAGS, log_sum, make_crf

# On the single token "d" the model ranks Z (15), X (7), Y (1)
CORRECT = Tagging(tokens=("d",), tags=("Z",))
WRONG = Tagging(tokens=("d",), tags=("Y",))


class TestTagMetrics:
    """Precision, recall and F1 arithmetic."""

    def test_scores(self) -> None:
        metrics = TagMetrics(true_positives=3, false_positives=1, false_negatives=3)

        assert metrics.precision == pytest.approx(0.75)
        assert metrics.recall == pytest.approx(0.5)
        assert metrics.f1 == pytest.approx(0.6)

    def test_empty(self) -> None:
        metrics = TagMetrics()

        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1 == 0.0


class TestTaggerEvaluator:
    """Evaluation against reference taggings."""

    def test_first_best_counts(self) -> None:
        report = TaggerEvaluator(make_crf()).evaluate(ListCorpus([CORRECT, WRONG]))

        assert report.num_cases == 2
        assert report.num_tokens == 2
        assert report.correct_tokens == 1
        assert report.correct_taggings == 1
        assert report.token_accuracy == pytest.approx(0.5)
        assert report.tagging_accuracy == pytest.approx(0.5)
        assert report.confusion[("Z", "Z")] == 1
        assert report.confusion[("Y", "Z")] == 1

    def test_tag_metrics(self) -> None:
        report = TaggerEvaluator(make_crf()).evaluate(ListCorpus([CORRECT, WRONG]))

        assert set(report.tag_metrics) == set(TAGS)
        assert report.tag_metrics["Z"].precision == pytest.approx(0.5)
        assert report.tag_metrics["Z"].recall == pytest.approx(1.0)
        assert report.tag_metrics["Y"].recall == 0.0
        assert report.tag_metrics["X"].f1 == 0.0

    def test_reference_log_probabilities(self) -> None:
        report = TaggerEvaluator(make_crf()).evaluate(ListCorpus([CORRECT, WRONG]))
        log_z = log_sum([15.0, 7.0, 1.0])

        assert report.reference_log_probabilities == pytest.approx([15.0 - log_z, 1.0 - log_z])
        assert report.mean_reference_log_probability == pytest.approx((16.0 - 2 * log_z) / 2)

    def test_nbest_ranks(self) -> None:
        """References are located among the n-best results."""
        report = TaggerEvaluator(make_crf(), max_nbest=10).evaluate(ListCorpus([CORRECT, WRONG]))

        assert report.nbest_ranks == {0: 1, 2: 1}
        assert report.nbest_recall(1) == pytest.approx(0.5)
        assert report.nbest_recall(3) == pytest.approx(1.0)

    def test_nbest_miss(self) -> None:
        report = TaggerEvaluator(make_crf(), max_nbest=2).evaluate(ListCorpus([WRONG]))

        assert report.nbest_ranks == {-1: 1}
        assert report.nbest_recall(2) == 0.0

    def test_nbest_disabled(self) -> None:
        report = TaggerEvaluator(make_crf(), max_nbest=0).evaluate(ListCorpus([CORRECT]))

        assert not report.nbest_ranks

    def test_unknown_reference_tag(self) -> None:
        """A reference tag the model lacks counts as a miss with zero probability."""
        report = TaggerEvaluator(make_crf()).evaluate(ListCorpus([Tagging(tokens=("d",), tags=("Q",))]))

        assert report.tag_metrics["Q"].false_negatives == 1
        assert report.reference_log_probabilities == [-math.inf]
        assert report.mean_reference_log_probability == 0.0

    def test_no_legal_path(self) -> None:
        """Untaggable inputs are counted rather than raised."""
        tag_set = TagSet(
            tags=TAGS,
            legal_starts=[True, False, False],
            legal_ends=[False, True, True],
            legal_transitions=np.ones((3, 3), dtype=bool),
        )
        evaluator = TaggerEvaluator(make_crf(tag_set))
        evaluator.add_case(Tagging(tokens=("a",), tags=("X",)))
        report = evaluator.summary()

        assert report.no_legal_path == 1
        assert report.correct_tokens == 0
        assert report.tag_metrics["X"].false_negatives == 1
        assert report.reference_log_probabilities == [-math.inf]
        assert report.nbest_ranks == {-1: 1}

    def test_rejects_negative_nbest(self) -> None:
        with pytest.raises(InvalidInputError):
            TaggerEvaluator(make_crf(), max_nbest=-1)


class TestEvaluationReport:
    """Report summaries."""

    def test_empty_report(self) -> None:
        report = EvaluationReport()

        assert report.token_accuracy == 0.0
        assert report.tagging_accuracy == 0.0
        assert report.nbest_recall(5) == 0.0

    def test_format(self) -> None:
        report = TaggerEvaluator(make_crf()).evaluate(ListCorpus([CORRECT, WRONG]))
        text = report.format()

        assert "Cases: 2" in text
        assert "Token accuracy: 0.5000" in text
        assert "N-best rank histogram" in text
        assert text.count("\n") > 8
