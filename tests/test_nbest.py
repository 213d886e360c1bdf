"""Tests for lazy n-best decoding."""

import numpy as np
import pytest

from chaincrf.exceptions import InvalidInputError
from chaincrf.inference.nbest import NO_POINTER, ForwardPointerArena, NBestIterator, nbest_taggings
from chaincrf.inference.potentials import Potentials
from chaincrf.tagset import TagSet
from crf_fixtures import TAGS, brute_force, log_z, make_crf, tags_for, tokens_for


def _iterator(token_ids: list[int], max_results: int, normalize: bool = False, tag_set: TagSet | None = None):
    crf = make_crf(tag_set)
    tokens = tokens_for(token_ids)
    potentials = crf.potentials(tokens)
    assert potentials is not None
    return NBestIterator(tokens, crf.tags, potentials, max_results, normalize)


class TestForwardPointerArena:
    """Suffix chain storage tests."""

    def test_chains_share_suffixes(self) -> None:
        arena = ForwardPointerArena()
        tail = arena.add(2, NO_POINTER, 1.5)
        left = arena.add(0, tail, 3.0)
        right = arena.add(1, tail, 2.0)

        assert arena.tags(left) == [0, 2]
        assert arena.tags(right) == [1, 2]
        assert arena.score(right) == 2.0
        assert arena.score(NO_POINTER) == 0.0
        assert arena.tags(NO_POINTER) == []
        assert len(arena) == 3


class TestNBestIterator:
    """Best-first search tests."""

    def test_enumerates_all_taggings_in_order(self) -> None:
        """With enough results every tagging appears once, by score."""
        token_ids = [0, 2, 1]
        expected = sorted(brute_force(token_ids).items(), key=lambda item: -item[1])

        results = list(_iterator(token_ids, 100))

        assert len(results) == 27
        assert [r.score for r in results] == pytest.approx([s for _, s in expected])
        assert len({r.tags for r in results}) == 27

    def test_first_result_is_viterbi(self) -> None:
        crf = make_crf()
        tokens = tokens_for([3, 0, 1, 2])

        first = next(iter(crf.tag_nbest(tokens, 5)))

        assert first.tags == crf.tag(tokens).tags

    def test_max_results(self) -> None:
        results = list(_iterator([1, 1], 4))

        assert len(results) == 4

    def test_normalized_scores(self) -> None:
        """Normalized scores are conditional log probabilities."""
        token_ids = [2, 3]
        scores = brute_force(token_ids)
        total = log_z(scores)

        for result in _iterator(token_ids, 9, normalize=True):
            tag_ids = tuple(TAGS.index(tag) for tag in result.tags)
            assert result.score == pytest.approx(scores[tag_ids] - total)

    def test_structural_zeros_excluded(self) -> None:
        """Illegal taggings are never produced."""
        tag_set = TagSet(
            tags=TAGS,
            legal_starts=[True, True, False],
            legal_ends=[False, True, True],
            legal_transitions=np.array([[True, True, True], [False, True, True], [True, True, False]]),
        )
        token_ids = [0, 1, 3]
        legal = brute_force(token_ids, tag_set)

        results = list(_iterator(token_ids, 100, tag_set=tag_set))

        assert {r.tags for r in results} == {tags_for(t) for t in legal}
        assert [r.score for r in results] == pytest.approx(sorted(legal.values(), reverse=True))

    def test_rejects_non_positive_max_results(self) -> None:
        with pytest.raises(InvalidInputError):
            _iterator([0], 0)

    def test_exhausted_iterator_stays_exhausted(self) -> None:
        iterator = _iterator([0], 10)

        assert len(list(iterator)) == 3
        with pytest.raises(StopIteration):
            next(iterator)


class TestNBestTaggings:
    """Entry point tests."""

    def test_empty_input(self) -> None:
        """Empty input yields one empty tagging scored zero."""
        results = list(nbest_taggings((), TAGS, None, 3))

        assert len(results) == 1
        assert results[0].tags == ()
        assert results[0].score == 0.0

    def test_empty_input_still_checks_max_results(self) -> None:
        with pytest.raises(InvalidInputError):
            nbest_taggings((), TAGS, None, 0)

    def test_single_tag_potentials(self) -> None:
        potentials = Potentials(initial=np.array([0.5]), transitions=np.full((2, 1, 1), 0.25))

        results = list(nbest_taggings(["a", "b", "c"], ["T"], potentials, 10))

        assert [r.tags for r in results] == [("T", "T", "T")]
        assert results[0].score == pytest.approx(1.0)
