"""Tests for training corpora."""

import tempfile
from pathlib import Path

import pytest

from chaincrf.exceptions import InvalidInputError
from chaincrf.learning.corpus import JsonlCorpus, ListCorpus, parse_tagging, read_jsonl
from chaincrf.tagging import Tagging


class TestListCorpus:
    """In-memory corpus tests."""

    def test_visits_in_order_every_time(self) -> None:
        taggings = [Tagging(tokens=("a",), tags=("X",)), Tagging(tokens=("b", "c"), tags=("Y", "Z"))]
        corpus = ListCorpus(taggings)

        first: list[Tagging[str]] = []
        second: list[Tagging[str]] = []
        corpus.visit_train(first.append)
        corpus.visit_train(second.append)

        assert first == taggings
        assert second == taggings
        assert len(corpus) == 2


class TestParseTagging:
    """JSONL record parsing tests."""

    def test_valid_record(self) -> None:
        tagging = parse_tagging('{"tokens": ["John", "ran"], "tags": ["PN", "IV"]}', 1)

        assert tagging == Tagging(tokens=("John", "ran"), tags=("PN", "IV"))

    def test_invalid_json(self) -> None:
        with pytest.raises(InvalidInputError, match="line 3"):
            parse_tagging("{not json", 3)

    def test_missing_fields(self) -> None:
        with pytest.raises(InvalidInputError, match="Line 2"):
            parse_tagging('{"tokens": ["a"]}', 2)

    def test_non_string_tags(self) -> None:
        with pytest.raises(InvalidInputError, match="strings"):
            parse_tagging('{"tokens": ["a"], "tags": [1]}', 1)

    def test_length_mismatch_names_line(self) -> None:
        with pytest.raises(InvalidInputError, match="Line 7"):
            parse_tagging('{"tokens": ["a", "b"], "tags": ["X"]}', 7)


class TestJsonl:
    """JSONL file corpus tests."""

    def test_read_skips_blank_lines(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "train.jsonl"
            path.write_text(
                '{"tokens": ["a"], "tags": ["X"]}\n\n{"tokens": [], "tags": []}\n',
                encoding="utf-8",
            )

            taggings = read_jsonl(path)

        assert len(taggings) == 2
        assert len(taggings[1]) == 0

    def test_corpus_rereads_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "train.jsonl"
            path.write_text('{"tokens": ["a"], "tags": ["X"]}\n', encoding="utf-8")
            corpus = JsonlCorpus(path)

            visited: list[Tagging[str]] = []
            corpus.visit_train(visited.append)
            corpus.visit_train(visited.append)

        assert len(visited) == 2

    def test_missing_file(self) -> None:
        with pytest.raises(FileNotFoundError):
            JsonlCorpus("/nonexistent/train.jsonl")
