"""Training corpora of taggings.

A corpus pushes each training tagging to a handler, and may be visited
any number of times. Two corpora are provided:
- ListCorpus: taggings held in memory
- JsonlCorpus: one {"tokens": [...], "tags": [...]} object per line
"""

import json
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, Protocol

from chaincrf.exceptions import InvalidInputError
from chaincrf.tagging import Tagging

logger = logging.getLogger(__name__)

TaggingHandler = Callable[[Tagging[Any]], None]


class TaggingCorpus(Protocol):
    """Source of training taggings."""

    def visit_train(self, handler: TaggingHandler) -> None:
        """Pass every training tagging to ``handler`` in a fixed order."""
        ...


class ListCorpus:
    """Corpus over taggings held in memory."""

    def __init__(self, taggings: Iterable[Tagging[Any]]) -> None:
        self._taggings = tuple(taggings)

    def __len__(self) -> int:
        return len(self._taggings)

    def visit_train(self, handler: TaggingHandler) -> None:
        for tagging in self._taggings:
            handler(tagging)


def parse_tagging(line: str, line_number: int) -> Tagging[str]:
    """Parse one JSONL record into a tagging.

    Raises:
        InvalidInputError: If the record is malformed, naming ``line_number``.
    """
    try:
        record = json.loads(line)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(message=f"Invalid JSON on line {line_number}: {exc}") from exc
    if not isinstance(record, dict) or "tokens" not in record or "tags" not in record:
        raise InvalidInputError(message=f"Line {line_number} must be an object with 'tokens' and 'tags'")
    tokens = record["tokens"]
    tags = record["tags"]
    if not isinstance(tokens, list) or not isinstance(tags, list):
        raise InvalidInputError(message=f"Line {line_number}: 'tokens' and 'tags' must be lists")
    if not all(isinstance(tag, str) for tag in tags):
        raise InvalidInputError(message=f"Line {line_number}: tags must be strings")
    try:
        return Tagging(tokens=tuple(tokens), tags=tuple(tags))
    except InvalidInputError as exc:
        raise InvalidInputError(message=f"Line {line_number}: {exc.message}") from exc


def read_jsonl(path: Path | str) -> list[Tagging[str]]:
    """Read every tagging from a JSONL file, skipping blank lines."""
    path = Path(path)
    taggings = []
    with path.open(encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            taggings.append(parse_tagging(line, line_number))
    logger.info("Read %d taggings from %s", len(taggings), path)
    return taggings


class JsonlCorpus:
    """Corpus read from a JSONL file on every visit."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Corpus file not found: {self.path}")

    def visit_train(self, handler: TaggingHandler) -> None:
        for tagging in read_jsonl(self.path):
            handler(tagging)
