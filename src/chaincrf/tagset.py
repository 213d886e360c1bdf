"""Tag inventories with structural zeros."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from chaincrf.exceptions import InvalidInputError


def _read_only_bools(values: object, name: str) -> np.ndarray:
    try:
        array = np.array(values, dtype=bool)
    except ValueError as exc:
        raise InvalidInputError(message=f"Malformed {name}: {exc}") from exc
    array.setflags(write=False)
    return array


@dataclass(frozen=True, slots=True, eq=False)
class TagSet:
    """Ordered tags with legal start, end and transition constraints.

    Attributes:
        tags: Unique tag labels; a tag's position is its index.
        legal_starts: ``legal_starts[k]`` is False if tag k may not begin a tagging.
        legal_ends: ``legal_ends[k]`` is False if tag k may not end a tagging.
        legal_transitions: ``legal_transitions[j, k]`` is False if tag k may not
            directly follow tag j.
    """

    tags: tuple[str, ...]
    legal_starts: np.ndarray
    legal_ends: np.ndarray
    legal_transitions: np.ndarray

    def __post_init__(self) -> None:
        tags = tuple(self.tags)
        num_tags = len(tags)
        if num_tags < 1:
            raise InvalidInputError(message="Require at least one tag. Found num_tags=0")
        if len(set(tags)) != num_tags:
            raise InvalidInputError(message=f"Tags must be unique. Found tags={list(tags)}")
        starts = _read_only_bools(self.legal_starts, "legal_starts")
        ends = _read_only_bools(self.legal_ends, "legal_ends")
        transitions = _read_only_bools(self.legal_transitions, "legal_transitions")
        if starts.shape != (num_tags,):
            raise InvalidInputError(
                message=f"Tags and legal starts must be same length. Found num_tags={num_tags} legal_starts.shape={starts.shape}"
            )
        if ends.shape != (num_tags,):
            raise InvalidInputError(
                message=f"Tags and legal ends must be same length. Found num_tags={num_tags} legal_ends.shape={ends.shape}"
            )
        if transitions.shape != (num_tags, num_tags):
            raise InvalidInputError(
                message=(
                    "Legal transitions must be num_tags x num_tags."
                    f" Found num_tags={num_tags} legal_transitions.shape={transitions.shape}"
                )
            )
        object.__setattr__(self, "tags", tags)
        object.__setattr__(self, "legal_starts", starts)
        object.__setattr__(self, "legal_ends", ends)
        object.__setattr__(self, "legal_transitions", transitions)

    @classmethod
    def unconstrained(cls, tags: Sequence[str]) -> TagSet:
        """Tag set in which every start, end and transition is legal."""
        num_tags = len(tags)
        return cls(
            tags=tuple(tags),
            legal_starts=np.ones(num_tags, dtype=bool),
            legal_ends=np.ones(num_tags, dtype=bool),
            legal_transitions=np.ones((num_tags, num_tags), dtype=bool),
        )

    @classmethod
    def from_tag_ids(cls, tags: Sequence[str], tag_id_sequences: Iterable[Sequence[int]]) -> TagSet:
        """Tag set allowing exactly the starts, ends and transitions observed.

        Args:
            tags: Tag labels indexed by id.
            tag_id_sequences: Observed taggings as sequences of tag ids.
        """
        num_tags = len(tags)
        starts = np.zeros(num_tags, dtype=bool)
        ends = np.zeros(num_tags, dtype=bool)
        transitions = np.zeros((num_tags, num_tags), dtype=bool)
        for tag_ids in tag_id_sequences:
            if not len(tag_ids):
                continue
            starts[tag_ids[0]] = True
            ends[tag_ids[-1]] = True
            for previous, current in zip(tag_ids, tag_ids[1:]):
                transitions[previous, current] = True
        return cls(tags=tuple(tags), legal_starts=starts, legal_ends=ends, legal_transitions=transitions)

    @property
    def num_tags(self) -> int:
        return len(self.tags)

    def tag(self, k: int) -> str:
        return self.tags[k]

    def index(self, tag: str) -> int:
        """Return the index of ``tag``.

        Raises:
            InvalidInputError: If the tag is unknown.
        """
        try:
            return self.tags.index(tag)
        except ValueError:
            raise InvalidInputError(message=f"Unknown tag: {tag!r}. Known tags: {list(self.tags)}") from None

    def is_legal(self, tag_ids: Sequence[int]) -> bool:
        """Whether a tag id sequence respects every structural zero."""
        if not len(tag_ids):
            return True
        if not self.legal_starts[tag_ids[0]] or not self.legal_ends[tag_ids[-1]]:
            return False
        return all(self.legal_transitions[j, k] for j, k in zip(tag_ids, tag_ids[1:]))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagSet):
            return NotImplemented
        return (
            self.tags == other.tags
            and np.array_equal(self.legal_starts, other.legal_starts)
            and np.array_equal(self.legal_ends, other.legal_ends)
            and np.array_equal(self.legal_transitions, other.legal_transitions)
        )

    __hash__ = None  # type: ignore[assignment]
