"""Token sequences paired with tag sequences."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from chaincrf.exceptions import InvalidInputError

E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Tagging(Generic[E]):
    """A tag assigned to every token of an input.

    Attributes:
        tokens: Input tokens.
        tags: One tag per token.
    """

    tokens: tuple[E, ...]
    tags: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "tokens", tuple(self.tokens))
        object.__setattr__(self, "tags", tuple(self.tags))
        if len(self.tokens) != len(self.tags):
            raise InvalidInputError(
                message=(
                    "Tokens and tags must be the same length."
                    f" Found len(tokens)={len(self.tokens)} len(tags)={len(self.tags)}"
                )
            )

    def __len__(self) -> int:
        return len(self.tokens)

    def token(self, n: int) -> E:
        return self.tokens[n]

    def tag(self, n: int) -> str:
        return self.tags[n]

    def __str__(self) -> str:
        return " ".join(f"{token}/{tag}" for token, tag in zip(self.tokens, self.tags))


@dataclass(frozen=True, slots=True)
class ScoredTagging(Tagging[E]):
    """A tagging with a score.

    Attributes:
        score: Unnormalized log score, or conditional log probability
            when produced by a normalizing decoder.
    """

    score: float

    def __str__(self) -> str:
        return f"{self.score:.4f} {Tagging.__str__(self)}"

