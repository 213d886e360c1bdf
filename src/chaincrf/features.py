"""Feature extraction for chain CRF tagging.

A feature extractor turns a token sequence (plus the list of tags it may
refer to by index) into named, weighted features:
- Node features depend on the input and a position
- Edge features depend on the input, a position and the previous tag

The default TokenFeatureExtractor covers common token-level cues:
- Normalized token identity and its neighbors
- Token category (capitalization, digits, punctuation) and its neighbors
- Prefixes and suffixes
- Previous tag, alone and crossed with the previous token's category
"""

from __future__ import annotations

import re
import unicodedata
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Generic, Protocol, TypeVar

E = TypeVar("E")
E_contra = TypeVar("E_contra", contravariant=True)

_DIGITS = re.compile(r"\d+")
_DIGIT = re.compile(r"\d")

DEFAULT_AFFIX_LENGTH = 3


class ChainCrfFeatures(ABC, Generic[E]):
    """Node and edge features for one input sequence.

    Implementations must be deterministic for a given (tokens, tags) pair.
    """

    def __init__(self, tokens: Sequence[E], tags: Sequence[str]) -> None:
        self._tokens = tokens
        self._tags = tags

    @property
    def num_tokens(self) -> int:
        return len(self._tokens)

    @property
    def num_tags(self) -> int:
        return len(self._tags)

    def token(self, n: int) -> E:
        return self._tokens[n]

    def tag(self, k: int) -> str:
        return self._tags[k]

    @abstractmethod
    def node_features(self, n: int) -> Mapping[str, float]:
        """Features for the token at position ``n``."""

    @abstractmethod
    def edge_features(self, n: int, previous_tag_index: int) -> Mapping[str, float]:
        """Features for position ``n`` (n >= 1) given the tag at ``n - 1``.

        ``previous_tag_index`` indexes the tag list passed to the extractor.
        """


class ChainCrfFeatureExtractor(Protocol[E_contra]):
    """Builds ChainCrfFeatures for an input and a tag list."""

    def extract(self, tokens: Sequence[E_contra], tags: Sequence[str]) -> ChainCrfFeatures[Any]:
        ...


def token_category(token: str) -> str:
    """Coarse orthographic class of a token.

    Returns one of: NULL, DIGITS, ALPHANUM, CAPITALIZED, UPPER, LOWER,
    PUNCT, MIXED, OTHER.
    """
    if not token:
        return "NULL"
    if token.isdigit():
        return "DIGITS"
    if token.isalpha():
        if token.isupper():
            return "UPPER" if len(token) > 1 else "CAPITALIZED"
        if token.islower():
            return "LOWER"
        if token[0].isupper() and token[1:].islower():
            return "CAPITALIZED"
        return "MIXED"
    if token.isalnum():
        return "ALPHANUM"
    if all(unicodedata.category(char).startswith("P") for char in token):
        return "PUNCT"
    return "OTHER"


def normalize_token(token: str) -> str:
    """Replace digit runs with a shape, e.g. ``12/3/08`` becomes ``*DD*/*D*/*DD*``."""
    return _DIGIT.sub("D", _DIGITS.sub(lambda match: f"*{match.group(0)}*", token))


def _affixes(token: str, max_length: int) -> tuple[list[str], list[str]]:
    limit = min(max_length, len(token))
    prefixes = [token[:i] for i in range(1, limit + 1)]
    suffixes = [token[-i:] for i in range(1, limit + 1)]
    return prefixes, suffixes


class TokenFeatures(ChainCrfFeatures[str]):
    """Features produced by TokenFeatureExtractor."""

    def __init__(self, tokens: Sequence[str], tags: Sequence[str], affix_length: int) -> None:
        super().__init__(tokens, tags)
        self._affix_length = affix_length
        self._normed = [normalize_token(token) for token in tokens]
        self._categories = [token_category(token) for token in tokens]

    def node_features(self, n: int) -> Mapping[str, float]:
        feats: dict[str, float] = {}
        bos = n == 0
        eos = n + 1 >= self.num_tokens

        # Sequence boundary markers
        if bos:
            feats["BOS"] = 1.0
        if eos:
            feats["EOS"] = 1.0
        if not bos and not eos:
            feats["!BOS!EOS"] = 1.0

        token = self._normed[n]
        feats["TOK_" + token] = 1.0
        feats["TOK_CAT_" + self._categories[n]] = 1.0
        if not bos:
            feats["TOK_PREV_" + self._normed[n - 1]] = 1.0
            feats["TOK_CAT_PREV_" + self._categories[n - 1]] = 1.0
        if not eos:
            feats["TOK_NEXT_" + self._normed[n + 1]] = 1.0
            feats["TOK_CAT_NEXT_" + self._categories[n + 1]] = 1.0

        prefixes, suffixes = _affixes(token, self._affix_length)
        for prefix in prefixes:
            feats["PREF_" + prefix] = 1.0
        for suffix in suffixes:
            feats["SUFF_" + suffix] = 1.0
        return feats

    def edge_features(self, n: int, previous_tag_index: int) -> Mapping[str, float]:
        previous_tag = self.tag(previous_tag_index)
        return {
            "PREV_TAG_" + previous_tag: 1.0,
            "PREV_TAG_TOKEN_CAT_" + previous_tag + "_" + self._categories[n - 1]: 1.0,
        }


class TokenFeatureExtractor:
    """Default picklable feature extractor for string tokens."""

    def __init__(self, affix_length: int = DEFAULT_AFFIX_LENGTH) -> None:
        """Initialize the extractor.

        Args:
            affix_length: Longest prefix and suffix to emit as features.
        """
        self.affix_length = affix_length

    def extract(self, tokens: Sequence[str], tags: Sequence[str]) -> TokenFeatures:
        return TokenFeatures(tokens, tags, self.affix_length)

    def __repr__(self) -> str:
        return f"TokenFeatureExtractor(affix_length={self.affix_length})"
