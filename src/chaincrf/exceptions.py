"""Exceptions for chaincrf sequence tagging."""

from dataclasses import dataclass


class CRFError(Exception):
    """Base exception for all chaincrf errors."""

    pass


@dataclass
class InvalidInputError(CRFError, ValueError):
    """Arguments are not valid for construction, decoding or training.

    Raised when:
    - Tag, coefficient or legality arrays disagree in length
    - Weight vectors have inconsistent dimensionality
    - Training configuration is malformed
    """

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class NoLegalPathError(CRFError):
    """Every tagging of the input violates a structural zero."""

    message: str
    num_tokens: int

    def __str__(self) -> str:
        return f"{self.message} (num_tokens: {self.num_tokens})"


@dataclass
class ModelLoadError(CRFError):
    """A persisted model could not be read."""

    message: str

    def __str__(self) -> str:
        return self.message
