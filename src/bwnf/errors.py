"""Typed failures raised by the BWNF container core.

Every public operation either returns a value or raises exactly one of the
subclasses of :class:`NFTError` below.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass(frozen=True)
class Violation:
    field: str
    message: str
    expected: Any = None
    actual: Any = None

    def __str__(self) -> str:
        s = f"{self.field}: {self.message}"
        if self.expected is not None or self.actual is not None:
            s += f" (expected {self.expected!r}, got {self.actual!r})"
        return s


class NFTError(Exception):
    """Base class for every container failure."""


class StructuralViolation(NFTError):
    """A field is missing, out of its closed set, out of bounds, or a pairing is broken."""

    def __init__(self, violations: List[Violation]):
        if not violations:
            raise ValueError("StructuralViolation requires at least one violation")
        self.violations = list(violations)
        super().__init__(str(self.violations[0]))

    @property
    def field(self) -> str:
        return self.violations[0].field

    @property
    def expected(self) -> Any:
        return self.violations[0].expected

    @property
    def actual(self) -> Any:
        return self.violations[0].actual

    @classmethod
    def single(cls, field: str, message: str, expected: Any = None, actual: Any = None) -> "StructuralViolation":
        return cls([Violation(field, message, expected, actual)])


class DecodeError(NFTError):
    """Input bytes are not a parseable envelope of a supported version."""

    def __init__(self, message: str, *, field: Optional[str] = None, expected: Any = None, actual: Any = None):
        super().__init__(message)
        self.field = field
        self.expected = expected
        self.actual = actual


class HashMismatch(NFTError):
    """Recomputed content hash differs from the one recorded in the header."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"content hash mismatch: header has {expected}, recomputed {actual}")
        self.expected = expected
        self.actual = actual


class SignatureInvalid(NFTError):
    """A present signature does not verify against the recomputed hash."""

    def __init__(self, message: str, *, which: str = "creator"):
        super().__init__(message)
        self.which = which


class SigningKeyError(NFTError):
    """The supplied private key cannot produce a signature."""


__all__ = [
    "Violation",
    "NFTError",
    "StructuralViolation",
    "DecodeError",
    "HashMismatch",
    "SignatureInvalid",
    "SigningKeyError",
]
