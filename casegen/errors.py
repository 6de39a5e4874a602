"""Validation issues and generation errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class ValidationIssue:
    """A named defect in an in-progress population.

    ``code`` selects the repair applied by ``normalize_targets``; issues are
    consumed inside the regeneration loop and never returned to callers.
    """

    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class GenerationExhausted(RuntimeError):
    """Raised when every regeneration attempt still left validation issues."""

    def __init__(self, attempts: int, issues: Sequence[ValidationIssue]):
        self.attempts = attempts
        self.issues = list(issues)
        messages = " ".join(i.message for i in self.issues)
        super().__init__(
            f"Case generation failed validation after {attempts} attempts: {messages}"
        )

    @property
    def codes(self) -> list[str]:
        return sorted({i.code for i in self.issues})
