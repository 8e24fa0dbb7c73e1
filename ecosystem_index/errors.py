"""
Error types raised by the index generator.
"""

from __future__ import annotations

from typing import Optional


class GeneratorError(Exception):
    """Base class for failures that abort an index run."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class StoreError(GeneratorError):
    """The store could not be created, cleared or written to."""

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.statement = statement

    def __str__(self) -> str:
        text = super().__str__()
        if self.statement:
            return f"{text}\nStatement: {' '.join(self.statement.split())}"
        return text


class MissingExtractError(GeneratorError):
    """A required raw extract is absent or lacks required columns."""


class StageError(GeneratorError):
    """An unexpected failure inside a pipeline stage."""
