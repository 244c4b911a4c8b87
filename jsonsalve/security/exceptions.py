"""
Exception types raised by jsonsalve.

Stage failures are caught by the pipeline and turned into diagnostics; only
limit violations and terminal recovery errors ever reach the caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Position:
    """One-based line/column location inside a text."""

    line: int
    column: int

    @classmethod
    def from_offset(cls, text: str, offset: int) -> "Position":
        """Compute the line/column of a zero-based character offset."""
        offset = max(0, min(offset, len(text)))
        line = text.count("\n", 0, offset) + 1
        line_start = text.rfind("\n", 0, offset) + 1
        return cls(line=line, column=offset - line_start + 1)


class JsonSalveError(Exception):
    """Base class for all jsonsalve errors."""

    def __init__(
        self,
        message: str,
        position: Optional[Position] = None,
        suggestions: Optional[list[str]] = None,
    ):
        self.message = message
        self.position = position
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.position is not None:
            parts[0] += f" at line {self.position.line}, column {self.position.column}"
        if self.suggestions:
            parts.append("Suggestions:")
            parts.extend(f"  - {suggestion}" for suggestion in self.suggestions)
        return "\n".join(parts)


class SecurityError(JsonSalveError):
    """Raised when input exceeds a configured limit."""


class StageFailure(JsonSalveError):
    """An exception raised inside a pipeline stage."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {type(cause).__name__}: {cause}")

    @property
    def diagnostic(self) -> str:
        """The diagnostic line recorded for this failure."""
        return self.message


class ErrorKind(Enum):
    """Terminal failure kinds surfaced to callers."""

    PARSE = "parse"
    VALIDATION = "validation"


class JsonRecoveryError(JsonSalveError):
    """Raised when sanitized content still cannot be parsed or validated."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        content: str = "",
        diagnostics: Optional[list[str]] = None,
        position: Optional[Position] = None,
        issues: Optional[list[str]] = None,
    ):
        self.kind = kind
        self.content = content
        self.diagnostics = diagnostics or []
        self.issues = issues or []
        super().__init__(message, position=position)
