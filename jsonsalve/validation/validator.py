"""
Parse and validation boundary.

Sanitized text is handed to the standard ``json`` parser here. Parse errors
and schema issues are returned as values rather than raised, so callers can
decide whether to retry, log or surface them.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Union

from ..security.exceptions import ErrorKind, JsonRecoveryError, Position

if TYPE_CHECKING:
    from ..core.engine import SanitizationStep
    from ..core.interfaces import SchemaPredicate

logger = logging.getLogger(__name__)

NOT_A_CONTAINER = "not a JSON object or array"
PREDICATE_REJECTED = "Value rejected by validator"


@dataclass
class ParseFailure:
    """The sanitized text is still not valid JSON."""

    reason: str
    position: int
    line: int
    column: int
    context: str = ""
    content: str = ""
    steps: list["SanitizationStep"] = field(default_factory=list)

    @property
    def diagnostics(self) -> list[str]:
        return [d for step in self.steps for d in step.diagnostics]

    def __str__(self) -> str:
        message = f"{self.reason} at line {self.line}, column {self.column}"
        if self.context.strip():
            message += f": {self.context.strip()}"
        return message


@dataclass
class SchemaViolation:
    """The text parsed but the caller's predicate rejected the value."""

    issues: list[str]
    value: Any = None

    def __str__(self) -> str:
        return "; ".join(self.issues)


@dataclass
class RecoveryResult:
    """Terminal outcome of ``recover``: a value or a typed failure."""

    success: bool
    value: Any = None
    content: str = ""
    steps: list["SanitizationStep"] = field(default_factory=list)
    error: Optional[Union[ParseFailure, SchemaViolation]] = None

    @property
    def diagnostics(self) -> list[str]:
        return [d for step in self.steps for d in step.diagnostics]

    def raise_for_error(self) -> Any:
        """
        Return the parsed value or raise the failure as an exception.

        Raises:
            JsonRecoveryError: With ``kind`` PARSE or VALIDATION
        """
        if self.success:
            return self.value

        if isinstance(self.error, SchemaViolation):
            raise JsonRecoveryError(
                ErrorKind.VALIDATION,
                f"Validation failed: {self.error}",
                content=self.content,
                diagnostics=self.diagnostics,
                issues=list(self.error.issues),
            )

        assert isinstance(self.error, ParseFailure)
        raise JsonRecoveryError(
            ErrorKind.PARSE,
            f"Could not parse sanitized output: {self.error.reason}",
            content=self.content,
            diagnostics=self.diagnostics,
            position=Position(self.error.line, self.error.column),
        )


def _error_context(content: str, position: int, context_length: int) -> str:
    if context_length <= 0 or not content:
        return ""
    start = max(0, position - context_length // 2)
    end = min(len(content), position + context_length // 2)
    return content[start:end]


def parse_json(
    content: str, context_length: int = 50
) -> tuple[Any, Optional[ParseFailure]]:
    """
    Parse ``content`` with the standard library parser.

    Returns:
        ``(value, None)`` on success, ``(None, ParseFailure)`` otherwise
    """
    try:
        return json.loads(content), None
    except json.JSONDecodeError as e:
        return None, ParseFailure(
            reason=e.msg,
            position=e.pos,
            line=e.lineno,
            column=e.colno,
            context=_error_context(content, e.pos, context_length),
            content=content,
        )


def _issues_from(verdict: Optional[Union[bool, list[str]]]) -> list[str]:
    if verdict is None or verdict is True:
        return []
    if verdict is False:
        return [PREDICATE_REJECTED]
    return [str(issue) for issue in verdict]


def parse_and_validate(
    content: str,
    validate: Optional["SchemaPredicate"] = None,
    steps: Optional[list["SanitizationStep"]] = None,
    context_length: int = 50,
) -> RecoveryResult:
    """
    Parse sanitized text and run the optional shape check.

    Without a predicate only an object or array is accepted; a bare scalar is
    reported as a ParseFailure. With a predicate the predicate decides.

    Args:
        content: Sanitized text
        validate: Returns ``True``/``None``/``[]`` to accept, ``False`` or a
            list of issue strings to reject
        steps: Diagnostic trail to attach to the result
        context_length: Characters of surrounding text kept in a ParseFailure
    """
    steps = list(steps or [])
    value, failure = parse_json(content, context_length)

    if failure is None and validate is None and not isinstance(value, (dict, list)):
        failure = ParseFailure(
            reason=f"Parsed value is {NOT_A_CONTAINER}",
            position=0,
            line=1,
            column=1,
            context=_error_context(content, 0, context_length),
            content=content,
        )

    if failure is not None:
        failure.steps = steps
        logger.debug(f"Parse failed: {failure}")
        return RecoveryResult(False, content=content, steps=steps, error=failure)

    if validate is not None:
        issues = _issues_from(validate(value))
        if issues:
            logger.debug(f"Validation rejected parsed value: {issues}")
            return RecoveryResult(
                False,
                value=value,
                content=content,
                steps=steps,
                error=SchemaViolation(issues, value),
            )

    return RecoveryResult(True, value=value, content=content, steps=steps)
