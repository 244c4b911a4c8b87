"""
Base classes for repair steps.

This module contains the result type every repair step returns and the base
class steps derive from so they can be composed into a stage pipeline.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from ..core.regex_engine import Match, Replacement, get_engine
from ..core.scanner import StringMap
from ..utils.config import RepairConfig

# (replacement text, diagnostic) produced for one match
Rewrite = tuple[str, str]


@dataclass(frozen=True)
class RepairOutcome:
    """Result of one repair step or stage."""

    content: str
    changed: bool
    description: Optional[str] = None
    diagnostics: list[str] = field(default_factory=list)

    @classmethod
    def from_texts(
        cls,
        before: str,
        after: str,
        description: Optional[str] = None,
        diagnostics: Optional[list[str]] = None,
    ) -> "RepairOutcome":
        """Build an outcome whose ``changed`` flag comes from comparing the texts."""
        changed = after != before
        if not changed:
            return cls(content=after, changed=False)
        return cls(
            content=after,
            changed=True,
            description=description,
            diagnostics=list(diagnostics or []),
        )

    @classmethod
    def unchanged(cls, text: str) -> "RepairOutcome":
        return cls(content=text, changed=False)


class PreprocessingStepBase:
    """Base class for repair steps with common functionality."""

    description = "Repaired text"

    def should_apply(self, _config: RepairConfig) -> bool:
        """Default implementation - always apply. Override in subclasses."""
        return True

    def process(self, text: str, _config: RepairConfig) -> RepairOutcome:
        """Process the text. Must be implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement process()")

    def outcome(
        self, before: str, after: str, diagnostics: Optional[list[str]] = None
    ) -> RepairOutcome:
        """Wrap a before/after pair in an outcome described by this step."""
        return RepairOutcome.from_texts(before, after, self.description, diagnostics)

    def rewrite(
        self,
        pattern: str,
        text: str,
        config: RepairConfig,
        build: Callable[[Match, StringMap], Optional[Rewrite]],
        flags: int = 0,
        guard_group: Union[int, str] = 0,
    ) -> tuple[str, list[str]]:
        """
        Replace every match of ``pattern`` that is not inside a string literal.

        The string map is built once for the whole pass, and replacements are
        applied right-to-left afterwards.

        Args:
            pattern: Regex pattern string
            text: Text to rewrite
            config: Active repair configuration
            build: Called with each match outside strings; returns
                ``(replacement, diagnostic)`` or None to leave the match alone
            flags: Regex flags
            guard_group: Group whose start offset must lie outside strings

        Returns:
            The rewritten text and the diagnostics of applied replacements
        """
        matches = self.finditer(pattern, text, config, flags)
        if not matches:
            return text, []

        string_map = StringMap(text)
        edits: list[tuple[int, int, str]] = []
        diagnostics: list[str] = []
        for match in matches:
            if string_map.in_string(match.start(guard_group)):
                continue
            result = build(match, string_map)
            if result is None:
                continue
            replacement, diagnostic = result
            if replacement == match.group(0):
                continue
            edits.append((match.start(), match.end(), replacement))
            diagnostics.append(diagnostic)
        return apply_replacements(text, edits), diagnostics

    def fixed_point(
        self,
        text: str,
        config: RepairConfig,
        apply: Callable[[str], tuple[str, list[str]]],
    ) -> tuple[str, list[str]]:
        """Re-run ``apply`` until the text stops changing or the iteration cap is hit."""
        diagnostics: list[str] = []
        for _ in range(config.max_fixed_point_iterations):
            updated, found = apply(text)
            if updated == text:
                break
            text = updated
            diagnostics.extend(found)
        return text, diagnostics

    @staticmethod
    def sub(
        pattern: str,
        repl: Replacement,
        text: str,
        config: RepairConfig,
        flags: int = 0,
        count: int = 0,
    ) -> str:
        """Timeout-protected substitution."""
        return get_engine().sub(
            pattern, repl, text, count=count, flags=flags, timeout=config.regex_timeout
        )

    @staticmethod
    def search(
        pattern: str, text: str, config: RepairConfig, flags: int = 0, pos: int = 0
    ) -> Optional[Match]:
        """Timeout-protected search."""
        return get_engine().search(
            pattern, text, flags=flags, pos=pos, timeout=config.regex_timeout
        )

    @staticmethod
    def finditer(
        pattern: str, text: str, config: RepairConfig, flags: int = 0
    ) -> list[Match]:
        """Timeout-protected list of all matches."""
        return get_engine().finditer(
            pattern, text, flags=flags, timeout=config.regex_timeout
        )

    @staticmethod
    def fullmatch(
        pattern: str, text: str, config: RepairConfig, flags: int = 0
    ) -> Optional[Match]:
        """Timeout-protected whole-string match."""
        return get_engine().fullmatch(
            pattern, text, flags=flags, timeout=config.regex_timeout
        )


def truncate_for_log(text: str, limit: int = 30) -> str:
    """Shorten a snippet for use in a diagnostic."""
    text = text.replace("\n", "\\n")
    return text if len(text) <= limit else text[:limit] + "..."


def apply_replacements(text: str, replacements: list[tuple[int, int, str]]) -> str:
    """
    Apply ``(start, end, replacement)`` edits to ``text``.

    Edits are applied right-to-left so earlier offsets stay valid; they must
    not overlap.
    """
    result = text
    for start, end, replacement in sorted(replacements, key=lambda r: r[0], reverse=True):
        result = result[:start] + replacement + result[end:]
    return result
