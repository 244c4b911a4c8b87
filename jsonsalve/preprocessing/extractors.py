"""
Noise-removal steps.

This module contains the steps that strip everything around the JSON payload
of a model response: markdown fences, "thought" preambles, stray tokens glued
to property names, commentary before or after the payload, echoed duplicate
objects and truncation sentinels.
"""

from typing import Optional

from ..core.regex_engine import IGNORECASE
from ..core.scanner import StringMap
from ..utils.config import RepairConfig
from .base import PreprocessingStepBase, RepairOutcome, Rewrite, truncate_for_log

JSON_KEYWORDS = frozenset({"true", "false", "null", "undefined"})

# Words a model uses to introduce a payload, e.g. "json: {" or "Result {"
INTRODUCER_WORDS = frozenset({
    "here", "this", "that", "the", "a", "an", "command", "data", "result",
    "output", "json", "response", "object", "content", "payload", "body",
    "answer",
})

FENCE_PATTERN = r"```(?:json|javascript|js|typescript|ts)?[ \t]*"

OBJECT_START_CHARS = frozenset(' \t\r\n"}') | frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)
ARRAY_START_CHARS = frozenset(' \t\r\n]"{[-0123456789')


class WhitespaceTrimmer(PreprocessingStepBase):
    """Trims leading and trailing whitespace."""

    description = "Trimmed whitespace"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        return self.outcome(text, text.strip(), ["Trimmed surrounding whitespace"])


class MarkdownFenceStripper(PreprocessingStepBase):
    """Deletes markdown code fences, matched or not."""

    description = "Removed code fences"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        fences = self.finditer(FENCE_PATTERN, text, config, IGNORECASE)
        if not fences:
            return RepairOutcome.unchanged(text)
        result = self.sub(FENCE_PATTERN, "", text, config, IGNORECASE).strip()
        return self.outcome(text, result, [f"Removed {len(fences)} markdown code fence(s)"])


class PreambleRemover(PreprocessingStepBase):
    """Removes thought markers and short introducers in front of the payload."""

    description = "Removed preamble"

    CTRL_THOUGHT = r"<ctrl\d+>\s*thought\s*\n"
    THOUGHT_LINE = r"\Athought\s*:?\s*\n"
    INTRODUCER = r"(^|\n|\r)[ \t]*(?P<word>[a-zA-Z_]{2,20})[ \t]*:?\s*\{"
    LEADING_PROSE = r"\A(?:[^\n{}\[\]\"]*\n)+[ \t]*(?=[\[{])"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []
        result, found = self.rewrite(
            self.CTRL_THOUGHT, text, config,
            lambda m, _: ("", "Removed control-token thought marker"),
            IGNORECASE,
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.THOUGHT_LINE, result, config,
            lambda m, _: ("", "Removed leading thought line"),
            IGNORECASE,
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.INTRODUCER, result, config, self._strip_introducer, guard_group="word"
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.LEADING_PROSE, result, config,
            self._strip_leading_prose,
        )
        diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)

    @staticmethod
    def _strip_leading_prose(match, _string_map: StringMap) -> Optional[Rewrite]:
        prose = match.group(0).strip()
        if not any(char.isalpha() for char in prose):
            return None
        return "", f"Removed leading commentary: {truncate_for_log(prose)}"

    @staticmethod
    def _strip_introducer(match, string_map: StringMap) -> Optional[Rewrite]:
        word = match.group("word")
        # Inside a structure the word is an unquoted key, not an introducer
        if string_map.depth_at(match.start("word")) != 0:
            return None
        if word.lower() not in INTRODUCER_WORDS:
            return None
        return match.group(1) + "{", f"Removed introducer '{word}' before opening brace"


class StrayPropertyPrefixRemover(PreprocessingStepBase):
    """Removes stray tokens glued directly onto a quoted property name."""

    description = "Removed stray text before property names"

    STRAY_PREFIX = (
        r'(?P<delim>[{}\],]|\n|^)(?P<ws>\s*)(?P<stray>[\w\u0080-\uFFFF$]+)'
        r'"(?P<prop>[a-zA-Z_$][a-zA-Z0-9_$]*)"\s*:'
    )
    MISSING_OPENER = r'(?P<head>\}\s*,\s*\n\s*)_?name"\s*:'

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []
        result, found = self.rewrite(
            self.STRAY_PREFIX, text, config, self._strip_prefix, guard_group="stray"
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.MISSING_OPENER, result, config,
            lambda m, smap: (
                (m.group("head") + '{"name":', "Restored missing opening brace before name property")
                if smap.is_in_array_context(m.end("head"), config.array_context_lookback)
                else None
            ),
        )
        diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)

    @staticmethod
    def _strip_prefix(match, string_map: StringMap) -> Optional[Rewrite]:
        stray = match.group("stray")
        if stray.lower() in JSON_KEYWORDS:
            return None
        # A property directly inside an array lost its "{"; structural repair handles it
        if string_map.is_in_array_context(match.start("stray")):
            return None
        prop = match.group("prop")
        replacement = f'{match.group("delim")}{match.group("ws")}"{prop}":'
        return replacement, f"Removed stray text '{stray}' before property \"{prop}\""


class LargestSpanExtractor(PreprocessingStepBase):
    """Isolates the main JSON structure from surrounding text."""

    description = "Extracted JSON span"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        span = self.extract_span(text)
        if span is None:
            return RepairOutcome.unchanged(text)
        dropped = len(text) - len(span)
        return self.outcome(
            text, span, [f"Extracted JSON span, dropped {dropped} surrounding character(s)"]
        )

    @staticmethod
    def find_candidates(text: str, string_map: Optional[StringMap] = None) -> list[int]:
        """Offsets of ``{``/``[`` outside strings that look like the start of JSON."""
        string_map = string_map or StringMap(text)
        candidates = []
        for i, char in enumerate(text):
            if char not in "{[" or string_map.in_string(i):
                continue
            if i + 1 >= len(text):
                continue
            next_char = text[i + 1]
            if char == "{":
                # "else{" and similar code snippets
                if i > 0 and (text[i - 1].isalpha() or text[i - 1] in "_$"):
                    continue
                if next_char in OBJECT_START_CHARS:
                    candidates.append(i)
            elif next_char in ARRAY_START_CHARS:
                candidates.append(i)
        return candidates

    @staticmethod
    def find_span_end(text: str, start: int, string_map: StringMap) -> int:
        """
        Walk forward from ``start`` counting only its own delimiter type.

        Returns:
            Index of the closer that brings depth back to zero, or -1
        """
        open_char = text[start]
        close_char = "}" if open_char == "{" else "]"
        depth = 0
        for i in range(start, len(text)):
            if string_map.in_string(i):
                continue
            char = text[i]
            if char == open_char:
                depth += 1
            elif char == close_char:
                depth -= 1
                if depth == 0:
                    return i
        return -1

    def extract_span(self, text: str) -> Optional[str]:
        """
        Return the JSON span to keep, or None to keep ``text`` as is.

        The candidate at the start of the text wins when it balances. When it
        does not balance the input is left for truncation completion; only
        when no candidate sits at the start is the first balancing span taken.
        Text trailing the first candidate's span is always dropped, however
        short it is.
        """
        trimmed = text.strip()
        trimmed_start = text.find(trimmed) if trimmed else 0
        string_map = StringMap(text)
        candidates = self.find_candidates(text, string_map)
        if not candidates:
            return None

        preferred = None
        for position in candidates:
            if position == trimmed_start or (position < 10 and trimmed_start == 0):
                preferred = position
                break

        ordered = candidates if preferred is None else (
            [preferred] + [c for c in candidates if c != preferred]
        )

        for start in ordered:
            end = self.find_span_end(text, start, string_map)
            if end == -1:
                if start == preferred or start < 10:
                    return None
                continue

            span = text[start:end + 1].strip()
            if span == trimmed:
                return None
            if start == ordered[0] and text[end + 1:].strip():
                return span
            if len(span) > len(trimmed) * 0.95 and start < 10:
                return None
            return span

        return None


class DuplicateObjectCollapser(PreprocessingStepBase):
    """Collapses a whole-object echo ``{X} {X}`` to a single copy."""

    description = "Collapsed duplicate JSON object"

    DUPLICATE = r"\s*(\{[\s\S]+\})\s*\1\s*"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        if not text.lstrip().startswith("{"):
            return RepairOutcome.unchanged(text)
        match = self.fullmatch(self.DUPLICATE, text, config)
        if match is None:
            return RepairOutcome.unchanged(text)
        return self.outcome(text, match.group(1), ["Collapsed duplicated JSON object"])


class TruncationSentinelRemover(PreprocessingStepBase):
    """Removes markers a model inserts where it elided content."""

    description = "Removed truncation markers"

    MARKER_LINE = (
        r"(?P<comma>,\s*)?\n[ \t]*(?P<marker>\.\.\.\s*\(truncated\)|\.\.\.\s*truncated"
        r"|\[\.\.\.\]|\.\.\.|\(truncated\)|truncated)[ \t]*\n"
    )
    INCOMPLETE_STRING = (
        r'"(?P<content>[^"\n]*?)(?:\.\.\.|\[\.\.\.\]|\(truncated\))[ \t]*\n'
        r"(?P<ws>\s*)(?P<closer>[}\]])"
    )
    MARKER_BEFORE_CLOSER = (
        r"(?P<comma>,)?(?P<pre>\s*)(?P<marker>\[\.\.\.\]|\.\.\.|\(truncated\))"
        r"(?P<ws>\s*)(?P<closer>[}\]])"
    )
    UPPERCASE_MARKER = (
        r"(?P<before>[}\],]|\n|^)[ \t]*"
        r"(?P<marker>_TRUNCATED_|_INPUT_TOKEN_COUNT_|_DOC_GENERATION_TRUNCATED_)"
        r"[ \t]*(?P<after>[}\],]|\n|$)"
    )

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []

        result, found = self.rewrite(
            self.MARKER_LINE, text, config, self._marker_line, guard_group="marker"
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.INCOMPLETE_STRING, result, config, self._incomplete_string
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.MARKER_BEFORE_CLOSER, result, config, self._marker_before_closer,
            guard_group="marker",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.UPPERCASE_MARKER, result, config, self._uppercase_marker,
            flags=IGNORECASE, guard_group="marker",
        )
        diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)

    @staticmethod
    def _marker_line(match, _string_map: StringMap) -> Rewrite:
        diagnostic = f'Removed truncation marker: "{match.group("marker").strip()}"'
        if match.group("comma") is not None:
            return ",\n", diagnostic
        return "\n", diagnostic

    @staticmethod
    def _incomplete_string(match, _string_map: StringMap) -> Rewrite:
        closer = match.group("closer")
        kind = "array" if closer == "]" else "object"
        return (
            f'"{match.group("content")}"\n{match.group("ws")}{closer}',
            f"Fixed incomplete string before {kind} closure",
        )

    @staticmethod
    def _marker_before_closer(match, _string_map: StringMap) -> Rewrite:
        closer = match.group("closer")
        kind = "array" if closer == "]" else "object"
        return (
            f"{match.group('ws')}{closer}",
            f"Removed truncation marker before {kind} closure",
        )

    @staticmethod
    def _uppercase_marker(match, _string_map: StringMap) -> Rewrite:
        before = match.group("before")
        after = match.group("after")
        diagnostic = f"Removed truncation marker: {match.group('marker')}"
        if "," in before:
            return f"{before}\n{after}", diagnostic
        return f"{before}{after}", diagnostic
