"""
Structure repair steps.

This module contains the steps that restore a balanced, comma-correct JSON
skeleton: trailing commas, objects that lost their opening brace inside
arrays, mismatched closers, missing commas between lines and truncated
output.
"""

from dataclasses import dataclass
from typing import Optional

from ..core.scanner import (
    MATCHING_CLOSER,
    ScanState,
    StringMap,
    advance_state,
    iter_scan,
    next_significant_char,
    previous_significant_char,
)
from ..security.limits import LimitValidator
from ..utils.config import RepairConfig
from .base import PreprocessingStepBase, RepairOutcome, Rewrite, apply_replacements

JSON_KEYWORDS = frozenset({"true", "false", "null", "undefined"})


class TrailingCommaRemover(PreprocessingStepBase):
    """Removes commas directly before a closing brace or bracket."""

    description = "Removed trailing commas"

    TRAILING_COMMA = r",(?P<ws>\s*)(?P<closer>[}\]])"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        result, diagnostics = self.fixed_point(
            text, config,
            lambda current: self.rewrite(
                self.TRAILING_COMMA, current, config,
                lambda m, _: (
                    m.group("ws") + m.group("closer"),
                    f"Removed trailing comma before {m.group('closer')}",
                ),
            ),
        )
        return self.outcome(text, result, diagnostics)


class ArrayObjectBraceFixer(PreprocessingStepBase):
    """
    Repairs array elements whose object lost its opening brace.

    Runs before the delimiter pass: the damaged object still carries its
    closing brace, which the delimiter pass would otherwise rewrite.
    """

    description = "Fixed array object braces"

    # },\n  "next": 1   where the array should have been closed
    DANGLING_PROPERTY = r'(?P<head>\})(?P<comma>\s*,)(?P<ws>\s*)(?P<key>"[^"\n]+"\s*:)'
    # },\n  c"withdrawal",
    STRAY_BEFORE_VALUE = (
        r'(?P<head>\}\s*,)(?P<ws>\s*)(?P<stray>[a-zA-Z]{1,3})"(?P<value>[^"\n]+)"(?P<tail>\s*,)'
    )
    # },\n  ab"purpose":
    STRAY_BEFORE_PROPERTY = (
        r'(?P<head>\}\s*,)(?P<ws>\s*)(?P<stray>[a-zA-Z]{1,3})"(?P<prop>[^"\n]+)"(?P<tail>\s*:)'
    )
    # },\n  calculateInterest",
    BARE_WORD = r'(?P<head>\}\s*,)\s*\n(?P<indent>[ \t]*)(?P<word>[a-zA-Z][a-zA-Z0-9_]*)"\s*,'

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []
        lookback = config.array_context_lookback

        result, found = self.rewrite(
            self.DANGLING_PROPERTY, text, config,
            lambda m, smap: self._close_array(m, smap, lookback),
            guard_group="key",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.STRAY_BEFORE_VALUE, result, config,
            lambda m, smap: self._wrap_value(m, smap, lookback),
            guard_group="stray",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.STRAY_BEFORE_PROPERTY, result, config,
            lambda m, smap: self._open_object(m, smap, lookback),
            guard_group="stray",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.BARE_WORD, result, config,
            lambda m, smap: self._wrap_word(m, smap, lookback),
            guard_group="word",
        )
        diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)

    @staticmethod
    def _indent(whitespace: str) -> str:
        return whitespace.rsplit("\n", 1)[-1] or "    "

    @staticmethod
    def _close_array(match, string_map: StringMap, lookback: int) -> Optional[Rewrite]:
        key_start = match.start("key")
        opener = string_map.find_unmatched_opener(key_start, lookback)
        if opener == -1 or string_map.text[opener] != "[":
            return None
        # The array must be a property value for the key to belong to its parent
        parent = string_map.find_unmatched_opener(opener, lookback)
        if parent == -1 or string_map.text[parent] != "{":
            return None
        closer = _first_closer_at_same_depth(string_map, key_start)
        if closer == -1 or string_map.text[closer] != "}":
            return None
        # "}," or "}]" after the closer means it closed an element that lost its "{"
        _, after = next_significant_char(string_map.text, closer + 1)
        if after in (",", "]"):
            return None
        replacement = (
            f"{match.group('head')}]{match.group('comma')}{match.group('ws')}{match.group('key')}"
        )
        return replacement, "Closed array before dangling property"

    @staticmethod
    def _wrap_value(match, string_map: StringMap, lookback: int) -> Optional[Rewrite]:
        stray = match.group("stray")
        if stray.lower() in JSON_KEYWORDS:
            return None
        if not string_map.is_in_array_context(match.start("stray"), lookback):
            return None
        indent = ArrayObjectBraceFixer._indent(match.group("ws"))
        value = match.group("value")
        replacement = (
            f'{match.group("head")}\n{indent}{{\n{indent}  "name": "{value}"{match.group("tail")}'
        )
        return replacement, f'Removed stray "{stray}" and restored {{"name": before "{value}"'

    @staticmethod
    def _open_object(match, string_map: StringMap, lookback: int) -> Optional[Rewrite]:
        stray = match.group("stray")
        if stray.lower() in JSON_KEYWORDS:
            return None
        if not string_map.is_in_array_context(match.start("stray"), lookback):
            return None
        indent = ArrayObjectBraceFixer._indent(match.group("ws"))
        prop = match.group("prop")
        replacement = f'{match.group("head")}\n{indent}{{\n{indent}  "{prop}"{match.group("tail")}'
        return replacement, f'Removed stray "{stray}" and restored {{ before "{prop}"'

    @staticmethod
    def _wrap_word(match, string_map: StringMap, lookback: int) -> Optional[Rewrite]:
        word = match.group("word")
        if word.lower() in JSON_KEYWORDS:
            return None
        if not string_map.is_in_array_context(match.start("word"), lookback):
            return None
        replacement = f'{match.group("head")}\n{match.group("indent")}{{"name": "{word}",'
        return replacement, f'Restored {{"name": around truncated element "{word}"'


def _first_closer_at_same_depth(string_map: StringMap, pos: int) -> int:
    """Index of the first closer after ``pos`` that leaves the frame containing ``pos``."""
    depth = 0
    text = string_map.text
    for i in range(pos, len(text)):
        if string_map.in_string(i):
            continue
        char = text[i]
        if char in "{[":
            depth += 1
        elif char in "}]":
            if depth == 0:
                return i
            depth -= 1
    return -1


@dataclass(frozen=True)
class DelimiterCorrection:
    """A closer that must be replaced or removed, recorded during the forward pass."""

    index: int
    wrong: str
    replacement: str


class DelimiterMismatchFixer(PreprocessingStepBase):
    """
    Replaces closers that do not match the innermost open structure.

    Closers with nothing open are removed.
    """

    description = "Fixed mismatched delimiters"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        corrections = self.find_corrections(text)
        if not corrections:
            return RepairOutcome.unchanged(text)

        result = apply_replacements(
            text, [(c.index, c.index + 1, c.replacement) for c in corrections]
        )
        diagnostics = [
            f"Replaced '{c.wrong}' with '{c.replacement}' at offset {c.index}"
            if c.replacement
            else f"Removed unmatched '{c.wrong}' at offset {c.index}"
            for c in corrections
        ]
        diagnostics.insert(0, f"Fixed {len(corrections)} mismatched delimiter(s)")
        return self.outcome(text, result, diagnostics)

    @staticmethod
    def find_corrections(text: str) -> list[DelimiterCorrection]:
        """Run the delimiter stack over ``text`` and record every mismatch."""
        stack: list[tuple[str, int]] = []
        corrections: list[DelimiterCorrection] = []

        for point in iter_scan(text):
            if point.in_string:
                continue
            char = point.char
            if char in "{[":
                stack.append((char, point.index))
                continue
            if char not in "}]":
                continue
            if not stack:
                corrections.append(DelimiterCorrection(point.index, char, ""))
                continue

            opener, _ = stack.pop()
            expected = MATCHING_CLOSER[opener]
            if char == expected:
                continue

            if (
                char == "]"
                and expected == "}"
                and stack
                and stack[-1][0] == "["
                and next_significant_char(text, point.index + 1, " \t\r\n,")[1] == '"'
            ):
                # The object was never closed and its array ends here: close both
                stack.pop()
                corrections.append(DelimiterCorrection(point.index, char, "}]"))
            else:
                corrections.append(DelimiterCorrection(point.index, char, expected))

        return corrections


class MissingCommaInserter(PreprocessingStepBase):
    """Inserts commas between values separated only by whitespace."""

    description = "Inserted missing commas"

    NEXT_PROPERTY = (
        r'(?P<term>["}\]]|\d|\b(?:true|false|null))(?P<ws>[ \t]*\r?\n\s*)'
        r'(?P<next>"[^"\n]*"\s*:)'
    )
    NEXT_ELEMENT = r'(?P<term>["}\]]|\d|\b(?:true|false|null))(?P<ws>[ \t]*\r?\n\s*)(?P<next>["{\[])'
    ADJACENT_STRINGS = r'(?P<first>"[^"\n]*")(?P<ws>[ \t]+)(?P<next>")'

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []
        lookback = config.array_context_lookback

        result, found = self.rewrite(
            self.NEXT_PROPERTY, text, config,
            lambda m, _: (
                m.group("term") + "," + m.group("ws") + m.group("next"),
                "Inserted missing comma before property",
            ),
            guard_group="next",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.NEXT_ELEMENT, result, config,
            lambda m, smap: (
                (m.group("term") + "," + m.group("ws") + m.group("next"),
                 "Inserted missing comma between array elements")
                if smap.is_in_array_context(m.start("next"), lookback)
                else None
            ),
            guard_group="next",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.ADJACENT_STRINGS, result, config,
            lambda m, smap: (
                (m.group("first") + "," + m.group("ws") + m.group("next"),
                 "Inserted missing comma between adjacent strings")
                if smap.is_in_array_context(m.start("next"), lookback)
                else None
            ),
            guard_group="next",
        )
        diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)


class TruncationCompleter(PreprocessingStepBase):
    """Closes an unterminated string and every structure left open."""

    description = "Completed truncated structures"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        if not text.strip():
            return RepairOutcome.unchanged(text)

        stack: list[str] = []
        state = ScanState.TOP
        string_start = -1
        for point in iter_scan(text):
            if point.state is ScanState.TOP:
                if point.char == '"':
                    string_start = point.index
                elif point.char in "{[":
                    stack.append(point.char)
                elif point.char in "}]" and stack:
                    stack.pop()
            state = advance_state(point.state, point.char)

        if state is ScanState.TOP and not stack:
            return RepairOutcome.unchanged(text)
        if state is not ScanState.TOP and not _opens_value_or_key(text, string_start):
            # A quote went missing mid-text; the scan state past it is meaningless
            return RepairOutcome.unchanged(text)

        LimitValidator(config.limits).validate_nesting_depth(len(stack))

        diagnostics: list[str] = []
        result = text
        if state is not ScanState.TOP:
            if state is ScanState.ESCAPED:
                result = result[:-1]
            result += '"'
            diagnostics.append("Closed unterminated string")

        stripped = result.rstrip()
        if stack and stripped.endswith(","):
            result = stripped[:-1]
            diagnostics.append("Dropped dangling comma at end of input")
        elif stack and stripped.endswith(":"):
            result = stripped + " null"
            diagnostics.append("Filled dangling property with null")
        elif stack and stack[-1] == "{" and _ends_with_bare_key(result, string_start):
            result += ": null"
            diagnostics.append("Filled truncated property with null")

        closers = "".join(MATCHING_CLOSER[opener] for opener in reversed(stack))
        if closers:
            result += closers
            diagnostics.append(f"Completed truncated structure with '{closers}'")

        return self.outcome(text, result, diagnostics)


def _ends_with_bare_key(text: str, string_start: int) -> bool:
    """True if the text ends with a quoted string in key position (after ``{`` or ``,``)."""
    stripped = text.rstrip()
    if string_start < 0 or not stripped.endswith('"'):
        return False
    _, before = previous_significant_char(text, string_start)
    return before in ("{", ",")


def _opens_value_or_key(text: str, quote_index: int) -> bool:
    """True if the quote at ``quote_index`` sits where a string may start."""
    index, before = previous_significant_char(text, quote_index)
    return index == -1 or before in ("{", "[", ",", ":")
