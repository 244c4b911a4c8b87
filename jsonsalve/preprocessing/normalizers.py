"""
Value and token normalization steps.

This module contains the syntax-repair steps that run after property names
are fixed: string concatenation, assignment typos, invalid literals, values
that lost their quotes, unescaped quotes inside values and the long tail of
stray tokens models leave behind.
"""

from collections.abc import Sequence
from typing import Optional

from ..core.regex_engine import MULTILINE
from ..core.scanner import StringMap, next_significant_char, previous_significant_char
from ..utils.config import RepairConfig
from .base import PreprocessingStepBase, RepairOutcome, Rewrite, truncate_for_log

JSON_KEYWORDS = frozenset({"true", "false", "null", "undefined"})
NUMERIC_WORDS = frozenset({"NaN", "Infinity"})

STRING_LITERAL = r'"(?:[^"\\\n]|\\.)*"'
IDENTIFIER = r"[A-Za-z_$][\w$]*"
NUMBER = r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"

# Markers of an array entry the model repeated with a prefix, e.g. extra.org.x
DUPLICATE_ENTRY_MARKERS = frozenset({"extra", "duplicate", "repeat", "copy"})

# (pattern, replacement, description)
PACKAGE_NAME_TYPOS: tuple[tuple[str, str, str], ...] = (
    (r'"orgah\.', '"org.', "orgah -> org"),
    (r'"org\.apachefineract\.', '"org.apache.fineract.', "org.apachefineract -> org.apache.fineract"),
    (r'"orgfineract\.', '"org.apache.fineract.', "orgfineract -> org.apache.fineract"),
)


def _is_plain_value(word: str, config: RepairConfig) -> bool:
    """True for words that are valid unquoted JSON values."""
    if word in JSON_KEYWORDS or word in NUMERIC_WORDS:
        return True
    return PreprocessingStepBase.fullmatch(NUMBER, word, config) is not None


class ConcatenationCollapser(PreprocessingStepBase):
    """
    Collapses JavaScript-style ``+`` chains in value position.

    Literal parts are merged into one string. Identifier parts cannot be
    evaluated from text, so they are dropped; a chain of identifiers only
    becomes ``""``.
    """

    description = "Collapsed string concatenation"

    PART = STRING_LITERAL + r"|" + IDENTIFIER + r"(?:\." + IDENTIFIER + r")*(?:\(\))?"
    CHAIN = (
        r"(?P<lead>[:\[,])(?P<ws>\s*)"
        r"(?P<chain>(?:" + PART + r")(?:\s*\+\s*(?:" + PART + r"))+)"
    )

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        if "+" not in text:
            return RepairOutcome.unchanged(text)

        def build(match, string_map: StringMap) -> Optional[Rewrite]:
            # A chain followed by ":" is a key; property name repair owns it
            if next_significant_char(string_map.text, match.end())[1] == ":":
                return None
            parts = [m.group(0) for m in self.finditer(self.PART, match.group("chain"), config)]
            if len(parts) > config.max_concat_chain:
                return None
            literals = [part for part in parts if part.startswith('"')]
            merged = '"' + "".join(literal[1:-1] for literal in literals) + '"'
            dropped = len(parts) - len(literals)
            diagnostic = f"Collapsed concatenation of {len(parts)} part(s) into {truncate_for_log(merged)}"
            if dropped:
                diagnostic += f", dropped {dropped} identifier(s)"
            return f'{match.group("lead")}{match.group("ws")}{merged}', diagnostic

        result, diagnostics = self.rewrite(self.CHAIN, text, config, build, guard_group="chain")
        return self.outcome(text, result, diagnostics)


class AssignmentOperatorFixer(PreprocessingStepBase):
    """Replaces ``:=`` after a property name with ``:``."""

    description = "Fixed assignment operators"

    ASSIGNMENT = r"(?P<key>" + STRING_LITERAL + r")[ \t]*:=[ \t]*"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        if ":=" not in text:
            return RepairOutcome.unchanged(text)
        result, diagnostics = self.rewrite(
            self.ASSIGNMENT, text, config,
            lambda m, _: (f'{m.group("key")}: ', f'Fixed assignment operator after {m.group("key")}'),
        )
        return self.outcome(text, result, diagnostics)


class LiteralRepairer(PreprocessingStepBase):
    """Replaces JavaScript literals and corrupted numbers with valid JSON."""

    description = "Fixed invalid literals"

    UNDEFINED = r"(?P<lead>[:\[,][ \t]*)undefined\b"
    UNDERSCORE_NUMBER = r"(?P<lead>:[ \t]*)_(?P<number>-?\d+(?:\.\d+)?)(?=\s*[,}\]]|\s*$)"
    # "linesOfCode":_CODE`4,
    ENCODED_NUMBER = r"(?P<lead>:[ \t]*)_[A-Z]+`(?P<number>\d+)(?=\s*[,}\]]|\s*$)"

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []

        result, found = self.rewrite(
            self.UNDEFINED, text, config,
            lambda m, _: (m.group("lead") + "null", "Replaced undefined with null"),
            guard_group="lead",
        )
        diagnostics.extend(found)

        for pattern in (self.UNDERSCORE_NUMBER, self.ENCODED_NUMBER):
            result, found = self.rewrite(
                pattern, result, config,
                lambda m, _: (
                    m.group("lead") + m.group("number"),
                    f"Fixed corrupted number {truncate_for_log(m.group(0).lstrip(': '))} -> {m.group('number')}",
                ),
                guard_group="lead",
            )
            diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)


class ValueQuotingRepairer(PreprocessingStepBase):
    """
    Adds quotes that are missing around bare word values.

    Property values are handled first, array elements last. Valid unquoted
    values (``true``, ``false``, ``null`` and numbers) are never quoted.
    """

    description = "Fixed unquoted values"

    MISSING_OPENING_QUOTE = r'(?P<lead>:[ \t]*)(?P<word>[A-Za-z_$][^"\n{}\[\]:]*)"(?P<tail>[ \t]*(?:[,}\]]|\r?\n))'
    MISSING_CLOSING_QUOTE = (
        r'(?P<lead>:[ \t]*)"(?P<word>[A-Za-z_$][\w$.\-]*)(?P<tail>[ \t]*,?[ \t]*\r?\n)(?=[ \t]*["}])'
    )
    BARE_VALUE = r"(?P<lead>:[ \t]*)(?P<word>[A-Za-z_$][\w$.\-]*)(?P<tail>[ \t]*(?:[,}\]]|\r?\n))"
    ARRAY_ELEMENT_MISSING_QUOTE = (
        r'(?P<lead>[\[,][ \t]*(?:\r?\n[ \t]*)?)(?P<word>[A-Za-z_$][\w$.\-/ ]*)"(?P<tail>\s*[,\]])'
    )

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []
        result = text

        for apply in (
            self._missing_opening_quotes,
            self._missing_closing_quotes,
            self._bare_values,
            self._array_elements,
        ):
            result, found = self.fixed_point(
                result, config, lambda current, run=apply: run(current, config)
            )
            diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)

    def _missing_opening_quotes(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, _string_map: StringMap) -> Optional[Rewrite]:
            word = match.group("word")
            if _is_plain_value(word.strip(), config):
                return None
            return (
                f'{match.group("lead")}"{word}"{match.group("tail")}',
                f'Added missing opening quote to value: {truncate_for_log(word)}"',
            )

        return self.rewrite(self.MISSING_OPENING_QUOTE, text, config, build, guard_group="lead")

    def _missing_closing_quotes(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        return self.rewrite(
            self.MISSING_CLOSING_QUOTE, text, config,
            lambda m, _: (
                f'{m.group("lead")}"{m.group("word")}"{m.group("tail")}',
                f'Added missing closing quote to value: "{m.group("word")}',
            ),
            guard_group="lead",
        )

    def _bare_values(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, _string_map: StringMap) -> Optional[Rewrite]:
            word = match.group("word")
            if _is_plain_value(word, config):
                return None
            return (
                f'{match.group("lead")}"{word}"{match.group("tail")}',
                f"Quoted bare value: {word}",
            )

        return self.rewrite(self.BARE_VALUE, text, config, build, guard_group="lead")

    def _array_elements(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, string_map: StringMap) -> Optional[Rewrite]:
            word = match.group("word")
            if _is_plain_value(word.strip(), config):
                return None
            if not string_map.is_in_array_context(match.start("word"), config.array_context_lookback):
                return None
            return (
                f'{match.group("lead")}"{word}"{match.group("tail")}',
                f'Added missing opening quote to array element: {truncate_for_log(word)}"',
            )

        return self.rewrite(
            self.ARRAY_ELEMENT_MISSING_QUOTE, text, config, build, guard_group="word"
        )


class EscapeRepairer(PreprocessingStepBase):
    """
    Escapes stray quotes inside single-line string values.

    Only attribute-shaped quotes (``class="x"``) and a quote directly after
    an escaped quote are escaped. A line is rewritten only when no unescaped
    quote is left in its value afterwards.
    """

    description = "Escaped stray quotes"

    VALUE_LINE = (
        r'^(?P<prefix>[ \t]*' + STRING_LITERAL + r'[ \t]*:[ \t]*")'
        r'(?P<body>[^\n]*)"(?P<tail>[ \t]*,?[ \t]*)$'
    )
    ATTRIBUTE_QUOTES = r'(=[ \t]*)"([^"\\\n]*)"'
    QUOTE_AFTER_ESCAPED = r'(?<=\\")"'
    UNESCAPED_QUOTE = r'(?<!\\)"'

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        if "=" not in text and '\\""' not in text:
            return RepairOutcome.unchanged(text)

        def build(match, _string_map: StringMap) -> Optional[Rewrite]:
            body = match.group("body")
            if self.search(self.UNESCAPED_QUOTE, body, config) is None:
                return None
            fixed = self.sub(self.ATTRIBUTE_QUOTES, r'\1\\"\2\\"', body, config)
            fixed = self.sub(self.QUOTE_AFTER_ESCAPED, r'\\"', fixed, config)
            if self.search(self.UNESCAPED_QUOTE, fixed, config) is not None:
                return None
            return (
                f'{match.group("prefix")}{fixed}"{match.group("tail")}',
                f"Escaped quotes in value: {truncate_for_log(body)}",
            )

        result, diagnostics = self.fixed_point(
            text, config,
            lambda current: self.rewrite(
                self.VALUE_LINE, current, config, build, flags=MULTILINE, guard_group="prefix"
            ),
        )
        return self.outcome(text, result, diagnostics)


class StrayTokenCleaner(PreprocessingStepBase):
    """
    Removes the long tail of stray tokens.

    Every rule here targets a specific corruption seen in model output and
    leaves valid JSON untouched.
    """

    description = "Removed stray tokens"

    BINARY_MARKER = r"<y_bin_\d+>"
    DISCLAIMER_LINE = (
        r"^[ \t]*(?P<line>(?:I[ \t]|I'm\b|I've\b|As an AI\b|Note:|Please note\b)[^\n\"{}\[\]]*)(?:\r?\n|\Z)"
    )
    PROSE_LINE = (
        r'(?P<closer>[}\]])[ \t]*,[ \t]*\r?\n[ \t]*(?P<prose>[a-z][a-z \t]{1,49}?)[ \t]*\r?\n'
        r'(?P<ws>\s*)(?P<next>[{"])'
    )
    DUPLICATE_ENTRY = (
        r'(?P<entry>"[^"\n]+")[ \t]*,\s*\n[ \t]*(?P<prefix>[a-z]+)\.[^"\n]*"[ \t]*,'
    )
    STRAY_BEFORE_VALUE = (
        r'(?P<lead>"[ \t]*:[ \t]*)(?P<stray>[A-Za-z_]{1,20})[ \t]+(?P<value>' + STRING_LITERAL + r')'
        r'(?=\s*[,}\]])'
    )
    CORRUPTED_PAIR = (
        r'(?P<key>"' + IDENTIFIER + r'")[ \t]*:[ \t]*(?P<word>[A-Z][A-Za-z0-9_]*)"[ \t]*:[ \t]*'
        r'(?P<value>' + STRING_LITERAL + r')'
    )
    STRAY_AFTER_VALUE = (
        r'(?P<value>' + STRING_LITERAL + r')[ \t]*(?P<stray>[A-Za-z_$0-9]+)(?=[ \t]*[,}\]]|[ \t]*\r?\n)'
    )
    DANGLING_PROPERTY = r'"(?P<name>' + IDENTIFIER + r')[ \t]+"(?=\s*[,}\n])'

    def __init__(self, package_typos: Optional[Sequence[tuple[str, str, str]]] = None):
        self.package_typos = tuple(PACKAGE_NAME_TYPOS if package_typos is None else package_typos)

    def should_apply(self, config: RepairConfig) -> bool:
        return config.stray_token_cleanup

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []
        lookback = config.array_context_lookback

        result, found = self.rewrite(
            self.BINARY_MARKER, text, config,
            lambda m, _: ("", f"Removed binary corruption marker {m.group(0)}"),
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.DISCLAIMER_LINE, result, config,
            lambda m, _: ("", f"Removed disclaimer line: {truncate_for_log(m.group('line').strip())}"),
            flags=MULTILINE, guard_group="line",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.PROSE_LINE, result, config, self._prose_line, guard_group="closer"
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.DUPLICATE_ENTRY, result, config,
            lambda m, smap: self._duplicate_entry(m, smap, lookback),
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.STRAY_BEFORE_VALUE, result, config, self._stray_before_value,
            guard_group="stray",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.CORRUPTED_PAIR, result, config,
            lambda m, _: (
                f'{m.group("key")}: "{m.group("word")}", "{m.group("word")}": {m.group("value")}',
                f'Fixed corrupted property pair: {m.group("key")}:{m.group("word")}" -> '
                f'{m.group("key")}: "{m.group("word")}", "{m.group("word")}"',
            ),
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.STRAY_AFTER_VALUE, result, config, self._stray_after_value,
            guard_group="value",
        )
        diagnostics.extend(found)

        result, found = self.rewrite(
            self.DANGLING_PROPERTY, result, config,
            lambda m, smap: self._dangling_property(m, smap, lookback),
        )
        diagnostics.extend(found)

        for pattern, replacement, label in self.package_typos:
            result, found = self.rewrite(
                pattern, result, config,
                lambda m, _, repl=replacement, desc=label: (repl, f"Fixed package name typo: {desc}"),
            )
            diagnostics.extend(found)

        return self.outcome(text, result, diagnostics)

    @staticmethod
    def _prose_line(match, _string_map: StringMap) -> Optional[Rewrite]:
        prose = match.group("prose").strip()
        if prose in JSON_KEYWORDS:
            return None
        return (
            f'{match.group("closer")},\n{match.group("ws")}{match.group("next")}',
            f'Removed stray text: "{truncate_for_log(prose)}"',
        )

    @staticmethod
    def _duplicate_entry(match, string_map: StringMap, lookback: int) -> Optional[Rewrite]:
        prefix = match.group("prefix")
        if prefix.lower() not in DUPLICATE_ENTRY_MARKERS:
            return None
        if not string_map.is_in_array_context(match.start("prefix"), lookback):
            return None
        entry = match.group("entry")
        return (
            f"{entry},",
            f'Removed corrupted array entry starting with "{prefix}" after {truncate_for_log(entry)}',
        )

    @staticmethod
    def _stray_before_value(match, string_map: StringMap) -> Optional[Rewrite]:
        # The quote before ":" must close a key
        if not string_map.in_string(match.start("lead")):
            return None
        stray = match.group("stray")
        if stray in JSON_KEYWORDS:
            return None
        return (
            f'{match.group("lead")}{match.group("value")}',
            f"Removed stray text '{stray}' before value",
        )

    @staticmethod
    def _stray_after_value(match, string_map: StringMap) -> Optional[Rewrite]:
        _, before = previous_significant_char(string_map.text, match.start("value"))
        if before not in (":", "[", ","):
            return None
        stray = match.group("stray")
        return match.group("value"), f"Removed stray characters '{stray}' after value"

    @staticmethod
    def _dangling_property(match, string_map: StringMap, lookback: int) -> Optional[Rewrite]:
        _, before = previous_significant_char(string_map.text, match.start())
        if before not in ("{", ","):
            return None
        if string_map.is_in_array_context(match.start(), lookback):
            return None
        name = match.group("name")
        replacement = f'"{name}": null'
        if next_significant_char(string_map.text, match.end())[1] == '"':
            replacement += ","
        return replacement, f'Fixed dangling property: "{name} " -> "{name}": null'

