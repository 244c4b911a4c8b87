"""
Property name repair.

Models frequently damage object keys: the opening quote goes missing, the
name is cut short (``se": ...`` for ``"purpose": ...``), a stray suffix is
appended (``"type_":``) or the key is written as a ``+`` expression. This
module holds the table that maps such fragments back to canonical names and
the repair step that applies it.

Several fragments are ambiguous. ``se`` is the tail of both ``purpose`` and
``name`` and the right answer depends on the value that follows, so fragment
resolution runs through a ranked list of resolvers; the first one that
returns a name wins and the static table is only the fallback.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from ..core.scanner import (
    StringMap,
    find_string_end,
    next_significant_char,
    previous_significant_char,
)
from ..utils.config import RepairConfig
from .base import PreprocessingStepBase, RepairOutcome, Rewrite

JSON_KEYWORDS = frozenset({"true", "false", "null", "undefined"})

# Fragments that map to different names depending on their value
AMBIGUOUS_FRAGMENTS = frozenset({"se", "e", "n"})

FRAGMENT_NAMES: Mapping[str, str] = MappingProxyType({
    # name
    "e": "name", "n": "name", "m": "name", "nm": "name", "nam": "name",
    "na": "name", "me": "name", "am": "name",
    # purpose
    "se": "purpose", "pu": "purpose", "pur": "purpose", "purp": "purpose",
    "purpo": "purpose", "purpos": "purpose",
    # description
    "de": "description", "des": "description", "desc": "description",
    "descr": "description", "descri": "description", "descrip": "description",
    "descript": "description", "descripti": "description",
    "descriptio": "description",
    # parameters
    "pa": "parameters", "par": "parameters", "para": "parameters",
    "param": "parameters", "parame": "parameters", "paramet": "parameters",
    "paramete": "parameters", "ameters": "parameters", "meters": "parameters",
    "eters": "parameters",
    # returnType
    "re": "returnType", "ret": "returnType", "retu": "returnType",
    "retur": "returnType", "return": "returnType", "returnT": "returnType",
    "returnTy": "returnType", "returnTyp": "returnType",
    # implementation
    "im": "implementation", "imp": "implementation", "impl": "implementation",
    "imple": "implementation", "implem": "implementation",
    "impleme": "implementation", "implemen": "implementation",
    "implementa": "implementation", "implementat": "implementation",
    "implementati": "implementation", "implementatio": "implementation",
    # references
    "refer": "references", "refere": "references", "eferences": "references",
    "ferences": "references",
    "externalRefs": "externalReferences", "externalRef": "externalReferences",
    "extraReferences": "externalReferences",
    "externReferences": "externalReferences",
    "internalRefs": "internalReferences", "internalRef": "internalReferences",
    "internReferences": "internalReferences",
    # public members
    "ethods": "publicMethods", "thods": "publicMethods",
    "unctions": "publicFunctions", "nctions": "publicFunctions",
    "nstants": "publicConstants", "stants": "publicConstants",
    "ants": "publicConstants",
    # codeSmells
    "alues": "codeSmells", "lues": "codeSmells", "ues": "codeSmells",
    "es": "codeSmells",
    # misc
    "ty": "type", "va": "value",
    "integra": "integration", "integrat": "integration",
    "egrationPoints": "integrationPoints", "grationPoints": "integrationPoints",
    "integrationPts": "integrationPoints",
    "databaseInteg": "databaseIntegration", "dbIntegration": "databaseIntegration",
})

TYPO_CORRECTIONS: Mapping[str, str] = MappingProxyType({
    "nameprobably": "name",
    "namelikely": "name",
    "namemaybe": "name",
    "typeprobably": "type",
    "valueprobably": "value",
    "cyclometicComplexity": "cyclomaticComplexity",
    "cyclometicComplexity_": "cyclomaticComplexity",
})

KNOWN_PROPERTIES = frozenset({
    "name", "purpose", "description", "parameters", "returnType", "type",
    "value", "implementation", "references", "codeSmells", "kind",
    "namespace", "cyclomaticComplexity", "linesOfCode", "mechanism", "path",
    "method", "direction", "requestBody", "responseBody",
    "internalReferences", "externalReferences", "publicConstants",
    "publicMethods", "publicFunctions", "integrationPoints",
    "databaseIntegration", "codeQualityMetrics", "dataInputFields",
})


def is_identifier_like(value: Optional[str], limit: int = 60) -> bool:
    """A short value without whitespace, such as a function or class name."""
    if not value or len(value) > limit:
        return False
    return not any(char.isspace() for char in value)


def is_free_text(value: Optional[str]) -> bool:
    """A sentence-like value: long text with spaces, or text ending in a period."""
    if not value:
        return False
    has_space = any(char.isspace() for char in value)
    return (has_space and len(value) > 30) or value.rstrip().endswith(".")


@dataclass(frozen=True)
class FragmentContext:
    """What surrounds a damaged key."""

    value: Optional[str] = None  # the following string value, if any
    after_member_boundary: bool = False  # directly after "," or a line break


class FragmentResolver:
    """Maps a key fragment to a canonical name, or declines with None."""

    def resolve(
        self, fragment: str, context: FragmentContext, table: "PropertyNameTable"
    ) -> Optional[str]:
        raise NotImplementedError("Subclasses must implement resolve()")


class TopLevelAfterCommaResolver(FragmentResolver):
    """
    ``se": "computeTotal"`` right after a member separator is a cut ``name``.

    A fragment that starts a member right after ``,`` or a line break and
    carries a short identifier-like value is the tail end of ``name``; the
    general table entry for ``se`` (``purpose``) does not apply there.
    """

    def resolve(self, fragment, context, table):
        if fragment.lower() not in AMBIGUOUS_FRAGMENTS:
            return None
        if context.after_member_boundary and is_identifier_like(context.value):
            return "name"
        return None


class ValueShapeResolver(FragmentResolver):
    """Resolves ambiguous fragments by the shape of the value."""

    def resolve(self, fragment, context, table):
        if fragment.lower() not in AMBIGUOUS_FRAGMENTS:
            return None
        if is_free_text(context.value):
            return "purpose"
        if is_identifier_like(context.value):
            return "name"
        return None


class StaticTableResolver(FragmentResolver):
    """Plain lookup in the fragment table."""

    def resolve(self, fragment, context, table):
        return table.lookup(fragment)


DEFAULT_RESOLVERS: tuple[FragmentResolver, ...] = (
    TopLevelAfterCommaResolver(),
    ValueShapeResolver(),
    StaticTableResolver(),
)


class PropertyNameTable:
    """
    Read-only fragment, typo and known-name data plus the resolver ranking.

    Args:
        fragments: Fragment to canonical name mapping
        typos: Exact-match typo corrections for complete names
        known: Names considered valid properties
        resolvers: Resolvers tried in order before falling back to the fragment
    """

    def __init__(
        self,
        fragments: Optional[Mapping[str, str]] = None,
        typos: Optional[Mapping[str, str]] = None,
        known: Optional[frozenset] = None,
        resolvers: Optional[Sequence[FragmentResolver]] = None,
    ):
        self.fragments: Mapping[str, str] = MappingProxyType(
            dict(FRAGMENT_NAMES if fragments is None else fragments)
        )
        self.typos: Mapping[str, str] = MappingProxyType(
            dict(TYPO_CORRECTIONS if typos is None else typos)
        )
        self.known = frozenset(KNOWN_PROPERTIES if known is None else known)
        self._known_lower = {name.lower(): name for name in self.known}
        self.resolvers = tuple(DEFAULT_RESOLVERS if resolvers is None else resolvers)

    def lookup(self, fragment: str) -> Optional[str]:
        """Exact fragment lookup, falling back to a lowercase match."""
        if fragment in self.fragments:
            return self.fragments[fragment]
        return self.fragments.get(fragment.lower())

    def resolve(self, fragment: str, context: Optional[FragmentContext] = None) -> str:
        """Resolve ``fragment`` through the ranked resolvers; keep it if none applies."""
        context = context or FragmentContext()
        for resolver in self.resolvers:
            name = resolver.resolve(fragment, context, self)
            if name:
                return name
        return fragment.rstrip("_") or fragment

    def canonical_known(self, name: str) -> Optional[str]:
        """The known property spelled like ``name`` ignoring case."""
        return self._known_lower.get(name.lower())

    def correct_typo(self, name: str) -> Optional[str]:
        """
        Correct a damaged complete name.

        Exact table entries win. Otherwise trailing underscores are dropped
        and doubled underscores collapsed, but only when the result is a
        known property, so keys like ``"snake__case"`` stay as they are.
        """
        if name in self.typos:
            return self.typos[name]
        cleaned = name
        while "__" in cleaned:
            cleaned = cleaned.replace("__", "_")
        cleaned = cleaned.rstrip("_")
        if cleaned == name or not cleaned:
            return None
        return self.canonical_known(cleaned)


DEFAULT_TABLE = PropertyNameTable()

IDENTIFIER = r"[A-Za-z_$][\w$]*"


class PropertyNameRepairer(PreprocessingStepBase):
    """
    Repairs damaged object keys.

    Sub-passes run in this order, each to a fixed point:

    a. concatenated keys ``"a" + "b":``
    b. missing opening quote ``frag":``, resolved through the table; a comma
       lost together with the quote is restored
    c. missing closing quote and colon ``"name "value"``
    d. typo suffixes ``"type_":`` and exact typo entries
    e. bare keys ``{name: 1}``
    """

    description = "Fixed property names"

    CONCATENATED_KEY = (
        r'(?P<first>"(?:[^"\\\n]|\\.)*")\s*\+\s*(?P<second>"(?:[^"\\\n]|\\.)*")(?=\s*:)'
    )
    MISSING_OPENING_QUOTE = (
        r'(?P<delim>[{}\],]|\n|^)(?P<ws>[ \t]*)(?P<frag>' + IDENTIFIER + r')"(?P<colon>\s*:)'
    )
    MISSING_COLON = (
        r'"(?P<key>' + IDENTIFIER + r')(?:[ \t]+"|"[ \t]+")'
        r'(?P<value>(?:[^"\\\n]|\\.)*)"(?=\s*[,}\n])'
    )
    QUOTED_KEY = r'(?P<quote>")(?P<key>' + IDENTIFIER + r')"(?P<colon>\s*:)'
    BARE_KEY = r'(?P<delim>[{,])(?P<ws>\s*)(?P<key>' + IDENTIFIER + r')(?P<colon>\s*:)'

    def __init__(self, table: Optional[PropertyNameTable] = None):
        self.table = table or DEFAULT_TABLE

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        diagnostics: list[str] = []
        result = text
        for sub_pass in (
            self._concatenated_keys,
            self._missing_opening_quotes,
            self._missing_colons,
            self._typo_suffixes,
            self._bare_keys,
        ):
            result, found = self.fixed_point(
                result, config, lambda current, run=sub_pass: run(current, config)
            )
            diagnostics.extend(found)
        return self.outcome(text, result, diagnostics)

    def _concatenated_keys(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, string_map: StringMap) -> Optional[Rewrite]:
            if not _in_key_position(string_map, match.start()):
                return None
            merged = match.group("first")[:-1] + match.group("second")[1:]
            return merged, f"Merged concatenated property name {merged}"

        return self.rewrite(self.CONCATENATED_KEY, text, config, build)

    def _missing_opening_quotes(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, string_map: StringMap) -> Optional[Rewrite]:
            fragment = match.group("frag")
            if fragment.lower() in JSON_KEYWORDS:
                return None
            if string_map.is_in_array_context(match.start("frag"), config.array_context_lookback):
                return None
            context = FragmentContext(
                value=_string_value_after(string_map.text, match.end()),
                after_member_boundary=_after_member_boundary(string_map.text, match),
            )
            name = self.table.resolve(fragment, context)
            delim = match.group("delim")
            if delim == "\n" and _value_ends_before(string_map, match.start()):
                delim = ",\n"
            replacement = f'{delim}{match.group("ws")}"{name}"{match.group("colon")}'
            if name == fragment:
                return replacement, f'Fixed missing opening quote: {fragment}" -> "{name}"'
            return replacement, f'Fixed truncated property name: {fragment}" -> "{name}"'

        return self.rewrite(
            self.MISSING_OPENING_QUOTE, text, config, build, guard_group="frag"
        )

    def _missing_colons(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, string_map: StringMap) -> Optional[Rewrite]:
            if not _in_key_position(string_map, match.start()):
                return None
            if string_map.is_in_array_context(match.start(), config.array_context_lookback):
                return None
            key = match.group("key")
            return (
                f'"{key}": "{match.group("value")}"',
                f'Fixed missing colon after property "{key}"',
            )

        return self.rewrite(self.MISSING_COLON, text, config, build)

    def _typo_suffixes(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, string_map: StringMap) -> Optional[Rewrite]:
            if not _in_key_position(string_map, match.start()):
                return None
            key = match.group("key")
            name = self.table.correct_typo(key)
            if name is None:
                return None
            return f'"{name}"{match.group("colon")}', f'Fixed property name typo: "{key}" -> "{name}"'

        return self.rewrite(self.QUOTED_KEY, text, config, build, guard_group="quote")

    def _bare_keys(self, text: str, config: RepairConfig) -> tuple[str, list[str]]:
        def build(match, string_map: StringMap) -> Optional[Rewrite]:
            key = match.group("key")
            if key.lower() in JSON_KEYWORDS:
                return None
            if string_map.is_in_array_context(match.start("key"), config.array_context_lookback):
                return None
            # ":=" is an assignment typo, handled after key repair
            replacement = f'{match.group("delim")}{match.group("ws")}"{key}"{match.group("colon")}'
            return replacement, f'Quoted bare property name: {key} -> "{key}"'

        return self.rewrite(self.BARE_KEY, text, config, build, guard_group="key")


def _in_key_position(string_map: StringMap, quote_index: int) -> bool:
    """True if the quote at ``quote_index`` opens a string that follows ``{`` or ``,``."""
    if string_map.in_string(quote_index):
        return False
    _, before = previous_significant_char(string_map.text, quote_index)
    return before in ("{", ",")


def _after_member_boundary(text: str, match) -> bool:
    if match.group("delim") in (",", "\n"):
        return True
    _, before = previous_significant_char(text, match.start("frag"))
    return before == ","


def _string_value_after(text: str, pos: int) -> Optional[str]:
    """The body of the string literal starting at the next significant char, if any."""
    index, char = next_significant_char(text, pos)
    if char != '"':
        return None
    end = find_string_end(text, index)
    if end == -1:
        return None
    return text[index + 1:end]


def _value_ends_before(string_map: StringMap, pos: int) -> bool:
    """True if a complete value, not a separator, precedes ``pos``."""
    text = string_map.text
    index, before = previous_significant_char(text, pos)
    if before is None:
        return False
    if before == '"':
        # A closing quote is classified as inside its string
        return string_map.in_string(index)
    if before in "}]" or before.isdigit():
        return True
    return text[:index + 1].endswith(("true", "false", "null"))
