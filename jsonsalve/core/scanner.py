"""
String and context scanner shared by every repair stage.

All repair rules need to know two things about a position in the text: is it
inside a string literal, and is it inside an array rather than an object.
This module answers both questions with a small state machine::

    TOP --'"'--> IN_STRING --'\\'--> ESCAPED --any--> IN_STRING --'"'--> TOP

Bracket/brace depth is tracked independently of the string state. A
``StringMap`` classifies every offset of a text in one forward pass so rules
can ask about many offsets without rescanning from the start each time.
"""

from collections.abc import Generator
from dataclasses import dataclass
from enum import Enum
from typing import Optional

OPENERS = "{["
CLOSERS = "}]"
MATCHING_CLOSER = {"{": "}", "[": "]"}
MATCHING_OPENER = {"}": "{", "]": "["}


class ScanState(Enum):
    """Lexical state of the scanner before consuming a character."""

    TOP = "top"
    IN_STRING = "in_string"
    ESCAPED = "escaped"


def advance_state(state: ScanState, char: str) -> ScanState:
    """Return the state after consuming ``char`` in ``state``."""
    if state is ScanState.TOP:
        return ScanState.IN_STRING if char == '"' else ScanState.TOP
    if state is ScanState.ESCAPED:
        return ScanState.IN_STRING
    if char == "\\":
        return ScanState.ESCAPED
    if char == '"':
        return ScanState.TOP
    return ScanState.IN_STRING


def is_in_string(pos: int, text: str) -> bool:
    """
    Check whether ``pos`` lies inside an open string literal.

    Walks ``text[:pos]`` from the start. This is O(pos) per call; use
    ``StringMap`` when many offsets of the same text are queried.
    """
    state = ScanState.TOP
    for char in text[:pos]:
        state = advance_state(state, char)
    return state is not ScanState.TOP


def build_string_table(text: str) -> list[bool]:
    """
    Classify every offset of ``text`` in a single forward pass.

    Returns:
        A list of ``len(text) + 1`` booleans where entry ``i`` equals
        ``is_in_string(i, text)``.
    """
    table = [False] * (len(text) + 1)
    state = ScanState.TOP
    for i, char in enumerate(text):
        state = advance_state(state, char)
        table[i + 1] = state is not ScanState.TOP
    return table


@dataclass(frozen=True)
class ScanPoint:
    """One character of a scan with the state it was read in."""

    index: int
    char: str
    state: ScanState
    next_char: Optional[str]

    @property
    def in_string(self) -> bool:
        """True if the character is part of a string literal body or its closing quote."""
        return self.state is not ScanState.TOP

    @property
    def is_escaped(self) -> bool:
        return self.state is ScanState.ESCAPED


def iter_scan(text: str) -> Generator[ScanPoint, None, None]:
    """
    Iterate through text with string state tracking.

    Yields:
        ScanPoint for every character, carrying the state before the character.
    """
    state = ScanState.TOP
    length = len(text)
    for i, char in enumerate(text):
        next_char = text[i + 1] if i + 1 < length else None
        yield ScanPoint(i, char, state, next_char)
        state = advance_state(state, char)


class StringMap:
    """
    Position-tagged classification of a text.

    Built once per rule pass. The map describes the text it was built from
    and must be rebuilt after the text is modified.
    """

    def __init__(self, text: str):
        self.text = text
        self.in_string_table: list[bool] = [False] * (len(text) + 1)
        self.depth_table: list[int] = [0] * (len(text) + 1)

        state = ScanState.TOP
        depth = 0
        min_depth = 0
        for i, char in enumerate(text):
            if state is ScanState.TOP:
                if char in OPENERS:
                    depth += 1
                elif char in CLOSERS:
                    depth -= 1
                    min_depth = min(min_depth, depth)
            state = advance_state(state, char)
            self.in_string_table[i + 1] = state is not ScanState.TOP
            self.depth_table[i + 1] = depth

        self.final_state = state
        self.min_depth = min_depth

    @classmethod
    def build(cls, text: str) -> "StringMap":
        return cls(text)

    def in_string(self, pos: int) -> bool:
        """Same answer as ``is_in_string(pos, text)``."""
        if pos <= 0:
            return False
        if pos >= len(self.in_string_table):
            return self.in_string_table[-1]
        return self.in_string_table[pos]

    def depth_at(self, pos: int) -> int:
        """Combined bracket/brace depth before offset ``pos``, outside strings."""
        pos = max(0, min(pos, len(self.depth_table) - 1))
        return self.depth_table[pos]

    @property
    def final_depth(self) -> int:
        return self.depth_table[-1]

    @property
    def ends_in_string(self) -> bool:
        return self.final_state is not ScanState.TOP

    @property
    def is_balanced(self) -> bool:
        """Depth never went negative and returns to zero outside a string."""
        return self.min_depth >= 0 and self.final_depth == 0 and not self.ends_in_string

    def is_in_array_context(self, pos: int, lookback: int = 0) -> bool:
        """Check whether the nearest unmatched opener before ``pos`` is ``[``."""
        return is_in_array_context(pos, self.text, self.in_string_table, lookback)

    def find_unmatched_opener(self, pos: int, lookback: int = 0) -> int:
        return find_unmatched_opener(pos, self.text, self.in_string_table, lookback)


def find_unmatched_opener(
    pos: int,
    text: str,
    table: Optional[list[bool]] = None,
    lookback: int = 0,
) -> int:
    """
    Find the nearest unmatched ``{`` or ``[`` before ``pos``.

    Walks backward from ``pos - 1`` outside strings with two independent
    balances, one for ``}``/``{`` and one for ``]``/``[``:

    ============================  =====================================
    character seen                effect
    ============================  =====================================
    ``}``                         brace balance + 1
    ``]``                         bracket balance + 1
    ``{`` with brace balance > 0  brace balance - 1 (nested object)
    ``[`` with bracket balance>0  bracket balance - 1 (nested array)
    ``{`` with brace balance 0    stop: unmatched object opener
    ``[`` with bracket balance 0  stop: unmatched array opener
    inside a string               ignored
    start of text / lookback      stop: no opener
    ============================  =====================================

    Args:
        pos: Offset to start from (exclusive)
        text: The text containing ``pos``
        table: Optional precomputed ``build_string_table(text)``
        lookback: Maximum characters to walk back (0 = to the start)

    Returns:
        Index of the opener, or -1 if none was found
    """
    if table is None:
        table = build_string_table(text)

    pos = min(pos, len(text))
    stop = max(0, pos - lookback) if lookback > 0 else 0
    brace_balance = 0
    bracket_balance = 0

    for i in range(pos - 1, stop - 1, -1):
        if table[i]:
            continue
        char = text[i]
        if char == "}":
            brace_balance += 1
        elif char == "]":
            bracket_balance += 1
        elif char == "{":
            if brace_balance == 0:
                return i
            brace_balance -= 1
        elif char == "[":
            if bracket_balance == 0:
                return i
            bracket_balance -= 1

    return -1


def is_in_array_context(
    pos: int,
    text: str,
    table: Optional[list[bool]] = None,
    lookback: int = 0,
) -> bool:
    """
    Check whether ``pos`` lies inside an array literal rather than an object.

    True iff the nearest unmatched opener before ``pos`` is ``[``. A complete
    ``{...}`` sibling between ``pos`` and the array opener is matched and
    skipped; only an unmatched ``{`` switches the answer to object context.
    See ``find_unmatched_opener`` for the transition table.
    """
    opener = find_unmatched_opener(pos, text, table, lookback)
    return opener != -1 and text[opener] == "["


def find_string_end(text: str, start: int) -> int:
    """
    Find the end of a quoted string starting at position start.

    Args:
        text: The text to search in
        start: Starting position (should point to opening quote)

    Returns:
        Index of closing quote, or -1 if not found
    """
    if start >= len(text) or text[start] != '"':
        return -1

    escaped = False
    for i in range(start + 1, len(text)):
        char = text[i]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            return i
    return -1


def next_significant_char(
    text: str, pos: int, skip: str = " \t\r\n"
) -> tuple[int, Optional[str]]:
    """Return the index and value of the first character at or after ``pos`` not in ``skip``."""
    for i in range(pos, len(text)):
        if text[i] not in skip:
            return i, text[i]
    return -1, None


def previous_significant_char(
    text: str, pos: int, skip: str = " \t\r\n"
) -> tuple[int, Optional[str]]:
    """Return the index and value of the last character before ``pos`` not in ``skip``."""
    for i in range(min(pos, len(text)) - 1, -1, -1):
        if text[i] not in skip:
            return i, text[i]
    return -1, None
