"""
jsonsalve Core.

This module provides the string-aware scanner and the regex engine shared by
every repair step.
"""

from .regex_engine import RegexConfig, RegexEngine, RegexTimeoutError, TimeoutBehavior
from .scanner import ScanState, StringMap, build_string_table, is_in_string

__all__ = [
    'RegexConfig', 'RegexEngine', 'RegexTimeoutError', 'TimeoutBehavior',
    'ScanState', 'StringMap', 'build_string_table', 'is_in_string',
]
