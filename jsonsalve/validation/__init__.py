"""
jsonsalve validation boundary.

Parses sanitized text and applies caller-supplied shape checks.
"""

from .validator import (
    ParseFailure,
    RecoveryResult,
    SchemaViolation,
    parse_and_validate,
    parse_json,
)

__all__ = [
    'ParseFailure', 'RecoveryResult', 'SchemaViolation',
    'parse_and_validate', 'parse_json',
]
