"""
jsonsalve Security and Error System.

This module provides limit validation and exception types.
"""

from .exceptions import (
    ErrorKind,
    JsonRecoveryError,
    JsonSalveError,
    Position,
    SecurityError,
    StageFailure,
)
from .limits import LimitValidator

__all__ = [
    'ErrorKind', 'JsonRecoveryError', 'JsonSalveError', 'Position',
    'SecurityError', 'StageFailure', 'LimitValidator',
]
