"""
jsonsalve Utilities.

This module provides configuration for the recovery pipeline.
"""

from .config import (
    ErrorReporting,
    IterationLimits,
    RepairConfig,
    RepairLimits,
    SizeLimits,
    StageSettings,
)

__all__ = [
    'ErrorReporting', 'IterationLimits', 'RepairConfig', 'RepairLimits',
    'SizeLimits', 'StageSettings',
]
