"""
Model output repair stages.

Each stage is a pipeline of focused, single-responsibility steps: noise
removal isolates the JSON payload, structural repair restores a balanced
skeleton and syntax repair fixes lexical defects inside it.
"""

from .base import PreprocessingStepBase, RepairOutcome
from .pipeline import (
    NOISE_REMOVAL,
    STAGE_ORDER,
    STRUCTURAL_REPAIR,
    SYNTAX_REPAIR,
    StagePipeline,
    create_default_stages,
)
from .property_names import FragmentContext, FragmentResolver, PropertyNameTable

__all__ = [
    "PreprocessingStepBase",
    "RepairOutcome",
    "StagePipeline",
    "create_default_stages",
    "NOISE_REMOVAL",
    "STRUCTURAL_REPAIR",
    "SYNTAX_REPAIR",
    "STAGE_ORDER",
    "FragmentContext",
    "FragmentResolver",
    "PropertyNameTable",
]
