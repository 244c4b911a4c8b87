"""
Core interfaces and protocols for the recovery pipeline.

This module defines the contracts repair steps and schema predicates must
implement so they can be composed into stages and handed to the validator.
"""

from typing import Any, Optional, Protocol, Union

from ..preprocessing.base import RepairOutcome
from ..utils.config import RepairConfig


class RepairStep(Protocol):
    """Protocol for steps in a stage pipeline."""

    description: str

    def process(self, text: str, config: RepairConfig) -> RepairOutcome:
        """Repair the input text and report what changed."""
        ...

    def should_apply(self, config: RepairConfig) -> bool:
        """Determine if this step should be applied given the configuration."""
        ...


class SchemaPredicate(Protocol):
    """
    Caller-supplied shape check applied after parsing.

    Returns ``True`` or ``None`` when the value is acceptable, otherwise a
    list of issue strings (an empty list also counts as acceptable).
    """

    def __call__(self, value: Any) -> Optional[Union[bool, list[str]]]:
        ...
