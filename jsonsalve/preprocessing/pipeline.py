"""
Stage pipelines for composable repair steps.

This module implements the pipeline pattern used by each recovery stage: an
ordered list of steps whose outcomes are folded into a single stage outcome.
"""

from collections.abc import Mapping
from typing import Optional

from ..core.interfaces import RepairStep
from ..utils.config import RepairConfig
from .base import RepairOutcome
from .extractors import (
    DuplicateObjectCollapser,
    LargestSpanExtractor,
    MarkdownFenceStripper,
    PreambleRemover,
    StrayPropertyPrefixRemover,
    TruncationSentinelRemover,
    WhitespaceTrimmer,
)
from .normalizers import (
    AssignmentOperatorFixer,
    ConcatenationCollapser,
    EscapeRepairer,
    LiteralRepairer,
    StrayTokenCleaner,
    ValueQuotingRepairer,
)
from .property_names import PropertyNameRepairer, PropertyNameTable
from .repairers import (
    ArrayObjectBraceFixer,
    DelimiterMismatchFixer,
    MissingCommaInserter,
    TrailingCommaRemover,
    TruncationCompleter,
)

NOISE_REMOVAL = "noise_removal"
STRUCTURAL_REPAIR = "structural_repair"
SYNTAX_REPAIR = "syntax_repair"

STAGE_ORDER = (NOISE_REMOVAL, STRUCTURAL_REPAIR, SYNTAX_REPAIR)


class StagePipeline:
    """Manages the ordered steps of one recovery stage."""

    def __init__(
        self,
        name: str,
        steps: Optional[list[RepairStep]] = None,
        description: Optional[str] = None,
    ):
        self.name = name
        self.steps = steps or []
        self.description = description or name

    def add_step(self, step: RepairStep) -> None:
        """Add a repair step to the end of the stage."""
        self.steps.append(step)

    def process(self, text: str, config: Optional[RepairConfig] = None) -> RepairOutcome:
        """
        Apply all applicable steps in order.

        Diagnostics are kept up to ``config.max_diagnostics_per_stage``;
        ``changed`` is derived from the stage's input and final text.
        """
        if config is None:
            config = RepairConfig()

        result = text
        diagnostics: list[str] = []
        for step in self.steps:
            if not step.should_apply(config):
                continue
            outcome = step.process(result, config)
            result = outcome.content
            diagnostics.extend(outcome.diagnostics)

        return RepairOutcome.from_texts(
            text,
            result,
            self.description,
            diagnostics[: config.max_diagnostics_per_stage],
        )

    def step_names(self) -> list[str]:
        return [type(step).__name__ for step in self.steps]

    @classmethod
    def create_noise_removal(cls) -> "StagePipeline":
        """Strip everything around the JSON payload."""
        pipeline = cls(NOISE_REMOVAL, description="Removed noise")
        pipeline.add_step(WhitespaceTrimmer())
        pipeline.add_step(MarkdownFenceStripper())
        pipeline.add_step(PreambleRemover())
        pipeline.add_step(StrayPropertyPrefixRemover())
        pipeline.add_step(DuplicateObjectCollapser())
        pipeline.add_step(LargestSpanExtractor())
        pipeline.add_step(TruncationSentinelRemover())
        return pipeline

    @classmethod
    def create_structural_repair(cls) -> "StagePipeline":
        """Restore a balanced, comma-correct skeleton."""
        pipeline = cls(STRUCTURAL_REPAIR, description="Repaired structure")
        pipeline.add_step(TrailingCommaRemover())
        pipeline.add_step(ArrayObjectBraceFixer())
        pipeline.add_step(DelimiterMismatchFixer())
        pipeline.add_step(MissingCommaInserter())
        pipeline.add_step(TruncationCompleter())
        return pipeline

    @classmethod
    def create_syntax_repair(
        cls, property_names: Optional[PropertyNameTable] = None
    ) -> "StagePipeline":
        """Fix lexical defects inside the repaired skeleton."""
        pipeline = cls(SYNTAX_REPAIR, description="Repaired syntax")
        pipeline.add_step(ConcatenationCollapser())
        pipeline.add_step(PropertyNameRepairer(property_names))
        pipeline.add_step(AssignmentOperatorFixer())
        pipeline.add_step(LiteralRepairer())
        pipeline.add_step(ValueQuotingRepairer())
        pipeline.add_step(EscapeRepairer())
        pipeline.add_step(StrayTokenCleaner())
        return pipeline


def create_default_stages(
    property_names: Optional[PropertyNameTable] = None,
) -> Mapping[str, StagePipeline]:
    """The three recovery stages keyed by name, in execution order."""
    return {
        NOISE_REMOVAL: StagePipeline.create_noise_removal(),
        STRUCTURAL_REPAIR: StagePipeline.create_structural_repair(),
        SYNTAX_REPAIR: StagePipeline.create_syntax_repair(property_names),
    }
