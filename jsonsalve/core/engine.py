"""
Recovery pipeline orchestrator.

Runs the noise-removal, structural-repair and syntax-repair stages in a fixed
order over one model response, records a ``SanitizationStep`` per stage and
hands the result to the validator boundary.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

from ..preprocessing.pipeline import STAGE_ORDER, StagePipeline, create_default_stages
from ..preprocessing.property_names import PropertyNameTable
from ..security.exceptions import StageFailure
from ..security.limits import LimitValidator
from ..utils.config import RepairConfig
from ..validation.validator import RecoveryResult, parse_and_validate, parse_json
from .interfaces import SchemaPredicate

logger = logging.getLogger(__name__)

PLAIN_TEXT_STEP = "plain_text"
NO_STRUCTURE_DIAGNOSTIC = "Input contains no JSON structure"
VALID_JSON_STEP = "valid_json"

# Diagnostics that do not count as a significant repair on their own
TRIVIAL_DIAGNOSTICS = frozenset({"Trimmed surrounding whitespace"})


@dataclass
class SanitizationStep:
    """Diagnostics recorded for one stage, in execution order."""

    name: str
    diagnostics: list[str] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Output of ``sanitize``."""

    content: str
    steps: list[SanitizationStep] = field(default_factory=list)
    changed: bool = False

    @property
    def diagnostics(self) -> list[str]:
        """All step diagnostics, flattened in order."""
        return [diagnostic for step in self.steps for diagnostic in step.diagnostics]

    @property
    def failed_stages(self) -> list[str]:
        """Names of the stages that raised and were skipped."""
        return [
            step.name
            for step in self.steps
            if any(d.startswith(f"{step.name} failed:") for d in step.diagnostics)
        ]


class RecoveryEngine:
    """
    Composes the recovery stages.

    Stages are looked up by name so a caller can swap one out, e.g. a syntax
    stage built with a custom ``PropertyNameTable``.
    """

    def __init__(
        self,
        config: Optional[RepairConfig] = None,
        stages: Optional[Mapping[str, StagePipeline]] = None,
    ):
        self.config = config or RepairConfig()
        self.stages = dict(stages or create_default_stages())

    @classmethod
    def with_property_names(
        cls, table: PropertyNameTable, config: Optional[RepairConfig] = None
    ) -> "RecoveryEngine":
        return cls(config, create_default_stages(table))

    def stage_enabled(self, name: str) -> bool:
        return bool(getattr(self.config, name, True))

    def sanitize(self, text: str) -> PipelineResult:
        """
        Run every enabled stage over ``text``.

        Raises:
            TypeError: If ``text`` is not a string
            SecurityError: If ``text`` exceeds the configured input size
        """
        if not isinstance(text, str):
            raise TypeError(f"Expected str, got {type(text).__name__}")

        LimitValidator(self.config.limits).validate_input_size(text)

        if "{" not in text and "[" not in text:
            logger.debug("No JSON structure in input, skipping repair")
            return PipelineResult(
                content=text,
                steps=[SanitizationStep(PLAIN_TEXT_STEP, [NO_STRUCTURE_DIAGNOSTIC])],
                changed=False,
            )

        # Try standard JSON parsing first for already valid input
        value, failure = parse_json(text, 0)
        if failure is None and isinstance(value, (dict, list)):
            logger.debug("Input is already valid JSON, skipping repair")
            return PipelineResult(
                content=text, steps=[SanitizationStep(VALID_JSON_STEP)], changed=False
            )

        current = text
        steps: list[SanitizationStep] = []
        for name in STAGE_ORDER:
            stage = self.stages.get(name)
            if stage is None or not self.stage_enabled(name):
                continue
            current, diagnostics = self._run_stage(name, stage, current)
            steps.append(SanitizationStep(name, diagnostics))

        result = PipelineResult(content=current, steps=steps, changed=current != text)
        if self._is_significant(result):
            logger.info(
                f"Repaired model output: {len(result.diagnostics)} fix(es) across "
                f"{sum(1 for step in steps if step.diagnostics)} stage(s)"
            )
        return result

    def _run_stage(
        self, name: str, stage: StagePipeline, text: str
    ) -> tuple[str, list[str]]:
        """Run one stage, returning its input unchanged if it raises."""
        try:
            outcome = stage.process(text, self.config)
        except Exception as e:  # noqa: BLE001
            failure = StageFailure(name, e)
            logger.warning(failure.diagnostic)
            return text, [failure.diagnostic]

        logger.debug(
            f"Stage {name}: changed={outcome.changed}, "
            f"{len(outcome.diagnostics)} diagnostic(s)"
        )
        return outcome.content, list(outcome.diagnostics)

    @staticmethod
    def _is_significant(result: PipelineResult) -> bool:
        if not result.changed:
            return False
        return any(d not in TRIVIAL_DIAGNOSTICS for d in result.diagnostics)

    def recover(
        self, text: str, validate: Optional[SchemaPredicate] = None
    ) -> RecoveryResult:
        """Sanitize ``text`` and parse/validate the result."""
        result = self.sanitize(text)
        context_length = (
            self.config.max_error_context if self.config.include_error_context else 0
        )
        return parse_and_validate(result.content, validate, result.steps, context_length)


def sanitize(text: str, config: Optional[RepairConfig] = None) -> PipelineResult:
    """
    Repair raw model output into parseable JSON text.

    Args:
        text: Raw text returned by the model
        config: Optional repair configuration

    Returns:
        PipelineResult with the repaired content, one step per stage that ran
        and whether the content differs from the input
    """
    return RecoveryEngine(config).sanitize(text)


def recover(
    text: str,
    validate: Optional[SchemaPredicate] = None,
    config: Optional[RepairConfig] = None,
) -> RecoveryResult:
    """
    Sanitize, parse and optionally validate raw model output.

    Returns:
        RecoveryResult carrying either the parsed value or a ParseFailure /
        SchemaViolation with the sanitized text and the diagnostic trail
    """
    return RecoveryEngine(config).recover(text, validate)
