"""
Configuration and limits for jsonsalve repairs.

This module defines the limits that bound every repair pass and the switches
that enable or disable whole stages of the recovery pipeline.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class SizeLimits:
    """Input and diagnostic size limits."""
    max_input_size: int = 10 * 1024 * 1024
    max_diagnostics_per_stage: int = 10


@dataclass
class IterationLimits:
    """Bounds that guarantee termination on pathological input."""
    max_fixed_point_iterations: int = 20
    max_concat_chain: int = 50
    max_nesting_depth: int = 100
    array_context_lookback: int = 0  # 0 means scan back to the start of text


@dataclass
class RepairLimits:
    """Limits applied by the recovery pipeline."""

    size_limits: Optional[SizeLimits] = None
    iteration_limits: Optional[IterationLimits] = None

    def __init__(
        self,
        *,
        size_limits: Optional[SizeLimits] = None,
        iteration_limits: Optional[IterationLimits] = None,
        **flat_args: Any,  # Flat keyword form, e.g. RepairLimits(max_input_size=100)
    ):
        if size_limits is not None:
            self.size_limits = size_limits
        else:
            self.size_limits = SizeLimits(
                max_input_size=flat_args.get('max_input_size', 10 * 1024 * 1024),
                max_diagnostics_per_stage=flat_args.get('max_diagnostics_per_stage', 10),
            )

        if iteration_limits is not None:
            self.iteration_limits = iteration_limits
        else:
            self.iteration_limits = IterationLimits(
                max_fixed_point_iterations=flat_args.get('max_fixed_point_iterations', 20),
                max_concat_chain=flat_args.get('max_concat_chain', 50),
                max_nesting_depth=flat_args.get('max_nesting_depth', 100),
                array_context_lookback=flat_args.get('array_context_lookback', 0),
            )

        unknown = set(flat_args) - {
            'max_input_size', 'max_diagnostics_per_stage',
            'max_fixed_point_iterations', 'max_concat_chain',
            'max_nesting_depth', 'array_context_lookback',
        }
        if unknown:
            raise TypeError(f"Unknown limit(s): {', '.join(sorted(unknown))}")

        if self.size_limits.max_input_size <= 0:
            raise ValueError("max_input_size must be positive")
        if self.size_limits.max_diagnostics_per_stage <= 0:
            raise ValueError("max_diagnostics_per_stage must be positive")
        if self.iteration_limits.max_fixed_point_iterations <= 0:
            raise ValueError("max_fixed_point_iterations must be positive")
        if self.iteration_limits.max_concat_chain < 2:
            raise ValueError("max_concat_chain must be at least 2")
        if self.iteration_limits.max_nesting_depth <= 0:
            raise ValueError("max_nesting_depth must be positive")
        if self.iteration_limits.array_context_lookback < 0:
            raise ValueError("array_context_lookback must not be negative")

    @property
    def max_input_size(self) -> int:
        """Maximum input size in characters."""
        assert self.size_limits is not None
        return self.size_limits.max_input_size

    @property
    def max_diagnostics_per_stage(self) -> int:
        """Maximum diagnostics kept for a single stage."""
        assert self.size_limits is not None
        return self.size_limits.max_diagnostics_per_stage

    @property
    def max_fixed_point_iterations(self) -> int:
        """Maximum reruns of a rule that is applied until it stops changing text."""
        assert self.iteration_limits is not None
        return self.iteration_limits.max_fixed_point_iterations

    @property
    def max_concat_chain(self) -> int:
        """Maximum number of parts in a `+` chain that will be merged."""
        assert self.iteration_limits is not None
        return self.iteration_limits.max_concat_chain

    @property
    def max_nesting_depth(self) -> int:
        """Maximum number of open frames truncation completion will close."""
        assert self.iteration_limits is not None
        return self.iteration_limits.max_nesting_depth

    @property
    def array_context_lookback(self) -> int:
        """How far back array-context checks may scan (0 = unbounded)."""
        assert self.iteration_limits is not None
        return self.iteration_limits.array_context_lookback


@dataclass
class StageSettings:
    """Which pipeline stages and optional rule groups run."""
    noise_removal: bool = True
    structural_repair: bool = True
    syntax_repair: bool = True
    stray_token_cleanup: bool = True


@dataclass
class ErrorReporting:
    """Error reporting and context settings."""
    include_context: bool = True
    max_error_context: int = 50


@dataclass
class RepairConfig:
    """Configuration for the jsonsalve recovery pipeline."""

    limits: Optional[RepairLimits] = None
    stages: Optional[StageSettings] = None
    error_reporting: Optional[ErrorReporting] = None
    regex_timeout: float = 1.0

    def __post_init__(self) -> None:
        if self.limits is None:
            self.limits = RepairLimits()
        if self.stages is None:
            self.stages = StageSettings()
        if self.error_reporting is None:
            self.error_reporting = ErrorReporting()
        if self.regex_timeout <= 0:
            raise ValueError("regex_timeout must be positive")

    @property
    def max_fixed_point_iterations(self) -> int:
        assert self.limits is not None
        return self.limits.max_fixed_point_iterations

    @property
    def max_concat_chain(self) -> int:
        assert self.limits is not None
        return self.limits.max_concat_chain

    @property
    def max_nesting_depth(self) -> int:
        assert self.limits is not None
        return self.limits.max_nesting_depth

    @property
    def max_diagnostics_per_stage(self) -> int:
        assert self.limits is not None
        return self.limits.max_diagnostics_per_stage

    @property
    def array_context_lookback(self) -> int:
        assert self.limits is not None
        return self.limits.array_context_lookback

    @property
    def noise_removal(self) -> bool:
        """Whether the noise-removal stage runs."""
        assert self.stages is not None
        return self.stages.noise_removal

    @property
    def structural_repair(self) -> bool:
        """Whether the structural-repair stage runs."""
        assert self.stages is not None
        return self.stages.structural_repair

    @property
    def syntax_repair(self) -> bool:
        """Whether the syntax-repair stage runs."""
        assert self.stages is not None
        return self.stages.syntax_repair

    @property
    def stray_token_cleanup(self) -> bool:
        """Whether the long-tail stray token rules run."""
        assert self.stages is not None
        return self.stages.stray_token_cleanup

    @property
    def include_error_context(self) -> bool:
        """Whether parse failures carry a slice of the surrounding text."""
        assert self.error_reporting is not None
        return self.error_reporting.include_context

    @property
    def max_error_context(self) -> int:
        """Maximum characters of context to include in parse failures."""
        assert self.error_reporting is not None
        return self.error_reporting.max_error_context

    @classmethod
    def conservative(cls) -> "RepairConfig":
        """Create a configuration without the long-tail cleanup rules."""
        return cls(stages=StageSettings(stray_token_cleanup=False))

    @classmethod
    def aggressive(cls) -> "RepairConfig":
        """Create a configuration with raised iteration caps."""
        return cls(
            limits=RepairLimits(
                iteration_limits=IterationLimits(
                    max_fixed_point_iterations=50,
                    max_concat_chain=100,
                    max_nesting_depth=500,
                )
            )
        )

    @classmethod
    def from_stages(cls, enabled_stages: set[str]) -> "RepairConfig":
        """Create configuration with only the named stages enabled."""
        stages = StageSettings(
            noise_removal=False,
            structural_repair=False,
            syntax_repair=False,
            stray_token_cleanup=False,
        )
        for stage_name in enabled_stages:
            if not hasattr(stages, stage_name):
                raise ValueError(f"Unknown stage: {stage_name}")
            setattr(stages, stage_name, True)
        return cls(stages=stages)
