"""
jsonsalve - recovers JSON objects from raw language-model output.

Model responses often wrap JSON in prose or code fences, get cut off mid
value, drop quotes and commas, or invent their own syntax. jsonsalve runs a
fixed three-stage repair pipeline over such text and hands the result to the
standard ``json`` parser, reporting every fix it made along the way.

Quick Start:
    import jsonsalve

    result = jsonsalve.sanitize('Here you go:\\n```json\\n{"a": 1,}\\n```')
    result.content      # '{"a": 1}'
    result.diagnostics  # what was fixed, per stage

    outcome = jsonsalve.recover(raw_text, validate=lambda v: "name" in v)
    if outcome.success:
        use(outcome.value)

    # Conservative mode skips the long-tail stray token rules
    jsonsalve.sanitize(raw_text, config=jsonsalve.RepairConfig.conservative())
"""

from .core.engine import (
    PipelineResult,
    RecoveryEngine,
    SanitizationStep,
    recover,
    sanitize,
)
from .preprocessing.property_names import FragmentResolver, PropertyNameTable
from .security.exceptions import (
    ErrorKind,
    JsonRecoveryError,
    JsonSalveError,
    SecurityError,
)
from .utils.config import (
    ErrorReporting,
    IterationLimits,
    RepairConfig,
    RepairLimits,
    SizeLimits,
    StageSettings,
)
from .validation.validator import (
    ParseFailure,
    RecoveryResult,
    SchemaViolation,
    parse_and_validate,
    parse_json,
)

__version__ = "0.1.0"
__author__ = "jsonsalve contributors"

__all__ = [
    # Pipeline entry points
    "sanitize", "recover", "RecoveryEngine", "PipelineResult", "SanitizationStep",

    # Validator boundary
    "parse_json", "parse_and_validate", "RecoveryResult", "ParseFailure",
    "SchemaViolation",

    # Configuration
    "RepairConfig", "RepairLimits", "SizeLimits", "IterationLimits",
    "StageSettings", "ErrorReporting",

    # Property name tables
    "PropertyNameTable", "FragmentResolver",

    # Exceptions
    "JsonSalveError", "SecurityError", "JsonRecoveryError", "ErrorKind",
]
