"""Pattern/Rule Engine and its condition language."""

from .conditions import EvaluationContext, Condition, FIELD_RESOLVERS, compile_condition
from .engine import (
    PatternRuleEngine,
    EngineSnapshot,
    PatternMatch,
    TriggeredRule,
)
from .defaults import build_default_patterns

__all__ = [
    "EvaluationContext",
    "Condition",
    "FIELD_RESOLVERS",
    "compile_condition",
    "PatternRuleEngine",
    "EngineSnapshot",
    "PatternMatch",
    "TriggeredRule",
    "build_default_patterns",
]
