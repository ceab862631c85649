"""Pattern/Rule Engine.

Evaluates enabled rules of active patterns against an evaluation context. A
pattern yields one behavioral risk factor when at least one of its rules
scores at or above the rule threshold.

Pattern and rule definitions are published as an immutable snapshot that is
swapped on every registration or update, so an assessment that captured a
snapshot is unaffected by concurrent tuning. Trigger counters live on the
registered objects and are incremented under per-rule and per-pattern locks.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..exceptions import ConfigurationError, NotFoundError, RuleEvaluationFault
from ..models import (
    FactorCategory,
    FraudFactor,
    FraudPattern,
    FraudRule,
    PatternUpdate,
    RiskLevel,
    RuleUpdate,
)
from .conditions import Condition, EvaluationContext, compile_condition

logger = logging.getLogger(__name__)

FaultListener = Callable[[RuleEvaluationFault], None]


@dataclass(frozen=True)
class RuleSnapshot:
    rule_id: str
    name: str
    condition: Condition
    weight: float
    threshold: float
    is_enabled: bool


@dataclass(frozen=True)
class PatternSnapshot:
    pattern_id: str
    name: str
    description: str
    risk_level: RiskLevel
    is_active: bool
    rules: Tuple[RuleSnapshot, ...]


@dataclass(frozen=True)
class EngineSnapshot:
    """Immutable view of all pattern and rule definitions."""
    patterns: Tuple[PatternSnapshot, ...] = ()


@dataclass(frozen=True)
class TriggeredRule:
    rule_id: str
    name: str
    score: float
    weight: float


@dataclass(frozen=True)
class PatternMatch:
    """A pattern with at least one triggered rule."""

    pattern_id: str
    pattern_name: str
    description: str
    risk_level: RiskLevel
    triggered_rules: Tuple[TriggeredRule, ...]
    pattern_score: float

    def to_factor(self) -> FraudFactor:
        """Convert the match into a behavioral risk factor.

        The factor weight is the mean score of the triggered rules and the
        impact is the pattern score scaled to 0-100.
        """
        scores = [rule.score for rule in self.triggered_rules]
        weight = sum(scores) / len(scores)
        return FraudFactor(
            name=self.pattern_name,
            description=self.description or f"Matched fraud pattern {self.pattern_name}",
            category=FactorCategory.BEHAVIORAL,
            weight=min(1.0, max(0.0, weight)),
            impact=min(100.0, max(0.0, self.pattern_score * 100.0)),
            evidence={
                "pattern_id": self.pattern_id,
                "pattern_risk_level": self.risk_level.value,
                "triggered_rules": [rule.rule_id for rule in self.triggered_rules],
                "pattern_score": round(self.pattern_score, 4),
            },
        )


def _configuration_error(exc: ValidationError, subject: str) -> ConfigurationError:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"])
    return ConfigurationError(f"Invalid {subject}: {field}: {error['msg']}", field=field)


class PatternRuleEngine:
    """Registry and evaluator for fraud patterns."""

    def __init__(self,
                 patterns: Optional[Iterable[Union[FraudPattern, Dict[str, Any]]]] = None,
                 fault_listener: Optional[FaultListener] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize the engine.

        Args:
            patterns: Patterns to register, in evaluation order
            fault_listener: Called for every rule evaluation fault
            clock: Source of trigger timestamps
        """
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._fault_listener = fault_listener

        self._patterns: Dict[str, FraudPattern] = {}
        self._rules: Dict[str, FraudRule] = {}
        self._rule_owner: Dict[str, str] = {}
        self._conditions: Dict[str, Condition] = {}

        self._registry_lock = threading.RLock()
        self._pattern_locks: Dict[str, threading.Lock] = {}
        self._rule_locks: Dict[str, threading.Lock] = {}
        self._snapshot = EngineSnapshot()

        for pattern in patterns or ():
            self.register_pattern(pattern)

    # Snapshot

    def snapshot(self) -> EngineSnapshot:
        """Current immutable view of the definitions."""
        return self._snapshot

    def _publish(self) -> None:
        patterns = []
        for pattern in self._patterns.values():
            rules = tuple(
                RuleSnapshot(
                    rule_id=rule.id,
                    name=rule.name,
                    condition=self._conditions[rule.id],
                    weight=rule.weight,
                    threshold=rule.threshold,
                    is_enabled=rule.is_enabled,
                )
                for rule in pattern.rules
            )
            patterns.append(PatternSnapshot(
                pattern_id=pattern.id,
                name=pattern.name,
                description=pattern.description,
                risk_level=RiskLevel(pattern.risk_level),
                is_active=pattern.is_active,
                rules=rules,
            ))
        self._snapshot = EngineSnapshot(patterns=tuple(patterns))

    # Evaluation

    def evaluate(self,
                 ctx: EvaluationContext,
                 snapshot: Optional[EngineSnapshot] = None) -> List[PatternMatch]:
        """Evaluate every active pattern against a context.

        Args:
            ctx: Evaluation context
            snapshot: Definitions to evaluate; defaults to the current snapshot

        Returns:
            Matches in registration order
        """
        snapshot = snapshot or self._snapshot
        matches: List[PatternMatch] = []

        for pattern in snapshot.patterns:
            if not pattern.is_active:
                continue

            triggered: List[TriggeredRule] = []
            pattern_score = 0.0
            for rule in pattern.rules:
                if not rule.is_enabled:
                    continue

                score = self._score_rule(rule, ctx)
                if score is None or score < rule.threshold:
                    continue

                triggered.append(TriggeredRule(rule.rule_id, rule.name, score, rule.weight))
                pattern_score += rule.weight * score
                self._record_rule_trigger(rule.rule_id)

            if triggered:
                self._record_pattern_detection(pattern.pattern_id)
                matches.append(PatternMatch(
                    pattern_id=pattern.pattern_id,
                    pattern_name=pattern.name,
                    description=pattern.description,
                    risk_level=pattern.risk_level,
                    triggered_rules=tuple(triggered),
                    pattern_score=pattern_score,
                ))

        return matches

    def _score_rule(self, rule: RuleSnapshot, ctx: EvaluationContext) -> Optional[float]:
        try:
            return rule.condition.score(ctx)
        except Exception as e:
            fault = RuleEvaluationFault(rule.rule_id, str(e))
            logger.warning(fault.message, extra={"rule_id": rule.rule_id})
            if self._fault_listener is not None:
                self._fault_listener(fault)
            return None

    def _record_rule_trigger(self, rule_id: str) -> None:
        with self._lock(self._rule_locks, rule_id):
            rule = self._rules.get(rule_id)
            if rule is not None:
                rule.trigger_count += 1
                rule.last_triggered = self._clock()

    def _record_pattern_detection(self, pattern_id: str) -> None:
        with self._lock(self._pattern_locks, pattern_id):
            pattern = self._patterns.get(pattern_id)
            if pattern is not None:
                pattern.frequency += 1
                pattern.last_detected = self._clock()

    def _lock(self, locks: Dict[str, threading.Lock], key: str) -> threading.Lock:
        lock = locks.get(key)
        if lock is None:
            with self._registry_lock:
                lock = locks.setdefault(key, threading.Lock())
        return lock

    # Registration and tuning

    def register_pattern(self, pattern: Union[FraudPattern, Dict[str, Any]]) -> FraudPattern:
        """Register a new pattern after validating all of its rules.

        Raises:
            ConfigurationError: On invalid values, bad conditions or duplicate ids
        """
        try:
            pattern = FraudPattern.model_validate(
                pattern.model_dump() if isinstance(pattern, FraudPattern) else pattern
            )
        except ValidationError as e:
            raise _configuration_error(e, "pattern") from e

        with self._registry_lock:
            if pattern.id in self._patterns:
                raise ConfigurationError(f"Pattern '{pattern.id}' already registered", field="id")
            conditions = self._compile_rules(pattern.rules, owner=pattern.id)

            self._patterns[pattern.id] = pattern
            for rule in pattern.rules:
                self._rules[rule.id] = rule
                self._rule_owner[rule.id] = pattern.id
            self._conditions.update(conditions)
            self._publish()

        logger.info(f"Registered fraud pattern: {pattern.id} ({len(pattern.rules)} rules)")
        return pattern.model_copy(deep=True)

    def _compile_rules(self, rules: List[FraudRule], owner: str) -> Dict[str, Condition]:
        conditions: Dict[str, Condition] = {}
        for rule in rules:
            if rule.id in conditions:
                raise ConfigurationError(f"Duplicate rule id '{rule.id}'", field="rules")
            current_owner = self._rule_owner.get(rule.id)
            if current_owner is not None and current_owner != owner:
                raise ConfigurationError(
                    f"Rule '{rule.id}' already belongs to pattern '{current_owner}'", field="rules"
                )
            conditions[rule.id] = compile_condition(rule.condition)
        return conditions

    def update_pattern(self, pattern_id: str, update: Union[PatternUpdate, Dict[str, Any]]) -> FraudPattern:
        """Apply a partial update to a pattern.

        Counters are preserved. Supplying ``rules`` replaces the rule list;
        rules keeping their id keep their trigger counters.

        Raises:
            NotFoundError: If the pattern does not exist
            ConfigurationError: If the update is invalid
        """
        try:
            if isinstance(update, dict):
                update = PatternUpdate.model_validate(update)
        except ValidationError as e:
            raise _configuration_error(e, "pattern update") from e

        changes = update.model_dump(exclude_unset=True)

        with self._registry_lock:
            current = self._patterns.get(pattern_id)
            if current is None:
                raise NotFoundError("Pattern", pattern_id)

            new_rules = changes.pop("rules", None)
            conditions: Dict[str, Condition] = {}
            if new_rules is not None:
                rules = [FraudRule.model_validate(rule) for rule in new_rules]
                conditions = self._compile_rules(rules, owner=pattern_id)

            with self._lock(self._pattern_locks, pattern_id):
                try:
                    candidate = FraudPattern.model_validate({**current.model_dump(), **changes})
                except ValidationError as e:
                    raise _configuration_error(e, "pattern update") from e

                if new_rules is not None:
                    candidate.rules = self._carry_rule_counters(rules)
                    for rule_id in [r.id for r in current.rules]:
                        self._rules.pop(rule_id, None)
                        self._rule_owner.pop(rule_id, None)
                        self._conditions.pop(rule_id, None)
                else:
                    candidate.rules = current.rules

                for rule in candidate.rules:
                    self._rules[rule.id] = rule
                    self._rule_owner[rule.id] = pattern_id
                self._conditions.update(conditions)
                self._patterns[pattern_id] = candidate

            self._publish()

        logger.info(f"Updated fraud pattern {pattern_id}: {sorted(changes) + (['rules'] if new_rules is not None else [])}")
        return candidate.model_copy(deep=True)

    def _carry_rule_counters(self, rules: List[FraudRule]) -> List[FraudRule]:
        carried = []
        for rule in rules:
            existing = self._rules.get(rule.id)
            if existing is not None:
                with self._lock(self._rule_locks, rule.id):
                    rule.trigger_count = max(rule.trigger_count, existing.trigger_count)
                    rule.last_triggered = existing.last_triggered or rule.last_triggered
            carried.append(rule)
        return carried

    def update_rule(self, rule_id: str, update: Union[RuleUpdate, Dict[str, Any]]) -> FraudRule:
        """Apply a partial update to a rule.

        Raises:
            NotFoundError: If the rule does not exist
            ConfigurationError: If the update is invalid
        """
        try:
            if isinstance(update, dict):
                update = RuleUpdate.model_validate(update)
        except ValidationError as e:
            raise _configuration_error(e, "rule update") from e

        changes = update.model_dump(exclude_unset=True)

        with self._registry_lock:
            current = self._rules.get(rule_id)
            if current is None:
                raise NotFoundError("Rule", rule_id)

            condition = compile_condition(changes["condition"]) if "condition" in changes else None

            with self._lock(self._rule_locks, rule_id):
                try:
                    candidate = FraudRule.model_validate({**current.model_dump(), **changes})
                except ValidationError as e:
                    raise _configuration_error(e, "rule update") from e

                pattern = self._patterns[self._rule_owner[rule_id]]
                pattern.rules = [candidate if r.id == rule_id else r for r in pattern.rules]
                self._rules[rule_id] = candidate
                if condition is not None:
                    self._conditions[rule_id] = condition

            self._publish()

        logger.info(f"Updated fraud rule {rule_id}: {sorted(changes)}")
        return candidate.model_copy(deep=True)

    # Queries

    def get_patterns(self) -> List[FraudPattern]:
        """Copies of all patterns in registration order."""
        with self._registry_lock:
            return [pattern.model_copy(deep=True) for pattern in self._patterns.values()]

    def get_pattern(self, pattern_id: str) -> FraudPattern:
        with self._registry_lock:
            pattern = self._patterns.get(pattern_id)
            if pattern is None:
                raise NotFoundError("Pattern", pattern_id)
            return pattern.model_copy(deep=True)

    def get_rules(self, pattern_id: Optional[str] = None) -> List[FraudRule]:
        """Copies of all rules, optionally restricted to one pattern."""
        with self._registry_lock:
            if pattern_id is not None:
                if pattern_id not in self._patterns:
                    raise NotFoundError("Pattern", pattern_id)
                patterns = [self._patterns[pattern_id]]
            else:
                patterns = list(self._patterns.values())
            return [rule.model_copy(deep=True) for pattern in patterns for rule in pattern.rules]
