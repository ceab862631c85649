"""Unit tests for the rule condition language."""

import pytest

from risk_engine.exceptions import ConfigurationError
from risk_engine.models import UserHistory
from risk_engine.rules.conditions import (
    AllOf,
    AnyOf,
    Comparison,
    EvaluationContext,
    FieldScore,
    Not,
    compile_condition,
)


def score(source, ctx):
    return compile_condition(source).score(ctx)


class TestParsing:
    """Test suite for condition compilation."""

    def test_comparison_tree(self):
        condition = compile_condition("amount > 1000")

        assert isinstance(condition.root, Comparison)
        assert condition.root.op == ">"
        assert condition.fields == frozenset({"amount"})

    def test_precedence_and_binds_tighter_than_or(self):
        root = compile_condition("amount > 1 OR amount > 2 AND currency == 'USD'").root

        assert isinstance(root, AnyOf)
        assert isinstance(root.operands[1], AllOf)

    def test_keywords_are_case_insensitive(self):
        root = compile_condition("not (amount > 1 and hour < 6)").root

        assert isinstance(root, Not)
        assert isinstance(root.operand, AllOf)

    def test_not_in_and_lists(self):
        root = compile_condition("recipient NOT IN ['a', \"b\"]").root

        assert root.op == "NOT IN"
        assert root.right.value == ("a", "b")

    @pytest.mark.parametrize("source", [
        "amount > 1000 AND history.count_1h > 3",
        "recipient IN []",
        "NOT device.is_trusted",
        "device.is_trusted == TRUE OR amount < 5",
    ])
    def test_keyword_conditions_compile(self, source):
        assert compile_condition(source).source == source

    def test_error_reports_keyword_position(self):
        with pytest.raises(ConfigurationError) as exc_info:
            compile_condition("amount > 1 AND AND")

        assert "at position 15" in exc_info.value.message

    def test_bare_field_is_a_score(self):
        assert isinstance(compile_condition("device.risk_score").root, FieldScore)

    @pytest.mark.parametrize("source", [
        "",
        "amount >",
        "amount > 1000 AND",
        "(amount > 1",
        "amount > 1000)",
        "amount $ 5",
        "1000",
        "recipient IN [amount]",
    ])
    def test_syntax_errors(self, source):
        with pytest.raises(ConfigurationError):
            compile_condition(source)

    def test_unknown_field(self):
        with pytest.raises(ConfigurationError) as exc_info:
            compile_condition("balance > 10")

        assert "balance" in exc_info.value.message
        assert exc_info.value.field == "condition"


class TestEvaluation:
    """Test suite for the restricted interpreter."""

    def test_comparisons(self, nominal_context):
        ctx = EvaluationContext(transaction=nominal_context, count_1h=2)

        assert score("amount == 150", ctx) == 1.0
        assert score("amount > 150", ctx) == 0.0
        assert score("currency == 'USD' AND type == 'send'", ctx) == 1.0
        assert score("location.country IN ['US', 'CA']", ctx) == 1.0
        assert score("history.count_1h >= 2", ctx) == 1.0

    def test_boolean_algebra(self, nominal_context):
        ctx = EvaluationContext(transaction=nominal_context, device_score=0.4)

        assert score("device.risk_score", ctx) == pytest.approx(0.4)
        assert score("NOT device.risk_score", ctx) == pytest.approx(0.6)
        assert score("device.risk_score AND amount > 100", ctx) == pytest.approx(0.4)
        assert score("device.risk_score OR amount > 100", ctx) == 1.0

    def test_history_fields(self, nominal_context):
        ctx = EvaluationContext(transaction=nominal_context)

        assert score("history.amount_ratio < 1", ctx) == 1.0
        assert score("recipient IN history.frequent_recipients", ctx) == 1.0
        assert score("history.max_amount == 500", ctx) == 1.0

    def test_unresolved_collaborator_scores_zero(self, nominal_context):
        """A missing signal never triggers, even under negation."""
        ctx = EvaluationContext(transaction=nominal_context, count_1h=None)

        assert score("history.count_1h > 3", ctx) == 0.0
        assert score("NOT history.count_1h > 3", ctx) == 0.0
        assert score("amount > 100 AND history.count_1h > 3", ctx) == 0.0

    def test_new_user_history_is_unresolved(self, make_context):
        ctx = EvaluationContext(transaction=make_context(user_history=UserHistory()))

        assert score("history.max_amount < 100", ctx) == 0.0
        assert score("history.amount_ratio > 2", ctx) == 0.0
        assert score("history.total_transactions == 0", ctx) == 1.0

    def test_or_ignores_unresolved_operand(self, nominal_context):
        ctx = EvaluationContext(transaction=nominal_context)
        assert score("history.count_24h > 5 OR amount > 100", ctx) == 1.0

    def test_and_with_false_operand_is_resolved(self, nominal_context):
        ctx = EvaluationContext(transaction=nominal_context)
        assert compile_condition("amount > 1000 AND history.count_1h > 3").root.evaluate(ctx) == 0.0

    def test_type_mismatch_raises(self, nominal_context):
        ctx = EvaluationContext(transaction=nominal_context)

        with pytest.raises(TypeError):
            score("currency > 5", ctx)
