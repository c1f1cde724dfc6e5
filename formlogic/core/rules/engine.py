"""Rule engine for evaluating conditional rules against form data."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .conditions import ConditionEvaluator
from .models import ConditionalRule, RuleEvaluationResult
from .references import DataContext

logger = logging.getLogger(__name__)


class RuleEngine:
    """Engine that turns rule conditions into ordered, actionable results."""

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None):
        """Initialize the rule engine.

        Args:
            condition_evaluator: Evaluator for rule conditions
                (defaults to one built from settings)
        """
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

    def evaluate_rule(
        self,
        rule: ConditionalRule,
        context: DataContext,
    ) -> RuleEvaluationResult:
        """Evaluate a single rule.

        Inactive rules are not evaluated at all. Any failure while evaluating
        the condition is captured on the result instead of being raised.

        Args:
            rule: Rule to evaluate
            context: Field values to evaluate against

        Returns:
            Evaluation result for the rule
        """
        if not rule.is_active:
            logger.debug(f"Rule '{rule.id}' is inactive, skipping")
            return RuleEvaluationResult(rule=rule, is_triggered=False)

        try:
            triggered = self.condition_evaluator.evaluate(rule.condition, context)
        except Exception as e:
            logger.error(f"Error evaluating rule '{rule.id}': {e}")
            return RuleEvaluationResult(
                rule=rule,
                is_triggered=False,
                error_message=str(e) or type(e).__name__,
            )

        logger.debug(f"Rule '{rule.id}' evaluated: triggered={triggered}")
        return RuleEvaluationResult(rule=rule, is_triggered=triggered)

    def evaluate_rules(
        self,
        rules: Iterable[ConditionalRule],
        context: DataContext,
        include_errors: bool = False,
    ) -> List[RuleEvaluationResult]:
        """Evaluate rules and return the triggered ones in priority order.

        Lower priority values come first; rules sharing a priority keep
        their input order.

        Args:
            rules: Rules to evaluate
            context: Field values to evaluate against
            include_errors: Also return failed results, after the triggered ones

        Returns:
            List of evaluation results
        """
        results = [self.evaluate_rule(rule, context) for rule in rules]

        triggered = sorted(
            (r for r in results if r.is_triggered),
            key=lambda r: r.priority,
        )
        failed = [r for r in results if r.has_error]

        if failed:
            logger.warning(f"{len(failed)} rule(s) failed to evaluate")
        logger.info(f"Evaluated {len(results)} rule(s): {len(triggered)} triggered")

        if include_errors:
            return triggered + failed
        return triggered

    def evaluate_rules_for_target(
        self,
        rules: Iterable[ConditionalRule],
        context: DataContext,
        target_field_id: Optional[str] = None,
        target_step_number: Optional[int] = None,
    ) -> List[RuleEvaluationResult]:
        """Evaluate only the rules aimed at a given field or workflow step.

        Args:
            rules: Candidate rules
            context: Field values to evaluate against
            target_field_id: Keep rules targeting this field
            target_step_number: Keep rules targeting this step

        Returns:
            Triggered results in priority order
        """
        selected = [
            rule for rule in rules
            if (target_field_id is None or rule.target_field_id == target_field_id)
            and (target_step_number is None or rule.target_step_number == target_step_number)
        ]
        return self.evaluate_rules(selected, context)
