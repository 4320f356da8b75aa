"""
Expression Evaluator for condition trees.

Evaluates the structured condition nodes used by state machine handlers.
Inputs are already trees (decoded JSON), never source text.

Supports:
- Scalars: numbers, booleans, null (returned unchanged)
- References: strings, resolved through the VariableResolver
- Sequences: evaluated element-wise
- Comparisons: $eq, $gt, $ge, $lt, $le
- Boolean operators: $and, $or, $not
- Strings: $contains
- Arrays: $inarray, $any, $all
- Timers: $after
- Consumer hook: $pushunique

Every node visited is reported to the logger sink as a "visit" entry
before evaluation and a "trace" entry with its value afterwards.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from .array_logic import evaluate_array_op
from .errors import EvaluationError
from .operators import Operator, ARRAY_OPERATORS, COMPARISON_OPERATORS, decode_node
from .options import EvaluationOptions
from .timers import evaluate_after


class ExpressionEvaluator:
    """
    Evaluates condition trees against a context.

    Stateless: everything that varies between calls travels in the
    EvaluationOptions (including the Timer Registry).
    """

    def evaluate(self, node: Any, context: Any, options: EvaluationOptions | None = None) -> Any:
        """
        Evaluate a condition tree.

        Args:
            node: Condition node (scalar, reference, sequence or operator object)
            context: Mapping the references resolve against
            options: Evaluation options

        Returns:
            The node's value; operator nodes produce booleans
        """
        if context is None:
            raise EvaluationError("Context is missing")

        return self.evaluate_with_path(node, context, options or EvaluationOptions(), "")

    def evaluate_with_path(
        self,
        node: Any,
        context: Any,
        options: EvaluationOptions,
        label: str,
    ) -> Any:
        """Evaluate a child node labeled `label`, with visit/trace logging."""
        child_options = options.child(label) if label else options
        display_path = child_options.display_path

        child_options.logger("visit", f"Visiting {display_path}")
        result = self._evaluate_node(node, context, child_options)
        child_options.logger("trace", f"{display_path} evaluated to: {result}")
        return result

    def _evaluate_node(self, node: Any, context: Any, options: EvaluationOptions) -> Any:
        if node is None or isinstance(node, (bool, int, float)):
            return node

        if isinstance(node, str):
            return options.resolver.resolve(
                node, context, for_write=False, loop_depth=options.loop_depth
            )

        if isinstance(node, list):
            return [
                self.evaluate_with_path(item, context, options, f"[{index}]")
                for index, item in enumerate(node)
            ]

        if isinstance(node, Mapping):
            decoded = decode_node(node)

            if decoded.is_ambiguous:
                options.logger(
                    "validation",
                    f"Ambiguous node with several operators: {', '.join(decoded.keys)}",
                )
                return False

            if decoded.operator is not None:
                return self._evaluate_operator(decoded.operator, decoded.operand, context, options)

        options.logger("unhandled", f"Unhandled test: '{node}'")
        return False

    def _evaluate_operator(
        self,
        op: Operator,
        operand: Any,
        context: Any,
        options: EvaluationOptions,
    ) -> Any:
        if op is Operator.EQ:
            return self._evaluate_eq(operand, context, options)

        if op is Operator.NOT:
            return not self.evaluate_with_path(operand, context, options, "$not")

        if op is Operator.AND:
            return all(
                self.evaluate_with_path(item, context, options, f"$and[{index}]")
                for index, item in enumerate(self._operands(op, operand, options))
            )

        if op is Operator.OR:
            return any(
                self.evaluate_with_path(item, context, options, f"$or[{index}]")
                for index, item in enumerate(self._operands(op, operand, options))
            )

        if op in COMPARISON_OPERATORS:
            return self._evaluate_comparison(op, operand, context, options)

        if op in ARRAY_OPERATORS:
            return evaluate_array_op(self.evaluate_with_path, op, operand, context, options)

        if op is Operator.AFTER:
            return evaluate_after(self.evaluate_with_path, operand, context, options)

        if op is Operator.PUSHUNIQUE:
            return self._evaluate_push_unique(operand, context, options)

        if op is Operator.CONTAINS:
            return self._evaluate_contains(operand, context, options)

        options.logger("unhandled", f"Unhandled operator: {op.value}")
        return False

    def _operands(self, op: Operator, operand: Any, options: EvaluationOptions) -> list[Any]:
        """The operand list of a variadic operator."""
        if isinstance(operand, list):
            return operand
        options.logger("validation", f"{op.value} expects a list, got {operand!r}")
        return [operand]

    def _pair(self, op: Operator, operand: Any, options: EvaluationOptions) -> tuple[Any, Any] | None:
        """The two operands of a binary operator."""
        if isinstance(operand, list) and len(operand) >= 2:
            return operand[0], operand[1]
        options.logger("validation", f"{op.value} expects two operands, got {operand!r}")
        return None

    def _evaluate_eq(self, operand: Any, context: Any, options: EvaluationOptions) -> bool:
        if not isinstance(operand, list) or not operand:
            options.logger("validation", f"$eq expects a list, got {operand!r}")
            return False

        # Sequences are not comparable.
        if any(isinstance(item, list) for item in operand):
            options.logger("validation", "attempted to compare arrays (can't!)")
            return False

        reference = self.evaluate_with_path(operand[0], context, options, "$eq[0]")
        if reference is None:
            return False

        return all(
            self.evaluate_with_path(item, context, options, f"$eq[{index}]") == reference
            for index, item in enumerate(operand)
            if index > 0
        )

    def _evaluate_comparison(
        self,
        op: Operator,
        operand: Any,
        context: Any,
        options: EvaluationOptions,
    ) -> bool:
        pair = self._pair(op, operand, options)
        if pair is None:
            return False

        label = op.value
        left = self.evaluate_with_path(pair[0], context, options, f"{label}[0]")
        right = self.evaluate_with_path(pair[1], context, options, f"{label}[1]")
        return self._compare(op, left, right, options)

    def _compare(self, op: Operator, left: Any, right: Any, options: EvaluationOptions) -> bool:
        """Perform comparison operation."""
        try:
            if op is Operator.GT:
                return left > right
            elif op is Operator.GE:
                return left >= right
            elif op is Operator.LT:
                return left < right
            elif op is Operator.LE:
                return left <= right
        except TypeError:
            options.logger(
                "validation",
                f"{op.value} cannot compare {type(left).__name__} with {type(right).__name__}",
            )
            return False
        return False

    def _evaluate_push_unique(self, operand: Any, context: Any, options: EvaluationOptions) -> Any:
        pair = self._pair(Operator.PUSHUNIQUE, operand, options)
        if pair is None:
            return False

        value = self.evaluate_with_path(pair[1], context, options, "$pushunique[1]")
        if options.push_unique is None:
            return None
        return options.push_unique(pair[0], value)

    def _evaluate_contains(self, operand: Any, context: Any, options: EvaluationOptions) -> bool:
        pair = self._pair(Operator.CONTAINS, operand, options)
        if pair is None:
            return False

        first = self.evaluate_with_path(pair[0], context, options, "$contains[0]")
        second = self.evaluate_with_path(pair[1], context, options, "$contains[1]")

        if isinstance(first, str):
            return str(second) in first
        return False


_default_evaluator = ExpressionEvaluator()


# Convenience function
def evaluate(node: Any, context: Any, options: EvaluationOptions | None = None, **overrides: Any) -> Any:
    """
    Evaluate a condition tree with the default evaluator.

    Args:
        node: Condition tree
        context: Context (and constants) to resolve references against
        options: Optional EvaluationOptions
        **overrides: Fields to override on the options, e.g. timers=...

    Returns:
        Evaluated value
    """
    opts = options or EvaluationOptions()
    if overrides:
        opts = replace(opts, **overrides)
    return _default_evaluator.evaluate(node, context, opts)
