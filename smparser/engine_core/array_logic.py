"""
Array Logic - `$inarray`, `$any` and `$all`.

Operands come in two shapes:

    {"$any": ["$Targets", {"$eq": ["$.#", "Guard"]}]}
    {"$any": {"in": "$Targets", "?": {"$eq": ["$.#", "Guard"]}}}

While the element condition is evaluated, the current element is bound in
the scope under the key for the new loop depth, which is what "$.#" and
"$.Prop" resolve against.
"""

from __future__ import annotations
from collections import ChainMap
from collections.abc import Mapping
from typing import Any, Callable, TYPE_CHECKING

from .operators import Operator
from .resolution import loop_key

if TYPE_CHECKING:
    from .options import EvaluationOptions

EvaluateWithPath = Callable[[Any, Any, "EvaluationOptions", str], Any]


def split_array_operand(operand: Any) -> tuple[Any, Any] | None:
    """Return (array reference, element condition), or None if malformed."""
    if isinstance(operand, list) and len(operand) == 2:
        return operand[0], operand[1]
    if isinstance(operand, Mapping) and "in" in operand and "?" in operand:
        return operand["in"], operand["?"]
    return None


def evaluate_array_op(
    evaluate_with_path: EvaluateWithPath,
    op: Operator,
    operand: Any,
    context: Any,
    options: EvaluationOptions,
) -> bool:
    """Evaluate one of the array-quantified operators."""
    parts = split_array_operand(operand)
    if parts is None:
        options.logger("validation", f"{op.value} expects [array, condition]")
        return False

    array_ref, condition = parts
    array = evaluate_with_path(array_ref, context, options, f"{op.value}[0]")

    if not isinstance(array, list):
        return False

    # Depth lives on the copied options, so the caller's depth is untouched.
    element_options = options.enter_loop()
    key = loop_key(element_options.loop_depth)
    label = f"{op.value}[1]"

    for item in array:
        scope = ChainMap({key: item}, context)
        matched = bool(evaluate_with_path(condition, scope, element_options, label))

        if op is Operator.ALL:
            if not matched:
                return False
        elif matched:
            return True

    return op is Operator.ALL
