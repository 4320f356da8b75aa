"""
Action Executor - applies action bags to a context.

An action bag is an object whose keys are mutation operators:

    {"$inc": "Kills", "$push": ["KilledTargets", "$Value.RepositoryId"]}

Keys are applied in the bag's own order against the same context, so each
operator sees the mutations of the ones before it. The context is mutated
in place and returned. Arrays are copied before they are changed
(copy-on-write per array), so array references observed before the call
keep their old contents.

Malformed operands are skipped and reported under "validation"; unknown
keys are reported under "unhandled". The only error raised is
MissingOriginalContextError for `$reset` without a snapshot, and it is
raised before any bag is applied.
"""

from __future__ import annotations
from collections import ChainMap
from collections.abc import Mapping, MutableMapping
from typing import Any

from .errors import MissingOriginalContextError
from .operators import ActionOperator, decode_action
from .options import ActionOptions
from .resolution import is_number, strip_marker


class ActionExecutor:
    """
    Applies action bags.

    Stateless - the context and options are passed to every call.
    """

    def apply(
        self,
        bag: Any,
        context: MutableMapping[str, Any],
        options: ActionOptions | None = None,
    ) -> MutableMapping[str, Any]:
        """
        Apply one action bag to the context.

        Args:
            bag: Action bag (anything that isn't an object is ignored)
            context: Context to mutate
            options: Action options

        Returns:
            The same context object
        """
        if not isinstance(bag, Mapping):
            return context

        opts = options or ActionOptions()
        self._check_reset([bag], opts)

        for key, operand in bag.items():
            op = decode_action(key)
            if op is None:
                opts.logger("unhandled", f"Unhandled action: '{key}'")
                continue

            handler = self._get_handler(op)
            handler(op, operand, context, opts)

        return context

    def apply_all(
        self,
        bags: Any,
        context: MutableMapping[str, Any],
        options: ActionOptions | None = None,
    ) -> MutableMapping[str, Any]:
        """Apply a single bag or an ordered list of bags."""
        if bags is None:
            return context
        if not isinstance(bags, list):
            bags = [bags]
        self._check_reset(bags, options or ActionOptions())
        for bag in bags:
            self.apply(bag, context, options)
        return context

    def _get_handler(self, op: ActionOperator):
        """Get handler function for an action operator."""
        handlers = {
            ActionOperator.INC: self._handle_inc_dec,
            ActionOperator.DEC: self._handle_inc_dec,
            ActionOperator.MUL: self._handle_mul,
            ActionOperator.SET: self._handle_set,
            ActionOperator.PUSH: self._handle_push,
            ActionOperator.PUSHUNIQUE: self._handle_push,
            ActionOperator.REMOVE: self._handle_remove,
            ActionOperator.RESET: self._handle_reset,
        }
        return handlers[op]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_reset(self, bags: list[Any], options: ActionOptions) -> None:
        """Fail before any write when a $reset has nothing to restore from."""
        if options.original_context is not None:
            return
        for bag in bags:
            if isinstance(bag, Mapping) and isinstance(bag.get(ActionOperator.RESET.value), str):
                raise MissingOriginalContextError(bag[ActionOperator.RESET.value])

    def _read_scope(self, context: Mapping[str, Any], options: ActionOptions) -> Mapping[str, Any]:
        """Scope for read-only operands: the context, then the extra scope."""
        if options.scope is None:
            return context
        return ChainMap(context, options.scope)

    def _read(self, operand: Any, context: Mapping[str, Any], options: ActionOptions) -> Any:
        return options.resolver.resolve(operand, self._read_scope(context, options), for_write=False)

    def _target(self, reference: str, context: Mapping[str, Any], options: ActionOptions) -> Any:
        return options.resolver.resolve(reference, context, for_write=True)

    def _reference_and_value(
        self, op: ActionOperator, operand: Any, options: ActionOptions
    ) -> tuple[str, Any] | None:
        if isinstance(operand, list) and len(operand) == 2 and isinstance(operand[0], str):
            return operand[0], operand[1]
        options.logger("validation", f"{op.value} expects [reference, value], got {operand!r}")
        return None

    # =========================================================================
    # Operators
    # =========================================================================

    def _handle_inc_dec(self, op, operand, context, options: ActionOptions) -> None:
        if isinstance(operand, str):
            reference, amount = operand, 1
        elif isinstance(operand, list) and len(operand) == 2 and isinstance(operand[0], str):
            reference = operand[0]
            amount = self._read(operand[1], context, options)
        else:
            options.logger("validation", f"{op.value} expects a reference or [reference, amount]")
            return

        current = self._target(reference, context, options)
        if not is_number(current):
            options.logger("validation", f"{op.value} target '{reference}' is not a number: {current!r}")
            return
        if not is_number(amount):
            options.logger("validation", f"{op.value} amount is not a number: {amount!r}")
            return

        new_value = current + amount if op is ActionOperator.INC else current - amount
        options.resolver.write(context, reference, new_value)

    def _handle_mul(self, op, operand, context, options: ActionOptions) -> None:
        # [a, b] writes back to a; [a, b, target] writes to target.
        if not isinstance(operand, list) or len(operand) not in (2, 3):
            options.logger("validation", f"$mul expects [a, b] or [a, b, target], got {operand!r}")
            return

        reference = operand[2] if len(operand) == 3 else operand[0]
        if not isinstance(reference, str):
            options.logger("validation", f"$mul target is not a reference: {reference!r}")
            return

        # The first operand may get written to, the second one is purely a read.
        first = options.resolver.resolve(operand[0], context, for_write=True)
        second = self._read(operand[1], context, options)

        if not is_number(first) or not is_number(second):
            options.logger("validation", f"$mul operands are not numbers: {first!r}, {second!r}")
            return

        options.resolver.write(context, reference, first * second)

    def _handle_set(self, op, operand, context, options: ActionOptions) -> None:
        pair = self._reference_and_value(op, operand, options)
        if pair is None:
            return

        reference, raw_value = pair
        value = self._read(raw_value, context, options)
        options.resolver.write(context, reference, options.clone(value))

    def _handle_push(self, op, operand, context, options: ActionOptions) -> None:
        pair = self._reference_and_value(op, operand, options)
        if pair is None:
            return

        reference = strip_marker(pair[0])
        value = self._read(pair[1], context, options)

        array = options.clone(self._target(reference, context, options))
        if not isinstance(array, list):
            options.logger("validation", f"{op.value} target '{reference}' is not an array")
            return

        if op is ActionOperator.PUSHUNIQUE and value in array:
            return

        array.append(value)
        options.resolver.write(context, reference, array)

    def _handle_remove(self, op, operand, context, options: ActionOptions) -> None:
        pair = self._reference_and_value(op, operand, options)
        if pair is None:
            return

        reference = strip_marker(pair[0])
        value = self._read(pair[1], context, options)

        array = options.clone(self._target(reference, context, options))
        if not isinstance(array, list):
            options.logger("validation", f"$remove target '{reference}' is not an array")
            return

        options.resolver.write(context, reference, [item for item in array if item != value])

    def _handle_reset(self, op, operand, context, options: ActionOptions) -> None:
        if not isinstance(operand, str):
            options.logger("validation", f"$reset expects a reference, got {operand!r}")
            return

        if options.original_context is None:
            raise MissingOriginalContextError(operand)

        value = options.resolver.resolve(operand, options.original_context, for_write=True)
        options.resolver.write(context, operand, options.clone(value))


_default_executor = ActionExecutor()


def handle_actions(
    bag: Any,
    context: MutableMapping[str, Any],
    options: ActionOptions | None = None,
) -> MutableMapping[str, Any]:
    """
    Apply an action bag (or list of bags) with the default executor.

    Example:
        context = {"Number": 8}
        handle_actions({"$inc": "Number"}, context)
        # context is now {"Number": 9}
    """
    return _default_executor.apply_all(bag, context, options)
