"""
Operator vocabulary of the condition/action language.

Object nodes carry exactly one operator key. Decoding happens once per
node: the node is matched against the closed operator set and turned
into (operator, operand). Nodes with several recognized keys are
reported as ambiguous instead of silently picking one.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Operator(str, Enum):
    """Condition operators."""
    EQ = "$eq"
    NOT = "$not"
    AND = "$and"
    OR = "$or"
    GT = "$gt"
    GE = "$ge"
    LT = "$lt"
    LE = "$le"
    INARRAY = "$inarray"
    ANY = "$any"
    ALL = "$all"
    AFTER = "$after"
    PUSHUNIQUE = "$pushunique"
    CONTAINS = "$contains"


class ActionOperator(str, Enum):
    """Action (mutation) operators."""
    INC = "$inc"
    DEC = "$dec"
    MUL = "$mul"
    SET = "$set"
    PUSH = "$push"
    PUSHUNIQUE = "$pushunique"
    REMOVE = "$remove"
    RESET = "$reset"


CONDITION_KEYS = frozenset(op.value for op in Operator)
ACTION_KEYS = frozenset(op.value for op in ActionOperator)

ARRAY_OPERATORS = frozenset({Operator.INARRAY, Operator.ANY, Operator.ALL})
COMPARISON_OPERATORS = frozenset({Operator.GT, Operator.GE, Operator.LT, Operator.LE})


@dataclass(frozen=True)
class DecodedNode:
    """An object node split into its operator and operand."""
    operator: Operator | None
    operand: Any = None
    keys: tuple[str, ...] = ()

    @property
    def is_ambiguous(self) -> bool:
        return len(self.keys) > 1

    @property
    def is_unhandled(self) -> bool:
        return not self.keys


def decode_node(node: Mapping[str, Any]) -> DecodedNode:
    """Decode an object node against the condition operator set."""
    keys = tuple(key for key in node if key in CONDITION_KEYS)

    if len(keys) != 1:
        return DecodedNode(operator=None, keys=keys)

    key = keys[0]
    return DecodedNode(operator=Operator(key), operand=node[key], keys=keys)


def decode_action(key: str) -> ActionOperator | None:
    """Map an action bag key to its operator, or None if unrecognized."""
    if key in ACTION_KEYS:
        return ActionOperator(key)
    return None
