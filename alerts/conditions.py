"""Threshold condition evaluation."""
from models.enums import Operator

OPERATOR_MAP = {
    Operator.GT.value: lambda v, t: v > t,
    Operator.LT.value: lambda v, t: v < t,
    Operator.GTE.value: lambda v, t: v >= t,
    Operator.LTE.value: lambda v, t: v <= t,
    Operator.EQ.value: lambda v, t: v == t,
    Operator.NE.value: lambda v, t: v != t,
}

SUPPORTED_OPERATORS = frozenset(OPERATOR_MAP)


def evaluate_condition(operator, value, threshold):
    """Return True when `value <operator> threshold` holds.

    Unknown operators never match, so one malformed rule cannot stop
    its siblings from being evaluated.
    """
    func = OPERATOR_MAP.get(operator)
    if func is None:
        return False
    return func(value, threshold)
