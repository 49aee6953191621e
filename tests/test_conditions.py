"""Tests for threshold condition evaluation."""
import pytest
from alerts.conditions import evaluate_condition, SUPPORTED_OPERATORS


@pytest.mark.parametrize("op, value, threshold, expected", [
    (">", 35.5, 30, True), (">", 30, 30, False),
    ("<", 10, 16, True), ("<", 16, 16, False),
    (">=", 30, 30, True), (">=", 29.9, 30, False),
    ("<=", 16, 16, True), ("<=", 16.1, 16, False),
    ("==", 21.5, 21.5, True), ("==", 21.5, 21.50001, False),
    ("!=", 1, 2, True), ("!=", 2, 2, False),
])
def test_operators(op, value, threshold, expected):
    assert evaluate_condition(op, value, threshold) is expected


@pytest.mark.parametrize("op", ["", "=>", "gt", "===", None, "> "])
def test_unknown_operator_never_matches(op):
    assert evaluate_condition(op, 100, 0) is False


def test_supported_operators():
    assert SUPPORTED_OPERATORS == {">", "<", ">=", "<=", "==", "!="}
