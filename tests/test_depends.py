from __future__ import annotations

import pytest

from vkgen.depends import (
    And,
    DependsSyntaxError,
    Feature,
    Or,
    evaluate,
    feature_names,
    parse_depends,
)


def test_single_name() -> None:
    assert parse_depends("VK_KHR_surface") == Feature("VK_KHR_surface")


def test_plus_binds_tighter_than_comma() -> None:
    assert parse_depends("A+B,C") == Or((And((Feature("A"), Feature("B"))), Feature("C")))


def test_parentheses_override_precedence() -> None:
    assert parse_depends("(A,B)+C") == And((Or((Feature("A"), Feature("B"))), Feature("C")))


def test_chains_flatten() -> None:
    assert parse_depends("A+B+C") == And((Feature("A"), Feature("B"), Feature("C")))
    assert parse_depends("A,B,C") == Or((Feature("A"), Feature("B"), Feature("C")))


def test_version_and_feature_names_with_colons() -> None:
    expr = parse_depends("VK_VERSION_1_1+VK_KHR_maintenance4::maintenance4")

    assert feature_names(expr) == frozenset(
        {"VK_VERSION_1_1", "VK_KHR_maintenance4::maintenance4"}
    )


@pytest.mark.parametrize("text", ["A+B,C", "(A,B)+C", "A", "(A+B,C)+D"])
def test_str_renders_an_equivalent_expression(text: str) -> None:
    expr = parse_depends(text)

    assert parse_depends(str(expr)) == expr


def test_evaluate_follows_and_or_semantics() -> None:
    expr = parse_depends("(A,B)+C")

    assert evaluate(expr, {"A", "C"})
    assert evaluate(expr, {"B", "C"})
    assert not evaluate(expr, {"A", "B"})


@pytest.mark.parametrize("text", ["", "A+", ",A", "(A,B", "A)", "A B", "A+*"])
def test_malformed_expressions_are_rejected(text: str) -> None:
    with pytest.raises(DependsSyntaxError):
        parse_depends(text)
