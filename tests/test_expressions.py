import pytest

from ledgerview.errors import ExpressionError, ExpressionSyntaxError
from ledgerview.expressions import (
    BinaryOp,
    Number,
    OrderRef,
    UnaryNeg,
    VariableRef,
    evaluate_expression,
    parse,
    references,
)


def test_parse_respects_precedence() -> None:
    assert parse("a + b * 2") == BinaryOp(
        "+", VariableRef("a"), BinaryOp("*", VariableRef("b"), Number(2.0))
    )


def test_parse_order_refs_and_unary_minus() -> None:
    assert parse("-@10") == UnaryNeg(OrderRef(10))


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("revenue + cogs", 60.0),
        ("(revenue + cogs) / revenue * 100", 60.0),
        ("revenue - cogs - cogs", 180.0),
        ("-cogs", 40.0),
        ("@10 * 2", 200.0),
        ("revenue / 0", 0.0),
        ("1.5 + .5", 2.0),
    ],
)
def test_evaluate_expression(expression, expected) -> None:
    values = {"revenue": 100.0, "cogs": -40.0}
    assert evaluate_expression(expression, values, {10: 100.0}) == pytest.approx(
        expected
    )


def test_subtraction_is_left_associative() -> None:
    assert evaluate_expression("10 - 4 - 3", {}) == pytest.approx(3.0)


@pytest.mark.parametrize(
    "expression, token",
    [
        ("revenue +", ""),
        ("revenue $ cogs", "$"),
        ("(revenue + cogs", ""),
        ("revenue cogs", "cogs"),
        ("@ + 1", "@"),
    ],
)
def test_syntax_errors_locate_the_token(expression, token) -> None:
    with pytest.raises(ExpressionSyntaxError) as excinfo:
        parse(expression)
    assert excinfo.value.token == token


def test_empty_expression_is_a_syntax_error() -> None:
    with pytest.raises(ExpressionSyntaxError, match="non-empty"):
        parse("   ")


def test_unknown_references_raise_expression_error() -> None:
    with pytest.raises(ExpressionError, match="Unknown variable"):
        evaluate_expression("missing + 1", {})
    with pytest.raises(ExpressionError, match="@20"):
        evaluate_expression("@20", {}, {10: 1.0})


def test_references_collects_variables_and_orders() -> None:
    refs = references(parse("(revenue + @10) / cogs - @20 * revenue"))

    assert refs.variables == {"revenue", "cogs"}
    assert refs.orders == {10, 20}


@pytest.mark.parametrize(
    "expression, offset",
    [
        ("(" * 3000 + "revenue" + ")" * 3000, 100),
        ("-" * 3000 + "revenue", 100),
        ("- (" * 60 + "revenue" + ")" * 60, 150),
    ],
)
def test_deep_nesting_is_a_syntax_error(expression, offset) -> None:
    with pytest.raises(ExpressionSyntaxError, match="nested too deeply") as excinfo:
        parse(expression)
    assert excinfo.value.offset == offset


def test_long_operator_chain_is_a_syntax_error() -> None:
    with pytest.raises(ExpressionSyntaxError, match="nested too deeply"):
        parse(" + ".join(["1"] * 500))


def test_moderate_nesting_still_evaluates() -> None:
    expression = "(" * 50 + "revenue" + ")" * 50 + " - " + "-" * 50 + "1"
    assert evaluate_expression(expression, {"revenue": 10.0}) == pytest.approx(9.0)
