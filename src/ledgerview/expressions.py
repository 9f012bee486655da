# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Arithmetic expressions for calculated report rows.

Grammar
-------

    expr   := term (('+' | '-') term)*
    term   := factor (('*' | '/') factor)*
    factor := number | identifier | '@' int | '(' expr ')' | '-' factor

- ``identifier`` refers to a report variable (e.g. ``revenue``),
- ``@N`` refers to the rendered value of the layout item with order ``N``.

Expressions are parsed once into a small tagged AST:

    Number(value)
    VariableRef(name)
    OrderRef(order)
    BinaryOp(op, left, right)
    UnaryNeg(operand)

and evaluated per render against the values of one comparison side.
Parsing is cached per expression string, so the validator and the renderer
share the work.

Numeric policy: division by zero evaluates to 0 so that sparse ledgers never
abort a render. Syntax errors raise ``ExpressionSyntaxError`` with the
offending token and its offset; unknown references raise
``ExpressionError``. More than ``MAX_NESTING`` nested parentheses or unary
minus signs, or an AST deeper than ``MAX_TREE_DEPTH``, is a syntax error.
"""

import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import NamedTuple, Union

from .errors import ExpressionError, ExpressionSyntaxError


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class VariableRef:
    name: str


@dataclass(frozen=True)
class OrderRef:
    order: int


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class UnaryNeg:
    operand: "Node"


Node = Union[Number, VariableRef, OrderRef, BinaryOp, UnaryNeg]


class Token(NamedTuple):
    kind: str  # 'number', 'ident', 'order', 'op', 'end'
    text: str
    offset: int


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?|\.\d+)
  | (?P<order>@\d+)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>[-+*/()])
    """,
    re.VERBOSE,
)


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens, ending with an 'end' token."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(expression):
        m = _TOKEN_RE.match(expression, pos)
        if m is None:
            ch = expression[pos]
            if ch == "@":
                raise ExpressionSyntaxError("Order reference needs a number", ch, pos)
            raise ExpressionSyntaxError("Unexpected character", ch, pos)
        kind = m.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind, m.group(), pos))
        pos = m.end()
    tokens.append(Token("end", "", len(expression)))
    return tokens


# Parenthesis/unary nesting and AST depth limits.
MAX_NESTING = 100
MAX_TREE_DEPTH = 200


class _Parser:
    """Recursive descent parser over a token list.

    Every production returns the node together with its tree depth.
    """

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0
        self.nesting = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def parse(self) -> Node:
        node, _ = self.expr()
        tok = self.peek()
        if tok.kind != "end":
            raise ExpressionSyntaxError("Unexpected token", tok.text, tok.offset)
        return node

    @staticmethod
    def _binary(
        op: Token, left: tuple[Node, int], right: tuple[Node, int]
    ) -> tuple[Node, int]:
        depth = 1 + max(left[1], right[1])
        if depth > MAX_TREE_DEPTH:
            raise ExpressionSyntaxError(
                "Expression nested too deeply", op.text, op.offset
            )
        return BinaryOp(op.text, left[0], right[0]), depth

    def expr(self) -> tuple[Node, int]:
        result = self.term()
        while self.peek().kind == "op" and self.peek().text in "+-":
            op = self.advance()
            result = self._binary(op, result, self.term())
        return result

    def term(self) -> tuple[Node, int]:
        result = self.factor()
        while self.peek().kind == "op" and self.peek().text in "*/":
            op = self.advance()
            result = self._binary(op, result, self.factor())
        return result

    def _nested(self, tok: Token) -> tuple[Node, int]:
        """Parse the operand of a unary minus or the body of parentheses."""
        self.nesting += 1
        if self.nesting > MAX_NESTING:
            raise ExpressionSyntaxError(
                "Expression nested too deeply", tok.text, tok.offset
            )
        try:
            if tok.text == "-":
                operand, depth = self.factor()
                if depth + 1 > MAX_TREE_DEPTH:
                    raise ExpressionSyntaxError(
                        "Expression nested too deeply", tok.text, tok.offset
                    )
                return UnaryNeg(operand), depth + 1
            result = self.expr()
            closing = self.advance()
            if closing.kind != "op" or closing.text != ")":
                raise ExpressionSyntaxError(
                    "Missing closing parenthesis", closing.text, closing.offset
                )
            return result
        finally:
            self.nesting -= 1

    def factor(self) -> tuple[Node, int]:
        tok = self.advance()
        if tok.kind == "number":
            return Number(float(tok.text)), 1
        if tok.kind == "ident":
            return VariableRef(tok.text), 1
        if tok.kind == "order":
            return OrderRef(int(tok.text[1:])), 1
        if tok.kind == "op" and tok.text in ("-", "("):
            return self._nested(tok)
        if tok.kind == "end":
            raise ExpressionSyntaxError("Unexpected end of expression", "", tok.offset)
        raise ExpressionSyntaxError("Unexpected token", tok.text, tok.offset)


@lru_cache(maxsize=1024)
def parse(expression: str) -> Node:
    """Parse an expression string into an AST (cached).

    Raises:
        ExpressionSyntaxError: on any syntax error.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ExpressionSyntaxError("Expression must be a non-empty string", "", 0)
    return _Parser(tokenize(expression)).parse()


class References(NamedTuple):
    variables: frozenset[str]
    orders: frozenset[int]


def references(node: Node) -> References:
    """Collect every variable name and order number used by an AST."""
    variables: set[str] = set()
    orders: set[int] = set()

    def _walk(n: Node) -> None:
        if isinstance(n, VariableRef):
            variables.add(n.name)
        elif isinstance(n, OrderRef):
            orders.add(n.order)
        elif isinstance(n, BinaryOp):
            _walk(n.left)
            _walk(n.right)
        elif isinstance(n, UnaryNeg):
            _walk(n.operand)

    _walk(node)
    return References(frozenset(variables), frozenset(orders))


def _safe_div(left: float, right: float) -> float:
    if right == 0:
        return 0.0
    return left / right


_OPERATORS = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _safe_div,
}


def evaluate(
    node: Node,
    variables: Mapping[str, float],
    orders: Mapping[int, float],
) -> float:
    """
    Evaluate an AST against variable values and rendered row values.

    Args:
        node: AST returned by ``parse``.
        variables: Variable id -> value for one comparison side.
        orders: Layout order -> value for one comparison side.

    Raises:
        ExpressionError: if a variable or an order reference is unknown.
    """
    if isinstance(node, Number):
        return node.value

    if isinstance(node, VariableRef):
        if node.name not in variables:
            raise ExpressionError(f"Unknown variable in expression: {node.name!r}")
        return float(variables[node.name])

    if isinstance(node, OrderRef):
        if node.order not in orders:
            raise ExpressionError(f"Order reference @{node.order} has no value")
        return float(orders[node.order])

    if isinstance(node, BinaryOp):
        left = evaluate(node.left, variables, orders)
        right = evaluate(node.right, variables, orders)
        return float(_OPERATORS[node.op](left, right))

    if isinstance(node, UnaryNeg):
        return -evaluate(node.operand, variables, orders)

    raise ExpressionError(f"Unsupported expression node: {type(node).__name__}")


def evaluate_expression(
    expression: str,
    variables: Mapping[str, float],
    orders: Mapping[int, float] | None = None,
) -> float:
    """Parse (cached) and evaluate an expression string in one call."""
    return evaluate(parse(expression), variables, orders or {})
