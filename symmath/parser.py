"""
Infix parser and expression builder.

Grammar (lowest to highest precedence):

    expr    := term (('+' | '-') term)*
    term    := unary (('*' | '/') unary)*
    unary   := '-' unary | power
    power   := primary ('^' unary)?          right-associative
    primary := NUMBER | NAME | FUNC primary | 'e' '^' unary | '(' expr ')'

``^`` binds tighter than unary minus, so ``-x^2`` is ``-(x^2)``. Functions
are ``exp ln log sin cos tan neg inv``; ``e^x`` is read as ``exp(x)`` and a
bare ``e`` as ``exp(1)``. The names ``inf`` and ``nan`` are the non-finite
literals, matching how such constants are rendered. Everything is built
through the construction surface, so ``a - b`` is ``a + (-b)`` and
``a / b`` is ``a * (1/b)``.
"""

import math
import re
from typing import List, Optional, Tuple, Union

from .errors import ParseError
from .expressions import (
    Expression, Constant, Variable, Exp, Neg, Power, FUNCTIONS,
    add, subtract, multiply, divide, as_expression, make_sum, make_product,
)

_TOKEN = re.compile(r"""
    \s*(?:
        (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
      | (?P<name>[A-Za-z_][A-Za-z_0-9]*)
      | (?P<op>[-+*/^()])
      | (?P<bad>\S)
    )""", re.VERBOSE)

Token = Tuple[str, str, int]  # (kind, text, position)

# Names format_number uses for non-finite values
_NON_FINITE = {"inf": math.inf, "nan": math.nan}


def tokenize(text: str) -> List[Token]:
    """
    Split infix text into (kind, text, position) tokens.

    Raises:
        ParseError: On a character that starts no token
    """
    tokens = []
    for m in _TOKEN.finditer(text):
        kind = m.lastgroup
        if kind is None:
            continue
        if kind == "bad":
            raise ParseError(f"unexpected character {m.group(kind)!r}", m.start(kind))
        tokens.append((kind, m.group(kind), m.start(kind)))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    def peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError("unexpected end of input", len(self.text))
        self.index += 1
        return token

    def accept(self, op: str) -> bool:
        token = self.peek()
        if token is not None and token[0] == "op" and token[1] == op:
            self.index += 1
            return True
        return False

    def expect(self, op: str) -> None:
        token = self.next()
        if token[0] != "op" or token[1] != op:
            raise ParseError(f"expected {op!r}, found {token[1]!r}", token[2])

    def parse(self) -> Expression:
        if not self.tokens:
            raise ParseError("empty expression")
        result = self.expr()
        token = self.peek()
        if token is not None:
            raise ParseError(f"unexpected {token[1]!r}", token[2])
        return result

    def expr(self) -> Expression:
        result = self.term()
        while True:
            if self.accept("+"):
                result = add(result, self.term())
            elif self.accept("-"):
                result = subtract(result, self.term())
            else:
                return result

    def term(self) -> Expression:
        result = self.unary()
        while True:
            if self.accept("*"):
                result = multiply(result, self.unary())
            elif self.accept("/"):
                result = divide(result, self.unary())
            else:
                return result

    def unary(self) -> Expression:
        if self.accept("-"):
            return Neg(self.unary())
        return self.power()

    def power(self) -> Expression:
        base = self.primary()
        if self.accept("^"):
            return Power(base, self.unary())
        return base

    def primary(self) -> Expression:
        kind, text, position = self.next()
        if kind == "number":
            return Constant(float(text))
        if kind == "name":
            if text == "e":
                if self.accept("^"):
                    return Exp(self.unary())
                return Exp(Constant(1))
            if text in _NON_FINITE:
                return Constant(_NON_FINITE[text])
            if text in FUNCTIONS:
                return FUNCTIONS[text](self.primary())
            token = self.peek()
            if token is not None and token[0] == "op" and token[1] == "(":
                raise ParseError(f"unknown function {text!r}", position)
            return Variable(text)
        if kind == "op" and text == "(":
            inner = self.expr()
            self.expect(")")
            return inner
        raise ParseError(f"unexpected {text!r}", position)


def parse(text: str) -> Expression:
    """
    Parse infix text into an expression.

    Examples:
        parse("2*x + y")         # => ((2 * x) + y)
        parse("e^(-x^2)")        # => exp(-(x ^ 2))
        parse("sin(x)^2")        # => (sin(x) ^ 2)

    Raises:
        ParseError: If the text is not a well-formed expression
    """
    if not isinstance(text, str):
        raise ParseError(f"expected a string, got {type(text).__name__}")
    return _Parser(text).parse()


# ============================================================
# Expression Builder
# ============================================================

_OPERATORS = {
    "+": make_sum,
    "*": make_product,
}


class _ExprBuilder:
    """
    Expression builder for symmath.

    Examples:
        from symmath import E

        # Parse infix text
        expr = E("x + 2*y")

        # Build programmatically with E.op()
        expr = E.op("+", "x", E.op("*", 2, "y"))
        E.op("sin", E.op("^", "x", 2))

        # Create variables
        x, y = E.vars("x", "y")
        expr = x + 2 * y
    """

    def __call__(self, text: str) -> Expression:
        """Parse infix text: E("x + 1")"""
        return parse(text)

    def op(self, name: str, *args) -> Expression:
        """
        Build a compound expression by operator or function name.

        ``+`` and ``*`` are n-ary, ``-`` is unary negation or binary
        subtraction, ``/`` and ``^`` are binary; any function name from
        the parser's table takes one argument.
        """
        if name in _OPERATORS:
            return _OPERATORS[name](args)
        if name == "-" and len(args) == 1:
            return Neg(as_expression(args[0]))
        if name == "-" and len(args) == 2:
            return subtract(*args)
        if name == "/" and len(args) == 2:
            return divide(*args)
        if name == "^" and len(args) == 2:
            return Power(as_expression(args[0]), as_expression(args[1]))
        if name in FUNCTIONS and len(args) == 1:
            return FUNCTIONS[name](as_expression(args[0]))
        raise ParseError(f"cannot build {name!r} from {len(args)} argument(s)")

    def var(self, name: str) -> Variable:
        """
        Create a variable.

        Example:
            E.var("x") -> Variable('x')
        """
        return Variable(name)

    def vars(self, *names: str) -> Tuple[Variable, ...]:
        """
        Create multiple variables for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(Variable(name) for name in names)

    def const(self, value: Union[int, float]) -> Constant:
        """
        Create a constant.

        Example:
            E.const(5) -> Constant(5)
        """
        return Constant(value)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
