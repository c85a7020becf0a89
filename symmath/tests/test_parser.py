"""Tests for the infix parser and the E builder."""

import math

import pytest
from symmath import (
    Constant, Variable, Neg, Invert, Exp, Log, Sin, Power, Sum, Product,
    parse, E, ParseError, InvalidArgument, sin,
)
from symmath.parser import tokenize

x, y = Variable("x"), Variable("y")


class TestTokenize:
    """Tests for the tokenizer."""

    def test_tokens(self):
        """Tokens carry their kind, text and position."""
        assert tokenize("x + 2.5") == [("name", "x", 0), ("op", "+", 2), ("number", "2.5", 4)]

    def test_scientific_notation(self):
        """Numbers may have an exponent part."""
        assert tokenize("1e3")[0] == ("number", "1e3", 0)
        assert parse("2.5e-1") == Constant(0.25)

    def test_bad_character(self):
        """An unknown character reports its position."""
        with pytest.raises(ParseError) as info:
            tokenize("2 $ 3")
        assert info.value.position == 2
        assert "position 2" in str(info.value)


class TestPrecedence:
    """Operator precedence and associativity."""

    @pytest.mark.parametrize("text, value", [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("2 ^ 3 ^ 2", 512),
        ("-2 ^ 2", -4),
        ("(-2) ^ 2", 4),
        ("2 ^ -1", 0.5),
        ("8 / 4 / 2", 1),
        ("10 - 3 - 2", 5),
        ("2 * -3", -6),
        ("--4", 4),
    ])
    def test_value(self, text, value):
        """Parsed arithmetic evaluates like ordinary arithmetic."""
        assert parse(text).evaluate({}) == pytest.approx(value)

    def test_structure(self):
        """Subtraction and division go through the construction surface."""
        assert parse("x - y") == Sum([x, Neg(y)])
        assert parse("x / y") == Product([x, Invert(y)])
        assert parse("1 / x") == Invert(x)
        assert parse("-x") == Neg(x)
        assert parse("x ^ 2") == Power(x, Constant(2))

    def test_flattening(self):
        """Chained sums and products are n-ary."""
        assert len(parse("x + y + 1")) == 3
        assert len(parse("x * y * 2")) == 3

    def test_scenario(self):
        """2*x + y parses to the combinator-built tree."""
        assert parse("2*x + y") == (2 * x) + y
        assert parse("2*x + y").evaluate({"x": 3, "y": 4}) == 10


class TestFunctions:
    """Function application and e."""

    def test_call(self):
        """Function names apply to the following primary."""
        assert parse("sin(x)") == Sin(x)
        assert parse("sin x") == Sin(x)
        assert parse("ln(x + 1)") == Log(x + 1)
        assert parse("log(x)") == Log(x)

    def test_function_binds_tighter_than_power(self):
        """sin(x)^2 squares the sine."""
        assert parse("sin(x)^2") == sin(x) ** 2

    def test_all_functions(self):
        """Every function name is known."""
        for name in ("exp", "ln", "log", "sin", "cos", "tan", "neg", "inv"):
            assert parse(f"{name}(x)").children == (x,)

    def test_e_power(self):
        """e^u is exp(u)."""
        assert parse("e^x") == Exp(x)
        assert parse("e^(-x^2)") == Exp(Neg(Power(x, Constant(2))))

    def test_bare_e(self):
        """A bare e is Euler's number."""
        assert parse("e") == Exp(Constant(1))
        assert parse("e").evaluate({}) == pytest.approx(math.e)

    def test_variable_names(self):
        """Identifiers other than function names are variables."""
        assert parse("alpha_2") == Variable("alpha_2")
        assert parse("x1 * y") == Product([Variable("x1"), y])


class TestNonFinite:
    """inf and nan literals."""

    def test_inf(self):
        """inf is a literal, not a variable."""
        assert parse("inf") == Constant(math.inf)
        assert parse("inf * x").variables() == {"x"}
        assert parse("-inf").evaluate({}) == -math.inf

    def test_nan(self):
        """nan is a literal that evaluates to NaN."""
        result = parse("nan + 1")
        assert result.variables() == set()
        assert math.isnan(result.evaluate({}))

    @pytest.mark.parametrize("value", [math.inf, -math.inf])
    def test_rendering_parses_back(self, value):
        """A rendered non-finite constant parses to the same value."""
        assert parse(str(Constant(value))).evaluate({}) == value


class TestErrors:
    """Malformed input."""

    @pytest.mark.parametrize("text", ["", "   ", "1 +", "(x", "x)", "2 $ 3", "f(x)",
                                      "1 2", ")", "*x", "sin"])
    def test_parse_error(self, text):
        """Malformed text raises ParseError."""
        with pytest.raises(ParseError):
            parse(text)

    def test_is_invalid_argument(self):
        """ParseError is an InvalidArgument and a ValueError."""
        with pytest.raises(InvalidArgument):
            parse("(")
        with pytest.raises(ValueError):
            parse("x +* y")

    def test_unknown_function(self):
        """Unknown function calls are rejected by name."""
        with pytest.raises(ParseError, match="unknown function 'f'"):
            parse("f(x)")

    def test_trailing_position(self):
        """Leftover tokens report where they start."""
        with pytest.raises(ParseError) as info:
            parse("x)")
        assert info.value.position == 1

    def test_not_a_string(self):
        """Only text can be parsed."""
        with pytest.raises(ParseError):
            parse(42)


class TestExprBuilder:
    """Tests for the E builder."""

    def test_call_parses(self):
        """E(text) parses."""
        assert E("x + 1") == x + 1

    def test_op(self):
        """E.op builds by operator or function name."""
        assert E.op("+", "x", 1, "y") == Sum([x, Constant(1), y])
        assert E.op("*", 2, "x") == 2 * x
        assert E.op("-", "x") == Neg(x)
        assert E.op("-", "x", "y") == x - y
        assert E.op("/", "x", 2) == x / 2
        assert E.op("^", "x", 2) == x ** 2
        assert E.op("sin", E.op("^", "x", 2)) == sin(x ** 2)

    def test_op_errors(self):
        """Unknown operators and wrong arity are rejected."""
        with pytest.raises(ParseError):
            E.op("%", "x", 2)
        with pytest.raises(ParseError):
            E.op("^", "x")
        with pytest.raises(ParseError):
            E.op("sin", "x", "y")

    def test_leaves(self):
        """E.var, E.vars and E.const build leaves."""
        assert E.var("x") == x
        assert E.vars("x", "y") == (x, y)
        assert E.const(5) == Constant(5)
        assert repr(E) == "E (expression builder)"
