"""Tests for the expression model."""

import math

import pytest
from symmath import (
    Expression, Constant, Variable, Neg, Invert, Exp, Log, Sin, Cos, Tan,
    Sum, Product, Power, make_sum, make_product, as_expression, to_string,
    neg, inv, exp, log, ln, sin, cos, tan,
    InvalidArgument, InvalidState, UnboundVariable,
)

x, y, z = Variable("x"), Variable("y"), Variable("z")


class TestAttributes:
    """Tests for height, size, complexity and constancy."""

    def test_constant_leaf(self):
        """A literal has complexity 0."""
        c = Constant(2)
        assert (c.height, c.size, c.complexity) == (1, 1, 0)
        assert c.is_constant
        assert c.value == 2.0

    def test_variable_leaf(self):
        """A variable counts towards complexity."""
        assert (x.height, x.size, x.complexity) == (1, 1, 1)
        assert not x.is_constant

    def test_compound(self):
        """Compound nodes add one level and one node."""
        e = x + 1
        assert e.height == 2
        assert e.size == 3
        assert e.complexity == 2
        assert not e.is_constant

    def test_constant_compound(self):
        """A tree without variables is constant and has a value."""
        e = Sum([Constant(1), Constant(2)])
        assert e.is_constant
        assert e.value == 3.0
        assert sin(Constant(2)).value == pytest.approx(math.sin(2))

    def test_value_of_non_constant(self):
        """value on a non-constant raises InvalidState."""
        with pytest.raises(InvalidState):
            (x + 1).value
        with pytest.raises(ArithmeticError):
            x.value

    def test_children(self):
        """children lists direct subexpressions in order."""
        assert Power(x, y).children == (x, y)
        assert sin(x).children == (x,)
        assert Constant(1).children == ()

    def test_variables(self):
        """variables collects every name in the tree."""
        assert (x * sin(y) + 3).variables() == {"x", "y"}
        assert Constant(1).variables() == set()

    def test_immutable(self):
        """Public attributes cannot be reassigned."""
        with pytest.raises(AttributeError):
            x.name = "y"
        with pytest.raises(AttributeError):
            Constant(1).value = 2


class TestConstruction:
    """Tests for constructors, coercion and combinators."""

    def test_empty_variable_name(self):
        """Variable names must be non-empty strings."""
        with pytest.raises(InvalidArgument):
            Variable("")
        with pytest.raises(ValueError):
            Variable(3)

    def test_constant_rejects_non_numbers(self):
        """Constant only takes ints and floats."""
        with pytest.raises(InvalidArgument):
            Constant("1")
        with pytest.raises(InvalidArgument):
            Constant(True)

    def test_short_ac_node(self):
        """Sum and Product need two arguments."""
        with pytest.raises(InvalidArgument):
            Sum([x])
        with pytest.raises(InvalidArgument):
            Product([])

    def test_coercion(self):
        """Numbers and names coerce to leaves."""
        assert as_expression(2) == Constant(2)
        assert as_expression("x") == x
        assert as_expression(x) is x
        with pytest.raises(InvalidArgument):
            as_expression([1])

    def test_unsupported_operand(self):
        """Operators return NotImplemented for foreign types."""
        with pytest.raises(TypeError):
            x + [1]

    def test_subtraction_builds_negated_sum(self):
        """a - b is a + (-b)."""
        e = x - y
        assert isinstance(e, Sum)
        assert e == Sum([x, Neg(y)])

    def test_division_builds_reciprocal_product(self):
        """a / b is a * (1/b), and 1 / b is just 1/b."""
        assert 2 / x == Product([Constant(2), Invert(x)])
        assert 1 / x == Invert(x)
        assert x / y == Product([x, Invert(y)])

    def test_flattening(self):
        """Same-kind operands are spliced."""
        assert len((x + y) + z) == 3
        assert len(x * (y * z)) == 3
        assert make_sum([x + y, z + 1]) == Sum([x, y, z, Constant(1)])

    def test_combinators_collapse(self):
        """make_sum and make_product collapse short argument lists."""
        assert make_sum([]) == Constant(0)
        assert make_product([]) == Constant(1)
        assert make_sum([x]) is x
        assert make_product([y]) is y

    def test_function_combinators(self):
        """Function helpers build the matching node kinds."""
        assert isinstance(neg(x), Neg)
        assert isinstance(inv(x), Invert)
        assert isinstance(exp(x), Exp)
        assert isinstance(log(x), Log)
        assert ln is log
        assert isinstance(sin(x), Sin)
        assert isinstance(cos(x), Cos)
        assert isinstance(tan(x), Tan)
        assert -x == Neg(x)
        assert x ** 2 == Power(x, Constant(2))
        assert 2 ** x == Power(Constant(2), x)


class TestEquality:
    """Tests for structural equality and hashing."""

    def test_commutative_equality(self):
        """Argument order does not matter for Sum and Product."""
        assert Sum([x, y]) == Sum([y, x])
        assert hash(Sum([x, y])) == hash(Sum([y, x]))
        assert Product([x, y, z]) == Product([z, x, y])

    def test_multiset_equality(self):
        """Multiplicities must match."""
        assert Sum([x, x, y]) != Sum([x, y, y])
        assert Sum([x, y]) != Sum([x, y, y])

    def test_kinds_differ(self):
        """Different node kinds are never equal."""
        assert Sum([x, y]) != Product([x, y])
        assert sin(x) != cos(x)
        assert Constant(1) != x

    def test_nan_constant(self):
        """A NaN literal equals itself."""
        assert Constant(math.nan) == Constant(math.nan)
        assert hash(Constant(math.nan)) == hash(Constant(math.nan))

    def test_usable_as_dict_key(self):
        """Equal expressions share a dict slot."""
        table = {x + y: 1}
        assert table[y + x] == 1

    def test_not_equal_to_numbers(self):
        """Expressions do not compare equal to raw numbers."""
        assert Constant(1) != 1


class TestEvaluate:
    """Tests for numeric evaluation."""

    def test_bindings_by_name_and_variable(self):
        """Bindings may be keyed by Variable or by name."""
        e = 2 * x + y
        assert e.evaluate({"x": 3, "y": 4}) == 10
        assert e.evaluate({x: 3, y: 4}) == 10

    def test_unbound_variable(self):
        """A missing binding raises UnboundVariable."""
        with pytest.raises(UnboundVariable) as info:
            (x + y).evaluate({"x": 1})
        assert info.value.name == "y"
        assert isinstance(info.value, KeyError)
        assert "y" in str(info.value)

    def test_functions(self):
        """Function nodes evaluate like math."""
        b = {"x": 0.7}
        assert sin(x).evaluate(b) == pytest.approx(math.sin(0.7))
        assert cos(x).evaluate(b) == pytest.approx(math.cos(0.7))
        assert tan(x).evaluate(b) == pytest.approx(math.tan(0.7))
        assert exp(x).evaluate(b) == pytest.approx(math.exp(0.7))
        assert ln(x).evaluate(b) == pytest.approx(math.log(0.7))
        assert (x ** 3).evaluate(b) == pytest.approx(0.343)
        assert (1 / x).evaluate(b) == pytest.approx(1 / 0.7)

    def test_division_by_zero(self):
        """x/0 follows IEEE."""
        assert (1 / x).evaluate({"x": 0}) == math.inf
        assert (-1 / x).evaluate({"x": 0}) == -math.inf
        assert math.isnan((0 / x).evaluate({"x": 0}))

    def test_log_domain(self):
        """log(0) is -inf and log of a negative is NaN."""
        assert ln(x).evaluate({"x": 0}) == -math.inf
        assert math.isnan(ln(x).evaluate({"x": -1}))

    def test_overflow(self):
        """Overflow gives inf rather than an exception."""
        assert exp(x).evaluate({"x": 1000}) == math.inf
        assert (x ** 1000).evaluate({"x": 10}) == math.inf

    def test_power_domain(self):
        """Negative base with fractional exponent is NaN; 0^-1 is inf."""
        assert math.isnan((x ** 0.5).evaluate({"x": -1}))
        assert (x ** -1).evaluate({"x": 0}) == math.inf

    def test_non_finite_arguments(self):
        """sin(inf) and inf - inf are NaN."""
        assert math.isnan(sin(x).evaluate({"x": math.inf}))
        assert math.isnan((x - y).evaluate({"x": math.inf, "y": math.inf}))


class TestSubstitute:
    """Tests for substitution."""

    def test_numeric_values(self):
        """Numbers are wrapped as constants."""
        assert (x + y).substitute({"x": 2}) == Constant(2) + y

    def test_expression_values(self):
        """Variables are replaced by expressions."""
        assert (x * y).substitute({x: sin(z)}) == sin(z) * y

    def test_unmatched_pass_through(self):
        """Variables without a binding stay."""
        e = x + y
        assert e.substitute({"z": 1}) == e

    def test_does_not_evaluate(self):
        """Substitution is purely structural."""
        result = (x * y).substitute({"x": 0})
        assert result == Product([Constant(0), y])

    def test_flattens_sums(self):
        """Substituting a sum into a sum splices it."""
        a, b = Variable("a"), Variable("b")
        assert (x + y).substitute({"x": a + b}) == Sum([a, b, y])

    def test_original_unchanged(self):
        """The source tree is not modified."""
        e = x + 1
        e.substitute({"x": 5})
        assert e == x + 1


class TestRendering:
    """Tests for infix rendering."""

    @pytest.mark.parametrize("expr, text", [
        (x + 1, "(x + 1)"),
        (x - y, "(x - y)"),
        (x / y, "(x / y)"),
        (1 / x, "(1 / x)"),
        (2 * x / 3, "(2 * x / 3)"),
        (-x, "-x"),
        (-(x + y), "-(x + y)"),
        (x ** 2, "(x ^ 2)"),
        (x ** -1, "(x ^ -1)"),
        (sin(x), "sin(x)"),
        (exp(x + 1), "exp(x + 1)"),
        (ln(x), "ln(x)"),
        (Constant(3.0), "3"),
        (Constant(2.5), "2.5"),
        (Power(Constant(-2), x), "((-2) ^ x)"),
        (Power(Neg(x), Constant(2)), "((-x) ^ 2)"),
    ])
    def test_render(self, expr, text):
        """Expressions render fully parenthesized."""
        assert str(expr) == text
        assert to_string(expr) == text

    def test_repr(self):
        """repr names the node kind."""
        assert repr(x) == "Variable('x')"
        assert repr(Constant(2)) == "Constant(2)"
        assert repr(x + 1) == "Sum('(x + 1)')"

    def test_expression_base_is_abstract(self):
        """Every node is an Expression."""
        assert all(isinstance(e, Expression) for e in (x, Constant(1), x + 1, sin(x)))
