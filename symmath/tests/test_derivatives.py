"""Tests for symbolic differentiation."""

import math

import pytest
from symmath import (
    Constant, Variable, Sum, Product, Power, Simplifier,
    sin, cos, tan, exp, ln, InvalidArgument,
)

x, y = Variable("x"), Variable("y")


def numeric_derivative(expr, at, h=1e-6):
    """Central difference of expr in x at the given point."""
    forward = expr.evaluate({"x": at + h, "y": 2.5})
    backward = expr.evaluate({"x": at - h, "y": 2.5})
    return (forward - backward) / (2 * h)


class TestBaseCases:
    """Tests for leaves."""

    def test_constant(self):
        """d(c)/dx = 0"""
        assert Constant(5).derivative(x) == Constant(0)

    def test_same_variable(self):
        """dx/dx = 1"""
        assert x.derivative(x) == Constant(1)

    def test_other_variable(self):
        """dy/dx = 0"""
        assert y.derivative(x) == Constant(0)

    def test_variable_by_name(self):
        """The variable may be given by name."""
        assert x.derivative("x") == Constant(1)

    def test_invalid_variable(self):
        """An empty name is rejected."""
        with pytest.raises(InvalidArgument):
            x.derivative("")

    def test_constant_power(self):
        """const^const differentiates to 0."""
        assert (Constant(2) ** Constant(3)).derivative(x) == Constant(0)


class TestStructure:
    """Tests for the shape of raw derivatives."""

    def test_not_simplified(self):
        """Derivatives are returned unsimplified."""
        result = (x * x).derivative(x)
        assert isinstance(result, Sum)
        assert Simplifier().simplify(result) == 2 * x

    def test_sum_is_linear(self):
        """d(a + b) is da + db."""
        a, b = x ** 2, sin(x)
        assert (a + b).derivative(x) == a.derivative(x) + b.derivative(x)

    def test_product_rule(self):
        """d(u*v) = v*du + u*dv"""
        result = (x * y).derivative(x)
        assert result == Sum([Product([y, Constant(1)]), Product([x, Constant(0)])])

    def test_original_unchanged(self):
        """Differentiation does not modify its input."""
        e = sin(x) * x
        e.derivative(x)
        assert e == sin(x) * x


class TestAgainstFiniteDifferences:
    """Derivatives agree with numeric differentiation."""

    @pytest.mark.parametrize("expr", [
        x * x * x,
        sin(x) * cos(x),
        exp(x ** 2),
        ln(x) / x,
        x ** x,
        2 ** x,
        tan(x),
        1 / x,
        -(x ** 3),
        x ** y,
        y ** x,
        sin(x) + cos(x) - x,
        (x + 1) ** 3,
        exp(sin(x)) * ln(x + 2),
        x * y * sin(x) * 3,
    ])
    def test_matches_numeric(self, expr):
        """Symbolic and numeric derivatives agree at x = 0.7."""
        symbolic = expr.derivative(x).evaluate({"x": 0.7, "y": 2.5})
        assert symbolic == pytest.approx(numeric_derivative(expr, 0.7), rel=1e-5)

    @pytest.mark.parametrize("expr", [x ** 3, sin(x) * cos(x), exp(x) / x])
    def test_simplified_matches_numeric(self, expr):
        """Simplifying a derivative keeps its value."""
        simplified = Simplifier().simplify(expr.derivative(x))
        assert simplified.evaluate({"x": 0.7}) == pytest.approx(
            numeric_derivative(expr, 0.7), rel=1e-5)


class TestScenarios:
    """End-to-end derivative scenarios."""

    def test_sin_cos_product(self):
        """d(sin x cos x) = cos^2 x - sin^2 x"""
        d = Simplifier().simplify((sin(x) * cos(x)).derivative(x))
        expected = math.cos(0.7) ** 2 - math.sin(0.7) ** 2
        assert abs(d.evaluate({"x": 0.7}) - expected) < 1e-9
        assert str(d) == "((cos(x) ^ 2) - (sin(x) ^ 2))"

    def test_power_rule(self):
        """d(x^3) = 3x^2"""
        d = Simplifier().simplify((x ** 3).derivative(x))
        assert d == Product([Constant(3), Power(x, Constant(2))])

    def test_second_derivative(self):
        """Repeated derivatives stay correct."""
        simplifier = Simplifier()
        d1 = simplifier.simplify((x ** 3).derivative(x))
        d2 = simplifier.simplify(d1.derivative(x))
        assert d2 == 6 * x
