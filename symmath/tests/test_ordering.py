"""Tests for the canonical comparator."""

import math

from symmath import Constant, Variable, sin, compare, sort_key

x, y = Variable("x"), Variable("y")


class TestCompare:
    """Tests for the ordering criteria."""

    def test_constants_first(self):
        """Constant expressions sort before non-constant ones."""
        assert compare(Constant(5), x) == -1
        assert compare(sin(Constant(2)) * 3, x) == -1
        assert compare(x, Constant(5)) == 1

    def test_lower_complexity_first(self):
        """Simpler expressions come first."""
        assert compare(x, x * y) == -1
        assert compare(x ** 2 + y, x) == 1

    def test_literals_by_value(self):
        """Literals compare numerically."""
        assert compare(Constant(1), Constant(2)) == -1
        assert compare(Constant(-3), Constant(1)) == -1

    def test_nan_last(self):
        """NaN sorts after every other literal."""
        assert compare(Constant(math.nan), Constant(math.inf)) == 1
        assert compare(Constant(1e300), Constant(math.nan)) == -1

    def test_literal_before_constant_compound(self):
        """A literal precedes a constant-valued compound."""
        assert compare(Constant(100), sin(Constant(1))) == -1

    def test_tie_break_is_total(self):
        """Distinct expressions never compare equal."""
        assert compare(x, y) == -1
        assert compare(sin(x), x ** 2) != 0
        assert compare(x, Variable("x")) == 0


class TestSortKey:
    """Tests for sort_key."""

    def test_sorted(self):
        """sort_key orders a mixed list canonically."""
        items = [x * y, Constant(2), y, Constant(-1), x, sin(Constant(1))]
        assert sorted(items, key=sort_key) == [
            Constant(-1), Constant(2), sin(Constant(1)), x, y, x * y]

    def test_antisymmetric(self):
        """compare(a, b) == -compare(b, a)"""
        items = [x, y, Constant(1), x + 1, sin(x), x ** 2, Constant(math.nan)]
        for a in items:
            for b in items:
                assert compare(a, b) == -compare(b, a)

    def test_order_independent(self):
        """Sorting any permutation gives the same order."""
        items = [x ** 2, Constant(3), y, x]
        assert sorted(items, key=sort_key) == sorted(reversed(items), key=sort_key)
