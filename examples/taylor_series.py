#!/usr/bin/env python3
"""
Taylor series from repeated symbolic differentiation.

Builds the Maclaurin series of f(x) = sin(x) * cos(x) by differentiating
and simplifying n times, evaluating each derivative at 0, and summing
c_k * x^k / k!. The simplified polynomial is printed together with a
numeric comparison against f.

Usage:
    python examples/taylor_series.py [TERMS] [X]
"""

import math
import sys

from symmath import Constant, Variable, Simplifier, make_sum, sin, cos


def taylor_series(f, x, terms, simplifier=None):
    """Maclaurin polynomial of ``f`` in ``x`` with ``terms`` terms."""
    simplifier = simplifier or Simplifier()
    derivative = simplifier.simplify(f)
    series = []
    for k in range(terms):
        coefficient = derivative.evaluate({x: 0.0}) / math.factorial(k)
        if coefficient != 0:
            series.append(Constant(coefficient) * x ** k)
        derivative = simplifier.simplify(derivative.derivative(x))
    return simplifier.simplify(make_sum(series))


def main(argv):
    terms = int(argv[1]) if len(argv) > 1 else 8
    at = float(argv[2]) if len(argv) > 2 else 0.5

    x = Variable("x")
    f = sin(x) * cos(x)
    series = taylor_series(f, x, terms)

    print(f"f(x)      = {f}")
    print(f"series    = {series}")
    print(f"f({at})    = {f.evaluate({x: at})!r}")
    print(f"series({at}) = {series.evaluate({x: at})!r}")


if __name__ == "__main__":
    main(sys.argv)
