"""
Canonical ordering of expressions.

The simplifier sorts the arguments of every Sum and Product with
``sort_key`` so that equal expressions always share one argument order:

    1. constant expressions before non-constant ones
    2. lower complexity first
    3. literal constants by numeric value (NaN last)
    4. a literal before a constant-valued compound
    5. node kind, then rendered text, so the order is total
"""

import math
from typing import Iterable, Tuple

from .expressions import (
    Expression, Constant, Variable, Neg, Invert, Power, Exp, Log,
    Sin, Cos, Tan, Product, Sum,
)

_KIND_RANK = {
    Constant: 0,
    Variable: 1,
    Neg: 2,
    Invert: 3,
    Power: 4,
    Exp: 5,
    Log: 6,
    Sin: 7,
    Cos: 8,
    Tan: 9,
    Product: 10,
    Sum: 11,
}


def sort_key(expr: Expression) -> Tuple:
    """Key implementing the canonical order; usable with sorted()."""
    literal = isinstance(expr, Constant)
    if literal:
        value = expr.value
        numeric = (1, 0.0) if math.isnan(value) else (0, value)
    else:
        numeric = (0, 0.0)
    return (
        not expr.is_constant,
        expr.complexity,
        not literal,
        numeric,
        _KIND_RANK.get(type(expr), len(_KIND_RANK)),
        expr.to_string(),
    )


def compare(left: Expression, right: Expression) -> int:
    """Three-way comparison: -1, 0 or 1."""
    a, b = sort_key(left), sort_key(right)
    return (a > b) - (a < b)


def canonical_order(arguments: Iterable[Expression]) -> Tuple[Expression, ...]:
    """Arguments sorted into canonical order (stable)."""
    return tuple(sorted(arguments, key=sort_key))


def is_canonically_ordered(arguments: Iterable[Expression]) -> bool:
    keys = [sort_key(a) for a in arguments]
    return all(keys[i] <= keys[i + 1] for i in range(len(keys) - 1))
