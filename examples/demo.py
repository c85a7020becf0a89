#!/usr/bin/env python3
"""
symmath Feature Demonstration

This script walks through the major features of the symmath library.
"""

from symmath import (
    Variable, Simplifier, RuleEngine, SimpleRule, Sum, E, parse,
    sin, cos, exp, ln, MATH_PRELUDE,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_basic_usage():
    """Simplify expressions built with operators and parsed from text."""
    section("Basic Usage")

    x, y = E.vars("x", "y")
    simplifier = Simplifier()

    examples = [
        x + (1 + x),
        1 + ((1 + ((x + 1) + 1)) + 1),
        x + x - (x + x),
        x ** 2 * y ** (x - 1) / x ** 3 / y ** -1,
        parse("2*x + y - x"),
    ]

    for expr in examples:
        print(f"  {expr} => {simplifier.simplify(expr)}")


def demo_exact_arithmetic():
    """Literal arithmetic never rounds."""
    section("Exact Arithmetic")

    simplifier = Simplifier()
    for text in ["1/3", "2/4 + 1/4", "6/4", "(2/3)^-2", "3 * (x/3 + 1)"]:
        print(f"  {text} => {simplifier.simplify(parse(text))}")


def demo_derivatives():
    """Differentiate, simplify, and evaluate."""
    section("Derivatives")

    x = Variable("x")
    simplifier = Simplifier()

    for expr in [x * x, sin(x) * cos(x), exp(x ** 2), ln(x) / x, x ** x]:
        raw = expr.derivative(x)
        print(f"  d/dx {expr}")
        print(f"    raw:        {raw}")
        print(f"    simplified: {simplifier.simplify(raw)}")
        print(f"    at x=0.7:   {raw.evaluate({x: 0.7}):.6f}")


def demo_tracing():
    """Show which rules fire during simplification."""
    section("Tracing")

    x = Variable("x")
    result, trace = Simplifier().simplify(x * x / x + 0, trace=True)
    print(f"  Result: {result}")
    print(f"  Rules: {trace.format('rules')}")
    print(f"  {trace.summary()}")


def demo_groups_and_preludes():
    """Disable rule groups and switch the function-folding prelude."""
    section("Groups and Preludes")

    x = Variable("x")
    simplifier = Simplifier()
    print(f"  Groups: {', '.join(sorted(simplifier.groups()))}")

    simplifier.disable_group("collect")
    print(f"  collect disabled: x + x => {simplifier.simplify(x + x)}")
    simplifier.enable_group("collect")
    print(f"  collect enabled:  x + x => {simplifier.simplify(x + x)}")

    expr = sin(0) + sin(1) + x
    print(f"  exact prelude: {expr} => {Simplifier().simplify(expr)}")
    print(f"  math prelude:  {expr} => {Simplifier(fold_funcs=MATH_PRELUDE).simplify(expr)}")


def demo_custom_engine():
    """Build a one-rule engine from a plain function."""
    section("Custom Rules")

    def drop_last_term(expr):
        if isinstance(expr, Sum):
            return Sum(expr.arguments[:-1]) if len(expr) > 2 else expr.arguments[0]
        return None

    engine = RuleEngine("truncate").add_rule(
        SimpleRule(drop_last_term, "drop-last-term", 10, "Keep all but the last term"))
    print(f"  {parse('a + b + c')} => {engine.simplify(parse('a + b + c'))}")


if __name__ == "__main__":
    demo_basic_usage()
    demo_exact_arithmetic()
    demo_derivatives()
    demo_tracing()
    demo_groups_and_preludes()
    demo_custom_engine()
