"""
Core rewriter module for symbolic expression simplification.

This module provides the pieces a rule engine is built from:

    - RuleMetadata, Rule and SimpleRule: the match/transform contract
    - fold handlers and preludes for folding functions of literals
    - exact ratio arithmetic over literal constants
    - rewriter(): the bottom-up fixed-point loop with memoization
"""

import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import ContractViolation, SimplificationDidNotConverge
from .expressions import Expression, Constant, Invert, Neg, Product, real_div

logger = logging.getLogger(__name__)

# Type aliases
FoldHandler = Callable[[float], Optional[float]]
FoldFuncsType = Dict[str, FoldHandler]
Ratio = Tuple[float, float]  # (numerator, denominator), denominator > 0
StepCallback = Callable[['Rule', Expression, Expression], None]

DEFAULT_MAX_STEPS = 100_000
DEFAULT_CACHE_BAND = (2, 256)


# ============================================================
# Rules
# ============================================================

class RuleMetadata:
    """Metadata for a rule: name, description, priority and group tags."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None, priority: int = 0):
        self.name = name
        self.description = description
        self.tags = tags or []
        self.priority = priority  # Higher priority fires first

    def __repr__(self) -> str:
        if not self.name:
            return "<anonymous>"
        base = f"@{self.name}[{self.priority}]"
        if self.description:
            base += f" \"{self.description}\""
        return base


class Rule:
    """
    A rewrite rule.

    ``match(expr)`` returns the priority with which the rule applies, or a
    negative number when it does not. ``transform(expr)`` rewrites an
    expression and is only valid right after a successful ``match`` on the
    very same instance.
    """

    def __init__(self, metadata: Optional[RuleMetadata] = None):
        self.metadata = metadata or RuleMetadata()

    @property
    def name(self) -> str:
        return self.metadata.name or "<anonymous>"

    @property
    def priority(self) -> int:
        return self.metadata.priority

    def match(self, expr: Expression) -> int:
        raise NotImplementedError

    def transform(self, expr: Expression) -> Expression:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.metadata!r})"


class SimpleRule(Rule):
    """
    A rule backed by a single rewrite function.

    The function returns the rewritten expression, or None when the rule
    does not apply. The result computed by ``match`` is kept and handed
    out by the following ``transform``.

    ``kinds`` restricts the rule to nodes of the given classes; other
    nodes are rejected without calling the function.

    Example:
        drop_zero = SimpleRule(
            lambda e: e.arguments[0] if ... else None,
            name="add-zero", priority=90, tags=["identity"], kinds=(Sum,))
    """

    def __init__(self, rewrite: Callable[[Expression], Optional[Expression]],
                 name: Optional[str] = None, priority: int = 0,
                 description: Optional[str] = None,
                 tags: Optional[List[str]] = None,
                 kinds: Optional[Tuple[type, ...]] = None):
        super().__init__(RuleMetadata(name=name, description=description,
                                      tags=tags, priority=priority))
        self._rewrite = rewrite
        self.kinds = kinds
        self._matched = None
        self._result = None

    def match(self, expr: Expression) -> int:
        if self.kinds is not None and not isinstance(expr, self.kinds):
            self._matched = None
            self._result = None
            return -1
        result = self._rewrite(expr)
        if result is None:
            self._matched = None
            self._result = None
            return -1
        self._matched = expr
        self._result = result
        return self.metadata.priority

    def transform(self, expr: Expression) -> Expression:
        if self._matched is None or expr is not self._matched:
            raise ContractViolation(
                f"rule '{self.name}' transformed {expr} without a preceding match")
        result = self._result
        self._matched = None
        self._result = None
        return result


# ============================================================
# Fold Operation Builders
# ============================================================

def unary_only(f: Callable[[float], float]) -> FoldHandler:
    """Create a numeric folder (e.g., sin, exp); math errors mean no fold."""
    def handler(value: float) -> Optional[float]:
        try:
            result = f(value)
        except (ValueError, OverflowError):
            return None
        if not math.isfinite(result):
            return None
        return float(result)
    return handler


def exact_points(table: Dict[float, float]) -> FoldHandler:
    """Create a folder that only folds the listed exact arguments."""
    def handler(value: float) -> Optional[float]:
        return table.get(value)
    return handler


# ============================================================
# Standard Preludes for Function Folding
# ============================================================

# Exact prelude: only points where the result is exact
EXACT_PRELUDE: FoldFuncsType = {
    "exp": exact_points({0.0: 1.0}),
    "ln": exact_points({1.0: 0.0}),
    "sin": exact_points({0.0: 0.0}),
    "cos": exact_points({0.0: 1.0}),
    "tan": exact_points({0.0: 0.0}),
}

# Math prelude: fold every function of a literal numerically
MATH_PRELUDE: FoldFuncsType = {
    "exp": unary_only(math.exp),
    "ln": unary_only(math.log),
    "sin": unary_only(math.sin),
    "cos": unary_only(math.cos),
    "tan": unary_only(math.tan),
}

# Empty prelude (functions of literals stay symbolic)
NO_PRELUDE: FoldFuncsType = {}

PRELUDES: Dict[str, FoldFuncsType] = {
    "exact": EXACT_PRELUDE,
    "math": MATH_PRELUDE,
    "none": NO_PRELUDE,
}


# ============================================================
# Exact Ratio Arithmetic
# ============================================================

def is_integral(value: float) -> bool:
    return math.isfinite(value) and float(value).is_integer()


def gcd(a: float, b: float) -> int:
    """Euclid on truncated magnitudes; 1 when either value is not integral."""
    if not (is_integral(a) and is_integral(b)):
        return 1
    a, b = abs(int(a)), abs(int(b))
    while b:
        a, b = b, a % b
    return a


def reduce_ratio(numerator: float, denominator: float) -> Optional[Ratio]:
    """
    Put numerator/denominator in lowest exact terms with a positive denominator.

    Returns None for a zero denominator. Non-finite parts collapse to the
    IEEE quotient over 1. Only integer ratios are reduced; a ratio with a
    non-integer part keeps its denominator, so 1.5/0.5 stays a quotient.

    Examples:
        reduce_ratio(4, 2)      # => (2.0, 1.0)
        reduce_ratio(3, -6)     # => (-1.0, 2.0)
        reduce_ratio(4, 6)      # => (2.0, 3.0)
        reduce_ratio(1.5, 0.5)  # => (1.5, 0.5)
        reduce_ratio(1, 0)      # => None
    """
    n, d = float(numerator), float(denominator)
    if d == 0:
        return None
    if not (math.isfinite(n) and math.isfinite(d)):
        return (real_div(n, d), 1.0)
    if d < 0:
        n, d = -n, -d
    if n == 0:
        return (0.0, 1.0)
    if d == 1 or not (is_integral(n) and is_integral(d)):
        return (n, d)
    if n % d == 0:
        return (n / d, 1.0)
    if d % n == 0:
        return (math.copysign(1.0, n), d / abs(n))
    g = gcd(n, d)
    if g > 1:
        return (n / g, d / g)
    return (n, d)


def as_ratio(expr: Expression) -> Optional[Ratio]:
    """
    Read an exact literal as a ratio.

    Exact literals are ``c``, ``1/d``, ``n*(1/d)`` and the negation of any
    of them, with d a non-zero literal. Anything else gives None.
    """
    if isinstance(expr, Constant):
        return (expr.value, 1.0)
    if isinstance(expr, Invert):
        inner = expr.argument
        if isinstance(inner, Constant) and inner.value != 0:
            return (1.0, inner.value)
        return None
    if isinstance(expr, Neg):
        inner = as_ratio(expr.argument)
        if inner is None:
            return None
        return (-inner[0], inner[1])
    if isinstance(expr, Product) and len(expr.arguments) == 2:
        first, second = expr.arguments
        if isinstance(first, Invert):
            first, second = second, first
        if (isinstance(first, Constant) and isinstance(second, Invert)
                and isinstance(second.argument, Constant)
                and second.argument.value != 0):
            return (first.value, second.argument.value)
    return None


def ratio_factors(ratio: Ratio) -> List[Expression]:
    """Factors of the canonical literal for a reduced ratio."""
    n, d = ratio
    if d == 1:
        return [Constant(n)]
    if n == 1:
        return [Invert(Constant(d))]
    return [Constant(n), Invert(Constant(d))]


def make_ratio(ratio: Ratio) -> Expression:
    """Canonical literal for a reduced ratio: c, 1/d or n*(1/d)."""
    factors = ratio_factors(ratio)
    if len(factors) == 1:
        return factors[0]
    return Product(factors)


def add_ratios(a: Ratio, b: Ratio) -> Optional[Ratio]:
    if a[1] == b[1]:
        return reduce_ratio(a[0] + b[0], a[1])
    return reduce_ratio(a[0] * b[1] + b[0] * a[1], a[1] * b[1])


def multiply_ratios(a: Ratio, b: Ratio) -> Optional[Ratio]:
    return reduce_ratio(a[0] * b[0], a[1] * b[1])


def power_ratio(base: Ratio, exponent: float) -> Optional[Ratio]:
    """
    Raise an integer fraction to an integer power.

    Returns None when the result would not be exact (non-integer parts,
    overflow, or zero to a negative power, which has no ratio).
    """
    n, d = base
    if not (is_integral(exponent) and is_integral(n) and is_integral(d)):
        return None
    k = int(exponent)
    if k < 0:
        if n == 0:
            return None
        n, d, k = d, n, -k
    try:
        top, bottom = math.pow(n, k), math.pow(d, k)
    except OverflowError:
        return None
    if not (math.isfinite(top) and math.isfinite(bottom)):
        return None
    return reduce_ratio(top, bottom)


# ============================================================
# Rewriter Factory
# ============================================================

def select_rule(rules: Iterable[Rule], expr: Expression) -> Optional[Rule]:
    """
    The highest-priority rule matching ``expr``, or None.

    Ties go to the rule that comes first in ``rules``.
    """
    best = None
    best_priority = -1
    for rule in rules:
        priority = rule.match(expr)
        if priority > best_priority:
            best, best_priority = rule, priority
    return best


def rewriter(
    rules: List[Rule],
    cache: Optional[Dict[Expression, Expression]] = None,
    cache_band: Tuple[int, int] = DEFAULT_CACHE_BAND,
    max_steps: Optional[int] = DEFAULT_MAX_STEPS,
    on_step: Optional[StepCallback] = None,
    phase: str = "",
    stats: Optional[Dict[str, int]] = None,
) -> Callable[[Expression], Expression]:
    """
    Create a function that rewrites expressions to a fixed point.

    Traversal is bottom-up: children are rewritten first, then the
    highest-priority matching rule fires at the node, and the result is
    visited again. A node is done when no rule matches it.

    Args:
        rules: Rules in registration order
        cache: Optional memo dict; results for expressions whose complexity
            falls in ``cache_band`` are stored under both the input and the
            result (a fixed point maps to itself)
        cache_band: Inclusive (min, max) complexity of cached expressions
        max_steps: Ceiling on rule applications per call, None for no limit
        on_step: Callback receiving (rule, before, after) for every step
        phase: Name used in log messages and errors
        stats: Optional dict that receives "hits" and "misses" counts

    Returns:
        A function that rewrites an expression to its fixed point

    Example:
        simplify = rewriter([flatten_rule, fold_rule], cache={})
        result = simplify(expr)
    """
    rules = list(rules)
    low, high = cache_band
    steps = [0]

    def cacheable(expr: Expression) -> bool:
        return cache is not None and low <= expr.complexity <= high

    def simplify(expr: Expression) -> Expression:
        """Rewrite an expression to its fixed point."""
        steps[0] = 0
        return visit(expr)

    def visit(expr: Expression) -> Expression:
        if cacheable(expr):
            hit = cache.get(expr)
            if hit is not None:
                if stats is not None:
                    stats["hits"] += 1
                return hit
            if stats is not None:
                stats["misses"] += 1

        current = expr
        while True:
            children = current.children
            if children:
                current = current.with_children(tuple(visit(c) for c in children))
            rule = select_rule(rules, current)
            if rule is None:
                break
            result = rule.transform(current)
            steps[0] += 1
            logger.debug("%s: %s: %s -> %s", phase or "rewrite", rule.name, current, result)
            if on_step is not None:
                on_step(rule, current, result)
            if max_steps is not None and steps[0] > max_steps:
                logger.warning("%s: giving up after %d steps at %s",
                               phase or "rewrite", max_steps, current)
                raise SimplificationDidNotConverge(max_steps, phase)
            current = result

        if cacheable(expr):
            cache[expr] = current
        if cacheable(current):
            cache[current] = current
        return current

    return simplify
