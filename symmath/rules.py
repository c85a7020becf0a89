"""
Rule library for the three simplification phases.

Each phase is built by a factory returning fresh rule instances, since a
SimpleRule remembers its last match and must not be shared between
engines:

    pre_rules()                  - flatten, 1*(1/b) -> 1/b, pull signs out of literals
    processing_rules(fold_funcs) - canonical form, folding, identities, collection
    post_rules()                 - turn the normal form into readable output

Group tags:
    normalize - structural normalization (flatten, canonical negation, ...)
    order     - canonical argument order
    fold      - exact folding of literals and prelude functions
    identity  - algebraic identities
    collect   - like-term and like-factor collection
    sign      - sign extraction in the pre phase
    format    - post-phase display rules
"""

from collections import Counter
from typing import Dict, List, Optional

from .expressions import (
    Expression, Constant, UnaryFunction, Neg, Invert, Exp, Log, Sin, Cos, Tan,
    AssociativeCommutative, Sum, Product, Power, make_sum, make_product,
)
from .ordering import canonical_order, is_canonically_ordered
from .rewriter import (
    Rule, SimpleRule, FoldFuncsType, Ratio, EXACT_PRELUDE,
    as_ratio, make_ratio, ratio_factors, reduce_ratio,
    add_ratios, multiply_ratios, power_ratio, is_integral,
)


def _is_literal(expr: Expression, value: float) -> bool:
    return isinstance(expr, Constant) and expr.value == value


def _integer_literal(expr: Expression) -> bool:
    return isinstance(expr, Constant) and is_integral(expr.value)


# ============================================================
# Structural Rules
# ============================================================

def flatten(expr: Expression) -> Optional[Expression]:
    """(a + (b + c)) -> (a + b + c), and likewise for products."""
    if not isinstance(expr, AssociativeCommutative):
        return None
    kind = type(expr)
    if not any(type(a) is kind for a in expr.arguments):
        return None
    spliced = []
    for a in expr.arguments:
        if type(a) is kind:
            spliced.extend(a.arguments)
        else:
            spliced.append(a)
    return kind(spliced)


def reorder(expr: Expression) -> Optional[Expression]:
    if not isinstance(expr, AssociativeCommutative):
        return None
    if is_canonically_ordered(expr.arguments):
        return None
    return type(expr)(canonical_order(expr.arguments))


def unit_reciprocal(expr: Expression) -> Optional[Expression]:
    """1 * (1/b) -> 1/b"""
    if isinstance(expr, Product) and len(expr.arguments) == 2:
        first, second = expr.arguments
        if _is_literal(first, 1) and isinstance(second, Invert):
            return second
        if _is_literal(second, 1) and isinstance(first, Invert):
            return first
    return None


def extract_sign(expr: Expression) -> Optional[Expression]:
    """A negative literal c becomes -(|c|)."""
    if isinstance(expr, Constant) and expr.value < 0:
        return Neg(Constant(-expr.value))
    return None


# ============================================================
# Folding
# ============================================================

def _fold_sum(expr: Sum) -> Optional[Expression]:
    literals = []
    others = []
    for a in expr.arguments:
        ratio = as_ratio(a)
        if ratio is None:
            others.append(a)
        else:
            literals.append(ratio)
    if len(literals) < 2:
        return None
    total = literals[0]
    for ratio in literals[1:]:
        total = add_ratios(total, ratio)
        if total is None:
            return None
    return make_sum([make_ratio(total)] + others)


def _fold_product(expr: Product) -> Optional[Expression]:
    literals = []
    others = []
    total: Optional[Ratio] = (1.0, 1.0)
    for a in expr.arguments:
        ratio = as_ratio(a)
        if ratio is None:
            others.append(a)
            continue
        literals.append(a)
        total = multiply_ratios(total, ratio)
        if total is None:
            return None
    if len(literals) < 2:
        return None
    folded = ratio_factors(total)
    if Counter(folded) == Counter(literals):
        return None
    return make_product(folded + others)


def _fold_unary_literal(expr: Expression) -> Optional[Expression]:
    ratio = as_ratio(expr)
    if ratio is None:
        return None
    reduced = reduce_ratio(*ratio)
    if reduced is None:
        return None
    result = make_ratio(reduced)
    return None if result == expr else result


def _fold_power(expr: Power) -> Optional[Expression]:
    if not isinstance(expr.exponent, Constant):
        return None
    exponent = expr.exponent.value
    if (isinstance(expr.base, Invert) and _is_literal(expr.base.argument, 0)
            and is_integral(exponent) and exponent != 0):
        # (1/0)^k is 1/0 for k > 0 and 0^-k = 0 for k < 0
        return expr.base if exponent > 0 else Constant(0)
    base = as_ratio(expr.base)
    if base is None:
        return None
    if base[0] == 0 and is_integral(exponent) and exponent < 0:
        # 0^-k has no ratio; it stays as the symbolic 1/0
        return Invert(Constant(0))
    result = power_ratio(base, exponent)
    if result is None and exponent == -1:
        # c^-1 is 1/c even when c is not an integer ratio
        result = reduce_ratio(base[1], base[0])
    if result is None:
        return None
    folded = make_ratio(result)
    return None if folded == expr else folded


def fold_literals(fold_funcs: FoldFuncsType):
    """
    Build the literal folding rewrite.

    Sums, products, negations, reciprocals and integer powers of exact
    literals fold exactly. Functions of a literal fold only when the
    prelude has a handler for them and the handler returns a value.
    """
    def rewrite(expr: Expression) -> Optional[Expression]:
        if isinstance(expr, Sum):
            return _fold_sum(expr)
        if isinstance(expr, Product):
            return _fold_product(expr)
        if isinstance(expr, (Neg, Invert)):
            return _fold_unary_literal(expr)
        if isinstance(expr, Power):
            return _fold_power(expr)
        if isinstance(expr, (Exp, Log, Sin, Cos, Tan)):
            handler = fold_funcs.get(expr.kind)
            ratio = as_ratio(expr.argument)
            if handler is None or ratio is None:
                return None
            value = handler(ratio[0] / ratio[1])
            return None if value is None else Constant(value)
        return None
    return rewrite


# ============================================================
# Identities
# ============================================================

def add_zero(expr):
    if isinstance(expr, Sum) and any(_is_literal(a, 0) for a in expr.arguments):
        return make_sum(a for a in expr.arguments if not _is_literal(a, 0))
    return None


def mul_zero(expr):
    if isinstance(expr, Product) and any(_is_literal(a, 0) for a in expr.arguments):
        return Constant(0)
    return None


def mul_one(expr):
    if isinstance(expr, Product) and any(_is_literal(a, 1) for a in expr.arguments):
        return make_product(a for a in expr.arguments if not _is_literal(a, 1))
    return None


def pow_zero(expr):
    if isinstance(expr, Power) and _is_literal(expr.exponent, 0):
        return Constant(1)
    return None


def pow_one(expr):
    if isinstance(expr, Power) and _is_literal(expr.exponent, 1):
        return expr.base
    return None


def one_pow(expr):
    if isinstance(expr, Power) and _is_literal(expr.base, 1):
        return Constant(1)
    return None


def double_negation(expr):
    if isinstance(expr, Neg) and isinstance(expr.argument, Neg):
        return expr.argument.argument
    return None


def double_reciprocal(expr):
    if isinstance(expr, Invert) and isinstance(expr.argument, Invert):
        return expr.argument.argument
    return None


def log_of_exp(expr):
    if isinstance(expr, Log) and isinstance(expr.argument, Exp):
        return expr.argument.argument
    return None


def exp_of_log(expr):
    if isinstance(expr, Exp) and isinstance(expr.argument, Log):
        return expr.argument.argument
    return None


def log_of_one(expr):
    if isinstance(expr, Log) and _is_literal(expr.argument, 1):
        return Constant(0)
    return None


def exp_of_zero(expr):
    if isinstance(expr, Exp) and _is_literal(expr.argument, 0):
        return Constant(1)
    return None


# ============================================================
# Canonical Forms
# ============================================================

def canonical_negation(expr):
    """-u -> (-1) * u"""
    if isinstance(expr, Neg):
        return make_product([Constant(-1), expr.argument])
    return None


def canonical_reciprocal(expr):
    """1/u -> u^-1 for non-literal u"""
    if isinstance(expr, Invert) and not isinstance(expr.argument, Constant):
        if as_ratio(expr) is None:
            return Power(expr.argument, Constant(-1))
    return None


def power_of_power(expr):
    """(u^a)^k -> u^(a*k) for integer k"""
    if (isinstance(expr, Power) and isinstance(expr.base, Power)
            and _integer_literal(expr.exponent)):
        inner = expr.base
        return Power(inner.base, make_product([inner.exponent, expr.exponent]))
    return None


def power_of_product(expr):
    """(a*b)^k -> a^k * b^k for integer k"""
    if (isinstance(expr, Power) and isinstance(expr.base, Product)
            and _integer_literal(expr.exponent)):
        return make_product(Power(f, expr.exponent) for f in expr.base.arguments)
    return None


def distribute_coefficient(expr):
    """c * (a + b) -> c*a + c*b for a literal coefficient c"""
    if not isinstance(expr, Product):
        return None
    literals = [a for a in expr.arguments if as_ratio(a) is not None]
    others = [a for a in expr.arguments if as_ratio(a) is None]
    if not literals or len(others) != 1 or not isinstance(others[0], Sum):
        return None
    return make_sum(make_product(literals + [term]) for term in others[0].arguments)


# ============================================================
# Collection
# ============================================================

def _split_term(term: Expression):
    """(coefficient, base) of a term; base is None for a literal."""
    ratio = as_ratio(term)
    if ratio is not None:
        return ratio, None
    if isinstance(term, Product):
        coefficient: Ratio = (1.0, 1.0)
        rest = []
        for factor in term.arguments:
            ratio = as_ratio(factor)
            product = multiply_ratios(coefficient, ratio) if ratio is not None else None
            if product is None:
                rest.append(factor)
            else:
                coefficient = product
        if len(rest) < len(term.arguments):
            return coefficient, make_product(rest)
    return (1.0, 1.0), term


def _scale(coefficient: Ratio, base: Expression) -> Expression:
    if coefficient == (1.0, 1.0):
        return base
    factors = base.arguments if isinstance(base, Product) else (base,)
    return make_product(ratio_factors(coefficient) + list(factors))


def collect_terms(expr):
    """
    Collect like terms: 2*x + 3*x -> 5*x, with literals summed up front.

    Buckets keep first-seen order and terms whose coefficient sums to zero
    disappear.
    """
    if not isinstance(expr, Sum):
        return None
    constant: Optional[Ratio] = None
    buckets: Dict[Expression, Ratio] = {}
    merged = False
    for term in expr.arguments:
        coefficient, base = _split_term(term)
        if base is None:
            if constant is None:
                constant = coefficient
                continue
            total = add_ratios(constant, coefficient)
            if total is None:
                return None
            constant, merged = total, True
        elif base in buckets:
            total = add_ratios(buckets[base], coefficient)
            if total is None:
                return None
            buckets[base], merged = total, True
        else:
            buckets[base] = coefficient
    if not merged:
        return None
    terms = []
    if constant is not None and constant[0] != 0:
        terms.append(make_ratio(constant))
    for base, coefficient in buckets.items():
        if coefficient[0] != 0:
            terms.append(_scale(coefficient, base))
    return make_sum(terms)


def collect_factors(expr):
    """Collect like factors: x * x^a -> x^(1 + a)."""
    if not isinstance(expr, Product):
        return None
    literals = []
    exponents: Dict[Expression, List[Expression]] = {}
    originals: Dict[Expression, Expression] = {}
    for factor in expr.arguments:
        if as_ratio(factor) is not None:
            literals.append(factor)
            continue
        if isinstance(factor, Power):
            base, exponent = factor.base, factor.exponent
        else:
            base, exponent = factor, Constant(1)
        exponents.setdefault(base, []).append(exponent)
        originals.setdefault(base, factor)
    if all(len(found) == 1 for found in exponents.values()):
        return None
    factors = list(literals)
    for base, found in exponents.items():
        if len(found) == 1:
            factors.append(originals[base])
        else:
            factors.append(Power(base, make_sum(found)))
    return make_product(factors)


# ============================================================
# Post-phase Formatting
# ============================================================

def negative_literal(expr):
    if isinstance(expr, Constant) and expr.value < 0:
        return Neg(Constant(-expr.value))
    return None


def negative_exponent(expr):
    """u^-v -> 1/(u^v), and u^-1 -> 1/u"""
    if isinstance(expr, Power) and isinstance(expr.exponent, Neg):
        positive = expr.exponent.argument
        if _is_literal(positive, 1):
            return Invert(expr.base)
        return Invert(Power(expr.base, positive))
    return None


def negative_factor(expr):
    """Pull every Neg factor out of a product: (-2) * x -> -(2 * x)"""
    if not isinstance(expr, Product):
        return None
    negations = sum(1 for f in expr.arguments if isinstance(f, Neg))
    if not negations:
        return None
    unwrapped = [f.argument if isinstance(f, Neg) else f for f in expr.arguments]
    result = make_product(f for f in unwrapped if not _is_literal(f, 1))
    return Neg(result) if negations % 2 else result


def negative_sum(expr):
    """-a - b -> -(a + b)"""
    if isinstance(expr, Sum) and all(isinstance(t, Neg) for t in expr.arguments):
        return Neg(make_sum(t.argument for t in expr.arguments))
    return None


def reciprocal_product(expr):
    """
    (1/a) * (1/b) -> 1/(a * b)

    Literal divisors are not merged, so 1/2 * 1/(6 + x) stays
    (1/2) / (6 + x) rather than becoming a divisor that folds or
    distributes when read back.
    """
    if not isinstance(expr, Product):
        return None
    if not all(isinstance(f, Invert) for f in expr.arguments):
        return None
    if any(as_ratio(f.argument) is not None for f in expr.arguments):
        return None
    return Invert(make_product(f.argument for f in expr.arguments))


def reciprocal_negation(expr):
    """1/(-u) -> -(1/u)"""
    if isinstance(expr, Invert) and isinstance(expr.argument, Neg):
        return Neg(Invert(expr.argument.argument))
    return None


def display_order(expr):
    """
    Canonical order with Neg terms and Invert factors moved to the end.

    Both groups are sorted, so the output order depends only on the
    displayed arguments and not on how they were reached.
    """
    if isinstance(expr, Sum):
        trailing = Neg
    elif isinstance(expr, Product):
        trailing = Invert
    else:
        return None
    front = [a for a in expr.arguments if not isinstance(a, trailing)]
    back = [a for a in expr.arguments if isinstance(a, trailing)]
    arranged = canonical_order(front) + canonical_order(back)
    if all(a is b for a, b in zip(arranged, expr.arguments)):
        return None
    return type(expr)(arranged)


# ============================================================
# Phase Factories
# ============================================================

def pre_rules() -> List[Rule]:
    """Rules for the pre-rewrite phase."""
    return [
        SimpleRule(flatten, "flatten", 100, "Splice nested sums and products", ["normalize"],
                   kinds=(AssociativeCommutative,)),
        SimpleRule(unit_reciprocal, "unit-reciprocal", 95, "1 * (1/b) => 1/b", ["normalize"],
                   kinds=(Product,)),
        SimpleRule(extract_sign, "extract-sign", 90, "Negative literal => -(|c|)", ["sign"],
                   kinds=(Constant,)),
    ]


def processing_rules(fold_funcs: Optional[FoldFuncsType] = None) -> List[Rule]:
    """
    Rules for the processing phase.

    Args:
        fold_funcs: Prelude for folding functions of literals
            (default: EXACT_PRELUDE)
    """
    if fold_funcs is None:
        fold_funcs = EXACT_PRELUDE
    return [
        SimpleRule(flatten, "flatten", 110, "Splice nested sums and products", ["normalize"],
                   kinds=(AssociativeCommutative,)),
        SimpleRule(reorder, "reorder", 100, "Canonical argument order", ["order"],
                   kinds=(AssociativeCommutative,)),
        SimpleRule(fold_literals(fold_funcs), "fold-literals", 95,
                   "Exact arithmetic on literals", ["fold"],
                   kinds=(AssociativeCommutative, UnaryFunction, Power)),
        SimpleRule(add_zero, "add-zero", 90, "x + 0 => x", ["identity"], kinds=(Sum,)),
        SimpleRule(mul_zero, "mul-zero", 90, "x * 0 => 0", ["identity"], kinds=(Product,)),
        SimpleRule(mul_one, "mul-one", 90, "x * 1 => x", ["identity"], kinds=(Product,)),
        SimpleRule(pow_zero, "pow-zero", 90, "x ^ 0 => 1", ["identity"], kinds=(Power,)),
        SimpleRule(pow_one, "pow-one", 90, "x ^ 1 => x", ["identity"], kinds=(Power,)),
        SimpleRule(one_pow, "one-pow", 90, "1 ^ x => 1", ["identity"], kinds=(Power,)),
        SimpleRule(double_negation, "neg-neg", 90, "-(-x) => x", ["identity"], kinds=(Neg,)),
        SimpleRule(double_reciprocal, "inv-inv", 90, "1/(1/x) => x", ["identity"],
                   kinds=(Invert,)),
        SimpleRule(log_of_exp, "ln-exp", 90, "ln(e^x) => x", ["identity"], kinds=(Log,)),
        SimpleRule(exp_of_log, "exp-ln", 90, "e^(ln x) => x", ["identity"], kinds=(Exp,)),
        SimpleRule(log_of_one, "ln-one", 90, "ln 1 => 0", ["identity"], kinds=(Log,)),
        SimpleRule(exp_of_zero, "exp-zero", 90, "e^0 => 1", ["identity"], kinds=(Exp,)),
        SimpleRule(canonical_negation, "canonical-neg", 85, "-u => (-1) * u", ["normalize"],
                   kinds=(Neg,)),
        SimpleRule(canonical_reciprocal, "canonical-inv", 85, "1/u => u^-1", ["normalize"],
                   kinds=(Invert,)),
        SimpleRule(power_of_power, "power-of-power", 85, "(u^a)^k => u^(a*k)", ["normalize"],
                   kinds=(Power,)),
        SimpleRule(power_of_product, "power-of-product", 85, "(a*b)^k => a^k * b^k",
                   ["normalize"], kinds=(Power,)),
        SimpleRule(distribute_coefficient, "distribute", 85, "c * (a + b) => c*a + c*b",
                   ["normalize"], kinds=(Product,)),
        SimpleRule(collect_terms, "collect-terms", 80, "a*x + b*x => (a+b)*x", ["collect"],
                   kinds=(Sum,)),
        SimpleRule(collect_factors, "collect-factors", 80, "x^a * x^b => x^(a+b)",
                   ["collect"], kinds=(Product,)),
    ]


def post_rules() -> List[Rule]:
    """Rules for the post-format phase."""
    return [
        SimpleRule(double_negation, "neg-neg", 95, "-(-x) => x", ["format"], kinds=(Neg,)),
        SimpleRule(negative_literal, "negative-literal", 90, "c < 0 => -(|c|)", ["format"],
                   kinds=(Constant,)),
        SimpleRule(negative_exponent, "negative-exponent", 90, "u^-v => 1/u^v", ["format"],
                   kinds=(Power,)),
        SimpleRule(negative_factor, "negative-factor", 90, "(-a) * b => -(a * b)", ["format"],
                   kinds=(Product,)),
        SimpleRule(reciprocal_negation, "inv-neg", 90, "1/(-u) => -(1/u)", ["format"],
                   kinds=(Invert,)),
        SimpleRule(negative_sum, "negative-sum", 85, "-a - b => -(a + b)", ["format"],
                   kinds=(Sum,)),
        SimpleRule(reciprocal_product, "reciprocal-product", 85, "(1/a) * (1/b) => 1/(a*b)",
                   ["format"], kinds=(Product,)),
        SimpleRule(display_order, "display-order", 80,
                   "Canonical order, negated terms and divisors last",
                   ["format"], kinds=(AssociativeCommutative,)),
    ]
