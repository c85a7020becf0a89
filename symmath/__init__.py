"""
symmath - symbolic algebra over real-valued expression trees

Build expressions, differentiate them, and simplify them to a canonical,
exact form.

Quick Start:
    from symmath import Variable, Simplifier, sin, cos

    x = Variable("x")
    simplifier = Simplifier()

    simplifier.simplify(x + (1 + x))        # => (1 + (2 * x))
    d = (sin(x) * cos(x)).derivative(x)
    simplifier.simplify(d)                  # => ((cos(x) ^ 2) - (sin(x) ^ 2))
    d.evaluate({"x": 0.7})

Parsing:
    from symmath import parse, E

    parse("2*x + y")
    E("e^(-x^2)")

Simplification runs three rule phases (pre >> processing >> post), each to
a fixed point. Literal arithmetic is exact: 1/3 stays a fraction.
"""

__version__ = "0.1.0"

from .errors import (
    SymmathError,
    InvalidArgument,
    ParseError,
    InvalidState,
    UnboundVariable,
    ContractViolation,
    SimplificationDidNotConverge,
)

from .expressions import (
    Expression,
    Constant,
    Variable,
    UnaryFunction,
    Neg,
    Invert,
    Exp,
    Log,
    Sin,
    Cos,
    Tan,
    AssociativeCommutative,
    Sum,
    Product,
    Power,
    as_expression,
    make_sum,
    make_product,
    neg,
    inv,
    exp,
    log,
    ln,
    sin,
    cos,
    tan,
    to_string,
)

from .ordering import sort_key, compare

from .rewriter import (
    rewriter,
    Rule,
    SimpleRule,
    RuleMetadata,
    FoldHandler,
    FoldFuncsType,
    unary_only,
    exact_points,
    EXACT_PRELUDE,
    MATH_PRELUDE,
    NO_PRELUDE,
)

from .engine import (
    RuleEngine,
    SequencedEngine,
    Simplifier,
    RewriteStep,
    RewriteTrace,
    simplify,
)

from .parser import parse, E

__all__ = [
    "__version__",
    # Errors
    "SymmathError",
    "InvalidArgument",
    "ParseError",
    "InvalidState",
    "UnboundVariable",
    "ContractViolation",
    "SimplificationDidNotConverge",
    # Expression model
    "Expression",
    "Constant",
    "Variable",
    "UnaryFunction",
    "Neg",
    "Invert",
    "Exp",
    "Log",
    "Sin",
    "Cos",
    "Tan",
    "AssociativeCommutative",
    "Sum",
    "Product",
    "Power",
    # Construction
    "as_expression",
    "make_sum",
    "make_product",
    "neg",
    "inv",
    "exp",
    "log",
    "ln",
    "sin",
    "cos",
    "tan",
    "to_string",
    # Ordering
    "sort_key",
    "compare",
    # Rules and preludes
    "rewriter",
    "Rule",
    "SimpleRule",
    "RuleMetadata",
    "FoldHandler",
    "FoldFuncsType",
    "unary_only",
    "exact_points",
    "EXACT_PRELUDE",
    "MATH_PRELUDE",
    "NO_PRELUDE",
    # Engine
    "RuleEngine",
    "SequencedEngine",
    "Simplifier",
    "RewriteStep",
    "RewriteTrace",
    "simplify",
    # Parsing
    "parse",
    "E",
]
