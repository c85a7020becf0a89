"""
Example custom prelude for symmath.

Folds exp and ln numerically while keeping the trigonometric functions
exact.

Usage:
    symmath -p examples/custom_prelude.py -e "exp(2) + sin(2)"

Or in scripts:
    :prelude examples/custom_prelude.py
    exp(2) + sin(2)
"""

import math
from symmath import unary_only, EXACT_PRELUDE

PRELUDE = {
    **EXACT_PRELUDE,
    "exp": unary_only(math.exp),
    "ln": unary_only(math.log),
}
