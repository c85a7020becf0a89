"""
Expression model for symmath.

Expressions are immutable trees built from a closed set of node kinds:

    Constant(2.5)            - numeric literal
    Variable("x")            - named real variable
    Neg, Invert, Exp, Log,
    Sin, Cos, Tan            - unary functions
    Sum, Product             - flattened n-ary associative-commutative nodes
    Power(base, exponent)    - binary power

Trees are built with Python operators or the module-level combinators:

    from symmath.expressions import Variable, sin, cos

    x = Variable("x")
    expr = sin(x) * cos(x) + x ** 2 - 1 / x

No operation mutates a tree: substitution, differentiation and every
simplifier rule allocate new nodes, so subtrees can be shared freely.
"""

import math
from collections import Counter
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .errors import InvalidArgument, InvalidState, UnboundVariable

# Type aliases
NumericType = Union[int, float]
BindingKey = Union["Variable", str]
NumericBindings = Mapping[BindingKey, NumericType]
ExprBindings = Mapping[BindingKey, Union["Expression", NumericType]]

_HASH_MASK = (1 << 61) - 1


# ============================================================
# IEEE arithmetic helpers
# ============================================================

def real_div(numerator: float, denominator: float) -> float:
    """Divide with IEEE semantics: x/0 is +-inf, 0/0 is NaN."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        sign = math.copysign(1.0, numerator) * math.copysign(1.0, denominator)
        return math.copysign(math.inf, sign)
    return numerator / denominator


def real_pow(base: float, exponent: float) -> float:
    """
    Real power with IEEE results instead of Python exceptions.

    A negative base with a fractional exponent gives NaN, overflow gives
    +-inf and zero to a negative power gives inf.
    """
    if base == 0 and exponent < 0:
        return math.inf
    try:
        return math.pow(base, exponent)
    except OverflowError:
        if base < 0 and float(exponent).is_integer() and exponent % 2 == 1:
            return -math.inf
        return math.inf
    except ValueError:
        return math.nan


def real_log(value: float) -> float:
    """Natural logarithm: log(0) is -inf, log of a negative number is NaN."""
    if value == 0:
        return -math.inf
    if value < 0 or math.isnan(value):
        return math.nan
    return math.log(value)


def _guarded(func: Callable[[float], float]) -> Callable[[float], float]:
    """Wrap a math function so overflow gives inf and domain errors give NaN."""
    def apply(value: float) -> float:
        try:
            return func(value)
        except OverflowError:
            return math.inf
        except ValueError:
            return math.nan
    return apply


def format_number(value: float) -> str:
    """Render a float, dropping the decimal point for integral values."""
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


# ============================================================
# Base class
# ============================================================

class Expression:
    """
    Abstract immutable expression node.

    Attributes computed at construction:
        is_constant - True when the node contains no variables
        height      - longest root-to-leaf path (a leaf has height 1)
        size        - number of nodes
        complexity  - number of nodes that are not literal constants

    ``value`` is only defined for constant expressions.
    """

    __slots__ = ('_hash', '_text', '_is_constant', '_height', '_size', '_complexity')

    kind = "expression"

    def __init__(self, is_constant: bool, height: int, size: int,
                 complexity: int, hash_value: int):
        self._is_constant = is_constant
        self._height = height
        self._size = size
        self._complexity = complexity
        self._hash = hash_value
        self._text = None

    @property
    def is_constant(self) -> bool:
        return self._is_constant

    @property
    def height(self) -> int:
        return self._height

    @property
    def size(self) -> int:
        return self._size

    @property
    def complexity(self) -> int:
        return self._complexity

    @property
    def value(self) -> float:
        """
        The numeric value of a constant expression.

        The value may not be exact: (3 * (1/3)) is constant but its value
        is computed in floating point. Simplify first when precision matters.

        Raises:
            InvalidState: If the expression is not constant
        """
        if not self._is_constant:
            raise InvalidState(f"{self} is not constant and has no value")
        return self._eval({})

    @property
    def children(self) -> Tuple['Expression', ...]:
        """Direct subexpressions, in order."""
        return ()

    def with_children(self, children: Tuple['Expression', ...]) -> 'Expression':
        """Return a node of the same kind over new children."""
        return self

    # ------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------

    def evaluate(self, bindings: Optional[NumericBindings] = None) -> float:
        """
        Evaluate the expression numerically.

        Args:
            bindings: Maps variables (or their names) to numbers

        Returns:
            The value as a float, following IEEE semantics

        Raises:
            UnboundVariable: If a variable has no binding
        """
        env: Dict[str, float] = {}
        for key, number in (bindings or {}).items():
            if isinstance(number, Expression):
                number = number.value
            env[variable_name(key)] = float(number)
        return self._eval(env)

    def substitute(self, bindings: ExprBindings) -> 'Expression':
        """
        Replace variables by expressions (or numbers) without evaluating.

        Unmatched variables pass through unchanged.

        Example:
            (x + y).substitute({"x": 2, y: sin(z)})  # => (2 + sin(z))
        """
        env = {variable_name(key): as_expression(replacement)
               for key, replacement in bindings.items()}
        if not env:
            return self
        return self._subs(env)

    def derivative(self, variable: BindingKey) -> 'Expression':
        """
        Symbolic derivative with respect to ``variable``.

        The result is not simplified; pass it through a Simplifier.
        """
        return self._derive(variable_name(variable))

    def variables(self) -> set:
        """Names of all variables appearing in the expression."""
        names = set()
        stack = [self]
        while stack:
            node = stack.pop()
            if isinstance(node, Variable):
                names.add(node.name)
            stack.extend(node.children)
        return names

    def to_string(self) -> str:
        """Fully parenthesized infix rendering."""
        if self._text is None:
            self._text = self._render()
        return self._text

    # ------------------------------------------------------------
    # Per-kind hooks
    # ------------------------------------------------------------

    def _eval(self, env: Dict[str, float]) -> float:
        raise NotImplementedError

    def _subs(self, env: Dict[str, 'Expression']) -> 'Expression':
        children = self.children
        if not children:
            return self
        return self.with_children(tuple(child._subs(env) for child in children))

    def _derive(self, name: str) -> 'Expression':
        raise NotImplementedError

    def _render(self) -> str:
        raise NotImplementedError

    # ------------------------------------------------------------
    # Equality and hashing
    # ------------------------------------------------------------

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, Expression):
            return NotImplemented
        if type(self) is not type(other) or self._hash != other._hash:
            return False
        return self._same(other)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def _same(self, other: 'Expression') -> bool:
        return self.children == other.children

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_string()!r})"

    # ------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------

    def __neg__(self) -> 'Expression':
        return Neg(self)

    def __pos__(self) -> 'Expression':
        return self

    def __add__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else add(self, other)

    def __radd__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else add(other, self)

    def __sub__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else subtract(self, other)

    def __rsub__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else subtract(other, self)

    def __mul__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else multiply(self, other)

    def __rmul__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else multiply(other, self)

    def __truediv__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else divide(self, other)

    def __rtruediv__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else divide(other, self)

    def __pow__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else Power(self, other)

    def __rpow__(self, other):
        other = _coerce(other)
        return NotImplemented if other is None else Power(other, self)


# ============================================================
# Leaves
# ============================================================

class Constant(Expression):
    """A numeric literal."""

    __slots__ = ('_value',)

    kind = "constant"

    def __init__(self, value: NumericType):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidArgument(f"Constant value must be a number, got {value!r}")
        value = float(value)
        key = "nan" if math.isnan(value) else value
        super().__init__(True, 1, 1, 0, hash(("constant", key)))
        self._value = value

    @property
    def value(self) -> float:
        return self._value

    def _eval(self, env):
        return self._value

    def _subs(self, env):
        return self

    def _derive(self, name):
        return Constant(0)

    def _same(self, other):
        return self._value == other._value or (
            math.isnan(self._value) and math.isnan(other._value))

    def _render(self):
        return format_number(self._value)

    def __repr__(self) -> str:
        return f"Constant({format_number(self._value)})"


class Variable(Expression):
    """A named real variable. Two variables are equal when their names are."""

    __slots__ = ('_name',)

    kind = "variable"

    def __init__(self, name: str):
        if not isinstance(name, str) or not name:
            raise InvalidArgument(f"Variable name must be a non-empty string, got {name!r}")
        super().__init__(False, 1, 1, 1, hash(("variable", name)))
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def _eval(self, env):
        try:
            return env[self._name]
        except KeyError:
            raise UnboundVariable(self._name) from None

    def _subs(self, env):
        return env.get(self._name, self)

    def _derive(self, name):
        return Constant(1 if self._name == name else 0)

    def _same(self, other):
        return self._name == other._name

    def _render(self):
        return self._name

    def __repr__(self) -> str:
        return f"Variable({self._name!r})"


# ============================================================
# Unary functions
# ============================================================

class UnaryFunction(Expression):
    """A function of one argument; constant exactly when its argument is."""

    __slots__ = ('_argument',)

    def __init__(self, argument: Expression):
        argument = as_expression(argument)
        super().__init__(
            argument.is_constant,
            argument.height + 1,
            argument.size + 1,
            argument.complexity + 1,
            hash((self.kind, argument._hash)),
        )
        self._argument = argument

    @property
    def argument(self) -> Expression:
        return self._argument

    @property
    def children(self):
        return (self._argument,)

    def with_children(self, children):
        (argument,) = children
        if argument is self._argument:
            return self
        return type(self)(argument)

    def _same(self, other):
        return self._argument == other._argument

    def _eval(self, env):
        return self._apply(self._argument._eval(env))

    def _apply(self, value: float) -> float:
        raise NotImplementedError

    def _render(self):
        inner = self._argument.to_string()
        if isinstance(self._argument, (AssociativeCommutative, Power, Invert)):
            return f"{self.kind}{inner}"
        return f"{self.kind}({inner})"


class Neg(UnaryFunction):
    """Negation, -u."""

    __slots__ = ()

    kind = "neg"

    def _apply(self, value):
        return -value

    def _derive(self, name):
        return Neg(self._argument._derive(name))

    def _render(self):
        return f"-{self._argument.to_string()}"


class Invert(UnaryFunction):
    """Reciprocal, 1/u."""

    __slots__ = ()

    kind = "inv"

    def _apply(self, value):
        return real_div(1.0, value)

    def _derive(self, name):
        u = self._argument
        return Neg(divide(u._derive(name), Power(u, Constant(2))))

    def _render(self):
        return f"(1 / {self._argument.to_string()})"


class Exp(UnaryFunction):
    """Natural exponential, e^u."""

    __slots__ = ()

    kind = "exp"

    _apply = staticmethod(_guarded(math.exp))

    def _derive(self, name):
        return make_product([self, self._argument._derive(name)])


class Log(UnaryFunction):
    """Natural logarithm, ln(u)."""

    __slots__ = ()

    kind = "ln"

    _apply = staticmethod(real_log)

    def _derive(self, name):
        return divide(self._argument._derive(name), self._argument)


class Sin(UnaryFunction):
    """Sine."""

    __slots__ = ()

    kind = "sin"

    _apply = staticmethod(_guarded(math.sin))

    def _derive(self, name):
        return make_product([Cos(self._argument), self._argument._derive(name)])


class Cos(UnaryFunction):
    """Cosine."""

    __slots__ = ()

    kind = "cos"

    _apply = staticmethod(_guarded(math.cos))

    def _derive(self, name):
        return make_product([Neg(Sin(self._argument)), self._argument._derive(name)])


class Tan(UnaryFunction):
    """Tangent."""

    __slots__ = ()

    kind = "tan"

    _apply = staticmethod(_guarded(math.tan))

    def _derive(self, name):
        return divide(self._argument._derive(name),
                      Power(Cos(self._argument), Constant(2)))


# ============================================================
# Associative-commutative nodes
# ============================================================

class AssociativeCommutative(Expression):
    """
    An n-ary node whose argument order carries no meaning.

    Equality is multiset equality of the arguments and the hash folds the
    child hashes order-independently. At least two arguments are required;
    use make_sum / make_product to collapse shorter argument lists.
    """

    __slots__ = ('_arguments',)

    identity = 0.0

    def __init__(self, arguments: Iterable[Expression]):
        arguments = tuple(as_expression(a) for a in arguments)
        if len(arguments) < 2:
            raise InvalidArgument(
                f"{type(self).__name__} needs at least 2 arguments, got {len(arguments)}")
        folded = hash(self.kind)
        for a in arguments:
            folded = (folded + a._hash) & _HASH_MASK
        super().__init__(
            all(a.is_constant for a in arguments),
            max(a.height for a in arguments) + 1,
            sum(a.size for a in arguments) + 1,
            sum(a.complexity for a in arguments) + 1,
            folded,
        )
        self._arguments = arguments

    @property
    def arguments(self) -> Tuple[Expression, ...]:
        return self._arguments

    @property
    def children(self):
        return self._arguments

    def __len__(self) -> int:
        return len(self._arguments)

    def __iter__(self):
        return iter(self._arguments)

    def with_children(self, children):
        children = tuple(children)
        if len(children) == len(self._arguments) and all(
                new is old for new, old in zip(children, self._arguments)):
            return self
        return type(self)(children)

    def _subs(self, env):
        combine = make_sum if isinstance(self, Sum) else make_product
        return combine(argument._subs(env) for argument in self._arguments)

    def _same(self, other):
        if len(self._arguments) != len(other._arguments):
            return False
        if self._arguments == other._arguments:
            return True
        return Counter(self._arguments) == Counter(other._arguments)


class Sum(AssociativeCommutative):
    """A flattened sum of two or more terms."""

    __slots__ = ()

    kind = "sum"
    identity = 0.0

    def _eval(self, env):
        total = 0.0
        for term in self._arguments:
            total += term._eval(env)
        return total

    def _derive(self, name):
        return make_sum([term._derive(name) for term in self._arguments])

    def _render(self):
        parts = [self._arguments[0].to_string()]
        for term in self._arguments[1:]:
            if isinstance(term, Neg):
                parts.append(f" - {term.argument.to_string()}")
            else:
                parts.append(f" + {term.to_string()}")
        return "(" + "".join(parts) + ")"


class Product(AssociativeCommutative):
    """A flattened product of two or more factors."""

    __slots__ = ()

    kind = "product"
    identity = 1.0

    def _eval(self, env):
        total = 1.0
        for factor in self._arguments:
            total *= factor._eval(env)
        return total

    def _derive(self, name):
        # d(u*v) = v*du + u*dv, with v the product of the remaining factors
        u = self._arguments[0]
        v = make_product(self._arguments[1:])
        return make_sum([
            make_product([v, u._derive(name)]),
            make_product([u, v._derive(name)]),
        ])

    def _render(self):
        parts = [self._arguments[0].to_string()]
        for factor in self._arguments[1:]:
            if isinstance(factor, Invert):
                parts.append(f" / {factor.argument.to_string()}")
            else:
                parts.append(f" * {factor.to_string()}")
        return "(" + "".join(parts) + ")"


# ============================================================
# Power
# ============================================================

class Power(Expression):
    """base ^ exponent, following real pow."""

    __slots__ = ('_base', '_exponent')

    kind = "power"

    def __init__(self, base: Expression, exponent: Expression):
        base = as_expression(base)
        exponent = as_expression(exponent)
        super().__init__(
            base.is_constant and exponent.is_constant,
            max(base.height, exponent.height) + 1,
            base.size + exponent.size + 1,
            base.complexity + exponent.complexity + 1,
            hash(("power", base._hash, exponent._hash)),
        )
        self._base = base
        self._exponent = exponent

    @property
    def base(self) -> Expression:
        return self._base

    @property
    def exponent(self) -> Expression:
        return self._exponent

    @property
    def children(self):
        return (self._base, self._exponent)

    def with_children(self, children):
        base, exponent = children
        if base is self._base and exponent is self._exponent:
            return self
        return Power(base, exponent)

    def _eval(self, env):
        return real_pow(self._base._eval(env), self._exponent._eval(env))

    def _derive(self, name):
        u, v = self._base, self._exponent
        if u.is_constant and v.is_constant:
            return Constant(0)
        if v.is_constant:
            # n * u^(n-1) * du
            return make_product([v, Power(u, subtract(v, Constant(1))), u._derive(name)])
        if u.is_constant:
            # ln(c) * c^v * dv
            return make_product([Log(u), Power(u, v), v._derive(name)])
        # u^(v-1) * (v*du + u*ln(u)*dv)
        return make_product([
            Power(u, subtract(v, Constant(1))),
            make_sum([
                make_product([v, u._derive(name)]),
                make_product([u, Log(u), v._derive(name)]),
            ]),
        ])

    def _render(self):
        base = self._base.to_string()
        if isinstance(self._base, Neg) or (
                isinstance(self._base, Constant) and self._base.value < 0):
            base = f"({base})"
        return f"({base} ^ {self._exponent.to_string()})"


# ============================================================
# Coercion and combinators
# ============================================================

def as_expression(value) -> Expression:
    """
    Coerce a number or a variable name into an Expression.

    Raises:
        InvalidArgument: If the value cannot be coerced
    """
    if isinstance(value, Expression):
        return value
    if isinstance(value, str):
        return Variable(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Constant(value)
    raise InvalidArgument(f"cannot build an expression from {value!r}")


def _coerce(value) -> Optional[Expression]:
    try:
        return as_expression(value)
    except InvalidArgument:
        return None


def variable_name(variable: BindingKey) -> str:
    """Name of a Variable, or a validated variable name string."""
    if isinstance(variable, Variable):
        return variable.name
    if isinstance(variable, str) and variable:
        return variable
    raise InvalidArgument(f"expected a variable or a non-empty name, got {variable!r}")


def make_sum(terms: Iterable) -> Expression:
    """
    Sum the terms, flattening nested sums.

    Zero terms give the literal 0 and a single term is returned as-is,
    so no Sum with fewer than two arguments is ever built.
    """
    flat = []
    for term in terms:
        term = as_expression(term)
        if isinstance(term, Sum):
            flat.extend(term.arguments)
        else:
            flat.append(term)
    if not flat:
        return Constant(0)
    if len(flat) == 1:
        return flat[0]
    return Sum(flat)


def make_product(factors: Iterable) -> Expression:
    """Multiply the factors, flattening nested products (empty gives 1)."""
    flat = []
    for factor in factors:
        factor = as_expression(factor)
        if isinstance(factor, Product):
            flat.extend(factor.arguments)
        else:
            flat.append(factor)
    if not flat:
        return Constant(1)
    if len(flat) == 1:
        return flat[0]
    return Product(flat)


def add(left, right) -> Expression:
    return make_sum([left, right])


def subtract(left, right) -> Expression:
    """a - b builds a + (-b)."""
    return make_sum([left, Neg(as_expression(right))])


def multiply(left, right) -> Expression:
    return make_product([left, right])


def divide(left, right) -> Expression:
    """a / b builds a * (1/b), or just 1/b when a is the literal 1."""
    left = as_expression(left)
    reciprocal = Invert(as_expression(right))
    if isinstance(left, Constant) and left.value == 1:
        return reciprocal
    return make_product([left, reciprocal])


def power(base, exponent) -> Expression:
    return Power(as_expression(base), as_expression(exponent))


def neg(arg) -> Expression:
    return Neg(as_expression(arg))


def inv(arg) -> Expression:
    return Invert(as_expression(arg))


def exp(arg) -> Expression:
    return Exp(as_expression(arg))


def log(arg) -> Expression:
    return Log(as_expression(arg))


ln = log


def sin(arg) -> Expression:
    return Sin(as_expression(arg))


def cos(arg) -> Expression:
    return Cos(as_expression(arg))


def tan(arg) -> Expression:
    return Tan(as_expression(arg))


def to_string(expr) -> str:
    """Render an expression (or anything coercible to one) as infix text."""
    return as_expression(expr).to_string()


# Function name -> constructor, used by the parser and the fold preludes
FUNCTIONS: Dict[str, type] = {
    "neg": Neg,
    "inv": Invert,
    "exp": Exp,
    "ln": Log,
    "log": Log,
    "sin": Sin,
    "cos": Cos,
    "tan": Tan,
}
