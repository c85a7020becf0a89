"""
Exception types raised by symmath.

Every error is local and synchronous: a failure aborts only the call that
triggered it, and since expressions are immutable no partial state is ever
visible afterwards.
"""


class SymmathError(Exception):
    """Base class for all symmath errors."""


class InvalidArgument(SymmathError, ValueError):
    """Malformed construction input, e.g. an empty variable name."""


class ParseError(InvalidArgument):
    """Infix text that cannot be turned into an expression."""

    def __init__(self, message: str, position: int = -1):
        if position >= 0:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class InvalidState(SymmathError, ArithmeticError):
    """``value`` was requested on an expression that is not constant."""


class UnboundVariable(SymmathError, KeyError):
    """``evaluate`` reached a variable with no binding."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"no value bound for variable '{self.name}'"


class ContractViolation(SymmathError, AssertionError):
    """A rule was transformed without a preceding successful match."""


class SimplificationDidNotConverge(SymmathError, RuntimeError):
    """The rewrite loop exceeded its step ceiling."""

    def __init__(self, steps: int, phase: str = ""):
        where = f" in phase '{phase}'" if phase else ""
        super().__init__(f"no fixed point after {steps} rewrite steps{where}")
        self.steps = steps
        self.phase = phase
