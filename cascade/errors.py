"""
Exceptions raised by the CASCADE entry points.

Every error carries the steps that were completed before the failure
(possibly none), so callers can show how far a computation got.
"""

from typing import List, Optional, Sequence


class CASError(Exception):
    """Base class for engine errors."""

    def __init__(self, message: str, steps: Optional[Sequence] = None):
        super().__init__(message)
        self.steps: List = list(steps or [])


class ParseError(CASError):
    """The input text is not a valid expression."""

    def __init__(self, errors: Sequence[str], steps: Optional[Sequence] = None):
        self.errors = list(errors)
        super().__init__("Parse error: " + "; ".join(self.errors), steps)


class UnsupportedOperation(CASError):
    """A transform met an operator or function it has no rule for."""

    def __init__(self, symbol: str, operation: str = "differentiation",
                 steps: Optional[Sequence] = None):
        self.symbol = symbol
        self.operation = operation
        super().__init__(f"Unsupported {operation} of '{symbol}'", steps)


class NoUniqueSolution(CASError):
    """A linear system is singular, degenerate or not square."""


class SolverUnavailable(CASError):
    """
    No solver handles this equation.

    needs_numeric is True when a numerical method would work but was not
    allowed, False when the equation is outside what the engine can solve.
    """

    def __init__(self, message: str, needs_numeric: bool = False,
                 steps: Optional[Sequence] = None):
        self.needs_numeric = needs_numeric
        reason = "needs numerical method" if needs_numeric else "no known method"
        super().__init__(f"{message} ({reason})", steps)


class DomainError(CASError, ValueError):
    """An expression could not be evaluated to a real number."""
