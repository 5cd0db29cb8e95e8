"""
Taylor series expansion.

The n-th term is f^(n)(c)/n! * (x - c)^n, with each derivative taken from
the previous one and simplified in between. Numeric coefficients close to a
small fraction are written as that fraction, so exp(x) expands to
1 + x + x^2/2 + x^3/6 + ...

The remainder and the convergence radius are estimates: the remainder is
the first omitted term and the radius comes from ratios of successive
non-zero coefficients.
"""

import logging
import math
from fractions import Fraction
from typing import List, Optional

from .differentiate import derivative
from .errors import DomainError
from .evaluate import evaluate
from .nodes import (
    CONSTANTS, Node, Number, Variable, Operator, Function,
    collect_variables, is_number, substitute,
)
from .polynomial import build_sum
from .results import SeriesExpansion, StepTrace
from .simplifier import Simplifier

logger = logging.getLogger(__name__)

# Largest denominator tried when writing a coefficient as a fraction
MAX_DENOMINATOR = 10 ** 6


def _rational(value: float) -> Node:
    """value as an integer or p/q node when that is exact to 1e-12."""
    if value.is_integer():
        return Number(value)
    fraction = Fraction(value).limit_denominator(MAX_DENOMINATOR)
    if abs(float(fraction) - value) > 1e-12 * max(1.0, abs(value)):
        return Number(value)
    if fraction.denominator == 1:
        return Number(fraction.numerator)
    return Operator("/", Number(fraction.numerator), Number(fraction.denominator))


def radius_estimate(coefficients: List[Optional[float]]) -> float:
    """
    Estimate the radius of convergence from coefficients a_0, a_1, ...

    Uses |a_i/a_j|^(1/(j-i)) over successive non-zero numeric coefficients.
    Growing estimates, or fewer than two usable coefficients, give inf.
    """
    nonzero = [(n, abs(a)) for n, a in enumerate(coefficients) if a is not None and a != 0]
    if len(nonzero) < 2:
        return math.inf
    estimates = []
    for (i, a_i), (j, a_j) in zip(nonzero, nonzero[1:]):
        estimates.append((a_i / a_j) ** (1.0 / (j - i)))
    if len(estimates) >= 2 and all(b > a for a, b in zip(estimates, estimates[1:])):
        return math.inf
    return estimates[-1]


class SeriesExpander:
    """Taylor expansion by repeated differentiation."""

    def __init__(self, simplifier: Optional[Simplifier] = None):
        self.simplifier = simplifier if simplifier is not None else Simplifier()

    def _coefficient(self, nth: Node, variable: str, center: float, n: int,
                     trace: StepTrace) -> Node:
        """f^(n)(center)/n!, symbolic when free parameters remain."""
        at_center = self.simplifier.simplify(substitute(nth, variable, Number(center)))
        params = [v for v in collect_variables(at_center) if v not in CONSTANTS]
        if params:
            coefficient = self.simplifier.simplify(
                Operator("/", at_center, Number(math.factorial(n))))
        else:
            try:
                value = evaluate(at_center)
            except DomainError as e:
                raise DomainError(
                    f"Derivative {n} cannot be evaluated at {variable} = {center:g}: {e}",
                    steps=trace.steps) from e
            coefficient = _rational(value / math.factorial(n))
        trace.add("series", nth, coefficient, "taylor-coefficient",
                  f"f^({n})({center:g})/{n}!")
        return coefficient

    @staticmethod
    def _power(variable: str, center: float, n: int) -> Node:
        x = Variable(variable)
        shifted = x if center == 0 else Operator("-", x, Number(center))
        return shifted if n == 1 else Operator("^", shifted, Number(n))

    def _term(self, coefficient: Node, variable: str, center: float, n: int) -> Node:
        if n == 0:
            return coefficient
        power = self._power(variable, center, n)
        return self.simplifier.simplify(Operator("*", coefficient, power))

    def expand(self, expr: Node, variable: str = "x", center: float = 0.0, order: int = 5,
               source: str = "", trace: Optional[StepTrace] = None) -> SeriesExpansion:
        """
        Expand expr about center up to (x - center)^order.

        Raises:
            ValueError: order is negative
            DomainError: A derivative cannot be evaluated at center
            UnsupportedOperation: expr contains a function with no known derivative
        """
        if order < 0:
            raise ValueError(f"Series order must be non-negative, got {order}")
        if trace is None:
            trace = StepTrace()
        center = float(center)

        nth = self.simplifier.simplify(expr)
        coefficients: List[Node] = []
        remainder = None
        for n in range(order + 2):
            if n > 0:
                nth = self.simplifier.simplify(derivative(nth, variable, trace))
            try:
                coefficients.append(self._coefficient(nth, variable, center, n, trace))
            except DomainError:
                if n <= order:
                    raise
                # Only the order of the first omitted term is known
                remainder = Function("O", [self._power(variable, center, n)])
                trace.add("series", nth, remainder, "remainder-order",
                          f"f^({n}) is undefined at {center:g}")

        terms = [self._term(c, variable, center, n) for n, c in enumerate(coefficients)]
        if remainder is None:
            remainder = terms[order + 1]
        numeric = []
        for c in coefficients:
            try:
                numeric.append(evaluate(c))
            except DomainError:
                numeric.append(None)
        radius = radius_estimate(numeric)
        logger.debug("Series of %s about %g: radius estimate %g", expr, center, radius)

        kept = [(1.0, t) for t in terms[:order + 1] if not is_number(t, 0)]
        total = self.simplifier.simplify(build_sum(kept))
        return SeriesExpansion(source or str(expr), variable, center, order,
                               terms[:order + 1], remainder, radius, total=total)
