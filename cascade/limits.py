"""
Limits of expressions in one variable.

LimitFinder tries three methods in turn:

    substitution   the expression is defined at the point
    lhopital       a quotient that is 0/0 there; differentiate both sides
    numeric        sample point ± h for shrinking h and compare the sides

Infinite points are approached along x = ±2^k. Numeric answers are
estimates: a side settles when two successive samples agree, and diverges
when the samples keep moving the same way without slowing down.

    LimitFinder().limit(E("sin(x)/x"), "x", 0).value      # 1.0
    LimitFinder().limit(E("abs(x)/x"), "x", 0).status     # 'jump'
"""

import logging
import math
from typing import List, Optional

import numpy as np

from .differentiate import derivative
from .errors import DomainError, UnsupportedOperation
from .evaluate import CONSTANT_VALUES, FUNCTION_FOLDS, try_numeric
from .nodes import Node, Number, Operator, collect_functions, collect_variables
from .polynomial import snap
from .results import LimitResult, LimitStatus, StepTrace
from .simplifier import Simplifier

logger = logging.getLogger(__name__)

# Offsets from a finite point, largest first
STEPS = np.logspace(-2, -8, 7)

# Sample magnitudes for x -> ±inf
FAR_POINTS = np.logspace(1, 60, 60, base=2.0)

# Relative agreement of successive samples that counts as settled
SETTLE_TOLERANCE = 1e-5

# Settled values this close to an integer are reported as that integer
SNAP_TOLERANCE = 1e-6

# Divergence needs this many same-signed differences and a sample this large
DIVERGENCE_RUN = 4
DIVERGENCE_FLOOR = 10.0

# Values within this of zero count as 0 in the 0/0 test
ZERO_TOLERANCE = 1e-12

MAX_LHOPITAL = 5


def _accelerate(a: float, b: float, c: float) -> float:
    """Aitken's delta-squared estimate of where a, b, c are converging."""
    d1, d2 = b - a, c - b
    if d2 == d1:
        return c
    estimate = c - d2 * d2 / (d2 - d1)
    if not math.isfinite(estimate) or abs(estimate - c) > 10 * abs(d2):
        return c
    return estimate


def settle(samples: List[float]) -> Optional[float]:
    """
    Where a sequence of samples is heading: a number, ±inf or None.

    Settles at the first pair of successive samples that agree, which
    keeps round-off at the smallest offsets out of the answer. Diverges
    when the last DIVERGENCE_RUN differences share a sign, do not shrink
    by more than half, and the samples have passed DIVERGENCE_FLOOR.
    """
    for i in range(1, len(samples)):
        previous, current = samples[i - 1], samples[i]
        if abs(current - previous) <= SETTLE_TOLERANCE * max(1.0, abs(current)):
            if i >= 2:
                current = _accelerate(samples[i - 2], previous, current)
            return snap(current, SNAP_TOLERANCE)
    if len(samples) <= DIVERGENCE_RUN or abs(samples[-1]) < DIVERGENCE_FLOOR:
        return None
    diffs = [b - a for a, b in zip(samples, samples[1:])][-DIVERGENCE_RUN:]
    same_way = all(d > 0 for d in diffs) or all(d < 0 for d in diffs)
    steady = all(abs(b) >= 0.5 * abs(a) for a, b in zip(diffs, diffs[1:]))
    if same_way and steady:
        return math.copysign(math.inf, diffs[-1])
    return None


def _same(a: float, b: float) -> bool:
    if math.isinf(a) or math.isinf(b):
        return a == b
    return math.isclose(a, b, rel_tol=1e-6, abs_tol=1e-9)


class LimitFinder:
    """Limits by substitution, L'Hopital's rule or numeric approach."""

    def __init__(self, simplifier: Optional[Simplifier] = None):
        self.simplifier = simplifier if simplifier is not None else Simplifier()

    def _samples(self, expr: Node, variable: str, points) -> List[float]:
        values = []
        for x in points:
            value = try_numeric(expr, {variable: float(x)})
            if value is not None:
                values.append(value)
        return values

    def _lhopital(self, node: Operator, variable: str, point: float, trace: StepTrace,
                  depth: int = 1) -> Optional[float]:
        env = {variable: point}
        top, bottom = try_numeric(node.left, env), try_numeric(node.right, env)
        if top is None or bottom is None \
                or abs(top) > ZERO_TOLERANCE or abs(bottom) > ZERO_TOLERANCE:
            return None
        try:
            raw = Operator("/", derivative(node.left, variable, trace),
                           derivative(node.right, variable, trace))
        except UnsupportedOperation:
            return None
        ratio = self.simplifier.run(raw, trace=trace)[0]
        trace.add("limit", node, ratio, "lhopital", "0/0: differentiate top and bottom")
        value = try_numeric(ratio, env)
        if value is not None:
            return value
        if depth < MAX_LHOPITAL and isinstance(ratio, Operator) and ratio.op == "/":
            return self._lhopital(ratio, variable, point, trace, depth + 1)
        return None

    def _result(self, source: str, variable: str, point: float, left: Optional[float],
                right: Optional[float], method: str, trace: StepTrace) -> LimitResult:
        if left is None and right is None:
            status, value = LimitStatus.UNDEFINED, None
        elif left is None or right is None:
            status, value = LimitStatus.ONE_SIDED, right if left is None else left
        elif _same(left, right):
            value = right
            status = LimitStatus.INFINITE if math.isinf(value) else LimitStatus.EXISTS
        else:
            status, value = LimitStatus.JUMP, None
        logger.debug("limit of %s at %s = %g: %s (%s)", source, variable, point, status, method)
        return LimitResult(source, variable, point, value, status, left, right, method,
                           trace.steps)

    def limit(self, expr: Node, variable: str = "x", point: float = 0.0, source: str = "",
              trace: Optional[StepTrace] = None) -> LimitResult:
        """
        Limit of expr as variable approaches point (which may be ±inf).

        Raises:
            UnsupportedOperation: expr uses a function that cannot be evaluated
            DomainError: expr has variables other than the limit variable
        """
        if trace is None:
            trace = StepTrace()
        source = source or str(expr)
        point = float(point)
        for name in collect_functions(expr):
            if name not in FUNCTION_FOLDS:
                raise UnsupportedOperation(name, operation="limits", steps=trace.steps)
        others = [v for v in collect_variables(expr)
                  if v != variable and v not in CONSTANT_VALUES]
        if others:
            raise DomainError(f"Limit needs values for {', '.join(others)}",
                              steps=trace.steps)

        expr = self.simplifier.run(expr, trace=trace)[0]

        if math.isinf(point):
            value = settle(self._samples(expr, variable, math.copysign(1.0, point) * FAR_POINTS))
            trace.add("limit", expr, expr, "numeric-approach",
                      f"Sampled {variable} = ±2^k towards {point:g}")
            return self._result(source, variable, point, value, value, "numeric", trace)

        h = float(STEPS[-1]) * max(1.0, abs(point))
        value = try_numeric(expr, {variable: point})
        if value is not None:
            trace.add("limit", expr, Number(value), "substitution",
                      f"Defined at {variable} = {point:g}")
            left = value if try_numeric(expr, {variable: point - h}) is not None else None
            right = value if try_numeric(expr, {variable: point + h}) is not None else None
            return self._result(source, variable, point, left, right, "substitution", trace)

        if isinstance(expr, Operator) and expr.op == "/":
            value = self._lhopital(expr, variable, point, trace)
            if value is not None:
                return self._result(source, variable, point, value, value, "lhopital", trace)

        scale = max(1.0, abs(point))
        left = settle(self._samples(expr, variable, point - STEPS * scale))
        right = settle(self._samples(expr, variable, point + STEPS * scale))
        trace.add("limit", expr, expr, "numeric-approach",
                  f"Sampled {variable} = {point:g} ± 10^-k")
        return self._result(source, variable, point, left, right, "numeric", trace)
