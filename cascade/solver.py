"""
Equation classification and solving.

solve() moves everything to one side, simplifies, and dispatches on the
shape of the result:

    LINEAR          degree <= 1                 x = -b/a (symbolic coefficients allowed)
    QUADRATIC       degree 2                    quadratic formula
    POLYNOMIAL      degree >= 3                 rational roots, then numpy.roots
    TRANSCENDENTAL  anything else in x          sign-change scan refined with brentq

solve_system() solves square linear systems by Gaussian elimination with
partial pivoting.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import brentq

from .errors import NoUniqueSolution, SolverUnavailable, UnsupportedOperation
from .evaluate import FUNCTION_FOLDS, make_callable, try_numeric
from .nodes import (
    CONSTANTS, Node, Number, Variable, Operator, Function, Equation,
    collect_functions, collect_variables,
)
from .polynomial import (
    from_coefficients, linear_form, rational_roots, real_roots, snap, symbolic_coefficients,
)
from .results import EquationSolution, SolutionKind, StepTrace
from .simplifier import Simplifier

logger = logging.getLogger(__name__)

PIVOT_TOLERANCE = 1e-9
DEFAULT_SEARCH_INTERVAL = (-100.0, 100.0)

# Sample points for the sign-change scan
SCAN_POINTS = 4001

# |f(root)| above this marks a pole or a jump rather than a root
RESIDUAL_TOLERANCE = 1e-6


def _numbers(values: Sequence[float]) -> List[Node]:
    return [Number(snap(v)) for v in values]


def _kind(coeffs: Optional[List[Node]]) -> str:
    if coeffs is None:
        return SolutionKind.TRANSCENDENTAL
    degree = len(coeffs) - 1
    if degree <= 1:
        return SolutionKind.LINEAR
    if degree == 2:
        return SolutionKind.QUADRATIC
    return SolutionKind.POLYNOMIAL


class Solver:
    """
    Solve single equations and linear systems.

    Args:
        simplifier: Simplifier used to normalise equations and coefficients
        allow_numeric: Permit numpy/scipy fallbacks; when False those cases
            raise SolverUnavailable with needs_numeric=True
        search_interval: Interval scanned for roots of transcendental equations
        tolerance: Smallest usable pivot in Gaussian elimination
    """

    def __init__(self, simplifier: Optional[Simplifier] = None, allow_numeric: bool = True,
                 search_interval: Tuple[float, float] = DEFAULT_SEARCH_INTERVAL,
                 tolerance: float = PIVOT_TOLERANCE):
        lo, hi = search_interval
        if not lo < hi:
            raise ValueError(f"Empty search interval: {search_interval}")
        self.simplifier = simplifier if simplifier is not None else Simplifier()
        self.allow_numeric = allow_numeric
        self.search_interval = (float(lo), float(hi))
        self.tolerance = tolerance

    # ============================================================
    # Single equations
    # ============================================================

    def normalize(self, equation: Node, trace: StepTrace) -> Node:
        """lhs - rhs, simplified; a bare expression is read as expr = 0."""
        if isinstance(equation, Equation):
            difference = Operator("-", equation.lhs, equation.rhs)
            trace.add("normalize", equation, difference, "move-terms",
                      "Subtract the right-hand side from both sides")
        else:
            difference = equation
        result, _ = self.simplifier.run(difference, trace=trace)
        return result

    def classify(self, expr: Node, variable: str) -> str:
        """Classify a normalised expression (expr = 0) in variable."""
        return _kind(symbolic_coefficients(expr, variable, self.simplifier.simplify))

    def solve(self, equation: Node, variable: str = "x",
              trace: Optional[StepTrace] = None) -> EquationSolution:
        """
        Solve one equation for variable.

        Raises:
            SolverUnavailable: The equation needs a numerical method that is
                not allowed, or has symbolic parameters blocking numeric work
        """
        if trace is None:
            trace = StepTrace()
        expr = self.normalize(equation, trace)
        coeffs = symbolic_coefficients(expr, variable, self.simplifier.simplify)
        kind = _kind(coeffs)
        logger.debug("Solving %s = 0 for %s as %s", expr, variable, kind)

        if kind == SolutionKind.LINEAR:
            return self._linear(coeffs, variable, trace)
        if kind == SolutionKind.QUADRATIC:
            return self._quadratic(coeffs, variable, trace)
        if kind == SolutionKind.POLYNOMIAL:
            return self._polynomial(coeffs, variable, trace)
        return self._transcendental(expr, variable, trace)

    def _linear(self, coeffs: List[Node], variable: str, trace: StepTrace) -> EquationSolution:
        if len(coeffs) < 2:
            constant = coeffs[0] if coeffs else Number(0)
            value = try_numeric(constant)
            if not coeffs or (value is not None and value == 0):
                domain = "all real numbers"
            else:
                domain = "no solution"
            return EquationSolution(variable, [], SolutionKind.LINEAR, domain, trace.steps)

        b, a = coeffs
        raw = Operator("/", Operator("*", Number(-1), b), a)
        solution = self.simplifier.run(raw, trace=trace)[0]
        trace.add("solve", raw, solution, "linear-solution", f"{variable} = -b/a")
        return EquationSolution(variable, [solution], SolutionKind.LINEAR, "real", trace.steps)

    def _quadratic(self, coeffs: List[Node], variable: str,
                   trace: StepTrace) -> EquationSolution:
        c, b, a = coeffs
        values = [try_numeric(n) for n in (a, b, c)]
        if all(v is not None for v in values):
            na, nb, nc = values
            discriminant = nb * nb - 4 * na * nc
            trace.add("solve", from_coefficients([nc, nb, na], variable),
                      Number(discriminant), "discriminant", "b^2 - 4ac")
            if discriminant < 0:
                return EquationSolution(variable, [], SolutionKind.QUADRATIC,
                                        "no real solution", trace.steps)
            root = math.sqrt(discriminant)
            roots = sorted([(-nb - root) / (2 * na), (-nb + root) / (2 * na)])
            return EquationSolution(variable, _numbers(roots), SolutionKind.QUADRATIC,
                                    "real", trace.steps)

        # Symbolic coefficients: keep the formula
        discriminant = Operator("-", Operator("^", b, Number(2)),
                                Operator("*", Operator("*", Number(4), a), c))
        root = Function("sqrt", [discriminant])
        minus_b = Operator("*", Number(-1), b)
        two_a = Operator("*", Number(2), a)
        solutions = []
        for op in ("-", "+"):
            raw = Operator("/", Operator(op, minus_b, root), two_a)
            solution = self.simplifier.run(raw, trace=trace)[0]
            trace.add("solve", raw, solution, "quadratic-formula",
                      f"{variable} = (-b {op} sqrt(b^2 - 4ac))/(2a)")
            solutions.append(solution)
        return EquationSolution(variable, solutions, SolutionKind.QUADRATIC, "real", trace.steps)

    def _polynomial(self, coeffs: List[Node], variable: str,
                    trace: StepTrace) -> EquationSolution:
        values = [try_numeric(n) for n in coeffs]
        if any(v is None for v in values):
            raise SolverUnavailable(
                f"Polynomial of degree {len(coeffs) - 1} with symbolic coefficients",
                needs_numeric=False, steps=trace.steps)

        roots, remainder = rational_roots(values)
        found = [float(r) for r in roots]
        if roots:
            trace.add("solve", from_coefficients(values, variable),
                      from_coefficients(list(reversed(remainder)), variable),
                      "rational-roots",
                      f"Divide out roots {', '.join(str(r) for r in roots)}")
        remaining = [float(c) for c in reversed(remainder)]
        if len(remaining) == 3:
            c, b, a = remaining
            discriminant = b * b - 4 * a * c
            if discriminant >= 0:
                root = math.sqrt(discriminant)
                found += [(-b - root) / (2 * a), (-b + root) / (2 * a)]
        elif len(remaining) > 3 or (not roots and len(remaining) > 1):
            if not self.allow_numeric:
                raise SolverUnavailable(
                    f"Polynomial of degree {len(remaining) - 1} has no closed-form roots",
                    needs_numeric=True, steps=trace.steps)
            numeric = real_roots(remaining)
            trace.add("solve", from_coefficients(remaining, variable),
                      Number(len(numeric)), "numeric-roots", "Real roots from numpy.roots")
            found += numeric
        elif len(remaining) == 2:
            found.append(-remaining[0] / remaining[1])

        unique: List[float] = []
        for value in sorted(snap(v) for v in found):
            if not unique or abs(value - unique[-1]) > 1e-9:
                unique.append(value)
        return EquationSolution(variable, _numbers(unique), SolutionKind.POLYNOMIAL,
                                "real", trace.steps)

    def _transcendental(self, expr: Node, variable: str,
                        trace: StepTrace) -> EquationSolution:
        for name in collect_functions(expr):
            if name not in FUNCTION_FOLDS:
                raise UnsupportedOperation(name, operation="solving", steps=trace.steps)
        others =[v for v in collect_variables(expr) if v != variable and v not in CONSTANTS]
        if others:
            raise SolverUnavailable(
                f"Transcendental equation with parameters {', '.join(others)}",
                needs_numeric=False, steps=trace.steps)
        if not self.allow_numeric:
            raise SolverUnavailable(f"Transcendental equation in {variable}",
                                    needs_numeric=True, steps=trace.steps)

        roots = self.scan(expr, variable)
        lo, hi = self.search_interval
        trace.add("solve", expr, Number(len(roots)), "numeric-scan",
                  f"Sign changes on [{lo:g}, {hi:g}] refined with brentq")
        return EquationSolution(variable, _numbers(roots), SolutionKind.TRANSCENDENTAL,
                                "real", trace.steps)

    def scan(self, expr: Node, variable: str) -> List[float]:
        """Roots of expr in the search interval, found by bracketing sign changes."""
        f = make_callable(expr, variable)

        def safe(x: float) -> float:
            try:
                return f(x)
            except ValueError:
                return math.nan

        lo, hi = self.search_interval
        xs = np.linspace(lo, hi, SCAN_POINTS)
        ys = np.array([safe(float(x)) for x in xs])
        roots: List[float] = []
        for i in range(len(xs) - 1):
            x0, x1, y0, y1 = float(xs[i]), float(xs[i + 1]), ys[i], ys[i + 1]
            if not (np.isfinite(y0) and np.isfinite(y1)):
                continue
            if y0 == 0:
                candidate = x0
            elif y0 * y1 < 0:
                candidate = brentq(safe, x0, x1, xtol=1e-14)
            else:
                continue
            if abs(safe(candidate)) > RESIDUAL_TOLERANCE:
                logger.debug("Rejecting %g: sign change across a discontinuity", candidate)
                continue
            if not roots or abs(candidate - roots[-1]) > 1e-9:
                roots.append(candidate)
        if ys.size and np.isfinite(ys[-1]) and ys[-1] == 0:
            if not roots or abs(float(xs[-1]) - roots[-1]) > 1e-9:
                roots.append(float(xs[-1]))
        return roots

    # ============================================================
    # Linear systems
    # ============================================================

    def solve_system(self, equations: Sequence[Node], variables: Sequence[str],
                     trace: Optional[StepTrace] = None) -> EquationSolution:
        """
        Solve a square linear system.

        Raises:
            NoUniqueSolution: The system is not square, an equation is not
                linear with numeric coefficients, or a pivot is below tolerance
        """
        if trace is None:
            trace = StepTrace()
        variables = list(variables)
        if len(equations) != len(variables) or not variables:
            raise NoUniqueSolution(
                f"Need one equation per variable, got {len(equations)} equations "
                f"for {len(variables)} variables", trace.steps)

        n = len(variables)
        matrix = np.zeros((n, n))
        rhs = np.zeros(n)
        for row, equation in enumerate(equations):
            expr = self.normalize(equation, trace)
            form = linear_form(expr, variables)
            if form is None:
                raise NoUniqueSolution(
                    f"Equation {row + 1} is not linear in {', '.join(variables)}: {expr}",
                    trace.steps)
            for col, name in enumerate(variables):
                matrix[row, col] = form.get(name, 0.0)
            rhs[row] = -form.get(None, 0.0)

        logger.debug("Linear system\n%s\n%s", matrix, rhs)
        values = self._eliminate(matrix, rhs, trace)
        for name, value in zip(variables, values):
            trace.add("solve", Variable(name), Number(snap(value)), "back-substitution",
                      f"Solve for {name}")
        return EquationSolution("system", _numbers(values), SolutionKind.SYSTEM, "real",
                                trace.steps, variables=variables)

    def _eliminate(self, matrix: np.ndarray, rhs: np.ndarray, trace: StepTrace) -> List[float]:
        """Gaussian elimination with partial pivoting."""
        a = matrix.astype(float).copy()
        b = rhs.astype(float).copy()
        n = len(b)
        for col in range(n):
            pivot_row = col + int(np.argmax(np.abs(a[col:, col])))
            if abs(a[pivot_row, col]) < self.tolerance:
                raise NoUniqueSolution(
                    f"Singular system: pivot {a[pivot_row, col]:g} in column {col + 1}",
                    trace.steps)
            if pivot_row != col:
                a[[col, pivot_row]] = a[[pivot_row, col]]
                b[[col, pivot_row]] = b[[pivot_row, col]]
            for row in range(col + 1, n):
                factor = a[row, col] / a[col, col]
                a[row, col:] -= factor * a[col, col:]
                b[row] -= factor * b[col]

        x = np.zeros(n)
        for row in range(n - 1, -1, -1):
            x[row] = (b[row] - a[row, row + 1:] @ x[row + 1:]) / a[row, row]
        return [float(v) for v in x]
