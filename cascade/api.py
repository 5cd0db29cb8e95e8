"""
Public entry points.

Every entry point accepts source text (or an already built tree), parses
it, runs the relevant components and returns a fresh result record:

    from cascade import differentiate, solve_equation

    differentiate("x * sin(x)").text                 # 'sin(x) + x*cos(x)'
    solve_equation("x^2 - 5x + 6 = 0").numeric()     # [2.0, 3.0]

CASEngine bundles the options (rule library, step limit, numeric
settings) for callers that want something other than the defaults.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence, Tuple, Union

from .differentiate import derivative
from .errors import CASError, DomainError, ParseError
from .evaluate import domain_conditions, evaluate, try_numeric
from .formatting import to_latex
from .integrate import UNEVALUATED, antiderivative
from .nodes import (
    Node, Number, Variable, Operator, collect_functions, collect_variables, complexity,
    operators_used, substitute,
)
from .parser import parse_expression
from .limits import LimitFinder
from .results import CASResult, EquationSolution, LimitResult, SeriesExpansion, StepTrace
from .rules import RuleLibrary
from .series import SeriesExpander
from .simplifier import DEFAULT_MAX_STEPS, Simplifier
from .solver import DEFAULT_SEARCH_INTERVAL, PIVOT_TOLERANCE, Solver

logger = logging.getLogger(__name__)

ExprInput = Union[str, Node]

CONSTANT_OF_INTEGRATION = "C"


@contextmanager
def _recording(trace: StepTrace) -> Iterator[None]:
    """Attach the steps taken so far to errors that have none."""
    try:
        yield
    except CASError as error:
        if not error.steps:
            error.steps = list(trace.steps)
        raise


def parse(expr: ExprInput) -> Node:
    """Parse text into a tree; trees pass through unchanged."""
    if isinstance(expr, Node):
        return expr
    result = parse_expression(expr)
    if not result.is_valid:
        raise ParseError(result.errors)
    return result.ast


def _source(expr: ExprInput) -> str:
    return expr if isinstance(expr, str) else str(expr)


class CASEngine:
    """
    Configured entry points.

    Args:
        library: Rule library for the simplifier (default: DEFAULT_LIBRARY)
        max_steps: Pass limit of each simplification loop
        tolerance: Smallest usable pivot when solving linear systems
        search_interval: Interval scanned for roots of transcendental equations
        allow_numeric: Permit numeric root finding

    Example:
        engine = CASEngine(max_steps=10, allow_numeric=False)
        engine.simplify("2*x + 3*x").text    # '5*x'
    """

    def __init__(self, library: Optional[RuleLibrary] = None,
                 max_steps: int = DEFAULT_MAX_STEPS, tolerance: float = PIVOT_TOLERANCE,
                 search_interval: Tuple[float, float] = DEFAULT_SEARCH_INTERVAL,
                 allow_numeric: bool = True):
        self.simplifier = Simplifier(library, max_steps)
        self.tolerance = tolerance
        self.search_interval = search_interval
        self.allow_numeric = allow_numeric

    @property
    def library(self) -> RuleLibrary:
        return self.simplifier.library

    @property
    def max_steps(self) -> int:
        return self.simplifier.max_steps

    def _result(self, source: str, node: Node, trace: StepTrace, fixpoint: bool,
                numeric: Optional[float] = None, **extra) -> CASResult:
        trace.final = node
        metadata: Dict = {
            "complexity": complexity(node),
            "operators_used": operators_used(node),
            "variables": collect_variables(node),
            "functions": collect_functions(node),
            "fixpoint": fixpoint,
        }
        metadata.update(extra)
        if numeric is None:
            numeric = try_numeric(node)
        return CASResult(source, node, trace.steps, to_latex(node), numeric, metadata, trace)

    # ============================================================
    # Simplification and calculus
    # ============================================================

    def simplify(self, expr: ExprInput, max_steps: Optional[int] = None,
                 target_form: Optional[str] = None, domain: str = "real") -> CASResult:
        """
        Simplify an expression.

        Args:
            expr: Source text or tree
            max_steps: Pass limit (default: the engine's max_steps)
            target_form: None, "expanded" or "factored"
            domain: "real" or "complex"
        """
        node = parse(expr)
        trace = StepTrace()
        trace.initial = node
        with _recording(trace):
            result, fixpoint = self.simplifier.run(node, target_form, domain, trace, max_steps)
        return self._result(_source(expr), result, trace, fixpoint,
                            domain_conditions=domain_conditions(node))

    def differentiate(self, expr: ExprInput, variable: str = "x", order: int = 1) -> CASResult:
        """
        Differentiate order times with respect to variable, then simplify.

        Raises:
            ValueError: order is negative
            UnsupportedOperation: A function has no known derivative
        """
        if order < 0:
            raise ValueError(f"Derivative order must be non-negative, got {order}")
        node = parse(expr)
        trace = StepTrace()
        trace.initial = node
        with _recording(trace):
            current = node
            for _ in range(order):
                current = derivative(current, variable, trace)
            result, fixpoint = self.simplifier.run(current, trace=trace)
        return self._result(_source(expr), result, trace, fixpoint,
                            variable=variable, order=order)

    def integrate(self, expr: ExprInput, variable: str = "x",
                  definite: Optional[Tuple[float, float]] = None) -> CASResult:
        """
        Integrate with respect to variable.

        Indefinite integrals end in "+ C". Definite integrals evaluate
        F(b) - F(a); when F is unevaluated or undefined at a bound the
        numeric value is None and metadata["numeric_status"] says why.
        """
        node = parse(expr)
        trace = StepTrace()
        trace.initial = node
        with _recording(trace):
            raw = antiderivative(node, variable, self.simplifier, trace)
            anti, fixpoint = self.simplifier.run(raw, trace=trace)

        if definite is None:
            result = Operator("+", anti, Variable(CONSTANT_OF_INTEGRATION))
            trace.add("integrate", anti, result, "constant-of-integration",
                      "Add an arbitrary constant")
            return self._result(_source(expr), result, trace, fixpoint,
                                variable=variable, antiderivative=str(anti))

        a, b = definite
        upper = substitute(anti, variable, Number(b))
        lower = substitute(anti, variable, Number(a))
        difference = Operator("-", upper, lower)
        trace.add("integrate", anti, difference, "fundamental-theorem", "F(b) - F(a)")
        numeric = None
        if UNEVALUATED in collect_functions(anti):
            status = "undefined: antiderivative contains an unevaluated integral"
        else:
            try:
                numeric = evaluate(upper) - evaluate(lower)
                status = "ok"
            except DomainError as e:
                status = f"undefined: {e}"
        if numeric is None:
            logger.debug("Definite integral of %s not evaluated (%s)", node, status)
            result = self.simplifier.run(difference, trace=trace)[0]
        else:
            result = Number(numeric)
        return self._result(_source(expr), result, trace, fixpoint, numeric=numeric,
                            variable=variable, antiderivative=str(anti),
                            bounds=[a, b], numeric_status=status)

    # ============================================================
    # Equations and series
    # ============================================================

    def _solver(self, allow_numeric: Optional[bool]) -> Solver:
        if allow_numeric is None:
            allow_numeric = self.allow_numeric
        return Solver(self.simplifier, allow_numeric, self.search_interval, self.tolerance)

    def solve_equation(self, equation: ExprInput, variable: str = "x",
                       allow_numeric: Optional[bool] = None) -> EquationSolution:
        """
        Solve an equation (a bare expression means expr = 0).

        Raises:
            SolverUnavailable: needs_numeric tells a disallowed numeric
                method apart from an unsolvable equation
        """
        node = parse(equation)
        trace = StepTrace()
        trace.initial = node
        with _recording(trace):
            return self._solver(allow_numeric).solve(node, variable, trace)

    def solve_linear_system(self, equations: Sequence[ExprInput],
                            variables: Sequence[str]) -> EquationSolution:
        """
        Solve a square linear system.

        Raises:
            NoUniqueSolution: Singular, non-square or non-linear systems
        """
        nodes = [parse(e) for e in equations]
        trace = StepTrace()
        with _recording(trace):
            return self._solver(None).solve_system(nodes, variables, trace)

    def expand_series(self, expr: ExprInput, variable: str = "x", center: float = 0.0,
                      order: int = 5) -> SeriesExpansion:
        """Taylor expansion of expr about center up to the given order."""
        node = parse(expr)
        trace = StepTrace()
        trace.initial = node
        with _recording(trace):
            return SeriesExpander(self.simplifier).expand(
                node, variable, center, order, source=_source(expr), trace=trace)

    def limit(self, expr: ExprInput, variable: str = "x",
              point: float = 0.0) -> LimitResult:
        """
        Limit of expr as variable approaches point (float("inf") allowed).

        Raises:
            UnsupportedOperation: expr uses a function that cannot be evaluated
            DomainError: expr has variables other than the limit variable
        """
        node = parse(expr)
        trace = StepTrace()
        trace.initial = node
        with _recording(trace):
            return LimitFinder(self.simplifier).limit(
                node, variable, point, source=_source(expr), trace=trace)


DEFAULT_ENGINE = CASEngine()


def simplify(expr: ExprInput, max_steps: int = DEFAULT_MAX_STEPS,
             target_form: Optional[str] = None, domain: str = "real") -> CASResult:
    """Simplify an expression with the default rule library."""
    return DEFAULT_ENGINE.simplify(expr, max_steps, target_form, domain)


def differentiate(expr: ExprInput, variable: str = "x", order: int = 1) -> CASResult:
    """Differentiate and simplify."""
    return DEFAULT_ENGINE.differentiate(expr, variable, order)


def integrate(expr: ExprInput, variable: str = "x",
              definite: Optional[Tuple[float, float]] = None) -> CASResult:
    """Indefinite (+ C) or definite integral."""
    return DEFAULT_ENGINE.integrate(expr, variable, definite)


def solve_equation(equation: ExprInput, variable: str = "x",
                   allow_numeric: bool = True) -> EquationSolution:
    """Classify and solve one equation."""
    return DEFAULT_ENGINE.solve_equation(equation, variable, allow_numeric)


def solve_linear_system(equations: Sequence[ExprInput],
                        variables: Sequence[str]) -> EquationSolution:
    """Solve a square linear system by Gaussian elimination."""
    return DEFAULT_ENGINE.solve_linear_system(equations, variables)


def expand_series(expr: ExprInput, variable: str = "x", center: float = 0.0,
                  order: int = 5) -> SeriesExpansion:
    """Taylor expansion about center."""
    return DEFAULT_ENGINE.expand_series(expr, variable, center, order)


def limit(expr: ExprInput, variable: str = "x", point: float = 0.0) -> LimitResult:
    """Two-sided limit, or the behaviour at ±inf."""
    return DEFAULT_ENGINE.limit(expr, variable, point)
