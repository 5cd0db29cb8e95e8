"""
Result records returned by the CASCADE entry points.

Every call builds fresh records; nothing here is shared between calls.
"""

import math
from collections import Counter
from typing import Dict, Iterator, List, Optional, Sequence

from .formatting import format_expr, to_latex
from .nodes import Node, Number, Operator, substitute
from .evaluate import evaluate


def _show(node: Optional[Node]) -> str:
    return "?" if node is None else format_expr(node)


class Step:
    """One rewrite: which rule turned before into after, and why."""

    __slots__ = ("index", "operation", "before", "after", "rule", "explanation")

    def __init__(self, index: int, operation: str, before: Node, after: Node,
                 rule: str, explanation: str = ""):
        self.index = index
        self.operation = operation
        self.before = before
        self.after = after
        self.rule = rule
        self.explanation = explanation

    def __repr__(self) -> str:
        return f"{self.rule}: {format_expr(self.before)} → {format_expr(self.after)}"

    def to_dict(self) -> Dict:
        return {
            "index": self.index,
            "operation": self.operation,
            "rule": self.rule,
            "explanation": self.explanation,
            "before": format_expr(self.before),
            "after": format_expr(self.after),
        }


class StepTrace:
    """
    The ordered steps of one call, with the expressions at either end.

    ``format(style)`` renders it as:

        verbose   numbered steps between Initial and Final lines (also repr)
        compact   ``before --[rule, rule]--> after`` on one line
        rules     rule names joined by arrows
        chain     every intermediate expression, one per line
    """

    STYLES = ("verbose", "compact", "rules", "chain")

    def __init__(self):
        self.steps: List[Step] = []
        self.initial: Optional[Node] = None
        self.final: Optional[Node] = None

    @classmethod
    def from_steps(cls, steps: Sequence[Step], initial: Optional[Node] = None,
                   final: Optional[Node] = None) -> "StepTrace":
        """Trace over existing steps; missing ends come from the first and last step."""
        trace = cls()
        trace.steps = list(steps)
        if initial is None and trace.steps:
            initial = trace.steps[0].before
        if final is None and trace.steps:
            final = trace.steps[-1].after
        trace.initial, trace.final = initial, final
        return trace

    def add(self, operation: str, before: Node, after: Node,
            rule: str, explanation: str = "") -> Step:
        step = Step(len(self.steps) + 1, operation, before, after, rule, explanation)
        self.steps.append(step)
        return step

    def rules_applied(self) -> List[str]:
        return [step.rule for step in self.steps]

    def rule_counts(self) -> Dict[str, int]:
        return dict(Counter(self.rules_applied()))

    def summary(self) -> str:
        if not self.steps:
            return "No rewriting performed"
        counts = Counter(self.rules_applied())
        favourite, uses = counts.most_common(1)[0]
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {favourite} ({uses}x)")

    def format(self, style: str = "verbose") -> str:
        """Render the trace in one of STYLES; unknown styles fall back to verbose."""
        if style not in self.STYLES:
            style = "verbose"
        return getattr(self, f"_format_{style}")()

    def _format_verbose(self) -> str:
        lines = [f"Initial: {_show(self.initial)}"]
        for step in self.steps:
            note = f" ({step.explanation})" if step.explanation else ""
            lines.append(f"  {step.index}. [{step.operation}] {step!r}{note}")
        lines.append(f"Final: {_show(self.final)}")
        return "\n".join(lines)

    def _format_compact(self) -> str:
        names = ", ".join(self.rules_applied())
        return f"{_show(self.initial)} --[{names}]--> {_show(self.final)}"

    def _format_rules(self) -> str:
        return " -> ".join(self.rules_applied()) or "(no rules applied)"

    def _format_chain(self) -> str:
        if not self.steps:
            return _show(self.initial)
        lines = [format_expr(self.steps[0].before)]
        for step in self.steps:
            lines += [f"  --({step.rule})-->", format_expr(step.after)]
        return "\n".join(lines)

    def to_dict(self) -> Dict:
        return {
            "initial": _show(self.initial),
            "final": _show(self.final),
            "step_count": len(self.steps),
            "steps": [step.to_dict() for step in self.steps],
        }

    def __repr__(self) -> str:
        return self._format_verbose()

    def __len__(self) -> int:
        return len(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

class CASResult:
    """Outcome of simplify, differentiate and integrate."""

    def __init__(self, original: str, result: Node, steps: Sequence[Step],
                 latex: Optional[str] = None, numeric: Optional[float] = None,
                 metadata: Optional[Dict] = None, trace: Optional[StepTrace] = None):
        self.original = original
        self.result = result
        self.steps = list(steps)
        self.latex = latex
        self.numeric = numeric
        self.metadata = metadata or {}
        self.trace = trace

    @property
    def text(self) -> str:
        """The result as infix text."""
        return format_expr(self.result)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"CASResult({self.original!r} -> {self.text!r}, {len(self.steps)} steps)"

    def to_dict(self) -> Dict:
        return {
            "original": self.original,
            "result": self.text,
            "steps": [s.to_dict() for s in self.steps],
            "latex": self.latex,
            "numeric": self.numeric,
            "metadata": dict(self.metadata),
        }


class SolutionKind:
    """Equation classes recognised by the solver."""

    LINEAR = "linear"
    QUADRATIC = "quadratic"
    POLYNOMIAL = "polynomial"
    TRANSCENDENTAL = "transcendental"
    SYSTEM = "system"


class EquationSolution:
    """Solutions of one equation or of a linear system."""

    def __init__(self, variable: str, solutions: Sequence[Node], kind: str,
                 domain: str = "real", steps: Sequence[Step] = (),
                 variables: Optional[Sequence[str]] = None):
        self.variable = variable
        self.solutions = list(solutions)
        self.kind = kind
        self.domain = domain
        self.steps = list(steps)
        self.variables = list(variables) if variables is not None else [variable]

    def values(self) -> Dict[str, Node]:
        """Map variable names to solutions (for systems, one value each)."""
        if self.kind == SolutionKind.SYSTEM:
            return dict(zip(self.variables, self.solutions))
        raise ValueError("values() is only defined for systems; use solutions")

    def numeric(self) -> List[float]:
        """Solutions that evaluate to numbers, as floats."""
        out = []
        for s in self.solutions:
            try:
                out.append(evaluate(s))
            except ValueError:
                continue
        return out

    def __repr__(self) -> str:
        sols = ", ".join(format_expr(s) for s in self.solutions)
        return f"EquationSolution({self.kind}, {self.variable} ∈ {{{sols}}})"

    def to_dict(self) -> Dict:
        return {
            "variable": self.variable,
            "variables": list(self.variables),
            "solutions": [format_expr(s) for s in self.solutions],
            "kind": self.kind,
            "domain": self.domain,
            "steps": [s.to_dict() for s in self.steps],
        }


class SeriesExpansion:
    """Truncated Taylor series of an expression."""

    def __init__(self, source: str, variable: str, center: float, order: int,
                 terms: Sequence[Node], remainder: Node,
                 convergence_radius: float, total: Optional[Node] = None):
        self.source = source
        self.variable = variable
        self.center = center
        self.order = order
        self.terms = list(terms)
        self.remainder = remainder
        self.convergence_radius = convergence_radius
        self._total = total

    def polynomial(self) -> Node:
        """The sum of the non-zero terms (0 if all vanish)."""
        if self._total is not None:
            return self._total
        nonzero = [t for t in self.terms if not (isinstance(t, Number) and t.value == 0)]
        if not nonzero:
            return Number(0)
        total = nonzero[0]
        for term in nonzero[1:]:
            total = Operator("+", total, term)
        return total

    def evaluate(self, x: float) -> float:
        """Evaluate the truncated series at x."""
        return evaluate(substitute(self.polynomial(), self.variable, Number(x)))

    @property
    def latex(self) -> str:
        return to_latex(self.polynomial())

    def __repr__(self) -> str:
        radius = "inf" if math.isinf(self.convergence_radius) else f"{self.convergence_radius:g}"
        return (f"SeriesExpansion({self.source!r} about {self.center:g}, "
                f"order {self.order}: {format_expr(self.polynomial())}, R≈{radius})")

    def to_dict(self) -> Dict:
        return {
            "source": self.source,
            "variable": self.variable,
            "center": self.center,
            "order": self.order,
            "terms": [format_expr(t) for t in self.terms],
            "remainder": format_expr(self.remainder),
            "convergence_radius": self.convergence_radius,
        }


class LimitStatus:
    """How an expression behaves near the limit point."""

    EXISTS = "exists"
    INFINITE = "infinite"
    JUMP = "jump"
    ONE_SIDED = "one-sided"
    UNDEFINED = "undefined"


def _show_value(value: Optional[float]) -> str:
    if value is None:
        return "undefined"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return format_expr(Number(value))


class LimitResult:
    """
    Limit of an expression as a variable approaches a point.

    value is the two-sided limit (or the only side there is for
    ONE_SIDED); left and right are the one-sided limits, None where the
    expression is undefined on that side. At ±inf both hold the single
    direction of approach.
    """

    def __init__(self, source: str, variable: str, point: float, value: Optional[float],
                 status: str, left: Optional[float] = None, right: Optional[float] = None,
                 method: str = "", steps: Sequence[Step] = ()):
        self.source = source
        self.variable = variable
        self.point = point
        self.value = value
        self.status = status
        self.left = left
        self.right = right
        self.method = method
        self.steps = list(steps)

    @property
    def text(self) -> str:
        if self.status == LimitStatus.JUMP:
            return f"jump: left {_show_value(self.left)}, right {_show_value(self.right)}"
        if self.status == LimitStatus.ONE_SIDED:
            side = "right" if self.left is None else "left"
            return f"{_show_value(self.value)} (from the {side} only)"
        return _show_value(self.value)

    def __repr__(self) -> str:
        return (f"LimitResult({self.source!r} as {self.variable} -> "
                f"{_show_value(self.point)}: {self.text})")

    def to_dict(self) -> Dict:
        return {
            "source": self.source,
            "variable": self.variable,
            "point": self.point,
            "value": self.value,
            "status": self.status,
            "left": self.left,
            "right": self.right,
            "method": self.method,
            "steps": [s.to_dict() for s in self.steps],
        }
