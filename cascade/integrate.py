"""
Symbolic antiderivatives.

antiderivative() applies a small table of integration rules structurally.
When no rule covers an expression it is wrapped in the unevaluated node
integral(expr, x) instead of guessing, so

    antiderivative(E("x*sin(x)"), "x")   # integral(x*sin(x), x)

The result is not simplified and carries no constant of integration;
cascade.api adds both.
"""

import logging
from typing import Callable, Dict, Optional

from .errors import UnsupportedOperation
from .nodes import Node, Number, Variable, Operator, Function, Equation, is_number, free_of
from .polynomial import linear_parts
from .results import StepTrace
from .simplifier import Simplifier

logger = logging.getLogger(__name__)

UNEVALUATED = "integral"


def _sqrt_antiderivative(u: Node) -> Node:
    three_halves = Operator("/", Number(3), Number(2))
    return Operator("/", Operator("*", Number(2), Operator("^", u, three_halves)), Number(3))


# Antiderivative F(u) of each function f(u)
FUNCTION_INTEGRALS: Dict[str, Callable[[Node], Node]] = {
    "sin": lambda u: Operator("*", Number(-1), Function("cos", [u])),
    "cos": lambda u: Function("sin", [u]),
    "tan": lambda u: Operator("*", Number(-1), Function("ln", [Function("cos", [u])])),
    "exp": lambda u: Function("exp", [u]),
    "ln": lambda u: Operator("-", Operator("*", u, Function("ln", [u])), u),
    "sqrt": _sqrt_antiderivative,
    "sinh": lambda u: Function("cosh", [u]),
    "cosh": lambda u: Function("sinh", [u]),
}


def unevaluated(node: Node, variable: str) -> Function:
    return Function(UNEVALUATED, [node, Variable(variable)])


def _over(node: Node, slope: Node) -> Node:
    """Divide by the slope of a linear argument (nothing to do for slope 1)."""
    if is_number(slope, 1):
        return node
    return Operator("/", node, slope)


def _reciprocal_power(node: Node, variable: str) -> Optional[Node]:
    """u^(-n) for a denominator u^n or sqrt(u) with n free of the variable."""
    if isinstance(node, Function) and node.name == "sqrt" and len(node.args) == 1:
        return Operator("^", node.arg, Operator("/", Number(-1), Number(2)))
    if isinstance(node, Operator) and node.op == "^" and free_of(node.right, variable):
        n = node.right
        negated = Number(-n.value) if is_number(n) else Operator("*", Number(-1), n)
        return Operator("^", node.left, negated)
    return None


class _Integrator:
    """One antiderivative of a tree, logging each rule it applies."""

    def __init__(self, variable: str, trace: StepTrace, simplifier: Simplifier):
        self.variable = variable
        self.x = Variable(variable)
        self.trace = trace
        self.simplifier = simplifier

    def _log(self, before: Node, after: Node, rule: str, explanation: str) -> Node:
        self.trace.add("integrate", before, after, rule, explanation)
        return after

    def _linear(self, node: Node):
        return linear_parts(node, self.variable, self.simplifier.simplify)

    def _give_up(self, node: Node) -> Node:
        logger.debug("No integration rule for %s", node)
        return self._log(node, unevaluated(node, self.variable), "unevaluated",
                         "No rule applies; left as an unevaluated integral")

    def i(self, node: Node) -> Node:
        if isinstance(node, Equation):
            raise UnsupportedOperation("=", operation="integration", steps=self.trace.steps)

        if free_of(node, self.variable):
            return self._log(node, Operator("*", node, self.x), "constant-rule",
                             f"Integral of a constant c is c*{self.variable}")

        if isinstance(node, Variable):
            result = Operator("/", Operator("^", node, Number(2)), Number(2))
            return self._log(node, result, "power-rule", "x^n -> x^(n+1)/(n+1)")

        if isinstance(node, Operator):
            return self._operator(node)

        if isinstance(node, Function):
            return self._function(node)

        return self._give_up(node)

    def _operator(self, node: Operator) -> Node:
        a, b = node.left, node.right
        if node.op in ("+", "-"):
            result = Operator(node.op, self.i(a), self.i(b))
            return self._log(node, result, "sum-rule", "Integrate term by term")

        if node.op == "*":
            if free_of(a, self.variable):
                return self._log(node, Operator("*", a, self.i(b)), "constant-factor",
                                 "Move the constant factor outside")
            if free_of(b, self.variable):
                return self._log(node, Operator("*", b, self.i(a)), "constant-factor",
                                 "Move the constant factor outside")
            return self._give_up(node)

        if node.op == "/":
            if free_of(b, self.variable):
                return self._log(node, Operator("/", self.i(a), b), "constant-divisor",
                                 "Move the constant divisor outside")
            if not free_of(a, self.variable):
                return self._give_up(node)
            parts = self._linear(b)
            if parts is not None:
                slope, _ = parts
                result = _over(Operator("*", a, Function("ln", [b])), slope)
                return self._log(node, result, "reciprocal-rule", "c/u -> c*ln(u)/u'")
            power = _reciprocal_power(b, self.variable)
            if power is not None:
                rewritten = self._log(node, Operator("*", a, power), "reciprocal-power",
                                      "c/u^n -> c*u^(-n)")
                return self.i(rewritten)
            return self._give_up(node)

        # ^
        if free_of(b, self.variable):
            if isinstance(a, Function) and a.name == "sec" and is_number(b, 2):
                parts = self._linear(a.arg)
                if parts is not None:
                    result = _over(Function("tan", [a.arg]), parts[0])
                    return self._log(node, result, "sec-squared-rule", "sec(u)^2 -> tan(u)")
            parts = self._linear(a)
            if parts is not None:
                slope, _ = parts
                if is_number(b, -1):
                    result = _over(Function("ln", [a]), slope)
                    return self._log(node, result, "reciprocal-rule", "u^-1 -> ln(u)/u'")
                raised = Operator("+", b, Number(1))
                result = _over(Operator("/", Operator("^", a, raised), raised), slope)
                return self._log(node, result, "power-rule", "x^n -> x^(n+1)/(n+1)")
            return self._give_up(node)

        if free_of(a, self.variable):
            parts = self._linear(b)
            if parts is not None:
                slope, _ = parts
                result = _over(Operator("/", node, Function("ln", [a])), slope)
                return self._log(node, result, "exponential-rule", "a^u -> a^u/(ln(a)*u')")
        return self._give_up(node)

    def _function(self, node: Function) -> Node:
        rule = FUNCTION_INTEGRALS.get(node.name)
        if rule is None or len(node.args) != 1:
            return self._give_up(node)
        parts = self._linear(node.arg)
        if parts is None:
            return self._give_up(node)
        slope, _ = parts
        result = _over(rule(node.arg), slope)
        return self._log(node, result, f"{node.name}-rule",
                         f"Table integral of {node.name}, divided by the inner slope")


def antiderivative(node: Node, variable: str = "x", simplifier: Optional[Simplifier] = None,
                   trace: Optional[StepTrace] = None) -> Node:
    """Integrate once without simplifying or adding a constant."""
    if trace is None:
        trace = StepTrace()
    if simplifier is None:
        simplifier = Simplifier()
    logger.debug("integral of %s d%s", node, variable)
    return _Integrator(variable, trace, simplifier).i(node)
