"""
Symbolic differentiation.

derivative() is the raw structural transform: it applies the calculus
rules without tidying the result, so d/dx x^3 comes back as
3*x^(3 - 1)*1. Callers simplify afterwards (see cascade.api).

Known functions and their derivatives with respect to their argument u:

    sin  cos(u)            asin  1/sqrt(1 - u^2)      sinh  cosh(u)
    cos  -sin(u)           acos  -1/sqrt(1 - u^2)     cosh  sinh(u)
    tan  sec(u)^2          atan  1/(1 + u^2)          tanh  1/cosh(u)^2
    sec  sec(u)*tan(u)     ln    1/u                  sqrt  1/(2*sqrt(u))
    csc  -csc(u)*cot(u)    exp   exp(u)               abs   u/abs(u)
    cot  -csc(u)^2
"""

import logging
from typing import Callable, Dict, Optional

from .errors import UnsupportedOperation
from .nodes import (
    Node, Number, Variable, Operator, Function, Equation, contains_variable,
)
from .results import StepTrace

logger = logging.getLogger(__name__)


def _neg(node: Node) -> Node:
    return Operator("*", Number(-1), node)


def _square(node: Node) -> Node:
    return Operator("^", node, Number(2))


def _sqrt_one_minus_square(u: Node) -> Node:
    return Function("sqrt", [Operator("-", Number(1), _square(u))])


# Outer derivative f'(u) of each known function
FUNCTION_DERIVATIVES: Dict[str, Callable[[Node], Node]] = {
    "sin": lambda u: Function("cos", [u]),
    "cos": lambda u: _neg(Function("sin", [u])),
    "tan": lambda u: _square(Function("sec", [u])),
    "sec": lambda u: Operator("*", Function("sec", [u]), Function("tan", [u])),
    "csc": lambda u: _neg(Operator("*", Function("csc", [u]), Function("cot", [u]))),
    "cot": lambda u: _neg(_square(Function("csc", [u]))),
    "asin": lambda u: Operator("/", Number(1), _sqrt_one_minus_square(u)),
    "acos": lambda u: Operator("/", Number(-1), _sqrt_one_minus_square(u)),
    "atan": lambda u: Operator("/", Number(1), Operator("+", Number(1), _square(u))),
    "sinh": lambda u: Function("cosh", [u]),
    "cosh": lambda u: Function("sinh", [u]),
    "tanh": lambda u: Operator("/", Number(1), _square(Function("cosh", [u]))),
    "ln": lambda u: Operator("/", Number(1), u),
    "exp": lambda u: Function("exp", [u]),
    "sqrt": lambda u: Operator("/", Number(1), Operator("*", Number(2), Function("sqrt", [u]))),
    "abs": lambda u: Operator("/", u, Function("abs", [u])),
}


class _Differentiator:
    """One differentiation of a tree, logging each rule it applies."""

    def __init__(self, variable: str, trace: StepTrace):
        self.variable = variable
        self.trace = trace

    def _log(self, before: Node, after: Node, rule: str, explanation: str) -> Node:
        self.trace.add("differentiate", before, after, rule, explanation)
        return after

    def d(self, node: Node) -> Node:
        if isinstance(node, Number):
            return Number(0)

        if isinstance(node, Variable):
            return Number(1 if node.name == self.variable else 0)

        if isinstance(node, Equation):
            return Equation(self.d(node.lhs), self.d(node.rhs))

        if isinstance(node, (Operator, Function)) and not contains_variable(node, self.variable):
            return self._log(node, Number(0), "constant-rule",
                             f"Free of {self.variable}, derivative is zero")

        if isinstance(node, Operator):
            return self._operator(node)

        if isinstance(node, Function):
            return self._function(node)

        raise UnsupportedOperation(type(node).__name__, steps=self.trace.steps)

    def _operator(self, node: Operator) -> Node:
        a, b = node.left, node.right
        if node.op in ("+", "-"):
            result = Operator(node.op, self.d(a), self.d(b))
            return self._log(node, result, "sum-rule", "Differentiate term by term")

        if node.op == "*":
            result = Operator("+", Operator("*", self.d(a), b), Operator("*", a, self.d(b)))
            return self._log(node, result, "product-rule", "(uv)' = u'v + uv'")

        if node.op == "/":
            numerator = Operator("-", Operator("*", self.d(a), b), Operator("*", a, self.d(b)))
            result = Operator("/", numerator, _square(b))
            return self._log(node, result, "quotient-rule", "(u/v)' = (u'v - uv')/v^2")

        # ^
        if not contains_variable(b, self.variable):
            power = Operator("*", b, Operator("^", a, Operator("-", b, Number(1))))
            result = Operator("*", power, self.d(a))
            return self._log(node, result, "power-rule", "(u^n)' = n*u^(n-1)*u'")

        if not contains_variable(a, self.variable):
            result = Operator("*", Operator("*", node, Function("ln", [a])), self.d(b))
            return self._log(node, result, "exponential-rule", "(a^v)' = a^v*ln(a)*v'")

        # u^v with both depending on the variable: logarithmic differentiation
        inner = Operator("+", Operator("*", self.d(b), Function("ln", [a])),
                         Operator("/", Operator("*", b, self.d(a)), a))
        result = Operator("*", node, inner)
        return self._log(node, result, "logarithmic-differentiation",
                         "(u^v)' = u^v*(v'*ln(u) + v*u'/u)")

    def _function(self, node: Function) -> Node:
        derivative = FUNCTION_DERIVATIVES.get(node.name)
        if derivative is None or len(node.args) != 1:
            raise UnsupportedOperation(node.name, steps=self.trace.steps)
        u = node.arg
        result = Operator("*", derivative(u), self.d(u))
        return self._log(node, result, f"{node.name}-chain-rule",
                         f"d/du {node.name}(u) times du/d{self.variable}")


def derivative(node: Node, variable: str = "x", trace: Optional[StepTrace] = None) -> Node:
    """
    Differentiate once, without simplifying.

    Raises:
        UnsupportedOperation: The tree contains a function with no known
            derivative; the error names the function
    """
    if trace is None:
        trace = StepTrace()
    logger.debug("d/d%s %s", variable, node)
    return _Differentiator(variable, trace).d(node)
