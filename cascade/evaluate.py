"""
Numeric evaluation of expression trees.

Operators and functions are evaluated through handler tables. A handler
takes the list of argument values and returns a float, or None when it has
no real answer for them (wrong arity, division by zero, a complex power).
The same tables back evaluate() and the constant-folding rule.
"""

import math
from typing import Callable, Dict, List, Mapping, Optional

from .errors import DomainError
from .formatting import format_expr
from .nodes import Node, Number, Variable, Operator, Function, Equation, collect_variables, walk

Handler = Callable[[List[float]], Optional[float]]


# ============================================================
# Handler builders
# ============================================================

def unary_only(f: Callable[[float], float]) -> Handler:
    """Wrap a one-argument math function."""
    return lambda args: f(args[0]) if len(args) == 1 else None


def binary_only(f: Callable[[float, float], float]) -> Handler:
    """Wrap a two-argument operation."""
    return lambda args: f(args[0], args[1]) if len(args) == 2 else None


def safe_div() -> Handler:
    """Division with no value for a zero divisor."""
    def divide(args: List[float]) -> Optional[float]:
        if len(args) != 2 or args[1] == 0:
            return None
        return args[0] / args[1]
    return divide


def real_pow() -> Handler:
    """Powers restricted to real results."""
    def power(args: List[float]) -> Optional[float]:
        if len(args) != 2:
            return None
        base, exponent = args
        if base == 0 and exponent < 0:
            return None
        if base < 0 and not float(exponent).is_integer():
            return None
        return base ** exponent
    return power


def _sec(x): return 1 / math.cos(x)
def _csc(x): return 1 / math.sin(x)
def _cot(x): return 1 / math.tan(x)


# ============================================================
# Handler tables
# ============================================================

ARITHMETIC_FOLDS: Dict[str, Handler] = {
    "+": binary_only(lambda a, b: a + b),
    "-": binary_only(lambda a, b: a - b),
    "*": binary_only(lambda a, b: a * b),
    "/": safe_div(),
    "^": real_pow(),
}

FUNCTION_FOLDS: Dict[str, Handler] = {
    "sin": unary_only(math.sin),
    "cos": unary_only(math.cos),
    "tan": unary_only(math.tan),
    "sec": unary_only(_sec),
    "csc": unary_only(_csc),
    "cot": unary_only(_cot),
    "asin": unary_only(math.asin),
    "acos": unary_only(math.acos),
    "atan": unary_only(math.atan),
    "sinh": unary_only(math.sinh),
    "cosh": unary_only(math.cosh),
    "tanh": unary_only(math.tanh),
    "exp": unary_only(math.exp),
    "ln": unary_only(math.log),
    "sqrt": unary_only(math.sqrt),
    "abs": unary_only(abs),
}

CONSTANT_VALUES: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}


def fold(handler: Handler, args: List[float]) -> Optional[float]:
    """
    Run a fold handler, returning None unless the result is a finite real.
    """
    try:
        result = handler(args)
    except (ZeroDivisionError, OverflowError, ValueError):
        return None
    if result is None or isinstance(result, complex):
        return None
    result = float(result)
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def evaluate(node: Node, env: Optional[Mapping[str, float]] = None) -> float:
    """
    Evaluate an expression to a float.

    Args:
        node: Expression to evaluate
        env: Values for variables; pi and e are always known

    Raises:
        DomainError: unbound variable, unknown function, or a value outside
            the real domain (ln(0), 1/0, sqrt(-1), ...)
    """
    env = env or {}

    if isinstance(node, Number):
        return node.value

    if isinstance(node, Variable):
        if node.name in env:
            return float(env[node.name])
        if node.name in CONSTANT_VALUES:
            return CONSTANT_VALUES[node.name]
        raise DomainError(f"Variable '{node.name}' has no value")

    if isinstance(node, Operator):
        args = [evaluate(node.left, env), evaluate(node.right, env)]
        result = fold(ARITHMETIC_FOLDS[node.op], args)
        if result is None:
            raise DomainError(f"Cannot evaluate {args[0]:g} {node.op} {args[1]:g}")
        return result

    if isinstance(node, Function):
        handler = FUNCTION_FOLDS.get(node.name)
        if handler is None:
            raise DomainError(f"Unknown function '{node.name}'")
        args = [evaluate(a, env) for a in node.args]
        result = fold(handler, args)
        if result is None:
            raise DomainError(f"{node.name} is undefined at {', '.join(f'{a:g}' for a in args)}")
        return result

    if isinstance(node, Equation):
        raise DomainError("Cannot evaluate an equation")

    raise DomainError(f"Cannot evaluate {node!r}")


def try_numeric(node: Node, env: Optional[Mapping[str, float]] = None) -> Optional[float]:
    """Evaluate if possible, otherwise return None."""
    try:
        return evaluate(node, env)
    except DomainError:
        return None


def make_callable(node: Node, variable: str) -> Callable[[float], float]:
    """Turn an expression into a function of one variable."""
    def f(x: float) -> float:
        return evaluate(node, {variable: x})
    return f


# ============================================================
# Domain
# ============================================================

def _varies(node: Node) -> bool:
    return any(v not in CONSTANT_VALUES for v in collect_variables(node))


def _exponent(node: Node) -> Optional[float]:
    """Numeric value of n or p/q, else None."""
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Operator) and node.op == "/" \
            and isinstance(node.left, Number) and isinstance(node.right, Number) \
            and node.right.value != 0:
        return node.left.value / node.right.value
    return None


def domain_conditions(node: Node) -> List[str]:
    """
    Conditions on the variables under which evaluate() can succeed.

        domain_conditions(E("ln(x) / (x - 1)"))   # ['x - 1 != 0', 'x > 0']

    Only denominators, even roots, logarithms and the poles of the
    trigonometric functions are considered; constant subexpressions are
    skipped.
    """
    conditions: List[str] = []

    def add(condition: str) -> None:
        if condition not in conditions:
            conditions.append(condition)

    for sub in walk(node):
        if isinstance(sub, Operator) and sub.op == "/" and _varies(sub.right):
            add(f"{format_expr(sub.right)} != 0")
        elif isinstance(sub, Operator) and sub.op == "^" and _varies(sub.left):
            exponent = _exponent(sub.right)
            if exponent is None:
                continue
            base = format_expr(sub.left)
            if not exponent.is_integer():
                add(f"{base} > 0" if exponent < 0 else f"{base} >= 0")
            elif exponent < 0:
                add(f"{base} != 0")
        elif isinstance(sub, Function) and len(sub.args) == 1 and _varies(sub.arg):
            arg = format_expr(sub.arg)
            if sub.name == "ln":
                add(f"{arg} > 0")
            elif sub.name == "sqrt":
                add(f"{arg} >= 0")
            elif sub.name in ("tan", "sec"):
                add(f"cos({arg}) != 0")
            elif sub.name in ("cot", "csc"):
                add(f"sin({arg}) != 0")
            elif sub.name in ("asin", "acos"):
                add(f"abs({arg}) <= 1")
    return conditions
