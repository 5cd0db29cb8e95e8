"""
Text and LaTeX rendering of expression trees.

format_expr produces infix text that parse_expression reads back to the
same tree:

    format_expr(E("x*sin(x) + 3*x^2"))   # 'x*sin(x) + 3*x^2'
    to_latex(E("x^2/2"))                 # '\\frac{x^{2}}{2}'
"""

from .nodes import Node, Number, Variable, Operator, Function, Equation, Wildcard

PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2, "^": 3}

LATEX_FUNCTIONS = {
    "sin": r"\sin", "cos": r"\cos", "tan": r"\tan",
    "sec": r"\sec", "csc": r"\csc", "cot": r"\cot",
    "asin": r"\arcsin", "acos": r"\arccos", "atan": r"\arctan",
    "sinh": r"\sinh", "cosh": r"\cosh", "tanh": r"\tanh",
    "ln": r"\ln", "exp": r"\exp",
}

LATEX_SYMBOLS = {"pi": r"\pi"}


def format_number(value: float) -> str:
    """Integers without a trailing .0, everything else with 12 significant digits."""
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return f"{value:.12g}"


def _is_negation(node: Node) -> bool:
    """True for the -1 * x form the parser builds for unary minus."""
    return (isinstance(node, Operator) and node.op == "*"
            and isinstance(node.left, Number) and node.left.value == -1
            and not isinstance(node.right, Number))


def _precedence(node: Node) -> int:
    if isinstance(node, Operator):
        return PRECEDENCE[node.op]
    if isinstance(node, Number) and node.value < 0:
        return 2
    if isinstance(node, Equation):
        return 0
    return 4


def format_expr(node: Node) -> str:
    """Format a tree as infix text."""
    if isinstance(node, Number):
        return format_number(node.value)

    if isinstance(node, Variable):
        return node.name

    if isinstance(node, Wildcard):
        if node.kind == "expr":
            return f"?{node.name}"
        if node.kind == "free":
            return f"?{node.name}:free({node.free_of})"
        return f"?{node.name}:{node.kind}"

    if isinstance(node, Function):
        return f"{node.name}({', '.join(format_expr(a) for a in node.args)})"

    if isinstance(node, Equation):
        return f"{format_expr(node.lhs)} = {format_expr(node.rhs)}"

    if _is_negation(node):
        inner = node.right
        text = format_expr(inner)
        if _precedence(inner) <= 2 or text.startswith("-"):
            text = f"({text})"
        return f"-{text}"

    prec = PRECEDENCE[node.op]
    left = format_expr(node.left)
    right = format_expr(node.right)

    # ^ is right associative: parenthesise a left operand of equal or lower rank
    if node.op == "^":
        if _precedence(node.left) <= prec:
            left = f"({left})"
        if _precedence(node.right) < prec:
            right = f"({right})"
        return f"{left}^{right}"

    if _precedence(node.left) < prec:
        left = f"({left})"
    if _precedence(node.right) <= prec or right.startswith("-"):
        right = f"({right})"

    if node.op in ("+", "-"):
        return f"{left} {node.op} {right}"
    return f"{left}{node.op}{right}"


def to_latex(node: Node) -> str:
    """Render a tree as LaTeX."""
    if isinstance(node, Number):
        return format_number(node.value)

    if isinstance(node, Variable):
        return LATEX_SYMBOLS.get(node.name, node.name)

    if isinstance(node, Wildcard):
        return format_expr(node)

    if isinstance(node, Equation):
        return f"{to_latex(node.lhs)} = {to_latex(node.rhs)}"

    if isinstance(node, Function):
        if node.name == "sqrt" and len(node.args) == 1:
            return rf"\sqrt{{{to_latex(node.arg)}}}"
        if node.name == "integral" and len(node.args) == 2:
            return rf"\int {to_latex(node.args[0])} \, d{to_latex(node.args[1])}"
        name = LATEX_FUNCTIONS.get(node.name, rf"\operatorname{{{node.name}}}")
        args = ", ".join(to_latex(a) for a in node.args)
        return rf"{name}\left({args}\right)"

    if _is_negation(node):
        inner = to_latex(node.right)
        if _precedence(node.right) <= 2:
            inner = rf"\left({inner}\right)"
        return f"-{inner}"

    if node.op == "/":
        return rf"\frac{{{to_latex(node.left)}}}{{{to_latex(node.right)}}}"

    if node.op == "^":
        base = to_latex(node.left)
        if _precedence(node.left) <= PRECEDENCE["^"]:
            base = rf"\left({base}\right)"
        return f"{base}^{{{to_latex(node.right)}}}"

    prec = PRECEDENCE[node.op]
    left = to_latex(node.left)
    right = to_latex(node.right)
    if _precedence(node.left) < prec:
        left = rf"\left({left}\right)"
    if _precedence(node.right) <= prec and node.op != "+":
        right = rf"\left({right}\right)"
    elif node.op == "+" and _precedence(node.right) < prec:
        right = rf"\left({right}\right)"

    if node.op == "*":
        return rf"{left} \cdot {right}"
    return f"{left} {node.op} {right}"
