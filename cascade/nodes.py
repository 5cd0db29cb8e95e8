"""
Expression tree for CASCADE.

Every component of the engine works on the same small family of immutable
node classes:

    Number(3)                  - numeric literal (stored as float)
    Variable("x")              - named symbol
    Operator("+", a, b)        - binary operator: + - * / ^
    Function("sin", [a])       - function application
    Equation(lhs, rhs)         - lhs = rhs

Equality and hashing are structural, so two independently built trees
compare equal when they have the same shape and leaves. Nodes cannot be
modified after construction; transformations build new trees and share the
unchanged children.

Wildcard nodes only appear in rule patterns (see cascade.pattern).
"""

from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple, Union

OPERATORS = ("+", "-", "*", "/", "^")

# Names that evaluate to numbers but are treated as symbols by the rewriter
CONSTANTS = ("pi", "e")

NumericType = Union[int, float]


class Node:
    """Base class for expression nodes."""

    __slots__ = ()

    def _key(self) -> Tuple:
        raise NotImplementedError

    def children(self) -> Tuple["Node", ...]:
        """Return the direct sub-expressions of this node."""
        return ()

    def rebuild(self, children: Sequence["Node"]) -> "Node":
        """Return a node of the same kind with new children."""
        return self

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} nodes are immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} nodes are immutable")

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        return type(self) is type(other) and self._key() == other._key()

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._key()))

    def __str__(self) -> str:
        from .formatting import format_expr
        return format_expr(self)


class Number(Node):
    """A numeric literal."""

    __slots__ = ("value",)

    def __init__(self, value: NumericType):
        object.__setattr__(self, "value", float(value))

    def _key(self) -> Tuple:
        return (self.value,)

    def is_integer(self) -> bool:
        return self.value.is_integer()

    def __repr__(self) -> str:
        return f"Number({self.value:g})"


class Variable(Node):
    """A named symbol."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        object.__setattr__(self, "name", name)

    def _key(self) -> Tuple:
        return (self.name,)

    def __repr__(self) -> str:
        return f"Variable({self.name!r})"


class Operator(Node):
    """A binary operator application."""

    __slots__ = ("op", "left", "right")

    def __init__(self, op: str, left: Node, right: Node):
        if op not in OPERATORS:
            raise ValueError(f"Unknown operator: {op!r}")
        object.__setattr__(self, "op", op)
        object.__setattr__(self, "left", left)
        object.__setattr__(self, "right", right)

    def _key(self) -> Tuple:
        return (self.op, self.left, self.right)

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)

    def rebuild(self, children: Sequence[Node]) -> Node:
        left, right = children
        if left is self.left and right is self.right:
            return self
        return Operator(self.op, left, right)

    def __repr__(self) -> str:
        return f"Operator({self.op!r}, {self.left!r}, {self.right!r})"


class Function(Node):
    """A named function applied to one or more arguments."""

    __slots__ = ("name", "args")

    def __init__(self, name: str, args: Sequence[Node]):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "args", tuple(args))

    def _key(self) -> Tuple:
        return (self.name, self.args)

    def children(self) -> Tuple[Node, ...]:
        return self.args

    def rebuild(self, children: Sequence[Node]) -> Node:
        children = tuple(children)
        if all(new is old for new, old in zip(children, self.args)):
            return self
        return Function(self.name, children)

    @property
    def arg(self) -> Node:
        """The first (usually only) argument."""
        return self.args[0]

    def __repr__(self) -> str:
        args = ", ".join(repr(a) for a in self.args)
        return f"Function({self.name!r}, [{args}])"


class Equation(Node):
    """An equation lhs = rhs."""

    __slots__ = ("lhs", "rhs")

    def __init__(self, lhs: Node, rhs: Node):
        object.__setattr__(self, "lhs", lhs)
        object.__setattr__(self, "rhs", rhs)

    def _key(self) -> Tuple:
        return (self.lhs, self.rhs)

    def children(self) -> Tuple[Node, ...]:
        return (self.lhs, self.rhs)

    def rebuild(self, children: Sequence[Node]) -> Node:
        lhs, rhs = children
        if lhs is self.lhs and rhs is self.rhs:
            return self
        return Equation(lhs, rhs)

    def __repr__(self) -> str:
        return f"Equation({self.lhs!r}, {self.rhs!r})"


class Wildcard(Node):
    """
    A pattern variable.

    Kinds:
        "expr"  - matches any expression
        "const" - matches Number nodes only
        "var"   - matches Variable nodes only
        "free"  - matches expressions not containing the variable bound
                  to the wildcard named by `free_of`
    """

    __slots__ = ("name", "kind", "free_of")

    def __init__(self, name: str, kind: str = "expr", free_of: Optional[str] = None):
        if kind not in ("expr", "const", "var", "free"):
            raise ValueError(f"Unknown wildcard kind: {kind!r}")
        if kind == "free" and not free_of:
            raise ValueError("free wildcards need the name of the excluded variable")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "free_of", free_of)

    def _key(self) -> Tuple:
        return (self.name, self.kind, self.free_of)

    def __repr__(self) -> str:
        if self.kind == "free":
            return f"Wildcard({self.name!r}, 'free', {self.free_of!r})"
        return f"Wildcard({self.name!r}, {self.kind!r})"


# ============================================================
# Tree helpers
# ============================================================

def is_number(node: Node, value: Optional[NumericType] = None) -> bool:
    """Check if node is a Number, optionally with a specific value."""
    if not isinstance(node, Number):
        return False
    return value is None or node.value == value


def walk(node: Node) -> Iterator[Node]:
    """Yield node and all of its descendants in pre-order."""
    yield node
    for child in node.children():
        yield from walk(child)


def contains_variable(node: Node, variable: str) -> bool:
    """Check if a variable appears anywhere in an expression."""
    if isinstance(node, Variable):
        return node.name == variable
    return any(contains_variable(child, variable) for child in node.children())


def free_of(node: Node, variable: str) -> bool:
    """True if the expression does not mention variable."""
    return not contains_variable(node, variable)


def collect_variables(node: Node) -> List[str]:
    """Variable names in order of first appearance."""
    seen: List[str] = []
    for sub in walk(node):
        if isinstance(sub, Variable) and sub.name not in seen:
            seen.append(sub.name)
    return seen


def collect_functions(node: Node) -> List[str]:
    """Function names in order of first appearance."""
    seen: List[str] = []
    for sub in walk(node):
        if isinstance(sub, Function) and sub.name not in seen:
            seen.append(sub.name)
    return seen


def operators_used(node: Node) -> List[str]:
    """Sorted list of the binary operators appearing in the tree."""
    return sorted({sub.op for sub in walk(node) if isinstance(sub, Operator)})


def complexity(node: Node) -> int:
    """Number of nodes in the tree."""
    return sum(1 for _ in walk(node))


def transform(node: Node, fn: Callable[[Node], Node]) -> Node:
    """
    Rebuild a tree bottom-up, applying fn once to every node.

    Children are transformed first, then fn sees the rebuilt parent.
    Unchanged subtrees are shared with the input.
    """
    kids = node.children()
    if kids:
        node = node.rebuild([transform(child, fn) for child in kids])
    return fn(node)


def substitute(node: Node, variable: str, replacement: Node) -> Node:
    """Replace every occurrence of a variable with an expression."""
    def replace(sub: Node) -> Node:
        if isinstance(sub, Variable) and sub.name == variable:
            return replacement
        return sub
    return transform(node, replace)


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for CASCADE.

    Examples:
        from cascade import E

        # Parse infix text
        expr = E("x^2 + 2*x")

        # Build programmatically
        x = E.var("x")
        expr = E.op("+", E.op("^", x, 2), E.op("*", 2, x))
        E.fn("sin", x)
        E.eq(E("x^2"), 4)

    Plain Python numbers and strings are promoted to Number and Variable.
    """

    def __call__(self, s: str) -> Node:
        """Parse an infix expression, raising ParseError when invalid."""
        from .parser import parse_expression
        from .errors import ParseError

        result = parse_expression(s)
        if not result.is_valid:
            raise ParseError(result.errors)
        return result.ast

    @staticmethod
    def lift(value: Union[Node, NumericType, str]) -> Node:
        """Promote numbers and names to nodes."""
        if isinstance(value, Node):
            return value
        if isinstance(value, (int, float)):
            return Number(value)
        if isinstance(value, str):
            return Variable(value)
        raise TypeError(f"Cannot build an expression from {value!r}")

    def op(self, op: str, left, right) -> Operator:
        return Operator(op, self.lift(left), self.lift(right))

    def fn(self, name: str, *args) -> Function:
        return Function(name, [self.lift(a) for a in args])

    def eq(self, lhs, rhs) -> Equation:
        return Equation(self.lift(lhs), self.lift(rhs))

    def num(self, value: NumericType) -> Number:
        return Number(value)

    def var(self, name: str) -> Variable:
        return Variable(name)

    def vars(self, *names: str) -> Tuple[Variable, ...]:
        """
        Create multiple variables for unpacking.

        Example:
            x, y = E.vars("x", "y")
        """
        return tuple(Variable(n) for n in names)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
