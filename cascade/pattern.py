"""
Pattern matching and instantiation over expression trees.

A pattern is an ordinary tree that may contain Wildcard nodes. Matching
walks the pattern and the expression together and collects bindings for the
wildcards; instantiation substitutes those bindings into a skeleton.

    pattern  = parse_pattern("?x + 0")
    bindings = match(pattern, E("y^2 + 0"), [])   # [["x", y^2]]
    instantiate(parse_pattern(":x"), bindings)     # y^2

Internally bindings are a list of [name, node] pairs, or the string
"failed" once a match has gone wrong; match_pattern wraps the outcome in
Bindings or NoMatch for callers.
"""

from collections.abc import Mapping
from typing import Iterator, List, Optional, Union

from .nodes import Node, Number, Variable, Wildcard, contains_variable

BindingsType = Union[List[List], str]

FAILED = "failed"


class Bindings(Mapping):
    """
    Read-only map from wildcard names to the subtrees they matched.

        bindings = match_pattern(parse_pattern("?c:const * ?x"), E("2*y"))
        bindings["c"]    # Number(2)

    A successful match is truthy even when the pattern had no wildcards.
    """

    __slots__ = ("_nodes",)

    def __init__(self, pairs: List[List]):
        self._nodes = {name: node for name, node in pairs}

    def __getitem__(self, name: str) -> Node:
        return self._nodes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        inner = ", ".join(f"{name}={node}" for name, node in self._nodes.items())
        return f"Bindings({inner})"


class _NoMatch(Mapping):
    """The falsy, empty result of a failed match. There is one instance."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __getitem__(self, name: str):
        raise KeyError(f"No match, so nothing is bound to '{name}'")

    def __iter__(self) -> Iterator[str]:
        return iter(())

    def __len__(self) -> int:
        return 0

    def __repr__(self) -> str:
        return "NoMatch"


NoMatch = _NoMatch()


def wrap_bindings(result: BindingsType) -> Union[Bindings, _NoMatch]:
    """Bindings for a list of pairs, NoMatch for the failure marker."""
    return NoMatch if result == FAILED else Bindings(result)


def extend_bindings(name: str, value: Node, bindings: BindingsType) -> BindingsType:
    """
    Bind name to value.

    A name that is already bound must be bound to an equal tree, otherwise
    the match fails.
    """
    if bindings == FAILED:
        return FAILED
    bound = lookup(name, bindings)
    if bound is None:
        return bindings + [[name, value]]
    return bindings if bound == value else FAILED


def lookup(name: str, bindings: BindingsType) -> Optional[Node]:
    if bindings == FAILED:
        return None
    return next((node for bound, node in bindings if bound == name), None)


# ============================================================
# Pattern Matching
# ============================================================

def match(pat: Node, exp: Node, bindings: BindingsType) -> BindingsType:
    """
    Match pat against exp, extending bindings.

    Wildcard kinds:
        expr   - match any expression
        const  - match Number nodes only
        var    - match Variable nodes only
        free   - match expressions that do not contain the variable bound
                 to another wildcard (which must already be bound)

    Every other pattern node must match structurally: same node type, same
    operator or function name, same leaf values, matching children.

    Returns:
        The extended pair list, or "failed"
    """
    if bindings == FAILED:
        return FAILED

    if isinstance(pat, Wildcard):
        if pat.kind == "const" and not isinstance(exp, Number):
            return FAILED
        if pat.kind == "var" and not isinstance(exp, Variable):
            return FAILED
        if pat.kind == "free":
            excluded = lookup(pat.free_of, bindings)
            if not isinstance(excluded, Variable) or contains_variable(exp, excluded.name):
                return FAILED
        return extend_bindings(pat.name, exp, bindings)

    if type(pat) is not type(exp):
        return FAILED

    pat_children = pat.children()
    if not pat_children:
        # Leaves compare by value
        return bindings if pat == exp else FAILED

    # Same kind of compound node: compare the label, then the children
    exp_children = exp.children()
    if len(pat_children) != len(exp_children) or pat.rebuild(exp_children) != exp:
        return FAILED

    for sub_pat, sub_exp in zip(pat_children, exp_children):
        bindings = match(sub_pat, sub_exp, bindings)
        if bindings == FAILED:
            return FAILED
    return bindings


# ============================================================
# Instantiation
# ============================================================

def instantiate(skeleton: Node, bindings: BindingsType) -> Node:
    """
    Replace the wildcards of skeleton by their bound trees.

    Raises:
        KeyError: The skeleton mentions an unbound wildcard
    """
    if isinstance(skeleton, Wildcard):
        value = lookup(skeleton.name, bindings)
        if value is None:
            raise KeyError(f"Unbound pattern variable '{skeleton.name}'")
        return value

    kids = skeleton.children()
    if not kids:
        return skeleton
    return skeleton.rebuild([instantiate(child, bindings) for child in kids])


def match_pattern(pattern: Node, expr: Node) -> Union[Bindings, _NoMatch]:
    """
    Match a pattern against an expression.

        if bindings := match_pattern(parse_pattern("?a * ?b"), expr):
            left, right = bindings["a"], bindings["b"]
    """
    return wrap_bindings(match(pattern, expr, []))
