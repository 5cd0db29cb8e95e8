"""
Polynomial and term helpers.

Sums are handled as lists of signed terms (coefficient, rest) and products
as lists of factors. The rule library uses these to combine like terms and
powers; the solver uses the coefficient extractors to classify equations.

    flatten_sum(E("3*x - y + 2*x"))         # [(3, x), (-1, y), (2, x)]
    numeric_coefficients(E("x^2 - 5*x + 6"), "x")   # [6.0, -5.0, 1.0]
"""

import logging
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .evaluate import try_numeric
from .nodes import Node, Number, Variable, Operator, Function, contains_variable

logger = logging.getLogger(__name__)

Coefficient = Union[float, Fraction]
Term = Tuple[Coefficient, Optional[Node]]  # (coefficient, rest); rest None for constants

# Largest exponent expanded when reading x^n as a polynomial
MAX_DEGREE = 32

# Rational-root search is skipped above this coefficient size
MAX_ROOT_SEARCH = 10 ** 6

# ============================================================
# Terms and factors
# ============================================================

def exact(value: Coefficient) -> Coefficient:
    """Integral coefficients as Fractions, so sums of them stay exact."""
    if isinstance(value, Fraction):
        return value
    return Fraction(int(value)) if float(value).is_integer() else value

def flatten_sum(node: Node, sign: int = 1) -> List[Term]:
    """
    Split a sum or difference into signed (coefficient, rest) terms.

    Quotients by an integer count towards the coefficient, so x/2 is
    (1/2, x) and 3*x/4 is (3/4, x).
    """
    if isinstance(node, Operator) and node.op in ("+", "-"):
        right_sign = sign if node.op == "+" else -sign
        return flatten_sum(node.left, sign) + flatten_sum(node.right, right_sign)
    coef, rest = split_rational(node)
    return [(sign * coef, rest)]

def flatten_product(node: Node) -> List[Node]:
    """Factors of a (possibly nested) product, left to right."""
    if isinstance(node, Operator) and node.op == "*":
        return flatten_product(node.left) + flatten_product(node.right)
    return [node]

def split_coefficient(node: Node) -> Term:
    """Separate the numeric factor of a product from the rest."""
    if isinstance(node, Number):
        return node.value, None
    factors = flatten_product(node)
    numbers = [f.value for f in factors if isinstance(f, Number)]
    if not numbers:
        return 1.0, node
    coef = 1.0
    for value in numbers:
        coef *= value
    rest = [f for f in factors if not isinstance(f, Number)]
    if not rest:
        return coef, None
    return coef, build_product(rest)

def split_rational(node: Node) -> Term:
    """split_coefficient, also reading n/d and rest/d with integer d as a rational coefficient."""
    if isinstance(node, Operator) and node.op == "/" and isinstance(node.right, Number) \
            and node.right.is_integer() and node.right.value != 0:
        coef, rest = split_rational(node.left)
        return exact(coef) / int(node.right.value), rest
    coef, rest = split_coefficient(node)
    return exact(coef), rest

def power_parts(node: Node) -> Tuple[Node, Node]:
    """(base, exponent) of a factor; plain factors have exponent 1."""
    if isinstance(node, Operator) and node.op == "^":
        return node.left, node.right
    return node, Number(1)

def build_product(factors: Sequence[Node]) -> Node:
    """Left-associated product of factors (1 when empty)."""
    if not factors:
        return Number(1)
    result = factors[0]
    for factor in factors[1:]:
        result = Operator("*", result, factor)
    return result

def build_term(coef: Coefficient, rest: Optional[Node]) -> Node:
    """coef*rest; a fractional coefficient p/q becomes (p*rest)/q."""
    if isinstance(coef, Fraction) and coef.denominator != 1:
        return Operator("/", build_term(coef.numerator, rest), Number(coef.denominator))
    if rest is None:
        return Number(coef)
    if coef == 1:
        return rest
    return Operator("*", Number(coef), rest)

def build_sum(terms: Sequence[Term]) -> Node:
    """
    Rebuild a sum from signed terms.

    Zero coefficients are dropped; later negative terms become subtractions.
    """
    terms = [(c, r) for c, r in terms if c != 0]
    if not terms:
        return Number(0)
    coef, rest = terms[0]
    result = build_term(coef, rest)
    for coef, rest in terms[1:]:
        if coef < 0:
            result = Operator("-", result, build_term(-coef, rest))
        else:
            result = Operator("+", result, build_term(coef, rest))
    return result

# ============================================================
# Coefficient extraction
# ============================================================

def _poly_add(p: Dict[int, Node], q: Dict[int, Node], op: str) -> Dict[int, Node]:
    out = dict(p)
    for degree, coef in q.items():
        if degree in out:
            out[degree] = Operator(op, out[degree], coef)
        elif op == "-":
            out[degree] = Operator("*", Number(-1), coef)
        else:
            out[degree] = coef
    return out

def _poly_mul(p: Dict[int, Node], q: Dict[int, Node]) -> Dict[int, Node]:
    out: Dict[int, Node] = {}
    for i, a in p.items():
        for j, b in q.items():
            term = Operator("*", a, b)
            out[i + j] = Operator("+", out[i + j], term) if i + j in out else term
    return out

def _poly(node: Node, var: str) -> Optional[Dict[int, Node]]:
    if not contains_variable(node, var):
        return {0: node}
    if isinstance(node, Variable):
        return {1: Number(1)}
    if isinstance(node, Operator):
        if node.op in ("+", "-"):
            left, right = _poly(node.left, var), _poly(node.right, var)
            if left is None or right is None:
                return None
            return _poly_add(left, right, node.op)
        if node.op == "*":
            left, right = _poly(node.left, var), _poly(node.right, var)
            if left is None or right is None:
                return None
            return _poly_mul(left, right)
        if node.op == "/":
            if contains_variable(node.right, var):
                return None
            left = _poly(node.left, var)
            if left is None:
                return None
            return {d: Operator("/", c, node.right) for d, c in left.items()}
        if node.op == "^":
            exponent = node.right
            if not (isinstance(exponent, Number) and exponent.is_integer()
                    and 0 <= exponent.value <= MAX_DEGREE):
                return None
            base = _poly(node.left, var)
            if base is None:
                return None
            result: Dict[int, Node] = {0: Number(1)}
            for _ in range(int(exponent.value)):
                result = _poly_mul(result, base)
            return result
    return None

def symbolic_coefficients(node: Node, var: str,
                          simplify: Callable[[Node], Node]) -> Optional[List[Node]]:
    """
    Coefficients of node as a polynomial in var, lowest degree first.

    Coefficients may contain other symbols. Each one is passed through
    simplify; trailing zero coefficients are dropped, so the zero
    polynomial gives []. Returns None when node is not a polynomial in var.
    """
    poly = _poly(node, var)
    if poly is None:
        return None
    top = max(poly) if poly else 0
    coeffs = [simplify(poly[d]) if d in poly else Number(0) for d in range(top + 1)]
    while coeffs and isinstance(coeffs[-1], Number) and coeffs[-1].value == 0:
        coeffs.pop()
    return coeffs

def numeric_coefficients(node: Node, var: str) -> Optional[List[float]]:
    """
    Numeric coefficients of node as a polynomial in var, lowest degree first.

    Returns None when node is not a polynomial in var or a coefficient
    mentions another symbol.
    """
    poly = _poly(node, var)
    if poly is None:
        return None
    top = max(poly) if poly else 0
    coeffs = []
    for d in range(top + 1):
        if d not in poly:
            coeffs.append(0.0)
            continue
        value = try_numeric(poly[d])
        if value is None:
            return None
        coeffs.append(value)
    while coeffs and coeffs[-1] == 0:
        coeffs.pop()
    return coeffs

def linear_parts(node: Node, var: str,
                 simplify: Callable[[Node], Node]) -> Optional[Tuple[Node, Node]]:
    """
    (slope, intercept) when node is k*var + b with k free of var and non-zero.
    """
    if isinstance(node, Variable) and node.name == var:
        return Number(1), Number(0)
    coeffs = symbolic_coefficients(node, var, simplify)
    if coeffs is None or len(coeffs) != 2:
        return None
    return coeffs[1], coeffs[0]

def linear_form(node: Node, variables: Sequence[str]) -> Optional[Dict[Optional[str], float]]:
    """
    Numeric coefficients of a linear expression in several variables.

    The constant term is stored under None. Returns None for anything that is
    not linear with numeric coefficients.
    """
    if isinstance(node, Number):
        return {None: node.value}
    if isinstance(node, Variable):
        if node.name in variables:
            return {node.name: 1.0}
        value = try_numeric(node)
        return None if value is None else {None: value}
    if not any(contains_variable(node, v) for v in variables):
        value = try_numeric(node)
        return None if value is None else {None: value}
    if isinstance(node, Operator):
        left = linear_form(node.left, variables)
        right = linear_form(node.right, variables)
        if left is None or right is None:
            return None
        if node.op in ("+", "-"):
            sign = 1.0 if node.op == "+" else -1.0
            out = dict(left)
            for key, value in right.items():
                out[key] = out.get(key, 0.0) + sign * value
            return out
        if node.op == "*":
            if set(left) == {None}:
                return {k: left[None] * v for k, v in right.items()}
            if set(right) == {None}:
                return {k: v * right[None] for k, v in left.items()}
            return None
        if node.op == "/" and set(right) == {None} and right[None] != 0:
            return {k: v / right[None] for k, v in left.items()}
    return None

# ============================================================
# Roots
# ============================================================

def _horner(desc: Sequence[Fraction], x: Fraction) -> Fraction:
    value = Fraction(0)
    for c in desc:
        value = value * x + c
    return value

def _deflate(desc: Sequence[Fraction], root: Fraction) -> List[Fraction]:
    """Divide by (x - root) with synthetic division, dropping the remainder."""
    out = [desc[0]]
    for c in desc[1:-1]:
        out.append(c + out[-1] * root)
    return out

def _divisors(n: int) -> List[int]:
    n = abs(n)
    small = [d for d in range(1, int(n ** 0.5) + 1) if n % d == 0]
    return sorted(set(small + [n // d for d in small]))

def rational_roots(coeffs: Sequence[float]) -> Tuple[List[Fraction], List[Fraction]]:
    """
    Rational roots of an integer polynomial (lowest degree first).

    Returns (roots, remainder) where roots are listed with multiplicity in
    ascending order and remainder holds the deflated polynomial, highest
    degree first. Non-integer or very large coefficients yield no roots.
    """
    desc = [Fraction(c) for c in reversed(coeffs)]
    if not desc or any(c.denominator != 1 for c in desc):
        return [], desc
    roots: List[Fraction] = []
    while len(desc) > 1 and desc[-1] == 0:
        roots.append(Fraction(0))
        desc = desc[:-1]
    if len(desc) < 2:
        return roots, desc
    lead, const = int(desc[0]), int(desc[-1])
    if abs(lead) > MAX_ROOT_SEARCH or abs(const) > MAX_ROOT_SEARCH:
        return roots, desc

    candidates = sorted({Fraction(sign * p, q)
                         for p in _divisors(const) for q in _divisors(lead)
                         for sign in (1, -1)})
    for candidate in candidates:
        while len(desc) > 1 and _horner(desc, candidate) == 0:
            roots.append(candidate)
            desc = _deflate(desc, candidate)
    return sorted(roots), desc

def real_roots(coeffs: Sequence[float], tolerance: float = 1e-9) -> List[float]:
    """Real roots of a numeric polynomial (lowest degree first), ascending."""
    desc = np.array(list(reversed(coeffs)), dtype=float)
    if len(desc) < 2:
        return []
    found = np.roots(desc)
    scale = max(1.0, float(np.max(np.abs(found)))) if len(found) else 1.0
    real = sorted(float(r.real) for r in found if abs(r.imag) <= tolerance * scale * 1e3)
    logger.debug("numpy roots %s, real %s", found, real)
    return real

def snap(value: float, tolerance: float = 1e-9) -> float:
    """Round values within tolerance of an integer."""
    nearest = round(value)
    if abs(value - nearest) < tolerance:
        return float(nearest)
    return value

# ============================================================
# Building polynomials
# ============================================================

def _power(var: Node, degree: int) -> Node:
    return var if degree == 1 else Operator("^", var, Number(degree))

def from_coefficients(coeffs: Sequence, var: str) -> Node:
    """Build c_n*x^n + ... + c_0 from coefficients given lowest degree first."""
    x = Variable(var)
    terms: List[Term] = []
    for degree in range(len(coeffs) - 1, -1, -1):
        coef = float(coeffs[degree])
        terms.append((coef, _power(x, degree) if degree else None))
    return build_sum(terms)

def _linear_factor(root: Fraction, x: Node) -> Node:
    """q*x - p for root p/q."""
    p, q = root.numerator, root.denominator
    if p == 0:
        return x
    lhs = x if q == 1 else Operator("*", Number(q), x)
    if p < 0:
        return Operator("+", lhs, Number(-p))
    return Operator("-", lhs, Number(p))

def factor_polynomial(coeffs: Sequence[float], var: str) -> Optional[Node]:
    """
    Factor an integer polynomial over its rational roots.

    Returns None when no rational root exists. The result is a product of
    an optional constant, linear factors (repeated roots as powers) and the
    deflated remainder.
    """
    roots, remainder = rational_roots(coeffs)
    if not roots:
        return None
    x = Variable(var)
    scale = Fraction(1)
    for root in roots:
        scale *= root.denominator
    remainder = [c / scale for c in remainder]

    factors: List[Node] = []
    if len(remainder) == 1:
        constant = remainder[0]
        if constant != 1:
            factors.append(Number(float(constant)))
    seen: List[Fraction] = []
    for root in roots:
        if root in seen:
            continue
        seen.append(root)
        multiplicity = roots.count(root)
        linear = _linear_factor(root, x)
        factors.append(linear if multiplicity == 1
                       else Operator("^", linear, Number(multiplicity)))
    if len(remainder) > 1:
        factors.append(from_coefficients(list(reversed(remainder)), var))
    return build_product(factors)
