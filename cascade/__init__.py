"""
CASCADE - a rule-based computer algebra engine

Parses infix expressions into immutable trees and rewrites them with
explainable rules: simplification, differentiation, integration,
equation solving, Taylor series and limits. Every result carries the
steps that produced it.

Quick Start:
    from cascade import simplify, differentiate, integrate, solve_equation

    simplify("2*x + 3*x").text                  # '5*x'
    differentiate("x^3").text                   # '3*x^2'
    integrate("3*x^2").text                     # 'x^3 + C'
    solve_equation("x^2 - 5x + 6 = 0").numeric()  # [2.0, 3.0]

    result = differentiate("x * sin(x)")
    print(result.trace.format("rules"))

Custom Rules:
    from cascade import CASEngine, DEFAULT_LIBRARY

    library = DEFAULT_LIBRARY.copy().load_dsl('''
        [trigonometric]
        @sin-half-turn "sin(x + pi) = -sin(x)": sin(?x + pi) => -sin(:x)
    ''')
    engine = CASEngine(library)

Rule Syntax:
    @rule-name: pattern => skeleton
    @rule-name "Description": pattern => skeleton

    ?x or ?x:expr     - match any expression, bind to x
    ?x:const          - match a number only
    ?x:var            - match a variable only
    ?x:free(v)        - match an expression not containing v
    :x                - substitute bound value
"""

__version__ = "0.1.0"

# Trees
from .nodes import (
    Node,
    Number,
    Variable,
    Operator,
    Function,
    Equation,
    Wildcard,
    E,
    CONSTANTS,
    walk,
    substitute,
    transform,
    collect_variables,
    collect_functions,
    complexity,
)

# Errors
from .errors import (
    CASError,
    ParseError,
    UnsupportedOperation,
    NoUniqueSolution,
    SolverUnavailable,
    DomainError,
)

# Parsing and rendering
from .parser import ParseResult, parse_expression, parse_pattern
from .formatting import format_expr, to_latex
from .evaluate import evaluate, try_numeric, make_callable, domain_conditions

# Pattern matching and rules
from .pattern import Bindings, NoMatch, match_pattern
from .rules import (
    Rule,
    RuleMetadata,
    RuleLibrary,
    CATEGORY_ORDER,
    load_rules_from_dsl,
    load_rules_from_file,
)
from .library import DEFAULT_LIBRARY, build_default_library

# Components
from .simplifier import Simplifier, DEFAULT_MAX_STEPS
from .differentiate import derivative
from .integrate import antiderivative
from .solver import Solver
from .series import SeriesExpander
from .limits import LimitFinder

# Results
from .results import (
    Step,
    StepTrace,
    CASResult,
    SolutionKind,
    EquationSolution,
    SeriesExpansion,
    LimitStatus,
    LimitResult,
)

# Entry points
from .api import (
    CASEngine,
    DEFAULT_ENGINE,
    parse,
    simplify,
    differentiate,
    integrate,
    solve_equation,
    solve_linear_system,
    expand_series,
    limit,
)

__all__ = [
    # Trees
    "Node",
    "Number",
    "Variable",
    "Operator",
    "Function",
    "Equation",
    "Wildcard",
    "E",
    "CONSTANTS",
    "walk",
    "substitute",
    "transform",
    "collect_variables",
    "collect_functions",
    "complexity",
    # Errors
    "CASError",
    "ParseError",
    "UnsupportedOperation",
    "NoUniqueSolution",
    "SolverUnavailable",
    "DomainError",
    # Parsing and rendering
    "ParseResult",
    "parse_expression",
    "parse_pattern",
    "format_expr",
    "to_latex",
    "evaluate",
    "try_numeric",
    "make_callable",
    "domain_conditions",
    # Rules
    "Bindings",
    "NoMatch",
    "match_pattern",
    "Rule",
    "RuleMetadata",
    "RuleLibrary",
    "CATEGORY_ORDER",
    "load_rules_from_dsl",
    "load_rules_from_file",
    "DEFAULT_LIBRARY",
    "build_default_library",
    # Components
    "Simplifier",
    "DEFAULT_MAX_STEPS",
    "derivative",
    "antiderivative",
    "Solver",
    "SeriesExpander",
    "LimitFinder",
    # Results
    "Step",
    "StepTrace",
    "CASResult",
    "SolutionKind",
    "EquationSolution",
    "SeriesExpansion",
    "LimitStatus",
    "LimitResult",
    # Entry points
    "CASEngine",
    "DEFAULT_ENGINE",
    "parse",
    "simplify",
    "differentiate",
    "integrate",
    "solve_equation",
    "solve_linear_system",
    "expand_series",
    "limit",
]
