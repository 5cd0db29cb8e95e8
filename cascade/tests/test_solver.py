"""Tests for equation classification and solving."""

import math

import pytest
from cascade import (
    E, Number, Solver, SolutionKind, solve_equation, solve_linear_system, evaluate,
    NoUniqueSolution, SolverUnavailable, UnsupportedOperation, CASEngine,
)


class TestClassification:
    """Tests for Solver.classify."""

    @pytest.mark.parametrize("text,kind", [
        ("2*x + 4", SolutionKind.LINEAR),
        ("a*x + b", SolutionKind.LINEAR),
        ("x^2 - 5*x + 6", SolutionKind.QUADRATIC),
        ("x^3 - 2", SolutionKind.POLYNOMIAL),
        ("sin(x) - x", SolutionKind.TRANSCENDENTAL),
        ("exp(x) - 2", SolutionKind.TRANSCENDENTAL),
    ])
    def test_classify(self, text, kind):
        """Expressions are classified by their shape in x."""
        assert Solver().classify(E(text), "x") == kind


class TestLinear:
    """Tests for linear equations."""

    def test_numeric(self):
        """2x + 4 = 0 has x = -2."""
        solution = solve_equation("2x + 4 = 0")
        assert solution.kind == SolutionKind.LINEAR
        assert solution.numeric() == [-2.0]

    def test_both_sides(self):
        """Terms on both sides are collected."""
        assert solve_equation("3x - 1 = x + 5").numeric() == [3.0]

    def test_symbolic_coefficients(self):
        """a*x + b = 0 gives a symbolic solution."""
        solution = solve_equation("a*x + b = 0")
        assert len(solution.solutions) == 1
        assert evaluate(solution.solutions[0], {"a": 2, "b": 4}) == pytest.approx(-2.0)

    def test_identity(self):
        """x = x holds for every x."""
        solution = solve_equation("x = x")
        assert solution.solutions == []
        assert solution.domain == "all real numbers"

    def test_contradiction(self):
        """x + 1 = x has no solution."""
        solution = solve_equation("x + 1 = x")
        assert solution.solutions == []
        assert solution.domain == "no solution"

    def test_bare_expression(self):
        """A bare expression is solved as expr = 0."""
        assert solve_equation("2x - 8").numeric() == [4.0]

    def test_other_variable(self):
        """The variable argument picks the unknown."""
        solution = solve_equation("2*y = 6", variable="y")
        assert solution.variable == "y"
        assert solution.numeric() == [3.0]


class TestQuadratic:
    """Tests for quadratic equations."""

    def test_two_roots(self):
        """x^2 - 5x + 6 = 0 has roots 2 and 3, ascending."""
        solution = solve_equation("x^2 - 5x + 6 = 0")
        assert solution.kind == SolutionKind.QUADRATIC
        assert solution.numeric() == [2.0, 3.0]
        assert solution.domain == "real"

    def test_no_real_roots(self):
        """x^2 + 1 = 0 has no real solution."""
        solution = solve_equation("x^2 + 1 = 0")
        assert solution.solutions == []
        assert solution.domain == "no real solution"

    def test_double_root(self):
        """A repeated root is reported twice."""
        assert solve_equation("x^2 - 2x + 1 = 0").numeric() == [1.0, 1.0]

    def test_irrational_roots(self):
        """x^2 = 2 gives -sqrt(2) and sqrt(2)."""
        roots = solve_equation("x^2 = 2").numeric()
        assert roots == pytest.approx([-math.sqrt(2), math.sqrt(2)])

    def test_symbolic_quadratic(self):
        """Symbolic coefficients keep the quadratic formula."""
        solution = solve_equation("a*x^2 - 4 = 0")
        assert solution.kind == SolutionKind.QUADRATIC
        values = sorted(evaluate(s, {"a": 1}) for s in solution.solutions)
        assert values == pytest.approx([-2.0, 2.0])

    def test_discriminant_step(self):
        """The discriminant is a recorded step."""
        rules = [s.rule for s in solve_equation("x^2 - 5x + 6 = 0").steps]
        assert "move-terms" in rules
        assert "discriminant" in rules


class TestPolynomial:
    """Tests for higher-degree polynomials."""

    def test_rational_roots(self):
        """x^3 - 6x^2 + 11x - 6 = 0 has roots 1, 2, 3."""
        solution = solve_equation("x^3 - 6x^2 + 11x - 6 = 0")
        assert solution.kind == SolutionKind.POLYNOMIAL
        assert solution.numeric() == [1.0, 2.0, 3.0]

    def test_numeric_fallback(self):
        """x^3 = 2 uses numpy.roots."""
        solution = solve_equation("x^3 = 2")
        assert solution.numeric() == pytest.approx([2 ** (1 / 3)])
        assert "numeric-roots" in [s.rule for s in solution.steps]

    def test_numeric_disallowed(self):
        """Without numeric methods x^3 = 2 cannot be solved."""
        with pytest.raises(SolverUnavailable) as info:
            solve_equation("x^3 = 2", allow_numeric=False)
        assert info.value.needs_numeric is True

    def test_repeated_roots_deduplicated(self):
        """(x - 1)^2 (x + 2) has roots -2 and 1."""
        assert solve_equation("x^3 - 3x + 2 = 0").numeric() == [-2.0, 1.0]

    def test_symbolic_polynomial(self):
        """Symbolic coefficients above degree two are not supported."""
        with pytest.raises(SolverUnavailable) as info:
            solve_equation("a*x^3 + 1 = 0")
        assert info.value.needs_numeric is False


class TestTranscendental:
    """Tests for the numeric scan."""

    def test_exponential(self):
        """exp(x) = 2 gives ln(2)."""
        solution = solve_equation("exp(x) = 2")
        assert solution.kind == SolutionKind.TRANSCENDENTAL
        assert solution.numeric() == pytest.approx([math.log(2)])

    def test_fixed_point(self):
        """cos(x) = x has a single root near 0.739085."""
        roots = solve_equation("cos(x) = x").numeric()
        assert len(roots) == 1
        assert roots[0] == pytest.approx(0.7390851332, abs=1e-8)

    def test_poles_rejected(self):
        """Sign changes across poles of tan are not roots."""
        engine = CASEngine(search_interval=(-1.0, 4.0))
        roots = engine.solve_equation("tan(x) = 0").numeric()
        assert roots == pytest.approx([0.0, math.pi], abs=1e-8)

    def test_numeric_disallowed(self):
        """allow_numeric=False refuses the scan."""
        with pytest.raises(SolverUnavailable) as info:
            solve_equation("exp(x) = 2", allow_numeric=False)
        assert info.value.needs_numeric is True

    def test_parameters(self):
        """Parameters other than the unknown block numeric solving."""
        with pytest.raises(SolverUnavailable) as info:
            solve_equation("sin(a*x) = 0")
        assert info.value.needs_numeric is False

    def test_unknown_function(self):
        """Functions that cannot be evaluated are reported, not scanned."""
        with pytest.raises(UnsupportedOperation) as info:
            solve_equation("gamma(x) = 2")
        assert info.value.symbol == "gamma"
        assert info.value.operation == "solving"

    def test_empty_interval(self):
        """The search interval must not be empty."""
        with pytest.raises(ValueError):
            Solver(search_interval=(1.0, 1.0))


class TestLinearSystems:
    """Tests for Gaussian elimination."""

    def test_two_by_two(self):
        """x + y = 3, x - y = 1 gives x = 2, y = 1."""
        solution = solve_linear_system(["x + y = 3", "x - y = 1"], ["x", "y"])
        assert solution.kind == SolutionKind.SYSTEM
        assert solution.values() == {"x": Number(2), "y": Number(1)}

    def test_three_by_three(self):
        """A 3x3 system needing a row swap."""
        solution = solve_linear_system(
            ["y + z = 5", "x + 2y = 8", "2x - z = 2"], ["x", "y", "z"])
        values = solution.values()
        assert evaluate(values["x"]) == pytest.approx(2.0)
        assert evaluate(values["y"]) == pytest.approx(3.0)
        assert evaluate(values["z"]) == pytest.approx(2.0)

    def test_singular(self):
        """Dependent equations have no unique solution."""
        with pytest.raises(NoUniqueSolution):
            solve_linear_system(["x + y = 2", "2x + 2y = 4"], ["x", "y"])

    def test_not_square(self):
        """The number of equations must match the number of variables."""
        with pytest.raises(NoUniqueSolution):
            solve_linear_system(["x + y = 2"], ["x", "y"])

    def test_nonlinear(self):
        """Products of unknowns are not linear."""
        with pytest.raises(NoUniqueSolution):
            solve_linear_system(["x*y = 1", "x + y = 2"], ["x", "y"])

    def test_values_only_for_systems(self):
        """values() is meaningless for a single equation."""
        with pytest.raises(ValueError):
            solve_equation("x = 1").values()

    def test_back_substitution_steps(self):
        """Each unknown gets a back-substitution step."""
        solution = solve_linear_system(["x + y = 3", "x - y = 1"], ["x", "y"])
        rules = [s.rule for s in solution.steps]
        assert rules.count("back-substitution") == 2
