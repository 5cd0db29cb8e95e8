"""Tests for indefinite and definite integration."""

import math

import pytest
from cascade import (
    E, Number, Variable, integrate, antiderivative, differentiate, evaluate,
    UnsupportedOperation,
)


def check_antiderivative(integrand, points):
    """F' computed symbolically must equal the integrand."""
    anti = integrate(integrand).metadata["antiderivative"]
    derived = differentiate(anti).result
    for x in points:
        assert evaluate(derived, {"x": x}) == pytest.approx(
            evaluate(E(integrand), {"x": x}), rel=1e-7, abs=1e-10)


class TestIndefinite:
    """Tests for indefinite integrals."""

    def test_power(self):
        """The integral of 3*x^2 is x^3 + C."""
        result = integrate("3*x^2")
        assert result.metadata["antiderivative"] == "x^3"
        assert result.result == E("x^3 + C")

    def test_constant_of_integration(self):
        """Indefinite results end in + C with its own step."""
        result = integrate("5")
        assert result.text == "5*x + C"
        assert result.steps[-1].rule == "constant-of-integration"

    def test_variable(self):
        """The variable argument picks the integration variable."""
        result = integrate("y", variable="y")
        assert result.metadata["variable"] == "y"
        assert evaluate(E(result.metadata["antiderivative"]), {"y": 4.0}) == pytest.approx(8.0)

    @pytest.mark.parametrize("integrand,points", [
        ("x^2 + 2*x + 1", (-1.0, 0.5, 2.0)),
        ("sin(x)", (0.0, 1.0, 2.5)),
        ("cos(2*x)", (-0.4, 0.3, 1.2)),
        ("exp(3*x)", (-1.0, 0.0, 0.5)),
        ("1/x", (0.5, 1.0, 3.0)),
        ("1/(2*x + 1)", (0.0, 1.0, 4.0)),
        ("x^-2", (0.5, 1.0, 2.0)),
        ("1/x^2", (0.5, 1.0, 2.0)),
        ("3/x^4", (0.5, 1.0, 2.0)),
        ("1/sqrt(x)", (0.25, 1.0, 4.0)),
        ("2/(3*x + 1)^2", (0.0, 1.0, 3.0)),
        ("sqrt(x)", (0.25, 1.0, 4.0)),
        ("ln(x)", (0.5, 1.0, 2.0)),
        ("tan(x)", (0.1, 0.5, 1.0)),
        ("sec(x)^2", (0.1, 0.5, 1.0)),
        ("2^x", (-1.0, 0.0, 2.0)),
        ("4*cosh(x) - sinh(x)/2", (-1.0, 0.0, 1.0)),
    ])
    def test_round_trip(self, integrand, points):
        """Differentiating the antiderivative gives back the integrand."""
        check_antiderivative(integrand, points)

    def test_reciprocal_power(self):
        """c/u^n is integrated as c*u^(-n)."""
        result = integrate("1/x^2")
        assert "integral(" not in result.text
        assert "reciprocal-power" in [s.rule for s in result.steps]
        anti = E(result.metadata["antiderivative"])
        assert evaluate(anti, {"x": 2.0}) == pytest.approx(-0.5)

    def test_derivative_of_reciprocal(self):
        """Integrating the derivative of 1/x gives back 1/x."""
        derived = differentiate("1/x").result
        anti = integrate(derived).metadata["antiderivative"]
        assert "integral(" not in anti
        for x in (0.5, 1.0, 3.0):
            assert evaluate(E(anti), {"x": x}) == pytest.approx(1 / x)

    def test_steps(self):
        """Integration rules are logged before simplification."""
        rules = [s.rule for s in integrate("sin(x) + x").steps]
        assert "sum-rule" in rules
        assert "sin-rule" in rules
        assert "power-rule" in rules


class TestUnevaluated:
    """Integrals with no rule stay unevaluated."""

    def test_product_of_variables(self):
        """x*sin(x) is left as integral(x*sin(x), x)."""
        result = integrate("x*sin(x)")
        assert "integral" in result.metadata["functions"]
        assert "integral(" in result.text

    def test_raw_unevaluated_node(self):
        """antiderivative() wraps what it cannot integrate."""
        node = antiderivative(E("x*sin(x)"), "x")
        assert node.name == "integral"
        assert node.args[0] == E("x*sin(x)")
        assert node.args[1] == Variable("x")

    def test_partially_unevaluated(self):
        """Only the unsupported term stays unevaluated."""
        result = integrate("x + exp(x^2)")
        assert "integral(exp(x^2), x)" in result.metadata["antiderivative"]


class TestDefinite:
    """Tests for definite integrals."""

    def test_polynomial(self):
        """The integral of x^2 from 0 to 1 is 1/3."""
        result = integrate("x^2", definite=(0, 1))
        assert result.numeric == pytest.approx(1 / 3)
        assert isinstance(result.result, Number)
        assert result.metadata["numeric_status"] == "ok"
        assert result.metadata["bounds"] == [0, 1]

    def test_trigonometric(self):
        """The integral of sin from 0 to pi is 2."""
        result = integrate("sin(x)", definite=(0, math.pi))
        assert result.numeric == pytest.approx(2.0)

    def test_fundamental_theorem_step(self):
        """F(b) - F(a) is recorded as a step."""
        rules = [s.rule for s in integrate("x", definite=(0, 2)).steps]
        assert "fundamental-theorem" in rules
        assert "constant-of-integration" not in rules

    def test_undefined_at_bound(self):
        """ln(0) at the lower bound leaves the value undefined."""
        result = integrate("1/x", definite=(0, 1))
        assert result.numeric is None
        assert result.metadata["numeric_status"].startswith("undefined")

    def test_unevaluated_definite(self):
        """Unevaluated antiderivatives give no numeric value."""
        result = integrate("x*sin(x)", definite=(0, 1))
        assert result.numeric is None
        assert result.metadata["numeric_status"] == \
            "undefined: antiderivative contains an unevaluated integral"


class TestErrors:
    """Tests for unsupported input."""

    def test_equation(self):
        """Equations cannot be integrated."""
        with pytest.raises(UnsupportedOperation) as info:
            integrate("x = 1")
        assert info.value.operation == "integration"
        assert info.value.symbol == "="
