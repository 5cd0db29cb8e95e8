"""Tests for the fixpoint simplifier and the simplify entry point."""

import pytest
from cascade import (
    E, Number, Variable, Simplifier, StepTrace, CASEngine, DEFAULT_LIBRARY,
    simplify, evaluate,
)


class TestSimplifyResults:
    """Tests for what simplify() produces."""

    @pytest.mark.parametrize("text,expected", [
        ("x + 0", "x"),
        ("0 + x", "x"),
        ("x * 1", "x"),
        ("0 * y", "0"),
        ("x^1", "x"),
        ("x^0", "1"),
        ("2*x + 3*x", "5*x"),
        ("x - x", "0"),
        ("2 + 3*4", "14"),
        ("6/4", "3/2"),
        ("1/2 + 1/3", "5/6"),
        ("3 - 1/4", "11/4"),
        ("x/2 + x/3", "5*x/6"),
        ("x/2 + x/2", "x"),
        ("x - x/4", "3*x/4"),
        ("x^2 * x^3", "x^5"),
        ("x*y/(2*x)", "y/2"),
        ("sin(x)^2 + cos(x)^2", "1"),
        ("sin(x)/cos(x)", "tan(x)"),
        ("exp(ln(y))", "y"),
        ("ln(exp(y))", "y"),
        ("ln(a) + ln(b)", "ln(a*b)"),
        ("sqrt(x)^2", "x"),
    ])
    def test_simplify(self, text, expected):
        """Known simplifications reach the expected form."""
        assert simplify(text).result == E(expected)

    def test_text_property(self):
        """result.text is the infix form of the result."""
        assert simplify("2*x + 3*x").text == "5*x"

    def test_no_applicable_rules(self):
        """Without applicable rules the input comes back unchanged."""
        result = simplify("sin(x) + y")
        assert result.result == E("sin(x) + y")
        assert result.steps == []
        assert result.metadata["fixpoint"] is True

    def test_accepts_trees(self):
        """Trees can be passed instead of text."""
        assert simplify(E("x + 0")).result == Variable("x")

    def test_fraction_sum_step(self):
        """Sums of exact fractions are folded by add-fractions."""
        result = simplify("1/2 + 1/3")
        assert result.text == "5/6"
        assert "add-fractions" in [s.rule for s in result.steps]

    def test_rational_coefficients(self):
        """Terms divided by an integer combine with exact coefficients."""
        result = simplify("x/2 + x/3")
        assert result.text == "5*x/6"
        assert "combine-like-terms" in [s.rule for s in result.steps]


class TestFixpoint:
    """Tests for the fixpoint loop."""

    @pytest.mark.parametrize("text", [
        "x + 0 + 2*x", "x*sin(x)*x", "(x + 1)*(x + 1)", "6*x/3 + x", "ln(x^2) - ln(x)",
    ])
    def test_idempotent(self, text):
        """Simplifying a simplified expression changes nothing."""
        once = simplify(text).result
        assert simplify(once).result == once

    def test_fixpoint_reached(self):
        """metadata['fixpoint'] is True when the tree settled."""
        assert simplify("x + 0").metadata["fixpoint"] is True

    def test_max_steps_stops_early(self):
        """Running out of passes clears the fixpoint flag."""
        result = simplify("x + 0", max_steps=1)
        assert result.result == Variable("x")
        assert result.metadata["fixpoint"] is False

    def test_invalid_max_steps(self):
        """max_steps must be positive."""
        with pytest.raises(ValueError):
            Simplifier(max_steps=0)


class TestSteps:
    """Every productive rule application is one step."""

    def test_steps_recorded(self):
        """Steps carry the rule, the category and whole-tree snapshots."""
        result = simplify("x + 0 + 2*x")
        assert [s.rule for s in result.steps] == ["add-zero", "combine-like-terms"]
        first = result.steps[0]
        assert first.index == 1
        assert first.operation == "arithmetic"
        assert first.before == E("x + 0 + 2*x")
        assert first.after == E("x + 2*x")
        assert result.steps[1].after == E("3*x")

    def test_step_descriptions(self):
        """Rule descriptions become step explanations."""
        result = simplify("x + 0")
        assert result.steps[0].explanation == "Adding zero has no effect"

    def test_trace_attached(self):
        """The result carries a StepTrace with the same steps."""
        result = simplify("x + 0 + 2*x")
        assert isinstance(result.trace, StepTrace)
        assert result.trace.initial == E("x + 0 + 2*x")
        assert result.trace.final == E("3*x")
        assert len(result.trace) == 2


class TestTargetForms:
    """Tests for expanded and factored output."""

    def test_expanded(self):
        """Products of sums are multiplied out."""
        result = simplify("(x + 1)*(x - 1)", target_form="expanded")
        assert result.result == E("x^2 - 1")

    def test_expanded_power(self):
        """Powers of sums are multiplied out and agree numerically."""
        result = simplify("(x + 2)^3", target_form="expanded")
        assert "(" not in result.text
        for x in (-1.5, 0.0, 2.0):
            assert evaluate(result.result, {"x": x}) == pytest.approx((x + 2) ** 3)

    def test_default_does_not_expand(self):
        """Expansion only happens when asked for."""
        assert simplify("(x + 1)*(x - 1)").result == E("(x + 1)*(x - 1)")

    def test_factored_roots(self):
        """Integer quadratics factor over their rational roots."""
        result = simplify("x^2 - 5x + 6", target_form="factored")
        assert result.result == E("(x - 2)*(x - 3)")

    def test_factored_common_term(self):
        """Shared factors are pulled out."""
        result = simplify("2x^2 + 4x", target_form="factored")
        assert result.result == E("2*x*(x + 2)")

    def test_unknown_target_form(self):
        """Unknown target forms are rejected."""
        with pytest.raises(ValueError):
            simplify("x", target_form="pretty")


class TestDomain:
    """Rules valid only over the reals are skipped for complex."""

    def test_real_only_rules(self):
        """ln(a) + ln(b) combines only over the reals."""
        assert simplify("ln(a) + ln(b)", domain="complex").result == E("ln(a) + ln(b)")

    def test_sqrt_squared(self):
        """sqrt(x)^2 = x only over the reals."""
        assert simplify("sqrt(x)^2", domain="complex").result == E("sqrt(x)^2")

    def test_unknown_domain(self):
        """Unknown domains are rejected."""
        with pytest.raises(ValueError):
            simplify("x", domain="quaternion")


class TestMetadata:
    """Tests for CASResult fields."""

    def test_metadata_fields(self):
        """Metadata describes the result tree."""
        result = simplify("x*sin(y) + 0")
        assert result.metadata["complexity"] == 4
        assert result.metadata["operators_used"] == ["*"]
        assert result.metadata["variables"] == ["x", "y"]
        assert result.metadata["functions"] == ["sin"]

    def test_numeric_value(self):
        """Closed expressions carry their numeric value."""
        assert simplify("2 + 3").numeric == 5.0
        assert simplify("pi").numeric == pytest.approx(3.141592653589793)
        assert simplify("x").numeric is None

    def test_latex(self):
        """The result carries its LaTeX form."""
        assert simplify("x^2/2 + 0").latex == r"\frac{x^{2}}{2}"

    def test_original_text(self):
        """The original text is kept."""
        assert simplify("x + 0").original == "x + 0"

    def test_to_dict(self):
        """Results serialise to plain dictionaries."""
        data = simplify("x + 0").to_dict()
        assert data["result"] == "x"
        assert data["steps"][0]["rule"] == "add-zero"

    def test_domain_conditions(self):
        """The input's domain is kept even when simplification cancels it."""
        result = simplify("x/x + ln(y)")
        assert result.metadata["domain_conditions"] == ["x != 0", "y > 0"]


class TestEngine:
    """Tests for CASEngine configuration."""

    def test_custom_library(self):
        """An engine uses its own library."""
        library = DEFAULT_LIBRARY.copy().load_dsl('''
            [algebraic]
            @double "f(f(x)) = x": flip(flip(?x)) => :x
        ''')
        engine = CASEngine(library)
        assert engine.simplify("flip(flip(y))").result == Variable("y")
        assert simplify("flip(flip(y))").result == E("flip(flip(y))")

    def test_engine_max_steps(self):
        """The engine's max_steps is the default pass limit."""
        engine = CASEngine(max_steps=1)
        assert engine.max_steps == 1
        assert engine.simplify("x + 0").metadata["fixpoint"] is False

    def test_parse_error(self):
        """Invalid text raises ParseError before any work."""
        from cascade import ParseError
        with pytest.raises(ParseError):
            simplify("x +* 2")

    def test_simplifier_direct(self):
        """Simplifier.run returns the tree and the fixpoint flag."""
        trace = StepTrace()
        node, fixpoint = Simplifier().run(E("x + 0"), trace=trace)
        assert node == Variable("x")
        assert fixpoint
        assert trace.rules_applied() == ["add-zero"]
        assert Number(0) == Simplifier().simplify(E("x - x"))


class TestStepTraceFormats:
    """Tests for StepTrace formatting options."""

    def trace(self):
        return simplify("x + 0 + 2*x").trace

    def test_compact(self):
        """Compact format shows the rule chain on one line."""
        assert self.trace().format("compact") == \
            "x + 0 + 2*x --[add-zero, combine-like-terms]--> 3*x"

    def test_rules(self):
        """Rules format lists rule names."""
        assert self.trace().format("rules") == "add-zero -> combine-like-terms"

    def test_chain(self):
        """Chain format shows each intermediate expression."""
        assert self.trace().format("chain").splitlines() == [
            "x + 0 + 2*x",
            "  --(add-zero)-->",
            "x + 2*x",
            "  --(combine-like-terms)-->",
            "3*x",
        ]

    def test_verbose(self):
        """Verbose format numbers every step."""
        text = self.trace().format()
        assert text.startswith("Initial: x + 0 + 2*x")
        assert "1. [arithmetic] add-zero" in text
        assert text.endswith("Final: 3*x")

    def test_summary(self):
        """summary() counts steps and rules."""
        assert self.trace().summary() == \
            "2 steps using 2 unique rules. Most used: add-zero (1x)"

    def test_empty_trace(self):
        """A trace with no steps says so."""
        trace = simplify("y").trace
        assert not trace
        assert trace.format("rules") == "(no rules applied)"
        assert trace.summary() == "No rewriting performed"

    def test_rule_counts(self):
        """rule_counts() tallies applications."""
        assert self.trace().rule_counts() == {"add-zero": 1, "combine-like-terms": 1}

    def test_to_dict(self):
        """to_dict() is JSON-friendly."""
        data = self.trace().to_dict()
        assert data["initial"] == "x + 0 + 2*x"
        assert data["final"] == "3*x"
        assert data["step_count"] == 2

    def test_from_steps(self):
        """from_steps() defaults the ends to the first and last step."""
        steps = simplify("x + 0 + 2*x").steps
        trace = StepTrace.from_steps(steps)
        assert trace.initial == E("x + 0 + 2*x")
        assert trace.final == E("3*x")
        assert trace.format("rules") == "add-zero -> combine-like-terms"
