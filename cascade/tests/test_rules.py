"""Tests for the rule DSL and rule libraries."""

import pytest
from cascade import (
    E, Number, Variable, RuleLibrary, DEFAULT_LIBRARY, Simplifier,
    load_rules_from_dsl, load_rules_from_file,
)
from cascade.rules import parse_rule_line


class TestRuleParsing:
    """Tests for single DSL lines."""

    def test_named_rule(self):
        """@name: pattern => skeleton."""
        metadata, pattern, skeleton = parse_rule_line("@add-zero: ?x + 0 => :x")
        assert metadata.name == "add-zero"
        assert metadata.description is None

    def test_described_rule(self):
        """@name "description": pattern => skeleton."""
        metadata, _, _ = parse_rule_line('@mul-one "Times one": ?x * 1 => :x')
        assert metadata.name == "mul-one"
        assert metadata.description == "Times one"

    def test_anonymous_rule(self):
        """Rules without a name are allowed."""
        metadata, _, _ = parse_rule_line("?x / 1 => :x")
        assert metadata.name is None

    def test_comment_and_blank(self):
        """Comments and blank lines are not rules."""
        assert parse_rule_line("# comment") is None
        assert parse_rule_line("   ") is None


class TestDslLoading:
    """Tests for multi-line DSL text."""

    def test_group_declaration(self):
        """A [group] line tags the following rules."""
        rules = load_rules_from_dsl('''
            [algebraic]
            @a: ?x + ?x => 2 * :x
            @b: ?x * ?x => :x ^ 2
        ''')
        assert [r.metadata.category for r in rules] == ["algebraic", "algebraic"]

    def test_multiple_groups(self):
        """Each group applies until the next declaration."""
        rules = load_rules_from_dsl('''
            [arithmetic]
            @a: ?x + 0 => :x

            [logarithmic]
            @b: ln(e) => 1
        ''')
        assert rules[0].metadata.tags == ["arithmetic"]
        assert rules[1].metadata.tags == ["logarithmic"]

    def test_extra_tags(self):
        """[group, tag] adds tags after the category."""
        rules = load_rules_from_dsl('''
            [exponential, real]
            @s: sqrt(?x) ^ 2 => :x
        ''')
        assert rules[0].metadata.tags == ["exponential", "real"]
        assert rules[0].metadata.category == "exponential"

    def test_rules_without_group(self):
        """Rules before any group have no category."""
        rules = load_rules_from_dsl("@free: ?x - 0 => :x")
        assert rules[0].metadata.tags == []
        assert rules[0].metadata.category is None

    def test_rule_rewrites(self):
        """A loaded rule rewrites matching nodes and leaves others alone."""
        rule = load_rules_from_dsl("@d: ?x + ?x => 2 * :x")[0]
        assert rule(E("y + y")) == E("2*y")
        assert rule(E("y + z")) == E("y + z")

    def test_unparsable_rule(self):
        """A line with => that does not parse is an error."""
        with pytest.raises(ValueError):
            load_rules_from_dsl("@bad: ?x + => :x")

    def test_unbound_skeleton_wildcard(self):
        """Skeletons may only use wildcards bound by the pattern."""
        with pytest.raises(ValueError):
            load_rules_from_dsl("@bad: ?x + 0 => :y")

    def test_to_dsl(self):
        """Pattern rules print back as DSL."""
        rule = load_rules_from_dsl('@add-zero "Adding zero": ?x + 0 => :x')[0]
        assert rule.to_dsl() == '@add-zero "Adding zero": ?x + 0 => :x'

    def test_load_file(self, tmp_path):
        """Rules load from files."""
        path = tmp_path / "extra.rules"
        path.write_text("[algebraic]\n@halve: ?x / 2 + ?x / 2 => :x\n")
        rules = load_rules_from_file(path)
        assert len(rules) == 1
        assert rules[0].name == "halve"


class TestRuleLibrary:
    """Tests for RuleLibrary management."""

    def test_default_library_groups(self):
        """The default library covers every category."""
        groups = DEFAULT_LIBRARY.groups()
        for name in ("arithmetic", "algebraic", "trigonometric",
                     "exponential", "logarithmic", "expand", "factor", "real"):
            assert name in groups

    def test_named_lookup(self):
        """Rules can be looked up by name."""
        assert "add-zero" in DEFAULT_LIBRARY
        assert DEFAULT_LIBRARY["add-zero"].name == "add-zero"
        with pytest.raises(KeyError):
            DEFAULT_LIBRARY["no-such-rule"]

    def test_disable_group(self):
        """Disabled groups drop out of rules_in."""
        library = DEFAULT_LIBRARY.copy().disable_group("trigonometric")
        assert library.rules_in("trigonometric") == []
        assert DEFAULT_LIBRARY.rules_in("trigonometric")

    def test_enable_group(self):
        """enable_group undoes disable_group."""
        library = DEFAULT_LIBRARY.copy().disable_group("trigonometric")
        library.enable_group("trigonometric")
        assert library.rules_in("trigonometric") == DEFAULT_LIBRARY.rules_in("trigonometric")

    def test_disabled_group_not_applied(self):
        """The simplifier skips disabled groups."""
        library = DEFAULT_LIBRARY.copy().disable_group("trigonometric")
        assert Simplifier(library).simplify(E("sin(x)/cos(x)")) == E("sin(x)/cos(x)")
        assert Simplifier().simplify(E("sin(x)/cos(x)")) == E("tan(x)")

    def test_copy_is_independent(self):
        """Adding to a copy leaves the original alone."""
        library = DEFAULT_LIBRARY.copy()
        library.load_dsl("[algebraic]\n@extra-rule: foo(?x) => :x")
        assert "extra-rule" in library
        assert "extra-rule" not in DEFAULT_LIBRARY
        assert len(library) == len(DEFAULT_LIBRARY) + 1

    def test_apply_once(self):
        """apply_once reports the first rule that rewrites the node."""
        result, metadata = DEFAULT_LIBRARY.apply_once(E("x + 0"))
        assert result == Variable("x")
        assert metadata.name == "add-zero"

    def test_apply_once_no_match(self):
        """apply_once returns None metadata when nothing applies."""
        result, metadata = DEFAULT_LIBRARY.apply_once(Variable("x"))
        assert result == Variable("x")
        assert metadata is None

    def test_rules_matching(self):
        """rules_matching lists every applicable rule."""
        names = [r.name for r in DEFAULT_LIBRARY.rules_matching(E("x * 1"))]
        assert "mul-one" in names
        assert "add-zero" not in names

    def test_rules_matching_by_group(self):
        """Matching can be limited to groups."""
        assert DEFAULT_LIBRARY.rules_matching(E("x * 1"), groups=["trigonometric"]) == []

    def test_union(self):
        """library1 | library2 holds both sets of rules."""
        a = RuleLibrary().load_dsl("[algebraic]\n@a: foo(?x) => :x")
        b = RuleLibrary().load_dsl("[algebraic]\n@b: bar(?x) => :x")
        both = a | b
        assert len(both) == 2
        assert "a" in both and "b" in both
        assert len(a) == 1

    def test_add_function(self):
        """Python functions can be registered as rules."""
        library = RuleLibrary().add_function(
            lambda n: Number(0) if n == Variable("zero") else n, "zero-name", "arithmetic")
        assert Simplifier(library).simplify(E("zero")) == Number(0)

    def test_list_rules(self):
        """list_rules shows the category and the DSL text."""
        library = RuleLibrary().load_dsl("[arithmetic]\n@a: ?x + 0 => :x")
        assert library.list_rules() == ["[arithmetic] @a: ?x + 0 => :x"]

    def test_match(self):
        """match() accepts pattern text."""
        bindings = DEFAULT_LIBRARY.match("?a ^ ?n:const", E("x^3"))
        assert bindings["n"] == Number(3)
