"""
Rewrite rules and the libraries that hold them.

A rule maps a node to a node and hands back its input (or an equal tree)
when it has nothing to do. It only inspects the node it is given; walking
the tree is the simplifier's job.

Python rules are registered with the ``builtin`` decorator in library.py.
Pattern rules come from the rule DSL, one per line:

    # comment
    [arithmetic]
    @add-zero "Adding zero has no effect": ?x + 0 => :x
    @mul-one: ?x * 1 => :x

On the left of ``=>``, ``?x`` (or ``?x:expr``) binds anything, ``?x:const``
only numbers, ``?x:var`` only variables and ``?x:free(v)`` anything that
does not mention the variable bound to v. On the right, ``:x`` is replaced
by the binding and everything else is literal.

A ``[category, tag, ...]`` header tags the rules below it. The first tag
is the category the simplifier schedules the rule under; extra tags such
as ``real`` restrict where the rule may fire.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .formatting import format_expr
from .nodes import Node, Wildcard, walk
from .parser import parse_pattern
from .pattern import FAILED, match, instantiate, wrap_bindings

logger = logging.getLogger(__name__)

RuleFunc = Callable[[Node], Node]

# Order in which the simplifier visits rule categories
CATEGORY_ORDER = ("arithmetic", "algebraic", "trigonometric", "exponential", "logarithmic")

# Groups used only for target forms
TARGET_GROUPS = ("expand", "factor")


class RuleMetadata:
    """Name, optional explanation and tags of a rule."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.tags = list(tags) if tags else []

    @property
    def category(self) -> Optional[str]:
        return self.tags[0] if self.tags else None

    def header(self) -> str:
        """``@name`` or ``@name "description"`` as written in the DSL."""
        if self.description:
            return f'@{self.name} "{self.description}"'
        return f"@{self.name}"

    def __repr__(self) -> str:
        return self.header() if self.name else "<anonymous>"


class Rule:
    """
    A rewrite function together with its metadata.

    Pattern rules also keep their pattern and skeleton so they can be
    printed back as DSL.
    """

    __slots__ = ("func", "metadata", "pattern", "skeleton")

    def __init__(self, func: RuleFunc, metadata: RuleMetadata,
                 pattern: Optional[Node] = None, skeleton: Optional[Node] = None):
        self.func = func
        self.metadata = metadata
        self.pattern = pattern
        self.skeleton = skeleton

    @property
    def name(self) -> str:
        return self.metadata.name or "<anonymous>"

    @property
    def description(self) -> str:
        return self.metadata.description or ""

    def __call__(self, node: Node) -> Node:
        return self.func(node)

    def __repr__(self) -> str:
        return f"<Rule {self.metadata!r}>"

    def to_dsl(self) -> Optional[str]:
        """DSL line of a pattern rule; None for Python rules."""
        if self.pattern is None:
            return None
        lhs, rhs = format_expr(self.pattern), format_skeleton(self.skeleton)
        if self.metadata.name:
            return f"{self.metadata.header()}: {lhs} => {rhs}"
        return f"{lhs} => {rhs}"


def format_skeleton(node: Node) -> str:
    """Text of a skeleton, with each wildcard written back as :name."""
    return _WILDCARD_TEXT.sub(r":\1", format_expr(node))


def pattern_rule(pattern: Node, skeleton: Node) -> RuleFunc:
    """Rule function rewriting anything that matches pattern into skeleton."""
    def rewrite(node: Node) -> Node:
        bindings = match(pattern, node, [])
        return node if bindings == FAILED else instantiate(skeleton, bindings)
    return rewrite


# DSL

_RULE_LINE = re.compile(r'@(?P<name>[\w-]+)\s*(?:"(?P<desc>[^"]+)"\s*)?:\s*(?P<body>.+)')
_WILDCARD_TEXT = re.compile(r"\?([A-Za-z_]\w*)(?::\w+(?:\([^)]*\))?)?")


def _is_header(line: str) -> bool:
    return line.startswith("[") and line.endswith("]")


def parse_rule_line(line: str) -> Optional[Tuple[RuleMetadata, Node, Node]]:
    """
    Split one DSL line into (metadata, pattern, skeleton).

    Accepts ``@name: lhs => rhs``, ``@name "text": lhs => rhs`` and a bare
    ``lhs => rhs``. Comments, blank lines and anything that fails to
    parse give None.
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    metadata = RuleMetadata()
    header = _RULE_LINE.fullmatch(text)
    if header:
        metadata.name = header.group("name")
        metadata.description = header.group("desc")
        text = header.group("body")

    lhs, arrow, rhs = text.partition("=>")
    if not arrow:
        return None
    pattern = parse_pattern(lhs.strip())
    skeleton = parse_pattern(rhs.strip())
    if pattern is None or skeleton is None:
        return None
    return metadata, pattern, skeleton


def _wildcard_names(node: Node) -> set:
    return {sub.name for sub in walk(node) if isinstance(sub, Wildcard)}


def load_rules_from_dsl(text: str) -> List[Rule]:
    """
    Build rules from DSL text.

    Rules take the tags of the closest ``[group, tag, ...]`` header above
    them; the first tag is the category.

        [trigonometric]
        @sin-zero: sin(0) => 0

    Raises ValueError naming the line when a rule does not parse or its
    skeleton refers to a wildcard the pattern never binds.
    """
    rules = []
    tags: List[str] = []
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if _is_header(line):
            tags = [t.strip() for t in line[1:-1].split(",") if t.strip()]
            continue

        parsed = parse_rule_line(line)
        if parsed is None:
            if "=>" in line and not line.startswith("#"):
                raise ValueError(f"Line {lineno}: cannot parse rule: {line}")
            continue

        metadata, pattern, skeleton = parsed
        missing = sorted(_wildcard_names(skeleton) - _wildcard_names(pattern))
        if missing:
            names = ", ".join(":" + name for name in missing)
            raise ValueError(f"Line {lineno}: skeleton uses unbound {names}")
        metadata.tags.extend(t for t in tags if t not in metadata.tags)
        rules.append(Rule(pattern_rule(pattern, skeleton), metadata, pattern, skeleton))
    return rules


def load_rules_from_file(path: Union[str, Path]) -> List[Rule]:
    """Read a rule file and build its rules."""
    return load_rules_from_dsl(Path(path).read_text())


# Libraries

class RuleLibrary:
    """
    Rules in registration order, plus per-group on/off switches.

    A rule is switched off when any of its tags names a disabled group.
    Mutating methods return the library so calls can be chained:

        library = DEFAULT_LIBRARY.copy().disable_group("trigonometric")
        library.load_dsl("[algebraic]\\n@double: ?x + ?x => 2 * :x")
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self._rules: List[Rule] = []
        self._by_name: Dict[str, Rule] = {}
        self._disabled: set = set()
        for rule in rules or ():
            self.add(rule)

    def add(self, rule: Rule) -> 'RuleLibrary':
        self._rules.append(rule)
        if rule.metadata.name:
            self._by_name[rule.metadata.name] = rule
        return self

    def add_function(self, func: RuleFunc, name: str, category: str,
                     description: Optional[str] = None) -> 'RuleLibrary':
        """Wrap a plain node-to-node function as a rule of the given category."""
        return self.add(Rule(func, RuleMetadata(name, description, [category])))

    def load_dsl(self, text: str) -> 'RuleLibrary':
        for rule in load_rules_from_dsl(text):
            self.add(rule)
        return self

    def load_file(self, path: Union[str, Path]) -> 'RuleLibrary':
        rules = load_rules_from_file(path)
        for rule in rules:
            self.add(rule)
        logger.debug("%d rules from %s, library now %d", len(rules), path, len(self))
        return self

    # Groups

    def disable_group(self, group: str) -> 'RuleLibrary':
        self._disabled.add(group)
        return self

    def enable_group(self, group: str) -> 'RuleLibrary':
        self._disabled.discard(group)
        return self

    def groups(self) -> set:
        """Every tag carried by some rule."""
        return {tag for rule in self._rules for tag in rule.metadata.tags}

    def is_active(self, rule: Rule) -> bool:
        return self._disabled.isdisjoint(rule.metadata.tags)

    def rules_in(self, group: str) -> List[Rule]:
        """Active rules whose category is group, in registration order."""
        return [rule for rule in self._rules
                if rule.metadata.category == group and self.is_active(rule)]

    def _active(self, groups: Optional[List[str]]) -> Iterator[Rule]:
        for rule in self._rules:
            if not self.is_active(rule):
                continue
            if groups is None or any(tag in groups for tag in rule.metadata.tags):
                yield rule

    # Application

    def apply_once(self, node: Node, groups: Optional[List[str]] = None
                   ) -> Tuple[Node, Optional[RuleMetadata]]:
        """
        Rewrite node with the first active rule that changes it.

        Only the node itself is tried, not its children. The metadata is
        None when no rule fired.
        """
        for rule in self._active(groups):
            rewritten = rule(node)
            if rewritten != node:
                return rewritten, rule.metadata
        return node, None

    def rules_matching(self, node: Node, groups: Optional[List[str]] = None) -> List[Rule]:
        """Every active rule that would change node, for debugging stuck expressions."""
        return [rule for rule in self._active(groups) if rule(node) != node]

    def match(self, pattern: Union[str, Node], node: Node):
        """Match pattern (a node or pattern text) against node; Bindings or NoMatch."""
        if isinstance(pattern, str):
            parsed = parse_pattern(pattern)
            if parsed is None:
                raise ValueError(f"Invalid pattern: {pattern}")
            pattern = parsed
        return wrap_bindings(match(pattern, node, []))

    # Introspection

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    def list_rules(self) -> List[str]:
        """``[category] rule`` lines, DSL text where the rule has a pattern."""
        return [f"[{rule.metadata.category}] {rule.to_dsl() or f'{rule.metadata!r} <python>'}"
                for rule in self._rules]

    def copy(self) -> 'RuleLibrary':
        """New library sharing the rules but with its own group switches."""
        twin = RuleLibrary(self._rules)
        twin._disabled = set(self._disabled)
        return twin

    def __or__(self, other: 'RuleLibrary') -> 'RuleLibrary':
        merged = self.copy()
        for rule in other:
            merged.add(rule)
        return merged

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __getitem__(self, name: str) -> Rule:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"No rule named '{name}'") from None

    def __repr__(self) -> str:
        return f"<RuleLibrary: {len(self._rules)} rules, {len(self.groups())} groups>"
