"""
Category-ordered rewriting to a fixpoint.

Each pass visits the rule categories in CATEGORY_ORDER and applies every
active rule bottom-up to the whole tree. A pass that leaves the tree
structurally unchanged ends the loop:

    simplifier = Simplifier()
    trace = StepTrace()
    result, fixpoint = simplifier.run(E("x + 0 + 2*x"), trace=trace)
    # result: 3*x, fixpoint: True, trace.rules_applied(): ['add-zero', 'combine-like-terms']
"""

import logging
from typing import Iterable, Optional, Tuple

from .library import DEFAULT_LIBRARY
from .nodes import Node, transform
from .results import StepTrace
from .rules import CATEGORY_ORDER, Rule, RuleLibrary

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 50

TARGET_FORMS = (None, "expanded", "factored")
DOMAINS = ("real", "complex")


def _rewrite_top_down(node: Node, rule: Rule) -> Node:
    """Try the rule on a node before its children, then descend into the result."""
    node = rule(node)
    kids = node.children()
    if kids:
        node = node.rebuild([_rewrite_top_down(child, rule) for child in kids])
    return node


class Simplifier:
    """
    Fixpoint rewriter over a rule library.

    The library is only read; group changes belong on a copy:

        library = DEFAULT_LIBRARY.copy().disable_group("trigonometric")
        Simplifier(library).simplify(E("sin(x)/cos(x)"))   # unchanged
    """

    def __init__(self, library: Optional[RuleLibrary] = None,
                 max_steps: int = DEFAULT_MAX_STEPS):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.library = library if library is not None else DEFAULT_LIBRARY
        self.max_steps = max_steps

    def simplify(self, node: Node, target_form: Optional[str] = None,
                 domain: str = "real") -> Node:
        """Simplify without keeping the steps."""
        return self.run(node, target_form=target_form, domain=domain)[0]

    def run(self, node: Node, target_form: Optional[str] = None, domain: str = "real",
            trace: Optional[StepTrace] = None,
            max_steps: Optional[int] = None) -> Tuple[Node, bool]:
        """
        Simplify a tree, appending every productive rule application to trace.

        Args:
            node: Tree to simplify
            target_form: None, "expanded" or "factored"
            domain: "real" or "complex"; "complex" skips rules tagged "real"
            trace: StepTrace receiving the steps (a throwaway one if None)
            max_steps: Maximum passes per fixpoint loop (default: self.max_steps)

        Returns:
            (result, fixpoint) where fixpoint is False when a loop stopped at
            max_steps before the tree settled
        """
        if target_form not in TARGET_FORMS:
            raise ValueError(f"Unknown target form: {target_form}. "
                             f"Valid options: expanded, factored")
        if domain not in DOMAINS:
            raise ValueError(f"Unknown domain: {domain}. Valid options: real, complex")
        if trace is None:
            trace = StepTrace()
        limit = max_steps if max_steps is not None else self.max_steps

        current, fixpoint = self._fixpoint(node, CATEGORY_ORDER, domain, trace, limit)

        if target_form == "expanded":
            current, expanded = self._fixpoint(current, ("expand",), domain, trace, limit)
            current, settled = self._fixpoint(current, CATEGORY_ORDER, domain, trace, limit)
            fixpoint = fixpoint and expanded and settled
        elif target_form == "factored":
            factored = self._factor_pass(current, domain, trace)
            if factored != current:
                current, settled = self._fixpoint(factored, CATEGORY_ORDER, domain, trace, limit)
                fixpoint = fixpoint and settled

        return current, fixpoint

    def _active(self, category: str, domain: str) -> Iterable[Rule]:
        for rule in self.library.rules_in(category):
            if domain != "real" and "real" in rule.metadata.tags:
                continue
            yield rule

    def _pass(self, node: Node, categories: Tuple[str, ...], domain: str,
              trace: StepTrace) -> Node:
        for category in categories:
            for rule in self._active(category, domain):
                result = transform(node, rule)
                if result != node:
                    logger.debug("%s: %s -> %s", rule.name, node, result)
                    trace.add(category, node, result, rule.name, rule.description)
                    node = result
        return node

    def _fixpoint(self, node: Node, categories: Tuple[str, ...], domain: str,
                  trace: StepTrace, max_steps: int) -> Tuple[Node, bool]:
        for passes in range(1, max_steps + 1):
            result = self._pass(node, categories, domain, trace)
            if result == node:
                logger.debug("Fixpoint after %d passes: %s", passes, node)
                return node, True
            node = result
        logger.debug("Stopped after %d passes without a fixpoint: %s", max_steps, node)
        return node, False

    def _factor_pass(self, node: Node, domain: str, trace: StepTrace) -> Node:
        """One top-down pass of each factoring rule."""
        for rule in self._active("factor", domain):
            result = _rewrite_top_down(node, rule)
            if result != node:
                logger.debug("%s: %s -> %s", rule.name, node, result)
                trace.add("factor", node, result, rule.name, rule.description)
                node = result
        return node
