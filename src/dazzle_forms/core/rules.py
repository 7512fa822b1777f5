"""
Rule evaluation for conditional visibility and enablement.

Evaluates rule conditions against the data store and applies their effects
to descriptor subtrees. Pure over its inputs apart from the descriptor
flags it sets. Conditions never execute code; only equality and truthiness
tests over the value at a path are supported.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from dazzle_forms.core.paths import Path
from dazzle_forms.core.store import DataStore
from dazzle_forms.specs.control import ControlDescriptor, ControlKind
from dazzle_forms.specs.rule import Rule, RuleCondition, RuleEffect

logger = logging.getLogger(__name__)


def strict_equals(left: Any, right: Any) -> bool:
    """
    Equality without bool/number cross-matching.

    ``True == 1`` holds in Python but a rule expecting ``true`` must not
    match the number ``1``.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            strict_equals(left[k], right[k]) for k in left
        )
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right, strict=True)
        )
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return False
    return bool(left == right)


def _truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def evaluate(condition: RuleCondition, store: DataStore) -> bool:
    """
    Evaluate a condition against the current data.

    Args:
        condition: Condition with a scope and an optional comparison
        store: Data store holding the form value

    Returns:
        True if the condition holds
    """
    value = store.get(condition.path)
    comparison = condition.comparison
    if comparison is None:
        return _truthy(value)
    _, expected = comparison
    return strict_equals(value, expected)


def _leaves(descriptor: ControlDescriptor) -> list[ControlDescriptor]:
    leaves = [
        node
        for node in descriptor.walk()
        if not node.children or node.kind in (ControlKind.LEAF, ControlKind.CUSTOM)
    ]
    return leaves or [descriptor]


def apply(descriptor: ControlDescriptor, rule: Rule, store: DataStore) -> bool:
    """
    Apply one rule's effect to a descriptor subtree.

    HIDE shows the subtree while the condition holds and hides it otherwise.
    DISABLE disables every leaf beneath while the condition holds.

    Returns:
        The condition result
    """
    result = evaluate(rule.condition, store)
    if rule.effect == RuleEffect.HIDE:
        descriptor.hidden = not result
    else:
        for leaf in _leaves(descriptor):
            leaf.enabled = not result
    return result


@dataclass
class RulePassStats:
    """Counters for one full rule pass."""

    evaluated: int = 0
    hidden: int = 0
    disabled: int = 0


def _targets(tree: ControlDescriptor, target: Path) -> list[ControlDescriptor]:
    exact = tree.find(target)
    if exact is not None:
        return [exact]
    if any(isinstance(t, int) for t in target):
        return []
    # An index-free target (from an ``items`` pointer) addresses every item
    matches: list[ControlDescriptor] = []
    seen: set[tuple[Any, ...]] = set()
    for node in tree.walk():
        if node.path is None or tuple(node.path) in seen:
            continue
        names = tuple(t for t in node.path if isinstance(t, str))
        if names == tuple(target):
            seen.add(tuple(node.path))
            matches.append(node)
    return matches


class RuleEngine:
    """
    Holds programmatic rules and re-evaluates every rule after a mutation.

    Inline rules live on descriptors (``descriptor.rule``) and are found by
    walking the tree, so they disappear with their subtree.

    Example:
        engine = RuleEngine()
        engine.add(Rule.model_validate({...}))
        stats = engine.apply_all(tree, store)
    """

    def __init__(self) -> None:
        self._rules: list[Rule] = []

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def add(self, rule: Rule) -> None:
        self._rules.append(rule)

    def clear(self) -> None:
        self._rules.clear()

    def apply_all(self, tree: ControlDescriptor | None, store: DataStore) -> RulePassStats:
        """
        Run every inline and programmatic rule once.

        Args:
            tree: Root descriptor (None before a schema is loaded)
            store: Data store holding the form value

        Returns:
            RulePassStats for the pass
        """
        stats = RulePassStats()
        if tree is None:
            return stats

        for node in list(tree.walk()):
            if node.rule is not None:
                self._record(stats, node.rule, apply(node, node.rule, store))

        for rule in self._rules:
            targets = _targets(tree, rule.target_path)
            if not targets:
                logger.debug("Rule target %s has no descriptor", rule.target_path)
                stats.evaluated += 1
                continue
            result = False
            for target in targets:
                result = apply(target, rule, store)
            self._record(stats, rule, result)

        logger.debug(
            "Rule pass: evaluated=%d hidden=%d disabled=%d",
            stats.evaluated,
            stats.hidden,
            stats.disabled,
        )
        return stats

    @staticmethod
    def _record(stats: RulePassStats, rule: Rule, result: bool) -> None:
        stats.evaluated += 1
        if rule.effect == RuleEffect.HIDE and not result:
            stats.hidden += 1
        elif rule.effect == RuleEffect.DISABLE and result:
            stats.disabled += 1


__all__ = [
    "RuleEngine",
    "RulePassStats",
    "apply",
    "evaluate",
    "strict_equals",
]
