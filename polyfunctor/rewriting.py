"""
Path Rewriting Module

Equational reasoning for presented categories. A morphism of a free
category is a path of generator names; equations between parallel paths
are oriented into rewrite rules by the shortlex order and completed with a
bounded Knuth-Bendix procedure. Two paths are equal in the presented
category when their normal forms coincide (for a completed system).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .constants import MAX_COMPLETION_ROUNDS, MAX_REWRITE_STEPS, MAX_RULES
from .errors import RewriteLimitExceeded

logger = logging.getLogger(__name__)

Path = Tuple[str, ...]


def shortlex_greater(u: Path, v: Path) -> bool:
    """Longer paths are greater; equal lengths compare lexicographically."""
    if len(u) != len(v):
        return len(u) > len(v)
    return u > v


def find_subpath(word: Path, pattern: Path, start: int = 0) -> int:
    """Index of the first occurrence of ``pattern`` in ``word`` or -1."""
    n = len(pattern)
    for i in range(start, len(word) - n + 1):
        if word[i:i + n] == pattern:
            return i
    return -1


@dataclass(frozen=True)
class Rule:
    """Oriented equation ``lhs → rhs`` with ``lhs`` shortlex-greater."""
    lhs: Path
    rhs: Path

    def __str__(self):
        return f"{'·'.join(self.lhs) or 'ε'} → {'·'.join(self.rhs) or 'ε'}"


def orient(u: Path, v: Path) -> Optional[Rule]:
    if u == v:
        return None
    if shortlex_greater(u, v):
        return Rule(u, v)
    return Rule(v, u)


class RewriteSystem:
    """
    String rewriting system over generator names.

    Equations are appended; the rule set is recompleted lazily the next
    time equality is asked for.
    """

    def __init__(self,
                 max_steps: int = MAX_REWRITE_STEPS,
                 max_rounds: int = MAX_COMPLETION_ROUNDS,
                 max_rules: int = MAX_RULES):
        self.max_steps = max_steps
        self.max_rounds = max_rounds
        self.max_rules = max_rules
        self.equations: List[Tuple[Path, Path]] = []
        self.rules: List[Rule] = []
        self.confluent = True

    def add_equation(self, lhs: Path, rhs: Path) -> None:
        self.equations.append((tuple(lhs), tuple(rhs)))
        rule = orient(self.normalize(lhs), self.normalize(rhs))
        if rule is not None:
            self.rules.append(rule)
            self.confluent = False

    def rewrite_once(self, word: Path, rules: Optional[List[Rule]] = None) -> Optional[Path]:
        for rule in self.rules if rules is None else rules:
            i = find_subpath(word, rule.lhs)
            if i >= 0:
                return word[:i] + rule.rhs + word[i + len(rule.lhs):]
        return None

    def normalize(self, word: Path, rules: Optional[List[Rule]] = None) -> Path:
        """
        Rewrite ``word`` until no rule applies.

        Raises:
            RewriteLimitExceeded: after ``max_steps`` rewrites
        """
        current = tuple(word)
        for _ in range(self.max_steps):
            reduced = self.rewrite_once(current, rules)
            if reduced is None:
                return current
            current = reduced
        raise RewriteLimitExceeded(
            f"Normalising {'·'.join(word)} exceeded {self.max_steps} steps"
        )

    def critical_pairs(self, r1: Rule, r2: Rule) -> List[Tuple[Path, Path]]:
        """Pairs of one-step reducts of the overlaps of two rules."""
        pairs = []
        a, b = r1.lhs, r2.lhs
        # suffix of a overlaps a prefix of b
        for k in range(1, min(len(a), len(b))):
            if a[-k:] == b[:k]:
                pairs.append((r1.rhs + b[k:], a[:-k] + r2.rhs))
        # b inside a
        if r1 != r2 and len(b) <= len(a):
            i = find_subpath(a, b)
            while i >= 0:
                pairs.append((r1.rhs, a[:i] + r2.rhs + a[i + len(b):]))
                i = find_subpath(a, b, i + 1)
        return pairs

    def complete(self) -> bool:
        """
        Run Knuth-Bendix completion.

        Returns:
            True when the rule set is confluent, False when a bound was hit
        """
        if self.confluent:
            return True

        for round_number in range(self.max_rounds):
            self._interreduce()
            added = 0
            for r1 in list(self.rules):
                for r2 in list(self.rules):
                    for left, right in self.critical_pairs(r1, r2):
                        rule = orient(self.normalize(left), self.normalize(right))
                        if rule is not None:
                            self.rules.append(rule)
                            added += 1
                    if len(self.rules) > self.max_rules:
                        logger.warning("Completion stopped at %d rules", len(self.rules))
                        return False
            if not added:
                self._interreduce()
                self.confluent = True
                logger.debug("Completed %d rules in %d rounds", len(self.rules), round_number + 1)
                return True

        logger.warning("Completion truncated after %d rounds", self.max_rounds)
        return False

    def _interreduce(self) -> None:
        changed = True
        while changed:
            changed = False
            for rule in list(self.rules):
                others = [r for r in self.rules if r is not rule]
                lhs = self.normalize(rule.lhs, others)
                if lhs != rule.lhs:
                    self.rules.remove(rule)
                    replacement = orient(self.normalize(lhs), self.normalize(rule.rhs))
                    if replacement is not None and replacement not in self.rules:
                        self.rules.append(replacement)
                    changed = True
                    break
                rhs = self.normalize(rule.rhs, others)
                if rhs != rule.rhs:
                    self.rules[self.rules.index(rule)] = Rule(rule.lhs, rhs)
                    changed = True
                    break

    def equivalent(self, u: Path, v: Path) -> bool:
        self.complete()
        return self.normalize(u) == self.normalize(v)
