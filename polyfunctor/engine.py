"""
Pullback/Pushforward Engine

Derived constructions over any category that provides the matching
capabilities:

- pullbacks, their uniqueness up to canonical isomorphism, and pasting
- base change f*, dependent sum Σ_f and pushforward Π_f as slice functors
- exponentiability witnesses and the closure rules that derive them
- the Beck-Chevalley comparison of a commuting square

For a commuting square

      P ---q---> Z
      |          |
      p          g
      v          v
      X ---f---> Y

the comparison ``g* Π_f ⇒ Π_q p*`` is the transpose along ``q`` of

    q* g* Π_f E → f* Π_f E → E

paired with ``q* g* Π_f E → P``. It is invertible whenever the square is
a pullback, and in general it is not.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .categorical import (
    Bundle, Category, Cospan, HasPullbacks, HasPushforwards, Morphism, PullbackSquare, Span,
)
from .errors import (
    CommutativityError, DomainMismatch, NotExponentiable, NotPullbackStable,
)
from .natural import TwoSquare
from .slice import BaseChange, DependentSum, Pushforward

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exponentiable:
    """
    Evidence that a pushforward along ``morphism`` exists.

    Attributes:
        morphism: The exponentiable morphism
        reason: Rule that produced the evidence ("identity", "isomorphism",
            "composite", "pullback", "ambient", "declared", "supplied")
        premises: Witnesses the rule was applied to
    """
    morphism: Morphism
    reason: str
    premises: Tuple["Exponentiable", ...] = ()

    def __str__(self):
        return f"{self.morphism.name} exponentiable ({self.reason})"


class PullbackEngine:
    """
    Pullback and pushforward constructions over an ambient category.

    Witnesses recorded on the engine persist for its lifetime; derived
    objects are memoised by the category itself.
    """

    def __init__(self, category: Category):
        self.category = category
        self._witnesses: Dict[Morphism, Exponentiable] = {}

    def __repr__(self):
        return f"PullbackEngine({self.category!r})"

    # ------------------------------------------------------------------
    # Pullbacks
    # ------------------------------------------------------------------

    def _limits(self) -> HasPullbacks:
        if not isinstance(self.category, HasPullbacks):
            raise NotPullbackStable(f"{self.category.name} has no pullbacks")
        return self.category

    def pullback(self, cospan: Cospan) -> PullbackSquare:
        """
        Universal square over ``cospan``.

        Raises:
            NotPullbackStable: if the category lacks this limit
        """
        square = self._limits().pullback(cospan)
        logger.debug("Pullback of %s and %s: %s", cospan.left.name, cospan.right.name, square.apex)
        return square

    def lift(self, square: PullbackSquare, cone: Span) -> Morphism:
        return self._limits().lift(square, cone)

    def is_pullback(self, square: PullbackSquare) -> bool:
        return isinstance(self.category, HasPullbacks) and self.category.is_pullback(square)

    def pullback_comparison(self, first: PullbackSquare,
                            second: PullbackSquare) -> Tuple[Morphism, Morphism]:
        """
        Canonical isomorphism between two pullbacks of the same cospan.

        Returns:
            (forward, backward) with forward ≫ backward = id and
            backward ≫ forward = id

        Raises:
            DomainMismatch: if the squares sit over different cospans
            NotPullbackStable: if either square is not universal
        """
        if first.cospan != second.cospan:
            raise DomainMismatch("Pullback squares over different cospans are not comparable")
        forward = self.lift(second, first.cone)
        backward = self.lift(first, second.cone)
        category = self.category
        if not (category.is_identity(category.compose(forward, backward))
                and category.is_identity(category.compose(backward, forward))):
            raise NotPullbackStable(
                f"Comparison between {first.apex} and {second.apex} is not invertible"
            )
        return forward, backward

    def paste(self, inner: PullbackSquare, outer: PullbackSquare) -> PullbackSquare:
        """
        Pasting lemma.

        ``inner`` is a pullback of ``f: X → Z`` and ``g: Y → Z`` with first
        projection ``p: P → X``; ``outer`` is a pullback of ``h: V → X`` and
        ``p``. Then ``outer.apex`` with ``(outer.first, outer.second ≫
        inner.second)`` is a pullback of ``h ≫ f`` and ``g``.
        """
        if outer.cospan.right != inner.first:
            raise DomainMismatch("Outer square must be glued along the inner first projection")
        category = self.category
        return PullbackSquare(
            cospan=Cospan(category.compose(outer.cospan.left, inner.cospan.left), inner.cospan.right),
            apex=outer.apex,
            first=outer.first,
            second=category.compose(outer.second, inner.second),
        )

    # ------------------------------------------------------------------
    # Exponentiability
    # ------------------------------------------------------------------

    def record(self, witness: Exponentiable) -> Exponentiable:
        self._witnesses.setdefault(witness.morphism, witness)
        return self._witnesses[witness.morphism]

    def exponentiable(self, f: Morphism) -> Exponentiable:
        """
        Derive a witness that ``f`` is exponentiable.

        Raises:
            NotExponentiable: if no rule applies
        """
        if f in self._witnesses:
            return self._witnesses[f]
        category = self.category
        if category.is_identity(f):
            return self.record(Exponentiable(f, "identity"))
        if category.is_exponentiable(f):
            reason = "ambient" if isinstance(category, HasPushforwards) else "declared"
            return self.record(Exponentiable(f, reason))
        if category.is_isomorphism(f):
            return self.record(Exponentiable(f, "isomorphism"))
        raise NotExponentiable(f"No witness that {f.name} is exponentiable")

    def supply(self, f: Morphism) -> Exponentiable:
        """Record a caller-provided exponentiability fact for ``f``."""
        return self.record(Exponentiable(f, "supplied"))

    def composite_witness(self, first: Exponentiable, second: Exponentiable) -> Exponentiable:
        """Exponentiable maps are closed under composition."""
        composite = self.category.compose(first.morphism, second.morphism)
        return self.record(Exponentiable(composite, "composite", (first, second)))

    def pullback_witness(self, square: PullbackSquare, witness: Exponentiable) -> Exponentiable:
        """
        Exponentiable maps are stable under pullback.

        Raises:
            NotPullbackStable: if ``square`` is not a pullback
            DomainMismatch: if ``witness`` is not for a leg of the cospan
        """
        if not self.is_pullback(square):
            raise NotPullbackStable(f"Square with apex {square.apex} is not a pullback")
        if witness.morphism == square.cospan.right:
            pulled = square.first
        elif witness.morphism == square.cospan.left:
            pulled = square.second
        else:
            raise DomainMismatch(f"{witness.morphism.name} is not a leg of the cospan")
        return self.record(Exponentiable(pulled, "pullback", (witness,)))

    # ------------------------------------------------------------------
    # Slice functors
    # ------------------------------------------------------------------

    def base_change(self, f: Morphism) -> BaseChange:
        return BaseChange(self._limits(), f)

    def dependent_sum(self, f: Morphism) -> DependentSum:
        return DependentSum(self.category, f)

    def pushforward(self, f: Morphism, witness: Optional[Exponentiable] = None) -> Pushforward:
        """
        Right adjoint of base change along ``f``.

        Raises:
            NotExponentiable: if no witness is supplied or derivable, or the
                category has no pushforward functor
        """
        if witness is None:
            witness = self.exponentiable(f)
        elif witness.morphism != f:
            raise DomainMismatch(f"Witness is for {witness.morphism.name}, not {f.name}")
        if not isinstance(self.category, HasPushforwards):
            raise NotExponentiable(
                f"{self.category.name} has no pushforward functor along {f.name}"
            )
        return Pushforward(self.category, f, witness)

    # ------------------------------------------------------------------
    # Beck-Chevalley
    # ------------------------------------------------------------------

    def beck_chevalley(self, square: PullbackSquare,
                       witness: Optional[Exponentiable] = None) -> TwoSquare:
        """
        Comparison ``g* Π_f ⇒ Π_q p*`` for a commuting square.

        ``square`` has cospan ``(f, g)`` and projections ``p = first``,
        ``q = second``.

        Raises:
            CommutativityError: if the square does not commute
            NotExponentiable: if ``f`` or ``q`` has no pushforward
        """
        category = self.category
        if not category.is_commuting(square):
            raise CommutativityError(f"Square with apex {square.apex} does not commute")
        f, g = square.cospan.left, square.cospan.right
        p, q = square.first, square.second

        top = self.pushforward(f, witness)
        try:
            q_witness = self.exponentiable(q)
        except NotExponentiable:
            q_witness = self.pullback_witness(square, top.witness)
        bottom = self.pushforward(q, q_witness)
        left = self.base_change(p)
        right = self.base_change(g)

        def component(bundle: Bundle) -> Morphism:
            pushed = top.on_object(bundle)
            moved = right.on_object(pushed)
            restricted = left.on_object(bundle)

            over_p = self.pullback(Cospan(moved.projection, q))
            over_g = right.square(pushed)
            over_f = self.pullback(Cospan(pushed.projection, f))
            to_f = self.lift(over_f, Span(
                category.compose(over_p.first, over_g.first),
                category.compose(over_p.second, p),
            ))
            evaluated = category.compose(to_f, top.counit(bundle))
            h = self.lift(left.square(bundle), Span(evaluated, over_p.second))
            return bottom.transpose(restricted, moved, h)

        logger.debug("Beck-Chevalley comparison for square with apex %s", square.apex)
        return TwoSquare(
            f"BC[{square.apex}]",
            top=top, left=left, right=right, bottom=bottom,
            component=component,
        )
