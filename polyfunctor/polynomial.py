"""
Polynomial Functors Module

A polynomial

    I <--s-- E --p--> B --t--> J

presents the functor ``Σ_t Π_p s*: C/I → C/J``. Two polynomials compose
when the output of the first is the input of the second, and the composite
is again a polynomial, built from three pullbacks and one pushforward
(see ``CompositionLawChecker.compose``).

Composition is associative and unital only up to isomorphism. The
isomorphisms are given explicitly on element labels, so this part of the
toolkit needs an ambient category with labelled elements (``HasElements``),
such as ``FinSet``. ``CompositionLawChecker`` checks that the isomorphisms
are well-formed and satisfy the pentagon and triangle coherences.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, Optional, Tuple

from .categorical import Bundle, Cospan, HasElements, HasTerminal, Morphism, Object
from .engine import Exponentiable, PullbackEngine
from .errors import (
    CommutativityError, DomainMismatch, NotComposable, NotExponentiable, NotPullbackStable,
)
from .finset import Section
from .natural import BundleDiagram, NaturalTransformation, TwoSquare
from .slice import IdentitySliceFunctor, SliceFunctor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolynomialFunctorSpec:
    """
    A polynomial ``I ←s— E —p→ B —t→ J`` with a witness for ``p``.

    Attributes:
        name: Display name
        source_map: s: E → I
        arity: p: E → B
        output_map: t: B → J
        witness: Evidence that ``arity`` is exponentiable
    """
    name: str
    source_map: Morphism
    arity: Morphism
    output_map: Morphism
    witness: Exponentiable = field(compare=False, repr=False)

    def __post_init__(self):
        if self.source_map.source != self.arity.source:
            raise DomainMismatch(
                f"{self.name}: {self.source_map.name} and {self.arity.name} must share a source"
            )
        if self.arity.target != self.output_map.source:
            raise DomainMismatch(
                f"{self.name}: {self.arity.name} does not meet {self.output_map.name}"
            )
        if self.witness.morphism != self.arity:
            raise NotExponentiable(
                f"{self.name}: witness is for {self.witness.morphism.name}, not {self.arity.name}"
            )

    @property
    def input(self) -> Object:
        return self.source_map.target

    @property
    def exponent(self) -> Object:
        return self.arity.source

    @property
    def base(self) -> Object:
        return self.arity.target

    @property
    def output(self) -> Object:
        return self.output_map.target

    def functor(self, engine: PullbackEngine) -> SliceFunctor:
        """The extension ``Σ_t Π_p s*`` as a slice functor."""
        return (engine.base_change(self.source_map)
                .then(engine.pushforward(self.arity, self.witness))
                .then(engine.dependent_sum(self.output_map)))

    def apply(self, engine: PullbackEngine, bundle: Bundle) -> Bundle:
        return self.functor(engine).on_object(bundle)

    def apply_morphism(self, engine: PullbackEngine, source: Bundle, target: Bundle,
                       h: Morphism) -> Morphism:
        return self.functor(engine).on_morphism(source, target, h)

    def __str__(self):
        return (f"{self.name}: {self.input} ← {self.exponent} → "
                f"{self.base} → {self.output}")


def polynomial(engine: PullbackEngine,
               name: str,
               source_map: Morphism,
               arity: Morphism,
               output_map: Morphism,
               witness: Optional[Exponentiable] = None) -> PolynomialFunctorSpec:
    """
    Assemble a polynomial, deriving the exponentiability witness if none
    is given.

    Raises:
        NotExponentiable: if no witness for ``arity`` can be derived
    """
    if witness is None:
        witness = engine.exponentiable(arity)
    return PolynomialFunctorSpec(name, source_map, arity, output_map, witness)


def identity_polynomial(engine: PullbackEngine, obj: Object) -> PolynomialFunctorSpec:
    """``I ← I → I → I``, presenting the identity functor on ``C/I``."""
    identity = engine.category.identity(obj)
    return PolynomialFunctorSpec(
        f"1_{obj}", identity, identity, identity, engine.exponentiable(identity)
    )


def univariate(engine: PullbackEngine,
               name: str,
               arity: Morphism,
               witness: Optional[Exponentiable] = None) -> PolynomialFunctorSpec:
    """
    Single-variable polynomial ``X ↦ Σ_b X^{E_b}``, with input and output
    the terminal object.

    Raises:
        NotPullbackStable: if the category has no terminal object
    """
    category = engine.category
    if not isinstance(category, HasTerminal):
        raise NotPullbackStable(f"{category.name} has no terminal object")
    return polynomial(
        engine, name,
        category.to_terminal(arity.source),
        arity,
        category.to_terminal(arity.target),
        witness,
    )


@dataclass(frozen=True)
class PolynomialIsomorphism:
    """
    An isomorphism of polynomials with the same input and output.

    ``base_map: B ≅ B'`` and ``exponent_map: E ≅ E'`` must satisfy
    ``t = base_map ≫ t'``, ``exponent_map ≫ p' = p ≫ base_map`` and
    ``s = exponent_map ≫ s'``. Use ``CompositionLawChecker.check`` to
    verify them.
    """
    name: str
    source: PolynomialFunctorSpec
    target: PolynomialFunctorSpec
    base_map: Morphism
    exponent_map: Morphism

    def __str__(self):
        return f"{self.name}: {self.source.name} ≅ {self.target.name}"


class CompositionLawChecker:
    """
    Composition of polynomials and its coherence laws.

    Composites are memoised per pair of polynomials, so re-associating a
    composite reuses the same intermediate polynomials and the canonical
    isomorphisms between them can be composed and compared directly.

    Example:
        >>> category = FinSet()
        >>> engine = PullbackEngine(category)
        >>> laws = CompositionLawChecker(engine)
        >>> alpha = laws.check_associativity(P, Q, R)
    """

    def __init__(self, engine: PullbackEngine):
        self.engine = engine
        self.category = engine.category
        self._composites: Dict[Tuple[PolynomialFunctorSpec, PolynomialFunctorSpec],
                               PolynomialFunctorSpec] = {}

    def __repr__(self):
        return f"CompositionLawChecker({self.category!r}, composites={len(self._composites)})"

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def identity(self, obj: Object) -> PolynomialFunctorSpec:
        return identity_polynomial(self.engine, obj)

    def compose(self, first: PolynomialFunctorSpec,
                second: PolynomialFunctorSpec) -> PolynomialFunctorSpec:
        """
        The composite polynomial, ``first`` then ``second``.

        With ``first = (s, p, t)`` over ``E → B`` and ``second = (u, q, v)``
        over ``F → C``:

        1. ``F ×_J B``, the pullback of ``t`` along ``u``
        2. ``D = Π_q (F ×_J B)`` over ``C``, the new base
        3. ``D ×_C F``, the pullback of ``D`` along ``q``
        4. the counit ``D ×_C F → F ×_J B``, then the projection to ``B``
        5. ``E'' = (D ×_C F) ×_B E``, the pullback of ``p``, the new exponent

        Raises:
            NotComposable: if ``first.output`` is not ``second.input``
            NotExponentiable: if the category lacks pushforwards
        """
        key = (first, second)
        if key in self._composites:
            return self._composites[key]
        category = self.category
        if first.output != second.input:
            raise NotComposable(first.output_map, category.identity(second.input))

        engine = self.engine
        s, p, t = first.source_map, first.arity, first.output_map
        u, q, v = second.source_map, second.arity, second.output_map

        over_t = engine.pullback(Cospan(u, t))
        pushforward = engine.pushforward(q, second.witness)
        branches = Bundle(over_t.first)
        new_base = pushforward.on_object(branches)
        over_q = engine.pullback(Cospan(new_base.projection, q))
        choice = category.compose(pushforward.counit(branches), over_t.second)
        over_p = engine.pullback(Cospan(choice, p))

        witness = engine.composite_witness(
            engine.pullback_witness(over_p, first.witness),
            engine.pullback_witness(over_q, second.witness),
        )
        composite = PolynomialFunctorSpec(
            f"({first.name} ; {second.name})",
            category.compose(over_p.second, s),
            witness.morphism,
            category.compose(new_base.projection, v),
            witness,
        )
        self._composites[key] = composite
        logger.debug("Composed %s", composite)
        return composite

    def compose_all(self, polynomials: Iterable[PolynomialFunctorSpec]) -> PolynomialFunctorSpec:
        """Left-nested composite ``((P ; Q) ; R) ; ...``."""
        polynomials = list(polynomials)
        if not polynomials:
            raise DomainMismatch("Cannot compose an empty sequence of polynomials")
        result = polynomials[0]
        for item in polynomials[1:]:
            result = self.compose(result, item)
        return result

    # ------------------------------------------------------------------
    # Isomorphisms
    # ------------------------------------------------------------------

    def _elements(self) -> HasElements:
        if not isinstance(self.category, HasElements):
            raise DomainMismatch(
                f"Canonical isomorphisms need labelled elements; {self.category.name} has none"
            )
        return self.category

    def _relabel(self, name: str, source: Object, target: Object, mapping) -> Morphism:
        return self._elements().morphism(name, source, target, mapping)

    def _apply(self, f: Morphism, label: Hashable) -> Hashable:
        return self._elements().apply(f, label)

    def isomorphism(self, name: str, source: PolynomialFunctorSpec, target: PolynomialFunctorSpec,
                    base_map, exponent_map) -> PolynomialIsomorphism:
        """
        Build and check an isomorphism from label functions on ``B`` and ``E``.

        Raises:
            DomainMismatch: if an image is not an element of the target
            CommutativityError: if the maps are not compatible with the
                polynomial structure
        """
        return self.check(PolynomialIsomorphism(
            name, source, target,
            self._relabel(f"{name}_B", source.base, target.base, base_map),
            self._relabel(f"{name}_E", source.exponent, target.exponent, exponent_map),
        ))

    def check(self, iso: PolynomialIsomorphism) -> PolynomialIsomorphism:
        """
        Verify that ``iso`` is an isomorphism of polynomials.

        Raises:
            DomainMismatch: if endpoints differ or a map is not invertible
            CommutativityError: if a structure square does not commute
        """
        P, Q = iso.source, iso.target
        alpha, beta = iso.base_map, iso.exponent_map
        if P.input != Q.input or P.output != Q.output:
            raise DomainMismatch(f"{iso.name}: {P.name} and {Q.name} have different endpoints")
        if (alpha.source, alpha.target) != (P.base, Q.base):
            raise DomainMismatch(f"{iso.name}: base map must send {P.base} to {Q.base}")
        if (beta.source, beta.target) != (P.exponent, Q.exponent):
            raise DomainMismatch(f"{iso.name}: exponent map must send {P.exponent} to {Q.exponent}")
        category = self.category
        if not (category.is_isomorphism(alpha) and category.is_isomorphism(beta)):
            raise DomainMismatch(f"{iso.name} is not invertible")
        if not category.commutes([alpha, Q.output_map], [P.output_map]):
            raise CommutativityError(f"{iso.name} does not preserve the output map")
        if not category.commutes([beta, Q.arity], [P.arity, alpha]):
            raise CommutativityError(f"{iso.name} does not preserve the arity map")
        if not category.commutes([beta, Q.source_map], [P.source_map]):
            raise CommutativityError(f"{iso.name} does not preserve the source map")
        return iso

    def then(self, first: PolynomialIsomorphism,
             second: PolynomialIsomorphism) -> PolynomialIsomorphism:
        if first.target != second.source:
            raise DomainMismatch(f"Cannot follow {first.name} with {second.name}")
        category = self.category
        return PolynomialIsomorphism(
            f"{first.name} ≫ {second.name}",
            first.source,
            second.target,
            category.compose(first.base_map, second.base_map),
            category.compose(first.exponent_map, second.exponent_map),
        )

    def inverse(self, iso: PolynomialIsomorphism) -> PolynomialIsomorphism:
        category = self.category
        alpha, beta = category.inverse(iso.base_map), category.inverse(iso.exponent_map)
        if alpha is None or beta is None:
            raise DomainMismatch(f"{iso.name} is not invertible")
        return PolynomialIsomorphism(f"{iso.name}⁻¹", iso.target, iso.source, alpha, beta)

    def equal(self, first: PolynomialIsomorphism, second: PolynomialIsomorphism) -> bool:
        category = self.category
        return (first.source == second.source and first.target == second.target
                and category.equal(first.base_map, second.base_map)
                and category.equal(first.exponent_map, second.exponent_map))

    def reflexivity(self, P: PolynomialFunctorSpec) -> PolynomialIsomorphism:
        category = self.category
        return PolynomialIsomorphism(
            f"1_{P.name}", P, P, category.identity(P.base), category.identity(P.exponent)
        )

    # ------------------------------------------------------------------
    # Whiskering
    # ------------------------------------------------------------------

    def whisker_right(self, iso: PolynomialIsomorphism,
                      other: PolynomialFunctorSpec) -> PolynomialIsomorphism:
        """``iso ; other``: an isomorphism ``P ; Q ≅ P' ; Q``."""
        source = self.compose(iso.source, other)
        target = self.compose(iso.target, other)

        def base(label):
            c, branches = label
            return c, Section(
                (f, (f, self._apply(iso.base_map, b))) for f, (_, b) in branches.items()
            )

        def exponent(label):
            (d, f), e = label
            return (base(d), f), self._apply(iso.exponent_map, e)

        return self.isomorphism(f"({iso.name} ; {other.name})", source, target, base, exponent)

    def whisker_left(self, other: PolynomialFunctorSpec,
                     iso: PolynomialIsomorphism) -> PolynomialIsomorphism:
        """``other ; iso``: an isomorphism ``P ; Q ≅ P ; Q'``."""
        source = self.compose(other, iso.source)
        target = self.compose(other, iso.target)

        def base(label):
            c, branches = label
            moved = []
            for f, (_, b) in branches.items():
                g = self._apply(iso.exponent_map, f)
                moved.append((g, (g, b)))
            return self._apply(iso.base_map, c), Section(moved)

        def exponent(label):
            (d, f), e = label
            return (base(d), self._apply(iso.exponent_map, f)), e

        return self.isomorphism(f"({other.name} ; {iso.name})", source, target, base, exponent)

    def hcomp(self, first: PolynomialIsomorphism,
              second: PolynomialIsomorphism) -> PolynomialIsomorphism:
        """``P ; Q ≅ P' ; Q'`` from ``P ≅ P'`` and ``Q ≅ Q'``."""
        return self.then(
            self.whisker_right(first, second.source),
            self.whisker_left(first.target, second),
        )

    # ------------------------------------------------------------------
    # Associator and unitors
    # ------------------------------------------------------------------

    def associator(self, P: PolynomialFunctorSpec, Q: PolynomialFunctorSpec,
                   R: PolynomialFunctorSpec) -> PolynomialIsomorphism:
        """
        Canonical isomorphism ``(P ; Q) ; R ≅ P ; (Q ; R)``.

        A base element on the left is a choice, for each branch of ``R``, of
        a base element of ``P ; Q``, which is itself a choice of ``P``-base
        elements over the branches of ``Q``. The right-hand side makes the
        same choices grouped the other way round.
        """
        source = self.compose(self.compose(P, Q), R)
        target = self.compose(P, self.compose(Q, R))

        def middle(label):
            delta, choices = label
            return delta, Section((g, (g, d[0])) for g, (_, d) in choices.items())

        def base(label):
            _, choices = label
            d = middle(label)
            return d, Section(
                (((d, g), f), (((d, g), f), b))
                for g, (_, inner) in choices.items()
                for f, (_, b) in inner[1].items()
            )

        def exponent(label):
            (outer, g), ((_, f), e) = label
            return (base(outer), ((middle(outer), g), f)), e

        return self.isomorphism(f"a[{P.name}, {Q.name}, {R.name}]", source, target, base, exponent)

    def left_unitor(self, P: PolynomialFunctorSpec) -> PolynomialIsomorphism:
        """Canonical isomorphism ``1_I ; P ≅ P``."""
        source = self.compose(self.identity(P.input), P)
        return self.isomorphism(
            f"l[{P.name}]", source, P,
            lambda label: label[0],
            lambda label: label[0][1],
        )

    def right_unitor(self, P: PolynomialFunctorSpec) -> PolynomialIsomorphism:
        """Canonical isomorphism ``P ; 1_J ≅ P``."""
        source = self.compose(P, self.identity(P.output))
        return self.isomorphism(
            f"r[{P.name}]", source, P,
            lambda label: label[1][label[0]][1],
            lambda label: label[1],
        )

    # ------------------------------------------------------------------
    # Laws
    # ------------------------------------------------------------------

    def check_associativity(self, P: PolynomialFunctorSpec, Q: PolynomialFunctorSpec,
                            R: PolynomialFunctorSpec) -> PolynomialIsomorphism:
        """
        Verify that ``(P ; Q) ; R`` and ``P ; (Q ; R)`` are isomorphic.

        Returns:
            The checked associator

        Raises:
            NotComposable: if the polynomials do not chain
            CommutativityError: if the associator fails to be a morphism of
                polynomials
        """
        iso = self.associator(P, Q, R)
        logger.info("Associativity holds for %s, %s, %s", P.name, Q.name, R.name)
        return iso

    def check_unit_laws(self, P: PolynomialFunctorSpec) -> Tuple[PolynomialIsomorphism,
                                                                 PolynomialIsomorphism]:
        """Verify ``1 ; P ≅ P ≅ P ; 1``; returns the two unitors."""
        isos = self.left_unitor(P), self.right_unitor(P)
        logger.info("Unit laws hold for %s", P.name)
        return isos

    def check_pentagon(self, P: PolynomialFunctorSpec, Q: PolynomialFunctorSpec,
                       R: PolynomialFunctorSpec, S: PolynomialFunctorSpec) -> bool:
        """Both ways of re-associating ``((P ; Q) ; R) ; S`` agree."""
        PQ, QR, RS = self.compose(P, Q), self.compose(Q, R), self.compose(R, S)
        direct = self.then(self.associator(PQ, R, S), self.associator(P, Q, RS))
        around = self.then(
            self.then(
                self.whisker_right(self.associator(P, Q, R), S),
                self.associator(P, QR, S),
            ),
            self.whisker_left(P, self.associator(Q, R, S)),
        )
        holds = self.equal(direct, around)
        if not holds:
            logger.warning("Pentagon fails for %s, %s, %s, %s", P.name, Q.name, R.name, S.name)
        return holds

    def check_triangle(self, P: PolynomialFunctorSpec, Q: PolynomialFunctorSpec) -> bool:
        """``a[P, 1, Q]`` followed by ``P ; l[Q]`` agrees with ``r[P] ; Q``."""
        middle = self.identity(P.output)
        around = self.then(self.associator(P, middle, Q), self.whisker_left(P, self.left_unitor(Q)))
        direct = self.whisker_right(self.right_unitor(P), Q)
        holds = self.equal(around, direct)
        if not holds:
            logger.warning("Triangle fails for %s, %s", P.name, Q.name)
        return holds

    # ------------------------------------------------------------------
    # Extension functors
    # ------------------------------------------------------------------

    def induced_transformation(self, iso: PolynomialIsomorphism) -> TwoSquare:
        """
        The natural isomorphism of extension functors induced by ``iso``.

        An element ``(b, {e ↦ (x, e)})`` of ``P(X)`` goes to
        ``(α b, {β e ↦ (x, β e)})`` in ``P'(X)``.
        """
        engine, category = self.engine, self.category
        source, target = iso.source, iso.target
        top = source.functor(engine)
        bottom = target.functor(engine)

        def relabel(label):
            b, section = label
            return self._apply(iso.base_map, b), Section(
                (self._apply(iso.exponent_map, e), (x, self._apply(iso.exponent_map, e)))
                for e, (x, _) in section.items()
            )

        def component(bundle: Bundle) -> Morphism:
            return self._relabel(
                f"{iso.name}({bundle.total})",
                top.on_object(bundle).total,
                bottom.on_object(bundle).total,
                relabel,
            )

        return TwoSquare(
            f"{iso.name}*",
            top=top,
            left=IdentitySliceFunctor(category, source.input),
            right=IdentitySliceFunctor(category, source.output),
            bottom=bottom,
            component=component,
        )

    def composite_comparison(self, P: PolynomialFunctorSpec,
                             Q: PolynomialFunctorSpec) -> TwoSquare:
        """
        Comparison ``Q(P(X)) → (P ; Q)(X)`` as a two-square

            C/I --P--> C/J
             |          |
             1          Q
             v          v
            C/I -P;Q-> C/K

        Each component sends ``(c, {f ↦ ((b_f, s_f), f)})`` to
        ``(d, {((d, f), e) ↦ (s_f[e][0], ((d, f), e))})`` with
        ``d = (c, {f ↦ (f, b_f)})``.
        """
        engine, category = self.engine, self.category
        composite = self.compose(P, Q)
        top, right = P.functor(engine), Q.functor(engine)
        bottom = composite.functor(engine)

        def regroup(label):
            c, chosen = label
            d = (c, Section((f, (f, inner[0])) for f, (inner, _) in chosen.items()))
            return d, Section(
                (((d, f), e), (x, ((d, f), e)))
                for f, (inner, _) in chosen.items()
                for e, (x, _) in inner[1].items()
            )

        def component(bundle: Bundle) -> Morphism:
            return self._relabel(
                f"c[{P.name}, {Q.name}]({bundle.total})",
                right.on_object(top.on_object(bundle)).total,
                bottom.on_object(bundle).total,
                regroup,
            )

        return TwoSquare(
            f"c[{P.name}, {Q.name}]",
            top=top,
            left=IdentitySliceFunctor(category, P.input),
            right=right,
            bottom=bottom,
            component=component,
        )

    def check_comparison_coherence(self, P: PolynomialFunctorSpec, Q: PolynomialFunctorSpec,
                                   R: PolynomialFunctorSpec, bundle: Bundle) -> bool:
        """
        The associator agrees with the composite comparisons at ``bundle``.

        Both routes go from ``R(Q(P(X)))`` to ``(P ; (Q ; R))(X)``:

        - ``R(c[P, Q])``, then ``c[P ; Q, R]``, then the associator
        - ``c[Q, R]`` at ``P(X)``, then ``c[P, Q ; R]``
        """
        engine, category = self.engine, self.category
        PQ, QR = self.compose(P, Q), self.compose(Q, R)
        moved = P.functor(engine).on_object(bundle)
        twice = Q.functor(engine).on_object(moved)

        inner = self.composite_comparison(P, Q)
        regrouped = R.functor(engine).on_morphism(
            twice, PQ.functor(engine).on_object(bundle), inner.app(bundle)
        )
        first = category.compose_all([
            regrouped,
            self.composite_comparison(PQ, R).app(bundle),
            self.induced_transformation(self.associator(P, Q, R)).app(bundle),
        ])
        second = category.compose(
            self.composite_comparison(Q, R).app(moved),
            self.composite_comparison(P, QR).app(bundle),
        )
        holds = category.equal(first, second)
        if not holds:
            logger.warning("Associator of %s, %s, %s disagrees with the comparisons",
                           P.name, Q.name, R.name)
        return holds

    def verify(self, cell: TwoSquare, diagram: BundleDiagram) -> NaturalTransformation:
        """
        Restrict ``cell`` to ``diagram`` and check that every component is
        invertible.

        Raises:
            NaturalitySquareViolated: if some naturality square fails
            DomainMismatch: if some component is not invertible
        """
        transformation = cell.restrict(diagram)
        for obj in diagram.shape.objects:
            cell.inverse_at(diagram.bundle(obj))
        logger.info("%s is a natural isomorphism on %s", cell.name, diagram.functor.name)
        return transformation
