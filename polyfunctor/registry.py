"""
Diagram Registry Module

A presented category: named objects, generator morphisms, and equations
between parallel paths. Morphisms are paths of generators, so composition
is associative and unital by construction; equality modulo the equations
is decided by path rewriting.

The registry is append-only. Pullbacks exist exactly where they have been
declared; mediating morphisms into a declared pullback are added as new
generators together with their defining equations.
"""

import logging
from typing import Dict, List, Set, Tuple, Union

from .categorical import (
    Category, Cospan, HasPullbacks, Morphism, Object, PullbackSquare, Span,
)
from .constants import (
    COMPOSE_SYMBOL, IDENTITY_PREFIX, MAX_COMPLETION_ROUNDS, MAX_REWRITE_STEPS,
)
from .errors import CommutativityError, DomainMismatch, NotPullbackStable
from .rewriting import Path, RewriteSystem

logger = logging.getLogger(__name__)

ObjectRef = Union[Object, str]


class DiagramRegistry(Category, HasPullbacks):
    """
    Registry of a diagram's objects and morphisms.

    Attributes:
        name: Name of the diagram
        equations: Declared equations, in declaration order
    """

    def __init__(self, name: str = "diagram",
                 max_rewrite_steps: int = MAX_REWRITE_STEPS,
                 max_completion_rounds: int = MAX_COMPLETION_ROUNDS):
        self.name = name
        self._objects: Dict[str, Object] = {}
        self._generators: Dict[str, Morphism] = {}
        self.equations: List[Tuple[Morphism, Morphism]] = []
        self._rewriting = RewriteSystem(max_steps=max_rewrite_steps,
                                        max_rounds=max_completion_rounds)
        self._pullbacks: Dict[Cospan, PullbackSquare] = {}
        self._lifts: Dict[Tuple[PullbackSquare, Span], Morphism] = {}
        self._exponentiable: Set[Morphism] = set()

    def __repr__(self):
        return (f"DiagramRegistry({self.name!r}, objects={len(self._objects)}, "
                f"generators={len(self._generators)})")

    @property
    def objects(self) -> List[Object]:
        return list(self._objects.values())

    @property
    def generators(self) -> List[Morphism]:
        return list(self._generators.values())

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_object(self, name: str) -> Object:
        """Add an object; re-registering a name returns the same handle."""
        if name in self._objects:
            return self._objects[name]
        obj = Object(name)
        self._objects[name] = obj
        return obj

    def register_morphism(self, name: str, source: ObjectRef, target: ObjectRef) -> Morphism:
        """
        Add a generator morphism between two registered objects.

        Raises:
            DomainMismatch: if an endpoint is unknown or the name is taken
        """
        if COMPOSE_SYMBOL.strip() in name or name.startswith(IDENTITY_PREFIX):
            raise DomainMismatch(f"Reserved symbol in morphism name {name!r}")
        return self._add_generator(name, self._resolve(source), self._resolve(target))

    def _add_generator(self, name: str, source: Object, target: Object) -> Morphism:
        if name in self._generators:
            raise DomainMismatch(f"Morphism {name!r} is already registered in {self.name}")
        morphism = Morphism(source, target, name, data=(name,))
        self._generators[name] = morphism
        return morphism

    def _resolve(self, ref: ObjectRef) -> Object:
        name = ref.name if isinstance(ref, Object) else ref
        obj = self._objects.get(name)
        if obj is None or (isinstance(ref, Object) and obj != ref):
            raise DomainMismatch(f"Object {name!r} is not registered in {self.name}")
        return obj

    def morphism(self, name: str) -> Morphism:
        if name not in self._generators:
            raise DomainMismatch(f"Morphism {name!r} is not registered in {self.name}")
        return self._generators[name]

    def path(self, f: Morphism) -> Path:
        """Generator path of a morphism owned by this registry."""
        self._check_owned(f)
        return f.data

    def _check_owned(self, f: Morphism) -> None:
        if not (self.has_object(f.source) and self.has_object(f.target)):
            raise DomainMismatch(f"{f.name} has endpoints outside {self.name}")
        if not isinstance(f.data, tuple) or any(g not in self._generators for g in f.data):
            raise DomainMismatch(f"{f.name} is not a path of generators of {self.name}")

    # ------------------------------------------------------------------
    # Category structure
    # ------------------------------------------------------------------

    def has_object(self, obj: Object) -> bool:
        return self._objects.get(obj.name) == obj

    def identity(self, obj: ObjectRef) -> Morphism:
        obj = self._resolve(obj)
        return Morphism(obj, obj, f"{IDENTITY_PREFIX}{obj.name}", data=())

    def compose(self, f: Morphism, g: Morphism) -> Morphism:
        """
        Compose ``f`` then ``g``.

        Raises:
            NotComposable: if ``f.target`` is not ``g.source``
        """
        self._check_owned(f)
        self._check_owned(g)
        self._check_composable(f, g)
        path = f.data + g.data
        if not path:
            return self.identity(f.source)
        return Morphism(f.source, g.target, COMPOSE_SYMBOL.join(path), data=path)

    def relate(self, lhs: Morphism, rhs: Morphism) -> None:
        """Declare ``lhs = rhs``; both must be parallel."""
        self._check_owned(lhs)
        self._check_owned(rhs)
        if not lhs.is_parallel(rhs):
            raise DomainMismatch(f"Cannot equate non-parallel {lhs.name} and {rhs.name}")
        self.equations.append((lhs, rhs))
        self._rewriting.add_equation(lhs.data, rhs.data)
        logger.debug("%s: %s = %s", self.name, lhs.name, rhs.name)

    def equal(self, f: Morphism, g: Morphism) -> bool:
        self._check_owned(f)
        self._check_owned(g)
        if not f.is_parallel(g):
            return False
        return self._rewriting.equivalent(f.data, g.data)

    def normal_form(self, f: Morphism) -> Morphism:
        """The representative of ``f`` in normal form."""
        self._check_owned(f)
        self._rewriting.complete()
        path = self._rewriting.normalize(f.data)
        if not path:
            return self.identity(f.source)
        return Morphism(f.source, f.target, COMPOSE_SYMBOL.join(path), data=path)

    # ------------------------------------------------------------------
    # Declared limits and exponentiability
    # ------------------------------------------------------------------

    def declare_pullback(self, square: PullbackSquare) -> PullbackSquare:
        """
        Record a commuting square as the pullback of its cospan.

        Raises:
            CommutativityError: if the square does not commute
            DomainMismatch: if the cospan already has a different pullback
        """
        for m in (square.first, square.second, square.cospan.left, square.cospan.right):
            self._check_owned(m)
        if not self.is_commuting(square):
            raise CommutativityError(f"Square with apex {square.apex} does not commute")
        existing = self._pullbacks.get(square.cospan)
        if existing is not None and existing != square:
            raise DomainMismatch(f"Cospan into {square.cospan.base} already has a pullback")
        self._pullbacks[square.cospan] = square
        return square

    def pullback(self, cospan: Cospan) -> PullbackSquare:
        square = self._pullbacks.get(cospan)
        if square is None:
            raise NotPullbackStable(
                f"No pullback of {cospan.left.name} and {cospan.right.name} "
                f"is declared in {self.name}"
            )
        return square

    def is_pullback(self, square: PullbackSquare) -> bool:
        return self._pullbacks.get(square.cospan) == square

    def lift(self, square: PullbackSquare, cone: Span) -> Morphism:
        """
        Mediating morphism from a commuting cone into a declared pullback.

        The first lift of a cone adds a generator with its two defining
        equations and identifies it with any generator that already factors
        the cone. Morphisms that come to factor it later are identified with
        ``factor``.

        Raises:
            NotPullbackStable: if ``square`` is not a declared pullback
            CommutativityError: if the cone does not commute over the cospan
        """
        if not self.is_pullback(square):
            raise NotPullbackStable(f"Square with apex {square.apex} is not a declared pullback")
        if (cone.left.target != square.cospan.left.source
                or cone.right.target != square.cospan.right.source):
            raise DomainMismatch(f"Cone over {cone.apex} does not lie over the cospan")
        if not self.commutes([cone.left, square.cospan.left], [cone.right, square.cospan.right]):
            raise CommutativityError(f"Cone over {cone.apex} does not commute")
        if self.equal(cone.left, square.first) and self.equal(cone.right, square.second):
            return self.identity(square.apex)

        key = (square, cone)
        if key not in self._lifts:
            mediating = self._add_generator(
                f"⟨{cone.left.name}, {cone.right.name}⟩_{square.apex.name}", cone.apex, square.apex
            )
            self.relate(self.compose(mediating, square.first), cone.left)
            self.relate(self.compose(mediating, square.second), cone.right)
            for h in self.generators:
                if (h != mediating and h.is_parallel(mediating)
                        and self.equal(self.compose(h, square.first), cone.left)
                        and self.equal(self.compose(h, square.second), cone.right)):
                    self.relate(h, mediating)
            self._lifts[key] = mediating
        return self._lifts[key]

    def factor(self, square: PullbackSquare, u: Morphism) -> Morphism:
        """
        Impose uniqueness of factorisation for ``u`` into a declared pullback.

        Relates ``u`` to the lift of its own legs ``(u ≫ first, u ≫ second)``
        and returns that lift.

        Raises:
            NotPullbackStable: if ``square`` is not a declared pullback
            DomainMismatch: if ``u`` does not land in the apex
        """
        self._check_owned(u)
        if u.target != square.apex:
            raise DomainMismatch(f"{u.name} does not land in {square.apex}")
        legs = Span(self.compose(u, square.first), self.compose(u, square.second))
        lifted = self.lift(square, legs)
        if not self.equal(u, lifted):
            self.relate(u, lifted)
        return lifted

    def declare_exponentiable(self, f: Morphism) -> None:
        self._check_owned(f)
        self._exponentiable.add(f)

    def is_exponentiable(self, f: Morphism) -> bool:
        return f in self._exponentiable
