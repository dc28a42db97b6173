"""
Categorical Framework Module

Core value types (objects, morphisms, spans, cospans, pullback squares,
bundles) and the capability traits an ambient category may implement.

A concrete category is any class deriving from ``Category`` plus the
capabilities it actually has (``HasTerminal``, ``HasPullbacks``,
``HasPushforwards``, ``HasElements``). Constructions check capabilities with ``isinstance``
rather than relying on a hierarchy of concrete categories.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Hashable, Iterable, Optional, Sequence, Tuple

from .errors import DomainMismatch, NotComposable


@dataclass(frozen=True)
class Object:
    """An opaque object handle; its name is its identity."""
    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True, eq=False)
class Morphism:
    """
    Represents a morphism (arrow) in a category.

    ``data`` is the payload the owning category interprets: a path of
    generator names for a presented category, an index array for a
    concrete one. Two handles are the same morphism when source, target
    and name agree; whether two different morphisms are *equal* in the
    category is decided by ``Category.equal``.
    """
    source: Object
    target: Object
    name: str
    data: Optional[Any] = None

    def __hash__(self):
        return hash((self.source, self.target, self.name))

    def __eq__(self, other):
        if not isinstance(other, Morphism):
            return False
        return (self.source == other.source and
                self.target == other.target and
                self.name == other.name)

    def __repr__(self):
        return f"Morphism({self.name}: {self.source} → {self.target})"

    def is_parallel(self, other: "Morphism") -> bool:
        return self.source == other.source and self.target == other.target


@dataclass(frozen=True)
class Span:
    """Two morphisms out of a common apex: X ← W → Y."""
    left: Morphism
    right: Morphism

    def __post_init__(self):
        if self.left.source != self.right.source:
            raise DomainMismatch(
                f"Span legs {self.left.name} and {self.right.name} "
                f"do not share a source"
            )

    @property
    def apex(self) -> Object:
        return self.left.source


@dataclass(frozen=True)
class Cospan:
    """Two morphisms into a common base: X → Z ← Y."""
    left: Morphism
    right: Morphism

    def __post_init__(self):
        if self.left.target != self.right.target:
            raise DomainMismatch(
                f"Cospan legs {self.left.name} and {self.right.name} "
                f"do not share a target"
            )

    @property
    def base(self) -> Object:
        return self.left.target


@dataclass(frozen=True)
class PullbackSquare:
    """
    A cone over a cospan, claimed to be its limit.

        apex --second--> Y
          |              |
        first          right
          v              v
          X  ---left---> Z

    Commutativity and universality are properties the ambient category
    decides (``Category.is_commuting``, ``HasPullbacks.is_pullback``).
    """
    cospan: Cospan
    apex: Object
    first: Morphism
    second: Morphism

    def __post_init__(self):
        if self.first.source != self.apex or self.second.source != self.apex:
            raise DomainMismatch(f"Projections of {self.apex} must start at the apex")
        if self.first.target != self.cospan.left.source:
            raise DomainMismatch(
                f"First projection {self.first.name} must land in {self.cospan.left.source}"
            )
        if self.second.target != self.cospan.right.source:
            raise DomainMismatch(
                f"Second projection {self.second.name} must land in {self.cospan.right.source}"
            )

    @property
    def cone(self) -> Span:
        return Span(self.first, self.second)


@dataclass(frozen=True)
class Bundle:
    """An object over a base: an object of the slice category over ``base``."""
    projection: Morphism

    @property
    def total(self) -> Object:
        return self.projection.source

    @property
    def base(self) -> Object:
        return self.projection.target


class Category(ABC):
    """Abstract category: identities, composition, and decidable equality."""

    name: str = "category"

    @abstractmethod
    def has_object(self, obj: Object) -> bool:
        pass

    @abstractmethod
    def identity(self, obj: Object) -> Morphism:
        pass

    @abstractmethod
    def compose(self, f: Morphism, g: Morphism) -> Morphism:
        """Diagrammatic composite ``f ≫ g`` (first f, then g)."""
        pass

    @abstractmethod
    def equal(self, f: Morphism, g: Morphism) -> bool:
        pass

    def compose_all(self, morphisms: Sequence[Morphism]) -> Morphism:
        if not morphisms:
            raise DomainMismatch("Cannot compose an empty path without an object")
        return reduce(self.compose, morphisms)

    def commutes(self, left: Iterable[Morphism], right: Iterable[Morphism]) -> bool:
        """Check whether two composable paths have equal composites."""
        return self.equal(self.compose_all(list(left)), self.compose_all(list(right)))

    def is_commuting(self, square: PullbackSquare) -> bool:
        return self.commutes(
            [square.first, square.cospan.left],
            [square.second, square.cospan.right],
        )

    def is_identity(self, f: Morphism) -> bool:
        return f.source == f.target and self.equal(f, self.identity(f.source))

    def inverse(self, f: Morphism) -> Optional[Morphism]:
        """Two-sided inverse of ``f`` if one can be exhibited."""
        if self.is_identity(f):
            return f
        return None

    def is_isomorphism(self, f: Morphism) -> bool:
        return self.inverse(f) is not None

    def is_exponentiable(self, f: Morphism) -> bool:
        """Whether the category itself vouches for a pushforward along ``f``."""
        return False

    def _check_composable(self, f: Morphism, g: Morphism) -> None:
        if f.target != g.source:
            raise NotComposable(f, g)


class HasTerminal(ABC):
    """Capability: a terminal object and the unique maps into it."""

    @abstractmethod
    def terminal(self) -> Object:
        pass

    @abstractmethod
    def to_terminal(self, obj: Object) -> Morphism:
        pass


class HasPullbacks(ABC):
    """Capability: limits of cospans with their mediating morphisms."""

    @abstractmethod
    def pullback(self, cospan: Cospan) -> PullbackSquare:
        pass

    @abstractmethod
    def lift(self, square: PullbackSquare, cone: Span) -> Morphism:
        """The unique morphism from the apex of ``cone`` to the apex of ``square``."""
        pass

    @abstractmethod
    def is_pullback(self, square: PullbackSquare) -> bool:
        pass


class HasPushforwards(ABC):
    """
    Capability: pushforward (dependent product) along exponentiable maps.

    For ``f: X → Y`` and a bundle ``E`` over ``X``, ``pushforward`` is the
    bundle ``Π_f E`` over ``Y``; ``counit`` is ``f*Π_f E → E`` whose domain
    is the apex of ``pullback(Cospan(Π_f E.projection, f))``; ``transpose``
    turns a map ``f*A → E`` over ``X`` into ``A → Π_f E`` over ``Y``.
    """

    @abstractmethod
    def pushforward(self, f: Morphism, bundle: Bundle) -> Bundle:
        pass

    @abstractmethod
    def counit(self, f: Morphism, bundle: Bundle) -> Morphism:
        pass

    @abstractmethod
    def transpose(self, f: Morphism, bundle: Bundle, other: Bundle, h: Morphism) -> Morphism:
        pass


class HasElements(ABC):
    """
    Capability: objects have labelled elements and morphisms can be built
    from functions on labels.
    """

    @abstractmethod
    def elements(self, obj: Object) -> Tuple[Hashable, ...]:
        pass

    @abstractmethod
    def apply(self, f: Morphism, label: Hashable) -> Hashable:
        pass

    @abstractmethod
    def morphism(self, name: str, source: Object, target: Object,
                 mapping: Callable[[Hashable], Hashable]) -> Morphism:
        pass
