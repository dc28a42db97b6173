"""
Slice Functors Module

Functors between slice categories ``C/X → C/Y`` acting on bundles and on
maps of bundles:

- ``BaseChange`` f*: pulls bundles back along ``f``
- ``DependentSum`` Σ_f: postcomposes projections with ``f``
- ``Pushforward`` Π_f: right adjoint of f*, along exponentiable ``f``

They compose with ``then`` (diagrammatic order). Results are computed by
the ambient category, which memoises derived objects, so applying the
same functor twice yields identical handles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from .categorical import (
    Bundle, Category, Cospan, HasPullbacks, HasPushforwards, Morphism, Object, Span,
)
from .errors import CommutativityError, DomainMismatch, NotExponentiable, NotPullbackStable


class SliceFunctor(ABC):
    """A functor ``C/source_base → C/target_base``."""

    category: Category

    @property
    @abstractmethod
    def source_base(self) -> Object:
        pass

    @property
    @abstractmethod
    def target_base(self) -> Object:
        pass

    @abstractmethod
    def on_object(self, bundle: Bundle) -> Bundle:
        pass

    @abstractmethod
    def on_morphism(self, source: Bundle, target: Bundle, h: Morphism) -> Morphism:
        """Image of a map of bundles ``h: source → target``."""
        pass

    def then(self, other: "SliceFunctor") -> "SliceFunctor":
        return ComposedSliceFunctor(self, other)

    def _check_bundle(self, bundle: Bundle) -> None:
        if bundle.base != self.source_base:
            raise DomainMismatch(f"{self} expects a bundle over {self.source_base}, got {bundle.base}")

    def _check_map(self, source: Bundle, target: Bundle, h: Morphism) -> None:
        self._check_bundle(source)
        self._check_bundle(target)
        if h.source != source.total or h.target != target.total:
            raise DomainMismatch(f"{h.name} must map {source.total} to {target.total}")
        if not self.category.commutes([h, target.projection], [source.projection]):
            raise CommutativityError(f"{h.name} does not lie over {self.source_base}")


def _require_pullbacks(category: Category) -> HasPullbacks:
    if not isinstance(category, HasPullbacks):
        raise NotPullbackStable(f"{category.name} has no pullbacks")
    return category


@dataclass(frozen=True)
class IdentitySliceFunctor(SliceFunctor):
    category: Category
    base: Object

    @property
    def source_base(self) -> Object:
        return self.base

    @property
    def target_base(self) -> Object:
        return self.base

    def on_object(self, bundle: Bundle) -> Bundle:
        self._check_bundle(bundle)
        return bundle

    def on_morphism(self, source: Bundle, target: Bundle, h: Morphism) -> Morphism:
        self._check_map(source, target, h)
        return h

    def __str__(self):
        return f"Id[{self.base}]"


@dataclass(frozen=True)
class ComposedSliceFunctor(SliceFunctor):
    """``first`` then ``second``."""
    first: SliceFunctor
    second: SliceFunctor

    def __post_init__(self):
        if self.first.target_base != self.second.source_base:
            raise DomainMismatch(f"Cannot compose {self.first} with {self.second}")
        if self.first.category is not self.second.category:
            raise DomainMismatch(f"{self.first} and {self.second} live in different categories")

    @property
    def category(self) -> Category:
        return self.first.category

    @property
    def source_base(self) -> Object:
        return self.first.source_base

    @property
    def target_base(self) -> Object:
        return self.second.target_base

    def on_object(self, bundle: Bundle) -> Bundle:
        return self.second.on_object(self.first.on_object(bundle))

    def on_morphism(self, source: Bundle, target: Bundle, h: Morphism) -> Morphism:
        return self.second.on_morphism(
            self.first.on_object(source),
            self.first.on_object(target),
            self.first.on_morphism(source, target, h),
        )

    def __str__(self):
        return f"{self.first} ⋙ {self.second}"


@dataclass(frozen=True)
class BaseChange(SliceFunctor):
    """Pullback along ``morphism: X → Y`` as a functor ``C/Y → C/X``."""
    category: Category
    morphism: Morphism

    def __post_init__(self):
        _require_pullbacks(self.category)

    @property
    def source_base(self) -> Object:
        return self.morphism.target

    @property
    def target_base(self) -> Object:
        return self.morphism.source

    def square(self, bundle: Bundle):
        self._check_bundle(bundle)
        return self.category.pullback(Cospan(bundle.projection, self.morphism))

    def on_object(self, bundle: Bundle) -> Bundle:
        return Bundle(self.square(bundle).second)

    def on_morphism(self, source: Bundle, target: Bundle, h: Morphism) -> Morphism:
        self._check_map(source, target, h)
        src, tgt = self.square(source), self.square(target)
        cone = Span(self.category.compose(src.first, h), src.second)
        return self.category.lift(tgt, cone)

    def __str__(self):
        return f"{self.morphism.name}*"


@dataclass(frozen=True)
class DependentSum(SliceFunctor):
    """Postcomposition with ``morphism: X → Y`` as a functor ``C/X → C/Y``."""
    category: Category
    morphism: Morphism

    @property
    def source_base(self) -> Object:
        return self.morphism.source

    @property
    def target_base(self) -> Object:
        return self.morphism.target

    def on_object(self, bundle: Bundle) -> Bundle:
        self._check_bundle(bundle)
        return Bundle(self.category.compose(bundle.projection, self.morphism))

    def on_morphism(self, source: Bundle, target: Bundle, h: Morphism) -> Morphism:
        self._check_map(source, target, h)
        return h

    def __str__(self):
        return f"Σ_{self.morphism.name}"


@dataclass(frozen=True)
class Pushforward(SliceFunctor):
    """
    Dependent product along ``morphism: X → Y``, a functor ``C/X → C/Y``.

    Constructed by ``PullbackEngine.pushforward`` once an exponentiability
    witness is available; ``witness`` records it.
    """
    category: Category
    morphism: Morphism
    witness: Any = field(default=None, compare=False)

    def __post_init__(self):
        if not isinstance(self.category, HasPushforwards):
            raise NotExponentiable(f"{self.category.name} has no pushforwards")
        _require_pullbacks(self.category)

    @property
    def source_base(self) -> Object:
        return self.morphism.source

    @property
    def target_base(self) -> Object:
        return self.morphism.target

    def on_object(self, bundle: Bundle) -> Bundle:
        self._check_bundle(bundle)
        return self.category.pushforward(self.morphism, bundle)

    def counit(self, bundle: Bundle) -> Morphism:
        """``f*Π_f E → E``."""
        self._check_bundle(bundle)
        return self.category.counit(self.morphism, bundle)

    def transpose(self, bundle: Bundle, other: Bundle, h: Morphism) -> Morphism:
        """Transpose of ``h: f*A → E`` to ``A → Π_f E``."""
        self._check_bundle(bundle)
        return self.category.transpose(self.morphism, bundle, other, h)

    def on_morphism(self, source: Bundle, target: Bundle, h: Morphism) -> Morphism:
        self._check_map(source, target, h)
        pushed = self.on_object(source)
        return self.transpose(
            target, pushed, self.category.compose(self.counit(source), h)
        )

    def __str__(self):
        return f"Π_{self.morphism.name}"
