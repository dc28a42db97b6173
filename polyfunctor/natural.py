"""
Natural Transformations Module

Functors out of a registered diagram, natural transformations between
them, and two-dimensional cells ("two-squares") between slice functors.

A natural transformation η: F ⇒ G assigns to each object X of the source
diagram a morphism η_X: F(X) → G(X) such that every naturality square

    F(X) --F(m)--> F(Y)
     |              |
    η_X            η_Y
     v              v
    G(X) --G(m)--> G(Y)

commutes. It suffices to check generators of the diagram.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .categorical import Bundle, Category, Morphism, Object
from .errors import CommutativityError, DomainMismatch, NaturalitySquareViolated
from .registry import DiagramRegistry
from .slice import IdentitySliceFunctor, SliceFunctor

logger = logging.getLogger(__name__)


@dataclass
class DiagramFunctor:
    """
    A functor from a registered diagram into a category.

    Objects and generators are mapped explicitly; composite paths are
    mapped by composing the images of their generators.
    """
    name: str
    source_category: DiagramRegistry
    target_category: Category
    object_map: Dict[Object, Object] = field(default_factory=dict)
    morphism_map: Dict[str, Morphism] = field(default_factory=dict)

    def map_object(self, obj: Object) -> Object:
        """Map an object from source to target category."""
        if obj not in self.object_map:
            raise DomainMismatch(f"{self.name} does not map object {obj}")
        return self.object_map[obj]

    def map_morphism(self, morphism: Morphism) -> Morphism:
        """Map a morphism (a path of generators) from source to target category."""
        path = self.source_category.path(morphism)
        if not path:
            return self.target_category.identity(self.map_object(morphism.source))
        images = []
        for name in path:
            if name not in self.morphism_map:
                raise DomainMismatch(f"{self.name} does not map morphism {name}")
            images.append(self.morphism_map[name])
        return self.target_category.compose_all(images)

    def add_object_mapping(self, source_obj: Object, target_obj: Object) -> None:
        """Add an object mapping to the functor."""
        if not self.source_category.has_object(source_obj):
            raise DomainMismatch(f"Object {source_obj} not in source category")
        if not self.target_category.has_object(target_obj):
            raise DomainMismatch(f"Object {target_obj} not in target category")
        self.object_map[source_obj] = target_obj

    def add_morphism_mapping(self, source_morph: Morphism, target_morph: Morphism) -> None:
        """Add a generator mapping; endpoints must match the object mapping."""
        generator = self.source_category.morphism(source_morph.name)
        if (target_morph.source != self.map_object(generator.source)
                or target_morph.target != self.map_object(generator.target)):
            raise DomainMismatch(
                f"{target_morph.name} does not connect the images of "
                f"{generator.source} and {generator.target}"
            )
        self.morphism_map[generator.name] = target_morph

    def check_functorial(self) -> None:
        """
        Verify that every generator is mapped and every equation preserved.

        Raises:
            DomainMismatch: if an object or generator is unmapped
            CommutativityError: if an equation fails in the target
        """
        for obj in self.source_category.objects:
            self.map_object(obj)
        for generator in self.source_category.generators:
            if generator.name not in self.morphism_map:
                raise DomainMismatch(f"{self.name} does not map generator {generator.name}")
        for lhs, rhs in self.source_category.equations:
            if not self.target_category.equal(self.map_morphism(lhs), self.map_morphism(rhs)):
                raise CommutativityError(
                    f"{self.name} does not preserve {lhs.name} = {rhs.name}"
                )

    def compatible_with(self, other: "DiagramFunctor") -> bool:
        return (self.source_category is other.source_category
                and self.target_category is other.target_category)


@dataclass
class BundleDiagram:
    """
    A diagram in the slice category over ``base``.

    ``functor`` sends objects to bundle totals and generators to maps of
    bundles; ``projections`` holds the bundle projections.
    """
    functor: DiagramFunctor
    base: Object
    projections: Dict[Object, Morphism] = field(default_factory=dict)

    @classmethod
    def from_bundles(cls,
                     name: str,
                     shape: DiagramRegistry,
                     category: Category,
                     base: Object,
                     bundles: Dict[Object, Bundle],
                     maps: Optional[Dict[str, Morphism]] = None) -> "BundleDiagram":
        """
        Build a diagram of bundles over ``base`` indexed by ``shape``.

        Raises:
            DomainMismatch: if a bundle lies over another base
            CommutativityError: if a map does not commute with projections
        """
        functor = DiagramFunctor(name, shape, category)
        projections = {}
        for obj, bundle in bundles.items():
            if bundle.base != base:
                raise DomainMismatch(f"Bundle at {obj} lies over {bundle.base}, not {base}")
            functor.add_object_mapping(obj, bundle.total)
            projections[obj] = bundle.projection
        diagram = cls(functor, base, projections)
        for generator_name, h in (maps or {}).items():
            generator = shape.morphism(generator_name)
            functor.add_morphism_mapping(generator, h)
            if not category.commutes([h, projections[generator.target]],
                                     [projections[generator.source]]):
                raise CommutativityError(f"{h.name} does not commute with the projections to {base}")
        functor.check_functorial()
        return diagram

    @property
    def shape(self) -> DiagramRegistry:
        return self.functor.source_category

    def bundle(self, obj: Object) -> Bundle:
        if obj not in self.projections:
            raise DomainMismatch(f"No bundle at {obj}")
        return Bundle(self.projections[obj])

    def map(self, functor: SliceFunctor, name: Optional[str] = None) -> "BundleDiagram":
        """Apply a slice functor objectwise and generatorwise."""
        if functor.source_base != self.base:
            raise DomainMismatch(f"{functor} does not act on bundles over {self.base}")
        image = DiagramFunctor(name or f"{functor} ∘ {self.functor.name}",
                               self.shape, self.functor.target_category)
        projections = {}
        for obj in self.shape.objects:
            bundle = functor.on_object(self.bundle(obj))
            image.object_map[obj] = bundle.total
            projections[obj] = bundle.projection
        for generator in self.shape.generators:
            image.morphism_map[generator.name] = functor.on_morphism(
                self.bundle(generator.source), self.bundle(generator.target),
                self.functor.map_morphism(generator),
            )
        return BundleDiagram(image, functor.target_base, projections)


@dataclass
class NaturalTransformation:
    """
    Represents a natural transformation between two diagram functors.

    Build instances with ``build``, which verifies naturality.
    """
    name: str
    source_functor: DiagramFunctor
    target_functor: DiagramFunctor
    components: Dict[Object, Morphism] = field(default_factory=dict)

    @property
    def category(self) -> Category:
        return self.source_functor.target_category

    def component(self, obj: Object) -> Morphism:
        if obj not in self.components:
            raise DomainMismatch(f"{self.name} has no component at {obj}")
        return self.components[obj]

    def vertical(self, other: "NaturalTransformation") -> "NaturalTransformation":
        """Componentwise composite ``self`` then ``other``."""
        if self.target_functor is not other.source_functor:
            raise DomainMismatch(f"Cannot stack {self.name} on {other.name}")
        return build(
            f"{self.name} ≫ {other.name}",
            self.source_functor,
            other.target_functor,
            {obj: self.category.compose(eta, other.components[obj])
             for obj, eta in self.components.items()},
        )

    def is_isomorphism(self) -> bool:
        return all(self.category.is_isomorphism(eta) for eta in self.components.values())

    def inverse(self) -> "NaturalTransformation":
        inverses = {}
        for obj, eta in self.components.items():
            inverse = self.category.inverse(eta)
            if inverse is None:
                raise DomainMismatch(f"Component of {self.name} at {obj} is not invertible")
            inverses[obj] = inverse
        return build(f"{self.name}⁻¹", self.target_functor, self.source_functor, inverses)

    def equals(self, other: "NaturalTransformation") -> bool:
        return (self.components.keys() == other.components.keys()
                and all(self.category.equal(eta, other.components[obj])
                        for obj, eta in self.components.items()))


def build(name: str,
          source_functor: DiagramFunctor,
          target_functor: DiagramFunctor,
          family: Dict[Object, Morphism]) -> NaturalTransformation:
    """
    Assemble a natural transformation from a family of components.

    Raises:
        DomainMismatch: if the functors are not parallel, or a component
            is missing or has the wrong endpoints
        NaturalitySquareViolated: if a naturality square does not commute
    """
    if not source_functor.compatible_with(target_functor):
        raise DomainMismatch(
            f"{source_functor.name} and {target_functor.name} are not parallel functors"
        )
    category = source_functor.target_category
    shape = source_functor.source_category

    for obj in shape.objects:
        if obj not in family:
            raise DomainMismatch(f"{name} has no component at {obj}")
        eta = family[obj]
        expected = (source_functor.map_object(obj), target_functor.map_object(obj))
        if (eta.source, eta.target) != expected:
            raise DomainMismatch(
                f"Component {eta.name} of {name} must map {expected[0]} to {expected[1]}"
            )

    for m in shape.generators:
        lhs = category.compose(source_functor.map_morphism(m), family[m.target])
        rhs = category.compose(family[m.source], target_functor.map_morphism(m))
        if not category.equal(lhs, rhs):
            raise NaturalitySquareViolated(name, m)

    logger.debug("Built %s with %d components", name, len(family))
    return NaturalTransformation(
        name, source_functor, target_functor, {obj: family[obj] for obj in shape.objects}
    )


def identity_transformation(functor: DiagramFunctor) -> NaturalTransformation:
    category = functor.target_category
    return build(
        f"id_{functor.name}", functor, functor,
        {obj: category.identity(functor.map_object(obj))
         for obj in functor.source_category.objects},
    )


class TwoSquare:
    """
    A two-square: a 2-cell filling a square of slice functors

        C/A --top--> C/B
         |            |
        left        right
         v            v
        C/C --bottom-> C/D

    with components ``w_X: right(top(X)) → bottom(left(X))``.

    Components are computed lazily and memoised per bundle.
    """

    def __init__(self,
                 name: str,
                 top: SliceFunctor,
                 left: SliceFunctor,
                 right: SliceFunctor,
                 bottom: SliceFunctor,
                 component: Callable[[Bundle], Morphism]):
        if top.source_base != left.source_base:
            raise DomainMismatch(f"{name}: top and left functors start at different bases")
        if top.target_base != right.source_base:
            raise DomainMismatch(f"{name}: top does not meet right")
        if left.target_base != bottom.source_base:
            raise DomainMismatch(f"{name}: left does not meet bottom")
        if right.target_base != bottom.target_base:
            raise DomainMismatch(f"{name}: right and bottom end at different bases")
        self.name = name
        self.top = top
        self.left = left
        self.right = right
        self.bottom = bottom
        self._component = component
        self._cache: Dict[Bundle, Morphism] = {}

    def __repr__(self):
        return f"TwoSquare({self.name}: {self.top} ⋙ {self.right} ⇒ {self.left} ⋙ {self.bottom})"

    @property
    def category(self) -> Category:
        return self.top.category

    @property
    def source_functor(self) -> SliceFunctor:
        return self.top.then(self.right)

    @property
    def target_functor(self) -> SliceFunctor:
        return self.left.then(self.bottom)

    def app(self, bundle: Bundle) -> Morphism:
        """The component at ``bundle``."""
        if bundle not in self._cache:
            w = self._component(bundle)
            source = self.source_functor.on_object(bundle).total
            target = self.target_functor.on_object(bundle).total
            if w.source != source or w.target != target:
                raise DomainMismatch(f"Component of {self.name} must map {source} to {target}")
            self._cache[bundle] = w
        return self._cache[bundle]

    def is_invertible(self, bundle: Bundle) -> bool:
        return self.category.is_isomorphism(self.app(bundle))

    def inverse_at(self, bundle: Bundle) -> Morphism:
        inverse = self.category.inverse(self.app(bundle))
        if inverse is None:
            raise DomainMismatch(f"Component of {self.name} at {bundle.total} is not invertible")
        return inverse

    def agrees_with(self, other: "TwoSquare", bundle: Bundle) -> bool:
        return self.category.equal(self.app(bundle), other.app(bundle))

    def hcomp(self, other: "TwoSquare") -> "TwoSquare":
        """
        Paste ``other`` to the right of ``self``; they share ``self.right``
        as ``other.left``.
        """
        if self.right != other.left:
            raise DomainMismatch(f"{self.name} and {other.name} do not share an edge")

        def component(bundle: Bundle) -> Morphism:
            moved = self.top.on_object(bundle)
            return self.category.compose(
                other.app(moved),
                other.bottom.on_morphism(
                    self.right.on_object(moved),
                    self.bottom.on_object(self.left.on_object(bundle)),
                    self.app(bundle),
                ),
            )

        return TwoSquare(
            f"{self.name} | {other.name}",
            top=self.top.then(other.top),
            left=self.left,
            right=other.right,
            bottom=self.bottom.then(other.bottom),
            component=component,
        )

    def vcomp(self, other: "TwoSquare") -> "TwoSquare":
        """Stack ``other`` below ``self``; they share ``self.bottom`` as ``other.top``."""
        if self.bottom != other.top:
            raise DomainMismatch(f"{self.name} and {other.name} do not share an edge")

        def component(bundle: Bundle) -> Morphism:
            below = self.left.on_object(bundle)
            return self.category.compose(
                other.right.on_morphism(
                    self.right.on_object(self.top.on_object(bundle)),
                    self.bottom.on_object(below),
                    self.app(bundle),
                ),
                other.app(below),
            )

        return TwoSquare(
            f"{self.name} / {other.name}",
            top=self.top,
            left=self.left.then(other.left),
            right=self.right.then(other.right),
            bottom=other.bottom,
            component=component,
        )

    @classmethod
    def horizontal_identity(cls, functor: SliceFunctor) -> "TwoSquare":
        """``functor ⋙ Id ⇒ Id ⋙ functor`` with identity components."""
        category = functor.category
        return cls(
            f"1_{functor}",
            top=functor,
            left=IdentitySliceFunctor(category, functor.source_base),
            right=IdentitySliceFunctor(category, functor.target_base),
            bottom=functor,
            component=lambda bundle: category.identity(functor.on_object(bundle).total),
        )

    @classmethod
    def vertical_identity(cls, functor: SliceFunctor) -> "TwoSquare":
        """``Id ⋙ functor ⇒ functor ⋙ Id`` with identity components."""
        category = functor.category
        return cls(
            f"1^{functor}",
            top=IdentitySliceFunctor(category, functor.source_base),
            left=functor,
            right=functor,
            bottom=IdentitySliceFunctor(category, functor.target_base),
            component=lambda bundle: category.identity(functor.on_object(bundle).total),
        )

    def restrict(self, diagram: BundleDiagram) -> NaturalTransformation:
        """
        Components along a diagram of bundles, checked for naturality.

        Raises:
            NaturalitySquareViolated: if some square fails on the diagram
        """
        source = diagram.map(self.top).map(self.right)
        target = diagram.map(self.left).map(self.bottom)
        return build(
            self.name,
            source.functor,
            target.functor,
            {obj: self.app(diagram.bundle(obj)) for obj in diagram.shape.objects},
        )
