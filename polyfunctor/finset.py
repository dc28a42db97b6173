"""
Finite Sets Module

The category of finite sets with labelled elements. A morphism is a numpy
index array ``a`` with ``f(i) = a[i]``, so composition is fancy indexing
and equality is array equality.

Every finite-set map is exponentiable: the pushforward ``Π_f E`` is the
set of sections of ``E`` over the fibers of ``f`` and is enumerated
explicitly. Derived objects carry structured element labels:

- terminal object: the single element ``()``
- pullback of ``f: X → Z``, ``g: Y → Z``: pairs ``(x, y)`` with
  ``f(x) = g(y)``, ordered by the index of ``x`` then of ``y``
- pushforward ``Π_f E`` for ``f: X → Y``: pairs ``(y, Section)`` where the
  section maps each ``x`` in the fiber over ``y`` to an element of ``E``
  lying over ``x``

Derived objects are memoised per instance, so repeating a construction
returns the very same handles.
"""

import logging
from collections.abc import Mapping
from itertools import product
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple, Union

import numpy as np

from .categorical import (
    Bundle, Category, Cospan, HasElements, HasPullbacks, HasPushforwards, HasTerminal,
    Morphism, Object, PullbackSquare, Span,
)
from .constants import COMPOSE_SYMBOL, IDENTITY_PREFIX, MAX_CONSTRUCTION_ELEMENTS, TERMINAL_NAME
from .errors import (
    CommutativityError, ConstructionTooLarge, DomainMismatch, NotPullbackStable,
)

logger = logging.getLogger(__name__)

MapSpec = Union[Mapping, Callable[[Hashable], Hashable], Iterable[Hashable]]


class Section:
    """Immutable finite mapping; element label of a pushforward."""

    __slots__ = ("_items", "_lookup", "_hash")

    def __init__(self, items: Iterable[Tuple[Hashable, Hashable]]):
        self._items = tuple(items)
        self._lookup = dict(self._items)
        self._hash = hash(frozenset(self._items))

    def __getitem__(self, key):
        return self._lookup[key]

    def __iter__(self):
        return iter(self._lookup)

    def __len__(self):
        return len(self._items)

    def items(self) -> Tuple[Tuple[Hashable, Hashable], ...]:
        return self._items

    def __eq__(self, other):
        return isinstance(other, Section) and self._lookup == other._lookup

    def __hash__(self):
        return self._hash

    def __repr__(self):
        body = ", ".join(f"{k!r}↦{v!r}" for k, v in self._items)
        return "{" + body + "}"


class FinSet(Category, HasElements, HasTerminal, HasPullbacks, HasPushforwards):
    """
    Finite sets and functions.

    Attributes:
        name: Name of the category instance
        max_elements: Upper bound on the size of an enumerated pushforward
    """

    def __init__(self, name: str = "FinSet", max_elements: int = MAX_CONSTRUCTION_ELEMENTS):
        self.name = name
        self.max_elements = max_elements
        self._carriers: Dict[Object, Tuple[Hashable, ...]] = {}
        self._indices: Dict[Object, Dict[Hashable, int]] = {}
        self._terminal: Optional[Object] = None
        self._pullbacks: Dict[Tuple, PullbackSquare] = {}
        self._pushforwards: Dict[Tuple, Bundle] = {}
        self._functions: Dict[Tuple[Object, Object, str], bytes] = {}

    def __repr__(self):
        return f"FinSet({self.name!r}, objects={len(self._carriers)})"

    # ------------------------------------------------------------------
    # Objects and elements
    # ------------------------------------------------------------------

    def add_object(self, name: str, elements: Union[int, Iterable[Hashable]]) -> Object:
        """
        Add a finite set.

        Args:
            name: Object name, unique in this category
            elements: Element labels, or a count ``n`` for ``0..n-1``

        Raises:
            DomainMismatch: on a duplicate name or duplicate labels
        """
        obj = Object(name)
        if obj in self._carriers:
            raise DomainMismatch(f"Object {name!r} already exists in {self.name}")
        self._store(obj, range(elements) if isinstance(elements, int) else elements)
        return obj

    def _store(self, obj: Object, elements: Iterable[Hashable]) -> None:
        carrier = tuple(elements)
        index = {label: i for i, label in enumerate(carrier)}
        if len(index) != len(carrier):
            raise DomainMismatch(f"Object {obj} has repeated element labels")
        self._carriers[obj] = carrier
        self._indices[obj] = index

    def _fresh(self, name: str, elements: Iterable[Hashable]) -> Object:
        obj = Object(name)
        while obj in self._carriers:
            obj = Object(obj.name + "'")
        self._store(obj, elements)
        return obj

    def has_object(self, obj: Object) -> bool:
        return obj in self._carriers

    def elements(self, obj: Object) -> Tuple[Hashable, ...]:
        self._check_object(obj)
        return self._carriers[obj]

    def size(self, obj: Object) -> int:
        return len(self.elements(obj))

    def index_of(self, obj: Object, label: Hashable) -> int:
        self._check_object(obj)
        try:
            return self._indices[obj][label]
        except KeyError:
            raise DomainMismatch(f"{label!r} is not an element of {obj}") from None

    def _check_object(self, obj: Object) -> None:
        if obj not in self._carriers:
            raise DomainMismatch(f"Object {obj} is not in {self.name}")

    # ------------------------------------------------------------------
    # Morphisms
    # ------------------------------------------------------------------

    def morphism(self, name: str, source: Object, target: Object, mapping: MapSpec) -> Morphism:
        """
        Build a function from element labels.

        Args:
            mapping: A dict from source labels to target labels, a callable
                on labels, or a sequence of target labels in source order

        Raises:
            DomainMismatch: if a value is not an element of ``target``
        """
        labels = self.elements(source)
        if isinstance(mapping, Mapping):
            missing = [x for x in labels if x not in mapping]
            if missing:
                raise DomainMismatch(f"{name} is undefined on {missing[:3]!r}")
            images = [mapping[x] for x in labels]
        elif callable(mapping):
            images = [mapping(x) for x in labels]
        else:
            images = list(mapping)
        indices = [self.index_of(target, y) for y in images]
        return self.from_indices(name, source, target, indices)

    def from_indices(self, name: str, source: Object, target: Object, indices: Any) -> Morphism:
        """
        Build a function from an integer index array.

        A name identifies one function between a given pair of sets;
        morphisms compare by name, so reusing it for other values is an error.

        Raises:
            DomainMismatch: on a wrong length, an out-of-range index, or a
                name already taken by another function with these endpoints
        """
        array = np.array(indices, dtype=np.intp).reshape(-1)
        if array.shape[0] != self.size(source):
            raise DomainMismatch(
                f"{name} has {array.shape[0]} values but {source} has {self.size(source)} elements"
            )
        if array.size and (array.min() < 0 or array.max() >= self.size(target)):
            raise DomainMismatch(f"{name} takes values outside {target}")
        signature = (source, target, name)
        known = self._functions.setdefault(signature, array.tobytes())
        if known != array.tobytes():
            raise DomainMismatch(
                f"{name} already names another function {source} → {target} in {self.name}"
            )
        array.setflags(write=False)
        return Morphism(source, target, name, data=array)

    def _check_morphism(self, f: Morphism) -> None:
        self._check_object(f.source)
        self._check_object(f.target)
        if not isinstance(f.data, np.ndarray) or f.data.shape != (self.size(f.source),):
            raise DomainMismatch(f"{f.name} is not a function of {self.name}")

    def key(self, f: Morphism) -> Tuple[Object, Object, bytes]:
        """Hashable identity of a function, independent of its name."""
        self._check_morphism(f)
        return f.source, f.target, f.data.tobytes()

    def apply(self, f: Morphism, label: Hashable) -> Hashable:
        """Image of an element label under ``f``."""
        self._check_morphism(f)
        return self._carriers[f.target][f.data[self.index_of(f.source, label)]]

    def fiber(self, f: Morphism, label: Hashable) -> Tuple[Hashable, ...]:
        """Labels of the elements of ``f.source`` over ``label``."""
        self._check_morphism(f)
        target_index = self.index_of(f.target, label)
        source = self._carriers[f.source]
        return tuple(source[i] for i in np.flatnonzero(f.data == target_index))

    def identity(self, obj: Object) -> Morphism:
        return self.from_indices(f"{IDENTITY_PREFIX}{obj}", obj, obj, np.arange(self.size(obj)))

    def compose(self, f: Morphism, g: Morphism) -> Morphism:
        self._check_morphism(f)
        self._check_morphism(g)
        self._check_composable(f, g)
        if self._is_identity_array(f):
            return g
        if self._is_identity_array(g):
            return f
        return self.from_indices(f"{f.name}{COMPOSE_SYMBOL}{g.name}", f.source, g.target, g.data[f.data])

    def _is_identity_array(self, f: Morphism) -> bool:
        return f.source == f.target and np.array_equal(f.data, np.arange(f.data.shape[0]))

    def equal(self, f: Morphism, g: Morphism) -> bool:
        self._check_morphism(f)
        self._check_morphism(g)
        return f.is_parallel(g) and np.array_equal(f.data, g.data)

    def is_injective(self, f: Morphism) -> bool:
        self._check_morphism(f)
        return np.unique(f.data).shape[0] == f.data.shape[0]

    def is_surjective(self, f: Morphism) -> bool:
        self._check_morphism(f)
        return np.unique(f.data).shape[0] == self.size(f.target)

    def inverse(self, f: Morphism) -> Optional[Morphism]:
        if not (self.is_injective(f) and self.is_surjective(f)):
            return None
        inverse = np.empty_like(f.data)
        inverse[f.data] = np.arange(f.data.shape[0])
        return self.from_indices(f"{f.name}⁻¹", f.target, f.source, inverse)

    def is_exponentiable(self, f: Morphism) -> bool:
        self._check_morphism(f)
        return True

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    def terminal(self) -> Object:
        if self._terminal is None:
            self._terminal = self._fresh(TERMINAL_NAME, [()])
        return self._terminal

    def to_terminal(self, obj: Object) -> Morphism:
        terminal = self.terminal()
        return self.from_indices(f"!_{obj}", obj, terminal, np.zeros(self.size(obj), dtype=np.intp))

    def pullback(self, cospan: Cospan) -> PullbackSquare:
        """
        Compute ``X ×_Z Y`` for ``f: X → Z`` and ``g: Y → Z``.

        Returns:
            PullbackSquare with projections to ``X`` and ``Y``
        """
        f, g = cospan.left, cospan.right
        key = (self.key(f), self.key(g))
        if key in self._pullbacks:
            square = self._pullbacks[key]
            if square.cospan != cospan:
                # same functions under other names
                square = PullbackSquare(cospan, square.apex, square.first, square.second)
            return square

        xs, ys = np.nonzero(f.data[:, None] == g.data[None, :])
        X, Y = self._carriers[f.source], self._carriers[g.source]
        apex = self._fresh(
            f"{f.source} ×_{cospan.base} {g.source}",
            [(X[i], Y[j]) for i, j in zip(xs, ys)],
        )
        square = PullbackSquare(
            cospan=cospan,
            apex=apex,
            first=self.from_indices(f"π1[{apex}]", apex, f.source, xs),
            second=self.from_indices(f"π2[{apex}]", apex, g.source, ys),
        )
        self._pullbacks[key] = square
        logger.debug("Pullback %s has %d elements", apex, xs.shape[0])
        return square

    def _mediating_indices(self, square: PullbackSquare, cone: Span) -> np.ndarray:
        pairs = {}
        for p, pair in enumerate(zip(square.first.data.tolist(), square.second.data.tolist())):
            if pair in pairs:
                raise NotPullbackStable(f"Square with apex {square.apex} is not a pullback")
            pairs[pair] = p
        try:
            return np.array(
                [pairs[pair] for pair in zip(cone.left.data.tolist(), cone.right.data.tolist())],
                dtype=np.intp,
            )
        except KeyError:
            raise NotPullbackStable(f"Square with apex {square.apex} is not a pullback") from None

    def lift(self, square: PullbackSquare, cone: Span) -> Morphism:
        """
        The mediating map from a commuting cone into a pullback square.

        Raises:
            CommutativityError: if the cone does not commute
            NotPullbackStable: if ``square`` is not universal
        """
        cospan = square.cospan
        if cone.left.target != cospan.left.source or cone.right.target != cospan.right.source:
            raise DomainMismatch(f"Cone over {cone.apex} does not lie over the cospan")
        if not self.commutes([cone.left, cospan.left], [cone.right, cospan.right]):
            raise CommutativityError(f"Cone over {cone.apex} does not commute")
        indices = self._mediating_indices(square, cone)
        return self.from_indices(
            f"⟨{cone.left.name}, {cone.right.name}⟩", cone.apex, square.apex, indices
        )

    def is_pullback(self, square: PullbackSquare) -> bool:
        if not self.is_commuting(square):
            return False
        canonical = self.pullback(square.cospan)
        pairs = set(zip(square.first.data.tolist(), square.second.data.tolist()))
        return len(pairs) == self.size(square.apex) == self.size(canonical.apex)

    # ------------------------------------------------------------------
    # Pushforwards
    # ------------------------------------------------------------------

    def pushforward(self, f: Morphism, bundle: Bundle) -> Bundle:
        """
        Dependent product ``Π_f E`` of a bundle ``E`` over ``f.source``.

        Raises:
            DomainMismatch: if ``bundle`` does not lie over ``f.source``
            ConstructionTooLarge: if the result exceeds ``max_elements``
        """
        if bundle.base != f.source:
            raise DomainMismatch(f"Bundle over {bundle.base} cannot be pushed along {f.name}")
        key = (self.key(f), self.key(bundle.projection))
        if key in self._pushforwards:
            return self._pushforwards[key]

        X, Y = self._carriers[f.source], self._carriers[f.target]
        E = self._carriers[bundle.total]
        over = [np.flatnonzero(bundle.projection.data == i) for i in range(len(X))]
        fibers = [np.flatnonzero(f.data == j) for j in range(len(Y))]

        count = sum(int(np.prod([over[i].shape[0] for i in fiber], dtype=object)) for fiber in fibers)
        if count > self.max_elements:
            raise ConstructionTooLarge(
                f"Π_{f.name}({bundle.total}) would have {count} elements "
                f"(limit {self.max_elements})"
            )

        labels, projection = [], []
        for j, fiber in enumerate(fibers):
            for choice in product(*(over[i] for i in fiber)):
                labels.append((Y[j], Section((X[i], E[e]) for i, e in zip(fiber, choice))))
                projection.append(j)

        total = self._fresh(f"Π_{f.name}({bundle.total})", labels)
        result = Bundle(self.from_indices(f"π[{total}]", total, f.target, projection))
        self._pushforwards[key] = result
        logger.debug("Pushforward %s has %d elements", total, len(labels))
        return result

    def counit(self, f: Morphism, bundle: Bundle) -> Morphism:
        """Evaluation ``f*Π_f E → E``: ``((y, s), x) ↦ s[x]``."""
        pushed = self.pushforward(f, bundle)
        square = self.pullback(Cospan(pushed.projection, f))
        return self.morphism(
            f"ε[{pushed.total}]", square.apex, bundle.total,
            lambda label: label[0][1][label[1]],
        )

    def transpose(self, f: Morphism, bundle: Bundle, other: Bundle, h: Morphism) -> Morphism:
        """
        Adjoint transpose of ``h: f*A → E`` (over ``f.source``) to ``A → Π_f E``.

        Raises:
            CommutativityError: if ``h`` does not lie over ``f.source``
        """
        if other.base != f.target:
            raise DomainMismatch(f"Bundle over {other.base} does not lie over {f.target}")
        square = self.pullback(Cospan(other.projection, f))
        if h.source != square.apex or h.target != bundle.total:
            raise DomainMismatch(f"{h.name} must map {square.apex} to {bundle.total}")
        if not self.commutes([h, bundle.projection], [square.second]):
            raise CommutativityError(f"{h.name} does not lie over {f.source}")

        pushed = self.pushforward(f, bundle)

        def section_of(a):
            y = self.apply(other.projection, a)
            return y, Section((x, self.apply(h, (a, x))) for x in self.fiber(f, y))

        return self.morphism(f"λ({h.name})", other.total, pushed.total, section_of)
