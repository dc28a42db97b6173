"""
Tests for the Pullback/Pushforward Engine
"""

import pytest

from polyfunctor.categorical import Bundle, Cospan, PullbackSquare
from polyfunctor.engine import Exponentiable, PullbackEngine
from polyfunctor.errors import (
    CommutativityError, DomainMismatch, NotExponentiable, NotPullbackStable,
)
from polyfunctor.finset import FinSet
from polyfunctor.registry import DiagramRegistry


def pullback_setup():
    """
    f: X → Y and g: Z → Y, the pullback of the two, and a bundle E over X.

    X = {a, b, c} → Y = {0, 1} with a, b ↦ 0; Z = {u, v, w} → Y with u ↦ 0,
    v, w ↦ 1.
    """
    category = FinSet()
    engine = PullbackEngine(category)
    X = category.add_object("X", ["a", "b", "c"])
    Y = category.add_object("Y", [0, 1])
    Z = category.add_object("Z", ["u", "v", "w"])
    E = category.add_object("E", ["a1", "a2", "b1", "c1", "c2"])
    f = category.morphism("f", X, Y, {"a": 0, "b": 0, "c": 1})
    g = category.morphism("g", Z, Y, {"u": 0, "v": 1, "w": 1})
    bundle = Bundle(category.morphism("pi", E, X, lambda e: e[0]))
    square = engine.pullback(Cospan(f, g))
    return category, engine, square, bundle


def collapsed_square():
    """A commuting square over identities whose apex is too big to be a pullback."""
    category = FinSet()
    engine = PullbackEngine(category)
    X = category.add_object("X", [0])
    Y = category.add_object("Y", [0])
    Z = category.add_object("Z", [0])
    P = category.add_object("P", ["a", "b"])
    E = category.add_object("E", ["e1", "e2"])
    f = category.morphism("f", X, Y, [0])
    g = category.morphism("g", Z, Y, [0])
    square = PullbackSquare(
        Cospan(f, g), P,
        category.morphism("p", P, X, [0, 0]),
        category.morphism("q", P, Z, [0, 0]),
    )
    bundle = Bundle(category.morphism("pi", E, X, [0, 0]))
    return category, engine, square, bundle


class TestPullbacks:
    def test_comparison_between_pullbacks(self):
        category, engine, square, _ = pullback_setup()
        labels = category.elements(square.apex)
        Q = category.add_object("Q", list(reversed(labels)))
        other = PullbackSquare(
            square.cospan, Q,
            category.morphism("p'", Q, square.first.target, lambda label: label[0]),
            category.morphism("q'", Q, square.second.target, lambda label: label[1]),
        )
        assert engine.is_pullback(other)
        forward, backward = engine.pullback_comparison(square, other)
        assert category.is_identity(category.compose(forward, backward))
        assert category.equal(category.compose(forward, other.first), square.first)

    def test_comparison_rejects_non_universal_square(self):
        category, engine, square, _ = pullback_setup()
        labels = category.elements(square.apex)
        Q = category.add_object("Q", labels[:1])
        other = PullbackSquare(
            square.cospan, Q,
            category.morphism("p'", Q, square.first.target, lambda label: label[0]),
            category.morphism("q'", Q, square.second.target, lambda label: label[1]),
        )
        with pytest.raises(NotPullbackStable):
            engine.pullback_comparison(square, other)

    def test_paste(self):
        category, engine, inner, _ = pullback_setup()
        V = category.add_object("V", ["v0", "v1"])
        h = category.morphism("h", V, inner.cospan.left.source, {"v0": "a", "v1": "c"})
        outer = engine.pullback(Cospan(h, inner.first))
        pasted = engine.paste(inner, outer)
        assert pasted.apex == outer.apex
        assert engine.is_pullback(pasted)

    def test_paste_requires_shared_edge(self):
        category, engine, inner, _ = pullback_setup()
        with pytest.raises(DomainMismatch):
            engine.paste(inner, inner)

    def test_registry_without_declared_pullback(self):
        reg = DiagramRegistry()
        for name in "XYZ":
            reg.register_object(name)
        f = reg.register_morphism("f", "X", "Z")
        g = reg.register_morphism("g", "Y", "Z")
        engine = PullbackEngine(reg)
        with pytest.raises(NotPullbackStable):
            engine.pullback(Cospan(f, g))


class TestExponentiability:
    def test_identity_rule(self):
        category = FinSet()
        engine = PullbackEngine(category)
        A = category.add_object("A", 2)
        witness = engine.exponentiable(category.identity(A))
        assert witness.reason == "identity"

    def test_finset_maps_are_exponentiable(self):
        category, engine, square, _ = pullback_setup()
        witness = engine.exponentiable(square.cospan.left)
        assert witness.reason == "ambient"
        assert engine.exponentiable(square.cospan.left) is witness

    def test_registry_needs_a_declaration(self):
        reg = DiagramRegistry()
        reg.register_object("A")
        reg.register_object("B")
        f = reg.register_morphism("f", "A", "B")
        engine = PullbackEngine(reg)
        with pytest.raises(NotExponentiable):
            engine.exponentiable(f)
        reg.declare_exponentiable(f)
        assert engine.exponentiable(f).reason == "declared"

    def test_registry_has_no_pushforward_functor(self):
        reg = DiagramRegistry()
        reg.register_object("A")
        reg.register_object("B")
        f = reg.register_morphism("f", "A", "B")
        engine = PullbackEngine(reg)
        with pytest.raises(NotExponentiable):
            engine.pushforward(f, engine.supply(f))

    def test_closure_rules(self):
        category, engine, square, _ = pullback_setup()
        f_witness = engine.exponentiable(square.cospan.left)
        pulled = engine.pullback_witness(square, f_witness)
        assert pulled.morphism == square.second
        assert pulled.premises == (f_witness,)
        composite = engine.composite_witness(pulled, engine.exponentiable(square.cospan.right))
        assert composite.reason == "composite"
        assert composite.morphism.source == square.apex

    def test_pullback_witness_needs_a_pullback(self):
        category, engine, square, bundle = collapsed_square()
        witness = engine.exponentiable(square.cospan.left)
        with pytest.raises(NotPullbackStable):
            engine.pullback_witness(square, witness)

    def test_witness_for_another_map(self):
        category, engine, square, _ = pullback_setup()
        witness = Exponentiable(square.cospan.right, "supplied")
        with pytest.raises(DomainMismatch):
            engine.pushforward(square.cospan.left, witness)


class TestSliceFunctors:
    def test_base_change(self):
        category, engine, square, bundle = pullback_setup()
        f = square.cospan.left
        moved = engine.base_change(f).on_object(Bundle(square.cospan.right))
        assert moved.base == f.source
        assert category.size(moved.total) == category.size(square.apex)

    def test_dependent_sum(self):
        category, engine, square, bundle = pullback_setup()
        summed = engine.dependent_sum(square.cospan.left).on_object(bundle)
        assert summed.total == bundle.total
        assert summed.base == square.cospan.left.target

    def test_bundle_over_wrong_base(self):
        category, engine, square, bundle = pullback_setup()
        with pytest.raises(DomainMismatch):
            engine.dependent_sum(square.cospan.right).on_object(bundle)

    def test_functors_preserve_identities(self):
        category, engine, square, bundle = pullback_setup()
        f = square.cospan.left
        identity = category.identity(bundle.total)
        pushforward = engine.pushforward(f)
        assert category.is_identity(pushforward.on_morphism(bundle, bundle, identity))
        over_y = Bundle(square.cospan.right)
        base_change = engine.base_change(f)
        assert category.is_identity(
            base_change.on_morphism(over_y, over_y, category.identity(over_y.total))
        )

    def test_adjunction_round_trip(self):
        category, engine, square, bundle = pullback_setup()
        pushforward = engine.pushforward(square.cospan.left)
        pushed = pushforward.on_object(bundle)
        counit = pushforward.counit(bundle)
        assert category.is_identity(pushforward.transpose(bundle, pushed, counit))

    def test_on_morphism_rejects_maps_off_the_base(self):
        category, engine, square, bundle = pullback_setup()
        swap = category.morphism(
            "swap", bundle.total, bundle.total,
            {"a1": "c1", "a2": "a2", "b1": "b1", "c1": "a1", "c2": "c2"},
        )
        with pytest.raises(CommutativityError):
            engine.dependent_sum(square.cospan.left).on_morphism(bundle, bundle, swap)


class TestBeckChevalley:
    def test_invertible_on_pullback_square(self):
        category, engine, square, bundle = pullback_setup()
        bc = engine.beck_chevalley(square)
        assert bc.is_invertible(bundle)
        component = bc.app(bundle)
        assert category.size(component.source) == category.size(component.target)

    def test_not_invertible_on_non_pullback_square(self):
        category, engine, square, bundle = collapsed_square()
        assert category.is_commuting(square)
        bc = engine.beck_chevalley(square)
        component = bc.app(bundle)
        assert category.size(component.source) == 2
        assert category.size(component.target) == 4
        assert not bc.is_invertible(bundle)

    def test_rejects_non_commuting_square(self):
        category, engine, square, _ = pullback_setup()
        broken = PullbackSquare(
            square.cospan, square.apex, square.first,
            category.morphism(
                "q'", square.apex, square.second.target,
                lambda label: "u" if label[1] != "u" else "v",
            ),
        )
        with pytest.raises(CommutativityError):
            engine.beck_chevalley(broken)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
