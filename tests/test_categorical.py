"""
Tests for the core categorical types and path rewriting
"""

import logging

import pytest

from polyfunctor.categorical import Bundle, Cospan, Morphism, Object, PullbackSquare, Span
from polyfunctor.errors import CategoryError, DomainMismatch, RewriteLimitExceeded
from polyfunctor.rewriting import Rule, RewriteSystem, find_subpath, orient, shortlex_greater


class TestValueTypes:
    def test_object_identity_is_its_name(self):
        assert Object("A") == Object("A")
        assert Object("A") != Object("B")
        assert str(Object("A")) == "A"

    def test_morphism_equality_ignores_payload(self):
        A, B = Object("A"), Object("B")
        f = Morphism(A, B, "f", data=("f",))
        g = Morphism(A, B, "f", data=None)
        assert f == g
        assert hash(f) == hash(g)
        assert f != Morphism(A, B, "g")
        assert f.is_parallel(Morphism(A, B, "g"))

    def test_span_requires_common_source(self):
        A, B, C = Object("A"), Object("B"), Object("C")
        span = Span(Morphism(A, B, "f"), Morphism(A, C, "g"))
        assert span.apex == A
        with pytest.raises(DomainMismatch):
            Span(Morphism(A, B, "f"), Morphism(B, C, "g"))

    def test_cospan_requires_common_target(self):
        A, B, C = Object("A"), Object("B"), Object("C")
        cospan = Cospan(Morphism(A, C, "f"), Morphism(B, C, "g"))
        assert cospan.base == C
        with pytest.raises(DomainMismatch):
            Cospan(Morphism(A, C, "f"), Morphism(C, B, "g"))

    def test_pullback_square_checks_projections(self):
        X, Y, Z, P = Object("X"), Object("Y"), Object("Z"), Object("P")
        cospan = Cospan(Morphism(X, Z, "f"), Morphism(Y, Z, "g"))
        square = PullbackSquare(cospan, P, Morphism(P, X, "p"), Morphism(P, Y, "q"))
        assert square.cone == Span(square.first, square.second)
        with pytest.raises(DomainMismatch):
            PullbackSquare(cospan, P, Morphism(P, Y, "p"), Morphism(P, Y, "q"))
        with pytest.raises(DomainMismatch):
            PullbackSquare(cospan, P, Morphism(X, X, "p"), Morphism(P, Y, "q"))

    def test_bundle_endpoints(self):
        E, X = Object("E"), Object("X")
        bundle = Bundle(Morphism(E, X, "pi"))
        assert bundle.total == E
        assert bundle.base == X

    def test_errors_are_value_errors(self):
        assert issubclass(DomainMismatch, CategoryError)
        assert issubclass(CategoryError, ValueError)


class TestRewriting:
    def test_shortlex_order(self):
        assert shortlex_greater(("a", "b"), ("c",))
        assert shortlex_greater(("b",), ("a",))
        assert not shortlex_greater(("a",), ("a", "a"))

    def test_find_subpath(self):
        word = ("a", "b", "c", "b", "c")
        assert find_subpath(word, ("b", "c")) == 1
        assert find_subpath(word, ("b", "c"), 2) == 3
        assert find_subpath(word, ("c", "a")) == -1

    def test_orient(self):
        assert orient(("a",), ("a",)) is None
        assert orient(("c",), ("a", "b")) == Rule(("a", "b"), ("c",))

    def test_normalize(self):
        system = RewriteSystem()
        system.add_equation(("a", "a"), ())
        assert system.normalize(("a", "a", "a")) == ("a",)
        assert system.equivalent(("a", "a", "b"), ("b",))

    def test_completion_adds_overlap_rule(self):
        system = RewriteSystem()
        system.add_equation(("a", "b"), ("c",))
        system.add_equation(("b", "d"), ("e",))
        # a·b·d reduces to both c·d and a·e
        assert system.normalize(("c", "d")) != system.normalize(("a", "e"))
        assert system.complete()
        assert system.equivalent(("c", "d"), ("a", "e"))

    def test_step_limit(self):
        system = RewriteSystem(max_steps=5)
        system.rules = [Rule(("a",), ("b",)), Rule(("b",), ("a",))]
        with pytest.raises(RewriteLimitExceeded):
            system.normalize(("a",))

    def test_truncated_completion_warns(self, caplog):
        system = RewriteSystem(max_rules=1)
        system.add_equation(("a", "b"), ("c",))
        system.add_equation(("b", "d"), ("e",))
        with caplog.at_level(logging.WARNING):
            assert system.complete() is False
        assert "Completion stopped" in caplog.text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
