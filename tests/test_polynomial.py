"""
Tests for polynomial functors and their composition laws
"""

import pytest

from polyfunctor.categorical import Bundle
from polyfunctor.engine import Exponentiable, PullbackEngine
from polyfunctor.errors import (
    CommutativityError, DomainMismatch, NotComposable, NotExponentiable, NotPullbackStable,
)
from polyfunctor.finset import FinSet
from polyfunctor.natural import BundleDiagram
from polyfunctor.polynomial import (
    CompositionLawChecker, PolynomialFunctorSpec, PolynomialIsomorphism,
    identity_polynomial, polynomial, univariate,
)
from polyfunctor.registry import DiagramRegistry


def polynomial_setup():
    """
    P(X) = X² + 1, Q(X) = X + 1 and R(X) = X² as single-variable
    polynomials, and M(X, Y) = X·Y from C/I with I = {i0, i1}.
    """
    category = FinSet()
    engine = PullbackEngine(category)
    laws = CompositionLawChecker(engine)

    E = category.add_object("E", ["e0", "e1"])
    B = category.add_object("B", ["b0", "b1"])
    P = univariate(engine, "P", category.morphism("p", E, B, {"e0": "b0", "e1": "b0"}))

    F = category.add_object("F", ["f0"])
    C = category.add_object("C", ["c0", "c1"])
    Q = univariate(engine, "Q", category.morphism("q", F, C, {"f0": "c0"}))

    G = category.add_object("G", ["g0", "g1"])
    D = category.add_object("D", ["d0"])
    R = univariate(engine, "R", category.morphism("r", G, D, ["d0", "d0"]))

    I = category.add_object("I", ["i0", "i1"])
    EM = category.add_object("EM", ["m0", "m1"])
    K = category.add_object("K", ["k0"])
    M = polynomial(
        engine, "M",
        category.morphism("s", EM, I, {"m0": "i0", "m1": "i1"}),
        category.morphism("k", EM, K, ["k0", "k0"]),
        category.to_terminal(K),
    )
    return category, engine, laws, P, Q, R, M


def set_over_terminal(category, name, size):
    X = category.add_object(name, [f"{name}{i}" for i in range(size)])
    return Bundle(category.to_terminal(X))


class TestPolynomialFunctorSpec:
    def test_endpoints(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        assert P.input == category.terminal()
        assert P.output == category.terminal()
        assert M.input.name == "I"
        assert M.exponent.name == "EM"
        assert M.base.name == "K"

    def test_extension_counts(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        X = set_over_terminal(category, "X", 3)
        assert category.size(P.apply(engine, X).total) == 3 ** 2 + 1
        assert category.size(Q.apply(engine, X).total) == 3 + 1
        assert category.size(R.apply(engine, X).total) == 3 ** 2

    def test_multivariate_extension(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        I = M.input
        X = category.add_object("XI", ["x0", "x1", "x2"])
        bundle = Bundle(category.morphism("over", X, I, {"x0": "i0", "x1": "i1", "x2": "i1"}))
        assert category.size(M.apply(engine, bundle).total) == 1 * 2

    def test_extension_on_maps(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        X = set_over_terminal(category, "X", 2)
        identity = category.identity(X.total)
        assert category.is_identity(P.apply_morphism(engine, X, X, identity))

    def test_witness_must_match_arity(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        with pytest.raises(NotExponentiable):
            PolynomialFunctorSpec("bad", P.source_map, P.arity, P.output_map, Q.witness)

    def test_maps_must_chain(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        with pytest.raises(DomainMismatch):
            PolynomialFunctorSpec("bad", Q.source_map, P.arity, P.output_map, P.witness)

    def test_registry_needs_witness_and_terminal(self):
        reg = DiagramRegistry()
        reg.register_object("E")
        reg.register_object("B")
        p = reg.register_morphism("p", "E", "B")
        engine = PullbackEngine(reg)
        with pytest.raises(NotPullbackStable):
            univariate(engine, "P", p)
        with pytest.raises(NotExponentiable):
            polynomial(engine, "P", reg.identity("E"), p, reg.identity("B"))

    def test_registry_composition_needs_limits(self):
        reg = DiagramRegistry()
        A = reg.register_object("A")
        engine = PullbackEngine(reg)
        identity = identity_polynomial(engine, A)
        assert identity.witness.reason == "identity"
        with pytest.raises(NotPullbackStable):
            CompositionLawChecker(engine).compose(identity, identity)


class TestComposition:
    def test_composite_shape(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        PQ = laws.compose(P, Q)
        # Q after P is X² + 2
        assert category.size(PQ.base) == 3
        assert category.size(PQ.exponent) == 2
        assert PQ.input == P.input and PQ.output == Q.output
        assert laws.compose(P, Q) is PQ

    def test_composite_witness_is_derived(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        PQ = laws.compose(P, Q)
        assert isinstance(PQ.witness, Exponentiable)
        assert PQ.witness.reason == "composite"
        assert [w.reason for w in PQ.witness.premises] == ["pullback", "pullback"]

    def test_compose_all_nests_left(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        assert laws.compose_all([P, Q, R]) is laws.compose(laws.compose(P, Q), R)
        assert laws.compose_all([P]) is P
        with pytest.raises(DomainMismatch):
            laws.compose_all([])

    def test_distinct_arities_give_distinct_composites(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        E, B = P.exponent, P.base
        P2 = univariate(engine, "P", category.morphism("p2", E, B, ["b0", "b1"]))
        S = category.add_object("S", ["s0"])
        T = category.add_object("T", ["t0"])
        linear = univariate(engine, "L", category.morphism("l", S, T, ["t0"]))
        X = set_over_terminal(category, "X", 3)

        first, second = laws.compose(P, linear), laws.compose(P2, linear)
        assert first is not second
        assert category.size(first.apply(engine, X).total) == 3 ** 2 + 1
        assert category.size(second.apply(engine, X).total) == 3 + 3

    def test_reused_arity_name_is_rejected(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        with pytest.raises(DomainMismatch):
            category.morphism("p", P.exponent, P.base, ["b0", "b1"])

    def test_not_composable(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        with pytest.raises(NotComposable):
            laws.compose(P, M)
        with pytest.raises(NotComposable):
            laws.compose(M, M)

    def test_composite_presents_composite_functor(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        X = set_over_terminal(category, "X", 3)
        cell = laws.composite_comparison(P, Q)
        assert cell.is_invertible(X)
        assert category.size(cell.app(X).source) == 3 ** 2 + 2

    def test_multivariate_composite_comparison(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        X = category.add_object("XI", ["x0", "x1", "x2"])
        bundle = Bundle(category.morphism("over", X, M.input, {"x0": "i0", "x1": "i1", "x2": "i1"}))
        assert laws.composite_comparison(M, P).is_invertible(bundle)

    def test_composite_comparison_is_natural(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        shape = DiagramRegistry(name="arrow")
        A = shape.register_object("A")
        B = shape.register_object("B")
        shape.register_morphism("m", "A", "B")
        X1 = set_over_terminal(category, "X", 2)
        X2 = set_over_terminal(category, "Y", 3)
        h = category.morphism("h", X1.total, X2.total, ["Y0", "Y2"])
        diagram = BundleDiagram.from_bundles(
            "D", shape, category, category.terminal(), {A: X1, B: X2}, {"m": h}
        )
        eta = laws.verify(laws.composite_comparison(P, Q), diagram)
        assert eta.is_isomorphism()


class TestCoherence:
    def test_associator(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        iso = laws.check_associativity(P, Q, R)
        assert iso.source == laws.compose(laws.compose(P, Q), R)
        assert iso.target == laws.compose(P, laws.compose(Q, R))
        assert category.is_isomorphism(iso.base_map)
        assert category.is_isomorphism(iso.exponent_map)

    def test_multivariate_associator(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        iso = laws.check_associativity(M, P, Q)
        assert category.size(iso.source.base) == category.size(iso.target.base)

    def test_unitors(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        left, right = laws.check_unit_laws(M)
        assert left.source == laws.compose(laws.identity(M.input), M)
        assert right.source == laws.compose(M, laws.identity(M.output))
        assert left.target == M and right.target == M

    def test_pentagon(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        assert laws.check_pentagon(P, Q, R, Q)
        assert laws.check_pentagon(M, P, Q, R)

    def test_triangle(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        assert laws.check_triangle(P, Q)
        assert laws.check_triangle(M, R)

    def test_associator_matches_comparisons(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        X = set_over_terminal(category, "X", 2)
        assert laws.check_comparison_coherence(P, Q, R, X)
        XI = category.add_object("XI", ["x0", "x1"])
        over_i = Bundle(category.morphism("over", XI, M.input, {"x0": "i0", "x1": "i1"}))
        assert laws.check_comparison_coherence(M, P, Q, over_i)

    def test_inverse_and_reflexivity(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        iso = laws.associator(P, Q, R)
        round_trip = laws.then(iso, laws.inverse(iso))
        assert laws.equal(round_trip, laws.reflexivity(iso.source))
        laws.check(laws.inverse(iso))

    def test_then_requires_matching_polynomials(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        with pytest.raises(DomainMismatch):
            laws.then(laws.left_unitor(P), laws.left_unitor(Q))

    def test_horizontal_composite(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        iso = laws.hcomp(laws.left_unitor(P), laws.right_unitor(Q))
        laws.check(iso)
        assert iso.target == laws.compose(P, Q)

    def test_check_rejects_structure_breaking_maps(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        swap = category.morphism("swap", P.base, P.base, {"b0": "b1", "b1": "b0"})
        with pytest.raises(CommutativityError):
            laws.check(PolynomialIsomorphism(
                "bad", P, P, swap, category.identity(P.exponent)
            ))
        collapse = category.morphism("collapse", P.base, P.base, ["b0", "b0"])
        with pytest.raises(DomainMismatch):
            laws.check(PolynomialIsomorphism(
                "bad", P, P, collapse, category.identity(P.exponent)
            ))

    def test_induced_transformation(self):
        category, engine, laws, P, Q, R, M = polynomial_setup()
        X = set_over_terminal(category, "X", 2)
        cell = laws.induced_transformation(laws.associator(P, Q, R))
        assert cell.is_invertible(X)
        assert cell.app(X).target == laws.compose(P, laws.compose(Q, R)).apply(engine, X).total


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
