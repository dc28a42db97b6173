"""
Demonstration of the Polyfunctor Toolkit

This script walks through the three layers of the toolkit:
1. Pullbacks and the Beck-Chevalley comparison over finite sets
2. Natural transformations restricted to a diagram of bundles
3. Composition of polynomial functors and its coherence laws
"""

import logging

from polyfunctor import (
    Bundle, BundleDiagram, CompositionLawChecker, Cospan, DiagramRegistry, FinSet,
    PullbackEngine, univariate,
)


def print_section(title):
    """Print a formatted section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def demonstrate_beck_chevalley():
    """Beck-Chevalley for a pullback square of finite sets."""
    print_section("PART 1: Pullbacks and Beck-Chevalley")

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
    print(f"\nPullback {square.apex}:")
    for label in category.elements(square.apex):
        print(f"  {label}")

    bc = engine.beck_chevalley(square)
    component = bc.app(bundle)
    print(f"\n{bc}")
    print(f"  component: {category.size(component.source)} → {category.size(component.target)} elements")
    print(f"  invertible: {bc.is_invertible(bundle)}")


def demonstrate_naturality():
    """Restrict a two-square to a small diagram of bundles."""
    print_section("PART 2: Natural Transformations")

    category = FinSet()
    engine = PullbackEngine(category)
    X = category.add_object("X", ["a", "b"])
    Y = category.add_object("Y", [0])
    E = category.add_object("E", ["a1", "a2", "b1"])
    f = category.morphism("f", X, Y, [0, 0])
    g = category.identity(Y)
    bundle = Bundle(category.morphism("pi", E, X, lambda e: e[0]))

    shape = DiagramRegistry(name="arrow")
    A = shape.register_object("A")
    B = shape.register_object("B")
    shape.register_morphism("m", "A", "B")
    diagram = BundleDiagram.from_bundles(
        "D", shape, category, X,
        {A: Bundle(category.identity(X)), B: bundle},
        {"m": category.morphism("sec", X, E, {"a": "a2", "b": "b1"})},
    )

    eta = engine.beck_chevalley(engine.pullback(Cospan(f, g))).restrict(diagram)
    print(f"\n{eta.name} has components at {sorted(obj.name for obj in eta.components)}")
    print(f"  natural isomorphism: {eta.is_isomorphism()}")


def demonstrate_composition_laws():
    """Compose single-variable polynomials and check coherence."""
    print_section("PART 3: Composition Laws")

    category = FinSet()
    engine = PullbackEngine(category)
    laws = CompositionLawChecker(engine)

    def polynomial_from_fibers(name, fibers):
        """Polynomial Σ_b X^{fibers[b]}."""
        bases = [f"{name}{i}" for i in range(len(fibers))]
        exponents = [(b, j) for b, n in zip(bases, fibers) for j in range(n)]
        B = category.add_object(f"B_{name}", bases)
        E = category.add_object(f"E_{name}", exponents)
        return univariate(engine, name, category.morphism(f"p_{name}", E, B, lambda e: e[0]))

    P = polynomial_from_fibers("P", [2, 0])
    Q = polynomial_from_fibers("Q", [1, 0])
    R = polynomial_from_fibers("R", [2])

    PQ = laws.compose(P, Q)
    print(f"\n{PQ}")
    print(f"  base: {category.size(PQ.base)} elements, exponent: {category.size(PQ.exponent)}")

    alpha = laws.check_associativity(P, Q, R)
    print(f"\n{alpha}")
    print(f"  pentagon: {laws.check_pentagon(P, Q, R, Q)}")
    print(f"  triangle: {laws.check_triangle(P, Q)}")

    X = category.add_object("X", ["x0", "x1", "x2"])
    bundle = Bundle(category.to_terminal(X))
    comparison = laws.composite_comparison(P, Q)
    print(f"\n{comparison}")
    print(f"  invertible at X: {comparison.is_invertible(bundle)}")


def main():
    """Run the complete demonstration."""
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("\n" + "=" * 70)
    print("  POLYFUNCTOR - DEMONSTRATION")
    print("  Diagram Reasoning for Polynomial Functors")
    print("=" * 70)

    demonstrate_beck_chevalley()
    demonstrate_naturality()
    demonstrate_composition_laws()

    print("\n" + "=" * 70 + "\n")


if __name__ == "__main__":
    main()
