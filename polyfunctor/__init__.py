"""
Polyfunctor - Diagram Reasoning for Polynomial Functors

A symbolic toolkit for pullbacks, pushforwards, natural transformations
and the composition laws of polynomial functors, over a presented
category of diagrams or over finite sets.
"""

__version__ = "0.1.0"

from .categorical import Bundle, Category, Cospan, Morphism, Object, PullbackSquare, Span
from .registry import DiagramRegistry
from .finset import FinSet, Section
from .engine import Exponentiable, PullbackEngine
from .natural import BundleDiagram, DiagramFunctor, NaturalTransformation, TwoSquare, build
from .polynomial import (
    CompositionLawChecker,
    PolynomialFunctorSpec,
    PolynomialIsomorphism,
    identity_polynomial,
    polynomial,
    univariate,
)
from .errors import (
    CategoryError,
    CommutativityError,
    ConstructionTooLarge,
    DomainMismatch,
    NaturalitySquareViolated,
    NotComposable,
    NotExponentiable,
    NotPullbackStable,
    RewriteLimitExceeded,
)

__all__ = [
    "Object",
    "Morphism",
    "Span",
    "Cospan",
    "PullbackSquare",
    "Bundle",
    "Category",
    "DiagramRegistry",
    "FinSet",
    "Section",
    "Exponentiable",
    "PullbackEngine",
    "DiagramFunctor",
    "BundleDiagram",
    "NaturalTransformation",
    "TwoSquare",
    "build",
    "PolynomialFunctorSpec",
    "PolynomialIsomorphism",
    "CompositionLawChecker",
    "polynomial",
    "identity_polynomial",
    "univariate",
    "CategoryError",
    "DomainMismatch",
    "NotComposable",
    "NotPullbackStable",
    "NotExponentiable",
    "CommutativityError",
    "NaturalitySquareViolated",
    "ConstructionTooLarge",
    "RewriteLimitExceeded",
]
