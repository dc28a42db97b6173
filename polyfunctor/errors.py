"""
Error taxonomy.

Every failure is detected while a value is being constructed and is raised
to the caller immediately. Nothing is retried: the caller has to supply
corrected input (or a missing capability witness) and construct again.
"""


class CategoryError(ValueError):
    """Base class of all construction failures."""


class DomainMismatch(CategoryError):
    """A morphism or object handle is unknown or has the wrong endpoints."""


class NotComposable(CategoryError):
    """The target of the first morphism is not the source of the second."""

    def __init__(self, first, second):
        self.first = first
        self.second = second
        super().__init__(
            f"Cannot compose {first.name}: {first.source} → {first.target} "
            f"with {second.name}: {second.source} → {second.target}"
        )


class NotPullbackStable(CategoryError):
    """The ambient category lacks a required limit."""


class NotExponentiable(CategoryError):
    """No pushforward (right adjoint to base change) is available."""


class CommutativityError(CategoryError):
    """A diagram that was required to commute does not."""


class NaturalitySquareViolated(CommutativityError):
    """A component family fails the naturality square of some morphism."""

    def __init__(self, transformation: str, morphism):
        self.transformation = transformation
        self.morphism = morphism
        super().__init__(
            f"Naturality square of {transformation} fails at "
            f"{morphism.name}: {morphism.source} → {morphism.target}"
        )


class ConstructionTooLarge(CategoryError):
    """An explicit enumeration would exceed the configured element limit."""


class RewriteLimitExceeded(CategoryError):
    """Path normalisation did not terminate within the step limit."""
