# polyfunctor/constants.py
"""
Polyfunctor Constants

This module defines the defaults used throughout the toolkit:

LAYER 1: Labels (Diagram Registry)
- COMPOSE_SYMBOL: separator used when naming composite morphisms
- IDENTITY_PREFIX: prefix of identity morphism names
- TERMINAL_NAME: name of the terminal object of a concrete category

LAYER 2: Rewriting (Equational Reasoning)
- MAX_REWRITE_STEPS: bound on rewrite steps while normalising one path
- MAX_COMPLETION_ROUNDS: bound on Knuth-Bendix completion rounds
- MAX_RULES: bound on the size of a completed rule set

LAYER 3: Enumeration (Concrete Constructions)
- MAX_CONSTRUCTION_ELEMENTS: largest carrier a pushforward may enumerate

Every consumer takes a keyword override, so these are defaults only.
"""


# =============================================================================
# LAYER 1: Labels (Diagram Registry)
# =============================================================================

COMPOSE_SYMBOL = " ≫ "
IDENTITY_PREFIX = "id_"
TERMINAL_NAME = "1"


# =============================================================================
# LAYER 2: Rewriting (Equational Reasoning)
# =============================================================================

# Normalising a path stops with RewriteLimitExceeded past this many steps
MAX_REWRITE_STEPS = 10_000

# Completion of a presentation gives up (and warns) after this many rounds;
# equality checks then stay sound but may miss some equal pairs
MAX_COMPLETION_ROUNDS = 25
MAX_RULES = 500

assert MAX_RULES > 0 and MAX_COMPLETION_ROUNDS > 0


# =============================================================================
# LAYER 3: Enumeration (Concrete Constructions)
# =============================================================================

# Dependent products are enumerated explicitly; their size is a product of
# fiber sizes and grows very fast
MAX_CONSTRUCTION_ELEMENTS = 200_000
