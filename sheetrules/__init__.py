"""
sheetrules
==========
Rule engine for character-sheet generators: content modules declare how
attributes derive from one another, the engine resolves a character's full
attribute set and renders its notes.
"""

from sheetrules.config import EngineSettings
from sheetrules.engine import (
    Evaluation,
    Evaluator,
    FamilySource,
    Operator,
    RuleDefinitionError,
    RuleSet,
    RuleSetBuilder,
)
from sheetrules.rulebook import RuleBook

__version__ = "0.1.0"

__all__ = [
    "EngineSettings",
    "Evaluation",
    "Evaluator",
    "FamilySource",
    "Operator",
    "RuleBook",
    "RuleDefinitionError",
    "RuleSet",
    "RuleSetBuilder",
]
