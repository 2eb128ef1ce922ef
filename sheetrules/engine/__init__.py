"""
Engine Package
==============
Dependency-driven attribute computation for character sheets.

A rule says: "target gets <expression> combined by <operator> whenever
<source> has a value". Rules are declared on a RuleSetBuilder, frozen into a
RuleSet and evaluated to a fixed point by an Evaluator.
"""

from sheetrules.engine.errors import RuleDefinitionError

from sheetrules.engine.formula import (
    Formula,
    CallableFormula,
    FormulaError,
    SAFE_FUNCTIONS,
    compile_formula,
    validate_formula,
    extract_path_references,
)

from sheetrules.engine.operators import Operator, UNSET

from sheetrules.engine.sources import (
    AlwaysSource,
    AttributeSource,
    FamilySource,
    as_source,
)

from sheetrules.engine.notes import Note, parse_note, format_note, format_value

from sheetrules.engine.choices import ChoiceRegistry

from sheetrules.engine.ruleset import Rule, RuleSet, RuleSetBuilder

from sheetrules.engine.evaluator import Evaluation, Evaluator, RuleFailure

__all__ = [
    # Errors
    "RuleDefinitionError",
    "FormulaError",

    # Expressions
    "Formula",
    "CallableFormula",
    "SAFE_FUNCTIONS",
    "compile_formula",
    "validate_formula",
    "extract_path_references",

    # Rule parts
    "Operator",
    "UNSET",
    "AlwaysSource",
    "AttributeSource",
    "FamilySource",
    "as_source",

    # Notes & choices
    "Note",
    "parse_note",
    "format_note",
    "format_value",
    "ChoiceRegistry",

    # Lifecycle
    "Rule",
    "RuleSet",
    "RuleSetBuilder",
    "Evaluation",
    "Evaluator",
    "RuleFailure",
]
