"""
Formula Compilation & Evaluation
================================
Safe evaluation of rule expressions for derived attributes.
Uses simpleeval for sandboxed execution.

Expressions are parsed once when a rule is registered. Attribute references
are pulled out of the syntax tree so the evaluator knows what each rule reads,
and are renamed to generated identifiers simpleeval can resolve.

Supports:
- Arithmetic: +, -, *, /, //, %, **
- Comparisons, and/or/not, conditional expressions (a if cond else b)
- Functions: floor(), ceil(), pow(), log(), min(), max(), abs(), round(), match()
- Paths: combatNotes.dodgeFeature, skills.Stealth (rewritten to identifiers)
- attr("skills.HTH Combat"): lookup for names that are not valid Python
- source: the value of the attribute that triggered the rule
"""

import ast
import logging
import math
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Union

from simpleeval import SimpleEval

from sheetrules.engine.errors import RuleDefinitionError

logger = logging.getLogger(__name__)

SOURCE_NAME = "source"


class FormulaError(Exception):
    """An expression could not be evaluated."""


# =============================================================================
# SAFE FUNCTIONS FOR FORMULAS
# =============================================================================


def _match(pattern: str, text: Any) -> bool:
    if not isinstance(text, str):
        return False
    return re.search(pattern, text) is not None


SAFE_FUNCTIONS: Dict[str, Callable] = {
    "floor": lambda x: int(math.floor(x)),
    "ceil": lambda x: int(math.ceil(x)),
    "pow": math.pow,
    "log": math.log,
    "sqrt": math.sqrt,
    "max": max,
    "min": min,
    "abs": abs,
    "round": round,
    "int": int,
    "float": float,
    "str": str,
    "len": len,
    "match": _match,
}

# Looked up against the attribute map at evaluation time
LOOKUP_FUNCTIONS = frozenset({"attr", "has"})

RESERVED_NAMES = frozenset(SAFE_FUNCTIONS) | LOOKUP_FUNCTIONS | {SOURCE_NAME}


# =============================================================================
# COMPILATION
# =============================================================================


IDENTIFIER_PREFIX = "ref"


def _dotted_path(node: ast.AST) -> Optional[str]:
    """Return 'a.b.c' for an Attribute chain rooted at a plain Name."""
    parts = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return ".".join(reversed(parts))


class _ReferenceRewriter(ast.NodeTransformer):
    """
    Collects attribute references and renames each one to a generated
    identifier (ref0, ref1, ...). Every non-reserved name is renamed, so
    ``a.b`` and ``a_b`` stay distinct.
    """

    def __init__(self):
        self.references: Dict[str, str] = {}
        self._identifiers: Dict[str, str] = {}
        self.lookups: set = set()

    def _reference(self, path: str, node: ast.AST) -> ast.AST:
        identifier = self._identifiers.get(path)
        if identifier is None:
            identifier = f"{IDENTIFIER_PREFIX}{len(self._identifiers)}"
            self._identifiers[path] = identifier
            self.references[identifier] = path
        return ast.copy_location(ast.Name(id=identifier, ctx=getattr(node, "ctx", ast.Load())), node)

    def visit_Attribute(self, node: ast.Attribute) -> ast.AST:
        path = _dotted_path(node)
        if path is None or path.split(".", 1)[0] in RESERVED_NAMES:
            return self.generic_visit(node)
        return self._reference(path, node)

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if node.id in RESERVED_NAMES:
            return node
        return self._reference(node.id, node)

    def visit_Call(self, node: ast.Call) -> ast.AST:
        if (
            isinstance(node.func, ast.Name)
            and node.func.id in LOOKUP_FUNCTIONS
            and node.args
            and isinstance(node.args[0], ast.Constant)
            and isinstance(node.args[0].value, str)
        ):
            self.lookups.add(node.args[0].value)
        return self.generic_visit(node)


@dataclass(frozen=True)
class Formula:
    """
    A compiled rule expression.

    Attributes:
        text: The expression as written
        prepared: The expression with attribute references renamed
        references: identifier -> attribute path for every attribute read
        lookups: attribute paths read through attr()/has()
        error: Parse error message; a broken formula never contributes
    """

    text: str
    prepared: str = ""
    references: Mapping[str, str] = field(default_factory=dict)
    lookups: FrozenSet[str] = frozenset()
    error: Optional[str] = None

    @property
    def is_broken(self) -> bool:
        return self.error is not None

    @property
    def reads(self) -> FrozenSet[str]:
        """All attribute paths this formula depends on."""
        return frozenset(self.references.values()) | self.lookups

    def evaluate(self, source: Any, attributes: Mapping[str, Any]) -> Any:
        """
        Evaluate against resolved attributes.

        Raises:
            FormulaError: on any failure (parse error, unknown name, bad types)
        """
        if self.error is not None:
            raise FormulaError(self.error)

        names: Dict[str, Any] = {SOURCE_NAME: source}
        for identifier, path in self.references.items():
            value = attributes.get(path)
            if value is not None:
                names[identifier] = value

        functions = dict(SAFE_FUNCTIONS)
        functions["attr"] = lambda path, default=None: _lookup(attributes, path, default)
        functions["has"] = lambda path: attributes.get(path) is not None

        try:
            return SimpleEval(names=names, functions=functions).eval(self.prepared)
        except Exception as e:
            raise FormulaError(f"'{self.text}': {e}") from e


def _lookup(attributes: Mapping[str, Any], path: str, default: Any) -> Any:
    value = attributes.get(path)
    if value is None:
        if default is None:
            raise FormulaError(f"attribute '{path}' has no value")
        return default
    return value


def compile_formula(text: str) -> Formula:
    """
    Parse an expression into a Formula.

    Never raises: a syntax error produces a broken Formula that fails at
    evaluation time, so one bad rule cannot take down a whole rule set.

    Examples:
        >>> compile_formula("floor((source - 10) / 2)").reads
        frozenset()

        >>> sorted(compile_formula("combatNotes.dodgeFeature + level").reads)
        ['combatNotes.dodgeFeature', 'level']
    """
    if not isinstance(text, str) or not text.strip():
        return Formula(text=str(text), error="empty expression")

    try:
        tree = ast.parse(text.strip(), mode="eval")
    except SyntaxError as e:
        return Formula(text=text, error=f"syntax error: {e.msg}")

    rewriter = _ReferenceRewriter()
    tree = ast.fix_missing_locations(rewriter.visit(tree))

    return Formula(
        text=text,
        prepared=ast.unparse(tree),
        references=dict(rewriter.references),
        lookups=frozenset(rewriter.lookups),
    )


# =============================================================================
# CALLABLE EXPRESSIONS
# =============================================================================


@dataclass(frozen=True)
class CallableFormula:
    """
    A Python callable used as a rule expression.

    Called as func(source, attributes) where attributes is a read-only view of
    everything settled so far. Only the rule's source is tracked as a
    dependency; pass `reads` (or a (callable, reads) pair to define_rule) to declare
    anything else the callable looks up.
    """

    func: Callable[[Any, Mapping[str, Any]], Any]
    reads: FrozenSet[str] = frozenset()

    @property
    def text(self) -> str:
        return getattr(self.func, "__name__", repr(self.func))

    @property
    def is_broken(self) -> bool:
        return False

    def evaluate(self, source: Any, attributes: Mapping[str, Any]) -> Any:
        if not isinstance(attributes, MappingProxyType):
            attributes = MappingProxyType(attributes)
        try:
            return self.func(source, attributes)
        except Exception as e:
            raise FormulaError(f"{self.text}: {e}") from e


Expression = Union[Formula, CallableFormula]


def as_expression(expr: Any) -> Optional[Expression]:
    """
    Normalize a rule expression.

    None means "use the source value as is"; numbers become literal formulas.
    A ``(callable, reads)`` pair declares the attributes the callable looks up,
    so it only runs once they have settled.

    Raises:
        RuleDefinitionError: for a pair that is not (callable, names)
    """
    if expr is None:
        return None
    if isinstance(expr, (Formula, CallableFormula)):
        return expr
    if callable(expr):
        return CallableFormula(func=expr)
    if isinstance(expr, tuple):
        if len(expr) != 2 or not callable(expr[0]) or isinstance(expr[1], str):
            raise RuleDefinitionError(f"Expected (callable, reads), got {expr!r}")
        return CallableFormula(func=expr[0], reads=frozenset(expr[1]))
    if isinstance(expr, bool):
        return compile_formula(str(expr))
    if isinstance(expr, (int, float)):
        return compile_formula(repr(expr))
    return compile_formula(expr)


# =============================================================================
# FORMULA VALIDATION
# =============================================================================


def validate_formula(formula: str, available_paths: Optional[set] = None) -> Optional[str]:
    """
    Validate a formula for syntax and, optionally, path references.

    Args:
        formula: The formula to validate
        available_paths: If given, every attribute the formula reads must be in it

    Returns:
        Error message if invalid, None if valid
    """
    compiled = compile_formula(formula)
    if compiled.error:
        return f"Formula {compiled.error}"

    if available_paths is not None:
        missing = sorted(compiled.reads - set(available_paths))
        if missing:
            return f"Formula references unknown attributes: {', '.join(missing)}"

    return None


def extract_path_references(formula: str) -> set:
    """
    Extract attribute references from a formula.

    Returns set of paths like {"strengthModifier", "combatNotes.dodgeFeature"}
    """
    return set(compile_formula(formula).reads)
