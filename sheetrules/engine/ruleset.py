"""
Rule Storage & Registration
===========================
Two-phase lifecycle for rule sets.

1.  **Declaration:** a RuleSetBuilder accumulates rules, notes, choices and
    presentation elements, in call order.
2.  **Frozen:** ``builder.freeze()`` produces an immutable RuleSet that the
    Evaluator reads. Freezing again after more declarations produces a new
    RuleSet; existing ones never change.

Usage:
    builder = RuleSetBuilder("HybridD20")
    builder.define_rule("strengthModifier", "strength", "=", "floor((source - 10) / 2)")
    builder.define_rule("meleeAttack", "strengthModifier", "+=", None)
    rules = builder.freeze()
"""

import logging
from collections import deque
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from sheetrules.engine.choices import ChoiceRegistry
from sheetrules.engine.errors import RuleDefinitionError
from sheetrules.engine.formula import Expression, as_expression
from sheetrules.engine.notes import Note, parse_note
from sheetrules.engine.operators import Operator
from sheetrules.engine.sources import AttributeSource, FamilySource, as_source

logger = logging.getLogger(__name__)


# =============================================================================
# RULE
# =============================================================================


@dataclass(frozen=True, eq=False)
class Rule:
    """
    One (source, operator, expression) contribution to a target attribute.

    Attributes:
        order: Registration index across the whole rule set
        target: Attribute this rule contributes to
        source: AlwaysSource, AttributeSource or FamilySource
        operator: How the contribution combines with the accumulator
        expression: Compiled expression; None means the source value itself
    """

    order: int
    target: str
    source: Any
    operator: Operator
    expression: Optional[Expression] = None

    @property
    def is_broken(self) -> bool:
        return self.expression is not None and self.expression.is_broken

    @property
    def is_family(self) -> bool:
        return isinstance(self.source, FamilySource)

    def static_reads(self) -> Set[str]:
        """Attributes read regardless of which names exist at evaluation time."""
        reads = set()
        if isinstance(self.source, AttributeSource):
            reads.add(self.source.name)
        if self.expression is not None:
            reads.update(self.expression.reads)
        return reads

    def source_values(self, attributes: Mapping[str, Any], known: Iterable[str]) -> Iterator[Any]:
        return self.source.values(attributes, known, self.target)

    def contribution(self, source_value: Any, attributes: Mapping[str, Any]) -> Any:
        """
        Value this rule contributes for one source value. Expressions only
        ever see a read-only view of attributes.

        Raises:
            FormulaError: if the expression fails
        """
        if self.expression is None:
            return source_value
        if not isinstance(attributes, MappingProxyType):
            attributes = MappingProxyType(attributes)
        return self.expression.evaluate(source_value, attributes)

    def __str__(self) -> str:
        expr = "null" if self.expression is None else self.expression.text
        return f"{self.target} <- {self.source} {self.operator.value} {expr}"


# =============================================================================
# FROZEN RULE SET
# =============================================================================


class RuleSet:
    """Immutable, evaluation-ready collection of rules, notes and choices."""

    def __init__(
        self,
        name: str,
        rules: Sequence[Rule],
        notes: Mapping[str, Note],
        choices: ChoiceRegistry,
        sheet_elements: Mapping[str, Tuple[Any, ...]],
        editor_elements: Mapping[str, Tuple[Any, ...]],
    ):
        self.name = name
        self._rules: Tuple[Rule, ...] = tuple(rules)

        by_target: Dict[str, List[Rule]] = {}
        for rule in self._rules:
            by_target.setdefault(rule.target, []).append(rule)
        self._by_target = MappingProxyType({t: tuple(rs) for t, rs in by_target.items()})
        # Targets with a base (=) rule always recompute from scratch
        self._based = frozenset(
            t for t, rs in self._by_target.items() if any(r.operator is Operator.SET for r in rs)
        )

        # Dependencies that do not depend on which names are present
        static: Dict[str, frozenset] = {}
        families: Dict[str, Tuple[FamilySource, ...]] = {}
        for target, target_rules in self._by_target.items():
            reads: Set[str] = set()
            for rule in target_rules:
                reads.update(rule.static_reads())
            reads.discard(target)
            static[target] = frozenset(reads)
            families[target] = tuple(r.source for r in target_rules if r.is_family)
        self._static_reads = MappingProxyType(static)
        self._families = MappingProxyType(families)

        self._notes = MappingProxyType(dict(notes))
        self._choices = choices.copy()
        self._sheet_elements = MappingProxyType(dict(sheet_elements))
        self._editor_elements = MappingProxyType(dict(editor_elements))

    # --- Rules -----------------------------------------------------------------

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    @property
    def targets(self) -> Tuple[str, ...]:
        """Every rule target, in order of first registration."""
        return tuple(self._by_target)

    def rules_for(self, target: str) -> Tuple[Rule, ...]:
        return self._by_target.get(target, ())

    def is_target(self, name: str) -> bool:
        return name in self._by_target

    def accepts_input(self, target: str) -> bool:
        """True when an input value for target is its starting value (no = rule)."""
        return target not in self._based

    @property
    def broken_rules(self) -> List[Rule]:
        return [r for r in self._rules if r.is_broken]

    # --- Notes, choices, presentation -----------------------------------------

    @property
    def notes(self) -> Mapping[str, Note]:
        return self._notes

    def note(self, name: str) -> Optional[Note]:
        return self._notes.get(name)

    def get_choices(self, category: str) -> Tuple[Any, ...]:
        return self._choices.get(category)

    @property
    def choice_categories(self) -> List[str]:
        return self._choices.categories()

    @property
    def sheet_elements(self) -> Mapping[str, Tuple[Any, ...]]:
        return self._sheet_elements

    @property
    def editor_elements(self) -> Mapping[str, Tuple[Any, ...]]:
        return self._editor_elements

    # --- Dependency graph ------------------------------------------------------

    def direct_dependencies(self, target: str, known: Optional[Iterable[str]] = None) -> Set[str]:
        """
        Attributes a target reads: rule sources, family matches and names its
        expressions reference.

        Args:
            target: The rule target
            known: Names family sources are matched against (defaults to targets)
        """
        deps = set(self._static_reads.get(target, ()))
        families = self._families.get(target, ())
        if families:
            names = list(self._by_target) if known is None else list(known)
            for family in families:
                deps.update(family.names(names, target))
        return deps

    def _graph(self, extra: Iterable[str] = ()) -> Dict[str, Set[str]]:
        known = list(dict.fromkeys([*self._by_target, *extra]))
        return {t: self.direct_dependencies(t, known) for t in self._by_target}

    def dependencies(self, name: str) -> Set[str]:
        """Every attribute the value of name transitively depends on."""
        graph = self._graph([name])
        seen: Set[str] = set()
        queue = deque(graph.get(name, ()))
        while queue:
            current = queue.popleft()
            if current in seen or current == name:
                continue
            seen.add(current)
            queue.extend(graph.get(current, ()))
        return seen

    def dependents(self, name: str) -> Set[str]:
        """Every target whose value can change when name changes."""
        reverse: Dict[str, Set[str]] = {}
        for target, deps in self._graph([name]).items():
            for dep in deps:
                reverse.setdefault(dep, set()).add(target)
        seen: Set[str] = set()
        queue = deque(reverse.get(name, ()))
        while queue:
            current = queue.popleft()
            if current in seen or current == name:
                continue
            seen.add(current)
            queue.extend(reverse.get(current, ()))
        return seen

    def cyclic_targets(self) -> List[str]:
        """
        Targets that can never settle because they sit on, or behind, a cycle
        among rule targets (Kahn's algorithm leftovers).
        """
        graph = {t: {d for d in deps if d in self._by_target} for t, deps in self._graph().items()}
        in_degree = {t: len(deps) for t, deps in graph.items()}
        reverse: Dict[str, List[str]] = {}
        for target, deps in graph.items():
            for dep in deps:
                reverse.setdefault(dep, []).append(target)

        queue = deque(t for t, n in in_degree.items() if n == 0)
        done = set()
        while queue:
            node = queue.popleft()
            done.add(node)
            for neighbor in reverse.get(node, ()):
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)

        return [t for t in self._by_target if t not in done]

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleSet({self.name!r}, rules={len(self._rules)}, targets={len(self._by_target)})"


# =============================================================================
# BUILDER
# =============================================================================


class RuleSetBuilder:
    """Accumulates declarations; nothing is evaluated until freeze()."""

    def __init__(self, name: str = "rules"):
        self.name = name
        self._rules: List[Rule] = []
        self._notes: Dict[str, Note] = {}
        self._choices = ChoiceRegistry()
        self._sheet_elements: Dict[str, Tuple[Any, ...]] = {}
        self._editor_elements: Dict[str, Tuple[Any, ...]] = {}
        self.revision = 0

    def define_rule(self, target: str, *triples: Any) -> List[Rule]:
        """
        Append one rule per (source, operator, expression) triple.

        Calling again for the same target appends further rules; combination
        order is registration order across all calls.

        Raises:
            RuleDefinitionError: empty target, triples not a multiple of three,
                unknown operator or unsupported source type
        """
        if not target or not isinstance(target, str):
            raise RuleDefinitionError(f"Rule target must be a non-empty string: {target!r}")
        if not triples or len(triples) % 3 != 0:
            raise RuleDefinitionError(
                f"Rule for '{target}' needs (source, operator, expression) triples, got {len(triples)} values"
            )

        added = []
        for i in range(0, len(triples), 3):
            source, symbol, expr = triples[i : i + 3]
            rule = Rule(
                order=len(self._rules) + len(added),
                target=target,
                source=as_source(source),
                operator=Operator.parse(symbol),
                expression=as_expression(expr),
            )
            if rule.is_broken:
                logger.warning(f"Rule {rule} will never contribute: {rule.expression.error}")
            added.append(rule)

        self._rules.extend(added)
        self.revision += 1
        return added

    def define_note(self, *definitions: Any) -> List[Note]:
        """Register 'name:template' notes; a later note for a name replaces the earlier one."""
        added = []
        for definition in definitions:
            items = definition if isinstance(definition, (list, tuple)) else [definition]
            for item in items:
                note = parse_note(item)
                self._notes[note.name] = note
                added.append(note)
        self.revision += 1
        return added

    def define_choice(self, category: str, *values: Any) -> None:
        self._choices.define(category, *values)
        self.revision += 1

    def get_choices(self, category: str) -> Tuple[Any, ...]:
        return self._choices.get(category)

    def define_sheet_element(self, name: str, *args: Any) -> None:
        """Store opaque sheet layout metadata; no args removes the element."""
        _define_element(self._sheet_elements, name, args)
        self.revision += 1

    def define_editor_element(self, name: str, *args: Any) -> None:
        """Store opaque editor layout metadata; no args removes the element."""
        _define_element(self._editor_elements, name, args)
        self.revision += 1

    def freeze(self) -> RuleSet:
        ruleset = RuleSet(
            name=self.name,
            rules=self._rules,
            notes=self._notes,
            choices=self._choices,
            sheet_elements=self._sheet_elements,
            editor_elements=self._editor_elements,
        )
        cyclic = ruleset.cyclic_targets()
        if cyclic:
            logger.warning(
                f"Rule set '{self.name}' has {len(cyclic)} targets that can never resolve "
                f"(cycle): {', '.join(cyclic[:10])}"
            )
        logger.debug(f"Froze rule set '{self.name}': {len(ruleset)} rules, {len(ruleset.targets)} targets")
        return ruleset


def _define_element(elements: Dict[str, Tuple[Any, ...]], name: str, args: Tuple[Any, ...]) -> None:
    if not name:
        raise RuleDefinitionError("Element name must be non-empty")
    if args:
        elements[name] = tuple(args)
    else:
        elements.pop(name, None)
