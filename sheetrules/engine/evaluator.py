"""
Rule Evaluation
===============
Resolves every derived attribute reachable from a set of input attributes.

Pipeline Steps:
1.  **Seed:** Input values (None means absent) start the attribute map. An input
    for a rule target is that target's starting value only when the target has
    no = rule; targets with a base rule recompute from scratch, so feeding an
    evaluation's output back in does not count contributions twice. If none
    of a target's rules fire, an input value for it is kept.
2.  **Fixed Point:** Passes over the pending targets. A target is ready once
    none of the attributes it reads is still pending; it is then resolved and
    settled. Passes repeat until a pass settles nothing.
3.  **Accumulate:** A ready target folds the contributions of its rules in
    registration order, each through its operator.
4.  **Notes:** Templates are rendered from the settled attribute map.

Targets that never become ready (cycles, or behind cycles) stay unset and are
reported in ``Evaluation.unresolved``. Rules whose expression fails contribute
nothing and are reported in ``Evaluation.failures``. Evaluation never raises.

Usage:
    result = Evaluator(ruleset).apply_rules({"strength": 16})
    result.attributes["strengthModifier"]  # 3
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from sheetrules.config import EngineSettings
from sheetrules.engine.formula import FormulaError
from sheetrules.engine.operators import UNSET
from sheetrules.engine.ruleset import Rule, RuleSet

logger = logging.getLogger(__name__)


@dataclass
class RuleFailure:
    target: str
    rule: str
    error: str


@dataclass
class Evaluation:
    """Outcome of one apply_rules() call."""

    attributes: Dict[str, Any]
    notes: Dict[str, str] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)
    failures: List[RuleFailure] = field(default_factory=list)
    passes: int = 0

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self.attributes[name]

    def __contains__(self, name: str) -> bool:
        return name in self.attributes


class Evaluator:
    """Stateless evaluator over a frozen RuleSet; safe to call repeatedly."""

    def __init__(self, ruleset: RuleSet, settings: Optional[EngineSettings] = None):
        self.ruleset = ruleset
        self.settings = settings or EngineSettings()

    def apply_rules(self, inputs: Mapping[str, Any]) -> Evaluation:
        attributes: Dict[str, Any] = {k: v for k, v in inputs.items() if v is not None}
        view = MappingProxyType(attributes)
        failures: List[RuleFailure] = []

        targets = self.ruleset.targets
        known = list(dict.fromkeys([*attributes, *targets]))

        pending: Dict[str, set] = {}
        for target in targets:
            deps = self.ruleset.direct_dependencies(target, known)
            pending[target] = {d for d in deps if self.ruleset.is_target(d)}

        passes = 0
        while pending and passes < self.settings.max_passes:
            passes += 1
            settled = 0
            for target in list(pending):
                if any(dep in pending for dep in pending[target]):
                    continue
                self._resolve(target, attributes, view, known, failures)
                del pending[target]
                settled += 1
            if not settled:
                break

        unresolved = list(pending)
        if unresolved:
            if passes >= self.settings.max_passes:
                logger.warning(
                    f"Evaluation stopped after {passes} passes with {len(unresolved)} targets pending"
                )
            else:
                logger.debug(f"{len(unresolved)} targets never became ready: {', '.join(unresolved[:10])}")

        logger.debug(
            f"Evaluated '{self.ruleset.name}': {len(targets) - len(unresolved)}/{len(targets)} "
            f"targets settled in {passes} passes, {len(failures)} rule failures"
        )

        return Evaluation(
            attributes=attributes,
            notes=self.render_notes(attributes),
            unresolved=unresolved,
            failures=failures,
            passes=passes,
        )

    def _resolve(
        self,
        target: str,
        attributes: Dict[str, Any],
        view: Mapping[str, Any],
        known: List[str],
        failures: List[RuleFailure],
    ) -> None:
        if self.ruleset.accepts_input(target):
            value = attributes.get(target, UNSET)
        else:
            value = UNSET
        for rule in self.ruleset.rules_for(target):
            for source_value in rule.source_values(attributes, known):
                try:
                    contribution = rule.contribution(source_value, view)
                    if contribution is None:
                        continue
                    value = rule.operator.combine(value, self._normalize(contribution))
                except (FormulaError, TypeError) as e:
                    self._record_failure(rule, e, failures)
        if value is not UNSET:
            attributes[target] = value

    def _normalize(self, value: Any) -> Any:
        if self.settings.normalize_numbers and isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    @staticmethod
    def _record_failure(rule: Rule, error: Exception, failures: List[RuleFailure]) -> None:
        logger.debug(f"Rule {rule} contributed nothing: {error}")
        failures.append(RuleFailure(target=rule.target, rule=str(rule), error=str(error)))

    def render_notes(self, attributes: Mapping[str, Any]) -> Dict[str, str]:
        """Render every note whose own attribute has a value."""
        return {
            name: note.render(attributes)
            for name, note in self.ruleset.notes.items()
            if attributes.get(name) is not None
        }

    def render_note(self, name: str, attributes: Mapping[str, Any]) -> Optional[str]:
        """Render one note regardless of whether its attribute resolved."""
        note = self.ruleset.note(name)
        return note.render(attributes) if note else None
