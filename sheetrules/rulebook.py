"""
RuleBook: the registration and evaluation surface a content module talks to.

Declarations go to a RuleSetBuilder. The first evaluation after any
declaration freezes a new RuleSet, so content that registers more rules
between evaluations keeps working.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sheetrules.config import EngineSettings
from sheetrules.engine.evaluator import Evaluation, Evaluator
from sheetrules.engine.notes import Note
from sheetrules.engine.ruleset import Rule, RuleSet, RuleSetBuilder

logger = logging.getLogger(__name__)


class RuleBook:
    def __init__(self, name: str, version: str = "0.0.0", settings: Optional[EngineSettings] = None):
        self.name = name
        self.version = version
        self.settings = settings or EngineSettings()
        self._builder = RuleSetBuilder(name)
        self._frozen_at = -1
        self._evaluator: Optional[Evaluator] = None

    # --- Declaration -------------------------------------------------------------

    def define_rule(self, target: str, *triples: Any) -> List[Rule]:
        return self._builder.define_rule(target, *triples)

    def define_note(self, *definitions: Any) -> List[Note]:
        return self._builder.define_note(*definitions)

    def define_choice(self, category: str, *values: Any) -> None:
        self._builder.define_choice(category, *values)

    def define_sheet_element(self, name: str, *args: Any) -> None:
        self._builder.define_sheet_element(name, *args)

    def define_editor_element(self, name: str, *args: Any) -> None:
        self._builder.define_editor_element(name, *args)

    def get_choices(self, category: str) -> Tuple[Any, ...]:
        return self._builder.get_choices(category)

    # --- Evaluation --------------------------------------------------------------

    @property
    def ruleset(self) -> RuleSet:
        return self.evaluator.ruleset

    @property
    def evaluator(self) -> Evaluator:
        if self._evaluator is None or self._frozen_at != self._builder.revision:
            self._evaluator = Evaluator(self._builder.freeze(), self.settings)
            self._frozen_at = self._builder.revision
        return self._evaluator

    def evaluate(self, inputs: Mapping[str, Any]) -> Evaluation:
        return self.evaluator.apply_rules(inputs)

    def apply_rules(self, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        """Resolved attribute map for a character's input attributes."""
        return self.evaluate(inputs).attributes

    def render_note(self, name: str, attributes: Mapping[str, Any]) -> Optional[str]:
        return self.evaluator.render_note(name, attributes)

    def __repr__(self) -> str:
        return f"RuleBook({self.name!r}, version={self.version!r})"
