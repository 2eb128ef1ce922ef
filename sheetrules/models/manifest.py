"""
Content Manifests
=================
JSON form of a content module: rules, notes, choices and presentation
elements declared as data instead of code.

    {
      "name": "Sample",
      "rules": [
        {"target": "strengthModifier", "source": "strength", "operator": "=",
         "expression": "floor((source - 10) / 2)"},
        {"target": "languageTotal", "pattern": "^languages\\\\.", "operator": "+="}
      ],
      "notes": ["strength:%V (%1)"],
      "choices": {"languages": ["Common", "Elven"]}
    }
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from sheetrules.engine.errors import RuleDefinitionError

logger = logging.getLogger(__name__)


class ManifestError(ValueError):
    pass


class RuleDef(BaseModel):
    """One rule. Give either `source` (attribute name, '' for always) or `pattern`."""

    target: str = Field(..., min_length=1, description="Attribute the rule contributes to")
    source: Optional[str] = Field(
        None, description="Source attribute; '' or omitted means the rule always applies"
    )
    pattern: Optional[str] = Field(
        None, description="Regular expression over attribute names, for aggregation rules"
    )
    operator: str = Field("=", description="'=', '+=', '^=', 'v=', '*=' or their bare forms")
    expression: Optional[Union[str, int, float]] = Field(
        None, description="Expression over `source`; omitted means the source value itself"
    )

    @model_validator(mode="after")
    def _one_source(self) -> "RuleDef":
        if self.source and self.pattern:
            raise ValueError(f"rule for '{self.target}' has both source and pattern")
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"rule for '{self.target}' has a bad pattern: {e}") from e
        return self

    def resolved_source(self) -> Any:
        if self.pattern is not None:
            return re.compile(self.pattern)
        return self.source or ""


class ContentManifest(BaseModel):
    """Root configuration of a data-driven content module."""

    name: str = Field(..., description="Content module name")
    version: str = Field("0.0.0")
    rules: List[RuleDef] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list, description="'attribute:template' strings")
    choices: Dict[str, List[Any]] = Field(default_factory=dict)
    sheet_elements: Dict[str, List[Any]] = Field(default_factory=dict)
    editor_elements: Dict[str, List[Any]] = Field(default_factory=dict)

    def apply_to(self, book: Any) -> None:
        """
        Declare everything in this manifest on a RuleBook or RuleSetBuilder.

        Raises:
            ManifestError: if a rule or note is rejected at declaration
        """
        try:
            for rule in self.rules:
                book.define_rule(rule.target, rule.resolved_source(), rule.operator, rule.expression)
            if self.notes:
                book.define_note(self.notes)
        except RuleDefinitionError as e:
            raise ManifestError(f"Manifest '{self.name}': {e}") from e

        for category, values in self.choices.items():
            book.define_choice(category, values)
        for name, args in self.sheet_elements.items():
            book.define_sheet_element(name, *args)
        for name, args in self.editor_elements.items():
            book.define_editor_element(name, *args)

        logger.info(f"Loaded manifest '{self.name}' {self.version}: {len(self.rules)} rules, {len(self.notes)} notes")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentManifest":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ManifestError(f"Invalid content manifest: {e}") from e

    @classmethod
    def from_json(cls, json_str: str) -> "ContentManifest":
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Manifest is not valid JSON: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path) -> "ContentManifest":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_json(f.read())

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent, exclude_defaults=True)
