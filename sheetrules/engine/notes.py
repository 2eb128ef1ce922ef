"""
Note Templates
==============
Human-readable derived text bound to an attribute.

A note is declared as ``"attributeName:template"``. When rendered, ``%V``
takes the value of ``attributeName`` and ``%N`` takes ``attributeName.N``;
placeholders whose attribute never resolved render as the empty string.

Examples:
    >>> parse_note("combatNotes.dodgeFeature:+%V AC").render({"combatNotes.dodgeFeature": 1})
    '+1 AC'

    >>> parse_note("strength:%V (%1)").render({"strength": 16})
    '16 ()'
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping

from sheetrules.engine.errors import RuleDefinitionError

PLACEHOLDER = re.compile(r"%(V|\d+)")


def format_value(value: Any) -> str:
    """Render an attribute value for display; integral floats drop the '.0'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_note(name: str, template: str, attributes: Mapping[str, Any]) -> str:
    """Substitute %V and %N placeholders in template from resolved attributes."""

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        path = name if key == "V" else f"{name}.{key}"
        return format_value(attributes.get(path))

    return PLACEHOLDER.sub(substitute, template)


@dataclass(frozen=True)
class Note:
    name: str
    template: str

    def placeholders(self) -> tuple:
        """Attribute paths the template reads, in order of appearance."""
        seen = []
        for key in PLACEHOLDER.findall(self.template):
            path = self.name if key == "V" else f"{self.name}.{key}"
            if path not in seen:
                seen.append(path)
        return tuple(seen)

    def render(self, attributes: Mapping[str, Any]) -> str:
        return format_note(self.name, self.template, attributes)

    def __str__(self) -> str:
        return f"{self.name}:{self.template}"


def parse_note(definition: str) -> Note:
    """Split 'name:template' on the first colon."""
    if not isinstance(definition, str) or ":" not in definition:
        raise RuleDefinitionError(f"Note must look like 'name:template': {definition!r}")
    name, template = definition.split(":", 1)
    if not name:
        raise RuleDefinitionError(f"Note has no attribute name: {definition!r}")
    return Note(name=name, template=template)
