"""
Choice registry: named, ordered lists of valid values for selectable fields
(feats, powers, races, skills, languages). Pure configuration.
"""

from typing import Any, Dict, Iterable, List, Tuple


def _flatten(values: Iterable[Any]) -> List[Any]:
    flat = []
    for value in values:
        if isinstance(value, (list, tuple)):
            flat.extend(value)
        else:
            flat.append(value)
    return flat


class ChoiceRegistry:
    def __init__(self):
        # dict keys keep insertion order and drop duplicates
        self._choices: Dict[str, Dict[Any, None]] = {}

    def define(self, category: str, *values: Any) -> None:
        bucket = self._choices.setdefault(category, {})
        for value in _flatten(values):
            bucket[value] = None

    def get(self, category: str) -> Tuple[Any, ...]:
        return tuple(self._choices.get(category, ()))

    def categories(self) -> List[str]:
        return list(self._choices)

    def __contains__(self, category: str) -> bool:
        return category in self._choices

    def copy(self) -> "ChoiceRegistry":
        clone = ChoiceRegistry()
        clone._choices = {k: dict(v) for k, v in self._choices.items()}
        return clone

    def to_dict(self) -> Dict[str, List[Any]]:
        return {k: list(v) for k, v in self._choices.items()}
