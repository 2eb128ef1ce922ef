"""
Rule sources: what makes a rule fire.

AlwaysSource fires once per evaluation with no source value. AttributeSource
fires when its attribute has a value. FamilySource aggregates over every
attribute whose name matches a pattern (e.g. all ``languages.*`` entries),
firing once per matching attribute that has a value.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Pattern, Tuple

from sheetrules.engine.errors import RuleDefinitionError


@dataclass(frozen=True)
class AlwaysSource:
    def names(self, known: Iterable[str], target: str) -> Tuple[str, ...]:
        return ()

    def values(self, attributes: Mapping[str, Any], known: Iterable[str], target: str) -> Iterator[Any]:
        yield None

    def __str__(self) -> str:
        return "''"


@dataclass(frozen=True)
class AttributeSource:
    name: str

    def names(self, known: Iterable[str], target: str) -> Tuple[str, ...]:
        return (self.name,)

    def values(self, attributes: Mapping[str, Any], known: Iterable[str], target: str) -> Iterator[Any]:
        value = attributes.get(self.name)
        if value is not None:
            yield value

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class FamilySource:
    """Matches attribute names with ``pattern.search``; never matches the target itself."""

    pattern: Pattern

    @classmethod
    def prefix(cls, prefix: str) -> "FamilySource":
        return cls(re.compile("^" + re.escape(prefix)))

    def matches(self, name: str, target: str) -> bool:
        return name != target and self.pattern.search(name) is not None

    def names(self, known: Iterable[str], target: str) -> Tuple[str, ...]:
        return tuple(sorted(n for n in known if self.matches(n, target)))

    def values(self, attributes: Mapping[str, Any], known: Iterable[str], target: str) -> Iterator[Any]:
        for name in self.names(known, target):
            value = attributes.get(name)
            if value is not None:
                yield value

    def __str__(self) -> str:
        return f"/{self.pattern.pattern}/"


Source = (AlwaysSource, AttributeSource, FamilySource)


def as_source(source: Any):
    """
    Normalize what a caller passes as a rule source.

    '' and None mean "always", a str is an attribute name, a compiled regular
    expression is a family of attribute names.
    """
    if isinstance(source, Source):
        return source
    if source is None or source == "":
        return AlwaysSource()
    if isinstance(source, str):
        return AttributeSource(source)
    if isinstance(source, re.Pattern):
        return FamilySource(source)
    raise RuleDefinitionError(f"Unsupported rule source: {source!r}")
