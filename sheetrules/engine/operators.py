"""
Combination operators for rule contributions.
"""

from enum import Enum
from typing import Any

from sheetrules.engine.errors import RuleDefinitionError


class _Unset:
    """Marker for a target that has not received a value yet."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


class Operator(str, Enum):
    """
    How a rule's value combines with the target's accumulated value.

    Every operator starts from its identity, so a target with no value yet
    simply takes the first contribution. SET is the exception: once a target
    holds a value, later SET rules are no-ops.
    """

    SET = "="
    ADD = "+="
    MAX = "^="
    MIN = "v="
    MULTIPLY = "*="

    @classmethod
    def parse(cls, symbol: Any) -> "Operator":
        if isinstance(symbol, Operator):
            return symbol
        try:
            return _SYMBOLS[symbol]
        except (KeyError, TypeError):
            raise RuleDefinitionError(f"Unknown rule operator: {symbol!r}") from None

    def combine(self, current: Any, value: Any) -> Any:
        """
        Fold one contribution into the accumulator.

        Raises:
            TypeError: if the values cannot be combined (e.g. str + int)
        """
        if current is UNSET:
            return value
        if self is Operator.SET:
            return current
        if self is Operator.ADD:
            return current + value
        if self is Operator.MAX:
            return value if value > current else current
        if self is Operator.MIN:
            return value if value < current else current
        return current * value


_SYMBOLS = {
    "=": Operator.SET,
    "+=": Operator.ADD,
    "+": Operator.ADD,
    "^=": Operator.MAX,
    "^": Operator.MAX,
    "v=": Operator.MIN,
    "v": Operator.MIN,
    "*=": Operator.MULTIPLY,
    "*": Operator.MULTIPLY,
}
