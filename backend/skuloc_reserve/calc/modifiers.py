"""
Modifier Set — named auxiliary parameters scoping one channel's behaviour.

Values are a small tagged variant (numeric, text, boolean) so formulas read them
through typed accessors instead of casting arbitrary objects.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Union

from skuloc_reserve.calc.fields import CalculationFlow
from skuloc_reserve.core.exceptions import ModifierTypeError


class ModifierKind(str, Enum):
    NUMERIC = "numeric"
    TEXT = "text"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class ModifierValue:
    kind: ModifierKind
    value: Union[Decimal, str, bool]

    @classmethod
    def of(cls, raw: Any) -> "ModifierValue":
        if isinstance(raw, ModifierValue):
            return raw
        # bool is an int subclass, so it has to be classified first
        if isinstance(raw, bool):
            return cls(ModifierKind.BOOLEAN, raw)
        if isinstance(raw, Decimal):
            return cls(ModifierKind.NUMERIC, raw)
        if isinstance(raw, (int, float)):
            return cls(ModifierKind.NUMERIC, Decimal(str(raw)))
        if isinstance(raw, str):
            return cls(ModifierKind.TEXT, raw)
        raise ModifierTypeError(f"Unsupported modifier value type: {type(raw).__name__}")

    def as_decimal(self) -> Decimal:
        if self.kind is not ModifierKind.NUMERIC:
            raise ModifierTypeError(f"Expected numeric modifier, got {self.kind.value}")
        return self.value

    def as_text(self) -> str:
        if self.kind is not ModifierKind.TEXT:
            raise ModifierTypeError(f"Expected text modifier, got {self.kind.value}")
        return self.value

    def as_bool(self) -> bool:
        if self.kind is not ModifierKind.BOOLEAN:
            raise ModifierTypeError(f"Expected boolean modifier, got {self.kind.value}")
        return self.value


class ModifierSet:
    """
    Immutable bag of modifiers for one channel.

    Everything is supplied at construction; there are no mutators, so steps can
    share the set freely during evaluation.
    """

    def __init__(self, channel: Union[CalculationFlow, str], modifiers: Optional[Mapping[str, Any]] = None):
        self.channel = CalculationFlow(channel)
        self._modifiers = MappingProxyType(
            {str(key): ModifierValue.of(value) for key, value in (modifiers or {}).items()}
        )

    @classmethod
    def empty(cls, channel: Union[CalculationFlow, str]) -> "ModifierSet":
        return cls(channel)

    def get(self, key: str) -> Optional[ModifierValue]:
        return self._modifiers.get(key)

    def has(self, key: str) -> bool:
        return key in self._modifiers

    def decimal(self, key: str, default: Decimal = Decimal("0")) -> Decimal:
        value = self._modifiers.get(key)
        return default if value is None else value.as_decimal()

    def text(self, key: str, default: str = "") -> str:
        value = self._modifiers.get(key)
        return default if value is None else value.as_text()

    def flag(self, key: str, default: bool = False) -> bool:
        value = self._modifiers.get(key)
        return default if value is None else value.as_bool()

    @property
    def values(self) -> Mapping[str, ModifierValue]:
        return self._modifiers

    def __iter__(self) -> Iterator[str]:
        return iter(self._modifiers)

    def __len__(self) -> int:
        return len(self._modifiers)

    def __repr__(self) -> str:
        return f"ModifierSet(channel={self.channel.value}, keys={sorted(self._modifiers)})"
