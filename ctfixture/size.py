"""Byte sizes used for container memory limits."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import ConfigurationError


class Unit(Enum):
    BYTES = "b"
    KB = "k"
    MB = "m"
    GB = "g"

    @property
    def multiplier(self) -> int:
        return {
            Unit.BYTES: 1,
            Unit.KB: 1024,
            Unit.MB: 1024**2,
            Unit.GB: 1024**3,
        }[self]


# "512m", "1.5g", "64mb", "100b" or a plain byte count
_SIZE_PATTERN = re.compile(r"^(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[a-z]*)$")


@dataclass(frozen=True)
class Size:
    """A size expressed in binary multiples of bytes."""

    value: float
    unit: Unit = Unit.BYTES

    @classmethod
    def from_bytes(cls, value: float) -> "Size":
        return cls(value, Unit.BYTES)

    @classmethod
    def from_kb(cls, value: float) -> "Size":
        return cls(value, Unit.KB)

    @classmethod
    def from_mb(cls, value: float) -> "Size":
        return cls(value, Unit.MB)

    @classmethod
    def from_gb(cls, value: float) -> "Size":
        return cls(value, Unit.GB)

    @classmethod
    def parse(cls, spec: str) -> "Size":
        """Parse a size string such as ``512m`` or ``1.5g``.

        The unit is one of ``b``, ``k``, ``m`` or ``g`` and may be followed
        by a trailing ``b`` (``64mb``). A bare number is a byte count.

        Raises:
            ConfigurationError: If the string is empty or the unit unknown
        """
        text = spec.strip().lower()
        match = _SIZE_PATTERN.match(text)
        if not match:
            raise ConfigurationError(f"Invalid size: {spec!r}")

        unit_text = match.group("unit")
        if len(unit_text) == 2 and unit_text.endswith("b"):
            unit_text = unit_text[0]
        if unit_text == "":
            unit_text = "b"

        try:
            unit = Unit(unit_text)
        except ValueError:
            raise ConfigurationError(
                f"Invalid unit {unit_text!r} in size {spec!r}. Only b, k, m, g are supported."
            ) from None

        return cls(float(match.group("value")), unit)

    @classmethod
    def coerce(cls, value: Union["Size", str, int]) -> "Size":
        """Accept a Size, a size string or a plain byte count."""
        if isinstance(value, Size):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.from_bytes(value)
        raise ConfigurationError(f"Invalid size: {value!r}")

    def to_bytes(self) -> int:
        return int(self.value * self.unit.multiplier)

    def __int__(self) -> int:
        return self.to_bytes()

    def __str__(self) -> str:
        value = int(self.value) if float(self.value).is_integer() else self.value
        return f"{value}{self.unit.value}"
