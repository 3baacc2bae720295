"""
Type Coercion Registry.

Maps declared workload property types to parsers that turn a raw CSV field
into the value written to the store.

Declared types are plain strings:
- scalars: integer, long, text, date, decimal, double, biginteger
- arrays of a scalar: ``array<text>`` or ``text[]``

Dates cross the store boundary as integer epoch milliseconds.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from dateutil.parser import isoparse

from ..errors import UnsupportedType


ARRAY_DELIMITER = ";"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_INT32 = (-(2 ** 31), 2 ** 31 - 1)
_INT64 = (-(2 ** 63), 2 ** 63 - 1)

_ARRAY_PATTERNS = (
    re.compile(r"^array<\s*(\w+)\s*>$", re.IGNORECASE),
    re.compile(r"^(\w+)\s*\[\]$"),
)

TYPE_ALIASES = {
    "int": "integer",
    "string": "text",
    "str": "text",
    "bigint": "biginteger",
    "float": "double",
}


class Cardinality(str, Enum):
    SINGLE = "single"
    LIST = "list"


@dataclass(frozen=True)
class PropertyType:
    """A parsed declared property type."""
    name: str
    is_array: bool = False

    @classmethod
    def parse(cls, declared: str) -> "PropertyType":
        """Parse a declared type string such as ``long`` or ``array<text>``."""
        text = str(declared).strip()
        if not text:
            raise ValueError("Empty property type")
        for pattern in _ARRAY_PATTERNS:
            match = pattern.match(text)
            if match:
                return cls(_canonical(match.group(1)), is_array=True)
        if not re.match(r"^\w+$", text):
            raise ValueError(f"Malformed property type: {declared!r}")
        return cls(_canonical(text))

    @property
    def store_datatype(self) -> str:
        """Datatype used for the property key; dates are stored as longs."""
        return "long" if self.name == "date" else self.name

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.LIST if self.is_array else Cardinality.SINGLE

    def element(self) -> "PropertyType":
        return PropertyType(self.name)

    def __str__(self) -> str:
        return f"array<{self.name}>" if self.is_array else self.name


def _canonical(name: str) -> str:
    lowered = name.lower()
    return TYPE_ALIASES.get(lowered, lowered)


# ──────────────────────────────────────────────────────────────────────────────
# Scalar parsers (raw string → typed value)
# ──────────────────────────────────────────────────────────────────────────────

def _bounded_int(raw: str, bounds, type_name: str) -> int:
    value = int(raw.strip())
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{raw!r} out of range for {type_name}")
    return value


def parse_integer(raw: str) -> int:
    return _bounded_int(raw, _INT32, "integer")


def parse_long(raw: str) -> int:
    return _bounded_int(raw, _INT64, "long")


def parse_biginteger(raw: str) -> int:
    return int(raw.strip())


def parse_text(raw: str) -> str:
    return raw


def parse_decimal(raw: str) -> Decimal:
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"invalid decimal {raw!r}") from None


def parse_double(raw: str) -> float:
    return float(raw)


def parse_date(raw: str) -> int:
    """
    Parse a date into epoch milliseconds.

    Accepts epoch milliseconds, ``YYYY-MM-DD`` (UTC midnight) and ISO
    datetimes with or without an offset (``2010-03-13T02:10:23.099+0000``).
    Naive values are taken as UTC.
    """
    text = raw.strip()
    if text.lstrip("-").isdigit():
        return int(text)
    moment = isoparse(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def epoch_millis_to_datetime(millis: int) -> datetime:
    """Inverse of parse_date for values read back from the store."""
    return EPOCH + timedelta(milliseconds=millis)


DEFAULT_PARSERS: Dict[str, Callable[[str], Any]] = {
    "integer": parse_integer,
    "long": parse_long,
    "text": parse_text,
    "date": parse_date,
    "decimal": parse_decimal,
    "double": parse_double,
    "biginteger": parse_biginteger,
}


class TypeRegistry:
    """
    Injectable table of supported property types.

    The default table covers the scalar types the store can index. Tests
    and callers can build narrower tables with ``without``.
    """

    def __init__(self, parsers: Optional[Mapping[str, Callable[[str], Any]]] = None):
        self._parsers = dict(DEFAULT_PARSERS if parsers is None else parsers)

    def without(self, *names: str) -> "TypeRegistry":
        return TypeRegistry({k: v for k, v in self._parsers.items() if k not in names})

    def parser_for(self, ptype: PropertyType) -> Callable[[str], Any]:
        """Return the raw-field parser for a type; arrays split on ``;``."""
        try:
            scalar = self._parsers[ptype.name]
        except KeyError:
            raise UnsupportedType(
                f"Type {ptype} unsupported, expected one of {sorted(self._parsers)}"
            ) from None
        if not ptype.is_array:
            return scalar

        def parse_array(raw: str) -> list:
            return [scalar(item) for item in raw.split(ARRAY_DELIMITER) if item != ""]

        return parse_array


def parse_types(declared: Mapping[str, str]) -> Dict[str, PropertyType]:
    """Parse a name → declared-type mapping, preserving order."""
    return {name: PropertyType.parse(decl) for name, decl in declared.items()}
