"""JSON value model used by the comparison engine.

Values are plain Python JSON types with two additions: numbers are wrapped in
``Number`` so their exact lexical form survives parsing, and ``ABSENT`` marks a
value that is structurally not present (as opposed to JSON ``null``).
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class _Absent:
    """Singleton marker for a value that does not exist at a path."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


@dataclass(frozen=True)
class Number:
    """A JSON number compared by its raw text, so ``1.0`` and ``1.00`` differ."""

    raw: str

    @property
    def value(self) -> int | float:
        try:
            return int(self.raw)
        except ValueError:
            return float(self.raw)

    def __str__(self) -> str:
        return self.raw


class ValueKind(StrEnum):
    """JSON value kind."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


def kind_of(value: Any) -> ValueKind:
    """Classify a JSON value. ``ABSENT`` has no kind and raises ``TypeError``."""
    if value is None:
        return ValueKind.NULL
    # bool before Number: True is not a number in JSON
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, Number):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.ARRAY
    if isinstance(value, dict):
        return ValueKind.OBJECT
    raise TypeError(f"Not a JSON value: {value!r}")


def load_json(text: str) -> Any:
    """Parse JSON text, keeping every number's lexical form."""
    return json.loads(text, parse_int=Number, parse_float=Number)


def from_python(obj: Any) -> Any:
    """Convert decoded Python data (e.g. an SDK payload) into the value model."""
    if obj is None or isinstance(obj, (bool, str, Number)):
        return obj
    if isinstance(obj, (int, float)):
        return Number(json.dumps(obj))
    if isinstance(obj, dict):
        return {str(k): from_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [from_python(v) for v in obj]
    raise TypeError(f"Cannot convert {type(obj).__name__} to a JSON value")


def to_python(value: Any, number: Callable[[Number], Any] | None = None) -> Any:
    """Convert a model value back to plain Python data. ``ABSENT`` becomes ``None``.

    ``number`` replaces the default ``Number.value`` conversion.
    """
    if value is ABSENT:
        return None
    if isinstance(value, Number):
        return number(value) if number is not None else value.value
    if isinstance(value, dict):
        return {k: to_python(v, number) for k, v in value.items()}
    if isinstance(value, list):
        return [to_python(v, number) for v in value]
    return value


def dump_json(value: Any) -> str:
    """Compact JSON text for a model value, numbers in their raw form."""
    if value is ABSENT:
        return ""
    if isinstance(value, Number):
        return value.raw
    if isinstance(value, dict):
        items = ",".join(f"{json.dumps(k)}:{dump_json(v)}" for k, v in value.items())
        return "{" + items + "}"
    if isinstance(value, list):
        return "[" + ",".join(dump_json(v) for v in value) + "]"
    return json.dumps(value)
