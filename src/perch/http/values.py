"""Validated query and body parameters.

Client-supplied input may only take one of three shapes:

    SCALAR    bool | int | float | str
    SEQUENCE  list or tuple of scalars
    TEXT      an object whose class renders itself via its own ``__str__``

``None`` stands for an absent value and is always accepted. Anything
else (dicts, sets, bytes, arbitrary objects) is rejected with
``InvalidInput`` at the bag boundary, on write and on read.
"""

from enum import Enum
from typing import Any, Self

from perch.errors import InvalidInput
from perch.http.parameters import ParameterBag

_SCALAR_TYPES = (bool, int, float, str)
_TRUTHY = ("true", "1", "yes", "on")


class ValueKind(Enum):
    NULL = "null"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    TEXT = "text"


def is_scalar(value: object) -> bool:
    return isinstance(value, _SCALAR_TYPES)


def _is_text(value: object) -> bool:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return False
    return type(value).__str__ is not object.__str__


def classify(value: object) -> ValueKind | None:
    """Return the shape of *value*, or ``None`` if it is not an accepted input."""
    if value is None:
        return ValueKind.NULL
    if is_scalar(value):
        return ValueKind.SCALAR
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE if all(is_scalar(item) for item in value) else None
    if _is_text(value):
        return ValueKind.TEXT
    return None


class InputBag(ParameterBag):
    """Query string or request body parameters.

    Both ``set`` and ``get`` go through the same validation gate, so
    neither stored values nor caller defaults can smuggle complex
    objects into handler code::

        query = InputBag({"page": "2", "tag": ["a", "b"]})
        query.get_int("page")       # 2
        query.get_list("tag")       # ["a", "b"]
        query.set("user", {"id": 1})  # raises InvalidInput
    """

    __slots__ = ()

    def set(self, key: str, value: Any) -> Self:
        if classify(value) is None:
            msg = (
                "The value passed to InputBag.set() must be scalar, a sequence of "
                f'scalars, or text-renderable. Received type: "{type(value).__name__}".'
            )
            raise InvalidInput(msg)
        return super().set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if classify(default) is None:
            msg = (
                "The default passed to InputBag.get() must be scalar, a sequence of "
                f'scalars, or text-renderable. Received type: "{type(default).__name__}".'
            )
            raise InvalidInput(msg)
        value = super().get(key, default)
        if classify(value) is None:
            msg = f'The value for the key "{key}" is not scalar or text-renderable.'
            raise InvalidInput(msg)
        return value

    def get_list(self, key: str) -> list[Any]:
        """Return all values for *key*; a single value becomes a one-item list."""
        value = self.get(key)
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return value as int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None or isinstance(value, (list, tuple)):
            return default
        try:
            return int(str(value))
        except ValueError:
            return default

    def get_bool(self, key: str, default: bool | None = None) -> bool | None:
        """Return value as bool (``true``/``1``/``yes``/``on`` are True)."""
        value = self.get(key)
        if value is None or isinstance(value, (list, tuple)):
            return default
        if isinstance(value, bool):
            return value
        return str(value).lower() in _TRUTHY
