"""Mutable string-keyed parameter bag.

The permissive base for every request section. Subclasses add
validation and domain helpers; this layer never raises.
"""

from collections.abc import Iterator, Mapping
from typing import Any, Self


class ParameterBag:
    """A string-keyed mapping with typed-default retrieval.

    ``get`` never raises for a missing key. ``remove`` of an absent key
    is a no-op. ``set`` returns the bag so calls chain::

        bag = ParameterBag().set("page", 2).set("q", "hello")
        bag.get("page")           # 2
        bag.get("missing", 10)    # 10
    """

    __slots__ = ("_parameters",)

    def __init__(self, parameters: Mapping[str, Any] | None = None) -> None:
        self._parameters: dict[str, Any] = dict(parameters or {})

    def set(self, key: str, value: Any) -> Self:
        """Store *value* under *key*, overwriting any previous value."""
        self._parameters[key] = value
        return self

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for *key*, or *default* if missing."""
        return self._parameters[key] if key in self._parameters else default

    def has(self, key: str) -> bool:
        return key in self._parameters

    def remove(self, key: str) -> None:
        self._parameters.pop(key, None)

    def all(self) -> dict[str, Any]:
        """Return a shallow copy of every stored parameter."""
        return dict(self._parameters)

    def count(self) -> int:
        return len(self._parameters)

    def __contains__(self, key: object) -> bool:
        return key in self._parameters

    def __iter__(self) -> Iterator[str]:
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {v!r}" for k, v in self._parameters.items())
        return f"{type(self).__name__}({{{items}}})"
