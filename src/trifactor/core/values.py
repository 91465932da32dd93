from __future__ import annotations

from typing import Any, Iterator, Protocol

import numpy as np

_CHR_BITS = 8
_INDEX_BITS = 64 - _CHR_BITS
_INDEX_MASK = (1 << _INDEX_BITS) - 1


def symbol(c: str, index: int) -> int:
    """Pack a one-letter tag and an index into an integer key ("l", 3 -> l3)."""
    if len(c) != 1 or not (0 < ord(c) < 256):
        raise ValueError("symbol tag must be a single 8-bit character")
    if index < 0 or index > _INDEX_MASK:
        raise ValueError("symbol index out of range")
    return (ord(c) << _INDEX_BITS) | int(index)


def symbol_char(key: int) -> str:
    return chr((int(key) >> _INDEX_BITS) & 0xFF)


def symbol_index(key: int) -> int:
    return int(key) & _INDEX_MASK


def format_key(key: int) -> str:
    c = (int(key) >> _INDEX_BITS) & 0xFF
    if c and chr(c).isprintable() and not chr(c).isspace():
        return f"{chr(c)}{symbol_index(key)}"
    return str(int(key))


class ValuesKeyError(KeyError):
    def __init__(self, key: int) -> None:
        super().__init__(f"key {format_key(key)} does not exist in the Values")
        self.key = key


class ValueStore(Protocol):
    def at(self, key: int) -> Any: ...


class Values:
    """Minimal key -> value store for 3D points (and anything else the caller needs)."""

    def __init__(self, items: dict[int, Any] | None = None) -> None:
        self._values: dict[int, Any] = {}
        for k, v in (items or {}).items():
            self.insert(k, v)

    @staticmethod
    def _freeze(value: Any) -> Any:
        if isinstance(value, np.ndarray) or isinstance(value, (list, tuple)):
            arr = np.array(value, dtype=np.float64)
            arr.setflags(write=False)
            return arr
        return value

    def insert(self, key: int, value: Any) -> None:
        if key in self._values:
            raise ValueError(f"key {format_key(key)} already exists in the Values")
        self._values[int(key)] = self._freeze(value)

    def update(self, key: int, value: Any) -> None:
        if key not in self._values:
            raise ValuesKeyError(key)
        self._values[int(key)] = self._freeze(value)

    def at(self, key: int) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise ValuesKeyError(key) from None

    def exists(self, key: int) -> bool:
        return key in self._values

    def keys(self) -> list[int]:
        return list(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[int]:
        return iter(self._values)
