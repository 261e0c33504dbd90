from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any


class CaseInsensitiveDict(Mapping[str, Any]):
    """Read-only mapping whose keys are matched without regard to case.

    Iteration yields the keys as they were given, so serializing the
    mapping reproduces the original header names.
    """

    def __init__(self, src: Mapping[Any, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._keys: dict[str, str] = {}
        for key, value in (src or {}).items():
            original = str(key)
            previous = self._keys.get(original.lower())
            if previous is not None:
                del self._data[previous]
            self._keys[original.lower()] = original
            self._data[original] = value

    def __getitem__(self, key: str) -> Any:
        return self._data[self._keys[str(key).lower()]]

    def __contains__(self, key: object) -> bool:
        return str(key).lower() in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys.values())

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping) or len(other) != len(self):
            return False
        return all(key in self and self[key] == value for key, value in other.items())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self.items())!r})"

    def to_dict(self) -> dict[str, Any]:
        return dict(self.items())
