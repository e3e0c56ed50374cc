"""Key/value configuration store ("dict" entries).

Values are opaque JSON documents addressed by ``(group, key)``.  Login
settings live here under ``("auth", "login_settings")``.
"""

from __future__ import annotations

import json
from typing import Any, Protocol


class DictRepo(Protocol):
    async def get(self, key: str, default: Any = None, group: str = "default") -> Any: ...
    async def set(
        self, key: str, value: Any, *, group: str = "default", description: str = ""
    ) -> None: ...


class InMemoryDictRepo:
    def __init__(self) -> None:
        # Stored serialized so callers never share mutable state with the store.
        self._store: dict[tuple[str, str], tuple[str, str]] = {}

    async def get(self, key: str, default: Any = None, group: str = "default") -> Any:
        entry = self._store.get((group, key))
        if entry is None:
            return default
        return json.loads(entry[0])

    async def set(
        self, key: str, value: Any, *, group: str = "default", description: str = ""
    ) -> None:
        self._store[(group, key)] = (json.dumps(value), description)
