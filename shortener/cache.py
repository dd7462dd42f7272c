"""In-process TTL cache for admin aggregates.

The cache is an explicit component owned by the ServiceManager and handed to
the services that read or invalidate it. It is local to one process: a
multi-instance deployment serves stale aggregates for up to the TTL.

Flow Diagram — get()
====================
::
    ┌─────────────┐
    │  get(key)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Entry found?│──── NO ───▶ None
    └──────┬──────┘
           ▼ YES
    ┌─────────────┐
    │ clock.now() │
    │ past expiry?│──── YES ──▶ drop entry, None
    └──────┬──────┘
           ▼ NO
         value

Key Behaviours
===============
- Expiry is evaluated lazily against the injected clock; no timers run.
- Writers call delete() / delete_prefix() for the aggregates they change.
"""

import datetime
from dataclasses import dataclass
from typing import Any

from shortener.clock import Clock

__all__ = ["TTLCache"]


@dataclass
class _Entry:
    value: Any
    expires_at: datetime.datetime


class TTLCache:
    def __init__(self, clock: Clock, default_ttl: int = 300) -> None:
        self._clock = clock
        self._default_ttl = default_ttl
        self._entries: dict[str, _Entry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock.now() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        seconds = self._default_ttl if ttl is None else ttl
        expires_at = self._clock.now() + datetime.timedelta(seconds=seconds)
        self._entries[key] = _Entry(value=value, expires_at=expires_at)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        return {"size": len(self._entries), "keys": list(self._entries)}
