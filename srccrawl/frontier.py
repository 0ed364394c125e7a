"""Deduplicating work set that feeds the crawl."""

from __future__ import annotations

import threading
from typing import Iterable, Optional, Set


class Frontier:
    """Unordered set of identifiers awaiting processing.

    Every identifier moves through three states: *pending* after a push,
    *active* once popped, and gone once retired. The *seen* set remembers
    every identifier ever pushed so a later push of the same identifier is a
    no-op; only :meth:`reset` forgets it.
    """

    def __init__(self, identifiers: Iterable[str] = ()) -> None:
        self._cond = threading.Condition()
        self._seen: Set[str] = set()
        self._pending: Set[str] = set()
        self._active: Set[str] = set()
        self._closed = False
        for identifier in identifiers:
            self.push(identifier)

    def push(self, identifier: str) -> bool:
        """Queue ``identifier`` unless it has been pushed before."""
        with self._cond:
            if identifier in self._seen:
                return False
            self._seen.add(identifier)
            self._pending.add(identifier)
            self._cond.notify()
            return True

    def pop(self, timeout: Optional[float] = None) -> Optional[str]:
        """Take an arbitrary pending identifier, waiting up to ``timeout``.

        Returns ``None`` when the wait times out or the frontier is closed.
        """
        with self._cond:
            if not self._cond.wait_for(
                lambda: self._pending or self._closed, timeout=timeout
            ):
                return None
            if self._closed:
                return None
            identifier = self._pending.pop()
            self._active.add(identifier)
            return identifier

    def retire(self, identifier: str) -> None:
        """Mark an active identifier as finished; it stays seen."""
        with self._cond:
            self._active.discard(identifier)
            self._cond.notify_all()

    def reset(self, identifier: str) -> None:
        """Forget ``identifier`` entirely so that it can be pushed again."""
        with self._cond:
            self._seen.discard(identifier)
            self._pending.discard(identifier)
            self._active.discard(identifier)
            self._cond.notify_all()

    def close(self) -> None:
        """Wake every blocked :meth:`pop` and refuse further pops."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def idle(self) -> bool:
        """True when nothing is pending and nothing is in flight."""
        with self._cond:
            return not self._pending and not self._active

    def pending(self) -> Set[str]:
        with self._cond:
            return set(self._pending)

    def active(self) -> Set[str]:
        with self._cond:
            return set(self._active)

    def __contains__(self, identifier: object) -> bool:
        with self._cond:
            return identifier in self._seen

    def __len__(self) -> int:
        with self._cond:
            return len(self._pending)


__all__ = ["Frontier"]
