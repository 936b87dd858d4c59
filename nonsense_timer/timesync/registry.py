"""
Server-side registry of connected display clients.
"""

from typing import Dict, List, Tuple


class SessionEntry:
    """A client identity and the last time it sent a keep-alive."""

    __slots__ = ("identity", "last_seen")

    def __init__(self, identity: str, last_seen: float):
        self.identity = identity
        self.last_seen = last_seen

    def age(self, now: float) -> float:
        return now - self.last_seen

    def copy(self) -> "SessionEntry":
        return SessionEntry(self.identity, self.last_seen)

    def __eq__(self, other):
        if not isinstance(other, SessionEntry):
            return NotImplemented
        return self.identity == other.identity and self.last_seen == other.last_seen

    def __repr__(self) -> str:
        return f"SessionEntry(identity={self.identity[:8]}, last_seen={self.last_seen:.3f})"


class SessionRegistry:
    """
    Tracks which client identities have been seen recently.

    Only the server loop mutates the registry. Read methods return copies,
    never live views.
    """

    def __init__(self):
        self._entries: Dict[str, SessionEntry] = {}

    def upsert(self, identity: str, now: float) -> bool:
        """
        Insert a new entry or refresh an existing one.

        Returns:
            bool: True if the identity was not registered before
        """
        entry = self._entries.get(identity)
        if entry is None:
            self._entries[identity] = SessionEntry(identity, now)
            return True
        entry.last_seen = now
        return False

    def evict(self, now: float, threshold: float) -> List[SessionEntry]:
        """
        Remove every entry last seen more than ``threshold`` seconds ago.

        Returns:
            List of the removed entries
        """
        stale = [entry for entry in self._entries.values() if now - entry.last_seen > threshold]
        for entry in stale:
            del self._entries[entry.identity]
        return stale

    def count(self) -> int:
        return len(self._entries)

    def list(self) -> List[SessionEntry]:
        """Snapshot of the registered entries, oldest registration first."""
        return [entry.copy() for entry in self._entries.values()]

    def ages(self, now: float) -> List[Tuple[str, float]]:
        """Snapshot of ``(identity, seconds since last seen)`` pairs."""
        return [(entry.identity, entry.age(now)) for entry in self._entries.values()]

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, identity: str) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)
