"""Listing cursor for marker-based pagination."""

from enum import Enum


class CursorState(str, Enum):
    FRESH = "fresh"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class ListCursor:
    """Continuation state of one listing traversal.

    The provider hands back an opaque marker with every page; an empty
    marker after at least one page means there is nothing left. One cursor
    belongs to one traversal, so independent traversals hold separate
    cursors and never share state.
    """

    __slots__ = ("prefix", "limit", "token", "_started")

    def __init__(self, prefix: str = "", limit: int = 1000, token: str = ""):
        self.prefix = prefix
        self.limit = limit
        self.token = token
        self._started = bool(token)

    @property
    def state(self) -> CursorState:
        if self.token:
            return CursorState.ACTIVE
        if self._started:
            return CursorState.EXHAUSTED
        return CursorState.FRESH

    @property
    def exhausted(self) -> bool:
        return self.state is CursorState.EXHAUSTED

    def reset(self) -> None:
        """Restart the traversal from the first page."""
        self.token = ""
        self._started = False

    def advance(self, token: str) -> None:
        """Record the marker returned with the page just fetched."""
        self.token = token or ""
        self._started = True

    def __repr__(self) -> str:
        return (
            f"ListCursor(prefix={self.prefix!r}, limit={self.limit}, "
            f"state={self.state.value}, token={self.token!r})"
        )
