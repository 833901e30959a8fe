"""Exceptions raised by the search engine."""


class SearchError(Exception):
    """Base class for search engine errors."""


class NoActionAvailable(SearchError):
    """
    The side to move has nothing to choose from.

    Raised when the active combatant has fainted or its action list is empty.
    Callers route this to replacement selection instead of treating it as a
    failed search.
    """

    def __init__(self, side: int, reason: str = "no available actions"):
        super().__init__(f"side {side}: {reason}")
        self.side = side
        self.reason = reason


class SearchTimeout(SearchError):
    """Internal signal used to abandon the current deepening iteration."""
