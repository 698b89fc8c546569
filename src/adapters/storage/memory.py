"""
In-memory storage adapter - Implements KeyValueStorage protocol.

Process-local persistence medium: the session lasts as long as the
process. Used for ephemeral clients and as the test double for the
credential store.
"""


class InMemoryStorage:
    """
    Implements KeyValueStorage protocol with a plain dict.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of every stored entry."""
        return dict(self._items)
