"""Price stream protocol for a push feed of sparse price deltas."""
from typing import AsyncIterator, Protocol


class PriceStream(Protocol):
    """Abstract interface for a persistent price connection.

    Iterating yields raw text frames until the connection closes; a
    connection error is raised from the iterator.
    """

    @property
    def is_open(self) -> bool: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str]: ...
