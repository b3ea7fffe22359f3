"""Protocol for embedding generation capabilities."""

from typing import List, Protocol, Sequence, runtime_checkable


@runtime_checkable
class EmbeddingGenerator(Protocol):
    """
    Capability turning texts into vectors.

    Collections call it for embedded text fields on upsert and for string
    search queries. Implementations may suspend on network I/O.
    """

    async def generate(self, texts: Sequence[str]) -> List[List[float]]:
        """Return one vector per input text, in input order."""
        ...
