"""
Collections mapping records onto tables with vector search, and the
vector store that shares one data source among them.
"""

from .collection import Collection, CollectionOptions, CollectionState, SearchResult
from .dynamic import DynamicCollection
from .vector_store import VectorStore

__all__ = [
    "Collection",
    "CollectionOptions",
    "CollectionState",
    "SearchResult",
    "DynamicCollection",
    "VectorStore",
]
