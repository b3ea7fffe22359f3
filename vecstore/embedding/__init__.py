"""
Embedding generation capabilities used by embedded text fields.
"""

from .generator import EmbeddingGenerator
from .openai_generator import OpenAIEmbeddingGenerator

__all__ = [
    "EmbeddingGenerator",
    "OpenAIEmbeddingGenerator",
]
