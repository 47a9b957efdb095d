"""
Embeddings package
Question text → semantic vectors (OpenAI embeddings)
"""

from .generator import EmbeddingGenerator, EMBEDDING_MODEL

__all__ = [
    "EmbeddingGenerator",
    "EMBEDDING_MODEL",
]
