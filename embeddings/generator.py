"""
Embedding Generator
Converts question text to semantic vectors using OpenAI text-embedding-3-small

Used by:
- SqlQuestionStore.save          (vector for each generated question)
- scripts/backfill_semantic_vectors.py  (vectors for existing bank rows)

A failed call yields a zero vector; the similarity layer treats zero vectors as
missing and falls back to token overlap.
"""

from typing import List
import logging
import os
from openai import OpenAI
from tqdm import tqdm

log = logging.getLogger("assembly.embeddings")

EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")


class EmbeddingGenerator:
    """
    Generate embeddings for question text

    Model: text-embedding-3-small
    - Dimensions: 1536
    """

    EMBEDDING_DIM = 1536

    def __init__(self, model_name: str = EMBEDDING_MODEL, api_key: str = None, client: OpenAI = None):
        """
        Args:
            model_name: OpenAI model name
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            client: pre-built client (tests pass a fake here)
        """
        self.model_name = model_name
        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError(
                    "OPENAI_API_KEY not set. Please set environment variable or pass api_key parameter."
                )
            client = OpenAI(api_key=api_key)
        self.client = client
        log.info(f"Embedding model ready: {model_name} ({self.EMBEDDING_DIM}-dim)")

    def generate_embedding(self, text: str) -> List[float]:
        """
        Generate embedding for a single text

        Returns:
            embedding vector, or a zero vector for empty text / failed call
        """
        if not text or not text.strip():
            return [0.0] * self.EMBEDDING_DIM

        try:
            response = self.client.embeddings.create(
                input=text,
                model=self.model_name
            )
            return response.data[0].embedding
        except Exception as e:
            log.warning(f"Embedding generation failed: {e}")
            return [0.0] * self.EMBEDDING_DIM

    def generate_embeddings_batch(
        self,
        texts: List[str],
        batch_size: int = 100,
        show_progress: bool = True
    ) -> List[List[float]]:
        """
        Generate embeddings for multiple texts, `batch_size` per API call.
        A failed batch contributes zero vectors so output order always matches input.
        """
        if not texts:
            return []

        processed_texts = [text if text and text.strip() else " " for text in texts]
        batches = [
            processed_texts[i:i + batch_size]
            for i in range(0, len(processed_texts), batch_size)
        ]
        iterator = tqdm(batches, desc="Embedding batches") if show_progress and len(batches) > 1 else batches

        all_embeddings = []
        for batch in iterator:
            try:
                response = self.client.embeddings.create(
                    input=batch,
                    model=self.model_name
                )
                all_embeddings.extend(item.embedding for item in response.data)
            except Exception as e:
                log.warning(f"Batch embedding failed: {e}")
                all_embeddings.extend([[0.0] * self.EMBEDDING_DIM] * len(batch))

        return all_embeddings
