"""In-process embedder using a sentence-transformers model.

The model is loaded on first use and encoding runs on a worker thread so the
event loop stays responsive. Vectors are mean pooled and L2-normalized.
"""

import asyncio
import threading
from typing import Optional

import numpy as np
import structlog
from sentence_transformers import SentenceTransformer

from .base import Embedder, as_query_vector

logger = structlog.get_logger("embedding.local")


class SentenceTransformerEmbedder(Embedder):
    """Embedder backed by a local ``SentenceTransformer`` model."""

    def __init__(self, model_name: str, device: Optional[str] = None):
        self.model_name = model_name
        self.device = device
        self._model: Optional[SentenceTransformer] = None
        self._load_lock = threading.Lock()

    def _get_model(self) -> SentenceTransformer:
        with self._load_lock:
            if self._model is None:
                logger.info("Loading embedding model", model_name=self.model_name)
                self._model = SentenceTransformer(self.model_name, device=self.device)
            return self._model

    def _encode(self, text: str) -> np.ndarray:
        return self._get_model().encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )

    async def embed(self, text: str) -> Optional[np.ndarray]:
        try:
            output = await asyncio.to_thread(self._encode, text)
        except (OSError, RuntimeError, ValueError) as e:
            logger.warning("Local embedding failed", model_name=self.model_name, error=str(e))
            return None
        return as_query_vector(output)
