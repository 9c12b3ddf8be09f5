"""Text embedding with an ordered model fallback."""

import logging
import re
import threading
from typing import Any, Protocol

from ..errors import EmbeddingFailure

logger = logging.getLogger(__name__)

_MODEL_UNAVAILABLE = re.compile(
    r"unknown model|not found|404|does not exist|not a valid model|no such model",
    re.IGNORECASE,
)


def is_model_unavailable(error: BaseException) -> bool:
    """True when an error says the requested model is unknown or missing."""
    return bool(_MODEL_UNAVAILABLE.search(str(error)))


class EmbeddingProvider(Protocol):
    """Anything that can embed text with a named model."""

    def embed(self, text: str, model: str) -> list[float]:
        ...


class SentenceTransformerProvider:
    """Embeds with sentence-transformers models, loaded lazily and cached by name."""

    def __init__(self, device: str | None = None):
        self.device = device
        self._models: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _load(self, model: str):
        with self._lock:
            if model not in self._models:
                from sentence_transformers import SentenceTransformer
                self._models[model] = SentenceTransformer(model, device=self.device)
            return self._models[model]

    def embed(self, text: str, model: str) -> list[float]:
        return self._load(model).encode(text).tolist()


class Embedder:
    """Embeds text with a primary model, retrying once on a fallback model.

    The fallback is only tried when the primary fails because the model is
    unavailable. Every other failure, and a failing fallback, raises
    :class:`EmbeddingFailure`.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        primary_model: str = "intfloat/e5-large-v2",
        fallback_model: str | None = "sentence-transformers/all-MiniLM-L6-v2",
    ):
        self.provider = provider
        self.primary_model = primary_model
        self.fallback_model = fallback_model

    @classmethod
    def from_config(cls, config: dict[str, Any], provider: EmbeddingProvider | None = None) -> "Embedder":
        emb_cfg = config.get("embedding", {})
        return cls(
            provider or SentenceTransformerProvider(),
            primary_model=emb_cfg.get("primary_model", "intfloat/e5-large-v2"),
            fallback_model=emb_cfg.get("fallback_model"),
        )

    def embed(self, text: str, kind: str = "passage") -> list[float]:
        """Embed text. ``kind`` is ``query`` or ``passage``."""
        try:
            return self._embed_with(self.primary_model, text, kind)
        except Exception as e:
            if not self.fallback_model or not is_model_unavailable(e):
                logger.error(f"Embedding with {self.primary_model} failed: {e}")
                raise EmbeddingFailure(f"{self.primary_model}: {e}") from e
            logger.warning(f"Embedding model {self.primary_model} unavailable, falling back to {self.fallback_model}")

        try:
            return self._embed_with(self.fallback_model, text, kind)
        except Exception as e:
            logger.error(f"Embedding with fallback {self.fallback_model} failed: {e}")
            raise EmbeddingFailure(f"{self.fallback_model}: {e}") from e

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text, kind="query")

    def _embed_with(self, model: str, text: str, kind: str) -> list[float]:
        # e5 models need "query: " / "passage: " prefixes
        if "e5" in model.lower():
            text = f"{kind}: {text}"
        vector = self.provider.embed(text, model)
        if not len(vector):
            raise EmbeddingFailure(f"{model} returned an empty vector")
        return [float(v) for v in vector]
