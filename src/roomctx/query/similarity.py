"""Vector parsing and cosine similarity."""

import json
from typing import Any

import numpy as np

from ..errors import MalformedVector


def parse_vector(raw: Any, dimensions: int | None = None) -> np.ndarray:
    """Turn a stored vector into a float array.

    Accepts sequences, numpy arrays and JSON-style strings such as
    ``"[0.1,0.2]"``.

    Raises:
        MalformedVector: If the value cannot be parsed, is not one-dimensional,
            holds non-finite values or does not have ``dimensions`` entries.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedVector(f"unparseable vector string: {e}") from e
    if raw is None or isinstance(raw, (dict, str)):
        raise MalformedVector(f"unsupported vector type: {type(raw).__name__}")

    try:
        vec = np.asarray(raw, dtype=float)
    except (TypeError, ValueError) as e:
        raise MalformedVector(f"non-numeric vector: {e}") from e

    if vec.ndim != 1 or vec.size == 0:
        raise MalformedVector(f"expected a flat non-empty vector, got shape {vec.shape}")
    if not np.all(np.isfinite(vec)):
        raise MalformedVector("vector holds non-finite values")
    if dimensions is not None and vec.size != dimensions:
        raise MalformedVector(f"dimension mismatch: {vec.size} vs {dimensions}")
    return vec


def cosine_similarity(a: Any, b: Any) -> float | None:
    """Cosine similarity in [-1, 1], or None when either vector has zero magnitude."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return None
    sim = float(np.dot(a, b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, sim))
