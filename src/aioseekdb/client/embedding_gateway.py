"""
Decides whether a write or query uses caller-supplied vectors or vectors
derived from text, and enforces the collection's vector dimension on both.

Embedding functions run off the event loop: synchronous callables in a worker
thread, coroutine callables awaited directly.
"""
import asyncio
import inspect
import logging
import numbers
from enum import Enum
from typing import Any, List, Optional, Sequence

import numpy as np

from .embedding_function import Embeddings
from .errors import EmbeddingError, InvalidInputError

logger = logging.getLogger(__name__)


class EmbeddingPurpose(Enum):
    """Caller of the gateway; selects the policy for text without an embedding function"""
    ADD = "add"
    UPDATE = "update"
    UPSERT = "upsert"
    QUERY = "query"


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_))


def normalize_embeddings(embeddings: Any) -> List[List[float]]:
    """
    Normalize a single vector or a batch of vectors to a list of float lists

    numpy arrays and tuples are accepted.
    """
    if embeddings is None:
        return []
    if hasattr(embeddings, "tolist"):
        embeddings = embeddings.tolist()
    embeddings = list(embeddings)
    if embeddings and _is_number(embeddings[0]):
        embeddings = [embeddings]
    try:
        return [[float(x) for x in (v.tolist() if hasattr(v, "tolist") else v)] for v in embeddings]
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Embeddings must be lists of numbers: {e}") from e


def validate_embeddings(
    embeddings: Sequence[Sequence[float]],
    count: int,
    dimension: int,
) -> None:
    """Check batch size and per-vector dimension"""
    if len(embeddings) != count:
        raise InvalidInputError(f"Number of embeddings ({len(embeddings)}) does not match number of items ({count})")
    for i, vector in enumerate(embeddings):
        if len(vector) != dimension:
            raise InvalidInputError(
                f"Embedding at index {i} has dimension {len(vector)}, expected {dimension}"
            )


def _is_coroutine_callable(func: Any) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(getattr(func, "__call__", None))


async def embed_documents(embedding_function: Any, documents: List[str]) -> List[List[float]]:
    """Run an embedding function without blocking the event loop"""
    logger.info(f"Generating embeddings for {len(documents)} documents using embedding function")
    try:
        if _is_coroutine_callable(embedding_function):
            result = await embedding_function(documents)
        else:
            result = await asyncio.to_thread(embedding_function, documents)
    except EmbeddingError:
        raise
    except Exception as e:
        logger.error(f"Failed to generate embeddings: {e}")
        raise EmbeddingError(f"Failed to generate embeddings from documents: {e}") from e

    try:
        return normalize_embeddings(result)
    except InvalidInputError as e:
        raise EmbeddingError(f"Embedding function returned malformed vectors: {e}") from e


async def resolve_embeddings(
    purpose: EmbeddingPurpose,
    count: int,
    dimension: int,
    embeddings: Optional[Any] = None,
    documents: Optional[List[str]] = None,
    embedding_function: Optional[Any] = None,
) -> Optional[Embeddings]:
    """
    Produce the vectors for ``count`` items, or None when none are needed

    Policy:
    - explicit embeddings win; their count and dimension are validated
    - documents with an embedding function: derive, then validate the same way;
      a wrong count or dimension is InvalidInputError either way
    - documents without a function: add/update raise InvalidInputError,
      upsert returns None (embedding left unset), query raises EmbeddingError
    - neither: add and query raise InvalidInputError, update/upsert return None

    Raises:
        InvalidInputError: vectors have the wrong count or dimension, or required input is missing
        EmbeddingError: derivation was required but impossible, failed, or
            returned something that is not a list of numeric vectors
    """
    if embeddings is not None:
        vectors = normalize_embeddings(embeddings)
        validate_embeddings(vectors, count, dimension)
        return vectors

    if documents is not None:
        if embedding_function is not None:
            vectors = await embed_documents(embedding_function, list(documents))
            validate_embeddings(vectors, count, dimension)
            logger.info(f"Successfully generated {len(vectors)} embeddings")
            return vectors

        if purpose is EmbeddingPurpose.UPSERT:
            logger.debug("No embedding function; upserting documents without embeddings")
            return None
        if purpose is EmbeddingPurpose.QUERY:
            raise EmbeddingError(
                "Query texts provided but the collection has no embedding function. "
                "Provide query_embeddings directly or set an embedding_function on the collection."
            )
        raise InvalidInputError(
            "Documents provided but no embeddings and no embedding function. Either:\n"
            f"  1. Provide embeddings directly when calling {purpose.value}(), or\n"
            "  2. Provide embedding_function to auto-generate embeddings from documents."
        )

    if purpose in (EmbeddingPurpose.ADD, EmbeddingPurpose.QUERY):
        raise InvalidInputError("Neither embeddings nor documents provided")
    return None
