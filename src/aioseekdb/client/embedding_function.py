"""
Embedding function interface and the default ONNX implementation

An embedding function is any callable turning a list of documents into a list
of float vectors. It may expose a ``dimension`` attribute; when it does, the
dimension is known without running the model. Coroutine callables
(``async def __call__``) are supported as well.
"""
import logging
import os
from functools import cached_property
from pathlib import Path
from typing import Any, List, Optional, Protocol, TypeVar, Union, runtime_checkable

import httpx
import numpy as np
import numpy.typing as npt
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .errors import ConfigError, EmbeddingError

logger = logging.getLogger(__name__)

D = TypeVar('D', contravariant=True)

Documents = Union[str, List[str]]
Embedding = List[float]
Embeddings = List[Embedding]


@runtime_checkable
class EmbeddingFunction(Protocol[D]):
    """
    Protocol for embedding functions that convert documents to vectors.

    Example:
        >>> class MyEmbeddingFunction:
        ...     dimension = 3
        ...     def __call__(self, input: Documents) -> Embeddings:
        ...         return [[0.1, 0.2, 0.3] for _ in input]
    """

    def __call__(self, input: D) -> Embeddings:
        ...


def embedding_dimension(embedding_function: Any) -> Optional[int]:
    """Dimension advertised by an embedding function, or None if it has none"""
    dimension = getattr(embedding_function, "dimension", None)
    if callable(dimension):
        dimension = dimension()
    if dimension is None:
        return None
    if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
        raise ConfigError(f"Embedding function reported an invalid dimension: {dimension!r}")
    return dimension


class DefaultEmbeddingFunction:
    """
    Default embedding function using ONNX runtime.

    Uses the 'all-MiniLM-L6-v2' sentence-transformers model, which produces
    384-dimensional embeddings. Model files are downloaded from Hugging Face on
    first use (HF_ENDPOINT selects a mirror) and cached under
    ~/.cache/aioseekdb/onnx_models.

    Inference is CPU bound and blocking; the collection layer calls it from a
    worker thread.
    """

    MODEL_NAME = "all-MiniLM-L6-v2"
    HF_MODEL_ID = "sentence-transformers/all-MiniLM-L6-v2"
    DOWNLOAD_PATH = Path.home() / ".cache" / "aioseekdb" / "onnx_models" / MODEL_NAME
    EXTRACTED_FOLDER_NAME = "onnx"
    MAX_TOKENS = 256
    _DIMENSION = 384

    # remote path -> local file name
    MODEL_FILES = {
        "onnx/model.onnx": "model.onnx",
        "tokenizer.json": "tokenizer.json",
        "config.json": "config.json",
        "special_tokens_map.json": "special_tokens_map.json",
        "tokenizer_config.json": "tokenizer_config.json",
        "vocab.txt": "vocab.txt",
    }

    def __init__(self, model_name: str = MODEL_NAME, preferred_providers: Optional[List[str]] = None):
        if model_name != self.MODEL_NAME:
            raise ConfigError(f"Currently only '{self.MODEL_NAME}' is supported, got '{model_name}'")
        if preferred_providers and not all(isinstance(p, str) for p in preferred_providers):
            raise ConfigError("Preferred providers must be a list of strings")
        if preferred_providers and len(preferred_providers) != len(set(preferred_providers)):
            raise ConfigError("Preferred providers must be unique")

        self.model_name = model_name
        self._preferred_providers = preferred_providers

    @property
    def dimension(self) -> int:
        return self._DIMENSION

    @property
    def model_dir(self) -> Path:
        return self.DOWNLOAD_PATH / self.EXTRACTED_FOLDER_NAME

    @staticmethod
    def _hf_endpoint() -> str:
        return os.environ.get("HF_ENDPOINT", "https://huggingface.co").rstrip("/")

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_random_exponential(multiplier=1, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _download(self, url: str, target: Path, chunk_size: int = 8192) -> None:
        """Stream one file to disk; partial files are removed on failure"""
        from tqdm import tqdm

        logger.info(f"Downloading {url}")
        partial = target.with_suffix(target.suffix + ".part")
        try:
            with httpx.Client(timeout=600.0, follow_redirects=True) as client:
                with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    total = int(resp.headers.get("content-length", 0))
                    with open(partial, "wb") as fh, tqdm(
                        desc=target.name, total=total, unit="iB", unit_scale=True, unit_divisor=1024
                    ) as bar:
                        for chunk in resp.iter_bytes(chunk_size=chunk_size):
                            bar.update(fh.write(chunk))
            partial.replace(target)
        finally:
            if partial.exists():
                partial.unlink()

    def _download_model_if_not_exists(self) -> None:
        missing = [local for local in self.MODEL_FILES.values() if not (self.model_dir / local).exists()]
        if not missing:
            return

        self.model_dir.mkdir(parents=True, exist_ok=True)
        endpoint = self._hf_endpoint()
        logger.info(f"Downloading {self.HF_MODEL_ID} from {endpoint}")
        for remote, local in self.MODEL_FILES.items():
            target = self.model_dir / local
            if target.exists():
                continue
            url = f"{endpoint}/{self.HF_MODEL_ID}/resolve/main/{remote}"
            try:
                self._download(url, target)
            except httpx.HTTPError as e:
                raise EmbeddingError(
                    f"Failed to download {remote} for {self.HF_MODEL_ID} from {endpoint}: {e}. "
                    f"Set HF_ENDPOINT to use a mirror site."
                ) from e
        logger.info("Model downloaded successfully")

    @cached_property
    def tokenizer(self) -> Any:
        import tokenizers

        tokenizer = tokenizers.Tokenizer.from_file(str(self.model_dir / "tokenizer.json"))
        # sentence-transformers uses 256 even though the HF config says 128
        tokenizer.enable_truncation(max_length=self.MAX_TOKENS)
        tokenizer.enable_padding(pad_id=0, pad_token="[PAD]", length=self.MAX_TOKENS)
        return tokenizer

    @cached_property
    def model(self) -> Any:
        import onnxruntime as ort

        available = ort.get_available_providers()
        if not self._preferred_providers:
            providers = list(available)
        elif not set(self._preferred_providers).issubset(set(available)):
            raise ConfigError(f"Preferred providers must be subset of available providers: {available}")
        else:
            providers = list(self._preferred_providers)
        # CoreML is slower than CPU for this model
        providers = [p for p in providers if p != "CoreMLExecutionProvider"] or ["CPUExecutionProvider"]

        so = ort.SessionOptions()
        so.log_severity_level = 3
        so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_DISABLE_ALL
        so.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        so.inter_op_num_threads = 1
        so.intra_op_num_threads = 1

        return ort.InferenceSession(str(self.model_dir / "model.onnx"), providers=providers, sess_options=so)

    def _forward(self, documents: List[str], batch_size: int = 32) -> npt.NDArray[np.float32]:
        batches = []
        for start in range(0, len(documents), batch_size):
            encoded = [self.tokenizer.encode(d) for d in documents[start:start + batch_size]]

            input_ids = np.ascontiguousarray([e.ids for e in encoded], dtype=np.int64)
            attention_mask = np.ascontiguousarray([e.attention_mask for e in encoded], dtype=np.int64)
            token_type_ids = np.zeros_like(input_ids, dtype=np.int64)

            last_hidden_state = self.model.run(
                None,
                {
                    "input_ids": input_ids,
                    "attention_mask": attention_mask,
                    "token_type_ids": token_type_ids,
                },
            )[0]

            # mean pooling over non-padding tokens
            mask = np.broadcast_to(
                np.expand_dims(attention_mask.astype(np.float32), -1), last_hidden_state.shape
            )
            pooled = np.sum(last_hidden_state * mask, 1) / np.clip(mask.sum(1), a_min=1e-9, a_max=None)
            batches.append(pooled.astype(np.float32))

        return np.concatenate(batches)

    def __call__(self, input: Documents) -> Embeddings:
        if isinstance(input, str):
            input = [input]
        if not input:
            return []

        self._download_model_if_not_exists()
        return [row.tolist() for row in self._forward(list(input))]

    def __repr__(self) -> str:
        return f"DefaultEmbeddingFunction(model_name='{self.model_name}')"


_default_embedding_function: Optional[DefaultEmbeddingFunction] = None


def get_default_embedding_function() -> DefaultEmbeddingFunction:
    """Get or create the shared DefaultEmbeddingFunction instance"""
    global _default_embedding_function
    if _default_embedding_function is None:
        _default_embedding_function = DefaultEmbeddingFunction()
    return _default_embedding_function
