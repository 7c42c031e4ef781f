"""Embedding generation using Ollama for local LLM inference."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import blake3
import httpx

from .errors import EmbeddingError
from .retry import retry_async

logger = logging.getLogger(__name__)


def _is_transient(error: BaseException) -> bool:
    """Server errors and transport failures are retried; 4xx are not."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, httpx.TransportError)


class OllamaEmbeddings:
    """Generate embeddings using Ollama's local embedding models."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        cache_dir: Optional[Path] = None,
        batch_size: int = 300,
        max_concurrent: int = 4,
        max_tokens: int = 2048,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama embeddings client.

        Args:
            host: Ollama API host URL
            model: Name of the embedding model to use
            cache_dir: Directory for caching embeddings (None to disable)
            batch_size: Number of texts sent per /api/embed request
            max_concurrent: Maximum concurrent requests to Ollama
            max_tokens: Maximum token length for model (default: 2048 for nomic-embed-text)
            max_retries: Attempts per batch for transient errors
            retry_base_delay: Delay before the first retry, doubled each time
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.host = host.rstrip("/")
        self.model = model
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.batch_size = batch_size
        self.max_concurrent = max_concurrent
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_loop_id: Optional[int] = None

        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        # Create cache directory if specified
        if self.cache_dir:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Embedding cache enabled at: {self.cache_dir}")

        logger.info(f"Initialized Ollama embeddings with model: {model} (max_tokens: {max_tokens})")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create an httpx client for the current event loop.

        Returns:
            httpx.AsyncClient instance for current event loop
        """
        loop_id = id(asyncio.get_running_loop())

        # A client bound to a previous event loop cannot be reused
        if self._client is None or self._client_loop_id != loop_id:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
            self._client_loop_id = loop_id
            logger.debug(f"Created new httpx client for event loop {loop_id}")

        return self._client

    def _get_cache_key(self, text: str) -> str:
        """Generate cache key for a text.

        Uses Blake3 hash of (model + text) for content-addressable storage.
        """
        # Include model name to invalidate cache if model changes
        cache_input = f"{self.model}:{text}"
        return blake3.blake3(cache_input.encode()).hexdigest()

    def _get_cached_embedding(self, cache_key: str) -> Optional[List[float]]:
        if not self.cache_dir:
            return None

        cache_file = self.cache_dir / f"{cache_key}.json"
        if cache_file.exists():
            try:
                with open(cache_file, "r") as f:
                    data = json.load(f)
                    logger.debug(f"Cache hit for key: {cache_key}")
                    return data["embedding"]
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Error reading cache file {cache_file}: {e}")
                return None

        return None

    def _save_cached_embedding(self, cache_key: str, embedding: List[float]) -> None:
        if not self.cache_dir:
            return

        cache_file = self.cache_dir / f"{cache_key}.json"
        try:
            with open(cache_file, "w") as f:
                json.dump({"embedding": embedding}, f)
        except OSError as e:
            logger.warning(f"Error writing cache file {cache_file}: {e}")

    def _truncate_text(self, text: str) -> str:
        """Truncate text to fit within model's token limit.

        Uses a conservative estimate of 3 characters per token with a 20% buffer.
        """
        max_chars = int(self.max_tokens * 3 * 0.8)

        if len(text) > max_chars:
            logger.warning(
                f"Truncated text from {len(text)} to {max_chars} chars "
                f"to fit {self.max_tokens} token limit"
            )
            return text[:max_chars]

        return text

    async def _request_embeddings(self, texts: List[str]) -> List[List[float]]:
        """POST one batch to /api/embed, retrying transient failures."""
        client = self._get_client()
        payload = {"model": self.model, "input": [self._truncate_text(t) for t in texts]}

        async def send() -> List[List[float]]:
            response = await client.post(f"{self.host}/api/embed", json=payload)
            response.raise_for_status()
            return response.json()["embeddings"]

        return await retry_async(
            send,
            max_attempts=self.max_retries,
            base_delay=self.retry_base_delay,
            retry_on=(httpx.HTTPError,),
            should_retry=_is_transient,
            description=f"Ollama embed request ({len(texts)} texts)",
        )

    async def _embed_one_batch(
        self, texts: List[str], semaphore: asyncio.Semaphore, use_cache: bool
    ) -> List[List[float]]:
        embeddings: List[Optional[List[float]]] = []
        missing: List[int] = []
        cache_keys = [self._get_cache_key(text) for text in texts]

        for i, text in enumerate(texts):
            cached = self._get_cached_embedding(cache_keys[i]) if use_cache else None
            embeddings.append(cached)
            if cached is None:
                missing.append(i)

        if missing:
            async with semaphore:
                generated = await self._request_embeddings([texts[i] for i in missing])

            if len(generated) != len(missing):
                raise EmbeddingError(
                    f"Ollama returned {len(generated)} embeddings for {len(missing)} texts"
                )

            for i, vector in zip(missing, generated):
                embeddings[i] = vector
                if use_cache:
                    self._save_cached_embedding(cache_keys[i], vector)

        return embeddings

    async def embed_batch(self, texts: List[str], use_cache: bool = True) -> List[List[float]]:
        """Embed texts in concurrent batches, preserving order.

        Args:
            texts: Preprocessed texts
            use_cache: Whether to use cached embeddings

        Returns:
            One vector per input text, in input order

        Raises:
            EmbeddingError: If any batch fails; no partial result is returned
        """
        if not texts:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrent)
        batches = [texts[i : i + self.batch_size] for i in range(0, len(texts), self.batch_size)]
        logger.info(f"Generating embeddings for {len(texts)} texts in {len(batches)} batches")

        results = await asyncio.gather(
            *(self._embed_one_batch(batch, semaphore, use_cache) for batch in batches),
            return_exceptions=True,
        )

        embeddings: List[List[float]] = []
        for index, result in enumerate(results):
            if isinstance(result, EmbeddingError):
                raise result
            if isinstance(result, BaseException):
                raise EmbeddingError(f"Embedding batch {index + 1}/{len(batches)} failed: {result}") from result
            embeddings.extend(result)

        return embeddings

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single search query (never cached)."""
        vectors = await self.embed_batch([text], use_cache=False)
        return vectors[0]

    async def health_check(self) -> bool:
        """Check if Ollama is healthy and the model is available.

        Returns:
            True if healthy, False otherwise
        """
        try:
            client = self._get_client()

            response = await client.get(f"{self.host}/api/tags")
            response.raise_for_status()

            models = response.json().get("models", [])
            model_names = [m["name"] for m in models]

            # Check for exact match or match with :latest suffix
            model_found = self.model in model_names or f"{self.model}:latest" in model_names

            if not model_found:
                logger.warning(
                    f"Model '{self.model}' not found in Ollama. "
                    f"Available models: {model_names}"
                )
                logger.info(f"Run: ollama pull {self.model}")
                return False

            logger.info(f"Ollama health check passed. Model '{self.model}' is available.")
            return True

        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get statistics about the embedding cache."""
        if not self.cache_dir:
            return {"enabled": False}

        cache_files = list(self.cache_dir.glob("*.json"))
        total_size = sum(f.stat().st_size for f in cache_files)

        return {
            "enabled": True,
            "cache_dir": str(self.cache_dir),
            "cached_embeddings": len(cache_files),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            try:
                await self._client.aclose()
            except RuntimeError as e:
                # Client belonged to an event loop that is already closed
                logger.warning(f"Error closing httpx client: {e}")
            self._client = None
            self._client_loop_id = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
