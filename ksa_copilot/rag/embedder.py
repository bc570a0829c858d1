"""
KB Embedder
===========

Generates embeddings using OpenAI text-embedding-3-small.
1536 dimensions, optimized for cost/latency.

Transient provider errors (rate limit, 5xx, connection) are retried with
exponential backoff (2s, 4s). Authentication failures are configuration
errors and are never retried.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import openai

from ..config import EmbeddingConfig
from .errors import EmbeddingError, KBConfigurationError, RetrievalTimeoutError

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Converts text to a fixed-length dense vector."""

    dimensions: int = 1536

    @abstractmethod
    def embed(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """Embed a single text."""


class OpenAIEmbedder(EmbeddingProvider):
    """
    Generates embeddings using OpenAI text-embedding-3-small.

    Cost: ~$0.00002 per 1K tokens (very cheap)
    Dimensions: 1536
    Max input: 8191 (applied as characters)
    """

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        api_key: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or EmbeddingConfig()
        self.api_key = api_key or self.config.api_key
        if not self.api_key:
            raise KBConfigurationError("OpenAI API key required for embeddings (OPENAI_API_KEY)")

        self.model = self.config.model
        self.dimensions = self.config.dimensions
        self.max_input_chars = self.config.max_input_chars
        self.max_retries = self.config.max_retries
        self.retry_base_delay = self.config.retry_base_delay

        self._sleep = sleep
        self._clock = clock
        self._client = None
        self._lock = threading.Lock()
        self._total_tokens = 0
        self._total_requests = 0

    @property
    def client(self):
        if self._client is None:
            # Retries are handled here, not by the SDK
            self._client = openai.OpenAI(
                api_key=self.api_key,
                max_retries=0,
                timeout=self.config.request_timeout,
            )
        return self._client

    def embed(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: Text to embed (truncated to the provider input limit)
            timeout: Optional request timeout in seconds

        Returns:
            Embedding vector

        Raises:
            KBConfigurationError: Invalid or unauthorized API key
            RetrievalTimeoutError: Request exceeded the timeout
            EmbeddingError: Provider still failing after retries
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        payload = text[:self.max_input_chars]

        response = self._retry_with_backoff(payload, timeout)

        embedding = list(response.data[0].embedding)
        token_count = response.usage.total_tokens if response.usage else 0

        with self._lock:
            self._total_tokens += token_count
            self._total_requests += 1

        logger.debug(f"Embedded {token_count} tokens")
        return embedding

    def _create(self, payload: str, timeout: Optional[float]):
        client = self.client
        if timeout is not None:
            client = client.with_options(timeout=timeout)
        return client.embeddings.create(
            model=self.model,
            input=payload,
            dimensions=self.dimensions,
        )

    def _retry_with_backoff(self, payload: str, timeout: Optional[float]):
        """
        Call the provider with exponential backoff retry.

        A timeout is an overall budget: each attempt gets only the time left,
        and a backoff that would overrun the budget is not slept.

        Raises:
            RetrievalTimeoutError: Budget exhausted
            EmbeddingError: If all retries fail
        """
        deadline = self._clock() + timeout if timeout is not None else None
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            remaining = None
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise RetrievalTimeoutError(timeout, f"Embedding budget of {timeout}s exhausted")

            try:
                return self._create(payload, remaining)

            except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
                raise KBConfigurationError(f"Embedding provider rejected credentials: {e}", error_code=401) from e

            except openai.APITimeoutError as e:
                raise RetrievalTimeoutError(timeout, f"Embedding request timed out: {e}") from e

            except (openai.RateLimitError, openai.InternalServerError, openai.APIConnectionError) as e:
                last_exception = e
                if attempt >= self.max_retries:
                    break
                wait_time = self.retry_base_delay * (2 ** attempt)
                if deadline is not None and self._clock() + wait_time >= deadline:
                    raise RetrievalTimeoutError(
                        timeout,
                        f"Retrying after {type(e).__name__} would exceed the {timeout}s budget",
                    ) from e
                logger.warning(
                    f"Transient embedding error {type(e).__name__} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1}), waiting {wait_time:.1f}s"
                )
                self._sleep(wait_time)

            except openai.APIStatusError as e:
                raise EmbeddingError(f"Embedding request failed: {e}", error_code=e.status_code) from e

        error_code = getattr(last_exception, "status_code", None)
        raise EmbeddingError(
            f"Embedding failed after {self.max_retries + 1} attempts: {last_exception}",
            error_code=error_code,
        ) from last_exception

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def total_requests(self) -> int:
        return self._total_requests

    @property
    def estimated_cost(self) -> float:
        """Estimated cost in USD."""
        # text-embedding-3-small: $0.00002 per 1K tokens
        return (self._total_tokens / 1000) * 0.00002
