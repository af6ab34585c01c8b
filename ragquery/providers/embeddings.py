"""Embedding provider clients."""

from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
import ollama

from ragquery.exceptions import ConfigurationError, ProviderError
from ragquery.utils.config import Settings
from ragquery.utils.logger import get_logger

logger = get_logger()


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    name = "embedding"

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Generate an embedding vector for text."""
        pass

    async def aclose(self) -> None:
        """Release any pooled connections."""
        return None


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI-compatible embeddings endpoint: {model, input} -> data[0].embedding."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.model = model
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def embed(self, text: str) -> List[float]:
        logger.debug(f"Generating embedding for text (length: {len(text)})")

        try:
            response = await self._client.post(
                "/embeddings",
                json={"model": self.model, "input": text},
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Embedding provider unreachable: {e}")

        if response.status_code != 200:
            raise ProviderError(
                f"Embedding provider returned status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            embedding = response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise ProviderError("Embedding provider returned a malformed response")

        if not embedding:
            raise ProviderError("No embedding returned from provider")

        return embedding

    async def aclose(self) -> None:
        await self._client.aclose()


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embeddings generated by a local Ollama server."""

    name = "ollama"

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "mxbai-embed-large",
        client: Optional[ollama.AsyncClient] = None
    ):
        self.model = model
        self._client = client or ollama.AsyncClient(host=host)

    async def embed(self, text: str) -> List[float]:
        logger.debug(f"Generating embedding for text (length: {len(text)})")

        try:
            response = await self._client.embeddings(model=self.model, prompt=text)
        except ollama.ResponseError as e:
            raise ProviderError(f"Ollama embedding failed: {e.error}", status_code=e.status_code)
        except (httpx.HTTPError, ConnectionError) as e:
            raise ProviderError(f"Ollama unreachable: {e}")

        embedding = response.get("embedding")
        if not embedding:
            raise ProviderError("No embedding returned from Ollama")

        return list(embedding)


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """
    Build the configured embedding provider.

    Args:
        settings: Application settings

    Returns:
        EmbeddingProvider

    Raises:
        ConfigurationError: If credentials for the provider are missing
    """
    if settings.embedding_provider == "ollama":
        return OllamaEmbeddingProvider(
            host=settings.ollama_base_url,
            model=settings.ollama_embedding_model,
        )

    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is required for the openai embedding provider")

    return OpenAIEmbeddingProvider(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout_seconds,
    )
