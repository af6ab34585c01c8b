"""Completion provider clients.

Each provider turns a provider-agnostic message list into a stream of
text fragments. Failures are raised as ``ProviderError``; the relay decides
how they reach the caller.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional, Sequence, Tuple

import httpx
import ollama

from ragquery.agents.dialogue import ConversationTurn
from ragquery.exceptions import ConfigurationError, ProviderError
from ragquery.utils.config import Settings
from ragquery.utils.logger import get_logger

logger = get_logger()


class CompletionProvider(ABC):
    """Abstract interface for completion providers."""

    name = "completion"

    @abstractmethod
    def stream(self, messages: Sequence[ConversationTurn]) -> AsyncIterator[str]:
        """Yield reply text fragments in emission order."""
        pass

    async def aclose(self) -> None:
        """Release any pooled connections."""
        return None


def parse_sse_line(line: str) -> Tuple[Optional[str], bool]:
    """
    Parse one server-sent-event line from the messages stream.

    Args:
        line: Raw line without its newline

    Returns:
        Tuple of (text fragment or None, stream finished)

    Raises:
        ProviderError: On an unparseable data line or a provider error event
    """
    line = line.rstrip("\r")
    if not line.startswith("data:"):
        return None, False

    data = line[len("data:"):].strip()
    if data == "[DONE]":
        return None, True
    if not data:
        return None, False

    try:
        event = json.loads(data)
    except json.JSONDecodeError:
        raise ProviderError(f"Malformed stream event: {data[:100]}")

    if not isinstance(event, dict):
        raise ProviderError(f"Malformed stream event: {data[:100]}")

    event_type = event.get("type")
    if event_type == "error":
        error = event.get("error") or {}
        raise ProviderError(f"Provider stream error: {error.get('message', 'unknown error')}")
    if event_type == "message_stop":
        return None, True

    delta = event.get("delta") or {}
    text = delta.get("text") if isinstance(delta, dict) else None
    return text or None, False


class AnthropicCompletionProvider(CompletionProvider):
    """Anthropic messages API with server-sent-event streaming."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        base_url: str = "https://api.anthropic.com",
        version: str = "2023-06-01",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "x-api-key": api_key,
                "anthropic-version": version,
                "content-type": "application/json",
            },
        )

    def build_payload(self, messages: Sequence[ConversationTurn]) -> Dict[str, Any]:
        """System turns go in the top-level ``system`` field; the rest stay in order."""
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": True,
            "messages": [m.to_message() for m in messages if m.role != "system"],
        }
        if system:
            payload["system"] = system
        return payload

    async def stream(self, messages: Sequence[ConversationTurn]) -> AsyncIterator[str]:
        payload = self.build_payload(messages)
        logger.debug(f"Calling Anthropic with model {self.model}")

        try:
            async with self._client.stream("POST", "/v1/messages", json=payload) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(f"Anthropic API error {response.status_code}: {body[:500]}")
                    raise ProviderError(
                        f"Completion provider returned status {response.status_code}",
                        status_code=response.status_code,
                    )

                saw_data = False
                async for line in response.aiter_lines():
                    if line.startswith("data:"):
                        saw_data = True
                    fragment, done = parse_sse_line(line)
                    if done:
                        return
                    if fragment:
                        yield fragment

                if not saw_data:
                    raise ProviderError("Completion provider returned an empty stream")

        except httpx.HTTPError as e:
            raise ProviderError(f"Completion provider transport error: {e}")

    async def aclose(self) -> None:
        await self._client.aclose()


class OllamaCompletionProvider(CompletionProvider):
    """Streaming chat completions from a local Ollama server."""

    name = "ollama"

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.2:3b",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        client: Optional[ollama.AsyncClient] = None
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or ollama.AsyncClient(host=host)

    async def stream(self, messages: Sequence[ConversationTurn]) -> AsyncIterator[str]:
        logger.debug(f"Calling Ollama with model {self.model}")
        parts = None

        try:
            parts = await self._client.chat(
                model=self.model,
                messages=[m.to_message() for m in messages],
                stream=True,
                options={
                    "temperature": self.temperature,
                    "num_predict": self.max_tokens,
                },
            )
            async for part in parts:
                text = part["message"]["content"]
                if text:
                    yield text

        except ollama.ResponseError as e:
            raise ProviderError(f"Ollama chat failed: {e.error}", status_code=e.status_code)
        except (httpx.HTTPError, ConnectionError) as e:
            raise ProviderError(f"Ollama unreachable: {e}")
        finally:
            if parts is not None and hasattr(parts, "aclose"):
                await parts.aclose()


def create_completion_provider(settings: Settings) -> CompletionProvider:
    """
    Build the configured completion provider.

    Args:
        settings: Application settings

    Returns:
        CompletionProvider

    Raises:
        ConfigurationError: If credentials for the provider are missing
    """
    if settings.completion_provider == "ollama":
        return OllamaCompletionProvider(
            host=settings.ollama_base_url,
            model=settings.ollama_model_name,
            max_tokens=settings.max_response_tokens,
            temperature=settings.response_temperature,
        )

    if not settings.anthropic_api_key:
        raise ConfigurationError("ANTHROPIC_API_KEY is required for the anthropic completion provider")

    return AnthropicCompletionProvider(
        api_key=settings.anthropic_api_key,
        model=settings.completion_model,
        base_url=settings.anthropic_base_url,
        version=settings.anthropic_version,
        max_tokens=settings.max_response_tokens,
        temperature=settings.response_temperature,
        timeout=settings.request_timeout_seconds,
    )
