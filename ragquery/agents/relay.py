"""Completion relay between the pipeline and the completion provider."""

from typing import AsyncIterator, Sequence

from ragquery.agents.dialogue import ConversationTurn
from ragquery.exceptions import ProviderError
from ragquery.providers.completion import CompletionProvider
from ragquery.utils.logger import get_logger

logger = get_logger()


class CompletionRelay:
    """Streams or buffers a completion, converting failures to ProviderError."""

    ERROR_MARKER = "\n\nError: Request processing failed."

    def __init__(self, provider: CompletionProvider):
        self.provider = provider

    async def stream(self, messages: Sequence[ConversationTurn]) -> AsyncIterator[str]:
        """
        Relay fragments as the provider emits them.

        A failure before the first fragment raises ProviderError. A failure
        after output has started appends ERROR_MARKER and ends the stream.
        Closing this generator closes the upstream stream.

        Args:
            messages: Grounded message sequence

        Yields:
            Text fragments in provider order
        """
        emitted = 0
        fragments = self.provider.stream(messages)

        try:
            try:
                async for fragment in fragments:
                    emitted += 1
                    yield fragment
            except ProviderError:
                raise
            except Exception as e:
                raise ProviderError(f"Unexpected completion failure: {e}", status_code=500) from e

        except ProviderError as e:
            if emitted == 0:
                logger.error(f"{self.provider.name}: completion failed: {e}")
                raise
            logger.error(
                f"{self.provider.name}: completion failed after {emitted} fragments: {e}"
            )
            yield self.ERROR_MARKER

        finally:
            await fragments.aclose()

    async def complete(self, messages: Sequence[ConversationTurn]) -> str:
        """
        Collect the whole reply into one string.

        Args:
            messages: Grounded message sequence

        Returns:
            Full reply text

        Raises:
            ProviderError: On any provider failure
        """
        parts = []
        fragments = self.provider.stream(messages)

        try:
            async for fragment in fragments:
                parts.append(fragment)
        except ProviderError as e:
            logger.error(f"{self.provider.name}: completion failed: {e}")
            raise
        except Exception as e:
            logger.error(f"{self.provider.name}: unexpected completion failure: {e}")
            raise ProviderError(f"Unexpected completion failure: {e}", status_code=500) from e
        finally:
            await fragments.aclose()

        reply = "".join(parts)
        logger.debug(f"{self.provider.name}: generated {len(reply)} characters")
        return reply
