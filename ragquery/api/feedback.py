"""Append-only JSONL log of user feedback on replies."""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from ragquery.utils.logger import get_logger

logger = get_logger()

VALID_VOTES = ("up", "down")


class FeedbackLog:
    """Appends one JSON object per line; never reads or rewrites entries."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def append(self, query: str, response: str, vote: str) -> Dict[str, Any]:
        """
        Record a vote on a reply.

        Args:
            query: User query the reply answered
            response: Reply text that was rated
            vote: "up" or "down"

        Returns:
            The stored entry

        Raises:
            OSError: If the log cannot be written
        """
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "vote": vote,
            "query": query,
            "response": response,
        }
        line = json.dumps(entry, ensure_ascii=False) + "\n"

        async with self._lock:
            await asyncio.to_thread(self._write, line)

        logger.info(f"Feedback saved: {vote.upper()} for query: \"{query[:80]}...\"")
        return entry

    def _write(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)
