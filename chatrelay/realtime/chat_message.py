"""
Chat message value type and its wire encoding.
"""

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any


def utc_timestamp() -> str:
    """Current server time as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """An immutable chat message: who said what, and when the server received it."""

    author: str
    text: str
    timestamp: str

    @classmethod
    def create(cls, author: str, text: str) -> "ChatMessage":
        """Stamp a new message with the current server time."""
        return cls(author=author, text=text, timestamp=utc_timestamp())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        """Outbound broadcast frame: {"author", "text", "timestamp"}."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))
