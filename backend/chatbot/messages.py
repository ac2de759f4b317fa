# chatbot/messages.py
# A single turn in a conversation.
#
# Messages are created on the server only. User messages
# come from the request body, assistant messages from the
# intent controllers. Metadata carries the intent, slots
# and confidence that produced an assistant reply.

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

USER = "user"
ASSISTANT = "assistant"


def generate_id(length: int = 12) -> str:
    # token_urlsafe(n) yields ~1.33 chars per byte
    return secrets.token_urlsafe(length)[:length]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatMessage:
    role:               str
    content:            str
    id:                 str = field(default_factory=generate_id)
    timestamp:          datetime = field(default_factory=utcnow)
    metadata:           dict = field(default_factory=dict)
    processing_time_ms: Optional[int] = None
    error:              Optional[str] = None

    def __post_init__(self):
        if self.role not in (USER, ASSISTANT):
            raise ValueError(f"Unsupported message role: {self.role}")
        self.content = (self.content or "").strip()

    @classmethod
    def user(cls, content: str, **kwargs) -> "ChatMessage":
        return cls(USER, content, **kwargs)

    @classmethod
    def assistant(cls, content: str, metadata: Optional[dict] = None, **kwargs) -> "ChatMessage":
        return cls(ASSISTANT, content, metadata=dict(metadata or {}), **kwargs)

    def update_metadata(self, **values) -> None:
        self.metadata = {**self.metadata, **values}

    def set_intent(self, intent: str, confidence: Optional[float] = None, slots: Optional[dict] = None) -> None:
        self.update_metadata(intent=intent, confidence_score=confidence, slots=slots)

    def mark_processing_complete(self, started_at: float) -> None:
        """started_at is a time.monotonic() reading taken when the turn began."""
        self.processing_time_ms = int((time.monotonic() - started_at) * 1000)
        self.update_metadata(processing_time_ms=self.processing_time_ms)

    def to_dict(self) -> dict:
        data = {
            "id":        self.id,
            "role":      self.role,
            "content":   self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata":  self.metadata,
        }
        if self.processing_time_ms is not None:
            data["processing_time_ms"] = self.processing_time_ms
        if self.error:
            data["error"] = self.error
        return data
