# chatbot/session.py
# Conversation state for one chat session.
#
# A session remembers:
# - every message exchanged (trimmed to max_messages)
# - the intent the user is currently pursuing
# - how confident the detector was about it
# - the slots collected so far for that intent
#
# apply_detection() is where a new detection result meets
# the state collected on earlier turns.

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from chatbot.intents import Intent
from chatbot.messages import ChatMessage, USER, generate_id, utcnow

logger = logging.getLogger(__name__)


def _is_empty_slot(value) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _slot_key(value) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(sorted(_slot_key(v) for v in value))
    return " ".join(str(value).lower().split())


@dataclass
class ChatSession:
    beneficiary_key:    int
    session_id:         str = field(default_factory=lambda: generate_id(16))
    created_at:         datetime = field(default_factory=utcnow)
    last_activity:      datetime = field(default_factory=utcnow)
    messages:           List[ChatMessage] = field(default_factory=list)
    current_intent:     Optional[Intent] = None
    current_confidence: Optional[float] = None
    collected_slots:    dict = field(default_factory=dict)
    max_messages:       Optional[int] = None

    # ── Messages ──────────────────────────────────────

    def add_message(self, message: ChatMessage) -> None:
        self.messages.append(message)
        if self.max_messages and len(self.messages) > self.max_messages:
            self.messages = self.messages[-self.max_messages:]
        self.update_activity()

    def last_n_messages(self, limit: int = 10, offset: int = 0) -> List[ChatMessage]:
        """
        Return up to `limit` messages ending `offset` messages
        before the newest one. Never mutates the message list.

        last_n_messages(10, 1) is "the ten messages before the latest".
        """
        end = max(len(self.messages) - offset, 0)
        start = max(end - limit, 0)
        return self.messages[start:end]

    def last_message(self, role: Optional[str] = None) -> Optional[ChatMessage]:
        for message in reversed(self.messages):
            if role is None or message.role == role:
                return message
        return None

    @property
    def last_user_message(self) -> Optional[str]:
        message = self.last_message(USER)
        return message.content if message else None

    def get_message_by_id(self, message_id: str) -> Optional[ChatMessage]:
        return next((m for m in self.messages if m.id == message_id), None)

    # ── Activity ──────────────────────────────────────

    def update_activity(self) -> None:
        self.last_activity = utcnow()

    def is_expired(self, timeout_seconds: float, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return (now - self.last_activity).total_seconds() > timeout_seconds

    # ── Context ───────────────────────────────────────

    def update_context(
        self,
        intent:     Optional[Intent] = None,
        slots:      Optional[dict] = None,
        confidence: Optional[float] = None,
    ) -> None:
        if intent:
            self.current_intent = intent
        if slots:
            self.collected_slots = {**self.collected_slots, **slots}
        if confidence is not None:
            self.current_confidence = confidence
        self.update_activity()

    def apply_detection(self, intent: Intent, confidence: float, slots: Optional[dict] = None) -> bool:
        """
        Merge a detection result into the session.

        Collected slots are thrown away when:
        - the user switched to a different intent, or
        - a critical slot now holds a different value
          (e.g. a new drug_name for GetSingleDrugPrice)

        Returns True if the collected slots were cleared.
        """
        new_slots = {k: v for k, v in (slots or {}).items() if not _is_empty_slot(v)}

        cleared = False
        if self.current_intent and self.current_intent.name != intent.name:
            cleared = True
            logger.debug(
                "Intent changed %s -> %s, clearing slots",
                self.current_intent.name, intent.name,
            )
        else:
            for slot in intent.critical_slots:
                previous = self.collected_slots.get(slot)
                incoming = new_slots.get(slot)
                if _is_empty_slot(previous) or _is_empty_slot(incoming):
                    continue
                if _slot_key(previous) != _slot_key(incoming):
                    cleared = True
                    logger.debug("Critical slot %s changed, clearing slots", slot)
                    break

        if cleared:
            self.collected_slots = {}

        self.update_context(intent=intent, slots=new_slots, confidence=confidence)
        return cleared

    def to_dict(self, include_messages: bool = True) -> dict:
        data = {
            "session_id":         self.session_id,
            "beneficiary_key":    self.beneficiary_key,
            "created_at":         self.created_at.isoformat(),
            "last_activity":      self.last_activity.isoformat(),
            "current_intent":     self.current_intent.name if self.current_intent else None,
            "current_confidence": self.current_confidence,
            "collected_slots":    self.collected_slots,
            "message_count":      len(self.messages),
        }
        if include_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data
