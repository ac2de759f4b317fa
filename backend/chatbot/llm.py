# chatbot/llm.py
# ─────────────────────────────────────────────────────
# Every LLM call the chatbot makes goes through LLMService.
#
# Two kinds of calls:
# - detect_intent: classify the latest user message (JSON out)
# - generate_*: turn a prompt + conversation into a plain
#   text reply for the user
#
# generate() never raises. An LLM failure comes back as an
# LlmResponse with .error set so a controller can fall back
# to a canned reply instead of breaking the conversation.
# ─────────────────────────────────────────────────────

import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage  # type: ignore[reportMissingImports]

from config import (
    CONTEXT_WINDOW_MESSAGES,
    LLM_MAX_RETRIES,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    MOCK_LLM_RESPONSES,
    OPENAI_API_KEY,
)
from chatbot import prompts
from chatbot.detection import IntentDetection, parse_detection
from chatbot.messages import ASSISTANT, USER, ChatMessage
from chatbot.session import ChatSession

logger = logging.getLogger(__name__)

MOCK_REPLY = "[MOCK] This is a mock LLM response."


@dataclass
class LlmResponse:
    content:    str
    latency_ms: int = 0
    model:      str = ""
    error:      Optional[Exception] = None


def build_messages(system_prompt: str, previous_messages: Iterable[ChatMessage], user_input: str) -> list:
    """
    Build the chat payload: system prompt, prior turns, new input.

    Chat models expect user and assistant turns to alternate.
    Consecutive turns from the same role are joined into one
    so a retried message never produces two user turns in a row.
    """
    turns: List[list] = []
    for message in previous_messages:
        if message.role not in (USER, ASSISTANT) or not message.content:
            continue
        if turns and turns[-1][0] == message.role:
            turns[-1][1] = f"{turns[-1][1]}\n\n{message.content}"
        else:
            turns.append([message.role, message.content])

    if turns and turns[-1][0] == USER:
        logger.warning("Conversation ends with a user turn, merging new input into it")
        turns[-1][1] = f"{turns[-1][1]}\n\n{user_input}"
    else:
        turns.append([USER, user_input])

    messages = []
    if system_prompt and system_prompt.strip():
        messages.append(SystemMessage(content=system_prompt.strip()))
    for role, content in turns:
        messages.append(HumanMessage(content=content) if role == USER else AIMessage(content=content))
    return messages


class LLMService:

    def __init__(
        self,
        chat_model=None,
        model:          str = LLM_MODEL,
        temperature:    float = LLM_TEMPERATURE,
        max_tokens:     int = LLM_MAX_TOKENS,
        mock:           bool = MOCK_LLM_RESPONSES,
        context_window: int = CONTEXT_WINDOW_MESSAGES,
    ):
        self._chat_model = chat_model
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.mock = mock
        self.context_window = context_window

    @property
    def chat_model(self):
        # Built on first use so importing this module never needs an API key
        if self._chat_model is None:
            from langchain_openai import ChatOpenAI  # type: ignore[reportMissingImports]
            self._chat_model = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=LLM_TIMEOUT_SECONDS,
                max_retries=LLM_MAX_RETRIES,
                api_key=OPENAI_API_KEY,
            )
        return self._chat_model

    # ── Core call ─────────────────────────────────────

    def generate(
        self,
        system_prompt:     str,
        previous_messages: Iterable[ChatMessage],
        user_input:        str,
    ) -> LlmResponse:
        started = time.monotonic()
        if self.mock:
            return LlmResponse(content=MOCK_REPLY, model=self.model)

        try:
            messages = build_messages(system_prompt, previous_messages, user_input)
            response = self.chat_model.invoke(messages)
            content = response.content if isinstance(response.content, str) else str(response.content)
            return LlmResponse(
                content=content.strip(),
                latency_ms=int((time.monotonic() - started) * 1000),
                model=self.model,
            )
        except Exception as e:
            logger.error("LLM call failed: %s", e)
            return LlmResponse(
                content="",
                latency_ms=int((time.monotonic() - started) * 1000),
                model=self.model,
                error=e,
            )

    def context_for(self, session: ChatSession) -> List[ChatMessage]:
        """The messages before the newest user message, trimmed to the context window."""
        latest = session.last_message()
        offset = 1 if latest is not None and latest.role == USER else 0
        return session.last_n_messages(self.context_window, offset)

    # ── Intent detection ──────────────────────────────

    def detect_intent(self, session: ChatSession) -> Optional[IntentDetection]:
        """Returns None when the model fails or its output cannot be parsed."""
        user_input = session.last_user_message or ""
        prompt = prompts.intent_detection_prompt(
            user_input,
            current_intent=session.current_intent.name if session.current_intent else None,
            collected_slots=session.collected_slots,
        )
        response = self.generate("", self.context_for(session), prompt)
        if response.error or self.mock:
            return None
        try:
            detection = parse_detection(response.content)
        except ValueError as e:
            logger.warning("Could not parse intent detection: %s", e)
            return None
        logger.debug(
            "Detected %s (%.2f) slots=%s",
            detection.intent.name, detection.confidence, detection.slots,
        )
        return detection

    # ── Reply generation ──────────────────────────────

    def _reply(self, session: ChatSession, system_prompt: str) -> LlmResponse:
        return self.generate(system_prompt, self.context_for(session), session.last_user_message or "")

    def generate_clarification(self, session: ChatSession) -> LlmResponse:
        intent = session.current_intent
        return self._reply(session, prompts.clarification_prompt(
            suspected_intent=intent.text if intent else "something",
            confidence=session.current_confidence or 0,
            original_message=session.last_user_message or "",
            extracted_slots=session.collected_slots,
        ))

    def generate_fallback(self, session: ChatSession, suggested_actions: Optional[Iterable[str]] = None) -> LlmResponse:
        return self._reply(session, prompts.fallback_prompt(
            user_message=session.last_user_message or "",
            suggested_actions=suggested_actions,
        ))

    def generate_missing_information(
        self,
        session:        ChatSession,
        topic:          str,
        provided_slots: Iterable[str],
        missing_slots:  Iterable[str],
    ) -> LlmResponse:
        return self._reply(session, prompts.missing_information_prompt(topic, provided_slots, missing_slots))

    def generate_answer(
        self,
        session:            ChatSession,
        topic:              str,
        answer,
        additional_prompts: Optional[Iterable[str]] = None,
    ) -> LlmResponse:
        return self._reply(session, prompts.answer_prompt(topic, answer, additional_prompts))


# Shared instance used by the routes
llm_service = LLMService()
