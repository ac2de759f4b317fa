# chatbot/router.py
# Picks the controller for the session's current intent,
# applies its confidence gate and stores the reply.

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Type

from chatbot.canned import REPHRASE_MESSAGE
from chatbot.controllers import (
    Controller,
    FindProviderController,
    GetMultiDrugPriceController,
    GetPlanInfoController,
    GetSingleDrugPriceController,
    MessageReply,
    UnknownController,
    WelcomeController,
)
from chatbot.intents import FIND_PROVIDER, GET_MULTI_DRUG_PRICE, GET_PLAN_INFO, GET_SINGLE_DRUG_PRICE, UNKNOWN, WELCOME
from chatbot.llm import LLMService
from chatbot.messages import ChatMessage
from chatbot.session import ChatSession

logger = logging.getLogger(__name__)

CONTROLLERS: Dict[str, Type[Controller]] = {
    WELCOME.name:               WelcomeController,
    UNKNOWN.name:               UnknownController,
    GET_SINGLE_DRUG_PRICE.name: GetSingleDrugPriceController,
    GET_MULTI_DRUG_PRICE.name:  GetMultiDrugPriceController,
    FIND_PROVIDER.name:         FindProviderController,
    GET_PLAN_INFO.name:         GetPlanInfoController,
}


@dataclass
class IntentResult:
    success:         bool
    message:         ChatMessage
    session_updated: bool

    def to_dict(self) -> dict:
        return {
            "success":         self.success,
            "message":         self.message.to_dict(),
            "session_updated": self.session_updated,
        }


def assistant_message(session: ChatSession, content: str, started_at: float, reply: Optional[MessageReply] = None) -> ChatMessage:
    intent = session.current_intent
    message = ChatMessage.assistant(content)
    message.set_intent(
        intent.name if intent else None,
        confidence=session.current_confidence,
        slots=dict(session.collected_slots),
    )
    if reply is not None:
        if reply.cards:
            message.update_metadata(cards=reply.cards)
        if reply.cta:
            message.update_metadata(cta=reply.cta)
        if reply.error:
            message.error = reply.error
            message.update_metadata(error=reply.error)
    message.mark_processing_complete(started_at)
    return message


def route_intent(session: ChatSession, started_at: float, llm: LLMService) -> IntentResult:
    intent = session.current_intent
    controller_class = CONTROLLERS.get(intent.name) if intent else None

    # The rephrase reply is not stored, it adds nothing to the context
    if controller_class is None:
        logger.warning("No controller for intent %s", intent.name if intent else None)
        return IntentResult(
            success=True,
            message=assistant_message(session, REPHRASE_MESSAGE, started_at),
            session_updated=False,
        )

    controller = controller_class(session, started_at, llm)
    if controller.is_confident():
        reply = controller.handle()
    else:
        logger.info(
            "Confidence %.2f below %.2f for %s, asking to clarify",
            session.current_confidence or 0, controller.min_confidence, intent.name,
        )
        reply = controller.clarification()

    message = assistant_message(session, reply.message, started_at, reply)
    session.add_message(message)
    return IntentResult(success=True, message=message, session_updated=True)
