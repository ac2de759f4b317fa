# chatbot/graph.py
# ─────────────────────────────────────────────────────
# The LangGraph pipeline for one chat turn.
#
# record_message -> detect_intent -> update_context
#                -> route_intent  -> log_turn
#
# Every turn runs the same path. The branching happens
# inside route_intent, where the controller decides
# between clarifying, asking for slots or answering.
# ─────────────────────────────────────────────────────

import logging
import time
from typing import Optional, TypedDict

from langgraph.graph import END, START, StateGraph  # type: ignore[reportMissingImports]

from chatbot import analytics
from chatbot.detection import IntentDetection, keyword_detection
from chatbot.llm import LLMService, llm_service
from chatbot.messages import ChatMessage
from chatbot.router import IntentResult, route_intent
from chatbot.session import ChatSession

logger = logging.getLogger(__name__)


# ── STATE ─────────────────────────────────────────────
class TurnState(TypedDict):
    session:       ChatSession
    text:          str
    started_at:    float
    llm:           LLMService
    detection:     Optional[IntentDetection]
    slots_cleared: Optional[bool]
    result:        Optional[IntentResult]


# ── NODES ─────────────────────────────────────────────

def node_record_message(state: TurnState) -> dict:
    message = ChatMessage.user(state["text"])
    state["session"].add_message(message)
    return {"text": message.content}


def node_detect_intent(state: TurnState) -> dict:
    detection = state["llm"].detect_intent(state["session"])
    if detection is None:
        # LLM down, mocked or unparseable. Keywords keep the chat usable.
        detection = keyword_detection(state["text"])
        logger.info("Using keyword intent detection: %s", detection.intent.name)
    return {"detection": detection}


def node_update_context(state: TurnState) -> dict:
    detection = state["detection"]
    cleared = state["session"].apply_detection(detection.intent, detection.confidence, detection.slots)
    return {"slots_cleared": cleared}


def node_route_intent(state: TurnState) -> dict:
    return {"result": route_intent(state["session"], state["started_at"], state["llm"])}


def node_log_turn(state: TurnState) -> dict:
    session = state["session"]
    detection = state["detection"]
    message = state["result"].message
    analytics.log_turn(
        session_id=session.session_id,
        beneficiary_key=session.beneficiary_key,
        intent=detection.intent.name,
        confidence=detection.confidence,
        detection_source=detection.source,
        slots_cleared=bool(state["slots_cleared"]),
        slots=session.collected_slots,
        processing_time_ms=message.processing_time_ms,
        error=message.error,
    )
    return {}


# ── GRAPH ASSEMBLY ────────────────────────────────────
def build_graph():
    graph = StateGraph(TurnState)

    graph.add_node("record_message", node_record_message)
    graph.add_node("detect_intent",  node_detect_intent)
    graph.add_node("update_context", node_update_context)
    graph.add_node("route_intent",   node_route_intent)
    graph.add_node("log_turn",       node_log_turn)

    graph.add_edge(START,            "record_message")
    graph.add_edge("record_message", "detect_intent")
    graph.add_edge("detect_intent",  "update_context")
    graph.add_edge("update_context", "route_intent")
    graph.add_edge("route_intent",   "log_turn")
    graph.add_edge("log_turn",       END)

    return graph.compile()


turn_graph = build_graph()


# ── PUBLIC INTERFACE ──────────────────────────────────
def run_turn(session: ChatSession, text: str, llm: LLMService = llm_service) -> IntentResult:
    """Process one user message and return the assistant's reply."""
    initial_state: TurnState = {
        "session":       session,
        "text":          text,
        "started_at":    time.monotonic(),
        "llm":           llm,
        "detection":     None,
        "slots_cleared": None,
        "result":        None,
    }
    final_state = turn_graph.invoke(initial_state)
    return final_state["result"]
