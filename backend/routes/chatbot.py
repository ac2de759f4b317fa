# routes/chatbot.py
# /api/chatbot: the endpoints the chat widget calls.
#
# 1. POST /welcome       open a session for a persona
# 2. POST /message       run one turn through the graph
# 3. GET  /session/{id}  inspect a session
# 4. DELETE /session/{id}
#
# Errors are raised as ApiError and rendered by main.py as
# {"success": false, "error": ..., "code": ...}.

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException  # type: ignore[reportMissingImports]
from pydantic import BaseModel, Field  # type: ignore[reportMissingImports]

from chatbot.canned import welcome_message
from chatbot.graph import run_turn
from chatbot.intents import WELCOME
from chatbot.llm import LLMService, llm_service
from chatbot.messages import ChatMessage
from chatbot.personas import get_persona
from chatbot.session import ChatSession
from chatbot.store import SessionStore, session_store

logger = logging.getLogger(__name__)

router = APIRouter()


class ApiError(HTTPException):
    def __init__(self, status_code: int, error: str, code: str):
        super().__init__(status_code=status_code, detail=error)
        self.code = code


# ── Dependencies ──────────────────────────────────────
# Overridden in tests with a fresh store and a fake LLM
def get_store() -> SessionStore:
    return session_store


def get_llm() -> LLMService:
    return llm_service


# ── REQUEST MODELS ────────────────────────────────────

class WelcomeRequest(BaseModel):
    beneficiary_key: int = Field(..., description="Persona the session is opened for")


class MessageRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    message:    str = Field(..., min_length=1, description="What the user typed")

    # When sent, must match the session's beneficiary
    beneficiary_key: Optional[int] = None


# ── HELPERS ───────────────────────────────────────────

def require_session(store: SessionStore, session_id: str) -> ChatSession:
    session = store.get(session_id)
    if session is None:
        raise ApiError(404, "Session not found or expired", "SESSION_ERROR")
    return session


# ── ENDPOINTS ─────────────────────────────────────────

@router.post("/welcome")
async def welcome(request: WelcomeRequest, store: SessionStore = Depends(get_store)):
    """
    Opens a session and returns the greeting. The greeting is
    not stored in the session, it adds nothing to the context.
    """
    beneficiary = get_persona(request.beneficiary_key)
    if beneficiary is None:
        raise ApiError(404, f"Unknown beneficiary {request.beneficiary_key}", "PERSONA_ERROR")

    session = store.create(beneficiary.beneficiary_key)
    logger.info("Opened chat session %s for beneficiary %s", session.session_id, beneficiary.beneficiary_key)
    message = ChatMessage.assistant(welcome_message(beneficiary), {
        "intent":             WELCOME.name,
        "confidence_score":   1.0,
        "processing_time_ms": 0,
    })
    return {
        "success":    True,
        "session_id": session.session_id,
        "message":    message.to_dict(),
    }


@router.post("/message")
def message(
    request: MessageRequest,
    store:   SessionStore = Depends(get_store),
    llm:     LLMService = Depends(get_llm),
):
    text = request.message.strip()
    if not text:
        raise ApiError(400, "Invalid request - session_id and message are required", "VALIDATION_ERROR")

    session = require_session(store, request.session_id.strip())
    if request.beneficiary_key is not None and request.beneficiary_key != session.beneficiary_key:
        raise ApiError(403, "Session does not belong to this beneficiary", "SESSION_AUTH_ERROR")

    result = run_turn(session, text, llm)
    return result.to_dict()


@router.get("/session/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_store)):
    session = require_session(store, session_id)
    return {"success": True, "session": session.to_dict()}


@router.delete("/session/{session_id}")
async def delete_session(session_id: str, store: SessionStore = Depends(get_store)):
    if not store.delete(session_id):
        raise ApiError(404, "Session not found or expired", "SESSION_ERROR")
    logger.info("Deleted chat session %s", session_id)
    return {"success": True, "session_id": session_id}
