"""
Tests for the HTTP API.

The app is exercised through FastAPI's TestClient with the session
store and LLM dependencies overridden.
"""

import pytest
from fastapi.testclient import TestClient

from chatbot.llm import LLMService
from chatbot.store import SessionStore
from conftest import FakeChatModel, detection_json
from main import app
from routes.chatbot import get_llm, get_store


@pytest.fixture
def api(store, llm):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_llm] = lambda: llm
    yield TestClient(app)
    app.dependency_overrides.clear()


def open_session(api, beneficiary_key=1004) -> str:
    response = api.post("/api/chatbot/welcome", json={"beneficiary_key": beneficiary_key})
    assert response.status_code == 200
    return response.json()["session_id"]


# =============================================================================
# Welcome
# =============================================================================


class TestWelcome:
    """Tests for POST /api/chatbot/welcome."""

    def test_opens_session(self, api, store: SessionStore):
        """Test the greeting and the new session."""
        response = api.post("/api/chatbot/welcome", json={"beneficiary_key": 1001})

        body = response.json()
        assert body["success"] is True
        assert body["message"]["role"] == "assistant"
        assert body["message"]["content"].startswith("👋 Hi Eleanor!")
        assert body["message"]["metadata"]["intent"] == "Welcome"
        assert body["message"]["metadata"]["confidence_score"] == 1.0

        session = store.get(body["session_id"])
        assert session.beneficiary_key == 1001
        # The greeting is not part of the conversation
        assert session.messages == []

    def test_unknown_persona(self, api):
        """Test a beneficiary key with no persona."""
        response = api.post("/api/chatbot/welcome", json={"beneficiary_key": 9999})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Unknown beneficiary 9999", "code": "PERSONA_ERROR"}

    def test_missing_key(self, api):
        """Test request validation errors."""
        response = api.post("/api/chatbot/welcome", json={})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "beneficiary_key" in body["error"]


# =============================================================================
# Message
# =============================================================================


class TestMessage:
    """Tests for POST /api/chatbot/message."""

    def test_runs_a_turn(self, api, fake_model, store):
        """Test a full turn over HTTP."""
        session_id = open_session(api)
        fake_model.replies = [detection_json("GetPlanInfo", 0.9, benefit_type="dental")]

        response = api.post("/api/chatbot/message", json={
            "session_id": session_id, "message": "Does my plan cover dental?", "beneficiary_key": 1004,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["session_updated"] is True
        assert body["message"]["metadata"]["intent"] == "GetPlanInfo"
        assert body["message"]["metadata"]["slots"] == {"benefit_type": "dental"}
        assert len(store.get(session_id).messages) == 2

    def test_unknown_session(self, api):
        """Test a session id the server does not know."""
        response = api.post("/api/chatbot/message", json={"session_id": "nope", "message": "hi"})

        assert response.status_code == 404
        assert response.json()["code"] == "SESSION_ERROR"

    def test_beneficiary_mismatch(self, api):
        """Test that a session cannot be used for another persona."""
        session_id = open_session(api, 1004)
        response = api.post("/api/chatbot/message", json={
            "session_id": session_id, "message": "hi", "beneficiary_key": 1001,
        })

        assert response.status_code == 403
        assert response.json()["code"] == "SESSION_AUTH_ERROR"

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_message(self, api, text):
        """Test empty and whitespace-only messages."""
        session_id = open_session(api)
        response = api.post("/api/chatbot/message", json={"session_id": session_id, "message": text})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unexpected_error_is_500(self, store):
        """Test that an internal failure is rendered as SERVER_ERROR."""

        class BrokenLLM(LLMService):
            def detect_intent(self, session):
                raise RuntimeError("bug")

        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_llm] = lambda: BrokenLLM(chat_model=FakeChatModel(), mock=False)
        try:
            client = TestClient(app, raise_server_exceptions=False)
            session_id = open_session(client)
            response = client.post("/api/chatbot/message", json={"session_id": session_id, "message": "hello"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error", "code": "SERVER_ERROR"}


# =============================================================================
# Sessions, personas, health
# =============================================================================


class TestSessionEndpoints:
    """Tests for GET and DELETE /api/chatbot/session/{id}."""

    def test_get_session(self, api, fake_model):
        """Test the session snapshot after one turn."""
        session_id = open_session(api)
        fake_model.replies = [detection_json("Welcome", 0.99)]
        api.post("/api/chatbot/message", json={"session_id": session_id, "message": "hello"})

        body = api.get(f"/api/chatbot/session/{session_id}").json()

        assert body["success"] is True
        assert body["session"]["session_id"] == session_id
        assert body["session"]["current_intent"] == "Welcome"
        assert body["session"]["message_count"] == 2
        assert [m["role"] for m in body["session"]["messages"]] == ["user", "assistant"]

    def test_get_unknown_session(self, api):
        """Test a missing session."""
        assert api.get("/api/chatbot/session/nope").status_code == 404

    def test_delete_session(self, api, store):
        """Test deleting, then deleting again."""
        session_id = open_session(api)

        response = api.delete(f"/api/chatbot/session/{session_id}")
        assert response.json() == {"success": True, "session_id": session_id}
        assert store.get(session_id) is None

        again = api.delete(f"/api/chatbot/session/{session_id}")
        assert again.status_code == 404
        assert again.json()["code"] == "SESSION_ERROR"


class TestMiscEndpoints:
    """Tests for personas, health, root and routing errors."""

    def test_personas(self, api):
        """Test the persona list without Medicare IDs."""
        body = api.get("/api/personas").json()

        assert body["success"] is True
        keys = [p["beneficiary_key"] for p in body["personas"]]
        assert keys == [1001, 1002, 1003, 1004]
        assert all("medicare_id" not in p for p in body["personas"])

    def test_health(self, api):
        """Test the health check."""
        body = api.get("/health").json()
        assert body["status"] == "ok"
        assert body["service"] == "Medicare Chatbot API"
        assert isinstance(body["active_sessions"], int)

    def test_root(self, api):
        """Test the root endpoint."""
        assert api.get("/").json()["message"] == "Medicare Chatbot API"

    def test_unknown_route_uses_error_body(self, api):
        """Test that routing 404s share the API error shape."""
        response = api.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Not Found", "code": "NOT_FOUND"}

    def test_wrong_method_uses_error_body(self, api):
        """Test a 405 keeps its Allow header."""
        response = api.get("/api/chatbot/welcome")

        assert response.status_code == 405
        assert response.json()["code"] == "METHOD_NOT_ALLOWED"
        assert response.json()["success"] is False
        assert response.headers["allow"] == "POST"
