"""
Tests for the chat turn pipeline (record -> detect -> update -> route -> log).
"""

import pytest

from chatbot import analytics
from chatbot.canned import REPHRASE_MESSAGE
from chatbot.graph import build_graph, run_turn
from chatbot.intents import FIND_PROVIDER, GET_SINGLE_DRUG_PRICE, WELCOME
from chatbot.llm import LLMService
from chatbot.messages import ASSISTANT, USER
from conftest import FakeChatModel, detection_json


class FakeSupabase:
    """Records rows inserted through supabase.table(...).insert(...).execute()."""

    def __init__(self, error=None):
        self.error = error
        self.rows = []
        self.tables = []

    def table(self, name):
        self.tables.append(name)
        return self

    def insert(self, row):
        self.rows.append(row)
        return self

    def execute(self):
        if self.error:
            raise self.error
        return self


class TestBuildGraph:
    """Tests for the compiled graph."""

    def test_nodes_are_wired(self):
        """Test that every pipeline step is present."""
        nodes = set(build_graph().get_graph().nodes)
        assert {"record_message", "detect_intent", "update_context", "route_intent", "log_turn"} <= nodes


class TestRunTurn:
    """Tests for run_turn."""

    def test_llm_detection(self, fake_model, llm, session, npi):
        """Test one turn with an LLM detection."""
        fake_model.replies = [
            detection_json("FindProvider", 0.9, provider_type="rheumatologist", location="94115"),
            "Dr. Sarah Kim is a rheumatologist near you.",
        ]

        result = run_turn(session, "  I need a rheumatologist near 94115  ", llm)

        assert result.success is True
        assert result.session_updated is True
        assert result.message.content == "Dr. Sarah Kim is a rheumatologist near you."
        assert result.message.metadata["intent"] == "FindProvider"
        assert [m.role for m in session.messages] == [USER, ASSISTANT]
        assert session.messages[0].content == "I need a rheumatologist near 94115"
        assert session.current_intent is FIND_PROVIDER
        assert npi["calls"][0]["zip_code"] == "94115"

    def test_keyword_fallback_when_llm_fails(self, session):
        """Test that a model outage still produces a useful reply."""
        model = FakeChatModel(error=RuntimeError("openai down"))
        service = LLMService(chat_model=model, mock=False)

        result = run_turn(session, "Hi there", service)

        assert session.current_intent is WELCOME
        assert session.current_confidence == 0.9
        assert result.message.content.startswith("👋 Hi Robert!")
        # Only the detection call reached the model
        assert len(model.calls) == 1

    def test_mock_mode_uses_keywords(self, session, rxnav):
        """Test that mock mode routes on keywords."""
        service = LLMService(chat_model=FakeChatModel(), mock=True)

        result = run_turn(session, "What does this drug cost?", service)

        assert session.current_intent is GET_SINGLE_DRUG_PRICE
        assert "Which drug are you asking about?" in result.message.content

    def test_unknown_text_gets_rephrase(self, session):
        """Test that unmatched keywords end in the canned rephrase."""
        service = LLMService(chat_model=FakeChatModel(error=TimeoutError()), mock=False)
        result = run_turn(session, "qwerty", service)
        assert result.message.content == REPHRASE_MESSAGE

    def test_controller_errors_propagate(self, session):
        """Test that unexpected failures surface to the caller."""

        class BrokenLLM(LLMService):
            def detect_intent(self, session):
                raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            run_turn(session, "hello", BrokenLLM(chat_model=FakeChatModel(), mock=False))

    def test_multi_turn_drug_price(self, fake_model, llm, session, rxnav):
        """Test collecting slots over two turns, then answering."""
        fake_model.replies = [
            detection_json("GetSingleDrugPrice", 0.92, drug_name="Lipitor"),
            "What dosage of Lipitor do you take, and how often?",
            detection_json("GetSingleDrugPrice", 0.9, dosage="20mg", frequency="once daily"),
            "A month of Lipitor costs about $294.",
        ]

        first = run_turn(session, "How much is Lipitor?", llm)
        assert first.message.content == "What dosage of Lipitor do you take, and how often?"
        assert session.collected_slots["drug_name"] == "Lipitor"
        assert session.collected_slots["duration"] == "monthly"

        second = run_turn(session, "20mg once daily", llm)

        assert second.message.content == "A month of Lipitor costs about $294."
        card = second.message.metadata["cards"][0]
        assert card["type"] == "price"
        assert card["price"] == 294.0
        assert session.collected_slots["drug_name"] == "Lipitor"
        assert len(session.messages) == 4
        assert rxnav == ["Lipitor", "Lipitor"]

    def test_new_drug_clears_slots(self, fake_model, llm, session, rxnav):
        """Test that asking about another drug starts over."""
        fake_model.replies = [
            detection_json("GetSingleDrugPrice", 0.92, drug_name="Lipitor", dosage="20mg"),
            "How often?",
            detection_json("GetSingleDrugPrice", 0.92, drug_name="Zocor"),
            "What dosage?",
        ]

        run_turn(session, "How much is Lipitor 20mg?", llm)
        run_turn(session, "Actually, what about Zocor?", llm)

        assert session.collected_slots["drug_name"] == "Zocor"
        assert "dosage" not in session.collected_slots


class TestTurnAnalytics:
    """Tests for the analytics row written after each turn."""

    def test_row_is_recorded(self, monkeypatch, session):
        """Test the logged fields for a keyword-detected turn."""
        fake = FakeSupabase()
        monkeypatch.setattr(analytics, "supabase", fake)
        service = LLMService(chat_model=FakeChatModel(error=RuntimeError("down")), mock=False)

        run_turn(session, "hello", service)

        assert fake.tables == ["chatbot_turns"]
        row = fake.rows[0]
        assert row["session_id"] == session.session_id
        assert row["beneficiary_key"] == 1004
        assert row["intent"] == "Welcome"
        assert row["detection_source"] == "keyword"
        assert row["slots_cleared"] is False
        assert row["slot_names"] == []
        assert row["error"] is None

    def test_failed_insert_does_not_break_turn(self, monkeypatch, fake_model, llm, session):
        """Test that an analytics outage is only logged."""
        monkeypatch.setattr(analytics, "supabase", FakeSupabase(error=RuntimeError("supabase down")))
        fake_model.replies = [detection_json("Welcome", 0.99)]

        result = run_turn(session, "hello", llm)

        assert result.success is True

    def test_log_turn_unconfigured(self):
        """Test that nothing is logged without Supabase."""
        assert analytics.log_turn("s", 1004, "Welcome", 0.9, "llm", False, {}, 5) is False
