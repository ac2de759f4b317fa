# conftest.py
# Shared pytest fixtures. No test touches OpenAI, NPI,
# RxNav, Tavily or Supabase: the chat model is faked and
# HTTP lookups go through httpx.MockTransport.

import json

import httpx
import pytest

from chatbot import analytics, controllers, tools
from chatbot.drugs import extract_drug_information
from chatbot.intents import Intent
from chatbot.llm import LLMService
from chatbot.session import ChatSession
from chatbot.store import SessionStore


class FakeReply:
    def __init__(self, content):
        self.content = content


class FakeChatModel:
    """Stands in for ChatOpenAI. Replies are handed out in order
    and every message list it receives is recorded."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return FakeReply(self.replies.pop(0) if self.replies else "OK")


class FakeTavily:
    def __init__(self, results=None, error=None):
        self.results = results
        self.error = error
        self.queries = []

    def search(self, **kwargs):
        self.queries.append(kwargs)
        if self.error:
            raise self.error
        return self.results


def detection_json(intent: str, confidence: float, **slots) -> str:
    return json.dumps({"intent": intent, "confidence": confidence, "slots": slots})


@pytest.fixture(autouse=True)
def no_external_services(monkeypatch):
    monkeypatch.setattr(analytics, "supabase", None)
    monkeypatch.setattr(tools, "tavily", None)


@pytest.fixture
def fake_model():
    return FakeChatModel()


@pytest.fixture
def llm(fake_model):
    return LLMService(chat_model=fake_model, model="fake-model", mock=False, context_window=10)


@pytest.fixture
def session():
    # Robert Chen: Medicare Advantage, San Francisco 94115
    return ChatSession(beneficiary_key=1004)


@pytest.fixture
def store():
    return SessionStore(timeout_seconds=3600, max_messages=50)


@pytest.fixture
def drug_intent():
    return Intent(
        name="TestDrug",
        text="test drug prices",
        prompt_instructions="test",
        slots=["drug_name", "dosage"],
        critical_slots=["drug_name"],
        required_slots=["drug_name", "dosage"],
    )


@pytest.fixture
def rxnav(monkeypatch):
    """Answer RxNav lookups with a single exact concept named after the term.
    Returns the list of terms looked up."""
    terms = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/approximateTerm.json"):
            terms.append(request.url.params["term"])
            return httpx.Response(200, json={"approximateGroup": {"candidate": [
                {"rxcui": "6851", "score": "10", "name": terms[-1]},
            ]}})
        return httpx.Response(200, json={"properties": {"rxcui": "6851", "name": terms[-1], "tty": "IN"}})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    monkeypatch.setattr(
        controllers, "extract_drug_information",
        lambda slots, user_text="": extract_drug_information(slots, user_text, client=client),
    )
    return terms


@pytest.fixture
def npi(monkeypatch):
    """Record find_providers calls and return canned providers."""
    state = {
        "calls": [],
        "providers": [{
            "name": "Sarah Kim, MD", "specialty": "Rheumatology", "address": "2100 Webster St",
            "city": "San Francisco", "state": "CA", "zip": "94115", "phone": "415-555-0100", "npi": "1234567890",
        }],
    }

    def fake_find_providers(**kwargs):
        state["calls"].append(kwargs)
        return state["providers"]

    monkeypatch.setattr(controllers, "find_providers", fake_find_providers)
    return state
