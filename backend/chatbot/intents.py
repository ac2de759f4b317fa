# chatbot/intents.py
# ─────────────────────────────────────────────────────
# The catalogue of intents the chatbot understands.
#
# Each intent lists the slots the LLM may extract for it.
# critical_slots: a new value here invalidates everything
#   collected so far (asking about a different drug means
#   the old dosage no longer applies).
# required_slots: the controller will not answer until
#   every one of these has a value.
# ─────────────────────────────────────────────────────

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Intent:
    name:                str
    text:                str
    prompt_instructions: str
    slots:               List[str] = field(default_factory=list)
    user_suggestion:     Optional[str] = None
    critical_slots:      List[str] = field(default_factory=list)
    required_slots:      List[str] = field(default_factory=list)
    examples:            List[str] = field(default_factory=list)
    is_fallback:         bool = False


GET_SINGLE_DRUG_PRICE = Intent(
    name="GetSingleDrugPrice",
    text="get drug prices",
    user_suggestion="Get price of a drug",
    prompt_instructions="User is asking for the cost of a single drug/medication",
    slots=["drug_name", "drug_form", "dosage", "frequency", "duration", "rate", "strength", "route"],
    critical_slots=["drug_name"],
    required_slots=["drug_name", "dosage", "frequency"],
    examples=[
        "What is the [duration] cost for [dosage]mg of [drug_name]?",
        "How much does [dosage] of [drug_name] cost for [duration]?",
        "Is [drug_name] covered under my plan?",
        "What is my copay for [drug_name]?",
        "How much will I pay for [drug_name] at [pharmacy]?",
    ],
)

GET_MULTI_DRUG_PRICE = Intent(
    name="GetMultiDrugPrice",
    text="get drug prices of multiple drugs",
    prompt_instructions="User is asking for the cost of multiple drugs/medications",
    slots=["drug_names"],
    critical_slots=["drug_names"],
    examples=["What is the cost of [drug_name], [drug_name], and [drug_name]?"],
)

FIND_PROVIDER = Intent(
    name="FindProvider",
    text="find a provider",
    user_suggestion="Find a doctor, provider, or facility",
    prompt_instructions="User is asking for a provider, doctor, or facility",
    slots=["provider_type", "location", "insurance_plan", "preferred_provider"],
    critical_slots=["provider_type", "location"],
    examples=[
        "Find a [provider_type] near [location]",
        "Are there any [provider_type] in my network?",
        "Who is my primary care physician?",
        "I need a [specialty] doctor in [location]",
        "Can you help me locate a hospital close to [location]?",
    ],
)

GET_PLAN_INFO = Intent(
    name="GetPlanInfo",
    text="get plan information",
    user_suggestion="Learn about plan benefits, coverage details, or eligibility",
    prompt_instructions="User is asking for information about their plan",
    slots=["plan_type", "benefit_type", "coverage_area", "effective_date", "network_status"],
    critical_slots=["plan_type", "benefit_type"],
    examples=[
        "What does my [plan_type] cover?",
        "Explain my [benefit_type] benefits",
        "Is [service] covered under my plan?",
        "What is my deductible for [plan_type]?",
        "Does my plan require referrals for specialists?",
    ],
)

WELCOME = Intent(
    name="Welcome",
    text="find out what I can do",
    prompt_instructions="User says hello or other greeting, asks for help, or asks who they are talking to",
    examples=["Hello", "Hi there", "Good morning", "I need help", "Can you assist me?"],
)

UNKNOWN = Intent(
    name="Unknown",
    text="unclear",
    is_fallback=True,
    prompt_instructions="Intent does not match any supported category or is unclear/unsupported",
    examples=[
        "I want to talk about something else",
        "Blah blah",
        "Random text",
        "???",
        "What is the weather today?",
    ],
)

INTENTS: List[Intent] = [
    GET_SINGLE_DRUG_PRICE,
    GET_MULTI_DRUG_PRICE,
    FIND_PROVIDER,
    GET_PLAN_INFO,
    WELCOME,
    UNKNOWN,
]


def get_suggestions() -> List[str]:
    """User-facing list of things the chatbot can do."""
    return [intent.user_suggestion for intent in INTENTS if intent.user_suggestion]


def get_prompt_instructions(include_slots: bool = True) -> List[str]:
    """One line per intent for the detection prompt, e.g.
    "FindProvider: User is asking for a provider... (provider_type, location, ...)"
    """
    lines = []
    for intent in INTENTS:
        slots = f" ({', '.join(intent.slots)})" if include_slots and intent.slots else ""
        lines.append(f"{intent.name}: {intent.prompt_instructions}{slots}")
    return lines


def get_intent_by_name(name: Optional[str]) -> Optional[Intent]:
    for intent in INTENTS:
        if intent.name == name:
            return intent
    return None


def fallback_intent() -> Intent:
    return next(intent for intent in INTENTS if intent.is_fallback)
