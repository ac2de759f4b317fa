# chatbot/detection.py
# Turning raw detector output into an IntentDetection.
#
# The LLM is asked for {"intent", "confidence", "slots"}.
# It does not always comply: it wraps JSON in markdown fences,
# adds a sentence before the object, invents intent names or
# returns confidence as a string. parse_detection() absorbs all
# of that so the rest of the pipeline sees clean values.
#
# keyword_detection() is the fallback when the LLM call fails.

import json
import re
from dataclasses import dataclass, field

from chatbot.intents import (
    FIND_PROVIDER,
    GET_PLAN_INFO,
    GET_SINGLE_DRUG_PRICE,
    WELCOME,
    Intent,
    fallback_intent,
    get_intent_by_name,
)


@dataclass
class IntentDetection:
    intent:     Intent
    confidence: float
    slots:      dict = field(default_factory=dict)
    source:     str = "llm"


def parse_llm_json(raw: str) -> dict:
    """
    Parse JSON from LLM response, handling markdown code fences
    and any prose around the object.
    """
    text = (raw or "").strip()

    # Remove opening fence (```json or ```)
    if text.startswith("```"):
        text = text.split("\n", 1)[-1]

    # Remove closing fence
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0].strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(text[start:end + 1])


def _clamp(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, number))


def _clean_slots(raw) -> dict:
    if not isinstance(raw, dict):
        return {}
    slots = {}
    for key, value in raw.items():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            if str(value).strip():
                slots[str(key)] = value.strip() if isinstance(value, str) else value
        elif isinstance(value, list):
            items = [str(v).strip() for v in value if v is not None and str(v).strip()]
            if items:
                slots[str(key)] = items
    return slots


def parse_detection(raw: str) -> IntentDetection:
    """Raises ValueError when the output holds no JSON object."""
    try:
        data = parse_llm_json(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Detector returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Detector returned JSON that is not an object")

    intent = get_intent_by_name(data.get("intent")) or fallback_intent()
    return IntentDetection(
        intent=intent,
        confidence=_clamp(data.get("confidence", 0)),
        slots=_clean_slots(data.get("slots")),
    )


# ── Keyword fallback ──────────────────────────────────
# Checked in order, first match wins.
_KEYWORD_RULES = [
    (re.compile(r"\b(drugs?|medications?|prescriptions?)\b", re.I), GET_SINGLE_DRUG_PRICE, 0.85),
    (re.compile(r"\b(doctors?|providers?|physicians?)\b", re.I),     FIND_PROVIDER,         0.8),
    (re.compile(r"\b(plans?|coverage|benefits?)\b", re.I),           GET_PLAN_INFO,         0.75),
    (re.compile(r"\b(hello|hi|hey|help)\b", re.I),                   WELCOME,               0.9),
]


def keyword_detection(text: str) -> IntentDetection:
    for pattern, intent, confidence in _KEYWORD_RULES:
        if pattern.search(text or ""):
            return IntentDetection(intent=intent, confidence=confidence, source="keyword")
    return IntentDetection(intent=fallback_intent(), confidence=0.5, source="keyword")
