# chatbot/controllers.py
# ─────────────────────────────────────────────────────
# One controller per intent.
#
# The router builds a controller for the session's current
# intent and calls exactly one of:
# - handle():        we are confident, answer the user
# - clarification(): confidence is under min_confidence,
#                    check what the user meant first
#
# Controllers read and enrich session.collected_slots and
# return a MessageReply. They never append messages to the
# session themselves; the router does that.
# ─────────────────────────────────────────────────────

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from chatbot.canned import ERROR_MESSAGE, REPHRASE_MESSAGE, welcome_message
from chatbot.drugs import ATTRIBUTE_SLOTS, extract_drug_information, find_beneficiary_medication
from chatbot.intents import get_suggestions
from chatbot.llm import LLMService, LlmResponse
from chatbot.merge import backfill
from chatbot.personas import get_persona
from chatbot.pricing import estimate_supply_cost
from chatbot.session import ChatSession
from chatbot.tools import extract_zip, find_providers, search_medicare_info, taxonomy_for

logger = logging.getLogger(__name__)


@dataclass
class MessageReply:
    message: str
    cards:   List[dict] = field(default_factory=list)
    cta:     Optional[dict] = None
    error:   Optional[str] = None


def location_card(provider: dict) -> dict:
    return {
        "type":        "location",
        "title":       provider["name"],
        "description": " · ".join(p for p in (provider.get("specialty"), provider.get("phone")) if p),
        "address":     provider.get("address", ""),
        "city":        provider.get("city", ""),
        "state":       provider.get("state", ""),
        "zip":         provider.get("zip", ""),
    }


def price_card(drug_name: str, estimate: dict) -> dict:
    return {
        "type":        "price",
        "title":       f"{drug_name} ({estimate['supply_days']}-day supply)",
        "description": f"${estimate['price_per_dose']:.2f} per dose, {estimate['total_doses']:g} doses",
        "price":       estimate["total_cost"],
    }


# ── Base controller ───────────────────────────────────

class Controller(ABC):
    # None means the intent is handled whatever the confidence
    min_confidence: Optional[float] = None
    topic = "your question"

    def __init__(self, session: ChatSession, started_at: float, llm: LLMService):
        if session.current_intent is None:
            raise ValueError("Controller requires an intent in the session")
        self.session = session
        self.started_at = started_at
        self.llm = llm
        self.beneficiary = get_persona(session.beneficiary_key)

    @property
    def intent(self):
        return self.session.current_intent

    @property
    def slots(self) -> dict:
        return self.session.collected_slots

    def is_confident(self) -> bool:
        if not self.min_confidence:
            return True
        return (self.session.current_confidence or 0) >= self.min_confidence

    @abstractmethod
    def handle(self) -> MessageReply:
        ...

    def reply(self, payload, fallback: Optional[str] = None, cards: Optional[List[dict]] = None) -> MessageReply:
        """
        Wrap a str, an LlmResponse or a {"message": ...} dict.
        A failed or empty LLM response is replaced by `fallback`.
        """
        cards = list(cards or [])
        if isinstance(payload, LlmResponse):
            if payload.error or not payload.content:
                if payload.error:
                    logger.error("LLM error in %s: %s", type(self).__name__, payload.error)
                return MessageReply(
                    message=fallback or ERROR_MESSAGE,
                    cards=cards,
                    error=str(payload.error) if payload.error else None,
                )
            return MessageReply(message=payload.content, cards=cards)
        if isinstance(payload, dict):
            return MessageReply(
                message=payload["message"],
                cards=payload.get("cards") or cards,
                cta=payload.get("cta"),
            )
        return MessageReply(message=str(payload), cards=cards)

    def clarification(self) -> MessageReply:
        return self.reply(
            self.llm.generate_clarification(self.session),
            fallback=f"I think you want to {self.intent.text}, but I'm not sure. Could you tell me a bit more?",
        )

    # ── Slots ─────────────────────────────────────────

    def slots_we_have(self) -> List[str]:
        return [slot for slot, value in self.slots.items() if value]

    def slots_we_are_missing(self) -> List[str]:
        have = self.slots_we_have()
        return [slot for slot in self.intent.required_slots if slot not in have]

    def is_missing_required_slots(self) -> bool:
        return len(self.slots_we_are_missing()) > 0

    def have_all_required_slots(self) -> bool:
        if not self.intent.required_slots:
            return True
        return not self.is_missing_required_slots()

    def ask_for_missing_slots(self) -> MessageReply:
        missing = self.slots_we_are_missing()
        return self.reply(
            self.llm.generate_missing_information(self.session, self.topic, self.slots_we_have(), missing),
            fallback=f"To help with {self.topic}, could you tell me the {', '.join(m.replace('_', ' ') for m in missing)}?",
        )


# ── Welcome / Unknown ─────────────────────────────────

class WelcomeController(Controller):

    def handle(self) -> MessageReply:
        return self.reply(welcome_message(self.beneficiary))


class UnknownController(Controller):

    def handle(self) -> MessageReply:
        return self.reply(
            self.llm.generate_fallback(self.session, get_suggestions()),
            fallback=REPHRASE_MESSAGE,
        )


# ── Drug prices ───────────────────────────────────────

DRUG_DEFAULTS = {"duration": "monthly"}


class GetSingleDrugPriceController(Controller):
    min_confidence = 0.8
    topic = "drug price"

    def clarification(self) -> MessageReply:
        return self.reply("I think you are asking about a drug price. Is that right?")

    def beneficiary_medication(self, *names) -> Optional[dict]:
        medications = self.beneficiary.medication_dicts() if self.beneficiary else []
        for name in names:
            found = find_beneficiary_medication(medications, name)
            if found:
                return found
        return None

    def handle(self) -> MessageReply:
        drug_name = self.slots.get("drug_name")
        if not drug_name:
            return self.reply(
                "Which drug are you asking about? Please provide the name of "
                "the medication you'd like pricing information for."
            )

        info = extract_drug_information(self.slots, self.session.last_user_message or "")
        if info["error"]:
            logger.warning("Drug lookup note: %s, continuing with what we have", info["error"])

        # Extracted info wins. Gaps are filled from the beneficiary's
        # own prescription, then from what the user said, then defaults.
        medication = self.beneficiary_medication(info["normalized_drug_name"], info["drug_name"])
        base = {slot: info.get(slot) for slot in ["drug_name"] + ATTRIBUTE_SLOTS}
        drug = backfill(base, medication or {}, self.slots, DRUG_DEFAULTS)
        drug["drug_name"] = drug["drug_name"] or drug_name

        self.session.update_context(slots={
            **{slot: value for slot, value in drug.items() if value},
            "normalized_drug_name": info["normalized_drug_name"],
            "rxnorm_code":          info["rxnorm_code"],
            "drug_type":            info["drug_type"],
            "has_rxnorm_data":      info["metadata"]["has_rxnorm_data"],
            "alternative_drugs":    info["alternative_drugs"],
        })

        if self.is_missing_required_slots():
            return self.ask_for_missing_slots()
        return self.price_answer(drug, info)

    def price_answer(self, drug: dict, info: dict) -> MessageReply:
        estimate = estimate_supply_cost(drug["drug_name"], drug["dosage"], drug["frequency"], drug["duration"])
        answer = {
            "Drug Name":            drug["drug_name"],
            "Normalized Drug Name": info["normalized_drug_name"],
            "Dosage":               drug["dosage"],
            "Per Dose Cost":        estimate["price_per_dose"],
            "Frequency Taken":      drug["frequency"],
            "Length of Supply":     drug["duration"],
            "Supply Days":          estimate["supply_days"],
            "Total Doses":          estimate["total_doses"],
            "Total Cost":           estimate["total_cost"],
            "Taken Via/Route":      drug["route"],
            "Drug Form":            drug["drug_form"],
        }
        generics = [a["name"] for a in info["alternative_drugs"] if a["is_preferred"]]
        if generics:
            answer["Related Drugs"] = generics

        response = self.llm.generate_answer(
            self.session,
            self.topic,
            answer,
            additional_prompts=[
                "Include the cost per dose, length of supply, and the total cost for the duration of the supply.",
                "Make clear these are estimates and the final price depends on the plan and pharmacy.",
            ],
        )
        fallback = (
            f"An estimated {estimate['supply_days']}-day supply of {drug['drug_name']} "
            f"costs about ${estimate['total_cost']:.2f} "
            f"(${estimate['price_per_dose']:.2f} per dose)."
        )
        return self.reply(response, fallback=fallback, cards=[price_card(drug["drug_name"], estimate)])


class GetMultiDrugPriceController(Controller):

    def handle(self) -> MessageReply:
        return self.reply(
            "It looks like you are asking about the price of multiple drugs. "
            "I can help, but please ask one drug at a time."
        )


# ── Providers ─────────────────────────────────────────

_CITY_STATE = re.compile(r"^\s*([A-Za-z .'-]+?)\s*,\s*([A-Za-z]{2})\b")

# Relative places mean "where I live"
_NEAR_HOME = re.compile(
    r"^(?:near(?:by| me| here)?|around here|close by|close to (?:me|home)|(?:in )?my area|(?:at |near )?home|local(?:ly)?)$",
    re.I,
)


class FindProviderController(Controller):
    min_confidence = 0.7
    topic = "finding a provider"

    def clarification(self) -> MessageReply:
        return self.reply(
            "I think you are asking about finding a provider, but I am not sure "
            "enough to answer that. Could you provide more details?"
        )

    def search_area(self) -> dict:
        """
        Where to search: a ZIP in the location slot, a "City, ST"
        location, a bare city, or the beneficiary's home ZIP.
        "near me" and similar count as no location.
        """
        location = str(self.slots.get("location") or "").strip()
        if _NEAR_HOME.match(location.rstrip(".!?")):
            location = ""
        zip_code = extract_zip(location)
        if zip_code:
            return {"zip_code": zip_code, "label": zip_code}
        if location:
            match = _CITY_STATE.match(location)
            if match:
                return {"city": match.group(1), "state": match.group(2).upper(), "label": location}
            state = self.beneficiary.state if self.beneficiary else None
            return {"city": location, "state": state, "label": location}
        if self.beneficiary:
            return {
                "zip_code": self.beneficiary.zip,
                "label":    f"{self.beneficiary.city}, {self.beneficiary.state} {self.beneficiary.zip}",
            }
        return {}

    def handle(self) -> MessageReply:
        provider_type = str(self.slots.get("provider_type") or "doctor")
        area = self.search_area()
        if not area:
            return self.ask_for_location()

        label = area.pop("label")
        providers = find_providers(specialty=taxonomy_for(provider_type), **area)
        if not providers:
            return self.reply(
                f"I couldn't find any {provider_type} providers near {label}. "
                "You could try a nearby ZIP code or a different type of provider."
            )

        answer = {
            "Provider Type": provider_type,
            "Location":      label,
            "Providers":     providers,
        }
        if self.beneficiary and self.beneficiary.primary_care_physician:
            answer["Your Primary Care Physician"] = self.beneficiary.primary_care_physician

        response = self.llm.generate_answer(
            self.session,
            self.topic,
            answer,
            additional_prompts=["List each provider with their address and phone number."],
        )
        fallback = "\n".join(
            [f"Here are some {provider_type} providers near {label}:"]
            + [f"• {p['name']}, {p['address']}, {p['city']} ({p['phone']})" for p in providers]
        )
        return self.reply(response, fallback=fallback, cards=[location_card(p) for p in providers])

    def ask_for_location(self) -> MessageReply:
        return self.reply(
            self.llm.generate_missing_information(self.session, self.topic, self.slots_we_have(), ["location"]),
            fallback="What city or ZIP code should I search near?",
        )


# ── Plan information ──────────────────────────────────

class GetPlanInfoController(Controller):
    min_confidence = 0.7
    topic = "plan information"

    def handle(self) -> MessageReply:
        plan_type = str(self.slots.get("plan_type") or (self.beneficiary.plan_type if self.beneficiary else "Medicare"))
        benefit_type = self.slots.get("benefit_type")

        answer = {"Plan Type": plan_type}
        if self.beneficiary:
            answer.update({
                "Enrolled Since":         self.beneficiary.effective_date,
                "Primary Care Physician": self.beneficiary.primary_care_physician,
                "Preferred Pharmacy":     self.beneficiary.preferred_pharmacy,
                "Home Area":              f"{self.beneficiary.city}, {self.beneficiary.state}",
            })
        if benefit_type:
            answer["Asked About"] = benefit_type

        additional = []
        research = search_medicare_info(f"Medicare {plan_type} {benefit_type or 'benefits'} coverage")
        if research:
            answer["Web Research"] = research
            additional.append("Summarize the web research briefly and say that details vary by plan.")

        response = self.llm.generate_answer(self.session, self.topic, answer, additional_prompts=additional)
        fallback = f"You are enrolled in {plan_type}"
        if self.beneficiary:
            fallback += f" since {self.beneficiary.effective_date}"
        return self.reply(response, fallback=f"{fallback}. What would you like to know about your coverage?")
