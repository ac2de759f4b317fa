# chatbot/drugs.py
# ─────────────────────────────────────────────────────
# Drug information extraction and RxNorm normalization.
#
# Two sources feed a drug lookup:
# 1. Slots the LLM already extracted ("drug_name": "lipitor")
# 2. The raw text, scanned for dosage, frequency, duration,
#    route and form with regexes
#
# The drug name is then normalized against RxNorm using the
# public NLM RxNav API (no key needed), which also gives us
# the RxNorm code, brand/generic type and related concepts.
#
# Network failures never raise. The result carries an
# "error" string and the controller carries on with what
# it has.
# ─────────────────────────────────────────────────────

import logging
import re
import time
from typing import List, Optional

import httpx  # type: ignore[reportMissingImports]

from config import HTTP_TIMEOUT_SECONDS, RXNAV_BASE_URL

logger = logging.getLogger(__name__)

ATTRIBUTE_SLOTS = ["dosage", "drug_form", "route", "frequency", "duration", "rate", "strength"]

# RxNorm term types -> brand or generic
_BRAND_TTYS = {"BN", "SBD", "SBDC", "SBDF", "SBDG", "BPCK"}
_GENERIC_TTYS = {"IN", "PIN", "MIN", "SCD", "SCDC", "SCDF", "SCDG", "GPCK"}

# ── Attribute patterns ────────────────────────────────
_UNIT = r"(?:mg|mcg|µg|g|ml|units?|iu)"

_PATTERNS = {
    "strength":  re.compile(r"\b\d+(?:\.\d+)?\s*(?:mg|mcg|g)\s*/\s*\d*(?:\.\d+)?\s*(?:ml|l)\b", re.I),
    "rate":      re.compile(r"\b\d+(?:\.\d+)?\s*(?:ml|mg|units?)\s*(?:/|per)\s*(?:hr|hour|min|minute)\b", re.I),
    "dosage":    re.compile(rf"\b\d+(?:\.\d+)?\s*{_UNIT}\b", re.I),
    "frequency": re.compile(
        r"\b(?:once|twice|thrice|\d+\s*(?:times|x)|one time|two times|three times|four times)\s*"
        r"(?:a|per|each)?\s*(?:day|daily|week|weekly|month|monthly|night|nightly)\b"
        r"|\bevery\s+\d+\s*hours?\b"
        r"|\bevery\s+(?:day|morning|night|evening|week|other day)\b"
        r"|\b(?:daily|weekly|nightly|bid|tid|qid|at bedtime)\b",
        re.I,
    ),
    "duration":  re.compile(
        r"\b(?:\d+|one|two|three|six)\s*-?\s*(?:day|week|month|year)s?\b"
        r"|\b(?:monthly|quarterly|yearly|annual(?:ly)?|long[- ]term)\b",
        re.I,
    ),
}

_ROUTES = {
    "by mouth":     "oral",
    "orally":       "oral",
    "oral":         "oral",
    "subcutaneous": "subcutaneous",
    "injection":    "injection",
    "inject":       "injection",
    "intravenous":  "intravenous",
    "iv":           "intravenous",
    "topical":      "topical",
    "inhaled":      "inhaled",
    "inhaler":      "inhaled",
    "sublingual":   "sublingual",
    "nasal":        "nasal",
    "patch":        "transdermal",
}

_FORMS = [
    "tablet", "capsule", "pill", "liquid", "solution", "suspension",
    "injection", "inhaler", "cream", "ointment", "patch", "drops",
    "syrup", "pen", "gel",
]


def _normalize_amount(text: str) -> str:
    return re.sub(r"\s+", "", text).lower()


def extract_attributes(text: str) -> dict:
    """Pull drug attributes out of free text. Missing ones are None."""
    text = text or ""
    found = {slot: None for slot in ATTRIBUTE_SLOTS}

    for slot in ("strength", "rate", "dosage"):
        match = _PATTERNS[slot].search(text)
        if match:
            found[slot] = _normalize_amount(match.group(0))

    # "5mg/ml" is a strength, do not report its "5mg" as the dosage too
    if found["strength"] and found["dosage"] and found["strength"].startswith(found["dosage"]):
        found["dosage"] = None

    for slot in ("frequency", "duration"):
        match = _PATTERNS[slot].search(text)
        if match:
            found[slot] = " ".join(match.group(0).lower().split())

    lowered = text.lower()
    for keyword, route in _ROUTES.items():
        if re.search(rf"\b{re.escape(keyword)}\b", lowered):
            found["route"] = route
            break

    for form in _FORMS:
        if re.search(rf"\b{form}s?\b", lowered):
            found["drug_form"] = form
            break

    return found


# ── RxNorm lookup ─────────────────────────────────────

def lookup_rxnorm(term: str, client: httpx.Client, max_entries: int = 5) -> Optional[dict]:
    """
    Resolve a drug name to its closest RxNorm concept.

    Returns {"name", "rxcui", "tty", "exact", "alternatives"} or
    None when RxNav has no candidate. Raises httpx.HTTPError on
    network problems; extract_drug_information() catches it.
    """
    response = client.get(
        f"{RXNAV_BASE_URL}/approximateTerm.json",
        params={"term": term, "maxEntries": max_entries},
    )
    response.raise_for_status()
    candidates = (response.json().get("approximateGroup") or {}).get("candidate") or []
    if not candidates:
        return None

    # Candidates repeat an rxcui once per source vocabulary
    unique: List[dict] = []
    seen = set()
    for candidate in candidates:
        rxcui = candidate.get("rxcui")
        if rxcui and rxcui not in seen:
            seen.add(rxcui)
            unique.append(candidate)
    if not unique:
        return None

    best = unique[0]
    props_response = client.get(f"{RXNAV_BASE_URL}/rxcui/{best['rxcui']}/properties.json")
    props_response.raise_for_status()
    properties = props_response.json().get("properties") or {}

    name = properties.get("name") or best.get("name") or term
    top_score = max(float(c.get("score") or 0) for c in unique) or 1.0

    alternatives = []
    for candidate in unique[1:]:
        if not candidate.get("name"):
            continue
        confidence = round(float(candidate.get("score") or 0) / top_score, 3)
        alternatives.append({
            "name":         candidate["name"],
            "rxnorm_code":  candidate["rxcui"],
            "confidence":   confidence,
            "is_preferred": confidence > 0.5,
        })
    alternatives.sort(key=lambda a: a["confidence"], reverse=True)

    return {
        "name":         name,
        "rxcui":        best["rxcui"],
        "tty":          properties.get("tty", ""),
        "exact":        _letters(name) == _letters(term),
        "alternatives": alternatives,
    }


def _letters(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (name or "").lower())


def _drug_type(tty: str) -> Optional[str]:
    if tty in _BRAND_TTYS:
        return "BRAND_NAME"
    if tty in _GENERIC_TTYS:
        return "GENERIC_NAME"
    return None


def extract_drug_information(slots: dict, user_text: str = "", client: Optional[httpx.Client] = None) -> dict:
    """
    Build a full drug record from collected slots and the user's words.

    Slot values win over anything scanned from the text. The drug
    name is normalized through RxNorm when one is known.
    """
    started = time.monotonic()
    slot_lines = "\n".join(
        f"{slot}: {slots[slot]}"
        for slot in ["drug_name"] + ATTRIBUTE_SLOTS
        if slots.get(slot)
    )
    original_text = f"Data: {slot_lines}\nUser Asked: {user_text or ''}".strip()

    scanned = extract_attributes(f"{slot_lines}\n{user_text or ''}")
    attributes = {slot: slots.get(slot) or scanned.get(slot) for slot in ATTRIBUTE_SLOTS}
    drug_name = slots.get("drug_name") or None

    info = {
        "drug_name":            drug_name,
        "normalized_drug_name": None,
        "rxnorm_code":          None,
        "drug_type":            None,
        **attributes,
        "alternative_drugs":    [],
        "error":                None,
    }

    concept = None
    if drug_name:
        http = client or httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
        try:
            concept = lookup_rxnorm(str(drug_name), http)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("RxNorm lookup failed for %s: %s", drug_name, e)
            info["error"] = f"RxNorm lookup failed: {e}"
        finally:
            if client is None:
                http.close()

    if concept:
        info["normalized_drug_name"] = concept["name"]
        info["rxnorm_code"] = concept["rxcui"]
        info["drug_type"] = _drug_type(concept["tty"])
        info["alternative_drugs"] = concept["alternatives"]

    # 1.0 for an exact RxNorm name match, 0.8 for an approximate one,
    # 0.5 when we only have the name the user typed
    if concept:
        confidence = 1.0 if concept["exact"] else 0.8
    elif drug_name:
        confidence = 0.5
    else:
        confidence = 0.0

    info["metadata"] = {
        "confidence":       confidence,
        "entity_count":     sum(1 for value in [drug_name, *attributes.values()] if value),
        "latency_ms":       int((time.monotonic() - started) * 1000),
        "original_text":    original_text,
        "has_rxnorm_data":  concept is not None,
        "has_alternatives": bool(info["alternative_drugs"]),
    }
    return info


def find_beneficiary_medication(medications: List[dict], drug_name: Optional[str]) -> Optional[dict]:
    """Match on letters and digits only, so "Folic-Acid" finds "folic acid"."""
    if not medications or not drug_name:
        return None
    wanted = _letters(drug_name)
    return next((m for m in medications if _letters(m.get("drug_name", "")) == wanted), None)
