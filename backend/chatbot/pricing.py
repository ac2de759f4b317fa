# chatbot/pricing.py
# ─────────────────────────────────────────────────────
# Drug cost estimates for the GetSingleDrugPrice intent.
#
# There is no live pricing API behind this yet. We use a
# small table of typical per-dose retail prices and a flat
# default for anything not listed. These are ESTIMATES, and
# the answer prompt presents them that way.
# ─────────────────────────────────────────────────────

import re
from typing import Optional

DEFAULT_PRICE_PER_DOSE = 2.50

# Approximate per-dose prices. Keys are lowercase generic or brand names.
PRICE_PER_DOSE = {
    "atorvastatin":  0.35,
    "lipitor":       9.80,
    "metformin":     0.15,
    "lisinopril":    0.20,
    "amlodipine":    0.25,
    "omeprazole":    0.40,
    "levothyroxine": 0.30,
    "methotrexate":  1.10,
    "alendronate":   1.75,
    "folic acid":    0.05,
    "eliquis":       9.25,
    "apixaban":      9.25,
    "insulin":       12.00,
    "januvia":       17.50,
}

# Days per supply when the user gives a period name
_PERIOD_DAYS = {
    "day":   1,
    "daily": 1,
    "week":  7,
    "weekly": 7,
    "month": 30,
    "monthly": 30,
    "quarter": 90,
    "quarterly": 90,
    "year":  365,
    "yearly": 365,
    "annual": 365,
    "annually": 365,
}

_NUMBER_WORDS = {
    "once": 1, "one": 1, "twice": 2, "two": 2,
    "three": 3, "thrice": 3, "four": 4, "five": 5, "six": 6,
}

DEFAULT_SUPPLY_DAYS = 30


def _number(token: str) -> Optional[float]:
    token = token.lower()
    if token in _NUMBER_WORDS:
        return float(_NUMBER_WORDS[token])
    try:
        return float(token)
    except ValueError:
        return None


def price_per_dose(drug_name: Optional[str], dosage: Optional[str] = None) -> float:
    name = (drug_name or "").lower()
    for key, price in PRICE_PER_DOSE.items():
        if key in name:
            return price
    return DEFAULT_PRICE_PER_DOSE


def doses_per_day(frequency: Optional[str]) -> float:
    """
    "twice a day" -> 2, "every 8 hours" -> 3, "once weekly" -> 1/7,
    "every other day" -> 0.5.
    Unrecognised text counts as one dose a day.
    """
    text = (frequency or "").lower()
    if not text:
        return 1.0

    if re.search(r"\bevery\s+other\s+day\b|\bqod\b", text):
        return 0.5
    if re.search(r"\bevery\s+other\s+week\b", text):
        return 1 / 14

    match = re.search(r"every\s+(\d+(?:\.\d+)?)\s*hours?", text)
    if match and float(match.group(1)) > 0:
        return 24 / float(match.group(1))

    abbreviations = {r"\bbid\b": 2.0, r"\btid\b": 3.0, r"\bqid\b": 4.0, r"\bqd\b": 1.0}
    for pattern, value in abbreviations.items():
        if re.search(pattern, text):
            return value

    # "1 tablet twice daily": the multiplier word wins over a bare count
    count = 1.0
    match = (
        re.search(r"\b(\d+|one|two|three|four|five|six)\s*(?:times|x)\b", text)
        or re.search(r"\b(once|twice|thrice)\b", text)
    )
    if match:
        count = _number(match.group(1)) or 1.0

    if "week" in text:
        return count / 7
    if "month" in text:
        return count / 30
    return count


def supply_days(duration: Optional[str]) -> int:
    """
    "monthly" -> 30, "90 days" -> 90, "3 months" -> 90.
    Long-term and unrecognised supplies are priced as one month.
    """
    text = (duration or "").lower()
    if not text:
        return DEFAULT_SUPPLY_DAYS

    match = re.search(r"(\d+(?:\.\d+)?|one|two|three|four|six)\s*-?\s*(day|week|month|year)s?", text)
    if match:
        amount = _number(match.group(1)) or 1
        return int(round(amount * _PERIOD_DAYS[match.group(2)]))

    for word, days in _PERIOD_DAYS.items():
        if re.search(rf"\b{word}\b", text):
            return days
    return DEFAULT_SUPPLY_DAYS


def estimate_supply_cost(
    drug_name: Optional[str],
    dosage:    Optional[str],
    frequency: Optional[str],
    duration:  Optional[str],
) -> dict:
    per_dose = price_per_dose(drug_name, dosage)
    per_day = doses_per_day(frequency)
    days = supply_days(duration)
    doses = per_day * days
    return {
        "price_per_dose": round(per_dose, 2),
        "doses_per_day":  round(per_day, 3),
        "supply_days":    days,
        "total_doses":    round(doses, 1),
        "total_cost":     round(per_dose * doses, 2),
    }
