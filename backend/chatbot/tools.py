# chatbot/tools.py
# ─────────────────────────────────────────────────────
# External lookups used by the intent controllers.
#
# Every function here degrades instead of raising: an empty
# list or an empty string means "nothing found", and the
# controller words its reply around that.
# ─────────────────────────────────────────────────────

import logging
import re
from typing import List, Optional

import httpx  # type: ignore[reportMissingImports]

from config import HTTP_TIMEOUT_SECONDS, NPI_REGISTRY_URL, TAVILY_API_KEY

logger = logging.getLogger(__name__)

# Tavily client is only created when a key is configured
tavily = None
if TAVILY_API_KEY:
    from tavily import TavilyClient  # type: ignore[reportMissingImports]
    tavily = TavilyClient(api_key=TAVILY_API_KEY)


# ── Provider search ───────────────────────────────────
# Why: the CMS NPI (National Provider Identifier) Registry is
# the official US government database of every licensed
# healthcare provider. It's public, free and needs no key.

# Casual provider names -> NPI taxonomy descriptions
SPECIALTY_MAP = {
    "primary care":   "Family Medicine",
    "family":         "Family Medicine",
    "pcp":            "Family Medicine",
    "internist":      "Internal Medicine",
    "internal":       "Internal Medicine",
    "cardio":         "Cardiovascular Disease",
    "heart":          "Cardiovascular Disease",
    "dermatolog":     "Dermatology",
    "skin":           "Dermatology",
    "orthopedic":     "Orthopaedic Surgery",
    "orthopaedic":    "Orthopaedic Surgery",
    "eye":            "Ophthalmology",
    "ophthalmolog":   "Ophthalmology",
    "optometr":       "Optometrist",
    "dentist":        "Dentist",
    "dental":         "Dentist",
    "podiatr":        "Podiatrist",
    "neurolog":       "Neurology",
    "psychiatr":      "Psychiatry",
    "mental":         "Psychiatry",
    "oncolog":        "Medical Oncology",
    "cancer":         "Medical Oncology",
    "gastro":         "Gastroenterology",
    "endocrin":       "Endocrinology, Diabetes & Metabolism",
    "diabetes":       "Endocrinology, Diabetes & Metabolism",
    "rheumatolog":    "Rheumatology",
    "urolog":         "Urology",
    "pulmon":         "Pulmonary Disease",
    "lung":           "Pulmonary Disease",
    "physical therap": "Physical Therapist",
    "pharmac":        "Pharmacist",
    "hospital":       "General Acute Care Hospital",
    "urgent care":    "Urgent Care",
}

ZIP_PATTERN = re.compile(r"\b(\d{5})(?:-\d{4})?\b")


def taxonomy_for(provider_type: Optional[str]) -> Optional[str]:
    text = (provider_type or "").lower()
    for keyword, taxonomy in SPECIALTY_MAP.items():
        if keyword in text:
            return taxonomy
    return None


def extract_zip(text: Optional[str]) -> Optional[str]:
    match = ZIP_PATTERN.search(text or "")
    return match.group(1) if match else None


def _format_provider(record: dict) -> Optional[dict]:
    basic = record.get("basic", {})
    addresses = record.get("addresses") or [{}]
    # Prefer the practice location over the mailing address
    addr = next((a for a in addresses if a.get("address_purpose") == "LOCATION"), addresses[0])

    name = (basic.get("organization_name") or "").strip()
    if not name:
        first = basic.get("first_name", "").title()
        last = basic.get("last_name", "").title()
        credential = basic.get("credential", "")
        name = " ".join(part for part in (first, last) if part)
        if name and credential:
            name = f"{name}, {credential}"
    if not name:
        return None

    taxonomies = record.get("taxonomies") or []
    primary = next((t for t in taxonomies if t.get("primary")), taxonomies[0] if taxonomies else {})

    return {
        "name":      name,
        "specialty": primary.get("desc", ""),
        "address":   addr.get("address_1", "").title(),
        "city":      addr.get("city", "").title(),
        "state":     addr.get("state", ""),
        "zip":       (addr.get("postal_code") or "")[:5],
        "phone":     addr.get("telephone_number", "N/A"),
        "npi":       record.get("number", ""),
    }


def find_providers(
    zip_code:  Optional[str] = None,
    city:      Optional[str] = None,
    state:     Optional[str] = None,
    specialty: Optional[str] = None,
    limit:     int = 5,
    client:    Optional[httpx.Client] = None,
) -> List[dict]:
    """
    Find providers near a zip code or city via the NPI Registry.
    Returns a list of dicts (name, specialty, address, city,
    state, zip, phone, npi). Empty list on no results or error.
    """
    if not zip_code and not city:
        return []

    params = {"version": "2.1", "limit": limit}
    if zip_code:
        params["postal_code"] = zip_code
    if city:
        params["city"] = city
    if state:
        params["state"] = state
    if specialty:
        params["taxonomy_description"] = specialty

    http = client or httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
    try:
        response = http.get(NPI_REGISTRY_URL, params=params)
        response.raise_for_status()
        results = response.json().get("results") or []
    except httpx.TimeoutException:
        logger.warning("NPI Registry lookup timed out")
        return []
    except (httpx.HTTPError, ValueError) as e:
        logger.error("NPI Registry lookup failed: %s", e)
        return []
    finally:
        if client is None:
            http.close()

    providers = []
    for record in results:
        provider = _format_provider(record)
        if provider:
            providers.append(provider)
    return providers


# ── Web search ────────────────────────────────────────
# Why: plan benefit rules change every year. Tavily returns
# clean text from live sources instead of raw HTML.

def search_medicare_info(query: str, max_results: int = 3) -> str:
    """
    Search the live web for Medicare coverage information.
    Returns source-tagged text, or "" when search is disabled
    or fails.
    """
    if tavily is None:
        return ""
    try:
        results = tavily.search(query=query, max_results=max_results, search_depth="basic")
    except Exception as e:
        logger.error("Medicare info search failed: %s", e)
        return ""

    formatted = []
    for r in (results or {}).get("results", []):
        formatted.append(
            f"Source: {r.get('url', 'unknown')}\n"
            f"Content: {r.get('content', '')}"
        )
    return "\n---\n".join(formatted)
