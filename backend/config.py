# config.py
# ─────────────────────────────────────────────────────
# Central configuration for the Medicare chatbot backend.
# All other files import settings from here.
# Never hardcode API keys anywhere else.
# ─────────────────────────────────────────────────────

import logging
import os
from dotenv import load_dotenv  # type: ignore[reportMissingImports]

# Load all variables from backend/.env into os.environ
# This must run before any os.getenv() calls
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


# ── LLM ───────────────────────────────────────────────
# Intent detection and every natural-language reply go through
# one chat model. Temperature 0 keeps the JSON output stable.
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1024"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))

# Returns a canned "[MOCK]" reply instead of calling the model
MOCK_LLM_RESPONSES = _env_bool("MOCK_LLM_RESPONSES")

# How many previous messages travel with each LLM call
CONTEXT_WINDOW_MESSAGES = int(os.getenv("CONTEXT_WINDOW_MESSAGES", "10"))

# ── Sessions ──────────────────────────────────────────
# Sessions live in memory only. Idle ones are swept out.
SESSION_TIMEOUT_SECONDS = int(os.getenv("SESSION_TIMEOUT_SECONDS", str(60 * 60)))
SESSION_CLEANUP_INTERVAL_SECONDS = int(os.getenv("SESSION_CLEANUP_INTERVAL_SECONDS", str(5 * 60)))
MAX_CONVERSATION_LENGTH = int(os.getenv("MAX_CONVERSATION_LENGTH", "50"))

# ── Search ────────────────────────────────────────────
# Tavily adds live Medicare benefit context to plan answers
TAVILY_API_KEY = os.getenv("TAVILY_API_KEY", "")

# ── Database ──────────────────────────────────────────
# Supabase only receives per-turn analytics rows
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# ── External APIs (public, no key needed) ────────────
# CMS NPI Registry: finds providers by zip code or city
NPI_REGISTRY_URL = os.getenv("NPI_REGISTRY_URL", "https://npiregistry.cms.hhs.gov/api")

# NLM RxNav: normalizes drug names to RxNorm concepts
RXNAV_BASE_URL = os.getenv("RXNAV_BASE_URL", "https://rxnav.nlm.nih.gov/REST")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# ── App settings ──────────────────────────────────────
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Frontend URL, used for CORS (which requests are allowed in)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")


# ── Safety check ──────────────────────────────────────
# Called from the app lifespan. Warns about missing keys
# instead of failing later in the middle of a conversation.
def validate_config() -> list:
    required = {
        "OPENAI_API_KEY": OPENAI_API_KEY,
    }
    optional = {
        "TAVILY_API_KEY": TAVILY_API_KEY,
        "SUPABASE_URL": SUPABASE_URL,
        "SUPABASE_KEY": SUPABASE_KEY,
    }
    missing_keys = [key for key, value in required.items() if not value]
    if missing_keys and not MOCK_LLM_RESPONSES:
        logger.warning("Missing environment variables: %s", missing_keys)
    else:
        logger.info("Required environment variables loaded")

    disabled = [key for key, value in optional.items() if not value]
    if disabled:
        logger.info("Optional integrations disabled, unset: %s", disabled)
    return missing_keys
