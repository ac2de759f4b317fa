# chatbot/analytics.py
# One row per chat turn in Supabase, for reviewing how
# intents are detected and routed. Skipped when Supabase
# is not configured.

import logging
from typing import Optional

from config import SUPABASE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

supabase = None
if SUPABASE_URL and SUPABASE_KEY:
    from supabase import create_client  # type: ignore[reportMissingImports]
    supabase = create_client(SUPABASE_URL, SUPABASE_KEY)


def log_turn(
    session_id:         str,
    beneficiary_key:    int,
    intent:             Optional[str],
    confidence:         Optional[float],
    detection_source:   str,
    slots_cleared:      bool,
    slots:              dict,
    processing_time_ms: Optional[int],
    error:              Optional[str] = None,
) -> bool:
    if not supabase:
        return False
    try:
        supabase.table("chatbot_turns").insert({
            "session_id":         session_id,
            "beneficiary_key":    beneficiary_key,
            "intent":             intent,
            "confidence":         confidence,
            "detection_source":   detection_source,
            "slots_cleared":      slots_cleared,
            "slot_names":         sorted(slots),
            "processing_time_ms": processing_time_ms,
            "error":              error,
        }).execute()
        return True
    except Exception as e:
        logger.error("Analytics log error: %s", e)
        return False
