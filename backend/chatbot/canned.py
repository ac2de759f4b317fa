# chatbot/canned.py
# Fixed replies that never need an LLM call.

from typing import Optional

from chatbot.intents import get_suggestions
from chatbot.personas import Beneficiary

REPHRASE_MESSAGE = "I am not sure what you mean. Could you please rephrase?"

ERROR_MESSAGE = (
    "Sorry, I ran into a problem while working on that. "
    "Could you please try asking again?"
)


def welcome_message(beneficiary: Optional[Beneficiary] = None) -> str:
    """
    Introduces the chatbot. The capability list is built from
    the intent catalogue so it never promises an unsupported intent.
    """
    capabilities = "\n".join(f"• {suggestion}" for suggestion in get_suggestions())
    name = beneficiary.first_name if beneficiary else "there"
    return "\n".join([
        f"👋 Hi {name}! I'm your Medicare assistant.",
        "",
        "I can help you to:",
        capabilities,
        "",
        "What would you like to know about?",
    ])
