# routes/personas.py
# GET /api/personas: the demo beneficiaries a chat can be opened for.

from fastapi import APIRouter  # type: ignore[reportMissingImports]

from chatbot.personas import list_personas

router = APIRouter()


@router.get("")
async def personas():
    return {"success": True, "personas": list_personas()}
