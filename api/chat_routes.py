import logging

from fastapi import APIRouter, Depends, HTTPException, status

from auth import Principal, get_current_principal
from llm_client import CompletionClient, CompletionError, build_chat_prompt, get_completion_client
from schemas import ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("")
async def chat(
    body: ChatRequest,
    principal: Principal = Depends(get_current_principal),
    client: CompletionClient = Depends(get_completion_client),
):
    prompt = build_chat_prompt(body.message, body.history, body.patient)
    try:
        reply = await client.complete(prompt)
    except CompletionError as exc:
        logger.warning("Chat completion failed for %s %s: %s", principal.kind, principal.id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to get a response from the assistant",
        )
    return {"success": True, "data": {"reply": reply}}
