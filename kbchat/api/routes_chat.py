import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..config import get_config
from ..session import ChatSession, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class SendRequest(BaseModel):
    text: Optional[str] = None  # None -> send the pending draft
    wait: bool = True  # False -> return right after the user message is stored


class InputRequest(BaseModel):
    text: str = ""


def _state_payload(session: ChatSession) -> dict:
    active = session.store.active
    return {
        "busy": session.orchestrator.busy,
        "state": session.orchestrator.state.value,
        "active_id": session.store.active_id,
        "conversation": active.model_dump() if active else None,
        "message_count": len(active.messages) if active else 0,
        "input": session.orchestrator.pending_input,
    }


@router.get("/state")
async def get_state(session: ChatSession = Depends(get_session)):
    return _state_payload(session)


@router.put("/input")
async def set_input(req: InputRequest, session: ChatSession = Depends(get_session)):
    session.orchestrator.set_input(req.text)
    return {"input": session.orchestrator.pending_input}


@router.post("/send")
async def send_message(req: SendRequest, session: ChatSession = Depends(get_session)):
    conversation_id = session.store.active_id
    task = session.orchestrator.submit(req.text)
    if task is None:
        logger.info("Send declined (busy=%s, active=%s)", session.orchestrator.busy, conversation_id)
        return {"accepted": False, **_state_payload(session)}
    if req.wait:
        await asyncio.shield(task)
    conv = session.store.get(conversation_id)
    return {
        "accepted": True,
        **_state_payload(session),
        "conversation": conv.model_dump() if conv else None,
    }


@router.get("/starters")
async def starter_prompts():
    return {"prompts": get_config().chat.starter_prompts}
