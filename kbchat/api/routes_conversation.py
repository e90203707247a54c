from fastapi import APIRouter, Depends, HTTPException

from ..session import ChatSession, get_session

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.get("")
async def list_conversations(q: str = "", session: ChatSession = Depends(get_session)):
    summaries = session.store.summaries(q)
    return {
        "conversations": [s.model_dump() for s in summaries],
        "active_id": session.store.active_id,
    }


@router.post("")
async def create_conversation(session: ChatSession = Depends(get_session)):
    conv_id = session.store.create()
    session.orchestrator.set_input("")
    return {"conversation": session.store.get(conv_id).model_dump(), "active_id": conv_id}


@router.get("/{conv_id}")
async def get_conversation(conv_id: str, session: ChatSession = Depends(get_session)):
    conv = session.store.get(conv_id)
    if not conv:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"conversation": conv.model_dump()}


@router.post("/{conv_id}/select")
async def select_conversation(conv_id: str, session: ChatSession = Depends(get_session)):
    session.store.select(conv_id)
    return {"active_id": session.store.active_id}


@router.delete("/{conv_id}")
async def delete_conversation(conv_id: str, session: ChatSession = Depends(get_session)):
    deleted = session.store.delete(conv_id)
    return {"deleted": deleted, "active_id": session.store.active_id}
