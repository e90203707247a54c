from fastapi import APIRouter, Depends

from ..config import AppConfig, get_config, update_config
from ..session import ChatSession, get_session

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
async def get_settings():
    config = get_config()
    return config.model_dump()


@router.put("")
async def update_settings(config: AppConfig, session: ChatSession = Depends(get_session)):
    updated = update_config(config)
    # Agent and context settings apply to the next send; storage and server need a restart
    session.gateway.endpoint_url = updated.agent.endpoint_url
    session.gateway.agent_id = updated.agent.agent_id
    session.gateway.user_id = updated.agent.user_id
    session.orchestrator.window = updated.chat.context_window
    return updated.model_dump()
