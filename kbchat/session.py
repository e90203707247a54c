import logging
from typing import Optional

import httpx
from fastapi import Request

from .agent.gateway import AgentGateway
from .chat.orchestrator import SendOrchestrator
from .config import AppConfig, get_data_dir
from .conversation.persistence import BlobStore, FileBlobStore, MemoryBlobStore
from .conversation.store import ConversationStore

logger = logging.getLogger(__name__)


class ChatSession:
    """Everything one running client owns: store, gateway and send orchestrator."""

    def __init__(self, store: ConversationStore, gateway: AgentGateway, orchestrator: SendOrchestrator):
        self.store = store
        self.gateway = gateway
        self.orchestrator = orchestrator

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        blob_store: Optional[BlobStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "ChatSession":
        if blob_store is None:
            if config.storage.backend == "memory":
                blob_store = MemoryBlobStore()
            else:
                blob_store = FileBlobStore(get_data_dir(config))
        store = ConversationStore(blob_store, key=config.storage.key)
        store.load()
        gateway = AgentGateway.from_config(config.agent, client=client)
        orchestrator = SendOrchestrator(store, gateway, window=config.chat.context_window)
        logger.info(
            "Chat session ready: %d conversations, agent endpoint %s",
            len(store),
            config.agent.endpoint_url,
        )
        return cls(store, gateway, orchestrator)

    async def aclose(self) -> None:
        await self.orchestrator.wait_idle()
        await self.gateway.aclose()


def get_session(request: Request) -> ChatSession:
    return request.app.state.session
