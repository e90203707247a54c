import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kbchat.api.routes_chat import router as chat_router
from kbchat.api.routes_conversation import router as conversation_router
from kbchat.api.routes_settings import router as settings_router
from kbchat.config import get_config
from kbchat.session import ChatSession

__version__ = "0.1.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)


def create_app(session: Optional[ChatSession] = None) -> FastAPI:
    """Build the API. Without ``session`` one is created from the config at startup."""

    @asynccontextmanager
    async def lifespan(app):
        app.state.session = session or ChatSession.from_config(get_config())
        yield
        await app.state.session.aclose()

    app = FastAPI(title="Knowledge Base Chatbot", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",     # Next.js dev server
            "http://127.0.0.1:3000",
            "http://localhost:5173",     # Vite dev server
            "http://127.0.0.1:5173",
        ],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(conversation_router)
    app.include_router(chat_router)
    app.include_router(settings_router)

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(app, host=config.server.host, port=config.server.port)
