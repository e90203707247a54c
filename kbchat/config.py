import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class AgentConfig(BaseModel):
    endpoint_url: str = "http://127.0.0.1:8000/api/agent"
    agent_id: str = "6939a09c5a8dda74db9ccca4"
    user_id: str = "chatbot-user"
    timeout: float = 60.0  # seconds; expiry surfaces as a transport failure


class StorageConfig(BaseModel):
    backend: str = "file"  # "file" | "memory"
    directory: str = ""  # Empty -> <config dir>/data
    key: str = "chatbot_conversations"


class ChatConfig(BaseModel):
    context_window: int = 10
    starter_prompts: list[str] = [
        "What is machine learning?",
        "How can I improve my productivity?",
        "Explain quantum computing in simple terms",
        "What are best practices for web development?",
    ]


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8765


class AppConfig(BaseModel):
    agent: AgentConfig = AgentConfig()
    storage: StorageConfig = StorageConfig()
    chat: ChatConfig = ChatConfig()
    server: ServerConfig = ServerConfig()


_config_dir = Path(os.environ.get("KBCHAT_CONFIG_DIR", Path.home() / ".kbchat"))
_config_file = _config_dir / "config.json"


def _ensure_config_dir() -> None:
    _config_dir.mkdir(parents=True, exist_ok=True)


def get_data_dir(config: AppConfig) -> Path:
    if config.storage.directory:
        return Path(config.storage.directory).expanduser()
    return _config_dir / "data"


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    agent_url = os.environ.get("KBCHAT_AGENT_URL")
    if agent_url:
        config.agent.endpoint_url = agent_url
    return config


def load_config() -> AppConfig:
    _ensure_config_dir()
    if _config_file.exists():
        try:
            data = json.loads(_config_file.read_text(encoding="utf-8"))
            return _apply_env_overrides(AppConfig(**data))
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.warning("Failed to load %s, using defaults: %s", _config_file, e)
    return _apply_env_overrides(AppConfig())


def save_config(config: AppConfig) -> None:
    _ensure_config_dir()
    _config_file.write_text(
        config.model_dump_json(indent=2),
        encoding="utf-8",
    )


_current_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    global _current_config
    if _current_config is None:
        _current_config = load_config()
    return _current_config


def update_config(config: AppConfig) -> AppConfig:
    global _current_config
    save_config(config)
    _current_config = config
    return _current_config
