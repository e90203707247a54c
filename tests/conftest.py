"""
Shared fixtures for the kbchat test suite.

KBCHAT_CONFIG_DIR must point at a throwaway directory before any kbchat
module is imported: kbchat.config resolves its paths at import time and
tests must never touch ~/.kbchat.
"""

import os
import tempfile

os.environ["KBCHAT_CONFIG_DIR"] = tempfile.mkdtemp(prefix="kbchat-tests-")
os.environ.pop("KBCHAT_AGENT_URL", None)

import httpx  # noqa: E402
import pytest  # noqa: E402

from kbchat.agent.gateway import AgentGateway  # noqa: E402
from kbchat.conversation.persistence import MemoryBlobStore  # noqa: E402
from kbchat.conversation.store import ConversationStore  # noqa: E402
from kbchat.errors import TransportError  # noqa: E402

AGENT_URL = "http://agent.test/api/agent"


class CountingBlobStore(MemoryBlobStore):
    """MemoryBlobStore that counts writes, to check write-through."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes = 0

    def write(self, key, data):
        super().write(key, data)
        self.writes += 1


class FakeGateway:
    """Stands in for AgentGateway; records every call."""

    def __init__(self, reply="Hello from the agent", error=None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def send(self, composed_text, conversation_id):
        self.calls.append((composed_text, conversation_id))
        if self.error is not None:
            raise self.error
        return self.reply

    async def aclose(self):
        pass


def make_gateway(handler) -> AgentGateway:
    """AgentGateway whose HTTP traffic goes to ``handler(request) -> httpx.Response``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AgentGateway(AGENT_URL, agent_id="agent-1", user_id="tester", client=client)


@pytest.fixture
def blob_store():
    return CountingBlobStore()


@pytest.fixture
def store(blob_store):
    s = ConversationStore(blob_store)
    s.load()
    return s


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def failing_gateway():
    return FakeGateway(error=TransportError("connection refused"))
