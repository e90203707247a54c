"""Send flow: optimistic user append, agent round trip, reconcile.

``submit`` runs the synchronous half (admission, user message, draft
clear) and hands the network call to a background task; that task appends
exactly one follow-up message and always returns the orchestrator to idle.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from ..agent.gateway import AgentGateway
from ..conversation.composer import CONTEXT_WINDOW, build_context
from ..conversation.models import Message
from ..conversation.store import ConversationStore
from ..errors import EmptyInput, SendInProgress

logger = logging.getLogger(__name__)

APOLOGY_TEXT = "Sorry, an error occurred while processing your message. Please try again."
ERROR_MARKER = "Error"


class SendState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


class SendOrchestrator:
    def __init__(
        self,
        store: ConversationStore,
        gateway: AgentGateway,
        window: int = CONTEXT_WINDOW,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.window = window
        self.pending_input = ""
        self._state = SendState.IDLE
        self._inflight: Optional[asyncio.Task] = None
        self._awaiting_reply: Optional[str] = None  # conversation still owed a follow-up

    @property
    def state(self) -> SendState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is SendState.SENDING

    def set_input(self, text: str) -> None:
        self.pending_input = text

    def _admit(self, text: str) -> str:
        if self._state is SendState.SENDING:
            raise SendInProgress("A message is already being sent")
        conversation_id = self.store.active_id
        if not text.strip() or conversation_id is None:
            raise EmptyInput("Nothing to send")
        return conversation_id

    def submit(self, text: Optional[str] = None) -> Optional[asyncio.Task]:
        """Accept a send and start it in the background.

        Returns ``None`` when the send is declined; nothing is mutated then.
        Must be called from inside a running event loop.
        """
        if text is None:
            text = self.pending_input
        try:
            conversation_id = self._admit(text)
        except (EmptyInput, SendInProgress) as e:
            logger.debug("Send declined: %s", e)
            return None

        self._state = SendState.SENDING
        try:
            # Snapshot before the user message goes in; the new text is passed separately
            conversation = self.store.get(conversation_id)
            history = list(conversation.messages) if conversation else []
            self.store.append_message(conversation_id, Message(text=text, sender="user"))
            self.pending_input = ""
            self._awaiting_reply = conversation_id
            self._inflight = asyncio.create_task(
                self._complete(conversation_id, history, text),
                name=f"send-{conversation_id}",
            )
            self._inflight.add_done_callback(self._release)
        except BaseException:
            self._awaiting_reply = None
            self._state = SendState.IDLE
            raise
        return self._inflight

    async def send(self, text: Optional[str] = None) -> bool:
        """Submit and wait for the follow-up message. ``False`` if declined.

        Cancelling the caller does not cancel the send itself.
        """
        task = self.submit(text)
        if task is None:
            return False
        await asyncio.shield(task)
        return True

    def _reply(self, conversation_id: str, text: str) -> None:
        self._awaiting_reply = None
        self.store.append_message(conversation_id, Message(text=text, sender="agent"))

    def _apologize(self, conversation_id: str) -> None:
        self._awaiting_reply = None
        self.store.append_message(
            conversation_id,
            Message(text=APOLOGY_TEXT, sender="agent"),
            last_message=ERROR_MARKER,
        )

    async def _complete(self, conversation_id: str, history: list[Message], text: str) -> None:
        try:
            try:
                composed = build_context(history, text, self.window)
                reply = await self.gateway.send(composed, conversation_id)
            except asyncio.CancelledError:
                logger.warning("Send in %s was cancelled before the agent replied", conversation_id)
                self._apologize(conversation_id)
                raise
            except Exception as e:
                logger.error("Error sending message in %s: %s", conversation_id, e, exc_info=True)
                self._apologize(conversation_id)
            else:
                self._reply(conversation_id, reply)
        finally:
            self._state = SendState.IDLE

    def _release(self, task: asyncio.Task) -> None:
        if self._inflight is not task:
            return
        # A task cancelled before its first step never reached _complete
        if self._awaiting_reply is not None:
            self._apologize(self._awaiting_reply)
        self._inflight = None
        self._state = SendState.IDLE

    async def wait_idle(self) -> None:
        task = self._inflight
        if task is not None:
            await asyncio.wait([task])
