class ChatError(Exception):
    """Base class for conversation engine failures."""


class StoreMiss(ChatError):
    """An operation referenced a conversation id that is not in the store."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class ParsePersistenceError(ChatError):
    """The persisted collection is present but cannot be decoded."""


class TransportError(ChatError):
    """The inference endpoint could not be reached or its reply could not be parsed."""


class EmptyInput(ChatError):
    """A send was attempted with blank text or without an active conversation."""


class SendInProgress(ChatError):
    """A send was attempted while another one is still in flight."""
