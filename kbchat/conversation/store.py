import logging
from typing import Iterator, Optional

from ..errors import ParsePersistenceError, StoreMiss
from .formatting import format_time
from .models import TITLE_MAX_CHARS, Conversation, ConversationSummary, Message
from .persistence import BlobStore, decode_collection, encode_collection

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "chatbot_conversations"


class ConversationView:
    """Conversations whose title contains ``query``, case-insensitively.

    Nothing is evaluated until iteration, and every iteration starts over
    from the store's current contents in collection order.
    """

    def __init__(self, store: "ConversationStore", query: str = ""):
        self._store = store
        self.query = query

    def __iter__(self) -> Iterator[Conversation]:
        needle = self.query.lower()
        for conv in tuple(self._store._conversations):
            if needle in conv.title.lower():
                yield conv.model_copy(deep=True)


class ConversationStore:
    """Ordered collection of conversations, newest first, mirrored to a blob store.

    Every mutation rewrites the whole collection under one key before
    returning. Callers only ever receive copies; the store is the sole
    owner of the live ``Conversation`` objects.
    """

    def __init__(self, blob_store: BlobStore, key: str = DEFAULT_STORAGE_KEY):
        self._blob_store = blob_store
        self._key = key
        self._conversations: list[Conversation] = []
        self._active_id: Optional[str] = None
        self._loaded = False

    # ---- Lifecycle ----

    def load(self) -> None:
        """Seed the collection from the blob store. Only the first call reads."""
        if self._loaded:
            return
        self._loaded = True
        data = self._blob_store.read(self._key)
        if data is None:
            logger.info("No stored conversations under %r, starting empty", self._key)
            return
        try:
            conversations = decode_collection(data)
        except ParsePersistenceError as e:
            logger.warning("Ignoring stored conversations: %s", e)
            return
        self._conversations = conversations
        self._active_id = conversations[0].id if conversations else None
        logger.info("Loaded %d conversations", len(conversations))

    def _persist(self) -> None:
        try:
            self._blob_store.write(self._key, encode_collection(self._conversations))
        except OSError as e:
            logger.error("Failed to persist conversations: %s", e)

    # ---- Queries ----

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active(self) -> Optional[Conversation]:
        if self._active_id is None:
            return None
        return self.get(self._active_id)

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return tuple(c.model_copy(deep=True) for c in self._conversations)

    def __len__(self) -> int:
        return len(self._conversations)

    def _find(self, conversation_id: str) -> Conversation:
        for conv in self._conversations:
            if conv.id == conversation_id:
                return conv
        raise StoreMiss(conversation_id)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        try:
            return self._find(conversation_id).model_copy(deep=True)
        except StoreMiss:
            return None

    def filter(self, query: str = "") -> ConversationView:
        return ConversationView(self, query)

    def summaries(self, query: str = "") -> list[ConversationSummary]:
        return [
            ConversationSummary(
                id=conv.id,
                title=conv.title,
                lastMessage=conv.lastMessage,
                createdAt=conv.createdAt,
                message_count=len(conv.messages),
                created_label=format_time(conv.createdAt),
            )
            for conv in self.filter(query)
        ]

    # ---- Mutations ----

    def create(self) -> str:
        conv = Conversation()
        self._conversations.insert(0, conv)
        self._active_id = conv.id
        self._persist()
        logger.info("Created conversation %s", conv.id)
        return conv.id

    def select(self, conversation_id: str) -> None:
        try:
            self._find(conversation_id)
        except StoreMiss as e:
            logger.debug("Select ignored: %s", e)
            return
        self._active_id = conversation_id

    def delete(self, conversation_id: str) -> bool:
        try:
            conv = self._find(conversation_id)
        except StoreMiss as e:
            logger.debug("Delete ignored: %s", e)
            return False
        self._conversations.remove(conv)
        if self._active_id == conversation_id:
            self._active_id = self._conversations[0].id if self._conversations else None
        self._persist()
        logger.info("Deleted conversation %s", conversation_id)
        return True

    def append_message(
        self,
        conversation_id: str,
        message: Message,
        *,
        last_message: Optional[str] = None,
    ) -> bool:
        """Append ``message`` and refresh the cached preview.

        The first message of a conversation also fixes its title. When
        ``last_message`` is given it replaces the preview instead of the
        message text (used for the error marker).
        """
        try:
            conv = self._find(conversation_id)
        except StoreMiss as e:
            logger.debug("Append ignored: %s", e)
            return False
        if not conv.messages:
            conv.title = message.text[:TITLE_MAX_CHARS]
        conv.messages.append(message.model_copy())
        conv.lastMessage = message.text if last_message is None else last_message
        self._persist()
        return True
