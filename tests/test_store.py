"""
Tests for kbchat.conversation.store — the in-memory collection and its write-through.

Covers:
  - create / select / delete and the active pointer
  - append-only messages, title freeze, lastMessage mirror
  - lazy, restartable, case-insensitive filtering
  - startup load from present, absent and malformed blobs
  - every mutation writing the whole collection back
"""

import json
from pathlib import Path

from kbchat.conversation.models import NEW_CONVERSATION_TITLE, Message
from kbchat.conversation.persistence import FileBlobStore, MemoryBlobStore, decode_collection
from kbchat.conversation.store import DEFAULT_STORAGE_KEY, ConversationStore


def _user(text):
    return Message(text=text, sender="user")


def _agent(text):
    return Message(text=text, sender="agent")


class TestCreateSelectDelete:
    def test_create_on_empty_store(self, store):
        conv_id = store.create()
        assert len(store) == 1
        assert store.active_id == conv_id
        conv = store.active
        assert conv.title == NEW_CONVERSATION_TITLE
        assert conv.messages == []
        assert conv.lastMessage == ""

    def test_create_inserts_at_head(self, store):
        first = store.create()
        second = store.create()
        assert [c.id for c in store.conversations] == [second, first]
        assert store.active_id == second

    def test_ids_are_unique(self, store):
        ids = {store.create() for _ in range(50)}
        assert len(ids) == 50

    def test_select_existing(self, store):
        first = store.create()
        store.create()
        store.select(first)
        assert store.active_id == first

    def test_select_missing_is_noop(self, store):
        conv_id = store.create()
        store.select("does-not-exist")
        assert store.active_id == conv_id
        assert len(store) == 1

    def test_delete_only_conversation_clears_active(self, store):
        conv_id = store.create()
        assert store.delete(conv_id) is True
        assert len(store) == 0
        assert store.active_id is None
        assert store.active is None

    def test_delete_active_falls_back_to_new_head(self, store):
        a = store.create()
        b = store.create()
        c = store.create()
        store.select(b)
        store.delete(b)
        assert [conv.id for conv in store.conversations] == [c, a]
        assert store.active_id == c

    def test_delete_inactive_keeps_active(self, store):
        a = store.create()
        b = store.create()
        store.delete(a)
        assert store.active_id == b

    def test_delete_missing_is_noop(self, store, blob_store):
        store.create()
        writes = blob_store.writes
        assert store.delete("nope") is False
        assert len(store) == 1
        assert blob_store.writes == writes


class TestAppendMessage:
    def test_append_grows_by_one_and_keeps_prior_messages(self, store):
        conv_id = store.create()
        store.append_message(conv_id, _user("one"))
        before = store.get(conv_id).messages
        store.append_message(conv_id, _agent("two"))
        after = store.get(conv_id).messages
        assert len(after) == len(before) + 1
        assert after[:-1] == before
        assert after[-1].text == "two"
        assert after[-1].sender == "agent"

    def test_first_message_sets_title(self, store):
        conv_id = store.create()
        store.append_message(conv_id, _user("Hi"))
        assert store.get(conv_id).title == "Hi"

    def test_title_truncated_to_fifty_chars_without_marker(self, store):
        conv_id = store.create()
        text = "x" * 80
        store.append_message(conv_id, _user(text))
        assert store.get(conv_id).title == "x" * 50

    def test_title_is_frozen_after_first_message(self, store):
        conv_id = store.create()
        store.append_message(conv_id, _user("First question"))
        store.append_message(conv_id, _agent("An answer"))
        store.append_message(conv_id, _user("Second question"))
        assert store.get(conv_id).title == "First question"

    def test_last_message_mirrors_final_text(self, store):
        conv_id = store.create()
        for msg in (_user("a"), _agent("b"), _user("c")):
            store.append_message(conv_id, msg)
            conv = store.get(conv_id)
            assert conv.lastMessage == conv.messages[-1].text

    def test_last_message_override(self, store):
        conv_id = store.create()
        store.append_message(conv_id, _agent("Sorry"), last_message="Error")
        conv = store.get(conv_id)
        assert conv.messages[-1].text == "Sorry"
        assert conv.lastMessage == "Error"

    def test_append_to_missing_conversation_is_noop(self, store, blob_store):
        store.create()
        writes = blob_store.writes
        assert store.append_message("missing", _user("hello")) is False
        assert blob_store.writes == writes

    def test_returned_copies_do_not_leak_into_store(self, store):
        conv_id = store.create()
        store.append_message(conv_id, _user("hello"))
        copy = store.get(conv_id)
        copy.messages.clear()
        copy.title = "changed"
        conv = store.get(conv_id)
        assert conv.title == "hello"
        assert len(conv.messages) == 1


class TestFilter:
    def _titled(self, store, *titles):
        for title in titles:
            conv_id = store.create()
            store.append_message(conv_id, _user(title))

    def test_empty_query_yields_all_in_order(self, store):
        self._titled(store, "alpha", "beta", "gamma")
        assert [c.title for c in store.filter("")] == ["gamma", "beta", "alpha"]

    def test_case_insensitive(self, store):
        self._titled(store, "Hello world", "say HELLO", "goodbye")
        upper = [c.id for c in store.filter("HELLO")]
        lower = [c.id for c in store.filter("hello")]
        assert upper == lower
        assert len(upper) == 2

    def test_filter_is_restartable(self, store):
        self._titled(store, "one", "two")
        view = store.filter("o")
        assert [c.title for c in view] == [c.title for c in view]

    def test_filter_is_lazy(self, store):
        view = store.filter("late")
        self._titled(store, "late arrival")
        assert [c.title for c in view] == ["late arrival"]

    def test_no_match(self, store):
        self._titled(store, "alpha")
        assert list(store.filter("zzz")) == []

    def test_summaries(self, store):
        self._titled(store, "alpha")
        summaries = store.summaries()
        assert len(summaries) == 1
        assert summaries[0].title == "alpha"
        assert summaries[0].message_count == 1
        assert summaries[0].lastMessage == "alpha"
        assert summaries[0].created_label == "just now"


class TestPersistence:
    def test_every_mutation_writes(self, store, blob_store):
        conv_id = store.create()
        assert blob_store.writes == 1
        store.append_message(conv_id, _user("hi"))
        assert blob_store.writes == 2
        store.select(conv_id)
        assert blob_store.writes == 2
        store.delete(conv_id)
        assert blob_store.writes == 3

    def test_delete_of_last_conversation_persists_empty_collection(self, store, blob_store):
        conv_id = store.create()
        store.delete(conv_id)
        assert decode_collection(blob_store.read(DEFAULT_STORAGE_KEY)) == []

    def test_written_blob_uses_wire_field_names(self, store, blob_store):
        conv_id = store.create()
        store.append_message(conv_id, _user("hi"))
        data = json.loads(blob_store.read(DEFAULT_STORAGE_KEY))
        assert set(data[0]) == {"id", "title", "messages", "createdAt", "lastMessage"}
        assert set(data[0]["messages"][0]) == {"id", "text", "sender", "timestamp"}

    def test_reload_restores_collection_and_selects_head(self, store, blob_store):
        older = store.create()
        store.append_message(older, _user("older"))
        newer = store.create()
        store.select(older)

        reloaded = ConversationStore(blob_store)
        reloaded.load()
        assert [c.id for c in reloaded.conversations] == [newer, older]
        assert reloaded.active_id == newer
        assert reloaded.get(older).messages[0].text == "older"

    def test_absent_blob_starts_empty(self):
        s = ConversationStore(MemoryBlobStore())
        s.load()
        assert len(s) == 0
        assert s.active_id is None

    def test_malformed_blob_starts_empty(self):
        s = ConversationStore(MemoryBlobStore({DEFAULT_STORAGE_KEY: b"{not json"}))
        s.load()
        assert len(s) == 0
        assert s.active_id is None

    def test_wrong_shape_blob_starts_empty(self):
        blob = json.dumps([{"id": "1", "messages": "nope"}]).encode()
        s = ConversationStore(MemoryBlobStore({DEFAULT_STORAGE_KEY: blob}))
        s.load()
        assert len(s) == 0

    def test_load_reads_only_once(self):
        class CountingStore(MemoryBlobStore):
            reads = 0

            def read(self, key):
                self.reads += 1
                return super().read(key)

        blobs = CountingStore()
        s = ConversationStore(blobs)
        s.load()
        s.load()
        assert blobs.reads == 1

    def test_write_failure_does_not_break_mutation(self):
        class BrokenStore(MemoryBlobStore):
            def write(self, key, data):
                raise OSError("disk full")

        s = ConversationStore(BrokenStore())
        s.load()
        conv_id = s.create()
        assert s.active_id == conv_id
        assert s.append_message(conv_id, _user("still here")) is True
        assert s.get(conv_id).lastMessage == "still here"

    def test_file_blob_store_round_trip(self, tmp_path: Path):
        s = ConversationStore(FileBlobStore(tmp_path / "data"))
        s.load()
        conv_id = s.create()
        s.append_message(conv_id, _user("persisted"))

        assert (tmp_path / "data" / f"{DEFAULT_STORAGE_KEY}.json").exists()
        reloaded = ConversationStore(FileBlobStore(tmp_path / "data"))
        reloaded.load()
        assert reloaded.active.title == "persisted"


class TestMemoryBlobStore:
    def test_read_write(self):
        blobs = MemoryBlobStore()
        assert blobs.read("k") is None
        blobs.write("k", b"one")
        blobs.write("k", b"two")
        assert blobs.read("k") == b"two"
        assert blobs.blobs == {"k": b"two"}

    def test_carries_only_the_blobs(self):
        assert vars(MemoryBlobStore({"k": b"v"})) == {"blobs": {"k": b"v"}}
