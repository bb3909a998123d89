"""Unit tests for the in-memory conversation manager."""
import pytest

from docchat.memory import ConversationManager


class TestConversationManager:
    def test_history_is_windowed_and_stripped(self):
        manager = ConversationManager(context_window_size=2)
        session_id = manager.create_session()
        manager.add_message(session_id, "user", "one")
        manager.add_message(session_id, "assistant", "two", sources=[{"source": "a #0"}])
        manager.add_message(session_id, "user", "three")

        assert manager.format_conversation_history(session_id) == [
            {"role": "assistant", "content": "two"},
            {"role": "user", "content": "three"},
        ]
        assert len(manager.get_all_messages(session_id)) == 3

    def test_title_from_first_user_message(self):
        manager = ConversationManager()
        session_id = manager.create_session()
        manager.add_message(session_id, "user", "word " * 20)

        title = manager.get_session(session_id)["title"]

        assert title.endswith("...")
        assert len(title) <= 53

    def test_list_and_delete_sessions(self):
        manager = ConversationManager()
        first = manager.create_session("first")
        second = manager.create_session("second")

        assert [s["id"] for s in manager.list_sessions()] == [second, first]
        assert manager.delete_session(first) is True
        assert manager.delete_session(first) is False
        assert manager.get_session(first) is None

    def test_add_to_unknown_session_raises(self):
        manager = ConversationManager()

        with pytest.raises(KeyError):
            manager.add_message("missing", "user", "hello")
