from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest

from supportdesk.config import ConfigManager
from supportdesk.services import (
    ConversationResponseError,
    MessageStatus,
    Sender,
    SessionLifecycleManager,
    SessionState,
    SessionStore,
    generate_session_title,
)
from supportdesk.services.conversation import DEFAULT_TITLE, EMPTY_REPLY
from supportdesk.services.error_messages import (
    DELETE_FAILED,
    LOAD_FAILED,
    RENAME_FAILED,
    TOO_MANY_REQUESTS,
)


FIXED_NOW = datetime(2024, 5, 17, 9, 30)


class FakeConversationClient:
    """Records calls and replays queued responses or exceptions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.replies: list[dict[str, Any] | Exception] = []
        self.history: dict[str, Any] = {"messages": []}
        self.fail_with: dict[str, Exception] = {}

    def _result(self, name: str, default: Any) -> Any:
        failure = self.fail_with.get(name)
        if failure is not None:
            raise failure
        return default

    def send_message(self, text: str, session_id: str | None) -> dict[str, Any]:
        self.calls.append(("send_message", (text, session_id)))
        reply = self.replies.pop(0) if self.replies else {"sessionId": "abc", "message": "ok"}
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get_session_messages(self, session_id: str) -> dict[str, Any]:
        self.calls.append(("get_session_messages", (session_id,)))
        return self._result("get_session_messages", self.history)

    def get_chat_sessions(self, limit: int = 50) -> dict[str, Any]:
        self.calls.append(("get_chat_sessions", (limit,)))
        return self._result("get_chat_sessions", {"sessions": []})

    def delete_chat_session(self, session_id: str) -> dict[str, Any]:
        self.calls.append(("delete_chat_session", (session_id,)))
        return self._result("delete_chat_session", {"success": True})

    def update_chat_session(self, session_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("update_chat_session", (session_id, dict(updates))))
        return self._result("update_chat_session", {"success": True})

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


class DeferredDispatcher:
    """Hold submitted calls until the test resolves them, in any order."""

    def __init__(self) -> None:
        self.pending: list[tuple[Callable[[], Any], Callable[[Any], None], Callable[[Exception], None]]] = []

    def submit(self, work, on_success, on_error) -> None:
        self.pending.append((work, on_success, on_error))

    def resolve(self, index: int) -> None:
        work, on_success, on_error = self.pending.pop(index)
        try:
            result = work()
        except Exception as exc:
            on_error(exc)
        else:
            on_success(result)


@pytest.fixture()
def store(tmp_path, monkeypatch) -> SessionStore:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    return SessionStore(ConfigManager(app_name="SupportDeskTest", filename="session.json"))


@pytest.fixture()
def client() -> FakeConversationClient:
    return FakeConversationClient()


@pytest.fixture()
def manager(client: FakeConversationClient, store: SessionStore) -> SessionLifecycleManager:
    return SessionLifecycleManager(client, store=store, clock=lambda: FIXED_NOW)


def _history() -> dict[str, Any]:
    return {
        "messages": [
            {
                "id": 1,
                "content": "How do I clean the print head?",
                "role": "user",
                "created_at": "2024-05-16T10:00:00Z",
            },
            {
                "id": 2,
                "content": "Follow [Article 12].",
                "role": "assistant",
                "created_at": "2024-05-16T10:00:05Z",
                "metadata": {"articles": [{"id": 12, "title": "Cleaning"}]},
            },
            {"id": 3, "content": "And the rollers?", "role": "user"},
            {"id": 4, "content": "See Article #13.", "role": "bot", "metadata": None},
        ]
    }


# ----------------------------------------------------------------------
# Title generation


def test_short_titles_are_returned_unchanged() -> None:
    assert generate_session_title("What is the MOQ for lanyards?") == (
        "What is the MOQ for lanyards?"
    )


def test_long_titles_break_on_a_word_boundary() -> None:
    text = "Please explain how the automatic duplex printing works on the office printer models"
    assert len(text) > 50

    title = generate_session_title(text)

    head = text[:47]
    assert title == head[: head.rfind(" ")] + "..."
    assert len(title) <= 50
    assert text[len(title) - 3] == " "


def test_long_titles_without_spaces_are_cut_hard() -> None:
    text = "x" * 80

    assert generate_session_title(text) == "x" * 47 + "..."


def test_title_strips_punctuation_and_collapses_whitespace() -> None:
    assert generate_session_title("Hello,   world!") == "Hello world!"


def test_title_keeps_only_ascii_word_characters() -> None:
    assert generate_session_title("Café au lait?") == "Caf au lait?"


@pytest.mark.parametrize("value", [None, "", 42])
def test_title_falls_back_for_missing_input(value: Any) -> None:
    assert generate_session_title(value) == DEFAULT_TITLE


# ----------------------------------------------------------------------
# Sending


def test_first_send_binds_session_and_notifies_once(
    manager: SessionLifecycleManager, client: FakeConversationClient, store: SessionStore
) -> None:
    created: list[str] = []
    manager.add_session_created_listener(created.append)
    client.replies = [
        {"sessionId": "abc", "message": "Hi there", "articles": [{"id": 5}]},
        {"sessionId": "abc", "message": "Again"},
    ]

    result = manager.send_message("Hello")

    assert result is not None and result.completed
    assert result.session_created
    assert manager.current_session_id == "abc"
    assert manager.state is SessionState.ACTIVE
    assert store.get() == "abc"
    assert created == ["abc"]
    assert manager.title == "Hello"

    user, reply = manager.messages
    assert user.sender is Sender.USER and user.text == "Hello"
    assert reply.sender is Sender.ASSISTANT
    assert reply.status is MessageStatus.SUCCESS
    assert reply.citations == [{"id": 5}]
    assert reply.original_question == "Hello"

    second = manager.send_message("Follow-up question")

    assert second is not None and not second.session_created
    assert created == ["abc"]
    assert client.calls[-1] == ("send_message", ("Follow-up question", "abc"))
    assert manager.title == "Hello"
    assert manager.message_count == 4


def test_rate_limited_send_reports_error_twice(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.replies = [ConversationResponseError("HTTP 429", status=429)]

    result = manager.send_message("hello")

    assert result is not None and result.error == TOO_MANY_REQUESTS
    user, failure = manager.messages
    assert user.text == "hello"
    assert user.sender is Sender.USER
    assert user.status is MessageStatus.SUCCESS
    assert failure.status is MessageStatus.ERROR
    assert failure.is_error
    assert failure.text == TOO_MANY_REQUESTS
    assert manager.error == TOO_MANY_REQUESTS
    assert manager.state is SessionState.IDLE
    assert not manager.loading


def test_blank_messages_are_ignored(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    assert manager.send_message("   ") is None
    assert manager.send_message("") is None
    assert client.calls == []
    assert not manager.has_messages


def test_empty_reply_uses_fallback_text(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.replies = [{"sessionId": "s1", "message": ""}]

    manager.send_message("Anything?")

    assert manager.messages[-1].text == EMPTY_REPLY


def test_send_clears_previous_error(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.replies = [RuntimeError("boom"), {"sessionId": "s1", "message": "fine"}]
    manager.send_message("first")
    assert manager.error == "boom"

    manager.send_message("second")

    assert manager.error == ""


def test_optimistic_message_and_loading_before_reply(
    client: FakeConversationClient, store: SessionStore
) -> None:
    dispatcher = DeferredDispatcher()
    manager = SessionLifecycleManager(client, store=store, dispatcher=dispatcher)
    snapshots: list[tuple[int, bool]] = []
    manager.add_state_listener(lambda m: snapshots.append((m.message_count, m.loading)))

    result = manager.send_message("Is the X200 duplex capable?")

    assert result is not None and not result.completed
    assert manager.loading
    assert [message.text for message in manager.messages] == ["Is the X200 duplex capable?"]

    dispatcher.resolve(0)

    assert result.completed
    assert not manager.loading
    assert snapshots == [(1, True), (2, False)]


def test_out_of_order_replies_bind_the_first_completion(
    client: FakeConversationClient, store: SessionStore
) -> None:
    dispatcher = DeferredDispatcher()
    manager = SessionLifecycleManager(client, store=store, dispatcher=dispatcher)
    created: list[str] = []
    manager.add_session_created_listener(created.append)
    client.replies = [
        {"sessionId": "s2", "message": "second answer"},
        {"sessionId": "s1", "message": "first answer"},
    ]

    manager.send_message("first")
    manager.send_message("second")
    assert client.calls == []

    dispatcher.resolve(1)
    assert manager.loading
    dispatcher.resolve(0)

    assert manager.current_session_id == "s2"
    assert created == ["s2"]
    assert not manager.loading
    assert [message.text for message in manager.messages] == [
        "first",
        "second",
        "second answer",
        "first answer",
    ]
    assert [call[1][1] for call in client.calls] == [None, None]


# ----------------------------------------------------------------------
# Loading, hydration and new chats


def test_load_session_replaces_messages_and_backfills_questions(
    manager: SessionLifecycleManager, client: FakeConversationClient, store: SessionStore
) -> None:
    client.history = _history()

    manager.load_session("sess-9")

    assert manager.current_session_id == "sess-9"
    assert store.get() == "sess-9"
    assert manager.title == "How do I clean the print head?"
    messages = manager.messages
    assert [message.id for message in messages] == [1, 2, 3, 4]
    assert [message.sender for message in messages] == [
        Sender.USER,
        Sender.ASSISTANT,
        Sender.USER,
        Sender.ASSISTANT,
    ]
    assert messages[1].original_question == "How do I clean the print head?"
    assert messages[3].original_question == "And the rollers?"
    assert messages[1].citations == [{"id": 12, "title": "Cleaning"}]
    assert messages[3].citations == []
    assert messages[0].timestamp.year == 2024
    assert messages[2].timestamp == FIXED_NOW


def test_load_session_without_user_messages_has_blank_title(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.history = {"messages": [{"id": 1, "content": "Welcome", "role": "assistant"}]}

    manager.load_session("sess-1")

    assert manager.title == ""
    assert manager.messages[0].original_question is None


def test_failed_load_keeps_previous_state(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.replies = [{"sessionId": "abc", "message": "ok"}]
    manager.send_message("keep me")
    before = manager.messages
    client.fail_with["get_session_messages"] = RuntimeError("offline")

    manager.load_session("other")

    assert manager.current_session_id == "abc"
    assert manager.messages == before
    assert manager.title == "keep me"
    assert manager.error == LOAD_FAILED
    assert not manager.loading


def test_load_session_requires_an_id(manager: SessionLifecycleManager) -> None:
    with pytest.raises(ValueError):
        manager.load_session("")


def test_hydrate_resumes_stored_session(
    manager: SessionLifecycleManager, client: FakeConversationClient, store: SessionStore
) -> None:
    store.set("remembered")
    client.history = _history()

    assert manager.hydrate() is True

    assert client.calls[0] == ("get_session_messages", ("remembered",))
    assert manager.current_session_id == "remembered"


def test_hydrate_without_stored_session_is_a_no_op(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    assert manager.hydrate() is False
    assert client.calls == []
    assert manager.state is SessionState.IDLE


def test_hydrate_failure_leaves_manager_idle_with_error(
    manager: SessionLifecycleManager, client: FakeConversationClient, store: SessionStore
) -> None:
    store.set("remembered")
    client.fail_with["get_session_messages"] = RuntimeError("backend down")

    assert manager.hydrate() is True

    assert manager.state is SessionState.IDLE
    assert manager.current_session_id is None
    assert manager.error == LOAD_FAILED
    assert manager.messages == []
    assert not manager.loading


def _corrupt_store_file() -> None:
    path = ConfigManager(app_name="SupportDeskTest", filename="session.json").config_path
    path.write_text("{not json", encoding="utf-8")


def test_hydrate_with_corrupt_store_is_a_no_op(
    manager: SessionLifecycleManager, client: FakeConversationClient, store: SessionStore
) -> None:
    _corrupt_store_file()

    assert manager.hydrate() is False
    assert client.calls == []
    assert manager.state is SessionState.IDLE
    assert manager.error == ""


def test_send_with_corrupt_store_still_binds_session(
    manager: SessionLifecycleManager, client: FakeConversationClient, store: SessionStore
) -> None:
    _corrupt_store_file()
    created: list[str] = []
    manager.add_session_created_listener(created.append)

    result = manager.send_message("hello")

    assert result is not None and result.completed
    assert manager.current_session_id == "abc"
    assert manager.message_count == 2
    assert not manager.loading
    assert created == ["abc"]
    assert store.get() == "abc"


def test_new_chat_with_corrupt_store_resets(
    manager: SessionLifecycleManager, store: SessionStore
) -> None:
    manager.send_message("hello")
    _corrupt_store_file()

    manager.start_new_chat()

    assert manager.state is SessionState.IDLE
    assert manager.messages == []
    assert store.get() is None


def test_start_new_chat_resets_everything(
    manager: SessionLifecycleManager, store: SessionStore
) -> None:
    manager.send_message("Hello")
    assert store.get() == "abc"

    manager.start_new_chat()

    assert manager.current_session_id is None
    assert manager.messages == []
    assert manager.title == ""
    assert manager.error == ""
    assert store.get() is None


# ----------------------------------------------------------------------
# Delete, rename and clear


def test_delete_while_idle_does_nothing(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.replies = [RuntimeError("down")]
    manager.send_message("unsent")
    before = (manager.messages, manager.error, manager.title)
    client.calls.clear()
    emitted: list[SessionLifecycleManager] = []
    manager.add_state_listener(emitted.append)

    manager.delete_current_session()

    assert client.calls == []
    assert emitted == []
    assert (manager.messages, manager.error, manager.title) == before


def test_delete_active_session_resets_locally(
    manager: SessionLifecycleManager, client: FakeConversationClient, store: SessionStore
) -> None:
    manager.send_message("Hello")

    manager.delete_current_session()

    assert client.calls[-1] == ("delete_chat_session", ("abc",))
    assert manager.state is SessionState.IDLE
    assert manager.messages == []
    assert store.get() is None
    assert manager.error == ""


def test_failed_delete_is_reported(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    manager.send_message("Hello")
    client.fail_with["delete_chat_session"] = RuntimeError("nope")

    manager.delete_current_session()

    assert manager.error == DELETE_FAILED
    assert manager.state is SessionState.IDLE


def test_rename_updates_title_after_success(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    manager.send_message("Hello")

    manager.update_session_title("Printer cleaning")

    assert client.calls[-1] == (
        "update_chat_session",
        ("abc", {"title": "Printer cleaning"}),
    )
    assert manager.title == "Printer cleaning"


def test_failed_rename_keeps_old_title(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    manager.send_message("Hello")
    client.fail_with["update_chat_session"] = RuntimeError("conflict")

    manager.update_session_title("Renamed")

    assert manager.title == "Hello"
    assert manager.error == RENAME_FAILED


def test_rename_requires_active_session(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    manager.update_session_title("Nothing to rename")

    assert client.calls == []
    assert manager.title == ""


def test_clear_messages_keeps_session_binding(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.replies = [{"sessionId": "abc", "message": "ok"}, RuntimeError("later")]
    manager.send_message("one")
    manager.send_message("two")
    assert manager.error

    manager.clear_messages()

    assert manager.messages == []
    assert manager.error == ""
    assert manager.current_session_id == "abc"


def test_clear_error_only_touches_the_flag(
    manager: SessionLifecycleManager, client: FakeConversationClient
) -> None:
    client.replies = [RuntimeError("boom")]
    manager.send_message("x")

    manager.clear_error()

    assert manager.error == ""
    assert manager.message_count == 2


# ----------------------------------------------------------------------
# Subscriptions


def test_failing_listener_does_not_break_updates(manager: SessionLifecycleManager) -> None:
    seen: list[int] = []

    def broken(_manager: SessionLifecycleManager) -> None:
        raise RuntimeError("listener bug")

    manager.add_state_listener(broken)
    manager.add_state_listener(lambda m: seen.append(m.message_count))

    manager.send_message("Hello")

    assert seen == [1, 2]


def test_unsubscribe_and_close_detach_listeners(manager: SessionLifecycleManager) -> None:
    first: list[str] = []
    second: list[str] = []
    unsubscribe = manager.add_state_listener(lambda m: first.append("state"))
    manager.add_session_created_listener(second.append)

    unsubscribe()
    manager.close()
    manager.send_message("Hello")

    assert first == []
    assert second == []
    assert manager.current_session_id == "abc"
