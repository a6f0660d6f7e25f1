"""Session store and memory view tests."""
from __future__ import annotations

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from chatbot.core.memory import (
    SessionStore,
    build_memory_view,
    check_memory_strategy,
    summarize_history,
    trim_history,
)
from chatbot.core.prompt import SUMMARY_PROMPT


def _conversation():
    return [
        HumanMessage(content="Hi! I'm Bob."),
        AIMessage(content="Hello Bob!"),
        HumanMessage(content="I like green."),
        AIMessage(content="Green is a nice colour."),
        HumanMessage(content="What's my name?"),
    ]


def test_store_appends_in_order_and_reads_copies() -> None:
    store = SessionStore()
    store.append("s1", HumanMessage(content="first"))
    store.append("s1", AIMessage(content="second"))

    messages = store.read("s1")
    assert [m.content for m in messages] == ["first", "second"]

    messages.reverse()
    messages.append(HumanMessage(content="sneaky"))
    assert [m.content for m in store.read("s1")] == ["first", "second"]


def test_store_sessions_are_isolated() -> None:
    store = SessionStore()
    store.append("alice", HumanMessage(content="hello from alice"))
    store.append("bob", HumanMessage(content="hello from bob"))

    assert [m.content for m in store.read("alice")] == ["hello from alice"]
    assert sorted(store.list_sessions()) == ["alice", "bob"]


def test_store_unknown_session_reads_empty_without_creating() -> None:
    store = SessionStore()
    assert store.read("missing") == []
    assert not store.exists("missing")


def test_store_clear() -> None:
    store = SessionStore()
    store.append("s1", HumanMessage(content="hello"))
    assert store.clear("s1") is True
    assert not store.exists("s1")
    assert store.clear("s1") is False


def test_store_rejects_blank_session_id() -> None:
    with pytest.raises(ValueError):
        SessionStore().get_session_history("  ")


def test_trim_history_keeps_tail_starting_on_human() -> None:
    trimmed = trim_history(_conversation(), 4)
    assert [m.content for m in trimmed] == ["I like green.", "Green is a nice colour.", "What's my name?"]
    assert isinstance(trimmed[0], HumanMessage)


def test_trim_history_without_budget_returns_everything() -> None:
    assert len(trim_history(_conversation(), 0)) == 5


def test_memory_view_none_returns_full_history() -> None:
    messages = _conversation()
    assert build_memory_view(messages, strategy="none", max_messages=2) == messages


def test_memory_view_under_budget_is_untouched() -> None:
    messages = _conversation()
    assert build_memory_view(messages, strategy="trim", max_messages=10) == messages


def test_memory_view_trim() -> None:
    view = build_memory_view(_conversation(), strategy="trim", max_messages=3)
    assert [m.content for m in view] == ["I like green.", "Green is a nice colour.", "What's my name?"]


def test_memory_view_summary_replaces_older_turns(make_model) -> None:
    llm = make_model("Bob introduced himself and likes green.")
    messages = _conversation()

    view = build_memory_view(messages, strategy="summary", max_messages=3, llm=llm)

    assert len(view) == 2
    assert isinstance(view[0], AIMessage)
    assert "Bob introduced himself and likes green." in view[0].content
    assert view[-1].content == "What's my name?"

    prompt = llm.received[0]
    assert [m.content for m in prompt[:-1]] == [m.content for m in messages[:4]]
    assert prompt[-1].content == SUMMARY_PROMPT


def test_memory_view_summary_requires_model() -> None:
    with pytest.raises(ValueError):
        build_memory_view(_conversation(), strategy="summary", max_messages=2)


def test_memory_view_rejects_unknown_strategy() -> None:
    with pytest.raises(ValueError):
        build_memory_view(_conversation(), strategy="forget-everything")


def test_summarize_history_returns_ai_message(make_model) -> None:
    summary = summarize_history(make_model("  short summary  "), _conversation()[:2])
    assert isinstance(summary, AIMessage)
    assert summary.content.endswith("short summary")


def test_check_memory_strategy() -> None:
    for strategy in ("none", "trim", "summary"):
        check_memory_strategy(strategy)
    with pytest.raises(RuntimeError, match="MEMORY_STRATEGY"):
        check_memory_strategy("forget-everything")
