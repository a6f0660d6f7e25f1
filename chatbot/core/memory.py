"""Server-side conversation memory.

Each session owns an append-only ``InMemoryChatMessageHistory``. What the
model actually sees is a *view* over that history, built per turn: the
full history, a trimmed tail, or a summary of older turns followed by the
tail. Building a view never edits the stored messages.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from langchain_core.chat_history import InMemoryChatMessageHistory
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, trim_messages
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from chatbot.core.prompt import SUMMARY_PROMPT


logger = logging.getLogger(__name__)

MEMORY_STRATEGIES = ("none", "trim", "summary")


def check_memory_strategy(strategy: str) -> None:
    """Reject a misconfigured strategy before any turn runs."""
    if strategy not in MEMORY_STRATEGIES:
        raise RuntimeError(
            f"Invalid MEMORY_STRATEGY '{strategy}'. Expected one of: {', '.join(MEMORY_STRATEGIES)}"
        )


class SessionStore:
    """Chat histories keyed by session id."""

    def __init__(self) -> None:
        self._histories: Dict[str, InMemoryChatMessageHistory] = {}

    def get_session_history(self, session_id: str) -> InMemoryChatMessageHistory:
        if not session_id or not session_id.strip():
            raise ValueError("session_id is required")
        history = self._histories.get(session_id)
        if history is None:
            history = InMemoryChatMessageHistory()
            self._histories[session_id] = history
            logger.debug("Created chat history for session %s", session_id)
        return history

    def exists(self, session_id: str) -> bool:
        return session_id in self._histories

    def append(self, session_id: str, message: BaseMessage) -> None:
        self.get_session_history(session_id).add_message(message)

    def read(self, session_id: str) -> List[BaseMessage]:
        """Return the session's messages in order; unknown sessions read as empty."""
        history = self._histories.get(session_id)
        if history is None:
            return []
        return list(history.messages)

    def clear(self, session_id: str) -> bool:
        history = self._histories.pop(session_id, None)
        if history is None:
            return False
        logger.info("Dropped chat history for session %s (%d messages)", session_id, len(history.messages))
        return True

    def list_sessions(self) -> List[str]:
        return list(self._histories.keys())


def trim_history(messages: Sequence[BaseMessage], max_messages: int) -> List[BaseMessage]:
    """Keep the last ``max_messages`` messages, starting on a human turn."""
    if max_messages <= 0:
        return list(messages)
    return trim_messages(
        list(messages),
        max_tokens=max_messages,
        token_counter=len,
        strategy="last",
        start_on="human",
        include_system=True,
        allow_partial=False,
    )


def summarize_history(llm: BaseChatModel, messages: Sequence[BaseMessage]) -> AIMessage:
    prompt = ChatPromptTemplate.from_messages(
        [
            MessagesPlaceholder("chat_history"),
            ("user", SUMMARY_PROMPT),
        ]
    )
    chain = prompt | llm | StrOutputParser()
    summary = chain.invoke({"chat_history": list(messages)})
    logger.info("Summarized %d earlier messages into %d chars", len(messages), len(summary))
    return AIMessage(content=f"Summary of the earlier conversation: {summary.strip()}")


def build_memory_view(
    messages: Sequence[BaseMessage],
    strategy: str = "none",
    max_messages: int = 10,
    llm: Optional[BaseChatModel] = None,
) -> List[BaseMessage]:
    """Select the messages sent to the model for this turn."""
    if strategy not in MEMORY_STRATEGIES:
        raise ValueError(
            f"Unknown memory strategy '{strategy}'. Expected one of: {', '.join(MEMORY_STRATEGIES)}"
        )

    messages = list(messages)
    if strategy == "none" or max_messages <= 0 or len(messages) <= max_messages:
        return messages

    if strategy == "trim":
        return trim_history(messages, max_messages)

    if llm is None:
        raise ValueError("summary memory requires a chat model")
    # One slot is taken by the summary itself.
    recent = trim_history(messages, max(max_messages - 1, 1))
    older = messages[: len(messages) - len(recent)]
    if not older:
        return recent
    return [summarize_history(llm, older), *recent]
