from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

from langchain_core.chat_history import BaseChatMessageHistory
from langchain_core.documents import Document
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_core.retrievers import BaseRetriever
from langchain_core.runnables import Runnable, RunnableBranch, RunnableLambda, RunnablePassthrough
from langchain_core.runnables.history import RunnableWithMessageHistory
from langchain_google_genai import ChatGoogleGenerativeAI

from chatbot.core.memory import SessionStore, build_memory_view
from chatbot.core.prompt import QUERY_TRANSFORM_PROMPT, QUESTION_ANSWERING_PROMPT, SYSTEM_PROMPT
from chatbot.retrieval import format_documents
from config.settings import Settings, get_settings


logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I couldn't answer that just now, but you can try again shortly."


def build_chat_model(settings: Optional[Settings] = None) -> BaseChatModel:
    settings = settings or get_settings()
    if not settings.google_api_key:
        raise RuntimeError(
            "GOOGLE_API_KEY not set. Please configure it in environment or .env"
        )

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.google_api_key,
        temperature=settings.temperature,
        top_p=settings.top_p,
    )


def build_chat_chain(llm: BaseChatModel, system_prompt: str = SYSTEM_PROMPT) -> Runnable:
    prompt = ChatPromptTemplate.from_messages(
        [
            ("system", system_prompt),
            MessagesPlaceholder("messages"),
        ]
    )
    return prompt | llm | StrOutputParser()


def build_query_transform_chain(llm: BaseChatModel, retriever: BaseRetriever) -> Runnable:
    """Turn the conversation into retrieved documents.

    A lone message is searched verbatim; follow-ups are rewritten into a
    standalone query first so "tell me more" still finds something.
    """
    query_transform_prompt = ChatPromptTemplate.from_messages(
        [
            MessagesPlaceholder("messages"),
            ("user", QUERY_TRANSFORM_PROMPT),
        ]
    )
    return RunnableBranch(
        (
            lambda x: len(x.get("messages", [])) == 1,
            RunnableLambda(lambda x: x["messages"][-1].content) | retriever,
        ),
        query_transform_prompt | llm | StrOutputParser() | retriever,
    ).with_config(run_name="chat_retriever_chain")


def build_document_chain(llm: BaseChatModel) -> Runnable:
    question_answering_prompt = ChatPromptTemplate.from_messages(
        [
            ("system", QUESTION_ANSWERING_PROMPT),
            MessagesPlaceholder("messages"),
        ]
    )
    return (
        RunnablePassthrough.assign(context=lambda x: format_documents(x["context"]))
        | question_answering_prompt
        | llm
        | StrOutputParser()
    ).with_config(run_name="stuff_documents_chain")


def build_retrieval_chain(llm: BaseChatModel, retriever: BaseRetriever) -> Runnable:
    return RunnablePassthrough.assign(
        context=build_query_transform_chain(llm, retriever),
    ).assign(answer=build_document_chain(llm))


def build_chat_with_history(
    chain: Runnable,
    store: SessionStore,
    output_messages_key: Optional[str] = None,
) -> RunnableWithMessageHistory:
    """Wrap ``chain`` so history is read and written per ``session_id`` config.

    Invoke with ``{"messages": [HumanMessage(...)]}`` and
    ``config={"configurable": {"session_id": ...}}``.
    """
    return RunnableWithMessageHistory(
        chain,
        store.get_session_history,
        input_messages_key="messages",
        output_messages_key=output_messages_key,
    )


def to_lc_messages(history: List[dict]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for item in history or []:
        role = (item.get("role") or "").lower()
        content = item.get("content") or ""
        if not content:
            continue
        if role in ("user", "human"):
            messages.append(HumanMessage(content=content))
        elif role in ("assistant", "ai", "bot"):
            messages.append(AIMessage(content=content))
        elif role == "system":
            messages.append(SystemMessage(content=content))
        else:
            # Default unknown to HumanMessage for safety
            messages.append(HumanMessage(content=content))
    return messages


def messages_to_dicts(messages: List[BaseMessage]) -> List[Dict[str, str]]:
    roles = {"human": "user", "ai": "assistant", "system": "system"}
    return [
        {"role": roles.get(message.type, message.type), "content": _message_text(message)}
        for message in messages
    ]


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        # Multimodal responses come back as content blocks.
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block) for block in content
        )
    return str(content)


def _unpack_result(result: Any) -> tuple[str, List[Document]]:
    if isinstance(result, dict):
        return _message_text(result.get("answer", "")), list(result.get("context") or [])
    return _message_text(result), []


def _check_input(user_input: str) -> HumanMessage:
    if not user_input or not user_input.strip():
        raise ValueError("message is required")
    return HumanMessage(content=user_input)


def _memory_view(
    history: BaseChatMessageHistory,
    human: HumanMessage,
    memory_strategy: str,
    max_history_messages: int,
    llm: Optional[BaseChatModel],
) -> List[BaseMessage]:
    return build_memory_view(
        [*history.messages, human],
        strategy=memory_strategy,
        max_messages=max_history_messages,
        llm=llm,
    )


def run_turn(
    chain: Runnable,
    history: BaseChatMessageHistory,
    user_input: str,
    *,
    memory_strategy: str = "none",
    max_history_messages: int = 10,
    llm: Optional[BaseChatModel] = None,
) -> Dict[str, Any]:
    """Run one conversational turn and record it in ``history``.

    The human message and the reply are appended only when the chain
    succeeds; failures (including a failed summary call) come back under
    ``error``.
    """
    human = _check_input(user_input)
    try:
        view = _memory_view(history, human, memory_strategy, max_history_messages, llm)
        logger.info("Invoking chain with %d message(s) (history=%d)", len(view), len(history.messages))
        result = chain.invoke({"messages": view})
    except Exception as exc:
        logger.exception("Chain invocation failed")
        return {"output": "", "documents": [], "error": str(exc)}

    output, documents = _unpack_result(result)
    history.add_messages([human, AIMessage(content=output)])
    return {"output": output, "documents": documents, "error": None}


def stream_turn(
    chain: Runnable,
    history: BaseChatMessageHistory,
    user_input: str,
    *,
    memory_strategy: str = "none",
    max_history_messages: int = 10,
    llm: Optional[BaseChatModel] = None,
) -> Iterator[str]:
    """Yield reply text as it arrives; history is updated after the last chunk.

    A failure ends the stream with ``FALLBACK_REPLY`` and records nothing.
    """
    human = _check_input(user_input)

    def generator() -> Iterator[str]:
        reply = ""
        try:
            view = _memory_view(history, human, memory_strategy, max_history_messages, llm)
            for chunk in chain.stream({"messages": view}):
                if isinstance(chunk, dict):
                    # Retrieval chains stream one key at a time.
                    chunk = chunk.get("answer", "")
                text = _message_text(chunk)
                if text:
                    reply += text
                    yield text
        except Exception:
            logger.exception("Chain stream failed after %d chars", len(reply))
            yield ("\n" if reply else "") + FALLBACK_REPLY
            return
        history.add_messages([human, AIMessage(content=reply)])
        logger.info("Streamed reply of %d chars", len(reply))

    return generator()
