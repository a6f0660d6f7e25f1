from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
import logging
from langchain_core.chat_history import BaseChatMessageHistory
from langchain_core.language_models import BaseChatModel
from langchain_core.retrievers import BaseRetriever
from langchain_core.runnables import Runnable
from pydantic import BaseModel, Field, field_validator
import uvicorn

from chatbot.bot import (
    build_chat_chain,
    build_chat_model,
    build_retrieval_chain,
    FALLBACK_REPLY,
    messages_to_dicts,
    run_turn,
    stream_turn,
    to_lc_messages,
)
from chatbot.core.memory import SessionStore, check_memory_strategy
from chatbot.retrieval import build_retriever
from config.settings import get_settings


settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
logger = logging.getLogger("chatbot")

check_memory_strategy(settings.memory_strategy)

app = FastAPI(title="Chatbot Quickstart", version="1.0.0")

# CORS: allow local frontend during development
if settings.app_env.lower() in {"dev", "development", "local"}:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

store = SessionStore()


@lru_cache(maxsize=1)
def get_chat_model() -> BaseChatModel:
    return build_chat_model(get_settings())


@lru_cache(maxsize=1)
def get_retriever() -> Optional[BaseRetriever]:
    return build_retriever(get_settings())


class ChatTurn(BaseModel):
    role: str = Field(..., description="'user', 'assistant' or 'system'")
    content: str


class ChatRequest(BaseModel):
    session_id: str = Field(..., description="Unique identifier for the conversation")
    message: str = Field(..., description="User's latest message")
    use_retrieval: bool = Field(
        False, description="Ground the answer in the configured documents"
    )
    conversation_history: Optional[List[ChatTurn]] = Field(
        default_factory=list,
        description="Earlier turns (frontend-managed); only used to seed a session with no stored history",
    )

    @field_validator("session_id", "message")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("field must not be empty")
        return value


class HistoryResponse(BaseModel):
    session_id: str
    messages: List[ChatTurn] = Field(default_factory=list)


def _build_chain(use_retrieval: bool) -> Runnable:
    llm = get_chat_model()
    if not use_retrieval:
        return build_chat_chain(llm)
    retriever = get_retriever()
    if retriever is None:
        raise ValueError("Retrieval requested but no documents are configured")
    return build_retrieval_chain(llm, retriever)


def _session_history(req: ChatRequest) -> BaseChatMessageHistory:
    history = store.get_session_history(req.session_id)
    if req.conversation_history and not history.messages:
        seeded = to_lc_messages([t.model_dump() for t in req.conversation_history])
        for message in seeded:
            store.append(req.session_id, message)
        logger.info("Seeded session %s with %s client-sent message(s)", req.session_id, len(seeded))
    elif req.conversation_history:
        logger.info("Ignoring client-sent history for session %s; server history exists", req.session_id)
    return history


def _turn_options() -> Dict[str, Any]:
    settings = get_settings()
    return {
        "memory_strategy": settings.memory_strategy,
        "max_history_messages": settings.max_history_messages,
        "llm": get_chat_model() if settings.memory_strategy == "summary" else None,
    }


@app.post("/chat")
def chat(req: ChatRequest) -> Dict[str, Any]:
    try:
        chain = _build_chain(req.use_retrieval)
        history = _session_history(req)
        logger.info(
            "Incoming chat: session_id=%s retrieval=%s history_messages=%s",
            req.session_id,
            req.use_retrieval,
            len(history.messages),
        )
        result = run_turn(chain, history, req.message, **_turn_options())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as e:
        logger.exception("Chat processing failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    output_text = (result.get("output") or "").strip()
    error_text = result.get("error")
    if error_text:
        logger.warning("Chain execution reported error: %s", error_text)
        fallback = output_text or FALLBACK_REPLY
        clean_error = " ".join(str(error_text).split())[:500]
        return {"ai_response": fallback, "error": clean_error}

    sources = [
        {"content": doc.page_content, "metadata": doc.metadata}
        for doc in result.get("documents") or []
    ]
    logger.info("Model responded with %s chars and %s source(s)", len(output_text), len(sources))
    return {"ai_response": output_text, "sources": sources}


@app.post("/chat/stream")
def chat_stream(req: ChatRequest) -> StreamingResponse:
    try:
        chain = _build_chain(req.use_retrieval)
        history = _session_history(req)
        stream = stream_turn(chain, history, req.message, **_turn_options())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as e:
        logger.exception("Chat stream failed to start: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return StreamingResponse(stream, media_type="text/plain")


@app.get("/history/{session_id}", response_model=HistoryResponse)
def history(session_id: str) -> Dict[str, Any]:
    if not store.exists(session_id):
        raise HTTPException(status_code=404, detail=f"No chat session found for id '{session_id}'")
    return {"session_id": session_id, "messages": messages_to_dicts(store.read(session_id))}


@app.delete("/history/{session_id}")
def clear_history(session_id: str) -> Dict[str, str]:
    if not store.clear(session_id):
        raise HTTPException(status_code=404, detail=f"No chat session found for id '{session_id}'")
    return {"status": "cleared", "session_id": session_id}


@app.get("/health")
def health():
    return {"status": "ok"}


def run() -> None:
    logger.info("Starting chatbot API (env=%s, model=%s)", settings.app_env, settings.gemini_model)
    uvicorn.run(app, host="0.0.0.0", port=8000)
