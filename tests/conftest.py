from __future__ import annotations

from pathlib import Path
import sys
from typing import Any, List

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest
from langchain_core.documents import Document
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import BaseMessage
from pydantic import Field

from chatbot.retrieval import build_retriever
from config.settings import Settings


class RecordingChatModel(FakeListChatModel):
    """Fake chat model that remembers every prompt it was given."""

    received: List[List[BaseMessage]] = Field(default_factory=list)

    def _call(self, messages: List[BaseMessage], *args: Any, **kwargs: Any) -> str:
        self.received.append(list(messages))
        return super()._call(messages, *args, **kwargs)


FACTS = {
    "langsmith": "LangSmith can help test LLM applications by tracing every run.",
    "bees": "Honey bees communicate the location of flowers with a waggle dance.",
    "tides": "Ocean tides are caused mainly by the gravitational pull of the moon.",
}


@pytest.fixture
def settings() -> Settings:
    value = Settings()
    value.google_api_key = None
    value.documents_dir = None
    value.document_urls = ()
    value.chunk_size = 1000
    value.chunk_overlap = 0
    value.retriever_k = 1
    value.memory_strategy = "none"
    value.max_history_messages = 10
    return value


@pytest.fixture
def documents() -> List[Document]:
    return [Document(page_content=text, metadata={"source": f"{key}.txt"}) for key, text in FACTS.items()]


@pytest.fixture
def retriever(settings: Settings, documents: List[Document]):
    return build_retriever(settings, documents=documents, embeddings=DeterministicFakeEmbedding(size=64))


@pytest.fixture
def make_model():
    def factory(*responses: str) -> RecordingChatModel:
        return RecordingChatModel(responses=list(responses))

    return factory
