from __future__ import annotations

import logging
from typing import List, Optional

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.retrievers import BaseRetriever
from langchain_core.vectorstores import InMemoryVectorStore
from langchain_google_genai import GoogleGenerativeAIEmbeddings

from chatbot.retrieval.loader import load_directory, load_urls, split_documents
from config.settings import Settings, get_settings


logger = logging.getLogger(__name__)


def build_embeddings(settings: Optional[Settings] = None) -> Embeddings:
    settings = settings or get_settings()
    if not settings.google_api_key:
        raise RuntimeError(
            "GOOGLE_API_KEY not set. Please configure it in environment or .env"
        )
    return GoogleGenerativeAIEmbeddings(
        model=settings.embedding_model,
        google_api_key=settings.google_api_key,
    )


def load_configured_documents(settings: Settings) -> List[Document]:
    documents: List[Document] = []
    if settings.documents_dir:
        documents.extend(load_directory(settings.documents_dir))
    if settings.document_urls:
        documents.extend(load_urls(settings.document_urls))
    return documents


def build_vector_store(documents: List[Document], embeddings: Embeddings) -> InMemoryVectorStore:
    store = InMemoryVectorStore.from_documents(documents, embeddings)
    logger.info("Indexed %d chunk(s) in the vector store", len(documents))
    return store


def build_retriever(
    settings: Optional[Settings] = None,
    documents: Optional[List[Document]] = None,
    embeddings: Optional[Embeddings] = None,
) -> Optional[BaseRetriever]:
    """Index the given (or configured) documents and return a top-k retriever.

    Returns ``None`` when there is nothing to index.
    """
    settings = settings or get_settings()
    if documents is None:
        documents = load_configured_documents(settings)
    if not documents:
        logger.info("No documents configured; retrieval disabled")
        return None

    chunks = split_documents(documents, settings.chunk_size, settings.chunk_overlap)
    store = build_vector_store(chunks, embeddings or build_embeddings(settings))
    return store.as_retriever(search_kwargs={"k": settings.retriever_k})


def format_documents(documents: List[Document]) -> str:
    return "\n\n".join(doc.page_content for doc in documents)
