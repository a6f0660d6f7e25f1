from chatbot.retrieval.loader import load_directory, load_urls, split_documents
from chatbot.retrieval.retriever import build_embeddings, build_retriever, build_vector_store, format_documents

__all__ = [
    "build_embeddings",
    "build_retriever",
    "build_vector_store",
    "format_documents",
    "load_directory",
    "load_urls",
    "split_documents",
]
