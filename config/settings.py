from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    return tuple(item.strip() for item in (value or "").split(",") if item.strip())


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    google_api_key: Optional[str] = os.getenv("GOOGLE_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    embedding_model: str = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")
    temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
    top_p: float = float(os.getenv("MODEL_TOP_P", "0.9"))

    documents_dir: Optional[str] = os.getenv("DOCUMENTS_DIR")
    document_urls: Tuple[str, ...] = _split_csv(os.getenv("DOCUMENT_URLS"))
    chunk_size: int = int(os.getenv("CHUNK_SIZE", "500"))
    chunk_overlap: int = int(os.getenv("CHUNK_OVERLAP", "0"))
    retriever_k: int = int(os.getenv("RETRIEVER_K", "4"))

    # none | trim | summary
    memory_strategy: str = os.getenv("MEMORY_STRATEGY", "trim")
    max_history_messages: int = int(os.getenv("MAX_HISTORY_MESSAGES", "10"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
