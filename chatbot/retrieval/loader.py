from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

import httpx
from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter


logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".rst"}


def load_directory(path: str, pattern: str = "**/*") -> List[Document]:
    """Read every text file under ``path`` into a Document tagged with its source."""
    root = Path(path)
    if not root.is_dir():
        raise RuntimeError(f"Documents directory not found: {path}")

    documents: List[Document] = []
    for file_path in sorted(root.glob(pattern)):
        if not file_path.is_file() or file_path.suffix.lower() not in TEXT_SUFFIXES:
            continue
        try:
            text = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping %s: not valid UTF-8 text", file_path)
            continue
        if not text.strip():
            continue
        documents.append(Document(page_content=text, metadata={"source": str(file_path)}))

    logger.info("Loaded %d document(s) from %s", len(documents), root)
    return documents


def load_urls(
    urls: Iterable[str],
    timeout: float = 10.0,
    transport: Optional[httpx.BaseTransport] = None,
) -> List[Document]:
    documents: List[Document] = []
    with httpx.Client(timeout=timeout, follow_redirects=True, transport=transport) as client:
        for url in urls:
            try:
                response = client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise RuntimeError(f"Failed to fetch document {url}: {exc}") from exc
            if not response.text.strip():
                continue
            documents.append(
                Document(
                    page_content=response.text,
                    metadata={
                        "source": url,
                        "content_type": response.headers.get("content-type", ""),
                    },
                )
            )
    logger.info("Fetched %d document(s) over HTTP", len(documents))
    return documents


def split_documents(
    documents: List[Document], chunk_size: int = 500, chunk_overlap: int = 0
) -> List[Document]:
    splitter = RecursiveCharacterTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    chunks = splitter.split_documents(documents)
    logger.info("Split %d document(s) into %d chunk(s)", len(documents), len(chunks))
    return chunks
