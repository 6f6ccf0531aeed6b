"""Split uploaded PDF files into chunks and add them to the vector store."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from langchain_community.document_loaders import PyPDFLoader
from langchain_community.vectorstores import FAISS
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_text_splitters import RecursiveCharacterTextSplitter

from chat_pipeline.config import ChatConfig
from chat_pipeline.providers import build_embeddings
from chat_pipeline.vectorstore import load_faiss_store, open_cosmos_store

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1500
CHUNK_OVERLAP = 100


def split_pdf(filename: str, data: bytes) -> List[Document]:
    """Load ``data`` as a PDF and return its chunks tagged with ``source=filename``."""
    fd, tmp_path = tempfile.mkstemp(suffix=".pdf")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        pages = PyPDFLoader(tmp_path).load()
    finally:
        os.unlink(tmp_path)

    splitter = RecursiveCharacterTextSplitter(chunk_size=CHUNK_SIZE, chunk_overlap=CHUNK_OVERLAP)
    chunks = splitter.split_documents(pages)
    for chunk in chunks:
        chunk.metadata["source"] = filename
    logger.info("Split %s into %d chunks (%d pages)", filename, len(chunks), len(pages))
    return chunks


def add_to_faiss(folder: str, documents: List[Document], embeddings: Embeddings) -> None:
    if (Path(folder) / "index.faiss").exists():
        store = load_faiss_store(folder, embeddings)
        store.add_documents(documents)
    else:
        logger.info("Creating new FAISS store at %s", folder)
        store = FAISS.from_documents(documents, embeddings)
    store.save_local(folder)


def ingest_pdf(
    config: ChatConfig,
    filename: str,
    data: bytes,
    *,
    embeddings: Optional[Embeddings] = None,
) -> int:
    """Add the chunks of one PDF to the active vector store; returns the chunk count."""
    documents = split_pdf(filename, data)
    if not documents:
        raise ValueError(f"No text could be extracted from '{filename}'")

    embeddings = embeddings or build_embeddings(config)
    if config.use_cloud:
        open_cosmos_store(config, embeddings).add_documents(documents)
    else:
        add_to_faiss(config.local.faiss_store_folder, documents, embeddings)
    logger.info("Added %d chunks from %s to the vector store", len(documents), filename)
    return len(documents)
