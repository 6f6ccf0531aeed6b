"""Command line retrieval against the configured vector store.

Usage::

    retrieve-documents "<query>" [k]

Prints up to ``k`` (default 5) documents, each with the first 500
characters of its content followed by its metadata.
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings

from chat_pipeline.config import ChatConfig
from chat_pipeline.errors import StoreUnavailable
from chat_pipeline.providers import build_embeddings
from chat_pipeline.utils import positive_int, setup_logging
from chat_pipeline.vectorstore import load_vector_store

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500


def retrieve_documents(
    config: ChatConfig,
    query: str,
    k: int = 5,
    *,
    embeddings: Optional[Embeddings] = None,
) -> List[Document]:
    if k <= 0:
        raise ValueError("k must be a positive integer")
    embeddings = embeddings or build_embeddings(config)
    store = load_vector_store(config, embeddings)
    documents = store.similarity_search(query, k=k)
    logger.info("Retrieved %d documents for query %r", len(documents), query)
    return documents


def format_document(index: int, document: Document) -> str:
    content = document.page_content
    if len(content) > PREVIEW_CHARS:
        content = content[:PREVIEW_CHARS] + "..."
    metadata = json.dumps(document.metadata, ensure_ascii=False, default=str)
    return f"Document {index}:\n{content}\nMetadata: {metadata}\n"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Retrieve the documents most similar to a query.")
    parser.add_argument("query", help="Text to search for.")
    parser.add_argument("k", nargs="?", type=positive_int, default=5, help="Number of documents to return.")
    parser.add_argument("--log_dir", help="Directory for application logs.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_dir, logging.INFO)
    config = ChatConfig.from_env()
    try:
        documents = retrieve_documents(config, args.query, args.k)
    except StoreUnavailable:
        logger.error("Vector store unavailable; run the document ingestion first")
        raise

    print(f"Found {len(documents)} documents for query: {args.query}\n")
    for index, document in enumerate(documents, start=1):
        print(format_document(index, document))


if __name__ == "__main__":
    main()
