"""Document ingestion and retrieval helpers for the chat vector store."""

from .ingest import ingest_pdf, split_pdf
from .retrieve import retrieve_documents

__all__ = ["ingest_pdf", "retrieve_documents", "split_pdf"]
