"""Unified FastAPI server exposing the streaming chat and document ingestion."""

from __future__ import annotations

import argparse
import logging
from typing import Dict, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
import uvicorn

from chat_pipeline import ChatConfig, ChatService
from chat_pipeline.api import create_app as create_chat_app
from chat_pipeline.errors import StoreUnavailable
from chat_pipeline.utils import positive_int, setup_logging
from document_store.ingest import ingest_pdf

logger = logging.getLogger(__name__)


# ---------- FastAPI Factory ----------
def create_app(
    log_dir: Optional[str] = "./logs",
    chat_config: Optional[ChatConfig] = None,
    *,
    service: Optional[ChatService] = None,
) -> FastAPI:
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    config = service.config if service else (chat_config or ChatConfig.from_env())
    app = create_chat_app(config, service=service or ChatService(config))
    app.title = "Pliegos Server"

    @app.post("/api/documents")
    async def upload_document(file: UploadFile = File(...)) -> Dict[str, str]:
        filename = file.filename or ""
        if not filename.lower().endswith(".pdf") and file.content_type != "application/pdf":
            raise HTTPException(status_code=400, detail="Only PDF files are supported")

        logger.info("Received document %s", filename)
        data = await file.read()
        try:
            chunks = await run_in_threadpool(ingest_pdf, config, filename, data)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except StoreUnavailable as exc:
            logger.exception("Vector store unavailable while ingesting %s", filename)
            raise HTTPException(status_code=503, detail=config.unavailable_message) from exc
        except Exception as exc:
            logger.exception("Document ingestion failed for %s", filename)
            raise HTTPException(status_code=503, detail=config.unavailable_message) from exc

        logger.info("Ingested %s as %d chunks", filename, chunks)
        return {"message": "PDF file uploaded successfully."}

    return app


# ---------- CLI ----------
def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the pliegos RAG chat server.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=8010, help="Port to bind.")
    parser.add_argument("--log_dir", default="./logs", help="Directory for application logs.")
    parser.add_argument("--top_k", type=positive_int, help="Chunks to retrieve per question (overrides RETRIEVAL_TOP_K).")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    chat_cfg = ChatConfig.from_env()
    if args.top_k is not None:
        chat_cfg.retrieval_top_k = args.top_k

    app = create_app(args.log_dir, chat_cfg)
    logger.info(
        "Starting pliegos server on %s:%d (%s providers)",
        args.host,
        args.port,
        "cloud" if chat_cfg.use_cloud else "local",
    )
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
