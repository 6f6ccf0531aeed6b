"""FastAPI routes for the streaming chat endpoint."""

from __future__ import annotations

import logging
from typing import AsyncIterator, List, Literal, Optional

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.background import BackgroundTask

from .config import ChatConfig
from .errors import BadRequest, ServiceUnavailable
from .service import ChatService, ChatStream
from .utils import setup_logging

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"
PRINCIPAL_HEADER = "x-ms-client-principal-id"


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    user_id: Optional[str] = Field(None, alias="userId")


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    context: ChatContext = Field(default_factory=ChatContext)


class Delta(BaseModel):
    content: str
    role: Literal["assistant"] = "assistant"


class ChunkContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")


class ResponseChunk(BaseModel):
    delta: Delta
    context: ChunkContext


async def to_ndjson(stream: ChatStream) -> AsyncIterator[str]:
    """Frame each answer fragment as one JSON line."""
    async for fragment in stream.chunks:
        chunk = ResponseChunk(delta=Delta(content=fragment), context=ChunkContext(session_id=stream.session_id))
        yield chunk.model_dump_json(by_alias=True) + "\n"


def build_router(service: ChatService) -> APIRouter:
    router = APIRouter()

    @router.post("/chats/stream")
    async def chat_stream(
        request: ChatRequest,
        principal_id: Optional[str] = Header(None, alias=PRINCIPAL_HEADER),
    ):
        user_id = principal_id or request.context.user_id
        logger.info(
            "Streaming chat (userId=%s, sessionId=%s)",
            user_id or service.config.default_user_id,
            request.context.session_id,
        )
        try:
            stream = await service.stream_chat(
                [message.model_dump() for message in request.messages],
                session_id=request.context.session_id,
                user_id=user_id,
            )
        except BadRequest as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ServiceUnavailable as exc:
            raise HTTPException(status_code=503, detail=service.config.unavailable_message) from exc
        except Exception as exc:
            logger.exception("Chat request failed (sessionId=%s)", request.context.session_id)
            raise HTTPException(status_code=503, detail=service.config.unavailable_message) from exc

        return StreamingResponse(
            to_ndjson(stream),
            media_type=NDJSON_MEDIA_TYPE,
            background=BackgroundTask(stream.finish),
        )

    @router.get("/chats/{session_id}")
    async def chat_history(
        session_id: str,
        principal_id: Optional[str] = Header(None, alias=PRINCIPAL_HEADER),
    ):
        logger.info("Fetching history for session %s", session_id)
        try:
            return await run_in_threadpool(service.get_history, session_id, principal_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=f"No chat session found for id '{session_id}'") from exc
        except Exception as exc:
            logger.exception("History lookup failed (sessionId=%s)", session_id)
            raise HTTPException(status_code=503, detail=service.config.unavailable_message) from exc

    return router


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    if request.url.path.startswith("/chats"):
        detail = "Invalid or missing messages in the request body"
    else:
        detail = "Invalid request body"
    return JSONResponse(status_code=400, content={"detail": detail})


def create_app(
    chat_config: Optional[ChatConfig] = None,
    *,
    service: Optional[ChatService] = None,
    log_dir: Optional[str] = None,
) -> FastAPI:
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    service = service or ChatService(chat_config or ChatConfig.from_env())

    app = FastAPI(title="Pliegos Chat", version="0.1.0")
    app.state.service = service
    app.add_exception_handler(RequestValidationError, _validation_error)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "mode": "cloud" if service.config.use_cloud else "local"}

    app.include_router(build_router(service))
    return app
