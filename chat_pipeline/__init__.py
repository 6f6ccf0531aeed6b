"""Retrieval-augmented chat over public procurement tender documents (pliegos).

A chat turn retrieves the most relevant document chunks, streams an answer
grounded on them from a chat model and records the turn in the session
history. Providers come either from Azure (OpenAI + Cosmos DB) or from a
local stack (Ollama + FAISS), selected once from the configuration. The
primary entry points are ``chat_pipeline.api.create_app`` for the HTTP
service and ``chat_pipeline.service.ChatService`` for direct use.
"""

from .config import AzureSettings, ChatConfig, LocalSettings
from .errors import BadRequest, ChatPipelineError, ServiceUnavailable, StoreUnavailable
from .service import ChatService, ChatStream

__all__ = [
    "AzureSettings",
    "BadRequest",
    "ChatConfig",
    "ChatPipelineError",
    "ChatService",
    "ChatStream",
    "LocalSettings",
    "ServiceUnavailable",
    "StoreUnavailable",
]
