"""Resolve the model, embeddings, vector store and history handles for a request.

Exactly one provider family is used per request. When an Azure OpenAI endpoint
is configured everything comes from Azure (OpenAI + Cosmos DB); otherwise the
local stack is used (Ollama + FAISS + JSON files on disk). Handles are built
fresh for every call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from azure.identity import DefaultAzureCredential, get_bearer_token_provider
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_core.vectorstores import VectorStore
from langchain_ollama import ChatOllama, OllamaEmbeddings
from langchain_openai import AzureChatOpenAI, AzureOpenAIEmbeddings

from .config import ChatConfig
from .history import CosmosChatHistory, FileSystemChatHistory, SessionChatHistory
from .vectorstore import cosmos_client, load_vector_store

logger = logging.getLogger(__name__)

AZURE_COGNITIVE_SCOPE = "https://cognitiveservices.azure.com/.default"


@dataclass
class ProviderBundle:
    embeddings: Embeddings
    chat_model: BaseChatModel
    vector_store: VectorStore
    chat_history: SessionChatHistory


def _azure_token_provider():
    return get_bearer_token_provider(DefaultAzureCredential(), AZURE_COGNITIVE_SCOPE)


def build_embeddings(config: ChatConfig) -> Embeddings:
    if config.use_cloud:
        return AzureOpenAIEmbeddings(
            azure_endpoint=config.azure.openai_endpoint,
            azure_deployment=config.azure.embeddings_deployment,
            api_version=config.azure.api_version,
            azure_ad_token_provider=_azure_token_provider(),
        )
    return OllamaEmbeddings(
        model=config.local.embeddings_model,
        base_url=config.local.ollama_base_url,
    )


def build_chat_model(config: ChatConfig) -> BaseChatModel:
    if config.use_cloud:
        return AzureChatOpenAI(
            azure_endpoint=config.azure.openai_endpoint,
            azure_deployment=config.azure.chat_deployment,
            api_version=config.azure.api_version,
            azure_ad_token_provider=_azure_token_provider(),
            temperature=config.temperature,
        )
    return ChatOllama(
        model=config.local.chat_model,
        base_url=config.local.ollama_base_url,
        temperature=config.temperature,
    )


def build_chat_history(config: ChatConfig, session_id: str, user_id: str) -> SessionChatHistory:
    if config.use_cloud:
        database = cosmos_client(config).get_database_client(config.azure.history_database)
        container = database.get_container_client(config.azure.history_container)
        return CosmosChatHistory(container, session_id, user_id)
    return FileSystemChatHistory(config.local.history_dir, session_id, user_id)


def resolve_providers(config: ChatConfig, session_id: str, user_id: str) -> ProviderBundle:
    """Build every handle a chat turn needs from a single provider branch."""
    logger.info(
        "Resolving %s providers for session %s (user=%s)",
        "cloud" if config.use_cloud else "local",
        session_id,
        user_id,
    )
    embeddings = build_embeddings(config)
    return ProviderBundle(
        embeddings=embeddings,
        chat_model=build_chat_model(config),
        vector_store=load_vector_store(config, embeddings),
        chat_history=build_chat_history(config, session_id, user_id),
    )
