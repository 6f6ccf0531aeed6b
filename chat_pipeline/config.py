"""Configuration objects for the chat pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

INSUFFICIENT_INFORMATION = "No tengo suficiente información para responder a esta pregunta."


@dataclass
class AzureSettings:
    """Azure OpenAI and Cosmos DB connection details."""

    openai_endpoint: Optional[str] = None
    chat_deployment: str = "gpt-4o-mini"
    embeddings_deployment: str = "text-embedding-3-small"
    api_version: str = "2024-02-01"
    cosmos_endpoint: Optional[str] = None
    vector_database: str = "vectorSearchDB"
    vector_container: str = "vectorSearchContainer"
    history_database: str = "chatHistoryDB"
    history_container: str = "chatHistoryContainer"
    embedding_dimensions: int = 1536


@dataclass
class LocalSettings:
    """Ollama models and on-disk stores used when no Azure endpoint is set."""

    ollama_base_url: str = "http://localhost:11434"
    chat_model: str = "llama3.1:latest"
    embeddings_model: str = "nomic-embed-text:latest"
    faiss_store_folder: str = ".faiss"
    history_dir: str = ".data/chat_history"


@dataclass
class ChatConfig:
    """Runtime controls for the retrieval-augmented chat."""

    azure: AzureSettings = field(default_factory=AzureSettings)
    local: LocalSettings = field(default_factory=LocalSettings)
    temperature: float = 0.7
    retrieval_top_k: int = 3
    system_prompt: str = (
        "Eres un asistente experto en pliegos de contratación pública. Ayudas a resolver "
        "dudas y discrepancias sobre los pliegos de cláusulas administrativas y de "
        "prescripciones técnicas.\n"
        "Responde SOLO con la información de las fuentes que aparecen a continuación. "
        "Sé breve y preciso. Si las fuentes no contienen la respuesta, responde "
        f"exactamente: \"{INSUFFICIENT_INFORMATION}\"\n"
        "Cada fuente tiene un nombre seguido de dos puntos y su contenido. Cita la fuente "
        "de cada dato entre corchetes, por ejemplo: [pliego.pdf]. No combines fuentes, "
        "cita cada una por separado.\n\n"
        "SOURCES:\n{context}"
    )
    title_prompt: str = (
        "Create a title for this chat session, based on the user question. "
        "The title should be less than 32 characters. Do NOT use double-quotes."
    )
    document_template: str = "[{source}]: {page_content}\n"
    insufficient_information_message: str = INSUFFICIENT_INFORMATION
    unavailable_message: str = "Service temporarily unavailable. Please try again later."
    default_user_id: str = "anonymous"

    @property
    def use_cloud(self) -> bool:
        return bool(self.azure.openai_endpoint and self.azure.openai_endpoint.strip())

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ChatConfig":
        """Build the configuration once from environment variables.

        When ``environ`` is omitted the process environment is used, after
        loading any ``.env`` file found in the working directory.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        azure_defaults = AzureSettings()
        local_defaults = LocalSettings()
        azure = AzureSettings(
            openai_endpoint=environ.get("AZURE_OPENAI_API_ENDPOINT") or None,
            chat_deployment=environ.get("AZURE_OPENAI_API_DEPLOYMENT_NAME", azure_defaults.chat_deployment),
            embeddings_deployment=environ.get(
                "AZURE_OPENAI_API_EMBEDDINGS_DEPLOYMENT_NAME", azure_defaults.embeddings_deployment
            ),
            api_version=environ.get("AZURE_OPENAI_API_VERSION", azure_defaults.api_version),
            cosmos_endpoint=environ.get("AZURE_COSMOSDB_NOSQL_ENDPOINT") or None,
        )
        local = LocalSettings(
            ollama_base_url=environ.get("OLLAMA_BASE_URL", local_defaults.ollama_base_url),
            chat_model=environ.get("OLLAMA_CHAT_MODEL", local_defaults.chat_model),
            embeddings_model=environ.get("OLLAMA_EMBEDDINGS_MODEL", local_defaults.embeddings_model),
            faiss_store_folder=environ.get("FAISS_STORE_FOLDER", local_defaults.faiss_store_folder),
            history_dir=environ.get("CHAT_HISTORY_DIR", local_defaults.history_dir),
        )
        top_k = int(environ.get("RETRIEVAL_TOP_K", cls.retrieval_top_k))
        if top_k <= 0:
            raise ValueError("RETRIEVAL_TOP_K must be a positive integer")
        return cls(azure=azure, local=local, retrieval_top_k=top_k)
