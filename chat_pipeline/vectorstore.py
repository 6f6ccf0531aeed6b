"""Open the vector store that backs retrieval for the active provider."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from azure.cosmos import CosmosClient, PartitionKey
from azure.identity import DefaultAzureCredential
from langchain_community.vectorstores import FAISS
from langchain_community.vectorstores.azure_cosmos_db_no_sql import AzureCosmosDBNoSqlVectorSearch
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import VectorStore

from .config import ChatConfig
from .errors import StoreUnavailable

logger = logging.getLogger(__name__)


def cosmos_client(config: ChatConfig) -> CosmosClient:
    """Cosmos DB client authenticated with the ambient Azure identity."""
    if not config.azure.cosmos_endpoint:
        raise ValueError("AZURE_COSMOSDB_NOSQL_ENDPOINT is required in cloud mode")
    return CosmosClient(config.azure.cosmos_endpoint, credential=DefaultAzureCredential())


def _vector_policies(dimensions: int) -> Dict[str, Any]:
    return {
        "vector_embedding_policy": {
            "vectorEmbeddings": [
                {
                    "path": "/embedding",
                    "dataType": "float32",
                    "distanceFunction": "cosine",
                    "dimensions": dimensions,
                }
            ]
        },
        "indexing_policy": {
            "indexingMode": "consistent",
            "includedPaths": [{"path": "/*"}],
            "excludedPaths": [{"path": '/"_etag"/?'}],
            "vectorIndexes": [{"path": "/embedding", "type": "quantizedFlat"}],
        },
    }


def open_cosmos_store(config: ChatConfig, embeddings: Embeddings) -> VectorStore:
    policies = _vector_policies(config.azure.embedding_dimensions)
    return AzureCosmosDBNoSqlVectorSearch(
        cosmos_client=cosmos_client(config),
        embedding=embeddings,
        vector_embedding_policy=policies["vector_embedding_policy"],
        indexing_policy=policies["indexing_policy"],
        cosmos_container_properties={"partition_key": PartitionKey(path="/id")},
        cosmos_database_properties={},
        database_name=config.azure.vector_database,
        container_name=config.azure.vector_container,
    )


def load_faiss_store(folder: str, embeddings: Embeddings) -> FAISS:
    """Load a persisted FAISS index, raising :class:`StoreUnavailable` when it cannot be read."""
    path = Path(folder)
    if not path.is_dir():
        logger.error("Error loading FAISS store from %s: folder does not exist", folder)
        raise StoreUnavailable(
            f"FAISS store not found at '{folder}'. Run the document ingestion first."
        )
    try:
        store = FAISS.load_local(str(path), embeddings, allow_dangerous_deserialization=True)
    except Exception as exc:
        logger.exception("Error loading FAISS store from %s", folder)
        raise StoreUnavailable(f"FAISS store at '{folder}' could not be loaded: {exc}") from exc
    logger.debug("Loaded FAISS store from %s", folder)
    return store


def load_vector_store(config: ChatConfig, embeddings: Embeddings) -> VectorStore:
    """Return the vector store for the configured provider branch."""
    if config.use_cloud:
        return open_cosmos_store(config, embeddings)
    return load_faiss_store(config.local.faiss_store_folder, embeddings)
