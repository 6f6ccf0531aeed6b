import pytest

from chat_pipeline.config import ChatConfig


def test_defaults_select_local_stack():
    config = ChatConfig.from_env({})

    assert not config.use_cloud
    assert config.local.chat_model == "llama3.1:latest"
    assert config.local.embeddings_model == "nomic-embed-text:latest"
    assert config.local.faiss_store_folder == ".faiss"
    assert config.retrieval_top_k == 3
    assert config.temperature == 0.7


def test_azure_endpoint_switches_to_cloud():
    config = ChatConfig.from_env(
        {
            "AZURE_OPENAI_API_ENDPOINT": "https://pliegos.openai.azure.com/",
            "AZURE_OPENAI_API_DEPLOYMENT_NAME": "chat",
            "AZURE_OPENAI_API_EMBEDDINGS_DEPLOYMENT_NAME": "embeddings",
            "AZURE_COSMOSDB_NOSQL_ENDPOINT": "https://pliegos.documents.azure.com:443/",
        }
    )

    assert config.use_cloud
    assert config.azure.chat_deployment == "chat"
    assert config.azure.embeddings_deployment == "embeddings"
    assert config.azure.cosmos_endpoint == "https://pliegos.documents.azure.com:443/"


def test_empty_endpoint_keeps_local_stack():
    assert not ChatConfig.from_env({"AZURE_OPENAI_API_ENDPOINT": ""}).use_cloud


def test_local_overrides_and_top_k():
    config = ChatConfig.from_env(
        {"FAISS_STORE_FOLDER": "/data/faiss", "OLLAMA_CHAT_MODEL": "mistral", "RETRIEVAL_TOP_K": "5"}
    )

    assert config.local.faiss_store_folder == "/data/faiss"
    assert config.local.chat_model == "mistral"
    assert config.retrieval_top_k == 5


def test_non_positive_top_k_is_rejected():
    with pytest.raises(ValueError):
        ChatConfig.from_env({"RETRIEVAL_TOP_K": "0"})


def test_system_prompt_has_only_the_context_slot():
    config = ChatConfig()

    assert "{context}" in config.system_prompt
    assert config.system_prompt.count("{") == 1
    assert config.insufficient_information_message in config.system_prompt
