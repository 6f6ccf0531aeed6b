from __future__ import annotations

import json
from typing import Callable, List, Optional

import pytest
from fastapi.testclient import TestClient
from langchain_core.documents import Document
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.language_models import FakeListChatModel
from langchain_core.vectorstores import InMemoryVectorStore

from chat_pipeline.api import create_app
from chat_pipeline.config import AzureSettings, ChatConfig, LocalSettings
from chat_pipeline.history import FileSystemChatHistory
from chat_pipeline.providers import ProviderBundle
from chat_pipeline.service import ChatService

PLIEGO_DOCUMENTS = [
    Document(
        page_content="El plazo de ejecución del contrato es de doce meses desde la firma.",
        metadata={"source": "pliego-administrativo.pdf"},
    ),
    Document(
        page_content="La garantía definitiva será del cinco por ciento del importe de adjudicación.",
        metadata={"source": "pliego-administrativo.pdf"},
    ),
    Document(
        page_content="El servidor deberá disponer de al menos 64 GB de memoria RAM.",
        metadata={"source": "pliego-tecnico.pdf"},
    ),
    Document(
        page_content="Las ofertas se presentarán en la plataforma de contratación del sector público.",
        metadata={"source": "anuncio.pdf"},
    ),
]


class FakeProviders:
    """Resolver returning in-memory fakes; records every resolution."""

    def __init__(
        self,
        history_dir: str,
        responses: List[str],
        *,
        documents: Optional[List[Document]] = None,
        error_on_chunk_number: Optional[int] = None,
    ) -> None:
        self.history_dir = history_dir
        self.embeddings = DeterministicFakeEmbedding(size=32)
        self.chat_model = FakeListChatModel(responses=responses, error_on_chunk_number=error_on_chunk_number)
        self.vector_store = InMemoryVectorStore(self.embeddings)
        if documents:
            self.vector_store.add_documents(documents)
        self.calls = []

    def __call__(self, config: ChatConfig, session_id: str, user_id: str) -> ProviderBundle:
        self.calls.append((session_id, user_id))
        return ProviderBundle(
            embeddings=self.embeddings,
            chat_model=self.chat_model,
            vector_store=self.vector_store,
            chat_history=FileSystemChatHistory(self.history_dir, session_id, user_id),
        )


@pytest.fixture
def config(tmp_path) -> ChatConfig:
    return ChatConfig(
        azure=AzureSettings(),
        local=LocalSettings(
            faiss_store_folder=str(tmp_path / "faiss"),
            history_dir=str(tmp_path / "history"),
        ),
    )


@pytest.fixture
def make_providers(config) -> Callable[..., FakeProviders]:
    def factory(responses: List[str], **kwargs) -> FakeProviders:
        kwargs.setdefault("documents", PLIEGO_DOCUMENTS)
        return FakeProviders(config.local.history_dir, responses, **kwargs)

    return factory


@pytest.fixture
def make_client(config) -> Callable[[FakeProviders], TestClient]:
    def factory(providers: FakeProviders) -> TestClient:
        service = ChatService(config, resolver=providers)
        return TestClient(create_app(config, service=service))

    return factory


@pytest.fixture
def read_ndjson() -> Callable:
    def parse(response) -> List[dict]:
        return [json.loads(line) for line in response.text.splitlines() if line.strip()]

    return parse


@pytest.fixture
def make_pdf() -> Callable[[str], bytes]:
    """Build a one-page PDF whose only content is ``text`` (ASCII)."""

    def build(text: str) -> bytes:
        stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
        objects = [
            b"<< /Type /Catalog /Pages 2 0 R >>",
            b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
            b"/Resources << /Font << /F1 5 0 R >> >> >>",
            b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
            b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        ]
        out = bytearray(b"%PDF-1.4\n")
        offsets = []
        for number, body in enumerate(objects, start=1):
            offsets.append(len(out))
            out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
        xref_offset = len(out)
        out += b"xref\n0 %d\n" % (len(objects) + 1)
        out += b"0000000000 65535 f \n"
        for offset in offsets:
            out += b"%010d 00000 n \n" % offset
        out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_offset)
        return bytes(out)

    return build


@pytest.fixture
def pliego_documents() -> List[Document]:
    return [Document(page_content=d.page_content, metadata=dict(d.metadata)) for d in PLIEGO_DOCUMENTS]
