"""Retrieval-augmented chat turns streamed as text fragments."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool
from langchain_core.documents import Document
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from .config import ChatConfig
from .errors import BadRequest, ServiceUnavailable
from .history import SessionChatHistory
from .providers import ProviderBundle, build_chat_history, resolve_providers

logger = logging.getLogger(__name__)

Resolver = Callable[[ChatConfig, str, str], ProviderBundle]
HistoryFactory = Callable[[ChatConfig, str, str], SessionChatHistory]

_ROLE_BY_TYPE = {"human": "user", "ai": "assistant", "system": "system"}


class _TurnState:
    def __init__(self) -> None:
        self.recorded = False


@dataclass
class ChatStream:
    """A single chat turn: the session it belongs to and its answer fragments.

    ``finish`` derives the session title once ``chunks`` has been consumed
    and the answer recorded; the HTTP layer runs it as a background task so
    the response closes without waiting for it.
    """

    session_id: str
    chunks: AsyncIterator[str]
    finish: Callable[[], Awaitable[None]]


def validate_messages(messages: Sequence[Dict[str, str]]) -> str:
    """Return the question carried by the last message or raise :class:`BadRequest`."""
    if not messages:
        raise BadRequest("Invalid or missing messages in the request body")
    question = messages[-1].get("content")
    if not question:
        raise BadRequest("Invalid or missing messages in the request body")
    return question


def format_documents(documents: Sequence[Document], template: str) -> str:
    return "".join(
        template.format(source=doc.metadata.get("source", "unknown"), page_content=doc.page_content)
        for doc in documents
    )


class ChatService:
    """Runs chat turns against whichever provider family the configuration selects."""

    def __init__(
        self,
        config: Optional[ChatConfig] = None,
        *,
        resolver: Optional[Resolver] = None,
        history_factory: Optional[HistoryFactory] = None,
    ) -> None:
        self.config = config or ChatConfig()
        self.resolver = resolver or resolve_providers
        self.history_factory = history_factory or build_chat_history

    async def stream_chat(
        self,
        messages: Sequence[Dict[str, str]],
        *,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ChatStream:
        """Answer the last message of ``messages`` from the retrieved documents.

        Everything up to the first answer fragment happens before this
        coroutine returns, so upstream failures surface as
        :class:`ServiceUnavailable` before anything is sent to the caller and
        leave the session history untouched. The user turn is recorded once
        the first fragment is available; the answer once the stream is fully
        consumed.
        """
        question = validate_messages(messages)
        session_id = session_id or str(uuid.uuid4())
        user_id = user_id or self.config.default_user_id

        try:
            bundle = await run_in_threadpool(self.resolver, self.config, session_id, user_id)
            documents = await run_in_threadpool(
                bundle.vector_store.similarity_search, question, self.config.retrieval_top_k
            )
            logger.info("Retrieved %d documents for session %s", len(documents), session_id)
            history = bundle.chat_history
            prior_turns = await run_in_threadpool(lambda: history.messages)

            if documents:
                fragments = self._answer(bundle.chat_model, question, documents, prior_turns)
            else:
                fragments = self._insufficient_information()
            first = await self._first_fragment(fragments)
            await run_in_threadpool(history.add_message, HumanMessage(content=question))
        except Exception as exc:
            logger.exception("Chat turn failed before streaming (session_id=%s)", session_id)
            raise ServiceUnavailable(self.config.unavailable_message) from exc

        state = _TurnState()

        async def finish() -> None:
            if state.recorded:
                await self._derive_title(bundle.chat_model, history, question, session_id)

        chunks = self._relay(first, fragments, history, session_id, state)
        return ChatStream(session_id=session_id, chunks=chunks, finish=finish)

    def get_history(self, session_id: str, user_id: Optional[str] = None) -> Dict[str, object]:
        """Return the stored turns and title of a session."""
        history = self.history_factory(self.config, session_id, user_id or self.config.default_user_id)
        if not history.exists():
            raise KeyError(f"No chat session found for id '{session_id}'")
        return {
            "id": session_id,
            "userId": history.user_id,
            "title": history.get_context().get("title"),
            "messages": [
                {"role": _ROLE_BY_TYPE.get(message.type, message.type), "content": message.content}
                for message in history.messages
            ],
        }


    def _answer(
        self,
        model: BaseChatModel,
        question: str,
        documents: Sequence[Document],
        prior_turns: List[BaseMessage],
    ) -> AsyncIterator[str]:
        prompt = ChatPromptTemplate.from_messages(
            [
                ("system", self.config.system_prompt),
                MessagesPlaceholder("chat_history"),
                ("human", "{input}"),
            ]
        )
        chain = prompt | model | StrOutputParser()
        return chain.astream(
            {
                "context": format_documents(documents, self.config.document_template),
                "chat_history": prior_turns,
                "input": question,
            }
        ).__aiter__()

    async def _insufficient_information(self) -> AsyncIterator[str]:
        yield self.config.insufficient_information_message

    @staticmethod
    async def _first_fragment(fragments: AsyncIterator[str]) -> str:
        async for fragment in fragments:
            if fragment:
                return fragment
        return ""

    async def _relay(
        self,
        first: str,
        fragments: AsyncIterator[str],
        history: SessionChatHistory,
        session_id: str,
        state: _TurnState,
    ) -> AsyncIterator[str]:
        answer = first
        if first:
            yield first
        try:
            async for fragment in fragments:
                if not fragment:
                    continue
                answer += fragment
                yield fragment
        except Exception:
            logger.exception("Answer stream interrupted (session_id=%s); answer not recorded", session_id)
            return

        try:
            await run_in_threadpool(history.add_message, AIMessage(content=answer))
        except Exception:
            logger.exception("Failed to record answer for session %s", session_id)
            return
        state.recorded = True

    async def _derive_title(
        self,
        model: BaseChatModel,
        history: SessionChatHistory,
        question: str,
        session_id: str,
    ) -> None:
        try:
            context = await run_in_threadpool(history.get_context)
            if context.get("title"):
                return
            prompt = ChatPromptTemplate.from_messages(
                [("system", self.config.title_prompt), ("human", "{input}")]
            )
            title = await (prompt | model | StrOutputParser()).ainvoke({"input": question})
            title = title.strip()
            await run_in_threadpool(history.set_context, {"title": title})
            logger.info("Session %s titled %r", session_id, title)
        except Exception:
            logger.exception("Failed to derive title for session %s", session_id)
