"""Per-session chat history stores with a small session context record.

Each session is persisted as a single record::

    {"id": <sessionId>, "userId": <userId>, "messages": [...], "context": {...}}

``messages`` is append-only and holds LangChain message dicts. ``context``
carries session metadata such as the derived ``title``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from azure.cosmos.exceptions import CosmosResourceNotFoundError
from langchain_core.chat_history import BaseChatMessageHistory
from langchain_core.messages import BaseMessage, messages_from_dict, messages_to_dict

logger = logging.getLogger(__name__)


class SessionChatHistory(BaseChatMessageHistory):
    """Chat history keyed by ``(session_id, user_id)`` with a session context."""

    def __init__(self, session_id: str, user_id: str) -> None:
        self.session_id = session_id
        self.user_id = user_id

    def _load(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _save(self, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _record(self) -> Dict[str, Any]:
        record = self._load()
        if record is None:
            record = {"id": self.session_id, "userId": self.user_id, "messages": [], "context": {}}
        return record

    def exists(self) -> bool:
        return self._load() is not None

    @property
    def messages(self) -> List[BaseMessage]:  # type: ignore[override]
        return messages_from_dict(self._record().get("messages", []))

    def add_messages(self, messages: Sequence[BaseMessage]) -> None:
        record = self._record()
        record["messages"] = record.get("messages", []) + messages_to_dict(list(messages))
        self._save(record)

    def clear(self) -> None:
        record = self._record()
        record["messages"] = []
        self._save(record)

    def get_context(self) -> Dict[str, Any]:
        return dict(self._record().get("context") or {})

    def set_context(self, context: Dict[str, Any]) -> None:
        """Merge ``context`` into the stored session context."""
        record = self._record()
        merged = dict(record.get("context") or {})
        merged.update(context)
        record["context"] = merged
        self._save(record)


class FileSystemChatHistory(SessionChatHistory):
    """Stores each session as ``<base_dir>/<user_id>/<session_id>.json``."""

    def __init__(self, base_dir: str, session_id: str, user_id: str) -> None:
        super().__init__(session_id, user_id)
        self.path = Path(base_dir) / _safe_name(user_id) / f"{_safe_name(session_id)}.json"

    def _load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def _save(self, record: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(record, handle, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)
        logger.debug("Saved chat history for session %s to %s", self.session_id, self.path)


class CosmosChatHistory(SessionChatHistory):
    """Stores each session as one item of a Cosmos DB container partitioned by ``/userId``."""

    def __init__(self, container: Any, session_id: str, user_id: str) -> None:
        super().__init__(session_id, user_id)
        self.container = container

    def _load(self) -> Optional[Dict[str, Any]]:
        try:
            item = self.container.read_item(item=self.session_id, partition_key=self.user_id)
        except CosmosResourceNotFoundError:
            return None
        return {key: item[key] for key in ("id", "userId", "messages", "context") if key in item}

    def _save(self, record: Dict[str, Any]) -> None:
        self.container.upsert_item(record)
        logger.debug("Saved chat history for session %s to Cosmos DB", self.session_id)


def _safe_name(value: str) -> str:
    """Percent-encode ``value`` into a single path component, dots included."""
    return quote(value, safe="").replace(".", "%2E") or "%"
