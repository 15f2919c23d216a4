"""Conversation history: load once, save after every mutation."""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
import os
import re
import uuid
from pathlib import Path
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from agrimate.errors import AgriMateError, ConversationNotFound
from agrimate.llm.chain import ChainReply, build_messages
from agrimate.llm.prompts import SYSTEM_INSTRUCTION

log = logging.getLogger("agrimate.chat_store")

STORAGE_KEY = "agrimate-chat-history"
NEW_CHAT_TITLE = "New Chat"
TITLE_MAX = 40

ReplyFn = Callable[[List[Dict[str, str]]], Awaitable[ChainReply]]


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


class JsonFileStorage:
    """A single JSON file holding ``{key: raw string}``, written atomically."""

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self._path)


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def generate_title(first_message: str) -> str:
    clean = re.sub(r"[#*_~`]", "", first_message).strip()
    if len(clean) <= TITLE_MAX:
        return clean
    return clean[:TITLE_MAX - 3] + "..."


def _valid_conversation(c: Any) -> bool:
    return (
        isinstance(c, dict)
        and isinstance(c.get("id"), str)
        and isinstance(c.get("messages"), list)
    )


class ConversationStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], str] = _now_iso,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._new_id = id_factory
        self._lock = Lock()
        self.conversations: List[Dict[str, Any]] = []
        self.active_conversation_id: Optional[str] = None
        self._load()

    # --- persistence ---

    def _load(self) -> None:
        try:
            raw = self._storage.get_item(STORAGE_KEY)
            parsed = json.loads(raw) if raw else {}
        except (OSError, ValueError) as e:
            log.warning("Corrupted chat history, resetting: %s", e)
            parsed = {}
        if not isinstance(parsed, dict):
            parsed = {}
        conversations = parsed.get("conversations") or []
        if not isinstance(conversations, list):
            conversations = []
        self.conversations = []
        for c in conversations:
            if not _valid_conversation(c):
                continue
            c["messages"] = [
                m for m in c["messages"]
                if isinstance(m, dict) and isinstance(m.get("role"), str) and isinstance(m.get("content"), str)
            ]
            c.setdefault("title", NEW_CHAT_TITLE)
            self.conversations.append(c)
        active = parsed.get("activeConversationId")
        self.active_conversation_id = active if isinstance(active, str) else None

    def _save(self) -> None:
        payload = json.dumps(
            {"conversations": self.conversations, "activeConversationId": self.active_conversation_id},
            ensure_ascii=False,
        )
        try:
            self._storage.set_item(STORAGE_KEY, payload)
        except OSError as e:
            # storage full or unavailable; in-memory state stays authoritative
            log.warning("Could not persist chat history: %s", e)

    def _find(self, conversation_id: str) -> Dict[str, Any]:
        for c in self.conversations:
            if c["id"] == conversation_id:
                return c
        raise ConversationNotFound(f"Conversation {conversation_id} not found.")

    # --- getters ---

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "conversations": json.loads(json.dumps(self.conversations)),
                "activeConversationId": self.active_conversation_id,
            }

    def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        with self._lock:
            return dict(self._find(conversation_id))

    def get_active_conversation(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            for c in self.conversations:
                if c["id"] == self.active_conversation_id:
                    return dict(c)
            return None

    # --- actions ---

    def create_conversation(self, title: Optional[str] = None) -> Dict[str, Any]:
        now = self._clock()
        convo = {
            "id": self._new_id(),
            "title": title or NEW_CHAT_TITLE,
            "messages": [],
            "createdAt": now,
            "updatedAt": now,
        }
        with self._lock:
            self.conversations.insert(0, convo)
            self.active_conversation_id = convo["id"]
            self._save()
        return dict(convo)

    def delete_conversation(self, conversation_id: str) -> None:
        with self._lock:
            self._find(conversation_id)
            self.conversations = [c for c in self.conversations if c["id"] != conversation_id]
            if self.active_conversation_id == conversation_id:
                self.active_conversation_id = self.conversations[0]["id"] if self.conversations else None
            self._save()

    def rename_conversation(self, conversation_id: str, title: str) -> Dict[str, Any]:
        with self._lock:
            convo = self._find(conversation_id)
            convo["title"] = title
            convo["updatedAt"] = self._clock()
            self._save()
            return dict(convo)

    def set_active_conversation(self, conversation_id: Optional[str]) -> None:
        with self._lock:
            if conversation_id is not None:
                self._find(conversation_id)
            self.active_conversation_id = conversation_id
            self._save()

    def add_message(self, conversation_id: str, role: str, content: str, error: bool = False) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "id": self._new_id(),
            "role": role,
            "content": content,
            "timestamp": self._clock(),
        }
        if error:
            message["error"] = True
        with self._lock:
            convo = self._find(conversation_id)
            first_user_turn = role == "user" and not any(m.get("role") == "user" for m in convo["messages"])
            if convo["title"] == NEW_CHAT_TITLE and first_user_turn:
                convo["title"] = generate_title(content)
            convo["messages"] = [*convo["messages"], message]
            convo["updatedAt"] = message["timestamp"]
            self._save()
        return dict(message)

    def clear_conversation(self, conversation_id: str) -> None:
        with self._lock:
            convo = self._find(conversation_id)
            convo["messages"] = []
            convo["title"] = NEW_CHAT_TITLE
            convo["updatedAt"] = self._clock()
            self._save()

    def history(self, conversation_id: str) -> List[Dict[str, str]]:
        """Prior turns as role/content pairs; error bubbles are not sent back to the model."""
        with self._lock:
            convo = self._find(conversation_id)
            return [
                {"role": m["role"], "content": m["content"]}
                for m in convo["messages"]
                if not m.get("error")
            ]

    async def send_message(self, conversation_id: str, text: str, reply_fn: ReplyFn,
                           limit: int = 20) -> Dict[str, Any]:
        """
        Record the user turn, ask the model, record its reply. A failed request
        becomes an assistant message flagged ``error`` carrying the failure text.
        Storage writes run in a worker thread, off the event loop.
        """
        history = self.history(conversation_id)
        await asyncio.to_thread(self.add_message, conversation_id, "user", text)
        try:
            out = await reply_fn(build_messages(SYSTEM_INSTRUCTION, history, text, limit=limit))
        except AgriMateError as e:
            return await asyncio.to_thread(
                self.add_message, conversation_id, "assistant", str(e), error=True,
            )
        message = await asyncio.to_thread(self.add_message, conversation_id, "assistant", out.reply)
        message["provider"] = out.provider
        return message


def store_from_path(path: str) -> ConversationStore:
    storage: KeyValueStorage = JsonFileStorage(path) if path else MemoryStorage()
    return ConversationStore(storage)
