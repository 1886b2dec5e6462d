from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .config import DATABASE_URL
from .state import Message, Role

logger = logging.getLogger(__name__)

TITLE_LENGTH = 30
UNTITLED = "Untitled Conversation"

engine = create_engine(DATABASE_URL, pool_pre_ping=True)


@dataclass
class SavedChat:
    chat_id: str
    title: str
    messages: List[Message] = field(default_factory=list)
    has_image: bool = False
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None


def chat_title(messages: Sequence[Message]) -> str:
    """First user message, cut to 30 characters with "..." when longer."""
    for m in messages:
        if Role(m.role) == Role.USER and m.content:
            content = m.content
            return content[:TITLE_LENGTH] + ("..." if len(content) > TITLE_LENGTH else "")
    return UNTITLED


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class ChatRepository:
    """Saved conversations, stored with plain SQL."""

    def __init__(self, bind: Optional[Engine] = None) -> None:
        self.engine = bind if bind is not None else engine

    def init_db(self) -> None:
        """Create the history tables if they don't exist."""
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS saved_chats (
                      chat_id TEXT PRIMARY KEY,
                      title TEXT NOT NULL,
                      has_image BOOLEAN NOT NULL DEFAULT FALSE,
                      created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                      updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS chat_messages (
                      chat_id TEXT NOT NULL,
                      position INTEGER NOT NULL,
                      role TEXT NOT NULL,
                      content TEXT NOT NULL,
                      attachment_ref TEXT,
                      created_at TEXT NOT NULL,
                      PRIMARY KEY (chat_id, position)
                    );
                    """
                )
            )

    def save_chat(
        self,
        messages: Sequence[Message],
        *,
        chat_id: Optional[str] = None,
        title: Optional[str] = None,
        has_image: bool = False,
    ) -> str:
        """Insert or replace a saved chat. Returns its id."""
        if not messages:
            raise ValueError("Cannot save an empty conversation")
        chat_id = chat_id or uuid4().hex
        title = title or chat_title(messages)

        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO saved_chats (chat_id, title, has_image)
                    VALUES (:chat_id, :title, :has_image)
                    ON CONFLICT (chat_id)
                    DO UPDATE SET
                      title = EXCLUDED.title,
                      has_image = EXCLUDED.has_image,
                      updated_at = CURRENT_TIMESTAMP;
                    """
                ),
                {"chat_id": chat_id, "title": title, "has_image": has_image},
            )
            conn.execute(text("DELETE FROM chat_messages WHERE chat_id = :chat_id"), {"chat_id": chat_id})
            conn.execute(
                text(
                    """
                    INSERT INTO chat_messages (chat_id, position, role, content, attachment_ref, created_at)
                    VALUES (:chat_id, :position, :role, :content, :attachment_ref, :created_at)
                    """
                ),
                [
                    {
                        "chat_id": chat_id,
                        "position": i,
                        "role": Role(m.role).value,
                        "content": m.content,
                        "attachment_ref": m.attachment_ref,
                        "created_at": m.timestamp.isoformat(),
                    }
                    for i, m in enumerate(messages)
                ],
            )
        logger.info("saved chat %s (%d messages)", chat_id, len(messages))
        return chat_id

    def load_chat(self, chat_id: str) -> Optional[SavedChat]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(
                    "SELECT chat_id, title, has_image, created_at, updated_at "
                    "FROM saved_chats WHERE chat_id = :chat_id"
                ),
                {"chat_id": chat_id},
            ).mappings().first()
            if row is None:
                return None
            rows = conn.execute(
                text(
                    "SELECT role, content, attachment_ref, created_at FROM chat_messages "
                    "WHERE chat_id = :chat_id ORDER BY position"
                ),
                {"chat_id": chat_id},
            ).mappings().all()

        messages = [
            Message(
                role=Role(r["role"]),
                content=r["content"],
                attachment_ref=r["attachment_ref"],
                timestamp=_parse_timestamp(r["created_at"]),
            )
            for r in rows
        ]
        return SavedChat(
            chat_id=row["chat_id"],
            title=row["title"],
            messages=messages,
            has_image=bool(row["has_image"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list_chats(self) -> List[SavedChat]:
        """Newest first, without messages."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    "SELECT chat_id, title, has_image, created_at, updated_at "
                    "FROM saved_chats ORDER BY updated_at DESC, created_at DESC"
                )
            ).mappings().all()
        return [
            SavedChat(
                chat_id=r["chat_id"],
                title=r["title"],
                has_image=bool(r["has_image"]),
                created_at=r["created_at"],
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    def update_chat_title(self, chat_id: str, title: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                text(
                    "UPDATE saved_chats SET title = :title, updated_at = CURRENT_TIMESTAMP "
                    "WHERE chat_id = :chat_id"
                ),
                {"chat_id": chat_id, "title": title},
            )
        return result.rowcount > 0

    def delete_chat(self, chat_id: str) -> bool:
        with self.engine.begin() as conn:
            conn.execute(text("DELETE FROM chat_messages WHERE chat_id = :chat_id"), {"chat_id": chat_id})
            result = conn.execute(text("DELETE FROM saved_chats WHERE chat_id = :chat_id"), {"chat_id": chat_id})
        return result.rowcount > 0
