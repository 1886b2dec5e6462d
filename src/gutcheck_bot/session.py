"""
One ChatSession per open chat.

The session owns the conversation state and the committed history. A reply is
"pending" from the moment the turn returns until it has been revealed (or
committed/cancelled); no new message is accepted in between.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from .attachments import Attachment
from .config import CHUNK_MAX_LENGTH
from .db import ChatRepository
from .graph import TurnResult, run_turn
from .presentation import OnUpdate, Sleep, reveal_reply
from .profile import ProfileStore
from .state import ConversationState, Message, Role, Stage

logger = logging.getLogger(__name__)

IMAGE_ONLY_TEXT = "[Image attached]"


class SessionBusyError(RuntimeError):
    """A reply is still being revealed."""


class ChatSession:
    def __init__(
        self,
        profile_store: ProfileStore,
        history_store: Optional[ChatRepository] = None,
    ) -> None:
        self.profile_store = profile_store
        self.history_store = history_store
        self.state = ConversationState()
        self.chat_id: Optional[str] = None
        self._history: List[Message] = []
        self._pending: Optional[str] = None

    @property
    def history(self) -> List[Message]:
        return list(self._history)

    @property
    def pending(self) -> Optional[str]:
        return self._pending

    @property
    def busy(self) -> bool:
        return self._pending is not None

    def send(self, text: str, attachment: Optional[Attachment] = None) -> TurnResult:
        text = (text or "").strip()
        if not text and attachment is None:
            raise ValueError("Message is empty")
        if self.busy:
            raise SessionBusyError("Wait for the current reply to finish")

        prior = list(self._history)
        content = text or IMAGE_ONLY_TEXT
        self._history.append(
            Message(
                role=Role.USER,
                content=content,
                attachment_ref=attachment.ref if attachment is not None else None,
            )
        )

        result = run_turn(
            content,
            self.state,
            prior,
            attachment,
            profile=self.profile_store.get_profile(),
            region=self.profile_store.get_region(),
        )
        self.state = result.state
        self._pending = result.response
        return result

    def _commit_chunk(self, chunk: str) -> None:
        self._history.append(Message(role=Role.ASSISTANT, content=chunk))

    async def reveal(
        self,
        on_update: OnUpdate,
        *,
        max_length: int = CHUNK_MAX_LENGTH,
        sleep: Sleep = asyncio.sleep,
    ) -> int:
        """Type out the pending reply, committing one assistant message per chunk."""
        if self._pending is None:
            return 0
        try:
            return await reveal_reply(
                self._pending,
                self._commit_chunk,
                on_update,
                max_length=max_length,
                sleep=sleep,
            )
        finally:
            self._pending = None

    def commit_pending(self) -> None:
        if self._pending is None:
            return
        self._history.append(Message(role=Role.ASSISTANT, content=self._pending))
        self._pending = None

    def cancel(self) -> None:
        self._pending = None

    def start_new_conversation(self) -> None:
        self.state = ConversationState()
        self.chat_id = None
        self._history = []
        self._pending = None

    def resume(self, messages: Iterable[Message], chat_id: Optional[str] = None) -> None:
        """Reopen a saved chat. The analysis is assumed done, so we continue in support."""
        self.start_new_conversation()
        self._history = list(messages)
        self.chat_id = chat_id
        self.state.stage = Stage.SUPPORT
        self.state.messages_exchanged = sum(1 for m in self._history if Role(m.role) == Role.USER)
        self.state.has_image = any(m.attachment_ref for m in self._history)

    def save(self, history_store: Optional[ChatRepository] = None) -> str:
        store = history_store or self.history_store
        if store is None:
            raise ValueError("No history store configured")
        self.chat_id = store.save_chat(self._history, chat_id=self.chat_id, has_image=self.state.has_image)
        return self.chat_id
