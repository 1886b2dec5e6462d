import re
from dataclasses import dataclass
from typing import Dict, List, Optional

import pytest
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from gutcheck_bot.profile import StaticProfileStore, UserProfile
from gutcheck_bot.state import Message, Role


@dataclass
class CompletionCall:
    messages: List[BaseMessage]
    max_tokens: int
    temperature: float

    @property
    def system(self) -> str:
        first = self.messages[0] if self.messages else None
        return first.content if isinstance(first, SystemMessage) else ""

    @property
    def path(self) -> Optional[str]:
        m = re.search(r"PATH:(\w+)", self.system)
        return m.group(1) if m else None

    @property
    def last_user(self) -> HumanMessage:
        return self.messages[-1]


class FakeCompletion:
    """
    Deterministic stub for gutcheck_bot.config.bedrock_chat.

    Prompts are patched to "PATH:<path>" sentinels, so the path a call came
    from is read back out of the system prompt:
      - replies[path] is returned when set
      - otherwise "<PATH>_ANSWER"
      - fail_with raises instead (network / timeout stand-in)
    """

    def __init__(self) -> None:
        self.calls: List[CompletionCall] = []
        self.replies: Dict[str, str] = {}
        self.fail_with: Optional[Exception] = None

    def __call__(self, messages: List[BaseMessage], max_tokens: int = 1000, temperature: float = 0.7) -> str:
        call = CompletionCall(messages=list(messages), max_tokens=max_tokens, temperature=temperature)
        self.calls.append(call)

        if self.fail_with is not None:
            raise self.fail_with

        path = call.path
        if path is None:
            raise AssertionError(f"FakeCompletion got unexpected system prompt: {call.system!r}")
        return self.replies.get(path, f"{path.upper()}_ANSWER")

    @property
    def last(self) -> CompletionCall:
        return self.calls[-1]


@pytest.fixture()
def sentinel_prompts(monkeypatch):
    """Swap the long templates for short sentinels that keep their placeholders."""
    from gutcheck_bot import policy as p

    monkeypatch.setattr(p, "COMPANION_SYSTEM", "COMPANION{profile_context}")
    monkeypatch.setattr(p, "DIRECT_SYSTEM", "PATH:direct{image_note}")
    monkeypatch.setattr(p, "FOLLOW_UP_SYSTEM", "PATH:follow_up\n{context_lines}\nKNOWN:\n{off_limits}\nASK: {missing_slot}")
    monkeypatch.setattr(
        p,
        "ANALYSIS_SYSTEM",
        "PATH:analysis\n{context_lines}\nEVIDENCE: {evidence}\nCOUNT: {messages_exchanged}\nTONE: {tone_note}",
    )
    monkeypatch.setattr(p, "COMPLAINT_SYSTEM", "PATH:complaint")
    monkeypatch.setattr(p, "GENERAL_SYSTEM", "PATH:general")
    monkeypatch.setattr(p, "ATTACHMENT_NOTE", "ATTACHMENT_NOTE")
    monkeypatch.setattr(p, "ATTACHMENT_UNREADABLE_NOTE", "ATTACHMENT_UNREADABLE")


@pytest.fixture()
def fake_completion(monkeypatch, sentinel_prompts) -> FakeCompletion:
    """
    Patch the graph module's completion callable so no Bedrock calls happen.
    """
    from gutcheck_bot import graph as g

    fc = FakeCompletion()
    monkeypatch.setattr(g, "bedrock_chat", fc)
    return fc


@pytest.fixture()
def profile() -> UserProfile:
    return UserProfile(
        username="sam",
        age="16",
        region="UK",
        struggles="anxiety after a breakup",
        goals="setting boundaries",
    )


@pytest.fixture()
def profile_store(profile) -> StaticProfileStore:
    return StaticProfileStore(profile=profile)


@pytest.fixture()
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


def history(*pairs) -> List[Message]:
    """history(("user", "hi"), ("assistant", "hello")) -> [Message, ...]"""
    return [Message(role=Role(role), content=content) for role, content in pairs]


async def no_sleep(_delay: float) -> None:
    return None
