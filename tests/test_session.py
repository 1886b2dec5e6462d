from __future__ import annotations

import asyncio

import pytest

from gutcheck_bot.attachments import Attachment
from gutcheck_bot.db import ChatRepository
from gutcheck_bot.profile import StaticProfileStore
from gutcheck_bot.session import IMAGE_ONLY_TEXT, ChatSession, SessionBusyError
from gutcheck_bot.state import Role, Stage

from conftest import no_sleep


def _reveal(session, **kwargs):
    return asyncio.run(session.reveal(lambda _partial: None, sleep=no_sleep, **kwargs))


def test_send_then_reveal_commits_chunks(fake_completion, profile_store):
    fake_completion.replies["follow_up"] = "Who is this person to you? How long has it been going on?"
    session = ChatSession(profile_store)

    result = session.send("Hi, I met someone at a party last month.")
    assert result.path.value == "follow_up"
    assert session.busy
    assert [m.role for m in session.history] == [Role.USER]

    assert _reveal(session, max_length=30) == 2
    assert not session.busy
    assert [m.content for m in session.history] == [
        "Hi, I met someone at a party last month.",
        "Who is this person to you?",
        "How long has it been going on?",
    ]
    assert session.state.stage == Stage.GATHERING


def test_blank_message_is_rejected(fake_completion, profile_store):
    session = ChatSession(profile_store)
    with pytest.raises(ValueError):
        session.send("   ")
    assert session.history == []
    assert fake_completion.calls == []


def test_send_while_pending_is_rejected(fake_completion, profile_store):
    session = ChatSession(profile_store)
    session.send("hello")
    with pytest.raises(SessionBusyError):
        session.send("hello again")

    session.commit_pending()
    assert not session.busy
    session.send("hello again")
    assert len(fake_completion.calls) == 2


def test_cancel_discards_pending(fake_completion, profile_store):
    session = ChatSession(profile_store)
    session.send("hello")
    session.cancel()
    assert not session.busy
    assert [m.role for m in session.history] == [Role.USER]


def test_image_only_message(fake_completion, profile_store):
    session = ChatSession(profile_store)
    png = Attachment(data=b"\x89PNG\r\n\x1a\n" + b"\x00" * 8, ref="shot.png")

    result = session.send("", attachment=png)

    assert result.path.value == "direct"
    assert session.history[0].content == IMAGE_ONLY_TEXT
    assert session.history[0].attachment_ref == "shot.png"
    assert session.state.has_image is True


def test_profile_and_region_come_from_store(fake_completion):
    session = ChatSession(StaticProfileStore(region="Australia"))
    session.send("I want to end it all")
    assert session.pending is not None
    assert "Lifeline Australia" in session.pending
    assert "- Location/Region: Australia" in fake_completion.last.system


def test_failure_leaves_session_usable(fake_completion, profile_store):
    fake_completion.fail_with = TimeoutError("read timed out")
    session = ChatSession(profile_store)
    session.send("hello")
    _reveal(session)
    assert session.state.stage == Stage.INITIAL
    assert not session.busy

    fake_completion.fail_with = None
    session.send("hello?")
    assert session.state.messages_exchanged == 2


def test_start_new_conversation_resets(fake_completion, profile_store):
    session = ChatSession(profile_store)
    session.send("hello")
    session.commit_pending()

    session.start_new_conversation()
    assert session.history == []
    assert session.state.stage == Stage.INITIAL
    assert session.state.messages_exchanged == 0


def test_save_and_resume(fake_completion, profile_store, sqlite_engine):
    repo = ChatRepository(sqlite_engine)
    repo.init_db()

    session = ChatSession(profile_store, history_store=repo)
    session.send("he said that never happened, you're imagining things")
    session.commit_pending()
    chat_id = session.save()

    saved = repo.load_chat(chat_id)
    assert saved.title == "he said that never happened, y..."
    assert len(saved.messages) == 2

    other = ChatSession(profile_store)
    other.resume(saved.messages, chat_id=chat_id)
    assert other.state.stage == Stage.SUPPORT
    other.send("thanks")
    assert fake_completion.last.path == "general"


def test_save_without_store_raises(fake_completion, profile_store):
    session = ChatSession(profile_store)
    session.send("hello")
    session.commit_pending()
    with pytest.raises(ValueError):
        session.save()


def test_committed_chunks_match_the_reply_text(fake_completion, profile_store):
    fake_completion.replies["follow_up"] = "What did he say exactly?"
    session = ChatSession(profile_store)

    result = session.send("I want to end it all")
    assert "\n\n🆘 **Crisis Support Available**" in result.response
    _reveal(session, max_length=500)

    committed = [m.content for m in session.history if m.role == Role.ASSISTANT]
    assert committed[0].startswith("What did he say exactly?")
    pos = 0
    for chunk in committed:
        found = result.response.find(chunk, pos)
        assert found >= 0, chunk
        pos = found + len(chunk)
