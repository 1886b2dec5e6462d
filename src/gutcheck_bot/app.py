from __future__ import annotations

import asyncio
import sys

from .attachments import AttachmentError, load_attachment
from .config import configure_logging
from .db import ChatRepository
from .profile import StaticProfileStore
from .session import ChatSession

BANNER = """GutCheck (LangGraph + AWS Bedrock)

Flow:
  signals (crisis + context) → stage decision → (direct | follow-up | analysis | complaint | general) → helplines → reply

Commands:
  /image <path> [message]   send a screenshot or PDF
  /save                     save this chat
  /history                  list saved chats
  /open <chat id>           resume a saved chat
  /new                      start over
  q                         quit
"""


def _print_partial(partial: str) -> None:
    # redraw the current line as the chunk types out
    sys.stdout.write("\r" + partial.replace("\n", " "))
    sys.stdout.flush()


async def _show_reply(session: ChatSession) -> None:
    print("\nbot:")
    before = len(session.history)
    await session.reveal(_print_partial)
    if len(session.history) > before:
        print()
    print()


def main():
    configure_logging()
    print(BANNER)

    region = input("region (blank for UK): ").strip() or None
    repo = ChatRepository()
    repo.init_db()
    session = ChatSession(StaticProfileStore(region=region), history_store=repo)

    while True:
        try:
            user = input("you: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nbye.")
            return

        if user.lower() in {"q", "quit", "exit"}:
            print("bye.")
            return
        if not user:
            continue

        attachment = None
        if user == "/new":
            session.start_new_conversation()
            print("(new conversation)\n")
            continue
        if user == "/save":
            try:
                print(f"(saved as {session.save()})\n")
            except ValueError as e:
                print(f"({e})\n")
            continue
        if user == "/history":
            for chat in repo.list_chats():
                print(f"  {chat.chat_id}  {chat.title}")
            print()
            continue
        if user.startswith("/open "):
            chat = repo.load_chat(user[len("/open "):].strip())
            if chat is None:
                print("(no such chat)\n")
                continue
            session.resume(chat.messages, chat_id=chat.chat_id)
            print(f"(resumed: {chat.title})\n")
            continue
        if user.startswith("/image "):
            path, _, user = user[len("/image "):].strip().partition(" ")
            try:
                attachment = load_attachment(path)
            except AttachmentError as e:
                print(f"({e})\n")
                continue

        session.send(user, attachment)
        try:
            asyncio.run(_show_reply(session))
        except KeyboardInterrupt:
            session.cancel()
            print("\n(reply skipped)\n")


if __name__ == "__main__":
    main()
