"""
Reveal long replies as a sequence of sentence-bounded chunks.

Typing is a plain generator of (partial_text, delay) frames; the async driver
sleeps between frames so a cancelled task stops cleanly at the next await.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Iterator, List, Optional, Tuple

from .config import CHUNK_MAX_LENGTH

logger = logging.getLogger(__name__)

BASE_DELAY = 0.03
SPACE_DELAY = 0.05
CLAUSE_DELAY = 0.1
SENTENCE_DELAY = 0.2

# terminator run, then any closing quotes/brackets; or an unterminated tail
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+[\"'”’)\]]*|[^.!?]+$")

Sleep = Callable[[float], Awaitable[None]]
OnUpdate = Callable[[str], None]
Commit = Callable[[str], None]


def _sentence_spans(text: str) -> Iterator[Tuple[int, int]]:
    """(start, end) of each sentence in ``text`` with surrounding whitespace trimmed."""
    for match in _SENTENCE_RE.finditer(text):
        unit = match.group()
        stripped = unit.strip()
        if stripped:
            start = match.start() + len(unit) - len(unit.lstrip())
            yield start, start + len(stripped)


def split_sentences(text: Optional[str]) -> List[str]:
    text = text or ""
    return [text[start:end] for start, end in _sentence_spans(text)]


def chunk_message(text: Optional[str], max_length: int = CHUNK_MAX_LENGTH) -> List[str]:
    """
    Greedily pack consecutive sentences into chunks of at most ``max_length``
    characters. A single longer sentence becomes its own chunk.

    Chunks are cut from ``text`` itself, so each one is a substring of the
    reply and keeps its inner whitespace (paragraph breaks included).
    """
    text = text or ""
    chunks: List[str] = []
    start = end = None
    for s, e in _sentence_spans(text):
        if start is None:
            start, end = s, e
        elif e - start > max_length:
            chunks.append(text[start:end])
            start, end = s, e
        else:
            end = e
    if start is not None:
        chunks.append(text[start:end])
    return chunks


def char_delay(char: str) -> float:
    if char in ".!?":
        return SENTENCE_DELAY
    if char in ",;":
        return CLAUSE_DELAY
    if char == " ":
        return SPACE_DELAY
    return BASE_DELAY


def typing_frames(chunk: str) -> Iterator[Tuple[str, float]]:
    for i, char in enumerate(chunk, start=1):
        yield chunk[:i], char_delay(char)


async def simulate_typing(chunk: str, on_update: OnUpdate, sleep: Sleep = asyncio.sleep) -> None:
    for partial, delay in typing_frames(chunk):
        on_update(partial)
        await sleep(delay)


async def reveal_reply(
    text: str,
    commit: Commit,
    on_update: OnUpdate,
    *,
    max_length: int = CHUNK_MAX_LENGTH,
    sleep: Sleep = asyncio.sleep,
) -> int:
    """
    Type out each chunk, then commit it. Returns the number of committed chunks.

    Cancellation propagates; the chunk being typed and everything after it
    are never committed.
    """
    committed = 0
    for chunk in chunk_message(text, max_length):
        await simulate_typing(chunk, on_update, sleep)
        commit(chunk)
        committed += 1
    logger.debug("revealed %d chunk(s)", committed)
    return committed
