from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from functools import lru_cache
from typing import Any, Dict, List, Sequence

import boto3
from botocore.config import Config
from dotenv import load_dotenv
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

load_dotenv()

# -------- AWS / model config --------
AWS_REGION = os.getenv("AWS_REGION", "us-west-2")
MODEL_ID = os.getenv("BEDROCK_MODEL_ID", "anthropic.claude-3-5-sonnet-20240620-v1:0")
AWS_PROFILE = os.getenv("AWS_PROFILE")  # optional named profile

# Hard client-side bound on one completion call; no automatic retries.
COMPLETION_TIMEOUT_SECONDS = float(os.getenv("COMPLETION_TIMEOUT_SECONDS", "15"))
# botocore timeouts apply per socket operation, so the budget is split between them.
CONNECT_TIMEOUT_SECONDS = COMPLETION_TIMEOUT_SECONDS / 3
READ_TIMEOUT_SECONDS = COMPLETION_TIMEOUT_SECONDS - CONNECT_TIMEOUT_SECONDS

# -------- Conversation / presentation config --------
MAX_CONVERSATION_HISTORY = int(os.getenv("MAX_CONVERSATION_HISTORY", "50"))
CHUNK_MAX_LENGTH = int(os.getenv("CHUNK_MAX_LENGTH", "150"))

# -------- Storage / logging --------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///gutcheck.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logger = logging.getLogger(__name__)


class CompletionError(RuntimeError):
    """The completion service answered with something we cannot use."""


class CompletionTimeout(CompletionError):
    """The completion call ran past COMPLETION_TIMEOUT_SECONDS."""


# Calls run here so the caller can stop waiting at the deadline.
_completion_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="bedrock")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@lru_cache(maxsize=1)
def _bedrock_client():
    client_config = Config(
        connect_timeout=CONNECT_TIMEOUT_SECONDS,
        read_timeout=READ_TIMEOUT_SECONDS,
        retries={"max_attempts": 1, "mode": "standard"},
    )
    if AWS_PROFILE:
        session = boto3.Session(profile_name=AWS_PROFILE, region_name=AWS_REGION)
        return session.client("bedrock-runtime", region_name=AWS_REGION, config=client_config)
    return boto3.client("bedrock-runtime", region_name=AWS_REGION, config=client_config)


def _invoke(body: str) -> Dict[str, Any]:
    resp = _bedrock_client().invoke_model(
        modelId=MODEL_ID,
        accept="application/json",
        contentType="application/json",
        body=body,
    )
    return json.loads(resp["body"].read())


def bedrock_chat(
    messages: Sequence[BaseMessage],
    max_tokens: int = 1000,
    temperature: float = 0.7,
) -> str:
    """
    Bedrock Anthropic Messages API call using LangChain BaseMessage objects.

    IMPORTANT:
    - system prompt must be top-level "system"
    - messages list must include ONLY roles "user" and "assistant"
    - list content (text + image/document blocks) is passed through as-is
    """
    system_parts: List[str] = []
    convo: List[Dict[str, Any]] = []

    for m in messages:
        if isinstance(m, SystemMessage):
            system_parts.append(m.content or "")
        elif isinstance(m, HumanMessage):
            convo.append({"role": "user", "content": m.content or ""})
        elif isinstance(m, AIMessage):
            convo.append({"role": "assistant", "content": m.content or ""})
        else:
            # fallback: treat unknown as assistant text
            convo.append({"role": "assistant", "content": getattr(m, "content", str(m))})

    system_text = "\n".join([s for s in system_parts if s.strip()]).strip()

    body: Dict[str, Any] = {
        "anthropic_version": "bedrock-2023-05-31",
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": convo,
    }
    if system_text:
        body["system"] = system_text

    logger.debug("invoke_model model=%s turns=%d max_tokens=%d", MODEL_ID, len(convo), max_tokens)
    future = _completion_pool.submit(_invoke, json.dumps(body))
    try:
        data = future.result(timeout=COMPLETION_TIMEOUT_SECONDS)
    except FutureTimeout:
        future.cancel()
        raise CompletionTimeout(f"no completion within {COMPLETION_TIMEOUT_SECONDS:g}s") from None

    if data.get("type") == "error":
        raise CompletionError(str(data.get("error") or data))

    out = []
    for block in data.get("content", []):
        if block.get("type") == "text":
            out.append(block.get("text", ""))
    return "".join(out).strip()
