"""
Response policy: one prompt builder per response path.

Every builder returns a PromptRequest; nothing here talks to the model, so the
prompts can be tested without the graph. Templates are module globals loaded
once at import (tests patch them with short sentinels).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from .attachments import Attachment, AttachmentError, to_content_blocks
from .config import MAX_CONVERSATION_HISTORY
from .prompts import compose_system_prompt, fill_template, load_prompt
from .stages import ResponsePath, next_missing_slot
from .state import ContextSlots, ConversationState, Duration, Message, RelationshipType, Role

logger = logging.getLogger(__name__)


# -------------------------
# Prompts
# -------------------------
COMPANION_SYSTEM = load_prompt("companion_system.txt")
DIRECT_SYSTEM = load_prompt("direct_response.txt")
FOLLOW_UP_SYSTEM = load_prompt("follow_up.txt")
ANALYSIS_SYSTEM = load_prompt("full_analysis.txt")
COMPLAINT_SYSTEM = load_prompt("ai_complaint.txt")
GENERAL_SYSTEM = load_prompt("general.txt")
ATTACHMENT_NOTE = load_prompt("attachment_note.txt")
ATTACHMENT_UNREADABLE_NOTE = load_prompt("attachment_unreadable.txt")

ANALYSIS_LINK = "Also, check out my detailed analysis [View Analysis]."
UNREADABLE_ATTACHMENT_TEXT = "[User has shared an image/screenshot that could not be read]"

EMPTY_REPLY_FALLBACKS: Dict[ResponsePath, str] = {
    ResponsePath.DIRECT: "This sounds concerning. Let me help you understand what's happening.",
    ResponsePath.FOLLOW_UP: "Tell me more about what happened.",
    ResponsePath.ANALYSIS: (
        "Okay, so here's what I'm noticing. This sounds like it might be some concerning "
        "behavior. Want to talk about what you could do?"
    ),
    ResponsePath.COMPLAINT: (
        "You're absolutely right, I was being dismissive. I'm sorry for that. "
        "How can I be more helpful to you right now?"
    ),
    ResponsePath.GENERAL: "I'm here to help. What's going on?",
}

# (max_tokens, temperature) per path
_LIMITS: Dict[ResponsePath, Tuple[int, float]] = {
    ResponsePath.DIRECT: (700, 0.7),
    ResponsePath.FOLLOW_UP: (100, 0.7),
    ResponsePath.ANALYSIS: (600, 0.7),
    ResponsePath.COMPLAINT: (150, 0.5),
    ResponsePath.GENERAL: (1000, 0.7),
}

_SLOT_HINTS = {
    "specific_incident": "what actually happened (a specific incident or what was said)",
    "relationship_type": "who this person is to them",
    "duration": "how long this has been going on",
    "pattern_history": "whether this has happened before or is a pattern",
    "emotional_impact": "how this is affecting them",
}


# -------------------------
# Types
# -------------------------
@dataclass(frozen=True)
class PromptContext:
    user_message: str
    state: ConversationState
    history: Sequence[Message] = ()
    profile_context: str = ""
    attachment: Optional[Attachment] = None


@dataclass(frozen=True)
class PromptRequest:
    system_prompt: str
    messages: List[BaseMessage] = field(default_factory=list)
    max_tokens: int = 1000
    temperature: float = 0.7
    attachment_sent: bool = False

    def to_messages(self) -> List[BaseMessage]:
        return [SystemMessage(content=self.system_prompt), *self.messages]


Content = Union[str, List[Dict[str, Any]]]


# -------------------------
# Helpers
# -------------------------
def history_to_messages(
    history: Sequence[Message], limit: int = MAX_CONVERSATION_HISTORY
) -> List[Tuple[Role, str]]:
    """
    Committed history as (role, text) turns for the model.

    Drops empty turns, merges consecutive same-role turns (a reply revealed in
    chunks is several assistant messages) and keeps the most recent ``limit``.
    The result always starts with a user turn.
    """
    merged: List[Tuple[Role, str]] = []
    for m in history:
        content = (m.content or "").strip()
        if not content:
            continue
        role = Role(m.role)
        if merged and merged[-1][0] == role:
            merged[-1] = (role, merged[-1][1] + "\n\n" + content)
        else:
            merged.append((role, content))

    if len(merged) > limit:
        logger.debug("history truncated: %d -> %d turns", len(merged), limit)
        merged = merged[-limit:]

    while merged and merged[0][0] != Role.USER:
        merged.pop(0)
    return merged


def _current_turn(ctx: PromptContext) -> Tuple[Content, str, bool]:
    """User content for this turn, the system addendum, and whether the attachment went out."""
    text = (ctx.user_message or "").strip()
    if ctx.attachment is None:
        return text, "", False
    try:
        return to_content_blocks(ctx.attachment, text), ATTACHMENT_NOTE, True
    except AttachmentError as e:
        logger.warning("attachment not sent, using text note: %s", e)
        return f"{text}\n\n{UNREADABLE_ATTACHMENT_TEXT}".strip(), ATTACHMENT_UNREADABLE_NOTE, False


def _prepend_text(prefix: str, content: Content) -> Content:
    if isinstance(content, str):
        return f"{prefix}\n\n{content}".strip()
    return [{"type": "text", "text": prefix}, *content]


def build_messages(ctx: PromptContext) -> Tuple[List[BaseMessage], str, bool]:
    turns = history_to_messages(ctx.history)
    current, note, sent = _current_turn(ctx)

    # an unanswered user turn (cancelled reply) folds into the current one
    if turns and turns[-1][0] == Role.USER:
        current = _prepend_text(turns.pop()[1], current)

    messages: List[BaseMessage] = []
    for role, text in turns:
        messages.append(HumanMessage(content=text) if role == Role.USER else AIMessage(content=text))
    messages.append(HumanMessage(content=current))
    return messages, note, sent


def describe_context(context: ContextSlots, unknown: str = "unknown") -> str:
    rel = context.relationship_type
    dur = context.duration
    lines = [
        f"- Relationship: {rel.value if rel != RelationshipType.UNKNOWN else unknown}",
        f"- Duration: {dur.value if dur != Duration.UNKNOWN else unknown}",
        f"- Specific incident: {'yes' if context.specific_incident else 'no'}",
        f"- Pattern: {'repeated behavior' if context.pattern_history else 'no'}",
        f"- Emotional impact: {'affecting them emotionally' if context.emotional_impact else unknown}",
    ]
    return "\n".join(lines)


def known_slots(context: ContextSlots) -> List[str]:
    known = []
    if context.specific_incident:
        known.append("- what happened (they already described a specific incident)")
    if context.relationship_type != RelationshipType.UNKNOWN:
        known.append(f"- who it is (their {context.relationship_type.value})")
    if context.duration != Duration.UNKNOWN:
        known.append(f"- how long (a matter of {context.duration.value})")
    if context.pattern_history:
        known.append("- whether it repeats (it does)")
    if context.emotional_impact:
        known.append("- how they feel about it")
    return known


def tone_note(messages_exchanged: int) -> str:
    if messages_exchanged <= 2:
        return "Early in the conversation: stay focused and serious, no humor yet"
    if messages_exchanged <= 5:
        return "Some warmth is welcome now, but keep the focus"
    return "You can add light warmth/humor naturally (but stay wise)"


def _request(path: ResponsePath, ctx: PromptContext, variant: str) -> PromptRequest:
    messages, note, sent = build_messages(ctx)
    system = compose_system_prompt(
        fill_template(COMPANION_SYSTEM, {"profile_context": ctx.profile_context}),
        variant,
        note,
    )
    max_tokens, temperature = _LIMITS[path]
    return PromptRequest(system, messages, max_tokens, temperature, attachment_sent=sent)


# -------------------------
# Builders
# -------------------------
def build_direct_prompt(ctx: PromptContext) -> PromptRequest:
    image_note = ""
    if ctx.attachment is not None:
        image_note = "\nThe user provided a screenshot/image of the conversation - analyze this evidence carefully."
    variant = fill_template(DIRECT_SYSTEM, {"image_note": image_note})
    return _request(ResponsePath.DIRECT, ctx, variant)


def build_follow_up_prompt(ctx: PromptContext) -> PromptRequest:
    context = ctx.state.context
    missing = next_missing_slot(context)
    variant = fill_template(
        FOLLOW_UP_SYSTEM,
        {
            "context_lines": describe_context(context),
            "off_limits": "\n".join(known_slots(context)) or "- nothing yet",
            "missing_slot": _SLOT_HINTS.get(missing, "whatever would sharpen the picture most"),
        },
    )
    return _request(ResponsePath.FOLLOW_UP, ctx, variant)


def build_analysis_prompt(ctx: PromptContext) -> PromptRequest:
    state = ctx.state
    variant = fill_template(
        ANALYSIS_SYSTEM,
        {
            "context_lines": describe_context(state.context, unknown="unclear"),
            "evidence": "they sent screenshots/proof" if state.has_image else "text description only",
            "messages_exchanged": state.messages_exchanged,
            "tone_note": tone_note(state.messages_exchanged),
        },
    )
    return _request(ResponsePath.ANALYSIS, ctx, variant)


def build_complaint_prompt(ctx: PromptContext) -> PromptRequest:
    return _request(ResponsePath.COMPLAINT, ctx, COMPLAINT_SYSTEM)


def build_general_prompt(ctx: PromptContext) -> PromptRequest:
    return _request(ResponsePath.GENERAL, ctx, GENERAL_SYSTEM)


PROMPT_BUILDERS: Dict[ResponsePath, Callable[[PromptContext], PromptRequest]] = {
    ResponsePath.DIRECT: build_direct_prompt,
    ResponsePath.FOLLOW_UP: build_follow_up_prompt,
    ResponsePath.ANALYSIS: build_analysis_prompt,
    ResponsePath.COMPLAINT: build_complaint_prompt,
    ResponsePath.GENERAL: build_general_prompt,
}


def build_prompt(path: Union[ResponsePath, str], ctx: PromptContext) -> PromptRequest:
    return PROMPT_BUILDERS[ResponsePath(path)](ctx)


def finalize_reply(path: Union[ResponsePath, str], reply: Optional[str]) -> str:
    """Empty replies get the path fallback; direct/analysis replies end with the analysis link."""
    path = ResponsePath(path)
    text = (reply or "").strip()
    if not text:
        text = EMPTY_REPLY_FALLBACKS[path]
    if path in (ResponsePath.DIRECT, ResponsePath.ANALYSIS) and "[View Analysis]" not in text:
        text = f"{text} {ANALYSIS_LINK}"
    return text
