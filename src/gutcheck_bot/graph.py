from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, TypedDict

from langgraph.graph import END, START, StateGraph

from . import policy
from .attachments import Attachment
from .config import bedrock_chat
from .detectors import should_include_personal_context
from .helplines import CrisisSignal, assess_crisis, recommendation_for
from .policy import PromptContext, PromptRequest
from .profile import UserProfile, build_profile_context, resolve_region
from .stages import ResponsePath, decide, extract_context, merge_context
from .state import ConversationState, Message, Stage

logger = logging.getLogger(__name__)

FALLBACK_TEXT = (
    "I'm having a bit of trouble connecting right now. This usually happens when "
    "there's a network hiccup. Give it another try in a moment."
)


# -------------------------
# State
# -------------------------
class TurnState(TypedDict, total=False):
    # inputs
    user_message: str
    history: List[Message]
    attachment: Optional[Attachment]
    profile: Optional[UserProfile]
    region: Optional[str]
    conversation: ConversationState
    # derived
    full_text: str
    profile_context: str
    crisis_signal: CrisisSignal
    path: ResponsePath
    next_stage: Stage
    request: PromptRequest
    reply: str
    failed: bool
    response: str


@dataclass(frozen=True)
class TurnResult:
    response: str
    next_stage: Stage
    path: ResponsePath
    state: ConversationState
    signals: CrisisSignal


# -------------------------
# Nodes
# -------------------------
def ingress_node(state: TurnState) -> Dict[str, Any]:
    """
    Work on a copy of the conversation state: merge slots from this message,
    record the image flag and build the profile block for the prompt.
    """
    user_message = state.get("user_message") or ""
    history = state.get("history") or []
    has_image = state.get("attachment") is not None

    conversation = state["conversation"].copy()
    conversation.context = merge_context(conversation.context, extract_context(user_message))
    conversation.has_image = conversation.has_image or has_image

    full_text = " ".join([*(m.content for m in history if m.content), user_message])
    region = resolve_region(state.get("profile"), state.get("region"))
    profile_context = build_profile_context(
        state.get("profile"),
        region,
        include_personal=should_include_personal_context(full_text),
    )
    return {
        "conversation": conversation,
        "full_text": full_text,
        "region": region,
        "profile_context": profile_context,
    }


def signals_node(state: TurnState) -> Dict[str, Any]:
    # Whole conversation, not just this message: risk builds up over turns.
    return {"crisis_signal": assess_crisis(state.get("full_text"), state.get("region"))}


def decide_node(state: TurnState) -> Dict[str, Any]:
    decision = decide(
        state["conversation"],
        state.get("user_message"),
        has_image=state.get("attachment") is not None,
    )
    return {"path": decision.path, "next_stage": decision.next_stage}


def _prompt_context(state: TurnState) -> PromptContext:
    return PromptContext(
        user_message=state.get("user_message") or "",
        state=state["conversation"],
        history=state.get("history") or [],
        profile_context=state.get("profile_context", ""),
        attachment=state.get("attachment"),
    )


def _path_node(path: ResponsePath) -> Callable[[TurnState], Dict[str, Any]]:
    def node(state: TurnState) -> Dict[str, Any]:
        return {"request": policy.build_prompt(path, _prompt_context(state))}

    node.__name__ = f"{path.value}_node"
    return node


def complete_node(state: TurnState) -> Dict[str, Any]:
    """
    Single completion call. Any failure becomes the fallback text and sends
    the conversation back to the initial stage; nothing is raised.
    """
    request: PromptRequest = state["request"]
    try:
        raw = bedrock_chat(
            request.to_messages(),
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )
    except Exception:
        logger.exception("completion failed on path=%s", state["path"].value)
        return {"reply": FALLBACK_TEXT, "failed": True, "next_stage": Stage.INITIAL}

    return {"reply": policy.finalize_reply(state["path"], raw), "failed": False}


def helplines_node(state: TurnState) -> Dict[str, Any]:
    """Append the helpline block (also after a failure) and settle the new state."""
    response = state["reply"] + recommendation_for(state["crisis_signal"], state.get("region"))

    conversation = state["conversation"]
    request = state.get("request")
    analyzed = conversation.image_analyzed or (
        request is not None and request.attachment_sent and not state.get("failed", False)
    )
    conversation = replace(
        conversation,
        stage=state["next_stage"],
        messages_exchanged=conversation.messages_exchanged + 1,
        image_analyzed=analyzed,
    )
    return {"response": response, "conversation": conversation}


def branch_after_decide(state: TurnState) -> str:
    return state["path"].value


# -------------------------
# Build graph
# -------------------------
def build_graph():
    g = StateGraph(TurnState)
    g.add_node("ingress", ingress_node)
    g.add_node("signals", signals_node)
    g.add_node("decide", decide_node)
    for path in ResponsePath:
        g.add_node(path.value, _path_node(path))
    g.add_node("complete", complete_node)
    g.add_node("helplines", helplines_node)

    g.add_edge(START, "ingress")
    g.add_edge("ingress", "signals")
    g.add_edge("signals", "decide")
    g.add_conditional_edges(
        "decide",
        branch_after_decide,
        {path.value: path.value for path in ResponsePath},
    )
    for path in ResponsePath:
        g.add_edge(path.value, "complete")
    g.add_edge("complete", "helplines")
    g.add_edge("helplines", END)

    # No checkpointer: ChatSession owns the conversation state and history.
    return g.compile()


GRAPH = build_graph()


def run_turn(
    user_message: str,
    state: ConversationState,
    history: Sequence[Message] = (),
    attachment: Optional[Attachment] = None,
    *,
    profile: Optional[UserProfile] = None,
    region: Optional[str] = None,
) -> TurnResult:
    """Run one user turn through the graph. ``state`` is left untouched."""
    final: Dict[str, Any] = GRAPH.invoke(
        {
            "user_message": user_message,
            "history": list(history),
            "attachment": attachment,
            "profile": profile,
            "region": region,
            "conversation": state,
        }
    )
    conversation: ConversationState = final["conversation"]
    return TurnResult(
        response=final["response"],
        next_stage=conversation.stage,
        path=final["path"],
        state=conversation,
        signals=final["crisis_signal"],
    )
