"""
Conversation stage machine.

    initial ──(trigger)──────────────► analysis ──► support ──► support
       │                                   ▲
       └──(plain)──► gathering ──(stop / analysis trigger / turn 4)
                        │  ▲
                        └──┘ (plain)

A conduct complaint can interrupt any stage; it never moves the stage.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from . import detectors
from .state import ContextSlots, ConversationState, Duration, RelationshipType, Stage

logger = logging.getLogger(__name__)


class ResponsePath(str, Enum):
    DIRECT = "direct"
    FOLLOW_UP = "follow_up"
    ANALYSIS = "analysis"
    COMPLAINT = "complaint"
    GENERAL = "general"


@dataclass(frozen=True)
class Decision:
    path: ResponsePath
    next_stage: Stage
    reason: str


# First match wins inside each category.
_RELATIONSHIP_KEYWORDS = (
    (RelationshipType.BOYFRIEND, ("boyfriend", "bf")),
    (RelationshipType.GIRLFRIEND, ("girlfriend", "gf")),
    (RelationshipType.FRIEND, ("friend",)),
    (RelationshipType.FAMILY, ("family", "parent")),
)
_DURATION_KEYWORDS = (
    (Duration.MONTHS, ("months",)),
    (Duration.YEARS, ("years",)),
    (Duration.WEEKS, ("weeks",)),
)
_INCIDENT_KEYWORDS = ("happened", "said", "did")
_IMPACT_KEYWORDS = ("feel", "felt", "upset", "angry", "sad")
_PATTERN_KEYWORDS = ("always", "every time", "often", "usually")


def _first_match(lowered: str, table, default):
    for value, keywords in table:
        if any(k in lowered for k in keywords):
            return value
    return default


def extract_context(text: Optional[str]) -> ContextSlots:
    """Keyword presence only. Absent categories come back unknown/False."""
    lowered = (text or "").lower()
    return ContextSlots(
        relationship_type=_first_match(lowered, _RELATIONSHIP_KEYWORDS, RelationshipType.UNKNOWN),
        duration=_first_match(lowered, _DURATION_KEYWORDS, Duration.UNKNOWN),
        specific_incident=any(k in lowered for k in _INCIDENT_KEYWORDS),
        emotional_impact=any(k in lowered for k in _IMPACT_KEYWORDS),
        pattern_history=any(k in lowered for k in _PATTERN_KEYWORDS),
    )


def merge_context(current: ContextSlots, extracted: ContextSlots) -> ContextSlots:
    """Slots only move forward: unknown/False never overwrites a known value."""
    return replace(
        current,
        relationship_type=(
            extracted.relationship_type
            if extracted.relationship_type != RelationshipType.UNKNOWN
            else current.relationship_type
        ),
        duration=extracted.duration if extracted.duration != Duration.UNKNOWN else current.duration,
        specific_incident=current.specific_incident or extracted.specific_incident,
        emotional_impact=current.emotional_impact or extracted.emotional_impact,
        pattern_history=current.pattern_history or extracted.pattern_history,
    )


def next_missing_slot(context: ContextSlots) -> Optional[str]:
    if not context.specific_incident:
        return "specific_incident"
    if context.relationship_type == RelationshipType.UNKNOWN:
        return "relationship_type"
    if context.duration == Duration.UNKNOWN:
        return "duration"
    if not context.pattern_history:
        return "pattern_history"
    if not context.emotional_impact:
        return "emotional_impact"
    return None


def decide(state: ConversationState, text: Optional[str], has_image: bool = False) -> Decision:
    """
    Pick the response path and next stage for the current user message.

    Only the current message is inspected here; crisis detection over the whole
    conversation is a separate concern (helplines.assess_crisis).
    """
    stage = state.stage

    if detectors.is_complaining_about_ai(text):
        decision = Decision(ResponsePath.COMPLAINT, stage, "complaint")

    elif stage == Stage.INITIAL:
        if detectors.should_respond_immediately(text, has_image):
            decision = Decision(ResponsePath.DIRECT, Stage.ANALYSIS, "image" if has_image else "trigger")
        elif detectors.needs_direct_advice(text):
            decision = Decision(ResponsePath.DIRECT, Stage.ANALYSIS, "direct_advice")
        else:
            decision = Decision(ResponsePath.FOLLOW_UP, Stage.GATHERING, "gather")

    elif stage == Stage.GATHERING:
        turn_number = state.messages_exchanged + 1
        if detectors.should_stop_questioning(text):
            decision = Decision(ResponsePath.ANALYSIS, Stage.ANALYSIS, "stop_questioning")
        elif detectors.should_respond_immediately(text, has_image):
            # evidence in hand: analyse with the context gathered so far
            decision = Decision(ResponsePath.ANALYSIS, Stage.ANALYSIS, "image" if has_image else "trigger")
        elif detectors.should_provide_analysis(text, turn_number):
            decision = Decision(ResponsePath.ANALYSIS, Stage.ANALYSIS, "analysis_ready")
        else:
            decision = Decision(ResponsePath.FOLLOW_UP, Stage.GATHERING, "gather")

    elif stage == Stage.ANALYSIS:
        decision = Decision(ResponsePath.GENERAL, Stage.SUPPORT, "post_analysis")

    else:
        decision = Decision(ResponsePath.GENERAL, Stage.SUPPORT, "support")

    logger.info(
        "stage decision: %s -> %s path=%s reason=%s",
        stage.value,
        decision.next_stage.value,
        decision.path.value,
        decision.reason,
    )
    return decision
