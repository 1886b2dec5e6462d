"""
Keyword signal detectors.

Every detector is a case-insensitive literal substring test over the text it is
given (usually the whole conversation so far). No stemming, no negation
handling: "I don't want to die" matches "want to die". Detectors never raise;
``None`` or empty text is simply a non-match.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from .keywords import (
    AI_COMPLAINT_PHRASES,
    ANALYSIS_TRIGGERS,
    CRISIS_PHRASES,
    DANGER_KEYWORDS,
    DANGER_TIMING_PHRASES,
    DANGER_VIOLENCE_PHRASES,
    DIRECT_ADVICE_TRIGGERS,
    MANIPULATION_QUOTES,
    PERSONAL_CONTEXT_KEYWORDS,
    STOP_QUESTIONING_PHRASES,
)

ANALYSIS_MESSAGE_THRESHOLD = 4


def _lower(text: Optional[str]) -> str:
    return (text or "").lower()


def _contains_any(text: Optional[str], phrases: Iterable[str]) -> bool:
    t = _lower(text)
    if not t:
        return False
    return any(p in t for p in phrases)


def matched_phrases(text: Optional[str], phrases: Iterable[str]) -> List[str]:
    """Phrases from ``phrases`` found in ``text``, in list order."""
    t = _lower(text)
    return [p for p in phrases if p in t] if t else []


# ---------- Safety ----------

def is_crisis_situation(text: Optional[str]) -> bool:
    return _contains_any(text, CRISIS_PHRASES)


def is_immediate_danger(text: Optional[str]) -> bool:
    """Both an immediacy phrase and a violence phrase must be present."""
    has_timing = _contains_any(text, DANGER_TIMING_PHRASES)
    has_violence = _contains_any(text, DANGER_VIOLENCE_PHRASES)
    return has_timing and has_violence


# ---------- Respond now vs. gather ----------

def should_respond_immediately(text: Optional[str], has_image: bool = False) -> bool:
    """
    Skip clarifying questions when the user quotes manipulation, reports a
    threat, or attaches a screenshot (screenshots carry their own context).
    """
    if has_image:
        return True
    return _contains_any(text, MANIPULATION_QUOTES) or _contains_any(text, DANGER_KEYWORDS)


def needs_direct_advice(text: Optional[str]) -> bool:
    return _contains_any(text, DIRECT_ADVICE_TRIGGERS)


def should_include_personal_context(text: Optional[str]) -> bool:
    """Gate for injecting profile struggles/goals into the prompt."""
    return _contains_any(text, PERSONAL_CONTEXT_KEYWORDS)


# ---------- Conversation flow ----------

def should_stop_questioning(text: Optional[str]) -> bool:
    return _contains_any(text, STOP_QUESTIONING_PHRASES)


def should_provide_analysis(text: Optional[str], message_count: int) -> bool:
    return _contains_any(text, ANALYSIS_TRIGGERS) or message_count >= ANALYSIS_MESSAGE_THRESHOLD


def is_complaining_about_ai(text: Optional[str]) -> bool:
    return _contains_any(text, AI_COMPLAINT_PHRASES)
