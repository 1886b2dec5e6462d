from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Stage(str, Enum):
    INITIAL = "initial"
    GATHERING = "gathering"
    ANALYSIS = "analysis"
    SUPPORT = "support"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class RelationshipType(str, Enum):
    BOYFRIEND = "boyfriend"
    GIRLFRIEND = "girlfriend"
    FRIEND = "friend"
    FAMILY = "family"
    UNKNOWN = "unknown"


class Duration(str, Enum):
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"
    UNKNOWN = "unknown"


@dataclass
class ContextSlots:
    """What we have learned about the user's situation so far."""

    relationship_type: RelationshipType = RelationshipType.UNKNOWN
    duration: Duration = Duration.UNKNOWN
    specific_incident: bool = False
    emotional_impact: bool = False
    pattern_history: bool = False


@dataclass
class ConversationState:
    stage: Stage = Stage.INITIAL
    messages_exchanged: int = 0
    has_image: bool = False
    image_analyzed: bool = False
    context: ContextSlots = field(default_factory=ContextSlots)

    def copy(self) -> "ConversationState":
        return replace(self, context=replace(self.context))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    attachment_ref: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)
