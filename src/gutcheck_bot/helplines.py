"""
Helpline registry and matcher.

HELPLINES is a fixed, versioned table. Keyword lists and raw numbers are kept
exactly as published so recommendation fixtures stay stable; do not edit
entries without updating the tests.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from .detectors import is_crisis_situation, is_immediate_danger, matched_phrases
from .keywords import CRISIS_PHRASES
from .profile import Region, detect_region

logger = logging.getLogger(__name__)

MAX_RECOMMENDED_HELPLINES = 3


class HelplineCategory(str, Enum):
    CHILD = "child"
    MENTAL_HEALTH = "mental-health"
    ABUSE = "abuse"
    GENERAL = "general"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class HelplineRecord:
    name: str
    number: str
    description: str
    icon: str
    category: HelplineCategory
    region: Optional[Region]  # None = eligible in every region
    available_hours: str
    keywords: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CrisisSignal:
    is_crisis: bool
    is_immediate_danger: bool
    matched_helplines: Tuple[HelplineRecord, ...] = ()


_EMERGENCY_KEYWORDS = ("emergency", "danger", "immediate", "right now", "happening now")
_SUICIDE_KEYWORDS = (
    "suicide", "kill myself", "end it all", "depressed", "hopeless",
    "worthless", "cant go on", "want to die", "self harm", "cutting",
)
_TEXT_LINE_KEYWORDS = ("text", "chat", "message", "crisis", "need to talk")

_C = HelplineCategory

HELPLINES: Tuple[HelplineRecord, ...] = (
    # ---------- UK ----------
    HelplineRecord(
        "Emergency Services", "999", "Immediate danger - police, ambulance, fire",
        "warning", _C.EMERGENCY, Region.UK, "24/7", _EMERGENCY_KEYWORDS,
    ),
    HelplineRecord(
        "Childline", "08001111", "Free, confidential support for young people under 19",
        "people", _C.CHILD, Region.UK, "24/7",
        ("young", "child", "teenager", "teen", "school", "parent", "family",
         "under 19", "scared", "worried", "confused", "lonely"),
    ),
    HelplineRecord(
        "Samaritans", "116123", "24/7 confidential emotional support for anyone in distress",
        "heart", _C.MENTAL_HEALTH, Region.UK, "24/7", _SUICIDE_KEYWORDS,
    ),
    HelplineRecord(
        "NSPCC", "08088005000", "For adults concerned about a child at risk",
        "shield-checkmark", _C.CHILD, Region.UK, "24/7",
        ("abuse", "neglect", "child abuse", "child protection", "safeguarding",
         "unsafe", "danger", "hurt", "touching", "inappropriate"),
    ),
    HelplineRecord(
        "National Domestic Abuse Helpline", "08082000247",
        "Free, confidential support for anyone experiencing domestic abuse",
        "call", _C.ABUSE, Region.UK, "24/7",
        ("domestic violence", "domestic abuse", "hitting", "beating", "physical abuse",
         "controlling", "threatening", "violence", "assault", "afraid", "scared of partner",
         "hurt me", "punched", "kicked", "strangled", "forced"),
    ),
    HelplineRecord(
        "The Mix", "08088084994", "Free support for under 25s via phone, email, or webchat",
        "chatbubbles", _C.GENERAL, Region.UK, "Mon-Fri 4pm-11pm",
        ("under 25", "young adult", "university", "college", "relationship problems",
         "mental health", "anxiety", "stress", "need advice"),
    ),
    # ---------- US ----------
    HelplineRecord(
        "Emergency Services", "911", "Immediate danger - police, ambulance, fire",
        "warning", _C.EMERGENCY, Region.US, "24/7", _EMERGENCY_KEYWORDS,
    ),
    HelplineRecord(
        "988 Suicide & Crisis Lifeline", "988", "24/7 crisis support and suicide prevention",
        "heart", _C.MENTAL_HEALTH, Region.US, "24/7", _SUICIDE_KEYWORDS,
    ),
    HelplineRecord(
        "Crisis Text Line", "741741", "Text HOME to 741741 for crisis support",
        "chatbubble", _C.MENTAL_HEALTH, Region.US, "24/7", _TEXT_LINE_KEYWORDS,
    ),
    HelplineRecord(
        "National Domestic Violence Hotline", "18007997233",
        "24/7 support for domestic violence victims",
        "call", _C.ABUSE, Region.US, "24/7",
        ("domestic violence", "domestic abuse", "hitting", "beating", "physical abuse",
         "controlling", "threatening", "violence", "assault", "afraid", "scared of partner"),
    ),
    HelplineRecord(
        "Childhelp National Child Abuse Hotline", "18004224453",
        "Support for children and adults concerned about child abuse",
        "shield-checkmark", _C.CHILD, Region.US, "24/7",
        ("child abuse", "child protection", "safeguarding", "neglect",
         "unsafe", "danger", "hurt", "touching", "inappropriate"),
    ),
    HelplineRecord(
        "RAINN National Sexual Assault Hotline", "18006564673",
        "Support for survivors of sexual assault",
        "shield", _C.ABUSE, Region.US, "24/7",
        ("sexual assault", "rape", "assault", "abuse", "survivor"),
    ),
    # ---------- Canada ----------
    HelplineRecord(
        "Emergency Services", "911", "Immediate danger - police, ambulance, fire",
        "warning", _C.EMERGENCY, Region.CANADA, "24/7", _EMERGENCY_KEYWORDS,
    ),
    HelplineRecord(
        "Canada Suicide Prevention Service", "18334564566",
        "24/7 suicide prevention and crisis support",
        "heart", _C.MENTAL_HEALTH, Region.CANADA, "24/7", _SUICIDE_KEYWORDS,
    ),
    HelplineRecord(
        "Crisis Text Line Canada", "686868", "Text CONNECT to 686868 for crisis support",
        "chatbubble", _C.MENTAL_HEALTH, Region.CANADA, "24/7", _TEXT_LINE_KEYWORDS,
    ),
    HelplineRecord(
        "Kids Help Phone", "18006686868", "Support for young people under 20",
        "people", _C.CHILD, Region.CANADA, "24/7",
        ("young", "child", "teenager", "teen", "school", "under 20",
         "scared", "worried", "confused", "lonely"),
    ),
    HelplineRecord(
        "Canadian Resource Centre for Victims of Crime", "18775328506",
        "Support for victims of crime and abuse",
        "shield-checkmark", _C.ABUSE, Region.CANADA, "Mon-Fri 9am-5pm ET",
        ("victim", "crime", "abuse", "assault", "violence", "help"),
    ),
    # ---------- Australia ----------
    HelplineRecord(
        "Emergency Services", "000", "Immediate danger - police, ambulance, fire",
        "warning", _C.EMERGENCY, Region.AUSTRALIA, "24/7", _EMERGENCY_KEYWORDS,
    ),
    HelplineRecord(
        "Lifeline Australia", "131114", "24/7 crisis support and suicide prevention",
        "heart", _C.MENTAL_HEALTH, Region.AUSTRALIA, "24/7", _SUICIDE_KEYWORDS,
    ),
    HelplineRecord(
        "Beyond Blue", "1300224636", "24/7 support for depression, anxiety and mental health",
        "heart", _C.MENTAL_HEALTH, Region.AUSTRALIA, "24/7",
        ("depression", "anxiety", "mental health", "stressed", "worried",
         "anxious", "depressed", "overwhelmed"),
    ),
    HelplineRecord(
        "1800RESPECT", "1800737732", "National domestic, family and sexual violence counselling",
        "call", _C.ABUSE, Region.AUSTRALIA, "24/7",
        ("domestic violence", "domestic abuse", "sexual violence", "family violence",
         "controlling", "threatening", "violence", "assault", "afraid"),
    ),
    HelplineRecord(
        "Kids Helpline", "1800551800", "Free counselling for young people aged 5-25",
        "people", _C.CHILD, Region.AUSTRALIA, "24/7",
        ("young", "child", "teenager", "teen", "school", "under 25",
         "scared", "worried", "confused", "lonely"),
    ),
    HelplineRecord(
        "MensLine Australia", "1300789978",
        "Support for men dealing with relationship and family concerns",
        "man", _C.GENERAL, Region.AUSTRALIA, "24/7",
        ("man", "male", "men", "relationship problems", "family issues",
         "father", "husband", "boyfriend"),
    ),
)

EMERGENCY_NUMBERS = {
    Region.UK: "999",
    Region.US: "911",
    Region.CANADA: "911",
    Region.AUSTRALIA: "000",
}

RegionLike = Union[Region, str, None]


def get_helplines_for_region(region: RegionLike) -> List[HelplineRecord]:
    r = detect_region(region)
    return [h for h in HELPLINES if h.region is None or h.region == r]


def get_helplines_by_category(
    category: Union[HelplineCategory, str], region: RegionLike = None
) -> List[HelplineRecord]:
    cat = HelplineCategory(category)
    return [h for h in get_helplines_for_region(region) if h.category == cat]


def get_relevant_helplines(text: Optional[str], region: RegionLike = None) -> List[HelplineRecord]:
    """
    Rank the region's helplines by keyword hits in ``text``.

    Records with no hits are dropped; ties keep table order (stable sort).
    At most MAX_RECOMMENDED_HELPLINES are returned.
    """
    lowered = (text or "").lower()
    if not lowered:
        return []

    scored = []
    for helpline in get_helplines_for_region(region):
        hits = sum(1 for kw in helpline.keywords if kw.lower() in lowered)
        if hits > 0:
            scored.append((hits, helpline))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [h for _, h in scored[:MAX_RECOMMENDED_HELPLINES]]


def format_phone_number(number: str) -> str:
    cleaned = re.sub(r"\s", "", number)
    if len(cleaned) == 7:
        return f"{cleaned[:4]} {cleaned[4:]}"
    if len(cleaned) == 6:
        return f"{cleaned[:3]} {cleaned[3:]}"
    if len(cleaned) == 11:
        return f"{cleaned[:4]} {cleaned[4:7]} {cleaned[7:]}"
    # space after every full group of 4 that is followed by another digit
    return re.sub(r"(\d{4})(?=\d)", r"\1 ", cleaned)


def format_helplines(helplines: Sequence[HelplineRecord]) -> str:
    """Deterministic text block appended to a user-facing reply."""
    if not helplines:
        return ""
    parts = ["\n\n**Support Available:**\n"]
    for helpline in helplines:
        parts.append(f"\n**{helpline.name}**: {format_phone_number(helpline.number)}\n")
        parts.append(f"{helpline.description} ({helpline.available_hours})\n")
    return "".join(parts)


def emergency_number(region: RegionLike) -> str:
    return EMERGENCY_NUMBERS[detect_region(region)]


def get_helpline_recommendation_message(
    is_crisis: bool,
    is_danger: bool,
    helplines: Sequence[HelplineRecord],
    region: RegionLike = None,
) -> str:
    """
    Exactly one block, by priority: immediate danger > crisis > additional
    support (only when some helpline matched). Empty string otherwise.
    """
    if is_danger:
        return (
            f"\n\n⚠️ **IMMEDIATE DANGER**: If you are in immediate danger, please call "
            f"{emergency_number(region)} (emergency services) or go to a safe place right now."
            f"{format_helplines(helplines)}"
        )

    if is_crisis:
        return (
            "\n\n🆘 **Crisis Support Available**: What you're going through sounds really serious. "
            "Please consider reaching out to one of these helplines - they're trained to help "
            f"with exactly this kind of situation:{format_helplines(helplines)}"
        )

    if helplines:
        return (
            "\n\n💙 **Additional Support**: You don't have to go through this alone. Here are "
            f"some organizations that can provide professional support:{format_helplines(helplines)}"
        )

    return ""


def assess_crisis(text: Optional[str], region: RegionLike = None) -> CrisisSignal:
    signal = CrisisSignal(
        is_crisis=is_crisis_situation(text),
        is_immediate_danger=is_immediate_danger(text),
        matched_helplines=tuple(get_relevant_helplines(text, region)),
    )
    if signal.is_crisis or signal.is_immediate_danger:
        logger.warning(
            "crisis signal: crisis=%s danger=%s phrases=%s helplines=%s",
            signal.is_crisis,
            signal.is_immediate_danger,
            matched_phrases(text, CRISIS_PHRASES),
            [h.name for h in signal.matched_helplines],
        )
    return signal


def recommendation_for(signal: CrisisSignal, region: RegionLike = None) -> str:
    return get_helpline_recommendation_message(
        signal.is_crisis, signal.is_immediate_danger, signal.matched_helplines, region
    )
