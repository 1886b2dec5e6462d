"""
Region & profile context.

The profile backend is an external collaborator; the core only reads from it
through ``ProfileStore`` so tests (and the CLI) can inject a fixed profile.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class Region(str, Enum):
    UK = "UK"
    US = "US"
    CANADA = "Canada"
    AUSTRALIA = "Australia"


DEFAULT_REGION = Region.UK

# Checked in this order; UK is both an alias set and the fallback.
_REGION_ALIASES = (
    (Region.CANADA, ("canada", "canadian")),
    (Region.AUSTRALIA, ("australia", "aussie", "sydney", "melbourne")),
    (Region.US, ("us", "usa", "united states", "america")),
    (Region.UK, ("uk", "united kingdom", "britain", "great britain", "england",
                 "scotland", "wales", "northern ireland", "london")),
)


def detect_region(user_region: Optional[str]) -> Region:
    """Map free-form region text ("London", "usa", ...) to a Region. Defaults to UK."""
    if isinstance(user_region, Region):
        return user_region
    if not user_region:
        return DEFAULT_REGION
    words = " ".join(re.findall(r"[a-z]+", user_region.lower()))
    padded = f" {words} "
    for region, aliases in _REGION_ALIASES:
        if any(f" {alias} " in padded for alias in aliases):
            return region
    return DEFAULT_REGION


@dataclass(frozen=True)
class UserProfile:
    username: Optional[str] = None
    age: Optional[str] = None
    region: Optional[str] = None
    struggles: Optional[str] = None
    goals: Optional[str] = None


class ProfileStore(Protocol):
    def get_profile(self) -> Optional[UserProfile]: ...

    def get_region(self) -> Optional[str]: ...


class StaticProfileStore:
    """In-memory ProfileStore; stands in for the app's profile backend."""

    def __init__(self, profile: Optional[UserProfile] = None, region: Optional[str] = None) -> None:
        self._profile = profile
        self._region = region

    def get_profile(self) -> Optional[UserProfile]:
        return self._profile

    def get_region(self) -> Optional[str]:
        return self._region


def resolve_region(profile: Optional[UserProfile], stored_region: Optional[str]) -> Optional[str]:
    """Profile region wins over the separately stored (onboarding) region."""
    if profile and profile.region:
        return profile.region
    return stored_region or None


def build_profile_context(
    profile: Optional[UserProfile],
    region: Optional[str] = None,
    include_personal: bool = False,
) -> str:
    """
    Text block of known user attributes for the system prompt.

    Username, age and region are always included when known. Struggles and
    goals are sensitive and only included when ``include_personal`` is set
    (see detectors.should_include_personal_context).
    """
    region = resolve_region(profile, region)
    age = profile.age if profile else None
    if not profile and not region:
        return ""

    lines = []
    if profile and profile.username:
        lines.append(f"- Username: {profile.username}")
    if age:
        lines.append(f"- Age: {age}")
    if region:
        lines.append(f"- Location/Region: {region}")

    if include_personal and profile:
        if profile.struggles and profile.struggles.strip():
            lines.append(f"- Personal challenges: {profile.struggles}")
        if profile.goals and profile.goals.strip():
            lines.append(f"- Working on: {profile.goals}")

    if not lines:
        return ""
    return "\n\nUSER PROFILE CONTEXT:\n" + "\n".join(lines) + "\n"
