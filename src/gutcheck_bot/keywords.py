# gutcheck_bot/keywords.py
from pathlib import Path
from typing import Tuple

KEYWORDS_DIR = Path(__file__).resolve().parent / "keywords"


def _load_phrases(name: str) -> Tuple[str, ...]:
    """
    Load one keyword file from keywords/ as a tuple of lowercase phrases.

    - Skips blank lines and lines starting with '#'
    - Strips surrounding whitespace (inner spacing is kept, matching is literal)
    - Raises if the file is missing: an empty safety list must never pass silently
    """
    path = KEYWORDS_DIR / f"{name}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Keyword list not found: {path}")
    phrases = []
    for line in path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        phrases.append(s.lower())
    return tuple(phrases)


# ---------- Crisis / danger ----------

# Self-harm and suicide language ("want to die", "end it all", ...)
CRISIS_PHRASES = _load_phrases("crisis_phrases")

# Immediate danger = timing AND violence in the same text
DANGER_TIMING_PHRASES = _load_phrases("danger_timing")
DANGER_VIOLENCE_PHRASES = _load_phrases("danger_violence")

# ---------- Respond-now triggers ----------

# Quoted manipulation ("that never happened", "you're crazy", ...)
MANIPULATION_QUOTES = _load_phrases("manipulation_quotes")

# Reported threats ("threatened to", "showed me a weapon", ...)
DANGER_KEYWORDS = _load_phrases("danger_keywords")

# Situations that need advice, not questions (strangers, stalking, coercion, ...)
DIRECT_ADVICE_TRIGGERS = _load_phrases("direct_advice")

# ---------- Conversation flow ----------

PERSONAL_CONTEXT_KEYWORDS = _load_phrases("personal_context")
STOP_QUESTIONING_PHRASES = _load_phrases("stop_questioning")
ANALYSIS_TRIGGERS = _load_phrases("analysis_triggers")
AI_COMPLAINT_PHRASES = _load_phrases("ai_complaints")
