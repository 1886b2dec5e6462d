from __future__ import annotations

from pathlib import Path
from typing import Mapping

# gutcheck_bot/templates/*.txt (shipped as package data)
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def load_prompt(name: str) -> str:
    path = TEMPLATES_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8").strip()


def fill_template(template: str, values: Mapping[str, object]) -> str:
    # Avoid Python .format(): templates quote user-facing text with braces
    out = template
    for key, value in values.items():
        out = out.replace("{" + key + "}", str(value))
    return out


def compose_system_prompt(*sections: str) -> str:
    return "\n\n".join(s.strip() for s in sections if s and s.strip())
