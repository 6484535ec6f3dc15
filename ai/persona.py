from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class AfkPersona:
    version: str = "afk_persona_v1"
    system_template: str = (
        "You are an assistant covering for {owner} while they are away: \"{reason}\".\n"
        "Personality: playful, casual, a bit cheeky, never too serious."
    )
    reply_rules: str = (
        "Keep it short (1-2 sentences) and mention why {owner} is away when it is relevant. "
        "If the message sounds urgent, say {owner} will get back to them later."
    )
    image_hint: str = "If there is an image, react to it in character."
    image_only_note: str = "They only sent an image, no text."

    def system_prompt(self, *, owner: str, reason: str) -> str:
        values = {"owner": owner, "reason": reason}
        return f"{self.system_template.format(**values)}\n{self.reply_rules.format(**values)}"


def _text(value: Any, fallback: str) -> str:
    text = str(value or "").strip()
    return text or fallback


def load_afk_persona(path: str | Path | None) -> tuple[AfkPersona, str | None]:
    """
    Returns (persona, warning_message). warning_message is None on clean load.
    """
    defaults = AfkPersona()
    if not path:
        return (defaults, "AFK persona path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"AFK persona file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read AFK persona from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid AFK persona format in {p}; using built-in defaults.")

    persona = AfkPersona(
        version=_text(payload.get("version"), defaults.version),
        system_template=_text(payload.get("system_template"), defaults.system_template),
        reply_rules=_text(payload.get("reply_rules"), defaults.reply_rules),
        image_hint=_text(payload.get("image_hint"), defaults.image_hint),
        image_only_note=_text(payload.get("image_only_note"), defaults.image_only_note),
    )
    try:
        persona.system_prompt(owner="owner", reason="reason")
    except (KeyError, IndexError, ValueError) as exc:
        return (defaults, f"AFK persona template in {p} is malformed ({exc}); using built-in defaults.")
    return (persona, None)
