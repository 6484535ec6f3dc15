from __future__ import annotations

from typing import Any

from ai.backend import image_part
from ai.persona import AfkPersona


def build_ask_prompt(question: str) -> str:
    return f"You are a smart assistant. Answer briefly: {question.strip()}"


def build_translate_prompt(target_lang: str, text: str) -> str:
    return (
        f'Translate the following text into "{target_lang}". '
        "Return only the translation, no explanation, nothing else:\n\n"
        f"{text}"
    )


def build_afk_messages(
    *,
    persona: AfkPersona,
    owner: str,
    reason: str,
    user_text: str,
    images: list[tuple[bytes, str]],
) -> list[dict[str, Any]]:
    text = persona.system_prompt(owner=owner, reason=reason)
    clean = (user_text or "").strip()
    if clean:
        text += f'\n\nThey wrote: "{clean}"'
    else:
        text += f"\n\n{persona.image_only_note}"
    if images:
        text += f"\n{persona.image_hint}"

    content: list[dict[str, Any]] = [{"type": "text", "text": text}]
    for data, mime_type in images:
        content.append(image_part(data, mime_type))
    return [{"role": "user", "content": content}]


def clip_answer(header: str, answer: str, limit: int) -> str:
    room = max(0, limit - len(header))
    if len(answer) > room:
        answer = answer[:room] + "..."
    return f"{header}{answer}"
