"""Spoken-summary blocks embedded in model answers.

A model may wrap a short summary in ``VOICE_START: ... VOICE_END`` for
text-to-speech. The block is removed from the displayed text.
"""

from __future__ import annotations

from typing import NamedTuple

VOICE_START = "VOICE_START:"
VOICE_END = "VOICE_END"


class VoiceBlock(NamedTuple):
    display: str
    voice: str | None


def parse_voice_block(content: str | None) -> VoiceBlock:
    """Split *content* into display text and the optional spoken summary."""
    if not content:
        return VoiceBlock(content or "", None)

    start = content.find(VOICE_START)
    if start == -1:
        return VoiceBlock(content, None)

    after_start = content[start + len(VOICE_START):]
    end = after_start.find(VOICE_END)
    if end == -1:
        return VoiceBlock(content, None)

    voice = after_start[:end].strip()
    before = content[:start].strip()
    after = after_start[end + len(VOICE_END):].strip()
    display = "\n\n".join(part for part in (before, after) if part).strip()
    return VoiceBlock(display or content, voice or None)


def text_to_speak(content: str) -> str:
    """Voice summary if present, otherwise the display text."""
    display, voice = parse_voice_block(content)
    return (voice or display or "").strip() or content
