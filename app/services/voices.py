"""Voice personas used to steer generated content."""

import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class VoicePersona:
    """A named writing voice with its system prompt."""
    id: str
    name: str
    description: str
    system_prompt: str
    prohibited_words: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "prohibitedWords": list(self.prohibited_words),
        }


VOICE_PERSONAS: dict[str, VoicePersona] = {
    "professional": VoicePersona(
        id="professional",
        name="Professional",
        description="Formal, authoritative, corporate tone",
        system_prompt=(
            "You are a professional business writer. Write with clarity, precision, "
            "and authority.\nUse formal language, maintain a corporate tone, and focus "
            "on actionable insights."
        ),
    ),
    "casual": VoicePersona(
        id="casual",
        name="Casual",
        description="Friendly, conversational, approachable",
        system_prompt=(
            "You are a friendly content creator. Write like you're chatting with a "
            "friend.\nUse conversational language, be relatable, and keep things "
            "light and engaging."
        ),
    ),
    "technical": VoicePersona(
        id="technical",
        name="Technical",
        description="Expert, precise, specification-focused",
        system_prompt=(
            "You are a technical writer. Write with precision and depth.\nExplain "
            "concepts clearly, use proper terminology, and provide implementation "
            "details."
        ),
    ),
    "creative": VoicePersona(
        id="creative",
        name="Creative",
        description="Imaginative, vivid, storytelling-focused",
        system_prompt=(
            "You are a creative writer. Write with vivid imagery and compelling "
            "narratives.\nUse storytelling techniques, create emotional connections, "
            "and surprise the reader."
        ),
    ),
    "operator": VoicePersona(
        id="operator",
        name="Operator",
        description="High-density clarity, direct, emotionally literate",
        system_prompt=(
            "Write with high-density clarity: every line must earn its place. No "
            "filler.\nSound like a grounded operator: sharp, direct, self-aware.\n"
            "Default to Markdown with clean sections and make outputs immediately "
            "actionable: checklists, frameworks, flows, or concrete options.\n"
            "Name mechanisms, converge on clear recommendations, and never soften "
            "clear truths to sound nice."
        ),
        prohibited_words=(
            "static", "hum", "echoes", "whisper", "neon", "shadows", "tapestry",
            "maze", "intertwined", "stand tall", "stars", "align", "rise and fall",
            "waves", "reflections", "crimson", "awaken", "cascading", "glowing",
            "awash", "flicker", "endless", "glimmer", "fading", "embers",
            "ethereal", "infinite", "journey", "mystery", "serenade", "vibrations",
            "hue",
        ),
    ),
}


def get_available_voices() -> list[dict]:
    """List persona metadata for the front-end."""
    return [persona.to_dict() for persona in VOICE_PERSONAS.values()]


def validate_content_for_voice(content: str, voice_id: str) -> list[str]:
    """Return the persona's prohibited words that appear in the content."""
    persona = VOICE_PERSONAS.get(voice_id)
    if not persona or not persona.prohibited_words:
        return []

    found = []
    for word in persona.prohibited_words:
        if re.search(rf"\b{re.escape(word)}\b", content, re.IGNORECASE):
            found.append(word)
    return found
