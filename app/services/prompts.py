"""Prompt builders for content generation."""

import json
import re
from typing import Any

ANALYSIS_SYSTEM_PROMPT = (
    "You are a content strategist. Analyse the content you are given and reply "
    "with a JSON object only."
)

CONNECTOR_SYSTEM_PROMPT = (
    "You are an integrations architect for content creators. Reply with a JSON "
    'object of the form {"summary": string, "connectors": [{"name": string, '
    '"description": string, "setup": [string], "automations": [string]}]}.'
)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def build_generate_prompt(
    template: str,
    user_input: str,
    platform: str | None = None,
    tone: str | None = None,
) -> str:
    """Turn the user's notes into a prompt for the chosen template."""
    platform = platform or "social media"
    tone = tone or "default"

    if template == "post":
        return (
            f"You are an expert content writer for {platform}.\n"
            f"Tone: {tone}.\n"
            "Write a short, punchy post based on the user's notes.\n"
            "Output format:\n"
            "1) Post text (1-3 sentences)\n"
            '2) A line starting with "Hashtags:" followed by 5-10 relevant hashtags.\n\n'
            f"User notes:\n{user_input}"
        )
    if template == "script":
        return (
            f"You are a creator coach helping with a short video script for {platform}.\n"
            f"Tone: {tone}.\n"
            "Write a concise script with this structure:\n"
            "- HOOK (1-2 lines)\n"
            "- BODY (3-6 lines)\n"
            "- CTA (1-2 lines)\n\n"
            f"User notes:\n{user_input}"
        )
    if template == "caption":
        return (
            f"You are writing a caption for {platform}.\n"
            f"Tone: {tone}.\n"
            "Write:\n"
            "1) A single, scroll-stopping caption (1-2 sentences)\n"
            '2) A second line starting "CTA:" with a simple call to action.\n\n'
            f"User notes:\n{user_input}"
        )
    return user_input


def build_analysis_prompt(content: str, goal: str | None = None, platform: str | None = None) -> str:
    lines = [
        "Analyse the following content.",
        f"Goal: {goal or 'maximise engagement'}.",
    ]
    if platform:
        lines.append(f"Platform: {platform}.")
    lines += [
        'Return a JSON object with keys "summary" (string), "strengths" (list of '
        'strings), "improvements" (list of strings) and "score" (integer 0-100).',
        "",
        "Content:",
        content,
    ]
    return "\n".join(lines)


def build_connector_prompt(use_case: str) -> str:
    return (
        "Suggest integration connectors and automations for this use case:\n"
        f"{use_case}"
    )


def parse_json_reply(text: str) -> Any:
    """Parse JSON from a model reply.

    Accepts a bare JSON document, a fenced code block with text around it,
    or the first ``{...}`` span in the reply. Raises ValueError otherwise.
    """
    candidates = [text.strip()]
    candidates += [match.strip() for match in _FENCED_JSON.findall(text)]
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    raise ValueError("Reply did not contain valid JSON")
