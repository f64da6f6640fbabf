"""Fixed prompts and keyword rules answered without calling the language model."""

from __future__ import annotations

from typing import Final

SALES_PROMPT: Final[str] = "You pressed one. Connecting you to sales."
SUPPORT_PROMPT: Final[str] = "You pressed two. Connecting you to support."
INVALID_SELECTION_PROMPT: Final[str] = (
    "Invalid selection. Please press one for sales or two for support."
)

GREETING_REPLY: Final[str] = "Hello! How can I assist you today?"
HELP_REPLY: Final[str] = "I can assist with general queries. Just type your question!"

RECOGNITION_FALLBACK: Final[str] = "Sorry, I couldn't understand the audio."
GENERATION_APOLOGY: Final[str] = "Sorry, there was an error while processing your request."
EMPTY_GENERATION_REPLY: Final[str] = "Sorry, I couldn't process your request."

_KEYPAD_PROMPTS: Final[dict[str, str]] = {
    "1": SALES_PROMPT,
    "2": SUPPORT_PROMPT,
}

# Checked in order; the first keyword found wins.
_CANNED_RULES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("hello",), GREETING_REPLY),
    (("help",), HELP_REPLY),
)


def keypad_prompt(digit: str | None) -> str:
    return _KEYPAD_PROMPTS.get(digit, INVALID_SELECTION_PROMPT)


def canned_reply(utterance: str) -> str | None:
    """Return a local reply if the utterance matches a keyword rule."""

    lowered = utterance.lower()
    for keywords, reply in _CANNED_RULES:
        if any(keyword in lowered for keyword in keywords):
            return reply
    return None
