"""Cheap syntactic red-flag filter for generated candidates."""

from typing import Optional

MAX_CANDIDATE_CHARS = 2000

# Matched case-insensitively anywhere in the text
REFUSAL_PHRASES = (
    "i cannot",
    "i can't",
    "i'm sorry",
    "i am sorry",
    "as an ai",
    "as a language model",
    "i don't have access",
    "i do not have access",
    "i'm unable to",
    "i am unable to",
)


def is_red_flag(text: Optional[str], max_chars: int = MAX_CANDIDATE_CHARS) -> bool:
    """Return True if a candidate is obviously unusable.

    Flags empty text, text longer than ``max_chars`` (the model rambled
    instead of executing one atomic step), and refusals or deflections.
    """
    if not text or not text.strip():
        return True
    if len(text) > max_chars:
        return True
    lowered = text.lower().replace("’", "'")
    return any(phrase in lowered for phrase in REFUSAL_PHRASES)
