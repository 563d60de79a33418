from __future__ import annotations
from typing import Iterable, List

CARD_COUNT = 10

_TUTOR_INSTRUCTIONS = f"""You are an expert tutor used for advanced technical topics. Create {CARD_COUNT} educational flashcards to help a student learn the requested topic in depth.

For each card:
1. "front": A clear, thought-provoking question or concept name.
2. "back": A clear, concise explanation (2-4 sentences). Focus on the core concept immediately. Break into paragraphs if needed.
3. "code": (Conditional) ONLY provide this if the topic is explicitly technical matching programming/math/tools. Otherwise leave empty string "".

IMPORTANT: You must stream the response as Newline Delimited JSON (NDJSON).
Each line must be a valid, standalone JSON object representing ONE flashcard.
Do not return markdown formatting (like ```json).
Just one JSON object per line.

Example output format:
{{"front": "Question", "back": "Detailed answer...", "code": "const x = 1;"}}"""

_EXCLUSION_HEADER = (
    "IMPORTANT: The student has already studied the following concepts. "
    "Do NOT generate cards for these exact concepts again. Instead, focus on related "
    "but new concepts, advanced details, or different aspects of the topic:"
)


def exclusion_clause(context: Iterable[str]) -> str:
    """Empty when there is no prior context."""
    concepts: List[str] = [str(c) for c in context or []]
    if not concepts:
        return ""
    return f"{_EXCLUSION_HEADER}\n{', '.join(concepts)}"


def system_instruction(context: Iterable[str] = ()) -> str:
    clause = exclusion_clause(context)
    return f"{_TUTOR_INSTRUCTIONS}\n\n{clause}" if clause else _TUTOR_INSTRUCTIONS


def user_prompt(topic: str) -> str:
    return f"Generate flashcards for the topic: {topic}"
