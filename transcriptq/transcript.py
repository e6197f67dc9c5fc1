"""Pulling transcript text out of service results and tidying it up."""

import re
from typing import Any, Dict, List, Optional, Union
from .errors import EmptyResult

COMPONENT_TAG = re.compile(r"\[([1-4][a-f])\]", re.IGNORECASE)
TAG_LABEL = re.compile(COMPONENT_TAG.pattern + " *", re.IGNORECASE)
SPEAKER_LABEL = re.compile(r"\[Speaker (\d+):\] *", re.IGNORECASE)
TIMESTAMP = re.compile(r"\[(\d{2}:\d{2})\] *")
MAX_TAG_SEGMENT = 500


def extract_result_text(result: Optional[Union[str, Dict[str, Any]]]) -> str:
    """Return the transcript text from a raw service result.

    Accepts plain text, the generateContent response shape
    (``candidates[0].content.parts[0].text``) or a flat ``{"text": ...}``.
    Raises EmptyResult when there is no text.
    """
    text = None
    if isinstance(result, str):
        text = result
    elif isinstance(result, dict):
        try:
            text = result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = result.get("text")
    if not isinstance(text, str) or not text.strip():
        raise EmptyResult("No transcription text found in service result")
    return text


def extract_component_tags(text: str) -> Dict[str, List[str]]:
    """Group the text following each [1a]..[4f] tag by component."""
    tags: Dict[str, List[str]] = {}
    sections = COMPONENT_TAG.split(text)
    # re.split keeps the captured component between the text segments
    for i in range(1, len(sections), 2):
        component = sections[i].lower()
        content = sections[i + 1].strip() if i + 1 < len(sections) else ""
        segments = tags.setdefault(component, [])
        if content:
            segments.append(content[:MAX_TAG_SEGMENT])
    return tags


def clean_transcript(text: str) -> str:
    """Put tags, speaker labels and timestamps on their own lines."""
    text = TAG_LABEL.sub(r"\n\n[\1] ", text)
    text = SPEAKER_LABEL.sub(r"\n\n**Speaker \1:** ", text)
    text = TIMESTAMP.sub(r"\n*[\1]* ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
