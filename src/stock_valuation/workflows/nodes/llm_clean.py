"""Helpers to scrub Poe/Gemini scaffolding from the analysis reply."""
from __future__ import annotations

import re
from typing import Optional

_THINKING_BLOCK = re.compile(r"(?is)^\s*\*?(?:Thinking|Planning)[^.]*\*?.*?(?:\n{2,}|$)")
_QUOTED_LINE = re.compile(r"(?im)^>.*(?:\n|$)")
_CODE_FENCE = re.compile(r"(?m)^```[a-zA-Z]*\s*$")
_OPENER = re.compile(r"(?i)^\s*(?:sure|certainly|of course|okay|ok)\b[,!.]?\s*(?:here(?:'s| is)[^:\n]*:)?\s*")
_HEADING = re.compile(r"(?m)^#{1,6}\s*")


def clean_llm_output(text: Optional[str]) -> str:
    """Remove thinking/planning preambles, quoted scratch lines, fences and chatty openers."""
    if not text:
        return ""
    cleaned = str(text).strip()
    cleaned = _THINKING_BLOCK.sub("", cleaned)
    cleaned = _QUOTED_LINE.sub("", cleaned)
    cleaned = _CODE_FENCE.sub("", cleaned)
    cleaned = _OPENER.sub("", cleaned, count=1)
    cleaned = _HEADING.sub("", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()
