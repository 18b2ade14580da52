"""Display formatting shared by the CLI, the report template and LLM prompts."""
from __future__ import annotations

import math
from typing import Optional

MISSING = "–"


def format_number(num: Optional[float]) -> str:
    """Abbreviate large magnitudes (K/M/B) and fix two decimals; '–' when unavailable."""
    if num is None or isinstance(num, bool):
        return MISSING
    try:
        value = float(num)
    except (TypeError, ValueError):
        return MISSING
    if not math.isfinite(value):
        return MISSING
    if value > 1_000_000_000:
        return f"{value / 1_000_000_000:.2f}B"
    if value > 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if value > 1_000:
        return f"{value / 1_000:.2f}K"
    return f"{value:.2f}"


def format_percentage(num: Optional[float]) -> str:
    formatted = format_number(num)
    if formatted == MISSING:
        return MISSING
    return f"{formatted}%"


def format_ratio_as_percentage(fraction: Optional[float]) -> str:
    """Render an upstream fraction (0.153) as a percentage string (15.30%)."""
    if fraction is None:
        return MISSING
    return format_percentage(fraction * 100)
