"""Display helpers for shilling amounts, location names and tiers."""

import re
from typing import Optional

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_WORD_SPLIT = re.compile(r"[\s\-_]+")


def format_kes(value: Optional[float]) -> str:
    """``5_200_000`` -> ``"KES 5.2M"``; ``None`` -> ``"N/A"``."""
    if value is None:
        return "N/A"
    if value >= 1_000_000:
        return f"KES {value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"KES {value / 1_000:.0f}K"
    return f"KES {value:,.0f}"


def title_case(text: str) -> str:
    """``"kiambu-road"`` -> ``"Kiambu Road"``."""
    return " ".join(w[:1].upper() + w[1:] for w in _WORD_SPLIT.split(text) if w)


def to_slug(location: str) -> str:
    """``"Kiambu Road"`` -> ``"kiambu-road"``."""
    return _SLUG_STRIP.sub("-", location.lower()).strip("-")


def price_tier(rank: int, total: int) -> str:
    """Affordability tercile of a rank (1 = cheapest)."""
    ratio = rank / max(total, 1)
    if ratio <= 0.33:
        return "Affordable"
    if ratio <= 0.66:
        return "Mid-Range"
    return "Premium"
