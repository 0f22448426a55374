"""Cause colour utilities for theming the personalized view."""

from typing import Awaitable, Callable, Dict, List, Optional

from loguru import logger

from config.data_loader import load_carousel_defaults
from .errors import safe_fetch
from .models import Cause

DEFAULT_CAUSE_COLOR = "#a855f7"

CauseDirectory = Callable[[], Awaitable[List[Cause]]]


def default_color() -> str:
    return str(load_carousel_defaults().get("default_cause_color") or DEFAULT_CAUSE_COLOR)


def _parse_hex(hex_color: str) -> int:
    value = hex_color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"not a hex colour: {hex_color!r}")
    return int(value, 16)


def is_light_color(hex_color: str) -> bool:
    """Whether a colour is light enough to need dark text (perceived brightness > 155)."""
    rgb = _parse_hex(hex_color)
    r, g, b = (rgb >> 16) & 0xFF, (rgb >> 8) & 0xFF, rgb & 0xFF
    return (r * 299 + g * 587 + b * 114) / 1000 > 155


def lighten_color(hex_color: str, percent: float) -> str:
    num = _parse_hex(hex_color)
    amount = round(2.55 * percent)
    r = min(255, (num >> 16) + amount)
    g = min(255, ((num >> 8) & 0xFF) + amount)
    b = min(255, (num & 0xFF) + amount)
    return f"#{r:02x}{g:02x}{b:02x}"


def _badge_colors(color: str) -> Dict[str, str]:
    return {
        "bg": color,
        "text": "#000000" if is_light_color(color) else "#ffffff",
        "border": lighten_color(color, 15),
    }


def get_cause_color(cause_slug: str, cause_color: Optional[str] = None) -> Dict[str, str]:
    """Background, text and border colours for a cause badge or section."""
    for color in (cause_color, default_color()):
        if not color:
            continue
        try:
            return _badge_colors(color)
        except ValueError:
            logger.warning(f"[Theme] Ignoring invalid colour {color!r} for {cause_slug or 'default'}")

    return _badge_colors(DEFAULT_CAUSE_COLOR)


def format_cause_name(cause_slug: str) -> str:
    """'animal-welfare' -> 'Animal Welfare'."""
    return " ".join(word[:1].upper() + word[1:] for word in cause_slug.split("-"))


def create_cause_color_map(causes: List[Cause]) -> Dict[str, str]:
    return {cause.slug: cause.color for cause in causes if cause.color}


async def resolve_cause_theme(
    cause: Optional[str],
    directory: CauseDirectory,
    timeout: Optional[float] = None,
) -> Dict[str, Optional[str]]:
    """
    Theme for the personalized view: effect colour plus badge colours.

    Falls back to the default colour when there is no cause, the directory
    is unreachable, or the cause has no colour.
    """
    if not cause:
        badge = get_cause_color("", None)
        return {"cause": None, "name": None, "color": badge["bg"], **badge}

    causes, error = await safe_fetch(directory, fallback=[], context="cause directory", timeout=timeout)
    match = next((c for c in causes or [] if c.slug == cause), None)

    if match is None or not match.color:
        if error is None:
            logger.warning(f"[Theme] No colour for cause {cause}, using default")
        badge = get_cause_color(cause, None)
        name = match.name if match else format_cause_name(cause)
        return {"cause": cause, "name": name, "color": badge["bg"], **badge}

    badge = get_cause_color(cause, match.color)
    return {"cause": cause, "name": match.name, "color": badge["bg"], **badge}
