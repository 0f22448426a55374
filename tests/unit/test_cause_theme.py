#!/usr/bin/env python3
"""
Unit tests for cause theming helpers.
"""

import asyncio

from impactconnect.cause_theme import (
    DEFAULT_CAUSE_COLOR,
    create_cause_color_map,
    format_cause_name,
    get_cause_color,
    is_light_color,
    lighten_color,
    resolve_cause_theme,
)
from impactconnect.errors import ContentstackError
from impactconnect.models import Cause

CAUSES = [
    Cause("environment", "Environment", "#22c55e"),
    Cause("education", "Education", "#fde047"),
    Cause("healthcare", "Healthcare", None),
]


def test_color_helpers():
    assert is_light_color("#ffffff")
    assert not is_light_color("#000000")
    assert is_light_color("#fff")
    assert lighten_color("#000000", 10) == "#1a1a1a"
    assert lighten_color("#f0f0f0", 50) == "#ffffff"


def test_get_cause_color():
    assert get_cause_color("education", "#fde047")["text"] == "#000000"
    assert get_cause_color("environment", "#14532d")["text"] == "#ffffff"
    assert get_cause_color("x", None) == {
        "bg": DEFAULT_CAUSE_COLOR,
        "text": "#ffffff",
        "border": lighten_color(DEFAULT_CAUSE_COLOR, 15),
    }
    assert get_cause_color("x", "not-a-colour")["bg"] == DEFAULT_CAUSE_COLOR


def test_format_and_map():
    assert format_cause_name("animal-welfare") == "Animal Welfare"
    assert create_cause_color_map(CAUSES) == {"environment": "#22c55e", "education": "#fde047"}


async def test_theme_for_known_cause():
    async def directory():
        return CAUSES

    theme = await resolve_cause_theme("environment", directory)
    assert theme["color"] == "#22c55e"
    assert theme["name"] == "Environment"
    assert theme["bg"] == "#22c55e"


async def test_theme_falls_back_to_default_colour():
    async def directory():
        return CAUSES

    async def broken():
        raise ContentstackError("down", status_code=503)

    async def slow():
        await asyncio.sleep(1)
        return CAUSES

    no_cause = await resolve_cause_theme(None, directory)
    assert no_cause["cause"] is None and no_cause["color"] == DEFAULT_CAUSE_COLOR

    without_colour = await resolve_cause_theme("healthcare", directory)
    assert without_colour["color"] == DEFAULT_CAUSE_COLOR
    assert without_colour["name"] == "Healthcare"

    unreachable = await resolve_cause_theme("animal-welfare", broken)
    assert unreachable["color"] == DEFAULT_CAUSE_COLOR
    assert unreachable["name"] == "Animal Welfare"

    timed_out = await resolve_cause_theme("environment", slow, timeout=0.01)
    assert timed_out["color"] == DEFAULT_CAUSE_COLOR


async def test_configured_default_colour_drives_badge_and_theme(monkeypatch):
    monkeypatch.setattr(
        "impactconnect.cause_theme.load_carousel_defaults", lambda: {"default_cause_color": "#0ea5e9"}
    )

    async def directory():
        return CAUSES

    assert get_cause_color("x", None)["bg"] == "#0ea5e9"

    for cause in (None, "healthcare", "animal-welfare"):
        theme = await resolve_cause_theme(cause, directory)
        assert theme["color"] == theme["bg"] == "#0ea5e9"
        assert theme["border"] == lighten_color("#0ea5e9", 15)


async def test_invalid_configured_default_falls_back_to_builtin(monkeypatch):
    monkeypatch.setattr(
        "impactconnect.cause_theme.load_carousel_defaults", lambda: {"default_cause_color": "purple-ish"}
    )

    async def directory():
        return [Cause("environment", "Environment", "not-a-colour")]

    theme = await resolve_cause_theme("environment", directory)
    assert theme["color"] == theme["bg"] == DEFAULT_CAUSE_COLOR
