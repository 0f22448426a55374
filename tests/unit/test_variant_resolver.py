#!/usr/bin/env python3
"""
Unit tests for cause to variant resolution.
"""

import pytest

from impactconnect.variant_resolver import VariantResolver, get_resolver, resolve_variant


@pytest.mark.parametrize("cause, variant_uid", [
    ("environment", "cs707ea3af73ad88d6"),
    ("healthcare", "csdf502737bc24da70"),
    ("animal-welfare", "cs8d09eb0af84f890a"),
    ("education", "cs9c5c46d58449eba6"),
])
def test_known_causes(cause, variant_uid):
    assert resolve_variant(cause) == variant_uid


@pytest.mark.parametrize("cause", [None, "", "space-exploration", "Education", 42])
def test_unknown_or_missing_cause_resolves_to_none(cause):
    assert resolve_variant(cause) is None


def test_variant_aliases_and_short_uids():
    resolver = get_resolver()
    assert resolver.variant_short_uid("education") == "3"
    assert resolver.variant_alias("environment") == "cs_personalize_a_0"
    assert resolver.variant_alias("unknown") is None
    assert resolver.cause_for_short_uid("2") == "animal-welfare"
    assert resolver.cause_for_short_uid("9") is None


def test_injected_plain_table():
    resolver = VariantResolver({"arts": "cs_arts", "sports": "cs_sports"}, experience_short_uid="b")
    assert resolver.resolve("arts") == "cs_arts"
    assert resolver.variant_alias("sports") == "cs_personalize_b_1"
    assert resolver.has_mapping("arts")
    assert not resolver.has_mapping("music")
    assert [m.cause for m in resolver.all_mappings()] == ["arts", "sports"]


def test_empty_table_never_raises():
    resolver = VariantResolver({})
    assert resolver.resolve("education") is None
    assert resolver.all_mappings() == []
