#!/usr/bin/env python3
"""
Unit tests for the local attribute store.
"""

import json

import pytest

from conftest import seed_registration
from impactconnect.attribute_store import LocalAttributeStore


def test_empty_store_has_no_primary_cause(store):
    assert store.get_registrations() == []
    assert store.get_primary_cause() is None
    assert store.get_causes_by_frequency() == []


def test_add_registration_remembers_user(store):
    registration = store.add_registration(
        opportunity_id="opp1",
        opportunity_title="Beach Cleanup",
        opportunity_slug="beach-cleanup",
        opportunity_date="2026-11-01",
        name=" Asha ",
        email="Asha@Example.org ",
        cause_slugs=["environment", "animal-welfare"],
    )

    assert registration.id.startswith("reg_")
    assert store.get_user_email() == "asha@example.org"
    assert store.get_user_name() == "Asha"
    assert store.get_primary_cause() == "environment"
    assert store.is_registered_for("opp1")
    assert not store.is_registered_for("opp2")


def test_primary_cause_comes_from_most_recent_registration(store):
    seed_registration(store, ["healthcare"], "2026-10-02T10:00:00+00:00")
    seed_registration(store, ["education"], "2026-10-03T10:00:00+00:00")
    seed_registration(store, ["environment"], "2026-10-01T10:00:00+00:00")

    assert store.get_primary_cause() == "education"


def test_latest_registration_without_causes_means_no_primary_cause(store):
    seed_registration(store, ["healthcare"], "2026-10-01T10:00:00+00:00")
    seed_registration(store, [], "2026-10-05T10:00:00+00:00")

    assert store.get_primary_cause() is None


def test_primary_cause_by_email(store):
    seed_registration(store, ["healthcare"], "2026-10-01T10:00:00+00:00", email="a@example.org")
    seed_registration(store, ["education"], "2026-10-02T10:00:00+00:00", email="b@example.org")

    assert store.get_primary_cause("A@example.org") == "healthcare"
    assert store.get_primary_cause("nobody@example.org") is None


def test_causes_by_frequency(store):
    seed_registration(store, ["education", "healthcare"], "2026-10-01T10:00:00+00:00")
    seed_registration(store, ["education"], "2026-10-02T10:00:00+00:00")

    assert store.get_causes_by_frequency() == [("education", 2), ("healthcare", 1)]


def test_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "data" / "user_data.json"
    LocalAttributeStore(str(path)).add_registration(
        "opp1", "Food Drive", "food-drive", "2026-11-02", "Ravi", "ravi@example.org", cause_slugs=["healthcare"]
    )

    reopened = LocalAttributeStore(str(path))
    assert reopened.get_primary_cause() == "healthcare"
    assert len(reopened.get_registrations()) == 1


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "user_data.json"
    path.write_text("{not json", encoding="utf-8")

    store = LocalAttributeStore(str(path))
    assert store.get_registrations() == []
    assert store.get_primary_cause() is None


def test_malformed_registration_is_skipped(store):
    seed_registration(store, ["education"], "2026-10-01T10:00:00+00:00")
    data = store._read()
    data["registrations"].append({"opportunity_id": "missing-id"})
    store._write(data)

    assert [r.cause_slugs for r in store.get_registrations()] == [["education"]]


def test_subscribers_notified_on_write(store):
    calls = []
    unsubscribe = store.subscribe(lambda: calls.append("changed"))

    store.set_user_email("x@example.org")
    store.clear()
    assert calls == ["changed", "changed"]

    unsubscribe()
    store.set_user_name("X")
    assert len(calls) == 2


def test_failing_subscriber_does_not_break_writes(store):
    def broken():
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.set_user_email("x@example.org")
    assert store.get_user_email() == "x@example.org"


@pytest.mark.parametrize("registrations", [None, 5, "reg_1", {"id": "reg_1"}])
def test_non_list_registrations_read_as_empty(tmp_path, registrations):
    path = tmp_path / "user_data.json"
    path.write_text(json.dumps({"registrations": registrations}), encoding="utf-8")

    store = LocalAttributeStore(str(path))
    assert store.get_registrations() == []
    assert store.get_primary_cause() is None
    assert store.get_causes_by_frequency() == []

    store.add_registration(
        "opp1", "Food Drive", "food-drive", "2026-11-02", "Ravi", "ravi@example.org", cause_slugs=["healthcare"]
    )
    assert store.get_primary_cause() == "healthcare"


def test_non_list_cause_slugs_are_ignored(store):
    seed_registration(store, "education", "2026-10-01T10:00:00+00:00")
    seed_registration(store, None, "2026-10-02T10:00:00+00:00")

    assert [r.cause_slugs for r in store.get_registrations()] == [[], []]
    assert store.get_primary_cause() is None


def test_non_dict_registration_is_skipped(store):
    seed_registration(store, ["education"], "2026-10-01T10:00:00+00:00")
    data = store._read()
    data["registrations"].insert(0, "garbage")
    store._write(data)

    assert store.get_primary_cause() == "education"
