"""Shared fixtures for unit and integration tests."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from impactconnect.attribute_store import LocalAttributeStore
from impactconnect.models import DefaultContent, OpportunitySummary


class FakeSDK:
    """In-process stand-in for a PersonalizeSDK handle."""

    def __init__(self, user_uid: str = "user-123"):
        self.user_uid = user_uid
        self.pushed: List[Dict[str, Any]] = []
        self.impressions: List[str] = []
        self.events: List[str] = []
        self.fail_set = False
        self.set_delay = 0.0

    async def set(self, attributes: Dict[str, Any]) -> None:
        self.pushed.append(dict(attributes))
        if self.set_delay:
            await asyncio.sleep(self.set_delay)
        if self.fail_set:
            raise RuntimeError("edge API unavailable")

    def get_user_id(self) -> Optional[str]:
        return self.user_uid

    def get_variant_aliases(self) -> List[str]:
        return ["cs_personalize_a_3"]

    def get_active_variant(self, experience_short_uid: str) -> Optional[str]:
        return "3" if experience_short_uid == "a" else None

    async def trigger_impression(self, experience_short_uid: str) -> None:
        self.impressions.append(experience_short_uid)

    async def trigger_event(self, event_key: str) -> None:
        self.events.append(event_key)


def seed_registration(
    store: LocalAttributeStore,
    causes: List[str],
    registered_at: str,
    email: str = "asha@example.org",
    opportunity_id: Optional[str] = None,
) -> None:
    """Write a registration with a fixed timestamp straight into the store."""
    data = store._read()
    registrations = data.setdefault("registrations", [])
    registrations.append({
        "id": f"reg_{len(registrations)}",
        "opportunity_id": opportunity_id or f"opp_{len(registrations)}",
        "opportunity_title": "Beach Cleanup",
        "opportunity_slug": "beach-cleanup",
        "opportunity_date": "2026-11-01",
        "opportunity_location": "Mumbai",
        "registered_at": registered_at,
        "name": "Asha",
        "email": email,
        "cause_slugs": causes,
    })
    data["user_email"] = email
    store._write(data)


def make_event(uid: str, causes: Optional[List[str]] = None, start_date: str = "2026-11-01") -> OpportunitySummary:
    return OpportunitySummary(
        uid=uid,
        title=f"Event {uid}",
        slug=f"event-{uid}",
        start_date=start_date,
        cause_slugs=list(causes or []),
    )


@pytest.fixture
def store() -> LocalAttributeStore:
    return LocalAttributeStore()


@pytest.fixture
def fake_sdk() -> FakeSDK:
    return FakeSDK()


@pytest.fixture
def baseline_events() -> List[OpportunitySummary]:
    return [make_event("base1", ["environment"]), make_event("base2", ["healthcare"])]


@pytest.fixture
def defaults(baseline_events) -> DefaultContent:
    return DefaultContent(
        title="Discover Opportunities Near You",
        personalized_title="Recommended For You",
        cta_text="Discover More",
        cta_link="/opportunities",
        events=baseline_events,
    )
