#!/usr/bin/env python3
"""
Personalization Demo - Demonstrates key functionality without network access.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from impactconnect.assembler import assemble
from impactconnect.attribute_store import LocalAttributeStore
from impactconnect.models import CarouselCopy, DefaultContent, OpportunitySummary
from impactconnect.personalize_service import PersonalizationStateManager
from impactconnect.query_parser import build_search_request, parse
from impactconnect.variant_resolver import get_resolver


class PrintingSDK:
    """Prints attribute pushes instead of calling the edge API."""

    async def set(self, attributes):
        print(f"   → SDK received attributes: {attributes}")

    def get_user_id(self):
        return "demo-user"


async def demo_personalization():
    """Demonstrate key personalization features."""

    print("🚀 **Personalization Feature Demonstration**")
    print("=" * 60)

    # Demo 1: Query parsing
    print("\n1. 🔎 **Query Parsing Demo**")
    for query in ["art workshop in mumbai", "online teaching volunteer", "Beach cleanup near Bombay!"]:
        parsed = parse(query)
        print(f"   Query: '{query}'")
        print(f"   → Search text: '{parsed.search_text}'")
        print(f"   → City: {parsed.city} (typed as: {parsed.original_city_text})")
        print(f"   → Virtual: {parsed.is_virtual}")
        print(f"   → Filters: {build_search_request(parsed)['filters'] or '(none)'}")

    # Demo 2: Variant resolution
    print("\n2. 🎯 **Variant Resolution Demo**")
    resolver = get_resolver()
    for cause in ["environment", "education", "space-exploration", None]:
        print(f"   {cause!r:22} → {resolver.resolve(cause)}")

    # Demo 3: State manager
    print("\n3. 👤 **Primary Cause Sync Demo**")
    store = LocalAttributeStore()

    async def factory():
        return PrintingSDK()

    async with PersonalizationStateManager(store, sdk_factory=factory, poll_interval=0.1) as manager:
        await manager.initialize()
        store.add_registration(
            opportunity_id="demo1",
            opportunity_title="Reading Camp",
            opportunity_slug="reading-camp",
            opportunity_date="2026-11-08",
            name="Demo User",
            email="demo@example.org",
            cause_slugs=["education"],
        )
        await asyncio.sleep(0.3)
        print(f"   Stored primary cause: {store.get_primary_cause()}")

    # Demo 4: Carousel assembly
    print("\n4. 🎠 **Carousel Assembly Demo**")
    baseline = [OpportunitySummary(uid="b1", title="City Marathon Support", slug="marathon", start_date="2026-11-01")]
    defaults = DefaultContent.from_config(baseline)

    async def fetch_copy(variant_uid):
        return CarouselCopy(personalized_title="Education Events For You")

    async def fetch_events(cause):
        return [OpportunitySummary(uid="e1", title="Reading Camp", slug="reading-camp",
                                   start_date="2026-11-08", cause_slugs=[cause])]

    for cause in [None, "education"]:
        payload = await assemble(cause, defaults, fetch_copy, fetch_events)
        print(f"   Cause: {cause}")
        print(f"   → Heading: {payload.heading}")
        print(f"   → Personalized: {payload.personalized}")
        print(f"   → Events: {[event.title for event in payload.events]}")

    print("\n✅ Demo complete")


if __name__ == "__main__":
    asyncio.run(demo_personalization())
