#!/usr/bin/env python3
"""
Integration tests for the personalization MCP server.

The server is wired to an in-memory attribute store, a content client on a
mock transport and a fake SDK, then driven through its tool dispatcher.
"""

import asyncio
import json

import httpx
import pytest

from conftest import make_event, seed_registration
from impactconnect.contentstack import ContentstackClient
from impactconnect.mcp_server import PersonalizationMCPServer

EXPECTED_TOOLS = {
    "parse_search_query",
    "resolve_variant",
    "personalized_carousel",
    "cause_theme",
    "record_registration",
    "personalization_status",
}


def cms_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.startswith("/v3/content_types/landing_page/"):
        return httpx.Response(200, json={"entry": {
            "event_carousel_title": "Protect the Planet",
            "event_carousel_personalized_title": "Environment Events For You",
        }})
    if path == "/v3/content_types/opportunity/entries":
        return httpx.Response(200, json={"entries": [
            {"uid": "o1", "title": "Mangrove Planting", "slug": "mangrove-planting", "cause_slugs": ["environment"]},
            {"uid": "o2", "title": "Clinic Day", "slug": "clinic-day", "cause_slugs": ["healthcare"]},
        ]})
    if path == "/v3/content_types/cause/entries":
        return httpx.Response(200, json={"entries": [
            {"uid": "c1", "slug": "environment", "name": "Environment", "color": "#22c55e"},
        ]})
    return httpx.Response(404)


@pytest.fixture
async def server(store, fake_sdk):
    async def factory():
        return fake_sdk

    client = ContentstackClient(
        api_key="key",
        delivery_token="token",
        environment="production",
        base_url="https://cdn.test",
        landing_page_uid="blt_landing",
        retry_wait=0,
        transport=httpx.MockTransport(cms_handler),
    )
    server = PersonalizationMCPServer(
        store=store,
        content_client=client,
        sdk_factory=factory,
        install_signal_handlers=False,
    )
    yield server
    await server.shutdown()
    await client.aclose()


async def call(server, name, arguments):
    result = await server._call_tool(name, arguments)
    assert not result.isError, result.content[0].text
    return json.loads(result.content[0].text)


async def test_tools_registered(server):
    tools = await server._list_tools()
    assert {tool.name for tool in tools} == EXPECTED_TOOLS


async def test_parse_search_query_tool(server):
    data = await call(server, "parse_search_query", {"query": "online art workshop in Mumbai"})

    assert data["parsed"] == {
        "searchText": "art workshop",
        "city": "mumbai",
        "originalCityText": "Mumbai",
        "isVirtual": True,
    }
    assert data["searchRequest"]["filters"] == 'city:"mumbai" AND isVirtual:true'
    assert [chip["kind"] for chip in data["chips"]] == ["city", "virtual"]


async def test_resolve_variant_tool(server):
    assert (await call(server, "resolve_variant", {"cause": "environment"}))["variantUid"] == "cs707ea3af73ad88d6"
    missing = await call(server, "resolve_variant", {"cause": None})
    assert missing["variantUid"] is None
    assert missing["variantAlias"] is None


async def test_invalid_arguments_are_rejected(server):
    result = await server._call_tool("parse_search_query", {"text": "mumbai"})
    assert result.isError
    assert "Validation error" in result.content[0].text

    result = await server._call_tool("web_search", {"query": "mumbai"})
    assert result.isError


async def test_carousel_uses_stored_cause(server, store):
    seed_registration(store, ["environment"], "2026-10-01T10:00:00+00:00")
    baseline = [make_event("base1").to_dict()]

    data = await call(server, "personalized_carousel", {"baseline_events": baseline})

    assert data["personalized"] is True
    assert data["primaryCause"] == "environment"
    assert data["personalizedTitle"] == "Environment Events For You"
    assert [event["uid"] for event in data["events"]] == ["o1"]


async def test_carousel_with_explicit_null_cause(server, store):
    seed_registration(store, ["environment"], "2026-10-01T10:00:00+00:00")
    baseline = [make_event("base1").to_dict()]

    data = await call(server, "personalized_carousel", {"cause": None, "baseline_events": baseline})

    assert data["personalized"] is False
    assert data["title"] == "Discover Opportunities Near You"
    assert [event["uid"] for event in data["events"]] == ["base1"]


async def test_cause_theme_tool(server):
    data = await call(server, "cause_theme", {"cause": "environment"})
    assert data["color"] == "#22c55e"
    assert data["name"] == "Environment"


async def test_registration_syncs_primary_cause(server, fake_sdk):
    server.state_manager.start()
    await server.state_manager.initialize()

    registered = await call(server, "record_registration", {
        "opportunity_id": "o1",
        "opportunity_title": "Mangrove Planting",
        "opportunity_slug": "mangrove-planting",
        "opportunity_date": "2026-11-08",
        "cause_slugs": ["environment"],
        "name": "Asha",
        "email": "asha@example.org",
    })
    assert registered["primaryCause"] == "environment"
    assert registered["registrationId"].startswith("reg_")

    for _ in range(100):
        if fake_sdk.pushed:
            break
        await asyncio.sleep(0.01)
    assert fake_sdk.pushed == [{"primaryCause": "environment"}]

    status = await call(server, "personalization_status", {})
    assert status["primaryCause"] == "environment"
    assert status["lastObservedCause"] == "environment"
    assert status["variantUid"] == "cs707ea3af73ad88d6"
    assert status["causesByFrequency"] == [{"cause": "environment", "count": 1}]
    assert status["sdkAvailable"] is True
    assert status["userUid"] == "user-123"
    assert status["watching"] is True


async def test_metrics_are_collected(server):
    await call(server, "resolve_variant", {"cause": "education"})
    await server._call_tool("parse_search_query", {})

    metrics = server.get_metrics()
    if metrics["format"] == "prometheus":
        assert 'personalize_requests_total{tool_name="resolve_variant",status="success"} 1.0' in metrics["prometheus_metrics"]
        assert 'tool_name="parse_search_query"' in metrics["prometheus_metrics"]
    else:
        assert metrics["metrics"]["successful_requests"] == 1
        assert metrics["metrics"]["failed_requests"] == 1
