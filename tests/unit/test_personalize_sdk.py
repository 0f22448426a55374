#!/usr/bin/env python3
"""
Unit tests for the personalize edge API client.
"""

import json

import httpx
import pytest

from impactconnect.errors import PersonalizeError
from impactconnect.personalize_sdk import PersonalizeSDK

EDGE_URL = "https://personalize.test"
PROJECT_UID = "6612ab34cd56ef7890ab12cd"


class EdgeAPI:
    """Records requests and serves a manifest whose variant follows the pushed cause."""

    def __init__(self, manifest_status: int = 200):
        self.requests = []
        self.manifest_status = manifest_status
        self.variant = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        headers = {"x-cs-personalize-user-uid": "uid-1"}

        if request.url.path == "/manifest":
            if self.manifest_status != 200:
                return httpx.Response(self.manifest_status, text="unavailable")
            return httpx.Response(200, headers=headers, json={
                "experiences": [
                    {"shortUid": "a", "activeVariantShortUid": self.variant},
                    {"shortUid": "b", "activeVariantShortUid": "1"},
                ]
            })
        if request.url.path == "/user-attributes":
            if json.loads(request.content).get("primaryCause") == "education":
                self.variant = "3"
            return httpx.Response(200, headers=headers, json={})
        if request.url.path == "/events":
            return httpx.Response(200, json={})
        return httpx.Response(404)


async def make_sdk(api: EdgeAPI) -> PersonalizeSDK:
    return await PersonalizeSDK.init(PROJECT_UID, EDGE_URL, transport=httpx.MockTransport(api))


async def test_init_loads_manifest_and_user():
    api = EdgeAPI()
    sdk = await make_sdk(api)

    assert sdk.get_user_id() == "uid-1"
    assert sdk.get_variants() == {"a": None, "b": "1"}
    assert sdk.get_variant_aliases() == ["cs_personalize_b_1"]
    assert api.requests[0].headers["x-project-uid"] == PROJECT_UID
    await sdk.aclose()


async def test_set_pushes_attributes_and_refreshes_variants():
    api = EdgeAPI()
    sdk = await make_sdk(api)

    await sdk.set({"primaryCause": "education"})

    patch = [r for r in api.requests if r.method == "PATCH"][0]
    assert json.loads(patch.content) == {"primaryCause": "education"}
    assert patch.headers["x-cs-personalize-user-uid"] == "uid-1"
    assert sdk.get_active_variant("a") == "3"
    assert "cs_personalize_a_3" in sdk.get_variant_aliases()
    await sdk.aclose()


async def test_impressions_and_events():
    api = EdgeAPI()
    sdk = await make_sdk(api)

    await sdk.trigger_impression("b")
    await sdk.trigger_event("registration_completed")

    bodies = [json.loads(r.content) for r in api.requests if r.url.path == "/events"]
    assert bodies == [
        [{"type": "IMPRESSION", "experienceShortUid": "b", "variantShortUid": "1"}],
        [{"type": "EVENT", "eventKey": "registration_completed"}],
    ]
    await sdk.aclose()


async def test_init_requires_project_uid():
    with pytest.raises(PersonalizeError):
        await PersonalizeSDK.init("", EDGE_URL)


async def test_init_fails_when_manifest_unavailable():
    with pytest.raises(PersonalizeError):
        await make_sdk(EdgeAPI(manifest_status=503))


async def test_transport_errors_surface_as_personalize_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PersonalizeError):
        await PersonalizeSDK.init(PROJECT_UID, EDGE_URL, transport=httpx.MockTransport(handler))
