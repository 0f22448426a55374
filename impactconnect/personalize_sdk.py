"""
Client for the personalize edge API.

A small async stand-in for the vendor browser SDK: it fetches the manifest
(user UID and active variant per experience), pushes user attributes and
records impressions and events. Every HTTP failure surfaces as
``PersonalizeError``; callers decide whether that is fatal.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from .errors import PersonalizeError

USER_UID_HEADER = "x-cs-personalize-user-uid"
PROJECT_UID_HEADER = "x-project-uid"


class PersonalizeSDK:
    """Handle for one personalized user on one project."""

    def __init__(
        self,
        project_uid: str,
        edge_api_url: str,
        client: httpx.AsyncClient,
        user_uid: Optional[str] = None,
    ):
        self.project_uid = project_uid
        self.edge_api_url = edge_api_url.rstrip("/")
        self._client = client
        self._user_uid = user_uid
        self._variants: Dict[str, Optional[str]] = {}

    @classmethod
    async def init(
        cls,
        project_uid: str,
        edge_api_url: str,
        user_uid: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PersonalizeSDK":
        """
        Create a handle and load its manifest.

        Raises:
            PersonalizeError: If the project UID is missing or the manifest
                cannot be fetched
        """
        if not project_uid:
            raise PersonalizeError("Personalize project UID not configured")

        client = httpx.AsyncClient(timeout=timeout, transport=transport)
        sdk = cls(project_uid, edge_api_url, client, user_uid)
        try:
            await sdk.refresh_manifest()
        except Exception:
            await client.aclose()
            raise
        return sdk

    def _headers(self) -> Dict[str, str]:
        headers = {PROJECT_UID_HEADER: self.project_uid}
        if self._user_uid:
            headers[USER_UID_HEADER] = self._user_uid
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.edge_api_url}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise PersonalizeError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise PersonalizeError(f"{method} {path} returned {response.status_code}: {response.text[:200]}")

        returned_uid = response.headers.get(USER_UID_HEADER)
        if returned_uid:
            self._user_uid = returned_uid
        return response

    async def refresh_manifest(self) -> None:
        response = await self._request("GET", "/manifest")
        try:
            manifest = response.json()
        except ValueError as e:
            raise PersonalizeError(f"Invalid manifest: {e}") from e

        variants: Dict[str, Optional[str]] = {}
        for experience in manifest.get("experiences", []) or []:
            short_uid = experience.get("shortUid")
            if short_uid:
                variants[short_uid] = experience.get("activeVariantShortUid")
        self._variants = variants
        logger.debug(f"[Personalize SDK] Manifest loaded: {variants}")

    def get_user_id(self) -> Optional[str]:
        return self._user_uid

    def get_variants(self) -> Dict[str, Optional[str]]:
        return dict(self._variants)

    def get_active_variant(self, experience_short_uid: str) -> Optional[str]:
        return self._variants.get(experience_short_uid)

    def get_variant_aliases(self) -> List[str]:
        return [
            f"cs_personalize_{experience}_{variant}"
            for experience, variant in self._variants.items()
            if variant is not None
        ]

    async def set(self, attributes: Dict[str, Any]) -> None:
        """Push user attributes, then reload the manifest they may have changed."""
        await self._request("PATCH", "/user-attributes", json=attributes)
        await self.refresh_manifest()

    async def trigger_impression(self, experience_short_uid: str) -> None:
        variant = self._variants.get(experience_short_uid)
        await self._request("POST", "/events", json=[{
            "type": "IMPRESSION",
            "experienceShortUid": experience_short_uid,
            "variantShortUid": variant,
        }])

    async def trigger_event(self, event_key: str) -> None:
        await self._request("POST", "/events", json=[{"type": "EVENT", "eventKey": event_key}])

    async def aclose(self) -> None:
        await self._client.aclose()
