"""
Content delivery API client.

Serves the three content collaborators the personalization layer needs:
- Landing copy for a content variant (variant UID sent as a header)
- Upcoming events for a cause, newest first, capped for the carousel
- The cause directory (slug, name, colour) used for theming

Transient failures (network errors, 429, 5xx) are retried with tenacity;
every other error response raises ``ContentstackError`` straight away.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from config.settings import config
from .errors import ContentstackError, is_transient
from .models import (
    CarouselCopy,
    Cause,
    OpportunityStatus,
    OpportunitySummary,
    transform_cause,
    transform_opportunity_summary,
)

OPPORTUNITY_CONTENT_TYPE = "opportunity"
CAUSE_CONTENT_TYPE = "cause"
LANDING_PAGE_CONTENT_TYPE = "landing_page"
VARIANT_HEADER = "x-cs-variant-uid"


class ContentstackClient:
    """Async delivery API client for one stack and environment."""

    def __init__(
        self,
        api_key: str,
        delivery_token: str,
        environment: str,
        base_url: str,
        branch: Optional[str] = None,
        locale: str = "en-us",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_enabled: bool = True,
        retry_wait: float = 1.0,
        landing_page_uid: Optional[str] = None,
        max_carousel_items: int = 4,
        carousel_fetch_limit: int = 50,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.environment = environment
        self.locale = locale
        self.max_retries = max_retries
        self.retry_enabled = retry_enabled
        self.retry_wait = retry_wait
        self.landing_page_uid = landing_page_uid
        self.max_carousel_items = max_carousel_items
        self.carousel_fetch_limit = carousel_fetch_limit

        headers = {"api_key": api_key, "access_token": delivery_token}
        if branch:
            headers["branch"] = branch
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ContentstackClient":
        return cls(
            api_key=config.CONTENTSTACK_API_KEY,
            delivery_token=config.CONTENTSTACK_DELIVERY_TOKEN,
            environment=config.CONTENTSTACK_ENVIRONMENT,
            base_url=config.CONTENTSTACK_BASE_URL,
            branch=config.CONTENTSTACK_BRANCH,
            locale=config.CONTENTSTACK_LOCALE,
            timeout=config.TIMEOUT_SECONDS,
            max_retries=config.MAX_RETRIES,
            retry_enabled=config.ENABLE_RETRY_LOGIC,
            landing_page_uid=config.LANDING_PAGE_ENTRY_UID,
            max_carousel_items=config.MAX_CAROUSEL_ITEMS,
            carousel_fetch_limit=config.CAROUSEL_FETCH_LIMIT,
            transport=transport,
        )

    # Transport

    async def _get_once(self, path: str, params: Dict[str, Any], headers: Optional[Dict[str, str]]) -> Dict[str, Any]:
        response = await self._client.get(path, params=params, headers=headers)
        if response.status_code >= 400:
            raise ContentstackError(
                f"GET {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ContentstackError(f"GET {path} returned invalid JSON: {e}", status_code=response.status_code)

    async def _get(self, path: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        params = {"environment": self.environment, "locale": self.locale, **params}
        attempts = max(1, self.max_retries) if self.retry_enabled else 1

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.retry_wait, max=10),
            retry=retry_if_exception(is_transient),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(f"[CMS] Retrying GET {path} (attempt {attempt.retry_state.attempt_number})")
                return await self._get_once(path, params, headers)

    # Generic entry access

    async def get_entry(
        self,
        content_type_uid: str,
        entry_uid: str,
        variant_uid: Optional[str] = None,
        include_fallback: bool = False,
    ) -> Optional[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if include_fallback:
            params["include_fallback"] = "true"
        headers = {VARIANT_HEADER: variant_uid} if variant_uid else None

        data = await self._get(f"/v3/content_types/{content_type_uid}/entries/{entry_uid}", params, headers)
        return data.get("entry")

    async def get_entries(
        self,
        content_type_uid: str,
        query: Optional[Dict[str, Any]] = None,
        limit: int = 100,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if query:
            params["query"] = json.dumps(query)
        if order_by:
            params["desc" if descending else "asc"] = order_by

        data = await self._get(f"/v3/content_types/{content_type_uid}/entries", params)
        entries = data.get("entries")
        if not isinstance(entries, list):
            raise ContentstackError(f"{content_type_uid} entries response has no entries list")
        return entries

    # Collaborators

    async def get_landing_copy(self, variant_uid: str) -> Optional[CarouselCopy]:
        """
        Carousel copy from the landing page entry for one variant.

        Returns:
            The copy, or None when the landing page entry does not exist
        """
        if not self.landing_page_uid:
            logger.warning("[Landing] No landing page entry UID configured")
            return None

        entry = await self.get_entry(
            LANDING_PAGE_CONTENT_TYPE,
            self.landing_page_uid,
            variant_uid=variant_uid,
            include_fallback=True,
        )
        if not entry:
            logger.warning(f"[Landing] No landing page entry found for variant {variant_uid}")
            return None

        logger.info(f"[Landing] Retrieved landing copy for variant {variant_uid}")
        return CarouselCopy(
            title=entry.get("event_carousel_title") or None,
            personalized_title=entry.get("event_carousel_personalized_title") or None,
            cta_text=entry.get("event_carousel_cta_text") or None,
            cta_link=entry.get("event_carousel_cta_link") or None,
        )

    async def get_carousel_opportunities(self, cause: Optional[str] = None) -> List[OpportunitySummary]:
        """Upcoming or ongoing events, newest start date first, optionally for one cause."""
        entries = await self.get_entries(
            OPPORTUNITY_CONTENT_TYPE,
            query={"status": {"$in": [OpportunityStatus.UPCOMING.value, OpportunityStatus.ONGOING.value]}},
            limit=self.carousel_fetch_limit,
            order_by="start_date",
            descending=True,
        )

        opportunities = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning(f"[Carousel] Skipping non-object opportunity entry: {entry!r}")
                continue
            try:
                opportunities.append(transform_opportunity_summary(entry))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"[Carousel] Failed to transform opportunity {entry.get('uid')}: {e}")

        if cause:
            opportunities = [opp for opp in opportunities if cause in opp.cause_slugs]
            logger.info(f"[Carousel] Filtered {len(opportunities)} opportunities for cause '{cause}'")
        else:
            logger.info(f"[Carousel] Found {len(opportunities)} total opportunities")

        return opportunities[:self.max_carousel_items]

    async def get_all_causes(self) -> List[Cause]:
        entries = await self.get_entries(CAUSE_CONTENT_TYPE, limit=100, order_by="name")
        return [transform_cause(entry) for entry in entries]

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ContentstackClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
