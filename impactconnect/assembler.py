"""
Personalized content assembly for the event carousel.

Given a primary cause, resolves its content variant and fetches, side by
side, the variant's landing copy and the cause's events. Each fetch falls
back on its own:

- Copy: a failed or empty fetch keeps the default fields; a partial one
  overrides only the fields it provides
- Events: a failed or empty fetch keeps the caller's baseline events

``personalized`` is true only when cause-specific events were found. The
assembler never raises past ``assemble``.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from config.settings import config
from .errors import safe_fetch
from .models import CarouselCopy, DefaultContent, OpportunitySummary, PersonalizedPayload
from .variant_resolver import VariantResolver, get_resolver

CopyFetcher = Callable[[str], Awaitable[Optional[CarouselCopy]]]
EventFetcher = Callable[[str], Awaitable[List[OpportunitySummary]]]


class PersonalizedContentAssembler:
    """Builds a PersonalizedPayload from defaults, variant copy and cause events."""

    def __init__(
        self,
        fetch_copy: CopyFetcher,
        fetch_events: EventFetcher,
        resolver: Optional[VariantResolver] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            fetch_copy: Landing copy by variant identifier
            fetch_events: Event summaries filtered by cause
            resolver: Cause to variant table, defaults to the configured one
            timeout: Per-fetch time budget in seconds
        """
        self.fetch_copy = fetch_copy
        self.fetch_events = fetch_events
        self.resolver = resolver or get_resolver()
        self.timeout = timeout if timeout is not None else config.TIMEOUT_SECONDS

    @classmethod
    def from_client(cls, client, resolver: Optional[VariantResolver] = None, timeout: Optional[float] = None):
        """Wire the assembler to a ContentstackClient."""
        return cls(client.get_landing_copy, client.get_carousel_opportunities, resolver, timeout)

    async def assemble(self, cause: Optional[str], defaults: DefaultContent) -> PersonalizedPayload:
        try:
            return await self._assemble(cause, defaults)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[Carousel] Assembly failed, using defaults: {e!r}")
            return PersonalizedPayload.from_defaults(defaults)

    async def _assemble(self, cause: Optional[str], defaults: DefaultContent) -> PersonalizedPayload:
        payload = PersonalizedPayload.from_defaults(defaults)

        if not cause:
            logger.debug("[Carousel] No primary cause, using default content")
            return payload

        variant_uid = self.resolver.resolve(cause)
        if variant_uid is None:
            logger.info(f"[Carousel] No variant for cause '{cause}', using default content")
            return payload

        logger.info(f"[Carousel] Cause '{cause}' -> variant {variant_uid}")
        (copy, copy_error), (events, events_error) = await asyncio.gather(
            safe_fetch(lambda: self.fetch_copy(variant_uid), context=f"landing copy ({variant_uid})", timeout=self.timeout),
            safe_fetch(lambda: self.fetch_events(cause), fallback=[], context=f"carousel events ({cause})", timeout=self.timeout),
        )

        payload.primary_cause = cause

        if copy is not None:
            payload.title = copy.title or payload.title
            payload.personalized_title = copy.personalized_title or payload.personalized_title
            payload.cta_text = copy.cta_text or payload.cta_text
            payload.cta_link = copy.cta_link or payload.cta_link
            payload.variant_uid = variant_uid
            logger.info("[Carousel] Using personalized landing copy")
        elif copy_error is None:
            logger.info(f"[Carousel] Variant {variant_uid} has no landing copy, keeping defaults")

        if events:
            baseline_uids = {event.uid for event in defaults.events}
            payload.events = list(events)
            payload.personalized = any(event.uid not in baseline_uids for event in events)
            if payload.personalized:
                logger.info(f"[Carousel] Showing {len(events)} personalized events for '{cause}'")
        elif events_error is None:
            logger.info(f"[Carousel] No events for cause '{cause}', keeping baseline events")

        return payload


async def assemble(
    cause: Optional[str],
    defaults: DefaultContent,
    fetch_copy: CopyFetcher,
    fetch_events: EventFetcher,
    resolver: Optional[VariantResolver] = None,
    timeout: Optional[float] = None,
) -> PersonalizedPayload:
    """One-shot helper around PersonalizedContentAssembler."""
    assembler = PersonalizedContentAssembler(fetch_copy, fetch_events, resolver, timeout)
    return await assembler.assemble(cause, defaults)
