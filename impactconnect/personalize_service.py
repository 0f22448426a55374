"""
Personalization state manager.

Owns the personalize SDK handle and keeps the user's ``primaryCause``
attribute in step with the locally stored primary cause:

- ``initialize()`` runs the SDK bootstrap once; concurrent callers await the
  same in-flight task. Failure leaves a ``None`` handle and is only logged.
- A polling task re-reads the stored cause every ``poll_interval`` seconds.
  Store writes also trigger an immediate check through a subscription.
- A changed, non-empty cause is pushed exactly once. The last observed value
  is updated before the push, so a failed push is not retried.

Personalization is best effort: nothing here raises to callers.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from config.settings import config
from .attribute_store import LocalAttributeStore
from .personalize_sdk import PersonalizeSDK

SdkFactory = Callable[[], Awaitable[Optional[PersonalizeSDK]]]


async def default_sdk_factory() -> Optional[PersonalizeSDK]:
    """Build an SDK handle from configuration, None when not configured."""
    if not config.PERSONALIZE_PROJECT_UID:
        logger.warning("[Personalize] PERSONALIZE_PROJECT_UID not set - personalization disabled")
        return None
    return await PersonalizeSDK.init(
        project_uid=config.PERSONALIZE_PROJECT_UID,
        edge_api_url=config.PERSONALIZE_EDGE_API_URL,
        timeout=config.TIMEOUT_SECONDS,
    )


class PersonalizationStateManager:
    """Keeps the SDK's user attributes consistent with the stored primary cause."""

    def __init__(
        self,
        store: LocalAttributeStore,
        sdk_factory: Optional[SdkFactory] = None,
        poll_interval: Optional[float] = None,
        push_timeout: Optional[float] = None,
    ):
        self.store = store
        self._sdk_factory = sdk_factory or default_sdk_factory
        self.poll_interval = poll_interval if poll_interval is not None else config.CAUSE_POLL_INTERVAL
        self.push_timeout = push_timeout if push_timeout is not None else config.TIMEOUT_SECONDS

        self._handle: Optional[PersonalizeSDK] = None
        self._init_task: Optional[asyncio.Task] = None
        self.last_observed_cause: Optional[str] = None

        self._poll_task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending_checks: Set[asyncio.Task] = set()

    # Initialization

    async def initialize(self) -> Optional[PersonalizeSDK]:
        """Bootstrap the SDK once and return the handle (possibly None)."""
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._do_init())
        # Shielded so one cancelled waiter does not cancel the shared bootstrap
        return await asyncio.shield(self._init_task)

    async def _do_init(self) -> Optional[PersonalizeSDK]:
        logger.info("[Personalize] Starting SDK initialization...")
        try:
            self._handle = await self._sdk_factory()
        except Exception as e:
            logger.error(f"[Personalize] Failed to initialize SDK: {e}")
            self._handle = None

        if self._handle is None:
            logger.warning("[Personalize] SDK not available - attribute pushes are no-ops")
        else:
            logger.info(f"[Personalize] SDK initialized (user: {self._handle.get_user_id()})")
        return self._handle

    def get_handle(self) -> Optional[PersonalizeSDK]:
        return self._handle

    def is_initialized(self) -> bool:
        return self._handle is not None

    # Change detection

    async def check_now(self) -> bool:
        """
        Run one change-detection tick.

        Returns:
            True when a push was attempted for a newly observed cause
        """
        try:
            current = self.store.get_primary_cause()
        except Exception as e:
            logger.error(f"[Personalize] Could not read primary cause: {e}")
            return False

        if current == self.last_observed_cause:
            return False

        self.last_observed_cause = current
        logger.info(f"[Personalize] Primary cause changed to: {current}")

        if current is None:
            return False

        await self._push({"primaryCause": current})
        return True

    async def _push(self, attributes: Dict[str, Any]) -> None:
        handle = self._handle
        if handle is None:
            logger.warning(f"[Personalize] SDK not initialized, skipping attributes {attributes}")
            return
        try:
            await asyncio.wait_for(handle.set(attributes), timeout=self.push_timeout)
            logger.info(f"[Personalize] User attributes set: {attributes}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[Personalize] Failed to set user attributes {attributes}: {e!r}")

    async def _run(self) -> None:
        await self.initialize()
        while True:
            await self.check_now()
            await asyncio.sleep(self.poll_interval)

    def _on_store_change(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_check)

    def _schedule_check(self) -> None:
        if self._poll_task is None:
            return
        task = asyncio.ensure_future(self._check_after_init())
        self._pending_checks.add(task)
        task.add_done_callback(self._pending_checks.discard)

    async def _check_after_init(self) -> None:
        await self.initialize()
        await self.check_now()

    # Lifecycle

    def start(self) -> None:
        """Start polling and listening for store changes. Must run inside an event loop."""
        if self._poll_task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._poll_task = asyncio.create_task(self._run())
        self._unsubscribe = self.store.subscribe(self._on_store_change)
        logger.debug(f"[Personalize] Watching primary cause every {self.poll_interval}s")

    async def stop(self) -> None:
        """Cancel the polling task and pending checks. The SDK handle is kept."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        tasks = [task for task in [self._poll_task, *self._pending_checks] if task is not None]
        self._poll_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._pending_checks.clear()

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def __aenter__(self) -> "PersonalizationStateManager":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # SDK pass-throughs

    def get_user_uid(self) -> Optional[str]:
        return self._handle.get_user_id() if self._handle else None

    def get_variant_aliases(self) -> List[str]:
        if self._handle is None:
            return []
        try:
            return self._handle.get_variant_aliases()
        except Exception as e:
            logger.error(f"[Personalize] Failed to get variant aliases: {e}")
            return []

    def get_active_variant(self, experience_short_uid: str) -> Optional[str]:
        if self._handle is None:
            return None
        try:
            return self._handle.get_active_variant(experience_short_uid)
        except Exception as e:
            logger.error(f"[Personalize] Failed to get active variant: {e}")
            return None

    async def trigger_impression(self, experience_short_uid: str) -> None:
        handle = await self.initialize()
        if handle is None:
            logger.warning("[Personalize] SDK not initialized, impression dropped")
            return
        try:
            await asyncio.wait_for(handle.trigger_impression(experience_short_uid), timeout=self.push_timeout)
            logger.info(f"[Personalize] Impression triggered for experience: {experience_short_uid}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[Personalize] Failed to trigger impression: {e!r}")

    async def trigger_event(self, event_key: str) -> None:
        handle = await self.initialize()
        if handle is None:
            logger.warning("[Personalize] SDK not initialized, event dropped")
            return
        try:
            await asyncio.wait_for(handle.trigger_event(event_key), timeout=self.push_timeout)
            logger.info(f"[Personalize] Event triggered: {event_key}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[Personalize] Failed to trigger event: {e!r}")
