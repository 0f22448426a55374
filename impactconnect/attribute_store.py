"""
Device-local attribute store.

Keeps the user's registrations and contact details in a JSON file and
derives the primary cause from them. Reads are synchronous and never raise:
a missing or corrupt file reads as an empty store. Writers notify
subscribers so the personalization state manager can react to changes
without waiting for its next poll.
"""

import json
import random
import string
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger


@dataclass
class Registration:
    """A registration for an opportunity, as recorded on this device."""
    id: str
    opportunity_id: str
    opportunity_title: str
    opportunity_slug: str
    opportunity_date: str
    opportunity_location: str
    registered_at: str
    name: str
    email: str
    cause_slugs: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Registration":
        cause_slugs = data.get("cause_slugs")
        if not isinstance(cause_slugs, list):
            cause_slugs = []
        return cls(
            id=str(data["id"]),
            opportunity_id=str(data["opportunity_id"]),
            opportunity_title=str(data.get("opportunity_title", "")),
            opportunity_slug=str(data.get("opportunity_slug", "")),
            opportunity_date=str(data.get("opportunity_date", "")),
            opportunity_location=str(data.get("opportunity_location", "")),
            registered_at=str(data["registered_at"]),
            name=str(data.get("name", "")),
            email=str(data.get("email", "")),
            cause_slugs=[str(slug) for slug in cause_slugs],
        )


def _registration_items(data: Dict[str, Any]) -> List[Any]:
    items = data.get("registrations")
    return list(items) if isinstance(items, list) else []


def _registered_at_key(registration: Registration) -> datetime:
    try:
        moment = datetime.fromisoformat(registration.registered_at.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class LocalAttributeStore:
    """JSON-file backed store; ``path=None`` keeps everything in memory."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._memory: Dict[str, Any] = {}
        self._subscribers: List[Callable[[], None]] = []

    # Persistence

    def _read(self) -> Dict[str, Any]:
        if self.path is None:
            return json.loads(json.dumps(self._memory))
        try:
            if not self.path.exists():
                return {}
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            logger.warning(f"[Storage] Could not read {self.path}: {e}")
            return {}

    def _write(self, data: Dict[str, Any]) -> None:
        if self.path is None:
            self._memory = data
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        self._notify()

    # Change notification

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback invoked after every write.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception as e:
                logger.error(f"[Storage] Change subscriber failed: {e}")

    # User details

    def get_user_email(self) -> Optional[str]:
        return self._read().get("user_email")

    def set_user_email(self, email: str) -> None:
        data = self._read()
        data["user_email"] = email.lower().strip()
        self._write(data)

    def get_user_name(self) -> Optional[str]:
        return self._read().get("user_name")

    def set_user_name(self, name: str) -> None:
        data = self._read()
        data["user_name"] = name.strip()
        self._write(data)

    # Registrations

    def get_registrations(self) -> List[Registration]:
        registrations = []
        for item in _registration_items(self._read()):
            try:
                registrations.append(Registration.from_dict(item))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(f"[Storage] Skipping malformed registration: {e}")
        return registrations

    def add_registration(
        self,
        opportunity_id: str,
        opportunity_title: str,
        opportunity_slug: str,
        opportunity_date: str,
        name: str,
        email: str,
        opportunity_location: str = "",
        cause_slugs: Optional[List[str]] = None,
    ) -> Registration:
        """Record a registration and remember the registrant's email and name."""
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
        registration = Registration(
            id=f"reg_{int(time.time() * 1000)}_{suffix}",
            opportunity_id=opportunity_id,
            opportunity_title=opportunity_title,
            opportunity_slug=opportunity_slug,
            opportunity_date=opportunity_date,
            opportunity_location=opportunity_location,
            registered_at=datetime.now(timezone.utc).isoformat(),
            name=name,
            email=email,
            cause_slugs=list(cause_slugs or []),
        )

        data = self._read()
        data["registrations"] = _registration_items(data) + [asdict(registration)]
        data["user_email"] = email.lower().strip()
        data["user_name"] = name.strip()
        self._write(data)

        logger.info(f"[Storage] Registered for {opportunity_slug} (causes: {registration.cause_slugs})")
        return registration

    def get_registrations_by_email(self, email: str) -> List[Registration]:
        wanted = email.lower().strip()
        return [r for r in self.get_registrations() if r.email.lower().strip() == wanted]

    def is_registered_for(self, opportunity_id: str) -> bool:
        email = self.get_user_email()
        if not email:
            return False
        return any(r.opportunity_id == opportunity_id for r in self.get_registrations_by_email(email))

    def clear(self) -> None:
        self._write({})

    # Derived attributes

    def get_primary_cause(self, email: Optional[str] = None) -> Optional[str]:
        """First cause of the most recent registration, or None."""
        registrations = self.get_registrations_by_email(email) if email else self.get_registrations()
        if not registrations:
            return None

        most_recent = max(registrations, key=_registered_at_key)
        if most_recent.cause_slugs:
            return most_recent.cause_slugs[0]
        return None

    def get_causes_by_frequency(self, email: Optional[str] = None) -> List[Tuple[str, int]]:
        """Causes the user registered for, most frequent first."""
        registrations = self.get_registrations_by_email(email) if email else self.get_registrations()
        counts: Dict[str, int] = {}
        for registration in registrations:
            for cause in registration.cause_slugs:
                counts[cause] = counts.get(cause, 0) + 1
        return sorted(counts.items(), key=lambda item: item[1], reverse=True)
