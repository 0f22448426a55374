"""
Render-ready data structures and CMS entry transformers.

Everything here is plain data: the rendering layer receives these objects
(or their ``to_dict()`` form) and never calls back into the service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from config.data_loader import load_carousel_defaults


class OpportunityStatus(Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class ImageAsset:
    """Cover image attached to an opportunity."""
    uid: str
    url: str
    title: str = ""
    filename: str = ""
    content_type: str = ""
    width: Optional[int] = None
    height: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "url": self.url,
            "title": self.title,
            "filename": self.filename,
            "contentType": self.content_type,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class OpportunitySummary:
    """Opportunity card for list, grid and carousel views."""
    uid: str
    title: str
    slug: str
    start_date: str
    summary: Optional[str] = None
    cover_image: Optional[ImageAsset] = None
    cause_slugs: List[str] = field(default_factory=list)
    contribution_types: List[str] = field(default_factory=list)
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    is_virtual: Optional[bool] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    organizer_name: Optional[str] = None
    spots_available: Optional[int] = None
    status: str = OpportunityStatus.UPCOMING.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "title": self.title,
            "slug": self.slug,
            "summary": self.summary,
            "coverImage": self.cover_image.to_dict() if self.cover_image else None,
            "causeSlugs": list(self.cause_slugs),
            "contributionTypes": list(self.contribution_types),
            "country": self.country,
            "state": self.state,
            "city": self.city,
            "isVirtual": self.is_virtual,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "startTime": self.start_time,
            "organizerName": self.organizer_name,
            "spotsAvailable": self.spots_available,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpportunitySummary":
        """Build a summary from its ``to_dict()`` form (camelCase keys)."""
        image = data.get("coverImage")
        return cls(
            uid=str(data.get("uid") or data.get("slug") or ""),
            title=str(data.get("title") or ""),
            slug=str(data.get("slug") or ""),
            start_date=str(data.get("startDate") or ""),
            summary=data.get("summary"),
            cover_image=ImageAsset(
                uid=str(image.get("uid", "")),
                url=str(image.get("url", "")),
                title=image.get("title") or "",
                filename=image.get("filename") or "",
                content_type=image.get("contentType") or "",
                width=image.get("width"),
                height=image.get("height"),
            ) if isinstance(image, dict) else None,
            cause_slugs=list(data.get("causeSlugs") or []),
            contribution_types=list(data.get("contributionTypes") or []),
            country=data.get("country"),
            state=data.get("state"),
            city=data.get("city"),
            is_virtual=data.get("isVirtual"),
            end_date=data.get("endDate"),
            start_time=data.get("startTime"),
            organizer_name=data.get("organizerName"),
            spots_available=data.get("spotsAvailable"),
            status=data.get("status") or OpportunityStatus.UPCOMING.value,
        )


@dataclass
class Cause:
    """Cause directory entry used for theming."""
    slug: str
    name: str
    color: Optional[str] = None


@dataclass
class CarouselCopy:
    """Variant-specific landing copy for the carousel section."""
    title: Optional[str] = None
    personalized_title: Optional[str] = None
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None


@dataclass
class DefaultContent:
    """Copy and baseline events used when personalization does not apply."""
    title: str
    personalized_title: str
    cta_text: str
    cta_link: str
    events: List[OpportunitySummary] = field(default_factory=list)

    @classmethod
    def from_config(cls, events: Optional[List[OpportunitySummary]] = None) -> "DefaultContent":
        """Defaults from ``config/carousel_defaults.yaml``."""
        data = load_carousel_defaults()
        return cls(
            title=data.get("title", "Discover Opportunities Near You"),
            personalized_title=data.get("personalized_title", "Recommended For You"),
            cta_text=data.get("cta_text", "Discover More"),
            cta_link=data.get("cta_link", "/opportunities"),
            events=list(events or []),
        )


@dataclass
class PersonalizedPayload:
    """Render-ready payload for the personalized carousel section."""
    personalized: bool
    title: str
    personalized_title: str
    cta_text: str
    cta_link: str
    events: List[OpportunitySummary] = field(default_factory=list)
    primary_cause: Optional[str] = None
    variant_uid: Optional[str] = None

    @property
    def heading(self) -> str:
        """The title the carousel actually shows."""
        return self.personalized_title if self.personalized else self.title

    @classmethod
    def from_defaults(cls, defaults: DefaultContent) -> "PersonalizedPayload":
        return cls(
            personalized=False,
            title=defaults.title,
            personalized_title=defaults.personalized_title,
            cta_text=defaults.cta_text,
            cta_link=defaults.cta_link,
            events=list(defaults.events),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "personalized": self.personalized,
            "title": self.title,
            "personalizedTitle": self.personalized_title,
            "ctaText": self.cta_text,
            "ctaLink": self.cta_link,
            "events": [event.to_dict() for event in self.events],
            "primaryCause": self.primary_cause,
            "variantUid": self.variant_uid,
        }


# Entry transformers

def transform_asset(asset: Optional[Dict[str, Any]]) -> Optional[ImageAsset]:
    """Transform a raw CMS file field into an ImageAsset."""
    if not asset or not asset.get("url"):
        return None
    dimension = asset.get("dimension") or {}
    return ImageAsset(
        uid=asset.get("uid", ""),
        url=asset["url"],
        title=asset.get("title", ""),
        filename=asset.get("filename", ""),
        content_type=asset.get("content_type", ""),
        width=dimension.get("width"),
        height=dimension.get("height"),
    )


def get_cause_slugs(entry: Dict[str, Any]) -> List[str]:
    """Cause slugs from either the slug array field or the reference field."""
    slugs = entry.get("cause_slugs")
    if isinstance(slugs, list):
        return [str(slug) for slug in slugs]

    refs = entry.get("causes")
    if isinstance(refs, list):
        return [str(ref.get("slug") or ref.get("uid")) for ref in refs if isinstance(ref, dict)]

    return []


def transform_opportunity_summary(entry: Dict[str, Any]) -> OpportunitySummary:
    """
    Transform a raw opportunity entry into an OpportunitySummary.

    Raises:
        ValueError: If the entry lacks a uid, title or slug
    """
    for required in ("uid", "title", "slug"):
        if not entry.get(required):
            raise ValueError(f"opportunity entry missing '{required}'")

    return OpportunitySummary(
        uid=entry["uid"],
        title=entry["title"],
        slug=entry["slug"],
        start_date=entry.get("start_date") or "",
        summary=entry.get("summary"),
        cover_image=transform_asset(entry.get("cover_image")),
        cause_slugs=get_cause_slugs(entry),
        contribution_types=list(entry.get("contribution_types") or []),
        country=entry.get("country"),
        state=entry.get("state"),
        city=entry.get("city"),
        is_virtual=entry.get("is_virtual"),
        end_date=entry.get("end_date"),
        start_time=entry.get("start_time"),
        organizer_name=entry.get("organizer_name"),
        spots_available=entry.get("spots_available"),
        status=entry.get("status") or OpportunityStatus.UPCOMING.value,
    )


def transform_cause(entry: Dict[str, Any]) -> Cause:
    slug = entry.get("slug") or entry.get("uid") or ""
    name = entry.get("name") or entry.get("title") or slug.replace("-", " ").title()
    return Cause(slug=slug, name=name, color=entry.get("color") or None)
