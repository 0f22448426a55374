"""
Cause to content-variant resolution.

The mapping is data, not logic: the default table is loaded from
``config/cause_variants.yaml`` and any other table can be injected for
tests or alternate experiences. Lookups never raise.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config.data_loader import load_cause_variants


@dataclass(frozen=True)
class VariantMapping:
    cause: str
    variant_uid: str
    short_uid: str


class VariantResolver:
    """Static-table lookup from cause slug to variant identifier."""

    def __init__(self, table: Dict[str, Any], experience_short_uid: str = "a"):
        """
        Args:
            table: ``{cause: {"variant_uid": ..., "short_uid": ...}}`` or a
                plain ``{cause: variant_uid}`` mapping
            experience_short_uid: Short UID of the cause experience
        """
        self.experience_short_uid = experience_short_uid
        self._mappings: Dict[str, VariantMapping] = {}
        for position, (cause, value) in enumerate(table.items()):
            if isinstance(value, dict):
                variant_uid = str(value["variant_uid"])
                short_uid = str(value.get("short_uid", position))
            else:
                variant_uid = str(value)
                short_uid = str(position)
            self._mappings[cause] = VariantMapping(cause, variant_uid, short_uid)

    @classmethod
    def from_config(cls) -> "VariantResolver":
        data = load_cause_variants()
        return cls(data.get("causes", {}), str(data.get("experience_short_uid", "a")))

    def resolve(self, cause: Optional[str]) -> Optional[str]:
        """Variant identifier for a cause, None for no cause or an unknown one."""
        if not cause or not isinstance(cause, str):
            return None
        mapping = self._mappings.get(cause)
        return mapping.variant_uid if mapping else None

    def variant_short_uid(self, cause: Optional[str]) -> Optional[str]:
        mapping = self._mappings.get(cause) if isinstance(cause, str) else None
        return mapping.short_uid if mapping else None

    def cause_for_short_uid(self, short_uid: Optional[str]) -> Optional[str]:
        for mapping in self._mappings.values():
            if mapping.short_uid == short_uid:
                return mapping.cause
        return None

    def variant_alias(self, cause: Optional[str]) -> Optional[str]:
        """Alias in the form the delivery API accepts in its ``variants`` parameter."""
        short_uid = self.variant_short_uid(cause)
        if short_uid is None:
            return None
        return f"cs_personalize_{self.experience_short_uid}_{short_uid}"

    def has_mapping(self, cause: Optional[str]) -> bool:
        return self.resolve(cause) is not None

    def all_mappings(self) -> List[VariantMapping]:
        return list(self._mappings.values())


_default_resolver: Optional[VariantResolver] = None


def get_resolver() -> VariantResolver:
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = VariantResolver.from_config()
    return _default_resolver


def resolve_variant(cause: Optional[str]) -> Optional[str]:
    """Resolve a cause with the configured table."""
    return get_resolver().resolve(cause)
