"""
Natural-language query parsing for the event search box.

Turns free text such as "art workshop in mumbai" or "online teaching
volunteer" into a structured filter (city, virtual intent) plus the cleaned
text that is sent to the full-text index.

Detection is gazetteer based:
- Virtual intent: whole-word match against a fixed keyword set
- City: whole-phrase match against known city names and aliases, preferring
  "<indicator> <city>" ("in mumbai", "near pune") over a bare mention
- Multi-word names win over single words at the same position; otherwise
  the leftmost match wins

Parsing is idempotent on its own output: every recognized city mention is
removed from ``search_text``, so parsing ``search_text`` again never detects
a city.
"""

import re
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from config.data_loader import load_gazetteer

_EDGE_PUNCTUATION = re.compile(r"^\W+|\W+$")


@dataclass(frozen=True)
class ParsedQuery:
    """Structured result of parsing a search box query."""
    search_text: str
    city: Optional[str] = None
    original_city_text: Optional[str] = None
    is_virtual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "searchText": self.search_text,
            "city": self.city,
            "originalCityText": self.original_city_text,
            "isVirtual": self.is_virtual,
        }


@dataclass(frozen=True)
class _CityMatch:
    start: int  # first token removed (the indicator, when present)
    end: int
    city_start: int
    slug: str


class Gazetteer:
    """Known cities, aliases and the keyword sets used for detection."""

    def __init__(
        self,
        cities: List[str],
        aliases: Optional[Dict[str, str]] = None,
        location_indicators: Optional[List[str]] = None,
        virtual_keywords: Optional[List[str]] = None,
    ):
        self.cities = [c.lower().strip() for c in cities if c and c.strip()]
        self.aliases = {k.lower().strip(): v.lower().strip() for k, v in (aliases or {}).items()}
        self.location_indicators = {w.lower() for w in (location_indicators or [])}
        self.virtual_keywords = {w.lower() for w in (virtual_keywords or [])}

        self._names = set(self.cities) | set(self.aliases)
        self.max_words = max((len(name.split()) for name in self._names), default=1)

    @classmethod
    def from_config(cls) -> "Gazetteer":
        data = load_gazetteer()
        return cls(
            cities=data.get("cities", []),
            aliases=data.get("aliases", {}),
            location_indicators=data.get("location_indicators", []),
            virtual_keywords=data.get("virtual_keywords", []),
        )

    def canonical(self, name: str) -> Optional[str]:
        """Canonical slug for a known name or alias, None when unknown."""
        if name in self.aliases:
            return self.aliases[name]
        if name in self._names:
            return name
        return None


class QueryParser:
    """Parses raw search text into a ParsedQuery."""

    def __init__(self, gazetteer: Optional[Gazetteer] = None):
        self.gazetteer = gazetteer or Gazetteer.from_config()

    def parse(self, raw: Optional[str]) -> ParsedQuery:
        """
        Parse a search box query.

        Never raises: empty or whitespace-only input yields an empty
        ``search_text`` with no filters.
        """
        tokens = (raw or "").split()
        if not tokens:
            return ParsedQuery(search_text="")

        # Originals keep the user's casing for display, the working list is lower-case
        originals = list(tokens)
        working = [token.lower() for token in tokens]

        working, originals, is_virtual = self._strip_virtual(working, originals)

        city = None
        original_city_text = None
        first = self._find_city(working)
        if first is not None:
            city = first.slug
            original_city_text = self._span_text(originals, first.city_start, first.end)

        # Remove every mention so the cleaned text carries no residual city
        match = first
        while match is not None:
            del working[match.start:match.end]
            del originals[match.start:match.end]
            match = self._find_city(working)

        return ParsedQuery(
            search_text=" ".join(working),
            city=city,
            original_city_text=original_city_text,
            is_virtual=is_virtual,
        )

    def _strip_virtual(self, working: List[str], originals: List[str]) -> Tuple[List[str], List[str], bool]:
        keep = [i for i, token in enumerate(working) if _core(token) not in self.gazetteer.virtual_keywords]
        is_virtual = len(keep) != len(working)
        return [working[i] for i in keep], [originals[i] for i in keep], is_virtual

    def _find_city(self, words: List[str]) -> Optional[_CityMatch]:
        cores = [_core(word) for word in words]

        # "in mumbai", "near new delhi"
        for i in range(len(cores) - 1):
            if cores[i] in self.gazetteer.location_indicators:
                found = self._city_at(cores, i + 1)
                if found is not None:
                    slug, end = found
                    return _CityMatch(start=i, end=end, city_start=i + 1, slug=slug)

        # bare mention anywhere
        for i in range(len(cores)):
            found = self._city_at(cores, i)
            if found is not None:
                slug, end = found
                return _CityMatch(start=i, end=end, city_start=i, slug=slug)

        return None

    def _city_at(self, cores: List[str], start: int) -> Optional[Tuple[str, int]]:
        """Longest known name beginning at ``start``."""
        if not cores[start]:
            return None
        longest = min(self.gazetteer.max_words, len(cores) - start)
        for size in range(longest, 0, -1):
            phrase = " ".join(cores[start:start + size])
            slug = self.gazetteer.canonical(phrase)
            if slug is not None:
                return slug, start + size
        return None

    @staticmethod
    def _span_text(originals: List[str], start: int, end: int) -> str:
        return " ".join(_EDGE_PUNCTUATION.sub("", token) for token in originals[start:end])

    def normalize_city(self, city: str) -> str:
        """Lower-case a city name and resolve aliases."""
        lowered = " ".join((city or "").lower().split())
        return self.gazetteer.aliases.get(lowered, lowered)

    def contains_city(self, text: str) -> bool:
        """Whether the text mentions a known city as a whole word or phrase."""
        cores = [_core(word) for word in (text or "").lower().split()]
        return any(self._city_at(cores, i) is not None for i in range(len(cores)))

    def get_known_cities(self) -> List[str]:
        """Known city names for autocomplete suggestions."""
        return list(self.gazetteer.cities)


def _core(token: str) -> str:
    return _EDGE_PUNCTUATION.sub("", token)


# Search index request preparation and facet chips

def build_search_request(parsed: ParsedQuery, index_name: str = "opportunities") -> Dict[str, Any]:
    """
    Prepare a request for the external full-text index.

    The cleaned text becomes the query; detected filters become facet
    filters on the ``city`` and ``isVirtual`` attributes.
    """
    facet_filters: List[List[str]] = []
    filters: List[str] = []

    if parsed.city:
        facet_filters.append([f"city:{parsed.city}"])
        filters.append(f'city:"{parsed.city}"')
    if parsed.is_virtual:
        facet_filters.append(["isVirtual:true"])
        filters.append("isVirtual:true")

    return {
        "indexName": index_name,
        "query": parsed.search_text,
        "filters": " AND ".join(filters),
        "facetFilters": facet_filters,
    }


def facet_chips(parsed: ParsedQuery) -> List[Dict[str, str]]:
    """Chips shown under the search box for each detected filter."""
    chips = []
    if parsed.city:
        chips.append({"kind": "city", "label": parsed.city.title(), "value": parsed.city})
    if parsed.is_virtual:
        chips.append({"kind": "virtual", "label": "Online", "value": "true"})
    return chips


def remove_city(parsed: ParsedQuery) -> ParsedQuery:
    """Clear the city filter, keeping the cleaned text."""
    return replace(parsed, city=None, original_city_text=None)


def remove_virtual(parsed: ParsedQuery) -> ParsedQuery:
    """Clear the virtual filter, keeping the cleaned text."""
    return replace(parsed, is_virtual=False)


_default_parser: Optional[QueryParser] = None


def get_parser() -> QueryParser:
    """Shared parser built from the configured gazetteer."""
    global _default_parser
    if _default_parser is None:
        _default_parser = QueryParser()
    return _default_parser


def parse(raw: Optional[str]) -> ParsedQuery:
    """Parse raw search text with the shared parser."""
    return get_parser().parse(raw)


def normalize_city(city: str) -> str:
    return get_parser().normalize_city(city)


def contains_city(text: str) -> bool:
    return get_parser().contains_city(text)


def get_known_cities() -> List[str]:
    return get_parser().get_known_cities()
