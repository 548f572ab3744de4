"""
OpenStreetMap Provider
======================

Queries the Overpass API for Christian places of worship. Free to use but
rate-limited; every result comes back in a single page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from church_directory.core.enums import ProviderName
from church_directory.core.schema import RawChurch, SearchParams, SearchResult
from church_directory.core.states import resolve_state
from church_directory.providers.base import (
    METERS_PER_MILE,
    BaseProvider,
    ProviderNotConfiguredError,
    SearchValidationError,
)

logger = logging.getLogger(__name__)

OVERPASS_URL = "https://overpass-api.de/api/interpreter"
DEFAULT_LIMIT = 100
DEFAULT_RADIUS_MILES = 25.0

_WORSHIP_FILTER = '["amenity"="place_of_worship"]["religion"="christian"]'
_ELEMENT_TYPES = ("node", "way", "relation")

# Tag aliases, first match wins
_PHONE_TAGS = ("phone", "contact:phone")
_EMAIL_TAGS = ("email", "contact:email")
_WEBSITE_TAGS = ("website", "contact:website", "url")


@dataclass
class OpenStreetMapConfig:
    """Configuration for the OpenStreetMap provider."""

    user_agent: str
    overpass_url: str = OVERPASS_URL


def _escape(value: str) -> str:
    """Escape a string for use inside an Overpass QL quoted literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _first_tag(tags: dict[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = tags.get(key)
        if value:
            return value
    return None


class OpenStreetMapProvider(BaseProvider):
    """Unbounded, free search against the Overpass API."""

    PROVIDER_NAME = ProviderName.OPENSTREETMAP.value

    def __init__(
        self,
        config: OpenStreetMapConfig,
        http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(http_client=http_client, timeout=90.0)
        self.user_agent = config.user_agent
        self.overpass_url = config.overpass_url

    def is_configured(self) -> bool:
        return bool(self.user_agent)

    @staticmethod
    def build_radius_query(lat: float, lng: float, radius_meters: float, limit: int) -> str:
        """Build an Overpass query for churches within a radius of a point."""
        scope = f"(around:{radius_meters:.0f},{lat},{lng})"
        selectors = "\n".join(f"  {t}{_WORSHIP_FILTER}{scope};" for t in _ELEMENT_TYPES)
        return f"[out:json][timeout:30];\n(\n{selectors}\n);\nout center {limit};"

    @staticmethod
    def build_area_query(city: str, limit: int) -> str:
        """Build an Overpass query for churches inside a named city area."""
        selectors = "\n".join(f"  {t}{_WORSHIP_FILTER}(area.city);" for t in _ELEMENT_TYPES)
        return (
            "[out:json][timeout:60];\n"
            f'area["name"="{_escape(city)}"]["admin_level"~"[78]"]->.city;\n'
            f"(\n{selectors}\n);\nout center {limit};"
        )

    def _run_query(self, query: str) -> dict[str, Any]:
        response = self._request(
            "POST",
            self.overpass_url,
            data={"data": query},
            headers={"User-Agent": self.user_agent},
        )
        self._check_response(response)
        return self._parse_json(response)

    def search(self, params: SearchParams) -> SearchResult:
        if not self.is_configured():
            raise ProviderNotConfiguredError("OpenStreetMap user agent not configured")

        limit = params.limit or DEFAULT_LIMIT

        if params.has_coordinates:
            radius_meters = (params.radius_miles or DEFAULT_RADIUS_MILES) * METERS_PER_MILE
            query = self.build_radius_query(params.lat, params.lng, radius_meters, limit)
        elif params.has_city_state:
            query = self.build_area_query(params.city, limit)
        else:
            raise SearchValidationError(
                "Must provide either lat/lng or city/state for OpenStreetMap search"
            )

        payload = self._run_query(query)
        elements = payload.get("elements") or []
        churches = [
            c for c in (self.transform_element(e, params) for e in elements) if c is not None
        ]
        logger.debug(f"Overpass returned {len(elements)} elements, kept {len(churches)}")

        return SearchResult(churches=churches, total_estimate=len(churches))

    def get_by_id(self, source_id: str) -> RawChurch | None:
        # source_id format: "node/123456" or "way/123456"
        element_type, _, element_id = source_id.partition("/")
        if element_type not in _ELEMENT_TYPES or not element_id.isdigit():
            return None

        payload = self._run_query(f"[out:json][timeout:10];\n{element_type}({element_id});\nout center;")
        elements = payload.get("elements") or []
        if not elements:
            return None
        return self.transform_element(elements[0], SearchParams())

    def transform_element(self, element: dict[str, Any], params: SearchParams) -> RawChurch | None:
        """
        Map an Overpass element to a RawChurch.

        Nodes carry lat/lon directly; ways and relations carry a computed
        center. Elements without coordinates or a name are dropped.
        """
        tags: dict[str, str] = element.get("tags") or {}
        center = element.get("center") or {}

        lat = element.get("lat", center.get("lat"))
        lng = element.get("lon", center.get("lon"))
        if lat is None or lng is None:
            return None

        name = (tags.get("name") or "").strip()
        if not name:
            return None

        city = tags.get("addr:city") or params.city or ""
        state, state_abbr = resolve_state(tags.get("addr:state") or params.state or "")

        return RawChurch(
            name=name,
            address=self._parse_address(tags),
            city=city,
            state=state,
            state_abbr=state_abbr,
            zip=tags.get("addr:postcode") or "",
            lat=lat,
            lng=lng,
            phone=_first_tag(tags, _PHONE_TAGS),
            email=_first_tag(tags, _EMAIL_TAGS),
            website=_first_tag(tags, _WEBSITE_TAGS),
            denomination=tags.get("denomination"),
            source_id=f"{element.get('type')}/{element.get('id')}",
            source=self.name,
        )

    @staticmethod
    def _parse_address(tags: dict[str, str]) -> str:
        parts = [p for p in (tags.get("addr:housenumber"), tags.get("addr:street")) if p]
        if not parts and tags.get("addr:full"):
            return tags["addr:full"]
        return " ".join(parts)
