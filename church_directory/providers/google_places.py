"""
Google Places Provider
======================

Uses the Places API (New) Text Search endpoint. Results come back in pages
of at most 20 with an opaque nextPageToken; draining the pages is the
caller's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from church_directory.core.enums import ProviderName
from church_directory.core.schema import OperatingHours, RawChurch, SearchParams, SearchResult
from church_directory.core.states import resolve_state
from church_directory.providers.base import (
    METERS_PER_MILE,
    BaseProvider,
    ProviderNotConfiguredError,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://places.googleapis.com/v1"
MAX_PAGE_SIZE = 20
MAX_PHOTOS = 5

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_PLACE_FIELDS = [
    "id",
    "displayName",
    "formattedAddress",
    "addressComponents",
    "location",
    "nationalPhoneNumber",
    "internationalPhoneNumber",
    "websiteUri",
    "regularOpeningHours",
    "rating",
    "userRatingCount",
    "photos",
]

SEARCH_FIELD_MASK = ",".join([f"places.{f}" for f in _PLACE_FIELDS] + ["nextPageToken"])
DETAILS_FIELD_MASK = ",".join(_PLACE_FIELDS)


@dataclass
class GooglePlacesConfig:
    """Configuration for the Google Places provider."""

    api_key: str
    default_radius_miles: float = 25.0


class GooglePlacesProvider(BaseProvider):
    """Paginated, quota-limited search against the Google Places API."""

    PROVIDER_NAME = ProviderName.GOOGLE_PLACES.value

    def __init__(
        self,
        config: GooglePlacesConfig,
        http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(http_client=http_client)
        self.api_key = config.api_key
        self.default_radius_miles = config.default_radius_miles

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_configured(self) -> None:
        if not self.is_configured():
            raise ProviderNotConfiguredError("Google Places API key not configured")

    def build_search_body(self, params: SearchParams) -> dict[str, Any]:
        """
        Build the Text Search request body.

        Args:
            params: Search parameters.

        Returns:
            JSON body for places:searchText.
        """
        limit = params.limit or MAX_PAGE_SIZE

        if params.city and params.state:
            text_query = f"churches in {params.city}, {params.state}"
        elif params.city:
            text_query = f"churches in {params.city}"
        else:
            text_query = "churches"

        body: dict[str, Any] = {
            "textQuery": text_query,
            "maxResultCount": min(limit, MAX_PAGE_SIZE),
            "languageCode": "en",
        }

        if params.has_coordinates:
            radius_miles = params.radius_miles or self.default_radius_miles
            body["locationBias"] = {
                "circle": {
                    "center": {"latitude": params.lat, "longitude": params.lng},
                    "radius": radius_miles * METERS_PER_MILE,
                }
            }

        if params.page_token:
            body["pageToken"] = params.page_token

        return body

    def search(self, params: SearchParams) -> SearchResult:
        self._require_configured()

        response = self._request(
            "POST",
            f"{BASE_URL}/places:searchText",
            json=self.build_search_body(params),
            headers={
                "Content-Type": "application/json",
                "X-Goog-Api-Key": self.api_key,
                "X-Goog-FieldMask": SEARCH_FIELD_MASK,
            },
        )
        self._check_response(response)
        payload = self._parse_json(response)

        places = payload.get("places") or []
        churches = [c for c in (self.transform_place(p) for p in places) if c is not None]
        dropped = len(places) - len(churches)
        if dropped:
            logger.debug(f"Dropped {dropped} places lacking a name or location")

        return SearchResult(
            churches=churches,
            next_page_token=payload.get("nextPageToken") or None,
        )

    def get_by_id(self, source_id: str) -> RawChurch | None:
        self._require_configured()

        response = self._request(
            "GET",
            f"{BASE_URL}/places/{source_id}",
            headers={
                "X-Goog-Api-Key": self.api_key,
                "X-Goog-FieldMask": DETAILS_FIELD_MASK,
            },
        )
        if response.status_code == 404:
            return None
        self._check_response(response)
        return self.transform_place(self._parse_json(response))

    def transform_place(self, place: dict[str, Any]) -> RawChurch | None:
        """
        Map a Places API result to a RawChurch.

        Returns None when the place lacks an id, display name or location.
        """
        name = ((place.get("displayName") or {}).get("text") or "").strip()
        location = place.get("location") or {}
        lat = location.get("latitude")
        lng = location.get("longitude")
        place_id = place.get("id")
        if not name or not place_id or lat is None or lng is None:
            return None

        city, state, state_abbr, zip_code = self._parse_address_components(
            place.get("addressComponents") or []
        )

        return RawChurch(
            name=name,
            address=self._extract_street_address(place.get("formattedAddress") or ""),
            city=city,
            state=state,
            state_abbr=state_abbr,
            zip=zip_code,
            lat=lat,
            lng=lng,
            phone=place.get("nationalPhoneNumber") or place.get("internationalPhoneNumber"),
            website=place.get("websiteUri"),
            hours=self._parse_opening_hours(
                (place.get("regularOpeningHours") or {}).get("periods")
            ),
            rating=place.get("rating"),
            review_count=place.get("userRatingCount"),
            photo_urls=self._photo_urls(place.get("photos")),
            source_id=place_id,
            source=self.name,
        )

    @staticmethod
    def _parse_address_components(
        components: list[dict[str, Any]],
    ) -> tuple[str, str, str, str]:
        city = state = state_abbr = zip_code = ""

        for component in components:
            types = component.get("types") if isinstance(component, dict) else None
            if not isinstance(types, list):
                continue
            if "locality" in types:
                city = component.get("longText") or ""
            elif "administrative_area_level_1" in types:
                state = component.get("longText") or ""
                state_abbr = component.get("shortText") or ""
            elif "postal_code" in types:
                zip_code = component.get("longText") or ""

        state, state_abbr = resolve_state(state, state_abbr)
        return city, state, state_abbr, zip_code

    @staticmethod
    def _extract_street_address(formatted_address: str) -> str:
        # "123 Main St, City, ST 12345, USA" -> "123 Main St"
        return formatted_address.split(",")[0].strip()

    @staticmethod
    def _format_time(hour: int, minute: int) -> str:
        return f"{hour:02d}:{minute:02d}"

    def _parse_opening_hours(
        self, periods: list[dict[str, Any]] | None
    ) -> list[OperatingHours] | None:
        if not periods:
            return None

        hours = []
        for period in periods:
            open_ = period.get("open")
            close = period.get("close")
            if not open_ or not close:
                continue
            day_index = open_.get("day", -1)
            hours.append(
                OperatingHours(
                    day=DAY_NAMES[day_index] if 0 <= day_index < 7 else "Unknown",
                    open_time=self._format_time(open_.get("hour", 0), open_.get("minute", 0)),
                    close_time=self._format_time(close.get("hour", 0), close.get("minute", 0)),
                )
            )
        return hours or None

    def _photo_urls(self, photos: list[dict[str, Any]] | None) -> list[str] | None:
        if not photos:
            return None
        return [
            f"{BASE_URL}/{photo['name']}/media?key={self.api_key}&maxWidthPx=800"
            for photo in photos[:MAX_PHOTOS]
            if photo.get("name")
        ]
