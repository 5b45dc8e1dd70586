import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

from errors import NoLocationResolved
from geocoding import Geocoder
from models import (
    ByCoordinate,
    ByCoordinateList,
    ByName,
    LocationQuery,
    ResolverConfig,
    Unspecified,
)
from place_names import normalize_place_name

logger = logging.getLogger(__name__)


def parse_location_queries(
    city: Optional[str] = None,
    cities: Optional[str] = None,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    coords: Optional[str] = None,
) -> List[LocationQuery]:
    """
    Build the location queries for one request from raw query parameters.

    Parts are returned in resolution order: names, single coordinate,
    coordinate list. A request carrying none of them yields [Unspecified()].
    """
    queries: List[LocationQuery] = []

    names: List[str] = []
    if city and city.strip():
        names = [city.strip()]
    elif cities:
        names = [c.strip() for c in cities.split(",") if c.strip()]
    if names:
        queries.append(ByName(names=names))

    if lat and lng:
        pair = parse_coordinate(lat, lng)
        if pair is not None:
            queries.append(ByCoordinate(lat=pair[0], lng=pair[1]))

    if coords:
        pairs = []
        for chunk in coords.split(";"):
            chunk = chunk.strip()
            if not chunk:
                continue
            parts = [p.strip() for p in chunk.split(",")]
            if len(parts) != 2:
                logger.warning(f"Ignoring malformed coordinate pair: {chunk!r}")
                continue
            pair = parse_coordinate(parts[0], parts[1])
            if pair is not None:
                pairs.append(pair)
        if pairs:
            queries.append(ByCoordinateList(pairs=pairs))

    if not queries:
        queries.append(Unspecified())
    return queries


def parse_coordinate(lat: str, lng: str) -> Optional[Tuple[float, float]]:
    try:
        lat_value = float(lat)
        lng_value = float(lng)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric coordinate: {lat!r}, {lng!r}")
        return None

    if not (-90.0 <= lat_value <= 90.0 and -180.0 <= lng_value <= 180.0):
        logger.warning(f"Ignoring out-of-range coordinate: {lat_value}, {lng_value}")
        return None
    return lat_value, lng_value


def client_ip(forwarded_for: Optional[str], peer_host: Optional[str]) -> Optional[str]:
    """Left-most X-Forwarded-For entry, else the socket peer address."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host or None


class LocationResolver:
    def __init__(self, geocoder: Geocoder, config: ResolverConfig):
        self.geocoder = geocoder
        self.config = config

    async def resolve(self, queries: Iterable[LocationQuery], ip: Optional[str] = None) -> List[str]:
        """
        Resolve location queries into an ordered, deduplicated list of place names.

        IP geolocation is only attempted when no other query produced a name.
        Raises NoLocationResolved when the list would be empty.
        """
        collected: List[str] = []

        for query in queries:
            if isinstance(query, ByName):
                collected.extend(self._accept(name) for name in query.names)
            elif isinstance(query, ByCoordinate):
                raw = await self.geocoder.reverse_geocode(query.lat, query.lng)
                collected.append(self._accept(raw))
            elif isinstance(query, ByCoordinateList):
                raws = await asyncio.gather(
                    *(self.geocoder.reverse_geocode(lat, lng) for lat, lng in query.pairs)
                )
                collected.extend(self._accept(raw) for raw in raws)
            elif isinstance(query, Unspecified):
                pass
            else:
                raise TypeError(f"Unknown location query: {query!r}")

        names = dedupe(name for name in collected if name)

        if not names:
            raw = await self.geocoder.locate_ip(ip)
            accepted = self._accept(raw)
            if accepted:
                logger.info(f"Resolved location from IP {ip}: {accepted}")
                names = [accepted]

        if not names:
            raise NoLocationResolved(
                "Provide city, cities, lat+lng or coords, or enable IP geolocation"
            )

        logger.info(f"Resolved locations: {names}")
        return names

    def _accept(self, raw: Optional[str]) -> Optional[str]:
        if not raw:
            return None
        if self.config.name_policy == "lenient":
            return raw.strip() or None
        name = normalize_place_name(raw)
        if name is None:
            logger.info(f"Dropping unrecognised place name: {raw!r}")
        return name


def dedupe(names: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result
