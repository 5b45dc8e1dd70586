import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import ConfigurationError, NoUpstreamData, UpstreamError, WeatherProxyError
from models import CwaConfig, ForecastInterval, LocationWeather, PlaceResult

logger = logging.getLogger(__name__)

REFERENCE_ELEMENT = "Wx"

# Upstream element name -> (output field, suffix appended to the value)
ELEMENT_FIELDS = {
    "Wx": ("weather", ""),
    "PoP": ("rain", "%"),
    "PoP12h": ("rain", "%"),
    "MinT": ("min_temp", "°C"),
    "MaxT": ("max_temp", "°C"),
    "CI": ("comfort", ""),
    "WS": ("wind_speed", ""),
}


class WeatherService:
    def __init__(self, client: httpx.AsyncClient, config: CwaConfig):
        self.client = client
        self.config = config

    @property
    def forecast_url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/v1/rest/datastore/{self.config.dataset_id}"

    def ensure_configured(self) -> None:
        if not self.config.api_key:
            raise ConfigurationError("CWA_API_KEY is not set; add it to the environment or .env file")

    async def fetch_location_weather(self, place: str) -> LocationWeather:
        """
        Query the forecast dataset for one place and format the matching record.

        Raises ConfigurationError, UpstreamError or NoUpstreamData.
        """
        self.ensure_configured()

        params = {"Authorization": self.config.api_key, "locationName": place}
        logger.info(f"Fetching forecast for {place}")

        try:
            resp = await self.client.get(self.forecast_url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Forecast request for {place} failed: {e}")
            raise UpstreamError(f"Forecast request failed: {e}")

        if resp.is_error:
            body = _safe_json(resp)
            message = "Unable to fetch weather data"
            if isinstance(body, dict) and body.get("message"):
                message = str(body["message"])
            logger.error(f"Forecast API returned {resp.status_code} for {place}: {message}")
            raise UpstreamError(message, status_code=resp.status_code, details=body)

        body = _safe_json(resp)
        if not isinstance(body, dict):
            raise UpstreamError("Forecast API returned an unreadable response")

        records = body.get("records") or {}
        locations = records.get("location") or []
        if not locations:
            raise NoUpstreamData(f"No forecast data for {place}")

        return format_location_weather(records, locations[0])

    async def fetch_many(self, places: List[str]) -> List[PlaceResult]:
        """Fetch every place concurrently; one failure never affects the others."""
        return list(await asyncio.gather(*(self._fetch_result(place) for place in places)))

    async def _fetch_result(self, place: str) -> PlaceResult:
        try:
            data = await self.fetch_location_weather(place)
        except WeatherProxyError as e:
            logger.warning(f"Forecast for {place} unavailable: {e.message}")
            return PlaceResult(name=place, success=False, error=e.message)
        except Exception as e:
            logger.error(f"Unexpected error fetching {place}: {e}")
            return PlaceResult(name=place, success=False, error=str(e))
        return PlaceResult(name=place, success=True, data=data)


def format_location_weather(records: Dict[str, Any], location: Dict[str, Any]) -> LocationWeather:
    """
    Reshape an upstream location record into per-interval forecasts.

    The reference element's time axis decides the number of intervals and
    their start/end times. Other elements are read by index, assuming the
    upstream keeps all time axes aligned; missing entries keep their defaults.
    """
    elements = location.get("weatherElement") or []
    by_name = {e.get("elementName"): e.get("time") or [] for e in elements}

    if REFERENCE_ELEMENT in by_name:
        reference = by_name[REFERENCE_ELEMENT]
    elif elements:
        reference = elements[0].get("time") or []
    else:
        reference = []

    forecasts = []
    for i, slot in enumerate(reference):
        values = {}
        for element_name, times in by_name.items():
            if element_name not in ELEMENT_FIELDS or i >= len(times):
                continue
            value = _element_value(times[i])
            if value is None:
                continue
            field, suffix = ELEMENT_FIELDS[element_name]
            values[field] = f"{value}{suffix}"

        forecasts.append(
            ForecastInterval(
                start_time=slot.get("startTime", ""),
                end_time=slot.get("endTime", ""),
                **values,
            )
        )

    return LocationWeather(
        city=location.get("locationName", ""),
        update_time=records.get("datasetDescription") or "",
        forecasts=forecasts,
    )


def _element_value(slot: Dict[str, Any]) -> Optional[str]:
    parameter = slot.get("parameter")
    if isinstance(parameter, dict) and parameter.get("parameterName") is not None:
        return str(parameter["parameterName"])

    # Township datasets carry elementValue lists instead of parameter
    element_values = slot.get("elementValue")
    if isinstance(element_values, list) and element_values:
        first = element_values[0]
        if isinstance(first, dict) and first.get("value") is not None:
            return str(first["value"])
    return None


def _safe_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text
