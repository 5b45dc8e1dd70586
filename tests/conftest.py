import httpx
import pytest

from models import Config, CwaConfig

CWA_HOST = "opendata.cwa.gov.tw"
NOMINATIM_HOST = "nominatim.openstreetmap.org"
IPAPI_HOST = "ipapi.co"


def time_axis(count, values):
    return [
        {
            "startTime": f"2026-10-{19 + i // 2} {'06' if i % 2 == 0 else '18'}:00:00",
            "endTime": f"2026-10-{19 + (i + 1) // 2} {'18' if i % 2 == 0 else '06'}:00:00",
            "parameter": {"parameterName": values[i % len(values)]},
        }
        for i in range(count)
    ]


def location_record(name, count=2, elements=None):
    elements = elements or {
        "Wx": ["多雲", "晴時多雲"],
        "PoP": ["20", "10"],
        "MinT": ["24", "22"],
        "MaxT": ["30", "28"],
        "CI": ["舒適至悶熱", "舒適"],
    }
    return {
        "locationName": name,
        "weatherElement": [
            {"elementName": element, "time": time_axis(count, values)}
            for element, values in elements.items()
        ],
    }


def cwa_payload(*locations):
    return {
        "success": "true",
        "records": {
            "datasetDescription": "三十六小時天氣預報",
            "location": list(locations),
        },
    }


class FakeUpstream:
    """In-memory stand-in for the forecast, geocoding and IP lookup services."""

    def __init__(self):
        self.requests = []
        self.forecasts = {}
        self.forecast_errors = {}
        self.addresses = {}
        self.ip_locations = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host

        if host == CWA_HOST:
            place = request.url.params.get("locationName")
            if place in self.forecast_errors:
                status, body = self.forecast_errors[place]
                return httpx.Response(status, json=body)
            if place in self.forecasts:
                return httpx.Response(200, json=cwa_payload(self.forecasts[place]))
            return httpx.Response(200, json=cwa_payload())

        if host == NOMINATIM_HOST:
            key = (float(request.url.params["lat"]), float(request.url.params["lon"]))
            if key in self.addresses:
                return httpx.Response(200, json={"address": self.addresses[key]})
            return httpx.Response(500, json={"error": "unavailable"})

        if host == IPAPI_HOST:
            ip = request.url.path.strip("/").split("/")[0]
            if ip in self.ip_locations:
                return httpx.Response(200, json=self.ip_locations[ip])
            return httpx.Response(429, json={"error": True, "reason": "RateLimited"})

        return httpx.Response(404)

    def requests_to(self, host):
        return [r for r in self.requests if r.url.host == host]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def config():
    return Config(cwa=CwaConfig(api_key="test-key"))
