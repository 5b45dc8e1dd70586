import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config_loader import load_config
from errors import InvalidCity, WeatherProxyError
from geocoding import Geocoder
from location_resolver import LocationResolver, client_ip, parse_location_queries
from models import Config, ErrorResponse, MultiPlaceResponse, SinglePlaceResponse
from place_names import CANONICAL_PLACE_NAMES, is_canonical_place_name, standardize
from weather_service import WeatherService

# Configure logging with Docker-friendly format
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),  # Console output for Docker logs
        (
            logging.FileHandler("/app/logs/weather_api.log")
            if os.path.exists("/app/logs")
            else logging.NullHandler()
        ),
    ],
)
logger = logging.getLogger(__name__)

LEGACY_CITY_ROUTES = {"kaohsiung": "高雄市"}


def error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app(config: Config, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Build the API around an explicit configuration.

    When no HTTP client is given, one is created here and closed on shutdown.
    """
    owns_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=config.server.http_timeout_seconds)

    geocoder = Geocoder(http_client, config.geocoding)
    resolver = LocationResolver(geocoder, config.resolver)
    weather_service = WeatherService(http_client, config.cwa)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info("Starting CWA weather proxy")
        logger.info(f"Forecast dataset: {config.cwa.dataset_id}")
        logger.info(f"Place name policy: {config.resolver.name_policy}")

        yield

        logger.info("Shutting down CWA weather proxy")
        if owns_client:
            await http_client.aclose()

    app = FastAPI(
        title="CWA Weather Proxy",
        description="Taiwan Central Weather Administration forecast proxy with location resolution",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    async def weather_for_query(request: Request, city, cities, lat, lng, coords) -> MultiPlaceResponse:
        weather_service.ensure_configured()

        queries = parse_location_queries(city=city, cities=cities, lat=lat, lng=lng, coords=coords)
        ip = client_ip(
            request.headers.get("x-forwarded-for"),
            request.client.host if request.client else None,
        )
        names = await resolver.resolve(queries, ip)

        results = await weather_service.fetch_many(names)
        return MultiPlaceResponse(query=names, results=results)

    @app.get("/")
    async def index():
        """Discovery document listing endpoints and supported cities."""
        return {
            "message": "Welcome to the CWA weather forecast API",
            "endpoints": {
                "weather": "/api/weather?city=臺北市",
                "weather_multi": "/api/weather?cities=臺北市,高雄市",
                "weather_coordinate": "/api/weather?lat=25.033&lng=121.565",
                "weather_coordinates": "/api/weather?coords=25.033,121.565;22.627,120.301",
                "weather_by_city": "/api/weather/{city}",
                "health": "/api/health",
            },
            "cities": list(CANONICAL_PLACE_NAMES),
        }

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get(
        "/api/weather",
        response_model=MultiPlaceResponse,
        response_model_exclude_none=True,
    )
    async def get_weather(
        request: Request,
        city: Optional[str] = None,
        cities: Optional[str] = None,
        lat: Optional[str] = None,
        lng: Optional[str] = None,
        coords: Optional[str] = None,
    ):
        """
        Get forecasts for one or more places.

        Accepts city, cities (comma-separated), lat+lng, or coords
        (semicolon-separated lat,lng pairs). Falls back to IP geolocation.
        """
        return await weather_for_query(request, city, cities, lat, lng, coords)

    @app.get(
        "/api/weather/kaohsiung",
        response_model=MultiPlaceResponse,
        response_model_exclude_none=True,
    )
    async def get_weather_legacy(request: Request):
        """Backwards-compatible route, same as ?city=高雄市."""
        return await weather_for_query(request, LEGACY_CITY_ROUTES["kaohsiung"], None, None, None, None)

    @app.get(
        "/api/weather/{city_name}",
        response_model=SinglePlaceResponse,
        response_model_exclude_none=True,
    )
    async def get_weather_by_city(city_name: str):
        """Get the forecast for a single canonical city."""
        if not is_canonical_place_name(city_name):
            raise InvalidCity(
                f"'{city_name}' is not a supported city. Supported cities: {', '.join(CANONICAL_PLACE_NAMES)}"
            )

        weather_service.ensure_configured()
        city = standardize(city_name)
        data = await weather_service.fetch_location_weather(city)
        return SinglePlaceResponse(city=city, data=data)

    @app.exception_handler(WeatherProxyError)
    async def weather_proxy_exception_handler(request: Request, exc: WeatherProxyError):
        if exc.status_code >= 500:
            logger.error(f"{exc.category} on {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.category} on {request.url.path}: {exc.message}")
        return error_response(exc.status_code, exc.category, exc.message, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "not_found", f"No route for {request.url.path}")
        return error_response(exc.status_code, "http_error", str(exc.detail))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}")
        return error_response(500, "server_error", "Unable to fetch weather data, please try again later")

    return app


def get_app() -> FastAPI:
    """Application factory for `uvicorn main:get_app --factory`."""
    load_dotenv()
    return create_app(load_config())


if __name__ == "__main__":
    import uvicorn

    load_dotenv()
    config = load_config()
    app = create_app(config)

    logger.info(f"Starting server on {config.server.host}:{config.server.port}")

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=log_level.lower(),
        access_log=True,
    )
