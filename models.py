from typing import Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    http_timeout_seconds: float = 10.0


class CwaConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: str = "https://opendata.cwa.gov.tw/api"
    dataset_id: str = "F-C0032-001"


class GeocodingConfig(BaseModel):
    reverse_url: str = "https://nominatim.openstreetmap.org/reverse"
    user_agent: str = "weather-backend/1.0"
    accept_language: str = "zh-TW"
    ip_lookup_url: str = "https://ipapi.co"


class ResolverConfig(BaseModel):
    name_policy: Literal["strict", "lenient"] = "strict"


class Config(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    cwa: CwaConfig = Field(default_factory=CwaConfig)
    geocoding: GeocodingConfig = Field(default_factory=GeocodingConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)


# Location queries, built once per request from the raw query parameters


class ByName(BaseModel):
    names: List[str]


class ByCoordinate(BaseModel):
    lat: float
    lng: float


class ByCoordinateList(BaseModel):
    pairs: List[Tuple[float, float]]


class Unspecified(BaseModel):
    pass


LocationQuery = Union[ByName, ByCoordinate, ByCoordinateList, Unspecified]


# Response payloads


class ForecastInterval(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    weather: str = ""
    rain: str = ""
    min_temp: str = Field("", alias="minTemp")
    max_temp: str = Field("", alias="maxTemp")
    comfort: str = ""
    wind_speed: Optional[str] = Field(None, alias="windSpeed")


class LocationWeather(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    city: str
    update_time: str = Field("", alias="updateTime")
    forecasts: List[ForecastInterval] = []


class PlaceResult(BaseModel):
    name: str
    success: bool
    data: Optional[LocationWeather] = None
    error: Optional[str] = None


class MultiPlaceResponse(BaseModel):
    success: bool = True
    query: List[str]
    results: List[PlaceResult]


class SinglePlaceResponse(BaseModel):
    success: bool = True
    city: str
    data: LocationWeather


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    details: Optional[Any] = None
