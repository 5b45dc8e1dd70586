from typing import Any, Optional


class WeatherProxyError(Exception):
    """Base error carrying the HTTP status and category used in the response envelope."""

    status_code = 500
    category = "server_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ConfigurationError(WeatherProxyError):
    category = "configuration_error"


class ClientInputError(WeatherProxyError):
    status_code = 400
    category = "invalid_request"


class NoLocationResolved(ClientInputError):
    category = "missing_location"


class InvalidCity(ClientInputError):
    category = "invalid_city"


class NoUpstreamData(WeatherProxyError):
    status_code = 404
    category = "no_data"


class UpstreamError(WeatherProxyError):
    category = "upstream_error"
