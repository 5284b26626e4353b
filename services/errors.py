"""Exception hierarchy shared by the trading and analysis services."""

from typing import Optional


class OracleError(Exception):
    """Base class for all errors raised by the services package."""


class ConfigurationError(OracleError):
    """Missing or malformed credentials, keys or settings."""


class SignatureError(ConfigurationError):
    """A request could not be signed (empty secret, missing primitive)."""


class ExchangeAPIError(OracleError):
    """A MEXC call failed at the network level or returned a non-2xx status."""

    def __init__(self, operation: str, status_code: Optional[int], body: str):
        self.operation = operation
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"MEXC {operation} failed: {body}"
        else:
            message = f"MEXC API error ({operation}): {status_code} - {body}"
        super().__init__(message)


class ModelTransportError(OracleError):
    """The language model call failed or returned no usable content."""


class InvalidImageError(OracleError):
    """Image data URL is not a base64 PNG, JPEG or WEBP."""


class NoContextError(OracleError):
    """Analysis requested without images or cached market data."""


class AnalysisParseError(OracleError):
    """The final analysis response was not a valid AnalysisResults object."""

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)
