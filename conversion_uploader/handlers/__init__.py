"""API handlers, keyed by the API code found in incoming file names."""
from typing import Dict, Type

from ..errors import ConfigError
from .base import ApiHandler
from .cm_conversions import CampaignManagerConversionUpload

API_HANDLERS: Dict[str, Type[ApiHandler]] = {
    CampaignManagerConversionUpload.code: CampaignManagerConversionUpload,
}


def get_api_handler(code: str) -> Type[ApiHandler]:
    """Return the handler class for an API code, e.g. "CM"."""
    try:
        return API_HANDLERS[code.upper()]
    except KeyError:
        raise ConfigError(f"Unknown API code: {code}") from None


__all__ = ["API_HANDLERS", "ApiHandler", "CampaignManagerConversionUpload", "get_api_handler"]
