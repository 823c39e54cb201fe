"""Services for conversion_uploader."""
from .api_client import HTTPAPIClient
from .credentials import EnvCredentialSource
from .dfareporting import DfaReportingClient
from .profile import ProfileResolver

__all__ = [
    "DfaReportingClient",
    "EnvCredentialSource",
    "HTTPAPIClient",
    "ProfileResolver",
]
