"""
Protocols (Interfaces) for the external collaborators of an upload.

Following Interface Segregation Principle - small, focused interfaces.
"""
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .models import Batch, BatchOutcome, Profile


@runtime_checkable
class ICredentialSource(Protocol):
    """Interface for retrieving authentication material."""

    def get_token(self, secret_name: Optional[str] = None) -> str:
        """Return an OAuth access token for the destination API."""
        ...


@runtime_checkable
class IDestinationClient(Protocol):
    """Interface for the destination (DfaReporting-like) API."""

    async def get_profile_id(self, account_id: str, identity: Optional[str] = None) -> Profile:
        """Resolve the user profile for an account."""
        ...

    async def upload_conversions(
        self,
        profile: Profile,
        config: Dict[str, Any],
        batch: Batch,
    ) -> BatchOutcome:
        """Upload one batch of conversions."""
        ...


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for raw HTTP operations."""

    async def post(self, endpoint: str, json: Dict) -> Any:
        """POST request to API."""
        ...

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        """GET request to API."""
        ...
