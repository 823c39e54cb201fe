"""Profile resolution - one lookup per upload, no caching, no retries."""
import asyncio
import logging
from typing import Optional

import httpx

from ..errors import ResolutionError
from ..models import Profile
from ..protocols import IDestinationClient

logger = logging.getLogger(__name__)


class ProfileResolver:
    """Resolves an (account, identity) pair to the destination profile."""

    def __init__(self, client: IDestinationClient):
        self._client = client

    async def resolve(self, account_id: str, identity: Optional[str] = None) -> Profile:
        """
        Look up the profile for an account and the invoking identity.

        Raises:
            ResolutionError: if no profile exists or the lookup call fails
        """
        try:
            profile = await self._client.get_profile_id(account_id, identity)
        except ResolutionError:
            raise
        except (
            RuntimeError,
            OSError,
            asyncio.TimeoutError,
            httpx.HTTPError,
            ValueError,
            KeyError,
            AttributeError,
            TypeError,
        ) as exc:
            raise ResolutionError(f"Profile lookup failed for account {account_id}: {exc}") from exc

        if profile is None:
            raise ResolutionError(f"No profile found for account {account_id}")

        logger.info(f"Resolved profile {profile.profile_id} for account {account_id}")
        return profile
