"""
Base API handler - wires profile resolution and the dispatch core together.

Each destination implements `get_speed_options` and `build_send_fn`; splitting,
rate limiting, dispatch and aggregation are shared.
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncIterator, Iterable, Optional

from ..core import Dispatcher, RateLimiter, ResultAggregator, SendBatchFn, split
from ..models import Profile, SpeedOptions, UploadConfig, UploadResult
from ..protocols import IAPIClient, ICredentialSource, IDestinationClient
from ..services.api_client import HTTPAPIClient
from ..services.credentials import EnvCredentialSource
from ..services.profile import ProfileResolver
from ..utils.events import EventEmitter
from ..utils.records import iter_lines

logger = logging.getLogger(__name__)


class ApiHandler(ABC):
    """
    Uploads a record stream to one destination.

    Usage:
        handler = CampaignManagerConversionUpload()
        result = await handler.send_data(records_blob, message_id, config)

        # With an injected destination client (tests)
        handler = CampaignManagerConversionUpload(client=fake_client)
        result = await handler.upload(records, config)
    """

    code: str = ""
    api_url: str = ""

    def __init__(
        self,
        client: Optional[IDestinationClient] = None,
        credentials: Optional[ICredentialSource] = None,
        events: Optional[EventEmitter] = None,
    ):
        """
        Initialize handler.

        Args:
            client: Destination client; built from credentials per upload when omitted
            credentials: Source of access tokens (defaults to environment variables)
            events: Emitter receiving dispatcher batch events
        """
        self._client = client
        self._credentials = credentials or EnvCredentialSource()
        self._events = events or EventEmitter()

    @property
    def events(self) -> EventEmitter:
        return self._events

    @abstractmethod
    def get_speed_options(self, config: UploadConfig) -> SpeedOptions:
        """Derive batch size, rate and concurrency within destination limits."""

    @abstractmethod
    def build_send_fn(
        self,
        client: IDestinationClient,
        config: UploadConfig,
        profile: Profile,
    ) -> SendBatchFn:
        """Build the per-batch send function bound to a resolved profile."""

    @abstractmethod
    def create_client(self, api: IAPIClient) -> IDestinationClient:
        """Wrap an HTTP client in the destination client."""

    async def send_data(self, records: str, message_id: str, config: UploadConfig) -> UploadResult:
        """
        Upload a newline-delimited blob delivered by a message.

        Args:
            records: One JSON record per line
            message_id: Message ID, used for logging
            config: Upload configuration
        """
        logger.info(f"[{message_id}] Starting {self.code} upload for account {config.account_id}")
        result = await self.upload(iter_lines(records), config)
        logger.info(
            f"[{message_id}] Finished: {result.number_of_success}/{result.number_of_all_lines} "
            f"succeeded, {result.number_of_failure} failed"
        )
        return result

    async def upload(self, records: Iterable[Any], config: UploadConfig) -> UploadResult:
        """
        Upload a record stream.

        Raises:
            ConfigError: invalid speed options or missing credentials
            ResolutionError: profile lookup failed; nothing was sent
            RecordStreamError: the record source raised partway through
        """
        speed = self.get_speed_options(config)
        batches = split(records, speed.records_per_request)
        limiter = RateLimiter(speed.queries_per_second)
        dispatcher = Dispatcher(
            limiter,
            speed.concurrency,
            send_timeout=config.request_timeout,
            events=self._events,
        )

        async with self._open_client(config) as client:
            profile = await ProfileResolver(client).resolve(config.account_id, config.identity)
            send_fn = self.build_send_fn(client, config, profile)

            logger.info(
                f"Uploading with {speed.records_per_request} records/request, "
                f"{speed.queries_per_second} qps, {speed.concurrency} workers"
            )
            aggregator = ResultAggregator()
            await dispatcher.run(batches, send_fn, aggregator)

        return aggregator.finalize()

    @asynccontextmanager
    async def _open_client(self, config: UploadConfig) -> AsyncIterator[IDestinationClient]:
        if self._client is not None:
            yield self._client
            return

        token = self._credentials.get_token(config.secret_name)
        async with HTTPAPIClient(self.api_url, token=token, timeout=config.request_timeout) as api:
            yield self.create_client(api)
