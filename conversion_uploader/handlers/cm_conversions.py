"""API handler for Campaign Manager conversions upload (DfaReporting API)."""
import logging

from ..config import NUMBER_OF_THREADS, QUERIES_PER_SECOND, RECORDS_PER_REQUEST, get_proper_value
from ..core import SendBatchFn
from ..models import Batch, BatchOutcome, Profile, SpeedOptions, UploadConfig
from ..protocols import IAPIClient, IDestinationClient
from ..services.dfareporting import DFAREPORTING_API_URL, DfaReportingClient
from .base import ApiHandler

logger = logging.getLogger(__name__)


class CampaignManagerConversionUpload(ApiHandler):
    """
    Conversion upload for Campaign Manager (CM).

    The configuration carries a CM account ID instead of a profile ID: different
    users have different profiles for the same account, so the profile is looked
    up from the account and the current user, then put into the conversions
    config (`destination_params`) used for every batch.
    """

    code = "CM"
    api_url = DFAREPORTING_API_URL

    def get_speed_options(self, config: UploadConfig) -> SpeedOptions:
        return SpeedOptions(
            records_per_request=get_proper_value(
                config.records_per_request, RECORDS_PER_REQUEST, integer=True
            ),
            queries_per_second=get_proper_value(config.queries_per_second, QUERIES_PER_SECOND),
            concurrency=get_proper_value(
                config.concurrency, NUMBER_OF_THREADS, capped=False, integer=True
            ),
        )

    def create_client(self, api: IAPIClient) -> IDestinationClient:
        return DfaReportingClient(api)

    def build_send_fn(
        self,
        client: IDestinationClient,
        config: UploadConfig,
        profile: Profile,
    ) -> SendBatchFn:
        cm_config = {**config.destination_params, "profileId": profile.profile_id}

        async def send(batch: Batch) -> BatchOutcome:
            return await client.upload_conversions(profile, cm_config, batch)

        return send
