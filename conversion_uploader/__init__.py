"""
conversion_uploader - speed-controlled conversion uploads to Campaign Manager.

Splits a record stream into batches, sends them through a bounded worker pool
under a shared rate limit, and aggregates one result for the whole upload.

Usage:
    from conversion_uploader import CampaignManagerConversionUpload, load_upload_config

    config = load_upload_config({
        "cmAccountId": "1234",
        "identity": "analyst@example.com",
        "cmConfig": {
            "idType": "gclid",
            "conversion": {"floodlightConfigurationId": "1", "floodlightActivityId": "2"},
        },
    })
    handler = CampaignManagerConversionUpload()
    result = await handler.send_data(records_blob, message_id, config)
    print(result.number_of_success, result.number_of_failure)
"""
from .config import load_config_file, load_upload_config
from .core import Dispatcher, RateLimiter, ResultAggregator, split
from .errors import (
    BatchSendError,
    ConfigError,
    PartialRecordError,
    RecordStreamError,
    ResolutionError,
    UploaderError,
)
from .handlers import ApiHandler, CampaignManagerConversionUpload, get_api_handler
from .models import (
    Batch,
    BatchOutcome,
    Profile,
    RecordError,
    SpeedOptions,
    UploadConfig,
    UploadResult,
)

__version__ = "0.1.0"
__all__ = [
    # Handlers
    "ApiHandler",
    "CampaignManagerConversionUpload",
    "get_api_handler",
    # Core
    "Dispatcher",
    "RateLimiter",
    "ResultAggregator",
    "split",
    # Config
    "load_config_file",
    "load_upload_config",
    # Models
    "Batch",
    "BatchOutcome",
    "Profile",
    "RecordError",
    "SpeedOptions",
    "UploadConfig",
    "UploadResult",
    # Errors
    "BatchSendError",
    "ConfigError",
    "PartialRecordError",
    "RecordStreamError",
    "ResolutionError",
    "UploaderError",
]
