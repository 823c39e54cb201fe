"""
Error taxonomy for conversion uploads.

Fatal errors (ConfigError, ResolutionError) abort an upload before any batch is
sent. RecordStreamError aborts an upload whose record source fails partway; batches
already in flight are finished first. Non-fatal errors (BatchSendError,
PartialRecordError) are only ever recorded in the UploadResult.
"""


class UploaderError(RuntimeError):
    """Base class for all uploader errors."""


class ConfigError(UploaderError):
    """Raised when speed options or credentials are invalid."""


class ResolutionError(UploaderError):
    """Raised when the (account, identity) pair cannot be resolved to a profile."""


class BatchSendError(UploaderError):
    """A whole batch failed to send or timed out."""

    def __init__(self, batch_index: int, reason: str):
        super().__init__(reason)
        self.batch_index = batch_index
        self.reason = reason


class PartialRecordError(UploaderError):
    """The destination accepted a batch but rejected one of its records."""

    def __init__(self, line: int, reason: str):
        super().__init__(reason)
        self.line = line
        self.reason = reason


class RecordStreamError(UploaderError):
    """The record source raised while batches were being read."""

    def __init__(self, batches_read: int, reason: str):
        super().__init__(f"Record stream failed after {batches_read} batches: {reason}")
        self.batches_read = batches_read
        self.reason = reason
