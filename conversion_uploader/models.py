"""
Models for conversion_uploader.

Immutable dataclasses for configuration, batches and results.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .errors import ConfigError, UploaderError


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for one upload."""
    account_id: str
    identity: Optional[str] = None
    records_per_request: int = 1000
    queries_per_second: float = 1
    concurrency: int = 10
    destination_params: Dict[str, Any] = field(default_factory=dict)
    request_timeout: float = 60
    secret_name: Optional[str] = None

    def __post_init__(self):
        for name in ("records_per_request", "queries_per_second", "concurrency", "request_timeout"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")
        for name in ("records_per_request", "concurrency"):
            if not isinstance(getattr(self, name), int):
                raise ConfigError(f"{name} must be an integer, got {getattr(self, name)!r}")


@dataclass(frozen=True)
class SpeedOptions:
    """Speed control values a handler derives from an UploadConfig."""
    records_per_request: int
    queries_per_second: float
    concurrency: int


@dataclass(frozen=True)
class Profile:
    """Destination user profile resolved for one (account, identity) pair."""
    profile_id: str
    account_id: str
    user_name: Optional[str] = None


@dataclass(frozen=True)
class Batch:
    """A slice of the input stream sent in a single request."""
    index: int
    start: int
    records: Sequence[Any]

    @property
    def size(self) -> int:
        return len(self.records)

    def lines(self):
        """Yield (absolute input position, record) pairs."""
        for offset, record in enumerate(self.records):
            yield self.start + offset, record


@dataclass(frozen=True)
class RecordError:
    """A failed record and the reason it failed."""
    batch_index: int
    line: int
    record: Any
    reason: str

    @classmethod
    def from_error(cls, batch_index: int, line: int, record: Any, error: UploaderError):
        return cls(batch_index=batch_index, line=line, record=record, reason=str(error))


@dataclass(frozen=True)
class BatchOutcome:
    """Result of sending one batch."""
    batch_index: int
    succeeded: int
    failed: int
    errors: List[RecordError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @classmethod
    def ok(cls, batch: Batch):
        return cls(batch_index=batch.index, succeeded=batch.size, failed=0)

    @classmethod
    def failure(cls, batch: Batch, reason: str):
        """Failed outcome covering every record of the batch."""
        errors = [
            RecordError(batch_index=batch.index, line=line, record=record, reason=reason)
            for line, record in batch.lines()
        ]
        return cls(batch_index=batch.index, succeeded=0, failed=batch.size, errors=errors)


@dataclass(frozen=True)
class UploadResult:
    """Aggregated result of a whole upload."""
    number_of_all_lines: int = 0
    number_of_success: int = 0
    number_of_failure: int = 0
    errors: List[RecordError] = field(default_factory=list)
    grouped_failed: Dict[str, List[Any]] = field(default_factory=dict)

    @property
    def result(self) -> bool:
        return self.number_of_failure == 0

    def to_dict(self) -> Dict[str, Any]:
        """Render the result with the camelCase keys used by callers."""
        return {
            "result": self.result,
            "numberOfAllLines": self.number_of_all_lines,
            "numberOfSuccess": self.number_of_success,
            "numberOfFailure": self.number_of_failure,
            "errors": [
                {"batchIndex": e.batch_index, "line": e.line, "reason": e.reason}
                for e in self.errors
            ],
            "groupedFailed": {reason: list(records) for reason, records in self.grouped_failed.items()},
        }
