"""Aggregation of per-batch outcomes into one UploadResult."""
import asyncio
import logging
from typing import Dict, List

from ..models import BatchOutcome, UploadResult

logger = logging.getLogger(__name__)


class ResultAggregator:
    """
    Collects BatchOutcomes reported concurrently by dispatcher workers.

    Outcomes may arrive in any order; finalize() orders errors by batch index
    and input line.
    """

    def __init__(self):
        self._outcomes: Dict[int, BatchOutcome] = {}
        self._succeeded = 0
        self._failed = 0
        self._lock = asyncio.Lock()

    async def absorb(self, outcome: BatchOutcome) -> None:
        async with self._lock:
            if outcome.batch_index in self._outcomes:
                raise ValueError(f"Batch {outcome.batch_index} was already reported")
            self._outcomes[outcome.batch_index] = outcome
            self._succeeded += outcome.succeeded
            self._failed += outcome.failed

    def finalize(self) -> UploadResult:
        errors = []
        grouped_failed: Dict[str, List] = {}
        for index in sorted(self._outcomes):
            for error in sorted(self._outcomes[index].errors, key=lambda e: e.line):
                errors.append(error)
                grouped_failed.setdefault(error.reason, []).append(error.record)

        result = UploadResult(
            number_of_all_lines=self._succeeded + self._failed,
            number_of_success=self._succeeded,
            number_of_failure=self._failed,
            errors=errors,
            grouped_failed=grouped_failed,
        )
        logger.info(
            f"Upload result: {result.number_of_success}/{result.number_of_all_lines} succeeded, "
            f"{result.number_of_failure} failed across {len(self._outcomes)} batches"
        )
        return result
