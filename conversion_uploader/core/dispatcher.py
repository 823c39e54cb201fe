"""Speed-controlled concurrent dispatch of batches."""
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Iterator, List, Optional

from ..errors import BatchSendError, ConfigError, RecordStreamError
from ..models import Batch, BatchOutcome
from ..utils.events import EventEmitter
from .aggregator import ResultAggregator
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SendBatchFn = Callable[[Batch], Awaitable[BatchOutcome]]


class Dispatcher:
    """
    Sends batches through a fixed pool of workers gated by a shared RateLimiter.

    - Exactly `concurrency` workers pull from one shared batch iterator, so each
      batch is claimed once.
    - A failing or timed out batch becomes a failed outcome for all its records;
      sibling batches keep going.
    - If the batch source itself raises, no further batches are claimed, in-flight
      sends finish, and RecordStreamError is raised. No worker outlives `run`.

    Events:
        batch_start(batch), batch_complete(outcome), batch_fail(outcome)
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        concurrency: int,
        send_timeout: Optional[float] = None,
        events: Optional[EventEmitter] = None,
    ):
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency <= 0:
            raise ConfigError(f"concurrency must be a positive integer, got {concurrency!r}")
        self._rate_limiter = rate_limiter
        self._concurrency = concurrency
        self._send_timeout = send_timeout
        self._events = events or EventEmitter()

    @property
    def events(self) -> EventEmitter:
        return self._events

    async def run(
        self,
        batches: Iterable[Batch],
        send_fn: SendBatchFn,
        aggregator: Optional[ResultAggregator] = None,
    ) -> List[BatchOutcome]:
        """
        Send every batch and return the outcomes in completion order.

        Args:
            batches: Batches to send, typically a lazy splitter output
            send_fn: Coroutine function sending one batch
            aggregator: Optional aggregator receiving each outcome as it completes

        Returns:
            One BatchOutcome per batch
        """
        shared = iter(batches)
        outcomes: List[BatchOutcome] = []
        stream_errors: List[Exception] = []

        logger.info(f"Dispatching batches with {self._concurrency} workers")
        workers = [
            asyncio.create_task(
                self._worker(worker_id, shared, send_fn, aggregator, outcomes, stream_errors)
            )
            for worker_id in range(self._concurrency)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        if stream_errors:
            error = stream_errors[0]
            raise RecordStreamError(len(outcomes), str(error) or type(error).__name__) from error

        failed = sum(1 for o in outcomes if o.failed)
        logger.info(f"Dispatch complete: {len(outcomes)} batches, {failed} with failures")
        return outcomes

    async def _worker(
        self,
        worker_id: int,
        batches: Iterator[Batch],
        send_fn: SendBatchFn,
        aggregator: Optional[ResultAggregator],
        outcomes: List[BatchOutcome],
        stream_errors: List[Exception],
    ) -> None:
        while not stream_errors:
            try:
                batch = next(batches)
            except StopIteration:
                return
            except Exception as e:
                # Siblings stop claiming once any worker sees the source fail
                logger.error(f"[worker {worker_id}] Record stream failed: {e!r}")
                stream_errors.append(e)
                return

            outcome = await self._dispatch(worker_id, batch, send_fn)
            outcomes.append(outcome)
            if aggregator is not None:
                await aggregator.absorb(outcome)
            await self._events.emit("batch_fail" if outcome.failed else "batch_complete", outcome)

    async def _dispatch(self, worker_id: int, batch: Batch, send_fn: SendBatchFn) -> BatchOutcome:
        await self._rate_limiter.acquire()
        await self._events.emit("batch_start", batch)
        logger.debug(f"[worker {worker_id}] Sending batch {batch.index} ({batch.size} records)")

        try:
            if self._send_timeout:
                outcome = await asyncio.wait_for(send_fn(batch), timeout=self._send_timeout)
            else:
                outcome = await send_fn(batch)
        except asyncio.TimeoutError:
            error = BatchSendError(batch.index, f"Batch timed out after {self._send_timeout}s")
            logger.warning(f"[worker {worker_id}] Batch {batch.index}: {error}")
            return BatchOutcome.failure(batch, str(error))
        except Exception as e:
            error = BatchSendError(batch.index, str(e) or type(e).__name__)
            logger.error(f"[worker {worker_id}] Batch {batch.index} failed: {error}")
            return BatchOutcome.failure(batch, str(error))

        if not isinstance(outcome, BatchOutcome):
            error = BatchSendError(batch.index, f"Send returned {type(outcome).__name__}, not an outcome")
            logger.error(f"[worker {worker_id}] {error}")
            return BatchOutcome.failure(batch, str(error))

        if outcome.batch_index != batch.index or outcome.total != batch.size:
            error = BatchSendError(
                batch.index,
                f"Inconsistent outcome for batch {batch.index}: "
                f"{outcome.total} records reported, {batch.size} sent",
            )
            logger.error(f"[worker {worker_id}] {error}")
            return BatchOutcome.failure(batch, str(error))

        return outcome
