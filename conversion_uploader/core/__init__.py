"""Core package - the generic speed-controlled batch dispatcher."""
from .aggregator import ResultAggregator
from .dispatcher import Dispatcher, SendBatchFn
from .rate_limiter import RateLimiter
from .splitter import split

__all__ = ["Dispatcher", "RateLimiter", "ResultAggregator", "SendBatchFn", "split"]
