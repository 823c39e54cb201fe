"""Configuration surface: defaults and parsing of camelCase config mappings."""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError
from .models import UploadConfig

logger = logging.getLogger(__name__)

# Campaign Manager quotas, see https://developers.google.com/doubleclick-advertisers/quotas
RECORDS_PER_REQUEST = 1000
QUERIES_PER_SECOND = 1
NUMBER_OF_THREADS = 10
REQUEST_TIMEOUT = 60


def get_proper_value(value: Any, default: float, capped: bool = True, integer: bool = False) -> float:
    """
    Return `value` if it is a positive finite number, otherwise `default`.

    With `integer`, the value is truncated first, so 0.5 falls back to `default`.
    With `capped`, the result never exceeds `default`, which is then treated as the
    destination's hard limit.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = None
    if number is not None and math.isfinite(number) and integer:
        number = math.trunc(number)
    if isinstance(value, bool) or number is None or not math.isfinite(number) or number <= 0:
        number = default
    if capped:
        number = min(number, default)
    if isinstance(default, int) and float(number).is_integer():
        return int(number)
    return number


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def load_upload_config(
    mapping: Mapping[str, Any],
    account_id: Optional[str] = None,
    identity: Optional[str] = None,
) -> UploadConfig:
    """
    Build an UploadConfig from a camelCase mapping.

    Speed values fall back to their defaults when missing or invalid. Explicit
    `account_id`/`identity` arguments override the mapping.
    """
    account = account_id or _first(mapping, "cmAccountId", "accountId")
    if not account:
        raise ConfigError("cmAccountId is required")

    records_per_request = get_proper_value(
        _first(mapping, "recordsPerRequest"), RECORDS_PER_REQUEST, capped=False, integer=True
    )
    qps = get_proper_value(_first(mapping, "qps", "queriesPerSecond"), QUERIES_PER_SECOND, capped=False)
    concurrency = get_proper_value(
        _first(mapping, "numberOfThreads", "concurrency"), NUMBER_OF_THREADS, capped=False, integer=True
    )
    timeout = get_proper_value(_first(mapping, "requestTimeout"), REQUEST_TIMEOUT, capped=False)

    return UploadConfig(
        account_id=str(account),
        identity=identity or _first(mapping, "identity", "userName"),
        records_per_request=int(records_per_request),
        queries_per_second=qps,
        concurrency=int(concurrency),
        destination_params=dict(_first(mapping, "cmConfig", "destinationParams") or {}),
        request_timeout=timeout,
        secret_name=_first(mapping, "secretName"),
    )


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read a camelCase config mapping from a JSON file."""
    path = Path(path)
    try:
        content = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"could not read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config file {path} is not valid JSON: {exc}") from exc

    if not isinstance(content, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")

    logger.debug("Loaded upload config from %s", path)
    return content


def load_config_file(path: Path, **overrides: Any) -> UploadConfig:
    """Load an UploadConfig from a JSON file."""
    return load_upload_config(read_config_file(path), **overrides)
