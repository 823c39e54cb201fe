"""Command line interface for conversion_uploader."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cli_progress import BatchProgressDisplay, render_configuration_summary, render_upload_result
from .config import load_upload_config, read_config_file
from .errors import UploaderError
from .handlers import get_api_handler
from .models import UploadConfig, UploadResult
from .utils.records import iter_file_lines


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level).upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _build_config(args: argparse.Namespace) -> UploadConfig:
    """Merge the JSON config file with command line overrides."""
    mapping: Dict[str, Any] = read_config_file(args.config) if args.config else {}

    overrides = {
        "cmAccountId": args.account or os.getenv("CM_ACCOUNT_ID"),
        "identity": args.identity or os.getenv("CM_IDENTITY"),
        "recordsPerRequest": args.records_per_request,
        "qps": args.qps,
        "numberOfThreads": args.threads,
        "requestTimeout": args.timeout,
        "secretName": args.secret_name,
    }
    mapping.update({key: value for key, value in overrides.items() if value is not None})
    return load_upload_config(mapping)


async def _run_upload(source: Path, api_code: str, config: UploadConfig, show_progress: bool) -> UploadResult:
    handler = get_api_handler(api_code)()

    display = None
    if show_progress:
        display = BatchProgressDisplay(total_records=sum(1 for _ in iter_file_lines(source)))

    if display:
        handler.events.on("batch_start", display.on_batch_start)
        handler.events.on("batch_complete", display.on_batch_complete)
        handler.events.on("batch_fail", display.on_batch_fail)
        display.start()

    try:
        return await handler.upload(iter_file_lines(source), config)
    finally:
        if display:
            display.stop()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cm-upload",
        description="Upload newline-delimited JSON conversions with speed control.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="File with one JSON record per line")
    parser.add_argument("--api", default="CM", help="API code of the destination (default: CM)")
    parser.add_argument("-c", "--config", type=Path, default=None, help="JSON config file (camelCase keys)")
    parser.add_argument("-a", "--account", default=None, help="Campaign Manager account ID")
    parser.add_argument("-u", "--identity", default=None, help="User (email) owning the CM profile")
    parser.add_argument("--records-per-request", type=int, default=None, help="Records per request")
    parser.add_argument("--qps", type=float, default=None, help="Queries per second")
    parser.add_argument("--threads", type=int, default=None, help="Number of concurrent workers")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("--secret-name", default=None, help="Name of the secret holding the access token")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON on stdout")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version=f"cm-upload {__version__}")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.source is None:
        parser.print_help()
        return 0

    source = Path(args.source).expanduser()
    if not source.is_file():
        print(f"ERROR: source is not a file: {source}", file=sys.stderr)
        return 1

    try:
        config = _build_config(args)
    except UploaderError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if not args.silent:
        render_configuration_summary(
            {
                "Source": str(source),
                "API": args.api.upper(),
                "Account": config.account_id,
                "Identity": config.identity or "(token owner)",
                "Records/Request": config.records_per_request,
                "QPS": config.queries_per_second,
                "Threads": config.concurrency,
                "Timeout": f"{config.request_timeout}s",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        result = asyncio.run(_run_upload(source, args.api, config, show_progress=not args.silent))
    except (UploaderError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130

    if args.json:
        print(json.dumps(result.to_dict(), default=str))
    elif not args.silent:
        render_upload_result(result)

    return 0 if result.result else 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
