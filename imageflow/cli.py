"""Command line interface for imageflow package."""
from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from .cli_render import StageLog, render_configuration_summary, render_outcome
from .errors import ImageflowError
from .models import DeleteRequest, ListRequest, UploadRequest, WorkflowConfig, WorkflowOutcome
from .orchestrator import WorkflowOrchestrator

TRANSPORTS = ("local", "http", "lambda")


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

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


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    """KEY=value from one .env line; None for blanks, comments and junk."""
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None

    key, _, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path, override: bool = False) -> List[str]:
    """Apply a .env file to os.environ; returns the keys that were set."""
    if not path.is_file():
        reason = "not found" if not path.exists() else "is not a file"
        raise CLIError(f"env file {reason}: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    applied = []
    for parsed in filter(None, map(_parse_env_line, lines)):
        key, value = parsed
        if override or key not in os.environ:
            os.environ[key] = value
            applied.append(key)
    return applied


def _resolve_default_env_file() -> Optional[Path]:
    """IMAGEFLOW_ENV_FILE if set, else ./.env when present."""
    configured = os.getenv("IMAGEFLOW_ENV_FILE")
    if configured:
        return Path(configured)
    default_env = Path(".env")
    return default_env if default_env.is_file() else None


def _read_content(path: Path) -> str:
    if not path.is_file():
        raise CLIError(f"source is not a file: {path}")
    try:
        return base64.b64encode(path.read_bytes()).decode("ascii")
    except OSError as exc:
        raise CLIError(f"could not read {path}: {exc}") from exc


def _build_config(args: argparse.Namespace) -> WorkflowConfig:
    try:
        return WorkflowConfig.from_env(transport=args.transport, api_url=args.api_url)
    except ValueError as exc:
        raise CLIError(f"invalid configuration: {exc}") from exc


async def _run_command(args: argparse.Namespace, config: WorkflowConfig) -> int:
    try:
        async with WorkflowOrchestrator(config) as orchestrator:
            if args.verbose_stages:
                orchestrator.events.on_any(StageLog())

            token = args.token or os.getenv("IMAGEFLOW_TOKEN")
            if args.command == "token" or not token:
                token = await orchestrator.issue_token(args.email)
                if args.command == "token":
                    print(token)
                    return 0

            if args.command == "upload":
                source = Path(args.source).expanduser()
                outcome = await orchestrator.upload(
                    UploadRequest(
                        email=args.email,
                        token=token,
                        content=_read_content(source),
                        name=source.name,
                        description=args.description,
                    )
                )
            elif args.command == "delete":
                outcome = await orchestrator.delete(DeleteRequest(args.email, token, args.key))
            elif args.command == "list":
                outcome = await orchestrator.list(ListRequest(args.email, token))
            else:
                raise CLIError(f"unknown command: {args.command}")
    except ValueError as exc:
        raise CLIError(str(exc)) from exc

    return _report(outcome, as_json=args.json)


def _report(outcome: WorkflowOutcome, as_json: bool) -> int:
    if as_json:
        print(json.dumps(outcome.to_dict(), indent=2))
    else:
        render_outcome(outcome)

    try:
        outcome.raise_for_status()
    except ImageflowError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-e", "--email", required=True, help="Caller identity")
    parser.add_argument(
        "-t",
        "--token",
        default=None,
        help="Bearer token (default from IMAGEFLOW_TOKEN, otherwise issued via token-generator)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imageflow",
        description="Run gated image workflows (upload, delete, list) against backend operations.",
    )
    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default=None,
        help="Backend transport (default from IMAGEFLOW_TRANSPORT or local)",
    )
    parser.add_argument("--api-url", default=None, help="Base URL for the http transport")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file (default IMAGEFLOW_ENV_FILE or ./.env)",
    )
    parser.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    parser.add_argument(
        "--verbose-stages",
        action="store_true",
        help="Print gate/stage/call events as they happen",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR, default from LOG_LEVEL)",
    )
    parser.add_argument("--version", action="version", version="imageflow 0.1.0")

    sub = parser.add_subparsers(dest="command")

    token = sub.add_parser("token", help="Issue a token for an email")
    token.add_argument("-e", "--email", required=True, help="Caller identity")
    token.set_defaults(token=None)

    upload = sub.add_parser("upload", help="Upload an image with a description")
    upload.add_argument("source", type=Path, help="Image file to upload")
    upload.add_argument("-d", "--description", default="", help="Free-text description")
    _add_common_arguments(upload)

    delete = sub.add_parser("delete", help="Delete an image, its thumbnail and its description")
    delete.add_argument("key", help="Object key returned by upload")
    _add_common_arguments(delete)

    listing = sub.add_parser("list", help="List image descriptions")
    _add_common_arguments(listing)
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    env_keys: List[str] = []
    if used_env_file is not None:
        try:
            env_keys = _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level or os.getenv("LOG_LEVEL"),
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = _build_config(args)
        if not args.silent and not args.json:
            render_configuration_summary(
                {
                    "Command": args.command,
                    "Email": args.email,
                    "Transport": config.transport,
                    "API URL": config.api_url or "-",
                    "Containers": f"{config.primary_container}, {config.resized_container}",
                    "Timeout": f"{config.timeout:g}s",
                    "Env File": f"{used_env_file} ({len(env_keys)} set)" if used_env_file else "-",
                    "Logging": effective_log_mode,
                }
            )
        return asyncio.run(_run_command(args, config))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except ImageflowError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
