"""Command line entry point: validate a credential file, probe it, or serve the API."""

import argparse
import asyncio
import json
import logging
import math
import sys
from typing import Optional

from hostwatch.config import Settings, settings as default_settings
from hostwatch.credentials import load_credentials_file
from hostwatch.exceptions import CredentialFileError, CredentialParseError
from hostwatch.models import BatchSummary, HostStatus
from hostwatch.orchestrator import BatchOrchestrator
from hostwatch.probes import SimulatedProbeClient

logger = logging.getLogger(__name__)

STATE_MARKS = {"online": "✓", "offline": "✗", "error": "!", "connecting": "…"}


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if number <= 0 or not math.isfinite(number):
        raise argparse.ArgumentTypeError(f"must be a positive, finite number: {value!r}")
    return number


def format_status(status: HostStatus) -> str:
    mark = STATE_MARKS.get(status.state, "?")
    line = f"{mark} {status.username}@{status.host}:{status.port}  {status.state.upper()}"
    if status.response_time_ms is not None:
        line += f"  {status.response_time_ms}ms"
    if status.error_message:
        line += f"  ({status.error_message})"
    if status.system_info is not None:
        info = status.system_info
        stale = " [stale]" if status.system_info_stale else ""
        line += (
            f"\n    {info.architecture}, {info.cpu_cores} cores, {info.ram} RAM, "
            f"load {info.load_average}{stale}"
        )
    return line


def format_summary(summary: BatchSummary) -> str:
    return (
        f"{summary.online}/{summary.total} online, {summary.offline} offline, "
        f"{summary.error} error, {summary.total_cores} cores total"
    )


async def check(
    path: str,
    settings: Settings,
    simulate: bool = False,
    as_json: bool = False,
) -> int:
    try:
        credentials = load_credentials_file(path)
    except (CredentialParseError, CredentialFileError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if not credentials:
        print(f"No credentials found in {path}")
        return 0

    if simulate:
        orchestrator = BatchOrchestrator(
            SimulatedProbeClient.from_settings(settings),
            probe_timeout=settings.probe_timeout,
            max_concurrent_probes=settings.max_concurrent_probes,
        )
    else:
        orchestrator = BatchOrchestrator.from_settings(settings)

    if not as_json:
        print(f"Testing connections to {len(credentials)} hosts...")

    try:
        statuses = await orchestrator.submit_batch(credentials)
    finally:
        await orchestrator.aclose()

    summary = BatchSummary.from_statuses(statuses)
    if as_json:
        payload = {
            "hosts": [status.to_api() for status in statuses],
            "summary": summary.model_dump(by_alias=True),
            "notices": list(orchestrator.notices),
        }
        print(json.dumps(payload, indent=2))
        return 0

    for notice in orchestrator.notices:
        print(f"NOTICE: {notice}")
    for status in statuses:
        print(format_status(status))
    print(f"\n{format_summary(summary)}")
    return 0


def validate(path: str) -> int:
    try:
        credentials = load_credentials_file(path)
    except (CredentialParseError, CredentialFileError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2

    print(f"✓ {len(credentials)} valid credentials in {path}")
    return 0


def serve(settings: Settings, host: Optional[str], port: Optional[int]) -> int:
    import uvicorn

    from hostwatch.app import create_app

    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hostwatch",
        description="Check connectivity of the hosts in a credential file",
    )
    parser.add_argument("--backend-url", help="Probing backend base URL")
    parser.add_argument("--timeout", type=positive_float, help="Per-probe timeout in seconds")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    check_parser = subparsers.add_parser("check", help="Probe every host in a credential file")
    check_parser.add_argument("file", help="Credential file (.txt, host:port@username:password)")
    check_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    check_parser.add_argument(
        "--simulate", action="store_true", help="Use the simulator instead of the backend"
    )
    check_parser.add_argument("--seed", type=int, help="Seed for simulated results")

    validate_parser = subparsers.add_parser("validate", help="Only parse a credential file")
    validate_parser.add_argument("file", help="Credential file to validate")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")

    return parser


def main(argv: Optional[list[str]] = None, settings: Optional[Settings] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = settings if settings is not None else default_settings
    overrides = {}
    if args.backend_url is not None:
        overrides["backend_url"] = args.backend_url
    if args.timeout is not None:
        overrides["probe_timeout"] = args.timeout
    if getattr(args, "seed", None) is not None:
        overrides["simulation_seed"] = args.seed
    if overrides:
        settings = settings.model_copy(update=overrides)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    if args.command == "check":
        return asyncio.run(check(args.file, settings, simulate=args.simulate, as_json=args.json))
    elif args.command == "validate":
        return validate(args.file)
    elif args.command == "serve":
        return serve(settings, args.host, args.port)

    parser.print_help()
    return 1


def run():
    """entrypoint"""
    sys.exit(main())


if __name__ == "__main__":
    run()
