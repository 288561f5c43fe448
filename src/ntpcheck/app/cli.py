#!/usr/bin/env python3
"""Query one or more NTP servers and report offset and delay.

Usage examples:
  - ntpcheck pool.ntp.org
  - ntpcheck time.example.org --fallback 192.0.2.10 --no-dns
  - ntpcheck --targets config/targets.yaml --max-offset 100 --offset-action fail --json

Exit status is 0 when every query succeeded, 1 when any query failed
(transport/protocol error, or an offset breach with ``--offset-action fail``)
and 2 for invalid arguments.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional, Sequence

from ntpcheck.config.settings import settings
from ntpcheck.config.targets import Target, load_targets
from ntpcheck.fanout import QueryOutcome, query_many
from ntpcheck.sntp.result import NtpResult, OffsetAction, OffsetPolicy
from ntpcheck.utils.logging_config import LOG_LEVELS, setup_logging

EXIT_OK = 0
EXIT_FAILED = 1

_ACTIONS = {action.value: action for action in OffsetAction}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ntpcheck", description="Query NTP servers (SNTP client mode)")
    parser.add_argument("servers", nargs="*", help=f"Servers to query (default: {settings.NTP_SERVER})")
    parser.add_argument("--targets", help="Path to a targets file (see config/targets.yaml)")
    parser.add_argument("--fallback", help="Pre-resolved IP address tried if the server name fails")
    parser.add_argument("--port", type=int, default=settings.NTP_PORT, help="Server port (default: %(default)s)")
    parser.add_argument(
        "--timeout", type=float, default=settings.NTP_TIMEOUT, help="Send/receive timeout in seconds (default: %(default)s)"
    )
    parser.add_argument(
        "--no-dns", action="store_true", default=settings.NTP_NO_DNS, help="Skip reverse DNS of the reference identifier"
    )
    parser.add_argument(
        "--max-offset", type=float, default=settings.NTP_MAX_OFFSET_MS, help="Maximum acceptable |offset| in milliseconds"
    )
    parser.add_argument(
        "--offset-action",
        choices=sorted(_ACTIONS),
        default=settings.NTP_OFFSET_ACTION,
        help="What to do when --max-offset is exceeded (default: %(default)s)",
    )
    parser.add_argument("--workers", type=int, default=settings.MAX_WORKERS, help="Concurrent queries (default: %(default)s)")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument(
        "--log-level", type=str.upper, choices=LOG_LEVELS, default=settings.LOG_LEVEL, help="Log level (default: %(default)s)"
    )
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr")
    return parser


def _exponent(value: int, seconds: float) -> str:
    return f"2^{value} = {seconds:g} s"


def _coded(code: int, text: Optional[str]) -> str:
    return f"{code} ({text})" if text else str(code)


def format_result(result: NtpResult) -> str:
    reference = result.reference_identifier
    if result.reference_kind == "timestamp":
        reference = f"{reference:.6f} ms (fraction of upstream transmit time)"
    elif reference is None:
        reference = f"undefined for version {result.version_number}"
    if result.reference_host:
        reference = f"{reference} ({result.reference_host})"

    lines = [
        f"Server:            {result.server} ({result.address})",
        f"Leap indicator:    {_coded(result.leap_indicator, result.leap_text)}",
        f"Version:           {result.version_number}",
        f"Mode:              {_coded(result.mode, result.mode_text)}",
        f"Stratum:           {_coded(result.stratum, result.stratum_text)}",
        f"Poll interval:     {_exponent(result.poll_interval, result.poll_interval_seconds)}",
        f"Precision:         {_exponent(result.precision, result.precision_seconds)}",
        f"Root delay:        {result.root_delay * 1000:.3f} ms",
        f"Root dispersion:   {result.root_dispersion * 1000:.3f} ms",
        f"Reference ID:      {reference}",
        f"Offset:            {result.offset_millis:.3f} ms",
        f"Delay:             {result.delay_millis:.3f} ms",
        f"Estimated time:    {result.estimated_server_time.isoformat()}",
        f"t1 (originate):    {result.t1_local.isoformat()}",
        f"t2 (receive):      {result.t2_local.isoformat()}",
        f"t3 (transmit):     {result.t3_local.isoformat()}",
        f"t4 (arrival):      {result.t4_local.isoformat()}",
    ]
    if result.offset_breach is not None:
        label = "FAILED" if result.failed else "WARNING"
        lines.append(f"{label}: {result.offset_breach}")
    return "\n".join(lines)


def format_outcome(outcome: QueryOutcome) -> str:
    if outcome.error is not None:
        kind = getattr(outcome.error, "kind", None)
        kind_text = f" [{kind.value}]" if kind is not None else ""
        return f"Server:            {outcome.target.server}\nERROR{kind_text}: {outcome.error}"
    return format_result(outcome.result)


def outcome_to_dict(outcome: QueryOutcome) -> dict:
    data = {"server": outcome.target.server, "ok": outcome.ok, "result": None, "error": None}
    if outcome.result is not None:
        data["result"] = outcome.result.to_dict()
    if outcome.error is not None:
        data["error"] = {
            "type": type(outcome.error).__name__,
            "kind": getattr(getattr(outcome.error, "kind", None), "value", None),
            "message": str(outcome.error),
        }
    return data


def _check_ranges(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    if args.workers < 1:
        parser.error("--workers must be at least 1")
    if not 0 < args.port <= 65535:
        parser.error(f"--port must be between 1 and 65535, got {args.port}")
    if args.timeout <= 0:
        parser.error(f"--timeout must be positive, got {args.timeout}")
    if args.max_offset is not None and args.max_offset < 0:
        parser.error(f"--max-offset must not be negative, got {args.max_offset}")


def _collect_targets(args: argparse.Namespace, parser: argparse.ArgumentParser) -> List[Target]:
    targets: List[Target] = []
    if args.targets:
        try:
            targets.extend(load_targets(args.targets))
        except (OSError, ValueError) as e:
            parser.error(f"cannot load targets from {args.targets}: {e}")
    if args.fallback and len(args.servers) != 1:
        parser.error("--fallback needs exactly one server")
    targets.extend(Target(server=s, fallback=args.fallback) for s in args.servers)
    if not targets:
        targets.append(Target(server=settings.NTP_SERVER, fallback=args.fallback))
    return targets


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _check_ranges(args, parser)

    try:
        setup_logging(level=args.log_level, component="cli", log_path=args.log_file)
    except (OSError, ValueError) as e:
        parser.error(f"cannot set up logging: {e}")
    targets = _collect_targets(args, parser)
    policy = OffsetPolicy(max_offset_millis=args.max_offset, action=_ACTIONS[args.offset_action])

    outcomes = query_many(
        targets,
        max_workers=args.workers,
        port=args.port,
        timeout=args.timeout,
        no_dns=args.no_dns,
        policy=policy,
    )

    if args.json:
        print(json.dumps([outcome_to_dict(o) for o in outcomes], indent=2))
    else:
        print("\n\n".join(format_outcome(o) for o in outcomes))

    return EXIT_OK if all(o.ok for o in outcomes) else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
