from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from logid import __version__
from logid.config import Config, env_search_locations, load_config
from logid.diagnostics import configure_logging
from logid.errors import LogidError, handle_error, is_verbose, set_verbose
from logid.log_query.types import QueryResult
from logid.orchestrator import Orchestrator
from logid.output import OutputConfig, print_result, write_to_file
from logid.regions import REGION_TABLE, region_identifiers


def _print_env_hint() -> None:
    """Tell the user where a .env file is looked for and what it holds."""
    print("⚠️  No .env configuration file found", file=sys.stderr)
    print("   Searched:", file=sys.stderr)
    for i, location in enumerate(env_search_locations(), 1):
        print(f"   {i}. {location}", file=sys.stderr)
    print("   Create one of them with:", file=sys.stderr)
    print("   CAS_SESSION_US=your_us_session_cookie_here", file=sys.stderr)
    print("   CAS_SESSION_I18n=your_i18n_session_cookie_here", file=sys.stderr)
    print("   ENABLE_LOGGING=false", file=sys.stderr)


async def _run_query(config: Config, region: str, logid: str, psm: list[str]) -> QueryResult:
    async with Orchestrator.from_config(config) as orchestrator:
        return await orchestrator.run(region, logid, psm)


def _cmd_query(args: argparse.Namespace) -> int:
    """Query logs for a logid in one region and print them as JSON."""
    overrides: dict = {}
    if args.filter_rules:
        overrides["filter_rules_path"] = args.filter_rules
    if args.timeout is not None:
        overrides["timeout_seconds"] = args.timeout

    config = load_config(env_file=args.env_file, cli_overrides=overrides)
    configure_logging(config.enable_logging)
    if config.env_file_path is None:
        _print_env_hint()

    result = asyncio.run(_run_query(config, args.region, args.logid, args.psm or []))

    output_config = OutputConfig(
        show_metadata=not args.no_meta,
        show_tag_infos=args.show_tag_infos,
    )
    if args.out:
        path = write_to_file(result, Path(args.out), output_config)
        print(f"Wrote {result.total_items} message(s) to {path}", file=sys.stderr)
    else:
        print_result(result, output_config)
    return 0


def _cmd_regions(args: argparse.Namespace) -> int:
    """List the supported regions."""
    for region, cfg in REGION_TABLE.items():
        status = "configured" if cfg.configured else "not configured"
        print(f"{region.value:<6} {cfg.display_name:<28} {cfg.credential_env_var:<18} {status}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="logid",
        description="Look up log records for a logid in a regional log service",
    )

    # Global flags
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show full tracebacks on errors",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    p_query = sub.add_parser(
        "query",
        help="Query logs by logid",
        description=(
            "Query logs by logid.\n\n"
            "Examples:\n"
            "  logid query 550e8400-e29b-41d4-a716-446655440000 --region us\n"
            "  logid query logid123 --region i18n --psm service.psm\n"
            "  logid query logid456 --region us --psm psm1 --psm psm2\n\n"
            "Credentials are read from CAS_SESSION_US / CAS_SESSION_I18n /\n"
            "CAS_SESSION_CN, falling back to CAS_SESSION."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_query.add_argument("logid", help="The logid to look up")
    p_query.add_argument(
        "--region", "-r",
        required=True,
        help=f"Region to query ({'/'.join(region_identifiers())})",
    )
    p_query.add_argument(
        "--psm", "-p",
        action="append",
        default=[],
        help="Only keep messages from this PSM (repeatable)",
    )
    p_query.add_argument("--env-file", help="Path to a .env file (default: auto-discover)")
    p_query.add_argument("--filter-rules", help="YAML/JSON filter rules file")
    p_query.add_argument("--timeout", type=float, help="Per-request timeout in seconds")
    p_query.add_argument("--out", help="Write JSON to this file instead of stdout")
    p_query.add_argument("--no-meta", action="store_true", help="Omit response metadata")
    p_query.add_argument("--show-tag-infos", action="store_true", help="Include tag infos")
    p_query.set_defaults(func=_cmd_query)

    p_regions = sub.add_parser("regions", help="List supported regions")
    p_regions.set_defaults(func=_cmd_regions)

    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    set_verbose(args.verbose)

    try:
        rc = args.func(args)
        raise SystemExit(rc)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user", file=sys.stderr)
        raise SystemExit(130)
    except LogidError as e:
        raise SystemExit(handle_error(e))
    except Exception as e:
        if is_verbose():
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
            print("Run with --verbose for full traceback", file=sys.stderr)
        raise SystemExit(1)
