from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .config import AppConfig, load_config
from .errors import AnalyzerError
from .github_api import guess_username_from_profile
from .logging import configure_logging
from .pipeline import analyze


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-analyzer",
        description="Analyse a GitHub account's repositories and write a structured report.",
    )
    parser.add_argument("--config", type=Path, help="Path to settings YAML file", default=None)
    parser.add_argument("--verbose", action="store_true", default=None, help="Enable debug logging")
    parser.add_argument("--log-file", dest="log_file", type=Path, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("analyze", help="Analyse one account and write its report")
    run.add_argument("account", help="GitHub username or profile URL, e.g. octocat")
    run.add_argument("--token", help="Access token for private repositories (defaults to $GITHUB_TOKEN)")
    run.add_argument("--output-dir", dest="output_dir", type=Path, help="Directory for the generated report")
    run.add_argument("--workspace", type=Path, help="Directory that holds temporary clones")
    run.add_argument("--concurrency", type=int, help="Maximum number of parallel clones")
    run.add_argument(
        "--representative",
        type=int,
        metavar="N",
        help="Only analyse the N repositories judged most representative of the account",
    )
    run.add_argument("--keep-clones", dest="keep_clones", action="store_true", default=None)
    run.add_argument(
        "--recommend",
        action="store_true",
        default=None,
        help="Add developers with a compatible profile to the report",
    )
    run.add_argument(
        "--lenient",
        action="store_true",
        help="Fall back to a local merge when the combined insights cannot be parsed",
    )

    serve = subparsers.add_parser("serve", help="Serve reports over HTTP")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--enable-test-endpoints", dest="enable_test_endpoints", action="store_true", default=None)
    return parser


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.verbose is not None:
        config.logging.verbose = args.verbose
    if args.log_file:
        config.logging.log_file = args.log_file
    if args.command == "analyze":
        if args.output_dir:
            config.output.directory = args.output_dir
        if args.workspace:
            config.clone.workspace = args.workspace
        if args.concurrency:
            config.clone.concurrency = max(1, args.concurrency)
        if args.representative:
            config.selection.representative_only = True
            config.selection.representative_limit = args.representative
        if args.keep_clones is not None:
            config.output.keep_clones = args.keep_clones
        if args.recommend is not None:
            config.recommendations.enabled = args.recommend
    elif args.command == "serve":
        if args.host:
            config.server.host = args.host
        if args.port:
            config.server.port = args.port
        if args.enable_test_endpoints is not None:
            config.server.enable_test_endpoints = args.enable_test_endpoints


def app(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except AnalyzerError as exc:
        parser.error(str(exc))
        return
    _apply_overrides(config, args)
    configure_logging(verbose=config.logging.verbose, log_file=config.logging.log_file)

    if args.command == "serve":
        from .service import run_service

        run_service(config)
        return

    try:
        username = guess_username_from_profile(args.account)
        token = args.token or os.getenv(config.github.token_env)
        result = analyze(username, config, token=token, strict=not args.lenient)
    except (AnalyzerError, ValueError) as exc:
        parser.error(str(exc))
        return

    if not result.listing.success:
        print(f"Warning: {result.listing.message}", file=sys.stderr)
    print(f"Report generated: {result.report_path}")


if __name__ == "__main__":  # pragma: no cover
    app(sys.argv[1:])
