"""CLI entrypoints for codesummary commands."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path

from .config import KNOWN_PROVIDERS, CodeSummaryConfig, ConfigError, OutputConfig, load_config
from .logging import configure_logging
from .orchestrator import Orchestrator


def _add_verbosity_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    for flags, help_text in (
        (("-v", "--verbose"), "Increase log verbosity for troubleshooting."),
        (("-q", "--quiet"), "Only log warnings and errors."),
    ):
        kwargs: dict[str, object] = {"action": "store_true", "help": help_text}
        kwargs["default"] = argparse.SUPPRESS if suppress_default else False
        parser.add_argument(*flags, **kwargs)


def _add_path_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Directory to summarise (defaults to current directory).",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Configuration file (defaults to .codesummary.yml in the directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codesummary",
        description="Summarise Rust, JavaScript/TypeScript and Python sources into one markdown report.",
    )
    _add_verbosity_options(parser)
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summarize = subparsers.add_parser(
        "summarize",
        help="Extract structure, describe functions and write the report.",
    )
    _add_verbosity_options(summarize, suppress_default=True)
    _add_path_options(summarize)
    summarize.add_argument("-p", "--provider", choices=KNOWN_PROVIDERS, help="Description provider.")
    summarize.add_argument("-m", "--model", help="Model identifier for the provider.")
    summarize.add_argument("--base-url", help="Alternate provider endpoint.")
    summarize.add_argument("-o", "--output", help="Report path (defaults to summary.md).")
    summarize.add_argument("--concurrency", type=int, help="Maximum parallel provider requests.")
    summarize.add_argument("--max-attempts", type=int, help="Attempts per description before giving up.")
    summarize.add_argument("--timeout", type=float, help="Per-request timeout in seconds.")
    summarize.add_argument("--no-cache", action="store_true", help="Ignore and do not update the description cache.")
    summarize.add_argument(
        "--no-descriptions",
        action="store_true",
        help="Skip the description provider and render structure only.",
    )

    clear = subparsers.add_parser("clear-cache", help="Remove cached function descriptions.")
    _add_verbosity_options(clear, suppress_default=True)
    _add_path_options(clear)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codesummary commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=args.log_file,
    )

    try:
        config = _load(args)
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")

    orchestrator = Orchestrator()

    if args.command == "summarize":
        try:
            outcome = orchestrator.run_summary(
                config,
                describe=not args.no_descriptions,
                use_cache=not args.no_cache,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover
            parser.exit(1, f"codesummary summarize failed: {exc}\nRun with --verbose for more details.\n")
        print(f"Summary written to {_relativize(outcome.path)}")
    elif args.command == "clear-cache":
        try:
            path = orchestrator.clear_cache(config)
        except OSError as exc:
            parser.exit(1, f"Unable to clear cache: {exc}\n")
        print(f"Cache cleared at {_relativize(path)}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _load(args: argparse.Namespace) -> CodeSummaryConfig:
    environ = dict(os.environ)
    provider = getattr(args, "provider", None)
    if provider:
        environ["CODESUMMARY_PROVIDER"] = provider
    config = load_config(Path(args.path), args.config, environ=environ)
    if args.command != "summarize":
        return config

    llm = config.llm
    if args.model:
        llm = replace(llm, model=args.model)
    if args.base_url:
        llm = replace(llm, base_url=args.base_url)
    if args.timeout is not None and args.timeout > 0:
        llm = replace(llm, request_timeout=args.timeout)

    pipeline = config.pipeline
    if args.concurrency is not None:
        if args.concurrency < 1:
            raise ConfigError("--concurrency must be at least 1")
        pipeline = replace(pipeline, concurrency=args.concurrency)
    if args.max_attempts is not None:
        if args.max_attempts < 1:
            raise ConfigError("--max-attempts must be at least 1")
        pipeline = replace(pipeline, max_attempts=args.max_attempts)

    output = OutputConfig(path=args.output) if args.output else config.output
    return replace(config, llm=llm, pipeline=pipeline, output=output)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
