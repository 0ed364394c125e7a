"""CLI entrypoints for srccrawl commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, CrawlConfig, load_config
from .logging import configure_logging, get_logger
from .orchestrator import Crawler
from .seeds import SeedError, is_index_source, load_seeds
from .stores import MemoryStore, QueryableStore, StoreError, open_store
from .toolchain import GoToolchain, ToolchainError, standard_packages


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    # Subcommands suppress their defaults so flags given before the command survive.
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress_default else value

    levels = parser.add_mutually_exclusive_group()
    levels.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default(False),
        help="Log every pipeline step (DEBUG).",
    )
    levels.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default(False),
        help="Only log warnings and errors on the console.",
    )
    parser.add_argument(
        "--log-file",
        default=default(None),
        help="Also write a DEBUG log to this file.",
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=None,
        help="Path to .srccrawl.yml or the directory holding it (defaults to the current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="srccrawl",
        description="Crawl a package dependency graph, building and checking every package.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser(
        "crawl",
        help="Fetch, build, test and lint packages starting from a seed list.",
    )
    _add_logging_options(crawl_parser, suppress_default=True)
    _add_config_option(crawl_parser)
    crawl_parser.add_argument(
        "seeds",
        help="Package list file (one identifier per line) or an index source such as 'godoc'.",
    )
    crawl_parser.add_argument("--workdir", default=None, help="GOPATH used for fetched sources.")
    crawl_parser.add_argument(
        "--builders", type=int, default=None, help="Number of concurrent build workers."
    )
    crawl_parser.add_argument(
        "--fetchers", type=int, default=None, help="Number of concurrent fetch workers."
    )
    crawl_parser.add_argument(
        "--store",
        choices=("memory", "sql"),
        default=None,
        help="Result store backend.",
    )
    crawl_parser.add_argument("--database", default=None, help="SQLAlchemy URL for the sql store.")
    crawl_parser.add_argument(
        "--no-expand",
        action="store_true",
        help="Only process the seed list; do not follow discovered imports.",
    )
    crawl_parser.add_argument(
        "--drain",
        action="store_true",
        help="Exit once no package is pending or in flight.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="Print the package identifiers published by an index source.",
    )
    _add_logging_options(list_parser, suppress_default=True)
    list_parser.add_argument("source", help="Index source ('godoc' or an index URL).")

    report_parser = subparsers.add_parser(
        "report",
        help="Serve an HTML report of stored results.",
    )
    _add_logging_options(report_parser, suppress_default=True)
    _add_config_option(report_parser)
    report_parser.add_argument("--host", default="0.0.0.0", help="HTTP listening host.")
    report_parser.add_argument("--port", type=int, default=8080, help="HTTP listening port.")
    report_parser.add_argument("--database", default=None, help="SQLAlchemy URL of the result store.")
    report_parser.add_argument("--workdir", default=None, help="GOPATH holding fetched sources.")

    return parser


def _apply_overrides(config: CrawlConfig, args: argparse.Namespace) -> CrawlConfig:
    if getattr(args, "workdir", None):
        config.workdir = Path(args.workdir).expanduser()
    if getattr(args, "builders", None) is not None:
        config.builders = args.builders
    if getattr(args, "fetchers", None) is not None:
        config.fetchers = args.fetchers
    if getattr(args, "store", None):
        config.store.backend = args.store
    if getattr(args, "database", None):
        config.store.url = args.database
        if not getattr(args, "store", None):
            config.store.backend = "sql"
    if getattr(args, "no_expand", False):
        config.expand = False
    config.workdir = config.workdir.resolve()
    return config.validate()


def _load(args: argparse.Namespace) -> CrawlConfig:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return _apply_overrides(load_config(config_path), args)


def _crawl(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    logger = get_logger("cli")
    try:
        config = _load(args)
        go = GoToolchain()
        toolchain = go.toolchain(config.lint)
        go.check()
        seeds = load_seeds(args.seeds)
        store = open_store(config.store)
    except (ConfigError, SeedError, StoreError, ToolchainError, ValueError) as exc:
        parser.exit(1, f"srccrawl crawl failed: {exc}\n")

    try:
        config.workdir.mkdir(parents=True, exist_ok=True)
        known = standard_packages(config.goroot or go.goroot())
        logger.debug("Loaded %d standard package(s)", len(known))

        crawler = Crawler(
            toolchain,
            store,
            config.workdir,
            builders=config.builders,
            fetchers=config.fetchers,
            expand=config.expand,
            known=known,
            max_persist_retries=config.max_persist_retries,
        )
        crawler.seed(seeds)
        try:
            crawler.run(drain=bool(args.drain) or not config.expand)
        except KeyboardInterrupt:
            logger.info("Interrupted; shutting down")
        stats = crawler.stats
        logger.info(
            "Crawl finished: %d stored, %d fetch failure(s), %d store failure(s), %d dropped",
            stats.persisted,
            stats.fetch_failed,
            stats.persist_failed,
            stats.dropped,
        )
    finally:
        if isinstance(store, MemoryStore):
            logger.info("Results:\n%s", store.dump())
        store.close()


def _list(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if not is_index_source(args.source):
        parser.exit(1, f"unknown source: {args.source}\n")
    try:
        packages = load_seeds(args.source)
    except SeedError as exc:
        parser.exit(1, f"{exc}\n")
    for package in packages:
        print(package)


def _report(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    from .service import run_service

    try:
        config = _load(args)
    except ConfigError as exc:
        parser.exit(1, f"srccrawl report failed: {exc}\n")
    config.store.backend = "sql"

    def _store() -> QueryableStore:
        return open_store(config.store)

    try:
        run_service(_store, host=args.host, port=args.port, workdir=config.workdir)
    except StoreError as exc:
        parser.exit(1, f"srccrawl report failed: {exc}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for srccrawl commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=Path(args.log_file).expanduser() if args.log_file else None,
    )

    if args.command == "crawl":
        _crawl(parser, args)
    elif args.command == "list":
        _list(parser, args)
    elif args.command == "report":
        _report(parser, args)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


if __name__ == "__main__":
    main(sys.argv[1:])
