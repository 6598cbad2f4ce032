"""Command-line entry points for KEV Feed.

``kevfeed serve`` runs the HTTP service, ``kevfeed refresh`` is the
scheduled cache refresh for cron, and ``kevfeed render`` writes the RSS
document without a server.
"""

import argparse
from collections.abc import Sequence
from pathlib import Path

from .cache import get_or_refresh, refresh_cache
from .config import Settings, build_store, load_settings
from .downloaders import CatalogFetcher
from .errors import KevFeedError
from .feed import build_feed, render_rss
from .log import get_logger, setup_logging

logger = get_logger(__name__)


def _fetcher(settings: Settings) -> CatalogFetcher:
    return CatalogFetcher(
        url=settings.upstream_url,
        timeout=settings.http_timeout,
        attempts=settings.fetch_attempts,
    )


def _cmd_serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    from .app import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)
    return 0


def _cmd_refresh(settings: Settings, args: argparse.Namespace) -> int:
    # Failures are logged inside refresh_cache; cron has nobody to tell.
    refresh_cache(build_store(settings), _fetcher(settings).fetch_catalog, key=settings.cache_key)
    return 0


def _cmd_render(settings: Settings, args: argparse.Namespace) -> int:
    fetcher = _fetcher(settings)
    try:
        if settings.cache_mode == "cache":
            catalog = get_or_refresh(build_store(settings), fetcher.fetch_catalog, key=settings.cache_key)
        else:
            catalog = fetcher.fetch_catalog()
        xml = render_rss(build_feed(catalog))
    except KevFeedError as e:
        logger.error("Could not render feed: %s", e)
        return 1

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        tmp = out.with_suffix(out.suffix + ".tmp")
        tmp.write_text(xml, encoding="utf-8")
        tmp.replace(out)
        print(f"Wrote {len(catalog.vulnerabilities)} items to {out}")
    else:
        print(xml, end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="kevfeed", description="Republish the CISA KEV catalog as RSS")
    p.add_argument("--config", type=Path, default=None, help="YAML settings file (default: kevfeed.yaml if present)")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=_cmd_serve)

    refresh = sub.add_parser("refresh", help="Fetch the catalog and overwrite the cache (for cron)")
    refresh.set_defaults(func=_cmd_refresh)

    render = sub.add_parser("render", help="Print or write the RSS document")
    render.add_argument("--output", "-o", default=None, help="Write to this path instead of stdout")
    render.set_defaults(func=_cmd_render)
    return p


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}")
        return 1
    setup_logging(settings.log_level, force=True)
    return args.func(settings, args)


if __name__ == "__main__":
    raise SystemExit(main())
