"""FastAPI application serving the KEV catalog as RSS and JSON.

Route handlers that touch the network are plain ``def`` functions so
FastAPI runs them in its threadpool alongside the blocking requests call.
"""

import json
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from . import __version__
from .cache import KeyValueStore, get_or_refresh
from .config import Settings, build_store, load_settings
from .downloaders import CatalogFetcher, requests_session
from .errors import InvalidInputError, KevFeedError
from .feed import build_feed, render_rss
from .log import get_logger, setup_logging
from .models import CatalogRecord

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    fetcher: CatalogFetcher | None = None,
) -> FastAPI:
    """Build the web application.

    Args:
        settings: Service settings; loaded from file/env when omitted.
        store: Key-value store for the catalog snapshot; built from
            ``settings.cache_backend`` when omitted.
        fetcher: Upstream catalog fetcher; built from settings when omitted.

    Returns:
        Configured ``FastAPI`` instance.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level, force=True)
    store = store if store is not None else build_store(settings)
    fetcher = fetcher or CatalogFetcher(
        session=requests_session(),
        url=settings.upstream_url,
        timeout=settings.http_timeout,
        attempts=settings.fetch_attempts,
    )

    app = FastAPI(title="KEV Feed", version=__version__)

    def load_catalog() -> CatalogRecord:
        if settings.cache_mode == "cache":
            return get_or_refresh(store, fetcher.fetch_catalog, key=settings.cache_key)
        return fetcher.fetch_catalog()

    @app.middleware("http")
    async def log_request(request: Request, call_next: Any) -> Any:
        client = request.client.host if request.client else "unknown client"
        logger.info(
            "[%s %s] from %s",
            request.method,
            request.url.path,
            client,
        )
        return await call_next(request)

    @app.exception_handler(KevFeedError)
    async def kevfeed_error_handler(request: Request, exc: KevFeedError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        else:
            logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get(settings.feed_path)
    def rss_feed() -> Response:
        """RSS 2.0 rendering of the catalog, newest additions first."""
        xml = render_rss(build_feed(load_catalog()))
        return Response(content=xml, media_type="text/xml")

    @app.get(settings.json_path)
    def raw_feed() -> Response:
        """Upstream JSON body, unmodified."""
        return Response(content=fetcher.fetch_body(), media_type="application/json")

    @app.get("/", response_class=PlainTextResponse)
    def index() -> str:
        return f"KEV Feed {__version__}: subscribe at {settings.feed_path}"

    @app.post("/form/{field}")
    async def form_echo(field: str, request: Request) -> dict[str, str]:
        """Echo one string field of a JSON object body."""
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidInputError(field, "request body is not valid JSON") from None
        if not isinstance(body, dict) or field not in body:
            raise InvalidInputError(field, "field is missing from the request body")
        value = body[field]
        if not isinstance(value, str):
            raise InvalidInputError(field, "field must be a string", status_code=422)
        return {field: value}

    @app.get("/version")
    def version() -> dict[str, str]:
        return {"version": __version__}

    return app
