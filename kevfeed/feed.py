"""RSS generation from a KEV catalog snapshot.

``build_feed`` maps catalog rows to feed items and orders them;
``render_rss`` serializes the result through the Jinja2 template in
``kevfeed/templates/rss.xml.j2``.
"""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError

from . import __version__
from .errors import BuildError
from .models import CatalogRecord, FeedDocument, FeedItem, VulnerabilityEntry

_TEMPLATES_DIR = Path(__file__).parent / "templates"

NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail/{}"

FEED_TITLE = "CISA Exploited Vulnerabilities"
FEED_LINK = "https://www.cisa.gov/known-exploited-vulnerabilities-catalog"
FEED_DESCRIPTION = "RSS feed of the CISA exploited vulnerabilities list"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=True,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def make_cve_link(cve_id: str) -> str:
    """Return the NVD detail page for a CVE identifier."""
    return NVD_DETAIL_URL.format(cve_id)


def to_feed_item(vuln: VulnerabilityEntry) -> FeedItem:
    """Map one catalog row to an RSS item. ``date_added`` is passed through as-is."""
    return FeedItem(
        title=vuln.vulnerability_name,
        description=vuln.short_description,
        pub_date=vuln.date_added,
        link=make_cve_link(vuln.cve_id) if vuln.cve_id is not None else None,
    )


def build_feed(catalog: CatalogRecord) -> FeedDocument:
    """Build the feed document for a catalog snapshot.

    Items are sorted newest first by comparing ``pub_date`` as plain
    strings, which is chronological only while upstream keeps dates
    zero-padded ISO-8601. Entries with equal dates keep catalog order.

    Args:
        catalog: Parsed KEV catalog.

    Returns:
        Channel metadata plus one item per vulnerability.
    """
    items = sorted(
        (to_feed_item(v) for v in catalog.vulnerabilities),
        key=lambda i: i.pub_date,
        reverse=True,
    )
    # pubDate/lastBuildDate track the catalog release, not the build time
    return FeedDocument(
        title=FEED_TITLE,
        link=FEED_LINK,
        description=FEED_DESCRIPTION,
        pub_date=catalog.date_released,
        last_build_date=catalog.date_released,
        items=items,
    )


def render_rss(feed: FeedDocument) -> str:
    """Serialize a feed document to RSS 2.0 XML.

    Raises:
        BuildError: If a required channel field is empty or rendering fails.
    """
    for name in ("title", "link", "description"):
        if not getattr(feed, name):
            raise BuildError(f"Channel field '{name}' is required")

    try:
        return _env.get_template("rss.xml.j2").render(feed=feed, generator=f"kevfeed {__version__}")
    except TemplateError as e:
        raise BuildError(f"Could not render RSS: {e}") from e
