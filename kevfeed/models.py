"""Typed models for the CISA KEV catalog and the RSS feed derived from it.

Field names follow Python conventions; aliases carry the upstream camelCase
names (see the published ``known_exploited_vulnerabilities_schema.json``).
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CATALOG_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)


class VulnerabilityEntry(BaseModel):
    """One row of the KEV catalog.

    ``cve_id`` is ``None`` for entries listed before a CVE was assigned; such
    entries get no reference link in the feed.
    """

    model_config = _CATALOG_CONFIG

    cve_id: str | None = Field(default=None, alias="cveID")
    vendor_project: str
    product: str
    vulnerability_name: str
    date_added: str
    short_description: str
    required_action: str
    due_date: str
    notes: str


class CatalogRecord(BaseModel):
    """One upstream snapshot of the catalog.

    ``count`` is taken on trust from upstream and is not checked against
    ``len(vulnerabilities)``.
    """

    model_config = _CATALOG_CONFIG

    catalog_version: str
    date_released: str
    count: int
    vulnerabilities: list[VulnerabilityEntry]

    def to_json(self) -> bytes:
        """Serialize back to the upstream camelCase JSON shape."""
        return self.model_dump_json(by_alias=True).encode("utf-8")


class FeedItem(BaseModel):
    """A single RSS ``<item>``."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    pub_date: str
    link: str | None = None


class FeedDocument(BaseModel):
    """An RSS channel with its items, ready for serialization."""

    model_config = ConfigDict(frozen=True)

    title: str
    link: str
    description: str
    pub_date: str
    last_build_date: str
    items: list[FeedItem] = Field(default_factory=list)
