"""Shared fixtures for KEV Feed tests."""

import json
from typing import Any

import pytest

from kevfeed.models import CatalogRecord


def _entry(**overrides: Any) -> dict[str, Any]:
    """Build one upstream-shaped KEV row."""
    entry = {
        "cveID": "CVE-2024-0001",
        "vendorProject": "Acme",
        "product": "Widget",
        "vulnerabilityName": "Acme Widget Remote Code Execution",
        "dateAdded": "2024-01-01",
        "shortDescription": "Acme Widget allows remote code execution.",
        "requiredAction": "Apply mitigations per vendor instructions.",
        "dueDate": "2024-01-22",
        "notes": "",
    }
    entry.update(overrides)
    return entry


def _catalog_dict(entries: list[dict[str, Any]] | None = None, **overrides: Any) -> dict[str, Any]:
    """Build an upstream-shaped catalog document."""
    entries = entries if entries is not None else [_entry()]
    doc = {
        "title": "CISA Catalog of Known Exploited Vulnerabilities",
        "catalogVersion": "2024.01.05",
        "dateReleased": "2024-01-01",
        "count": len(entries),
        "vulnerabilities": entries,
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def catalog_dict() -> dict[str, Any]:
    """Two-entry catalog: one with a CVE, one without, out of date order."""
    return _catalog_dict(
        [
            _entry(cveID="CVE-2024-0001", vulnerabilityName="X", shortDescription="d1", dateAdded="2024-01-01"),
            _entry(cveID=None, vulnerabilityName="Y", shortDescription="d2", dateAdded="2024-01-05"),
        ]
    )


@pytest.fixture
def catalog_bytes(catalog_dict: dict[str, Any]) -> bytes:
    return json.dumps(catalog_dict).encode("utf-8")


@pytest.fixture
def catalog(catalog_dict: dict[str, Any]) -> CatalogRecord:
    return CatalogRecord.model_validate(catalog_dict)


@pytest.fixture
def make_entry():
    """Factory for upstream-shaped KEV rows."""
    return _entry


@pytest.fixture
def make_catalog_dict():
    """Factory for upstream-shaped catalog documents."""
    return _catalog_dict
