"""KEV Feed: CISA Known Exploited Vulnerabilities as RSS.

This package fetches the CISA KEV catalog, keeps a cached snapshot of it,
and republishes it as an RSS 2.0 feed and as pass-through JSON over HTTP.
"""

__version__ = "0.1.0"
