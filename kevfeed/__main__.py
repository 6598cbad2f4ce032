"""Allow ``python -m kevfeed``."""

from .cli import main

raise SystemExit(main())
