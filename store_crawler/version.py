"""Central versioning and schema constants for the store crawler."""

__all__ = ["__version__", "CONFIG_SCHEMA_VERSION"]

#: Semantic version of this codebase (bump using SemVer).
__version__ = "0.2.0"

#: Configuration schema version (increment if breaking changes to config format).
#: v2 renamed the generic crawl fields (start_urls, allowed_domains) to the
#: per-store scrape options.
CONFIG_SCHEMA_VERSION = 2
