"""media-catalog: content-addressed media ingestion and paginated catalog browsing."""

__version__ = "0.1.0"
