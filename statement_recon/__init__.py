"""Statement ingestion and reconciliation core."""

__version__ = "1.0.0"
