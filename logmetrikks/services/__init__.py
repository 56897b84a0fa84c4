"""Services layer - log parsing, enrichment and ingestion."""
from .logparser import LogParser
from .ingestion import IngestionService

__all__ = ["LogParser", "IngestionService"]
