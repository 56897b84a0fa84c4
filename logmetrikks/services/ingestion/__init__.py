"""Log ingestion - parsing, enrichment and batched persistence of access logs."""
from .resume import Checkpoint, ResumeTracker
from .service import IngestionPipeline, IngestionService, LineResult, LineStatus, RunStats, RunSummary
from .writer import BatchWriter

__all__ = [
    "BatchWriter",
    "Checkpoint",
    "IngestionPipeline",
    "IngestionService",
    "LineResult",
    "LineStatus",
    "ResumeTracker",
    "RunStats",
    "RunSummary",
]
