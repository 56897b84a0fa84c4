from .visits.models import IngestCheckpoint
from .visits.models import Visit

__all__ = [
    "IngestCheckpoint",
    "Visit",
]
