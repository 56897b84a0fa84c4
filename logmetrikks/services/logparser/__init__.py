"""Log parser module - line reading and parsing only, no enrichment or database operations."""
from .logparser import LineSource, LogParser
from .schemas import ParsedRecord

__all__ = ["LineSource", "LogParser", "ParsedRecord"]
