"""LogMetrikks - nginx access log ingestion into an enriched visits table."""
