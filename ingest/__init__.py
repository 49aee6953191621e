"""Reading ingestion."""
from ingest.service import ReadingIngestor, IngestResult
