"""RAGForge: simulated PDF ingestion with document-grounded chat."""

__version__ = "0.1.0"
