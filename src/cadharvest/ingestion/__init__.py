"""
Ingestion Package

Orchestrates scraping, validation, scoring and storage of property records.
"""

from src.cadharvest.ingestion.pipeline import BatchItemResult, IngestionPipeline, ScrapeResult
from src.cadharvest.ingestion.storage import InMemoryPropertyStore, SqlAlchemyPropertyStore, merge_records

__all__ = [
    "IngestionPipeline",
    "ScrapeResult",
    "BatchItemResult",
    "InMemoryPropertyStore",
    "SqlAlchemyPropertyStore",
    "merge_records",
]
