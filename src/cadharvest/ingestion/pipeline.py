"""
Property ingestion pipeline.

Resolves a source adapter, then runs fetch -> normalize -> validate -> score
-> dedup check -> store for one identifier or for a batch of them on a
thread pool. Invalid records are returned (and stored, unless configured
otherwise) with their ValidationResult attached; per-item failures in a
batch are captured in the item's result.
"""
from __future__ import annotations

import argparse
import json
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from config.settings import settings
from src.cadharvest.ingestion.storage import PropertyStore
from src.cadharvest.models.property_record import CanonicalPropertyRecord
from src.cadharvest.monitoring.data_quality import (
    QualityReport,
    build_quality_report,
    compute_batch_metrics,
)
from src.cadharvest.scrapers.base import SourceAdapter
from src.cadharvest.scrapers.errors import CancelledError
from src.cadharvest.scrapers.rate_limiter import RateLimiter
from src.cadharvest.scrapers.registry import AdapterConstructor, AdapterRegistry, default_registry
from src.cadharvest.utils.logger import get_logger, scrape_context
from src.cadharvest.validation.validators import ValidationResult, validate_property_record

logger = get_logger(__name__)


@dataclass
class ScrapeResult:
    """Outcome of scrape_one: the record plus its validation and quality."""
    record: CanonicalPropertyRecord
    validation: ValidationResult
    quality: QualityReport
    is_duplicate: bool = False
    persisted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record": self.record.to_dict(),
            "validation": self.validation.to_dict(),
            "quality": self.quality.to_dict(),
            "is_duplicate": self.is_duplicate,
            "persisted": self.persisted,
        }


@dataclass
class BatchItemResult:
    """
    One identifier's outcome within a batch.

    skipped is set (with success False and no error) when a sequential-ID
    probe reports the property does not exist.
    """
    identifier: str
    success: bool
    record: Optional[CanonicalPropertyRecord] = None
    validation: Optional[ValidationResult] = None
    quality: Optional[QualityReport] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    skipped: bool = False
    is_duplicate: bool = False
    persisted: bool = False

    @classmethod
    def from_result(cls, identifier: str, result: ScrapeResult) -> "BatchItemResult":
        return cls(
            identifier=identifier,
            success=True,
            record=result.record,
            validation=result.validation,
            quality=result.quality,
            is_duplicate=result.is_duplicate,
            persisted=result.persisted,
        )

    @classmethod
    def from_error(cls, identifier: str, error: BaseException) -> "BatchItemResult":
        return cls(
            identifier=identifier,
            success=False,
            error=str(error),
            error_type=type(error).__name__,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "success": self.success,
            "skipped": self.skipped,
            "record": self.record.to_dict() if self.record else None,
            "validation": self.validation.to_dict() if self.validation else None,
            "quality": self.quality.to_dict() if self.quality else None,
            "error": self.error,
            "error_type": self.error_type,
            "is_duplicate": self.is_duplicate,
            "persisted": self.persisted,
        }


class IngestionPipeline:
    """Scrapes properties from registered appraisal-district sources."""

    def __init__(
        self,
        registry: Optional[AdapterRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
        store: Optional[PropertyStore] = None,
        max_workers: Optional[int] = None,
        persist_invalid: Optional[bool] = None,
        adapter_options: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            registry: Source registry (Hays, Travis and Williamson by default)
            rate_limiter: Limiter shared by every adapter the pipeline creates
            store: Storage collaborator; None disables dedup and persistence
            max_workers: Batch thread pool size
            persist_invalid: Store records that fail validation
            adapter_options: Extra keyword arguments for adapter constructors
        """
        self.registry = registry or default_registry()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.store = store
        self.max_workers = max_workers or settings.batch_max_workers
        self.persist_invalid = (
            settings.persist_invalid_records if persist_invalid is None else persist_invalid
        )
        self.adapter_options = dict(adapter_options or {})
        self._adapters: Dict[str, SourceAdapter] = {}
        self._adapters_lock = threading.Lock()

    def register_source(self, source_id: str, constructor: AdapterConstructor) -> None:
        """Register a source at runtime, replacing any cached adapter for it."""
        self.registry.register(source_id, constructor)
        with self._adapters_lock:
            self._adapters.pop(source_id.strip().lower(), None)

    def list_sources(self) -> List[str]:
        return self.registry.list_sources()

    def get_adapter(self, source_id: str) -> SourceAdapter:
        """
        Adapter for a source, created once and reused so session state and
        rate-limit budget persist across calls.

        Raises:
            UnknownSourceError: If the source is not registered
        """
        key = source_id.strip().lower()
        with self._adapters_lock:
            adapter = self._adapters.get(key)
            if adapter is None:
                adapter = self.registry.create(key, rate_limiter=self.rate_limiter, **self.adapter_options)
                self._adapters[key] = adapter
            return adapter

    def scrape_one(
        self,
        source_id: str,
        identifier: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScrapeResult:
        """
        Scrape, validate, score and (optionally) store one property.

        Args:
            source_id: Registered source identifier
            identifier: Property ID, parcel ID or detail URL
            cancel_event: Set to abort the call

        Returns:
            ScrapeResult, including records that fail validation

        Raises:
            UnknownSourceError, FetchError, SessionExpiredError, ParseError,
            CancelledError
        """
        adapter = self.get_adapter(source_id)
        with scrape_context(source=adapter.source_id, identifier=str(identifier)):
            record = adapter.scrape(str(identifier), cancel_event)
            validation = validate_property_record(record)
            quality = build_quality_report(record)

            is_duplicate = False
            persisted = False
            if self.store is not None:
                is_duplicate = self.store.find_by_key(*record.dedup_key) is not None
                if validation.is_valid or self.persist_invalid:
                    self.store.upsert(record.dedup_key, record)
                    persisted = True

            logger.info(
                "scrape_completed",
                parcel_id=record.parcel_id,
                is_valid=validation.is_valid,
                missing_fields=validation.missing_fields,
                quality_score=quality.score,
                quality_tier=quality.tier,
                is_duplicate=is_duplicate,
                persisted=persisted,
            )
            return ScrapeResult(
                record=record,
                validation=validation,
                quality=quality,
                is_duplicate=is_duplicate,
                persisted=persisted,
            )

    def _scrape_item(
        self,
        source_id: str,
        identifier: str,
        cancel_event: threading.Event,
    ) -> BatchItemResult:
        if cancel_event.is_set():
            return BatchItemResult.from_error(identifier, CancelledError("Batch cancelled before item started"))
        try:
            return BatchItemResult.from_result(identifier, self.scrape_one(source_id, identifier, cancel_event))
        except Exception as e:
            # Batch boundary: the error belongs to this item only
            logger.error(
                "batch_item_failed",
                source=source_id,
                identifier=identifier,
                error=str(e),
                error_type=type(e).__name__,
            )
            return BatchItemResult.from_error(identifier, e)

    def _probe_and_scrape_item(
        self,
        source_id: str,
        property_id: str,
        cancel_event: threading.Event,
    ) -> BatchItemResult:
        if cancel_event.is_set():
            return BatchItemResult.from_error(property_id, CancelledError("Batch cancelled before item started"))
        try:
            detail_url = self.get_adapter(source_id).probe_property_id(property_id, cancel_event)
        except Exception as e:
            logger.error(
                "property_probe_failed",
                source=source_id,
                property_id=property_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return BatchItemResult.from_error(property_id, e)

        if detail_url is None:
            return BatchItemResult(identifier=property_id, success=False, skipped=True)

        result = self._scrape_item(source_id, detail_url, cancel_event)
        result.identifier = property_id
        return result

    def _run_batch(
        self,
        source_id: str,
        identifiers: List[str],
        worker: Callable[[str, str, threading.Event], BatchItemResult],
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
        max_workers: Optional[int],
    ) -> List[BatchItemResult]:
        cancel = cancel_event or threading.Event()
        timer = None
        if timeout:
            timer = threading.Timer(timeout, cancel.set)
            timer.daemon = True
            timer.start()

        try:
            with ThreadPoolExecutor(
                max_workers=max_workers or self.max_workers,
                thread_name_prefix=f"scrape-{source_id}",
            ) as executor:
                futures = [executor.submit(worker, source_id, identifier, cancel) for identifier in identifiers]
                # Collected in submission order, not completion order
                results = [future.result() for future in futures]
        finally:
            if timer is not None:
                timer.cancel()

        metrics = compute_batch_metrics(results)
        logger.info("batch_completed", source=source_id, **metrics)
        return results

    def scrape_batch(
        self,
        source_id: str,
        identifiers: Iterable[Any],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        max_workers: Optional[int] = None,
    ) -> List[BatchItemResult]:
        """
        Scrape many identifiers concurrently.

        Every identifier is attempted independently; one failure never aborts
        the batch. Results are in input order.

        Args:
            source_id: Registered source identifier
            identifiers: Property IDs, parcel IDs or detail URLs
            timeout: Overall deadline in seconds; items still running or
                queued when it passes fail with CancelledError
            cancel_event: Caller-owned cancellation event (also set by the
                deadline)
            max_workers: Override the pool size

        Raises:
            UnknownSourceError: If the source is not registered
        """
        self.get_adapter(source_id)
        identifiers = [str(identifier) for identifier in identifiers]
        logger.info("batch_started", source=source_id, count=len(identifiers))
        if not identifiers:
            return []
        return self._run_batch(source_id, identifiers, self._scrape_item, timeout, cancel_event, max_workers)

    def scrape_sequential_range(
        self,
        source_id: str,
        start_id: int,
        end_id: int,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        max_workers: Optional[int] = None,
    ) -> List[BatchItemResult]:
        """
        Probe and scrape an inclusive range of sequential property IDs.

        IDs the probe reports missing come back with skipped=True and no
        error, so gaps in the numbering do not count as failures.

        Raises:
            UnknownSourceError: If the source is not registered
            ValueError: If the source has no sequential-ID probe, or the
                range is reversed
        """
        adapter = self.get_adapter(source_id)
        if not callable(getattr(adapter, "probe_property_id", None)):
            raise ValueError(f"Source '{source_id}' does not support sequential ID probing")
        if end_id < start_id:
            raise ValueError(f"Invalid ID range: {start_id}..{end_id}")

        identifiers = [str(property_id) for property_id in range(start_id, end_id + 1)]
        logger.info("sequential_batch_started", source=source_id, start_id=start_id, end_id=end_id)
        return self._run_batch(source_id, identifiers, self._probe_and_scrape_item, timeout, cancel_event, max_workers)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Central Texas appraisal district scraper")
    parser.add_argument(
        "--source",
        required=True,
        help="Source identifier (hayscad, traviscad, williamsoncad)",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--ids", nargs="+", help="Property IDs, parcel IDs or detail URLs")
    target.add_argument(
        "--range",
        nargs=2,
        type=int,
        metavar=("START", "END"),
        help="Inclusive sequential property ID range (sequential-ID sources only)",
    )
    parser.add_argument("--workers", type=int, default=None, help="Thread pool size")
    parser.add_argument("--timeout", type=float, default=None, help="Overall batch deadline in seconds")
    parser.add_argument("--persist", action="store_true", help="Store results in the configured database")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write results as JSON",
    )
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> List[BatchItemResult]:
    """Parse arguments, scrape, and optionally write results as JSON."""
    from src.cadharvest.utils.logger import setup_logging

    args = parse_args(argv)
    setup_logging()

    store = None
    if args.persist:
        from src.cadharvest.db.session import create_all_tables
        from src.cadharvest.ingestion.storage import SqlAlchemyPropertyStore

        create_all_tables()
        store = SqlAlchemyPropertyStore()

    pipeline = IngestionPipeline(store=store, max_workers=args.workers)
    if args.range:
        results = pipeline.scrape_sequential_range(args.source, args.range[0], args.range[1], timeout=args.timeout)
    else:
        results = pipeline.scrape_batch(args.source, args.ids, timeout=args.timeout)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with args.output.open("w", encoding="utf-8") as f:
            json.dump([result.to_dict() for result in results], f, indent=2, default=str)
        logger.info("results_written", path=str(args.output), count=len(results))

    return results


def main(argv: Optional[List[str]] = None) -> int:
    """
    Console entry point.

    Returns:
        0 when every item succeeded or was skipped, 1 when any item failed
    """
    results = run(argv)
    failed = [result for result in results if not result.success and not result.skipped]
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
