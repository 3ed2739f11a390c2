"""
Generate a data-quality report for a scrape results file.

Reads the JSON written by `cadharvest --output` and prints batch metrics.
"""
import argparse
from pathlib import Path
import json
from typing import Any, Dict, List, Optional

from src.cadharvest.monitoring.data_quality import compute_batch_metrics
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)


def load_results(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        raise FileNotFoundError(f"Results file not found: {path}. Run `cadharvest --output {path}` first.")
    return json.loads(path.read_text(encoding="utf-8"))


def main(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("results", type=Path, nargs="?", default=Path("data/processed/results.json"))
    args = parser.parse_args(argv)

    metrics = compute_batch_metrics(load_results(args.results))

    logger.info(
        "batch_quality_report",
        total=metrics["total"],
        successful=metrics["successful"],
        failed=metrics["failed"],
        skipped=metrics["skipped"],
        valid=metrics["valid"],
    )

    print(f"Results: {metrics['total']} total, {metrics['successful']} successful, "
          f"{metrics['failed']} failed, {metrics['skipped']} skipped")
    print(f"Valid records: {metrics['valid']}")
    print(f"Mean quality score: {metrics['mean_quality_score']}")

    print("\nQuality tiers:")
    for tier, count in metrics["quality_tiers"].items():
        print(f"  {tier}: {count}")

    if metrics["error_types"]:
        print("\nFailures by error type:")
        for error_type, count in metrics["error_types"].items():
            print(f"  {error_type}: {count}")

    return metrics


if __name__ == "__main__":
    main()
