"""CLI entry point for uploading saved test results to AppVeyor."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from appveyor_reporter.config import ReporterSettings
from appveyor_reporter.models.result import Outcome, ResultRecord
from appveyor_reporter.reporter import Reporter

OUTCOME_SYMBOLS = {
    Outcome.PASSED: "✓",
    Outcome.FAILED: "✗",
    Outcome.IGNORED: "-",
}

records_adapter = TypeAdapter(list[ResultRecord])


def load_results(paths: Sequence[Path]) -> Sequence[ResultRecord]:
    """Load result records from JSON files, each holding an array of records."""
    records: list[ResultRecord] = []
    for path in paths:
        records.extend(records_adapter.validate_json(path.read_bytes()))
    return records


def log_results_summary(log: logging.Logger, records: Sequence[ResultRecord]) -> None:
    """Log a formatted summary of the uploaded results."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for record in records:
        symbol = OUTCOME_SYMBOLS.get(record.outcome, "?")
        log.info("%s %s: %s", symbol, record.test_name, record.outcome)
        if record.error_message:
            log.info("  Message: %s", record.error_message)


def format_output(records: Sequence[ResultRecord]) -> dict[str, Any]:
    """Format uploaded results for JSON output."""
    return {
        "total": len(records),
        "passed": sum(1 for r in records if r.outcome is Outcome.PASSED),
        "failed": sum(1 for r in records if r.outcome is Outcome.FAILED),
        "ignored": sum(1 for r in records if r.outcome is Outcome.IGNORED),
    }


async def run(paths: Sequence[Path], settings: ReporterSettings) -> int:
    """Upload results and return exit code."""
    log = logging.getLogger("appveyor_reporter")

    try:
        records = load_results(paths)
    except (OSError, ValidationError) as e:
        log.error("Cannot load test results: %s", e)
        return 2

    log.info("Uploading %d result(s) from %d file(s)", len(records), len(paths))

    async with Reporter.from_settings(settings) as reporter:
        for record in records:
            reporter.add_record(record)
        await reporter.shutdown()

    log_results_summary(log, records)

    output = format_output(records)
    print(json.dumps(output, indent=2))

    return 1 if output["failed"] else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Upload saved test results to the AppVeyor build worker API"
    )
    parser.add_argument(
        "results",
        nargs="+",
        type=Path,
        help="JSON files containing an array of test results",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="AppVeyor API URL (APPVEYOR_API_URL takes precedence)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Results queued before an immediate upload (default: 100)",
    )
    parser.add_argument(
        "--batch-interval-ms",
        type=int,
        default=None,
        help="Milliseconds between periodic uploads (default: 1000)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = ReporterSettings.from_options(
            api_url=args.api_url,
            batch_size=args.batch_size,
            batch_interval_in_ms=args.batch_interval_ms,
        )
    except ValidationError as e:
        parser.error(str(e))

    exit_code = asyncio.run(run(args.results, settings))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
