"""Result merger: fold per-batch JSON reports into ``final_results.json``.

Merge rules:

* ``config`` comes from the first valid report;
* ``suites`` are concatenated in file-discovery (name) order;
* ``stats`` counters are summed, ``startTime`` takes the earliest value.

Unreadable, empty or corrupt files are skipped with a warning. When no
valid report exists nothing is written: an absent merged file means
"nothing to merge", which is different from a merged file with no suites.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from ebo.config import MERGED_RESULTS_FILE
from ebo.errors import ReportMergeSkipped
from ebo.file_utils import write_json_file

logger = logging.getLogger(__name__)

RESULTS_GLOB = "results_batch*.json"
SUMMED_STATS = ("expected", "skipped", "unexpected", "flaky", "duration")


@dataclass
class MergeResult:
    path: Path
    report: dict
    merged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def discover_result_files(directory: Union[str, Path] = ".") -> list[Path]:
    return sorted(p for p in Path(directory).glob(RESULTS_GLOB) if p.is_file())


def load_report(path: Union[str, Path]) -> Optional[dict]:
    """Read and parse one report; ``None`` (with a warning) if unusable."""
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning("Skipping unreadable test result file %s: %s", p.name, e)
        return None
    if not raw:
        logger.warning("Skipping empty test result file: %s", p.name)
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Skipping invalid JSON in %s: %s", p.name, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Skipping %s: expected a JSON object", p.name)
        return None
    return data


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def start_time_key(value: Any) -> Optional[float]:
    """Comparable epoch-milliseconds for a ``startTime`` value.

    Accepts epoch milliseconds or an ISO-8601 string; anything else is
    ignored.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000
        except ValueError:
            return None
    return None


def empty_report() -> dict:
    return {
        "config": {},
        "suites": [],
        "stats": {name: 0 for name in SUMMED_STATS} | {"startTime": None},
    }


def merge_reports(reports: Iterable[dict]) -> Optional[dict]:
    """Fold parsed reports into one. ``None`` when *reports* is empty."""
    merged = empty_report()
    earliest: Optional[float] = None
    seen = False

    for report in reports:
        if not seen and isinstance(report.get("config"), dict):
            merged["config"] = dict(report["config"])
        seen = True

        suites = report.get("suites")
        if isinstance(suites, list):
            merged["suites"].extend(suites)

        stats = report.get("stats")
        if not isinstance(stats, dict):
            continue
        for name in SUMMED_STATS:
            merged["stats"][name] += _number(stats.get(name))
        key = start_time_key(stats.get("startTime"))
        if key is not None and (earliest is None or key < earliest):
            earliest = key
            merged["stats"]["startTime"] = stats["startTime"]

    if not seen:
        return None
    if merged["stats"]["startTime"] is None:
        merged["stats"]["startTime"] = int(time.time() * 1000)
    return merged


def merge_results(
    directory: Union[str, Path] = ".",
    output: str = MERGED_RESULTS_FILE,
) -> Optional[MergeResult]:
    """Merge every ``results_batch*.json`` in *directory* into *output*.

    Returns ``None`` without writing anything when no valid file exists.
    """
    files = discover_result_files(directory)
    if not files:
        logger.warning("%s", ReportMergeSkipped(str(directory)))
        return None

    logger.info("Found test result files: %s", ", ".join(f.name for f in files))
    reports: list[dict] = []
    merged_names: list[str] = []
    skipped: list[str] = []
    for f in files:
        data = load_report(f)
        if data is None:
            skipped.append(f.name)
            continue
        logger.info("Merging results from: %s", f.name)
        reports.append(data)
        merged_names.append(f.name)

    report = merge_reports(reports)
    if report is None:
        logger.warning("%s", ReportMergeSkipped(str(directory), skipped))
        return None

    if not report["suites"]:
        logger.warning("No suites found in the merged results.")

    out_path = Path(directory) / output
    write_json_file(out_path, report)
    logger.info("Merged results saved to %s", out_path)
    return MergeResult(path=out_path, report=report, merged=merged_names, skipped=skipped)
