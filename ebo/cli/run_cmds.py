"""Orchestration commands - run all batches or a single one."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ebo.config import OrchestratorConfig
from ebo.errors import UnknownBatch
from ebo.run_lock import RunLock
from ebo.scheduler import create_scheduler
from ebo.topology import discover_topology

from ebo.cli.helpers import _now_iso, _print

logger = logging.getLogger(__name__)


def cmd_run(*, config: OrchestratorConfig, batch_number: Optional[str], json_mode: bool) -> int:
    """Run the orchestrator.

    Args:
        config: Effective configuration.
        batch_number: ``None`` for all batches, else the number of one batch.
        json_mode: Emit a machine-parseable JSON result instead of the
            text summary.

    Returns:
        Exit code: 0 if every batch passed, 1 otherwise (including an
        unknown batch number or another run holding the lock).
    """
    topology = discover_topology(config.components_dir)
    emit = (lambda line: None) if json_mode else print
    scheduler = create_scheduler(config, topology, emit=emit)

    try:
        scheduler.select(batch_number)
    except UnknownBatch as e:
        logger.error("%s", e)
        _print(
            {"error": f"Batch {e.requested} not found", "available_batches": e.available}
            if json_mode
            else f"Available batches: {', '.join(e.available) or '(none)'}",
            json_mode=json_mode,
        )
        return 1

    lock = RunLock(config.lock_file)
    if not lock.acquire():
        _print(
            {"error": "Another orchestrator run is active", "pid": lock.holder_pid()}
            if json_mode
            else f"Another orchestrator run is active (PID {lock.holder_pid()})",
            json_mode=json_mode,
        )
        return 1

    started = _now_iso()
    try:
        failed = asyncio.run(scheduler.run(batch_number))
    finally:
        lock.release()

    if json_mode:
        _print(
            {
                "schema_version": 1,
                "started": started,
                "finished": _now_iso(),
                "success": not failed,
                "batches": [r.to_dict() for r in scheduler.results],
                "merged_report": str(scheduler.merge.path) if scheduler.merge else None,
            },
            json_mode=True,
        )
    return 1 if failed else 0


def cmd_batch(*, config: OrchestratorConfig, number: str, json_mode: bool) -> int:
    """Run one batch after validating that *number* is a positive integer."""
    try:
        valid = int(number) > 0
    except (TypeError, ValueError):
        valid = False
    if not valid:
        _print(
            {"error": f"Invalid batch number: {number!r}"}
            if json_mode
            else "Please provide a valid positive batch number. Example: ebo batch 2",
            json_mode=json_mode,
        )
        return 1
    return cmd_run(config=config, batch_number=str(int(number)), json_mode=json_mode)
