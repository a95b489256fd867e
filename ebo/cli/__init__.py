"""
ebo: CLI for the E2E Batch Orchestrator.

Main commands:
- run: Bring up each batch's components, run its tests, reclaim its ports
- batch: Run a single batch by number
- topology: Show batches, components and their ports
- reclaim: Free ports held by stray processes
- merge: Merge per-batch JSON reports into final_results.json
- summary: Print a per-suite summary of the merged report

Entry points:
- ebo: Main CLI entry point (installed via pip)
- Can also be imported and called programmatically via main(argv)
"""

from __future__ import annotations

from ebo.cli.helpers import _print, configure_logging
from ebo.cli.run_cmds import cmd_run, cmd_batch
from ebo.cli.ports_cmds import cmd_topology, cmd_reclaim
from ebo.cli.report_cmds import cmd_merge, cmd_summary
from ebo.cli.dispatch import main

__all__ = [
    "main",
    "cmd_run",
    "cmd_batch",
    "cmd_topology",
    "cmd_reclaim",
    "cmd_merge",
    "cmd_summary",
    "configure_logging",
]
