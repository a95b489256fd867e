"""Argument parser for the ebo CLI."""

from __future__ import annotations

import argparse

from ebo.config import MERGED_RESULTS_FILE


def _preprocess_argv(argv: list[str]) -> list[str]:
    """Move global flags (--json, -v/--verbose, --config) before the subcommand.

    argparse doesn't accept parent-parser flags after a subcommand, and CI
    scripts tend to append them at the end.
    """
    global_args: list[str] = []
    rest: list[str] = []
    i = 0
    while i < len(argv):
        token = argv[i]
        if token in ("--json", "-v", "--verbose"):
            global_args.append(token)
            i += 1
            continue
        if token.startswith("--config="):
            global_args.append(token)
            i += 1
            continue
        if token == "--config":
            if i + 1 >= len(argv):
                rest.append(token)
                i += 1
                continue
            global_args.extend([token, argv[i + 1]])
            i += 2
            continue
        rest.append(token)
        i += 1
    return global_args + rest


def _build_parser() -> argparse.ArgumentParser:
    """Build the full argparse parser with all subcommands."""
    parser = argparse.ArgumentParser(prog="ebo", description="E2E batch orchestrator")
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0 (e2e-batch-orchestrator)",
    )
    parser.add_argument("--json", action="store_true", help="Output machine-parseable JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", default=None, help="YAML config file (default: $EBO_CONFIG)")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run all batches (or one with --batch N)")
    p_run.add_argument(
        "--batch",
        default=None,
        help="Run only batch<N>; also selected by IS_BATCH=BATCH and BATCH_NUMBER",
    )

    p_batch = sub.add_parser("batch", help="Run a single batch by number")
    p_batch.add_argument("number", help="Positive batch number, e.g. 2 for batch2")

    sub.add_parser("topology", help="Show batches, components and assigned ports")

    p_reclaim = sub.add_parser("reclaim", help="Kill processes holding ports and wait for release")
    p_reclaim.add_argument("ports", type=int, nargs="*", help="Ports to reclaim")
    p_reclaim.add_argument("--all", action="store_true", help="Reclaim every port of every batch")

    p_merge = sub.add_parser("merge", help="Merge results_batch*.json into one report")
    p_merge.add_argument("--dir", default=None, help="Directory holding the per-batch reports")
    p_merge.add_argument("--output", default=MERGED_RESULTS_FILE)

    p_summary = sub.add_parser("summary", help="Print a per-suite summary of a merged report")
    p_summary.add_argument("path", nargs="?", default=None)

    return parser
