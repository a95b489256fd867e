"""Report commands - merge per-batch results, summarize a merged report."""

from __future__ import annotations

import os
from typing import Optional

from ebo.config import OrchestratorConfig
from ebo.merger import merge_results
from ebo.summary import summarize_results

from ebo.cli.helpers import _print


def cmd_merge(*, config: OrchestratorConfig, directory: Optional[str], output: str, json_mode: bool) -> int:
    """Merge reports. A skipped merge (nothing valid found) is not an error."""
    directory = directory or config.results_dir
    result = merge_results(directory, output)
    if result is None:
        _print({"merged": False, "directory": directory}, json_mode=json_mode)
        return 0
    _print(
        {
            "merged": True,
            "path": str(result.path),
            "files": result.merged,
            "skipped": result.skipped,
            "stats": result.report["stats"],
        },
        json_mode=json_mode,
    )
    return 0


def cmd_summary(*, config: OrchestratorConfig, path: Optional[str], json_mode: bool) -> int:
    path = path or os.path.join(config.results_dir, config.merged_file)
    try:
        lines = summarize_results(path)
    except (OSError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        _print({"error": str(e)} if json_mode else f"Error: {e}", json_mode=json_mode)
        return 1
    if json_mode:
        _print({"path": path, "lines": lines}, json_mode=True)
    else:
        print("\n".join(lines))
    return 0
