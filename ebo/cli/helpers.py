"""Shared utilities for ebo CLI commands."""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime())


def _print(obj: Any, *, json_mode: bool) -> None:
    if json_mode:
        print(json.dumps(obj, indent=2, sort_keys=True))
    else:
        if isinstance(obj, str):
            print(obj)
        else:
            print(json.dumps(obj, indent=2, sort_keys=True))


def configure_logging(verbose: bool = False, json_mode: bool = False) -> None:
    """Install the root log handler.

    Logs go to stdout, or to stderr under ``--json`` so the JSON result on
    stdout stays parseable. A second call replaces the handler.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_ebo", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr if json_mode else sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    handler._ebo = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
