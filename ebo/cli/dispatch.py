"""Command dispatch for the ebo CLI."""

from __future__ import annotations

import sys
from typing import Optional

from ebo.cli.helpers import _print, configure_logging
from ebo.cli.parser import _build_parser, _preprocess_argv
from ebo.config import batch_number_from_env, load_config
from ebo.errors import ConfigError


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the ``ebo`` CLI.

    Args:
        argv: Argument list to parse.  Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code: 0 on success, non-zero on error.
    """
    if argv is None:
        argv = sys.argv[1:]

    argv = _preprocess_argv(argv)

    # Late import to allow tests to monkeypatch ebo.cli.cmd_xxx
    import ebo.cli as cli

    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, json_mode=args.json)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        _print({"error": str(e)} if args.json else f"Configuration error: {e}", json_mode=args.json)
        return 2

    if args.cmd == "run":
        batch_number = args.batch if args.batch is not None else batch_number_from_env()
        return cli.cmd_run(config=config, batch_number=batch_number, json_mode=args.json)
    if args.cmd == "batch":
        return cli.cmd_batch(config=config, number=args.number, json_mode=args.json)
    if args.cmd == "topology":
        return cli.cmd_topology(config=config, json_mode=args.json)
    if args.cmd == "reclaim":
        return cli.cmd_reclaim(config=config, ports=args.ports, all_batches=args.all, json_mode=args.json)
    if args.cmd == "merge":
        return cli.cmd_merge(config=config, directory=args.dir, output=args.output, json_mode=args.json)
    if args.cmd == "summary":
        return cli.cmd_summary(config=config, path=args.path, json_mode=args.json)

    parser.error(f"Unknown command: {args.cmd}")
    return 2
