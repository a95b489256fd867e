"""Port commands - show the port plan, reclaim ports."""

from __future__ import annotations

import asyncio

from ebo.config import OrchestratorConfig
from ebo.implementations import make_port_inspector
from ebo.port_reclaim import PortReclaimer, PortRegistry
from ebo.ports import all_ports, assign_ports
from ebo.topology import discover_topology

from ebo.cli.helpers import _print


def cmd_topology(*, config: OrchestratorConfig, json_mode: bool) -> int:
    topology = discover_topology(config.components_dir)
    plan = {
        name: {
            "tag": batch.tag,
            "results_file": batch.results_file,
            "ports": assign_ports(batch.components, config.base_port),
        }
        for name, batch in topology.items()
    }
    if json_mode:
        _print({"components_dir": config.components_dir, "batches": plan}, json_mode=True)
        return 0

    if not plan:
        print(f"No batches found under {config.components_dir}")
        return 0
    for name, info in plan.items():
        print(f"{name} ({info['tag']} -> {info['results_file']})")
        for component, port in info["ports"].items():
            print(f"  {port}  {component}")
    return 0


def cmd_reclaim(*, config: OrchestratorConfig, ports: list[int], all_batches: bool, json_mode: bool) -> int:
    """Reclaim *ports* (or every topology port with *all_batches*).

    Returns:
        Exit code: 0 when all ports were released, 1 when some stayed bound,
        2 when no ports were given.
    """
    targets = list(ports)
    if all_batches:
        targets += all_ports(discover_topology(config.components_dir), config.base_port)
    if not targets:
        _print({"error": "Specify ports or --all"} if json_mode else "Specify ports or --all", json_mode=json_mode)
        return 2

    reclaimer = PortReclaimer(
        make_port_inspector(config.ci),
        PortRegistry(),
        release_attempts=config.release_attempts,
        release_interval_s=config.release_interval_s,
        cooldown_s=0,
    )
    result = asyncio.run(reclaimer.reclaim(targets))
    _print(
        {
            "requested": result.requested,
            "killed": {str(k): v for k, v in result.killed.items()},
            "still_bound": result.still_bound,
        },
        json_mode=json_mode,
    )
    return 1 if result.still_bound else 0
