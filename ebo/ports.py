"""Deterministic component-to-port assignment."""

from __future__ import annotations

from typing import Iterable

from ebo.config import DEFAULT_BASE_PORT
from ebo.topology import Batch, Topology


def assign_ports(components: Iterable[str], base_port: int = DEFAULT_BASE_PORT) -> dict[str, int]:
    """Map each component to ``base_port + index`` in sorted order.

    Sorting is what keeps a component on the same port across runs,
    whatever order the components were listed in.
    """
    return {name: base_port + i for i, name in enumerate(sorted(components))}


def ports_for(batch: Batch, base_port: int = DEFAULT_BASE_PORT) -> list[int]:
    return list(assign_ports(batch.components, base_port).values())


def all_ports(topology: Topology, base_port: int = DEFAULT_BASE_PORT) -> list[int]:
    """Every port any batch in *topology* may use, sorted and de-duplicated."""
    ports: set[int] = set()
    for batch in topology.values():
        ports.update(ports_for(batch, base_port))
    return sorted(ports)
