"""Batch topology: which components belong to which batch.

Batches are directories named ``batch*`` under the components root; every
sub-directory of a batch is one component. Both levels are sorted so the
mapping (and therefore port assignment) never depends on directory-listing
order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence, Union

from ebo.errors import UnknownBatch

logger = logging.getLogger(__name__)

BATCH_PREFIX = "batch"


@dataclass(frozen=True)
class Batch:
    """A named group of components scheduled as one unit."""
    name: str
    components: tuple[str, ...]

    @property
    def tag(self) -> str:
        """Test filter tag selecting this batch's tests."""
        return f"@{self.name}"

    @property
    def results_file(self) -> str:
        return f"results_{self.name}.json"


Topology = dict[str, Batch]


def build_topology(mapping: Mapping[str, Sequence[str]]) -> Topology:
    """Build a topology from a static ``{batch: [components]}`` mapping."""
    return {
        name: Batch(name=name, components=tuple(sorted(mapping[name])))
        for name in sorted(mapping)
    }


def discover_topology(components_dir: Union[str, Path]) -> Topology:
    """Scan *components_dir* for ``batch*/<component>/`` directories."""
    root = Path(components_dir)
    if not root.is_dir():
        logger.warning("Components directory %s does not exist; no batches defined", root)
        return {}

    mapping: dict[str, list[str]] = {}
    for entry in root.iterdir():
        if not (entry.name.startswith(BATCH_PREFIX) and entry.is_dir()):
            continue
        mapping[entry.name] = [c.name for c in entry.iterdir() if c.is_dir()]

    topology = build_topology(mapping)
    logger.debug("Discovered %d batch(es) under %s", len(topology), root)
    return topology


def resolve_batch(topology: Topology, number: Union[int, str]) -> Batch:
    """Translate a batch number (``2``) into its batch (``batch2``).

    Raises:
        UnknownBatch: If no such batch exists.
    """
    key = f"{BATCH_PREFIX}{str(number).strip()}"
    batch = topology.get(key)
    if batch is None:
        raise UnknownBatch(key, list(topology))
    return batch
