"""Expected-service registry — which fleet services must be reporting Running.

The built-in list can be overridden by a YAML file of the form::

    services:
      - eth1indexer
      - slotUpdater
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SERVICES: tuple[str, ...] = (
    "eth1indexer",
    "slotVizUpdater",
    "slotUpdater",
    "latestProposedSlotUpdater",
    "epochUpdater",
    "rewardsExporter",
    "mempoolUpdater",
    "indexPageDataUpdater",
    "latestBlockUpdater",
    "notification-collector",
    # notification-sender only runs on mainnet
    "relaysUpdater",
    "ethstoreExporter",
    "statsUpdater",
    "poolsUpdater",
    "epochExporter",
    "statistics",
    "poolInfoUpdater",
)


def unique_services(names: Iterable[str]) -> tuple[str, ...]:
    """Drop repeated names, keeping the first occurrence's position."""
    seen: dict[str, None] = {}
    for name in names:
        if name in seen:
            logger.warning("Duplicate expected service ignored: %s", name)
            continue
        seen[name] = None
    return tuple(seen)


def load_expected_services(path: Path | str | None = None) -> tuple[str, ...]:
    """Read the registry from YAML, falling back to DEFAULT_SERVICES."""
    if path is None or not Path(path).exists():
        return DEFAULT_SERVICES

    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    services = raw.get("services") if isinstance(raw, dict) else None
    if not isinstance(services, list):
        raise ValueError(f"{path}: expected a 'services' list")

    loaded = unique_services(str(s) for s in services)
    logger.info("Loaded %d expected services from %s", len(loaded), path)
    return loaded
