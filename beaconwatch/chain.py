"""Beacon chain time arithmetic — slots and epochs to wall-clock instants."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class ChainClock:
    genesis_timestamp: int = 1606824023
    seconds_per_slot: int = 12
    slots_per_epoch: int = 32

    def slot_to_time(self, slot: int) -> datetime:
        return datetime.fromtimestamp(
            self.genesis_timestamp + slot * self.seconds_per_slot, tz=timezone.utc,
        )

    def epoch_to_time(self, epoch: int) -> datetime:
        """Start of the epoch, i.e. the time of its first slot."""
        return self.slot_to_time(epoch * self.slots_per_epoch)
