"""beaconwatch — liveness monitoring for the explorer data platform."""

__version__ = "0.1.0"
