"""Health subsystem — status store, probe scheduler, concrete probes."""

from .engine import StatusRecord, StatusReporter, StatusStore, Verdict
from .probes import build_probes
from .scheduler import Probe, ProbeScheduler
