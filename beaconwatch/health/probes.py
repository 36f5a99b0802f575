"""Concrete probe checks and the wiring that turns settings into probes.

Every check is a zero-argument callable returning a Verdict. Collaborator
failures become error verdicts here; nothing is retried within an iteration.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta
from typing import Any

import httpx
import redis

from ..chain import ChainClock
from ..config import Settings
from .engine import StatusRecord, StatusStore, Verdict, utcnow
from .registry import load_expected_services
from .scheduler import Probe
from .sources import PrimaryStore, SecondaryStore, SqlPrimaryStore, SqlSecondaryStore

logger = logging.getLogger(__name__)

RUNNING = "Running"

CL_DATA = "monitoring_cl_data"
EL_DATA = "monitoring_el_data"
REDIS = "monitoring_redis"
API = "monitoring_api"
APP = "monitoring_app"
SERVICES = "monitoring_services"

# Scheduler-level backstop on top of a check's own client timeout
_TIMEOUT_GRACE = 5.0


def format_age(delta: timedelta) -> str:
    """Compact duration, e.g. 1h2m3s or 16m40s."""
    total = max(int(delta.total_seconds()), 0)
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    return f"{minutes}m{seconds}s"


def _minutes(delta: timedelta) -> str:
    return f"{int(delta.total_seconds() // 60)} minutes"


# ── Data freshness ───────────────────────────────────────────────────────────


class PrimaryFreshnessCheck:
    """Attestations, blocks and epochs in the primary store must be recent.

    Checks run in order; the first stale or unreadable quantity decides
    the verdict and the rest are skipped.
    """

    def __init__(
        self,
        store: PrimaryStore,
        chain: ChainClock,
        threshold: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.chain = chain
        self.threshold = threshold
        self._clock = clock

    def __call__(self) -> Verdict:
        observations = (
            ("max attestation slot", self.store.max_attestation_slot, self.chain.slot_to_time),
            ("max slot in blocks table", self.store.max_block_slot, self.chain.slot_to_time),
            ("max epoch in epochs table", self.store.max_epoch, self.chain.epoch_to_time),
        )
        for label, fetch, to_time in observations:
            try:
                value = fetch()
            except Exception as e:
                return Verdict.error(f"could not retrieve {label}: {e}")

            age = self._clock() - to_time(value)
            if age > self.threshold:
                return Verdict.error(
                    f"{label} is older than {_minutes(self.threshold)}: {format_age(age)}"
                )

        return Verdict.healthy()


class SecondaryFreshnessCheck:
    """The canonical chain must be recent and the index must keep up with it."""

    def __init__(
        self,
        store: SecondaryStore,
        threshold: timedelta = timedelta(minutes=13),
        max_lag: int = 32,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.threshold = threshold
        self.max_lag = max_lag
        self._clock = clock

    def __call__(self) -> Verdict:
        try:
            number, block_time = self.store.latest_canonical_block()
        except Exception as e:
            return Verdict.error(f"could not retrieve latest block from the blocks table: {e}")

        age = self._clock() - block_time
        if age > self.threshold:
            return Verdict.error(
                f"last block in blocks table is older than {_minutes(self.threshold)}: "
                f"{format_age(age)} (check eth1 indexer)"
            )

        try:
            indexed = self.store.latest_indexed_block_number()
        except Exception as e:
            return Verdict.error(f"could not retrieve latest block number from the data table: {e}")

        if indexed < number - self.max_lag:
            return Verdict.error(
                f"data table is lagging behind the blocks table by {number - indexed} blocks "
                f"(check eth1 indexer)"
            )

        return Verdict.healthy()


# ── Reachability ─────────────────────────────────────────────────────────────


class CacheReachabilityCheck:
    """Ping the cache with a fresh connection each iteration."""

    def __init__(self, endpoint: str, timeout: float = 30.0) -> None:
        host, sep, port = endpoint.rpartition(":")
        # [::1]:6379 style IPv6 endpoints
        self.host = host.strip("[]") if sep else endpoint
        self.port = int(port) if sep else 6379
        self.timeout = timeout

    def __call__(self) -> Verdict:
        client = redis.Redis(
            host=self.host,
            port=self.port,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
        )
        try:
            if not client.ping():
                return Verdict.error("cache ping returned no PONG")
        except redis.RedisError as e:
            return Verdict.error(f"cache ping failed: {e}")
        finally:
            client.close()
        return Verdict.healthy()


class HttpReachabilityCheck:
    """One request against a known endpoint; anything but 200 is unhealthy."""

    def __init__(
        self,
        client: httpx.Client,
        url: str,
        method: str = "GET",
        payload: dict[str, Any] | None = None,
        label: str = "api",
    ) -> None:
        self.client = client
        self.url = url
        self.method = method
        self.payload = payload
        self.label = label

    def __call__(self) -> Verdict:
        try:
            resp = self.client.request(self.method, self.url, json=self.payload)
        except httpx.HTTPError as e:
            return Verdict.error(f"{self.label} request failed: {type(e).__name__}: {e}")

        if resp.status_code != 200:
            return Verdict.error(f"{self.label} returned a non 200 status: {resp.status_code}")
        return Verdict.healthy()

    def close(self) -> None:
        self.client.close()


# ── Service aggregation + retention ──────────────────────────────────────────


def fold_latest(records: Iterable[StatusRecord]) -> dict[str, str]:
    """Latest status per name from records ordered newest first.

    The first record seen for a name wins; older ones are ignored.
    """
    latest: dict[str, str] = {}
    for record in records:
        latest.setdefault(record.name, record.status)
    return latest


class ServiceAggregationCheck:
    """Every expected fleet service must have reported Running recently.

    Also prunes the status table on every iteration, whatever the verdict.
    """

    def __init__(
        self,
        store: StatusStore,
        expected: Sequence[str],
        window: timedelta = timedelta(minutes=15),
        retention: timedelta = timedelta(weeks=1),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.expected = tuple(expected)
        self.window = window
        self.retention = retention
        self._clock = clock

    def __call__(self) -> Verdict:
        now = self._clock()
        verdict = self.evaluate(now)
        self.sweep(now)
        return verdict

    def evaluate(self, now: datetime) -> Verdict:
        try:
            records = self.store.recent(now - self.window)
        except Exception as e:
            return Verdict.error(f"could not retrieve service status from the service_status table: {e}")

        latest = fold_latest(records)
        for name in self.expected:
            state = latest.get(name, "")
            if state != RUNNING:
                return Verdict.error(f"service {name} has unexpected state {state}")
        return Verdict.healthy()

    def sweep(self, now: datetime) -> None:
        try:
            removed = self.store.delete_older_than(now - self.retention)
        except Exception:
            logger.exception("Error cleaning up service_status table")
            return
        if removed:
            logger.info("Removed %d status records older than %s", removed, self.retention)


# ── Wiring ───────────────────────────────────────────────────────────────────


def build_probes(settings: Settings, store: StatusStore) -> list[Probe]:
    """Create every probe the settings enable."""
    interval = settings.probe_interval_seconds
    probes: list[Probe] = []

    if settings.primary_db_path:
        chain = ChainClock(
            genesis_timestamp=settings.genesis_timestamp,
            seconds_per_slot=settings.seconds_per_slot,
            slots_per_epoch=settings.slots_per_epoch,
        )
        primary = SqlPrimaryStore(settings.primary_db_path, timeout=settings.store_timeout_seconds)
        probes.append(Probe(
            CL_DATA, PrimaryFreshnessCheck(primary, chain),
            interval=interval, timeout=settings.store_timeout_seconds,
        ))
    else:
        logger.info("primary_db_path not set, %s disabled", CL_DATA)

    if settings.secondary_db_path:
        secondary = SqlSecondaryStore(settings.secondary_db_path, timeout=settings.store_timeout_seconds)
        probes.append(Probe(
            EL_DATA, SecondaryFreshnessCheck(secondary),
            interval=interval, timeout=settings.store_timeout_seconds,
        ))
    else:
        logger.info("secondary_db_path not set, %s disabled", EL_DATA)

    if settings.redis_cache_endpoint:
        probes.append(Probe(
            REDIS,
            CacheReachabilityCheck(settings.redis_cache_endpoint, timeout=settings.cache_timeout_seconds),
            interval=interval, timeout=settings.cache_timeout_seconds + _TIMEOUT_GRACE,
        ))
    else:
        logger.info("redis_cache_endpoint not set, %s disabled", REDIS)

    http_timeout = settings.http_timeout_seconds
    base_url = f"https://{settings.site_domain}"
    probes.append(Probe(
        API,
        HttpReachabilityCheck(
            httpx.Client(timeout=http_timeout, follow_redirects=True),
            f"{base_url}/api/v1/epoch/latest",
            label="api epoch / latest endpoint",
        ),
        interval=interval, timeout=http_timeout + _TIMEOUT_GRACE,
    ))
    probes.append(Probe(
        APP,
        HttpReachabilityCheck(
            httpx.Client(timeout=http_timeout, follow_redirects=True),
            f"{base_url}/api/v1/app/dashboard",
            method="POST",
            payload={"indicesOrPubkey": "1,2"},
            label="api app endpoint",
        ),
        interval=interval, timeout=http_timeout + _TIMEOUT_GRACE,
    ))

    expected = load_expected_services(settings.services_file)
    probes.append(Probe(
        SERVICES, ServiceAggregationCheck(store, expected),
        interval=interval, timeout=settings.store_timeout_seconds,
    ))

    return probes
