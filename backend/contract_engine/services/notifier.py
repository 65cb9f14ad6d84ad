"""Change notifier — best-effort "contract X changed" fan-out.

Runs after the write transaction commits. ``notify()`` hands the event to a
delivery lane per subscriber and returns immediately; subscriber failures are logged and
never reach the caller. Payloads are cache-invalidation hints: consumers are
expected to re-fetch the contract.
"""
import json
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Optional

import redis

from contract_engine.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractChanged:
    contract_id: str
    subject_id: str
    status: Optional[str]  # None once the contract has been deleted
    version: int
    changed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "subject_id": self.subject_id,
            "status": self.status,
            "version": self.version,
            "changed_at": self.changed_at.isoformat(),
        }


Subscriber = Callable[[ContractChanged], None]


class _Lane:
    """One subscriber's delivery queue: a single worker thread and a bounded backlog.

    A subscriber that hangs only stalls its own lane; other subscribers keep
    receiving events.
    """

    def __init__(self, callback: Subscriber):
        self.callback = callback
        self.pending: set[Future] = set()
        self.executor: Optional[ThreadPoolExecutor] = None

    def submit(self, fn: Callable[..., None], *args: Any) -> Future:
        if self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="contract-notify")
        future = self.executor.submit(fn, *args)
        self.pending.add(future)
        return future

    def close(self) -> None:
        executor, self.executor = self.executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)


class ChangeNotifier:
    """At-most-once, fire-and-forget dispatcher for ContractChanged events.

    Each subscriber gets its own lane. Once a lane holds ``max_pending``
    undelivered events, further events for that subscriber are dropped with a
    warning instead of queueing without bound.
    """

    def __init__(self, max_pending: int = 100, timeout: float = 2.0):
        self.max_pending = max_pending
        self.timeout = timeout
        self._lanes: list[_Lane] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        lane = _Lane(callback)
        with self._lock:
            self._lanes.append(lane)

        def unsubscribe() -> None:
            with self._lock:
                if lane not in self._lanes:
                    return
                self._lanes.remove(lane)
            lane.close()

        return unsubscribe

    def notify(
        self,
        contract_id: str,
        subject_id: str,
        new_status: Optional[str],
        version: int = 0,
    ) -> list[Future]:
        """Queue the event on every subscriber lane and return immediately."""
        event = ContractChanged(contract_id, subject_id, new_status, version)
        queued = []
        with self._lock:
            for lane in self._lanes:
                if len(lane.pending) >= self.max_pending:
                    logger.warning(
                        "Subscriber %r has %d undelivered events; dropping change of contract %s",
                        lane.callback, len(lane.pending), contract_id,
                    )
                    continue
                try:
                    queued.append((lane, lane.submit(self._deliver, lane.callback, event)))
                except RuntimeError:
                    logger.warning("Notifier is shutting down; dropping change event for contract %s", contract_id)
        for lane, future in queued:
            future.add_done_callback(partial(self._forget, lane))
        return [future for _, future in queued]

    def _forget(self, lane: _Lane, future: Future) -> None:
        with self._lock:
            lane.pending.discard(future)

    def _deliver(self, callback: Subscriber, event: ContractChanged) -> None:
        started = time.monotonic()
        try:
            callback(event)
        except Exception:
            logger.exception(
                "Change subscriber %r failed for contract %s (%s)",
                callback, event.contract_id, event.status,
            )
            return
        elapsed = time.monotonic() - started
        if elapsed > self.timeout:
            logger.warning(
                "Change subscriber %r took %.2fs for contract %s (budget %.2fs)",
                callback, elapsed, event.contract_id, self.timeout,
            )

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight deliveries. Returns False if some are still running."""
        with self._lock:
            pending = [future for lane in self._lanes for future in lane.pending]
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        """Stop every lane; deliveries not yet started are cancelled."""
        with self._lock:
            lanes = list(self._lanes)
        for lane in lanes:
            lane.close()


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class RedisPublisher:
    """Subscriber that republishes change events on ``<prefix>:<subject_id>``."""

    def __init__(self, client: "redis.Redis", channel_prefix: str = "contracts"):
        self.client = client
        self.channel_prefix = channel_prefix

    @classmethod
    def from_url(cls, url: str, timeout: float, channel_prefix: str = "contracts") -> "RedisPublisher":
        client = redis.Redis.from_url(url, socket_timeout=timeout, socket_connect_timeout=timeout)
        return cls(client, channel_prefix)

    def channel_for(self, subject_id: str) -> str:
        return f"{self.channel_prefix}:{subject_id}"

    def __call__(self, event: ContractChanged) -> None:
        self.client.publish(
            self.channel_for(event.subject_id),
            json.dumps(event.to_payload(), default=_json_default),
        )

    def __repr__(self) -> str:
        return f"RedisPublisher({self.channel_prefix!r})"


notifier = ChangeNotifier(max_pending=settings.NOTIFY_MAX_PENDING, timeout=settings.NOTIFY_TIMEOUT_SECONDS)


def get_notifier() -> ChangeNotifier:
    return notifier


def configure_redis_fanout(target: ChangeNotifier, url: str) -> Optional[Callable[[], None]]:
    """Attach a RedisPublisher to ``target`` when a Redis URL is configured."""
    if not url:
        return None
    publisher = RedisPublisher.from_url(url, settings.NOTIFY_TIMEOUT_SECONDS, settings.NOTIFY_CHANNEL_PREFIX)
    logger.info("Publishing contract changes to Redis channels %s:*", publisher.channel_prefix)
    return target.subscribe(publisher)
