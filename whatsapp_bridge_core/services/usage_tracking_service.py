"""
Usage accounting for outbound API calls and session creation.

The API client hands a UsageEvent to its sink for every response received,
and the session service does so for every session created. Sinks aggregate
counters in the option store, ship events to an Azure Storage queue, or do
nothing when tracking is disabled.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.queue import QueueClient

from ..config import AppConfig
from ..constants import Limits, OptionName, UsageEventType
from ..repositories.option_repository import OptionRepository
from ..schemas.usage_schema import UsageEvent
from ..utils.logger import get_logger


class UsageSink(ABC):
    """Receiver of usage events."""

    @abstractmethod
    def record(self, event: UsageEvent) -> None:
        """Record a single event."""

    def flush(self) -> None:
        """Deliver anything still buffered."""


class NoOpUsageSink(UsageSink):
    def record(self, event: UsageEvent) -> None:
        return None


class ApiCallStatsSink(UsageSink):
    """
    Counters kept in the option store.

    api_call events update per-endpoint total/success/failed counters in the
    api_call_stats option; a response counts as a success when its status
    code is below 400. session_created events increment the session_count
    option.
    """

    def __init__(self, option_repository: OptionRepository):
        self.option_repository = option_repository

    def record(self, event: UsageEvent) -> None:
        if event.event_type == UsageEventType.SESSION_CREATED:
            self.option_repository.update_option(
                OptionName.SESSION_COUNT.value, self.get_session_count() + 1
            )
            return

        stats = copy.deepcopy(
            self.option_repository.get_option(OptionName.API_CALL_STATS.value, {}) or {}
        )
        counters = stats.setdefault(event.endpoint, {"total": 0, "success": 0, "failed": 0})
        counters["total"] += 1
        if event.succeeded:
            counters["success"] += 1
        else:
            counters["failed"] += 1
        self.option_repository.update_option(OptionName.API_CALL_STATS.value, stats)

    def get_stats(self) -> dict:
        return self.option_repository.get_option(OptionName.API_CALL_STATS.value, {}) or {}

    def get_session_count(self) -> int:
        return int(self.option_repository.get_option(OptionName.SESSION_COUNT.value, 0) or 0)


class QueueUsageSink(UsageSink):
    """
    Ships events as JSON messages to an Azure Storage queue.

    record() only buffers. A full batch is sent on a background thread and
    flush() sends whatever remains. The queue client is built without retries
    and with a short connection timeout; send failures are logged and the
    affected events dropped.
    """

    def __init__(
        self,
        connection_string: str,
        queue_name: str,
        queue_client: Optional[QueueClient] = None,
        batch_size: int = Limits.USAGE_BATCH_SIZE,
        timeout: int = Limits.USAGE_QUEUE_TIMEOUT_SECONDS,
    ):
        self.connection_string = connection_string
        self.queue_name = queue_name
        self.batch_size = batch_size
        self.timeout = timeout
        self._queue_client = queue_client
        self._buffer: List[str] = []
        self._lock = threading.Lock()
        self._flush_thread: Optional[threading.Thread] = None
        self.logger = get_logger()

    @property
    def queue_client(self) -> QueueClient:
        if self._queue_client is None:
            self._queue_client = QueueClient.from_connection_string(
                conn_str=self.connection_string,
                queue_name=self.queue_name,
                retry_total=0,
                connection_timeout=self.timeout,
            )
        return self._queue_client

    def record(self, event: UsageEvent) -> None:
        with self._lock:
            self._buffer.append(event.model_dump_json())
            if len(self._buffer) < self.batch_size or self._flushing():
                return
            self._flush_thread = threading.Thread(
                target=self.flush, name="usage-queue-flush", daemon=True
            )
            self._flush_thread.start()

    def _flushing(self) -> bool:
        return self._flush_thread is not None and self._flush_thread.is_alive()

    def flush(self) -> None:
        """Send every buffered event to the queue."""
        with self._lock:
            pending, self._buffer = self._buffer, []

        for message in pending:
            try:
                self._send(message)
            except Exception as e:
                self.logger.warning(
                    "Failed to ship usage event",
                    extra={"queue_name": self.queue_name, "error_message": str(e)},
                )

    def _send(self, message: str) -> None:
        try:
            self.queue_client.send_message(message)
        except ResourceNotFoundError:
            self.logger.debug(f"Queue {self.queue_name} not found, creating it...")
            self.queue_client.create_queue()
            self.queue_client.send_message(message)

    def close(self) -> None:
        """Wait for a running batch, then send the rest."""
        thread = self._flush_thread
        if thread is not None:
            thread.join()
        self.flush()


class CompositeUsageSink(UsageSink):
    """Fans an event out to several sinks."""

    def __init__(self, sinks: List[UsageSink]):
        self.sinks = sinks

    def record(self, event: UsageEvent) -> None:
        for sink in self.sinks:
            sink.record(event)

    def flush(self) -> None:
        for sink in self.sinks:
            sink.flush()


def create_usage_sink(
    config: AppConfig, option_repository: Optional[OptionRepository] = None
) -> UsageSink:
    """
    Build the usage sink configured for this application.

    Tracking disabled gives a NoOpUsageSink. Otherwise counters go to the
    option store when a repository is supplied and events go to the usage
    queue when a storage connection string is configured.
    """
    if not config.features.enable_usage_tracking:
        return NoOpUsageSink()

    sinks: List[UsageSink] = []
    if option_repository is not None:
        sinks.append(ApiCallStatsSink(option_repository))
    if config.queue.connection_string:
        sinks.append(QueueUsageSink(config.queue.connection_string, config.queue.usage_queue_name))

    if not sinks:
        return NoOpUsageSink()
    if len(sinks) == 1:
        return sinks[0]
    return CompositeUsageSink(sinks)
