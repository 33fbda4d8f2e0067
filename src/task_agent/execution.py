"""Execution controller: runs one task in the background and streams progress.

The background thread never touches session state. It talks to the event
loop through a ProgressChannel only, and the event loop learns about the
outcome from the same channel: ``ExecutionJob.next_event`` yields progress
messages in emission order and, after the channel closes, exactly one
``ExecutionFinished``.
"""

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

from .models import ArtifactBundle, ExecutionOutcome, WorkItem
from .output import write_output
from .providers import Provider, ProviderRegistry

logger = logging.getLogger(__name__)

CHANNEL_CAPACITY = 64

_CLOSED = object()


class ConfigurationError(Exception):
    """The execution cannot start: unknown provider or missing credential."""


class ExecutionBusyError(Exception):
    """An execution is already in flight."""


class Engine(Protocol):
    def execute(self, task_description: str, on_progress: Callable[[str], None]) -> ArtifactBundle: ...


EngineFactory = Callable[[Provider, str, str], Engine]
OutputSink = Callable[[ArtifactBundle, WorkItem, str], Path]


class ProgressChannel:
    """Bounded single-producer/single-consumer message channel, closed once."""

    def __init__(self, capacity: int = CHANNEL_CAPACITY) -> None:
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._closed = False
        self._lock = threading.Lock()

    def send(self, message: str) -> None:
        """Queue a message, blocking while the channel is full."""
        if self._closed:
            raise RuntimeError("send on closed progress channel")
        self._queue.put(message)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_CLOSED)

    def receive(self, timeout: float | None = None) -> str | None:
        """Next message, or None once the channel is closed and drained."""
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # Leave the sentinel for any later receive.
            self._queue.put(_CLOSED)
            return None
        return item


@dataclass(frozen=True)
class ExecutionRequest:
    """Everything a job needs, copied by value when the execution starts."""

    item: WorkItem
    provider_id: str
    model: str
    api_key: str
    output_dir: str
    task_description: str


@dataclass(frozen=True)
class ProgressReceived:
    job: "ExecutionJob"
    text: str


@dataclass(frozen=True)
class ExecutionFinished:
    outcome: ExecutionOutcome


class ExecutionJob:
    """Handle on one in-flight execution, drained by the event loop."""

    def __init__(self, request: ExecutionRequest, channel: ProgressChannel, future: Future) -> None:
        self.request = request
        self.channel = channel
        self.future = future

    @property
    def done(self) -> bool:
        return self.future.done()

    def next_event(self) -> "ProgressReceived | ExecutionFinished":
        """Block for the next progress message or the terminal outcome."""
        text = self.channel.receive()
        if text is not None:
            return ProgressReceived(self, text)
        try:
            outcome = self.future.result()
        except Exception as e:
            logger.exception("Execution job crashed")
            outcome = ExecutionOutcome(error=f"{type(e).__name__}: {e}")
        return ExecutionFinished(outcome)


class ExecutionController:
    """Starts at most one execution at a time on a background thread.

    Jobs run on daemon threads so quitting never waits for a provider call.
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        registry: ProviderRegistry,
        sink: OutputSink = write_output,
    ) -> None:
        self._engine_factory = engine_factory
        self._registry = registry
        self._sink = sink
        self._current: ExecutionJob | None = None

    @property
    def in_flight(self) -> bool:
        return self._current is not None and not self._current.done

    def validate(self, request: ExecutionRequest) -> Provider:
        provider = self._registry.get(request.provider_id)
        if provider is None:
            raise ConfigurationError(f"Unknown provider: {request.provider_id}")
        if request.model not in provider.models:
            raise ConfigurationError(f"Model {request.model} is not offered by {provider.name}")
        if provider.requires_key and not request.api_key:
            raise ConfigurationError(
                f"No API key for {provider.name}: set {provider.env_key} or press c to configure"
            )
        return provider

    def start(self, request: ExecutionRequest) -> ExecutionJob:
        """Validate and launch an execution.

        Raises ConfigurationError or ExecutionBusyError without spawning work.
        """
        if self.in_flight:
            raise ExecutionBusyError("an execution is already running")
        provider = self.validate(request)
        channel = ProgressChannel()
        future: Future = Future()
        future.set_running_or_notify_cancel()
        threading.Thread(
            target=self._work,
            args=(future, provider, request, channel),
            name=f"execution-{request.item.id}",
            daemon=True,
        ).start()
        self._current = ExecutionJob(request, channel, future)
        logger.info("Started execution of %s with %s/%s", request.item.id, provider.id, request.model)
        return self._current

    def _work(self, future: Future, provider: Provider, request: ExecutionRequest, channel: ProgressChannel) -> None:
        try:
            future.set_result(self._run(provider, request, channel))
        except Exception as e:
            future.set_exception(e)

    def _run(self, provider: Provider, request: ExecutionRequest, channel: ProgressChannel) -> ExecutionOutcome:
        try:
            engine = self._engine_factory(provider, request.model, request.api_key)
            bundle = engine.execute(request.task_description, channel.send)
        except Exception as e:
            logger.warning("Execution of %s failed: %s", request.item.id, e)
            return ExecutionOutcome(error=str(e) or type(e).__name__)
        finally:
            channel.close()

        try:
            path = self._sink(bundle, request.item, request.output_dir)
        except (OSError, ValueError) as e:
            logger.warning("Could not write output for %s: %s", request.item.id, e)
            return ExecutionOutcome(bundle=bundle, error=f"Could not write output: {e}")
        return ExecutionOutcome(bundle=bundle, output_path=path)

    def shutdown(self) -> None:
        """Abandon any in-flight job; its daemon thread dies with the process."""
        if self.in_flight:
            logger.info("Abandoning execution of %s", self._current.request.item.id)
        self._current = None
