from __future__ import annotations

import logging
import math
import queue
from dataclasses import dataclass
from typing import AsyncIterable, Callable, Iterable, Mapping, Union

from sound_presence_detection.monitor.detection_state import (
    DetectionState,
    PresenceTransition,
    advance,
    transition_between,
)
from sound_presence_detection.monitor.errors import AudioStreamInterrupted, ClassificationError

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_CONFIDENCE = 0.5

ClassificationResult = Mapping[str, float]


@dataclass(frozen=True)
class PresenceUpdate:
    label: str
    state: DetectionState
    transition: PresenceTransition | None = None


@dataclass(frozen=True)
class StreamCompleted:
    label: str


@dataclass(frozen=True)
class StreamFailed:
    label: str
    error: ClassificationError


StreamEvent = Union[PresenceUpdate, StreamCompleted, StreamFailed]
EventConsumer = Callable[[StreamEvent], None]


def _as_classification_error(error: BaseException) -> ClassificationError:
    if isinstance(error, ClassificationError):
        return error
    wrapped = AudioStreamInterrupted(f"classification stream failed: {error}")
    wrapped.__cause__ = error
    return wrapped


class PresenceStreamAdapter:
    """Feeds one label's confidences from a classification stream into a detector.

    Results below ``minimum_confidence`` or without the label are ignored and
    never count as absence evidence. After the first terminal event (completion
    or failure) every further input is dropped. Not safe for concurrent calls.
    """

    def __init__(
        self,
        label: str,
        initial_state: DetectionState,
        consumer: EventConsumer,
        minimum_confidence: float = DEFAULT_MINIMUM_CONFIDENCE,
    ) -> None:
        self.label = label
        self.consumer = consumer
        self.minimum_confidence = float(minimum_confidence)
        self._state = initial_state
        self._finished = False

    @property
    def state(self) -> DetectionState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._finished

    def accepts(self, result: ClassificationResult) -> bool:
        confidence = result.get(self.label)
        if confidence is None:
            return False
        confidence = float(confidence)
        return math.isfinite(confidence) and confidence > self.minimum_confidence

    def on_result(self, result: ClassificationResult) -> PresenceUpdate | None:
        if self._finished:
            logger.debug("Dropping %s result after stream end", self.label)
            return None
        if not self.accepts(result):
            logger.debug("Ignoring %s result below acceptance (%s)", self.label, result.get(self.label))
            return None

        prior = self._state
        self._state = advance(prior, float(result[self.label]))
        transition = transition_between(prior, self._state)
        if transition is not None:
            logger.info(
                "Presence %s for %s (confidence=%.2f)",
                transition.value,
                self.label,
                self._state.current_confidence,
            )

        update = PresenceUpdate(label=self.label, state=self._state, transition=transition)
        self.consumer(update)
        return update

    def on_complete(self) -> None:
        if self._finished:
            return
        self._finished = True
        logger.info("Classification stream for %s completed", self.label)
        self.consumer(StreamCompleted(label=self.label))

    def on_error(self, error: BaseException) -> None:
        if self._finished:
            return
        self._finished = True
        failure = _as_classification_error(error)
        logger.error("Classification stream for %s failed (%s): %s", self.label, failure.kind, failure)
        self.consumer(StreamFailed(label=self.label, error=failure))

    def run(self, results: Iterable[ClassificationResult]) -> DetectionState:
        """Consume ``results`` until it ends or raises; returns the last state.

        Only exceptions raised by the upstream iterator become a failure event,
        errors raised by the consumer propagate to the caller.
        """
        iterator = iter(results)
        while not self._finished:
            try:
                result = next(iterator)
            except StopIteration:
                self.on_complete()
                break
            except Exception as exc:
                self.on_error(exc)
                break
            self.on_result(result)
        return self._state

    async def run_async(self, results: AsyncIterable[ClassificationResult]) -> DetectionState:
        iterator = results.__aiter__()
        while not self._finished:
            try:
                result = await iterator.__anext__()
            except StopAsyncIteration:
                self.on_complete()
                break
            except Exception as exc:
                self.on_error(exc)
                break
            self.on_result(result)
        return self._state


class MultiLabelAdapter:
    """One independent presence signal per label over a shared result stream."""

    def __init__(self, adapters: Iterable[PresenceStreamAdapter]) -> None:
        self.adapters = {adapter.label: adapter for adapter in adapters}

    @property
    def finished(self) -> bool:
        return all(adapter.finished for adapter in self.adapters.values())

    def states(self) -> dict[str, DetectionState]:
        return {label: adapter.state for label, adapter in self.adapters.items()}

    def on_result(self, result: ClassificationResult) -> None:
        for adapter in self.adapters.values():
            adapter.on_result(result)

    def on_complete(self) -> None:
        for adapter in self.adapters.values():
            adapter.on_complete()

    def on_error(self, error: BaseException) -> None:
        for adapter in self.adapters.values():
            adapter.on_error(error)

    def run(self, results: Iterable[ClassificationResult]) -> dict[str, DetectionState]:
        iterator = iter(results)
        while not self.finished:
            try:
                result = next(iterator)
            except StopIteration:
                self.on_complete()
                break
            except Exception as exc:
                self.on_error(exc)
                break
            self.on_result(result)
        return self.states()


class QueueConsumer:
    """Hands stream events to another thread without blocking the producer."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[StreamEvent]" = queue.Queue()

    def __call__(self, event: StreamEvent) -> None:
        self._queue.put_nowait(event)

    def get(self, timeout: float | None = None) -> StreamEvent | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events
