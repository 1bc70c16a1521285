"""Progress events for streamed generation.

A run is a generator of ``ProgressEvent``: zero or more ``progress`` events
followed by exactly one ``complete`` or ``error``. The reporter guards that
contract for whatever step generator it wraps.
"""

import json
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

import structlog

from offers.errors import PipelineError
from shared_types import ProgressEventType

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProgressEvent:
    event: ProgressEventType
    step: str
    message: str
    percent: float
    data: dict = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.event != ProgressEventType.PROGRESS

    def to_dict(self) -> dict:
        body = {"step": self.step, "message": self.message, "progress": round(self.percent, 1)}
        if self.data:
            body["data"] = self.data
        return body

    def to_sse(self) -> str:
        """Server-sent event frame."""
        return f"event: {self.event.value}\ndata: {json.dumps(self.to_dict(), default=str)}\n\n"


def artifact_window(index: int, total: int) -> tuple[float, float]:
    """Percent range for artifact ``index`` of ``total``, within 45..85."""
    total = max(total, 1)
    return 45 + (index / total) * 40, 45 + ((index + 1) / total) * 40


class StreamingProgressReporter:
    """Builds events and enforces ordering on a stream of them.

    Percent never decreases, and nothing is emitted after a terminal event.
    When the wrapped steps raise, the exception becomes a single ``error``
    event and is kept on ``exception`` for callers that want to re-raise it.
    """

    def __init__(self):
        self.percent = 0.0
        self.finished = False
        self.exception: Optional[Exception] = None

    def progress(self, step: str, message: str, percent: float, data: Optional[dict] = None) -> ProgressEvent:
        self.percent = max(self.percent, min(percent, 100.0))
        return ProgressEvent(ProgressEventType.PROGRESS, step, message, self.percent, data or {})

    def complete(self, data: dict, message: str = "Generation complete") -> ProgressEvent:
        self.percent = 100.0
        return ProgressEvent(ProgressEventType.COMPLETE, "complete", message, self.percent, data)

    def error(self, message: str, data: Optional[dict] = None) -> ProgressEvent:
        return ProgressEvent(ProgressEventType.ERROR, "error", message, self.percent, data or {})

    def events(self, steps: Iterable[ProgressEvent]) -> Iterator[ProgressEvent]:
        try:
            for event in steps:
                if self.finished:
                    logger.warning("progress.event_after_terminal", step=event.step)
                    break
                if event.percent < self.percent and not event.terminal:
                    event = ProgressEvent(event.event, event.step, event.message, self.percent, event.data)
                if event.terminal:
                    self.finished = True
                yield event
        except PipelineError as e:
            self.exception = e
            if not self.finished:
                self.finished = True
                yield self.error(e.message, e.to_dict())
        except Exception as e:
            self.exception = e
            logger.error("progress.stream_failed", error=str(e), exc_info=True)
            if not self.finished:
                self.finished = True
                yield self.error("Generation failed", {"error": "Generation failed"})
        else:
            if not self.finished:
                self.finished = True
                yield self.error("Generation ended without a result")
