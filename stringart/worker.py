# stringart/worker.py
import asyncio
import queue
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import AsyncIterator, Iterator, Optional, Union

import numpy as np

from stringart.generator import (
    GenerationCancelled,
    ProgressEvent,
    StringArtConfig,
    StringArtResult,
    generate_string_art,
)


@dataclass(frozen=True)
class ProgressMessage:
    iteration: int
    total: int
    current_peg: int
    done: bool = False


@dataclass(frozen=True)
class ResultMessage:
    result: StringArtResult


@dataclass(frozen=True)
class ErrorMessage:
    error: str


WorkerMessage = Union[ProgressMessage, ResultMessage, ErrorMessage]


class GenerationJob:
    """
    One generation running on an executor thread. The run owns its darkness
    field and line cache; the caller only sees messages from the queue:
    progress while it runs, then a single ResultMessage or ErrorMessage.

    Dropping the job is enough to abandon it. cancel() additionally asks the
    run to stop at its next yield point.
    """

    def __init__(self, bitmap: np.ndarray, config: StringArtConfig, invert: bool = False):
        self.config = config
        self._bitmap = bitmap
        self._invert = invert
        self._messages: "queue.Queue[WorkerMessage]" = queue.Queue()
        self._cancelled = threading.Event()
        self._future: Optional[Future] = None
        self.latest_progress: Optional[ProgressMessage] = None

    @classmethod
    def submit(cls, executor: Executor, bitmap: np.ndarray, config: StringArtConfig,
               invert: bool = False) -> "GenerationJob":
        job = cls(bitmap, config, invert)
        job._future = executor.submit(job._run)
        return job

    def _on_progress(self, event: ProgressEvent) -> None:
        msg = ProgressMessage(event.completed_iterations, event.total_iterations,
                              event.current_peg, event.done)
        self.latest_progress = msg
        self._messages.put(msg)

    def _run(self) -> Optional[StringArtResult]:
        try:
            result = generate_string_art(
                self._bitmap,
                self.config,
                invert=self._invert,
                progress_callback=self._on_progress,
                should_cancel=self._cancelled.is_set,
            )
        except GenerationCancelled:
            self._messages.put(ErrorMessage("Generation cancelled"))
            return None
        except Exception as e:
            self._messages.put(ErrorMessage(str(e) or e.__class__.__name__))
            return None
        finally:
            # the bitmap is only needed to seed the field
            self._bitmap = None

        self._messages.put(ResultMessage(result))
        return result

    def cancel(self) -> None:
        self._cancelled.set()
        if self._future is not None:
            self._future.cancel()
            if self._future.cancelled():
                # never started, so nobody else will post the terminal message
                self._messages.put(ErrorMessage("Generation cancelled"))

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self, timeout: Optional[float] = None) -> Optional[StringArtResult]:
        """The finished result, or None if the run failed or was cancelled."""
        if self._future is None:
            raise RuntimeError("Job was never submitted")
        if self._future.cancelled():
            return None
        return self._future.result(timeout)

    def events(self, timeout: Optional[float] = None) -> Iterator[WorkerMessage]:
        """Messages in order, ending with the terminal result or error."""
        while True:
            msg = self._messages.get(timeout=timeout)
            yield msg
            if isinstance(msg, (ResultMessage, ErrorMessage)):
                return

    async def aevents(self) -> AsyncIterator[WorkerMessage]:
        while True:
            msg = await asyncio.to_thread(self._messages.get)
            yield msg
            if isinstance(msg, (ResultMessage, ErrorMessage)):
                return
