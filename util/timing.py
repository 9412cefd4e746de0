# util/timing.py
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional


@dataclass
class Stopwatch:
    started: float
    stopped: Optional[float] = None

    @property
    def ms(self) -> int:
        end = self.stopped if self.stopped is not None else time.perf_counter()
        return int((end - self.started) * 1000)


@contextmanager
def timed(logger: logging.Logger, name: str, **kv: Any) -> Iterator[Stopwatch]:
    """
    Usage:
      with timed(logger, "stage", job=request_id, stage="bb prove") as clock:
          ...
      clock.ms  # still readable afterwards
    One record on exit: "<name>.done ms=<int> key=val ..." (INFO), or
    "<name>.aborted ms=<int> err=<ExcType> key=val ..." (WARNING) when the block raised.
    """
    clock = Stopwatch(started=time.perf_counter())
    suffix = "".join(f" {k}={v}" for k, v in kv.items())
    try:
        yield clock
    except BaseException as e:
        clock.stopped = time.perf_counter()
        logger.warning("%s.aborted ms=%d err=%s%s", name, clock.ms, type(e).__name__, suffix)
        raise
    clock.stopped = time.perf_counter()
    logger.info("%s.done ms=%d%s", name, clock.ms, suffix)
