"""Poll loop: query, partition, notify, render, sleep, repeat.

Runs until the stop event is set (SIGINT/SIGTERM in the CLI) or, for tests
and one-off runs, until max_cycles cycles have completed.  The sleep is a
wait on the stop event, so a stop request cuts the sleep short.

Every failure is local to its cycle: it's reported, counted, and the loop
goes on to sleep and poll again.
"""

import sys
import threading

from monitor import metrics
from monitor.engine import CycleResult, MonitorEngine


class PollLoop:

    def __init__(self, engine: MonitorEngine, render=None, clock=None, sleep=None,
                 stop_event: threading.Event | None = None,
                 max_cycles: int | None = None):
        self.engine = engine
        self.interval = engine.criteria.interval_seconds
        self.stop_event = stop_event or threading.Event()
        self._render = render
        self._clock = clock
        self._sleep = sleep or self.stop_event.wait
        self.max_cycles = max_cycles
        self.completed = 0
        self.failed = 0

    def stop(self) -> None:
        self.stop_event.set()

    def run(self) -> int:
        """Run cycles until stopped.  Returns the number of cycles run."""
        while not self.stop_event.is_set() and not self._exhausted():
            self.run_once()
            if self._exhausted():
                break
            self._sleep(self.interval)
        return self.completed

    def _exhausted(self) -> bool:
        return self.max_cycles is not None and self.completed >= self.max_cycles

    def run_once(self) -> CycleResult | None:
        now = self._clock() if self._clock else None
        result = None
        try:
            result = self.engine.run_cycle(now)
        except Exception as e:
            self.failed += 1
            metrics.poll_errors_total.labels(stage="cycle").inc()
            print(f"Poll cycle failed: {type(e).__name__}: {e}", file=sys.stderr)
        else:
            if result.error:
                self.failed += 1
            self._draw(result)
        finally:
            self.completed += 1
        return result

    def _draw(self, result: CycleResult) -> None:
        if self._render is None:
            return
        try:
            self._render(result, self.engine.snapshot())
        except Exception as e:
            metrics.poll_errors_total.labels(stage="render").inc()
            print(f"Render failed: {type(e).__name__}: {e}", file=sys.stderr)
