"""Spawn the single-shot user review tool as a detached child process.

Each launch runs ``python -m review.main --user <upn> [extra args]`` in its
own session with output captured to ``<log_dir>/<user>-<timestamp>.log``.
The monitor never waits on the child; finished children are reaped on the
next launch so they don't linger as zombies.
"""

import re
import subprocess
import sys
import time
from pathlib import Path

from monitor.dispatch import Launcher

_UNSAFE = re.compile(r"[^A-Za-z0-9@._-]")


class ProcessLauncher(Launcher):
    name = "process"

    def __init__(self, extra_args: list[str] | None = None,
                 log_dir: str | Path = "reviews", popen=subprocess.Popen):
        self.extra_args = list(extra_args or [])
        self.log_dir = Path(log_dir)
        self._popen = popen
        self._children: list = []

    def command(self, user: str) -> list[str]:
        return [sys.executable, "-m", "review.main", "--user", user, *self.extra_args]

    def launch(self, user):
        self._reap()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = time.strftime("%Y%m%d-%H%M%S")
        log_path = self.log_dir / f"{_UNSAFE.sub('_', user)}-{stamp}.log"

        # The child keeps its own copy of the descriptor.
        with open(log_path, "ab") as log:
            child = self._popen(
                self.command(user),
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        self._children.append(child)
        print(f"Review started  user={user}  pid={child.pid}  log={log_path}")

    def running(self) -> int:
        self._reap()
        return len(self._children)

    def _reap(self) -> None:
        self._children = [c for c in self._children if c.poll() is None]
