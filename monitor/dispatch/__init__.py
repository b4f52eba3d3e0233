# Dispatch turns a cycle's new sign-ins into side effects.
#
# The engine calls Dispatcher.notify(users, events) once per cycle that has
# at least one new event.  AlertDispatcher prints a single alert banner for
# the cycle and launches one investigation per distinct user through a
# Launcher.  Launches are fire-and-forget and get nothing but the user
# identity string; a launcher never touches monitor state.

import sys
from datetime import datetime, timezone

from monitor import metrics


class Dispatcher:
    """Base dispatcher.  Subclass and implement notify()."""

    def notify(self, users: set[str], events: list) -> None:
        raise NotImplementedError


class Launcher:
    """Starts one independent investigation for one user."""

    name: str

    def launch(self, user: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release resources at shutdown.  Default: nothing to release."""


class AlertDispatcher(Dispatcher):

    def __init__(self, launcher: Launcher | None = None, out=None, bell: bool = False):
        self.launcher = launcher
        self._out = out
        self._bell = bell
        self.launched = 0
        self.failed = 0

    def notify(self, users, events):
        """One banner per cycle, then one launch per user.

        A failed launch is reported and counted; the remaining users still
        get theirs.
        """
        self._announce(users, events)
        if self.launcher is None:
            return

        for user in sorted(users):
            try:
                self.launcher.launch(user)
            except Exception as e:
                self.failed += 1
                metrics.investigations_total.labels(outcome="failed").inc()
                print(f"Investigation launch failed  user={user}  "
                      f"launcher={self.launcher.name}  error={e}", file=sys.stderr)
            else:
                self.launched += 1
                metrics.investigations_total.labels(outcome="launched").inc()

    def _announce(self, users, events):
        out = self._out or sys.stdout
        now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        failed = sum(1 for e in events if e.failure_reason)
        bell = "\a" if self._bell else ""
        print(f"{bell}ALERT  {now}Z  new_sign_ins={len(events)}  "
              f"failed={failed}  users={len(users)}: {', '.join(sorted(users))}",
              file=out)
