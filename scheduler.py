"""
Timers and background work for the single UI thread.

Everything the core does happens on one logical thread. Timers go through a
scheduler (`call_later` / `cancel`, delays in milliseconds); blocking work
(HTTP calls) goes through a runner whose callbacks always come back on that
same thread.
"""

import logging
import threading

logger = logging.getLogger("sparkle_matrix.scheduler")


class TkScheduler:
    """Scheduler backed by the Tk event loop (root.after)."""

    def __init__(self, root):
        self.root = root

    def call_later(self, delay_ms, callback):
        return self.root.after(max(0, int(round(delay_ms))), callback)

    def cancel(self, handle):
        if handle is not None:
            self.root.after_cancel(handle)


class ImmediateRunner:
    """Runs work inline. Used headless and in tests."""

    def submit(self, work, on_done, on_error):
        try:
            result = work()
        except Exception as e:
            on_error(e)
            return
        on_done(result)


class ThreadedRunner:
    """
    Runs work on a daemon thread and hands the outcome back to the Tk loop.

    The animation keeps ticking while a request is pending because only the
    worker thread blocks.
    """

    def __init__(self, root):
        self.root = root

    def submit(self, work, on_done, on_error):
        def _worker():
            try:
                result = work()
            except Exception as e:
                self.root.after(0, lambda error=e: on_error(error))
                return
            self.root.after(0, lambda: on_done(result))

        thread = threading.Thread(target=_worker, daemon=True)
        thread.start()
