#!/usr/bin/env python3
import itertools
import logging
import sys
import threading

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05
BAR_WIDTH = 50
SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

HOME = "\x1b[H"
CLEAR = "\x1b[2J"
HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"


class ProgressReporter:
    """
    Polls a snapshot source on a background thread and hands each snapshot to
    a render callback.

    The loop ends when stop() raises the completion signal or when a snapshot
    shows the target reached. stop() then renders once more from the calling
    thread, so the last view always reflects the joined counters.
    """

    def __init__(self, source, render, interval=POLL_INTERVAL):
        self.source = source
        self.render = render
        self.interval = interval
        self._finished = threading.Event()
        self._thread = threading.Thread(target=self._poll, name="pi-progress", daemon=True)

    def _draw(self):
        snapshot = self.source()
        try:
            self.render(snapshot)
        except Exception:
            logger.exception("Progress render failed")
        return snapshot

    def _poll(self):
        while not self._finished.is_set():
            if self._draw().done:
                break
            self._finished.wait(self.interval)

    def start(self):
        self._thread.start()
        return self

    def stop(self):
        self._finished.set()
        if self._thread.ident is not None:
            self._thread.join()
        return self._draw()

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.stop()


def render_bar(percent, width=BAR_WIDTH):
    percent = max(0.0, min(percent, 100.0))
    filled = int(percent / 100.0 * width)
    return f"[{'█' * filled}{'░' * (width - filled)}] {percent:.1f}%"


class TerminalView:
    # Redraws per-worker bars in place; each worker's bar is measured against an even share of the target
    def __init__(self, stream=None):
        self.stream = sys.stdout if stream is None else stream
        self.spinner = itertools.cycle(SPINNER_FRAMES)

    def __enter__(self):
        self.stream.write(HIDE_CURSOR + CLEAR)
        self.stream.flush()
        return self

    def __exit__(self, *exc):
        self.stream.write(SHOW_CURSOR)
        self.stream.flush()

    def lines(self, snapshot):
        share = snapshot.target / max(len(snapshot.per_worker), 1)
        lines = [f"Computing... {next(self.spinner)}", "", "Workers:", ""]
        for i, done in enumerate(snapshot.per_worker):
            percent = done / share * 100.0 if share else 100.0
            lines.append(f"[Worker {i}]: {render_bar(percent)}")
        lines.append("")
        lines.append(f"[Total]: {render_bar(snapshot.percent)}")
        return lines

    def render(self, snapshot):
        self.stream.write(HOME + "\n".join(self.lines(snapshot)) + "\n")
        self.stream.flush()

    __call__ = render
