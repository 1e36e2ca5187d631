"""Spinner shown while waiting on a background delivery."""

from __future__ import annotations

import itertools
import sys
import time
from concurrent.futures import Future, wait
from typing import TextIO

from colorama import Fore, Style


SPINNER_FRAMES = ("|", "/", "-", "\\")


def wait_with_animation(
    future: Future,
    description: str = "Sending telemetry",
    stream: TextIO | None = None,
    interval: float = 0.1,
) -> None:
    """
    Block until `future` completes, animating a spinner on `stream`.

    The spinner is only drawn when the stream is a terminal; otherwise
    this is a plain blocking wait. The line is cleared afterwards.
    """
    out = stream if stream is not None else sys.stderr
    if not _is_terminal(out):
        wait([future])
        return

    start = time.monotonic()
    line = ""
    for frame in itertools.cycle(SPINNER_FRAMES):
        done, _ = wait([future], timeout=interval)
        if done:
            break
        elapsed = time.monotonic() - start
        line = f"{Fore.CYAN}{frame}{Style.RESET_ALL} {description} ({elapsed:.0f}s)"
        out.write("\r" + line)
        out.flush()

    if line:
        out.write("\r" + " " * len(line) + "\r")
        out.flush()


def _is_terminal(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())
