"""
Resolution of screenshot mismatches.

For every mismatch the resolver decides between keeping the accepted
baseline (KEEP_OLD, the checkpoint fails) and adopting the new capture
(KEEP_NEW, the baseline file is overwritten and the checkpoint passes).

Two modes:
- CI (unattended): always KEEP_OLD. Baselines are never updated without a
  human, so regressions stay visible.
- Interactive: a diff viewer (VS Code ``code --diff`` by default) is opened
  on the pair, and the user is asked to choose. The question is bounded by a
  timeout; running out of time counts as KEEP_OLD and is logged as such.

Mismatches are processed one at a time, in order.
"""

import contextlib
import logging
import queue
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..constants import DEFAULT_RESOLUTION_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_VIEWER_COMMAND = ("code", "--diff")


class ResolutionChoice(Enum):
    KEEP_OLD = "KEEP_OLD"
    KEEP_NEW = "KEEP_NEW"


@dataclass(frozen=True)
class ScreenshotMismatch:
    """A failed checkpoint waiting for resolution."""

    name: str
    old_path: str  # baseline
    new_path: str  # candidate


@dataclass(frozen=True)
class ResolutionResult:
    name: str
    choice: ResolutionChoice
    updated: bool
    timed_out: bool = False

    @property
    def accepted(self) -> bool:
        return self.choice == ResolutionChoice.KEEP_NEW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "choice": self.choice.value,
            "updated": self.updated,
            "timed_out": self.timed_out,
        }


@dataclass(frozen=True)
class PromptOutcome:
    """Result of a bounded wait for a user decision: a choice, or a timeout."""

    choice: Optional[ResolutionChoice] = None

    @property
    def timed_out(self) -> bool:
        return self.choice is None

    @classmethod
    def decided(cls, choice: ResolutionChoice) -> "PromptOutcome":
        return cls(choice=choice)

    @classmethod
    def timeout(cls) -> "PromptOutcome":
        return cls(choice=None)


Prompt = Callable[[ScreenshotMismatch, float], PromptOutcome]

PROMPT_TEXT = """
Resolve screenshot mismatch: {name}
  baseline:  {old_path}
  candidate: {new_path}

  [o] Keep old screenshot (fail test)
  [n] Accept new screenshot (update baseline)
"""

CHOICE_KEYS = {
    "o": ResolutionChoice.KEEP_OLD,
    "old": ResolutionChoice.KEEP_OLD,
    "n": ResolutionChoice.KEEP_NEW,
    "new": ResolutionChoice.KEEP_NEW,
}


class LineReader:
    """
    Reads a line source on one daemon thread for the life of the process.

    Lines land in a shared queue and are consumed by whichever prompt is
    waiting. A prompt that times out leaves nothing behind, so the next
    prompt receives the next line typed. ``None`` in the queue marks end of
    input and is put back so every later prompt sees it too.
    """

    def __init__(self, read_line: Callable[[str], str]):
        self.lines: "queue.Queue[Optional[str]]" = queue.Queue()
        self._thread = threading.Thread(
            target=self._run, args=(read_line,), name="mismatch-prompt", daemon=True
        )
        self._thread.start()

    def _run(self, read_line: Callable[[str], str]):
        while True:
            try:
                line = read_line("")
            except EOFError:
                self.lines.put(None)
                return
            self.lines.put(line)


_readers: Dict[Callable[[str], str], LineReader] = {}
_readers_lock = threading.Lock()


def line_reader(read_line: Callable[[str], str]) -> LineReader:
    """The single LineReader for a line source, started on first use."""
    with _readers_lock:
        reader = _readers.get(read_line)
        if reader is None:
            reader = _readers[read_line] = LineReader(read_line)
        return reader


def prompt_user_choice(
    mismatch: ScreenshotMismatch,
    timeout: float,
    read_line: Callable[[str], str] = input,
) -> PromptOutcome:
    """
    Ask on the terminal which screenshot to keep, waiting at most ``timeout`` seconds.

    The terminal is read by the process-wide LineReader for ``read_line``, so
    the wait can be bounded without losing answers to an earlier, timed-out
    prompt. Unrecognized answers are asked again within the same deadline.
    """
    print(PROMPT_TEXT.format(name=mismatch.name, old_path=mismatch.old_path, new_path=mismatch.new_path))
    reader = line_reader(read_line)
    deadline = time.monotonic() + timeout

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return PromptOutcome.timeout()

        print("Choice [o/n]: ", end="", flush=True)
        try:
            line = reader.lines.get(timeout=remaining)
        except queue.Empty:
            return PromptOutcome.timeout()

        if line is None:
            # stdin closed: nobody can answer, now or later
            reader.lines.put(None)
            return PromptOutcome.timeout()

        choice = CHOICE_KEYS.get(line.strip().lower())
        if choice:
            return PromptOutcome.decided(choice)
        print("Please answer 'o' (keep old) or 'n' (accept new).")


@contextlib.contextmanager
def diff_viewer(
    old_path: str,
    new_path: str,
    command: Sequence[str] = DEFAULT_VIEWER_COMMAND,
) -> Iterator[Optional[subprocess.Popen]]:
    """
    Open an external diff viewer for the duration of the block.

    Opening is best-effort: if the viewer is missing the block still runs
    with ``None``. Whatever was started is terminated on exit, whatever the
    exit path, and termination errors are ignored.
    """
    process = None
    try:
        process = subprocess.Popen(
            [*command, old_path, new_path],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, ValueError) as e:
        logger.warning("Could not open diff viewer (%s). Continuing with prompt...", e)

    try:
        yield process
    finally:
        if process is not None:
            try:
                process.terminate()
                process.wait(timeout=5)
            except Exception as e:
                logger.debug("Ignoring error while closing diff viewer: %s", e)


def _resolve_single(
    mismatch: ScreenshotMismatch,
    timeout: float,
    prompt: Prompt,
    viewer_command: Sequence[str],
) -> ResolutionResult:
    with diff_viewer(mismatch.old_path, mismatch.new_path, viewer_command):
        outcome = prompt(mismatch, timeout)

    if outcome.timed_out:
        logger.warning(
            "Timeout reached for %s after %gs. Defaulting to KEEP_OLD (fail test).",
            mismatch.name,
            timeout,
        )
        return ResolutionResult(
            name=mismatch.name,
            choice=ResolutionChoice.KEEP_OLD,
            updated=False,
            timed_out=True,
        )

    if outcome.choice == ResolutionChoice.KEEP_NEW:
        baseline = Path(mismatch.old_path)
        try:
            baseline.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(mismatch.new_path, baseline)
        except OSError as e:
            logger.error("Could not update baseline for %s, keeping old screenshot: %s", mismatch.name, e)
            return ResolutionResult(name=mismatch.name, choice=ResolutionChoice.KEEP_OLD, updated=False)
        logger.info("Accepted new screenshot for %s, baseline updated", mismatch.name)
        return ResolutionResult(name=mismatch.name, choice=ResolutionChoice.KEEP_NEW, updated=True)

    logger.info("Kept old screenshot for %s", mismatch.name)
    return ResolutionResult(name=mismatch.name, choice=ResolutionChoice.KEEP_OLD, updated=False)


def resolve_screenshots(
    mismatches: List[ScreenshotMismatch],
    ci_mode: bool = False,
    timeout: float = DEFAULT_RESOLUTION_TIMEOUT,
    prompt: Optional[Prompt] = None,
    viewer_command: Sequence[str] = DEFAULT_VIEWER_COMMAND,
) -> List[ResolutionResult]:
    """
    Resolve screenshot mismatches sequentially, in input order.

    Args:
        mismatches: Failed checkpoints to resolve
        ci_mode: Unattended: keep every baseline, ask nothing, open nothing
        timeout: Seconds to wait for each interactive decision (default 300)
        prompt: Decision source (default: terminal prompt)
        viewer_command: Diff viewer command; the two paths are appended

    Returns:
        One ResolutionResult per mismatch, same order

    Example:
        results = resolve_screenshots([
            ScreenshotMismatch(
                name="1712345678901-ab12cd.png",
                old_path=".testing/screenshots/login/1712345678901-ab12cd.png",
                new_path=".testing/temp/login/1712345678901-ab12cd.png",
            )
        ])
    """
    if ci_mode:
        for mismatch in mismatches:
            logger.info("CI mode: keeping baseline for %s", mismatch.name)
        return [
            ResolutionResult(name=m.name, choice=ResolutionChoice.KEEP_OLD, updated=False)
            for m in mismatches
        ]

    prompt = prompt or prompt_user_choice
    results = []
    for mismatch in mismatches:
        results.append(_resolve_single(mismatch, timeout, prompt, viewer_command))
    return results
