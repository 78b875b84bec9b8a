"""
Story execution: replays a recorded story and produces a verdict.

A run moves through these states:

    INIT -> STARTING_APP -> LAUNCHING_BROWSER -> EXECUTING_ACTIONS
         -> RESOLVING_MISMATCHES -> FINALIZING -> DONE

Any state may jump to FINALIZING on an unrecoverable error. FINALIZING
always runs: the browser is closed first, then the application is stopped.
Errors while finalizing are logged and never change the result.

Failures come in two kinds:
- Action failures are expected. They are recorded on the ActionResult (with
  a diagnostic screenshot) and the remaining actions still run, so one broken
  step does not hide the status of later ones.
- Global failures (config/story cannot be loaded, app or browser cannot be
  started) abort the run and are reported as ExecutionResult.error.

Usage:
    result = run_story("login-flow", RunStoryOptions(ci_mode=True))
    if not result.success:
        for r in result.action_results:
            if not r.passed:
                print(r.index, r.error.message if r.error else "screenshot mismatch")
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..config import Config, load_config
from ..constants import DEFAULT_DIFF_THRESHOLD, DEFAULT_RESOLUTION_TIMEOUT
from ..lifecycle import start_app, stop_app
from ..story import Action, ActionType, load_story
from .browser import launch_browser
from .comparator import ComparisonResult, baseline_path, compare_screenshot
from .error_handler import ErrorResult, capture_error_screenshot
from .executor import ActionExecutionError, execute_action
from .resolver import (
    Prompt,
    ResolutionChoice,
    ResolutionResult,
    ScreenshotMismatch,
    resolve_screenshots,
)

logger = logging.getLogger(__name__)


class RunState(Enum):
    INIT = "init"
    STARTING_APP = "starting_app"
    LAUNCHING_BROWSER = "launching_browser"
    EXECUTING_ACTIONS = "executing_actions"
    RESOLVING_MISMATCHES = "resolving_mismatches"
    FINALIZING = "finalizing"
    DONE = "done"


@dataclass
class ActionResult:
    """Outcome of one action; produced once per attempted action, in order."""

    index: int
    action: Action
    passed: bool
    error: Optional[ErrorResult] = None
    comparison_result: Optional[ComparisonResult] = None  # screenshot actions only

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action.to_dict(),
            "passed": self.passed,
            "error": self.error.to_dict() if self.error else None,
            "comparison_result": self.comparison_result.to_dict() if self.comparison_result else None,
        }


def action_passes(result: ActionResult, resolutions: List[ResolutionResult]) -> bool:
    """
    Final status of an action once mismatches are resolved.

    A screenshot passes if it matched on first comparison or its mismatch was
    resolved KEEP_NEW; any other action passes iff it executed.
    """
    if result.passed:
        return True
    if result.action.type != ActionType.SCREENSHOT:
        return False
    return any(
        r.name == result.action.name and r.choice == ResolutionChoice.KEEP_NEW
        for r in resolutions
    )


@dataclass
class ExecutionResult:
    """Complete result of a story execution. ``success`` is always derived."""

    story_id: str
    action_results: List[ActionResult] = field(default_factory=list)
    screenshot_resolutions: List[ResolutionResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        if self.error is not None:
            return False
        return all(action_passes(r, self.screenshot_resolutions) for r in self.action_results)

    @property
    def failed_actions(self) -> List[ActionResult]:
        return [r for r in self.action_results if not action_passes(r, self.screenshot_resolutions)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "story_id": self.story_id,
            "success": self.success,
            "action_results": [r.to_dict() for r in self.action_results],
            "screenshot_resolutions": [r.to_dict() for r in self.screenshot_resolutions],
            "error": self.error,
        }


@dataclass
class RunStoryOptions:
    """
    Options for running a story.

    Attributes:
        ci_mode: Unattended; screenshot mismatches fail without prompting
        on_action_complete: Called with each ActionResult as soon as it is known
        diff_threshold: Tolerated differing pixels in percent (default: config, then 0.1)
        resolution_timeout: Seconds to wait for each interactive decision
        prompt: Decision source for interactive resolution (default: terminal)
        headless: Run the browser without a window
    """

    ci_mode: bool = False
    on_action_complete: Optional[Callable[[ActionResult], None]] = None
    diff_threshold: Optional[float] = None
    resolution_timeout: float = DEFAULT_RESOLUTION_TIMEOUT
    prompt: Optional[Prompt] = None
    headless: bool = True


class StoryRunner:
    """
    Orchestrates one story run and owns its browser session and app lifecycle.

    Collaborators are injectable so the state machine can be driven without a
    real browser or application:

        runner = StoryRunner(launch_browser=fake_launch, start_app=fake_start)
        result = runner.run("checkout")
    """

    def __init__(
        self,
        load_config: Callable[[], Config] = load_config,
        load_story: Callable = load_story,
        start_app: Callable = start_app,
        stop_app: Callable = stop_app,
        launch_browser: Callable = launch_browser,
        execute_action: Callable = execute_action,
        compare_screenshot: Callable = compare_screenshot,
        resolve_screenshots: Callable = resolve_screenshots,
        capture_error: Callable = capture_error_screenshot,
    ):
        self._load_config = load_config
        self._load_story = load_story
        self._start_app = start_app
        self._stop_app = stop_app
        self._launch_browser = launch_browser
        self._execute_action = execute_action
        self._compare_screenshot = compare_screenshot
        self._resolve_screenshots = resolve_screenshots
        self._capture_error = capture_error
        self.state = RunState.INIT

    def _enter(self, state: RunState):
        logger.debug("Run state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _run_action(self, page, action: Action, index: int) -> ActionResult:
        try:
            self._execute_action(page, action)
            return ActionResult(index=index, action=action, passed=True)
        except Exception as e:
            cause = e.cause if isinstance(e, ActionExecutionError) else str(e)
            logger.info("Action %d (%s) failed: %s", index, action.type.value, cause)
            error = self._capture_error(
                page,
                action_type=action.type.value,
                message=str(e),
                selector=getattr(action, "selector", None),
                url=getattr(action, "url", None),
                value=getattr(action, "value", None),
            )
            return ActionResult(index=index, action=action, passed=False, error=error)

    def _run_screenshot(self, page, action: Action, story_id: str, index: int, diff_threshold: float) -> ActionResult:
        try:
            comparison = self._compare_screenshot(page, story_id, action.name, diff_threshold)
        except Exception as e:
            logger.info("Checkpoint %s could not be compared: %s", action.name, e)
            error = self._capture_error(page, action_type=action.type.value, message=str(e))
            return ActionResult(index=index, action=action, passed=False, error=error)

        return ActionResult(
            index=index,
            action=action,
            passed=comparison.matches,
            comparison_result=comparison,
        )

    def run(self, story_id: str, options: Optional[RunStoryOptions] = None) -> ExecutionResult:
        """
        Run a complete story.

        Args:
            story_id: Story to execute
            options: Run options (CI mode, progress callback, threshold)

        Returns:
            ExecutionResult; never raises for story, app, browser or action failures
        """
        options = options or RunStoryOptions()
        self.state = RunState.INIT
        result = ExecutionResult(story_id=story_id)
        mismatches: List[ScreenshotMismatch] = []
        config: Optional[Config] = None
        session = None
        cleanup = None

        try:
            config = self._load_config()
            story = self._load_story(story_id)

            self._enter(RunState.STARTING_APP)
            cleanup = self._start_app(config, story.start.url)

            self._enter(RunState.LAUNCHING_BROWSER)
            session = self._launch_browser(story, headless=options.headless)
            page = session.page

            diff_threshold = options.diff_threshold
            if diff_threshold is None:
                diff_threshold = config.diff_threshold
            if diff_threshold is None:
                diff_threshold = DEFAULT_DIFF_THRESHOLD

            self._enter(RunState.EXECUTING_ACTIONS)
            for index, action in enumerate(story.actions):
                if action.type == ActionType.SCREENSHOT:
                    action_result = self._run_screenshot(page, action, story_id, index, diff_threshold)
                    comparison = action_result.comparison_result
                    if comparison and not comparison.matches and comparison.new_screenshot_path:
                        mismatches.append(
                            ScreenshotMismatch(
                                name=action.name,
                                old_path=str(baseline_path(story_id, action.name)),
                                new_path=comparison.new_screenshot_path,
                            )
                        )
                else:
                    action_result = self._run_action(page, action, index)

                result.action_results.append(action_result)
                if options.on_action_complete:
                    options.on_action_complete(action_result)

            if mismatches:
                self._enter(RunState.RESOLVING_MISMATCHES)
                result.screenshot_resolutions = self._resolve_screenshots(
                    mismatches,
                    ci_mode=options.ci_mode,
                    timeout=options.resolution_timeout,
                    prompt=options.prompt,
                )
        except Exception as e:
            logger.error("Story '%s' aborted during %s: %s", story_id, self.state.value, e)
            result.error = str(e)
        finally:
            self._enter(RunState.FINALIZING)
            self._finalize(session, cleanup, config)
            self._enter(RunState.DONE)

        logger.info("Story '%s' %s", story_id, "passed" if result.success else "failed")
        return result

    def _finalize(self, session, cleanup, config: Optional[Config]):
        # Browser first, then the application under test
        if session is not None:
            try:
                session.close()
            except Exception:
                logger.exception("Failed to close browser")

        if cleanup is not None:
            try:
                self._stop_app(cleanup, config)
            except Exception:
                logger.exception("Failed to stop application")


def run_story(story_id: str, options: Optional[RunStoryOptions] = None) -> ExecutionResult:
    """Run a single story with the default collaborators."""
    return StoryRunner().run(story_id, options)


def run_stories(
    story_ids: List[str],
    options: Optional[RunStoryOptions] = None,
    runner: Optional[StoryRunner] = None,
    on_story_start: Optional[Callable[[str], None]] = None,
) -> List[ExecutionResult]:
    """
    Run several stories strictly one after another.

    Stories share the single application instance and browser slot, so they
    never run concurrently. An unexpected exception for one story becomes a
    failed result and the next story still runs.
    """
    runner = runner or StoryRunner()
    results = []
    for story_id in story_ids:
        if on_story_start:
            on_story_start(story_id)
        try:
            results.append(runner.run(story_id, options))
        except Exception as e:
            logger.exception("Unexpected error running story '%s'", story_id)
            results.append(ExecutionResult(story_id=story_id, error=f"Unexpected error: {e}"))
    return results
