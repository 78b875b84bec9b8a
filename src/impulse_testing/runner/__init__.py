"""
Story replay and verification.

Components, leaves first:
    - executor: replays one recorded action on the page
    - comparator: compares a checkpoint with its baseline (pixelmatch)
    - resolver: decides KEEP_OLD / KEEP_NEW for each mismatch
    - story_runner: the run state machine that ties them together

Example:
    ```python
    from impulse_testing.runner import RunStoryOptions, run_story

    result = run_story(
        "login-flow",
        RunStoryOptions(ci_mode=True, on_action_complete=print),
    )
    assert result.success, result.error
    ```
"""

from .browser import BrowserSession, launch_browser
from .comparator import (
    PIXEL_THRESHOLD,
    ComparisonResult,
    compare_images,
    compare_screenshot,
)
from .error_handler import ErrorResult, capture_error_screenshot
from .executor import ActionExecutionError, execute_action
from .resolver import (
    PromptOutcome,
    ResolutionChoice,
    ResolutionResult,
    ScreenshotMismatch,
    diff_viewer,
    prompt_user_choice,
    resolve_screenshots,
)
from .story_runner import (
    ActionResult,
    ExecutionResult,
    RunState,
    RunStoryOptions,
    StoryRunner,
    run_stories,
    run_story,
)

__all__ = [
    # Orchestration
    "StoryRunner",
    "RunStoryOptions",
    "RunState",
    "ActionResult",
    "ExecutionResult",
    "run_story",
    "run_stories",
    # Browser
    "BrowserSession",
    "launch_browser",
    # Actions
    "execute_action",
    "ActionExecutionError",
    "ErrorResult",
    "capture_error_screenshot",
    # Screenshots
    "compare_screenshot",
    "compare_images",
    "ComparisonResult",
    "PIXEL_THRESHOLD",
    # Resolution
    "resolve_screenshots",
    "prompt_user_choice",
    "diff_viewer",
    "ScreenshotMismatch",
    "ResolutionChoice",
    "ResolutionResult",
    "PromptOutcome",
]
