"""
impulse-testing - No-code E2E Testing for Web Applications

Stories are recorded browser interactions (clicks, inputs, navigations,
screenshot checkpoints) stored as YAML. This package replays them:

1. Start the application under test from .testing/config.yml
2. Launch headless Chromium at the story's start URL and viewport
3. Execute each action, recording pass/fail with diagnostics
4. Compare each checkpoint with its baseline pixel by pixel
5. Resolve mismatches: unattended (keep baseline) or by asking a human
6. Close the browser, stop the application, report the verdict

Quick Start:
    ```python
    from impulse_testing import RunStoryOptions, run_story

    result = run_story("login-flow", RunStoryOptions(ci_mode=True))
    print("passed" if result.success else "failed")
    for action_result in result.failed_actions:
        print(action_result.index, action_result.action)
    ```

Several stories with a report:
    ```python
    from impulse_testing import RunReport, run_stories

    results = run_stories(["login-flow", "checkout"])
    report = RunReport(results)
    print(report.summary())
    report.save("impulse-report.html")
    ```

Writing stories programmatically:
    ```python
    from impulse_testing import (
        ClickAction, InputAction, ScreenshotAction, Story, StoryStart, save_story,
    )

    save_story(Story(
        id="login-flow",
        name="Login flow",
        start=StoryStart(url="http://localhost:3000/login"),
        actions=[
            InputAction(selector="#email", value="user@example.com"),
            ClickAction(selector="button[type=submit]"),
            ScreenshotAction(name="dashboard.png"),
        ],
    ))
    ```
"""

from .config import (
    Config,
    ConfigError,
    LifecycleCommand,
    load_config,
)
from .lifecycle import (
    CommandError,
    start_app,
    stop_app,
    wait_for_url,
)
from .report import (
    RunReport,
    format_action,
)
from .runner import (
    ActionExecutionError,
    ActionResult,
    ComparisonResult,
    ErrorResult,
    ExecutionResult,
    ResolutionChoice,
    ResolutionResult,
    RunStoryOptions,
    ScreenshotMismatch,
    StoryRunner,
    compare_screenshot,
    execute_action,
    resolve_screenshots,
    run_stories,
    run_story,
)
from .story import (
    Action,
    ActionType,
    CheckAction,
    ClickAction,
    InputAction,
    NavigateAction,
    ScreenshotAction,
    SelectAction,
    Story,
    StoryNotFoundError,
    StoryStart,
    UncheckAction,
    WaitForNavigationAction,
    list_stories,
    load_story,
    save_story,
)

__version__ = "0.1.0"
__author__ = "impulse-testing Contributors"
__license__ = "MIT"

__all__ = [
    # Running
    "run_story",
    "run_stories",
    "RunStoryOptions",
    "StoryRunner",
    "ExecutionResult",
    "ActionResult",
    "ErrorResult",
    # Stories
    "Story",
    "StoryStart",
    "Action",
    "ActionType",
    "ClickAction",
    "InputAction",
    "SelectAction",
    "CheckAction",
    "UncheckAction",
    "NavigateAction",
    "WaitForNavigationAction",
    "ScreenshotAction",
    "StoryNotFoundError",
    "load_story",
    "save_story",
    "list_stories",
    # Actions and screenshots
    "execute_action",
    "ActionExecutionError",
    "compare_screenshot",
    "ComparisonResult",
    "resolve_screenshots",
    "ScreenshotMismatch",
    "ResolutionChoice",
    "ResolutionResult",
    # Configuration and lifecycle
    "Config",
    "ConfigError",
    "LifecycleCommand",
    "load_config",
    "start_app",
    "stop_app",
    "wait_for_url",
    "CommandError",
    # Reporting
    "RunReport",
    "format_action",
]
