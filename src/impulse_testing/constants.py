"""
Workspace layout for impulse-testing.

All paths are relative to the current working directory, which is expected to
be the root of the project under test:

    .testing/
    ├── config.yml                    # Lifecycle commands, thresholds
    ├── stories/
    │   └── <story-id>/story.yml      # Recorded story
    ├── screenshots/
    │   └── <story-id>/<name>         # Accepted baselines
    └── temp/                         # Candidates and failure captures
"""

from pathlib import Path

TESTING_DIR = Path(".testing")
CONFIG_FILE = TESTING_DIR / "config.yml"
STORIES_DIR = TESTING_DIR / "stories"
STORY_FILE = "story.yml"
SCREENSHOTS_DIR = TESTING_DIR / "screenshots"
TEMP_DIR = TESTING_DIR / "temp"

# Element injected by the recorder; hidden while capturing checkpoints
OVERLAY_ELEMENT_ID = "__impulse-testing__ui"

DEFAULT_ACTION_TIMEOUT_MS = 30000
DEFAULT_DIFF_THRESHOLD = 0.1  # percent
DEFAULT_RESOLUTION_TIMEOUT = 300.0  # seconds

# Written after each run when config output.text is on
TEXT_REPORT_FILE = TESTING_DIR / "report.txt"
