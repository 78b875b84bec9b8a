"""
Story model and story store.

A story is the unit of record and replay: a start URL/viewport plus an
ordered list of actions. Stories live on disk as YAML:

    .testing/stories/<story-id>/story.yml

    id: login-flow
    name: Login flow
    start:
      url: http://localhost:3000
      resolution: {width: 1280, height: 720}
    actions:
      - type: input
        selector: "#email"
        value: user@example.com
      - type: click
        selector: "button[type=submit]"
      - type: screenshot
        name: 1712345678901-ab12cd.png

Actions form a closed union: one dataclass per action type. Parsing an
unknown ``type`` raises ``ValueError`` instead of silently producing a no-op.
"""

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Union

import yaml

from .constants import STORIES_DIR, STORY_FILE

logger = logging.getLogger(__name__)


class ActionType(Enum):
    """Tags of the recorded action union."""

    CLICK = "click"
    INPUT = "input"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    NAVIGATE = "navigate"
    WAIT_FOR_NAVIGATION = "waitForNavigation"
    SCREENSHOT = "screenshot"


class StoryNotFoundError(FileNotFoundError):
    """Raised when no story.yml exists for a story id."""


@dataclass(frozen=True)
class BaseAction:
    """Common behaviour of all action variants."""

    type: ClassVar[ActionType]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        for f in fields(self):
            data[f.name] = getattr(self, f.name)
        return data


@dataclass(frozen=True)
class ClickAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.CLICK
    selector: str


@dataclass(frozen=True)
class InputAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.INPUT
    selector: str
    value: str


@dataclass(frozen=True)
class SelectAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.SELECT
    selector: str
    value: str


@dataclass(frozen=True)
class CheckAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.CHECK
    selector: str


@dataclass(frozen=True)
class UncheckAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.UNCHECK
    selector: str


@dataclass(frozen=True)
class NavigateAction(BaseAction):
    type: ClassVar[ActionType] = ActionType.NAVIGATE
    url: str


@dataclass(frozen=True)
class WaitForNavigationAction(BaseAction):
    """Wait for a navigation triggered by the previous action (e.g. a redirect)."""

    type: ClassVar[ActionType] = ActionType.WAIT_FOR_NAVIGATION


@dataclass(frozen=True)
class ScreenshotAction(BaseAction):
    """Checkpoint: ``name`` is both the baseline filename and the resolution key."""

    type: ClassVar[ActionType] = ActionType.SCREENSHOT
    name: str


Action = Union[
    ClickAction,
    InputAction,
    SelectAction,
    CheckAction,
    UncheckAction,
    NavigateAction,
    WaitForNavigationAction,
    ScreenshotAction,
]

ACTION_CLASSES = {
    cls.type: cls
    for cls in (
        ClickAction,
        InputAction,
        SelectAction,
        CheckAction,
        UncheckAction,
        NavigateAction,
        WaitForNavigationAction,
        ScreenshotAction,
    )
}


def action_from_dict(data: Dict[str, Any]) -> Action:
    """
    Create an action from its serialized form.

    Args:
        data: Mapping with a ``type`` tag plus the variant's fields

    Returns:
        The matching action dataclass

    Raises:
        ValueError: If the tag is unknown or a required field is missing
    """
    if not isinstance(data, dict):
        raise ValueError(f"Action must be a mapping, got {type(data).__name__}")

    raw_type = data.get("type")
    try:
        action_type = ActionType(raw_type)
    except ValueError:
        raise ValueError(f"Unknown action type: {raw_type!r}") from None

    cls = ACTION_CLASSES[action_type]
    kwargs = {}
    for f in fields(cls):
        if f.name not in data or data[f.name] is None:
            raise ValueError(f"Action '{action_type.value}' is missing required field '{f.name}'")
        kwargs[f.name] = str(data[f.name])
    return cls(**kwargs)


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int


@dataclass(frozen=True)
class StoryStart:
    """Where and how the browser session begins."""

    url: str
    resolution: Optional[Resolution] = None
    pixel_ratio: Optional[float] = None
    device_scale_factor: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoryStart":
        if not isinstance(data, dict) or not data.get("url"):
            raise ValueError("Story start must define a 'url'")

        resolution = None
        raw_resolution = data.get("resolution")
        if raw_resolution:
            if not isinstance(raw_resolution, dict) or "width" not in raw_resolution or "height" not in raw_resolution:
                raise ValueError("Story start resolution needs 'width' and 'height'")
            resolution = Resolution(
                width=int(raw_resolution["width"]),
                height=int(raw_resolution["height"]),
            )

        return cls(
            url=str(data["url"]),
            resolution=resolution,
            pixel_ratio=data.get("pixelRatio"),
            device_scale_factor=data.get("deviceScaleFactor"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url}
        if self.resolution:
            data["resolution"] = {
                "width": self.resolution.width,
                "height": self.resolution.height,
            }
        if self.pixel_ratio is not None:
            data["pixelRatio"] = self.pixel_ratio
        if self.device_scale_factor is not None:
            data["deviceScaleFactor"] = self.device_scale_factor
        return data


@dataclass(frozen=True)
class Story:
    """A named, ordered sequence of recorded actions."""

    id: str
    name: str
    start: StoryStart
    actions: List[Action] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Story":
        """Create a Story from a parsed story.yml mapping."""
        if not isinstance(data, dict):
            raise ValueError("Story file must contain a mapping")
        if not data.get("id"):
            raise ValueError("Story must define an 'id'")

        actions = [action_from_dict(a) for a in (data.get("actions") or [])]

        # Screenshot names are baseline filenames and resolution keys
        seen = set()
        for action in actions:
            if action.type != ActionType.SCREENSHOT:
                continue
            if action.name in seen:
                raise ValueError(f"Duplicate screenshot name in story '{data['id']}': {action.name}")
            seen.add(action.name)

        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            start=StoryStart.from_dict(data.get("start") or {}),
            actions=actions,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start": self.start.to_dict(),
            "actions": [a.to_dict() for a in self.actions],
        }


@dataclass(frozen=True)
class StoryMetadata:
    id: str
    name: str
    path: Path


def story_path(story_id: str) -> Path:
    return STORIES_DIR / story_id / STORY_FILE


def load_story(story_id: str) -> Story:
    """
    Load a story from its story.yml file.

    Raises:
        StoryNotFoundError: If the story file does not exist
        ValueError: If the file is not a valid story
    """
    path = story_path(story_id)
    if not path.exists():
        raise StoryNotFoundError(f"Story '{story_id}' not found at {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    story = Story.from_dict(data)
    logger.debug("Loaded story '%s' with %d actions", story.id, len(story.actions))
    return story


def save_story(story: Story) -> Path:
    """Write a story back to its story.yml, creating the directory if needed."""
    path = story_path(story.id)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(story.to_dict(), f, default_flow_style=False, sort_keys=False)
    return path


def append_actions(story_id: str, actions: List[Action]) -> Story:
    """Append actions to an existing story, preserving id, name and start."""
    story = load_story(story_id)
    data = story.to_dict()
    data["actions"] += [a.to_dict() for a in actions]
    # Re-parse so appended checkpoints are validated like loaded ones
    updated = Story.from_dict(data)
    save_story(updated)
    return updated


def list_stories() -> List[StoryMetadata]:
    """List every readable story in the store, sorted by directory name."""
    if not STORIES_DIR.is_dir():
        return []

    stories = []
    for entry in sorted(STORIES_DIR.iterdir()):
        story_file = entry / STORY_FILE
        if not entry.is_dir() or not story_file.exists():
            continue
        try:
            with open(story_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            stories.append(
                StoryMetadata(
                    id=str(data["id"]),
                    name=str(data.get("name") or data["id"]),
                    path=entry,
                )
            )
        except (OSError, yaml.YAMLError, KeyError, TypeError) as e:
            logger.warning("Skipping unreadable story in %s: %s", entry, e)

    return stories
