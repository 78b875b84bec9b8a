"""
Screenshot comparison against accepted baselines.

The viewport is captured and compared pixel-by-pixel with pixelmatch against
``.testing/screenshots/<story-id>/<name>``. Two independent knobs:

- PIXEL_THRESHOLD: per-pixel color sensitivity inside pixelmatch (fixed).
  Anti-aliased pixels are detected and not counted.
- diff_threshold: percentage of differing pixels tolerated for a match
  (configurable per run, default 0.1%).

A missing baseline is a full mismatch. The capture is written to
``.testing/temp/<story-id>/<name>`` and waits for an explicit decision;
it is never adopted as a baseline automatically.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from pixelmatch.contrib.PIL import pixelmatch

from ..constants import (
    DEFAULT_DIFF_THRESHOLD,
    OVERLAY_ELEMENT_ID,
    SCREENSHOTS_DIR,
    TEMP_DIR,
)

logger = logging.getLogger(__name__)

PIXEL_THRESHOLD = 0.1

HIDE_OVERLAY_SCRIPT = f"""
() => {{
    const ui = document.getElementById("{OVERLAY_ELEMENT_ID}");
    if (ui) ui.style.display = "none";
}}
"""

SHOW_OVERLAY_SCRIPT = f"""
() => {{
    const ui = document.getElementById("{OVERLAY_ELEMENT_ID}");
    if (ui) ui.style.display = "";
}}
"""


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing a checkpoint with its baseline."""

    matches: bool
    diff_percentage: float
    new_screenshot_path: Optional[str] = None  # Set iff matches is False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": self.matches,
            "diff_percentage": self.diff_percentage,
            "new_screenshot_path": self.new_screenshot_path,
        }


def baseline_path(story_id: str, screenshot_name: str) -> Path:
    return SCREENSHOTS_DIR / story_id / screenshot_name


def candidate_path(story_id: str, screenshot_name: str) -> Path:
    return TEMP_DIR / story_id / screenshot_name


def take_viewport_screenshot(page) -> bytes:
    """Capture the viewport (not the full page) with the recorder overlay hidden."""
    page.evaluate(HIDE_OVERLAY_SCRIPT)
    try:
        return page.screenshot(full_page=False, type="png")
    finally:
        page.evaluate(SHOW_OVERLAY_SCRIPT)


def pad_to_same_size(img1: Image.Image, img2: Image.Image) -> Tuple[Image.Image, Image.Image]:
    """
    Pad both images with transparent pixels to the larger width and height.

    Incidental size drift (a scrollbar appearing, a taller document) then
    shows up as a partial difference rather than an outright failure.
    """
    img1 = img1.convert("RGBA")
    img2 = img2.convert("RGBA")
    if img1.size == img2.size:
        return img1, img2

    width = max(img1.width, img2.width)
    height = max(img1.height, img2.height)

    padded1 = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    padded1.paste(img1, (0, 0))
    padded2 = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    padded2.paste(img2, (0, 0))
    return padded1, padded2


def compare_images(baseline: Image.Image, candidate: Image.Image) -> float:
    """
    Percentage (0-100) of pixels that differ between two images.

    Deterministic: the same pair always yields the same value.
    """
    baseline, candidate = pad_to_same_size(baseline, candidate)
    total_pixels = baseline.width * baseline.height
    if total_pixels == 0:
        return 0.0

    diff_pixels = pixelmatch(baseline, candidate, threshold=PIXEL_THRESHOLD)
    return diff_pixels / total_pixels * 100


def _save_candidate(story_id: str, screenshot_name: str, data: bytes) -> str:
    path = candidate_path(story_id, screenshot_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return str(path)


def _load_baseline(path: Path) -> Optional[Image.Image]:
    try:
        with Image.open(path) as img:
            return img.convert("RGBA")
    except FileNotFoundError:
        return None
    except (OSError, UnidentifiedImageError) as e:
        logger.warning("Baseline %s is unreadable, treating as missing: %s", path, e)
        return None


def compare_screenshot(
    page,
    story_id: str,
    screenshot_name: str,
    diff_threshold: float = DEFAULT_DIFF_THRESHOLD,
) -> ComparisonResult:
    """
    Capture the viewport and compare it with the checkpoint's baseline.

    Args:
        page: Playwright page
        story_id: Story the checkpoint belongs to
        screenshot_name: Checkpoint name (baseline filename)
        diff_threshold: Tolerated percentage of differing pixels; equal counts as a match

    Returns:
        ComparisonResult; on mismatch ``new_screenshot_path`` points at the saved capture
    """
    captured = take_viewport_screenshot(page)
    with Image.open(io.BytesIO(captured)) as img:
        candidate = img.convert("RGBA")

    baseline = _load_baseline(baseline_path(story_id, screenshot_name))
    if baseline is None:
        logger.info("No baseline for %s/%s, capture needs resolution", story_id, screenshot_name)
        return ComparisonResult(
            matches=False,
            diff_percentage=100.0,
            new_screenshot_path=_save_candidate(story_id, screenshot_name, captured),
        )

    diff_percentage = compare_images(baseline, candidate)
    matches = diff_percentage <= diff_threshold
    logger.debug(
        "Checkpoint %s/%s: %.4f%% differs (threshold %.4f%%)",
        story_id,
        screenshot_name,
        diff_percentage,
        diff_threshold,
    )

    if matches:
        return ComparisonResult(matches=True, diff_percentage=diff_percentage)

    return ComparisonResult(
        matches=False,
        diff_percentage=diff_percentage,
        new_screenshot_path=_save_candidate(story_id, screenshot_name, captured),
    )
