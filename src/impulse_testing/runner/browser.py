"""
Headless Chromium sessions for story replay.
"""

import logging
from dataclasses import dataclass
from typing import Any

from playwright.sync_api import Browser, Page, Playwright, sync_playwright

from ..constants import DEFAULT_ACTION_TIMEOUT_MS
from ..story import Story

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT_WIDTH = 800
DEFAULT_VIEWPORT_HEIGHT = 600


@dataclass
class BrowserSession:
    """A launched browser and the page the story is replayed on."""

    playwright: Playwright
    browser: Browser
    page: Page

    def close(self):
        """Close the browser, then shut down the Playwright driver."""
        try:
            self.browser.close()
        finally:
            self.playwright.stop()


def _scale_factor(story: Story) -> float:
    start = story.start
    if start.pixel_ratio is not None and start.pixel_ratio != 1:
        return float(start.pixel_ratio)
    return float(start.device_scale_factor or 1)


def launch_browser(story: Story, headless: bool = True, **launch_options: Any) -> BrowserSession:
    """
    Launch Chromium sized for the story and open its start URL.

    Args:
        story: Story whose ``start`` block defines URL, resolution and pixel ratio
        headless: Run without a visible window (default True)
        launch_options: Extra keyword arguments for ``chromium.launch``

    Returns:
        BrowserSession positioned on the start URL

    Raises:
        RuntimeError: If Chromium cannot be launched
    """
    resolution = story.start.resolution
    width = resolution.width if resolution else DEFAULT_VIEWPORT_WIDTH
    height = resolution.height if resolution else DEFAULT_VIEWPORT_HEIGHT

    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.launch(headless=headless, **launch_options)
    except Exception as e:
        playwright.stop()
        raise RuntimeError(f"Failed to launch Chromium browser: {e}") from e

    try:
        page = browser.new_page(
            viewport={"width": width, "height": height},
            device_scale_factor=_scale_factor(story),
        )
        logger.info("Opening %s (%dx%d)", story.start.url, width, height)
        page.goto(story.start.url, wait_until="networkidle", timeout=DEFAULT_ACTION_TIMEOUT_MS)
    except Exception:
        try:
            browser.close()
        finally:
            playwright.stop()
        raise

    return BrowserSession(playwright=playwright, browser=browser, page=page)
