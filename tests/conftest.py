"""
Pytest configuration and shared fixtures for impulse-testing tests.

Provides a fake Playwright page for driving the runner without a browser,
PNG helpers, and an optional real Chromium for the browser tests.
"""

import io
import os
import sys
from typing import Dict, Generator, List, Optional, Tuple

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (real browser, etc.)")
    config.addinivalue_line("markers", "browser: marks tests as requiring a Chromium install")


def make_image(
    width: int = 10,
    height: int = 10,
    color: Tuple[int, int, int] = (255, 255, 255),
    pixels: Optional[Dict[Tuple[int, int], Tuple[int, int, int]]] = None,
) -> Image.Image:
    """Solid-color RGBA image with optional individual pixels overridden."""
    img = Image.new("RGBA", (width, height), color + (255,))
    for (x, y), pixel_color in (pixels or {}).items():
        img.putpixel((x, y), pixel_color + (255,))
    return img


def make_png(*args, **kwargs) -> bytes:
    """PNG-encoded bytes of ``make_image(*args, **kwargs)``."""
    buffer = io.BytesIO()
    make_image(*args, **kwargs).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeElement:
    def __init__(self, visible: bool = True, checked: bool = False, value: str = "", options=None):
        self.visible = visible
        self.checked = checked
        self.value = value
        self.options = options or []


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page

    def press(self, key: str):
        self.page.calls.append(("keyboard.press", key))
        if key == "Backspace" and self.page.selected is not None:
            self.page.elements[self.page.selected].value = ""


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    def press_sequentially(self, text: str, timeout=None):
        self.page.calls.append(("press_sequentially", self.selector, text))
        element = self.page._element(self.selector, timeout)
        element.value += text


class FakePage:
    """
    Minimal stand-in for a Playwright sync Page.

    Elements are plain records keyed by selector. Every call is appended to
    ``calls`` so tests can assert on what the runner did to the page.
    """

    def __init__(self, elements: Optional[Dict[str, FakeElement]] = None, screenshot_bytes: Optional[bytes] = None):
        self.elements: Dict[str, FakeElement] = elements or {}
        self.screenshot_bytes = screenshot_bytes if screenshot_bytes is not None else make_png()
        self.calls: List[tuple] = []
        self.keyboard = FakeKeyboard(self)
        self.selected: Optional[str] = None
        self.url = "about:blank"
        self.failing_urls: List[str] = []
        self.screenshot_error: Optional[Exception] = None

    def _element(self, selector: str, timeout=None) -> FakeElement:
        element = self.elements.get(selector)
        if element is None or not element.visible:
            raise TimeoutError(f"Timeout {timeout}ms exceeded waiting for locator('{selector}') to be visible")
        return element

    def wait_for_selector(self, selector: str, state: str = "visible", timeout=None):
        self.calls.append(("wait_for_selector", selector, state))
        return self._element(selector, timeout)

    def click(self, selector: str, click_count: int = 1, timeout=None):
        self.calls.append(("click", selector, click_count))
        element = self._element(selector, timeout)
        if click_count == 3:
            self.selected = selector
        else:
            element.checked = not element.checked

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self, selector)

    def select_option(self, selector: str, value: str, timeout=None):
        self.calls.append(("select_option", selector, value))
        element = self._element(selector, timeout)
        if value not in element.options:
            raise ValueError(f"Option '{value}' not found in {selector}")
        element.value = value

    def eval_on_selector(self, selector: str, expression: str):
        self.calls.append(("eval_on_selector", selector, expression))
        return self._element(selector).checked

    def goto(self, url: str, wait_until=None, timeout=None):
        self.calls.append(("goto", url, wait_until))
        if url in self.failing_urls:
            raise RuntimeError(f"net::ERR_CONNECTION_REFUSED at {url}")
        self.url = url

    def wait_for_load_state(self, state: str = "load", timeout=None):
        self.calls.append(("wait_for_load_state", state))

    def evaluate(self, script: str):
        self.calls.append(("evaluate", script))

    def screenshot(self, full_page: bool = False, type: str = "png"):
        self.calls.append(("screenshot", full_page))
        if self.screenshot_error:
            raise self.screenshot_error
        return self.screenshot_bytes


class FakeSession:
    """Stand-in for BrowserSession; records when it is closed."""

    def __init__(self, page: FakePage, events: Optional[List[str]] = None):
        self.page = page
        self.events = events if events is not None else []
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        self.events.append("browser.close")


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run the test from an empty project root so .testing/ lands in tmp_path."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage(
        elements={
            "#submit": FakeElement(),
            "#email": FakeElement(value="old@example.com"),
            "#terms": FakeElement(checked=False),
            "#newsletter": FakeElement(checked=True),
            "#country": FakeElement(options=["de", "fr"]),
            "#hidden": FakeElement(visible=False),
        }
    )


@pytest.fixture(scope="session")
def playwright_browser():
    """Session-scoped browser; tests using it are skipped when Chromium is unavailable."""
    from playwright.sync_api import sync_playwright

    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.launch(headless=True)
    except Exception as e:
        playwright.stop()
        pytest.skip(f"Chromium not available: {e}")

    yield browser
    browser.close()
    playwright.stop()


@pytest.fixture
def browser_page(playwright_browser) -> Generator:
    """Page fixture that creates a fresh page for each test."""
    page = playwright_browser.new_page(viewport={"width": 320, "height": 240})
    yield page
    page.close()
