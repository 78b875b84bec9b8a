"""Tests for launching the browser session, with a fake Playwright driver."""

import pytest

from impulse_testing.runner import browser as browser_module
from impulse_testing.runner.browser import BrowserSession, launch_browser
from impulse_testing.story import Resolution, Story, StoryStart


class FakePlaywrightPage:
    def __init__(self, fail_goto=False):
        self.fail_goto = fail_goto
        self.visited = []

    def goto(self, url, wait_until=None, timeout=None):
        if self.fail_goto:
            raise RuntimeError(f"net::ERR_CONNECTION_REFUSED at {url}")
        self.visited.append((url, wait_until))


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.page_options = None
        self.closed = False

    def new_page(self, **options):
        self.page_options = options
        return self.page

    def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser, fail=False):
        self.browser = browser
        self.fail = fail
        self.launch_options = None

    def launch(self, **options):
        if self.fail:
            raise RuntimeError("Executable doesn't exist")
        self.launch_options = options
        return self.browser


class FakePlaywright:
    def __init__(self, chromium):
        self.chromium = chromium
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeDriver:
    """Stands in for sync_playwright(); ``start()`` returns the fake driver."""

    def __init__(self, fail_launch=False, fail_goto=False):
        self.page = FakePlaywrightPage(fail_goto=fail_goto)
        self.browser = FakeBrowser(self.page)
        self.playwright = FakePlaywright(FakeChromium(self.browser, fail=fail_launch))

    def __call__(self):
        return self

    def start(self):
        return self.playwright


def make_story(**start):
    return Story(id="s", name="S", start=StoryStart(url="http://localhost:3000", **start))


@pytest.fixture
def driver(monkeypatch):
    fake = FakeDriver()
    monkeypatch.setattr(browser_module, "sync_playwright", fake)
    return fake


class TestLaunchBrowser:
    """Tests for launch_browser."""

    def test_opens_start_url(self, driver):
        """Should launch headless and wait for network idle on the start URL."""
        session = launch_browser(make_story())

        assert isinstance(session, BrowserSession)
        assert driver.playwright.chromium.launch_options == {"headless": True}
        assert driver.page.visited == [("http://localhost:3000", "networkidle")]

    def test_default_viewport(self, driver):
        """Should use 800x600 at scale 1 when the story sets nothing."""
        launch_browser(make_story())

        assert driver.browser.page_options == {
            "viewport": {"width": 800, "height": 600},
            "device_scale_factor": 1.0,
        }

    def test_story_viewport_and_scale(self, driver):
        """Should size the viewport from the story's resolution and scale factor."""
        launch_browser(make_story(resolution=Resolution(width=1280, height=720), device_scale_factor=2))

        assert driver.browser.page_options["viewport"] == {"width": 1280, "height": 720}
        assert driver.browser.page_options["device_scale_factor"] == 2.0

    def test_pixel_ratio_wins(self, driver):
        """Should prefer a non-default pixel ratio over the device scale factor."""
        launch_browser(make_story(pixel_ratio=3, device_scale_factor=2))
        assert driver.browser.page_options["device_scale_factor"] == 3.0

    def test_headed(self, driver):
        """Should pass headless=False through."""
        launch_browser(make_story(), headless=False)
        assert driver.playwright.chromium.launch_options == {"headless": False}

    def test_launch_failure(self, monkeypatch):
        """Should stop the driver and raise a clear error when Chromium is missing."""
        fake = FakeDriver(fail_launch=True)
        monkeypatch.setattr(browser_module, "sync_playwright", fake)

        with pytest.raises(RuntimeError, match="Failed to launch Chromium browser"):
            launch_browser(make_story())

        assert fake.playwright.stopped

    def test_start_url_failure_closes_everything(self, monkeypatch):
        """Should close the browser and stop the driver if the start URL fails."""
        fake = FakeDriver(fail_goto=True)
        monkeypatch.setattr(browser_module, "sync_playwright", fake)

        with pytest.raises(RuntimeError, match="ERR_CONNECTION_REFUSED"):
            launch_browser(make_story())

        assert fake.browser.closed
        assert fake.playwright.stopped


class TestBrowserSession:
    """Tests for BrowserSession.close."""

    def test_close_order(self, driver):
        """Should close the browser and stop the driver."""
        session = launch_browser(make_story())

        session.close()

        assert driver.browser.closed
        assert driver.playwright.stopped

    def test_driver_stopped_when_browser_close_fails(self, driver):
        """Should stop the driver even if closing the browser fails."""
        session = launch_browser(make_story())

        def broken_close():
            raise RuntimeError("Browser has been closed")

        driver.browser.close = broken_close

        with pytest.raises(RuntimeError):
            session.close()
        assert driver.playwright.stopped


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
