"""
End-to-end tests against a real headless Chromium.

Pages are built with ``page.set_content`` so no server or network is needed.
Skipped automatically when Chromium is not installed
(``playwright install chromium``).
"""

import shutil

import pytest

from impulse_testing.constants import OVERLAY_ELEMENT_ID
from impulse_testing.runner.comparator import baseline_path, compare_screenshot
from impulse_testing.runner.executor import ActionExecutionError, execute_action
from impulse_testing.story import (
    CheckAction,
    ClickAction,
    InputAction,
    SelectAction,
    UncheckAction,
    WaitForNavigationAction,
)

pytestmark = [pytest.mark.slow, pytest.mark.browser]

FORM = """
<html>
<body style="margin:0;background:#fff">
  <input id="email" value="old@example.com">
  <input id="terms" type="checkbox">
  <select id="country">
    <option value="de">Germany</option>
    <option value="fr">France</option>
  </select>
  <button id="go" onclick="document.body.dataset.clicked = 'yes'">Go</button>
  <div id="later" style="display:none">Later</div>
</body>
</html>
"""

OVERLAY = f'<div id="{OVERLAY_ELEMENT_ID}" style="position:fixed;top:0;left:0;width:100px;height:100px;background:red"></div>'


@pytest.fixture
def form_page(browser_page):
    browser_page.set_content(FORM)
    return browser_page


class TestActionsOnRealPage:
    """Tests for action dispatch in Chromium."""

    def test_click(self, form_page):
        """Should click a visible button."""
        execute_action(form_page, ClickAction(selector="#go"))
        assert form_page.evaluate("document.body.dataset.clicked") == "yes"

    def test_input_replaces_value(self, form_page):
        """Should replace the existing value of a field."""
        execute_action(form_page, InputAction(selector="#email", value="new@example.com"))
        assert form_page.input_value("#email") == "new@example.com"

    def test_select(self, form_page):
        """Should select an option by value."""
        execute_action(form_page, SelectAction(selector="#country", value="fr"))
        assert form_page.input_value("#country") == "fr"

    def test_check_uncheck_idempotent(self, form_page):
        """Should reach the desired checkbox state regardless of repetition."""
        execute_action(form_page, CheckAction(selector="#terms"))
        execute_action(form_page, CheckAction(selector="#terms"))
        assert form_page.is_checked("#terms") is True

        execute_action(form_page, UncheckAction(selector="#terms"))
        execute_action(form_page, UncheckAction(selector="#terms"))
        assert form_page.is_checked("#terms") is False

    def test_hidden_element_times_out(self, form_page):
        """Should fail on an element that never becomes visible."""
        with pytest.raises(ActionExecutionError) as exc_info:
            execute_action(form_page, ClickAction(selector="#later"), timeout_ms=300)
        assert exc_info.value.selector == "#later"

    def test_wait_for_navigation(self, form_page):
        """Should return once the page is idle."""
        execute_action(form_page, WaitForNavigationAction(), timeout_ms=5000)


class TestScreenshotsOnRealPage:
    """Tests for screenshot comparison in Chromium."""

    def accept(self, result, story_id, name):
        path = baseline_path(story_id, name)
        path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(result.new_screenshot_path, path)

    def test_same_page_matches_its_baseline(self, workspace, form_page):
        """Should match a freshly accepted baseline of the same page."""
        first = compare_screenshot(form_page, "form", "form.png")
        assert first.matches is False
        self.accept(first, "form", "form.png")

        second = compare_screenshot(form_page, "form", "form.png")

        assert second.matches is True
        assert second.diff_percentage == 0.0

    def test_changed_page_mismatches(self, workspace, form_page):
        """Should detect a visual change."""
        self.accept(compare_screenshot(form_page, "form", "form.png"), "form", "form.png")
        form_page.evaluate("document.body.style.background = 'black'")

        result = compare_screenshot(form_page, "form", "form.png")

        assert result.matches is False
        assert result.diff_percentage > 50

    def test_overlay_is_not_captured(self, workspace, form_page):
        """Should ignore the recorder overlay and restore it afterwards."""
        self.accept(compare_screenshot(form_page, "form", "form.png"), "form", "form.png")
        form_page.evaluate(f"document.body.insertAdjacentHTML('beforeend', {OVERLAY!r})")

        result = compare_screenshot(form_page, "form", "form.png")

        assert result.matches is True
        assert form_page.is_visible(f"#{OVERLAY_ELEMENT_ID}")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
