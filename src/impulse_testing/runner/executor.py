"""
Action dispatch: replays one recorded action on a Playwright page.

Every element action waits for its selector to become visible before
touching it, so replay tolerates pages that render asynchronously. Any
failure is re-raised as ActionExecutionError carrying the action's context
(type, selector, URL, value) for diagnostics.

Screenshot actions are not handled here: checkpoints belong to the
screenshot comparator, and dispatching one through this module is a wiring
bug that fails loudly.
"""

import logging
from typing import Optional

from ..constants import DEFAULT_ACTION_TIMEOUT_MS
from ..story import Action, ActionType

logger = logging.getLogger(__name__)


class ActionExecutionError(Exception):
    """An action could not be executed; carries the action's context."""

    def __init__(
        self,
        action_type: str,
        cause: str,
        selector: Optional[str] = None,
        url: Optional[str] = None,
        value: Optional[str] = None,
    ):
        self.action_type = action_type
        self.cause = cause
        self.selector = selector
        self.url = url
        self.value = value
        super().__init__(self._format())

    def _format(self) -> str:
        lines = [f"Failed to execute action: {self.cause}", f"Action type: {self.action_type}"]
        if self.selector:
            lines.append(f"Selector: {self.selector}")
        if self.url:
            lines.append(f"URL: {self.url}")
        if self.value is not None:
            lines.append(f"Value: {self.value}")
        return "\n".join(lines)


def _wait_visible(page, selector: str, timeout_ms: int):
    page.wait_for_selector(selector, state="visible", timeout=timeout_ms)


def _dispatch(page, action: Action, timeout_ms: int):
    if action.type == ActionType.CLICK:
        _wait_visible(page, action.selector, timeout_ms)
        page.click(action.selector, timeout=timeout_ms)

    elif action.type == ActionType.INPUT:
        _wait_visible(page, action.selector, timeout_ms)
        # Select whatever is in the field and delete it before typing
        page.click(action.selector, click_count=3, timeout=timeout_ms)
        page.keyboard.press("Backspace")
        page.locator(action.selector).press_sequentially(action.value, timeout=timeout_ms)

    elif action.type == ActionType.SELECT:
        _wait_visible(page, action.selector, timeout_ms)
        page.select_option(action.selector, action.value, timeout=timeout_ms)

    elif action.type in (ActionType.CHECK, ActionType.UNCHECK):
        desired = action.type == ActionType.CHECK
        _wait_visible(page, action.selector, timeout_ms)
        current = bool(page.eval_on_selector(action.selector, "el => el.checked"))
        if current != desired:
            page.click(action.selector, timeout=timeout_ms)
        else:
            logger.debug("%s already %sed, not toggling", action.selector, action.type.value)

    elif action.type == ActionType.NAVIGATE:
        page.goto(action.url, wait_until="networkidle", timeout=timeout_ms)

    elif action.type == ActionType.WAIT_FOR_NAVIGATION:
        page.wait_for_load_state("networkidle", timeout=timeout_ms)

    elif action.type == ActionType.SCREENSHOT:
        raise RuntimeError(
            "Screenshot actions are handled by the screenshot comparator, not the action executor"
        )

    else:
        raise ValueError(f"Unknown action type: {getattr(action, 'type', action)!r}")


def execute_action(page, action: Action, timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS):
    """
    Execute a single action on the page.

    Args:
        page: Playwright page
        action: The recorded action
        timeout_ms: Bound for selector visibility and navigation waits

    Raises:
        ActionExecutionError: On any failure, with the action's context attached

    Example:
        execute_action(page, ClickAction(selector="button.submit"))
        execute_action(page, InputAction(selector="#email", value="user@example.com"))
    """
    logger.debug("Executing %s", action)
    try:
        _dispatch(page, action, timeout_ms)
    except Exception as e:
        action_type = action.type.value if isinstance(getattr(action, "type", None), ActionType) else str(action)
        raise ActionExecutionError(
            action_type=action_type,
            cause=str(e),
            selector=getattr(action, "selector", None),
            url=getattr(action, "url", None),
            value=getattr(action, "value", None),
        ) from e
