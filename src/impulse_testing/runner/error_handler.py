"""
Diagnostic capture for failed actions.

When an action fails, the full page is captured to
``.testing/temp/error-<epoch ms>-<random>.png`` so the state that broke the
story can be inspected after the run.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..constants import TEMP_DIR

logger = logging.getLogger(__name__)


@dataclass
class ErrorResult:
    """Structured failure information attached to an ActionResult."""

    message: str
    action_type: str
    selector: Optional[str] = None
    url: Optional[str] = None
    value: Optional[str] = None
    screenshot_path: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "action_type": self.action_type,
            "selector": self.selector,
            "url": self.url,
            "value": self.value,
            "screenshot_path": self.screenshot_path,
            "timestamp": self.timestamp.isoformat(),
        }


def capture_error_screenshot(
    page,
    action_type: str,
    message: str,
    selector: Optional[str] = None,
    url: Optional[str] = None,
    value: Optional[str] = None,
) -> ErrorResult:
    """
    Capture a full-page screenshot of the failure state.

    The capture is best-effort: if the page cannot be screenshotted (crashed
    tab, closed target) the error is still returned, without a path.

    Args:
        page: Playwright page
        action_type: Type of the failed action
        message: Error message of the failure
        selector: Selector involved, if any
        url: Target URL (navigate actions)
        value: Value involved (input/select actions)

    Returns:
        ErrorResult with the screenshot path when one was written
    """
    result = ErrorResult(
        message=message,
        action_type=action_type,
        selector=selector,
        url=url,
        value=value,
    )

    filename = f"error-{int(time.time() * 1000)}-{secrets.token_hex(3)}.png"
    path = TEMP_DIR / filename
    try:
        TEMP_DIR.mkdir(parents=True, exist_ok=True)
        screenshot = page.screenshot(full_page=True, type="png")
        path.write_bytes(screenshot)
        result.screenshot_path = str(path)
    except Exception as e:
        logger.warning("Could not capture diagnostic screenshot for failed %s: %s", action_type, e)

    return result
