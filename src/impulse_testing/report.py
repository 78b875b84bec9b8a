"""
Reporting for story runs.

Renders a batch of ExecutionResults as a plain-text summary, JSON, or a
standalone HTML page:

    report = RunReport(results)
    print(report.summary())
    report.save("impulse-report.html")  # .html, .json, anything else is text
"""

import html
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .runner.story_runner import ExecutionResult, action_passes
from .story import Action, ActionType


def format_action(action: Action) -> str:
    """One-line description of an action, e.g. ``input #email (user@example.com)``."""
    if action.type in (ActionType.INPUT, ActionType.SELECT):
        return f"{action.type.value} {action.selector} ({action.value})"
    if action.type in (ActionType.CLICK, ActionType.CHECK, ActionType.UNCHECK):
        return f"{action.type.value} {action.selector}"
    if action.type == ActionType.NAVIGATE:
        return f"navigate {action.url}"
    if action.type == ActionType.WAIT_FOR_NAVIGATION:
        return "wait for navigation"
    if action.type == ActionType.SCREENSHOT:
        return f"screenshot {action.name}"
    raise ValueError(f"Unknown action type: {action.type!r}")


@dataclass
class RunReport:
    """Aggregate report over one or more story executions."""

    results: List[ExecutionResult]
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def passed(self) -> List[ExecutionResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[ExecutionResult]:
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return f"""
RUN SUMMARY
===========
Total:  {len(self.results)}
Passed: {len(self.passed)}
Failed: {len(self.failed)}
"""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "total": len(self.results),
            "passed": len(self.passed),
            "failed": len(self.failed),
            "stories": [r.to_dict() for r in self.results],
        }

    def to_text(self) -> str:
        lines = [self.summary().strip(), ""]
        for result in self.results:
            verdict = "PASSED" if result.success else "FAILED"
            lines.append(f"[{verdict}] {result.story_id}")
            if result.error:
                lines.append(f"  Error: {result.error}")
            for action_result in result.action_results:
                ok = action_passes(action_result, result.screenshot_resolutions)
                mark = "ok  " if ok else "FAIL"
                lines.append(f"  {mark} {action_result.index}: {format_action(action_result.action)}")
                if action_result.error:
                    lines.append(f"       {action_result.error.message.splitlines()[0]}")
                    if action_result.error.screenshot_path:
                        lines.append(f"       Screenshot: {action_result.error.screenshot_path}")
                elif action_result.comparison_result and not action_result.comparison_result.matches:
                    lines.append(f"       {action_result.comparison_result.diff_percentage:.2f}% of pixels differ")
            for resolution in result.screenshot_resolutions:
                outcome = "updated baseline" if resolution.accepted else "kept old baseline"
                if resolution.timed_out:
                    outcome += " (timed out)"
                lines.append(f"  resolution {resolution.name}: {outcome}")
            lines.append("")
        return "\n".join(lines)

    def to_html(self) -> str:
        """Generate HTML report."""
        story_rows = []
        for result in self.results:
            color = "#16a34a" if result.success else "#dc2626"
            verdict = "PASSED" if result.success else "FAILED"
            steps = []
            for action_result in result.action_results:
                ok = action_passes(action_result, result.screenshot_resolutions)
                detail = ""
                if action_result.error:
                    detail = html.escape(action_result.error.message.splitlines()[0])
                elif action_result.comparison_result and not action_result.comparison_result.matches:
                    detail = f"{action_result.comparison_result.diff_percentage:.2f}% differ"
                steps.append(
                    f"<li style=\"color:{'#16a34a' if ok else '#dc2626'}\">"
                    f"{html.escape(format_action(action_result.action))}"
                    f"{' <small>' + detail + '</small>' if detail else ''}</li>"
                )
            error = f"<br><small style=\"color:#dc2626\">{html.escape(result.error)}</small>" if result.error else ""

            story_rows.append(
                f"""
            <tr>
                <td><span style="background:{color};color:white;padding:2px 8px;border-radius:4px">{verdict}</span></td>
                <td><strong>{html.escape(result.story_id)}</strong>{error}</td>
                <td><ol start="0">{"".join(steps)}</ol></td>
            </tr>
            """
            )

        return f"""
<!DOCTYPE html>
<html>
<head>
    <title>impulse-testing Run Report</title>
    <style>
        body {{ font-family: system-ui, sans-serif; margin: 40px; background: #f5f5f5; }}
        .container {{ max-width: 1200px; margin: 0 auto; background: white; padding: 40px; border-radius: 8px; box-shadow: 0 2px 8px rgba(0,0,0,0.1); }}
        h1 {{ color: #1f2937; }}
        .summary {{ display: grid; grid-template-columns: repeat(3, 1fr); gap: 20px; margin: 20px 0; }}
        .stat {{ background: #f3f4f6; padding: 20px; border-radius: 8px; text-align: center; }}
        .stat-value {{ font-size: 2em; font-weight: bold; color: #4f46e5; }}
        .stat-label {{ color: #6b7280; }}
        table {{ width: 100%; border-collapse: collapse; margin-top: 20px; }}
        th, td {{ padding: 12px; text-align: left; border-bottom: 1px solid #e5e7eb; vertical-align: top; }}
        th {{ background: #f9fafb; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>impulse-testing Run Report</h1>
        <p>Generated: {self.generated_at.strftime("%Y-%m-%d %H:%M:%S")}</p>

        <div class="summary">
            <div class="stat">
                <div class="stat-value">{len(self.results)}</div>
                <div class="stat-label">Stories</div>
            </div>
            <div class="stat">
                <div class="stat-value">{len(self.passed)}</div>
                <div class="stat-label">Passed</div>
            </div>
            <div class="stat">
                <div class="stat-value">{len(self.failed)}</div>
                <div class="stat-label">Failed</div>
            </div>
        </div>

        <table>
            <tr>
                <th>Verdict</th>
                <th>Story</th>
                <th>Actions</th>
            </tr>
            {"".join(story_rows) if story_rows else "<tr><td colspan='3'>No stories were run.</td></tr>"}
        </table>
    </div>
</body>
</html>
"""

    def save(self, filepath: str):
        """Save report to file; the format follows the extension."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix == ".html":
            path.write_text(self.to_html(), encoding="utf-8")
        elif path.suffix == ".json":
            path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        else:
            path.write_text(self.to_text(), encoding="utf-8")
