"""
Command-line interface for impulse-testing.

Provides commands for replaying recorded stories, interactively or in CI.
"""

import argparse
import logging
import sys
from typing import List

from .config import Config, ConfigError, load_config
from .constants import TEXT_REPORT_FILE
from .report import RunReport, format_action
from .runner import ActionResult, ExecutionResult, RunStoryOptions, run_stories
from .story import list_stories

logger = logging.getLogger(__name__)


def _print_action(result: ActionResult):
    description = format_action(result.action)
    if result.passed:
        print(f"  ✓ {result.index}: {description}")
        return

    comparison = result.comparison_result
    if comparison is not None:
        print(f"  ⚠ {result.index}: {description} ({comparison.diff_percentage:.2f}% different)")
    else:
        print(f"  ✗ {result.index}: {description}")

    if result.error:
        print(f"      {result.error.message.splitlines()[0]}")
        if result.error.screenshot_path:
            print(f"      Screenshot: {result.error.screenshot_path}")


def _print_story_result(result: ExecutionResult):
    for resolution in result.screenshot_resolutions:
        if resolution.accepted:
            print(f"  🔄 {resolution.name}: baseline updated")
        elif resolution.timed_out:
            print(f"  ⏱  {resolution.name}: no answer, kept old baseline")
        else:
            print(f"  📌 {resolution.name}: kept old baseline")

    if result.error:
        print(f"  ❌ Error: {result.error}")

    verdict = "✅ PASSED" if result.success else "❌ FAILED"
    print(f"{verdict}: {result.story_id}")
    print()


def _print_summary(results: List[ExecutionResult]):
    passed = sum(1 for r in results if r.success)
    print("📊 Summary")
    print(f"   Total:  {len(results)}")
    print(f"   Passed: {passed}")
    print(f"   Failed: {len(results) - passed}")
    for result in results:
        if not result.success:
            print(f"   - {result.story_id}")


def _output_settings() -> Config:
    """Config for output switches; a broken config is reported per story by the runner."""
    try:
        return load_config()
    except ConfigError as e:
        logger.debug("Using default output settings: %s", e)
        return Config()


def _run(story_ids: List[str], args, ci_mode: bool) -> int:
    config = _output_settings()
    options = RunStoryOptions(
        ci_mode=ci_mode,
        on_action_complete=_print_action if config.output_console else None,
        diff_threshold=args.threshold,
        headless=args.headless,
    )

    def on_story_start(story_id: str):
        print(f"▶️  Running story: {story_id}")

    results = run_stories(story_ids, options, on_story_start=on_story_start)

    for result in results:
        _print_story_result(result)
    _print_summary(results)

    if args.report:
        RunReport(results).save(args.report)
        print()
        print(f"📄 Report saved to: {args.report}")

    if config.output_text:
        RunReport(results).save(str(TEXT_REPORT_FILE))
        print(f"📄 Text report saved to: {TEXT_REPORT_FILE}")

    return 0 if all(r.success for r in results) else 1


def run_command(args):
    """Run stories with interactive mismatch resolution."""
    print("🧪 impulse-testing")
    print(f"Stories: {', '.join(args.stories)}")
    print()
    sys.exit(_run(args.stories, args, ci_mode=False))


def ci_command(args):
    """Run stories unattended; every mismatch fails."""
    story_ids = args.stories or [s.id for s in list_stories()]
    if not story_ids:
        print("No stories found. Nothing to run.")
        sys.exit(0)

    print("🤖 impulse-testing (CI mode)")
    print(f"Stories: {', '.join(story_ids)}")
    print()
    sys.exit(_run(story_ids, args, ci_mode=True))


def list_command(args):
    """List recorded stories."""
    stories = list_stories()
    if not stories:
        print("No stories found.")
        return

    print(f"📚 {len(stories)} stories:")
    for story in stories:
        print(f"   {story.id}  {story.name}")


def _add_run_options(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Tolerated percentage of differing pixels (default: config, then 0.1)",
    )
    parser.add_argument("--report", help="Write a report (.html, .json or text)")
    parser.add_argument(
        "--headless",
        action="store_true",
        default=True,
        help="Run browser in headless mode (default: True)",
    )
    parser.add_argument(
        "--headed",
        action="store_false",
        dest="headless",
        help="Run browser in headed mode (show browser window)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="impulse-testing",
        description="impulse-testing - replay recorded browser stories and verify screenshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay a story, asking about screenshot mismatches
  impulse-testing run login-flow

  # Run every story unattended and write an HTML report
  impulse-testing ci --report impulse-report.html

  # Tolerate up to 0.5% differing pixels
  impulse-testing ci checkout --threshold 0.5
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run stories, resolving mismatches interactively")
    run_parser.add_argument("stories", nargs="+", metavar="STORY_ID", help="Stories to run")
    _add_run_options(run_parser)
    run_parser.set_defaults(func=run_command)

    ci_parser = subparsers.add_parser("ci", help="Run stories unattended (mismatches fail)")
    ci_parser.add_argument("stories", nargs="*", metavar="STORY_ID", help="Stories to run (default: all)")
    _add_run_options(ci_parser)
    ci_parser.set_defaults(func=ci_command)

    list_parser = subparsers.add_parser("list", help="List recorded stories")
    list_parser.set_defaults(func=list_command)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
