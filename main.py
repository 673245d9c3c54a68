import argparse
import logging
import sys
from pathlib import Path

from config import load_config
from exceptions import ReviewEngineError
from renderer import format_report_markdown, print_report
from reviewer import review_diff, review_file

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BLOCKERS = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Review frontend source code against the review rule battery.",
    )
    parser.add_argument("path", help="Source file, or unified diff with --diff")
    parser.add_argument(
        "--diff", action="store_true", help="Treat PATH as a unified diff"
    )
    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )
    output.add_argument(
        "--text", action="store_true", help="Print a plain console summary"
    )
    parser.add_argument(
        "--fail-on-blocker",
        action="store_true",
        help=f"Exit with {EXIT_BLOCKERS} when any blocker is found",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config()
        if args.diff:
            diff_text = Path(args.path).read_text(encoding="utf-8")
            reports = [
                (r.filename, r.report) for r in review_diff(diff_text, config)
                if r.report is not None
            ]
        else:
            reports = [(args.path, review_file(args.path, config))]
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"Cannot read {args.path}: {e}")
        return EXIT_ERROR
    except ReviewEngineError as e:
        logger.error(f"Review failed: {e}")
        return EXIT_ERROR

    if not reports:
        logger.info("No reviewable frontend files found")

    for filename, report in reports:
        if args.json:
            print(report.to_json())
        elif args.text:
            print_report(report, title=f"CODE REVIEW: {filename}")
        else:
            print(format_report_markdown(report, title=f"Code Review: {filename}"))
            print()

    if args.fail_on_blocker and any(report.has_blockers for _, report in reports):
        return EXIT_BLOCKERS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
