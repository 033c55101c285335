"""
Coverage Annotator CLI

Checks how much of a change the test suite covers and flags the gaps.

    coverage-annotator coverage.json --threshold 90             # in GitHub Actions
    git diff origin/main | coverage-annotator coverage.json --diff -

Exit codes: 0 = passed, 1 = error, 2 = coverage below threshold.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from annotator import (
    AnnotatorError,
    CoverageParser,
    GitHubError,
    analyze_changes,
    split_unified_diff,
    summarize,
)
from annotator.report import Report, format_percent

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BELOW_THRESHOLD = 2


def _threshold(value: str) -> int:
    try:
        threshold = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"threshold must be an integer, got {value!r}")
    if not 0 <= threshold <= 100:
        raise argparse.ArgumentTypeError(f"threshold must be between 0 and 100, got {threshold}")
    return threshold


def _read_diff(location: str) -> str:
    if location == "-":
        return sys.stdin.read()
    try:
        return Path(location).read_text(encoding="utf-8")
    except OSError as e:
        raise AnnotatorError(f"Could not read diff {location}: {e}") from e


def write_outputs(output_path: str, report: Report) -> None:
    """Append step outputs in the GITHUB_OUTPUT key=value format."""
    with open(output_path, "a", encoding="utf-8") as f:
        f.write(f"coverage-percentage={report.coverage_percent}\n")
        f.write(f"total-lines={report.total_changed_lines}\n")
        f.write(f"covered-lines={report.covered_lines}\n")


def cmd_check(args) -> int:
    """Measure coverage of the changed lines and report on it."""
    from annotator.github import GitHubClient, GitHubContext, determine_changed_files

    coverage = CoverageParser(strip_prefix=args.strip_prefix).parse(args.coverage_file)

    annotate = args.annotate if args.annotate is not None else not args.diff
    context = None
    client = None
    if annotate or not args.diff:
        context = GitHubContext.from_env()
        if not args.token:
            raise GitHubError("A GitHub token is required (--token or GITHUB_TOKEN)")
        client = GitHubClient(args.token, base_url=context.api_url)

    try:
        if args.diff:
            changed_files = split_unified_diff(_read_diff(args.diff))
        else:
            changed_files = determine_changed_files(client, context)

        report = analyze_changes(coverage, changed_files)
        summary = summarize(report)
        success = report.passed(args.threshold)
        logger.debug(json.dumps([a.to_dict() for a in report.annotations], indent=2))

        if args.format == "json":
            print(json.dumps(
                {**report.to_dict(), "threshold": args.threshold, "passed": success},
                indent=2,
            ))
        else:
            print(summary.as_text())

        if annotate:
            logger.info(f"Adding check status to {context.head_sha}")
            client.create_check_run(
                context.repository,
                context.head_sha,
                success,
                summary,
                report.annotations,
            )
    finally:
        if client is not None:
            client.close()

    output_path = os.environ.get("GITHUB_OUTPUT")
    if output_path:
        write_outputs(output_path, report)

    if not success:
        logger.error(
            f"Code coverage ({format_percent(report.coverage_percent)}) is below "
            f"the required threshold ({args.threshold}%)"
        )
        return EXIT_BELOW_THRESHOLD
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coverage-annotator",
        description="Annotate changed lines that the test suite does not cover",
    )
    parser.add_argument(
        "coverage_file",
        nargs="?",
        default=os.environ.get("INPUT_COVERAGE_FILE", "coverage.json"),
        help="Path to the coverage JSON (path -> per-line counts, or coverage.py's coverage.json)",
    )
    parser.add_argument(
        "-t", "--threshold",
        type=_threshold,
        default=os.environ.get("INPUT_COVERAGE_THRESHOLD", "90"),
        help="Minimum coverage percentage required for changed lines (default: 90)",
    )
    parser.add_argument(
        "--diff",
        help="Read changes from a unified diff file ('-' for stdin) instead of the GitHub API",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("GITHUB_TOKEN"),
        help="GitHub token for API access (default: $GITHUB_TOKEN)",
    )
    parser.add_argument(
        "--annotate",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Create a check run with annotations (default: on unless --diff is used)",
    )
    parser.add_argument("--strip-prefix", help="Prefix to strip from coverage file paths")
    parser.add_argument("--format", choices=["text", "json"], default="text")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        return cmd_check(args)
    except AnnotatorError as e:
        logger.error(str(e))
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
