"""CLI for k6-report."""

import argparse
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

from k6report import __version__
from k6report.config import load_config
from k6report.convert import load_test_run
from k6report.errors import ReportError
from k6report.report.export import save_metrics
from k6report.report.render_md import render_markdown_report

logger = logging.getLogger("k6report")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def default_output_path(input_path: Path) -> Path:
    """The input path with its extension replaced by ``.md``."""
    return input_path.with_suffix(".md")


def write_atomic(path: Path, content: str):
    """Write ``content`` to ``path`` through a temporary file in the same directory."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="k6-report",
        description="Convert k6 JSON output (handleSummary or --out json) to a Markdown report",
    )
    parser.add_argument("input", type=Path, metavar="JSON_FILE", help="k6 summary or JSON lines file")
    parser.add_argument(
        "output", type=Path, nargs="?", default=None, metavar="MARKDOWN_FILE",
        help="Output Markdown file (defaults to the input name with .md extension)",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML report configuration file")
    parser.add_argument("--title", default=None, help="Report title")
    parser.add_argument(
        "--percentile-method", choices=["nearest", "linear"], default=None,
        help="Percentile method for event streams (default: nearest)",
    )
    parser.add_argument("--export-dir", type=Path, default=None,
                        help="Also write metrics.csv and metrics.jsonl to this directory")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run(args: argparse.Namespace) -> int:
    """Convert one file. Returns the process exit code."""
    try:
        config = load_config(args.config).with_overrides(
            title=args.title,
            percentile_method=args.percentile_method,
        )
    except (OSError, ValueError) as e:
        print(f"error: invalid configuration: {e}", file=sys.stderr)
        return 1

    output_path = args.output or default_output_path(args.input)

    try:
        text = args.input.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"error: failed to read '{args.input}': {e}", file=sys.stderr)
        return 1

    try:
        test_run = load_test_run(text, config)
        markdown = render_markdown_report(test_run, config)
    except ReportError as e:
        print(f"error: {e.diagnostic()}", file=sys.stderr)
        return 1

    try:
        write_atomic(output_path, markdown)
        if args.export_dir is not None:
            save_metrics(test_run, args.export_dir)
    except OSError as e:
        print(f"error: failed to write output: {e}", file=sys.stderr)
        return 1

    logger.info("Report generated: %s", output_path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    return run(args)


if __name__ == "__main__":
    sys.exit(main())
