# main.py
"""CLI entry point for the MythForge mythology generator."""

from __future__ import annotations

import argparse
import sys

from models.request_models import MythMood
from orchestration.cli_runner import run


def main() -> None:
    """Parse command-line arguments and start a generation."""
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--request", required=True, help="Path to the YAML generation request"
    )
    parser.add_argument(
        "--mood",
        default=None,
        choices=[mood.value for mood in MythMood],
        help="Override the mood from the request file",
    )
    parser.add_argument(
        "--accept-partial",
        action="store_true",
        help="Accept a document whose recovery left sections unresolved",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the JSON document to this file instead of stdout",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Log at DEBUG level"
    )
    args = parser.parse_args()
    exit_code = run(
        args.request,
        args.mood,
        args.accept_partial,
        args.output,
        verbose=args.verbose,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
