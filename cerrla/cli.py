"""
cerrla — CLI of the relational cross-entropy rule learner.

Usage:
  cerrla [-v] <command> [options]

Commands:
  domains   Lists registered domains.
  cover     Covers a single state file and prints the most general rules.
  run       Learns a policy for a registered domain (cross-entropy search).
  show      Prints the slots and rule probabilities of a checkpoint.
"""

from __future__ import annotations

import argparse
import sys

from cerrla import __version__
from cerrla._logging import configure_logging
from cerrla.commands import cover as cmd_cover
from cerrla.commands import domains as cmd_domains
from cerrla.commands import run as cmd_run
from cerrla.commands import show as cmd_show


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cerrla",
        description="CERRLA — relational policy learning by cross-entropy search.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"cerrla {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging."
    )

    subparsers = parser.add_subparsers(
        title="commands",
        metavar="<command>",
        dest="command",
    )
    subparsers.required = True

    cmd_domains.add_parser(subparsers)
    cmd_cover.add_parser(subparsers)
    cmd_run.add_parser(subparsers)
    cmd_show.add_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> None:
    # Windows consoles may default to cp1252; help texts contain α and ρ.
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure"):
            stream.reconfigure(encoding="utf-8", errors="replace")

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
