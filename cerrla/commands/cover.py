"""Command: cerrla cover — covering (LGG rules) of a single observed state."""

from __future__ import annotations

import argparse
import pathlib
import random

from rich.console import Console
from rich.table   import Table
from rich         import box

from covering import Covering
from domain import get_domain
from relational.errors import CerrlaError
from solver.loader import load_state_json

console = Console(width=200)


def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "cover",
        help="Builds the most general rule of every valid action in a state file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Reads one state (facts + valid actions) from JSON and prints the rules
obtained by covering: the instances of each action are inversely
substituted and unified into a single most general rule.

State file format:
  {
    "domain": "blocks_world",
    "facts": ["on(a, b)", "clear(a)", "clear(b)", "clear(c)"],
    "valid_actions": ["move(a, c)", {"pred": "move", "args": ["b", "c"]}]
  }

Examples:
  cerrla cover state.json
  cerrla cover state.json --domain blocks_world --seed 3
        """,
    )
    p.add_argument(
        "state",
        metavar="STATE",
        help="JSON file with the state facts and valid actions.",
    )
    p.add_argument(
        "--domain", "-d",
        metavar="DOMAIN",
        help="Registered domain (default: the 'domain' key of the file).",
    )
    p.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the instance order tie-break.",
    )
    p.set_defaults(func=run)


def run(args: argparse.Namespace) -> None:
    path = pathlib.Path(args.state)
    if not path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise SystemExit(1)

    try:
        raw_domain = args.domain
        if raw_domain is None:
            raw_domain = load_state_json(path).domain
        if not raw_domain:
            console.print("[red]Error:[/red] no domain given (use --domain or a 'domain' key)")
            raise SystemExit(1)
        spec  = get_domain(raw_domain).spec()
        state = load_state_json(path, spec)
    except (CerrlaError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    covering = Covering(spec, rng=random.Random(args.seed))
    rules    = covering.cover(state.facts, state.valid_actions, {}, create_new=True)

    console.print(
        f"[bold]{path.name}[/bold]  domain: [cyan]{spec.name}[/cyan]  "
        f"facts: {len(state.facts)}  "
        f"instances: {sum(len(v) for v in state.valid_actions.values())}"
    )
    if not any(rules.values()):
        console.print("[yellow]No valid actions — nothing to cover.[/yellow]")
        return

    table = Table(box=box.SIMPLE_HEAD, show_header=True, header_style="bold white")
    table.add_column("action",     style="cyan", no_wrap=True)
    table.add_column("instances",  justify="right")
    table.add_column("rule",       style="green")
    for action, action_rules in sorted(rules.items()):
        for rule in action_rules:
            table.add_row(action, str(len(state.valid_actions[action])), str(rule))
    console.print(table)
