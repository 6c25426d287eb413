"""Command: cerrla show — prints the slots and rule probabilities of a checkpoint."""

from __future__ import annotations

import argparse

from rich.console import Console
from rich.table   import Table
from rich         import box

from domain import get_domain
from optimizer.persistence import load_checkpoint
from optimizer.slot import ABSENT
from relational.errors import CerrlaError

console = Console(width=200)


def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "show",
        help="Prints the slots and rule probabilities stored in a checkpoint.",
    )
    p.add_argument(
        "checkpoint",
        metavar="CHECKPOINT",
        help="Checkpoint file written by 'cerrla run --checkpoint'.",
    )
    p.add_argument(
        "--domain", "-d",
        metavar="DOMAIN",
        help="Validate the rules against a registered domain.",
    )
    p.add_argument(
        "--min-prob",
        type=float,
        default=0.0,
        dest="min_prob",
        help="Hide rules at or below this probability (default: 0, show all).",
    )
    p.set_defaults(func=run)


def run(args: argparse.Namespace) -> None:
    try:
        spec = get_domain(args.domain).spec() if args.domain else None
    except CerrlaError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    loaded = load_checkpoint(args.checkpoint, spec)
    if not loaded.ok:
        console.print(f"[red]Error:[/red] {loaded.error}")
        raise SystemExit(1)

    dist = loaded.distribution
    for key, value in loaded.metadata.items():
        console.print(f"[dim]{key}:[/dim] {value}")

    table = Table(
        box=box.SIMPLE_HEAD,
        show_header=True,
        header_style="bold white",
        title=f"{args.checkpoint} ({len(dist)} slots)",
        title_style="bold",
    )
    table.add_column("slot",    style="cyan", no_wrap=True)
    table.add_column("P(slot)", justify="right")
    table.add_column("KL-size", justify="right")
    table.add_column("P(rule)", justify="right", style="green")
    table.add_column("rule")

    for slot in sorted(dist, key=lambda s: -dist.slot_probs.probability(s.slot_id)):
        first = True
        for rule_id in slot.rules.ordered():
            prob = slot.probability(rule_id)
            if prob <= args.min_prob:
                continue
            label = "[dim]<none>[/dim]" if rule_id is ABSENT else str(dist.rule(rule_id))
            table.add_row(
                slot.action if first else "",
                f"{dist.slot_probs.probability(slot.slot_id):.4f}" if first else "",
                f"{slot.kl_size():.3f}" if first else "",
                f"{prob:.4f}",
                label,
            )
            first = False

    console.print(table)
