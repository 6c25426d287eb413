"""Command: cerrla domains — lists the registered domains."""

from __future__ import annotations

import argparse

from rich.console import Console
from rich.table   import Table
from rich         import box

from domain import available_domains, get_domain

console = Console(width=200)


def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "domains",
        help="Lists registered domains with their actions and predicates.",
    )
    p.set_defaults(func=run)


def run(args: argparse.Namespace) -> None:
    names = available_domains()
    if not names:
        console.print("[yellow]No domains registered.[/yellow]")
        return

    table = Table(
        box=box.SIMPLE_HEAD,
        show_header=True,
        header_style="bold white",
        title=f"Domains ({len(names)})",
        title_style="bold",
    )
    table.add_column("name",        style="cyan",  no_wrap=True)
    table.add_column("actions",     style="green")
    table.add_column("predicates",  style="white")
    table.add_column("simulator",   justify="center")
    table.add_column("description", style="dim")

    for name in names:
        entry = get_domain(name)
        spec  = entry.spec()
        table.add_row(
            name,
            ", ".join(f"{a}/{d.arity}" for a, d in sorted(spec.actions.items())),
            ", ".join(f"{p}/{d.arity}" for p, d in sorted(spec.predicates.items())),
            "yes" if entry.env_factory is not None else "-",
            entry.description,
        )

    console.print(table)
