"""Command: cerrla run — runs the cross-entropy learner against a simulator."""

from __future__ import annotations

import argparse
import logging
import pathlib
import statistics
from dataclasses import replace

from rich.console import Console
from rich.table   import Table
from rich         import box

from domain import get_domain
from optimizer.config import LearnerConfig
from optimizer.learner import CrossEntropyLearner
from optimizer.persistence import load_checkpoint, save_checkpoint, save_elites
from relational.errors import CerrlaError, ErrorCode

console = Console(width=200)
logger  = logging.getLogger(__name__)


def add_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    p = subparsers.add_parser(
        "run",
        help="Learns a policy for a registered domain by cross-entropy search.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Runs CERRLA iterations against the domain's simulator: every iteration
samples a population of policies, rolls each out for one episode and
updates the rule distributions towards the elite samples.

Tunables default to LearnerConfig.from_env() (CERRLA_* variables);
the flags below override them.

Examples:
  cerrla run --domain blocks_world --iterations 20
  cerrla run --domain blocks_world --goal stack --blocks 4 --seed 7
  cerrla run --domain blocks_world --checkpoint out/onab.txt --elites out/onab.elites
        """,
    )
    p.add_argument(
        "--domain", "-d",
        metavar="DOMAIN",
        default="blocks_world",
        help="Registered domain (default: blocks_world).",
    )
    p.add_argument(
        "--iterations", "-n",
        type=int,
        default=10,
        help="Maximum number of iterations (default: 10).",
    )
    p.add_argument(
        "--max-steps",
        type=int,
        default=100,
        dest="max_steps",
        help="Step limit of a single episode (default: 100).",
    )
    p.add_argument(
        "--checkpoint",
        metavar="PATH",
        help="Distribution checkpoint: resumed when readable, written after every iteration.",
    )
    p.add_argument(
        "--elites",
        metavar="PATH",
        help="Writes the final elite policies to this file.",
    )
    p.add_argument("--seed", type=int, default=None, help="Random seed.")
    p.add_argument("--step-size", type=float, default=None, dest="step_size",
                   help="Step size α of the elite update.")
    p.add_argument("--selection-ratio", type=float, default=None, dest="selection_ratio",
                   help="Elite fraction ρ of the population.")
    p.add_argument("--absent", action="store_true",
                   help="Slots get an optional 'no rule' choice.")
    p.add_argument("--goal", default=None,
                   help="Simulator goal (blocks_world: onab, unstack, stack).")
    p.add_argument("--blocks", type=int, default=None,
                   help="Number of blocks (blocks_world).")
    p.set_defaults(func=run)


def _config(args: argparse.Namespace) -> LearnerConfig:
    overrides = {
        "seed":            args.seed,
        "step_size":       args.step_size,
        "selection_ratio": args.selection_ratio,
        "absent_choice":   True if args.absent else None,
    }
    return replace(LearnerConfig.from_env(), **{k: v for k, v in overrides.items() if v is not None})


def run(args: argparse.Namespace) -> None:
    try:
        config = _config(args)
        entry  = get_domain(args.domain)
        spec   = entry.spec()
        env_kwargs = {
            key: value
            for key, value in (("goal", args.goal), ("num_blocks", args.blocks), ("seed", config.seed))
            if value is not None
        }
        env = entry.environment(**env_kwargs)
    except (CerrlaError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    distribution = None
    if args.checkpoint:
        loaded = load_checkpoint(args.checkpoint, spec, config.seed)
        if loaded.ok:
            distribution = loaded.distribution
            console.print(
                f"Resumed [cyan]{args.checkpoint}[/cyan]: "
                f"{len(distribution)} slots, {len(distribution.arena)} rules"
            )
        elif loaded.code is not ErrorCode.CHECKPOINT_MISSING:
            console.print(f"[yellow]Warning:[/yellow] {loaded.error} — starting fresh")

    learner = CrossEntropyLearner(spec, config, distribution)

    table = Table(
        box=box.SIMPLE_HEAD,
        show_header=True,
        header_style="bold white",
        title=f"{spec.name} — {args.iterations} iterations",
        title_style="bold",
    )
    table.add_column("iter",      justify="right", style="dim")
    table.add_column("samples",   justify="right")
    table.add_column("elites",    justify="right")
    table.add_column("best",      justify="right", style="green")
    table.add_column("mean",      justify="right")
    table.add_column("update",    justify="right")
    table.add_column("KL",        justify="right")
    table.add_column("slots",     justify="right")
    table.add_column("rules",     justify="right")
    table.add_column("+/-",       justify="right", style="dim")

    report = None
    try:
        for _ in range(args.iterations):
            values: list[float] = []
            for _ in range(learner.population()):
                policy, value = learner.run_episode(env, max_steps=args.max_steps)
                learner.record_sample(policy, value)
                values.append(value)
            iteration = learner.iteration
            report    = learner.end_iteration()

            table.add_row(
                str(iteration),
                str(len(values)),
                str(report.num_elites),
                f"{max(values):.1f}",
                f"{statistics.fmean(values):.2f}",
                f"{report.total_update:.4f}",
                f"{report.kl_divergence:.4f}",
                str(len(learner.distribution)),
                str(len(learner.distribution.arena)),
                f"+{len(report.regenerated)}/-{len(report.pruned)}",
            )
            if args.checkpoint:
                save_checkpoint(args.checkpoint, learner.distribution,
                                {"update_size": report.total_update})
            if learner.is_converged():
                logger.info("converged after %d iterations", learner.iteration)
                break
    except CerrlaError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    console.print(table)

    best = learner.best_policy()
    console.print("\n[bold]Most likely policy:[/bold]")
    for line in best.describe(learner.distribution.arena):
        console.print(f"  {line}")

    if args.checkpoint and learner.elites:
        save_checkpoint(args.checkpoint, learner.distribution, {
            "update_size":     report.total_update if report is not None else 0.0,
            "converged_value": learner.elites[0].value,
        })
        console.print(f"\nCheckpoint: [cyan]{args.checkpoint}[/cyan]")
    if args.elites:
        save_elites(pathlib.Path(args.elites), learner.elites, learner.distribution.arena)
        console.print(f"Elites:     [cyan]{args.elites}[/cyan]")
