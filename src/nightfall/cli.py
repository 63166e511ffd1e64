"""Command-line interface for the nightfall match engine."""

from __future__ import annotations

import logging
import random
from collections import Counter
from typing import Any

import click

from nightfall.comms.delivery import AudienceKind, Envelope, EnvelopeKind

logger = logging.getLogger(__name__)


@click.group()
@click.option("--log-level", default="WARNING", help="Logging level.")
def cli(log_level: str) -> None:
    """nightfall -- social-deduction match engine."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# ------------------------------------------------------------------
# nightfall roles
# ------------------------------------------------------------------


@cli.command()
@click.option("--players", type=int, default=5, help="Number of participants.")
@click.option("--seed", type=int, default=None, help="Seed for a reproducible shuffle.")
def roles(players: int, seed: int | None) -> None:
    """Show the role template and a sample assignment."""
    from nightfall.roles.assignment import assign_roles, build_role_template

    try:
        template = build_role_template(players)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--players") from exc

    click.echo(click.style(f"=== Role template for {players} ===", fg="cyan", bold=True))
    for role, count in Counter(template).items():
        click.echo(f"  {role.value:<16} x{count}  [{role.team}]")

    rng = random.Random(seed) if seed is not None else None
    ids = [f"p{i + 1}" for i in range(players)]
    click.echo()
    click.echo(click.style("Sample assignment:", fg="cyan"))
    for pid, role in assign_roles(ids, rng).items():
        click.echo(f"  {pid:<4} {role.value}")


# ------------------------------------------------------------------
# nightfall simulate
# ------------------------------------------------------------------


@cli.command()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=False),
    help="Path to match config YAML.",
)
@click.option("--players", type=int, default=5, help="Number of participants.")
@click.option("--seed", type=int, default=None, help="Seed for roles and bot choices.")
@click.option("--max-rounds", type=int, default=20, help="Give up after this many rounds.")
@click.option("--night", type=int, default=None, help="Override night duration (ticks).")
@click.option("--day", type=int, default=None, help="Override day duration (ticks).")
@click.option("--voting", type=int, default=None, help="Override voting duration (ticks).")
@click.option("--verbose", is_flag=True, help="Also print chat.")
def simulate(
    config_path: str | None,
    players: int,
    seed: int | None,
    max_rounds: int,
    night: int | None,
    day: int | None,
    voting: int | None,
    verbose: bool,
) -> None:
    """Play one match with random participants, ticking it by hand."""
    from nightfall.config.loader import load_config, merge_configs
    from nightfall.session.simulation import run_simulation

    config = load_config(config_path)

    durations: dict[str, Any] = {}
    if night is not None:
        durations["night"] = night
    if day is not None:
        durations["day"] = day
    if voting is not None:
        durations["voting"] = voting
    if durations:
        config = merge_configs(config, {"durations": durations})

    if players < config.min_participants:
        raise click.BadParameter(
            f"need at least {config.min_participants} participants",
            param_hint="--players",
        )

    click.echo(click.style("=== nightfall: Starting Match ===", fg="cyan", bold=True))
    click.echo(f"  Ruleset: {config.ruleset}")
    click.echo(f"  Players: {players}")
    click.echo(
        f"  Durations: night={config.durations.night} "
        f"day={config.durations.day} voting={config.durations.voting}"
    )
    click.echo()

    def _echo(envelope: Envelope) -> None:
        if envelope.audience.kind != AudienceKind.EVERYONE:
            return
        if envelope.kind == EnvelopeKind.EVENT:
            click.echo(f"  * {envelope.payload['message']['text']}")
        elif envelope.kind == EnvelopeKind.CHAT and verbose:
            msg = envelope.payload
            click.echo(click.style(f"    {msg['sender_name']}: {msg['text']}", dim=True))

    result = run_simulation(
        config,
        num_players=players,
        seed=seed,
        max_rounds=max_rounds,
        listeners=[_echo],
    )

    click.echo()
    click.echo(click.style("=== Match Result ===", fg="green", bold=True))
    click.echo(f"  Match ID: {click.style(result.match_id, fg='yellow')}")
    winner = result.winner or "none (round limit)"
    click.echo(f"  Winner: {click.style(winner, fg='bright_green', bold=True)}")
    click.echo(f"  Rounds: {result.rounds}  Ticks: {result.ticks}")
    click.echo()

    click.echo(click.style("Participants:", fg="cyan"))
    for p in result.final_state.participants:
        status = (
            click.style("alive", fg="green")
            if p.is_alive
            else click.style("eliminated", fg="red")
        )
        click.echo(f"  {p.name} ({p.participant_id}): {p.role.value} [{p.role.team}] - {status}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
