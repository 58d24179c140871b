#!/usr/bin/env python3
"""
Sharpline CLI

Command-line interface for projections, opportunities and handle splits.
"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from services import (
    MatchupContext,
    ProjectionOptions,
    analyze_handle_split,
    detect_opportunities,
    project_matchup,
)
from services.backtesting import BacktestConfig
from services.pipeline import ProjectionPipeline
from models import drop_db, init_db

app = typer.Typer(help="Sports projection and betting edge CLI")
console = Console()

CONFIDENCE_COLORS = {"High": "green", "Medium": "yellow", "Lean": "white"}


def _load_json(path: Path):
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read {path}: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def init(
    reset: bool = typer.Option(False, "--reset", help="Drop all tables before creating them"),
):
    """Initialize the database."""
    try:
        if reset:
            drop_db()
            console.print("[yellow]Dropped existing tables[/yellow]")
        init_db()
        console.print("[green]Database initialized successfully![/green]")
    except Exception as e:
        console.print(f"[red]Error initializing database: {e}[/red]")
        raise typer.Exit(code=1)


@app.command("import-stats")
def import_stats(
    path: Path = typer.Argument(..., help="JSON file with a list of team stat rows"),
):
    """Import team stat rows (re-importing a team/split/source overwrites it)."""
    rows = _load_json(path)
    if not isinstance(rows, list):
        console.print("[red]Expected a JSON list of stat rows[/red]")
        raise typer.Exit(code=1)
    try:
        count = ProjectionPipeline().import_team_stats(rows)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Imported {count} stat rows[/green]")


@app.command()
def project(
    path: Path = typer.Argument(..., help="Matchup JSON file"),
    spread: Optional[float] = typer.Option(None, "--spread", "-s", help="Market spread (home perspective)"),
    total: Optional[float] = typer.Option(None, "--total", "-t", help="Market total"),
    model: str = typer.Option("enhanced", "--model", "-m", help="Confidence model: enhanced or legacy"),
):
    """Project a matchup from a JSON file and flag edges against market lines."""
    data = _load_json(path)
    try:
        projection = project_matchup(MatchupContext.from_dict(data), ProjectionOptions.from_dict(data))
        spread = spread if spread is not None else data.get("current_spread")
        total = total if total is not None else data.get("current_total")
        opportunities = detect_opportunities(
            projection.game_id, projection.sport, projection, spread, total, confidence_model=model
        )
    except (KeyError, ValueError) as e:
        console.print(f"[red]Invalid matchup: {e}[/red]")
        raise typer.Exit(code=1)

    _print_projection(projection)

    if spread is None and total is None:
        return
    if not opportunities:
        console.print("[yellow]No opportunities meet the minimum edge thresholds.[/yellow]")
        return

    table = Table(title="Opportunities", box=box.ROUNDED)
    table.add_column("Market", style="cyan")
    table.add_column("Play")
    table.add_column("Fair", justify="right")
    table.add_column("Edge", justify="right")
    table.add_column("Confidence", justify="center")
    for opp in opportunities:
        color = CONFIDENCE_COLORS.get(opp.confidence.value, "white")
        table.add_row(
            opp.market_type.value,
            opp.play_description,
            f"{opp.fair_line}",
            f"{opp.edge_points:.1f} pts / {opp.edge_percentage:.1f}%",
            f"[{color}]{opp.confidence.value}[/{color}]",
        )
    console.print(table)


@app.command("handle-split")
def handle_split(
    ticket_pct: float = typer.Argument(..., help="Ticket percentage on the side"),
    money_pct: float = typer.Argument(..., help="Money percentage on the side"),
):
    """Compare ticket share and money share on one side."""
    result = analyze_handle_split(ticket_pct, money_pct)
    color = "green" if result.is_sharp_money else "white"
    console.print(Panel(
        f"Divergence: [bold]{result.divergence:.1f}[/bold]\n"
        f"Sharp money: [{color}]{'yes' if result.is_sharp_money else 'no'}[/{color}]\n"
        f"{result.recommendation}",
        title=f"Tickets {ticket_pct:.0f}% / Money {money_pct:.0f}%",
        box=box.ROUNDED,
    ))


@app.command()
def run(
    sport: Optional[List[str]] = typer.Option(None, "--sport", "-s", help="Sport code (repeatable)"),
    game_date: Optional[str] = typer.Option(None, "--date", "-d", help="Game date (YYYY-MM-DD)"),
):
    """Run the projection pipeline over stored scheduled games."""
    target = None
    if game_date:
        try:
            target = datetime.strptime(game_date, "%Y-%m-%d").date()
        except ValueError:
            console.print("[red]Invalid date format. Use YYYY-MM-DD[/red]")
            raise typer.Exit(code=1)

    try:
        with console.status("[bold green]Running projection pipeline..."):
            result = ProjectionPipeline().run(sports=sport or None, game_date=target)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[green]Processed {result.games_processed} games: "
        f"{result.projections_generated} projections, "
        f"{result.opportunities_created} opportunities, "
        f"{result.rlm_signals_detected} RLM signals[/green]"
    )
    for error in result.errors:
        console.print(f"[red]  {error}[/red]")


@app.command()
def opportunities(
    sport: Optional[str] = typer.Option(None, "--sport", "-s", help="Sport code"),
    min_edge: float = typer.Option(0.0, "--min-edge", "-e", help="Minimum edge percentage"),
    limit: int = typer.Option(50, "--limit", "-n", help="Number of rows to show"),
):
    """Show stored active opportunities."""
    try:
        rows = ProjectionPipeline().list_opportunities(sport=sport, min_edge=min_edge, limit=limit)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    if not rows:
        console.print("[yellow]No active opportunities.[/yellow]")
        return

    table = Table(title="Active Opportunities", box=box.ROUNDED)
    table.add_column("Sport", style="dim")
    table.add_column("Game", style="cyan")
    table.add_column("Play")
    table.add_column("Edge", justify="right")
    table.add_column("Vol", justify="right")
    table.add_column("Confidence", justify="center")
    table.add_column("RLM", justify="center")
    for row in rows:
        color = CONFIDENCE_COLORS.get(row["confidence"], "white")
        table.add_row(
            row["sport"],
            row["matchup"],
            row["play_description"],
            f"{row['edge_percentage']:.1f}%",
            str(row["volatility_score"]),
            f"[{color}]{row['confidence']}[/{color}]",
            "[green]yes[/green]" if row["is_reverse_line_movement"] else "",
        )
    console.print(table)


@app.command()
def backtest(
    sport: Optional[str] = typer.Option(None, "--sport", "-s", help="Sport code (default all)"),
    signal_type: str = typer.Option("all", "--signal", help="all, rlm, edge or high_confidence"),
    min_edge: Optional[float] = typer.Option(None, "--min-edge", "-e", help="Minimum edge percentage"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Only opportunities from this confidence model"),
):
    """Backtest stored opportunities against final scores."""
    try:
        config = BacktestConfig(sport=sport, signal_type=signal_type, min_edge=min_edge, confidence_model=model)
        summary = ProjectionPipeline().backtest(config)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    roi_color = "green" if summary.roi > 0 else "red"
    console.print(Panel(
        f"Record: {summary.wins}-{summary.losses}-{summary.pushes} ({summary.win_percentage:.1f}%)\n"
        f"Units: {summary.units_profit_loss:+.2f} | ROI: [{roi_color}]{summary.roi:+.1f}%[/{roi_color}]\n"
        f"Average edge: {summary.avg_edge:.1f}%",
        title=f"Backtest ({sport or 'ALL'}, {signal_type}) through {date.today().isoformat()}",
        box=box.ROUNDED,
    ))


@app.command()
def settle():
    """Grade active opportunities on final games."""
    settled = ProjectionPipeline().settle_results()
    console.print(f"[green]Settled {settled} opportunities[/green]")


# ==================== HELPER FUNCTIONS ====================

def _print_projection(projection):
    """Print a projection summary."""
    header = f"{projection.away_team} @ {projection.home_team} ({projection.algorithm_version})"
    console.print(Panel(header, style="bold cyan", box=box.ROUNDED))

    console.print(
        f"  [dim]Score:[/dim] {projection.away_team} {projection.projected_away_score:.1f} - "
        f"{projection.home_team} {projection.projected_home_score:.1f}"
    )
    console.print(
        f"  [dim]Fair:[/dim]  {projection.home_team} {projection.fair_spread:+.1f} | "
        f"Total: {projection.fair_total:.1f} | ML: {projection.fair_moneyline_home:+d}/{projection.fair_moneyline_away:+d}"
    )
    console.print(
        f"  [dim]Pace:[/dim]  {projection.expected_possessions:.1f} | Volatility: {projection.volatility_score}"
    )

    if projection.drivers:
        console.print("\n  [bold]Drivers[/bold]")
        for driver in projection.drivers:
            console.print(f"    - {driver}")
    if projection.kill_switches:
        console.print("\n  [bold red]Kill switches[/bold red]")
        for switch in projection.kill_switches:
            console.print(f"    [red]! {switch}[/red]")
    console.print()


if __name__ == "__main__":
    app()
