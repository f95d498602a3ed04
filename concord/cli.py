"""Concord CLI: Typer + Rich terminal interface.

Commands: arbitrate, serve, ledger verify/show/stats, config show, backends list.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from concord import __version__
from concord.engine import ArbitrationEngine
from concord.errors import LedgerWriteFailure, WeightSumInvalid
from concord.keys import configured_backend_keys, load_keys_env
from concord.ledger import EvidenceLedger, SqliteLedgerStore, close_db, init_db
from concord.providers import LexicalInferenceBackend, build_backend
from concord.providers.base import InferenceBackend
from concord.providers.registry import load_arbitration_config, load_backends
from concord.reference import StaticReferenceFacts
from concord.schemas.config import ArbitrationConfig
from concord.schemas.report import ContradictionReport, Decision
from concord.schemas.sources import SourceResponse

console = Console()
err_console = Console(stderr=True)

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="concord",
    help="Cross-source contradiction arbitration with a hash-chained audit trail.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

ledger_app = typer.Typer(
    name="ledger",
    help="Inspect and verify the evidence ledger.",
    no_args_is_help=True,
)
app.add_typer(ledger_app, name="ledger")

config_app = typer.Typer(
    name="config",
    help="Show arbitration configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

backends_app = typer.Typer(
    name="backends",
    help="Inspect the inference backend registry.",
    no_args_is_help=True,
)
app.add_typer(backends_app, name="backends")

_SOURCES_ADAPTER = TypeAdapter(list[SourceResponse])

_DECISION_STYLES = {
    Decision.AUTO_APPROVE: "bold green",
    Decision.ESCALATE_HITL: "bold yellow",
    Decision.BLOCK: "bold bright_red",
}

_SEVERITY_STYLES = {
    "low": "dim",
    "medium": "yellow",
    "high": "red",
    "critical": "bold bright_red",
}


# ── App Callback ────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"concord {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
    config_path: Path = typer.Option(
        None, "--config", "-c", help="Path to an alternative defaults.toml."
    ),
) -> None:
    """Concord: arbitrate contradictions between independent sources."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    load_keys_env()
    ctx.obj = {"config_path": config_path}


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(ctx: typer.Context) -> ArbitrationConfig:
    """Load arbitration config, exit on error."""
    path = (ctx.obj or {}).get("config_path")
    try:
        return load_arbitration_config(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _load_registry():
    """Load the backend registry, exit on error."""
    try:
        return load_backends()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading backends:[/red] {e}")
        raise typer.Exit(1) from None


def _make_backend(config: ArbitrationConfig, offline: bool) -> InferenceBackend:
    """Lexical heuristic when offline, else the configured chain; exit on error."""
    if offline:
        return LexicalInferenceBackend()
    try:
        return build_backend(_load_registry(), config.backends)
    except ValueError as e:
        console.print(f"[red]Backend configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def _load_facts(path: Path | None) -> StaticReferenceFacts | None:
    """Load reference facts, exit on error."""
    if path is None:
        return None
    try:
        return StaticReferenceFacts.from_toml(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading reference facts:[/red] {e}")
        raise typer.Exit(1) from None


def _load_sources(path: Path) -> tuple[list[SourceResponse], str | None]:
    """Read sources from a JSON list or a {"sources": [...]} object."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read sources:[/red] {e}")
        raise typer.Exit(1) from None

    supersedes = None
    if isinstance(raw, dict):
        supersedes = raw.get("supersedes")
        raw = raw.get("sources", [])

    try:
        return _SOURCES_ADAPTER.validate_python(raw), supersedes
    except ValidationError as e:
        console.print("[red]Invalid sources file:[/red]")
        console.print(Text(str(e)))
        raise typer.Exit(1) from None


def _display_report(report: ContradictionReport) -> None:
    style = _DECISION_STYLES.get(report.decision, "white")
    header = Text()
    header.append(report.decision.value.upper(), style=style)
    header.append(f"  {report.decision_reason}", style="dim")

    console.print(Panel(
        header,
        title=f"Report {report.id[:8]}",
        subtitle=(
            f"score {report.overall_score:.3f} | "
            f"confidence {report.aggregate_confidence:.2f}"
        ),
    ))

    table = Table(title="Dimensions")
    table.add_column("Dimension", style="bold cyan")
    table.add_column("Score", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Conflicts", justify="right")
    table.add_column("Status")

    for result in report.per_dimension:
        status = (
            Text(f"DEGRADED ({result.degradation_reason})", style="yellow")
            if result.degraded
            else Text("ok", style="green")
        )
        table.add_row(
            result.dimension.value,
            f"{result.score:.2f}",
            f"{result.confidence:.2f}",
            str(len(result.contradictions)),
            status,
        )
    console.print(table)

    if report.findings:
        console.print("\n[bold]Findings[/bold]")
        for finding in report.findings:
            sev_style = _SEVERITY_STYLES.get(finding.severity.value, "white")
            console.print(
                f"  [{sev_style}]{finding.severity.value.upper():8}[/{sev_style}] "
                f"[dim]{finding.dimension.value}:[/dim] {finding.description}"
            )

    if report.supersedes:
        console.print(f"\n[dim]Supersedes report {report.supersedes}[/dim]")


# ── concord arbitrate ───────────────────────────────────────────


@app.command()
def arbitrate(
    ctx: typer.Context,
    sources_file: Path = typer.Argument(..., help="JSON file with the source responses."),
    offline: bool = typer.Option(
        False, "--offline", help="Use the lexical heuristic instead of model backends."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    facts: Path = typer.Option(
        None, "--facts", help="TOML file of reference facts for specification sources."
    ),
    db_path: str = typer.Option(None, "--db", help="Ledger database path override."),
    supersedes: str = typer.Option(
        None, "--supersedes", help="ID of an earlier report this one corrects."
    ),
) -> None:
    """Arbitrate a set of source responses and record the decision."""
    config = _load_config(ctx)
    sources, file_supersedes = _load_sources(sources_file)
    backend = _make_backend(config, offline)
    reference_facts = _load_facts(facts)

    async def _run() -> ContradictionReport:
        db = await init_db(db_path or config.ledger_db_path)
        try:
            ledger = EvidenceLedger(
                SqliteLedgerStore(db),
                retries=config.ledger_retries,
                backoff_seconds=config.ledger_backoff_seconds,
            )
            engine = ArbitrationEngine(
                config, backend, ledger, reference_facts=reference_facts
            )
            return await engine.arbitrate(sources, supersedes=supersedes or file_supersedes)
        finally:
            await close_db(db)

    try:
        if as_json:
            report = asyncio.run(_run())
        else:
            with console.status("[bold blue]Arbitrating sources...", spinner="dots"):
                report = asyncio.run(_run())
    except WeightSumInvalid as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None
    except LedgerWriteFailure as e:
        console.print(f"[red]Ledger write failed, decision not recorded:[/red] {e}")
        raise typer.Exit(1) from None

    if as_json:
        console.print_json(report.model_dump_json())
    else:
        _display_report(report)


# ── concord serve ────────────────────────────────────────────────


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8430, "--port", "-p", help="Port to serve the API on."),
    offline: bool = typer.Option(
        False, "--offline", help="Use the lexical heuristic instead of model backends."
    ),
    facts: Path = typer.Option(
        None, "--facts", help="TOML file of reference facts for specification sources."
    ),
    db_path: str = typer.Option(None, "--db", help="Ledger database path override."),
) -> None:
    """Serve the arbitration HTTP API over one engine and a SQLite ledger.

    Requires: pip install concord-arbitration[server]
    """
    from concord.server import create_app

    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]The HTTP server requires extra dependencies.[/red]\n"
            "Install with: [bold]pip install concord-arbitration\\[server][/bold]"
        )
        raise typer.Exit(1) from None

    config = _load_config(ctx)
    backend = _make_backend(config, offline)
    reference_facts = _load_facts(facts)
    path = db_path or config.ledger_db_path

    ledger = EvidenceLedger(
        SqliteLedgerStore(db_path=path),
        retries=config.ledger_retries,
        backoff_seconds=config.ledger_backoff_seconds,
    )
    try:
        engine = ArbitrationEngine(config, backend, ledger, reference_facts=reference_facts)
        web_app = create_app(engine)
    except WeightSumInvalid as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None
    except ImportError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    console.print(Panel(
        f"[bold]URL:[/bold] http://{host}:{port}\n"
        f"[bold]Backend:[/bold] {backend.backend_id}\n"
        f"[bold]Ledger:[/bold] {path}",
        title="[bold blue]Concord API[/bold blue]",
        border_style="blue",
    ))
    uvicorn.run(web_app, host=host, port=port, log_level="warning")


# ── concord ledger ───────────────────────────────────────────────


def _ledger_call(ctx: typer.Context, db_path: str | None, method: str, *args):
    config = _load_config(ctx)
    path = db_path or config.ledger_db_path

    async def _call():
        db = await init_db(path)
        try:
            ledger = EvidenceLedger(SqliteLedgerStore(db))
            return await getattr(ledger, method)(*args)
        finally:
            await close_db(db)

    return asyncio.run(_call())


@ledger_app.command("verify")
def ledger_verify(
    ctx: typer.Context,
    db_path: str = typer.Option(None, "--db", help="Ledger database path override."),
) -> None:
    """Recompute the hash chain and report the first broken entry."""
    result = _ledger_call(ctx, db_path, "verify_chain")

    if result.valid:
        console.print(
            f"[green]Ledger intact:[/green] {result.entries_checked} entries verified"
        )
        return

    console.print(
        f"[bold bright_red]Ledger broken at entry {result.broken_at}:[/bold bright_red] "
        f"{result.reason}"
    )
    raise typer.Exit(1)


@ledger_app.command("show")
def ledger_show(
    ctx: typer.Context,
    entry_type: str = typer.Option(None, "--type", help="Only show entries of this type."),
    limit: int = typer.Option(20, "--limit", "-n", help="Max entries to show (most recent)."),
    db_path: str = typer.Option(None, "--db", help="Ledger database path override."),
) -> None:
    """Show recent ledger entries."""
    entries = _ledger_call(ctx, db_path, "entries", entry_type)

    if not entries:
        console.print("[dim]Ledger is empty.[/dim]")
        return

    shown = entries[-limit:] if limit > 0 else entries
    table = Table(title=f"Ledger ({len(shown)} of {len(entries)} shown)")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Type")
    table.add_column("Timestamp", style="dim")
    table.add_column("Decision")
    table.add_column("Score", justify="right")
    table.add_column("Hash", style="dim", no_wrap=True)

    for entry in shown:
        report = entry.payload.get("report", {})
        decision = report.get("decision", "")
        style = _DECISION_STYLES.get(decision, "white") if decision else "white"
        score = report.get("overall_score")
        table.add_row(
            str(entry.sequence),
            entry.type,
            entry.timestamp[:19],
            Text(decision or "-", style=style),
            f"{score:.3f}" if isinstance(score, (int, float)) else "-",
            entry.entry_hash[:12],
        )

    console.print(table)


@ledger_app.command("stats")
def ledger_stats(
    ctx: typer.Context,
    db_path: str = typer.Option(None, "--db", help="Ledger database path override."),
) -> None:
    """Show entry counts and chain integrity."""
    stats = _ledger_call(ctx, db_path, "stats")

    table = Table(title="Ledger Statistics", show_header=False, show_lines=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Total Entries", str(stats.total_entries))
    for entry_type, count in sorted(stats.entries_by_type.items()):
        table.add_row(f"  {entry_type}", str(count))
    table.add_row("First Entry", stats.first_timestamp or "-")
    table.add_row("Last Entry", stats.last_timestamp or "-")
    table.add_row(
        "Integrity",
        "[green]valid[/green]" if stats.integrity.valid
        else f"[red]broken at {stats.integrity.broken_at}[/red]",
    )
    console.print(table)


# ── concord config ───────────────────────────────────────────────


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show current arbitration configuration."""
    config = _load_config(ctx)

    table = Table(title="Arbitration Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Score Threshold", f"{config.score_threshold:.2f}")
    table.add_row("Confidence Floor", f"{config.confidence_floor:.2f}")
    table.add_row("Pairwise Workers", str(config.pairwise_worker_pool_size))
    table.add_row("Analyzer Timeout", f"{config.analyzer_timeout_ms}ms")
    table.add_row("Inference Timeout", f"{config.inference_timeout:.1f}s")
    table.add_row("Degraded Confidence", f"{config.degraded_confidence:.2f}")
    table.add_row("Safety Critical Score", f"{config.safety_critical_score:.2f}")
    table.add_row("Ledger Retries", str(config.ledger_retries))
    table.add_row("Escalation Max Pending", str(config.escalation_max_pending))
    table.add_row("Ledger DB Path", config.ledger_db_path)
    table.add_row("Backends", " -> ".join(config.backends) or "(none)")
    console.print(table)

    weights = Table(title="Dimension Weights")
    weights.add_column("Dimension", style="cyan")
    weights.add_column("Weight", justify="right")
    for dimension, weight in config.weights.as_mapping().items():
        weights.add_row(dimension.value, f"{weight:.2f}")
    weights.add_row("[bold]total[/bold]", f"{sum(config.weights.as_mapping().values()):.2f}")
    console.print()
    console.print(weights)


# ── concord backends ─────────────────────────────────────────────


@backends_app.command("list")
def backends_list(ctx: typer.Context) -> None:
    """Show all registered inference backends as a table."""
    registry = _load_registry()
    config = _load_config(ctx)

    table = Table(title="Inference Backends", show_lines=True)
    table.add_column("Key", style="bold cyan")
    table.add_column("Display Name")
    table.add_column("Provider", style="dim")
    table.add_column("Model")
    table.add_column("Order", justify="right")
    table.add_column("API Key")

    key_status = configured_backend_keys({k: c.api_key_env for k, c in registry.items()})

    for key, cfg in registry.items():
        order = str(config.backends.index(key) + 1) if key in config.backends else "-"
        table.add_row(
            key,
            cfg.display_name,
            cfg.provider,
            cfg.model,
            order,
            "[green]set[/green]" if key_status[key] else "[red]not set[/red]",
        )

    console.print(table)
    console.print(f"\n[dim]{len(registry)} backends registered[/dim]")
