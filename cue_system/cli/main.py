"""Operator CLI for the cue analysis system using Typer and Rich."""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from cue_system.config.settings import settings
from cue_system.config.logging import get_logger

app = typer.Typer(
    help="Cue System CLI - film music analysis, dedup cache and vocabulary tooling",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")


def _load_registry():
    from cue_system.data_management.vocabulary_registry import InMemoryVocabularyRegistry

    if settings.vocabulary_path:
        return InMemoryVocabularyRegistry.from_json(settings.vocabulary_path)
    return InMemoryVocabularyRegistry.from_seed()


@app.command()
def status() -> None:
    """
    Display system status and configuration.
    """
    logger.info("Displaying system status")

    table = Table(title="Cue System Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Status", style="green", width=15)
    table.add_column("Details", style="yellow")

    python_version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    table.add_row("Environment", "✓ Ready", python_version)

    api_status = "✓ Configured" if settings.gemini_api_key else "⚠ Not Configured"
    table.add_row("Gemini API", api_status, f"{settings.gemini_model} (RPM: {settings.max_rpm})")

    if settings.remote_store_url:
        table.add_row("Shared Store", "✓ HTTP", settings.remote_store_url)
    else:
        table.add_row("Shared Store", "✓ SQLite", settings.remote_store_sqlite_path)
    table.add_row("Local Store", "✓ Active", str(settings.local_store_path or "memory only"))

    registry = _load_registry()
    snap = registry.snapshot()
    table.add_row(
        "Vocabulary",
        "✓ Loaded",
        f"{snap.size()} entries in {len(snap.categories())} categories "
        f"({settings.vocabulary_path or 'built-in seed'})",
    )
    table.add_row(
        "Standardization",
        "✓ Active",
        f"policy: {settings.context_mismatch_policy}, catch-all: {settings.catch_all_term}",
    )
    table.add_row(
        "Logging",
        "✓ Active",
        f"Level: {settings.log_level}, Format: {settings.log_format}",
    )

    console.print(table)


@app.command()
def analyze(
    manifest: Path = typer.Argument(..., exists=True, help="JSON list of assets"),
    concurrency: Optional[int] = typer.Option(None, help="Assets analyzed at once"),
    reanalyze: bool = typer.Option(False, "--reanalyze", help="Ignore cached records and analyze again"),
) -> None:
    """
    Analyze the assets listed in a JSON manifest.

    Each manifest item: {"name", "path"?, "features"?, "metadata"?}
    """
    from cue_system.data_management.schemas import Asset
    from cue_system.pipelines.analysis_pipeline import AnalysisPipeline

    with open(manifest, "r", encoding="utf-8") as f:
        items = json.load(f)

    assets = [Asset.model_validate(item) for item in items]
    pipeline = AnalysisPipeline(concurrency=concurrency)

    async def run():
        try:
            return await pipeline.process_batch(assets, reanalyze=reanalyze)
        finally:
            await pipeline.remote_store.close()

    logger.info(f"Analyzing {len(assets)} assets from {manifest}")
    results = asyncio.run(run())

    table = Table(title="Analysis Results", show_header=True, header_style="bold magenta")
    table.add_column("Asset", style="cyan")
    table.add_column("Outcome", style="green")
    table.add_column("Labels", style="yellow")
    table.add_column("Provenance")

    for result in results:
        labels = ""
        provenance = ""
        if result.record:
            labels = "; ".join(
                f"{cat}: {', '.join(terms)}"
                for cat, terms in result.record.standardized_labels.items()
            )
            prov = result.record.provenance
            provenance = f"{prov.title_or_album or '-'} ({result.record.confidence_tier.value})"
        table.add_row(result.asset_name, result.outcome.value, labels, provenance or (result.error or ""))

    console.print(table)
    console.print(pipeline.get_pipeline_status()["stats"])


@app.command("vocabulary-check")
def vocabulary_check(
    term: str = typer.Argument(..., help="Proposed canonical term"),
    category: str = typer.Option("scenario", help="Label category"),
    alias: List[str] = typer.Option([], "--alias", "-a", help="Proposed alias (repeatable)"),
) -> None:
    """
    Check a proposed vocabulary term for collisions before adding it.
    """
    registry = _load_registry()
    conflicts = registry.check_conflicts(category, term, alias)

    if not conflicts:
        console.print(f"[green]✓ '{term}' does not collide with the {category} vocabulary[/green]")
        return

    table = Table(title=f"Conflicts for '{term}'", show_header=True, header_style="bold magenta")
    table.add_column("Type", style="cyan")
    table.add_column("Existing Term", style="yellow")
    table.add_column("Blocking")
    table.add_column("Detail")
    for conflict in conflicts:
        table.add_row(
            conflict.conflict_type.value,
            conflict.conflicting_term,
            "yes" if conflict.conflict_type.blocking else "no",
            conflict.detail,
        )
    console.print(table)

    if any(c.conflict_type.blocking for c in conflicts):
        raise typer.Exit(code=1)


@app.command()
def candidates(
    category: Optional[str] = typer.Option(None, help="Only this category"),
) -> None:
    """
    List candidate terms awaiting curator review.
    """
    from cue_system.data_management.candidate_queue import CandidateReviewQueue

    queue = CandidateReviewQueue(settings.candidate_queue_path)
    pending = asyncio.run(queue.list_pending(category))

    if not pending:
        console.print("[italic]No candidate terms pending review[/italic]")
        return

    table = Table(title="Pending Candidate Terms", show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Term", style="green")
    table.add_column("Seen", justify="right")
    table.add_column("Aliases", style="yellow")
    table.add_column("Contexts")
    for c in pending:
        table.add_row(
            c.category,
            c.term,
            str(c.occurrence_count),
            ", ".join(sorted(c.suggested_aliases)),
            ", ".join(sorted(c.suggested_contexts)),
        )
    console.print(table)


if __name__ == "__main__":
    app()
